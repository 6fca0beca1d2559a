"""Minimal smoke test for release wheel validation."""
import io

import tessera
from tessera.types import ListType, LongType, NestedField, Schema, StringType

schema = Schema(
    NestedField(1, "id", LongType(), optional=False),
    NestedField(2, "name", StringType()),
    NestedField(3, "tags", ListType(4, StringType())),
)
rows = [
    {"id": 1, "name": "a", "tags": ["x", None]},
    {"id": 2, "name": None, "tags": []},
    {"id": 3, "name": "", "tags": None},
]

buf = io.BytesIO()
count = tessera.write(buf, schema, rows)
assert count == 3, f"Unexpected count: {count}"

back = tessera.read_records(buf.getvalue(), row_builder=tessera.DictBuilder)
assert back == rows, f"Unexpected records: {back}"
print(f"Smoke test passed: {count} rows, {[f.name for f in schema.columns]}")
