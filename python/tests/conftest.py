"""Shared fixtures and utilities for Tessera tests."""

import io
import os
import tempfile

import pytest

import tessera
from tessera.types import (
    BinaryType,
    BooleanType,
    DateType,
    DecimalType,
    DoubleType,
    FixedType,
    FloatType,
    IntegerType,
    ListType,
    LongType,
    MapType,
    NestedField,
    Schema,
    StringType,
    StructType,
    TimestampType,
    TimeType,
    UnknownType,
    UUIDType,
)


# =============================================================================
# Schemas
# =============================================================================


PEOPLE_SCHEMA = Schema(
    NestedField(1, "id", LongType(), optional=False),
    NestedField(2, "name", StringType()),
    NestedField(3, "tags", ListType(4, StringType())),
)


def primitive_fields(first_id: int = 1) -> list[NestedField]:
    """One optional field per supported primitive type."""
    types = [
        ("boolean_col", BooleanType()),
        ("int_col", IntegerType()),
        ("long_col", LongType()),
        ("float_col", FloatType()),
        ("double_col", DoubleType()),
        ("decimal_9_2", DecimalType(9, 2)),
        ("decimal_18_6", DecimalType(18, 6)),
        ("decimal_38_10", DecimalType(38, 10)),
        ("date_col", DateType()),
        ("time_col", TimeType()),
        ("timestamp_ms", TimestampType("ms")),
        ("timestamptz_us", TimestampType("us", with_zone=True)),
        ("timestamp_ns", TimestampType("ns")),
        ("timestamptz_ns", TimestampType("ns", with_zone=True)),
        ("string_col", StringType()),
        ("binary_col", BinaryType()),
        ("fixed_col", FixedType(7)),
        ("uuid_col", UUIDType()),
    ]
    return [NestedField(first_id + i, name, t) for i, (name, t) in enumerate(types)]


PRIMITIVES_SCHEMA = Schema(*primitive_fields())

NESTED_SCHEMA = Schema(
    NestedField(1, "id", LongType(), optional=False),
    NestedField(
        2,
        "location",
        StructType(
            NestedField(3, "lat", DoubleType(), optional=False),
            NestedField(4, "lon", DoubleType()),
        ),
    ),
    NestedField(5, "scores", ListType(6, IntegerType(), element_optional=False)),
    NestedField(
        7,
        "matrix",
        ListType(8, ListType(9, LongType()), element_optional=True),
        optional=False,
    ),
    NestedField(10, "attributes", MapType(11, StringType(), 12, StringType())),
    NestedField(
        13,
        "contacts",
        ListType(
            14,
            StructType(
                NestedField(15, "kind", StringType(), optional=False),
                NestedField(16, "value", StringType()),
                NestedField(17, "primary", BooleanType()),
            ),
        ),
    ),
    NestedField(
        18,
        "nested_map",
        MapType(19, IntegerType(), 20, MapType(21, StringType(), 22, ListType(23, DateType()))),
    ),
    NestedField(24, "placeholder", UnknownType()),
)

# Every supported type, alone and inside every container.
SUPPORTED_SCHEMA = Schema(
    *primitive_fields(1),
    NestedField(100, "struct_col", StructType(*primitive_fields(101))),
    NestedField(200, "list_of_struct", ListType(201, StructType(*primitive_fields(202)))),
    NestedField(300, "long_map", MapType(301, LongType(), 302, StructType(*primitive_fields(303)))),
    NestedField(400, "string_list", ListType(401, StringType(), element_optional=False)),
    NestedField(402, "unknown_col", UnknownType()),
)


@pytest.fixture
def people_schema():
    return PEOPLE_SCHEMA


@pytest.fixture
def primitives_schema():
    return PRIMITIVES_SCHEMA


@pytest.fixture
def nested_schema():
    return NESTED_SCHEMA


@pytest.fixture
def supported_schema():
    return SUPPORTED_SCHEMA


# =============================================================================
# Blob helpers
# =============================================================================


def write_blob(schema: Schema, records, **options) -> bytes:
    """Write records into an in-memory blob and return its bytes."""
    buf = io.BytesIO()
    tessera.write(buf, schema, records, **options)
    return buf.getvalue()


def page_encodings(blob: bytes) -> dict[str, list[str]]:
    """Data page encodings per dotted column path."""
    meta = tessera.read_metadata(blob)
    return {
        ".".join(column["path"]): [p["encoding"] for p in column["pages"] if p["kind"] == "data"]
        for column in meta["columns"]
    }


PEOPLE_RECORDS = [
    {"id": 1, "name": "a", "tags": ["x", None]},
    {"id": 2, "name": None, "tags": []},
    {"id": 3, "name": "", "tags": None},
]


@pytest.fixture
def people_blob():
    """In-memory blob holding PEOPLE_RECORDS."""
    return write_blob(PEOPLE_SCHEMA, PEOPLE_RECORDS)


@pytest.fixture
def temp_blob_file():
    """Create a temporary blob file holding PEOPLE_RECORDS."""
    with tempfile.NamedTemporaryFile(suffix=".tsr", delete=False) as f:
        temp_path = f.name
    tessera.write(temp_path, PEOPLE_SCHEMA, PEOPLE_RECORDS)

    yield temp_path

    # Cleanup
    os.unlink(temp_path)


@pytest.fixture
def temp_empty_blob_file():
    """Create a temporary blob file with no records."""
    with tempfile.NamedTemporaryFile(suffix=".tsr", delete=False) as f:
        temp_path = f.name
    tessera.write(temp_path, PEOPLE_SCHEMA, [])

    yield temp_path

    os.unlink(temp_path)
