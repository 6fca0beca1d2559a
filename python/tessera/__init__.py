# SPDX-License-Identifier: Apache-2.0
# Copyright 2026 Nat Noordanus

"""
Tessera - Columnar record codec with nested, nullable and repeated types.

This module provides a bidirectional mapping between logical records and a
columnar, page-based binary layout:

1. **write()** / **Writer** - Encode records into a blob
   - Logical schema mapped to definition/repetition-level columns
   - Dictionary encoding per column with automatic fallback to plain
   - zstd (default) or gzip page compression

2. **open()** - Iterate records back from a blob
   - Driven only by the physical schema embedded in the blob
   - Lazy, single-pass, yields exactly the records written

3. **testing** and **random_data** - Round-trip validation
   - ``write_and_validate`` asserts logical equality record by record
   - Seeded generators for random, dictionary-encodable and fallback data

Example usage:
    >>> import io
    >>> import tessera
    >>> from tessera.types import *
    >>>
    >>> schema = Schema(
    ...     NestedField(1, "id", LongType(), optional=False),
    ...     NestedField(2, "name", StringType()),
    ...     NestedField(3, "tags", ListType(4, StringType())),
    ... )
    >>> buf = io.BytesIO()
    >>> tessera.write(buf, schema, [
    ...     {"id": 1, "name": "a", "tags": ["x", None]},
    ...     {"id": 2, "name": None, "tags": []},
    ... ])
    2
    >>> with tessera.open(buf.getvalue()) as reader:
    ...     for record in reader:
    ...         print(record)
    Record(id=1, name='a', tags=['x', None])
    Record(id=2, name=None, tags=[])
"""

from __future__ import annotations

from .exceptions import (
    CodecError,
    ConfigurationError,
    CorruptDataError,
    PrecisionLossError,
    SchemaError,
    SchemaMismatchError,
    TesseraError,
    UnsupportedTypeError,
)
from .file import (
    RecordReader,
    Writer,
    open,
    read_metadata,
    read_physical_schema,
    read_records,
    write,
)
from .options import WriteOptions
from .physical import PhysicalSchema, map_schema
from .rows import DictBuilder, Record, RecordBuilder
from .types import NanoTimestamp, Schema

__version__ = "0.1.0"

__all__ = [
    # Functions
    "write",
    "open",
    "read_records",
    "read_metadata",
    "read_physical_schema",
    "map_schema",
    # Classes
    "Writer",
    "RecordReader",
    "WriteOptions",
    "Schema",
    "PhysicalSchema",
    "Record",
    "RecordBuilder",
    "DictBuilder",
    "NanoTimestamp",
    # Exception types
    "TesseraError",
    "SchemaError",
    "UnsupportedTypeError",
    "SchemaMismatchError",
    "PrecisionLossError",
    "CorruptDataError",
    "CodecError",
    "ConfigurationError",
]
