# SPDX-License-Identifier: Apache-2.0
# Copyright 2026 Nat Noordanus

"""
Avro bridge.

Converts Avro schemas (validated with ``fastavro.parse_schema``) into logical
schemas and Avro data files into records, so existing Avro data can be
round-tripped through the columnar codec.

Conversion rules:

- ``["null", T]`` unions become optional fields of type T; a bare ``"null"``
  becomes an optional field of unknown type
- ``array`` and ``map`` become list and map types; map keys are strings
- ``decimal``, ``date``, ``time-millis``/``time-micros``, ``uuid`` and the
  ``timestamp-*``/``local-timestamp-*`` logical types map to their logical
  counterparts; ``timestamp-*`` is UTC-adjusted, ``local-timestamp-*`` is not
- field ids come from ``field-id`` (and ``element-id``, ``key-id``,
  ``value-id``) when present, otherwise they are assigned depth-first after
  the largest explicit id

Unions of several non-null types, enums and recursive records are rejected
with ``UnsupportedTypeError``.

Example usage:
    >>> schema = schema_from_avro({
    ...     "type": "record",
    ...     "name": "Person",
    ...     "fields": [
    ...         {"name": "id", "type": "long"},
    ...         {"name": "tags", "type": {"type": "array", "items": "string"}},
    ...     ],
    ... })
    >>> print(schema)
    table {
      1: id: required long
      2: tags: required list<string>
    }
"""

from __future__ import annotations

import itertools
import json
import logging
from datetime import datetime
from os import PathLike
from typing import Any, Iterator

import fastavro
from fastavro.schema import SchemaParseException
from fastavro.schema import UnknownType as UnknownAvroType

from .exceptions import SchemaError, UnsupportedTypeError
from .rows import Record
from .types import (
    BinaryType,
    BooleanType,
    DateType,
    DecimalType,
    DoubleType,
    FixedType,
    FloatType,
    IntegerType,
    ListType,
    LogicalType,
    LongType,
    MapType,
    NanoTimestamp,
    NestedField,
    Schema,
    StringType,
    StructType,
    TimestampType,
    TimeType,
    UnknownType,
    UUIDType,
)

logger = logging.getLogger(__name__)

_PRIMITIVES = {
    "boolean": BooleanType,
    "int": IntegerType,
    "long": LongType,
    "float": FloatType,
    "double": DoubleType,
    "bytes": BinaryType,
    "string": StringType,
}

_TIMESTAMPS = {
    "timestamp-millis": TimestampType("ms", True),
    "timestamp-micros": TimestampType("us", True),
    "timestamp-nanos": TimestampType("ns", True),
    "local-timestamp-millis": TimestampType("ms", False),
    "local-timestamp-micros": TimestampType("us", False),
    "local-timestamp-nanos": TimestampType("ns", False),
}

_ID_KEYS = ("field-id", "element-id", "key-id", "value-id")


class _Converter:
    def __init__(self, first_id: int):
        self.ids = itertools.count(first_id)
        self.named: dict[str, dict] = {}
        self.visiting: set[str] = set()

    def next_id(self, explicit: Any) -> int:
        return int(explicit) if explicit is not None else next(self.ids)

    def record(self, avro: dict, context: str) -> StructType:
        name = avro["name"]
        if name in self.visiting:
            raise UnsupportedTypeError(
                f"recursive record {name!r} is not supported", schema_context=context
            )
        self.named[name] = avro
        self.visiting.add(name)
        fields = []
        for f in avro["fields"]:
            field_id = self.next_id(f.get("field-id"))
            field_type, optional = self.field_type(f["type"], f"{context}.{f['name']}")
            fields.append(NestedField(field_id, f["name"], field_type, optional, f.get("doc")))
        self.visiting.discard(name)
        return StructType(*fields)

    def field_type(self, avro: Any, context: str) -> tuple[LogicalType, bool]:
        """Logical type and nullability of an Avro field or element type."""
        if isinstance(avro, list):
            members = [m for m in avro if m != "null"]
            if not members:
                return UnknownType(), True
            if len(members) > 1:
                raise UnsupportedTypeError(
                    f"union of {len(members)} non-null types is not supported",
                    schema_context=context,
                )
            return self.convert(members[0], context), len(members) < len(avro)
        if avro == "null":
            return UnknownType(), True
        return self.convert(avro, context), False

    def convert(self, avro: Any, context: str) -> LogicalType:
        if isinstance(avro, str):
            if avro in _PRIMITIVES:
                return _PRIMITIVES[avro]()
            if avro in self.named:
                return self.convert(self.named[avro], context)
            raise UnsupportedTypeError(f"unknown Avro type {avro!r}", schema_context=context)

        avro_type = avro["type"]
        logical = avro.get("logicalType")
        if logical is not None:
            converted = _logical(avro, logical)
            if converted is not None:
                if avro_type == "fixed":
                    self.named[avro["name"]] = avro
                return converted

        if avro_type == "record":
            return self.record(avro, context)
        if avro_type == "array":
            element_id = self.next_id(avro.get("element-id"))
            element, optional = self.field_type(avro["items"], f"{context}.element")
            return ListType(element_id, element, optional)
        if avro_type == "map":
            key_id = self.next_id(avro.get("key-id"))
            value_id = self.next_id(avro.get("value-id"))
            value, optional = self.field_type(avro["values"], f"{context}.value")
            return MapType(key_id, StringType(), value_id, value, optional)
        if avro_type == "fixed":
            self.named[avro["name"]] = avro
            return FixedType(avro["size"])
        if avro_type == "enum":
            raise UnsupportedTypeError("Avro enums are not supported", schema_context=context)
        if avro_type in _PRIMITIVES:
            return _PRIMITIVES[avro_type]()
        raise UnsupportedTypeError(f"unknown Avro type {avro_type!r}", schema_context=context)


def _logical(avro: dict, logical: str) -> LogicalType | None:
    avro_type = avro["type"]
    if logical == "decimal" and avro_type in ("bytes", "fixed"):
        return DecimalType(avro["precision"], avro.get("scale", 0))
    if logical == "uuid" and avro_type == "string":
        return UUIDType()
    if logical == "date" and avro_type == "int":
        return DateType()
    if logical in ("time-millis", "time-micros"):
        return TimeType()
    if logical in _TIMESTAMPS and avro_type == "long":
        return _TIMESTAMPS[logical]
    return None


def _max_explicit_id(avro: Any) -> int:
    if isinstance(avro, list):
        return max((_max_explicit_id(m) for m in avro), default=0)
    if not isinstance(avro, dict):
        return 0
    found = max((int(avro[k]) for k in _ID_KEYS if k in avro), default=0)
    for key in ("fields", "items", "values", "type"):
        if key in avro:
            found = max(found, _max_explicit_id(avro[key]))
    return found


def schema_from_avro(avro_schema: dict | str) -> Schema:
    """Convert an Avro record schema into a logical schema.

    Parameters
    ----------
    avro_schema : dict | str
        Avro schema as a dict or a JSON string.

    Raises
    ------
    SchemaError
        If the schema is not valid Avro or not a record.
    UnsupportedTypeError
        If the schema uses an Avro construct with no logical counterpart.
    """
    if isinstance(avro_schema, str):
        avro_schema = json.loads(avro_schema)
    try:
        parsed = fastavro.parse_schema(avro_schema)
    except (SchemaParseException, UnknownAvroType) as e:
        raise SchemaError(f"invalid Avro schema: {e}", "InvalidAvroSchema") from None
    if not isinstance(parsed, dict) or parsed.get("type") != "record":
        raise SchemaError("top-level Avro schema must be a record", "InvalidAvroSchema")

    converter = _Converter(_max_explicit_id(parsed) + 1)
    struct_type = converter.record(parsed, parsed["name"])
    schema = Schema(*struct_type.fields)
    logger.debug("Converted Avro record %s with %d fields", parsed["name"], len(schema))
    return schema


def _from_avro_value(t: LogicalType, value: Any) -> Any:
    if value is None:
        return None
    if isinstance(t, StructType):
        return Record(t, [_from_avro_value(f.field_type, value.get(f.name)) for f in t.fields])
    if isinstance(t, ListType):
        return [_from_avro_value(t.element_type, v) for v in value]
    if isinstance(t, MapType):
        return {k: _from_avro_value(t.value_type, v) for k, v in value.items()}
    if isinstance(t, TimestampType) and t.unit == "ns":
        if isinstance(value, datetime):
            return NanoTimestamp.from_datetime(value)
        return NanoTimestamp(value, t.with_zone)
    return value


def records_from_avro(path: str | PathLike[str], schema: Schema | None = None) -> Iterator[Record]:
    """Read an Avro data file as records.

    Parameters
    ----------
    path : str | PathLike[str]
        Avro object container file.
    schema : Schema, optional
        Logical schema of the records. Derived from the file's writer schema
        when omitted.

    Examples
    --------
    >>> schema = tessera.avro.schema_from_avro(avro_schema)
    >>> tessera.write("out.tsr", schema, records_from_avro("in.avro", schema))
    """
    with open(path, "rb") as f:
        reader = fastavro.reader(f)
        if schema is None:
            schema = schema_from_avro(reader.writer_schema)
        struct_type = schema.as_struct()
        for row in reader:
            yield _from_avro_value(struct_type, row)
