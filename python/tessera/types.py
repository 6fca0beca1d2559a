# SPDX-License-Identifier: Apache-2.0
# Copyright 2026 Nat Noordanus

"""
Logical types and schemas.

A schema is an ordered collection of ``NestedField``s. Every field carries a
stable integer id, a name, a nullability flag and a logical type. List
elements and map keys/values carry their own ids so that every node in the
schema tree is addressable by id.

Example usage:
    >>> from tessera.types import *
    >>> schema = Schema(
    ...     NestedField(1, "id", LongType(), optional=False),
    ...     NestedField(2, "name", StringType()),
    ...     NestedField(3, "tags", ListType(4, StringType())),
    ... )
    >>> str(schema.find_field(3).field_type)
    'list<string>'
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterator

from .exceptions import PrecisionLossError, SchemaError

MAX_DECIMAL_PRECISION = 38

TIMESTAMP_UNITS = ("ms", "us", "ns")

EPOCH = datetime(1970, 1, 1)
EPOCH_UTC = datetime(1970, 1, 1, tzinfo=timezone.utc)


class LogicalType:
    """Base class for all logical types."""

    is_primitive = True

    @property
    def is_nested(self) -> bool:
        return not self.is_primitive

    def to_dict(self) -> dict | str:
        return str(self)


@dataclass(frozen=True)
class BooleanType(LogicalType):
    def __str__(self) -> str:
        return "boolean"


@dataclass(frozen=True)
class IntegerType(LogicalType):
    def __str__(self) -> str:
        return "int"


@dataclass(frozen=True)
class LongType(LogicalType):
    def __str__(self) -> str:
        return "long"


@dataclass(frozen=True)
class FloatType(LogicalType):
    """32-bit IEEE float.

    Python floats are rounded to the nearest float32 when written, so ``0.1``
    reads back as ``0.10000000149011612``. Only magnitudes that would round to
    infinity are refused, with ``PrecisionLossError``.
    """

    def __str__(self) -> str:
        return "float"


@dataclass(frozen=True)
class DoubleType(LogicalType):
    def __str__(self) -> str:
        return "double"


@dataclass(frozen=True)
class DecimalType(LogicalType):
    """Fixed-precision decimal. ``scale`` digits follow the decimal point."""

    precision: int
    scale: int

    def __post_init__(self):
        if not 1 <= self.precision <= MAX_DECIMAL_PRECISION:
            raise SchemaError(
                f"decimal precision must be between 1 and {MAX_DECIMAL_PRECISION}, "
                f"got {self.precision}",
                "InvalidDecimal",
            )
        if not 0 <= self.scale <= self.precision:
            raise SchemaError(
                f"decimal scale must be between 0 and precision {self.precision}, "
                f"got {self.scale}",
                "InvalidDecimal",
            )

    def __str__(self) -> str:
        return f"decimal({self.precision}, {self.scale})"

    def to_dict(self) -> dict:
        return {"type": "decimal", "precision": self.precision, "scale": self.scale}


@dataclass(frozen=True)
class DateType(LogicalType):
    def __str__(self) -> str:
        return "date"


@dataclass(frozen=True)
class TimeType(LogicalType):
    """Time of day with microsecond precision, no zone."""

    def __str__(self) -> str:
        return "time"


@dataclass(frozen=True)
class TimestampType(LogicalType):
    """Timestamp in ``ms``, ``us`` or ``ns``, either UTC-adjusted or naive."""

    unit: str = "us"
    with_zone: bool = False

    def __post_init__(self):
        if self.unit not in TIMESTAMP_UNITS:
            raise SchemaError(
                f"timestamp unit must be one of {TIMESTAMP_UNITS}, got {self.unit!r}",
                "InvalidTimestamp",
            )

    def __str__(self) -> str:
        prefix = "timestamptz" if self.with_zone else "timestamp"
        return f"{prefix}_{self.unit}"

    def to_dict(self) -> dict:
        return {"type": "timestamp", "unit": self.unit, "with_zone": self.with_zone}


@dataclass(frozen=True)
class StringType(LogicalType):
    def __str__(self) -> str:
        return "string"


@dataclass(frozen=True)
class BinaryType(LogicalType):
    def __str__(self) -> str:
        return "binary"


@dataclass(frozen=True)
class FixedType(LogicalType):
    length: int

    def __post_init__(self):
        if self.length <= 0:
            raise SchemaError(
                f"fixed length must be positive, got {self.length}", "InvalidFixed"
            )

    def __str__(self) -> str:
        return f"fixed[{self.length}]"

    def to_dict(self) -> dict:
        return {"type": "fixed", "length": self.length}


@dataclass(frozen=True)
class UUIDType(LogicalType):
    def __str__(self) -> str:
        return "uuid"


@dataclass(frozen=True)
class UnknownType(LogicalType):
    """A type whose values are always null. Occupies no column."""

    def __str__(self) -> str:
        return "unknown"


@dataclass(frozen=True)
class NestedField:
    field_id: int
    name: str
    field_type: LogicalType
    optional: bool = True
    doc: str | None = None

    @property
    def required(self) -> bool:
        return not self.optional

    def __str__(self) -> str:
        nullability = "optional" if self.optional else "required"
        return f"{self.field_id}: {self.name}: {nullability} {self.field_type}"

    def to_dict(self) -> dict:
        result = {
            "id": self.field_id,
            "name": self.name,
            "required": self.required,
            "type": self.field_type.to_dict(),
        }
        if self.doc:
            result["doc"] = self.doc
        return result


@dataclass(frozen=True, init=False)
class StructType(LogicalType):
    fields: tuple[NestedField, ...]

    is_primitive = False

    def __init__(self, *fields: NestedField):
        object.__setattr__(self, "fields", tuple(fields))

    def field(self, name: str) -> NestedField | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def position(self, name: str) -> int:
        for pos, f in enumerate(self.fields):
            if f.name == name:
                return pos
        raise KeyError(name)

    def __len__(self) -> int:
        return len(self.fields)

    def __iter__(self) -> Iterator[NestedField]:
        return iter(self.fields)

    def __str__(self) -> str:
        return "struct<" + ", ".join(str(f) for f in self.fields) + ">"

    def to_dict(self) -> dict:
        return {"type": "struct", "fields": [f.to_dict() for f in self.fields]}


@dataclass(frozen=True)
class ListType(LogicalType):
    element_id: int
    element_type: LogicalType
    element_optional: bool = True

    is_primitive = False

    @property
    def element_field(self) -> NestedField:
        return NestedField(
            self.element_id, "element", self.element_type, self.element_optional
        )

    def __str__(self) -> str:
        return f"list<{self.element_type}>"

    def to_dict(self) -> dict:
        return {
            "type": "list",
            "element-id": self.element_id,
            "element": self.element_type.to_dict(),
            "element-required": not self.element_optional,
        }


@dataclass(frozen=True)
class MapType(LogicalType):
    key_id: int
    key_type: LogicalType
    value_id: int
    value_type: LogicalType
    value_optional: bool = True

    is_primitive = False

    @property
    def key_field(self) -> NestedField:
        return NestedField(self.key_id, "key", self.key_type, optional=False)

    @property
    def value_field(self) -> NestedField:
        return NestedField(self.value_id, "value", self.value_type, self.value_optional)

    def __str__(self) -> str:
        return f"map<{self.key_type}, {self.value_type}>"

    def to_dict(self) -> dict:
        return {
            "type": "map",
            "key-id": self.key_id,
            "key": self.key_type.to_dict(),
            "value-id": self.value_id,
            "value": self.value_type.to_dict(),
            "value-required": not self.value_optional,
        }


class Schema:
    """An ordered set of top-level fields with unique ids across the tree."""

    def __init__(self, *fields: NestedField, schema_id: int = 0):
        self._struct = StructType(*fields)
        self.schema_id = schema_id
        self._by_id = _index_by_id(self._struct)

    @property
    def columns(self) -> tuple[NestedField, ...]:
        return self._struct.fields

    def as_struct(self) -> StructType:
        return self._struct

    def find_field(self, field_id: int) -> NestedField:
        try:
            return self._by_id[field_id]
        except KeyError:
            raise SchemaError(f"no field with id {field_id}", "FieldNotFound") from None

    def find_field_by_name(self, name: str) -> NestedField:
        """Find a field by dotted name, e.g. ``"location.lat"``."""
        current: LogicalType = self._struct
        found = None
        for part in name.split("."):
            if not isinstance(current, StructType) or current.field(part) is None:
                raise SchemaError(f"no field named {name!r}", "FieldNotFound")
            found = current.field(part)
            current = found.field_type
        return found

    def __eq__(self, other) -> bool:
        if not isinstance(other, Schema):
            return NotImplemented
        return self._struct == other._struct

    def __hash__(self) -> int:
        return hash(self._struct)

    def __len__(self) -> int:
        return len(self._struct)

    def __iter__(self) -> Iterator[NestedField]:
        return iter(self._struct)

    def __str__(self) -> str:
        return "table {\n" + "\n".join(f"  {f}" for f in self.columns) + "\n}"

    def __repr__(self) -> str:
        return f"Schema({', '.join(repr(f) for f in self.columns)})"

    def to_dict(self) -> dict:
        return {
            "type": "struct",
            "schema-id": self.schema_id,
            "fields": [f.to_dict() for f in self.columns],
        }


def _index_by_id(struct: StructType) -> dict[int, NestedField]:
    index: dict[int, NestedField] = {}

    def add(f: NestedField):
        if f.field_id in index:
            raise SchemaError(
                f"duplicate field id {f.field_id}",
                "DuplicateFieldId",
                schema_context=f"{index[f.field_id].name} and {f.name}",
            )
        index[f.field_id] = f
        visit(f.field_type)

    def visit(t: LogicalType):
        if isinstance(t, StructType):
            for f in t.fields:
                add(f)
        elif isinstance(t, ListType):
            add(t.element_field)
        elif isinstance(t, MapType):
            add(t.key_field)
            add(t.value_field)

    visit(struct)
    return index


@dataclass(frozen=True, order=True)
class NanoTimestamp:
    """A timestamp with nanosecond precision.

    ``datetime`` stops at microseconds, so nanosecond columns read back as
    ``NanoTimestamp`` values carrying integer nanoseconds since the epoch.
    ``with_zone`` marks a UTC-adjusted instant as opposed to a naive local
    timestamp.
    """

    epoch_nanos: int
    with_zone: bool = False

    @classmethod
    def from_datetime(cls, value: datetime) -> NanoTimestamp:
        if value.tzinfo is not None:
            delta = value - EPOCH_UTC
            with_zone = True
        else:
            delta = value - EPOCH
            with_zone = False
        micros = (delta.days * 86_400 + delta.seconds) * 1_000_000 + delta.microseconds
        return cls(micros * 1_000, with_zone)

    def to_datetime(self) -> datetime:
        """Convert to ``datetime``; fails if sub-microsecond digits are set."""
        micros, nanos = divmod(self.epoch_nanos, 1_000)
        if nanos:
            raise PrecisionLossError(
                f"{self.epoch_nanos} ns has sub-microsecond digits", "Truncation"
            )
        base = EPOCH_UTC if self.with_zone else EPOCH
        try:
            return base + timedelta(microseconds=micros)
        except OverflowError:
            raise PrecisionLossError(
                f"{self.epoch_nanos} ns is outside the datetime range", "Overflow"
            ) from None

    def __str__(self) -> str:
        micros, nanos = divmod(self.epoch_nanos, 1_000)
        base = EPOCH_UTC if self.with_zone else EPOCH
        try:
            text = (base + timedelta(microseconds=micros)).isoformat()
        except OverflowError:
            return f"{self.epoch_nanos}ns since epoch"
        return f"{text}+{nanos:03d}ns" if nanos else text
