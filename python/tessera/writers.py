# SPDX-License-Identifier: Apache-2.0
# Copyright 2026 Nat Noordanus

"""
Value writer tree.

One writer per physical node, composed to match the schema's shape. Every
writer takes the repetition level at which its value starts and pushes
triples into the column chunk writers beneath it:

- ``OptionWriter`` turns ``None`` into a null at the parent's definition level
- ``StructWriter`` hands each field the same repetition level
- ``ListWriter`` / ``MapWriter`` use the parent's level for the first element
  and their own for continuations; an empty container is one null triple at
  the repeated node's definition level minus one
- leaf writers (``PrimitiveWriter``, ``DecimalWriter``, ``TemporalWriter``)
  validate the runtime value and convert it to its physical representation

Value errors carry the dotted field path; ``RowWriter`` adds the record index.
"""

from __future__ import annotations

import struct
import uuid
from collections.abc import Mapping, Sequence
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any

from .column import ColumnChunkWriter
from .exceptions import PrecisionLossError, SchemaMismatchError
from .physical import (
    BOOLEAN,
    DOUBLE,
    FIXED_LEN_BYTE_ARRAY,
    FLOAT,
    GROUP,
    INT32,
    INT64,
    OPTIONAL,
    PHYSICAL_TYPES,
    UNKNOWN,
    PhysicalNode,
    PhysicalSchema,
    logical_type_of,
)
from .rows import accessor_for
from .types import EPOCH, EPOCH_UTC, NanoTimestamp

INT32_MIN, INT32_MAX = -(2**31), 2**31 - 1
INT64_MIN, INT64_MAX = -(2**63), 2**63 - 1

EPOCH_ORDINAL = date(1970, 1, 1).toordinal()

_UNIT_NANOS = {"ms": 1_000_000, "us": 1_000, "ns": 1}

# Coarser units read back as datetime, so they are bounded by its range.
_DATETIME_MIN_NANOS = (datetime.min - EPOCH) // timedelta(microseconds=1) * 1_000
_DATETIME_MAX_NANOS = (datetime.max - EPOCH) // timedelta(microseconds=1) * 1_000


class ValueWriter:
    """Base writer: knows its leaf columns and how to null them out."""

    def __init__(self, field_path: str, columns: list[ColumnChunkWriter]):
        self.field_path = field_path
        self.columns = columns

    def write(self, repetition_level: int, value: Any):
        raise NotImplementedError

    def write_null(self, repetition_level: int, definition_level: int):
        for column in self.columns:
            column.write_null(repetition_level, definition_level)

    def mismatch(self, message: str, variant: str = "WrongType") -> SchemaMismatchError:
        return SchemaMismatchError(message, variant, field_path=self.field_path)

    def precision_loss(self, message: str, variant: str = "Overflow") -> PrecisionLossError:
        return PrecisionLossError(message, variant, field_path=self.field_path)

    def require(self, value: Any):
        if value is None:
            raise self.mismatch("required value is null", "NullValue")


# =============================================================================
# Leaves
# =============================================================================


class PrimitiveWriter(ValueWriter):
    """Fixed-width and variable-width primitives."""

    def __init__(self, field_path: str, column: ColumnChunkWriter, node: PhysicalNode):
        super().__init__(field_path, [column])
        self.column = column
        self.physical_type = node.physical_type
        self.type_length = node.type_length
        self.annotation = node.logical_type_name

    def write(self, repetition_level: int, value: Any):
        self.require(value)
        self.column.write(repetition_level, self.to_physical(value))

    def to_physical(self, value: Any):
        physical_type = self.physical_type
        if physical_type == BOOLEAN:
            if not isinstance(value, bool):
                raise self.mismatch(f"expected bool, got {type(value).__name__}")
            return value
        if physical_type in (INT32, INT64):
            if not isinstance(value, int) or isinstance(value, bool):
                raise self.mismatch(f"expected int, got {type(value).__name__}")
            low, high = (INT32_MIN, INT32_MAX) if physical_type == INT32 else (INT64_MIN, INT64_MAX)
            if not low <= value <= high:
                raise self.precision_loss(f"{value} out of range for {physical_type}")
            return value
        if physical_type in (FLOAT, DOUBLE):
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                raise self.mismatch(f"expected float, got {type(value).__name__}")
            try:
                value = float(value)
                # float32 rounds to nearest; only overflow to infinity is a loss.
                if physical_type == FLOAT:
                    struct.pack("<f", value)
            except OverflowError:
                raise self.precision_loss(f"{value!r} out of range for {physical_type}") from None
            return value
        if self.annotation == "string":
            if not isinstance(value, str):
                raise self.mismatch(f"expected str, got {type(value).__name__}")
            try:
                return value.encode("utf-8")
            except UnicodeEncodeError as e:
                raise self.mismatch(f"string is not valid UTF-8: {e.reason}", "InvalidString") from None
        if self.annotation == "uuid":
            if not isinstance(value, uuid.UUID):
                raise self.mismatch(f"expected UUID, got {type(value).__name__}")
            return value.bytes
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise self.mismatch(f"expected bytes, got {type(value).__name__}")
        value = bytes(value)
        if physical_type == FIXED_LEN_BYTE_ARRAY and len(value) != self.type_length:
            raise self.mismatch(
                f"expected {self.type_length} bytes, got {len(value)}", "WrongLength"
            )
        return value


class DecimalWriter(PrimitiveWriter):
    """Decimals as unscaled integers in INT32, INT64 or big-endian fixed bytes."""

    def __init__(self, field_path: str, column: ColumnChunkWriter, node: PhysicalNode):
        super().__init__(field_path, column, node)
        self.precision = node.logical["precision"]
        self.scale = node.logical["scale"]

    def to_physical(self, value: Any):
        unscaled = self.unscaled(value)
        if self.physical_type == FIXED_LEN_BYTE_ARRAY:
            return unscaled.to_bytes(self.type_length, "big", signed=True)
        return unscaled

    def unscaled(self, value: Any) -> int:
        if not isinstance(value, Decimal):
            raise self.mismatch(f"expected Decimal, got {type(value).__name__}")
        if not value.is_finite():
            raise self.mismatch(f"{value} is not a finite decimal", "NonFiniteDecimal")
        sign, digits, exponent = value.as_tuple()
        magnitude = int("".join(map(str, digits)) or "0")
        shift = exponent + self.scale
        if shift >= 0:
            magnitude *= 10**shift
        else:
            magnitude, remainder = divmod(magnitude, 10**-shift)
            if remainder:
                raise self.precision_loss(
                    f"{value} has more than {self.scale} fractional digits", "Truncation"
                )
        if magnitude >= 10**self.precision:
            raise self.precision_loss(
                f"{value} exceeds decimal({self.precision}, {self.scale})"
            )
        return -magnitude if sign else magnitude


class TemporalWriter(PrimitiveWriter):
    """Dates, times and timestamps as integers since the epoch or midnight."""

    def __init__(self, field_path: str, column: ColumnChunkWriter, node: PhysicalNode):
        super().__init__(field_path, column, node)
        logical = node.logical
        self.unit = logical.get("unit", "us")
        self.with_zone = logical.get("with_zone", False)

    def to_physical(self, value: Any):
        if self.annotation == "date":
            if not isinstance(value, date) or isinstance(value, datetime):
                raise self.mismatch(f"expected date, got {type(value).__name__}")
            return value.toordinal() - EPOCH_ORDINAL
        if self.annotation == "time":
            if not isinstance(value, time):
                raise self.mismatch(f"expected time, got {type(value).__name__}")
            if value.tzinfo is not None:
                raise self.mismatch("time values must not carry a timezone", "ZoneMismatch")
            return (
                (value.hour * 60 + value.minute) * 60 + value.second
            ) * 1_000_000 + value.microsecond
        return self._timestamp(value)

    def _timestamp(self, value: Any) -> int:
        if isinstance(value, NanoTimestamp):
            if value.with_zone != self.with_zone:
                raise self._zone_mismatch()
            nanos = value.epoch_nanos
        elif isinstance(value, datetime):
            if (value.tzinfo is not None) != self.with_zone:
                raise self._zone_mismatch()
            delta = value - (EPOCH_UTC if self.with_zone else EPOCH)
            micros = (delta.days * 86_400 + delta.seconds) * 1_000_000 + delta.microseconds
            nanos = micros * 1_000
        else:
            raise self.mismatch(f"expected datetime, got {type(value).__name__}")

        per_unit = _UNIT_NANOS[self.unit]
        stored, remainder = divmod(nanos, per_unit)
        if remainder:
            raise self.precision_loss(
                f"{value} is finer than timestamp_{self.unit}", "Truncation"
            )
        if not INT64_MIN <= stored <= INT64_MAX:
            raise self.precision_loss(f"{value} does not fit timestamp_{self.unit} in 64 bits")
        if self.unit != "ns" and not _DATETIME_MIN_NANOS <= nanos <= _DATETIME_MAX_NANOS:
            raise self.precision_loss(f"{value} is outside the datetime range")
        return stored

    def _zone_mismatch(self) -> SchemaMismatchError:
        if self.with_zone:
            return self.mismatch("expected a timezone-aware timestamp", "ZoneMismatch")
        return self.mismatch("expected a naive timestamp", "ZoneMismatch")


# =============================================================================
# Composites
# =============================================================================


class UnknownWriter(ValueWriter):
    """Fields of unknown type: always null and backed by no column."""

    def __init__(self, field_path: str):
        super().__init__(field_path, [])

    def write(self, repetition_level: int, value: Any):
        if value is not None:
            raise self.mismatch("unknown-typed fields only accept null", "NonNullUnknown")


class OptionWriter(ValueWriter):
    def __init__(self, definition_level: int, writer: ValueWriter):
        super().__init__(writer.field_path, writer.columns)
        self.definition_level = definition_level
        self.writer = writer

    def write(self, repetition_level: int, value: Any):
        if value is None:
            self.write_null(repetition_level, self.definition_level - 1)
        else:
            self.writer.write(repetition_level, value)


class StructWriter(ValueWriter):
    def __init__(self, field_path: str, node: PhysicalNode, writers: list[ValueWriter]):
        super().__init__(field_path, [c for w in writers for c in w.columns])
        self.struct_type = logical_type_of(node)
        self.writers = writers

    def write(self, repetition_level: int, value: Any):
        self.require(value)
        row = accessor_for(self.struct_type, value, self.field_path or None)
        for pos, writer in enumerate(self.writers):
            writer.write(repetition_level, row.get(pos))


class ListWriter(ValueWriter):
    def __init__(self, field_path: str, repeated: PhysicalNode, element: ValueWriter):
        super().__init__(field_path, element.columns)
        self.definition_level = repeated.definition_level
        self.repetition_level = repeated.repetition_level
        self.element = element

    def write(self, repetition_level: int, value: Any):
        self.require(value)
        if not isinstance(value, Sequence) or isinstance(value, (str, bytes, bytearray)):
            raise self.mismatch(f"expected a list, got {type(value).__name__}")
        if not value:
            self.write_null(repetition_level, self.definition_level - 1)
            return
        level = repetition_level
        for element in value:
            self.element.write(level, element)
            level = self.repetition_level


class MapWriter(ValueWriter):
    def __init__(
        self,
        field_path: str,
        repeated: PhysicalNode,
        key: PrimitiveWriter,
        value: ValueWriter,
    ):
        super().__init__(field_path, key.columns + value.columns)
        self.definition_level = repeated.definition_level
        self.repetition_level = repeated.repetition_level
        self.key = key
        self.value = value

    def entries(self, value: Any) -> list[tuple[Any, Any]]:
        if isinstance(value, Mapping):
            return list(value.items())
        if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
            entries = []
            for entry in value:
                if (
                    not isinstance(entry, Sequence)
                    or isinstance(entry, (str, bytes, bytearray))
                    or len(entry) != 2
                ):
                    raise self.mismatch("map entries must be (key, value) pairs")
                entries.append((entry[0], entry[1]))
            return entries
        raise self.mismatch(f"expected a map, got {type(value).__name__}")

    def write(self, repetition_level: int, value: Any):
        self.require(value)
        entries = self.entries(value)
        if not entries:
            self.write_null(repetition_level, self.definition_level - 1)
            return
        seen = set()
        for k, _ in entries:
            if k is None:
                raise self.mismatch("map key is null", "NullKey")
            physical = self.key.to_physical(k)
            if isinstance(physical, float) and physical == 0.0:
                # 0.0 and -0.0 are one key once read back into a dict
                physical = 0.0
            if physical in seen:
                raise self.mismatch(f"duplicate map key {k!r}", "DuplicateKey")
            seen.add(physical)
        level = repetition_level
        for k, v in entries:
            self.key.write(level, k)
            self.value.write(level, v)
            level = self.repetition_level


class RowWriter(StructWriter):
    """Tree root: writes one row and marks the record boundary on every column."""

    def write_row(self, row: Any, record_index: int):
        try:
            self.write(0, row)
        except (SchemaMismatchError, PrecisionLossError) as e:
            if e.record_index is None:
                e.record_index = record_index
            raise
        for column in self.columns:
            column.end_record()


# =============================================================================
# Tree construction
# =============================================================================


def build_writer(physical_schema: PhysicalSchema, columns: list[ColumnChunkWriter]) -> RowWriter:
    """Compose the writer tree for ``physical_schema`` over its column writers."""
    by_path = {column.descriptor.path: column for column in columns}
    root = physical_schema.root
    writers = [_build(child, by_path, child.name) for child in root.children]
    return RowWriter("", root, writers)


def _build(node: PhysicalNode, columns: dict, field_path: str) -> ValueWriter:
    if node.kind == UNKNOWN:
        return UnknownWriter(field_path)
    writer = _build_required(node, columns, field_path)
    if node.repetition == OPTIONAL:
        return OptionWriter(node.definition_level, writer)
    return writer


def _build_required(node: PhysicalNode, columns: dict, field_path: str) -> ValueWriter:
    if node.kind == GROUP:
        annotation = node.logical_type_name
        if annotation == "list":
            repeated = node.children[0]
            element = _build(repeated.children[0], columns, f"{field_path}.element")
            return ListWriter(field_path, repeated, element)
        if annotation == "map":
            repeated = node.children[0]
            key_node, value_node = repeated.children
            key = _build_required(key_node, columns, f"{field_path}.key")
            value = _build(value_node, columns, f"{field_path}.value")
            return MapWriter(field_path, repeated, key, value)
        children = [
            _build(child, columns, f"{field_path}.{child.name}") for child in node.children
        ]
        return StructWriter(field_path, node, children)
    return _leaf_writer(node, columns[node.path], field_path)


def _leaf_writer(node: PhysicalNode, column: ColumnChunkWriter, field_path: str) -> PrimitiveWriter:
    annotation = node.logical_type_name
    if annotation == "decimal":
        return DecimalWriter(field_path, column, node)
    if annotation in ("date", "time", "timestamp"):
        return TemporalWriter(field_path, column, node)
    if node.physical_type not in PHYSICAL_TYPES:
        raise ValueError(f"no writer for physical node {node.path}")
    return PrimitiveWriter(field_path, column, node)
