# SPDX-License-Identifier: Apache-2.0
# Copyright 2026 Nat Noordanus

"""
Value reader tree.

Mirror image of the writer tree, built from the persisted physical schema
alone. Each reader peeks at the definition and repetition levels of the first
leaf column beneath it to decide what the next value is:

- below the optional node's level: the value is null, and one null triple is
  consumed from every leaf column beneath the node
- at a repeated node's level minus one: the container is empty
- repetition level at or above a repeated node's level: another element of
  the same container follows

Rows are assembled through a ``RowBuilder``; lists come back as ``list`` and
maps as ``dict``.
"""

from __future__ import annotations

import uuid
from datetime import time, timedelta
from decimal import Decimal
from typing import Any

from .column import ColumnIterator
from .exceptions import CorruptDataError
from .physical import (
    FIXED_LEN_BYTE_ARRAY,
    GROUP,
    OPTIONAL,
    UNKNOWN,
    PhysicalNode,
    PhysicalSchema,
    logical_type_of,
)
from .rows import BuilderFactory, RecordBuilder
from .types import EPOCH, EPOCH_UTC, NanoTimestamp

_EPOCH_DATE = EPOCH.date()


class ValueReader:
    def __init__(self, columns: list[ColumnIterator]):
        self.columns = columns

    @property
    def first_column(self) -> ColumnIterator:
        return self.columns[0]

    def read(self) -> Any:
        raise NotImplementedError

    def skip_null(self):
        for column in self.columns:
            column.next_null()

    def check_no_continuation(self, level: int):
        """Refuse a triple that continues a container that came back null or empty."""
        for column in self.columns:
            if column.has_next and column.current_repetition_level >= level:
                raise CorruptDataError(
                    f"continuation at repetition level {column.current_repetition_level} "
                    "after a null or empty value",
                    "OrphanContinuation",
                    column=column.path,
                )


# =============================================================================
# Leaves
# =============================================================================


class PrimitiveReader(ValueReader):
    """Reads one value and converts it from its physical representation."""

    def __init__(self, column: ColumnIterator, node: PhysicalNode):
        super().__init__([column])
        self.column = column
        self.annotation = node.logical_type_name

    def read(self) -> Any:
        value = self.column.next_value()
        try:
            return self.to_logical(value)
        except (ValueError, OverflowError) as e:
            raise CorruptDataError(
                f"cannot convert stored value: {e}",
                "InvalidValue",
                column=self.column.path,
            ) from None

    def to_logical(self, value: Any) -> Any:
        if self.annotation == "string":
            return value.decode("utf-8")
        if self.annotation == "uuid":
            return uuid.UUID(bytes=value)
        return value


class DecimalReader(PrimitiveReader):
    def __init__(self, column: ColumnIterator, node: PhysicalNode):
        super().__init__(column, node)
        self.scale = node.logical["scale"]
        self.fixed = node.physical_type == FIXED_LEN_BYTE_ARRAY

    def to_logical(self, value: Any) -> Decimal:
        unscaled = int.from_bytes(value, "big", signed=True) if self.fixed else value
        # Built from digits so no context precision applies.
        digits = tuple(int(d) for d in str(abs(unscaled)))
        return Decimal((1 if unscaled < 0 else 0, digits, -self.scale))


class TemporalReader(PrimitiveReader):
    def __init__(self, column: ColumnIterator, node: PhysicalNode):
        super().__init__(column, node)
        self.unit = node.logical.get("unit", "us")
        self.with_zone = node.logical.get("with_zone", False)

    def to_logical(self, value: int) -> Any:
        if self.annotation == "date":
            return _EPOCH_DATE + timedelta(days=value)
        if self.annotation == "time":
            seconds, micros = divmod(value, 1_000_000)
            minutes, seconds = divmod(seconds, 60)
            hours, minutes = divmod(minutes, 60)
            return time(hours, minutes, seconds, micros)
        if self.unit == "ns":
            return NanoTimestamp(value, self.with_zone)
        base = EPOCH_UTC if self.with_zone else EPOCH
        if self.unit == "ms":
            return base + timedelta(milliseconds=value)
        return base + timedelta(microseconds=value)


# =============================================================================
# Composites
# =============================================================================


class UnknownReader(ValueReader):
    """Unknown-typed fields have no column and always read as null."""

    def __init__(self):
        super().__init__([])

    def read(self) -> None:
        return None


class OptionReader(ValueReader):
    def __init__(self, node: PhysicalNode, reader: ValueReader):
        super().__init__(reader.columns)
        self.definition_level = node.definition_level
        self.repetition_level = node.repetition_level
        self.reader = reader

    def read(self) -> Any:
        if self.first_column.current_definition_level >= self.definition_level:
            return self.reader.read()
        self.skip_null()
        # Repeated nodes beneath a null have no elements to continue.
        self.check_no_continuation(self.repetition_level + 1)
        return None


class StructReader(ValueReader):
    def __init__(
        self,
        node: PhysicalNode,
        readers: list[ValueReader],
        builder_factory: BuilderFactory,
    ):
        super().__init__([c for r in readers for c in r.columns])
        self.readers = readers
        self.builder = builder_factory(logical_type_of(node))

    def read(self) -> Any:
        builder = self.builder
        for pos, reader in enumerate(self.readers):
            builder.set(pos, reader.read())
        return builder.build()


class RepeatedReader(ValueReader):
    """Shared loop for lists and maps."""

    def __init__(self, repeated: PhysicalNode, columns: list[ColumnIterator]):
        super().__init__(columns)
        self.definition_level = repeated.definition_level
        self.repetition_level = repeated.repetition_level

    def read(self) -> Any:
        column = self.first_column
        if column.current_definition_level < self.definition_level:
            self.skip_null()
            self.check_no_continuation(self.repetition_level)
            return self.empty()
        container = self.empty()
        while True:
            self.read_element(container)
            if not column.has_next or column.current_repetition_level < self.repetition_level:
                return container

    def empty(self) -> Any:
        raise NotImplementedError

    def read_element(self, container: Any):
        raise NotImplementedError


class ListReader(RepeatedReader):
    def __init__(self, repeated: PhysicalNode, element: ValueReader):
        super().__init__(repeated, element.columns)
        self.element = element

    def empty(self) -> list:
        return []

    def read_element(self, container: list):
        container.append(self.element.read())


class MapReader(RepeatedReader):
    def __init__(self, repeated: PhysicalNode, key: ValueReader, value: ValueReader):
        super().__init__(repeated, key.columns + value.columns)
        self.key = key
        self.value = value

    def empty(self) -> dict:
        return {}

    def read_element(self, container: dict):
        key = self.key.read()
        if key in container:
            raise CorruptDataError(
                f"duplicate map key {key!r}", "DuplicateKey", column=self.first_column.path
            )
        container[key] = self.value.read()


class RowReader(StructReader):
    """Tree root: reads whole records and checks record boundaries."""

    def read_row(self, record_index: int) -> Any:
        for column in self.columns:
            if column.has_next and column.current_repetition_level != 0:
                raise CorruptDataError(
                    f"record starts at repetition level {column.current_repetition_level}",
                    "OrphanContinuation",
                    column=column.path,
                    record_index=record_index,
                )
        try:
            return self.read()
        except CorruptDataError as e:
            if e.record_index is None:
                e.record_index = record_index
            raise

    def check_exhausted(self):
        for column in self.columns:
            if column.has_next:
                raise CorruptDataError(
                    "column has values past the last record",
                    "TrailingValues",
                    column=column.path,
                )


# =============================================================================
# Tree construction
# =============================================================================


def build_reader(
    physical_schema: PhysicalSchema,
    columns: list[ColumnIterator],
    builder_factory: BuilderFactory = RecordBuilder,
) -> RowReader:
    """Compose the reader tree for ``physical_schema`` over its column iterators."""
    by_path = {column.descriptor.path: column for column in columns}
    root = physical_schema.root
    readers = [_build(child, by_path, builder_factory) for child in root.children]
    return RowReader(root, readers, builder_factory)


def _build(node: PhysicalNode, columns: dict, builder_factory: BuilderFactory) -> ValueReader:
    if node.kind == UNKNOWN:
        return UnknownReader()
    reader = _build_required(node, columns, builder_factory)
    if node.repetition == OPTIONAL:
        return OptionReader(node, reader)
    return reader


def _build_required(node: PhysicalNode, columns: dict, builder_factory: BuilderFactory) -> ValueReader:
    if node.kind == GROUP:
        annotation = node.logical_type_name
        if annotation == "list":
            repeated = node.children[0]
            return ListReader(repeated, _build(repeated.children[0], columns, builder_factory))
        if annotation == "map":
            repeated = node.children[0]
            key_node, value_node = repeated.children
            return MapReader(
                repeated,
                _build_required(key_node, columns, builder_factory),
                _build(value_node, columns, builder_factory),
            )
        children = [_build(child, columns, builder_factory) for child in node.children]
        return StructReader(node, children, builder_factory)

    column = columns[node.path]
    annotation = node.logical_type_name
    if annotation == "decimal":
        return DecimalReader(column, node)
    if annotation in ("date", "time", "timestamp"):
        return TemporalReader(column, node)
    return PrimitiveReader(column, node)
