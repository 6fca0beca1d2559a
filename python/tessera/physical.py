# SPDX-License-Identifier: Apache-2.0
# Copyright 2026 Nat Noordanus

"""
Physical column layout derived from a logical schema.

``map_schema`` converts a logical ``Schema`` into a ``PhysicalSchema``: a tree
of group and primitive nodes, each carrying a repetition (required, optional
or repeated) and the definition/repetition levels implied by its ancestors.
The primitive leaves become the file's columns.

Level assignment is a depth-first traversal:

- an ``optional`` node adds one definition level
- a ``repeated`` node adds one definition level and one repetition level

Lists and maps use the three-level layout, so a null list (definition level
below the list node) is distinguishable from an empty one (definition level
of the list node itself):

    optional group tags (LIST) {
      repeated group list {
        optional binary element (STRING);
      }
    }

The physical schema is what gets persisted in the footer; readers are built
from it alone.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterator

from .exceptions import UnsupportedTypeError
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

REQUIRED = "required"
OPTIONAL = "optional"
REPEATED = "repeated"
REPETITIONS = (REQUIRED, OPTIONAL, REPEATED)

PRIMITIVE = "primitive"
GROUP = "group"
UNKNOWN = "unknown"

BOOLEAN = "BOOLEAN"
INT32 = "INT32"
INT64 = "INT64"
FLOAT = "FLOAT"
DOUBLE = "DOUBLE"
BYTE_ARRAY = "BYTE_ARRAY"
FIXED_LEN_BYTE_ARRAY = "FIXED_LEN_BYTE_ARRAY"
PHYSICAL_TYPES = (BOOLEAN, INT32, INT64, FLOAT, DOUBLE, BYTE_ARRAY, FIXED_LEN_BYTE_ARRAY)

# Largest decimal precision held by each fixed-width integer store.
MAX_INT32_DECIMAL_PRECISION = 9
MAX_INT64_DECIMAL_PRECISION = 18


def decimal_required_bytes(precision: int) -> int:
    """Smallest two's-complement byte width holding every ``precision``-digit value."""
    largest = 10**precision - 1
    length = 1
    while (1 << (8 * length - 1)) - 1 < largest:
        length += 1
    return length


@dataclass
class PhysicalNode:
    """One node of the physical schema tree."""

    name: str
    repetition: str
    kind: str
    field_id: int | None = None
    physical_type: str | None = None
    type_length: int | None = None
    logical: dict | None = None
    children: list[PhysicalNode] = field(default_factory=list)
    definition_level: int = 0
    repetition_level: int = 0
    path: tuple[str, ...] = ()

    @property
    def is_primitive(self) -> bool:
        return self.kind == PRIMITIVE

    @property
    def logical_type_name(self) -> str | None:
        return self.logical["type"] if self.logical else None

    def leaves(self) -> Iterator[PhysicalNode]:
        if self.kind == PRIMITIVE:
            yield self
        for child in self.children:
            yield from child.leaves()

    def to_dict(self) -> dict:
        result: dict = {"name": self.name, "repetition": self.repetition, "kind": self.kind}
        if self.field_id is not None:
            result["field_id"] = self.field_id
        if self.physical_type is not None:
            result["physical_type"] = self.physical_type
        if self.type_length is not None:
            result["type_length"] = self.type_length
        if self.logical is not None:
            result["logical"] = dict(self.logical)
        if self.children:
            result["children"] = [child.to_dict() for child in self.children]
        return result

    @classmethod
    def from_dict(cls, data: dict) -> PhysicalNode:
        return cls(
            name=data["name"],
            repetition=data["repetition"],
            kind=data["kind"],
            field_id=data.get("field_id"),
            physical_type=data.get("physical_type"),
            type_length=data.get("type_length"),
            logical=data.get("logical"),
            children=[cls.from_dict(child) for child in data.get("children", [])],
        )

    def __str__(self) -> str:
        return _render(self, 0)


@dataclass(frozen=True)
class ColumnDescriptor:
    """A leaf column: its path, level bounds and storage type."""

    path: tuple[str, ...]
    max_definition_level: int
    max_repetition_level: int
    physical_type: str
    type_length: int | None
    logical: dict | None
    field_id: int | None

    @property
    def dotted_path(self) -> str:
        return ".".join(self.path)


class PhysicalSchema:
    """The persisted, storage-oriented schema.

    Levels and paths are recomputed from the tree structure on construction,
    so two physical schemas built from the same tree are identical regardless
    of where the tree came from.
    """

    def __init__(self, root: PhysicalNode):
        self.root = root
        _assign_levels(root, 0, 0, ())
        self.columns: list[ColumnDescriptor] = [
            ColumnDescriptor(
                path=leaf.path,
                max_definition_level=leaf.definition_level,
                max_repetition_level=leaf.repetition_level,
                physical_type=leaf.physical_type,
                type_length=leaf.type_length,
                logical=leaf.logical,
                field_id=leaf.field_id,
            )
            for leaf in root.leaves()
        ]
        self._column_index = {column.path: i for i, column in enumerate(self.columns)}

    def column_index(self, path: tuple[str, ...]) -> int:
        return self._column_index[path]

    def to_dict(self) -> dict:
        return self.root.to_dict()

    @classmethod
    def from_dict(cls, data: dict) -> PhysicalSchema:
        return cls(PhysicalNode.from_dict(data))

    def to_logical(self) -> Schema:
        """Reconstruct the logical schema described by this physical schema."""
        return Schema(*(logical_field_of(child) for child in self.root.children))

    def __eq__(self, other) -> bool:
        if not isinstance(other, PhysicalSchema):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __hash__(self) -> int:
        return hash(str(self))

    def __str__(self) -> str:
        return _render(self.root, 0)

    def __repr__(self) -> str:
        return f"PhysicalSchema(columns={[c.dotted_path for c in self.columns]})"


def map_schema(schema: Schema) -> PhysicalSchema:
    """Map a logical schema to its physical column layout.

    Raises
    ------
    UnsupportedTypeError
        If any type in the schema has no physical mapping.
    """
    root = PhysicalNode(
        "schema",
        REQUIRED,
        GROUP,
        children=[_map_field(f, f.name) for f in schema.columns],
    )
    _require_leaves(root, "schema")
    physical = PhysicalSchema(root)
    logger.debug(
        "Mapped schema with %d fields to %d columns",
        len(schema),
        len(physical.columns),
    )
    return physical


def _map_field(f: NestedField, context: str) -> PhysicalNode:
    repetition = OPTIONAL if f.optional else REQUIRED
    return _map_type(f.name, f.field_id, f.field_type, repetition, context)


def _map_type(
    name: str, field_id: int, t: LogicalType, repetition: str, context: str
) -> PhysicalNode:
    if isinstance(t, StructType):
        node = PhysicalNode(
            name,
            repetition,
            GROUP,
            field_id=field_id,
            children=[_map_field(f, f"{context}.{f.name}") for f in t.fields],
        )
        _require_leaves(node, context)
        return node

    if isinstance(t, ListType):
        element = _map_field(t.element_field, f"{context}.element")
        repeated = PhysicalNode("list", REPEATED, GROUP, children=[element])
        node = PhysicalNode(
            name,
            repetition,
            GROUP,
            field_id=field_id,
            logical={"type": "list"},
            children=[repeated],
        )
        _require_leaves(node, context)
        return node

    if isinstance(t, MapType):
        if not t.key_type.is_primitive or isinstance(t.key_type, UnknownType):
            raise UnsupportedTypeError(
                f"map keys must be primitive, got {t.key_type}",
                schema_context=context,
            )
        key = _map_field(t.key_field, f"{context}.key")
        value = _map_field(t.value_field, f"{context}.value")
        key_value = PhysicalNode("key_value", REPEATED, GROUP, children=[key, value])
        return PhysicalNode(
            name,
            repetition,
            GROUP,
            field_id=field_id,
            logical={"type": "map"},
            children=[key_value],
        )

    if isinstance(t, UnknownType):
        if repetition == REQUIRED:
            raise UnsupportedTypeError(
                "unknown type must be optional", schema_context=context
            )
        return PhysicalNode(
            name, OPTIONAL, UNKNOWN, field_id=field_id, logical={"type": "unknown"}
        )

    physical_type, type_length, logical = _map_primitive(t, context)
    return PhysicalNode(
        name,
        repetition,
        PRIMITIVE,
        field_id=field_id,
        physical_type=physical_type,
        type_length=type_length,
        logical=logical,
    )


def _map_primitive(t: LogicalType, context: str) -> tuple[str, int | None, dict | None]:
    if isinstance(t, BooleanType):
        return BOOLEAN, None, None
    if isinstance(t, IntegerType):
        return INT32, None, None
    if isinstance(t, LongType):
        return INT64, None, None
    if isinstance(t, FloatType):
        return FLOAT, None, None
    if isinstance(t, DoubleType):
        return DOUBLE, None, None
    if isinstance(t, DateType):
        return INT32, None, {"type": "date"}
    if isinstance(t, TimeType):
        return INT64, None, {"type": "time", "unit": "us"}
    if isinstance(t, TimestampType):
        return INT64, None, t.to_dict()
    if isinstance(t, StringType):
        return BYTE_ARRAY, None, {"type": "string"}
    if isinstance(t, BinaryType):
        return BYTE_ARRAY, None, None
    if isinstance(t, FixedType):
        return FIXED_LEN_BYTE_ARRAY, t.length, None
    if isinstance(t, UUIDType):
        return FIXED_LEN_BYTE_ARRAY, 16, {"type": "uuid"}
    if isinstance(t, DecimalType):
        if t.precision <= MAX_INT32_DECIMAL_PRECISION:
            return INT32, None, t.to_dict()
        if t.precision <= MAX_INT64_DECIMAL_PRECISION:
            return INT64, None, t.to_dict()
        return FIXED_LEN_BYTE_ARRAY, decimal_required_bytes(t.precision), t.to_dict()
    raise UnsupportedTypeError(
        f"no physical mapping for type {t!r}", schema_context=context
    )


def _require_leaves(node: PhysicalNode, context: str):
    if next(node.leaves(), None) is None:
        raise UnsupportedTypeError(
            "nested type must contain at least one non-unknown primitive",
            schema_context=context,
        )


def _assign_levels(node: PhysicalNode, definition: int, repetition: int, path: tuple):
    if node.repetition not in REPETITIONS:
        raise ValueError(f"invalid repetition {node.repetition!r} for {node.name}")
    if node.repetition != REQUIRED:
        definition += 1
    if node.repetition == REPEATED:
        repetition += 1
    node.definition_level = definition
    node.repetition_level = repetition
    node.path = path
    for child in node.children:
        _assign_levels(child, definition, repetition, path + (child.name,))


def logical_field_of(node: PhysicalNode) -> NestedField:
    return NestedField(
        node.field_id,
        node.name,
        logical_type_of(node),
        optional=node.repetition == OPTIONAL,
    )


def logical_type_of(node: PhysicalNode) -> LogicalType:
    annotation = node.logical_type_name
    if node.kind == UNKNOWN:
        return UnknownType()
    if node.kind == GROUP:
        if annotation == "list":
            element = node.children[0].children[0]
            return ListType(
                element.field_id, logical_type_of(element), element.repetition == OPTIONAL
            )
        if annotation == "map":
            key, value = node.children[0].children
            return MapType(
                key.field_id,
                logical_type_of(key),
                value.field_id,
                logical_type_of(value),
                value.repetition == OPTIONAL,
            )
        return StructType(*(logical_field_of(child) for child in node.children))

    logical = node.logical or {}
    physical_type = node.physical_type
    if annotation == "decimal":
        return DecimalType(logical["precision"], logical["scale"])
    if annotation == "date":
        return DateType()
    if annotation == "time":
        return TimeType()
    if annotation == "timestamp":
        return TimestampType(logical["unit"], logical["with_zone"])
    if annotation == "string":
        return StringType()
    if annotation == "uuid":
        return UUIDType()
    if physical_type == BOOLEAN:
        return BooleanType()
    if physical_type == INT32:
        return IntegerType()
    if physical_type == INT64:
        return LongType()
    if physical_type == FLOAT:
        return FloatType()
    if physical_type == DOUBLE:
        return DoubleType()
    if physical_type == BYTE_ARRAY:
        return BinaryType()
    if physical_type == FIXED_LEN_BYTE_ARRAY:
        return FixedType(node.type_length)
    raise UnsupportedTypeError(
        f"unknown physical type {physical_type!r}", schema_context=".".join(node.path)
    )


def _render(node: PhysicalNode, indent: int) -> str:
    pad = "  " * indent
    annotation = f" ({node.logical_type_name.upper()})" if node.logical else ""
    field_id = f" = {node.field_id}" if node.field_id is not None else ""
    if node.kind == PRIMITIVE:
        storage = node.physical_type
        if node.type_length is not None:
            storage = f"{storage}({node.type_length})"
        return f"{pad}{node.repetition} {storage.lower()} {node.name}{field_id}{annotation};"
    if node.kind == UNKNOWN:
        return f"{pad}{node.repetition} null {node.name}{field_id}{annotation};"
    lines = [f"{pad}{node.repetition} group {node.name}{field_id}{annotation} {{"]
    lines.extend(_render(child, indent + 1) for child in node.children)
    lines.append(f"{pad}}}")
    return "\n".join(lines)
