# SPDX-License-Identifier: Apache-2.0
# Copyright 2026 Nat Noordanus

"""
Row accessor and builder interfaces.

Writers read fields through ``RowAccessor.get(pos)`` and readers assemble
rows through ``RowBuilder.set(pos, value)`` / ``build()``. These two
protocols are the only coupling between the codec and a row representation.

``Record`` is the default row type: immutable, positional, with access by
field name. Mappings (by field name) and plain sequences (by position) are
accepted on the write side as well.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Callable, Iterator, Protocol, runtime_checkable

from .exceptions import SchemaMismatchError
from .types import StructType


@runtime_checkable
class RowAccessor(Protocol):
    def get(self, pos: int) -> Any: ...


@runtime_checkable
class RowBuilder(Protocol):
    def set(self, pos: int, value: Any) -> None: ...

    def build(self) -> Any: ...


BuilderFactory = Callable[[StructType], RowBuilder]


class Record:
    """An immutable, schema-shaped row."""

    __slots__ = ("_struct", "_values")

    def __init__(self, struct_type: StructType, values: Sequence[Any]):
        if len(values) != len(struct_type):
            raise ValueError(
                f"record has {len(values)} values for {len(struct_type)} fields"
            )
        self._struct = struct_type
        self._values = tuple(values)

    @classmethod
    def from_dict(cls, struct_type: StructType, data: Mapping[str, Any]) -> Record:
        """Build a record from a name->value mapping; missing names are null."""
        return cls(struct_type, [data.get(f.name) for f in struct_type.fields])

    @property
    def struct(self) -> StructType:
        return self._struct

    def get(self, pos: int) -> Any:
        return self._values[pos]

    def get_field(self, name: str) -> Any:
        try:
            return self._values[self._struct.position(name)]
        except KeyError:
            raise KeyError(f"record has no field {name!r}") from None

    def __getitem__(self, key: int | str) -> Any:
        if isinstance(key, str):
            return self.get_field(key)
        return self._values[key]

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._values)

    def to_dict(self) -> dict[str, Any]:
        return {
            f.name: _plain(v) for f, v in zip(self._struct.fields, self._values)
        }

    def __eq__(self, other) -> bool:
        if not isinstance(other, Record):
            return NotImplemented
        names = [f.name for f in self._struct.fields]
        other_names = [f.name for f in other._struct.fields]
        return names == other_names and self._values == other._values

    __hash__ = None

    def __repr__(self) -> str:
        fields = ", ".join(
            f"{f.name}={v!r}" for f, v in zip(self._struct.fields, self._values)
        )
        return f"Record({fields})"


def _plain(value: Any) -> Any:
    if isinstance(value, Record):
        return value.to_dict()
    if isinstance(value, list):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value


class RecordBuilder:
    """Builds ``Record``s for one struct type."""

    def __init__(self, struct_type: StructType):
        self.struct_type = struct_type
        self._values: list[Any] = [None] * len(struct_type)

    def set(self, pos: int, value: Any) -> None:
        self._values[pos] = value

    def build(self) -> Record:
        record = Record(self.struct_type, self._values)
        self._values = [None] * len(self.struct_type)
        return record


class DictBuilder:
    """Builds plain ``dict`` rows keyed by field name."""

    def __init__(self, struct_type: StructType):
        self.names = [f.name for f in struct_type.fields]
        self._values: dict[str, Any] = {}

    def set(self, pos: int, value: Any) -> None:
        self._values[self.names[pos]] = value

    def build(self) -> dict[str, Any]:
        row = {name: self._values.get(name) for name in self.names}
        self._values = {}
        return row


class _MappingAccessor:
    __slots__ = ("_names", "_data")

    def __init__(self, struct_type: StructType, data: Mapping):
        self._names = [f.name for f in struct_type.fields]
        self._data = data

    def get(self, pos: int) -> Any:
        return self._data.get(self._names[pos])


class _SequenceAccessor:
    __slots__ = ("_data",)

    def __init__(self, data: Sequence):
        self._data = data

    def get(self, pos: int) -> Any:
        return self._data[pos]


def accessor_for(struct_type: StructType, value: Any, field_path: str | None = None) -> RowAccessor:
    """Adapt a caller's row to the accessor protocol."""
    if isinstance(value, Record):
        if len(value) != len(struct_type):
            raise SchemaMismatchError(
                f"record has {len(value)} fields, expected {len(struct_type)}",
                "WrongArity",
                field_path=field_path,
            )
        return value
    if isinstance(value, Mapping):
        expected = {f.name for f in struct_type.fields}
        extra = set(value) - expected
        if extra:
            raise SchemaMismatchError(
                f"unexpected field(s) {sorted(map(str, extra))}",
                "UnknownField",
                field_path=field_path,
            )
        return _MappingAccessor(struct_type, value)
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        if len(value) != len(struct_type):
            raise SchemaMismatchError(
                f"row has {len(value)} values, expected {len(struct_type)}",
                "WrongArity",
                field_path=field_path,
            )
        return _SequenceAccessor(value)
    if isinstance(value, RowAccessor):
        return value
    raise SchemaMismatchError(
        f"expected a struct value, got {type(value).__name__}",
        "WrongType",
        field_path=field_path,
    )
