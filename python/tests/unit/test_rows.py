"""
Unit tests for row accessors and builders.

Tests cover:
- Record construction, field access and conversion to dicts
- Accepting records, mappings, sequences and custom accessors on write
- Reading rows back through RecordBuilder, DictBuilder or a custom builder
"""

import pytest

import tessera
from tessera.exceptions import SchemaMismatchError
from tessera.rows import DictBuilder, Record, RecordBuilder, accessor_for

from conftest import PEOPLE_RECORDS, PEOPLE_SCHEMA, write_blob

PEOPLE_STRUCT = PEOPLE_SCHEMA.as_struct()


class TestRecord:
    """Tests for the default row type."""

    def test_access_by_name_and_position(self):
        """Test both access styles on a record."""
        record = Record(PEOPLE_STRUCT, [1, "a", ["x"]])
        assert record["name"] == "a"
        assert record[0] == 1
        assert record.get(2) == ["x"]
        assert len(record) == 3
        assert list(record) == [1, "a", ["x"]]

    def test_unknown_field_name(self):
        """Test that a missing name raises KeyError."""
        record = Record(PEOPLE_STRUCT, [1, None, None])
        with pytest.raises(KeyError):
            record["age"]

    def test_wrong_value_count(self):
        """Test that records must match their struct's arity."""
        with pytest.raises(ValueError):
            Record(PEOPLE_STRUCT, [1, "a"])

    def test_from_dict_fills_nulls(self):
        """Test that missing names become null."""
        record = Record.from_dict(PEOPLE_STRUCT, {"id": 7})
        assert record.to_dict() == {"id": 7, "name": None, "tags": None}

    def test_equality(self):
        """Test that records compare by field names and values."""
        a = Record(PEOPLE_STRUCT, [1, "a", None])
        b = Record(PEOPLE_STRUCT, [1, "a", None])
        assert a == b
        assert a != Record(PEOPLE_STRUCT, [2, "a", None])
        assert a != (1, "a", None)

    def test_repr(self):
        """Test the record representation."""
        assert repr(Record(PEOPLE_STRUCT, [1, "a", None])) == "Record(id=1, name='a', tags=None)"


class TestAccessors:
    """Tests for adapting caller rows on the write path."""

    def test_mapping_row(self):
        """Test that mapping rows are read by field name."""
        row = accessor_for(PEOPLE_STRUCT, {"name": "a", "id": 1})
        assert [row.get(i) for i in range(3)] == [1, "a", None]

    def test_sequence_row(self):
        """Test that tuples are read by position."""
        row = accessor_for(PEOPLE_STRUCT, (1, "a", []))
        assert row.get(2) == []

    def test_string_is_not_a_row(self):
        """Test that strings are rejected as struct values."""
        with pytest.raises(SchemaMismatchError):
            accessor_for(PEOPLE_STRUCT, "abc")

    def test_custom_accessor(self):
        """Test that any object with get(pos) can be written."""

        class Row:
            def __init__(self, *values):
                self.values = values

            def get(self, pos):
                return self.values[pos]

        blob = write_blob(PEOPLE_SCHEMA, [Row(1, "a", ["x"])])
        assert tessera.read_records(blob)[0].to_dict() == {"id": 1, "name": "a", "tags": ["x"]}

    def test_records_write_back(self, people_blob):
        """Test that records read from a blob can be written again."""
        records = tessera.read_records(people_blob)
        again = tessera.read_records(write_blob(PEOPLE_SCHEMA, records))
        assert again == records


class TestBuilders:
    """Tests for row builders on the read path."""

    def test_record_builder_resets(self):
        """Test that build() starts a fresh row."""
        builder = RecordBuilder(PEOPLE_STRUCT)
        builder.set(0, 1)
        first = builder.build()
        second = builder.build()
        assert first[0] == 1
        assert second[0] is None

    def test_dict_builder(self, people_blob):
        """Test reading rows back as plain dicts."""
        assert tessera.read_records(people_blob, row_builder=DictBuilder) == PEOPLE_RECORDS

    def test_nested_records(self, people_blob):
        """Test that the default builder yields Record values."""
        records = tessera.read_records(people_blob)
        assert all(isinstance(r, Record) for r in records)
        assert [r.to_dict() for r in records] == PEOPLE_RECORDS

    def test_custom_builder(self, people_blob):
        """Test a user-supplied builder factory."""

        class TupleBuilder:
            def __init__(self, struct_type):
                self.values = [None] * len(struct_type)

            def set(self, pos, value):
                self.values[pos] = value

            def build(self):
                row = tuple(self.values)
                self.values = [None] * len(self.values)
                return row

        rows = tessera.read_records(people_blob, row_builder=TupleBuilder)
        assert rows[0] == (1, "a", ["x", None])
        assert rows[1] == (2, None, [])
        assert rows[2] == (3, "", None)
