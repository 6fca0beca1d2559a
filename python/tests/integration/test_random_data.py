"""
Integration tests for the record generators.

Tests cover:
- Determinism for a given seed
- Conformance of generated records to their schema
- Boundary values and nulls appearing in random records
- Cardinality of dictionary-encodable and fallback records
"""

import io
import math

import pytest

import tessera
from tessera.random_data import (
    DICTIONARY_POOL_SIZE,
    DictionaryEncodableGenerator,
    FallbackGenerator,
    edge_values,
    generate,
    generate_dictionary_encodable_records,
    generate_fallback_records,
)
from tessera.rows import Record
from tessera.types import DoubleType, LongType, NestedField, Schema

from conftest import NESTED_SCHEMA, PEOPLE_SCHEMA, SUPPORTED_SCHEMA

SEED = 19981


def column_values(records, name):
    return [r[name] for r in records]


class TestDeterminism:
    """Tests that a seed fixes the generated records."""

    @pytest.mark.parametrize(
        "make",
        [
            lambda s: generate(SUPPORTED_SCHEMA, 20, s),
            lambda s: generate_dictionary_encodable_records(SUPPORTED_SCHEMA, 20, s),
            lambda s: generate_fallback_records(SUPPORTED_SCHEMA, 20, s, dictionary_size=5),
        ],
    )
    def test_same_seed_same_records(self, make):
        """Test that equal seeds give identical blobs."""
        first = io.BytesIO()
        second = io.BytesIO()
        tessera.write(first, SUPPORTED_SCHEMA, make(SEED))
        tessera.write(second, SUPPORTED_SCHEMA, make(SEED))
        assert first.getvalue() == second.getvalue()

    def test_different_seeds_differ(self):
        """Test that different seeds give different records."""
        assert generate(PEOPLE_SCHEMA, 20, 1) != generate(PEOPLE_SCHEMA, 20, 2)


class TestRandomRecords:
    """Tests for high-cardinality generated records."""

    def test_records_match_schema(self):
        """Test that generated records are accepted by the writer."""
        records = generate(NESTED_SCHEMA, 200, SEED)
        assert all(isinstance(r, Record) for r in records)
        assert tessera.write(io.BytesIO(), NESTED_SCHEMA, records) == 200

    def test_required_fields_never_null(self):
        """Test that required fields always get a value."""
        records = generate(PEOPLE_SCHEMA, 500, SEED)
        assert all(r["id"] is not None for r in records)

    def test_optional_fields_sometimes_null(self):
        """Test that optional fields are occasionally null."""
        records = generate(PEOPLE_SCHEMA, 500, SEED)
        assert any(r["name"] is None for r in records)
        assert any(r["tags"] == [] for r in records)

    def test_boundary_values_appear(self):
        """Test that edge values are drawn often."""
        schema = Schema(NestedField(1, "d", DoubleType(), optional=False))
        values = column_values(generate(schema, 500, SEED), "d")
        assert any(math.isnan(v) for v in values)
        assert any(v == 0.0 and math.copysign(1.0, v) < 0 for v in values)
        assert any(math.isinf(v) for v in values)

    def test_edge_values_cover_primitives(self, primitives_schema):
        """Test that every primitive type has boundary values."""
        for field in primitives_schema:
            assert edge_values(field.field_type), field.name


class TestCardinality:
    """Tests for the dictionary-oriented generators."""

    SCHEMA = Schema(
        NestedField(1, "a", LongType(), optional=False),
        NestedField(2, "b", LongType(), optional=False),
    )

    def test_pool_bounds_distinct_values(self):
        """Test that each primitive type draws from one small pool."""
        records = generate_dictionary_encodable_records(self.SCHEMA, 500, SEED)
        distinct = set(column_values(records, "a")) | set(column_values(records, "b"))
        assert len(distinct) <= DICTIONARY_POOL_SIZE

    def test_custom_pool_size(self):
        """Test a generator with a smaller pool."""
        records = DictionaryEncodableGenerator(SEED, pool_size=2).records(self.SCHEMA, 100)
        assert len(set(column_values(records, "a"))) <= 2

    def test_fallback_switches_at_dictionary_size(self):
        """Test that records become high-cardinality at the given index."""
        records = FallbackGenerator(SEED, dictionary_size=10).records(self.SCHEMA, 200)
        head = set(column_values(records[:10], "a"))
        tail = set(column_values(records[10:], "a"))
        assert len(head) <= DICTIONARY_POOL_SIZE
        assert len(tail) > DICTIONARY_POOL_SIZE
