"""
Tests for edge case values.

Tests handling of:
- Integer boundaries
- Float special values (NaN, infinities, signed zero, extremes)
- Empty, long and unicode strings
- Empty and long binary values
- Date and timestamp extremes
- Large lists and maps
"""

import math
import struct

import pytest

import tessera
from tessera.random_data import edge_values
from tessera.testing import write_and_validate
from tessera.types import (
    BinaryType,
    DoubleType,
    FloatType,
    IntegerType,
    ListType,
    LongType,
    MapType,
    NestedField,
    Schema,
    StringType,
)

from conftest import PRIMITIVES_SCHEMA, primitive_fields, write_blob


def single(field_type):
    return Schema(NestedField(1, "v", field_type))


def read_values(field_type, values, **options):
    blob = write_blob(single(field_type), [{"v": v} for v in values], **options)
    return [r["v"] for r in tessera.read_records(blob)]


class TestEdgeCaseValues:
    """Tests for boundary values of each type."""

    @pytest.mark.parametrize("field", primitive_fields(), ids=lambda f: f.name)
    def test_edge_values_round_trip(self, field):
        """Test every boundary value of every primitive type."""
        values = edge_values(field.field_type)
        assert values
        write_and_validate([{"v": v} for v in values], single(field.field_type))

    @pytest.mark.parametrize("dictionary_enabled", [True, False])
    def test_int32_boundary_values(self, dictionary_enabled):
        """Test int32 minimum and maximum."""
        values = [-(2**31), 2**31 - 1, 0]
        assert read_values(IntegerType(), values, dictionary_enabled=dictionary_enabled) == values

    def test_int64_boundary_values(self):
        """Test int64 minimum and maximum."""
        values = [-(2**63), 2**63 - 1]
        assert read_values(LongType(), values) == values

    def test_double_special_values(self):
        """Test NaN, infinities and signed zero in doubles."""
        nan, inf, neg_zero = read_values(DoubleType(), [math.nan, math.inf, -0.0])[0:3]
        assert math.isnan(nan)
        assert inf == math.inf
        assert math.copysign(1.0, neg_zero) == -1.0

    def test_signed_zeros_are_distinct_dictionary_entries(self):
        """Test that 0.0 and -0.0 are not merged by the dictionary."""
        values = read_values(DoubleType(), [0.0, -0.0, 0.0, -0.0])
        assert [math.copysign(1.0, v) for v in values] == [1.0, -1.0, 1.0, -1.0]

    def test_float_rounds_to_single_precision(self):
        """Test that float columns keep 32-bit precision."""
        (value,) = read_values(FloatType(), [0.1])
        assert value == struct.unpack("<f", struct.pack("<f", 0.1))[0]
        assert value != 0.1

    def test_unicode_strings(self):
        """Test emoji, RTL, combining characters and embedded NUL."""
        values = ["😀🎉", "مرحبا", "é", "a\x00b", "line\r\nbreak", ""]
        assert read_values(StringType(), values) == values

    def test_very_long_string(self):
        """Test a string larger than a default page."""
        value = "x" * (2 * 1024 * 1024)
        assert read_values(StringType(), [value]) == [value]

    def test_binary_values(self):
        """Test empty, zero and all-byte-values binary."""
        values = [b"", b"\x00" * 100, bytes(range(256))]
        assert read_values(BinaryType(), values) == values

    def test_large_list(self):
        """Test a list with many elements spanning pages."""
        schema = Schema(NestedField(1, "xs", ListType(2, LongType())))
        records = [{"xs": list(range(10_000))}, {"xs": [1]}]
        write_and_validate(records, schema, page_size=4096)

    def test_large_map(self):
        """Test a map with many entries."""
        schema = Schema(NestedField(1, "m", MapType(2, StringType(), 3, LongType())))
        write_and_validate([{"m": {str(i): i for i in range(2_000)}}], schema)

    def test_mixed_row_of_edges(self):
        """Test one row holding the first edge value of every primitive."""
        row = {f.name: edge_values(f.field_type)[0] for f in PRIMITIVES_SCHEMA}
        write_and_validate([row, {}], PRIMITIVES_SCHEMA)
