"""
Integration tests for full write/read round-trips.

Every schema is written with each record generator and read back from the
embedded physical schema alone.

Tests cover:
- Random records with boundary values
- Dictionary-encodable records
- Records that force the dictionary-to-plain fallback mid-column
- Exact cardinality: the reader yields exactly what was written
- Paths, streams and in-memory sources
"""

import io

import pytest

import tessera
from tessera.physical import BOOLEAN
from tessera.random_data import (
    DICTIONARY_POOL_SIZE,
    generate,
    generate_dictionary_encodable_records,
    generate_fallback_records,
)
from tessera.testing import write_and_validate

from conftest import (
    NESTED_SCHEMA,
    PEOPLE_SCHEMA,
    PRIMITIVES_SCHEMA,
    SUPPORTED_SCHEMA,
    page_encodings,
)

NUM_RECORDS = 100
SEEDS = [19981, 21124]

SCHEMAS = {
    "people": PEOPLE_SCHEMA,
    "primitives": PRIMITIVES_SCHEMA,
    "nested": NESTED_SCHEMA,
    "supported": SUPPORTED_SCHEMA,
}


def boolean_columns(blob) -> set[str]:
    return {
        c.dotted_path
        for c in tessera.read_physical_schema(blob).columns
        if c.physical_type == BOOLEAN
    }


@pytest.mark.parametrize("seed", SEEDS)
@pytest.mark.parametrize("schema_name", sorted(SCHEMAS))
class TestGeneratedRoundTrip:
    """Round-trips of generated records for every schema and seed."""

    def test_random_records(self, schema_name, seed):
        """Test high-cardinality records with boundary values."""
        schema = SCHEMAS[schema_name]
        records = generate(schema, NUM_RECORDS, seed)
        write_and_validate(records, schema, num_records=NUM_RECORDS)

    def test_random_records_small_pages(self, schema_name, seed):
        """Test that page boundaries never change what is read."""
        schema = SCHEMAS[schema_name]
        records = generate(schema, NUM_RECORDS, seed)
        write_and_validate(records, schema, page_row_limit=7, page_size=512)

    def test_dictionary_encodable_records(self, schema_name, seed):
        """Test that low-cardinality columns stay dictionary-encoded."""
        schema = SCHEMAS[schema_name]
        records = generate_dictionary_encodable_records(schema, NUM_RECORDS, seed)
        blob = write_and_validate(records, schema, num_records=NUM_RECORDS)
        booleans = boolean_columns(blob)
        for path, encodings in page_encodings(blob).items():
            expected = "plain" if path in booleans else "dictionary"
            assert set(encodings) == {expected}, path

    def test_fallback_records(self, schema_name, seed):
        """Test the switch from dictionary to plain pages within one column."""
        schema = SCHEMAS[schema_name]
        records = generate_fallback_records(
            schema, NUM_RECORDS, seed, dictionary_size=NUM_RECORDS // 20
        )
        blob = write_and_validate(
            records,
            schema,
            num_records=NUM_RECORDS,
            dictionary_max_entries=DICTIONARY_POOL_SIZE,
        )
        encodings = page_encodings(blob)
        fell_back = [
            path for path, pages in encodings.items() if pages[:1] == ["dictionary"] and "plain" in pages
        ]
        assert fell_back
        for pages in encodings.values():
            # once plain, a column never returns to dictionary pages
            if "plain" in pages:
                assert "dictionary" not in pages[pages.index("plain") :]

    @pytest.mark.parametrize("compression", ["uncompressed", "gzip"])
    def test_other_codecs(self, schema_name, seed, compression):
        """Test round-trips without the default codec."""
        schema = SCHEMAS[schema_name]
        records = generate(schema, NUM_RECORDS // 4, seed)
        write_and_validate(records, schema, compression=compression)


class TestExactCardinality:
    """Tests that readers yield exactly the records written."""

    @pytest.mark.parametrize("count", [0, 1, 2, 19, 20, 21])
    def test_record_counts(self, count):
        """Test counts around the page row limit."""
        records = generate(NESTED_SCHEMA, count, SEEDS[0])
        blob = write_and_validate(records, NESTED_SCHEMA, num_records=count, page_row_limit=20)
        assert tessera.read_metadata(blob)["num_rows"] == count

    def test_rows_read_and_is_finished(self, people_blob):
        """Test reader progress properties."""
        reader = tessera.open(people_blob)
        assert reader.num_rows == 3
        assert not reader.is_finished
        next(reader)
        assert reader.rows_read == 1
        list(reader)
        assert reader.rows_read == 3
        assert reader.is_finished
        with pytest.raises(StopIteration):
            next(reader)

    def test_zero_record_blob(self, temp_empty_blob_file):
        """Test that an empty blob reads as no records with its schema intact."""
        with tessera.open(temp_empty_blob_file) as reader:
            assert list(reader) == []
            assert reader.schema == PEOPLE_SCHEMA

    def test_write_returns_count(self):
        """Test that write() reports how many records it wrote."""
        records = generate(PEOPLE_SCHEMA, 17, SEEDS[1])
        assert tessera.write(io.BytesIO(), PEOPLE_SCHEMA, iter(records)) == 17

    def test_records_from_generator(self):
        """Test that records may be streamed from a generator."""
        buf = io.BytesIO()
        with tessera.Writer(buf, PEOPLE_SCHEMA) as writer:
            count = writer.write_all({"id": i, "name": str(i), "tags": [str(i)] * (i % 3)} for i in range(50))
        assert count == 50
        records = tessera.read_records(buf.getvalue())
        assert [r["tags"] for r in records[:3]] == [[], ["1"], ["2", "2"]]


class TestSources:
    """Tests for the kinds of source and sink accepted."""

    def test_path_sink_and_source(self, tmp_path):
        """Test writing to and reading from a path."""
        path = tmp_path / "records.tsr"
        records = generate(PEOPLE_SCHEMA, 10, SEEDS[0])
        tessera.write(str(path), PEOPLE_SCHEMA, records)
        assert tessera.read_records(path) == records

    def test_stream_source(self, temp_blob_file):
        """Test reading from an open binary file."""
        with open(temp_blob_file, "rb") as f:
            records = tessera.read_records(f)
        assert len(records) == 3

    def test_memoryview_source(self, people_blob):
        """Test reading from a memoryview."""
        assert len(tessera.read_records(memoryview(people_blob))) == 3

    def test_schema_from_blob(self, people_blob):
        """Test that the logical schema is rebuilt from the physical schema."""
        with tessera.open(people_blob) as reader:
            assert reader.schema == PEOPLE_SCHEMA
            assert reader.physical_schema == tessera.map_schema(PEOPLE_SCHEMA)


@pytest.mark.slow
def test_large_supported_round_trip():
    """Test a few thousand records of every supported type."""
    records = generate(SUPPORTED_SCHEMA, 2_000, SEEDS[1])
    write_and_validate(records, SUPPORTED_SCHEMA, page_row_limit=250)
