"""
Unit tests for column chunk writers and iterators.

Tests cover:
- The DICTIONARY -> PLAIN state machine
- Fallback when the dictionary budget is exhausted, mid-page and mid-record
- Booleans starting in plain encoding
- Page cuts at record boundaries
- Triple iteration across pages and corruption detection
"""

import pytest

from tessera.column import (
    ColumnChunkWriter,
    ColumnIterator,
    DictionaryState,
    PageInfo,
)
from tessera.compression import Codec
from tessera.exceptions import CorruptDataError
from tessera.options import WriteOptions
from tessera.physical import BOOLEAN, BYTE_ARRAY, INT64, ColumnDescriptor


def descriptor(physical_type=INT64, max_def=1, max_rep=0, type_length=None):
    return ColumnDescriptor(
        path=("col",),
        max_definition_level=max_def,
        max_repetition_level=max_rep,
        physical_type=physical_type,
        type_length=type_length,
        logical=None,
        field_id=1,
    )


def write_values(writer, values):
    """Write one record per value; None becomes a null."""
    for v in values:
        if v is None:
            writer.write_null(0, writer.max_definition_level - 1)
        else:
            writer.write(0, v)
        writer.end_record()


def read_all(desc, pages, codec):
    iterator = ColumnIterator(desc, pages, codec)
    triples = []
    while iterator.has_next:
        rep = iterator.current_repetition_level
        d = iterator.current_definition_level
        if d == desc.max_definition_level:
            triples.append((rep, d, iterator.next_value()))
        else:
            iterator.next_null()
            triples.append((rep, d, None))
    return triples


class TestDictionaryState:
    """Tests for the per-column encoding state machine."""

    def test_dictionary_to_plain(self):
        """Test the only allowed transition."""
        state = DictionaryState.DICTIONARY.transition(DictionaryState.PLAIN)
        assert state is DictionaryState.PLAIN

    def test_plain_to_dictionary_is_rejected(self):
        """Test that a column never returns to dictionary mode."""
        with pytest.raises(ValueError):
            DictionaryState.PLAIN.transition(DictionaryState.DICTIONARY)

    def test_self_transition(self):
        """Test that staying in a state is a no-op."""
        assert DictionaryState.PLAIN.transition(DictionaryState.PLAIN) is DictionaryState.PLAIN


class TestColumnChunkWriter:
    """Tests for page and dictionary handling in the chunk writer."""

    def test_low_cardinality_stays_dictionary(self):
        """Test that repeated values stay dictionary-encoded."""
        codec = Codec("uncompressed")
        writer = ColumnChunkWriter(descriptor(), WriteOptions(), codec)
        write_values(writer, [1, 2, 1, 2, None, 1])
        pages = writer.finish()
        assert writer.state is DictionaryState.DICTIONARY
        assert pages[0][0].kind == "dictionary"
        assert pages[0][0].num_values == 2
        assert [info.encoding for info, _ in pages[1:]] == ["dictionary"]

    def test_fallback_when_dictionary_is_full(self):
        """Test that exceeding max entries flushes the page and switches to plain."""
        codec = Codec("uncompressed")
        writer = ColumnChunkWriter(
            descriptor(), WriteOptions(dictionary_max_entries=3), codec
        )
        write_values(writer, [1, 2, 3, 1, 4, 5, 1])
        pages = writer.finish()
        assert writer.state is DictionaryState.PLAIN
        assert [(i.kind, i.encoding) for i, _ in pages] == [
            ("dictionary", "plain"),
            ("data", "dictionary"),
            ("data", "plain"),
        ]
        assert pages[1][0].num_values == 4
        assert pages[2][0].num_values == 3
        triples = read_all(writer.descriptor, pages, codec)
        assert [v for _, _, v in triples] == [1, 2, 3, 1, 4, 5, 1]

    def test_fallback_on_dictionary_bytes(self):
        """Test that the dictionary byte budget also triggers fallback."""
        codec = Codec("uncompressed")
        writer = ColumnChunkWriter(
            descriptor(BYTE_ARRAY), WriteOptions(dictionary_page_size=20), codec
        )
        write_values(writer, [b"a" * 10, b"b" * 10, b"c"])
        assert writer.state is DictionaryState.PLAIN

    def test_dictionary_disabled(self):
        """Test that columns start plain when dictionaries are disabled."""
        writer = ColumnChunkWriter(
            descriptor(), WriteOptions(dictionary_enabled=False), Codec("uncompressed")
        )
        assert writer.state is DictionaryState.PLAIN
        write_values(writer, [1, 1, 1])
        assert [i.encoding for i, _ in writer.finish()] == ["plain"]

    def test_booleans_start_plain(self):
        """Test that boolean columns never use a dictionary."""
        writer = ColumnChunkWriter(descriptor(BOOLEAN), WriteOptions(), Codec("uncompressed"))
        assert writer.state is DictionaryState.PLAIN

    def test_pages_cut_at_record_boundaries(self):
        """Test that page_row_limit closes pages between records."""
        codec = Codec("zstd")
        writer = ColumnChunkWriter(
            descriptor(max_def=2, max_rep=1), WriteOptions(page_row_limit=2), codec
        )
        for record in [[1, 2], [3], [], [4, 5, 6], [7]]:
            if not record:
                writer.write_null(0, 1)
            for i, v in enumerate(record):
                writer.write(0 if i == 0 else 1, v)
            writer.end_record()
        pages = writer.finish()
        data_pages = [info for info, _ in pages if info.kind == "data"]
        assert [p.num_rows for p in data_pages] == [2, 2, 1]
        triples = read_all(writer.descriptor, pages, codec)
        assert [(r, v) for r, _, v in triples] == [
            (0, 1), (1, 2), (0, 3), (0, None), (0, 4), (1, 5), (1, 6), (0, 7)
        ]

    def test_zero_values(self):
        """Test that an empty chunk has no pages."""
        writer = ColumnChunkWriter(descriptor(), WriteOptions(), Codec("zstd"))
        assert writer.finish() == []


class TestColumnIterator:
    """Tests for triple iteration and corruption detection."""

    def test_exhausted_iterator(self):
        """Test that an exhausted column reports repetition 0 and no definition level."""
        codec = Codec("uncompressed")
        iterator = ColumnIterator(descriptor(), [], codec)
        assert not iterator.has_next
        assert iterator.current_repetition_level == 0
        with pytest.raises(CorruptDataError) as exc_info:
            iterator.current_definition_level
        assert exc_info.value.variant == "Truncated"

    def test_next_value_on_null_is_corrupt(self):
        """Test that reading a value where the level says null fails."""
        codec = Codec("uncompressed")
        writer = ColumnChunkWriter(descriptor(), WriteOptions(), codec)
        write_values(writer, [None])
        iterator = ColumnIterator(writer.descriptor, writer.finish(), codec)
        with pytest.raises(CorruptDataError) as exc_info:
            iterator.next_value()
        assert exc_info.value.variant == "MissingValue"
        assert exc_info.value.column == "col"

    def test_all_null_dictionary_column(self):
        """Test that a dictionary-mode column of nulls needs no dictionary page."""
        codec = Codec("uncompressed")
        writer = ColumnChunkWriter(descriptor(), WriteOptions(), codec)
        write_values(writer, [None, None])
        pages = writer.finish()
        assert [(i.kind, i.encoding) for i, _ in pages] == [("data", "dictionary")]
        assert read_all(writer.descriptor, pages, codec) == [(0, 0, None), (0, 0, None)]

    def test_dictionary_index_out_of_range(self):
        """Test that indices past the dictionary are corrupt."""
        codec = Codec("uncompressed")
        writer = ColumnChunkWriter(descriptor(max_def=0), WriteOptions(), codec)
        write_values(writer, [7, 8])
        (dict_info, dict_data), (info, data) = writer.finish()
        short_dictionary = (
            PageInfo("dictionary", "plain", 1, 0, 8, 8),
            dict_data[:8],
        )
        with pytest.raises(CorruptDataError) as exc_info:
            ColumnIterator(writer.descriptor, [short_dictionary, (info, data)], codec)
        assert exc_info.value.variant == "InvalidDictionaryIndex"

    def test_level_above_maximum(self):
        """Test that a definition level above the column maximum is corrupt."""
        codec = Codec("uncompressed")
        writer = ColumnChunkWriter(
            descriptor(max_def=3), WriteOptions(dictionary_enabled=False), codec
        )
        writer.write(0, 5)
        writer.end_record()
        pages = writer.finish()
        with pytest.raises(CorruptDataError) as exc_info:
            ColumnIterator(descriptor(max_def=2), pages, codec)
        assert exc_info.value.variant == "InvalidLevel"

    def test_dictionary_page_after_data_page(self):
        """Test that a dictionary-encoded page needs a leading dictionary page."""
        codec = Codec("uncompressed")
        writer = ColumnChunkWriter(descriptor(), WriteOptions(), codec)
        write_values(writer, [1])
        dictionary, data = writer.finish()
        with pytest.raises(CorruptDataError) as exc_info:
            read_all(writer.descriptor, [data, dictionary], codec)
        assert exc_info.value.variant == "MissingDictionary"
