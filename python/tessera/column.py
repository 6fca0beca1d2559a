# SPDX-License-Identifier: Apache-2.0
# Copyright 2026 Nat Noordanus

"""
Column chunks: per-leaf page writers and triple iterators.

A column chunk is a stream of (repetition level, definition level, value)
triples split into pages. The writer buffers triples for the current page and
closes it at record boundaries once the page is large enough. The iterator
walks the triples of a persisted chunk across page boundaries, so readers
never observe where pages were cut or how each page was encoded.

Every leaf starts in dictionary mode (booleans excepted). When a new distinct
value would push the dictionary past its budget, the current page is closed
as-is and the column switches to plain encoding for the rest of the pass:

    DICTIONARY ──▶ PLAIN
"""

from __future__ import annotations

import enum
import logging
import struct
from dataclasses import dataclass

from .compression import Codec
from .encoding import (
    bit_width,
    decode_hybrid,
    decode_plain,
    encode_hybrid,
    encode_plain,
    plain_size,
)
from .exceptions import CorruptDataError
from .options import WriteOptions
from .physical import BOOLEAN, ColumnDescriptor

logger = logging.getLogger(__name__)

DATA_PAGE = "data"
DICTIONARY_PAGE = "dictionary"

PLAIN_ENCODING = "plain"
DICTIONARY_ENCODING = "dictionary"

_LENGTH = struct.Struct("<I")


class DictionaryState(enum.Enum):
    """Per-column encoding state. The only edge is DICTIONARY -> PLAIN."""

    DICTIONARY = DICTIONARY_ENCODING
    PLAIN = PLAIN_ENCODING

    def transition(self, target: DictionaryState) -> DictionaryState:
        if target is self:
            return self
        if self is DictionaryState.DICTIONARY and target is DictionaryState.PLAIN:
            return target
        raise ValueError(f"cannot move column encoding from {self.name} to {target.name}")


@dataclass
class PageInfo:
    """Footer entry for one page of a column chunk."""

    kind: str
    encoding: str
    num_values: int
    num_rows: int
    uncompressed_size: int
    compressed_size: int
    offset: int = 0

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "encoding": self.encoding,
            "num_values": self.num_values,
            "num_rows": self.num_rows,
            "uncompressed_size": self.uncompressed_size,
            "compressed_size": self.compressed_size,
            "offset": self.offset,
        }

    @classmethod
    def from_dict(cls, data: dict) -> PageInfo:
        return cls(
            kind=data["kind"],
            encoding=data["encoding"],
            num_values=data["num_values"],
            num_rows=data["num_rows"],
            uncompressed_size=data["uncompressed_size"],
            compressed_size=data["compressed_size"],
            offset=data["offset"],
        )


class ColumnChunkWriter:
    """Buffers triples for one leaf column and encodes them into pages."""

    def __init__(self, descriptor: ColumnDescriptor, options: WriteOptions, codec: Codec):
        self.descriptor = descriptor
        self.options = options
        self.codec = codec
        self.max_definition_level = descriptor.max_definition_level
        self.max_repetition_level = descriptor.max_repetition_level
        if options.dictionary_enabled and descriptor.physical_type != BOOLEAN:
            self.state = DictionaryState.DICTIONARY
        else:
            self.state = DictionaryState.PLAIN
        self._dictionary: dict[bytes, int] = {}
        self._dictionary_values: list = []
        self._dictionary_bytes = 0
        self._reps: list[int] = []
        self._defs: list[int] = []
        self._values: list = []
        self._page_encoding = self.state.value
        self._page_value_bytes = 0
        self._page_records = 0
        self._data_pages: list[tuple[PageInfo, bytes]] = []
        self.num_values = 0

    @property
    def path(self) -> str:
        return self.descriptor.dotted_path

    def write(self, repetition_level: int, value):
        """Append a present value (definition level at its maximum)."""
        physical_type = self.descriptor.physical_type
        size = plain_size(physical_type, value, self.descriptor.type_length)
        if self.state is DictionaryState.DICTIONARY:
            key = encode_plain(physical_type, [value], self.descriptor.type_length)
            code = self._dictionary.get(key)
            if code is None:
                if self._dictionary_full(len(key)):
                    self._fall_back()
                else:
                    code = len(self._dictionary_values)
                    self._dictionary[key] = code
                    self._dictionary_values.append(value)
                    self._dictionary_bytes += size
            if self.state is DictionaryState.DICTIONARY:
                value = code
        self._values.append(value)
        self._page_value_bytes += size
        self._reps.append(repetition_level)
        self._defs.append(self.max_definition_level)
        self.num_values += 1

    def write_null(self, repetition_level: int, definition_level: int):
        self._reps.append(repetition_level)
        self._defs.append(definition_level)
        self.num_values += 1

    def end_record(self):
        self._page_records += 1
        if (
            self._page_records >= self.options.page_row_limit
            or self._page_value_bytes >= self.options.page_size
        ):
            self._flush_page()

    def finish(self) -> list[tuple[PageInfo, bytes]]:
        """Close the open page and return all pages, dictionary page first."""
        self._flush_page()
        pages = list(self._data_pages)
        if self._dictionary_values:
            body = encode_plain(
                self.descriptor.physical_type,
                self._dictionary_values,
                self.descriptor.type_length,
            )
            compressed = self.codec.compress(body)
            info = PageInfo(
                kind=DICTIONARY_PAGE,
                encoding=PLAIN_ENCODING,
                num_values=len(self._dictionary_values),
                num_rows=0,
                uncompressed_size=len(body),
                compressed_size=len(compressed),
            )
            pages.insert(0, (info, compressed))
        return pages

    def _dictionary_full(self, entry_size: int) -> bool:
        return (
            len(self._dictionary_values) >= self.options.dictionary_max_entries
            or self._dictionary_bytes + entry_size > self.options.dictionary_page_size
        )

    def _fall_back(self):
        self._flush_page()
        self.state = self.state.transition(DictionaryState.PLAIN)
        self._page_encoding = self.state.value
        logger.info(
            "Column %s fell back to plain encoding after %d distinct values",
            self.path,
            len(self._dictionary_values),
        )

    def _flush_page(self):
        if not self._reps:
            self._page_encoding = self.state.value
            return
        body = bytearray()
        if self.max_repetition_level > 0:
            _append_levels(body, self._reps, self.max_repetition_level)
        if self.max_definition_level > 0:
            _append_levels(body, self._defs, self.max_definition_level)
        if self._page_encoding == DICTIONARY_ENCODING:
            width = bit_width(max(self._values, default=0))
            body.append(width)
            body.extend(encode_hybrid(self._values, width))
        else:
            body.extend(
                encode_plain(
                    self.descriptor.physical_type, self._values, self.descriptor.type_length
                )
            )
        compressed = self.codec.compress(bytes(body))
        info = PageInfo(
            kind=DATA_PAGE,
            encoding=self._page_encoding,
            num_values=len(self._reps),
            num_rows=sum(1 for r in self._reps if r == 0),
            uncompressed_size=len(body),
            compressed_size=len(compressed),
        )
        self._data_pages.append((info, compressed))
        logger.debug(
            "Flushed %s page %d for column %s: %d values, %d bytes",
            info.encoding,
            len(self._data_pages) - 1,
            self.path,
            info.num_values,
            info.compressed_size,
        )
        self._reps = []
        self._defs = []
        self._values = []
        self._page_value_bytes = 0
        self._page_records = 0
        self._page_encoding = self.state.value


def _append_levels(body: bytearray, levels: list[int], max_level: int):
    encoded = encode_hybrid(levels, bit_width(max_level))
    body.extend(_LENGTH.pack(len(encoded)))
    body.extend(encoded)


class ColumnIterator:
    """Forward-only cursor over the triples of one persisted column chunk."""

    def __init__(
        self,
        descriptor: ColumnDescriptor,
        pages: list[tuple[PageInfo, bytes]],
        codec: Codec,
    ):
        self.descriptor = descriptor
        self.codec = codec
        self.max_definition_level = descriptor.max_definition_level
        self.max_repetition_level = descriptor.max_repetition_level
        self._pages = list(pages)
        self._dictionary: list | None = None
        if self._pages and self._pages[0][0].kind == DICTIONARY_PAGE:
            info, data = self._pages.pop(0)
            body = self.codec.decompress(data, info.uncompressed_size)
            self._dictionary = self._decode(
                lambda: decode_plain(
                    descriptor.physical_type, body, info.num_values, descriptor.type_length
                ),
                0,
            )
        self._page_index = -1
        self._reps: list[int] = []
        self._defs: list[int] = []
        self._values: list = []
        self._pos = 0
        self._value_pos = 0
        self._advance_page()

    @property
    def path(self) -> str:
        return self.descriptor.dotted_path

    @property
    def has_next(self) -> bool:
        return self._pos < len(self._reps)

    @property
    def current_repetition_level(self) -> int:
        """Repetition level of the next triple; 0 once the chunk is exhausted."""
        if self._pos < len(self._reps):
            return self._reps[self._pos]
        return 0

    @property
    def current_definition_level(self) -> int:
        if self._pos < len(self._reps):
            return self._defs[self._pos]
        raise self._corrupt("column ran out of values", "Truncated")

    def next_value(self):
        if self.current_definition_level != self.max_definition_level:
            raise self._corrupt(
                f"expected a value but definition level is "
                f"{self._defs[self._pos]} < {self.max_definition_level}",
                "MissingValue",
            )
        value = self._values[self._value_pos]
        self._value_pos += 1
        self._step()
        return value

    def next_null(self):
        if self.current_definition_level == self.max_definition_level:
            raise self._corrupt("expected a null but found a value", "UnexpectedValue")
        self._step()

    def _step(self):
        self._pos += 1
        if self._pos >= len(self._reps):
            self._advance_page()

    def _advance_page(self):
        while self._pos >= len(self._reps) and self._pages:
            info, data = self._pages.pop(0)
            self._page_index += 1
            if info.kind != DATA_PAGE:
                raise self._corrupt("dictionary page after data pages", "MisplacedDictionary")
            body = self.codec.decompress(data, info.uncompressed_size)
            self._load_page(info, body)

    def _load_page(self, info: PageInfo, body: bytes):
        count = info.num_values
        pos = 0
        if self.max_repetition_level > 0:
            reps, pos = self._read_levels(body, pos, count, self.max_repetition_level)
        else:
            reps = [0] * count
        if self.max_definition_level > 0:
            defs, pos = self._read_levels(body, pos, count, self.max_definition_level)
        else:
            defs = [0] * count

        present = sum(1 for d in defs if d == self.max_definition_level)
        descriptor = self.descriptor
        if info.encoding == DICTIONARY_ENCODING:
            # an all-null column never fills its dictionary
            if self._dictionary is None and present:
                raise self._corrupt("dictionary-encoded page without a dictionary", "MissingDictionary")
            if pos >= len(body):
                raise self._corrupt("missing dictionary index width", "Truncated")
            width = body[pos]
            codes = self._decode(lambda: decode_hybrid(body[pos + 1 :], width, present))
            dictionary = self._dictionary or []
            if any(code >= len(dictionary) for code in codes):
                raise self._corrupt("dictionary index out of range", "InvalidDictionaryIndex")
            values = [dictionary[code] for code in codes]
        elif info.encoding == PLAIN_ENCODING:
            values = self._decode(
                lambda: decode_plain(
                    descriptor.physical_type, body[pos:], present, descriptor.type_length
                )
            )
        else:
            raise self._corrupt(f"unknown page encoding {info.encoding!r}", "InvalidEncoding")

        self._reps = reps
        self._defs = defs
        self._values = values
        self._pos = 0
        self._value_pos = 0

    def _read_levels(self, body: bytes, pos: int, count: int, max_level: int):
        if pos + _LENGTH.size > len(body):
            raise self._corrupt("level stream length past end of page", "Truncated")
        (length,) = _LENGTH.unpack_from(body, pos)
        pos += _LENGTH.size
        if pos + length > len(body):
            raise self._corrupt("level stream past end of page", "Truncated")
        levels = self._decode(lambda: decode_hybrid(body[pos : pos + length], bit_width(max_level), count))
        if any(level > max_level for level in levels):
            raise self._corrupt(f"level exceeds column maximum {max_level}", "InvalidLevel")
        return levels, pos + length

    def _decode(self, decode, page_index: int | None = None):
        try:
            return decode()
        except CorruptDataError as e:
            raise self._corrupt(e.message, e.variant, page_index) from e

    def _corrupt(self, message: str, variant: str, page_index: int | None = None):
        return CorruptDataError(
            message,
            variant,
            column=self.path,
            page_index=self._page_index if page_index is None else page_index,
        )
