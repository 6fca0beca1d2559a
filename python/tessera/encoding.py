# SPDX-License-Identifier: Apache-2.0
# Copyright 2026 Nat Noordanus

"""
Value and level encodings shared by the column writers and readers.

- Unsigned LEB128 varints for run headers.
- The RLE/bit-packed hybrid used for repetition levels, definition levels and
  dictionary indices. A run header ``h`` is a varint: ``h & 1 == 0`` means an
  RLE run of ``h >> 1`` copies of one value stored in ``ceil(bit_width / 8)``
  little-endian bytes; ``h & 1 == 1`` means ``h >> 1`` groups of eight values
  bit-packed least-significant-bit first.
- Plain encoding: fixed-width little-endian numbers, bit-packed booleans,
  length-prefixed byte arrays and raw fixed-length byte arrays.
"""

from __future__ import annotations

import struct

from .exceptions import CorruptDataError
from .physical import (
    BOOLEAN,
    BYTE_ARRAY,
    DOUBLE,
    FIXED_LEN_BYTE_ARRAY,
    FLOAT,
    INT32,
    INT64,
)

_FIXED_FORMATS = {
    INT32: ("i", 4),
    INT64: ("q", 8),
    FLOAT: ("f", 4),
    DOUBLE: ("d", 8),
}

_LENGTH = struct.Struct("<I")


# =============================================================================
# Varints
# =============================================================================


def encode_varint(n: int) -> bytes:
    result = bytearray()
    while n >= 0x80:
        result.append((n & 0x7F) | 0x80)
        n >>= 7
    result.append(n)
    return bytes(result)


def decode_varint(data: bytes, pos: int) -> tuple[int, int]:
    result = 0
    shift = 0
    while True:
        if pos >= len(data):
            raise CorruptDataError("varint runs past end of buffer", "Truncated")
        b = data[pos]
        result |= (b & 0x7F) << shift
        pos += 1
        if not (b & 0x80):
            return result, pos
        shift += 7


# =============================================================================
# RLE / bit-packed hybrid
# =============================================================================


def bit_width(max_value: int) -> int:
    """Number of bits needed to store values in ``0..max_value``."""
    return max_value.bit_length()


def _pack_group(values: list[int], width: int) -> bytes:
    acc = 0
    for k, v in enumerate(values):
        acc |= v << (k * width)
    return acc.to_bytes(width, "little")


def encode_hybrid(values: list[int], width: int) -> bytes:
    """Encode non-negative ints of at most ``width`` bits."""
    out = bytearray()
    value_bytes = (width + 7) // 8
    literal: list[int] = []

    def flush_literal():
        if not literal:
            return
        groups = (len(literal) + 7) // 8
        literal.extend([0] * (groups * 8 - len(literal)))
        out.extend(encode_varint((groups << 1) | 1))
        for g in range(groups):
            out.extend(_pack_group(literal[g * 8 : g * 8 + 8], width))
        literal.clear()

    i = 0
    n = len(values)
    while i < n:
        v = values[i]
        j = i + 1
        while j < n and values[j] == v:
            j += 1
        run = j - i
        if run >= 8 and len(literal) % 8 == 0:
            flush_literal()
            out.extend(encode_varint(run << 1))
            out.extend(v.to_bytes(value_bytes, "little"))
            i = j
        elif run >= 8:
            # top the literal up to a group boundary so the rest can be a run
            fill = 8 - len(literal) % 8
            literal.extend([v] * fill)
            i += fill
        else:
            literal.extend(values[i:j])
            i = j
    flush_literal()
    return bytes(out)


def decode_hybrid(data: bytes, width: int, count: int) -> list[int]:
    """Decode exactly ``count`` values from a hybrid-encoded buffer."""
    values: list[int] = []
    value_bytes = (width + 7) // 8
    mask = (1 << width) - 1
    pos = 0
    while len(values) < count:
        header, pos = decode_varint(data, pos)
        if header & 1:
            groups = header >> 1
            nbytes = groups * width
            if pos + nbytes > len(data):
                raise CorruptDataError("bit-packed run past end of buffer", "Truncated")
            for g in range(groups):
                acc = int.from_bytes(data[pos : pos + width], "little")
                pos += width
                for _ in range(8):
                    values.append(acc & mask)
                    acc >>= width
        else:
            run = header >> 1
            if run == 0:
                raise CorruptDataError("empty RLE run", "InvalidRun")
            if pos + value_bytes > len(data):
                raise CorruptDataError("RLE run past end of buffer", "Truncated")
            value = int.from_bytes(data[pos : pos + value_bytes], "little")
            pos += value_bytes
            if value > mask:
                raise CorruptDataError(
                    f"RLE value {value} exceeds bit width {width}", "InvalidRun"
                )
            values.extend([value] * run)
    del values[count:]
    return values


# =============================================================================
# Plain encoding
# =============================================================================


def encode_plain(physical_type: str, values: list, type_length: int | None = None) -> bytes:
    if physical_type in _FIXED_FORMATS:
        code, _ = _FIXED_FORMATS[physical_type]
        return struct.pack(f"<{len(values)}{code}", *values)
    if physical_type == BOOLEAN:
        out = bytearray((len(values) + 7) // 8)
        for i, v in enumerate(values):
            if v:
                out[i >> 3] |= 1 << (i & 7)
        return bytes(out)
    if physical_type == BYTE_ARRAY:
        out = bytearray()
        for v in values:
            out.extend(_LENGTH.pack(len(v)))
            out.extend(v)
        return bytes(out)
    if physical_type == FIXED_LEN_BYTE_ARRAY:
        return b"".join(values)
    raise ValueError(f"unknown physical type {physical_type!r}")


def plain_size(physical_type: str, value, type_length: int | None = None) -> int:
    """Encoded size of one value in bytes (booleans count as one)."""
    if physical_type in _FIXED_FORMATS:
        return _FIXED_FORMATS[physical_type][1]
    if physical_type == BYTE_ARRAY:
        return _LENGTH.size + len(value)
    if physical_type == FIXED_LEN_BYTE_ARRAY:
        return type_length
    return 1


def decode_plain(
    physical_type: str, data: bytes, count: int, type_length: int | None = None
) -> list:
    if physical_type in _FIXED_FORMATS:
        code, size = _FIXED_FORMATS[physical_type]
        if len(data) < count * size:
            raise CorruptDataError(
                f"expected {count * size} bytes of {physical_type}, got {len(data)}",
                "Truncated",
            )
        return list(struct.unpack_from(f"<{count}{code}", data))
    if physical_type == BOOLEAN:
        if len(data) < (count + 7) // 8:
            raise CorruptDataError("boolean values past end of buffer", "Truncated")
        return [bool(data[i >> 3] >> (i & 7) & 1) for i in range(count)]
    if physical_type == BYTE_ARRAY:
        values = []
        pos = 0
        for _ in range(count):
            if pos + _LENGTH.size > len(data):
                raise CorruptDataError("byte array length past end of buffer", "Truncated")
            (length,) = _LENGTH.unpack_from(data, pos)
            pos += _LENGTH.size
            if pos + length > len(data):
                raise CorruptDataError("byte array past end of buffer", "Truncated")
            values.append(bytes(data[pos : pos + length]))
            pos += length
        return values
    if physical_type == FIXED_LEN_BYTE_ARRAY:
        if len(data) < count * type_length:
            raise CorruptDataError("fixed-length values past end of buffer", "Truncated")
        return [
            bytes(data[i * type_length : (i + 1) * type_length]) for i in range(count)
        ]
    raise CorruptDataError(f"unknown physical type {physical_type!r}", "InvalidType")
