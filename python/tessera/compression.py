# SPDX-License-Identifier: Apache-2.0
# Copyright 2026 Nat Noordanus

"""Page compression codecs."""

from __future__ import annotations

import gzip
import zlib

import zstandard as zstd

from .exceptions import CodecError

UNCOMPRESSED = "uncompressed"
ZSTD = "zstd"
GZIP = "gzip"

CODECS = (UNCOMPRESSED, ZSTD, GZIP)


class Codec:
    """Compresses and decompresses page bodies for one codec name."""

    def __init__(self, name: str, level: int | None = None):
        if name not in CODECS:
            raise CodecError(
                f"unsupported codec {name!r}, expected one of {CODECS}",
                "UnsupportedCodec",
                codec=name,
            )
        self.name = name
        self.level = level
        self._compressor = None
        if name == ZSTD:
            self._compressor = zstd.ZstdCompressor(
                level=level if level is not None else 3
            )

    def compress(self, data: bytes) -> bytes:
        if self.name == ZSTD:
            return self._compressor.compress(data)
        if self.name == GZIP:
            return gzip.compress(data, compresslevel=self.level if self.level is not None else 6)
        return data

    def decompress(self, data: bytes, uncompressed_size: int) -> bytes:
        try:
            if self.name == ZSTD:
                result = zstd.ZstdDecompressor().decompress(
                    data, max_output_size=uncompressed_size
                )
            elif self.name == GZIP:
                result = gzip.decompress(data)
            else:
                result = data
        except (zstd.ZstdError, zlib.error, OSError, EOFError) as e:
            raise CodecError(str(e), "DecompressionError", codec=self.name) from e
        if len(result) != uncompressed_size:
            raise CodecError(
                f"decompressed {len(result)} bytes, expected {uncompressed_size}",
                "DecompressionError",
                codec=self.name,
            )
        return result

    def __repr__(self) -> str:
        return f"Codec({self.name!r}, level={self.level})"
