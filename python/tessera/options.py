# SPDX-License-Identifier: Apache-2.0
# Copyright 2026 Nat Noordanus

"""Writer configuration."""

from __future__ import annotations

from dataclasses import asdict, dataclass

from .compression import CODECS, ZSTD
from .exceptions import ConfigurationError

DEFAULT_PAGE_ROW_LIMIT = 20_000
DEFAULT_PAGE_SIZE = 1024 * 1024
DEFAULT_DICTIONARY_MAX_ENTRIES = 10_000
DEFAULT_DICTIONARY_PAGE_SIZE = 1024 * 1024


@dataclass(frozen=True)
class WriteOptions:
    """Options controlling page layout, dictionary fallback and compression.

    Parameters
    ----------
    page_row_limit : int, default 20_000
        Records per data page. Pages close at the first record boundary
        after this many records.
    page_size : int, default 1MB
        Plain-encoded value bytes per data page.
    dictionary_enabled : bool, default True
        Start columns in dictionary mode. When False every column is plain.
    dictionary_max_entries : int, default 10_000
        Distinct values a column may collect before falling back to plain
        encoding for the rest of the write.
    dictionary_page_size : int, default 1MB
        Plain-encoded dictionary bytes before falling back.
    compression : str, default "zstd"
        Page codec: "uncompressed", "zstd" or "gzip".
    compression_level : int | None, default None
        Codec level. None uses the codec's default.
    """

    page_row_limit: int = DEFAULT_PAGE_ROW_LIMIT
    page_size: int = DEFAULT_PAGE_SIZE
    dictionary_enabled: bool = True
    dictionary_max_entries: int = DEFAULT_DICTIONARY_MAX_ENTRIES
    dictionary_page_size: int = DEFAULT_DICTIONARY_PAGE_SIZE
    compression: str = ZSTD
    compression_level: int | None = None

    def __post_init__(self):
        for name in ("page_row_limit", "page_size", "dictionary_page_size"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
        if (
            not isinstance(self.dictionary_max_entries, int)
            or isinstance(self.dictionary_max_entries, bool)
            or self.dictionary_max_entries < 0
        ):
            raise ConfigurationError(
                "dictionary_max_entries must be a non-negative integer, "
                f"got {self.dictionary_max_entries!r}"
            )
        if self.compression not in CODECS:
            raise ConfigurationError(
                f"compression must be one of {CODECS}, got {self.compression!r}"
            )

    @classmethod
    def from_kwargs(cls, **kwargs) -> WriteOptions:
        unknown = set(kwargs) - set(cls.__dataclass_fields__)
        if unknown:
            raise ConfigurationError(
                f"unknown writer option(s): {', '.join(sorted(unknown))}"
            )
        return cls(**kwargs)

    def to_dict(self) -> dict:
        return asdict(self)
