# SPDX-License-Identifier: Apache-2.0
# Copyright 2026 Nat Noordanus

"""
Tessera exception classes with structured metadata.

All Tessera exceptions inherit from TesseraError, allowing users to catch
any Tessera-specific error with a single except clause:

    try:
        tessera.write(sink, schema, records)
    except tessera.TesseraError as e:
        print(f"Tessera error: {e}")
        print(f"Variant: {e.variant}")

Exceptions that map to common Python builtins also inherit from those builtins,
allowing idiomatic Python exception handling:

    try:
        tessera.write(sink, schema, records, page_row_limit=0)
    except ValueError as e:
        print(f"Bad option: {e}")

Each exception type exposes structured attributes for programmatic access:

    try:
        records = tessera.read_records("corrupted.tsr")
    except tessera.CorruptDataError as e:
        print(f"Column {e.column}, page {e.page_index}, record {e.record_index}")
"""

from __future__ import annotations

import builtins


class TesseraError(Exception):
    """Base exception for all Tessera errors.

    Users can catch this to handle any Tessera-specific error.

    Attributes:
        message: Human-readable error message
        variant: The specific error variant (e.g., "Closed", "InvalidMagic")
    """

    message: str
    variant: str

    def __init__(self, message: str, variant: str = "Unknown"):
        super().__init__(message)
        self.message = message
        self.variant = variant

    def to_dict(self) -> dict:
        """Convert exception attributes to a dictionary."""
        return {
            "message": self.message,
            "variant": self.variant,
        }


class SchemaError(TesseraError):
    """Error with a logical schema.

    Raised for invalid schemas, such as duplicate field ids or decimal
    parameters outside the supported range.

    Attributes:
        message: Human-readable error message
        variant: The specific schema error variant (e.g., "DuplicateFieldId")
        schema_context: Optional additional context (e.g., field name, type)
    """

    def __init__(
        self,
        message: str,
        variant: str = "Schema",
        schema_context: str | None = None,
    ):
        super().__init__(message, variant)
        self.schema_context = schema_context

    def __str__(self) -> str:
        parts = ["Schema error", f": {self.message}"]
        if self.schema_context:
            parts.append(f" (context: {self.schema_context})")
        return "".join(parts)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(message={self.message!r}, variant={self.variant!r}, "
            f"schema_context={self.schema_context!r})"
        )

    def to_dict(self) -> dict:
        """Convert exception attributes to a dictionary."""
        return {
            "message": self.message,
            "variant": self.variant,
            "schema_context": self.schema_context,
        }


class UnsupportedTypeError(SchemaError):
    """A logical type has no physical column mapping.

    Raised by the schema mapper before any value is written.
    """

    def __init__(
        self,
        message: str,
        variant: str = "UnsupportedType",
        schema_context: str | None = None,
    ):
        super().__init__(message, variant, schema_context)

    def __str__(self) -> str:
        parts = ["Unsupported type", f": {self.message}"]
        if self.schema_context:
            parts.append(f" (context: {self.schema_context})")
        return "".join(parts)


class _WrittenValueError(TesseraError):
    """Shared shape for errors raised against a single written value."""

    label = "Value error"

    def __init__(
        self,
        message: str,
        variant: str,
        field_path: str | None = None,
        record_index: int | None = None,
    ):
        super().__init__(message, variant)
        self.field_path = field_path
        self.record_index = record_index

    def __str__(self) -> str:
        parts = [self.label]
        if self.field_path:
            parts.append(f"at '{self.field_path}'")
        if self.record_index is not None:
            parts.append(f"in record {self.record_index}:")
        else:
            parts.append(":")
        parts.append(self.message)
        return " ".join(parts)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(message={self.message!r}, variant={self.variant!r}, "
            f"field_path={self.field_path!r}, record_index={self.record_index})"
        )

    def to_dict(self) -> dict:
        """Convert exception attributes to a dictionary."""
        return {
            "message": self.message,
            "variant": self.variant,
            "field_path": self.field_path,
            "record_index": self.record_index,
        }


class SchemaMismatchError(_WrittenValueError):
    """A value's runtime shape disagrees with its declared type.

    Fatal for the record being written: the write pass is aborted and
    nothing is persisted.

    Attributes:
        message: Human-readable error message
        variant: The specific mismatch variant (e.g., "NullKey", "WrongType")
        field_path: Dotted path of the offending field
        record_index: Index of the record being written
    """

    label = "Schema mismatch"

    def __init__(
        self,
        message: str,
        variant: str = "SchemaMismatch",
        field_path: str | None = None,
        record_index: int | None = None,
    ):
        super().__init__(message, variant, field_path, record_index)


class PrecisionLossError(_WrittenValueError):
    """A value cannot be represented in its physical width.

    Raised instead of silently truncating, e.g. for a nanosecond timestamp
    written to a millisecond column or a decimal with too many digits.

    Attributes:
        message: Human-readable error message
        variant: The specific variant (e.g., "Overflow", "Truncation")
        field_path: Dotted path of the offending field
        record_index: Index of the record being written
    """

    label = "Precision loss"

    def __init__(
        self,
        message: str,
        variant: str = "PrecisionLoss",
        field_path: str | None = None,
        record_index: int | None = None,
    ):
        super().__init__(message, variant, field_path, record_index)


class CorruptDataError(TesseraError):
    """Decoded column data is structurally inconsistent.

    Raised when definition/repetition levels, dictionary indices or the
    container framing cannot describe a valid record sequence.

    Attributes:
        message: Human-readable error message
        variant: The specific variant (e.g., "InvalidMagic", "OrphanContinuation")
        column: Dotted path of the column where the error occurred
        page_index: Page number within the column chunk
        record_index: Record number being decoded
    """

    def __init__(
        self,
        message: str,
        variant: str = "Corrupt",
        column: str | None = None,
        page_index: int | None = None,
        record_index: int | None = None,
    ):
        super().__init__(message, variant)
        self.column = column
        self.page_index = page_index
        self.record_index = record_index

    def __str__(self) -> str:
        parts = ["Corrupt data"]
        if self.column:
            parts.append(f"in column '{self.column}'")
        if self.page_index is not None:
            parts.append(f"page {self.page_index}")
        if self.record_index is not None:
            parts.append(f"at record {self.record_index}:")
        else:
            parts.append(":")
        parts.append(self.message)
        return " ".join(parts)

    def __repr__(self) -> str:
        return (
            f"CorruptDataError(message={self.message!r}, variant={self.variant!r}, "
            f"column={self.column!r}, page_index={self.page_index}, "
            f"record_index={self.record_index})"
        )

    def to_dict(self) -> dict:
        """Convert exception attributes to a dictionary."""
        return {
            "message": self.message,
            "variant": self.variant,
            "column": self.column,
            "page_index": self.page_index,
            "record_index": self.record_index,
        }


class CodecError(TesseraError):
    """Error with a page compression codec.

    Raised for unsupported codecs or decompression failures.

    Attributes:
        message: Human-readable error message
        variant: The specific codec error variant (e.g., "UnsupportedCodec", "DecompressionError")
        codec: The codec name that caused the error
    """

    def __init__(
        self,
        message: str,
        variant: str = "Codec",
        codec: str = "",
    ):
        super().__init__(message, variant)
        self.codec = codec

    def __str__(self) -> str:
        parts = ["Codec error"]
        if self.codec:
            parts.append(f"({self.codec})")
        parts.append(f": {self.message}")
        return " ".join(parts)

    def __repr__(self) -> str:
        return (
            f"CodecError(message={self.message!r}, variant={self.variant!r}, "
            f"codec={self.codec!r})"
        )

    def to_dict(self) -> dict:
        """Convert exception attributes to a dictionary."""
        return {
            "message": self.message,
            "variant": self.variant,
            "codec": self.codec,
        }


class ConfigurationError(TesseraError, builtins.ValueError):
    """Invalid configuration parameters.

    Raised when invalid options are passed to Tessera functions
    (e.g., a non-positive page size or an unknown codec name).

    Inherits from both TesseraError and builtins.ValueError, allowing
    idiomatic Python exception handling:

        try:
            tessera.Writer(sink, schema, page_row_limit=-1)
        except ValueError:
            print("Invalid configuration!")

    Attributes:
        message: Human-readable error message
        variant: The specific error variant
    """

    def __init__(
        self,
        message: str,
        variant: str = "Configuration",
    ):
        TesseraError.__init__(self, message, variant)
        builtins.ValueError.__init__(self, message)

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return (
            f"ConfigurationError(message={self.message!r}, variant={self.variant!r})"
        )

    def to_dict(self) -> dict:
        """Convert exception attributes to a dictionary."""
        return {
            "message": self.message,
            "variant": self.variant,
        }
