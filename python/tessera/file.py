# SPDX-License-Identifier: Apache-2.0
# Copyright 2026 Nat Noordanus

"""
Blob container: writer pass, footer and record reader.

Layout::

    b"TSR1" | column chunk 0 | ... | column chunk N-1 | footer JSON | u32 LE footer length | b"TSR1"

Each column chunk is the concatenation of its pages (dictionary page first
when present). The footer records the physical schema, page offsets and the
options the blob was written with; it is the only thing a reader needs.

A write pass buffers every page in memory and emits the whole blob on
``close()``. A pass that fails never emits a partial blob.
"""

from __future__ import annotations

import builtins
import io
import json
import logging
import os
import struct
from typing import IO, TYPE_CHECKING, Any, Iterable, Iterator, Union

from .column import ColumnChunkWriter, ColumnIterator, PageInfo
from .compression import Codec
from .exceptions import CorruptDataError, TesseraError
from .options import WriteOptions
from .physical import PhysicalSchema, map_schema
from .readers import build_reader
from .rows import BuilderFactory, RecordBuilder
from .types import Schema
from .writers import build_writer

if TYPE_CHECKING:
    import polars as pl

logger = logging.getLogger(__name__)

MAGIC = b"TSR1"
FORMAT_VERSION = 1
CREATED_BY = "tessera"

_FOOTER_LENGTH = struct.Struct("<I")

Sink = Union[str, "os.PathLike[str]", IO[bytes]]
Source = Union[str, "os.PathLike[str]", IO[bytes], bytes, bytearray, memoryview]


def _is_path(obj: Any) -> bool:
    return isinstance(obj, (str, os.PathLike))


# =============================================================================
# Writing
# =============================================================================


class Writer:
    """Single-pass record writer.

    Parameters
    ----------
    sink : str | PathLike | binary file object
        Where the blob is written. Paths are written through a temporary
        file beside the target that replaces it only when the pass succeeds;
        a failed pass leaves an existing file untouched.
    schema : Schema
        Logical schema of the records.
    **options
        See ``WriteOptions``.

    Raises
    ------
    ConfigurationError
        If an option is unknown or invalid.
    UnsupportedTypeError
        If the schema has a type with no physical mapping.

    Examples
    --------
    >>> with tessera.Writer("people.tsr", schema) as writer:
    ...     writer.write({"id": 1, "name": "a", "tags": ["x"]})
    ...     writer.write({"id": 2, "name": None, "tags": []})
    """

    def __init__(self, sink: Sink, schema: Schema, **options):
        self.options = WriteOptions.from_kwargs(**options)
        self.schema = schema
        self.physical_schema = map_schema(schema)
        self._codec = Codec(self.options.compression, self.options.compression_level)
        self._columns = [
            ColumnChunkWriter(descriptor, self.options, self._codec)
            for descriptor in self.physical_schema.columns
        ]
        self._tree = build_writer(self.physical_schema, self._columns)
        self._rows_written = 0
        self._closed = False
        self._failed = False

        self._path = None
        if _is_path(sink):
            self._path = os.fspath(sink)
            self._partial_path = f"{self._path}.{os.getpid()}.tmp"
            self._stream = builtins.open(self._partial_path, "wb")
        else:
            self._stream = sink
        logger.debug(
            "Opened writer with %d columns and options %s",
            len(self._columns),
            self.options,
        )

    @property
    def rows_written(self) -> int:
        return self._rows_written

    @property
    def is_closed(self) -> bool:
        return self._closed

    def write(self, row: Any):
        """Append one record.

        Raises
        ------
        SchemaMismatchError
            If the value disagrees with the schema.
        PrecisionLossError
            If a value cannot be stored without loss.
        TesseraError
            With variant ``"Closed"`` if the writer is closed or a previous
            write failed.
        """
        if self._closed or self._failed:
            state = "closed" if self._closed else "unusable after a failed write"
            raise TesseraError(f"writer is {state}", "Closed")
        try:
            self._tree.write_row(row, self._rows_written)
        except Exception:
            self._failed = True
            raise
        self._rows_written += 1

    def write_all(self, rows: Iterable[Any]) -> int:
        for row in rows:
            self.write(row)
        return self._rows_written

    def close(self):
        """Encode every column and emit the blob.

        Closing a writer whose pass failed discards its output instead.
        """
        if self._closed:
            return
        if self._failed:
            logger.warning("Discarding output of failed writer after %d rows", self._rows_written)
            self._discard()
            return
        try:
            blob = self._encode()
            self._stream.write(blob)
            if self._path is not None:
                self._stream.close()
                os.replace(self._partial_path, self._path)
        except BaseException:
            self._discard()
            raise
        self._closed = True
        logger.debug("Wrote %d rows in %d bytes", self._rows_written, len(blob))

    def _encode(self) -> bytes:
        out = io.BytesIO()
        out.write(MAGIC)
        columns = []
        for column in self._columns:
            pages = []
            for info, data in column.finish():
                info.offset = out.tell()
                out.write(data)
                pages.append(info.to_dict())
            columns.append(
                {
                    "path": list(column.descriptor.path),
                    "num_values": column.num_values,
                    "pages": pages,
                }
            )
        footer = {
            "format_version": FORMAT_VERSION,
            "created_by": CREATED_BY,
            "num_rows": self._rows_written,
            "schema": self.schema.to_dict(),
            "physical_schema": self.physical_schema.to_dict(),
            "columns": columns,
            "options": self.options.to_dict(),
        }
        encoded = json.dumps(footer, separators=(",", ":")).encode("utf-8")
        out.write(encoded)
        out.write(_FOOTER_LENGTH.pack(len(encoded)))
        out.write(MAGIC)
        logger.debug("Encoded footer of %d bytes", len(encoded))
        return out.getvalue()

    def _discard(self):
        self._closed = True
        self._failed = True
        if self._path is not None:
            self._stream.close()
            try:
                os.remove(self._partial_path)
            except FileNotFoundError:
                pass

    def __enter__(self) -> Writer:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            self._discard()
        else:
            self.close()
        return False


def write(sink: Sink, schema: Schema, records: Iterable[Any], **options) -> int:
    """Write ``records`` to ``sink`` in a single pass.

    Returns
    -------
    int
        Number of records written.

    Examples
    --------
    >>> buf = io.BytesIO()
    >>> tessera.write(buf, schema, [{"id": 1, "name": "a", "tags": []}])
    1
    """
    with Writer(sink, schema, **options) as writer:
        writer.write_all(records)
    return writer.rows_written


# =============================================================================
# Reading
# =============================================================================


def _read_blob(source: Source) -> bytes:
    if isinstance(source, (bytes, bytearray, memoryview)):
        return bytes(source)
    if _is_path(source):
        with builtins.open(source, "rb") as f:
            return f.read()
    return source.read()


def _parse_footer(blob: bytes) -> dict:
    trailer = len(MAGIC) + _FOOTER_LENGTH.size
    if len(blob) < len(MAGIC) + trailer:
        raise CorruptDataError(f"blob of {len(blob)} bytes is too short", "Truncated")
    if blob[: len(MAGIC)] != MAGIC or blob[-len(MAGIC) :] != MAGIC:
        raise CorruptDataError("bad magic bytes", "InvalidMagic")
    (length,) = _FOOTER_LENGTH.unpack_from(blob, len(blob) - trailer)
    start = len(blob) - trailer - length
    if start < len(MAGIC):
        raise CorruptDataError(f"footer length {length} exceeds blob", "Truncated")
    try:
        footer = json.loads(blob[start : len(blob) - trailer].decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise CorruptDataError(f"footer is not valid JSON: {e}", "InvalidFooter") from None
    if not isinstance(footer, dict):
        raise CorruptDataError("footer is not a JSON object", "InvalidFooter")
    if footer.get("format_version") != FORMAT_VERSION:
        raise CorruptDataError(
            f"unsupported format version {footer.get('format_version')!r}", "InvalidFooter"
        )
    footer["_data_end"] = start
    return footer


def read_metadata(source: Source) -> dict:
    """Return the parsed footer of a blob.

    Useful for inspecting page encodings and sizes.

    Examples
    --------
    >>> meta = tessera.read_metadata(buf.getvalue())
    >>> [p["encoding"] for p in meta["columns"][0]["pages"]]
    ['plain', 'dictionary']
    """
    footer = _parse_footer(_read_blob(source))
    del footer["_data_end"]
    return footer


def read_physical_schema(source: Source) -> PhysicalSchema:
    footer = _parse_footer(_read_blob(source))
    return _physical_schema(footer)


def _physical_schema(footer: dict) -> PhysicalSchema:
    try:
        return PhysicalSchema.from_dict(footer["physical_schema"])
    except (KeyError, TypeError, ValueError) as e:
        raise CorruptDataError(f"invalid physical schema in footer: {e}", "InvalidFooter") from None


class RecordReader(Iterator[Any]):
    """Lazy iterator over the records of one blob.

    Yields exactly ``num_rows`` records, then verifies that every column is
    exhausted.

    Examples
    --------
    >>> with tessera.open("people.tsr") as reader:
    ...     print(reader.schema)
    ...     for record in reader:
    ...         print(record["name"])
    """

    def __init__(self, source: Source, *, row_builder: BuilderFactory | None = None):
        blob = _read_blob(source)
        footer = _parse_footer(blob)
        self.footer = footer
        self.physical_schema = _physical_schema(footer)
        try:
            self.num_rows = int(footer["num_rows"])
            if self.num_rows < 0:
                raise ValueError(f"negative row count {self.num_rows}")
            compression = footer["options"]["compression"]
            column_entries = footer["columns"]
        except (KeyError, TypeError, ValueError) as e:
            raise CorruptDataError(f"incomplete footer: {e}", "InvalidFooter") from None
        codec = Codec(compression)
        iterators = self._column_iterators(blob, footer["_data_end"], column_entries, codec)
        self._tree = build_reader(self.physical_schema, iterators, row_builder or RecordBuilder)
        self._rows_read = 0
        self._closed = False
        self._checked = False
        logger.debug(
            "Opened reader over %d rows in %d columns", self.num_rows, len(iterators)
        )

    def _column_iterators(
        self, blob: bytes, data_end: int, entries: list, codec: Codec
    ) -> list[ColumnIterator]:
        descriptors = self.physical_schema.columns
        if not isinstance(entries, list) or len(entries) != len(descriptors):
            raise CorruptDataError(
                f"footer lists {len(entries) if isinstance(entries, list) else 'no'} "
                f"columns, schema has {len(descriptors)}",
                "InvalidFooter",
            )
        iterators = []
        for descriptor, entry in zip(descriptors, entries):
            try:
                if tuple(entry["path"]) != descriptor.path:
                    raise CorruptDataError(
                        f"footer column {entry['path']} does not match {descriptor.dotted_path}",
                        "InvalidFooter",
                    )
                infos = [PageInfo.from_dict(page) for page in entry["pages"]]
            except (KeyError, TypeError) as e:
                raise CorruptDataError(
                    f"invalid page list: {e}", "InvalidFooter", column=descriptor.dotted_path
                ) from None
            pages = []
            for index, info in enumerate(infos):
                end = info.offset + info.compressed_size
                if info.offset < len(MAGIC) or end > data_end:
                    raise CorruptDataError(
                        "page lies outside the data region",
                        "Truncated",
                        column=descriptor.dotted_path,
                        page_index=index,
                    )
                pages.append((info, blob[info.offset : end]))
            iterators.append(ColumnIterator(descriptor, pages, codec))
        return iterators

    @property
    def schema(self) -> Schema:
        """Logical schema reconstructed from the physical schema."""
        return self.physical_schema.to_logical()

    @property
    def polars_schema(self) -> pl.Schema:
        from .frames import to_polars_schema

        return to_polars_schema(self.schema)

    @property
    def rows_read(self) -> int:
        return self._rows_read

    @property
    def is_finished(self) -> bool:
        return self._closed or self._rows_read >= self.num_rows

    def __iter__(self) -> RecordReader:
        return self

    def __next__(self) -> Any:
        if self.is_finished:
            if not self._closed and not self._checked:
                self._checked = True
                self._tree.check_exhausted()
            raise StopIteration
        record = self._tree.read_row(self._rows_read)
        self._rows_read += 1
        return record

    def close(self):
        self._closed = True

    def __enter__(self) -> RecordReader:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False


def open(source: Source, *, row_builder: BuilderFactory | None = None) -> RecordReader:
    """Open a blob for reading.

    Parameters
    ----------
    source : str | PathLike | binary file object | bytes
        The blob. Paths are read fully and closed before this returns.
    row_builder : callable, optional
        Factory taking a ``StructType`` and returning a ``RowBuilder``.
        Defaults to ``RecordBuilder``; pass ``DictBuilder`` for plain dicts.

    Raises
    ------
    CorruptDataError
        If the magic bytes, footer or page layout are invalid.
    CodecError
        If the blob's codec is not supported.
    """
    return RecordReader(source, row_builder=row_builder)


def read_records(source: Source, *, row_builder: BuilderFactory | None = None) -> list:
    with open(source, row_builder=row_builder) as reader:
        return list(reader)


__all__ = [
    "MAGIC",
    "RecordReader",
    "Writer",
    "open",
    "read_metadata",
    "read_physical_schema",
    "read_records",
    "write",
]
