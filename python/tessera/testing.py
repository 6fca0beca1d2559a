# SPDX-License-Identifier: Apache-2.0
# Copyright 2026 Nat Noordanus

"""
Round-trip validation helpers.

``write_and_validate`` writes records into an in-memory blob, reads them back
from the embedded physical schema alone and checks every record with
``assert_equals``. Failures are ``AssertionError``s naming the record
position and the field path, e.g. ``record[17].tags[2]``.

Logical equality differs from ``==`` where the stored form is the source of
truth:

- floats are equal when bitwise identical or both NaN, so ``-0.0 != 0.0``
- nanosecond timestamps compare as epoch nanoseconds; an expected
  ``datetime`` is promoted
- maps compare as unordered entry sets, expected maps may be given as pairs
- bytes-like values compare by content

Example usage:
    >>> from tessera.testing import write_and_validate
    >>> write_and_validate([{"id": 1, "name": None, "tags": []}], schema)
"""

from __future__ import annotations

import io
import math
import struct
from collections.abc import Mapping
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable

from .file import RecordReader, Writer
from .physical import map_schema
from .rows import accessor_for
from .types import (
    BinaryType,
    BooleanType,
    DecimalType,
    DoubleType,
    FixedType,
    FloatType,
    ListType,
    LogicalType,
    MapType,
    NanoTimestamp,
    Schema,
    StructType,
    TimestampType,
    UnknownType,
)


def write_and_validate(
    records: Iterable[Any],
    schema: Schema,
    *,
    num_records: int | None = None,
    **options,
) -> bytes:
    """Write ``records``, read them back and assert they are logically equal.

    Parameters
    ----------
    records : iterable
        Rows in any form the writer accepts.
    schema : Schema
        Logical schema of the rows.
    num_records : int, optional
        Expected number of rows; checked against what was written.
    **options
        Writer options, e.g. ``dictionary_max_entries=10``.

    Returns
    -------
    bytes
        The blob, for further inspection.
    """
    expected = list(records)
    if num_records is not None and len(expected) != num_records:
        raise AssertionError(f"expected {num_records} records, got {len(expected)}")

    buf = io.BytesIO()
    with Writer(buf, schema, **options) as writer:
        writer.write_all(expected)
    blob = buf.getvalue()

    with RecordReader(blob) as reader:
        if reader.num_rows != len(expected):
            raise AssertionError(
                f"blob holds {reader.num_rows} records, wrote {len(expected)}"
            )
        if map_schema(reader.schema) != writer.physical_schema:
            raise AssertionError("physical schema does not survive the footer")
        struct_type = schema.as_struct()
        for index, row in enumerate(expected):
            try:
                actual = next(reader)
            except StopIteration:
                raise AssertionError(
                    f"reader ended after {index} of {len(expected)} records"
                ) from None
            assert_equals(struct_type, row, actual, f"record[{index}]")
        leftover = next(reader, None)
        if leftover is not None:
            raise AssertionError(f"reader yielded an extra record: {leftover!r}")
    return blob


def assert_equals(t: LogicalType, expected: Any, actual: Any, path: str = "value"):
    """Assert ``actual`` is the logical equal of ``expected`` under type ``t``."""
    if expected is None or actual is None or isinstance(t, UnknownType):
        _check(expected is None and actual is None, path, expected, actual)
        return

    if isinstance(t, StructType):
        exp = accessor_for(t, expected)
        act = accessor_for(t, actual)
        for pos, f in enumerate(t.fields):
            assert_equals(f.field_type, exp.get(pos), act.get(pos), f"{path}.{f.name}")
    elif isinstance(t, ListType):
        _check(isinstance(actual, list), path, expected, actual)
        expected = list(expected)
        _check(len(expected) == len(actual), path, expected, actual, "length differs")
        for i, (e, a) in enumerate(zip(expected, actual)):
            assert_equals(t.element_type, e, a, f"{path}[{i}]")
    elif isinstance(t, MapType):
        _assert_map_equals(t, expected, actual, path)
    else:
        _assert_primitive_equals(t, expected, actual, path)


def _assert_map_equals(t: MapType, expected: Any, actual: Any, path: str):
    _check(isinstance(actual, Mapping), path, expected, actual)
    entries = list(expected.items() if isinstance(expected, Mapping) else expected)
    remaining = list(actual.items())
    _check(len(entries) == len(remaining), path, expected, actual, "size differs")
    for key, value in entries:
        for i, (actual_key, actual_value) in enumerate(remaining):
            if _equals(t.key_type, key, actual_key):
                assert_equals(t.value_type, value, actual_value, f"{path}[{key!r}]")
                del remaining[i]
                break
        else:
            raise AssertionError(f"{path}: key {key!r} missing from {actual!r}")


def _assert_primitive_equals(t: LogicalType, expected: Any, actual: Any, path: str):
    if isinstance(t, BooleanType):
        _check(isinstance(actual, bool) and expected == actual, path, expected, actual)
    elif isinstance(t, FloatType):
        _check(_float_equals(expected, actual, "<f"), path, expected, actual)
    elif isinstance(t, DoubleType):
        _check(_float_equals(expected, actual, "<d"), path, expected, actual)
    elif isinstance(t, DecimalType):
        _check(
            isinstance(actual, Decimal)
            and actual.as_tuple().exponent == -t.scale
            and expected == actual,
            path,
            expected,
            actual,
        )
    elif isinstance(t, TimestampType) and t.unit == "ns":
        if isinstance(expected, datetime):
            expected = NanoTimestamp.from_datetime(expected)
        _check(
            isinstance(actual, NanoTimestamp)
            and expected.epoch_nanos == actual.epoch_nanos
            and expected.with_zone == actual.with_zone,
            path,
            expected,
            actual,
        )
    elif isinstance(t, (BinaryType, FixedType)):
        _check(bytes(expected) == actual, path, expected, actual)
    else:
        _check(expected == actual, path, expected, actual)


def _float_equals(expected: Any, actual: Any, fmt: str) -> bool:
    if not isinstance(actual, float):
        return False
    expected = float(expected)
    if math.isnan(expected) or math.isnan(actual):
        return math.isnan(expected) and math.isnan(actual)
    return struct.pack(fmt, expected) == struct.pack(fmt, actual)


def _equals(t: LogicalType, expected: Any, actual: Any) -> bool:
    try:
        assert_equals(t, expected, actual)
    except AssertionError:
        return False
    return True


def _check(ok: bool, path: str, expected: Any, actual: Any, reason: str = ""):
    if not ok:
        detail = f" ({reason})" if reason else ""
        raise AssertionError(f"{path}: expected {expected!r}, got {actual!r}{detail}")
