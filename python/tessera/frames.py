# SPDX-License-Identifier: Apache-2.0
# Copyright 2026 Nat Noordanus

"""
Polars bridge.

Logical types map onto Polars dtypes as follows:

==================  ==========================================
Logical type        Polars dtype
==================  ==========================================
boolean             Boolean
int / long          Int32 / Int64
float / double      Float32 / Float64
decimal(p, s)       Decimal(p, s)
date / time         Date / Time
timestamp[tz]_<u>   Datetime(u) / Datetime(u, "UTC")
string / uuid       String
binary / fixed      Binary
unknown             Null
list<T>             List(T)
map<K, V>           List(Struct({"key": K, "value": V}))
struct              Struct
==================  ==========================================

Example usage:
    >>> df = tessera.frames.read_frame("people.tsr")
    >>> df.schema == tessera.frames.to_polars_schema(schema)
    True
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

import polars as pl

from .file import open as open_blob
from .rows import DictBuilder
from .types import (
    BinaryType,
    BooleanType,
    DateType,
    DecimalType,
    DoubleType,
    FixedType,
    FloatType,
    IntegerType,
    ListType,
    LogicalType,
    LongType,
    MapType,
    NanoTimestamp,
    Schema,
    StringType,
    StructType,
    TimestampType,
    TimeType,
    UnknownType,
    UUIDType,
)

logger = logging.getLogger(__name__)


def to_polars_schema(schema: Schema) -> pl.Schema:
    """Polars schema for DataFrames holding records of ``schema``."""
    return pl.Schema({f.name: to_polars_dtype(f.field_type) for f in schema.columns})


def to_polars_dtype(t: LogicalType) -> pl.DataType:
    return _dtype(t, storage=False)


def _dtype(t: LogicalType, storage: bool) -> pl.DataType:
    if isinstance(t, StructType):
        return pl.Struct({f.name: _dtype(f.field_type, storage) for f in t.fields})
    if isinstance(t, ListType):
        return pl.List(_dtype(t.element_type, storage))
    if isinstance(t, MapType):
        return pl.List(
            pl.Struct(
                {
                    "key": _dtype(t.key_type, storage),
                    "value": _dtype(t.value_type, storage),
                }
            )
        )
    if isinstance(t, TimestampType):
        if storage and t.unit == "ns":
            # datetime cannot hold nanoseconds; build from epoch nanos and cast
            return pl.Int64
        return pl.Datetime(t.unit, "UTC" if t.with_zone else None)
    if isinstance(t, BooleanType):
        return pl.Boolean
    if isinstance(t, IntegerType):
        return pl.Int32
    if isinstance(t, LongType):
        return pl.Int64
    if isinstance(t, FloatType):
        return pl.Float32
    if isinstance(t, DoubleType):
        return pl.Float64
    if isinstance(t, DecimalType):
        return pl.Decimal(precision=t.precision, scale=t.scale)
    if isinstance(t, DateType):
        return pl.Date
    if isinstance(t, TimeType):
        return pl.Time
    if isinstance(t, (StringType, UUIDType)):
        return pl.String
    if isinstance(t, (BinaryType, FixedType)):
        return pl.Binary
    if isinstance(t, UnknownType):
        return pl.Null
    raise TypeError(f"no Polars dtype for {t}")


def _to_polars_value(t: LogicalType, value: Any) -> Any:
    if value is None:
        return None
    if isinstance(t, StructType):
        return {f.name: _to_polars_value(f.field_type, value[f.name]) for f in t.fields}
    if isinstance(t, ListType):
        return [_to_polars_value(t.element_type, v) for v in value]
    if isinstance(t, MapType):
        return [
            {
                "key": _to_polars_value(t.key_type, k),
                "value": _to_polars_value(t.value_type, v),
            }
            for k, v in value.items()
        ]
    if isinstance(value, NanoTimestamp):
        return value.epoch_nanos
    if isinstance(value, uuid.UUID):
        return str(value)
    return value


def read_frame(source: Any) -> pl.DataFrame:
    """Decode a blob into a DataFrame.

    The frame's schema equals ``to_polars_schema`` of the blob's schema.

    Examples
    --------
    >>> df = read_frame(buf.getvalue())
    >>> df.select("id", pl.col("tags").list.len())
    """
    with open_blob(source, row_builder=DictBuilder) as reader:
        schema = reader.schema
        columns: dict[str, list] = {f.name: [] for f in schema.columns}
        for row in reader:
            for f in schema.columns:
                columns[f.name].append(_to_polars_value(f.field_type, row[f.name]))

    storage = pl.Schema({f.name: _dtype(f.field_type, storage=True) for f in schema.columns})
    target = to_polars_schema(schema)
    df = pl.DataFrame(columns, schema=storage)
    if storage != target:
        df = df.cast(dict(target))
    logger.debug("Decoded frame of shape %s", df.shape)
    return df
