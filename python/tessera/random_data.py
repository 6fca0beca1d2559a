# SPDX-License-Identifier: Apache-2.0
# Copyright 2026 Nat Noordanus

"""
Seeded random and adversarial records for round-trip testing.

Three generators share one traversal of the schema:

- ``generate``: random values, with boundary values (integer limits, NaN,
  infinities, -0.0, empty strings and bytes, max-precision decimals,
  epoch-adjacent and sub-microsecond timestamps) drawn far more often than
  chance would
- ``generate_dictionary_encodable_records``: every primitive value is drawn
  from a small fixed pool per type, so columns stay dictionary-encoded
- ``generate_fallback_records``: the first ``dictionary_size`` records are
  dictionary-encodable, the rest high-cardinality, forcing the
  dictionary-to-plain fallback mid-column

All randomness comes from one ``random.Random(seed)``; the same schema, count
and seed always yield the same records.

Example usage:
    >>> records = generate(schema, 100, seed=19981)
    >>> write_and_validate(records, schema)
"""

from __future__ import annotations

import random
import string
import struct
import sys
import uuid
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any

from .rows import Record
from .types import (
    EPOCH,
    EPOCH_UTC,
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
    NestedField,
    Schema,
    StringType,
    StructType,
    TimestampType,
    TimeType,
    UnknownType,
    UUIDType,
)

NULL_PROBABILITY = 0.05
# One draw in EDGE_ODDS picks a boundary value.
EDGE_ODDS = 5
MAX_COLLECTION_SIZE = 5
DICTIONARY_POOL_SIZE = 10

FLOAT32_MAX = 3.4028234663852886e38
FLOAT32_MIN_POSITIVE = 1.401298464324817e-45

_EPOCH_DATE = EPOCH.date()
_CHARS = string.ascii_letters + string.digits + " _-"
_UNICODE_EDGES = ["😀🎉", "مرحبا", "é", "\x00", "line\r\nbreak", "𝔘𝔫𝔦𝔠𝔬𝔡𝔢"]


def to_float32(value: float) -> float:
    """Round a float to the nearest float32."""
    return struct.unpack("<f", struct.pack("<f", value))[0]


class RandomDataGenerator:
    """High-cardinality values with a heavy dose of boundary cases."""

    def __init__(self, seed: int):
        self.random = random.Random(seed)

    def records(self, schema: Schema, count: int) -> list[Record]:
        struct_type = schema.as_struct()
        return [self.record(struct_type, index) for index in range(count)]

    def record(self, struct_type: StructType, index: int = 0) -> Record:
        return Record(struct_type, [self.field_value(f) for f in struct_type.fields])

    def field_value(self, f: NestedField) -> Any:
        if f.optional and self.random.random() < NULL_PROBABILITY:
            return None
        return self.value(f.field_type)

    def value(self, t: LogicalType) -> Any:
        if isinstance(t, StructType):
            return self.record(t)
        if isinstance(t, ListType):
            size = self.random.randrange(MAX_COLLECTION_SIZE)
            return [self.field_value(t.element_field) for _ in range(size)]
        if isinstance(t, MapType):
            return self.map_value(t)
        if isinstance(t, UnknownType):
            return None
        return self.primitive(t)

    def map_value(self, t: MapType) -> dict:
        size = self.random.randrange(MAX_COLLECTION_SIZE)
        result = {}
        for _ in range(size):
            key = self.primitive(t.key_type)
            if key != key or key in result:
                # NaN keys cannot be looked up; repeats collapse
                continue
            result[key] = self.field_value(t.value_field)
        return result

    def primitive(self, t: LogicalType) -> Any:
        if self.random.randrange(EDGE_ODDS) == 0:
            edges = edge_values(t)
            if edges:
                return self.random.choice(edges)
        return self.random_primitive(t)

    def random_primitive(self, t: LogicalType) -> Any:
        rng = self.random
        if isinstance(t, BooleanType):
            return rng.random() < 0.5
        if isinstance(t, IntegerType):
            return rng.randint(-(2**31), 2**31 - 1)
        if isinstance(t, LongType):
            return rng.randint(-(2**63), 2**63 - 1)
        if isinstance(t, FloatType):
            return to_float32(rng.uniform(-1e6, 1e6))
        if isinstance(t, DoubleType):
            return rng.uniform(-1e12, 1e12)
        if isinstance(t, DecimalType):
            bound = 10**t.precision - 1
            return _decimal(rng.randint(-bound, bound), t.scale)
        if isinstance(t, DateType):
            return _EPOCH_DATE + timedelta(days=rng.randint(-36_500, 36_500))
        if isinstance(t, TimeType):
            micros = rng.randrange(86_400 * 1_000_000)
            return _time_of_day(micros)
        if isinstance(t, TimestampType):
            return self.random_timestamp(t)
        if isinstance(t, StringType):
            length = rng.randrange(24)
            return "".join(rng.choice(_CHARS) for _ in range(length))
        if isinstance(t, BinaryType):
            return self.random_bytes(rng.randrange(24))
        if isinstance(t, FixedType):
            return self.random_bytes(t.length)
        if isinstance(t, UUIDType):
            return uuid.UUID(int=rng.getrandbits(128))
        raise ValueError(f"cannot generate values for {t}")

    def random_timestamp(self, t: TimestampType) -> Any:
        # roughly 1870 to 2070
        micros = self.random.randint(-(100 * 365 * 86_400 * 10**6), 100 * 365 * 86_400 * 10**6)
        if t.unit == "ns":
            return NanoTimestamp(micros * 1_000 + self.random.randrange(1_000), t.with_zone)
        if t.unit == "ms":
            micros -= micros % 1_000
        base = EPOCH_UTC if t.with_zone else EPOCH
        return base + timedelta(microseconds=micros)

    def random_bytes(self, length: int) -> bytes:
        return bytes(self.random.randrange(256) for _ in range(length))


class DictionaryEncodableGenerator(RandomDataGenerator):
    """Primitives come from a small per-type pool, keeping cardinality low."""

    def __init__(self, seed: int, pool_size: int = DICTIONARY_POOL_SIZE):
        super().__init__(seed)
        self.pool_size = pool_size
        self._pools: dict[str, list] = {}

    def primitive(self, t: LogicalType) -> Any:
        key = str(t)
        pool = self._pools.get(key)
        if pool is None:
            pool = [super(DictionaryEncodableGenerator, self).primitive(t) for _ in range(self.pool_size)]
            self._pools[key] = pool
        return self.random.choice(pool)


class FallbackGenerator(DictionaryEncodableGenerator):
    """Low-cardinality records first, then high-cardinality ones."""

    def __init__(self, seed: int, dictionary_size: int):
        super().__init__(seed)
        self.dictionary_size = dictionary_size
        self._high_cardinality = False

    def record(self, struct_type: StructType, index: int = 0) -> Record:
        if struct_type is self._root:
            self._high_cardinality = index >= self.dictionary_size
        return super().record(struct_type, index)

    def records(self, schema: Schema, count: int) -> list[Record]:
        self._root = schema.as_struct()
        return super().records(schema, count)

    def primitive(self, t: LogicalType) -> Any:
        if self._high_cardinality:
            return RandomDataGenerator.primitive(self, t)
        return super().primitive(t)


def edge_values(t: LogicalType) -> list:
    """Boundary values for a primitive type."""
    if isinstance(t, BooleanType):
        return [True, False]
    if isinstance(t, IntegerType):
        return [-(2**31), 2**31 - 1, 0, -1, 1]
    if isinstance(t, LongType):
        return [-(2**63), 2**63 - 1, 0, -1, 1]
    if isinstance(t, FloatType):
        nan, inf = float("nan"), float("inf")
        return [nan, inf, -inf, 0.0, -0.0, FLOAT32_MAX, -FLOAT32_MAX, FLOAT32_MIN_POSITIVE]
    if isinstance(t, DoubleType):
        nan, inf = float("nan"), float("inf")
        return [nan, inf, -inf, 0.0, -0.0, sys.float_info.max, -sys.float_info.max, 5e-324]
    if isinstance(t, DecimalType):
        bound = 10**t.precision - 1
        return [_decimal(bound, t.scale), _decimal(-bound, t.scale), _decimal(0, t.scale), _decimal(1, t.scale)]
    if isinstance(t, DateType):
        return [_EPOCH_DATE, _EPOCH_DATE - timedelta(days=1), date(1, 1, 1), date(9999, 12, 31)]
    if isinstance(t, TimeType):
        return [time(0), time(23, 59, 59, 999_999), time(12)]
    if isinstance(t, TimestampType):
        return _timestamp_edges(t)
    if isinstance(t, StringType):
        return ["", "x" * 1024] + _UNICODE_EDGES
    if isinstance(t, BinaryType):
        return [b"", b"\x00" * 16, b"\xff" * 16, bytes(range(256))]
    if isinstance(t, FixedType):
        return [b"\x00" * t.length, b"\xff" * t.length]
    if isinstance(t, UUIDType):
        return [uuid.UUID(int=0), uuid.UUID(int=2**128 - 1)]
    return []


def _timestamp_edges(t: TimestampType) -> list:
    if t.unit == "ns":
        return [
            NanoTimestamp(n, t.with_zone)
            for n in (0, 1, -1, 999, 1_000_000_001, 2**62, -(2**62))
        ]
    tz = timezone.utc if t.with_zone else None
    base = EPOCH_UTC if t.with_zone else EPOCH
    step = timedelta(milliseconds=1) if t.unit == "ms" else timedelta(microseconds=1)
    return [
        base,
        base - step,
        base + step,
        datetime(1, 1, 1, tzinfo=tz),
        datetime(9999, 12, 31, 23, 59, 59, 999_000, tzinfo=tz),
    ]


def _decimal(unscaled: int, scale: int) -> Decimal:
    digits = tuple(int(d) for d in str(abs(unscaled)))
    return Decimal((1 if unscaled < 0 else 0, digits, -scale))


def _time_of_day(micros: int) -> time:
    seconds, micros = divmod(micros, 1_000_000)
    minutes, seconds = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)
    return time(hours, minutes, seconds, micros)


def generate(schema: Schema, count: int, seed: int) -> list[Record]:
    """``count`` random records with boundary values mixed in."""
    return RandomDataGenerator(seed).records(schema, count)


def generate_dictionary_encodable_records(schema: Schema, count: int, seed: int) -> list[Record]:
    """``count`` records whose primitives come from small per-type pools."""
    return DictionaryEncodableGenerator(seed).records(schema, count)


def generate_fallback_records(
    schema: Schema, count: int, seed: int, dictionary_size: int
) -> list[Record]:
    """``dictionary_size`` low-cardinality records followed by high-cardinality ones."""
    return FallbackGenerator(seed, dictionary_size).records(schema, count)
