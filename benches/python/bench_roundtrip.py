#!/usr/bin/env python3
"""
Round-trip benchmarks for the tessera codec.

Measures, per scenario:
- write: encode generated records into an in-memory blob
- read: decode the blob back into records
- read_frame: decode the blob into a Polars DataFrame
- fastavro_write / fastavro_read: the same records through fastavro, as a
  baseline for a row-oriented format

Scenarios combine a schema, a record generator and writer options, so the
effect of dictionary fallback and compression codecs shows up side by side.

JSON output:
Use --output to save a structured report with metadata, configuration and
raw timings.

Usage:
    # Quick comparison (fewer iterations)
    python benches/python/bench_roundtrip.py --quick

    # Specific scenario
    python benches/python/bench_roundtrip.py --scenario nested_fallback

    # Specific operations
    python benches/python/bench_roundtrip.py --operations write read

    # Save JSON report
    python benches/python/bench_roundtrip.py --output results.json
"""

import argparse
import gc
import io
import json
import os
import platform
import statistics
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable

import fastavro
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

import tessera
from tessera.frames import read_frame
from tessera.random_data import (
    generate,
    generate_dictionary_encodable_records,
    generate_fallback_records,
)
from tessera.types import (
    BooleanType,
    DateType,
    DecimalType,
    DoubleType,
    IntegerType,
    ListType,
    LongType,
    MapType,
    NestedField,
    Schema,
    StringType,
    StructType,
    TimestampType,
)

console = Console()

SEED = 20240229


# =============================================================================
# Schemas
# =============================================================================


SIMPLE_SCHEMA = Schema(
    NestedField(1, "id", LongType(), optional=False),
    NestedField(2, "name", StringType()),
    NestedField(3, "score", DoubleType()),
    NestedField(4, "active", BooleanType()),
    NestedField(5, "created", TimestampType("us", with_zone=True)),
)

WIDE_SCHEMA = Schema(
    *[
        NestedField(i + 1, f"col_{i:03d}", [LongType(), StringType(), DoubleType()][i % 3])
        for i in range(60)
    ]
)

NESTED_SCHEMA = Schema(
    NestedField(1, "id", LongType(), optional=False),
    NestedField(
        2,
        "location",
        StructType(
            NestedField(3, "lat", DoubleType(), optional=False),
            NestedField(4, "lon", DoubleType(), optional=False),
        ),
    ),
    NestedField(5, "scores", ListType(6, IntegerType())),
    NestedField(7, "attributes", MapType(8, StringType(), 9, StringType())),
    NestedField(
        10,
        "orders",
        ListType(
            11,
            StructType(
                NestedField(12, "day", DateType()),
                NestedField(13, "amount", DecimalType(18, 4)),
                NestedField(14, "items", ListType(15, StringType())),
            ),
        ),
    ),
)


# =============================================================================
# Scenarios
# =============================================================================


@dataclass
class Scenario:
    name: str
    schema: Schema
    make_records: Callable[[int], list]
    options: dict = field(default_factory=dict)
    description: str = ""


SCENARIOS = {
    "simple_random": Scenario(
        name="simple_random",
        schema=SIMPLE_SCHEMA,
        make_records=lambda n: generate(SIMPLE_SCHEMA, n, SEED),
        description="5 cols, high cardinality - raw throughput",
    ),
    "simple_dictionary": Scenario(
        name="simple_dictionary",
        schema=SIMPLE_SCHEMA,
        make_records=lambda n: generate_dictionary_encodable_records(SIMPLE_SCHEMA, n, SEED),
        description="5 cols, low cardinality - dictionary pages",
    ),
    "wide_random": Scenario(
        name="wide_random",
        schema=WIDE_SCHEMA,
        make_records=lambda n: generate(WIDE_SCHEMA, n, SEED),
        description="60 cols - column handling",
    ),
    "nested_random": Scenario(
        name="nested_random",
        schema=NESTED_SCHEMA,
        make_records=lambda n: generate(NESTED_SCHEMA, n, SEED),
        description="structs, lists of structs, maps - level assembly",
    ),
    "nested_fallback": Scenario(
        name="nested_fallback",
        schema=NESTED_SCHEMA,
        make_records=lambda n: generate_fallback_records(
            NESTED_SCHEMA, n, SEED, dictionary_size=n // 2
        ),
        options={"dictionary_max_entries": 1_000},
        description="dictionary exhausted half way - fallback to plain",
    ),
    "simple_uncompressed": Scenario(
        name="simple_uncompressed",
        schema=SIMPLE_SCHEMA,
        make_records=lambda n: generate(SIMPLE_SCHEMA, n, SEED),
        options={"compression": "uncompressed"},
        description="5 cols, no page compression",
    ),
}


# =============================================================================
# Operations
# =============================================================================


@dataclass
class Prepared:
    """Inputs shared by every operation of one scenario."""

    scenario: Scenario
    records: list
    blob: bytes
    avro_schema: dict
    avro_records: list
    avro_blob: bytes


def _avro_type(t):
    if isinstance(t, BooleanType):
        return "boolean"
    if isinstance(t, IntegerType):
        return "int"
    if isinstance(t, LongType):
        return "long"
    if isinstance(t, DoubleType):
        return "double"
    if isinstance(t, StringType):
        return "string"
    if isinstance(t, DateType):
        return {"type": "int", "logicalType": "date"}
    if isinstance(t, TimestampType):
        return {"type": "long", "logicalType": "timestamp-micros"}
    if isinstance(t, DecimalType):
        return {"type": "bytes", "logicalType": "decimal", "precision": t.precision, "scale": t.scale}
    if isinstance(t, ListType):
        return {"type": "array", "items": ["null", _avro_type(t.element_type)]}
    if isinstance(t, MapType):
        return {"type": "map", "values": ["null", _avro_type(t.value_type)]}
    if isinstance(t, StructType):
        return _avro_record(t, f"r{id(t)}")
    raise TypeError(f"no Avro type for {t}")


def _avro_record(struct, name):
    return {
        "type": "record",
        "name": name,
        "fields": [
            {"name": f.name, "type": ["null", _avro_type(f.field_type)]} for f in struct.fields
        ],
    }


def prepare(scenario: Scenario, num_records: int) -> Prepared:
    records = scenario.make_records(num_records)
    buf = io.BytesIO()
    tessera.write(buf, scenario.schema, records, **scenario.options)

    avro_schema = fastavro.parse_schema(_avro_record(scenario.schema.as_struct(), "Row"))
    avro_records = tessera.read_records(buf.getvalue(), row_builder=tessera.DictBuilder)
    avro_buf = io.BytesIO()
    fastavro.writer(avro_buf, avro_schema, avro_records)
    return Prepared(scenario, records, buf.getvalue(), avro_schema, avro_records, avro_buf.getvalue())


def op_write(p: Prepared):
    return tessera.write(io.BytesIO(), p.scenario.schema, p.records, **p.scenario.options)


def op_read(p: Prepared):
    return sum(1 for _ in tessera.open(p.blob))


def op_read_frame(p: Prepared):
    return read_frame(p.blob)


def op_fastavro_write(p: Prepared):
    fastavro.writer(io.BytesIO(), p.avro_schema, p.avro_records)


def op_fastavro_read(p: Prepared):
    return sum(1 for _ in fastavro.reader(io.BytesIO(p.avro_blob)))


OPERATIONS = {
    "write": op_write,
    "read": op_read,
    "read_frame": op_read_frame,
    "fastavro_write": op_fastavro_write,
    "fastavro_read": op_fastavro_read,
}


# =============================================================================
# Benchmark Runner with Statistics
# =============================================================================


def run_timed(func: Callable, *args) -> float:
    gc.collect()
    start = time.perf_counter()
    func(*args)
    return time.perf_counter() - start


def benchmark_operation(func: Callable, prepared: Prepared, warmup_runs: int, timed_runs: int) -> dict:
    """Benchmark one operation with warmup and multiple timed runs."""
    for _ in range(warmup_runs):
        func(prepared)

    times = [run_timed(func, prepared) for _ in range(timed_runs)]
    return {
        "mean_sec": statistics.mean(times),
        "stdev_sec": statistics.stdev(times) if len(times) > 1 else 0,
        "median_sec": statistics.median(times),
        "min_sec": min(times),
        "max_sec": max(times),
        "runs": timed_runs,
        "times": times,
    }


def run_scenario(
    scenario: Scenario,
    operations: dict,
    num_records: int,
    warmup_runs: int,
    timed_runs: int,
    fail_fast: bool,
) -> dict:
    with console.status(f"Generating {num_records:,} records..."):
        prepared = prepare(scenario, num_records)
    console.print(
        f"  [dim]blob: {len(prepared.blob):,} bytes, avro: {len(prepared.avro_blob):,} bytes[/]"
    )

    results = {"blob_bytes": len(prepared.blob), "avro_bytes": len(prepared.avro_blob)}
    for name, func in operations.items():
        try:
            with console.status(f"Running {name}..."):
                results[name] = benchmark_operation(func, prepared, warmup_runs, timed_runs)
            console.print(f"  [green]✓[/] {name}: {results[name]['mean_sec']:.3f}s")
        except Exception as e:
            if fail_fast:
                raise
            results[name] = {"error": f"{type(e).__name__}: {e}"}
            console.print(f"  [red]✗[/] {name}: {results[name]['error']}")
    return results


def print_comparison_table(all_results: dict, operations: list[str]):
    """Print timings per scenario and operation using rich tables."""
    console.print()
    table = Table(title="Round-trip timings (mean ± stdev)", box=box.ROUNDED, show_header=True)
    table.add_column("Scenario", style="cyan", no_wrap=True)
    table.add_column("Size", justify="right")
    for name in operations:
        table.add_column(name, justify="right")

    for scenario_name, results in all_results.items():
        ratio = results["blob_bytes"] / results["avro_bytes"] if results["avro_bytes"] else 0
        row = [scenario_name, f"{results['blob_bytes']:,} ({ratio:.2f}x avro)"]
        for name in operations:
            r = results.get(name)
            if r is None:
                row.append("-")
            elif "error" in r:
                row.append("[red]ERROR[/]")
            else:
                row.append(f"[green]{r['mean_sec']:.3f}s[/] ± {r['stdev_sec']:.3f}s")
        table.add_row(*row)

    console.print(table)


def main():
    parser = argparse.ArgumentParser(
        description="Tessera round-trip benchmarks",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--scenario",
        choices=list(SCENARIOS.keys()) + ["all"],
        default="all",
        help="Scenario to run (default: all)",
    )
    parser.add_argument(
        "--records",
        type=int,
        default=int(os.environ.get("BENCH_RECORDS", "100000")),
        help="Records per scenario (default: 100000)",
    )
    parser.add_argument(
        "--quick",
        action="store_true",
        default=os.environ.get("BENCH_QUICK", "").lower() in ("t", "true", "1"),
        help="Quick mode: 1 warmup, 3 timed runs",
    )
    parser.add_argument(
        "--operations",
        nargs="+",
        choices=list(OPERATIONS.keys()),
        default=list(OPERATIONS.keys()),
        help="Operations to benchmark (default: all)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=os.environ.get("BENCH_OUTPUT"),
        help="Output JSON file for results",
    )
    parser.add_argument(
        "--fail-fast",
        action="store_true",
        default=os.environ.get("BENCH_FAIL_FAST", "").lower() in ("t", "true", "1"),
        help="Abort on first error instead of continuing",
    )
    args = parser.parse_args()

    warmup_runs, timed_runs = (1, 3) if args.quick else (2, 5)
    scenarios = list(SCENARIOS.values()) if args.scenario == "all" else [SCENARIOS[args.scenario]]
    operations = {k: v for k, v in OPERATIONS.items() if k in args.operations}

    config_info = f"""[cyan]Records:[/] {args.records:,}
[cyan]Warmups:[/] {warmup_runs}
[cyan]Timed runs:[/] {timed_runs}
[cyan]Scenarios:[/] {', '.join(s.name for s in scenarios)}
[cyan]Operations:[/] {', '.join(operations)}"""
    console.print(Panel(config_info, title="[bold]Benchmark Configuration[/]", border_style="blue"))

    all_results = {}
    for i, scenario in enumerate(scenarios, 1):
        console.print()
        console.print(
            Panel(
                f"[bold cyan]Scenario {i}/{len(scenarios)}:[/] [bold]{scenario.name}[/] - {scenario.description}",
                border_style="cyan",
            )
        )
        all_results[scenario.name] = run_scenario(
            scenario, operations, args.records, warmup_runs, timed_runs, args.fail_fast
        )

    print_comparison_table(all_results, list(operations))

    if args.output:
        report = {
            "metadata": {
                "timestamp": datetime.now().isoformat(),
                "python_version": platform.python_version(),
                "platform": platform.platform(),
                "machine": platform.machine(),
                "tessera_version": tessera.__version__,
            },
            "configuration": {
                "records": args.records,
                "warmup_runs": warmup_runs,
                "timed_runs": timed_runs,
            },
            "scenarios": {
                s.name: {"description": s.description, "options": s.options} for s in scenarios
            },
            "results": all_results,
        }
        with open(args.output, "w") as f:
            json.dump(report, f, indent=2)
        console.print(f"\n[green]✓[/] Results saved to: [cyan]{args.output}[/]")


if __name__ == "__main__":
    main()
