#!/usr/bin/env python3
"""Benchmark script to measure checker throughput.

Usage:
    python benchmark.py [--iterations=5] [--jobs=N] <path>...

This script measures:
- Sequential runs (one file at a time)
- Parallel runs (thread pool)
- Per-rule breakdown (one rule enabled at a time)
"""

from __future__ import annotations

import argparse
import subprocess
import sys
import time
from pathlib import Path
from typing import Any

RULES = [
    "R-INDENT-2",
    "R-BRACE-NEWLINE",
    "R-OP-SPACING",
    "R-NO-VERTICAL-ALIGN",
    "R-NAMING-MEMBER",
    "R-INCLUDE-ORDER",
]


def run_checker(paths: list[str], *flags: str) -> dict[str, Any]:
    """Run the checker once and measure time.

    Returns:
        Dict with timing and result info
    """
    start = time.perf_counter()
    result = subprocess.run(
        [sys.executable, "-m", "cpp_style_checker", *flags, *paths],
        capture_output=True,
        text=True,
        check=False,
    )
    elapsed = time.perf_counter() - start

    return {
        "flags": " ".join(flags),
        "elapsed_ms": elapsed * 1000,
        "return_code": result.returncode,
        "diagnostics": len(result.stdout.splitlines()),
    }


def average(results: list[dict[str, Any]]) -> float:
    return sum(r["elapsed_ms"] for r in results) / len(results)


def main() -> None:
    """Run benchmark suite."""
    parser = argparse.ArgumentParser(description="Benchmark cpp-style-check")
    parser.add_argument("paths", nargs="+", help="Files or directories to check")
    parser.add_argument(
        "--iterations",
        type=int,
        default=3,
        help="Number of iterations for each run type (default: 3)",
    )
    parser.add_argument(
        "--jobs",
        type=int,
        default=None,
        help="Worker threads for the parallel runs (default: CPU count)",
    )
    args = parser.parse_args()

    missing = [p for p in args.paths if not Path(p).exists()]
    if missing:
        parser.error(f"no such file or directory: {', '.join(missing)}")

    print("cpp-style-check Performance Benchmark")
    print("=" * 60)

    parallel_flags = ["--jobs", str(args.jobs)] if args.jobs else []

    print("\n\n📊 SEQUENTIAL runs")
    print("=" * 60)
    sequential = []
    for i in range(args.iterations):
        result = run_checker(args.paths, "--sequential")
        sequential.append(result)
        print(
            f"  run {i + 1}/{args.iterations} {result['elapsed_ms']:8.2f} ms "
            f"({result['diagnostics']} diagnostics)"
        )

    print("\n\n📊 PARALLEL runs")
    print("=" * 60)
    parallel = []
    for i in range(args.iterations):
        result = run_checker(args.paths, *parallel_flags)
        parallel.append(result)
        print(
            f"  run {i + 1}/{args.iterations} {result['elapsed_ms']:8.2f} ms "
            f"({result['diagnostics']} diagnostics)"
        )

    print("\n\n" + "=" * 60)
    print("📈 SUMMARY")
    print("=" * 60)

    sequential_avg = average(sequential)
    parallel_avg = average(parallel)
    print(f"\nSequential:                  {sequential_avg:8.2f} ms")
    print(f"Parallel:                    {parallel_avg:8.2f} ms")
    print(f"Speedup:                     {(1 - parallel_avg / sequential_avg) * 100:7.1f}%")

    print("\n" + "-" * 60)
    print("Per-rule averages (sequential):")
    print("-" * 60)

    for rule in RULES:
        results = [
            run_checker(args.paths, "--sequential", f"--rules={rule}")
            for _ in range(args.iterations)
        ]
        print(f"  {rule:30s} {average(results):8.2f} ms")


if __name__ == "__main__":
    main()
