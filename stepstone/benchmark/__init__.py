"""Benchmark harness for storage backends."""

from stepstone.benchmark.harness import (
    BenchmarkHarness,
    BenchmarkOperation,
    BenchmarkPlan,
    BenchmarkResult,
)

__all__ = [
    "BenchmarkHarness",
    "BenchmarkOperation",
    "BenchmarkPlan",
    "BenchmarkResult",
]
