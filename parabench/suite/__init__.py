"""
Parallel benchmark suite engine.

This package runs a map of named workloads across a pool of parallel
workers, verifies their results, folds the timings into per-iteration
scores and compares runs at different worker counts for scalability.
"""

from .collector import AggregateResult, BenchmarkSeries, SeriesStats, StatisticsAggregator
from .config import NOTSET, BenchmarkDefinition, RunOptions, SuiteConfig
from .pool import (
    POOL_KINDS,
    ProcessWorkerPool,
    SerialWorkerPool,
    ThreadWorkerPool,
    WorkerPool,
    create_pool,
)
from .runner import SuiteRunner, suite_run
from .scalability import (
    ScalabilityResult,
    SuiteComparison,
    calc_scalability,
    compare,
    find_outliers,
    suite_calc,
)

__all__ = [
    "NOTSET",
    "BenchmarkDefinition",
    "SuiteConfig",
    "RunOptions",
    "SeriesStats",
    "BenchmarkSeries",
    "AggregateResult",
    "StatisticsAggregator",
    "POOL_KINDS",
    "WorkerPool",
    "SerialWorkerPool",
    "ThreadWorkerPool",
    "ProcessWorkerPool",
    "create_pool",
    "SuiteRunner",
    "suite_run",
    "ScalabilityResult",
    "SuiteComparison",
    "compare",
    "calc_scalability",
    "find_outliers",
    "suite_calc",
]
