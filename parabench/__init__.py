"""
Parallel CPU benchmark harness.

Runs a suite of named workloads on one or more parallel workers, checks
their results against expected values, scores them against reference
times and reports how well the suite scales with the worker count.
"""

from .errors import ConfigurationError, ParabenchError, ScalabilityUnavailableError
from .suite import (
    NOTSET,
    AggregateResult,
    BenchmarkDefinition,
    ScalabilityResult,
    SuiteComparison,
    SuiteConfig,
    SuiteRunner,
    calc_scalability,
    compare,
    suite_calc,
    suite_run,
)
from .system import system_identity

__version__ = "0.1.0"

__all__ = [
    "NOTSET",
    "AggregateResult",
    "BenchmarkDefinition",
    "ConfigurationError",
    "ParabenchError",
    "ScalabilityResult",
    "ScalabilityUnavailableError",
    "SuiteComparison",
    "SuiteConfig",
    "SuiteRunner",
    "calc_scalability",
    "compare",
    "suite_calc",
    "suite_run",
    "system_identity",
]
