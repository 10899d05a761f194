from __future__ import annotations

import random
import time
from dataclasses import dataclass
from typing import Any, Callable

import numpy as np

# numpy only accepts 32-bit seeds
_NUMPY_SEED_MASK = 0xFFFF_FFFF


@dataclass(frozen=True)
class InvocationTask:
    """Picklable description of one timed workload call, shared by every worker."""

    benchmark: str
    func: Callable[[Any, int], Any]
    argument: Any = None
    calls: int = 1
    seed: int = 0
    check: bool = False
    expected: Any = None


@dataclass(frozen=True)
class InvocationOutcome:
    benchmark: str
    worker: int
    elapsed: float | None
    value: Any = None
    passed: bool | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def as_row(self) -> dict[str, Any]:
        return {
            "benchmark": self.benchmark,
            "worker": self.worker,
            "elapsed_s": self.elapsed,
            "passed": self.passed,
            "error": self.error,
        }


def reseed(seed: int) -> None:
    """Reset the process-global random sources a workload may draw from."""
    random.seed(seed)
    np.random.seed(seed & _NUMPY_SEED_MASK)


def invoke(task: InvocationTask, worker: int) -> InvocationOutcome:
    """Run ``task`` once as ``worker`` and time it with the monotonic clock."""
    if task.seed:
        reseed(task.seed)

    value = None
    try:
        started = time.perf_counter()
        for _ in range(task.calls):
            value = task.func(task.argument, worker)
        elapsed = time.perf_counter() - started
    except KeyboardInterrupt:
        raise
    except BaseException as exc:  # noqa: BLE001
        return InvocationOutcome(
            benchmark=task.benchmark,
            worker=worker,
            elapsed=None,
            error=f"{type(exc).__name__}: {exc}",
        )

    passed = values_match(value, task.expected) if task.check else None
    return InvocationOutcome(
        benchmark=task.benchmark,
        worker=worker,
        elapsed=elapsed,
        value=value,
        passed=passed,
    )


def values_match(value: Any, expected: Any) -> bool:
    if isinstance(value, np.ndarray) or isinstance(expected, np.ndarray):
        return bool(np.array_equal(value, expected))
    try:
        return bool(value == expected)
    except (TypeError, ValueError):
        return False


__all__ = [
    "InvocationTask",
    "InvocationOutcome",
    "invoke",
    "reseed",
    "values_match",
]
