"""Shared pytest fixtures for parabench tests.

Provides deterministic worker pools and a builder for aggregate results so
statistics and scalability tests never depend on wall-clock timings.
"""

from __future__ import annotations

import os

os.environ.setdefault("MPLBACKEND", "Agg")

from typing import Any, Callable, Mapping, Sequence

import pytest

from parabench.suite.collector import AggregateResult, BenchmarkSeries
from parabench.suite.config import TOTAL_KEY, RunOptions
from parabench.suite.invocation import InvocationOutcome, InvocationTask, invoke
from parabench.suite.pool import SerialWorkerPool


class ScriptedPool:
    """Serial pool that reports scripted elapsed times instead of measured ones.

    ``timings`` maps a benchmark name to the elapsed seconds of every worker;
    the workload is still invoked so verification and errors behave normally.
    """

    name = "scripted"

    def __init__(self, timings: Mapping[str, float] | None = None, default: float = 0.5) -> None:
        self.timings = dict(timings or {})
        self.default = default
        self.calls: list[tuple[str, int]] = []
        self.closed = False

    def validate(self, benchmarks) -> None:
        return None

    def run(self, task: InvocationTask, workers: int) -> list[InvocationOutcome]:
        self.calls.append((task.benchmark, workers))
        outcomes = []
        for worker in range(1, workers + 1):
            outcome = invoke(task, worker)
            if outcome.ok:
                elapsed = self.timings.get(task.benchmark, self.default)
                outcome = InvocationOutcome(
                    benchmark=outcome.benchmark,
                    worker=worker,
                    elapsed=elapsed,
                    value=outcome.value,
                    passed=outcome.passed,
                )
            outcomes.append(outcome)
        return outcomes

    def close(self) -> None:
        self.closed = True


def constant(value: Any) -> Callable[[Any, int], Any]:
    def _workload(argument: Any, worker: int) -> Any:
        return value

    return _workload


def echo(argument: Any, worker: int) -> Any:
    return argument


def failing(argument: Any, worker: int) -> Any:
    raise RuntimeError("workload exploded")


@pytest.fixture()
def serial_pool() -> SerialWorkerPool:
    return SerialWorkerPool()


@pytest.fixture()
def scripted_pool() -> Callable[..., ScriptedPool]:
    """Factory for ScriptedPool with per-benchmark elapsed times."""

    def _factory(timings: Mapping[str, float] | None = None, default: float = 0.5) -> ScriptedPool:
        return ScriptedPool(timings, default)

    return _factory


@pytest.fixture()
def make_result() -> Callable[..., AggregateResult]:
    """Factory for AggregateResult from per-benchmark score (or time) series."""

    def _factory(
        scores: Mapping[str, Sequence[float]] | None = None,
        *,
        times: Mapping[str, Sequence[float]] | None = None,
        workers: int = 1,
        stdev: bool = False,
    ) -> AggregateResult:
        source = scores if scores is not None else times
        assert source, "scores or times are required"
        iterations = len(next(iter(source.values())))

        entries: dict[str, BenchmarkSeries] = {}
        for name, values in source.items():
            series_times = list(times[name]) if times is not None else [1.0] * iterations
            series_scores = list(scores[name]) if scores is not None else []
            entries[name] = BenchmarkSeries(
                name=name,
                times=series_times,
                scores=series_scores,
                failures=[0] * iterations,
                mismatches=[0] * iterations,
            )
        entries[TOTAL_KEY] = BenchmarkSeries(
            name=TOTAL_KEY,
            times=[1.0] * iterations,
            scores=[
                sum(entries[name].scores[index] for name in source) for index in range(iterations)
            ]
            if scores is not None
            else [],
            failures=[0] * iterations,
            mismatches=[0] * iterations,
        )
        options = RunOptions(
            iterations=iterations,
            workers=workers,
            scale=1,
            quick=False,
            time=scores is None,
            stdev=stdev,
            seed=0,
            no_check=False,
            requested_iterations=iterations,
            benchmarks=tuple(source),
        )
        return AggregateResult(entries=entries, options=options)

    return _factory
