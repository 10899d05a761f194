from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Sequence

import numpy as np
import pandas as pd

from .config import TOTAL_KEY, OPTIONS_KEY, BenchmarkDefinition, RunOptions
from .invocation import InvocationOutcome

LOGGER = logging.getLogger("parabench.suite.collector")

SCORE_UNIT = 1000.0

OUTCOME_COLUMNS = [
    "iteration",
    "benchmark",
    "worker",
    "elapsed_s",
    "passed",
    "error",
]


@dataclass(frozen=True)
class SeriesStats:
    """Summary of one per-iteration series, ignoring NaN entries."""

    mean: float
    min: float
    max: float
    count: int
    rel_stdev: float | None = None

    @classmethod
    def from_values(cls, values: Iterable[float], stdev: bool = False) -> "SeriesStats":
        arr = np.asarray(list(values), dtype=np.float64)
        finite = arr[~np.isnan(arr)]
        if finite.size == 0:
            return cls(
                mean=math.nan,
                min=math.nan,
                max=math.nan,
                count=0,
                rel_stdev=math.nan if stdev else None,
            )

        mean = float(np.mean(finite))
        rel_stdev = None
        if stdev:
            if finite.size > 1 and mean != 0:
                rel_stdev = float(np.std(finite, ddof=1) / abs(mean))
            else:
                rel_stdev = 0.0
        return cls(
            mean=mean,
            min=float(np.min(finite)),
            max=float(np.max(finite)),
            count=int(finite.size),
            rel_stdev=rel_stdev,
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "mean": self.mean,
            "min": self.min,
            "max": self.max,
        }
        if self.rel_stdev is not None:
            payload["rel_stdev"] = self.rel_stdev
        return payload


@dataclass
class BenchmarkSeries:
    """Per-iteration average times and summed scores of a single benchmark."""

    name: str
    times: list[float] = field(default_factory=list)
    scores: list[float] = field(default_factory=list)
    failures: list[int] = field(default_factory=list)
    mismatches: list[int] = field(default_factory=list)

    @property
    def iterations(self) -> int:
        return len(self.times)

    @property
    def scored(self) -> bool:
        return bool(self.scores)

    @property
    def failed(self) -> bool:
        return any(self.failures) or any(self.mismatches)

    def time_stats(self, stdev: bool = False) -> SeriesStats:
        return SeriesStats.from_values(self.times, stdev=stdev)

    def score_stats(self, stdev: bool = False) -> SeriesStats | None:
        if not self.scored:
            return None
        return SeriesStats.from_values(self.scores, stdev=stdev)

    def to_dict(self, stdev: bool = False) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "times": list(self.times),
            "scores": list(self.scores),
            "failures": list(self.failures),
            "mismatches": list(self.mismatches),
        }
        if self.iterations > 1:
            payload["time_stats"] = self.time_stats(stdev).to_dict()
            score_stats = self.score_stats(stdev)
            if score_stats is not None:
                payload["score_stats"] = score_stats.to_dict()
        return payload


@dataclass
class AggregateResult:
    """Outcome of one suite run: a series per benchmark plus ``_total``."""

    entries: dict[str, BenchmarkSeries]
    options: RunOptions

    def __getitem__(self, name: str) -> BenchmarkSeries:
        return self.entries[name]

    def __contains__(self, name: object) -> bool:
        return name in self.entries

    def __iter__(self) -> Iterator[str]:
        return iter(self.entries)

    @property
    def total(self) -> BenchmarkSeries:
        return self.entries[TOTAL_KEY]

    @property
    def benchmark_names(self) -> list[str]:
        return [name for name in self.entries if name != TOTAL_KEY]

    @property
    def iterations(self) -> int:
        return self.options.iterations

    @property
    def workers(self) -> int:
        return self.options.workers

    @property
    def failed(self) -> bool:
        return any(self.entries[name].failed for name in self.benchmark_names)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            name: series.to_dict(self.options.stdev) for name, series in self.entries.items()
        }
        payload[OPTIONS_KEY] = self.options.to_dict()
        return payload

    def to_frame(self) -> pd.DataFrame:
        rows = []
        for name, series in self.entries.items():
            for index, elapsed in enumerate(series.times):
                rows.append(
                    {
                        "benchmark": name,
                        "iteration": index + 1,
                        "time_s": elapsed,
                        "score": series.scores[index] if series.scored else None,
                        "failures": series.failures[index] if series.failures else 0,
                        "mismatches": series.mismatches[index] if series.mismatches else 0,
                    }
                )
        return pd.DataFrame(
            rows,
            columns=["benchmark", "iteration", "time_s", "score", "failures", "mismatches"],
        )


class StatisticsAggregator:
    """Folds worker outcomes into per-iteration times and scores."""

    def __init__(
        self,
        benchmarks: Sequence[BenchmarkDefinition],
        scale: int = 1,
        quick: bool = False,
        time_reporting: bool = False,
        keep_outcomes: bool = True,
    ) -> None:
        self._benchmarks = {bench.name: bench for bench in benchmarks}
        self._scale = scale
        self._quick = quick
        self._time_reporting = time_reporting
        self._keep_outcomes = keep_outcomes

        self._series = {name: BenchmarkSeries(name=name) for name in self._benchmarks}
        self._total = BenchmarkSeries(name=TOTAL_KEY)
        self._iteration = 1
        self._rows: list[dict[str, Any]] = []

    @property
    def iterations(self) -> int:
        return self._total.iterations

    def fold(self, benchmark: str, outcomes: Sequence[InvocationOutcome]) -> tuple[float, float | None]:
        """Record one dispatch and return ``(avg_time, total_score)``."""
        bench = self._benchmarks[benchmark]
        series = self._series[benchmark]

        times = [outcome.elapsed for outcome in outcomes if outcome.ok]
        failures = len(outcomes) - len(times)
        mismatches = sum(1 for outcome in outcomes if outcome.passed is False)

        avg_time = math.fsum(times) / len(times) if times else math.nan
        score = None
        if bench.scored and not self._quick:
            reference = bench.ref_time * self._scale
            score = math.fsum(SCORE_UNIT * reference / elapsed for elapsed in times if elapsed > 0)

        for outcome in outcomes:
            if outcome.error is not None:
                LOGGER.warning(
                    "Benchmark %s worker %d raised %s", benchmark, outcome.worker, outcome.error
                )
            elif outcome.passed is False:
                LOGGER.warning(
                    "Benchmark %s worker %d returned %r, expected %r",
                    benchmark,
                    outcome.worker,
                    outcome.value,
                    bench.expected,
                )
            if self._keep_outcomes:
                row = outcome.as_row()
                row["iteration"] = self._iteration
                self._rows.append(row)

        series.times.append(avg_time)
        if score is not None:
            series.scores.append(score)
        series.failures.append(failures)
        series.mismatches.append(mismatches)
        return avg_time, score

    def close_iteration(self) -> None:
        """Pad benchmarks missing from this iteration and compute ``_total``."""
        expected = self._total.iterations + 1
        for series in self._series.values():
            if series.iterations < expected:
                series.times.append(math.nan)
                if self._benchmarks[series.name].scored and not self._quick:
                    series.scores.append(0.0)
                series.failures.append(0)
                series.mismatches.append(0)

        times = [series.times[-1] for series in self._series.values()]
        finite = [value for value in times if not math.isnan(value)]
        self._total.times.append(math.fsum(finite) / len(finite) if finite else math.nan)
        if not self._time_reporting:
            self._total.scores.append(
                math.fsum(series.scores[-1] for series in self._series.values() if series.scored)
            )
        self._total.failures.append(sum(series.failures[-1] for series in self._series.values()))
        self._total.mismatches.append(sum(series.mismatches[-1] for series in self._series.values()))
        self._iteration += 1

    def build_result(self, options: RunOptions) -> AggregateResult:
        entries: dict[str, BenchmarkSeries] = dict(self._series)
        entries[TOTAL_KEY] = self._total
        return AggregateResult(entries=entries, options=options)

    def build_dataframe(self) -> pd.DataFrame:
        if not self._rows:
            return pd.DataFrame(columns=OUTCOME_COLUMNS)
        return pd.DataFrame(self._rows, columns=OUTCOME_COLUMNS)


__all__ = [
    "SCORE_UNIT",
    "SeriesStats",
    "BenchmarkSeries",
    "AggregateResult",
    "StatisticsAggregator",
]
