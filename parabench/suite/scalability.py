from __future__ import annotations

import dataclasses
import logging
import math
from dataclasses import dataclass
from typing import Any, Mapping

import numpy as np

from ..errors import ScalabilityUnavailableError
from ..system import detect_core_count
from .collector import AggregateResult, BenchmarkSeries, SeriesStats
from .config import TOTAL_KEY
from .pool import WorkerPool
from .runner import suite_run

LOGGER = logging.getLogger("parabench.suite.scalability")

OUTLIER_SIGMA = 2.0
# smallest sample a leave-one-out mean/stdev is computed from
MIN_OUTLIER_SAMPLE = 3


@dataclass(frozen=True)
class ScalabilityEntry:
    name: str
    ratios: tuple[float, ...]
    stats: SeriesStats

    @property
    def mean(self) -> float:
        return self.stats.mean

    def to_dict(self) -> dict[str, Any]:
        payload = self.stats.to_dict()
        payload["ratios"] = list(self.ratios)
        return payload


@dataclass(frozen=True)
class ScalabilityResult:
    """Per-benchmark and overall ratios of a scaled run against a baseline."""

    entries: Mapping[str, ScalabilityEntry]
    outliers: tuple[str, ...]
    baseline_workers: int
    scaled_workers: int
    keep_outliers: bool = False

    def __getitem__(self, name: str) -> ScalabilityEntry:
        return self.entries[name]

    def __contains__(self, name: object) -> bool:
        return name in self.entries

    @property
    def total(self) -> ScalabilityEntry:
        return self.entries[TOTAL_KEY]

    @property
    def benchmark_names(self) -> list[str]:
        return [name for name in self.entries if name != TOTAL_KEY]

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {name: entry.to_dict() for name, entry in self.entries.items()}
        payload["_outliers"] = list(self.outliers)
        payload["_workers"] = {"baseline": self.baseline_workers, "scaled": self.scaled_workers}
        return payload


@dataclass(frozen=True)
class SuiteComparison:
    baseline: AggregateResult
    scaled: AggregateResult
    scalability: ScalabilityResult


def compare(
    baseline: AggregateResult,
    scaled: AggregateResult,
    keep_outliers: bool = False,
    stdev: bool | None = None,
) -> ScalabilityResult:
    """Scalability of ``scaled`` relative to ``baseline``.

    Ratios are taken per iteration index and summarised like raw stats. The
    ``_total`` mean leaves out benchmarks flagged by :func:`find_outliers`
    unless ``keep_outliers`` is set.
    """
    base_workers = baseline.workers
    scaled_workers = scaled.workers
    if scaled_workers < base_workers:
        raise ScalabilityUnavailableError(
            f"scaled run used {scaled_workers} worker(s), fewer than the baseline's {base_workers}"
        )

    names = [name for name in baseline.benchmark_names if name in scaled.benchmark_names]
    if not names:
        raise ScalabilityUnavailableError("baseline and scaled runs share no benchmarks")

    iterations = min(baseline.iterations, scaled.iterations)
    if baseline.iterations != scaled.iterations:
        LOGGER.info(
            "Comparing the first %d iteration(s) (baseline ran %d, scaled ran %d)",
            iterations,
            baseline.iterations,
            scaled.iterations,
        )
    if stdev is None:
        stdev = baseline.options.stdev or scaled.options.stdev

    entries: dict[str, ScalabilityEntry] = {}
    for name in names:
        ratios = tuple(
            _ratio(baseline[name], scaled[name], index, base_workers, scaled_workers)
            for index in range(iterations)
        )
        entries[name] = ScalabilityEntry(
            name=name, ratios=ratios, stats=SeriesStats.from_values(ratios, stdev=stdev)
        )

    means = {name: entries[name].mean for name in names}
    outliers = () if keep_outliers else find_outliers(means)
    kept = [name for name in names if name not in outliers and not math.isnan(means[name])]
    if not kept:
        LOGGER.warning("Every benchmark was excluded; using the unfiltered mean")
        kept = [name for name in names if not math.isnan(means[name])]
    for name in outliers:
        LOGGER.info("Excluding %s from the total (mean scalability %.2f)", name, means[name])

    totals = tuple(
        _nanmean([entries[name].ratios[index] for name in kept]) for index in range(iterations)
    )
    total_stats = dataclasses.replace(
        SeriesStats.from_values(totals, stdev=stdev),
        mean=_nanmean([means[name] for name in kept]),
    )
    entries[TOTAL_KEY] = ScalabilityEntry(name=TOTAL_KEY, ratios=totals, stats=total_stats)

    return ScalabilityResult(
        entries=entries,
        outliers=tuple(outliers),
        baseline_workers=base_workers,
        scaled_workers=scaled_workers,
        keep_outliers=keep_outliers,
    )


calc_scalability = compare


def find_outliers(means: Mapping[str, float], sigma: float = OUTLIER_SIGMA) -> tuple[str, ...]:
    """Benchmarks scaling more than ``sigma`` stdevs below the rest.

    Each value is tested against the mean and sample stdev of the *other*
    values; including the tested value would cap its z-score at
    ``(n - 1) / sqrt(n)`` and hide poor scalers in small suites. Only low
    values are flagged. Nothing is flagged unless every comparison sample
    holds at least ``MIN_OUTLIER_SAMPLE`` values.

    When the other values agree closely their stdev is tiny, so a small
    suite can flag a benchmark that still scales well: 7.5 is excluded from
    ``[7.9, 8.1, 8.0, 7.5]``. ``compare(..., keep_outliers=True)`` keeps it.
    """
    values = {name: value for name, value in means.items() if not math.isnan(value)}
    if len(values) - 1 < MIN_OUTLIER_SAMPLE:
        return ()

    outliers = []
    for name, value in values.items():
        others = np.array([other for key, other in values.items() if key != name], dtype=np.float64)
        threshold = float(np.mean(others)) - sigma * float(np.std(others, ddof=1))
        if value < threshold and not math.isclose(value, threshold, rel_tol=1e-9, abs_tol=1e-12):
            outliers.append(name)
    return tuple(outliers)


def suite_calc(
    benchmarks: Mapping[str, Any],
    workers: int | None = None,
    keep_outliers: bool = False,
    pool: WorkerPool | None = None,
    pool_kind: str = "process",
    **options: Any,
) -> SuiteComparison:
    """Run the suite on one worker, then on ``workers`` (default: all cores), and compare."""
    if options.get("no_parallel"):
        raise ScalabilityUnavailableError("scalability needs parallel dispatch (no_parallel is set)")
    target = workers if workers is not None else detect_core_count()
    if target <= 1:
        raise ScalabilityUnavailableError(
            f"only {target} worker(s) available; scalability needs more than the 1-worker baseline"
        )

    LOGGER.info("Baseline run on 1 worker")
    baseline = suite_run(benchmarks, pool=pool, pool_kind=pool_kind, workers=1, **options)
    LOGGER.info("Scaled run on %d workers", target)
    scaled = suite_run(benchmarks, pool=pool, pool_kind=pool_kind, workers=target, **options)
    return SuiteComparison(
        baseline=baseline,
        scaled=scaled,
        scalability=compare(baseline, scaled, keep_outliers=keep_outliers),
    )


def _ratio(
    baseline: BenchmarkSeries,
    scaled: BenchmarkSeries,
    index: int,
    base_workers: int,
    scaled_workers: int,
) -> float:
    if baseline.scored and scaled.scored:
        base_score = baseline.scores[index]
        if not base_score > 0:
            return math.nan
        return scaled.scores[index] / base_score

    base_time = baseline.times[index]
    scaled_time = scaled.times[index]
    if math.isnan(base_time) or math.isnan(scaled_time) or not scaled_time > 0:
        return math.nan
    return (scaled_workers / scaled_time) / (base_workers / base_time)


def _nanmean(values: list[float]) -> float:
    finite = [value for value in values if not math.isnan(value)]
    if not finite:
        return math.nan
    return math.fsum(finite) / len(finite)


__all__ = [
    "OUTLIER_SIGMA",
    "ScalabilityEntry",
    "ScalabilityResult",
    "SuiteComparison",
    "compare",
    "calc_scalability",
    "find_outliers",
    "suite_calc",
]
