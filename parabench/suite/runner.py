from __future__ import annotations

import logging
import threading
import time
from typing import Any, Mapping

import pandas as pd

from ..errors import ConfigurationError
from .collector import AggregateResult, StatisticsAggregator
from .config import BenchmarkDefinition, RunOptions, SuiteConfig
from .invocation import InvocationTask
from .pool import ThreadWorkerPool, WorkerPool, create_pool

LOGGER = logging.getLogger("parabench.suite.runner")


class SuiteRunner:
    """Runs the selected benchmarks iteration by iteration through a worker pool.

    Benchmarks are dispatched one at a time; each dispatch blocks until all
    of its workers report back, so timings of different benchmarks never
    overlap. In duration mode at least one iteration runs and the loop stops
    at the first iteration boundary where the budget is used up or the next
    iteration is projected to overrun it.
    """

    def __init__(
        self,
        config: SuiteConfig,
        pool: WorkerPool | None = None,
        pool_kind: str = "process",
    ) -> None:
        self._config = config
        self._pool = pool
        self._pool_kind = pool_kind
        self._stop_event = threading.Event()
        self._aggregator: StatisticsAggregator | None = None

    @property
    def config(self) -> SuiteConfig:
        return self._config

    def stop(self) -> None:
        """Finish the current iteration, then stop."""
        self._stop_event.set()

    def run(self) -> AggregateResult:
        config = self._config
        selected = config.selected()
        if not selected:
            raise ConfigurationError(
                f"no benchmarks match include={config.include!r} exclude={config.exclude!r}"
            )

        workers = config.effective_workers
        scale = config.effective_scale
        time_reporting = config.time_reporting(selected)
        pool = self._pool if self._pool is not None else create_pool(self._pool_kind, workers)
        pool.validate(selected)
        if config.seed and workers > 1 and isinstance(pool, ThreadWorkerPool):
            LOGGER.warning(
                "Seeding with the thread pool: workers share one random state, "
                "results are only reproducible with the process or serial pool"
            )

        aggregator = StatisticsAggregator(
            selected,
            scale=scale,
            quick=config.quick,
            time_reporting=time_reporting,
        )
        self._aggregator = aggregator
        self._stop_event.clear()

        LOGGER.info(
            "Running %d benchmark(s) on %d worker(s) via %s pool (%s)",
            len(selected),
            workers,
            pool.name,
            f"duration={config.duration}s" if config.duration else f"iterations={config.iterations}",
        )

        started_at = time.monotonic()
        try:
            while True:
                iteration = aggregator.iterations + 1
                for bench in selected:
                    self._dispatch(pool, bench, workers, scale)
                aggregator.close_iteration()
                elapsed = time.monotonic() - started_at
                LOGGER.info("Iteration %d finished after %.3fs", iteration, elapsed)
                if self._should_stop(aggregator.iterations, elapsed):
                    break
        finally:
            if self._pool is None:
                pool.close()

        options = RunOptions(
            iterations=aggregator.iterations,
            workers=workers,
            scale=scale,
            quick=config.quick,
            time=time_reporting,
            stdev=config.stdev,
            seed=config.seed,
            no_check=config.no_check,
            requested_iterations=config.iterations,
            duration=config.duration,
            include=config.include,
            exclude=config.exclude,
            benchmarks=tuple(bench.name for bench in selected),
        )
        return aggregator.build_result(options)

    def outcomes_frame(self) -> pd.DataFrame:
        """Raw per-worker outcomes of the last run."""
        if self._aggregator is None:
            raise RuntimeError("run() has not been called")
        return self._aggregator.build_dataframe()

    def _dispatch(
        self,
        pool: WorkerPool,
        bench: BenchmarkDefinition,
        workers: int,
        scale: int,
    ) -> None:
        config = self._config
        argument, calls = bench.call_plan(config.quick, scale)
        check = bench.has_expected and not config.no_check
        task = InvocationTask(
            benchmark=bench.name,
            func=bench.func,
            argument=argument,
            calls=calls,
            seed=config.seed,
            check=check,
            expected=bench.expected if check else None,
        )

        outcomes = pool.run(task, workers)
        avg_time, score = self._aggregator.fold(bench.name, outcomes)
        LOGGER.debug(
            "%s: avg %.6fs over %d worker(s), score %s",
            bench.name,
            avg_time,
            workers,
            "-" if score is None else f"{score:.0f}",
        )

        if config.sleep:
            time.sleep(config.sleep)

    def _should_stop(self, completed: int, elapsed: float) -> bool:
        if self._stop_event.is_set():
            return True
        duration = self._config.duration
        if duration is None:
            return completed >= self._config.iterations
        if elapsed >= duration:
            return True
        return elapsed + elapsed / completed > duration


def suite_run(
    benchmarks: Mapping[str, Any],
    pool: WorkerPool | None = None,
    pool_kind: str = "process",
    **options: Any,
) -> AggregateResult:
    """Build a :class:`SuiteConfig` from keyword options and run it."""
    try:
        config = SuiteConfig(benchmarks=benchmarks, **options)
    except TypeError as exc:
        raise ConfigurationError(str(exc)) from exc
    return SuiteRunner(config, pool=pool, pool_kind=pool_kind).run()


__all__ = ["SuiteRunner", "suite_run"]
