from __future__ import annotations

import contextlib
import logging
import multiprocessing
import pickle
from concurrent.futures import Executor, Future, ProcessPoolExecutor, ThreadPoolExecutor, wait
from concurrent.futures.process import BrokenProcessPool
from typing import Iterable, Protocol

from ..errors import ConfigurationError
from .config import BenchmarkDefinition
from .invocation import InvocationOutcome, InvocationTask, invoke

LOGGER = logging.getLogger("parabench.suite.pool")

POOL_KINDS: tuple[str, ...] = ("process", "thread", "serial")


class WorkerPool(Protocol):
    """Runs one task across ``workers`` parallel slots and returns every outcome."""

    name: str

    def validate(self, benchmarks: Iterable[BenchmarkDefinition]) -> None: ...

    def run(self, task: InvocationTask, workers: int) -> list[InvocationOutcome]: ...

    def close(self) -> None: ...


class SerialWorkerPool(contextlib.AbstractContextManager):
    """Invokes each worker slot in turn on the calling thread."""

    name = "serial"

    def validate(self, benchmarks: Iterable[BenchmarkDefinition]) -> None:
        return None

    def run(self, task: InvocationTask, workers: int) -> list[InvocationOutcome]:
        return [invoke(task, worker) for worker in range(1, workers + 1)]

    def close(self) -> None:
        return None

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class _ExecutorWorkerPool(contextlib.AbstractContextManager):
    name = "executor"

    def __init__(self) -> None:
        self._executor: Executor | None = None
        self._capacity = 0

    def validate(self, benchmarks: Iterable[BenchmarkDefinition]) -> None:
        return None

    def run(self, task: InvocationTask, workers: int) -> list[InvocationOutcome]:
        executor = self._ensure_executor(workers)
        futures: dict[Future, int] = {
            executor.submit(invoke, task, worker): worker for worker in range(1, workers + 1)
        }
        wait(futures)

        outcomes: list[InvocationOutcome] = []
        broken = False
        for future, worker in futures.items():
            try:
                outcomes.append(future.result())
            except BrokenProcessPool as exc:
                broken = True
                outcomes.append(_failed(task, worker, exc))
            except KeyboardInterrupt:
                raise
            except BaseException as exc:  # noqa: BLE001
                outcomes.append(_failed(task, worker, exc))
        if broken:
            LOGGER.warning("Worker pool broke while running %s; restarting it", task.benchmark)
            self.close()
        outcomes.sort(key=lambda outcome: outcome.worker)
        return outcomes

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
        self._executor = None
        self._capacity = 0

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _ensure_executor(self, workers: int) -> Executor:
        if self._executor is None or self._capacity < workers:
            self.close()
            LOGGER.debug("Starting %s pool with %d worker(s)", self.name, workers)
            self._executor = self._create_executor(workers)
            self._capacity = workers
        return self._executor

    def _create_executor(self, workers: int) -> Executor:
        raise NotImplementedError


class ThreadWorkerPool(_ExecutorWorkerPool):
    """Thread-backed pool; workers share the interpreter and its global random state."""

    name = "thread"

    def _create_executor(self, workers: int) -> Executor:
        return ThreadPoolExecutor(max_workers=workers, thread_name_prefix="parabench-worker")


class ProcessWorkerPool(_ExecutorWorkerPool):
    """Process-backed pool, one interpreter per worker slot."""

    name = "process"

    def __init__(self, start_method: str = "spawn") -> None:
        super().__init__()
        self._context = multiprocessing.get_context(start_method)

    def validate(self, benchmarks: Iterable[BenchmarkDefinition]) -> None:
        for bench in benchmarks:
            try:
                pickle.dumps(bench.func)
            except Exception as exc:  # noqa: BLE001
                raise ConfigurationError(
                    f"benchmark {bench.name!r} cannot be sent to worker processes "
                    f"(define it at module level or use the thread pool): {exc}"
                ) from exc

    def _create_executor(self, workers: int) -> Executor:
        return ProcessPoolExecutor(max_workers=workers, mp_context=self._context)


def create_pool(kind: str = "process", workers: int = 1) -> WorkerPool:
    """Build the pool used for ``workers`` parallel slots.

    A single worker always runs serially on the calling thread.
    """
    if kind not in POOL_KINDS:
        raise ConfigurationError(f"unknown pool kind {kind!r}, expected one of {', '.join(POOL_KINDS)}")
    if workers <= 1 or kind == "serial":
        return SerialWorkerPool()
    if kind == "thread":
        return ThreadWorkerPool()
    return ProcessWorkerPool()


def _failed(task: InvocationTask, worker: int, exc: BaseException) -> InvocationOutcome:
    return InvocationOutcome(
        benchmark=task.benchmark,
        worker=worker,
        elapsed=None,
        error=f"{type(exc).__name__}: {exc}",
    )


__all__ = [
    "POOL_KINDS",
    "WorkerPool",
    "SerialWorkerPool",
    "ThreadWorkerPool",
    "ProcessWorkerPool",
    "create_pool",
]
