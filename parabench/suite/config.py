from __future__ import annotations

import dataclasses
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping

from ..errors import ConfigurationError


class _NotSet:
    """Marker for optional benchmark fields that were never configured."""

    _instance: "_NotSet | None" = None

    def __new__(cls) -> "_NotSet":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOTSET"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self):
        return (_NotSet, ())


NOTSET: Any = _NotSet()

TOTAL_KEY = "_total"
OPTIONS_KEY = "_opt"
RESERVED_NAMES = frozenset({TOTAL_KEY, OPTIONS_KEY})


@dataclass(frozen=True)
class BenchmarkDefinition:
    """A named workload together with its optional verification and scoring data."""

    name: str
    func: Callable[[Any, int], Any]
    expected: Any = NOTSET
    ref_time: float | None = None
    quick_arg: Any = NOTSET
    normal_arg: Any = NOTSET

    @property
    def has_expected(self) -> bool:
        return self.expected is not NOTSET

    @property
    def scored(self) -> bool:
        return self.ref_time is not None

    def call_plan(self, quick: bool, scale: int) -> tuple[Any, int]:
        """Return ``(argument, calls)`` for one timed invocation.

        The argument itself is never rewritten, so expected values hold at
        any scale; scaling repeats the call inside the timed section.
        """
        if quick:
            argument = self.quick_arg if self.quick_arg is not NOTSET else self.normal_arg
            return _unwrap(argument), 1
        return _unwrap(self.normal_arg), scale


@dataclass(frozen=True)
class SuiteConfig:
    """Everything the runner needs to execute one suite pass."""

    benchmarks: Mapping[str, BenchmarkDefinition]
    workers: int = 1
    iterations: int = 1
    duration: float | None = None
    include: str | None = None
    exclude: str | None = None
    quick: bool = False
    scale: int = 1
    time: bool = False
    stdev: bool = False
    sleep: float = 0.0
    seed: int = 0
    no_check: bool = False
    no_parallel: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "benchmarks", normalise_benchmarks(self.benchmarks))
        _require_int("workers", self.workers, minimum=1)
        _require_int("iterations", self.iterations, minimum=1)
        _require_int("scale", self.scale, minimum=1)
        _require_int("seed", self.seed, minimum=0)
        if self.duration is not None and not self.duration > 0:
            raise ConfigurationError(f"duration must be > 0 seconds, got {self.duration!r}")
        if self.sleep < 0:
            raise ConfigurationError(f"sleep must be >= 0 seconds, got {self.sleep!r}")
        for label in ("include", "exclude"):
            pattern = getattr(self, label)
            if pattern is None:
                continue
            try:
                re.compile(pattern)
            except re.error as exc:
                raise ConfigurationError(f"invalid {label} pattern {pattern!r}: {exc}") from exc

    @property
    def effective_workers(self) -> int:
        return 1 if self.no_parallel else self.workers

    @property
    def effective_scale(self) -> int:
        return 1 if self.quick or self.no_parallel else self.scale

    def selected(self) -> list[BenchmarkDefinition]:
        """Benchmarks passing the include/exclude filters, in definition order."""
        include = re.compile(self.include) if self.include else None
        exclude = re.compile(self.exclude) if self.exclude else None
        return [
            bench
            for name, bench in self.benchmarks.items()
            if (include is None or include.search(name))
            and (exclude is None or not exclude.search(name))
        ]

    def time_reporting(self, selected: Iterable[BenchmarkDefinition] | None = None) -> bool:
        """Whether the run reports times instead of scores."""
        if self.time or self.quick:
            return True
        benches = self.selected() if selected is None else selected
        return any(not bench.scored for bench in benches)

    def replace(self, **changes: Any) -> "SuiteConfig":
        return dataclasses.replace(self, **changes)


@dataclass(frozen=True)
class RunOptions:
    """Effective configuration of a finished run (the ``_opt`` record)."""

    iterations: int
    workers: int
    scale: int
    quick: bool
    time: bool
    stdev: bool
    seed: int
    no_check: bool
    requested_iterations: int
    duration: float | None = None
    include: str | None = None
    exclude: str | None = None
    benchmarks: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        payload = dataclasses.asdict(self)
        payload["benchmarks"] = list(self.benchmarks)
        return payload


def normalise_benchmarks(benchmarks: Mapping[str, Any] | None) -> dict[str, BenchmarkDefinition]:
    """Validate a benchmark map, turning bare callables into definitions."""
    if not benchmarks:
        raise ConfigurationError("a non-empty benchmark map is required")
    if not isinstance(benchmarks, Mapping):
        raise ConfigurationError(
            f"benchmarks must be a mapping of name to definition, got {type(benchmarks).__name__}"
        )

    normalised: dict[str, BenchmarkDefinition] = {}
    for name, entry in benchmarks.items():
        if not isinstance(name, str) or not name:
            raise ConfigurationError(f"benchmark names must be non-empty strings, got {name!r}")
        if name in RESERVED_NAMES:
            raise ConfigurationError(f"benchmark name {name!r} is reserved")
        if isinstance(entry, BenchmarkDefinition):
            bench = entry if entry.name == name else dataclasses.replace(entry, name=name)
        elif isinstance(entry, Mapping):
            try:
                bench = BenchmarkDefinition(name=name, **entry)
            except TypeError as exc:
                raise ConfigurationError(f"benchmark {name!r}: {exc}") from exc
        else:
            bench = BenchmarkDefinition(name=name, func=entry)
        _check_definition(bench)
        normalised[name] = bench
    return normalised


def _check_definition(bench: BenchmarkDefinition) -> None:
    if bench.func is None or bench.func is NOTSET:
        raise ConfigurationError(f"benchmark {bench.name!r} has no workload callable")
    if isinstance(bench.func, (str, bytes)):
        raise ConfigurationError(
            f"benchmark {bench.name!r}: workloads must be callables, not source strings"
        )
    if not callable(bench.func):
        raise ConfigurationError(
            f"benchmark {bench.name!r}: workload {bench.func!r} is not callable"
        )
    if bench.ref_time is not None and not bench.ref_time > 0:
        raise ConfigurationError(
            f"benchmark {bench.name!r}: reference time must be > 0, got {bench.ref_time!r}"
        )


def _require_int(label: str, value: Any, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{label} must be an integer, got {value!r}")
    if value < minimum:
        raise ConfigurationError(f"{label} must be >= {minimum}, got {value}")


def _unwrap(value: Any) -> Any:
    return None if value is NOTSET else value
