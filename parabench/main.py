from __future__ import annotations

import argparse
import importlib
import json
import logging
import math
import os
import sys
from pathlib import Path
from typing import Any, Mapping

from .errors import ConfigurationError, ScalabilityUnavailableError
from .report import format_identity, format_results, format_scalability, print_report
from .suite.charts import render_run_charts
from .suite.config import SuiteConfig
from .suite.pool import POOL_KINDS
from .suite.runner import SuiteRunner
from .suite.scalability import suite_calc
from .system import system_identity

LOGGER = logging.getLogger("parabench")

DEFAULT_BENCHMARK_ATTR = "BENCHMARKS"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="parabench",
        description="Run a benchmark suite across parallel workers and score it",
    )
    parser.add_argument(
        "--module",
        default=os.environ.get("PARABENCH_MODULE"),
        help="Benchmark map as MODULE[:ATTR] (default: the bundled demo workloads)",
    )
    parser.add_argument(
        "--threads",
        "-j",
        type=int,
        default=_env_int("PARABENCH_THREADS", None),
        help="Parallel workers (default 1, or every core with --scalability)",
    )
    parser.add_argument(
        "--iter",
        "-i",
        dest="iterations",
        type=int,
        default=_env_int("PARABENCH_ITER", 1),
        help="Suite iterations (default: 1)",
    )
    parser.add_argument(
        "--duration",
        "-d",
        type=float,
        default=_env_float("PARABENCH_DURATION", None),
        help="Time budget in seconds; overrides --iter",
    )
    parser.add_argument("--include", help="Only run benchmarks whose name matches this regex")
    parser.add_argument("--exclude", help="Skip benchmarks whose name matches this regex")
    parser.add_argument("--quick", "-q", action="store_true", help="Use the quick arguments")
    parser.add_argument(
        "--scale",
        type=int,
        default=_env_int("PARABENCH_SCALE", 1),
        help="Repeat each workload this many times per call (default: 1)",
    )
    parser.add_argument("--time", action="store_true", help="Report times instead of scores")
    parser.add_argument(
        "--stdev", action="store_true", help="Report relative standard deviation across iterations"
    )
    parser.add_argument(
        "--sleep",
        type=float,
        default=_env_float("PARABENCH_SLEEP", 0.0),
        help="Seconds to pause after each benchmark",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=_env_int("PARABENCH_SEED", 1),
        help="Seed reapplied before every workload call (0 disables seeding)",
    )
    parser.add_argument(
        "--no-check", action="store_true", help="Skip comparing results with expected values"
    )
    parser.add_argument(
        "--no-parallel",
        action="store_true",
        help="Run every benchmark once on the calling thread (forces 1 worker, scale 1)",
    )
    parser.add_argument(
        "--pool",
        choices=POOL_KINDS,
        default=os.environ.get("PARABENCH_POOL", "process"),
        help="Worker pool implementation (default: process)",
    )
    parser.add_argument(
        "--scalability",
        "-s",
        action="store_true",
        help="Run on 1 worker and on --threads workers, then report scalability",
    )
    parser.add_argument(
        "--keep-outliers",
        action="store_true",
        help="Keep poorly scaling benchmarks in the overall scalability figure",
    )
    parser.add_argument(
        "--output-dir",
        default=os.environ.get("PARABENCH_OUTPUT_DIR"),
        help="Directory for the JSON manifest, CSV exports and charts",
    )
    parser.add_argument("--quiet", action="store_true", help="Suppress the text report")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only print the benchmarks that would run",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("PARABENCH_LOG_LEVEL", "INFO"),
        help="Logging level",
    )
    return parser.parse_args(argv)


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def load_benchmarks(target: str | None) -> Mapping[str, Any]:
    """Import a benchmark map given as ``module`` or ``module:attribute``."""
    if not target:
        from .workloads import BENCHMARKS

        return BENCHMARKS

    module_name, _, attr = target.partition(":")
    attr = attr or DEFAULT_BENCHMARK_ATTR
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigurationError(f"cannot import benchmark module {module_name!r}: {exc}") from exc
    try:
        benchmarks = getattr(module, attr)
    except AttributeError as exc:
        raise ConfigurationError(f"module {module_name!r} has no attribute {attr!r}") from exc
    if callable(benchmarks) and not isinstance(benchmarks, Mapping):
        benchmarks = benchmarks()
    return benchmarks


def suite_options(args: argparse.Namespace) -> dict[str, Any]:
    return {
        "iterations": args.iterations,
        "duration": args.duration,
        "include": args.include,
        "exclude": args.exclude,
        "quick": args.quick,
        "scale": args.scale,
        "time": args.time,
        "stdev": args.stdev,
        "sleep": args.sleep,
        "seed": args.seed,
        "no_check": args.no_check,
        "no_parallel": args.no_parallel,
    }


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)

    options = suite_options(args)
    try:
        benchmarks = load_benchmarks(args.module)
        workers = 1 if args.threads is None else args.threads
        config = SuiteConfig(benchmarks=benchmarks, workers=workers, **options)
    except ConfigurationError as exc:
        LOGGER.error("Invalid configuration: %s", exc)
        return 2

    if args.dry_run:
        _print_plan(config, args)
        return 0

    identity = system_identity()
    output_dir = Path(args.output_dir) if args.output_dir else None
    if output_dir is not None:
        output_dir.mkdir(parents=True, exist_ok=True)
        LOGGER.info("Benchmark output directory: %s", output_dir)

    print_report(format_identity(identity) + "\n", quiet=args.quiet)
    try:
        if args.scalability:
            return _run_scalability(config, args, options, identity, output_dir)
        return _run_suite(config, args, identity, output_dir)
    except ConfigurationError as exc:
        LOGGER.error("Invalid configuration: %s", exc)
        return 2


def _run_suite(
    config: SuiteConfig,
    args: argparse.Namespace,
    identity: dict[str, Any],
    output_dir: Path | None,
) -> int:
    runner = SuiteRunner(config, pool_kind=args.pool)
    result = runner.run()
    print_report(format_results(result), quiet=args.quiet)

    if output_dir is not None:
        _write_manifest(output_dir, {"system": identity, "result": result.to_dict()})
        outcomes_path = output_dir / "outcomes.csv"
        runner.outcomes_frame().to_csv(outcomes_path, index=False)
        result.to_frame().to_csv(output_dir / "results.csv", index=False)
        LOGGER.info("Saved raw outcomes to %s", outcomes_path)
        render_run_charts(result, output_dir)

    return 1 if result.failed else 0


def _run_scalability(
    config: SuiteConfig,
    args: argparse.Namespace,
    options: dict[str, Any],
    identity: dict[str, Any],
    output_dir: Path | None,
) -> int:
    try:
        comparison = suite_calc(
            config.benchmarks,
            workers=args.threads,
            keep_outliers=args.keep_outliers,
            pool_kind=args.pool,
            **options,
        )
    except ScalabilityUnavailableError as exc:
        LOGGER.error("Scalability not available: %s", exc)
        print_report(f"Scalability: not available ({exc})", quiet=args.quiet)
        return 1

    print_report(format_results(comparison.baseline) + "\n", quiet=args.quiet)
    print_report(format_results(comparison.scaled) + "\n", quiet=args.quiet)
    print_report(format_scalability(comparison.scalability), quiet=args.quiet)

    if output_dir is not None:
        _write_manifest(
            output_dir,
            {
                "system": identity,
                "baseline": comparison.baseline.to_dict(),
                "scaled": comparison.scaled.to_dict(),
                "scalability": comparison.scalability.to_dict(),
            },
        )
        comparison.baseline.to_frame().to_csv(output_dir / "baseline.csv", index=False)
        comparison.scaled.to_frame().to_csv(output_dir / "scaled.csv", index=False)
        render_run_charts(comparison.scaled, output_dir, scalability=comparison.scalability)

    failed = comparison.baseline.failed or comparison.scaled.failed
    return 1 if failed else 0


def _write_manifest(output_dir: Path, payload: dict[str, Any]) -> Path:
    manifest_path = output_dir / "results.json"
    with open(manifest_path, "w", encoding="utf-8") as f:
        json.dump(_json_safe(payload), f, indent=2, default=str, allow_nan=False)
    LOGGER.info("Benchmark manifest written to %s", manifest_path)
    return manifest_path


def _json_safe(value: Any) -> Any:
    """Replace NaN and infinities with None so the manifest is strict JSON."""
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, dict):
        return {key: _json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    return value


def _print_plan(config: SuiteConfig, args: argparse.Namespace) -> None:
    selected = config.selected()
    if config.duration:
        budget = f"duration {config.duration:g}s"
    else:
        budget = f"iterations {config.iterations}"
    lines = [f"Workers: {config.effective_workers}, {budget}, scale {config.effective_scale}"]
    for bench in selected:
        argument, calls = bench.call_plan(config.quick, config.effective_scale)
        lines.append(
            f"  - {bench.name}: arg={argument!r} calls={calls} "
            f"ref_time={bench.ref_time if bench.scored else '-'} "
            f"check={'yes' if bench.has_expected and not config.no_check else 'no'}"
        )
    if not selected:
        lines.append("  (no benchmarks match the filters)")
    print_report("\n".join(lines), quiet=args.quiet)


def _env_int(name: str, default: int | None) -> int | None:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        print(f"invalid {name} value {raw!r}; defaulting to {default}", file=sys.stderr)
        return default


def _env_float(name: str, default: float | None) -> float | None:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        print(f"invalid {name} value {raw!r}; defaulting to {default}", file=sys.stderr)
        return default


def app_main() -> None:
    sys.exit(main())


if __name__ == "__main__":
    app_main()
