from __future__ import annotations

import math
import sys
from typing import Any, Mapping, TextIO

from .suite.collector import AggregateResult, BenchmarkSeries, SeriesStats
from .suite.config import TOTAL_KEY
from .suite.scalability import ScalabilityResult

RULE = "-" * 78


def format_identity(identity: Mapping[str, Any]) -> str:
    lines = []
    if identity.get("cpu_model"):
        lines.append(f"CPU: {identity['cpu_model']}")
    if identity.get("cores"):
        lines.append(f"Cores: {identity['cores']}")
    if identity.get("os"):
        lines.append(f"OS: {identity['os']}")
    if identity.get("python"):
        lines.append(f"Python: {identity['python']}")
    return "\n".join(lines)


def format_results(result: AggregateResult, identity: Mapping[str, Any] | None = None) -> str:
    """Render a suite run as a plain-text table."""
    options = result.options
    show_scores = not options.time
    multi = result.iterations > 1

    lines: list[str] = []
    if identity:
        lines.append(format_identity(identity))
        lines.append("")
    header = [f"workers={options.workers}", f"iterations={options.iterations}"]
    if options.duration:
        header.append(f"duration={options.duration:g}s")
    if options.scale != 1:
        header.append(f"scale={options.scale}")
    if options.quick:
        header.append("quick")
    if options.seed:
        header.append(f"seed={options.seed}")
    lines.append("Suite run: " + ", ".join(header))
    lines.append(RULE)

    label = "Score" if show_scores else "Time (s)"
    if multi:
        columns = f"{'Benchmark':<28} {label + ' avg':>12} {'min':>12} {'max':>12}"
        if options.stdev:
            columns += f" {'rel sd':>8}"
    else:
        columns = f"{'Benchmark':<28} {label:>12}"
    lines.append(columns + f" {'Status':>8}")
    lines.append(RULE)

    for name in result.benchmark_names + [TOTAL_KEY]:
        series = result[name]
        stats = _display_stats(series, show_scores, options.stdev)
        status = _status(series) if name != TOTAL_KEY else ""
        display = "Overall" if name == TOTAL_KEY else name
        if name == TOTAL_KEY:
            lines.append(RULE)
        if multi:
            row = (
                f"{display:<28} {_number(stats.mean, show_scores):>12} "
                f"{_number(stats.min, show_scores):>12} {_number(stats.max, show_scores):>12}"
            )
            if options.stdev:
                row += f" {_percent(stats.rel_stdev):>8}"
        else:
            row = f"{display:<28} {_number(stats.mean, show_scores):>12}"
        lines.append(row + f" {status:>8}")

    failed = [name for name in result.benchmark_names if result[name].failed]
    if failed:
        lines.append("")
        lines.append("Failed benchmarks: " + ", ".join(failed))
    return "\n".join(lines)


def format_scalability(result: ScalabilityResult) -> str:
    """Render a scalability comparison as a plain-text table."""
    stdev = result.total.stats.rel_stdev is not None
    multi = len(result.total.ratios) > 1

    lines = [
        f"Scalability: {result.scaled_workers} vs {result.baseline_workers} worker(s)",
        RULE,
    ]
    columns = f"{'Benchmark':<28} {'avg':>8}"
    if multi:
        columns += f" {'min':>8} {'max':>8}"
        if stdev:
            columns += f" {'rel sd':>8}"
    lines.append(columns)
    lines.append(RULE)

    for name in result.benchmark_names + [TOTAL_KEY]:
        entry = result[name]
        display = "Overall" if name == TOTAL_KEY else name
        if name in result.outliers:
            display += " *"
        if name == TOTAL_KEY:
            lines.append(RULE)
        row = f"{display:<28} {_ratio(entry.stats.mean):>8}"
        if multi:
            row += f" {_ratio(entry.stats.min):>8} {_ratio(entry.stats.max):>8}"
            if stdev:
                row += f" {_percent(entry.stats.rel_stdev):>8}"
        lines.append(row)

    if result.outliers:
        lines.append("")
        lines.append("* outlier, excluded from the overall figure")
        lines.append(
            "  (small suites can flag benchmarks that still scale well; "
            "use --keep-outliers to include them)"
        )
    return "\n".join(lines)


def print_report(text: str, quiet: bool = False, stream: TextIO | None = None) -> None:
    if quiet:
        return
    print(text, file=stream or sys.stdout)


def _display_stats(series: BenchmarkSeries, scores: bool, stdev: bool) -> SeriesStats:
    if scores and series.scored:
        return series.score_stats(stdev)
    return series.time_stats(stdev)


def _status(series: BenchmarkSeries) -> str:
    if any(series.failures):
        return "ERROR"
    if any(series.mismatches):
        return "FAIL"
    return "ok"


def _number(value: float, score: bool) -> str:
    if value is None or math.isnan(value):
        return "-"
    return f"{value:.0f}" if score else f"{value:.4f}"


def _ratio(value: float) -> str:
    if value is None or math.isnan(value):
        return "-"
    return f"{value:.2f}"


def _percent(value: float | None) -> str:
    if value is None or math.isnan(value):
        return "-"
    return f"{value * 100:.1f}%"


__all__ = [
    "format_identity",
    "format_results",
    "format_scalability",
    "print_report",
]
