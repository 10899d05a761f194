from __future__ import annotations

import logging
import math
from pathlib import Path

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

from .collector import AggregateResult
from .config import TOTAL_KEY
from .scalability import ScalabilityResult

LOGGER = logging.getLogger("parabench.suite.charts")

sns.set_style("whitegrid")
plt.rcParams["figure.dpi"] = 100
plt.rcParams["savefig.dpi"] = 300
plt.rcParams["font.size"] = 10
plt.rcParams["axes.labelsize"] = 11
plt.rcParams["axes.titlesize"] = 13
plt.rcParams["xtick.labelsize"] = 10
plt.rcParams["ytick.labelsize"] = 10
plt.rcParams["legend.fontsize"] = 9

KEPT_COLOR = "#2E86AB"
OUTLIER_COLOR = "#C73E1D"
TOTAL_COLOR = "#F18F01"


def render_run_charts(
    result: AggregateResult,
    output_dir: Path,
    scalability: ScalabilityResult | None = None,
    prefix: str = "",
) -> list[Path]:
    """Render every chart that applies to a run and return the written paths."""
    output_dir.mkdir(parents=True, exist_ok=True)
    paths: list[Path] = []
    if result.iterations > 1:
        paths.append(render_iteration_chart(result, output_dir / f"{prefix}iterations.png"))
    if scalability is not None:
        paths.append(render_scalability_chart(scalability, output_dir / f"{prefix}scalability.png"))
    return paths


def render_iteration_chart(result: AggregateResult, chart_path: Path) -> Path:
    """Line chart of each benchmark's score (or time) across iterations."""
    df = result.to_frame()
    df = df[df["benchmark"] != TOTAL_KEY]
    use_scores = not result.options.time and df["score"].notna().any()
    column = "score" if use_scores else "time_s"
    df = df[df[column].notna()].copy()
    df[column] = pd.to_numeric(df[column])

    fig, ax = plt.subplots(figsize=(10, 6))
    if df.empty:
        LOGGER.warning("No iteration data available for %s", chart_path.name)
    else:
        sns.lineplot(data=df, x="iteration", y=column, hue="benchmark", marker="o", ax=ax)
        ax.legend(loc="center left", bbox_to_anchor=(1.0, 0.5), frameon=True, title="Benchmark")

    ax.set_xlabel("Iteration", fontweight="semibold")
    ax.set_ylabel("Score" if use_scores else "Time per call (s)", fontweight="semibold")
    ax.set_title(
        f"{'Scores' if use_scores else 'Times'} by Iteration ({result.workers} worker(s))",
        fontweight="bold",
        pad=15,
    )
    ax.grid(True, alpha=0.3, linestyle="--")

    plt.tight_layout()
    fig.savefig(chart_path, bbox_inches="tight", facecolor="white")
    plt.close(fig)
    LOGGER.info("Rendering chart %s", chart_path)
    return chart_path


def render_scalability_chart(result: ScalabilityResult, chart_path: Path) -> Path:
    """Bar chart of mean scalability per benchmark, outliers highlighted."""
    names = result.benchmark_names
    values = [result[name].mean for name in names]
    colors = [OUTLIER_COLOR if name in result.outliers else KEPT_COLOR for name in names]

    fig, ax = plt.subplots(figsize=(max(8, len(names) * 0.8), 6))
    bars = ax.bar(names, values, color=colors, alpha=0.85, edgecolor="white", linewidth=1.5)

    ideal = result.scaled_workers / result.baseline_workers
    ax.axhline(ideal, color="#6A994E", linestyle="--", linewidth=1.5, label=f"Ideal ({ideal:g}x)")
    total = result.total.mean
    if not math.isnan(total):
        ax.axhline(total, color=TOTAL_COLOR, linewidth=2, label=f"Total ({total:.2f}x)")

    for bar, value in zip(bars, values):
        if math.isnan(value):
            continue
        ax.text(
            bar.get_x() + bar.get_width() / 2.0,
            bar.get_height(),
            f"{value:.2f}",
            ha="center",
            va="bottom",
            fontweight="semibold",
        )

    ax.set_ylabel("Scalability (x)", fontweight="semibold")
    ax.set_title(
        f"Scalability: {result.scaled_workers} vs {result.baseline_workers} worker(s)",
        fontweight="bold",
        pad=15,
    )
    ax.legend(loc="upper right", frameon=True)
    ax.grid(True, alpha=0.3, axis="y", linestyle="--")
    plt.setp(ax.get_xticklabels(), rotation=30, ha="right")

    plt.tight_layout()
    fig.savefig(chart_path, bbox_inches="tight", facecolor="white")
    plt.close(fig)
    LOGGER.info("Rendering chart %s", chart_path)
    return chart_path


__all__ = ["render_run_charts", "render_iteration_chart", "render_scalability_chart"]
