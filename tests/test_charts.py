from __future__ import annotations

from parabench.suite.charts import render_run_charts
from parabench.suite.scalability import compare


def test_single_iteration_run_renders_nothing(make_result, tmp_path):
    assert render_run_charts(make_result({"A": [1000.0]}), tmp_path) == []


def test_iteration_and_scalability_charts_are_written(make_result, tmp_path):
    baseline = make_result({name: [100.0, 110.0] for name in "ABCD"})
    scaled = make_result(
        {"A": [800.0, 790.0], "B": [800.0, 810.0], "C": [780.0, 800.0], "D": [100.0, 120.0]},
        workers=8,
    )

    paths = render_run_charts(
        scaled, tmp_path / "charts", scalability=compare(baseline, scaled), prefix="run-"
    )

    assert [path.name for path in paths] == ["run-iterations.png", "run-scalability.png"]
    assert all(path.exists() and path.stat().st_size > 0 for path in paths)


def test_time_reporting_run_charts_times(make_result, tmp_path):
    paths = render_run_charts(make_result(times={"A": [0.5, 0.4], "B": [1.0, 1.1]}), tmp_path)

    assert [path.name for path in paths] == ["iterations.png"]
