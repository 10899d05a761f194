from __future__ import annotations

import json

import pandas as pd
import pytest

from conftest import failing
from parabench.main import load_benchmarks, main, parse_args
from parabench.workloads import BENCHMARKS

FAST = ["--quick", "--include", "Prime", "--pool", "serial", "--quiet"]


def test_run_writes_manifest_csv_and_charts(tmp_path):
    code = main(FAST + ["--iter", "2", "--output-dir", str(tmp_path)])

    assert code == 0
    manifest = json.loads((tmp_path / "results.json").read_text())
    assert set(manifest) == {"system", "result"}
    assert set(manifest["result"]) == {"Prime sieve", "_total", "_opt"}
    assert manifest["result"]["_opt"]["iterations"] == 2
    outcomes = pd.read_csv(tmp_path / "outcomes.csv")
    assert list(outcomes["benchmark"].unique()) == ["Prime sieve"]
    assert (tmp_path / "results.csv").exists()
    assert (tmp_path / "iterations.png").exists()


def test_scalability_run_reports_comparison(tmp_path):
    code = main(
        FAST + ["--scalability", "--threads", "2", "--pool", "thread", "--output-dir", str(tmp_path)]
    )

    assert code == 0
    manifest = json.loads((tmp_path / "results.json").read_text())
    assert manifest["baseline"]["_opt"]["workers"] == 1
    assert manifest["scaled"]["_opt"]["workers"] == 2
    assert manifest["scalability"]["_workers"] == {"baseline": 1, "scaled": 2}
    assert (tmp_path / "scalability.png").exists()


def test_scalability_on_one_worker_is_reported_as_unavailable(capsys):
    code = main(["--quick", "--include", "Prime", "--pool", "serial", "--scalability", "--threads", "1"])

    assert code == 1
    assert "not available" in capsys.readouterr().out


def test_dry_run_lists_selected_benchmarks(capsys):
    assert main(["--dry-run", "--include", "Prime|Matrix"]) == 0

    out = capsys.readouterr().out
    assert "Prime sieve" in out
    assert "Matrix product" in out
    assert "Random walk" not in out


@pytest.mark.parametrize(
    "argv",
    [
        ["--include", "("],
        ["--module", "parabench_missing_module"],
        ["--module", "parabench.workloads:MISSING"],
        ["--iter", "0"],
        ["--include", "^nothing$", "--pool", "serial"],
    ],
)
def test_configuration_errors_exit_with_two(argv):
    assert main(argv) == 2


def test_workload_failures_exit_with_one(monkeypatch):
    monkeypatch.setattr("parabench.main.load_benchmarks", lambda target: {"bad": failing})

    assert main(["--pool", "serial", "--quiet"]) == 1


def test_default_module_is_the_demo_suite():
    assert load_benchmarks(None) is BENCHMARKS
    assert load_benchmarks("parabench.workloads") is BENCHMARKS
    assert load_benchmarks("parabench.workloads:BENCHMARKS") is BENCHMARKS


def test_invalid_environment_values_fall_back(monkeypatch, capsys):
    monkeypatch.setenv("PARABENCH_ITER", "many")
    monkeypatch.setenv("PARABENCH_THREADS", "4")

    args = parse_args([])

    assert args.iterations == 1
    assert args.threads == 4
    assert "invalid PARABENCH_ITER" in capsys.readouterr().err


def test_threads_zero_is_a_configuration_error():
    assert main(["--threads", "0", "--pool", "serial", "--quiet"]) == 2


def test_manifest_is_strict_json_when_every_worker_fails(monkeypatch, tmp_path):
    monkeypatch.setattr("parabench.main.load_benchmarks", lambda target: {"bad": failing})

    assert main(["--pool", "serial", "--quiet", "--output-dir", str(tmp_path)]) == 1

    def reject(token):
        raise ValueError(f"non-standard JSON token {token}")

    manifest = json.loads((tmp_path / "results.json").read_text(), parse_constant=reject)
    assert manifest["result"]["bad"]["times"] == [None]
    assert manifest["result"]["_total"]["times"] == [None]
