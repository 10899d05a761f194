from __future__ import annotations

import math

import pytest

from conftest import echo
from parabench.errors import ScalabilityUnavailableError
from parabench.suite.config import TOTAL_KEY
from parabench.suite.scalability import compare, find_outliers, suite_calc


def test_comparing_a_run_with_itself_is_one(make_result):
    run = make_result({"A": [100.0, 120.0], "B": [50.0, 55.0], "C": [10.0, 9.0]})

    scalability = compare(run, run, keep_outliers=True)

    for name in ("A", "B", "C", TOTAL_KEY):
        assert scalability[name].mean == pytest.approx(1.0)
        assert scalability[name].ratios == pytest.approx((1.0, 1.0))


def test_poor_scaler_is_excluded_from_total(make_result):
    baseline = make_result({name: [100.0] for name in "ABCD"})
    scaled = make_result(
        {"A": [800.0], "B": [800.0], "C": [800.0], "D": [100.0]}, workers=8
    )

    filtered = compare(baseline, scaled)
    kept = compare(baseline, scaled, keep_outliers=True)

    assert filtered.outliers == ("D",)
    assert filtered.total.mean == pytest.approx(8.0)
    assert kept.outliers == ()
    assert kept.total.mean == pytest.approx(6.25)
    assert filtered["D"].mean == pytest.approx(1.0)


def test_find_outliers_only_flags_low_values():
    assert find_outliers({"A": 8.0, "B": 8.0, "C": 8.0, "D": 1.0}) == ("D",)
    assert find_outliers({"A": 1.0, "B": 1.0, "C": 1.0, "D": 8.0}) == ()
    assert find_outliers({"A": 4.0, "B": 4.0, "C": 4.0, "D": 4.0}) == ()


def test_small_suites_never_flag_outliers():
    assert find_outliers({"A": 8.0, "B": 1.0}) == ()
    assert find_outliers({"A": 8.0, "B": 8.0, "C": 1.0}) == ()
    assert find_outliers({}) == ()


def test_fewer_scaled_workers_is_unavailable(make_result):
    baseline = make_result({"A": [100.0]}, workers=4)
    scaled = make_result({"A": [100.0]}, workers=2)

    with pytest.raises(ScalabilityUnavailableError):
        compare(baseline, scaled)


def test_disjoint_runs_are_unavailable(make_result):
    with pytest.raises(ScalabilityUnavailableError):
        compare(make_result({"A": [1.0]}), make_result({"B": [1.0]}, workers=2))


def test_unscored_runs_compare_worker_throughput(make_result):
    baseline = make_result(times={"A": [1.0]})
    scaled = make_result(times={"A": [2.0]}, workers=4)

    scalability = compare(baseline, scaled)

    assert scalability["A"].mean == pytest.approx(2.0)


def test_zero_baseline_score_gives_nan(make_result):
    baseline = make_result({"A": [0.0], "B": [100.0]})
    scaled = make_result({"A": [100.0], "B": [200.0]}, workers=2)

    scalability = compare(baseline, scaled)

    assert math.isnan(scalability["A"].mean)
    assert scalability.total.mean == pytest.approx(2.0)


def test_ratios_are_per_iteration(make_result):
    baseline = make_result({"A": [100.0, 100.0, 100.0]}, stdev=True)
    scaled = make_result({"A": [200.0, 400.0, 300.0]}, workers=4)

    entry = compare(baseline, scaled)["A"]

    assert entry.ratios == pytest.approx((2.0, 4.0, 3.0))
    assert (entry.stats.min, entry.stats.max) == pytest.approx((2.0, 4.0))
    assert entry.stats.rel_stdev == pytest.approx(1.0 / 3.0)


def test_inputs_are_not_mutated(make_result):
    baseline = make_result({"A": [100.0], "B": [100.0]})
    scaled = make_result({"A": [200.0], "B": [300.0]}, workers=2)
    before = (baseline.to_dict(), scaled.to_dict())

    compare(baseline, scaled)

    assert (baseline.to_dict(), scaled.to_dict()) == before


def test_to_dict_lists_outliers_and_workers(make_result):
    baseline = make_result({name: [100.0] for name in "ABCD"})
    scaled = make_result({"A": [800.0], "B": [800.0], "C": [800.0], "D": [100.0]}, workers=8)

    payload = compare(baseline, scaled).to_dict()

    assert payload["_outliers"] == ["D"]
    assert payload["_workers"] == {"baseline": 1, "scaled": 8}
    assert payload[TOTAL_KEY]["mean"] == pytest.approx(8.0)


def test_suite_calc_runs_baseline_and_scaled(scripted_pool):
    pool = scripted_pool(default=0.5)
    benchmarks = {"A": {"func": echo, "ref_time": 1.0}, "B": {"func": echo, "ref_time": 1.0}}

    comparison = suite_calc(benchmarks, workers=3, pool=pool)

    assert comparison.baseline.workers == 1
    assert comparison.scaled.workers == 3
    assert comparison.scalability.total.mean == pytest.approx(3.0)
    assert pool.calls == [("A", 1), ("B", 1), ("A", 3), ("B", 3)]


def test_suite_calc_needs_more_than_one_worker(scripted_pool, monkeypatch):
    monkeypatch.setattr("parabench.suite.scalability.detect_core_count", lambda: 1)

    with pytest.raises(ScalabilityUnavailableError):
        suite_calc({"A": echo}, pool=scripted_pool())
    with pytest.raises(ScalabilityUnavailableError):
        suite_calc({"A": echo}, workers=1, pool=scripted_pool())
    with pytest.raises(ScalabilityUnavailableError):
        suite_calc({"A": echo}, workers=4, pool=scripted_pool(), no_parallel=True)


def test_runs_with_different_iteration_counts_compare_the_shared_prefix(make_result):
    baseline = make_result({"A": [100.0, 100.0, 100.0], "B": [100.0, 100.0, 100.0]})
    scaled = make_result({"A": [200.0, 400.0], "B": [300.0, 300.0]}, workers=4)

    scalability = compare(baseline, scaled)

    assert scalability["A"].ratios == pytest.approx((2.0, 4.0))
    assert len(scalability["B"].ratios) == 2
    assert scalability.total.ratios == pytest.approx((2.5, 3.5))
    assert scalability.total.mean == pytest.approx(3.0)


def test_tightly_grouped_small_suite_can_flag_a_good_scaler():
    assert find_outliers({"a": 7.9, "b": 8.1, "c": 8.0, "d": 7.5}) == ("d",)
