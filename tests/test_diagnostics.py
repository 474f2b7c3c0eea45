import numpy as np
import pandas as pd
import pytest

from spline_coverage.diagnostics import (
    continuity_gaps,
    coverage_calibration,
    coverage_interval,
    coverage_report,
    monte_carlo_se,
    recovery_check,
)
from spline_coverage.estimator import fit
from spline_coverage.simulation import (
    BrokenStickDGP,
    CoverageStudy,
    StudyConfig,
    simulate_coverage,
)
from spline_coverage.splines import aggregator_matrix


def test_monte_carlo_se():
    assert np.isclose(monte_carlo_se(0.95, 300), np.sqrt(0.95 * 0.05 / 300))
    assert monte_carlo_se(1.0, 10) == 0.0


def test_coverage_interval_contains_estimate():
    out = coverage_interval(285, 300)
    assert np.isclose(out["coverage"], 0.95)
    assert out["ci_lower"] < 0.95 < out["ci_upper"]
    with pytest.raises(ValueError):
        coverage_interval(11, 10)


def test_calibration_flags_undercoverage():
    records = pd.DataFrame({
        "parameter": ["good"] * 300 + ["bad"] * 300,
        "covered": [True] * 285 + [False] * 15 + [True] * 240 + [False] * 60,
    })
    calib = coverage_calibration(records).set_index("parameter")

    assert bool(calib.loc["good", "consistent"])
    assert not bool(calib.loc["bad", "consistent"])
    assert calib.loc["bad", "n_covered"] == 240


def test_continuity_gaps_zero_for_broken_stick():
    assert np.all(continuity_gaps([1.0, 2.0], [1.0, -3.0, 2.0]) < 1e-10)


def test_continuity_gaps_needs_a_knot():
    with pytest.raises(ValueError):
        continuity_gaps([], [1.0])


def test_recovery_check():
    slopes = [0.5, 2.5]
    x, y, _ = BrokenStickDGP(knots=[1.0], slopes=slopes, sigma=0.4).generate(1000, random_state=5)
    result = fit(aggregator_matrix(x, [1.0]), y, names=["slope_1", "slope_2"])
    check = recovery_check(result, slopes)

    assert list(check["parameter"]) == ["slope_1", "slope_2"]
    assert check["recovered"].all()
    assert np.allclose(check["z"], (result.coef - slopes) / result.se)


def test_coverage_report():
    study = simulate_coverage(StudyConfig(n_obs=300, n_params=3, n_replicates=200, seed=8))
    report = coverage_report(study)

    assert isinstance(report["calibrated"], bool)
    assert report["worst_parameter"] in study.coverage
    assert report["failures"] is None
    if report["calibrated"]:
        assert "consistent with the nominal" in report["interpretation"]
    else:
        assert "departs from the nominal" in report["interpretation"]


def test_coverage_report_flags_miscalibration():
    records = pd.DataFrame({
        "replicate": list(range(100)),
        "parameter": ["x1"] * 100,
        "covered": [True] * 70 + [False] * 30,
    })
    study = CoverageStudy(
        config=StudyConfig(n_params=2, n_replicates=100),
        records=records,
        coverage={"x1": 0.7},
        n_succeeded=100,
        n_failed=2,
    )
    report = coverage_report(study)

    assert not report["calibrated"]
    assert report["worst_parameter"] == "x1"
    assert "x1" in report["interpretation"]
    assert report["failures"] == "2 replicate(s) failed and were skipped."
