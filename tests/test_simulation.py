import numpy as np
import pandas as pd
import pytest

from spline_coverage.exceptions import ReplicateFailed, SingularDesignMatrix
from spline_coverage.simulation import (
    BrokenStickDGP,
    StudyConfig,
    compute_summary_statistics,
    replicate_seeds,
    run_coverage_study,
    run_single_replication,
    simulate_coverage,
    simulate_design,
    simulate_replicate,
)


def test_bernoulli_design_shape_and_values():
    config = StudyConfig(n_obs=200, n_params=4, n_replicates=1)
    X = simulate_design(np.random.default_rng(0), config)

    assert X.shape == (200, 4)
    assert np.all(X[:, 0] == 1.0)
    assert set(np.unique(X[:, 1:])) <= {0.0, 1.0}


def test_spline_design_default_knots():
    config = StudyConfig(n_obs=100, n_params=4, n_replicates=1, design="spline")
    assert np.allclose(config.spline_knots, [2 / 3, 4 / 3])
    assert config.param_names == ["intercept", "slope_1", "slope_2", "slope_3"]

    X = simulate_design(np.random.default_rng(0), config)
    assert X.shape == (100, 4)
    assert np.all(X[:, 0] == 1.0)


def test_spline_design_explicit_knots_without_intercept():
    config = StudyConfig(n_obs=50, n_params=2, n_replicates=1, design="spline",
                         knots=[1.0], intercept=False)
    assert config.param_names == ["slope_1", "slope_2"]
    with pytest.raises(ValueError):
        StudyConfig(n_params=4, design="spline", knots=[1.0], intercept=False)


@pytest.mark.parametrize("kwargs", [
    {"sigma_range": (0.0, 0.0)},
    {"param_range": (2.0, 1.0)},
    {"design": "cubic"},
    {"on_failure": "retry"},
    {"n_replicates": 0},
    {"knots": (1.0,)},
])
def test_invalid_config(kwargs):
    with pytest.raises(ValueError):
        StudyConfig(**kwargs)


def test_replicate_draws_respect_ranges():
    config = StudyConfig(n_obs=100, n_params=3, n_replicates=1,
                         param_range=(1.0, 2.0), sigma_range=(0.0, 0.5))
    data = simulate_replicate(np.random.default_rng(5), config)

    assert np.all((data["beta"] >= 1.0) & (data["beta"] <= 2.0))
    assert 0.0 < data["sigma"] <= 0.5
    assert np.allclose(data["mu"], data["X"] @ data["beta"])
    assert data["y"].shape == (100,)


def test_replicate_seeds_are_reproducible():
    _, a = replicate_seeds(123, 3)
    _, b = replicate_seeds(123, 3)
    draws_a = [np.random.default_rng(s).random() for s in a]
    draws_b = [np.random.default_rng(s).random() for s in b]
    assert draws_a == draws_b
    assert len(set(draws_a)) == 3


def test_single_replication_records():
    config = StudyConfig(n_obs=300, n_params=3, n_replicates=1)
    _, children = replicate_seeds(1, 1)
    outcome = run_single_replication(0, children[0], config)

    assert outcome["error"] is None
    assert [r["parameter"] for r in outcome["records"]] == ["intercept", "x1", "x2"]
    for r in outcome["records"]:
        assert r["covered"] == (r["lower"] <= r["true"] <= r["upper"])


def test_coverage_is_calibrated():
    coverage = run_coverage_study(
        n_obs=1000, n_params=4, n_replicates=300,
        param_range=(-2.0, 2.0), sigma_range=(0.5, 2.0),
        seed=2024, confidence_z=1.96,
    )
    assert list(coverage) == ["intercept", "x1", "x2", "x3"]
    for value in coverage.values():
        assert 0.90 <= value <= 0.99


def test_spline_coverage_is_calibrated():
    coverage = run_coverage_study(
        n_obs=500, n_params=4, n_replicates=300, seed=7, design="spline",
    )
    for value in coverage.values():
        assert 0.90 <= value <= 0.99


def test_same_seed_gives_identical_results():
    kwargs = dict(n_obs=200, n_params=3, n_replicates=50, seed=99)
    assert run_coverage_study(**kwargs) == run_coverage_study(**kwargs)


def test_parallel_matches_serial():
    config = StudyConfig(n_obs=200, n_params=3, n_replicates=20, seed=5)
    serial = simulate_coverage(config, n_jobs=1)
    parallel = simulate_coverage(config, n_jobs=2)

    assert serial.coverage == parallel.coverage
    pd.testing.assert_frame_equal(serial.records, parallel.records)


def test_unseeded_study_reproducible_from_entropy():
    config = StudyConfig(n_obs=100, n_params=2, n_replicates=10)
    first = simulate_coverage(config)
    again = simulate_coverage(StudyConfig(n_obs=100, n_params=2, n_replicates=10,
                                          seed=first.entropy))
    pd.testing.assert_frame_equal(first.records, again.records)


def test_failed_replicates_are_skipped_with_warning():
    # Six rows and four columns: a Bernoulli column is often constant,
    # leaving the design rank deficient.
    config = StudyConfig(n_obs=6, n_params=4, n_replicates=40, seed=3)
    with pytest.warns(RuntimeWarning, match="replicates failed"):
        study = simulate_coverage(config)

    assert study.n_failed > 0
    assert study.n_succeeded + study.n_failed == 40
    assert len(study.failures) == study.n_failed
    assert study.records["replicate"].nunique() == study.n_succeeded
    for value in study.coverage.values():
        assert 0.0 <= value <= 1.0


def test_failed_replicate_aborts_when_configured():
    config = StudyConfig(n_obs=6, n_params=4, n_replicates=40, seed=3, on_failure="raise")
    with pytest.raises(ReplicateFailed) as excinfo:
        simulate_coverage(config)
    assert isinstance(excinfo.value.__cause__, SingularDesignMatrix)
    assert excinfo.value.replicate >= 0


def test_all_replicates_failing_raises():
    # Knot beyond x_range makes the last slope column identically zero.
    config = StudyConfig(n_obs=50, n_params=3, n_replicates=5, seed=1,
                         design="spline", knots=[5.0])
    with pytest.raises(ReplicateFailed):
        simulate_coverage(config)


def test_summary_statistics():
    config = StudyConfig(n_obs=500, n_params=3, n_replicates=100, seed=11)
    study = simulate_coverage(config)
    summary = compute_summary_statistics(study.records)

    assert list(summary["parameter"]) == ["intercept", "x1", "x2"]
    assert np.all(summary["n_reps"] == 100)
    assert np.allclose(summary["coverage"], [study.coverage[p] for p in summary["parameter"]])
    assert np.all(np.abs(summary["mean_bias"]) < 0.1)
    assert np.all((summary["se_ratio"] > 0.7) & (summary["se_ratio"] < 1.3))
    assert study.covered_counts["x1"] == int(round(study.coverage["x1"] * 100))


def test_broken_stick_dgp():
    dgp = BrokenStickDGP(knots=[1.0], slopes=[0.5, 2.5], sigma=0.4)
    x, y, info = dgp.generate(1000, random_state=0)

    assert x.shape == y.shape == (1000,)
    assert np.all((x >= 0.0) & (x <= 2.0))
    assert np.isclose(dgp.mean(np.array([1.0]))[0], 0.5)
    assert np.isclose(dgp.mean(np.array([2.0]))[0], 3.0)
    assert abs(np.std(y - info["mu"]) - 0.4) < 0.05

    with pytest.raises(ValueError):
        BrokenStickDGP(knots=[1.0], slopes=[1.0, 2.0, 3.0])
    with pytest.raises(ValueError):
        BrokenStickDGP(sigma=0.0)


def test_sigma_range_below_zero_redraws_until_positive():
    config = StudyConfig(n_obs=200, n_params=3, n_replicates=20,
                         sigma_range=(-1.0, 1.0), seed=1)
    rng = np.random.default_rng(0)
    draws = [simulate_replicate(rng, config)["sigma"] for _ in range(50)]
    assert all(0.0 < s <= 1.0 for s in draws)

    study = simulate_coverage(config)
    assert study.n_succeeded == 20
    assert np.all(study.records["sigma"] > 0)
