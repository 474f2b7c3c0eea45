import matplotlib.pyplot as plt
import numpy as np
import pytest

from spline_coverage.diagnostics import coverage_calibration
from spline_coverage.estimator import fit
from spline_coverage.plotting import (
    plot_broken_stick_fit,
    plot_coverage,
    plot_interval_caterpillar,
    save_figure,
)
from spline_coverage.simulation import BrokenStickDGP, StudyConfig, simulate_coverage
from spline_coverage.splines import aggregator_matrix


@pytest.fixture
def study():
    return simulate_coverage(StudyConfig(n_obs=200, n_params=3, n_replicates=40, seed=6))


def test_plot_broken_stick_fit():
    x, y, _ = BrokenStickDGP().generate(200, random_state=1)
    result = fit(aggregator_matrix(x, [1.0]), y)
    ax = plot_broken_stick_fit(x, y, [1.0], result, true_slopes=[0.5, 2.5])
    assert len(ax.lines) >= 3
    plt.close(ax.figure)


def test_plot_broken_stick_fit_with_intercept():
    x, y, _ = BrokenStickDGP(intercept=1.0).generate(200, random_state=2)
    A = np.column_stack([np.ones(x.size), aggregator_matrix(x, [1.0])])
    ax = plot_broken_stick_fit(x, y, [1.0], fit(A, y), intercept=True)
    plt.close(ax.figure)


def test_plot_coverage(study):
    ax = plot_coverage(coverage_calibration(study))
    assert [t.get_text() for t in ax.get_xticklabels()] == ["intercept", "x1", "x2"]
    plt.close(ax.figure)


def test_plot_interval_caterpillar(study):
    ax = plot_interval_caterpillar(study.records, "x1")
    plt.close(ax.figure)
    with pytest.raises(ValueError):
        plot_interval_caterpillar(study.records, "missing")


def test_save_figure(tmp_path):
    fig, ax = plt.subplots()
    ax.plot([0, 1], [0, 1])
    written = save_figure(fig, tmp_path / "out" / "figure", formats=("png",))
    plt.close(fig)
    assert written[0].exists()
    assert written[0].suffix == ".png"
