import numpy as np
import pandas as pd

from spline_coverage.estimator import fit
from spline_coverage.reporting import (
    coverage_table,
    fit_table,
    format_estimate,
    print_summary,
    to_latex,
)
from spline_coverage.simulation import StudyConfig, simulate_coverage


def _study():
    return simulate_coverage(StudyConfig(n_obs=200, n_params=3, n_replicates=60, seed=4))


def test_fit_table_with_truth():
    rng = np.random.default_rng(0)
    X = np.column_stack([np.ones(100), rng.normal(size=100)])
    y = X @ [1.0, 2.0] + rng.normal(size=100)
    table = fit_table(fit(X, y, names=["intercept", "slope"]), truth=[1.0, 2.0], digits=3)

    assert list(table["parameter"]) == ["intercept", "slope"]
    assert {"estimate", "se", "lower", "upper", "true"} <= set(table.columns)


def test_coverage_table_columns():
    table = coverage_table(_study())
    assert len(table) == 3
    assert {"coverage", "mc_se", "ci_lower", "ci_upper", "consistent", "rmse"} <= set(table.columns)


def test_to_latex_caption_and_label():
    df = pd.DataFrame({"parameter": ["a"], "coverage": [0.951]})
    latex = to_latex(df, caption="Coverage", label="tab:cov")
    assert "\\caption{Coverage}" in latex
    assert "\\label{tab:cov}" in latex
    assert "0.951" in latex
    assert "\\begin{table}" in latex
    assert latex.index("\\caption{Coverage}") < latex.index("\\end{table}")


def test_to_latex_without_caption_is_bare_tabular():
    latex = to_latex(pd.DataFrame({"a": [1.0]}))
    assert "\\begin{tabular}" in latex
    assert "\\begin{table}" not in latex


def test_format_estimate():
    assert format_estimate(1.23456, 0.1, 1.0, 1.4, digits=2) == "1.23 (0.10) [1.00, 1.40]"


def test_print_summary(capsys):
    print_summary(_study())
    out = capsys.readouterr().out
    assert "COVERAGE STUDY SUMMARY" in out
    assert "x1" in out
