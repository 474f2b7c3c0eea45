"""
Reporting Functions
===================

Functions for creating summary tables and LaTeX output.
"""

from typing import Optional

import numpy as np
from numpy.typing import ArrayLike
import pandas as pd

from spline_coverage.diagnostics import coverage_calibration
from spline_coverage.estimator import FitResult
from spline_coverage.simulation import CoverageStudy


def fit_table(
    result: FitResult,
    truth: Optional[ArrayLike] = None,
    digits: Optional[int] = None,
) -> pd.DataFrame:
    """
    Fitted-parameter table for a single fit.

    Parameters
    ----------
    result : FitResult
        Output of fit().
    truth : array-like, optional
        True parameter values; adds ``true`` and ``covered`` columns.
    digits : int, optional
        Round numeric columns.

    Returns
    -------
    pd.DataFrame
        One row per parameter: name, estimate, se, lower, upper
        (and true value).
    """
    df = result.to_frame(truth=truth)
    if digits is not None:
        df = df.round(digits)
    return df


def coverage_table(
    study: CoverageStudy,
    nominal: float = 0.95,
) -> pd.DataFrame:
    """
    Coverage table joining summary statistics and calibration checks.

    Returns
    -------
    pd.DataFrame
        One row per parameter with coverage, Monte Carlo interval, bias,
        RMSE, mean SE, empirical SD and mean CI length.
    """
    summary = study.summary()
    calib = coverage_calibration(study, nominal=nominal)[
        ["parameter", "mc_se", "ci_lower", "ci_upper", "consistent"]
    ]
    return summary.merge(calib, on="parameter", how="left")


def to_latex(
    df: pd.DataFrame,
    caption: Optional[str] = None,
    label: Optional[str] = None,
    float_format: str = "%.3f",
) -> str:
    """
    Export a DataFrame to LaTeX table format.

    Parameters
    ----------
    df : pd.DataFrame
        Table to export.
    caption : str, optional
        Table caption.
    label : str, optional
        LaTeX label for referencing.
    float_format : str, default '%.3f'
        Format string for floating point numbers.

    Returns
    -------
    str
        LaTeX code. A ``table`` float wraps the ``tabular`` whenever a
        caption or label is given.
    """
    return df.to_latex(
        index=False,
        float_format=float_format,
        escape=False,
        caption=caption,
        label=label,
        position="htbp" if caption or label else None,
    )


def format_estimate(
    estimate: float,
    se: float,
    lower: float,
    upper: float,
    digits: int = 3,
) -> str:
    """
    Format an estimate for text reporting.

    Returns
    -------
    str
        Formatted string like "1.234 (0.045) [1.146, 1.322]"
    """
    return (
        f"{estimate:.{digits}f} ({se:.{digits}f}) "
        f"[{lower:.{digits}f}, {upper:.{digits}f}]"
    )


def print_summary(study: CoverageStudy, nominal: float = 0.95) -> None:
    """
    Print a formatted coverage summary to console.
    """
    cfg = study.config
    table = coverage_table(study, nominal=nominal)

    print("\n" + "=" * 70)
    print("COVERAGE STUDY SUMMARY")
    print("=" * 70)
    print(f"\nDesign: {cfg.design}  |  n = {cfg.n_obs}  |  k = {cfg.n_params}  |  z = {cfg.confidence_z:.2f}")
    print(f"Replicates: {study.n_succeeded} succeeded, {study.n_failed} failed")
    print("-" * 70)

    for _, row in table.iterrows():
        flag = "✓" if row["consistent"] else "✗"
        print(
            f"  {row['parameter']:<12} coverage = {row['coverage']:.3f} "
            f"[{row['ci_lower']:.3f}, {row['ci_upper']:.3f}] {flag}  "
            f"bias = {row['mean_bias']: .4f}  se/sd = {row['se_ratio']:.3f}"
        )

    print("\n" + "=" * 70)

    if len(table) > 1:
        cov = table["coverage"].to_numpy()
        print(f"\nCoverage range: [{np.min(cov):.3f}, {np.max(cov):.3f}]  (nominal {nominal:.3f})")
        print("=" * 70 + "\n")
