"""
Coverage and Fit Diagnostics
============================

Functions for judging whether simulated coverage is consistent with the
nominal level, whether a broken-stick fit is continuous at its knots, and
whether a fit recovered known parameters.

An empirical coverage p̂ from R replicates is a binomial proportion with
Monte Carlo standard error sqrt(p̂(1 - p̂) / R). With R = 300 and nominal
0.95 this is about 0.013, so p̂ anywhere in roughly [0.92, 0.98] is
statistically indistinguishable from a calibrated interval.
"""

from typing import Any, Dict, Optional, Union

import numpy as np
import pandas as pd
from numpy.typing import ArrayLike, NDArray
from scipy import stats

from spline_coverage.estimator import FitResult
from spline_coverage.linalg import as_vector
from spline_coverage.simulation import CoverageStudy
from spline_coverage.splines import evaluate_broken_stick, validate_knots


def monte_carlo_se(p: float, n: int) -> float:
    """
    Monte Carlo standard error of a proportion.

    >>> round(monte_carlo_se(0.95, 300), 4)
    0.0126
    """
    if n < 1:
        raise ValueError(f"n must be >= 1, got {n}")
    return float(np.sqrt(p * (1.0 - p) / n))


def coverage_interval(
    n_covered: int,
    n_total: int,
    level: float = 0.95,
    method: str = "wilson",
) -> Dict[str, float]:
    """
    Binomial confidence interval for an empirical coverage proportion.

    Parameters
    ----------
    n_covered : int
        Replicates whose interval covered the true value.
    n_total : int
        Replicates.
    level : float, default 0.95
        Confidence level of the interval around the proportion.
    method : {'wilson', 'exact', 'wilsoncc'}, default 'wilson'
        Passed to scipy.stats.binomtest(...).proportion_ci.

    Returns
    -------
    dict
        ``coverage``, ``mc_se``, ``ci_lower``, ``ci_upper``.
    """
    if not 0 <= n_covered <= n_total:
        raise ValueError(
            f"Need 0 <= n_covered <= n_total, got {n_covered} and {n_total}"
        )
    p_hat = n_covered / n_total
    ci = stats.binomtest(int(n_covered), int(n_total)).proportion_ci(
        confidence_level=level, method=method
    )
    return {
        "coverage": p_hat,
        "mc_se": monte_carlo_se(p_hat, n_total),
        "ci_lower": float(ci.low),
        "ci_upper": float(ci.high),
    }


def coverage_calibration(
    study: Union[CoverageStudy, pd.DataFrame],
    nominal: float = 0.95,
    level: float = 0.99,
) -> pd.DataFrame:
    """
    Per-parameter check of empirical coverage against the nominal level.

    Parameters
    ----------
    study : CoverageStudy or DataFrame
        A coverage study, or its replicate records (columns ``parameter``
        and ``covered``).
    nominal : float, default 0.95
        Nominal coverage of the intervals.
    level : float, default 0.99
        Confidence level of the binomial interval around each proportion.

    Returns
    -------
    pd.DataFrame
        One row per parameter with ``n_reps``, ``n_covered``, ``coverage``,
        ``mc_se``, ``ci_lower``, ``ci_upper``, ``nominal`` and
        ``consistent`` (nominal inside the interval).
    """
    records = study.records if isinstance(study, CoverageStudy) else study

    rows = []
    for name, grp in records.groupby("parameter", sort=False):
        n_total = int(len(grp))
        n_covered = int(grp["covered"].sum())
        interval = coverage_interval(n_covered, n_total, level=level)
        rows.append({
            "parameter": name,
            "n_reps": n_total,
            "n_covered": n_covered,
            **interval,
            "nominal": nominal,
            "consistent": interval["ci_lower"] <= nominal <= interval["ci_upper"],
        })
    return pd.DataFrame(rows)


def continuity_gaps(
    knots: ArrayLike,
    slopes: ArrayLike,
    intercept: float = 0.0,
    eps: float = 1e-9,
) -> NDArray:
    """
    Jump of a broken-stick function across each knot.

    Evaluates the function at kⱼ - eps and kⱼ + eps and subtracts the part
    explained by the local slopes, leaving only a discontinuity (if any).

    Returns
    -------
    ndarray of shape (n_knots,)
        Absolute jump at each knot; zero up to rounding for a continuous fit.
    """
    k = validate_knots(knots, min_segments=2)
    s = as_vector(slopes, name="slopes")
    below = evaluate_broken_stick(k - eps, k, s, intercept)
    above = evaluate_broken_stick(k + eps, k, s, intercept)
    expected = eps * (s[:-1] + s[1:])
    return np.abs(above - below - expected)


def recovery_check(
    result: FitResult,
    truth: ArrayLike,
    n_se: float = 3.0,
) -> pd.DataFrame:
    """
    Compare fitted coefficients with known true values.

    Returns
    -------
    pd.DataFrame
        ``parameter``, ``true``, ``estimate``, ``se``, ``z`` (standardized
        error) and ``recovered`` (|z| <= n_se).
    """
    truth = as_vector(truth, name="truth")
    if truth.size != result.k:
        raise ValueError(f"truth has {truth.size} values, fit has {result.k} parameters")
    z = (result.coef - truth) / result.se
    return pd.DataFrame({
        "parameter": list(result.names),
        "true": truth,
        "estimate": result.coef,
        "se": result.se,
        "z": z,
        "recovered": np.abs(z) <= n_se,
    })


def coverage_report(
    study: CoverageStudy,
    nominal: float = 0.95,
) -> Dict[str, Any]:
    """
    Short textual interpretation of a coverage study.

    Returns
    -------
    dict
        ``calibrated`` (all parameters consistent), ``worst_parameter``,
        ``worst_coverage`` and ``interpretation``.
    """
    calib = coverage_calibration(study, nominal=nominal)
    worst = calib.iloc[int(np.argmax(np.abs(calib["coverage"] - nominal)))]
    calibrated = bool(calib["consistent"].all())

    if calibrated:
        interpretation = (
            f"All {len(calib)} parameters have coverage consistent with the "
            f"nominal {nominal:.0%} level over {study.n_succeeded} replicates."
        )
    else:
        bad = calib.loc[~calib["consistent"], "parameter"].tolist()
        interpretation = (
            f"Coverage of {', '.join(bad)} departs from the nominal {nominal:.0%} "
            "level by more than Monte Carlo error; check the model specification "
            "and the standard-error formula."
        )

    failed_note: Optional[str] = None
    if study.n_failed:
        failed_note = f"{study.n_failed} replicate(s) failed and were skipped."

    return {
        "calibrated": calibrated,
        "worst_parameter": worst["parameter"],
        "worst_coverage": float(worst["coverage"]),
        "interpretation": interpretation,
        "failures": failed_note,
    }
