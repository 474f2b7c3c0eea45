"""
OLS Estimator with Uncertainty
==============================

Least-squares fit of a linear model y = Xβ + ε reporting coefficient
standard errors and normal-approximation confidence intervals.

    β̂      = argmin ||y - Xβ||²            (thin QR)
    s²      = RSS / (n - k)                  (RSS / n without dof correction)
    Cov(β̂) = s² (XᵀX)⁻¹
    CI      = β̂ ± z · se(β̂)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from numpy.typing import ArrayLike, NDArray
from scipy import stats

from spline_coverage.exceptions import DimensionMismatch
from spline_coverage.linalg import as_matrix, as_vector, check_finite, qr_solve


# =============================================================================
# CONSTANTS
# =============================================================================

Z_95: float = 1.96           # Critical value for 95% CI (α = 0.05)


def z_for_level(level: float = 0.95) -> float:
    """
    Two-sided standard normal critical value for a confidence level.

    >>> round(z_for_level(0.95), 2)
    1.96
    """
    if not 0 < level < 1:
        raise ValueError(f"level must be in (0, 1), got {level}")
    return float(stats.norm.ppf(0.5 + level / 2.0))


def default_names(k: int) -> List[str]:
    """Parameter names beta_0, ..., beta_{k-1}."""
    return [f"beta_{j}" for j in range(k)]


# =============================================================================
# Result Container
# =============================================================================

@dataclass(frozen=True, eq=False)
class FitResult:
    """
    Container for an OLS fit with parameter uncertainty.

    Arrays are made read-only on construction.

    Attributes
    ----------
    coef : NDArray
        Fitted coefficients β̂.
    se : NDArray
        Standard errors sqrt(diag(Cov(β̂))).
    lower, upper : NDArray
        Confidence bounds β̂ ∓ z·se.
    covariance : NDArray
        Estimated covariance s²(XᵀX)⁻¹.
    residuals : NDArray
        y - Xβ̂.
    sigma_hat : float
        Residual standard deviation s.
    n : int
        Number of observations.
    k : int
        Number of parameters.
    dof : int
        Degrees of freedom used for s² (n - k, or n without correction).
    confidence_z : float
        Multiplier used for the interval.
    names : tuple of str
        Parameter names.
    tss : float
        Total sum of squares about the mean of y.
    """
    coef: NDArray
    se: NDArray
    lower: NDArray
    upper: NDArray
    covariance: NDArray
    residuals: NDArray
    sigma_hat: float
    n: int
    k: int
    dof: int
    confidence_z: float
    names: Tuple[str, ...]
    tss: float

    def __post_init__(self) -> None:
        for attr in ("coef", "se", "lower", "upper", "covariance", "residuals"):
            getattr(self, attr).flags.writeable = False

    @property
    def ci_length(self) -> NDArray:
        """Length of each confidence interval."""
        return self.upper - self.lower

    @property
    def t_stat(self) -> NDArray:
        """Wald statistics β̂ / se."""
        with np.errstate(divide="ignore", invalid="ignore"):
            return np.where(self.se > 0, self.coef / self.se, np.nan)

    @property
    def pvalue(self) -> NDArray:
        """Two-sided normal p-values."""
        return 2 * (1 - stats.norm.cdf(np.abs(self.t_stat)))

    @property
    def rss(self) -> float:
        """Residual sum of squares."""
        return float(self.residuals @ self.residuals)

    @property
    def r_squared(self) -> float:
        """Coefficient of determination (NaN when y is constant)."""
        if self.tss <= 0:
            return np.nan
        return 1.0 - self.rss / self.tss

    def covers(self, truth: ArrayLike) -> NDArray:
        """
        Whether each true parameter lies inside [lower, upper].

        Parameters
        ----------
        truth : array-like of shape (k,)
            True parameter values.

        Returns
        -------
        ndarray of bool, shape (k,)
        """
        truth = as_vector(truth, name="truth")
        if truth.size != self.k:
            raise DimensionMismatch(
                f"truth has {truth.size} values, fit has {self.k} parameters"
            )
        return (self.lower <= truth) & (truth <= self.upper)

    def predict(self, X: ArrayLike) -> NDArray:
        """Linear predictor X β̂."""
        X = as_matrix(X)
        if X.shape[1] != self.k:
            raise DimensionMismatch(
                f"X has {X.shape[1]} columns, fit has {self.k} parameters"
            )
        return X @ self.coef

    def to_frame(self, truth: Optional[ArrayLike] = None) -> pd.DataFrame:
        """
        Fitted-parameter table: name, estimate, se, lower, upper and,
        when ``truth`` is given, the true value and coverage flag.
        """
        df = pd.DataFrame({
            "parameter": list(self.names),
            "estimate": self.coef,
            "se": self.se,
            "lower": self.lower,
            "upper": self.upper,
        })
        if truth is not None:
            covered = self.covers(truth)
            df["true"] = as_vector(truth, name="truth")
            df["covered"] = covered
        return df

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (excluding residuals and covariance)."""
        return {
            "names": list(self.names),
            "coef": self.coef.tolist(),
            "se": self.se.tolist(),
            "lower": self.lower.tolist(),
            "upper": self.upper.tolist(),
            "sigma_hat": self.sigma_hat,
            "r_squared": self.r_squared,
            "n": self.n,
            "k": self.k,
            "dof": self.dof,
            "confidence_z": self.confidence_z,
        }

    def __repr__(self) -> str:
        width = max(len(name) for name in self.names)
        lines = [
            "",
            "OLS Fit",
            "───────",
        ]
        for j, name in enumerate(self.names):
            lines.append(
                f"  {name:<{width}}  {self.coef[j]: .4f} (SE = {self.se[j]:.4f})  "
                f"[{self.lower[j]:.4f}, {self.upper[j]:.4f}]"
            )
        lines.append("")
        lines.append(
            f"  n = {self.n}, k = {self.k}, σ̂ = {self.sigma_hat:.4f}, "
            f"z = {self.confidence_z:.2f}"
        )
        return "\n".join(lines) + "\n"


# =============================================================================
# Fitting
# =============================================================================

def fit(
    X: ArrayLike,
    y: ArrayLike,
    confidence_z: float = Z_95,
    names: Optional[Sequence[str]] = None,
    dof_correction: bool = True,
) -> FitResult:
    """
    Fit ordinary least squares and report parameter uncertainty.

    Parameters
    ----------
    X : array-like of shape (n, k)
        Design matrix. Include a column of ones for an intercept.
    y : array-like of shape (n,)
        Observed outcomes.
    confidence_z : float, default 1.96
        Interval half-width in standard errors.
    names : sequence of str, optional
        Parameter names. Defaults to beta_0, ..., beta_{k-1}.
    dof_correction : bool, default True
        Estimate the noise variance as RSS / (n - k). If False, RSS / n.

    Returns
    -------
    FitResult
        Coefficients, standard errors and confidence bounds.

    Raises
    ------
    DimensionMismatch
        If len(y) != n, X has zero columns, names has the wrong length, or
        there are no residual degrees of freedom.
    SingularDesignMatrix
        If XᵀX is not invertible.
    """
    X = as_matrix(X)
    y = as_vector(y)
    n, k = X.shape

    if y.size != n:
        raise DimensionMismatch(f"y has {y.size} values but X has {n} rows")
    if confidence_z <= 0:
        raise ValueError(f"confidence_z must be positive, got {confidence_z}")
    check_finite(X, y)

    if names is None:
        names = default_names(k)
    elif len(names) != k:
        raise DimensionMismatch(f"{len(names)} names given for {k} parameters")

    beta, xtx_inv = qr_solve(X, y)

    dof = n - k if dof_correction else n
    if dof <= 0:
        raise DimensionMismatch(
            f"No residual degrees of freedom (n = {n}, k = {k})"
        )

    residuals = y - X @ beta
    sigma_sq = float(residuals @ residuals) / dof
    covariance = sigma_sq * xtx_inv
    se = np.sqrt(np.clip(np.diag(covariance), 0.0, None))

    return FitResult(
        coef=beta,
        se=se,
        lower=beta - confidence_z * se,
        upper=beta + confidence_z * se,
        covariance=covariance,
        residuals=residuals,
        sigma_hat=float(np.sqrt(sigma_sq)),
        n=n,
        k=k,
        dof=dof,
        confidence_z=float(confidence_z),
        names=tuple(names),
        tss=float(np.sum((y - y.mean()) ** 2)),
    )


# =============================================================================
# Estimator Class
# =============================================================================

class OLSEstimator:
    """
    Ordinary least squares with confidence intervals.

    Thin stateful wrapper around :func:`fit` in the fit/predict style.

    Parameters
    ----------
    confidence_z : float, default 1.96
        Interval half-width in standard errors.
    dof_correction : bool, default True
        Use RSS / (n - k) for the noise variance.

    Examples
    --------
    >>> from spline_coverage import OLSEstimator, aggregator_matrix
    >>> ols = OLSEstimator()
    >>> result = ols.fit(aggregator_matrix(x, knots=[1.0]), y)
    >>> print(result)
    """

    def __init__(self, confidence_z: float = Z_95, dof_correction: bool = True):
        self.confidence_z = confidence_z
        self.dof_correction = dof_correction
        self.result_: Optional[FitResult] = None

    def fit(
        self,
        X: ArrayLike,
        y: ArrayLike,
        names: Optional[Sequence[str]] = None,
    ) -> FitResult:
        self.result_ = fit(
            X, y,
            confidence_z=self.confidence_z,
            names=names,
            dof_correction=self.dof_correction,
        )
        return self.result_

    def predict(self, X: ArrayLike) -> NDArray:
        if self.result_ is None:
            raise ValueError("Model not fitted. Call .fit() first.")
        return self.result_.predict(X)

    def summary(self) -> str:
        """Text summary of the fitted coefficients."""
        if self.result_ is None:
            return "Model not fitted. Call .fit() first."
        return repr(self.result_)

    def __repr__(self) -> str:
        if self.result_ is None:
            return (
                f"OLSEstimator(confidence_z={self.confidence_z}, "
                f"dof_correction={self.dof_correction}) [not fitted]"
            )
        return self.summary()
