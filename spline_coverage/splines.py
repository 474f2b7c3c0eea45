"""
Broken-Stick Design Matrices
============================

Piecewise-linear ("broken-stick") regression rewritten as ordinary linear
regression through a derived design matrix.

For knots k₁ < k₂ < ... < k_m the predictor axis is split into m + 1
segments. The aggregator matrix A has one column per segment; entry (i, j)
is the part of xᵢ that falls inside segment j, measured from the segment's
lower knot:

    A[i, 1]   = min(xᵢ, k₁)
    A[i, j]   = clip(xᵢ, k_{j-1}, k_j) - k_{j-1}      (1 < j ≤ m)
    A[i, m+1] = max(xᵢ, k_m) - k_m

so that f(x) = A @ slopes is continuous, has slope slopes[j] on segment j
and passes through the origin. The first segment is measured from zero and
is not clipped below, so values left of zero extend the first slope.

The hinge (truncated power) basis [x, (x - k₁)₊, ..., (x - k_m)₊] spans the
same space; its coefficients are the slope *changes* at each knot.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

import numpy as np
from numpy.typing import ArrayLike, NDArray
from sklearn.base import BaseEstimator, TransformerMixin
from sklearn.utils.validation import check_is_fitted

from spline_coverage.exceptions import DimensionMismatch, InvalidKnots
from spline_coverage.linalg import as_vector


# =============================================================================
# Knot validation and placement
# =============================================================================

def validate_knots(knots: ArrayLike, min_segments: int = 2) -> NDArray:
    """
    Validate a knot sequence.

    Parameters
    ----------
    knots : array-like
        Candidate knots.
    min_segments : int, default 2
        Minimum number of segments the caller needs. The knots define
        ``len(knots) + 1`` segments.

    Returns
    -------
    ndarray
        Knots as a 1-D float array.

    Raises
    ------
    InvalidKnots
        If knots are not 1-D, contain NaN/Inf, are not strictly increasing,
        or define fewer than ``min_segments`` segments.
    """
    k = np.asarray(knots, dtype=float)
    if k.ndim == 0:
        k = k.reshape(1)
    if k.ndim != 1:
        raise InvalidKnots(f"knots must be one-dimensional, got shape {k.shape}")
    if k.size + 1 < min_segments:
        raise InvalidKnots(
            f"{k.size} knot(s) give {k.size + 1} segment(s); "
            f"at least {min_segments} required"
        )
    if not np.all(np.isfinite(k)):
        raise InvalidKnots("knots must be finite")
    if np.any(np.diff(k) <= 0.0):
        raise InvalidKnots(f"knots must be strictly increasing, got {k.tolist()}")
    return k


def place_knots(
    x: ArrayLike,
    n_knots: int,
    method: str = "quantile",
) -> NDArray:
    """
    Choose interior knots from observed predictor values.

    Parameters
    ----------
    x : array-like
        Predictor values.
    n_knots : int
        Number of interior knots.
    method : {'quantile', 'uniform'}, default 'quantile'
        'quantile' puts knots at evenly spaced quantiles of x, so each
        segment holds roughly the same number of observations. 'uniform'
        spaces them evenly between min(x) and max(x).

    Returns
    -------
    ndarray of shape (n_knots,)
        Strictly increasing knots.

    Raises
    ------
    InvalidKnots
        If ties in x produce repeated knots.
    """
    if n_knots < 1:
        raise ValueError(f"n_knots must be >= 1, got {n_knots}")
    x = as_vector(x, name="x")
    x = x[np.isfinite(x)]
    if x.size == 0:
        raise ValueError("x has no finite values")

    if method == "quantile":
        probs = np.linspace(0.0, 1.0, n_knots + 2)[1:-1]
        knots = np.quantile(x, probs)
    elif method == "uniform":
        knots = np.linspace(x.min(), x.max(), n_knots + 2)[1:-1]
    else:
        raise ValueError(f"Unknown method: '{method}'. Choose 'quantile' or 'uniform'.")

    return validate_knots(knots, min_segments=n_knots + 1)


# =============================================================================
# Design matrices
# =============================================================================

def aggregator_matrix(
    x: ArrayLike,
    knots: ArrayLike,
    min_segments: int = 2,
) -> NDArray:
    """
    Build the aggregator design matrix for broken-stick regression.

    Parameters
    ----------
    x : array-like of shape (n,)
        Predictor values. Values beyond the outer knots fall into the
        unbounded first or last segment.
    knots : array-like of shape (m,)
        Strictly increasing knots.
    min_segments : int, default 2
        Minimum number of segments required; see validate_knots.

    Returns
    -------
    ndarray of shape (n, m + 1)
        Column j holds the contribution of segment j to each xᵢ.

    Examples
    --------
    >>> aggregator_matrix([0.5, 1.0, 3.0], knots=[1.0])
    array([[0.5, 0. ],
           [1. , 0. ],
           [1. , 2. ]])
    """
    x = as_vector(x, name="x")
    k = validate_knots(knots, min_segments=min_segments)

    n_seg = k.size + 1
    A = np.empty((x.size, n_seg), dtype=float)
    if k.size == 0:
        A[:, 0] = x
        return A

    A[:, 0] = np.minimum(x, k[0])
    for j in range(1, k.size):
        A[:, j] = np.clip(x, k[j - 1], k[j]) - k[j - 1]
    A[:, -1] = np.maximum(x, k[-1]) - k[-1]

    return A


# Contract name used in the tutorials
build_matrix = aggregator_matrix


def hinge_matrix(x: ArrayLike, knots: ArrayLike) -> NDArray:
    """
    Truncated-power basis [x, (x - k₁)₊, ..., (x - k_m)₊].

    Coefficients on this basis are the first slope followed by the slope
    change at each knot. ``aggregator_matrix(x, knots) @ slopes`` equals
    ``hinge_matrix(x, knots) @ slopes_to_changes(slopes)``.
    """
    x = as_vector(x, name="x")
    k = validate_knots(knots, min_segments=1)
    H = np.empty((x.size, k.size + 1), dtype=float)
    H[:, 0] = x
    for j, kj in enumerate(k, start=1):
        H[:, j] = np.maximum(x - kj, 0.0)
    return H


def slopes_to_changes(slopes: ArrayLike) -> NDArray:
    """Segment slopes → first slope followed by slope changes at each knot."""
    s = as_vector(slopes, name="slopes")
    return np.diff(s, prepend=0.0)


def changes_to_slopes(changes: ArrayLike) -> NDArray:
    """Inverse of slopes_to_changes."""
    return np.cumsum(as_vector(changes, name="changes"))


def evaluate_broken_stick(
    x: ArrayLike,
    knots: ArrayLike,
    slopes: ArrayLike,
    intercept: float = 0.0,
) -> NDArray:
    """
    Evaluate the continuous piecewise-linear function
    intercept + aggregator_matrix(x, knots) @ slopes.
    """
    s = as_vector(slopes, name="slopes")
    k = validate_knots(knots, min_segments=1)
    if s.size != k.size + 1:
        raise DimensionMismatch(
            f"{k.size} knot(s) need {k.size + 1} slopes, got {s.size}"
        )
    return intercept + aggregator_matrix(x, k, min_segments=1) @ s


# =============================================================================
# scikit-learn transformer
# =============================================================================

class BrokenStickTransformer(TransformerMixin, BaseEstimator):
    """
    Expand a single predictor into aggregator-matrix columns.

    Parameters
    ----------
    knots : array-like, optional
        Fixed knots. If None, ``n_knots`` knots are placed at fit time.
    n_knots : int, default 1
        Number of knots to place when ``knots`` is None.
    placement : {'quantile', 'uniform'}, default 'quantile'
        Placement rule passed to place_knots.
    include_intercept : bool, default False
        Prepend a column of ones.

    Attributes
    ----------
    knots_ : ndarray
        Knots used by transform.

    Examples
    --------
    >>> from sklearn.pipeline import make_pipeline
    >>> from sklearn.linear_model import LinearRegression
    >>> model = make_pipeline(BrokenStickTransformer(knots=[1.0]), LinearRegression())
    """

    def __init__(
        self,
        knots: Optional[Sequence[float]] = None,
        n_knots: int = 1,
        placement: str = "quantile",
        include_intercept: bool = False,
    ):
        self.knots = knots
        self.n_knots = n_knots
        self.placement = placement
        self.include_intercept = include_intercept

    @staticmethod
    def _column(X: ArrayLike) -> NDArray:
        arr = np.asarray(X, dtype=float)
        if arr.ndim == 2:
            if arr.shape[1] != 1:
                raise DimensionMismatch(
                    f"BrokenStickTransformer expects a single feature, got {arr.shape[1]}"
                )
            arr = arr[:, 0]
        return as_vector(arr, name="X")

    def fit(self, X: ArrayLike, y: Optional[ArrayLike] = None) -> "BrokenStickTransformer":
        x = self._column(X)
        if self.knots is not None:
            self.knots_ = validate_knots(self.knots)
        else:
            self.knots_ = place_knots(x, self.n_knots, method=self.placement)
        self.n_features_in_ = 1
        return self

    def transform(self, X: ArrayLike) -> NDArray:
        check_is_fitted(self, "knots_")
        A = aggregator_matrix(self._column(X), self.knots_)
        if self.include_intercept:
            A = np.column_stack([np.ones(A.shape[0]), A])
        return A

    def get_feature_names_out(self, input_features: Optional[Sequence[str]] = None) -> NDArray:
        check_is_fitted(self, "knots_")
        names: List[str] = segment_names(len(self.knots_))
        if self.include_intercept:
            names = ["intercept"] + names
        return np.asarray(names, dtype=object)


def segment_names(n_knots: int) -> List[str]:
    """Column names for an aggregator matrix: slope_1, ..., slope_{m+1}."""
    return [f"slope_{j}" for j in range(1, n_knots + 2)]
