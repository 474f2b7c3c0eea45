"""
Linear Algebra Helpers
======================

Shape-checked vector/matrix coercion and a QR least-squares solver shared by
the spline builder, the OLS fitter and the simulation harness.

numpy arrays are the value type throughout: vectors are 1-D float arrays of
length n, matrices are 2-D float arrays of shape (n, k).
"""

from __future__ import annotations

from typing import Tuple

import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy.linalg import solve_triangular

from spline_coverage.exceptions import DimensionMismatch, SingularDesignMatrix


def as_vector(y: ArrayLike, name: str = "y") -> NDArray:
    """
    Coerce input to a 1-D float vector.

    Column vectors of shape (n, 1) are flattened. Anything else that is not
    one-dimensional raises DimensionMismatch.
    """
    arr = np.asarray(y, dtype=float)
    if arr.ndim == 2 and arr.shape[1] == 1:
        arr = arr.ravel()
    if arr.ndim != 1:
        raise DimensionMismatch(
            f"{name} must be one-dimensional, got shape {arr.shape}"
        )
    return arr


def as_matrix(X: ArrayLike, name: str = "X") -> NDArray:
    """
    Coerce input to a 2-D float matrix of shape (n, k).

    A 1-D input is treated as a single column.

    Raises
    ------
    DimensionMismatch
        If the input has more than two dimensions or no columns.
    """
    arr = np.asarray(X, dtype=float)
    if arr.ndim == 1:
        arr = arr.reshape(-1, 1)
    if arr.ndim != 2:
        raise DimensionMismatch(
            f"{name} must be two-dimensional, got shape {arr.shape}"
        )
    if arr.shape[1] == 0:
        raise DimensionMismatch(f"{name} has zero columns")
    return arr


def check_finite(*arrays: NDArray) -> None:
    """Raise ValueError if any array contains NaN or Inf."""
    for a in arrays:
        if not np.all(np.isfinite(a)):
            raise ValueError("Input contains NaN or Inf values")


def matrix_rank(X: NDArray) -> int:
    """Numerical rank of X (SVD with numpy's default tolerance)."""
    return int(np.linalg.matrix_rank(X))


def qr_solve(X: NDArray, y: NDArray) -> Tuple[NDArray, NDArray]:
    """
    Solve the least-squares problem min ||y - Xβ||² by thin QR.

    Parameters
    ----------
    X : ndarray of shape (n, k)
        Design matrix with full column rank.
    y : ndarray of shape (n,)
        Outcome vector.

    Returns
    -------
    beta : ndarray of shape (k,)
        Least-squares coefficients, R β = Qᵀy.
    xtx_inv : ndarray of shape (k, k)
        (XᵀX)⁻¹ = R⁻¹R⁻ᵀ, computed from the triangular factor so that
        XᵀX itself is never formed or inverted.

    Raises
    ------
    SingularDesignMatrix
        If X is rank deficient (collinear or all-zero columns).
    """
    n, k = X.shape
    rank = matrix_rank(X)
    if rank < k:
        raise SingularDesignMatrix(
            f"Design matrix is rank deficient (rank {rank} < {k} columns); "
            "XᵀX is not invertible",
            rank=rank,
            k=k,
        )

    Q, R = np.linalg.qr(X, mode="reduced")
    beta = solve_triangular(R, Q.T @ y, lower=False)

    R_inv = solve_triangular(R, np.eye(k), lower=False)
    xtx_inv = R_inv @ R_inv.T

    return beta, xtx_inv
