import numpy as np
import pytest

from spline_coverage.exceptions import DimensionMismatch, SingularDesignMatrix
from spline_coverage.linalg import as_matrix, as_vector, check_finite, qr_solve


def test_as_vector_flattens_column_vector():
    v = as_vector(np.arange(3.0).reshape(-1, 1))
    assert v.shape == (3,)


def test_as_vector_rejects_matrix():
    with pytest.raises(DimensionMismatch):
        as_vector(np.ones((3, 2)))


def test_as_matrix_promotes_vector_and_rejects_empty():
    assert as_matrix([1.0, 2.0, 3.0]).shape == (3, 1)
    with pytest.raises(DimensionMismatch):
        as_matrix(np.empty((5, 0)))
    with pytest.raises(DimensionMismatch):
        as_matrix(np.ones((2, 2, 2)))


def test_check_finite_raises_on_nan():
    with pytest.raises(ValueError):
        check_finite(np.array([1.0, np.nan]))


def test_qr_solve_matches_normal_equations():
    rng = np.random.default_rng(0)
    X = np.column_stack([np.ones(50), rng.normal(size=(50, 2))])
    y = X @ np.array([1.0, -2.0, 0.5]) + rng.normal(scale=0.1, size=50)

    beta, xtx_inv = qr_solve(X, y)

    assert np.allclose(beta, np.linalg.solve(X.T @ X, X.T @ y))
    assert np.allclose(xtx_inv, np.linalg.inv(X.T @ X))


def test_qr_solve_flags_zero_column():
    X = np.column_stack([np.ones(10), np.zeros(10)])
    with pytest.raises(SingularDesignMatrix) as excinfo:
        qr_solve(X, np.arange(10.0))
    assert excinfo.value.rank == 1
    assert excinfo.value.k == 2
