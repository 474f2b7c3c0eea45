"""
Error Types
===========

Exceptions raised by the spline_coverage package.
"""

from typing import Optional

import numpy as np


class SplineCoverageError(Exception):
    """Base class for all package errors."""


class InvalidKnots(SplineCoverageError, ValueError):
    """Knot sequence is empty, non-finite, or not strictly increasing."""


class DimensionMismatch(SplineCoverageError, ValueError):
    """Design matrix and outcome vector have incompatible shapes."""


class SingularDesignMatrix(SplineCoverageError, np.linalg.LinAlgError):
    """
    The normal-equations matrix XᵀX is not invertible.

    Parameters
    ----------
    message : str
        Error description.
    rank : int, optional
        Numerical rank of the design matrix.
    k : int, optional
        Number of design matrix columns.
    """

    def __init__(
        self,
        message: str,
        rank: Optional[int] = None,
        k: Optional[int] = None,
    ):
        super().__init__(message)
        self.rank = rank
        self.k = k


class ReplicateFailed(SplineCoverageError):
    """
    A simulation replicate could not be fitted.

    The original error is available as ``__cause__``.
    """

    def __init__(self, replicate: int, spawn_key: tuple, reason: str):
        super().__init__(
            f"Replicate {replicate} (spawn key {spawn_key}) failed: {reason}"
        )
        self.replicate = replicate
        self.spawn_key = spawn_key
        self.reason = reason
