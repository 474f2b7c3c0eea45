"""
spline_coverage: Broken-Stick Regression and Coverage Simulation
=================================================================

This package accompanies two statistics tutorials:

1. Piecewise-linear ("broken-stick") regression expressed as ordinary least
   squares through an aggregator design matrix.
2. Monte Carlo validation that OLS estimates and confidence intervals cover
   the true parameters at the nominal rate.

Quick Start
-----------
>>> import numpy as np
>>> from spline_coverage import BrokenStickDGP, aggregator_matrix, fit
>>>
>>> # Simulate a two-segment broken stick
>>> x, y, info = BrokenStickDGP(knots=[1.0], slopes=[0.5, 2.5]).generate(1000, 42)
>>>
>>> # Fit segment slopes
>>> result = fit(aggregator_matrix(x, [1.0]), y, names=["slope_1", "slope_2"])
>>> print(result)
>>>
>>> # Coverage of 95% intervals over 300 replicates
>>> from spline_coverage import run_coverage_study
>>> run_coverage_study(n_obs=1000, n_params=4, n_replicates=300, seed=2024)
"""

from spline_coverage.exceptions import (
    SplineCoverageError,
    InvalidKnots,
    DimensionMismatch,
    SingularDesignMatrix,
    ReplicateFailed,
)
from spline_coverage.splines import (
    aggregator_matrix,
    build_matrix,
    hinge_matrix,
    slopes_to_changes,
    changes_to_slopes,
    evaluate_broken_stick,
    place_knots,
    validate_knots,
    BrokenStickTransformer,
)
from spline_coverage.estimator import (
    fit,
    z_for_level,
    FitResult,
    OLSEstimator,
    Z_95,
)
from spline_coverage.simulation import (
    StudyConfig,
    BrokenStickDGP,
    CoverageStudy,
    simulate_replicate,
    run_single_replication,
    simulate_coverage,
    run_coverage_study,
    compute_summary_statistics,
)
from spline_coverage.diagnostics import (
    coverage_interval,
    coverage_calibration,
    continuity_gaps,
    recovery_check,
    coverage_report,
)
from spline_coverage.reporting import (
    fit_table,
    coverage_table,
    to_latex,
    print_summary,
)

__version__ = "1.0.0"

__all__ = [
    # Errors
    "SplineCoverageError",
    "InvalidKnots",
    "DimensionMismatch",
    "SingularDesignMatrix",
    "ReplicateFailed",
    # Design matrices
    "aggregator_matrix",
    "build_matrix",
    "hinge_matrix",
    "slopes_to_changes",
    "changes_to_slopes",
    "evaluate_broken_stick",
    "place_knots",
    "validate_knots",
    "BrokenStickTransformer",
    # Estimation
    "fit",
    "z_for_level",
    "FitResult",
    "OLSEstimator",
    "Z_95",
    # Simulation
    "StudyConfig",
    "BrokenStickDGP",
    "CoverageStudy",
    "simulate_replicate",
    "run_single_replication",
    "simulate_coverage",
    "run_coverage_study",
    "compute_summary_statistics",
    # Diagnostics
    "coverage_interval",
    "coverage_calibration",
    "continuity_gaps",
    "recovery_check",
    "coverage_report",
    # Reporting
    "fit_table",
    "coverage_table",
    "to_latex",
    "print_summary",
]
