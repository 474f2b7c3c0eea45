"""
Coverage Simulation
===================

Monte Carlo check that OLS point estimates and confidence intervals behave
as theory predicts. Each replicate:

    1. draws a design matrix X (intercept + Bernoulli(p) columns, or
       intercept + aggregator matrix of a fresh predictor draw),
    2. draws true parameters β ~ Uniform(param_range) and
       σ ~ Uniform(sigma_range), σ > 0,
    3. draws y ~ N(Xβ, σ²),
    4. fits OLS and records whether each βⱼ lies inside its interval.

The covered proportion per parameter should be close to the nominal level
(≈ 0.95 for z = 1.96) when the model is correctly specified.

Seeding
-------
A master ``numpy.random.SeedSequence`` spawns one child per replicate, so
each replicate owns an independent stream. Results are reproducible from the
master seed and do not depend on the order, or the process, in which
replicates are run. Within a replicate the draw order is fixed: design,
true parameters, sigma, noise.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from numpy.typing import ArrayLike, NDArray

from spline_coverage.estimator import Z_95, fit
from spline_coverage.exceptions import ReplicateFailed, SplineCoverageError
from spline_coverage.splines import (
    aggregator_matrix,
    evaluate_broken_stick,
    segment_names,
    validate_knots,
)


# =============================================================================
# CONSTANTS
# =============================================================================

BERNOULLI_P: float = 0.25                      # P(column entry = 1)
DEFAULT_PARAM_RANGE: Tuple[float, float] = (-2.0, 2.0)
DEFAULT_SIGMA_RANGE: Tuple[float, float] = (0.5, 2.0)
DEFAULT_X_RANGE: Tuple[float, float] = (0.0, 2.0)

DesignName = Literal["bernoulli", "spline"]
FailurePolicy = Literal["skip", "raise"]


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass(frozen=True)
class StudyConfig:
    """
    Configuration of a coverage study.

    Parameters
    ----------
    n_obs : int, default 1000
        Observations per replicate.
    n_params : int, default 4
        Number of regression parameters (design matrix columns).
    n_replicates : int, default 300
        Number of Monte Carlo replicates.
    param_range : (float, float), default (-2, 2)
        Bounds of the uniform distribution of true parameters.
    sigma_range : (float, float), default (0.5, 2)
        Bounds of the uniform distribution of the noise sd. Draws that are
        not strictly positive are rejected and redrawn.
    design : {'bernoulli', 'spline'}, default 'bernoulli'
        'bernoulli': intercept column plus n_params - 1 Bernoulli(p)
        columns. 'spline': optional intercept plus the aggregator matrix of
        x ~ Uniform(x_range).
    bernoulli_p : float, default 0.25
        Success probability for Bernoulli columns.
    knots : tuple of float, optional
        Knots for the spline design. Defaults to evenly spaced interior
        points of x_range, as many as n_params requires.
    x_range : (float, float), default (0, 2)
        Support of the uniform predictor for the spline design.
    intercept : bool, default True
        Include an intercept column in the spline design. The Bernoulli
        design always has one.
    confidence_z : float, default 1.96
        Interval half-width in standard errors.
    on_failure : {'skip', 'raise'}, default 'skip'
        'skip' records a failed replicate and continues; 'raise' aborts the
        study with ReplicateFailed.
    seed : int, optional
        Master seed. None draws fresh OS entropy.
    """
    n_obs: int = 1000
    n_params: int = 4
    n_replicates: int = 300
    param_range: Tuple[float, float] = DEFAULT_PARAM_RANGE
    sigma_range: Tuple[float, float] = DEFAULT_SIGMA_RANGE
    design: DesignName = "bernoulli"
    bernoulli_p: float = BERNOULLI_P
    knots: Optional[Tuple[float, ...]] = None
    x_range: Tuple[float, float] = DEFAULT_X_RANGE
    intercept: bool = True
    confidence_z: float = Z_95
    on_failure: FailurePolicy = "skip"
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        if self.n_obs < 1:
            raise ValueError(f"n_obs must be >= 1, got {self.n_obs}")
        if self.n_params < 1:
            raise ValueError(f"n_params must be >= 1, got {self.n_params}")
        if self.n_replicates < 1:
            raise ValueError(f"n_replicates must be >= 1, got {self.n_replicates}")

        lo, hi = self.param_range
        if not lo <= hi:
            raise ValueError(f"param_range must satisfy low <= high, got {self.param_range}")
        lo, hi = self.sigma_range
        if not (lo <= hi and hi > 0):
            raise ValueError(
                f"sigma_range must satisfy low <= high and high > 0; got {self.sigma_range}"
            )
        if not 0 < self.bernoulli_p < 1:
            raise ValueError(f"bernoulli_p must be in (0, 1), got {self.bernoulli_p}")
        if self.confidence_z <= 0:
            raise ValueError(f"confidence_z must be positive, got {self.confidence_z}")
        if self.on_failure not in ("skip", "raise"):
            raise ValueError(
                f"Unknown on_failure: '{self.on_failure}'. Choose 'skip' or 'raise'."
            )

        if self.design == "bernoulli":
            if self.knots is not None:
                raise ValueError("knots only apply to the spline design")
        elif self.design == "spline":
            lo, hi = self.x_range
            if not lo < hi:
                raise ValueError(f"x_range must satisfy low < high, got {self.x_range}")
            if self.knots is not None:
                knots = tuple(float(k) for k in validate_knots(self.knots))
                object.__setattr__(self, "knots", knots)
                expected = len(knots) + 1 + int(self.intercept)
                if self.n_params != expected:
                    raise ValueError(
                        f"{len(knots)} knot(s) with intercept={self.intercept} give "
                        f"{expected} parameters, but n_params = {self.n_params}"
                    )
            elif self.n_params - int(self.intercept) < 2:
                raise ValueError(
                    "spline design needs at least two segment slopes; "
                    f"n_params = {self.n_params} with intercept={self.intercept}"
                )
        else:
            raise ValueError(
                f"Unknown design: '{self.design}'. Choose 'bernoulli' or 'spline'."
            )

    @property
    def spline_knots(self) -> NDArray:
        """Knots used by the spline design."""
        if self.knots is not None:
            return np.asarray(self.knots, dtype=float)
        n_knots = self.n_params - int(self.intercept) - 1
        lo, hi = self.x_range
        return np.linspace(lo, hi, n_knots + 2)[1:-1]

    @property
    def param_names(self) -> List[str]:
        """Names of the regression parameters in column order."""
        if self.design == "spline":
            names = segment_names(len(self.spline_knots))
            return ["intercept"] + names if self.intercept else names
        return ["intercept"] + [f"x{j}" for j in range(1, self.n_params)]


# =============================================================================
# FIXED BROKEN-STICK DGP
# =============================================================================

@dataclass
class BrokenStickDGP:
    """
    Broken-stick data generating process with fixed parameters.

    Model:
        x ~ Uniform(x_range)
        y = intercept + A(x; knots) @ slopes + ε,   ε ~ N(0, σ²)

    Parameters
    ----------
    knots : sequence of float, default (1.0,)
        Strictly increasing knots.
    slopes : sequence of float, default (0.5, 2.5)
        Slope on each of the len(knots) + 1 segments.
    intercept : float, default 0.0
        Value of the mean function at x = 0.
    sigma : float, default 0.4
        Noise standard deviation.
    x_range : (float, float), default (0, 2)
        Support of the predictor.
    """
    knots: Sequence[float] = (1.0,)
    slopes: Sequence[float] = (0.5, 2.5)
    intercept: float = 0.0
    sigma: float = 0.4
    x_range: Tuple[float, float] = DEFAULT_X_RANGE

    def __post_init__(self) -> None:
        self.knots = validate_knots(self.knots, min_segments=1)
        self.slopes = np.asarray(self.slopes, dtype=float)
        if self.slopes.shape != (self.knots.size + 1,):
            raise ValueError(
                f"{self.knots.size} knot(s) need {self.knots.size + 1} slopes, "
                f"got {self.slopes.size}"
            )
        if self.sigma <= 0:
            raise ValueError(f"sigma must be positive, got {self.sigma}")
        if not self.x_range[0] < self.x_range[1]:
            raise ValueError(f"x_range must satisfy low < high, got {self.x_range}")

    def mean(self, x: ArrayLike) -> NDArray:
        """Mean function E[y | x]."""
        return evaluate_broken_stick(x, self.knots, self.slopes, self.intercept)

    def generate(
        self,
        n: int,
        random_state: Optional[Any] = None,
    ) -> Tuple[NDArray, NDArray, Dict]:
        """
        Generate a sample.

        Parameters
        ----------
        n : int
            Sample size.
        random_state : int, Generator or None
            Seed or generator passed to numpy.random.default_rng.

        Returns
        -------
        x : ndarray of shape (n,)
        y : ndarray of shape (n,)
        info : dict
            True mean values ``mu`` and the DGP parameters.
        """
        rng = np.random.default_rng(random_state)
        x = rng.uniform(self.x_range[0], self.x_range[1], size=n)
        mu = self.mean(x)
        y = mu + rng.normal(0.0, self.sigma, size=n)
        info = {
            "mu": mu,
            "knots": self.knots,
            "slopes": self.slopes,
            "intercept": self.intercept,
            "sigma": self.sigma,
        }
        return x, y, info


# =============================================================================
# REPLICATE SIMULATION
# =============================================================================

def replicate_seeds(
    seed: Optional[int],
    n_replicates: int,
) -> Tuple[np.random.SeedSequence, List[np.random.SeedSequence]]:
    """
    Spawn one independent SeedSequence per replicate from a master seed.

    Returns
    -------
    master : SeedSequence
        The master sequence (its ``entropy`` reproduces an unseeded run).
    children : list of SeedSequence
        Child ``r`` seeds replicate ``r``.
    """
    master = np.random.SeedSequence(seed)
    return master, master.spawn(n_replicates)


def simulate_design(rng: np.random.Generator, config: StudyConfig) -> NDArray:
    """
    Draw a design matrix of shape (n_obs, n_params).

    The Bernoulli design is an intercept column followed by independent
    Bernoulli(p) columns. The spline design is the aggregator matrix of a
    fresh x ~ Uniform(x_range) draw, preceded by an intercept column when
    ``config.intercept`` is set.
    """
    n = config.n_obs
    if config.design == "bernoulli":
        X = np.ones((n, config.n_params))
        X[:, 1:] = rng.binomial(1, config.bernoulli_p, size=(n, config.n_params - 1))
        return X

    x = rng.uniform(config.x_range[0], config.x_range[1], size=n)
    A = aggregator_matrix(x, config.spline_knots)
    if config.intercept:
        A = np.column_stack([np.ones(n), A])
    return A


def draw_sigma(rng: np.random.Generator, sigma_range: Tuple[float, float]) -> float:
    """Uniform draw from sigma_range, redrawn until strictly positive."""
    lo, hi = sigma_range
    while True:
        sigma = float(rng.uniform(lo, hi))
        if sigma > 0:
            return sigma


def simulate_replicate(
    rng: np.random.Generator,
    config: StudyConfig,
) -> Dict[str, Any]:
    """
    Draw one synthetic data set.

    Draw order: design, true parameters, sigma, noise.

    Returns
    -------
    dict
        ``X`` (design), ``beta`` (true parameters), ``sigma``,
        ``mu`` (linear predictor) and ``y`` (observed outcomes).
    """
    X = simulate_design(rng, config)
    beta = rng.uniform(config.param_range[0], config.param_range[1], size=config.n_params)
    sigma = draw_sigma(rng, config.sigma_range)
    mu = X @ beta
    y = rng.normal(mu, sigma)
    return {"X": X, "beta": beta, "sigma": sigma, "mu": mu, "y": y}


def run_single_replication(
    replicate: int,
    seed_seq: np.random.SeedSequence,
    config: StudyConfig,
) -> Dict[str, Any]:
    """
    Simulate, fit and check coverage for one replicate.

    Returns
    -------
    dict
        ``replicate``, ``spawn_key``, ``records`` (one dict per parameter,
        empty on failure) and ``error`` (None on success). Failed fits are
        returned rather than raised so that parallel workers report them
        back to the caller.
    """
    rng = np.random.default_rng(seed_seq)
    data = simulate_replicate(rng, config)
    names = config.param_names

    try:
        result = fit(data["X"], data["y"], confidence_z=config.confidence_z, names=names)
    except SplineCoverageError as exc:
        return {
            "replicate": replicate,
            "spawn_key": seed_seq.spawn_key,
            "records": [],
            "error": exc,
        }

    covered = result.covers(data["beta"])
    records = []
    for j, name in enumerate(names):
        records.append({
            "replicate": replicate,
            "parameter": name,
            "true": data["beta"][j],
            "estimate": result.coef[j],
            "se": result.se[j],
            "lower": result.lower[j],
            "upper": result.upper[j],
            "covered": bool(covered[j]),
            "sigma": data["sigma"],
            "sigma_hat": result.sigma_hat,
        })

    return {
        "replicate": replicate,
        "spawn_key": seed_seq.spawn_key,
        "records": records,
        "error": None,
    }


# =============================================================================
# COVERAGE STUDY
# =============================================================================

@dataclass
class CoverageStudy:
    """
    Outcome of a coverage study.

    Attributes
    ----------
    config : StudyConfig
        Configuration that produced the study.
    records : pd.DataFrame
        One row per (replicate, parameter) of successful replicates.
    coverage : dict
        Covered proportion per parameter, over successful replicates.
    n_succeeded, n_failed : int
        Replicate counts.
    failures : list of (int, str)
        Replicate index and error message for each failed replicate.
    entropy : int
        Master seed entropy; pass as ``seed`` to reproduce the study.
    """
    config: StudyConfig
    records: pd.DataFrame
    coverage: Dict[str, float]
    n_succeeded: int
    n_failed: int
    failures: List[Tuple[int, str]] = field(default_factory=list)
    entropy: Optional[int] = None

    @property
    def covered_counts(self) -> Dict[str, int]:
        """Number of covering replicates per parameter."""
        counts = self.records.groupby("parameter", sort=False)["covered"].sum()
        return {name: int(counts.get(name, 0)) for name in self.config.param_names}

    def summary(self) -> pd.DataFrame:
        """Per-parameter summary statistics; see compute_summary_statistics."""
        return compute_summary_statistics(self.records)


def simulate_coverage(
    config: StudyConfig,
    n_jobs: int = 1,
    verbose: bool = False,
) -> CoverageStudy:
    """
    Run a coverage study.

    Parameters
    ----------
    config : StudyConfig
        Study configuration.
    n_jobs : int, default 1
        Number of joblib workers. Results do not depend on n_jobs.
    verbose : bool, default False
        Print progress.

    Returns
    -------
    CoverageStudy

    Raises
    ------
    ReplicateFailed
        On the first failed replicate when ``config.on_failure == 'raise'``,
        or when every replicate fails.
    """
    master, children = replicate_seeds(config.seed, config.n_replicates)

    if verbose:
        print(
            f"Coverage study: design={config.design}, n={config.n_obs}, "
            f"k={config.n_params}, replicates={config.n_replicates}"
        )

    if n_jobs == 1:
        outcomes = []
        for rep, seed_seq in enumerate(children):
            outcome = run_single_replication(rep, seed_seq, config)
            if outcome["error"] is not None and config.on_failure == "raise":
                _raise_failure(outcome)
            outcomes.append(outcome)
            if verbose and (rep + 1) % 100 == 0:
                print(f"    Completed {rep + 1}/{config.n_replicates} replications")
    else:
        outcomes = Parallel(n_jobs=n_jobs, verbose=10 if verbose else 0)(
            delayed(run_single_replication)(rep, seed_seq, config)
            for rep, seed_seq in enumerate(children)
        )
        if config.on_failure == "raise":
            for outcome in outcomes:
                if outcome["error"] is not None:
                    _raise_failure(outcome)

    failed = [o for o in outcomes if o["error"] is not None]
    succeeded = [o for o in outcomes if o["error"] is None]

    if not succeeded:
        _raise_failure(failed[0])
    if failed:
        warnings.warn(
            f"{len(failed)} of {config.n_replicates} replicates failed and were "
            f"skipped (first: replicate {failed[0]['replicate']}: {failed[0]['error']})",
            RuntimeWarning,
        )

    records = pd.DataFrame([r for o in succeeded for r in o["records"]])
    coverage = (
        records.groupby("parameter", sort=False)["covered"].mean()
        .reindex(config.param_names)
        .astype(float)
        .to_dict()
    )

    if verbose:
        print(f"    {len(succeeded)} succeeded, {len(failed)} failed")

    return CoverageStudy(
        config=config,
        records=records,
        coverage=coverage,
        n_succeeded=len(succeeded),
        n_failed=len(failed),
        failures=[(o["replicate"], str(o["error"])) for o in failed],
        entropy=master.entropy,
    )


def _raise_failure(outcome: Dict[str, Any]) -> None:
    exc = outcome["error"]
    raise ReplicateFailed(outcome["replicate"], outcome["spawn_key"], str(exc)) from exc


def run_coverage_study(
    n_obs: int,
    n_params: int,
    n_replicates: int,
    param_range: Tuple[float, float] = DEFAULT_PARAM_RANGE,
    sigma_range: Tuple[float, float] = DEFAULT_SIGMA_RANGE,
    seed: Optional[int] = None,
    n_jobs: int = 1,
    verbose: bool = False,
    **options: Any,
) -> Dict[str, float]:
    """
    Covered proportion per parameter for a simulated OLS coverage study.

    Parameters
    ----------
    n_obs, n_params, n_replicates : int
        Observations per replicate, parameters, replicates.
    param_range, sigma_range : (float, float)
        Uniform ranges for true parameters and noise sd.
    seed : int, optional
        Master seed; identical seeds give identical output.
    n_jobs : int, default 1
        joblib workers.
    verbose : bool, default False
        Print progress.
    **options
        Further StudyConfig fields (design, knots, confidence_z, ...).

    Returns
    -------
    dict
        Parameter name → proportion of replicates whose interval covered
        the true value.

    Examples
    --------
    >>> coverage = run_coverage_study(1000, 4, 300, seed=2024)
    >>> coverage["intercept"]   # ≈ 0.95
    """
    config = StudyConfig(
        n_obs=n_obs,
        n_params=n_params,
        n_replicates=n_replicates,
        param_range=param_range,
        sigma_range=sigma_range,
        seed=seed,
        **options,
    )
    return simulate_coverage(config, n_jobs=n_jobs, verbose=verbose).coverage


def compute_summary_statistics(records: pd.DataFrame) -> pd.DataFrame:
    """
    Summarise replicate records by parameter.

    Returns DataFrame with coverage, mean bias, RMSE, mean SE, empirical SD
    of the estimates, their ratio and mean CI length for each parameter.
    """
    df = records.copy()
    df["error"] = df["estimate"] - df["true"]
    df["squared_error"] = df["error"] ** 2
    df["ci_length"] = df["upper"] - df["lower"]

    grouped = df.groupby("parameter", sort=False)
    summary = grouped.agg(
        n_reps=("replicate", "count"),
        coverage=("covered", "mean"),
        mean_bias=("error", "mean"),
        mse=("squared_error", "mean"),
        mean_se=("se", "mean"),
        sd_error=("error", "std"),
        mean_ci_length=("ci_length", "mean"),
    ).reset_index()

    summary["rmse"] = np.sqrt(summary["mse"])
    # Estimates have a different true value each replicate, so their spread
    # is measured on the error scale.
    summary["se_ratio"] = summary["mean_se"] / summary["sd_error"]
    summary["coverage_pct"] = summary["coverage"] * 100

    cols = ["parameter", "n_reps", "coverage", "coverage_pct", "mean_bias",
            "rmse", "mean_se", "sd_error", "se_ratio", "mean_ci_length"]
    return summary[cols]
