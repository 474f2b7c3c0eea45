"""
Plotting Functions
==================

Figures for the broken-stick and coverage tutorials.
"""

from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from numpy.typing import ArrayLike

from spline_coverage.estimator import FitResult
from spline_coverage.splines import aggregator_matrix, evaluate_broken_stick


COLORS: Dict[str, str] = {
    "data": "#9E9E9E",
    "fit": "#2E86AB",
    "truth": "#E8505B",
    "covered": "#2E86AB",
    "missed": "#E8505B",
    "nominal": "#333333",
}

FIGURE_SIZES: Dict[str, Tuple[float, float]] = {
    "single": (8, 5),
    "wide": (12, 5),
}


def set_publication_style() -> None:
    """Apply serif, white-background rcParams used by the tutorial figures."""
    plt.rcParams.update({
        'font.family': 'serif',
        'font.serif': ['Times New Roman', 'DejaVu Serif', 'serif'],
        'font.size': 11,
        'mathtext.fontset': 'stix',
        'figure.dpi': 150,
        'figure.facecolor': 'white',
        'axes.labelsize': 12,
        'axes.titlesize': 13,
        'axes.linewidth': 0.8,
        'legend.fontsize': 9,
        'grid.alpha': 0.3,
        'grid.linestyle': '--',
        'savefig.dpi': 300,
        'savefig.bbox': 'tight',
        'savefig.facecolor': 'white',
    })


def save_figure(
    fig: Any,
    path: Union[str, Path],
    formats: Sequence[str] = ("pdf", "png"),
) -> list:
    """
    Save a figure in one or more formats.

    Returns
    -------
    list of Path
        Written files.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    written = []
    for fmt in formats:
        out = path.with_suffix(f".{fmt}")
        fig.savefig(out)
        written.append(out)
    return written


def plot_broken_stick_fit(
    x: ArrayLike,
    y: ArrayLike,
    knots: ArrayLike,
    result: FitResult,
    true_slopes: Optional[ArrayLike] = None,
    intercept: bool = False,
    ax: Optional[Any] = None,
    figsize: Tuple[float, float] = FIGURE_SIZES["single"],
) -> Any:
    """
    Scatter of the data with the fitted broken-stick line and knots.

    Parameters
    ----------
    x, y : array-like
        Observed predictor and outcome.
    knots : array-like
        Knots used to build the design.
    result : FitResult
        Fit on aggregator_matrix(x, knots), with a leading intercept
        column when ``intercept`` is True.
    true_slopes : array-like, optional
        True segment slopes to overlay (zero intercept).
    intercept : bool, default False
        Whether the fit includes an intercept column.
    ax : matplotlib Axes, optional
        Axes to plot on. If None, creates new figure.

    Returns
    -------
    matplotlib Axes
    """
    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)

    x = np.asarray(x, dtype=float)
    knots = np.asarray(knots, dtype=float)
    grid = np.linspace(x.min(), x.max(), 400)
    design = aggregator_matrix(grid, knots)
    if intercept:
        design = np.column_stack([np.ones(grid.size), design])

    ax.scatter(x, y, s=8, alpha=0.4, color=COLORS["data"], label="Observed")
    ax.plot(grid, result.predict(design), color=COLORS["fit"], linewidth=2,
            label="Fitted broken stick")

    if true_slopes is not None:
        ax.plot(grid, evaluate_broken_stick(grid, knots, true_slopes),
                '--', color=COLORS["truth"], linewidth=1.5, label="True mean")

    for knot in knots:
        ax.axvline(knot, color='gray', linestyle=':', alpha=0.7)

    slope_text = "\n".join(
        f"{name} = {coef:.3f} ± {se:.3f}"
        for name, coef, se in zip(result.names, result.coef, result.se)
    )
    ax.text(
        0.02, 0.98, slope_text,
        transform=ax.transAxes,
        fontsize=9, va='top', ha='left',
        fontfamily='monospace',
        bbox=dict(boxstyle='round', facecolor='white', alpha=0.9)
    )

    ax.set_xlabel('x')
    ax.set_ylabel('y')
    ax.set_title('Broken-Stick Regression', fontweight='bold')
    ax.legend(loc='lower right')
    ax.spines['top'].set_visible(False)
    ax.spines['right'].set_visible(False)

    plt.tight_layout()

    return ax


def plot_coverage(
    calibration: pd.DataFrame,
    nominal: float = 0.95,
    ax: Optional[Any] = None,
    figsize: Tuple[float, float] = FIGURE_SIZES["single"],
) -> Any:
    """
    Empirical coverage per parameter with Monte Carlo intervals.

    Parameters
    ----------
    calibration : pd.DataFrame
        Output of coverage_calibration().
    nominal : float, default 0.95
        Nominal coverage reference line.

    Returns
    -------
    matplotlib Axes
    """
    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)

    pos = np.arange(len(calibration))
    cov = calibration["coverage"].to_numpy()
    yerr = np.vstack([
        cov - calibration["ci_lower"].to_numpy(),
        calibration["ci_upper"].to_numpy() - cov,
    ])
    colors = [
        COLORS["covered"] if ok else COLORS["missed"]
        for ok in calibration["consistent"]
    ]

    ax.axhline(nominal, color=COLORS["nominal"], linestyle='--', alpha=0.7,
               label=f'Nominal {nominal:.0%}')
    ax.errorbar(pos, cov, yerr=yerr, fmt='none', ecolor='gray', capsize=5)
    ax.scatter(pos, cov, s=60, c=colors, zorder=3, edgecolor='white')

    ax.set_xticks(pos)
    ax.set_xticklabels(calibration["parameter"], rotation=30, ha='right')
    ax.set_ylabel('Empirical coverage')
    ax.set_title('Confidence Interval Coverage', fontweight='bold')
    ax.set_ylim(max(0.0, min(cov.min(), nominal) - 0.1), 1.0)
    ax.legend(loc='lower right')
    ax.spines['top'].set_visible(False)
    ax.spines['right'].set_visible(False)

    plt.tight_layout()

    return ax


def plot_interval_caterpillar(
    records: pd.DataFrame,
    parameter: str,
    max_replicates: int = 100,
    ax: Optional[Any] = None,
    figsize: Tuple[float, float] = FIGURE_SIZES["wide"],
) -> Any:
    """
    Confidence intervals of one parameter across replicates, centred on
    the true value and coloured by whether they cover it.

    Returns
    -------
    matplotlib Axes
    """
    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)

    df = records[records["parameter"] == parameter].head(max_replicates)
    if df.empty:
        raise ValueError(f"No records for parameter '{parameter}'")

    pos = np.arange(len(df))
    centre = df["estimate"].to_numpy() - df["true"].to_numpy()
    lower = df["lower"].to_numpy() - df["true"].to_numpy()
    upper = df["upper"].to_numpy() - df["true"].to_numpy()
    covered = df["covered"].to_numpy(dtype=bool)

    for mask, key, label in ((covered, "covered", "Covers"), (~covered, "missed", "Misses")):
        if mask.any():
            ax.vlines(pos[mask], lower[mask], upper[mask], color=COLORS[key],
                      linewidth=1.2, label=f'{label} ({mask.sum()})')
            ax.scatter(pos[mask], centre[mask], s=10, color=COLORS[key])

    ax.axhline(0.0, color=COLORS["nominal"], linestyle='--', linewidth=0.8)
    ax.set_xlabel('Replicate')
    ax.set_ylabel('Estimate − true value')
    ax.set_title(f'Confidence Intervals for {parameter}', fontweight='bold')
    ax.legend(loc='upper right')
    ax.spines['top'].set_visible(False)
    ax.spines['right'].set_visible(False)

    plt.tight_layout()

    return ax
