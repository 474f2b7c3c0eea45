#!/usr/bin/env python3
"""
================================================================================
MASTER TUTORIAL SCRIPT
================================================================================

Reproduces all figures and tables of the two tutorials:
    1. Broken-stick regression as ordinary least squares
    2. Checking confidence interval coverage by simulation

Usage:
    python run_all.py

Output:
    All figures and tables are written to results/

Random Seeds:
    All experiments use fixed seeds for reproducibility.
    - Broken-stick tutorial: SEED = 42 (set in broken_stick_regression.py)
    - Coverage tutorial: BASE_SEED = 2024 (set in coverage_simulation.py)

================================================================================
"""

import os
import subprocess
import sys
import time
from pathlib import Path

# =============================================================================
# CONFIGURATION
# =============================================================================

REPO_ROOT = Path(__file__).parent.absolute()
NOTEBOOKS_DIR = REPO_ROOT / "notebooks"
RESULTS_DIR = REPO_ROOT / "results"

# Scripts to execute (in order)
EXPERIMENTS = [
    {
        "name": "Broken-Stick Regression",
        "script": "broken_stick_regression.py",
        "outputs": [
            "broken_stick_fit.pdf",
            "broken_stick_fit.csv",
        ],
        "description": "Aggregator design matrix and OLS fit of a two-segment model",
    },
    {
        "name": "Coverage Simulation",
        "script": "coverage_simulation.py",
        "outputs": [
            "coverage_bernoulli.pdf",
            "coverage_caterpillar.pdf",
            "coverage_bernoulli.csv",
            "coverage_spline.csv",
            "coverage_knot_sweep.csv",
        ],
        "description": "Monte Carlo coverage of 95% OLS confidence intervals",
    },
]


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def print_header(text: str, char: str = "=") -> None:
    """Print a formatted header."""
    width = 70
    print("\n" + char * width)
    print(text.center(width))
    print(char * width + "\n")


def run_experiment(experiment: dict) -> bool:
    """
    Run a single tutorial script.

    Returns True if successful, False otherwise.
    """
    script_path = NOTEBOOKS_DIR / experiment["script"]

    print(f"📊 Running: {experiment['name']}")
    print(f"   Script: {experiment['script']}")
    print(f"   {experiment['description']}")
    print()

    start_time = time.time()

    # Non-interactive matplotlib backend
    env = os.environ.copy()
    env['MPLBACKEND'] = 'Agg'

    try:
        subprocess.run(
            [sys.executable, str(script_path)],
            cwd=str(NOTEBOOKS_DIR),
            env=env,
            check=True,
        )
    except subprocess.CalledProcessError as e:
        elapsed = time.time() - start_time
        print(f"   ✗ Failed after {elapsed:.1f}s")
        print(f"   Exit code: {e.returncode}")
        return False

    elapsed = time.time() - start_time
    print(f"   ✓ Completed in {elapsed:.1f}s")

    missing = [o for o in experiment["outputs"] if not (RESULTS_DIR / o).exists()]
    if missing:
        print(f"   ⚠ Missing outputs: {missing}")
        return False

    print(f"   ✓ All {len(experiment['outputs'])} outputs generated")
    return True


def verify_outputs() -> None:
    """Print summary of all generated outputs."""
    print_header("OUTPUT SUMMARY", "-")

    print("Generated files in results/:\n")

    pdfs = sorted(RESULTS_DIR.glob("*.pdf"))
    csvs = sorted(RESULTS_DIR.glob("*.csv"))

    if pdfs:
        print("  Figures (PDF):")
        for f in pdfs:
            print(f"    • {f.name}")

    if csvs:
        print("\n  Tables (CSV):")
        for f in csvs:
            print(f"    • {f.name}")


# =============================================================================
# MAIN EXECUTION
# =============================================================================

def main() -> int:
    """
    Main entry point.

    Returns exit code: 0 for success, 1 for failure.
    """
    print_header("SPLINE COVERAGE TUTORIALS")

    print(f"Repository: {REPO_ROOT}")
    print(f"Results will be saved to: {RESULTS_DIR}")

    RESULTS_DIR.mkdir(exist_ok=True)

    total_start = time.time()
    successes = 0
    failures = 0

    for i, experiment in enumerate(EXPERIMENTS, 1):
        print_header(f"TUTORIAL {i}/{len(EXPERIMENTS)}", "-")

        if run_experiment(experiment):
            successes += 1
        else:
            failures += 1

    total_elapsed = time.time() - total_start

    print_header("RUN COMPLETE")

    print(f"  Total time: {total_elapsed:.1f}s ({total_elapsed/60:.1f} minutes)")
    print(f"  Tutorials: {successes} succeeded, {failures} failed")

    if failures == 0:
        verify_outputs()
        print("\n✓ All figures and tables have been reproduced successfully.\n")
        return 0
    else:
        print("\n✗ Some tutorials failed. Check output above for details.\n")
        return 1


if __name__ == "__main__":
    sys.exit(main())
