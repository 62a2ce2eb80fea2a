"""
Part 1 - Step D
D_residual_diagnostics.py

Relates the standardized ensemble-mean error to the meteorological drivers:
  - regression trees on the mean error and on the squared error
  - random forest on |error| (importance + partial dependence)

Outputs:
  results/part1/tree_mean_error.txt
  results/part1/tree_squared_error.txt
  results/part1/forest_importance.csv
  results/part1/figures/partial_dependence.png
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np
import matplotlib.pyplot as plt

CURRENT_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = CURRENT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from Part_1_Model_Assessment.config_part1 import (
    data_dir,
    default_config,
    ensemble_file,
    figures_dir,
    flux_pattern,
    results_dir,
)
from ecoforecast.ef_data import quality_mask
from ecoforecast.ef_diagnostics import (
    describe_tree,
    driver_frame,
    fit_error_forest,
    fit_error_tree,
    fit_heteroskedastic_scale,
    heteroskedastic_scale,
    partial_dependence_curves,
    residual_signal,
)
from ecoforecast.ef_io import ensure_dir, load_ensemble_or_fail, read_flux_csv


def main() -> None:
    cfg = default_config()

    parser = argparse.ArgumentParser()
    parser.add_argument("--eval_year", type=int, default=cfg.eval_year, help="Evaluation year.")
    parser.add_argument("--subsample", type=int, default=cfg.forest_subsample, help="Rows used by the random forest.")
    parser.add_argument("--seed", type=int, default=cfg.seed, help="Seed for the forest subsample.")
    args = parser.parse_args()

    ensure_dir(results_dir())
    ensure_dir(figures_dir())

    ens = load_ensemble_or_fail(ensemble_file(), key="ensemble")
    rec = read_flux_csv(
        data_dir() / flux_pattern().format(year=args.eval_year), args.eval_year, drivers=cfg.drivers
    )

    mask = quality_mask(rec, accept=cfg.accept_flags)
    pred = cfg.variable_sign * ens.member_mean(cfg.variable)
    obs = rec.nee

    # -----------------------------------------------------------------
    # Standardized error
    # -----------------------------------------------------------------
    if cfg.scale_intercept is None or cfg.scale_slope is None:
        a, b = fit_heteroskedastic_scale(pred[mask], obs[mask])
    else:
        a, b = cfg.scale_intercept, cfg.scale_slope
    error = residual_signal(pred, obs, heteroskedastic_scale(obs, a, b))

    X, e = driver_frame(rec.drivers, mask, error)

    # -----------------------------------------------------------------
    # Trees
    # -----------------------------------------------------------------
    texts = {}
    for target in ("mean", "squared"):
        tree = fit_error_tree(
            X, e, target=target, max_depth=cfg.tree_max_depth, min_samples_leaf=cfg.tree_min_leaf
        )
        texts[target] = describe_tree(tree, X.columns)
        (results_dir() / f"tree_{target}_error.txt").write_text(texts[target], encoding="utf-8")

    # -----------------------------------------------------------------
    # Random forest
    # -----------------------------------------------------------------
    rng = np.random.default_rng(args.seed)
    diag = fit_error_forest(X, e, n_subsample=args.subsample, n_estimators=cfg.forest_trees, rng=rng)
    diag.importance.to_csv(results_dir() / "forest_importance.csv", header=True)

    curves = partial_dependence_curves(diag)
    fig, axes = plt.subplots(1, len(curves), figsize=(4 * len(curves), 3.5), sharey=True)
    axes = np.atleast_1d(axes)
    for ax, (name, (grid, avg)) in zip(axes, curves.items()):
        ax.plot(grid, avg)
        ax.set_xlabel(name)
        ax.grid(True)
    axes[0].set_ylabel("|standardized error|")
    fig.tight_layout()
    fig.savefig(figures_dir() / "partial_dependence.png", dpi=200)
    plt.close(fig)

    print("=" * 80)
    print("Residual diagnostics complete")
    print(f"error scale   : {a:.4g} + {b:.4g} * |NEE|")
    print(f"rows (masked) : {len(X)}")
    print(f"forest rows   : {len(diag.X)}")
    print("-" * 80)
    print("Tree on mean error:")
    print(texts["mean"])
    print("-" * 80)
    print("Forest importance:")
    for name, val in diag.importance.items():
        print(f"{name:>8s} = {val:.4f}")
    print("=" * 80)


if __name__ == "__main__":
    main()
