"""
Part 1 - Step B
B_error_statistics.py

Compares the ensemble mean, the particle-filter mean and the observational
climatology with observed NEE over the quality-controlled time steps.

Outputs:
  results/part1/error_statistics.csv
  results/part1/taylor_statistics.csv
  results/part1/figures/timeseries.png
  results/part1/figures/scatter.png
  results/part1/figures/taylor.png
  results/part1/figures/diurnal.png
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

# ---------------------------------------------------------------------
# Robust imports (project root on path)
# ---------------------------------------------------------------------
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
from ecoforecast.ef_climatology import climatology, climatology_for
from ecoforecast.ef_data import quality_mask
from ecoforecast.ef_io import ensure_dir, load_ensemble_or_fail, load_flux_years
from ecoforecast.ef_plots import (
    plot_diurnal_cycles,
    plot_ensemble_band,
    plot_scatter_1to1,
    plot_taylor_diagram,
)
from ecoforecast.ef_stats import diurnal_cycle, error_table, taylor_statistics


def main() -> None:
    cfg = default_config()

    parser = argparse.ArgumentParser()
    parser.add_argument("--eval_year", type=int, default=cfg.eval_year, help="Evaluation year.")
    parser.add_argument("--variable", type=str, default=cfg.variable, help="Model variable compared with NEE.")
    args = parser.parse_args()

    ensure_dir(results_dir())
    ensure_dir(figures_dir())

    # -----------------------------------------------------------------
    # Load model output + observations
    # -----------------------------------------------------------------
    ens = load_ensemble_or_fail(ensemble_file(), key="ensemble")
    pf = load_ensemble_or_fail(ensemble_file(), key="pf")

    years = sorted(set(cfg.clim_years) | {args.eval_year})
    records = load_flux_years(data_dir(), years, pattern=flux_pattern(), drivers=cfg.drivers)
    obs_rec = next(r for r in records if r.year == args.eval_year)

    if len(obs_rec) != ens.n_time or len(obs_rec) != pf.n_time:
        raise ValueError(
            f"Length mismatch: flux={len(obs_rec)}, ensemble={ens.n_time}, pf={pf.n_time}"
        )

    sign = cfg.variable_sign
    mask = quality_mask(obs_rec, accept=cfg.accept_flags)
    nee = obs_rec.nee

    clim = climatology(records, exclude_year=args.eval_year, accept=cfg.accept_flags)
    predictors = {
        "ensemble": sign * ens.member_mean(args.variable),
        "particle_filter": sign * pf.member_mean(args.variable),
        "climatology": climatology_for(obs_rec, clim),
    }

    # -----------------------------------------------------------------
    # Statistics
    # -----------------------------------------------------------------
    table = error_table(predictors, nee, mask)
    table.to_csv(results_dir() / "error_statistics.csv")

    taylor = {}
    for name, pred in predictors.items():
        sel = mask & np.isfinite(pred)
        taylor[name] = taylor_statistics(pred[sel], nee[sel])
    pd.DataFrame.from_dict(taylor, orient="index").to_csv(results_dir() / "taylor_statistics.csv")

    # -----------------------------------------------------------------
    # Figures
    # -----------------------------------------------------------------
    t = obs_rec.doy + obs_rec.hour / 24.0

    fig, axes = plt.subplots(2, 1, figsize=(12, 7), sharex=True)
    plot_ensemble_band(t, np.sort(sign * ens.member_quantiles(args.variable), axis=0), obs=nee, mask=mask,
                       ax=axes[0], label="ensemble")
    plot_ensemble_band(t, np.sort(sign * pf.member_quantiles(args.variable), axis=0), obs=nee, mask=mask,
                       ax=axes[1], label="particle filter", color="C1")
    axes[1].set_xlabel("Day of year")
    for ax in axes:
        ax.set_ylabel("NEE [umol/m2/s]")
    fig.tight_layout()
    fig.savefig(figures_dir() / "timeseries.png", dpi=200)
    plt.close(fig)

    fig, axes = plt.subplots(1, len(predictors), figsize=(5 * len(predictors), 5))
    for ax, (name, pred) in zip(axes, predictors.items()):
        plot_scatter_1to1(np.where(mask, pred, np.nan), np.where(mask, nee, np.nan), ax=ax, label=name)
        ax.set_title(name)
    fig.tight_layout()
    fig.savefig(figures_dir() / "scatter.png", dpi=200)
    plt.close(fig)

    fig = plt.figure(figsize=(7, 7))
    ax = fig.add_subplot(111, polar=True)
    plot_taylor_diagram(taylor, ax=ax)
    fig.savefig(figures_dir() / "taylor.png", dpi=200, bbox_inches="tight")
    plt.close(fig)

    cycles = {"observed": diurnal_cycle(nee, obs_rec.hour, mask=mask)}
    for name, pred in predictors.items():
        cycles[name] = diurnal_cycle(pred, obs_rec.hour, mask=mask)
    fig = plt.figure(figsize=(7, 4))
    plot_diurnal_cycles(cycles, ax=fig.add_subplot(111), ylabel="NEE [umol/m2/s]")
    fig.tight_layout()
    fig.savefig(figures_dir() / "diurnal.png", dpi=200)
    plt.close(fig)

    # -----------------------------------------------------------------
    # Print summary
    # -----------------------------------------------------------------
    print("=" * 80)
    print("Error statistics complete")
    print(f"year          : {args.eval_year}")
    print(f"variable      : {args.variable} (x {sign:g})")
    print(f"valid steps   : {int(mask.sum())} / {mask.size}")
    print("-" * 80)
    print(table.to_string(float_format=lambda v: f"{v:.4g}"))
    print("=" * 80)


if __name__ == "__main__":
    main()
