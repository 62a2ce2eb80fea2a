"""
Part 2 - Step C
C_missing_data_experiments.py

Refits the random-walk model after removing observations:
  - original : all weekly values
  - monthly  : every 4th week kept (lower monitoring frequency)
  - forecast : last 40 weeks removed (forecast window)

The same initial values are used for all variants when share_inits is on
(config or --separate_inits to turn it off).

Outputs:
  results/part2/fit_<pattern>.npz
  results/part2/parameters_<pattern>.csv
  results/part2/figures/missing_data.png
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

from Part_2_State_Space.config_part2 import (
    default_config,
    figures_dir,
    fit_file,
    results_dir,
    series_file,
)
from ecoforecast.ef_io import ensure_dir, read_series_csv
from ecoforecast.ef_plots import plot_credible_interval
from ecoforecast.ef_state_space import (
    RandomWalkModel,
    interval_coverage,
    run_missing_data_experiments,
)


def main() -> None:
    cfg = default_config()

    parser = argparse.ArgumentParser()
    parser.add_argument("--n_chains", type=int, default=cfg.n_chains, help="Number of chains.")
    parser.add_argument("--burn_in", type=int, default=cfg.burn_in, help="Burn-in iterations per chain.")
    parser.add_argument("--n_iter", type=int, default=cfg.n_iter, help="Production iterations per chain.")
    parser.add_argument("--separate_inits", action="store_true", help="Derive initial values per variant.")
    parser.add_argument("--seed", type=int, default=cfg.seed, help="Master seed.")
    args = parser.parse_args()

    ensure_dir(results_dir())
    ensure_dir(figures_dir())

    dates, values = read_series_csv(series_file())
    model = RandomWalkModel.centered_on(
        np.log(values), tau_ic=cfg.tau_ic, a_obs=cfg.a_obs, r_obs=cfg.r_obs, a_add=cfg.a_add, r_add=cfg.r_add
    )

    results = run_missing_data_experiments(
        values,
        patterns=cfg.patterns,
        pattern_kwargs={
            "monthly": {"every": cfg.thin_every},
            "forecast": {"n": cfg.forecast_window},
        },
        model=model,
        share_inits=cfg.share_inits and not args.separate_inits,
        n_chains=args.n_chains,
        burn_in=args.burn_in,
        n_iter=args.n_iter,
        state_update=cfg.state_update,
        seed=args.seed,
    )

    fig, axes = plt.subplots(len(results), 1, figsize=(11, 3.5 * len(results)), sharex=True)
    axes = np.atleast_1d(axes)
    for ax, (name, res) in zip(axes, results.items()):
        s = res.summary
        np.savez(
            fit_file(name),
            dates=dates,
            values=res.values,
            lower=s.lower,
            median=s.median,
            upper=s.upper,
            pattern=name,
        )
        res.parameters.to_csv(results_dir() / f"parameters_{name}.csv")

        plot_credible_interval(dates, s, obs=res.values, ax=ax, label=name)
        removed = ~np.isfinite(res.values)
        if removed.any():
            ax.plot(dates[removed], values[removed], "r+", markersize=3, label="held out")
            ax.legend()
        ax.set_title(name)
    fig.tight_layout()
    fig.savefig(figures_dir() / "missing_data.png", dpi=200)
    plt.close(fig)

    print("=" * 80)
    print("Missing-data experiments complete")
    print(f"shared inits : {cfg.share_inits and not args.separate_inits}")
    for name, res in results.items():
        s = res.summary
        held = ~np.isfinite(res.values)
        print("-" * 80)
        print(f"[{name}] observed = {int((~held).sum())}, removed = {int(held.sum())}")
        print(f"  coverage (kept)    : {interval_coverage(s, res.values):.3f}")
        if held.any():
            print(f"  coverage (removed) : {interval_coverage(s, np.where(held, values, np.nan)):.3f}")
            print(f"  mean CI width removed / kept : "
                  f"{np.mean(s.width[held]):.4g} / {np.mean(s.width[~held]):.4g}")
        print(res.parameters.to_string(float_format=lambda v: f"{v:.4g}"))
    print("=" * 80)


if __name__ == "__main__":
    main()
