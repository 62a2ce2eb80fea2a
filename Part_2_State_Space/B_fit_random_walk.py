"""
Part 2 - Step B
B_fit_random_walk.py

Fits the random-walk state-space model to the log series with several Gibbs
chains:
  1. burn-in run from dispersed initial values -> trace plots + R-hat
  2. production run continuing from the end of the burn-in
  3. 95% credible interval of exp(x) and posterior sd of both noise terms

Outputs:
  results/part2/fit_original.npz
  results/part2/convergence_burnin.csv
  results/part2/parameters_original.csv
  results/part2/figures/traces_burnin.png
  results/part2/figures/fit_original.png
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
from ecoforecast.ef_convergence import convergence_report
from ecoforecast.ef_io import ensure_dir, read_series_csv
from ecoforecast.ef_plots import plot_credible_interval, plot_traces
from ecoforecast.ef_state_space import (
    RandomWalkModel,
    fit_random_walk,
    interval_coverage,
    parameter_summary,
)


def main() -> None:
    cfg = default_config()

    parser = argparse.ArgumentParser()
    parser.add_argument("--n_chains", type=int, default=cfg.n_chains, help="Number of chains.")
    parser.add_argument("--burn_in", type=int, default=cfg.burn_in, help="Burn-in iterations per chain.")
    parser.add_argument("--n_iter", type=int, default=cfg.n_iter, help="Production iterations per chain.")
    parser.add_argument("--state_update", type=str, default=cfg.state_update, choices=("sweep", "joint"))
    parser.add_argument("--seed", type=int, default=cfg.seed, help="Master seed.")
    args = parser.parse_args()

    ensure_dir(results_dir())
    ensure_dir(figures_dir())

    dates, values = read_series_csv(series_file())
    y_log = np.log(values)
    model = RandomWalkModel.centered_on(
        y_log, tau_ic=cfg.tau_ic, a_obs=cfg.a_obs, r_obs=cfg.r_obs, a_add=cfg.a_add, r_add=cfg.r_add
    )

    fit = fit_random_walk(
        values,
        model=model,
        n_chains=args.n_chains,
        burn_in=args.burn_in,
        n_iter=args.n_iter,
        thin=cfg.thin,
        state_update=args.state_update,
        seed=args.seed,
    )

    # -----------------------------------------------------------------
    # Convergence (burn-in)
    # -----------------------------------------------------------------
    check_idx = [0, values.size // 2, values.size - 1]
    report = None
    if fit.burn is not None:
        report = convergence_report(fit.burn, x_index=check_idx)
        report.to_csv(results_dir() / "convergence_burnin.csv")

        fig, axes = plt.subplots(3, 1, figsize=(9, 8))
        plot_traces(fit.burn.sd_obs, ax=axes[0], label="sd_obs")
        plot_traces(fit.burn.sd_add, ax=axes[1], label="sd_add")
        plot_traces(fit.burn.x[:, :, check_idx[1]], ax=axes[2], label=f"x[{check_idx[1]}]")
        fig.tight_layout()
        fig.savefig(figures_dir() / "traces_burnin.png", dpi=200)
        plt.close(fig)

    prod_report = convergence_report(fit.draws, x_index=check_idx)
    params = parameter_summary(fit.draws)
    params.to_csv(results_dir() / "parameters_original.csv")

    # -----------------------------------------------------------------
    # Save + plot
    # -----------------------------------------------------------------
    s = fit.summary
    np.savez(
        fit_file("original"),
        dates=dates,
        values=values,
        lower=s.lower,
        median=s.median,
        upper=s.upper,
        pattern="original",
    )

    fig = plt.figure(figsize=(11, 4))
    ax = fig.add_subplot(111)
    plot_credible_interval(dates, s, obs=values, ax=ax, label="flu")
    ax.set_title("Random walk fit (all observations)")
    fig.tight_layout()
    fig.savefig(figures_dir() / "fit_original.png", dpi=200)
    plt.close(fig)

    print("=" * 80)
    print("Random-walk fit complete")
    print(f"series     : {series_file()} ({values.size} values)")
    print(f"chains     : {fit.draws.n_chain} x {fit.draws.n_keep} draws")
    print(f"coverage   : {interval_coverage(s, values):.3f} of observations inside the 95% CI")
    print("-" * 80)
    if report is not None:
        print("Burn-in diagnostics:")
        print(report.to_string(float_format=lambda v: f"{v:.4g}"))
        print("-" * 80)
    print("Production diagnostics:")
    print(prod_report.to_string(float_format=lambda v: f"{v:.4g}"))
    print("-" * 80)
    print(params.to_string(float_format=lambda v: f"{v:.4g}"))
    print("=" * 80)


if __name__ == "__main__":
    main()
