"""
Part 1 - Step C
C_wavelet_spectrum.py

Morlet wavelet power of the gap-filled observed NEE and of the ensemble-mean
model error, to see at which time scales (diurnal, synoptic, seasonal) the
model departs from the data.

Outputs:
  results/part1/wavelet_global_power.csv
  results/part1/figures/wavelet.png
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np
import pandas as pd
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
from ecoforecast.ef_io import ensure_dir, load_ensemble_or_fail, read_flux_csv
from ecoforecast.ef_plots import plot_wavelet
from ecoforecast.ef_wavelet import default_scales, wavelet_power


def main() -> None:
    cfg = default_config()

    parser = argparse.ArgumentParser()
    parser.add_argument("--eval_year", type=int, default=cfg.eval_year, help="Evaluation year.")
    parser.add_argument("--n_scales", type=int, default=100, help="Number of wavelet scales.")
    args = parser.parse_args()

    ensure_dir(results_dir())
    ensure_dir(figures_dir())

    ens = load_ensemble_or_fail(ensemble_file(), key="ensemble")
    rec = read_flux_csv(data_dir() / flux_pattern().format(year=args.eval_year), args.eval_year)

    dt = 1.0 / 48.0  # days
    nee_fill = rec.nee_fill
    model_nee = cfg.variable_sign * ens.member_mean(cfg.variable)

    scales = default_scales(nee_fill.size, n_scales=args.n_scales)

    spec_obs = wavelet_power(nee_fill, dt=dt, scales=scales)
    spec_err = wavelet_power(model_nee - nee_fill, dt=dt, scales=scales)

    pd.DataFrame(
        {
            "period_days": spec_obs.periods,
            "power_obs": spec_obs.global_power,
            "power_error": spec_err.global_power,
        }
    ).to_csv(results_dir() / "wavelet_global_power.csv", index=False)

    t = rec.doy + rec.hour / 24.0
    fig, axes = plt.subplots(2, 1, figsize=(12, 8), sharex=True)
    plot_wavelet(spec_obs, t=t, ax=axes[0], title="Observed NEE (gap-filled)")
    plot_wavelet(spec_err, t=t, ax=axes[1], title="Model error (ensemble mean - observed)")
    axes[1].set_xlabel("Day of year")
    for ax in axes:
        ax.set_ylabel("Period [days]")
    fig.tight_layout()
    fig.savefig(figures_dir() / "wavelet.png", dpi=200)
    plt.close(fig)

    i_obs = int(np.argmax(spec_obs.global_power))
    i_err = int(np.argmax(spec_err.global_power))
    print("=" * 80)
    print("Wavelet spectrum complete")
    print(f"peak period (obs)   : {spec_obs.periods[i_obs]:.3g} days")
    print(f"peak period (error) : {spec_err.periods[i_err]:.3g} days")
    print(f"figure              : {figures_dir() / 'wavelet.png'}")
    print("=" * 80)


if __name__ == "__main__":
    main()
