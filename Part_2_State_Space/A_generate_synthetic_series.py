"""
Part 2 - Step A
A_generate_synthetic_series.py

Generates a weekly, strictly positive, seasonal series (a stand-in for a
flu index) following the series CSV contract in config_part2.py.

Outputs:
  data/part2/flu_series.csv
  results/part2/figures/synthetic_series.png
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

CURRENT_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = CURRENT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from Part_2_State_Space.config_part2 import data_dir, default_config, figures_dir, series_file
from ecoforecast.ef_io import ensure_dir
from ecoforecast.ef_plots import plot_tme


def main() -> None:
    cfg = default_config()

    parser = argparse.ArgumentParser()
    parser.add_argument("--seed", type=int, default=cfg.seed, help="Random seed.")
    parser.add_argument("--n_weeks", type=int, default=cfg.n_weeks, help="Series length [weeks].")
    args = parser.parse_args()

    rng = np.random.default_rng(args.seed)
    ensure_dir(data_dir())
    ensure_dir(figures_dir())

    weeks = np.arange(args.n_weeks)
    season = 1.5 * np.maximum(np.sin(2.0 * np.pi * weeks / 52.18), -0.3)
    walk = np.cumsum(rng.normal(0.0, 0.08, args.n_weeks))
    log_x = np.log(800.0) + season + walk
    values = np.exp(log_x + rng.normal(0.0, 0.05, args.n_weeks))

    dates = pd.date_range(cfg.start_date, periods=args.n_weeks, freq="7D")
    pd.DataFrame({"date": dates.strftime("%Y-%m-%d"), "value": np.round(values, 1)}).to_csv(
        series_file(), index=False
    )

    fig, ax = plt.subplots(figsize=(10, 4))
    plot_tme(dates, true=np.exp(log_x), measured=values, ax=ax, label_var="value")
    ax.set_yscale("log")
    fig.tight_layout()
    fig.savefig(figures_dir() / "synthetic_series.png", dpi=200)
    plt.close(fig)

    print("=" * 80)
    print("Part 2 - Step A: synthetic weekly series")
    print(f"weeks  : {args.n_weeks}")
    print(f"range  : {values.min():.1f} .. {values.max():.1f}")
    print(f"saved  : {series_file()}")
    print("=" * 80)


if __name__ == "__main__":
    main()
