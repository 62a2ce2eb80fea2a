"""
Part 2 (State-Space Estimation) - Configuration + Data Contracts

Series CSV contract (data/part2/flu_series.csv)
-----------------------------------------------
Columns:
  - date  : ISO date, weekly
  - value : strictly positive index value (e.g. flu cases)

Posterior NPZ contract (results/part2/fit_<pattern>.npz)
--------------------------------------------------------
Required keys:
  - dates        : (n,) datetime64
  - values       : (n,) series with removed values as NaN
  - lower        : (n,) 2.5% quantile of exp(x)
  - median       : (n,) 50% quantile of exp(x)
  - upper        : (n,) 97.5% quantile of exp(x)
  - pattern      : str
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Tuple


PART2_VERSION = "v1.0"


def get_project_root() -> Path:
    here = Path(__file__).resolve()
    return here.parents[1]


def data_dir() -> Path:
    return get_project_root() / "data" / "part2"


def results_dir() -> Path:
    return get_project_root() / "results" / "part2"


def figures_dir() -> Path:
    return results_dir() / "figures"


def series_file() -> Path:
    return data_dir() / "flu_series.csv"


def fit_file(pattern: str) -> Path:
    return results_dir() / f"fit_{pattern}.npz"


@dataclass(frozen=True)
class Part2Config:
    # --- Priors (log scale) ---
    tau_ic: float = 100.0
    a_obs: float = 1.0
    r_obs: float = 1.0
    a_add: float = 1.0
    r_add: float = 1.0

    # --- Sampler ---
    n_chains: int = 3
    burn_in: int = 1000
    n_iter: int = 10000
    thin: int = 1
    state_update: str = "sweep"

    # --- Missing-data experiments ---
    patterns: Tuple[str, ...] = ("original", "monthly", "forecast")
    thin_every: int = 4
    forecast_window: int = 40
    share_inits: bool = True

    # --- Seeds ---
    seed: int = 2025

    # --- Synthetic series ---
    n_weeks: int = 620
    start_date: str = "2003-09-28"


def default_config() -> Part2Config:
    return Part2Config()
