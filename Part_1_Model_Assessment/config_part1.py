"""
Part 1 (Model Assessment) - Configuration + Data Contracts

Ensemble NPZ contract (data/part1/ensemble.npz)
-----------------------------------------------
Required keys:
  - ensemble          : (T,M,12) ecosystem-model ensemble output
  - pf                : (T,P,12) particle-filter output
  - pf_weights        : (T,P)    particle weights
  - year              : int      evaluation year
  - doy, hour         : (T,)     time stamps aligned with the flux record

Flux CSV contract (data/part1/flux_<year>.csv)
----------------------------------------------
Columns: doy, hour, NEE, NEE_fill, qc, and the drivers listed in
Part1Config.drivers. Missing values are coded as -9999.
qc = 0 marks an accepted observation.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Tuple


PART1_VERSION = "v1.0"


def get_project_root() -> Path:
    here = Path(__file__).resolve()
    return here.parents[1]


def data_dir() -> Path:
    return get_project_root() / "data" / "part1"


def results_dir() -> Path:
    return get_project_root() / "results" / "part1"


def figures_dir() -> Path:
    return results_dir() / "figures"


def ensemble_file() -> Path:
    return data_dir() / "ensemble.npz"


def flux_pattern() -> str:
    return "flux_{year}.csv"


@dataclass(frozen=True)
class Part1Config:
    # --- Evaluation year and the years used for the climatology ---
    eval_year: int = 2005
    clim_years: Tuple[int, ...] = (2000, 2001, 2002, 2003, 2004)

    # --- Model variable compared with observations ---
    variable: str = "NEP"
    # model NEE = variable_sign * variable (NEP is uptake-positive, NEE is not)
    variable_sign: float = -1.0

    # --- Quality flags accepted as valid observations ---
    accept_flags: Tuple[int, ...] = (0,)

    # --- Drivers used by the residual diagnostics ---
    drivers: Tuple[str, ...] = ("PAR", "temp", "VPD", "precip")

    # --- Heteroskedastic error scale: sigma = a + b*|NEE|; None -> fitted ---
    scale_intercept: float | None = None
    scale_slope: float | None = None

    # --- Residual-diagnostic model settings ---
    tree_max_depth: int = 3
    tree_min_leaf: int = 50
    forest_subsample: int = 5000
    forest_trees: int = 200

    # --- Synthetic input generation ---
    n_days: int = 120
    n_members: int = 50
    n_particles: int = 100
    seed: int = 12345


def default_config() -> Part1Config:
    return Part1Config()
