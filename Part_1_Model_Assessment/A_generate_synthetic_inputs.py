"""
Part 1 - Step A
A_generate_synthetic_inputs.py

Generates synthetic stand-ins for the course data so the Part 1 pipeline
can run end to end:
  - half-hourly flux records for the climatology years and the evaluation year
  - an ecosystem-model ensemble and a particle-filter output for the
    evaluation year, following the NPZ contract in config_part1.py

Outputs:
  data/part1/flux_<year>.csv
  data/part1/ensemble.npz
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np

# ---------------------------------------------------------------------
# Robust imports (project root on path)
# ---------------------------------------------------------------------
CURRENT_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = CURRENT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from Part_1_Model_Assessment.config_part1 import (
    PART1_VERSION,
    data_dir,
    default_config,
    ensemble_file,
    flux_pattern,
)
from ecoforecast.ef_data import VARIABLE_NAMES, FluxRecord, variable_index
from ecoforecast.ef_io import ensure_dir, write_flux_csv

START_DOY = 150


def _drivers(n_days: int, rng: np.random.Generator):
    """Half-hourly PAR, temperature, VPD and precipitation."""
    hour = np.tile(np.arange(48) * 0.5, n_days)
    doy = np.repeat(np.arange(START_DOY, START_DOY + n_days), 48)

    sun = np.clip(np.sin(np.pi * (hour - 6.0) / 12.0), 0.0, None)
    cloud = np.repeat(rng.uniform(0.3, 1.0, n_days), 48)
    PAR = 1800.0 * sun * cloud

    season = 20.0 + 5.0 * np.sin(2.0 * np.pi * (doy - 120) / 365.0)
    temp = season + 5.0 * np.sin(np.pi * (hour - 9.0) / 12.0) + rng.normal(0.0, 0.5, hour.size)

    es = 0.6108 * np.exp(17.27 * temp / (temp + 237.3))
    VPD = np.clip(es * (1.0 - rng.uniform(0.4, 0.9, hour.size)), 0.0, None)

    precip = np.where(rng.uniform(size=hour.size) < 0.02, rng.exponential(2.0, hour.size), 0.0)
    return doy, hour, {"PAR": PAR, "temp": temp, "VPD": VPD, "precip": precip}


def _true_nee(drivers) -> np.ndarray:
    gpp = 30.0 * drivers["PAR"] / (drivers["PAR"] + 500.0) * np.exp(-0.1 * drivers["VPD"])
    reco = 2.0 * np.exp(0.07 * (drivers["temp"] - 10.0))
    return reco - gpp


def _flux_record(year: int, n_days: int, rng: np.random.Generator) -> FluxRecord:
    doy, hour, drivers = _drivers(n_days, rng)
    nee_true = _true_nee(drivers)

    sigma = 0.5 + 0.2 * np.abs(nee_true)
    nee = nee_true + rng.normal(0.0, sigma)

    # night-time and random quality problems
    night = drivers["PAR"] <= 0
    qc = np.where(rng.uniform(size=nee.size) < np.where(night, 0.6, 0.15), 2.0, 0.0)
    gaps = rng.uniform(size=nee.size) < 0.05
    nee[gaps] = np.nan

    nee_fill = nee_true + rng.normal(0.0, 0.2, nee.size)
    return FluxRecord(year=year, doy=doy, hour=hour, nee=nee, nee_fill=nee_fill, qc=qc, drivers=drivers)


def _model_output(nee_true: np.ndarray, n_members: int, bias: float, spread: float, rng: np.random.Generator):
    T = nee_true.size
    out = np.zeros((T, n_members, len(VARIABLE_NAMES)), dtype=float)

    member_bias = rng.normal(bias, spread, n_members)
    nep = -(nee_true[:, None] * (1.0 + 0.1 * rng.standard_normal(n_members))[None, :]) + member_bias[None, :]
    nep += rng.normal(0.0, spread, (T, n_members))

    gpp = np.clip(nep, 0.0, None) + 3.0
    ra = 0.5 * gpp
    rh = gpp - ra - nep

    out[:, :, variable_index("NEP")] = nep
    out[:, :, variable_index("GPP")] = gpp
    out[:, :, variable_index("Ra")] = ra
    out[:, :, variable_index("NPP")] = gpp - ra
    out[:, :, variable_index("Rh")] = rh
    out[:, :, variable_index("Rleaf")] = 0.4 * ra
    out[:, :, variable_index("Rwood")] = 0.3 * ra
    out[:, :, variable_index("Rroot")] = 0.3 * ra
    out[:, :, variable_index("Bleaf")] = 2.0 + 0.001 * np.cumsum(gpp - ra, axis=0)
    out[:, :, variable_index("Bwood")] = 150.0 + 0.0005 * np.cumsum(gpp - ra, axis=0)
    out[:, :, variable_index("Bstore")] = 5.0
    out[:, :, variable_index("LAI")] = 32.0 * out[:, :, variable_index("Bleaf")] / 10.0
    return out


def main() -> None:
    cfg = default_config()

    parser = argparse.ArgumentParser()
    parser.add_argument("--seed", type=int, default=cfg.seed, help="Base random seed.")
    parser.add_argument("--n_days", type=int, default=cfg.n_days, help="Days per synthetic year.")
    args = parser.parse_args()

    rng = np.random.default_rng(args.seed)
    ensure_dir(data_dir())

    print("=" * 80)
    print("Part 1 - Step A: Generating synthetic inputs")
    print(f"Project root : {PROJECT_ROOT}")
    print(f"Data out dir : {data_dir()}")
    print(f"Years        : {list(cfg.clim_years) + [cfg.eval_year]}")
    print(f"Days / year  : {args.n_days}")
    print("=" * 80)

    records = {}
    for year in list(cfg.clim_years) + [cfg.eval_year]:
        rec = _flux_record(year, args.n_days, rng)
        out_path = write_flux_csv(rec, data_dir() / flux_pattern().format(year=year))
        records[year] = rec
        print(f"Saved: {out_path}")

    ev = records[cfg.eval_year]
    nee_true = _true_nee(ev.drivers)

    ensemble = _model_output(nee_true, cfg.n_members, bias=1.0, spread=1.5, rng=rng)
    pf = _model_output(nee_true, cfg.n_particles, bias=0.2, spread=0.7, rng=rng)
    pf_weights = rng.dirichlet(np.ones(cfg.n_particles), size=nee_true.size)

    np.savez(
        ensemble_file(),
        ensemble=ensemble,
        pf=pf,
        pf_weights=pf_weights,
        year=int(cfg.eval_year),
        doy=ev.doy,
        hour=ev.hour,
        variable_names=np.array(VARIABLE_NAMES, dtype=object),
        part1_version=str(PART1_VERSION),
    )
    print(f"Saved: {ensemble_file()}")
    print("\nDone. Synthetic Part 1 inputs generated.")


if __name__ == "__main__":
    main()
