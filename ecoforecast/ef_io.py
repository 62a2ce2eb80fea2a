"""
I/O helpers for the exercise scripts.

Ensemble file convention (NPZ):
  <key>          : (T, M, 12) model output [Bleaf ... NEP]
  <key>_weights  : (T, M) particle weights (optional)

Flux file convention (CSV, one file per year):
  doy, hour, NEE, NEE_fill, qc and one column per driver; -9999 = missing

Series file convention (CSV):
  a date column and a strictly positive value column
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .ef_data import SENTINEL, EnsembleOutput, FluxRecord, flux_record_from_frame


def ensure_dir(path) -> Path:
    os.makedirs(path, exist_ok=True)
    return Path(path)


def load_ensemble_or_fail(path, key: str = "ensemble") -> EnsembleOutput:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(
            f"Ensemble file not found: {path}. "
            "Run Part_1_Model_Assessment/A_generate_synthetic_inputs.py first."
        )
    data = np.load(path)
    if key not in data:
        raise KeyError(f"{path} missing '{key}'. Keys: {list(data.keys())}")
    weights_key = f"{key}_weights"
    weights = data[weights_key] if weights_key in data else None
    return EnsembleOutput(data[key], weights=weights)


def read_flux_csv(
    path,
    year: int,
    columns: Optional[Mapping[str, str]] = None,
    drivers: Iterable[str] = (),
    sentinel: float = SENTINEL,
) -> FluxRecord:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Flux file not found: {path}")
    frame = pd.read_csv(path)
    return flux_record_from_frame(frame, year, columns=columns, drivers=drivers, sentinel=sentinel)


def load_flux_years(
    directory,
    years: Sequence[int],
    pattern: str = "flux_{year}.csv",
    drivers: Iterable[str] = (),
    columns: Optional[Mapping[str, str]] = None,
) -> List[FluxRecord]:
    """One FluxRecord per year, read from `directory / pattern.format(year=...)`."""
    directory = Path(directory)
    drivers = tuple(drivers)
    return [
        read_flux_csv(directory / pattern.format(year=y), y, columns=columns, drivers=drivers)
        for y in years
    ]


def write_flux_csv(record: FluxRecord, path, sentinel: float = SENTINEL) -> Path:
    """Write a record back with the raw column names and sentinel-coded gaps."""
    frame = record.to_frame().drop(columns="year")
    frame = frame.rename(columns={"nee": "NEE", "nee_fill": "NEE_fill"})
    frame = frame.fillna(sentinel)
    frame.to_csv(path, index=False)
    return Path(path)


def read_series_csv(path, date_column: str = "date", value_column: str = "value") -> Tuple[np.ndarray, np.ndarray]:
    """Ordered (dates, values) pairs from a two-column table."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(
            f"Series file not found: {path}. "
            "Run Part_2_State_Space/A_generate_synthetic_series.py first."
        )
    frame = pd.read_csv(path)
    for c in (date_column, value_column):
        if c not in frame.columns:
            raise KeyError(f"{path} missing column '{c}'. Columns: {list(frame.columns)}")
    frame[date_column] = pd.to_datetime(frame[date_column])
    frame = frame.sort_values(date_column)
    return frame[date_column].to_numpy(), frame[value_column].to_numpy(dtype=float)
