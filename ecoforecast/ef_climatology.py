"""
Observational climatology as a baseline "model".

The climatology is the mean annual cycle of the flux observed in the years
other than the evaluation year, averaged per (day of year, time of day)
bucket. Buckets without any valid observation stay NaN.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
import pandas as pd

from .ef_data import FluxRecord, quality_mask

BUCKET = ["doy", "hour"]


def climatology(
    records: Sequence[FluxRecord],
    exclude_year: int,
    column: str = "nee",
    accept: Sequence[float] = (0,),
) -> pd.Series:
    """
    Average annual cycle across years, excluding `exclude_year`.

    Parameters
    ----------
    records : sequence of FluxRecord
        One record per year; the evaluation year may be among them.
    exclude_year : int
        Year left out of the average.
    column : str
        Observation column to average ('nee' or 'nee_fill').
    accept : sequence
        Quality flags treated as valid. Other observations are absent.

    Returns
    -------
    Series
        Mean per (doy, hour) bucket, NaN where no year had a valid value.
    """
    frames = []
    for rec in records:
        if rec.year == exclude_year:
            continue
        ok = quality_mask(rec, accept=accept, column=column)
        frames.append(
            pd.DataFrame(
                {
                    "doy": np.asarray(rec.doy, dtype=int),
                    "hour": np.asarray(rec.hour, dtype=float),
                    "value": np.where(ok, rec.column(column), np.nan),
                }
            )
        )

    if not frames:
        raise ValueError(f"No records left after excluding year {exclude_year}")

    stacked = pd.concat(frames, ignore_index=True)
    clim = stacked.groupby(BUCKET)["value"].mean()
    clim.name = f"{column}_climatology"
    return clim


def climatology_for(record: FluxRecord, clim: pd.Series) -> np.ndarray:
    """Climatology aligned to the (doy, hour) sequence of `record`."""
    index = pd.MultiIndex.from_arrays(
        [np.asarray(record.doy, dtype=int), np.asarray(record.hour, dtype=float)],
        names=BUCKET,
    )
    return clim.reindex(index).to_numpy(dtype=float)
