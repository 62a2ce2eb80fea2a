"""
Record schemas for the model-assessment exercise.

Ensemble output (ecosystem model ensemble or particle filter):
    values : (T, M, V) array indexed by (time step, member, variable)
    weights: optional (T, M) particle weights

The V = 12 variables are listed in VARIABLES together with their units.

Observed flux record (one year of half-hourly data):
    doy, hour         : time stamp of each half hour
    nee               : observed NEE [umol/m2/s]
    nee_fill          : gap-filled NEE estimate [umol/m2/s]
    qc                : quality flag (0 = best)
    drivers           : meteorological drivers, one array per name

Missing observations are coded with SENTINEL in the raw tables and are
converted to NaN before anything else touches them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .ef_stats import InvalidInput

SENTINEL = -9999.0

# (name, unit) for the 12 model output variables, in array order
VARIABLES: Tuple[Tuple[str, str], ...] = (
    ("Bleaf", "Mg/ha"),
    ("Bwood", "Mg/ha"),
    ("Bstore", "Mg/ha"),
    ("LAI", "m2/m2"),
    ("Rleaf", "umol/m2/sec"),
    ("Rwood", "umol/m2/sec"),
    ("Rroot", "umol/m2/sec"),
    ("GPP", "umol/m2/sec"),
    ("NPP", "umol/m2/sec"),
    ("Ra", "umol/m2/sec"),
    ("Rh", "umol/m2/sec"),
    ("NEP", "umol/m2/sec"),
)

VARIABLE_NAMES: Tuple[str, ...] = tuple(name for name, _ in VARIABLES)

# Default raw column names of the flux tables
FLUX_COLUMNS: Dict[str, str] = {
    "doy": "doy",
    "hour": "hour",
    "nee": "NEE",
    "nee_fill": "NEE_fill",
    "qc": "qc",
}


def variable_index(name: str) -> int:
    """Position of a model variable along the last ensemble axis."""
    try:
        return VARIABLE_NAMES.index(name)
    except ValueError:
        raise ValueError(
            f"Unknown model variable '{name}'. Available: {list(VARIABLE_NAMES)}"
        ) from None


def variable_unit(name: str) -> str:
    return VARIABLES[variable_index(name)][1]


def replace_sentinel(values, sentinel: float = SENTINEL) -> np.ndarray:
    """Float copy of `values` with every sentinel entry replaced by NaN."""
    out = np.array(values, dtype=float, copy=True)
    out[out == sentinel] = np.nan
    return out


def _frozen(a: np.ndarray) -> np.ndarray:
    a = np.array(a, dtype=float, copy=True)
    a.setflags(write=False)
    return a


# -------------------------------------------------------------------
# Ensemble / particle filter output
# -------------------------------------------------------------------
class EnsembleOutput(object):
    """
    Read-only wrapper around a (time, member, variable) output array.

    Parameters
    ----------
    values : array_like, shape (T, M, 12)
        Model output.
    weights : array_like, shape (T, M), optional
        Particle weights (particle filter). Rows are normalized on load.
        If None, members are equally weighted.
    """

    def __init__(self, values, weights=None):
        values = np.asarray(values, dtype=float)
        if values.ndim != 3:
            raise InvalidInput(f"Ensemble output must be 3-D (time, member, variable). Got {values.shape}")
        if values.shape[2] != len(VARIABLES):
            raise InvalidInput(
                f"Expected {len(VARIABLES)} variables on the last axis, got {values.shape[2]}"
            )
        self.values = _frozen(values)

        if weights is None:
            self.weights = None
        else:
            w = np.asarray(weights, dtype=float)
            if w.shape != values.shape[:2]:
                raise InvalidInput(f"weights must have shape {values.shape[:2]}, got {w.shape}")
            if np.any(w < 0):
                raise ValueError("Particle weights must be non-negative")
            totals = w.sum(axis=1, keepdims=True)
            if np.any(totals <= 0):
                raise ValueError("Each time step needs at least one positive particle weight")
            self.weights = _frozen(w / totals)

    @property
    def n_time(self) -> int:
        return self.values.shape[0]

    @property
    def n_member(self) -> int:
        return self.values.shape[1]

    def series(self, variable: str) -> np.ndarray:
        """(T, M) slice for one variable."""
        return self.values[:, :, variable_index(variable)]

    def member_mean(self, variable: str) -> np.ndarray:
        """Ensemble mean per time step (particle-weighted when weights exist)."""
        x = self.series(variable)
        if self.weights is None:
            return x.mean(axis=1)
        return np.sum(self.weights * x, axis=1)

    def member_quantiles(self, variable: str, q: Sequence[float] = (0.025, 0.5, 0.975)) -> np.ndarray:
        """
        Per-time quantiles across members, shape (len(q), T).

        Weighted quantiles use the cumulative particle weight of the sorted
        members (inverse-CDF with no interpolation).
        """
        x = self.series(variable)
        q = np.asarray(q, dtype=float)
        if self.weights is None:
            return np.quantile(x, q, axis=1)

        order = np.argsort(x, axis=1)
        xs = np.take_along_axis(x, order, axis=1)
        cw = np.cumsum(np.take_along_axis(self.weights, order, axis=1), axis=1)
        out = np.empty((q.size, x.shape[0]), dtype=float)
        for j, qj in enumerate(q):
            idx = np.argmax(cw >= qj - 1e-12, axis=1)
            out[j, :] = xs[np.arange(x.shape[0]), idx]
        return out


# -------------------------------------------------------------------
# Observed flux record
# -------------------------------------------------------------------
@dataclass(frozen=True)
class FluxRecord:
    year: int
    doy: np.ndarray
    hour: np.ndarray
    nee: np.ndarray
    nee_fill: np.ndarray
    qc: np.ndarray
    drivers: Mapping[str, np.ndarray] = field(default_factory=dict)

    def __post_init__(self):
        n = np.asarray(self.nee).size
        for name in ("doy", "hour", "nee_fill", "qc"):
            if np.asarray(getattr(self, name)).size != n:
                raise InvalidInput(f"FluxRecord.{name} has length {np.asarray(getattr(self, name)).size}, expected {n}")
        for name, arr in self.drivers.items():
            if np.asarray(arr).size != n:
                raise InvalidInput(f"Driver '{name}' has length {np.asarray(arr).size}, expected {n}")

    def __len__(self) -> int:
        return int(np.asarray(self.nee).size)

    def column(self, name: str) -> np.ndarray:
        """Observation column or driver by name."""
        if name in ("nee", "nee_fill", "qc", "doy", "hour"):
            return np.asarray(getattr(self, name))
        if name in self.drivers:
            return np.asarray(self.drivers[name])
        raise KeyError(f"Unknown flux column '{name}'. Drivers: {sorted(self.drivers)}")

    def to_frame(self) -> pd.DataFrame:
        data = {
            "doy": self.doy,
            "hour": self.hour,
            "nee": self.nee,
            "nee_fill": self.nee_fill,
            "qc": self.qc,
        }
        data.update({k: np.asarray(v) for k, v in self.drivers.items()})
        df = pd.DataFrame(data)
        df.insert(0, "year", self.year)
        return df


def flux_record_from_frame(
    frame: pd.DataFrame,
    year: int,
    columns: Optional[Mapping[str, str]] = None,
    drivers: Iterable[str] = (),
    sentinel: float = SENTINEL,
) -> FluxRecord:
    """
    Build a FluxRecord from a raw table.

    Parameters
    ----------
    frame : DataFrame
        Raw half-hourly table.
    year : int
        Calendar year of the table.
    columns : mapping, optional
        Field -> raw column name (defaults to FLUX_COLUMNS).
    drivers : iterable of str
        Raw columns to carry along as drivers.
    sentinel : float
        Missing-value code, converted to NaN.
    """
    cols = dict(FLUX_COLUMNS)
    if columns is not None:
        cols.update(columns)

    missing = [c for c in list(cols.values()) + list(drivers) if c not in frame.columns]
    if missing:
        raise KeyError(f"Flux table for {year} is missing columns {missing}. Columns: {list(frame.columns)}")

    def col(name):
        return replace_sentinel(frame[name].to_numpy(), sentinel)

    qc = col(cols["qc"])
    return FluxRecord(
        year=int(year),
        doy=frame[cols["doy"]].to_numpy(dtype=int),
        hour=frame[cols["hour"]].to_numpy(dtype=float),
        nee=col(cols["nee"]),
        nee_fill=col(cols["nee_fill"]),
        qc=qc,
        drivers={d: col(d) for d in drivers},
    )


def quality_mask(record: FluxRecord, accept: Sequence[float] = (0,), column: str = "nee") -> np.ndarray:
    """
    Boolean mask of usable time steps.

    True where the quality flag is in `accept` and the observation in
    `column` is present.
    """
    qc = np.asarray(record.qc, dtype=float)
    values = record.column(column)
    return np.isin(qc, np.asarray(accept, dtype=float)) & np.isfinite(values)
