"""
Pointwise error statistics between a predictor and observations.

The same computer is used for the ensemble mean, the particle-filter mean
and the observational climatology:

    RMSE        = sqrt(mean((pred - obs)^2))
    bias        = mean(pred - obs)
    correlation = Pearson r(pred, obs)
    slope       = OLS slope of obs regressed on pred

Inputs are expected to be pre-masked by the caller. NaNs are not removed
here, they propagate into the statistics.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Dict, Mapping, Optional

import numpy as np
import pandas as pd


class InvalidInput(ValueError):
    """Raised when array arguments do not line up (length or shape)."""


@dataclass(frozen=True)
class ErrorStatistics:
    rmse: float
    bias: float
    correlation: float
    slope: float
    n: int

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


def _paired(pred, obs):
    pred = np.asarray(pred, dtype=float).reshape(-1)
    obs = np.asarray(obs, dtype=float).reshape(-1)
    if pred.size != obs.size:
        raise InvalidInput(f"Length mismatch: len(pred)={pred.size}, len(obs)={obs.size}")
    return pred, obs


def error_statistics(pred, obs) -> ErrorStatistics:
    """
    RMSE, bias, correlation and regression slope of `pred` against `obs`.

    Parameters
    ----------
    pred, obs : array_like, same length
        Prediction and observation, already masked to the comparison set.

    Returns
    -------
    ErrorStatistics
        Correlation and slope are NaN when either input has zero variance.
    """
    pred, obs = _paired(pred, obs)
    n = pred.size
    if n == 0:
        return ErrorStatistics(np.nan, np.nan, np.nan, np.nan, 0)

    err = pred - obs
    rmse = float(np.sqrt(np.mean(err * err)))
    bias = float(np.mean(err))

    dp = pred - pred.mean()
    do = obs - obs.mean()
    sxx = float(np.sum(dp * dp))
    syy = float(np.sum(do * do))
    sxy = float(np.sum(dp * do))

    # obs = a + slope * pred
    slope = sxy / sxx if sxx > 0 else np.nan
    denom = np.sqrt(sxx * syy)
    correlation = sxy / denom if denom > 0 else np.nan

    return ErrorStatistics(rmse, bias, float(correlation), float(slope), int(n))


def error_table(
    predictors: Mapping[str, np.ndarray],
    obs,
    mask: Optional[np.ndarray] = None,
) -> pd.DataFrame:
    """
    Error statistics for several named predictors against one observation.

    Each predictor is compared over `mask` restricted to time steps where the
    predictor itself has a value; the column `n` reports how many steps were
    used, so predictors with absent values remain visible as such.
    """
    obs = np.asarray(obs, dtype=float).reshape(-1)
    if mask is None:
        mask = np.isfinite(obs)
    mask = np.asarray(mask, dtype=bool).reshape(-1)
    if mask.size != obs.size:
        raise InvalidInput(f"Mask length {mask.size} does not match observations ({obs.size})")

    rows = {}
    for name, pred in predictors.items():
        pred = np.asarray(pred, dtype=float).reshape(-1)
        if pred.size != obs.size:
            raise InvalidInput(f"Predictor '{name}' has length {pred.size}, observations {obs.size}")
        sel = mask & np.isfinite(pred)
        rows[name] = error_statistics(pred[sel], obs[sel]).as_dict()

    table = pd.DataFrame.from_dict(rows, orient="index", columns=["rmse", "bias", "correlation", "slope", "n"])
    table.index.name = "predictor"
    return table


def taylor_statistics(pred, obs) -> Dict[str, float]:
    """
    Quantities placed on a Taylor diagram.

    Returns
    -------
    dict
        - 'sd_ratio'     : sd(pred) / sd(obs)
        - 'correlation'  : Pearson r
        - 'crmsd'        : centered RMS difference, normalized by sd(obs)
        - 'sd_pred', 'sd_obs'
    """
    pred, obs = _paired(pred, obs)
    sd_p = float(np.std(pred))
    sd_o = float(np.std(obs))
    r = error_statistics(pred, obs).correlation
    crmsd = float(np.sqrt(np.mean(((pred - pred.mean()) - (obs - obs.mean())) ** 2)))
    return {
        "sd_ratio": sd_p / sd_o if sd_o > 0 else np.nan,
        "correlation": r,
        "crmsd": crmsd / sd_o if sd_o > 0 else np.nan,
        "sd_pred": sd_p,
        "sd_obs": sd_o,
    }


def diurnal_cycle(values, hour, mask: Optional[np.ndarray] = None, step: float = 0.5) -> pd.Series:
    """
    Mean value per time-of-day slot.

    Slots are `step` hours wide and start at 0. Values outside `mask` are
    treated as absent; a slot with no valid value is NaN.
    """
    values, hour = _paired(values, hour)
    if mask is not None:
        mask = np.asarray(mask, dtype=bool).reshape(-1)
        if mask.size != values.size:
            raise InvalidInput(f"Mask length {mask.size} does not match values ({values.size})")
        values = np.where(mask, values, np.nan)

    slots = np.arange(0.0, 24.0, step)
    slot_of = np.floor(np.mod(hour, 24.0) / step) * step
    cycle = pd.Series(values).groupby(slot_of).mean()
    cycle = cycle.reindex(slots)
    cycle.index.name = "hour"
    return cycle
