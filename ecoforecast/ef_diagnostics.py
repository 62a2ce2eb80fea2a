"""
Residual diagnostics: which drivers explain where the model goes wrong.

The error signal is the standardized residual

    e = (pred - obs) / scale,    scale = intercept + slope * |obs|

(heteroskedastic flux-measurement error). Two off-the-shelf learners relate
e to the meteorological drivers:

    - a shallow regression tree on e (mean error) or e^2 (mean squared error)
    - a random forest on |e|, fitted to a fixed-size random subsample, giving
      per-driver importance and partial-dependence curves
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from sklearn.ensemble import RandomForestRegressor
from sklearn.inspection import partial_dependence
from sklearn.tree import DecisionTreeRegressor, export_text

from .ef_stats import InvalidInput


def heteroskedastic_scale(obs, intercept: float, slope: float) -> np.ndarray:
    """Error scale growing linearly with the flux magnitude."""
    obs = np.asarray(obs, dtype=float)
    return intercept + slope * np.abs(obs)


def fit_heteroskedastic_scale(pred, obs) -> Tuple[float, float]:
    """
    OLS fit of |pred - obs| on |obs|.

    Only pairs where both values are present are used.

    Returns
    -------
    (intercept, slope)
    """
    pred = np.asarray(pred, dtype=float).reshape(-1)
    obs = np.asarray(obs, dtype=float).reshape(-1)
    if pred.size != obs.size:
        raise InvalidInput(f"Length mismatch: len(pred)={pred.size}, len(obs)={obs.size}")
    ok = np.isfinite(pred) & np.isfinite(obs)
    if ok.sum() < 2:
        raise ValueError("Need at least two paired values to fit the error scale")
    slope, intercept = np.polyfit(np.abs(obs[ok]), np.abs(pred[ok] - obs[ok]), deg=1)
    return float(intercept), float(slope)


def residual_signal(pred, obs, scale) -> np.ndarray:
    """(pred - obs) / scale; absent inputs give NaN."""
    pred = np.asarray(pred, dtype=float)
    obs = np.asarray(obs, dtype=float)
    scale = np.asarray(scale, dtype=float)
    if pred.shape != obs.shape:
        raise InvalidInput(f"Shape mismatch: pred {pred.shape} vs obs {obs.shape}")
    if np.any(scale[np.isfinite(scale)] <= 0):
        raise ValueError("Error scale must be strictly positive")
    return (pred - obs) / scale


def driver_frame(
    drivers: Mapping[str, np.ndarray],
    mask: np.ndarray,
    error: np.ndarray,
) -> Tuple[pd.DataFrame, np.ndarray]:
    """
    Drivers and error restricted to the same quality mask.

    Rows with any absent driver or error are dropped, so X and e stay aligned.
    """
    mask = np.asarray(mask, dtype=bool).reshape(-1)
    error = np.asarray(error, dtype=float).reshape(-1)
    if error.size != mask.size:
        raise InvalidInput(f"Error length {error.size} does not match mask ({mask.size})")

    cols = {}
    for name, values in drivers.items():
        values = np.asarray(values, dtype=float).reshape(-1)
        if values.size != mask.size:
            raise InvalidInput(f"Driver '{name}' has length {values.size}, mask {mask.size}")
        cols[name] = values
    if not cols:
        raise ValueError("At least one driver is required")

    X = pd.DataFrame(cols)
    keep = mask & np.isfinite(error) & X.notna().all(axis=1).to_numpy()
    return X.loc[keep].reset_index(drop=True), error[keep]


def fit_error_tree(
    X: pd.DataFrame,
    error: np.ndarray,
    target: str = "mean",
    max_depth: int = 3,
    min_samples_leaf: int = 50,
    random_state: int = 0,
) -> DecisionTreeRegressor:
    """
    Shallow regression tree partitioning driver space by mean error.

    target='mean' fits e itself (regions of systematic bias),
    target='squared' fits e^2 (regions of large error).
    """
    error = np.asarray(error, dtype=float).reshape(-1)
    if len(X) != error.size:
        raise InvalidInput(f"X has {len(X)} rows, error has {error.size}")
    if target == "mean":
        y = error
    elif target == "squared":
        y = error ** 2
    else:
        raise ValueError(f"Unknown tree target: {target} (use 'mean' or 'squared')")

    tree = DecisionTreeRegressor(
        max_depth=max_depth,
        min_samples_leaf=min_samples_leaf,
        random_state=random_state,
    )
    tree.fit(X, y)
    return tree


def describe_tree(tree: DecisionTreeRegressor, feature_names: Sequence[str], decimals: int = 3) -> str:
    return export_text(tree, feature_names=list(feature_names), decimals=decimals)


@dataclass
class ForestDiagnostics:
    model: RandomForestRegressor
    importance: pd.Series
    X: pd.DataFrame
    y: np.ndarray


def fit_error_forest(
    X: pd.DataFrame,
    error: np.ndarray,
    n_subsample: int = 5000,
    n_estimators: int = 200,
    min_samples_leaf: int = 5,
    rng: Optional[np.random.Generator] = None,
    random_state: int = 42,
) -> ForestDiagnostics:
    """
    Random forest predicting |error| from the drivers.

    A random subsample of at most `n_subsample` rows (without replacement) is
    used to bound the fitting time.
    """
    error = np.asarray(error, dtype=float).reshape(-1)
    if len(X) != error.size:
        raise InvalidInput(f"X has {len(X)} rows, error has {error.size}")
    if error.size == 0:
        raise ValueError("No rows to fit")

    if rng is None:
        rng = np.random.default_rng(random_state)
    n = min(int(n_subsample), error.size)
    idx = np.sort(rng.choice(error.size, size=n, replace=False))

    Xs = X.iloc[idx].reset_index(drop=True)
    ys = np.abs(error[idx])

    model = RandomForestRegressor(
        n_estimators=n_estimators,
        min_samples_leaf=min_samples_leaf,
        random_state=random_state,
        n_jobs=-1,
    )
    model.fit(Xs, ys)

    importance = pd.Series(model.feature_importances_, index=Xs.columns, name="importance")
    importance = importance.sort_values(ascending=False)
    return ForestDiagnostics(model=model, importance=importance, X=Xs, y=ys)


def partial_dependence_curves(
    diag: ForestDiagnostics,
    features: Optional[Sequence[str]] = None,
    grid_resolution: int = 30,
) -> Dict[str, Tuple[np.ndarray, np.ndarray]]:
    """
    Partial dependence of |error| on each driver.

    Returns
    -------
    dict
        driver -> (grid, average prediction over the sample)
    """
    if features is None:
        features = list(diag.X.columns)

    curves = {}
    for name in features:
        if name not in diag.X.columns:
            raise KeyError(f"Unknown driver '{name}'. Available: {list(diag.X.columns)}")
        pd_res = partial_dependence(
            diag.model, diag.X, [name], grid_resolution=grid_resolution, kind="average"
        )
        curves[name] = (np.asarray(pd_res["grid_values"][0]), np.asarray(pd_res["average"][0]))
    return curves
