"""
Plotting helpers reused by the exercise scripts.

Every function draws on an existing Axes (or creates one) and returns it,
so scripts decide layout and saving.
"""

from __future__ import annotations

from typing import Mapping, Optional, Sequence

import matplotlib
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

font = {"size": 12}
matplotlib.rc("font", **font)


def _axes(ax, figsize=(6, 4), polar: bool = False):
    if ax is None:
        fig = plt.figure(figsize=figsize)
        ax = fig.add_subplot(111, polar=polar)
    return ax


def plot_tme(t, true=None, measured=None, estimated=None, ax=None, label_var: str = "y"):
    """
    Plot True / Measured / Estimated signals on a single set of axes.

    Any of the three may be None and is then omitted.
    """
    ax = _axes(ax)

    if measured is not None:
        ax.plot(t, measured, "*", label=label_var + " measured", markersize=2)

    if estimated is not None:
        ax.plot(t, estimated, label=label_var + " hat")

    if true is not None:
        ax.plot(t, true, "--", label=label_var + " true")

    ax.set_xlabel("Time")
    ax.set_ylabel(label_var)
    ax.legend()
    return ax


def plot_ensemble_band(t, quantiles, obs=None, mask=None, ax=None, label: str = "ensemble", color="C0"):
    """95% band and median from a (3, T) quantile array, with masked observations."""
    ax = _axes(ax, figsize=(10, 4))
    lo, med, hi = np.asarray(quantiles)
    ax.fill_between(t, lo, hi, color=color, alpha=0.3, label=f"{label} 95%")
    ax.plot(t, med, color=color, lw=1, label=f"{label} median")
    if obs is not None:
        obs = np.asarray(obs, dtype=float)
        if mask is not None:
            obs = np.where(mask, obs, np.nan)
        ax.plot(t, obs, ".", color="k", markersize=2, label="observed")
    ax.legend()
    return ax


def plot_scatter_1to1(pred, obs, ax=None, label: str = "model"):
    """Predicted vs observed with the 1:1 line and OLS fit of obs on pred."""
    ax = _axes(ax, figsize=(5, 5))
    pred = np.asarray(pred, dtype=float)
    obs = np.asarray(obs, dtype=float)
    ok = np.isfinite(pred) & np.isfinite(obs)
    ax.plot(pred[ok], obs[ok], ".", markersize=2, alpha=0.5, label=label)
    lims = [np.nanmin([pred[ok].min(), obs[ok].min()]), np.nanmax([pred[ok].max(), obs[ok].max()])]
    ax.plot(lims, lims, "k--", lw=1, label="1:1")
    if ok.sum() > 1:
        slope, intercept = np.polyfit(pred[ok], obs[ok], 1)
        xs = np.asarray(lims)
        ax.plot(xs, intercept + slope * xs, "r-", lw=1, label=f"fit (slope={slope:.2f})")
    ax.set_xlabel("Predicted")
    ax.set_ylabel("Observed")
    ax.legend()
    return ax


def plot_taylor_diagram(stats: Mapping[str, Mapping[str, float]], ax=None, sd_max: Optional[float] = None):
    """
    Taylor diagram from normalized statistics.

    `stats` maps predictor name -> dict with 'sd_ratio' and 'correlation'
    (see ef_stats.taylor_statistics). The reference sits at (r=1, sd=1).
    """
    ax = _axes(ax, figsize=(6, 6), polar=True)
    ratios = [s["sd_ratio"] for s in stats.values() if np.isfinite(s["sd_ratio"])]
    if sd_max is None:
        sd_max = max([1.5] + [1.2 * r for r in ratios])

    ax.set_thetamin(0)
    ax.set_thetamax(90)
    ax.set_rlim(0, sd_max)

    # centered RMS difference contours around the reference point
    th = np.linspace(0, np.pi / 2, 100)
    rs = np.linspace(0, sd_max, 100)
    TH, RS = np.meshgrid(th, rs)
    crmsd = np.sqrt(1.0 + RS ** 2 - 2.0 * RS * np.cos(TH))
    cs = ax.contour(TH, RS, crmsd, levels=[0.25, 0.5, 0.75, 1.0], colors="0.6", linewidths=0.8)
    ax.clabel(cs, fmt="%.2f", fontsize=8)

    ax.plot([0], [1.0], "k*", markersize=12, label="observed")
    for i, (name, s) in enumerate(stats.items()):
        r = float(np.clip(s["correlation"], -1.0, 1.0))
        if not np.isfinite(r) or not np.isfinite(s["sd_ratio"]):
            continue
        ax.plot([np.arccos(r)], [s["sd_ratio"]], "o", color=f"C{i}", label=name)

    corr_ticks = np.array([0.0, 0.2, 0.4, 0.6, 0.8, 0.9, 0.95, 0.99, 1.0])
    ax.set_thetagrids(np.degrees(np.arccos(corr_ticks)), labels=[f"{c:g}" for c in corr_ticks])
    ax.set_xlabel("Normalized standard deviation")
    ax.legend(loc="upper right", bbox_to_anchor=(1.3, 1.1))
    return ax


def plot_diurnal_cycles(cycles: Mapping[str, pd.Series], ax=None, ylabel: str = "NEE"):
    ax = _axes(ax)
    for name, cyc in cycles.items():
        ax.plot(cyc.index, cyc.to_numpy(), label=name)
    ax.set_xlabel("Hour of day")
    ax.set_ylabel(ylabel)
    ax.legend()
    return ax


def plot_wavelet(spectrum, t=None, ax=None, title: str = ""):
    """Log10 wavelet power vs time and period, with the cone of influence."""
    ax = _axes(ax, figsize=(10, 4))
    n = spectrum.power.shape[1]
    t = np.arange(n) if t is None else np.asarray(t)
    log_power = np.log10(spectrum.power + 1e-12)
    mesh = ax.pcolormesh(t, spectrum.periods, log_power, shading="auto", cmap="viridis")
    ax.plot(t, np.clip(spectrum.coi, spectrum.periods.min(), spectrum.periods.max()), "w--", lw=1)
    ax.set_yscale("log")
    ax.invert_yaxis()
    ax.set_ylabel("Period")
    ax.set_title(title)
    plt.colorbar(mesh, ax=ax, label="log10 power")
    return ax


def plot_credible_interval(t, summary, obs=None, ax=None, label: str = "x", color="C0", log_y: bool = True):
    """Posterior median and 95% interval with the observations."""
    ax = _axes(ax, figsize=(10, 4))
    ax.fill_between(t, summary.lower, summary.upper, color=color, alpha=0.3, label=f"{label} 95% CI")
    ax.plot(t, summary.median, color=color, lw=1, label=f"{label} median")
    if obs is not None:
        ax.plot(t, obs, "k.", markersize=3, label="observed")
    if log_y:
        ax.set_yscale("log")
    ax.legend()
    return ax


def plot_traces(chains, ax=None, label: str = "", burn_in: Optional[int] = None):
    """Trace of a (n_chain, n_iter) draw array, one line per chain."""
    ax = _axes(ax, figsize=(8, 3))
    chains = np.atleast_2d(np.asarray(chains, dtype=float))
    for i, c in enumerate(chains):
        ax.plot(c, lw=0.5, color=f"C{i}", label=f"chain {i + 1}")
    if burn_in is not None:
        ax.axvline(burn_in, color="k", ls="--", lw=1)
    ax.set_xlabel("Iteration")
    ax.set_ylabel(label)
    ax.legend()
    return ax
