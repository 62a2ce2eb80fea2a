"""
Convergence diagnostics for multi-chain MCMC output.

Nothing here decides on its own whether a run has converged; the numbers
are printed next to trace plots for a person to judge.
"""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np
import pandas as pd

from .ef_state_space import PosteriorDraws


def gelman_rubin(chains) -> np.ndarray | float:
    """
    Gelman & Rubin (1992) potential scale reduction factor, R-hat.

    Parameters
    ----------
    chains : array_like, shape (n_chain, n_iter) or (n_chain, n_iter, n_param)
        Post-burn-in draws, one row block per chain.

    Returns
    -------
    float or ndarray
        R-hat per parameter (>= 1 up to Monte Carlo error). NaN with fewer
        than two chains or two iterations; inf when the within-chain variance
        is zero.
    """
    x = np.asarray(chains, dtype=float)
    scalar = x.ndim == 2
    if scalar:
        x = x[:, :, None]
    if x.ndim != 3:
        raise ValueError(f"chains must be (n_chain, n_iter[, n_param]), got shape {x.shape}")

    m, n, _ = x.shape
    if m < 2 or n < 2:
        out = np.full(x.shape[2], np.nan)
        return float(out[0]) if scalar else out

    chain_means = x.mean(axis=1)
    chain_vars = x.var(axis=1, ddof=1)

    W = chain_vars.mean(axis=0)                    # within-chain variance
    B = n * chain_means.var(axis=0, ddof=1)        # between-chain variance
    var_hat = ((n - 1) / n) * W + B / n

    with np.errstate(divide="ignore", invalid="ignore"):
        rhat = np.where(W > 0, np.sqrt(var_hat / W), np.inf)
    return float(rhat[0]) if scalar else rhat


def effective_sample_size(chain, max_lag: Optional[int] = None) -> float:
    """
    Autocorrelation-based effective sample size of one chain.

    The autocorrelation sum is truncated at the first non-positive lag.
    """
    x = np.asarray(chain, dtype=float).reshape(-1)
    n = x.size
    if n < 3:
        return float(n)
    x = x - x.mean()
    var = float(x @ x) / n
    if var == 0:
        return float(n)

    f = np.fft.rfft(x, 2 * n)
    acov = np.fft.irfft(f * np.conj(f))[:n] / n
    rho = acov / var

    if max_lag is None:
        max_lag = n - 1
    s = 0.0
    for lag in range(1, min(max_lag, n - 1) + 1):
        if rho[lag] <= 0:
            break
        s += rho[lag]
    return float(n / (1.0 + 2.0 * s))


def convergence_report(draws: PosteriorDraws, x_index: Sequence[int] = ()) -> pd.DataFrame:
    """
    R-hat and pooled effective sample size for the precisions and chosen x[i].
    """
    series = {"tau_obs": draws.tau_obs, "tau_add": draws.tau_add}
    for i in x_index:
        series[f"x[{i}]"] = draws.x[:, :, i]

    rows = {}
    for name, values in series.items():
        rows[name] = {
            "rhat": gelman_rubin(values),
            "ess": float(sum(effective_sample_size(c) for c in values)),
        }
    return pd.DataFrame.from_dict(rows, orient="index")
