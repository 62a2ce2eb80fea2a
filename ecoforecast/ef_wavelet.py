"""Morlet wavelet power spectrum of a flux (or model error) time series."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np
import pywt


@dataclass
class WaveletSpectrum:
    power: np.ndarray         # (n_scales, T)
    scales: np.ndarray
    periods: np.ndarray       # same time unit as dt
    global_power: np.ndarray  # time-mean power per scale
    coi: np.ndarray           # (T,) cone of influence as period


def cone_of_influence(n: int, dt: float = 1.0, omega0: float = 6.0) -> np.ndarray:
    """Cone of influence (COI) as equivalent period vs time index for Morlet."""
    t = np.arange(n, dtype=float)
    dist = np.minimum(t, (n - 1) - t)
    fourier_factor = (4.0 * np.pi) / (omega0 + np.sqrt(2.0 + omega0 ** 2))
    return fourier_factor * dist * dt / np.sqrt(2.0)


def default_scales(n: int, n_scales: int = 100) -> np.ndarray:
    """Log-spaced integer scales from 1 up to a quarter of the record."""
    top = max(2.0, n / 4.0)
    return np.unique(np.logspace(0.0, np.log10(top), n_scales).astype(int))


def wavelet_power(
    x,
    dt: float = 1.0,
    scales: Optional[np.ndarray] = None,
    wavelet: str = "morl",
) -> WaveletSpectrum:
    """
    Continuous wavelet transform power |W|^2.

    The series must be complete: gaps are not filled here (use the gap-filled
    NEE column), and any NaN raises ValueError.

    Parameters
    ----------
    x : array_like, shape (T,)
        Series; it is centered before the transform.
    dt : float
        Sampling interval (e.g. 1/48 day for half-hourly data).
    scales : array_like, optional
        Wavelet scales; see default_scales.
    wavelet : str
        PyWavelets continuous wavelet name.
    """
    x = np.asarray(x, dtype=float).reshape(-1)
    if x.size < 4:
        raise ValueError(f"Series too short for a wavelet transform (T={x.size})")
    if not np.all(np.isfinite(x)):
        raise ValueError(
            f"Series has {int(np.sum(~np.isfinite(x)))} absent values; "
            "use a gap-filled series for the wavelet spectrum."
        )
    if scales is None:
        scales = default_scales(x.size)
    scales = np.asarray(scales, dtype=float)

    coef, _ = pywt.cwt(x - x.mean(), scales, wavelet, sampling_period=dt, method="fft")
    power = np.abs(coef) ** 2

    freqs = pywt.scale2frequency(wavelet, scales) / dt
    periods = 1.0 / freqs

    return WaveletSpectrum(
        power=power,
        scales=scales,
        periods=periods,
        global_power=power.mean(axis=1),
        coi=cone_of_influence(x.size, dt=dt),
    )
