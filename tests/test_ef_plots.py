import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import pytest

from ecoforecast import ef_plots
from ecoforecast.ef_state_space import PosteriorSummary
from ecoforecast.ef_wavelet import wavelet_power


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close("all")


def test_series_plots_return_axes(rng):
    t = np.arange(50)
    y = rng.normal(size=50)
    assert ef_plots.plot_tme(t, true=y, measured=y + 0.1) is not None

    q = np.sort(rng.normal(size=(3, 50)), axis=0)
    mask = np.ones(50, dtype=bool)
    mask[::3] = False
    ax = ef_plots.plot_ensemble_band(t, q, obs=y, mask=mask)
    assert len(ax.get_lines()) == 2

    ax = ef_plots.plot_scatter_1to1(y + rng.normal(size=50), y)
    assert ax.get_xlabel() == "Predicted"


def test_taylor_and_diurnal_plots():
    stats = {
        "ensemble": {"sd_ratio": 0.8, "correlation": 0.9},
        "climatology": {"sd_ratio": np.nan, "correlation": 0.5},
    }
    ax = ef_plots.plot_taylor_diagram(stats)
    assert ax.name == "polar"

    hours = pd.Index(np.arange(0, 24, 0.5), name="hour")
    cycles = {"obs": pd.Series(np.sin(hours.to_numpy()), index=hours)}
    assert ef_plots.plot_diurnal_cycles(cycles).get_xlabel() == "Hour of day"


def test_wavelet_plot():
    x = np.sin(2.0 * np.pi * np.arange(256) / 16.0)
    ax = ef_plots.plot_wavelet(wavelet_power(x), title="test")
    assert ax.get_title() == "test"


def test_posterior_plots(rng):
    t = np.arange(20)
    s = PosteriorSummary(lower=np.full(20, 1.0), median=np.full(20, 2.0), upper=np.full(20, 4.0))
    ax = ef_plots.plot_credible_interval(t, s, obs=np.full(20, 2.5))
    assert ax.get_yscale() == "log"

    ax = ef_plots.plot_traces(rng.normal(size=(2, 100)), label="tau_obs", burn_in=20)
    assert ax.get_ylabel() == "tau_obs"
