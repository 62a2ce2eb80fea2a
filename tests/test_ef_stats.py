import numpy as np
import pytest

from ecoforecast.ef_stats import (
    InvalidInput,
    diurnal_cycle,
    error_statistics,
    error_table,
    taylor_statistics,
)


@pytest.mark.parametrize("seed", [0, 1, 2, 3])
def test_rmse_bounds_abs_bias(seed):
    rng = np.random.default_rng(seed)
    obs = rng.normal(0.0, 3.0, 200)
    pred = obs + rng.normal(rng.normal(), 1.0, 200)
    s = error_statistics(pred, obs)
    assert s.rmse >= abs(s.bias)
    assert s.n == 200


def test_rmse_zero_iff_identical(rng):
    obs = rng.normal(size=50)
    assert error_statistics(obs.copy(), obs).rmse == 0.0

    pred = obs.copy()
    pred[17] += 1e-6
    assert error_statistics(pred, obs).rmse > 0.0


def test_correlation_invariant_under_positive_affine(rng):
    obs = rng.normal(size=100)
    pred = 0.7 * obs + rng.normal(0.0, 0.5, 100)
    r = error_statistics(pred, obs).correlation

    assert error_statistics(3.0 * pred + 10.0, obs).correlation == pytest.approx(r, abs=1e-12)
    assert error_statistics(pred, 0.2 * obs - 4.0).correlation == pytest.approx(r, abs=1e-12)


def test_slope_regresses_obs_on_pred():
    pred = np.linspace(-2.0, 5.0, 30)
    obs = 2.0 * pred + 1.0
    s = error_statistics(pred, obs)
    assert s.slope == pytest.approx(2.0)
    assert s.correlation == pytest.approx(1.0)
    assert s.bias == pytest.approx(np.mean(pred - obs))


def test_length_mismatch_is_invalid_input():
    with pytest.raises(InvalidInput):
        error_statistics([1.0, 2.0, 3.0], [1.0, 2.0])
    # InvalidInput is also a ValueError
    with pytest.raises(ValueError):
        error_statistics([1.0], [1.0, 2.0])


def test_absent_values_propagate():
    s = error_statistics([1.0, np.nan, 3.0], [1.0, 2.0, 2.0])
    assert np.isnan(s.rmse)
    assert np.isnan(s.bias)


def test_constant_prediction_has_undefined_slope():
    s = error_statistics(np.ones(10), np.arange(10.0))
    assert np.isnan(s.slope)
    assert np.isnan(s.correlation)
    assert np.isfinite(s.rmse)


def test_error_table_masks_and_counts(rng):
    obs = rng.normal(size=100)
    mask = np.ones(100, dtype=bool)
    mask[:10] = False
    clim = obs + 0.1
    clim[50:60] = np.nan

    table = error_table({"ensemble": obs + 1.0, "climatology": clim}, obs, mask)

    assert list(table.index) == ["ensemble", "climatology"]
    assert list(table.columns) == ["rmse", "bias", "correlation", "slope", "n"]
    assert table.loc["ensemble", "n"] == 90
    assert table.loc["climatology", "n"] == 80
    assert table.loc["ensemble", "bias"] == pytest.approx(1.0)
    assert table.loc["climatology", "rmse"] == pytest.approx(0.1)


def test_error_table_rejects_misaligned_inputs():
    with pytest.raises(InvalidInput):
        error_table({"a": np.zeros(5)}, np.zeros(6))
    with pytest.raises(InvalidInput):
        error_table({"a": np.zeros(5)}, np.zeros(5), mask=np.ones(4, dtype=bool))


def test_taylor_statistics_reference_point(rng):
    obs = rng.normal(size=64)
    ts = taylor_statistics(obs, obs)
    assert ts["sd_ratio"] == pytest.approx(1.0)
    assert ts["correlation"] == pytest.approx(1.0)
    assert ts["crmsd"] == pytest.approx(0.0, abs=1e-12)

    ts2 = taylor_statistics(2.0 * obs, obs)
    assert ts2["sd_ratio"] == pytest.approx(2.0)
    assert ts2["crmsd"] == pytest.approx(1.0)


def test_diurnal_cycle_slots_and_absent_slots():
    n_days = 3
    hour = np.tile(np.arange(48) * 0.5, n_days)
    values = np.tile(np.arange(48, dtype=float), n_days)
    mask = np.ones(hour.size, dtype=bool)
    mask[hour == 12.0] = False

    cyc = diurnal_cycle(values, hour, mask=mask)

    assert len(cyc) == 48
    assert cyc.loc[0.0] == 0.0
    assert cyc.loc[23.5] == 47.0
    assert np.isnan(cyc.loc[12.0])
