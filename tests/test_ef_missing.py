import numpy as np
import pytest

from ecoforecast.ef_missing import MISSING_PATTERNS, apply_pattern, drop_trailing, thin_observations


def test_thin_observations_keeps_every_nth():
    y = np.arange(10.0)
    out = thin_observations(y, every=4)
    np.testing.assert_array_equal(np.flatnonzero(np.isfinite(out)), [0, 4, 8])
    assert out[4] == 4.0
    assert np.isfinite(y).all()

    shifted = thin_observations(y, every=4, offset=2)
    np.testing.assert_array_equal(np.flatnonzero(np.isfinite(shifted)), [2, 6])


def test_drop_trailing():
    y = np.arange(6.0)
    out = drop_trailing(y, n=2)
    assert np.isnan(out[-2:]).all()
    np.testing.assert_array_equal(out[:4], y[:4])
    np.testing.assert_array_equal(drop_trailing(y, n=0), y)
    with pytest.raises(ValueError):
        drop_trailing(y, n=7)


def test_patterns_registry():
    assert set(MISSING_PATTERNS) == {"original", "monthly", "forecast"}
    y = np.arange(100.0) + 1.0
    np.testing.assert_array_equal(apply_pattern("original", y), y)
    assert np.isnan(apply_pattern("forecast", y)[-40:]).all()
    assert np.isfinite(apply_pattern("monthly", y)).sum() == 25
    with pytest.raises(KeyError):
        apply_pattern("weekly", y)
