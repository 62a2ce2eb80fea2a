import numpy as np
import pandas as pd
import pytest

from ecoforecast.ef_data import SENTINEL, FluxRecord
from ecoforecast.ef_io import (
    load_ensemble_or_fail,
    load_flux_years,
    read_flux_csv,
    read_series_csv,
    write_flux_csv,
)


def _record(year):
    return FluxRecord(
        year=year,
        doy=np.array([1, 1, 1]),
        hour=np.array([0.0, 0.5, 1.0]),
        nee=np.array([1.5, np.nan, -2.0]),
        nee_fill=np.array([1.5, 0.2, -2.0]),
        qc=np.array([0, 2, 0]),
        drivers={"PAR": np.array([0.0, 5.0, np.nan])},
    )


def test_absent_values_are_written_as_sentinel(tmp_path):
    path = write_flux_csv(_record(2003), tmp_path / "flux_2003.csv")
    raw = pd.read_csv(path)
    assert list(raw.columns) == ["doy", "hour", "NEE", "NEE_fill", "qc", "PAR"]
    assert raw["NEE"].iloc[1] == SENTINEL
    assert raw["PAR"].iloc[2] == SENTINEL

    rec = read_flux_csv(path, 2003, drivers=["PAR"])
    assert np.isnan(rec.nee[1]) and np.isnan(rec.drivers["PAR"][2])
    assert rec.nee_fill[1] == pytest.approx(0.2)


def test_load_flux_years(tmp_path):
    for y in (2001, 2002):
        write_flux_csv(_record(y), tmp_path / f"flux_{y}.csv")
    records = load_flux_years(tmp_path, [2001, 2002], drivers=["PAR"])
    assert [r.year for r in records] == [2001, 2002]
    with pytest.raises(FileNotFoundError):
        load_flux_years(tmp_path, [2005])


def test_load_ensemble_or_fail(tmp_path, rng):
    missing = tmp_path / "nope.npz"
    with pytest.raises(FileNotFoundError):
        load_ensemble_or_fail(missing)

    path = tmp_path / "ensemble.npz"
    w = rng.uniform(size=(5, 4))
    np.savez(path, ensemble=np.zeros((5, 4, 12)), pf=np.ones((5, 4, 12)), pf_weights=w)

    ens = load_ensemble_or_fail(path)
    assert ens.weights is None
    pf = load_ensemble_or_fail(path, key="pf")
    np.testing.assert_allclose(pf.weights, w / w.sum(axis=1, keepdims=True))
    with pytest.raises(KeyError):
        load_ensemble_or_fail(path, key="enkf")


def test_read_series_csv_orders_by_date(tmp_path):
    path = tmp_path / "series.csv"
    pd.DataFrame({"date": ["2004-01-15", "2004-01-01", "2004-01-08"], "value": [3.0, 1.0, 2.0]}).to_csv(
        path, index=False
    )
    dates, values = read_series_csv(path)
    np.testing.assert_array_equal(values, [1.0, 2.0, 3.0])
    assert dates[0] == np.datetime64("2004-01-01")
    with pytest.raises(KeyError):
        read_series_csv(path, value_column="flu")
    with pytest.raises(FileNotFoundError):
        read_series_csv(tmp_path / "other.csv")
