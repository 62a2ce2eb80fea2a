import numpy as np
import pytest

from ecoforecast.ef_missing import drop_trailing
from ecoforecast.ef_state_space import (
    GibbsSettings,
    InitialValues,
    RandomWalkModel,
    continue_chains,
    fit_random_walk,
    gibbs_sample,
    interval_coverage,
    log_series,
    make_initial_values,
    parameter_summary,
    run_chains,
    run_missing_data_experiments,
    summarize,
)
from ecoforecast.ef_stats import InvalidInput


def _fixed_precision_model(tau_obs, tau_add, x_ic=0.0, tau_ic=1.0, strength=1e6):
    """Gamma priors so concentrated that the precisions are effectively known."""
    return RandomWalkModel(
        x_ic=x_ic,
        tau_ic=tau_ic,
        a_obs=strength,
        r_obs=strength / tau_obs,
        a_add=strength,
        r_add=strength / tau_add,
    )


def _posterior_moments(y, tau_obs, tau_add, x_ic, tau_ic):
    """Exact Gaussian posterior of x for known precisions (dense algebra)."""
    n = y.size
    obs = np.isfinite(y)
    Q = np.zeros((n, n))
    b = np.zeros(n)
    Q[np.arange(n), np.arange(n)] += tau_obs * obs
    b[obs] += tau_obs * y[obs]
    for i in range(n - 1):
        Q[i, i] += tau_add
        Q[i + 1, i + 1] += tau_add
        Q[i, i + 1] -= tau_add
        Q[i + 1, i] -= tau_add
    Q[0, 0] += tau_ic
    b[0] += tau_ic * x_ic
    cov = np.linalg.inv(Q)
    return cov @ b, np.sqrt(np.diag(cov))


def _random_walk(rng, n, step_sd=0.5, start=np.log(200.0)):
    return start + np.cumsum(rng.normal(0.0, step_sd, n))


# -------------------------------------------------------------------
# Model and settings
# -------------------------------------------------------------------
def test_model_rejects_non_positive_priors():
    with pytest.raises(ValueError):
        RandomWalkModel(tau_ic=0.0)
    with pytest.raises(ValueError):
        RandomWalkModel(r_add=-1.0)


def test_model_centered_on_first_observation():
    m = RandomWalkModel.centered_on([np.nan, 2.5, 3.0], tau_ic=4.0, a_obs=2.0)
    assert m.x_ic == 2.5
    assert m.tau_ic == 4.0
    assert m.a_obs == 2.0
    with pytest.raises(ValueError):
        RandomWalkModel.centered_on([np.nan, np.nan])


def test_settings_validation():
    with pytest.raises(ValueError):
        GibbsSettings(n_iter=0)
    with pytest.raises(ValueError):
        GibbsSettings(thin=0)
    with pytest.raises(ValueError):
        GibbsSettings(state_update="metropolis")


def test_log_series():
    out = log_series([1.0, np.nan, np.e])
    np.testing.assert_allclose(out[[0, 2]], [0.0, 1.0])
    assert np.isnan(out[1])
    with pytest.raises(ValueError):
        log_series([1.0, 0.0])


# -------------------------------------------------------------------
# Initial values
# -------------------------------------------------------------------
def test_initial_values_are_dispersed_and_positive(rng):
    y = _random_walk(rng, 50)
    y[10:15] = np.nan
    inits = make_initial_values(y, 3, rng=rng)
    assert len(inits) == 3
    assert all(i.tau_obs > 0 and i.tau_add > 0 for i in inits)
    assert len({i.tau_obs for i in inits}) == 3
    assert all(i.x is None for i in inits)


def test_initial_values_for_constant_series_are_finite(rng):
    inits = make_initial_values(np.full(20, 3.0), 2, rng=rng)
    assert all(np.isfinite(i.tau_obs) and np.isfinite(i.tau_add) for i in inits)


def test_initial_values_need_observations(rng):
    with pytest.raises(ValueError):
        make_initial_values([1.0, np.nan, np.nan], 2, rng=rng)


# -------------------------------------------------------------------
# Sampler mechanics
# -------------------------------------------------------------------
def test_draw_shapes_with_burn_in_and_thinning(rng):
    y = _random_walk(rng, 12)
    model = RandomWalkModel.centered_on(y)
    chain = gibbs_sample(
        y, model, InitialValues(1.0, 1.0), GibbsSettings(n_iter=19, burn_in=5, thin=3), rng=rng
    )
    assert chain.x.shape == (7, 12)
    assert chain.tau_obs.shape == chain.tau_add.shape == (7,)
    assert np.all(chain.tau_obs > 0) and np.all(chain.tau_add > 0)
    np.testing.assert_array_equal(chain.final.x, chain.x[-1])


def test_initial_state_length_is_checked(rng):
    y = _random_walk(rng, 12)
    with pytest.raises(InvalidInput):
        gibbs_sample(y, RandomWalkModel(), InitialValues(1.0, 1.0, x=np.zeros(5)), GibbsSettings(n_iter=2))
    with pytest.raises(ValueError):
        gibbs_sample(y, RandomWalkModel(), InitialValues(0.0, 1.0), GibbsSettings(n_iter=2))


def test_same_seed_same_draws(rng):
    y = _random_walk(rng, 15)
    model = RandomWalkModel.centered_on(y)
    inits = [InitialValues(1.0, 2.0), InitialValues(3.0, 0.5)]
    a = run_chains(y, model, inits, GibbsSettings(n_iter=30), seed=7)
    b = run_chains(y, model, inits, GibbsSettings(n_iter=30), seed=7)
    np.testing.assert_array_equal(a.x, b.x)
    assert a.x.shape == (2, 30, 15)
    # chains are independent streams
    assert not np.array_equal(a.x[0], a.x[1])


def test_continue_chains_starts_from_final_state(rng):
    y = _random_walk(rng, 15)
    model = RandomWalkModel.centered_on(y)
    first = run_chains(y, model, make_initial_values(y, 2, rng=rng), GibbsSettings(n_iter=10, burn_in=50), seed=1)
    more = continue_chains(y, model, first, GibbsSettings(n_iter=25, burn_in=50), seed=2)
    assert more.x.shape == (2, 25, 15)
    assert more.n_chain == 2 and more.n_keep == 25


@pytest.mark.parametrize("state_update", ["sweep", "joint"])
def test_states_match_exact_gaussian_posterior(state_update):
    y = np.array([0.3, 0.1, 0.6, np.nan, 1.2, 0.9, 1.4, 1.1])
    tau_obs, tau_add, x_ic, tau_ic = 4.0, 2.0, 0.0, 1.0
    model = _fixed_precision_model(tau_obs, tau_add, x_ic=x_ic, tau_ic=tau_ic)
    mean, sd = _posterior_moments(y, tau_obs, tau_add, x_ic, tau_ic)

    draws = run_chains(
        y,
        model,
        [InitialValues(tau_obs, tau_add), InitialValues(tau_obs, tau_add)],
        GibbsSettings(n_iter=6000, burn_in=200, state_update=state_update),
        seed=11,
    )
    x = draws.pooled_x()

    np.testing.assert_allclose(x.mean(axis=0), mean, atol=0.05)
    np.testing.assert_allclose(x.std(axis=0), sd, rtol=0.1)
    np.testing.assert_allclose(draws.tau_obs.mean(), tau_obs, rtol=1e-3)
    np.testing.assert_allclose(draws.tau_add.mean(), tau_add, rtol=1e-3)


def test_interval_widens_inside_gap_and_past_the_end():
    rng = np.random.default_rng(3)
    y = _random_walk(rng, 50, step_sd=0.3)
    y[10:21] = np.nan
    y[35:] = np.nan
    model = _fixed_precision_model(16.0, 4.0, x_ic=float(y[0]), tau_ic=1.0)

    draws = run_chains(
        y,
        model,
        [InitialValues(16.0, 4.0)],
        GibbsSettings(n_iter=20000, burn_in=100, state_update="joint"),
        seed=5,
    )
    width = summarize(draws, back_transform=None).width

    # gap: narrow at the observed edges, widest near the middle
    assert width[15] > width[11] > width[9]
    assert width[15] > width[19] > width[21]
    # forecast: grows with the horizon
    assert width[49] > width[44] > width[38] > width[34]


def test_constant_series_with_strong_priors_gives_tight_interval():
    values = np.full(30, 50.0)
    model = _fixed_precision_model(400.0, 400.0, x_ic=float(np.log(50.0)), tau_ic=100.0)
    fit = fit_random_walk(values, model=model, n_chains=1, burn_in=200, n_iter=2000, seed=4)

    s = fit.summary
    assert np.all(s.lower < 50.0) and np.all(s.upper > 50.0)
    np.testing.assert_allclose(s.median, 50.0, rtol=0.02)
    assert np.all(s.upper / s.lower < 1.3)


# -------------------------------------------------------------------
# End-to-end fits
# -------------------------------------------------------------------
def test_fit_random_walk_covers_observations():
    rng = np.random.default_rng(8)
    values = np.exp(_random_walk(rng, 60) + rng.normal(0.0, 0.05, 60))

    model = RandomWalkModel.centered_on(np.log(values), r_obs=0.01, r_add=0.01)
    fit = fit_random_walk(values, model=model, n_chains=2, burn_in=1000, n_iter=10000, seed=12)

    assert fit.burn.x.shape == (2, 1000, 60)
    assert fit.draws.x.shape == (2, 10000, 60)
    assert interval_coverage(fit.summary, values) >= 0.95
    assert np.all(fit.summary.lower <= fit.summary.median)
    assert np.all(fit.summary.median <= fit.summary.upper)


def test_forecast_interval_grows_past_last_observation():
    rng = np.random.default_rng(9)
    values = drop_trailing(np.exp(_random_walk(rng, 80, step_sd=0.2)), n=20)

    fit = fit_random_walk(values, n_chains=2, burn_in=500, n_iter=3000, state_update="joint", seed=3)
    width = summarize(fit.draws, back_transform=None).width

    assert width[-1] > width[-10] > width[-19] > width[59]


def test_summary_back_transform_is_exp_of_log_summary(rng):
    y = _random_walk(rng, 10)
    draws = run_chains(y, RandomWalkModel.centered_on(y), [InitialValues(5.0, 5.0)], GibbsSettings(n_iter=50), seed=0)
    log_s = summarize(draws, back_transform=None)
    exp_s = summarize(draws)
    np.testing.assert_allclose(exp_s.median, np.exp(log_s.median))
    np.testing.assert_allclose(exp_s.width, np.exp(log_s.upper) - np.exp(log_s.lower))
    assert list(exp_s.to_frame().columns) == ["lower", "median", "upper"]
    with pytest.raises(ValueError):
        summarize(draws, q=(0.5,))


def test_parameter_summary_table(rng):
    y = _random_walk(rng, 10)
    draws = run_chains(y, RandomWalkModel.centered_on(y), [InitialValues(5.0, 5.0)], GibbsSettings(n_iter=50), seed=0)
    table = parameter_summary(draws)
    assert list(table.index) == ["sd_obs", "sd_add"]
    assert list(table.columns) == ["mean", "2.5%", "50%", "97.5%"]
    assert (table.to_numpy() > 0).all()


def test_interval_coverage_ignores_absent_values():
    from ecoforecast.ef_state_space import PosteriorSummary

    s = PosteriorSummary(lower=np.zeros(4), median=np.ones(4), upper=np.full(4, 2.0))
    assert interval_coverage(s, [1.0, 3.0, np.nan, 0.5]) == pytest.approx(2.0 / 3.0)
    assert np.isnan(interval_coverage(s, [np.nan] * 4))
    with pytest.raises(InvalidInput):
        interval_coverage(s, [1.0])


# -------------------------------------------------------------------
# Missing-data experiments
# -------------------------------------------------------------------
@pytest.fixture
def weekly(rng):
    return np.exp(_random_walk(rng, 60, step_sd=0.2))


def _quick(values, **kw):
    return run_missing_data_experiments(values, n_chains=2, burn_in=10, n_iter=40, seed=21, **kw)


def test_experiments_apply_each_pattern(weekly):
    results = _quick(weekly, pattern_kwargs={"forecast": {"n": 10}})
    assert list(results) == ["original", "monthly", "forecast"]
    assert np.isfinite(results["original"].values).all()
    assert np.isfinite(results["monthly"].values).sum() == 15
    assert np.isnan(results["forecast"].values[-10:]).all()
    for res in results.values():
        assert res.summary.lower.shape == (60,)
        assert list(res.parameters.index) == ["sd_obs", "sd_add"]


def test_experiments_share_initial_values(weekly):
    results = _quick(weekly, share_inits=True)
    taus = {name: [i.tau_obs for i in res.inits] for name, res in results.items()}
    assert taus["original"] == taus["monthly"] == taus["forecast"]


def test_experiments_with_separate_initial_values(weekly):
    results = _quick(weekly, share_inits=False)
    assert [i.tau_obs for i in results["original"].inits] != [i.tau_obs for i in results["monthly"].inits]


def test_experiments_with_explicit_initial_values(weekly):
    given = [InitialValues(2.0, 3.0), InitialValues(4.0, 5.0)]
    results = _quick(weekly, inits=given, share_inits=False)
    for res in results.values():
        assert [(i.tau_obs, i.tau_add) for i in res.inits] == [(2.0, 3.0), (4.0, 5.0)]


def test_unknown_pattern(weekly):
    with pytest.raises(KeyError):
        _quick(weekly, patterns=("original", "yearly"))
