"""
Random-walk state-space model fitted with a Gibbs sampler.

Model (on log-transformed observations y):

    y[i]  ~ N(x[i], 1/tau_obs)          for every observed (non-NaN) y[i]
    x[0]  ~ N(x_ic, 1/tau_ic)
    x[i]  ~ N(x[i-1], 1/tau_add)        i > 0
    tau_obs ~ Gamma(a_obs, r_obs)       (shape, rate)
    tau_add ~ Gamma(a_add, r_add)

Missing y[i] contribute no likelihood term; x[i] is then informed only by
its neighbours through the random walk, which is what fills gaps and
produces forecasts.

Gibbs sweep:
    x[i] | .  ~ N(m_i, 1/p_i)
        p_i = tau_obs*[y_i observed] + tau_add*(number of neighbours) + tau_ic*[i=0]
        m_i = (tau_obs*y_i + tau_add*(x[i-1] + x[i+1]) + tau_ic*x_ic) / p_i
    tau_obs | . ~ Gamma(a_obs + n_obs/2, r_obs + sum((y - x)^2)/2)
    tau_add | . ~ Gamma(a_add + (n-1)/2, r_add + sum(diff(x)^2)/2)

Sites of equal parity are conditionally independent given the others, so the
x sweep is done in two vectorized half-sweeps (even, then odd indices).
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd
from scipy.linalg import cho_solve_banded, cholesky_banded, solve_banded

from .ef_missing import apply_pattern
from .ef_stats import InvalidInput

STATE_UPDATES = ("sweep", "joint")


# -------------------------------------------------------------------
# Model description
# -------------------------------------------------------------------
@dataclass(frozen=True)
class RandomWalkModel:
    """Priors of the random-walk model (precisions use shape/rate Gammas)."""

    x_ic: float = float(np.log(1000.0))
    tau_ic: float = 100.0
    a_obs: float = 1.0
    r_obs: float = 1.0
    a_add: float = 1.0
    r_add: float = 1.0

    def __post_init__(self):
        for name in ("tau_ic", "a_obs", "r_obs", "a_add", "r_add"):
            if not getattr(self, name) > 0:
                raise ValueError(f"RandomWalkModel.{name} must be > 0, got {getattr(self, name)}")

    @classmethod
    def centered_on(cls, y_log, tau_ic: float = 1.0, **priors) -> "RandomWalkModel":
        """Model whose initial-state prior sits on the first observed value."""
        y_log = np.asarray(y_log, dtype=float).reshape(-1)
        finite = np.flatnonzero(np.isfinite(y_log))
        if finite.size == 0:
            raise ValueError("Series has no observed values")
        return cls(x_ic=float(y_log[finite[0]]), tau_ic=tau_ic, **priors)


@dataclass
class InitialValues:
    tau_obs: float
    tau_add: float
    x: Optional[np.ndarray] = None


@dataclass(frozen=True)
class GibbsSettings:
    n_iter: int = 10000
    burn_in: int = 0
    thin: int = 1
    state_update: str = "sweep"
    seed: Optional[int] = None

    def __post_init__(self):
        if self.n_iter < 1:
            raise ValueError(f"n_iter must be >= 1, got {self.n_iter}")
        if self.burn_in < 0:
            raise ValueError(f"burn_in must be >= 0, got {self.burn_in}")
        if self.thin < 1:
            raise ValueError(f"thin must be >= 1, got {self.thin}")
        if self.state_update not in STATE_UPDATES:
            raise ValueError(f"Unknown state_update '{self.state_update}'. Use one of {STATE_UPDATES}")


# -------------------------------------------------------------------
# Posterior draws
# -------------------------------------------------------------------
@dataclass
class Chain:
    x: np.ndarray        # (n_keep, n)
    tau_obs: np.ndarray  # (n_keep,)
    tau_add: np.ndarray  # (n_keep,)
    final: InitialValues


@dataclass
class PosteriorDraws:
    x: np.ndarray        # (n_chain, n_keep, n)
    tau_obs: np.ndarray  # (n_chain, n_keep)
    tau_add: np.ndarray  # (n_chain, n_keep)
    final: List[InitialValues] = field(default_factory=list)

    @classmethod
    def from_chains(cls, chains: Sequence[Chain]) -> "PosteriorDraws":
        return cls(
            x=np.stack([c.x for c in chains]),
            tau_obs=np.stack([c.tau_obs for c in chains]),
            tau_add=np.stack([c.tau_add for c in chains]),
            final=[c.final for c in chains],
        )

    @property
    def n_chain(self) -> int:
        return self.x.shape[0]

    @property
    def n_keep(self) -> int:
        return self.x.shape[1]

    @property
    def sd_obs(self) -> np.ndarray:
        return 1.0 / np.sqrt(self.tau_obs)

    @property
    def sd_add(self) -> np.ndarray:
        return 1.0 / np.sqrt(self.tau_add)

    def pooled_x(self) -> np.ndarray:
        """All chains stacked, shape (n_chain * n_keep, n)."""
        return self.x.reshape(-1, self.x.shape[-1])


@dataclass
class PosteriorSummary:
    lower: np.ndarray
    median: np.ndarray
    upper: np.ndarray
    q: tuple = (0.025, 0.5, 0.975)

    @property
    def width(self) -> np.ndarray:
        return self.upper - self.lower

    def to_frame(self, index=None) -> pd.DataFrame:
        return pd.DataFrame(
            {"lower": self.lower, "median": self.median, "upper": self.upper},
            index=index,
        )


# -------------------------------------------------------------------
# Initial values
# -------------------------------------------------------------------
def _fill_gaps(y_log: np.ndarray) -> np.ndarray:
    """Linear interpolation over NaNs, flat beyond the observed ends."""
    idx = np.arange(y_log.size)
    ok = np.isfinite(y_log)
    if not ok.any():
        raise ValueError("Series has no observed values")
    return np.interp(idx, idx[ok], y_log[ok])


def make_initial_values(
    y_log,
    n_chains: int,
    rng: Optional[np.random.Generator] = None,
    min_var: float = 1e-6,
) -> List[InitialValues]:
    """
    Dispersed starting precisions, one set per chain.

    Each chain resamples the observed values with replacement (y*) and starts
    from tau_add = 1/var(diff(y*)), tau_obs = 5/var(y*). Variances are floored
    at `min_var` so a constant series still gives finite precisions.
    """
    if n_chains < 1:
        raise ValueError(f"n_chains must be >= 1, got {n_chains}")
    if rng is None:
        rng = np.random.default_rng()
    y_log = np.asarray(y_log, dtype=float).reshape(-1)
    obs = y_log[np.isfinite(y_log)]
    if obs.size < 2:
        raise ValueError("Need at least two observed values to build initial values")

    def floored_var(a):
        v = float(np.var(a, ddof=1)) if a.size > 1 else 0.0
        return v if v > min_var else min_var

    inits = []
    for _ in range(n_chains):
        ys = rng.choice(obs, size=obs.size, replace=True)
        inits.append(
            InitialValues(tau_obs=5.0 / floored_var(ys), tau_add=1.0 / floored_var(np.diff(ys)))
        )
    return inits


# -------------------------------------------------------------------
# Full conditionals
# -------------------------------------------------------------------
def _state_precision(obs_w, tau_obs, tau_add, model: RandomWalkModel):
    n = obs_w.size
    n_nb = np.full(n, 2.0)
    n_nb[0] = n_nb[-1] = 1.0
    prec = tau_obs * obs_w + tau_add * n_nb
    prec[0] += model.tau_ic
    return prec


def _state_rhs(obs_w, y_filled, tau_obs, model: RandomWalkModel):
    b = tau_obs * obs_w * y_filled
    b[0] += model.tau_ic * model.x_ic
    return b


def _sweep_states(x, prec, b, tau_add, rng):
    """One single-site Gibbs sweep over x, even sites first then odd."""
    n = x.size
    for start in (0, 1):
        idx = np.arange(start, n, 2)
        xp = np.concatenate(([0.0], x, [0.0]))
        nb = xp[idx] + xp[idx + 2]
        mean = (b[idx] + tau_add * nb) / prec[idx]
        x[idx] = mean + rng.standard_normal(idx.size) / np.sqrt(prec[idx])
    return x


def _joint_states(prec, b, tau_add, rng):
    """Draw the whole sequence from its tridiagonal Gaussian conditional."""
    n = prec.size
    ab = np.zeros((2, n))
    ab[0, 1:] = -tau_add
    ab[1, :] = prec
    cb = cholesky_banded(ab, lower=False)
    mean = cho_solve_banded((cb, False), b)
    return mean + solve_banded((0, 1), cb, rng.standard_normal(n))


def gibbs_sample(
    y_log,
    model: RandomWalkModel,
    init: InitialValues,
    settings: GibbsSettings,
    rng: Optional[np.random.Generator] = None,
) -> Chain:
    """
    Run one Gibbs chain.

    Parameters
    ----------
    y_log : array_like, shape (n,)
        Log-scale observations, NaN where absent.
    model : RandomWalkModel
    init : InitialValues
        Starting precisions; x defaults to the interpolated observations.
    settings : GibbsSettings
    rng : numpy Generator, optional
        Defaults to default_rng(settings.seed).

    Returns
    -------
    Chain
        Draws after burn-in and thinning plus the final state of the chain.
    """
    y = np.asarray(y_log, dtype=float).reshape(-1)
    n = y.size
    if n < 2:
        raise ValueError(f"Series needs at least two time steps, got {n}")
    if rng is None:
        rng = np.random.default_rng(settings.seed)

    obs = np.isfinite(y)
    n_obs = int(obs.sum())
    obs_w = obs.astype(float)
    # absent y get zero weight, the fill value never enters the posterior
    y_filled = np.where(obs, y, 0.0)

    if init.x is None:
        x = _fill_gaps(y)
    else:
        x = np.array(init.x, dtype=float, copy=True).reshape(-1)
        if x.size != n:
            raise InvalidInput(f"Initial x has length {x.size}, series has {n}")
    tau_obs = float(init.tau_obs)
    tau_add = float(init.tau_add)
    if not (tau_obs > 0 and tau_add > 0 and np.isfinite(tau_obs) and np.isfinite(tau_add)):
        raise ValueError(f"Initial precisions must be finite and > 0, got {tau_obs}, {tau_add}")

    n_total = settings.burn_in + settings.n_iter
    n_keep = len(range(settings.burn_in, n_total, settings.thin))
    x_out = np.empty((n_keep, n))
    tau_obs_out = np.empty(n_keep)
    tau_add_out = np.empty(n_keep)

    shape_obs = model.a_obs + 0.5 * n_obs
    shape_add = model.a_add + 0.5 * (n - 1)

    k = 0
    for it in range(n_total):
        prec = _state_precision(obs_w, tau_obs, tau_add, model)
        b = _state_rhs(obs_w, y_filled, tau_obs, model)
        if settings.state_update == "sweep":
            x = _sweep_states(x, prec, b, tau_add, rng)
        else:
            x = _joint_states(prec, b, tau_add, rng)

        resid = y[obs] - x[obs]
        tau_obs = rng.gamma(shape_obs, 1.0 / (model.r_obs + 0.5 * float(resid @ resid)))
        d = np.diff(x)
        tau_add = rng.gamma(shape_add, 1.0 / (model.r_add + 0.5 * float(d @ d)))

        if it >= settings.burn_in and (it - settings.burn_in) % settings.thin == 0:
            x_out[k] = x
            tau_obs_out[k] = tau_obs
            tau_add_out[k] = tau_add
            k += 1

    final = InitialValues(tau_obs=float(tau_obs), tau_add=float(tau_add), x=x.copy())
    return Chain(x=x_out, tau_obs=tau_obs_out, tau_add=tau_add_out, final=final)


def _seed_sequence(seed) -> np.random.SeedSequence:
    if isinstance(seed, np.random.SeedSequence):
        return seed
    return np.random.SeedSequence(seed)


def run_chains(
    y_log,
    model: RandomWalkModel,
    inits: Sequence[InitialValues],
    settings: GibbsSettings,
    seed=None,
) -> PosteriorDraws:
    """
    Run one independent chain per initial value set.

    Each chain gets its own generator spawned from `seed` (or settings.seed).
    """
    if len(inits) == 0:
        raise ValueError("At least one set of initial values is required")
    ss = _seed_sequence(settings.seed if seed is None else seed)
    chains = [
        gibbs_sample(y_log, model, init, settings, rng=np.random.default_rng(child))
        for init, child in zip(inits, ss.spawn(len(inits)))
    ]
    return PosteriorDraws.from_chains(chains)


def continue_chains(
    y_log,
    model: RandomWalkModel,
    draws: PosteriorDraws,
    settings: GibbsSettings,
    seed=None,
) -> PosteriorDraws:
    """Keep sampling from where each chain of `draws` stopped."""
    return run_chains(y_log, model, draws.final, replace(settings, burn_in=0), seed=seed)


# -------------------------------------------------------------------
# Summaries
# -------------------------------------------------------------------
def summarize(
    draws: PosteriorDraws,
    q: Sequence[float] = (0.025, 0.5, 0.975),
    back_transform: Optional[Callable[[np.ndarray], np.ndarray]] = np.exp,
) -> PosteriorSummary:
    """
    Pointwise credible interval of the latent state.

    Quantiles are taken on the log scale over all chains and mapped back with
    `back_transform` (monotone, so quantiles map to quantiles).
    """
    if len(q) != 3:
        raise ValueError(f"Expected (lower, median, upper) quantiles, got {q}")
    lo, med, hi = np.quantile(draws.pooled_x(), q, axis=0)
    if back_transform is not None:
        lo, med, hi = back_transform(lo), back_transform(med), back_transform(hi)
    return PosteriorSummary(lower=lo, median=med, upper=hi, q=tuple(q))


def parameter_summary(draws: PosteriorDraws, q: Sequence[float] = (0.025, 0.5, 0.975)) -> pd.DataFrame:
    """Posterior mean and quantiles of the two standard deviations."""
    rows = {}
    for name, values in (("sd_obs", draws.sd_obs), ("sd_add", draws.sd_add)):
        flat = values.reshape(-1)
        row = {"mean": float(flat.mean())}
        row.update({f"{100 * qi:g}%": float(v) for qi, v in zip(q, np.quantile(flat, q))})
        rows[name] = row
    return pd.DataFrame.from_dict(rows, orient="index")


def interval_coverage(summary: PosteriorSummary, values) -> float:
    """Fraction of observed values inside [lower, upper]."""
    values = np.asarray(values, dtype=float).reshape(-1)
    if values.size != summary.lower.size:
        raise InvalidInput(f"values has length {values.size}, summary has {summary.lower.size}")
    ok = np.isfinite(values)
    if not ok.any():
        return np.nan
    inside = (values[ok] >= summary.lower[ok]) & (values[ok] <= summary.upper[ok])
    return float(inside.mean())


# -------------------------------------------------------------------
# End-to-end fits
# -------------------------------------------------------------------
@dataclass
class StateSpaceFit:
    values: np.ndarray
    y_log: np.ndarray
    model: RandomWalkModel
    inits: List[InitialValues]
    burn: Optional[PosteriorDraws]
    draws: PosteriorDraws
    summary: PosteriorSummary


def log_series(values) -> np.ndarray:
    """log of a strictly positive series; NaN stays NaN."""
    values = np.asarray(values, dtype=float).reshape(-1)
    ok = np.isfinite(values)
    if np.any(values[ok] <= 0):
        raise ValueError("Series must be strictly positive to be log-transformed")
    out = np.full(values.shape, np.nan)
    out[ok] = np.log(values[ok])
    return out


def fit_random_walk(
    values,
    model: Optional[RandomWalkModel] = None,
    n_chains: int = 2,
    burn_in: int = 1000,
    n_iter: int = 10000,
    thin: int = 1,
    inits: Optional[Sequence[InitialValues]] = None,
    state_update: str = "sweep",
    seed=None,
) -> StateSpaceFit:
    """
    Fit the random-walk model to a positive series.

    The series is log-transformed, `burn_in` iterations are run and kept in
    `fit.burn` for convergence checks, then `n_iter` production iterations
    continue from the end of the burn-in. The summary is back-transformed to
    the original scale.
    """
    values = np.asarray(values, dtype=float).reshape(-1)
    y_log = log_series(values)
    if model is None:
        model = RandomWalkModel.centered_on(y_log)

    init_ss, burn_ss, prod_ss = _seed_sequence(seed).spawn(3)
    if inits is None:
        inits = make_initial_values(y_log, n_chains, rng=np.random.default_rng(init_ss))
    inits = list(inits)

    burn = None
    start = inits
    if burn_in > 0:
        burn = run_chains(y_log, model, inits, GibbsSettings(n_iter=burn_in, state_update=state_update), seed=burn_ss)
        start = burn.final

    draws = run_chains(
        y_log,
        model,
        start,
        GibbsSettings(n_iter=n_iter, thin=thin, state_update=state_update),
        seed=prod_ss,
    )
    return StateSpaceFit(
        values=values,
        y_log=y_log,
        model=model,
        inits=inits,
        burn=burn,
        draws=draws,
        summary=summarize(draws),
    )


@dataclass
class MissingDataResult:
    values: np.ndarray
    summary: PosteriorSummary
    parameters: pd.DataFrame
    inits: List[InitialValues]


def run_missing_data_experiments(
    values,
    patterns: Sequence[str] = ("original", "monthly", "forecast"),
    pattern_kwargs: Optional[Mapping[str, dict]] = None,
    model: Optional[RandomWalkModel] = None,
    inits: Optional[Sequence[InitialValues]] = None,
    share_inits: bool = True,
    n_chains: int = 2,
    burn_in: int = 1000,
    n_iter: int = 10000,
    state_update: str = "sweep",
    seed=None,
) -> Dict[str, MissingDataResult]:
    """
    Refit the same model under several missing-data patterns.

    Initial values: explicit `inits` are used for every pattern. Otherwise,
    with share_inits=True one set is derived from the complete series and
    reused by all patterns; with share_inits=False each pattern derives its
    own from the values it keeps.

    Only summaries are retained; posterior draws are dropped after each fit.
    """
    values = np.asarray(values, dtype=float).reshape(-1)
    pattern_kwargs = dict(pattern_kwargs or {})
    master = _seed_sequence(seed)
    init_ss, *fit_ss = master.spawn(len(patterns) + 1)

    if inits is None and share_inits:
        inits = make_initial_values(log_series(values), n_chains, rng=np.random.default_rng(init_ss))

    results = {}
    for name, ss in zip(patterns, fit_ss):
        masked = apply_pattern(name, values, **pattern_kwargs.get(name, {}))
        fit = fit_random_walk(
            masked,
            model=model,
            n_chains=n_chains,
            burn_in=burn_in,
            n_iter=n_iter,
            inits=inits,
            state_update=state_update,
            seed=ss,
        )
        results[name] = MissingDataResult(
            values=masked,
            summary=fit.summary,
            parameters=parameter_summary(fit.draws),
            inits=fit.inits,
        )
    return results
