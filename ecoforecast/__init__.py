"""ecoforecast

Reusable code for the ecological forecasting exercises:

- Part 1: assessment of an ecosystem-model ensemble and a particle filter
  against flux-tower NEE (error statistics, climatology baseline, wavelet
  spectrum, residual diagnostics).
- Part 2: random-walk state-space model fitted by Gibbs sampling, and the
  effect of missing observations on the latent-state estimate.

Design intent:
- Keep reusable statistics, schemas and the sampler here.
- Keep Part_*/ scripts thin and focused on experiments and plots.

If you want this to be importable from anywhere, install the repo once:
    pip install -e .
"""

__version__ = "0.1.0"

# Public re-exports (keep this lightweight)
from .ef_stats import InvalidInput, ErrorStatistics, error_statistics, error_table  # noqa: F401
from .ef_data import EnsembleOutput, FluxRecord, quality_mask  # noqa: F401
from .ef_climatology import climatology, climatology_for  # noqa: F401
from .ef_state_space import (  # noqa: F401
    RandomWalkModel,
    GibbsSettings,
    fit_random_walk,
    run_missing_data_experiments,
)
