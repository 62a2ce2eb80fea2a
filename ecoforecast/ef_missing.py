"""
Missing-data patterns for the state-space experiments.

Patterns (all return a float copy with removed entries set to NaN):
    - original : unchanged
    - monthly  : keep every 4th value of a weekly series
    - forecast : remove the last 40 values
"""

from __future__ import annotations

from typing import Callable, Dict

import numpy as np


def thin_observations(y, every: int = 4, offset: int = 0) -> np.ndarray:
    """Keep y[offset::every]; everything else becomes NaN."""
    if every < 1:
        raise ValueError(f"every must be >= 1, got {every}")
    y = np.array(y, dtype=float, copy=True).reshape(-1)
    keep = np.zeros(y.size, dtype=bool)
    keep[offset::every] = True
    y[~keep] = np.nan
    return y


def drop_trailing(y, n: int = 40) -> np.ndarray:
    """Set the last n values to NaN."""
    y = np.array(y, dtype=float, copy=True).reshape(-1)
    if n < 0 or n > y.size:
        raise ValueError(f"Cannot drop {n} trailing values from a series of length {y.size}")
    if n > 0:
        y[-n:] = np.nan
    return y


def keep_all(y) -> np.ndarray:
    return np.array(y, dtype=float, copy=True).reshape(-1)


MISSING_PATTERNS: Dict[str, Callable[..., np.ndarray]] = {
    "original": keep_all,
    "monthly": thin_observations,
    "forecast": drop_trailing,
}


def apply_pattern(name: str, y, **kwargs) -> np.ndarray:
    if name not in MISSING_PATTERNS:
        raise KeyError(
            f"Unknown missing-data pattern '{name}'. Available: {sorted(MISSING_PATTERNS)}"
        )
    return MISSING_PATTERNS[name](y, **kwargs)
