"""Statistical primitives shared by the experiment manager and the bandit.

All functions are pure.  Randomness always comes from an injected
``numpy.random.Generator`` so callers can seed it in tests and leave it
unseeded in production.

The Beta sampler and the credible interval both use a *normal
approximation* to the Beta distribution.  The approximation is biased for
posteriors with fewer than roughly ten effective observations; callers must
not rely on tail accuracy in that regime.
"""

from __future__ import annotations

import math
from collections.abc import Mapping

import numpy as np
from scipy import stats as sp_stats

# Two-sided Student-t critical values, keyed by confidence percentage then df.
T_TABLE: dict[int, dict[int, float]] = {
    90: {1: 6.314, 5: 2.015, 10: 1.812, 30: 1.697, 100: 1.660},
    95: {1: 12.706, 5: 2.571, 10: 2.228, 30: 2.042, 100: 1.984},
    99: {1: 63.657, 5: 4.032, 10: 3.169, 30: 2.750, 100: 2.626},
}
T_TABLE_DF = (1, 5, 10, 30, 100)
DEFAULT_CRITICAL_VALUE = 1.96


# ======================================================================
# Beta moments and conjugate update
# ======================================================================

def beta_posterior(
    prior_alpha: float,
    prior_beta: float,
    successes: int,
    failures: int,
) -> tuple[float, float]:
    """Conjugate Beta update: ``(prior_alpha + successes, prior_beta + failures)``.

    Counts are non-negative, so the posterior parameters never drop below
    the prior's.
    """
    if successes < 0 or failures < 0:
        raise ValueError("successes and failures must be non-negative")
    return (prior_alpha + successes, prior_beta + failures)


def beta_mean(alpha: float, beta: float) -> float:
    """Mean of Beta(alpha, beta); 0.0 for a degenerate parameter pair."""
    total = alpha + beta
    if total <= 0:
        return 0.0
    return alpha / total


def beta_variance(alpha: float, beta: float) -> float:
    """Variance of Beta(alpha, beta): ``ab / ((a+b)^2 (a+b+1))``."""
    total = alpha + beta
    if total <= 0:
        return 0.0
    return (alpha * beta) / (total * total * (total + 1))


# ======================================================================
# Sampling
# ======================================================================

def _box_muller(rng: np.random.Generator, size: int | None) -> np.ndarray | float:
    # 1 - U keeps the log argument in (0, 1]
    u1 = 1.0 - rng.random(size)
    u2 = rng.random(size)
    return np.sqrt(-2.0 * np.log(u1)) * np.cos(2.0 * np.pi * u2)


def sample_beta(
    alpha: float,
    beta: float,
    rng: np.random.Generator,
    size: int | None = None,
) -> np.ndarray | float:
    """Approximate draw(s) from Beta(alpha, beta).

    When both parameters are at most 1 a uniform draw is returned.
    Otherwise the draw comes from a normal distribution with the Beta's
    mean and variance (Box-Muller), clamped to ``[0, 1]``.

    Parameters
    ----------
    alpha, beta : float
        Beta parameters.
    rng : np.random.Generator
        Source of uniform randomness.
    size : int | None
        Number of draws.  ``None`` returns a scalar float.
    """
    if alpha <= 1 and beta <= 1:
        draws = rng.random(size)
    else:
        mean = beta_mean(alpha, beta)
        std = math.sqrt(beta_variance(alpha, beta))
        draws = np.clip(mean + std * _box_muller(rng, size), 0.0, 1.0)
    if size is None:
        return float(draws)
    return np.asarray(draws)


def sample_normal(mean: float, variance: float, rng: np.random.Generator) -> float:
    """One Box-Muller draw from N(mean, variance); variance below 0 is treated as 0."""
    return float(mean + math.sqrt(max(variance, 0.0)) * _box_muller(rng, None))


# ======================================================================
# Quantiles and intervals
# ======================================================================

def normal_quantile(p: float) -> float:
    """Standard normal quantile, total over ``[0, 1]`` (infinite at the edges)."""
    if p <= 0:
        return -math.inf
    if p >= 1:
        return math.inf
    return float(sp_stats.norm.ppf(p))


def credible_interval(alpha: float, beta: float, confidence_level: float) -> tuple[float, float]:
    """Two-sided credible interval under the normal approximation, clamped to [0, 1].

    Parameters
    ----------
    alpha, beta : float
        Posterior Beta parameters.
    confidence_level : float
        Interval mass, e.g. 0.95.

    Returns
    -------
    tuple[float, float]
        ``(lower, upper)``; ``(0.0, 0.0)`` for a degenerate posterior.
    """
    if alpha + beta <= 0:
        return (0.0, 0.0)
    lower_tail = (1 - confidence_level) / 2
    mean = beta_mean(alpha, beta)
    std = math.sqrt(beta_variance(alpha, beta))
    lower = mean + normal_quantile(lower_tail) * std
    upper = mean + normal_quantile(1 - lower_tail) * std
    return (max(0.0, lower), min(1.0, upper))


# ======================================================================
# Information gain and t lookup
# ======================================================================

def information_gain(probabilities: Mapping[str, float]) -> float:
    """KL divergence of ``probabilities`` from the uniform distribution on the same keys.

    Zero-probability entries contribute nothing (``0 * log 0 = 0``); an
    empty mapping yields 0.
    """
    n = len(probabilities)
    if n == 0:
        return 0.0
    uniform = 1.0 / n
    gain = 0.0
    for p in probabilities.values():
        if p > 0:
            gain += p * math.log(p / uniform)
    return max(gain, 0.0)


def t_value(confidence_level: float, degrees_of_freedom: float) -> float:
    """Critical t from a coarse lookup table.

    The degrees of freedom snap to the nearest of ``T_TABLE_DF`` (ties go to
    the smaller entry).  Confidence levels without a table row return the
    z-value 1.96.  This is an approximation, not an exact Student-t quantile.
    """
    level = round(confidence_level * 100)
    row = T_TABLE.get(level)
    if row is None:
        return DEFAULT_CRITICAL_VALUE
    closest = T_TABLE_DF[0]
    for df in T_TABLE_DF[1:]:
        if abs(df - degrees_of_freedom) < abs(closest - degrees_of_freedom):
            closest = df
    return row[closest]
