"""Two-sample comparison used when an experiment has exactly two variants."""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np
from scipy import stats as sp_stats

from postlift.stats.primitives import t_value

# Cohen's d reported for perfectly separated samples, where it is unbounded.
MAX_EFFECT_SIZE = 10.0


@dataclass(frozen=True)
class TTestResult:
    t_statistic: float
    degrees_of_freedom: int
    p_value: float
    critical_value: float
    pooled_std: float


def describe(values: list[float]) -> tuple[float, float]:
    """Sample mean and sample standard deviation (ddof=1); zeros for tiny samples."""
    if not values:
        return (0.0, 0.0)
    arr = np.asarray(values, dtype=float)
    mean = float(arr.mean())
    if arr.size < 2:
        return (mean, 0.0)
    return (mean, float(arr.std(ddof=1)))


def pooled_std(std1: float, n1: int, std2: float, n2: int) -> float:
    dof = n1 + n2 - 2
    if dof <= 0:
        return 0.0
    return math.sqrt(((n1 - 1) * std1 * std1 + (n2 - 1) * std2 * std2) / dof)


def pooled_t_test(
    values_a: list[float],
    values_b: list[float],
    confidence_level: float,
) -> TTestResult:
    """Pooled-variance two-sample t-test.

    The p-value estimate is the two-sided Student-t tail probability.  The
    critical value comes from the coarse :func:`t_value` table and is
    reported alongside.  With zero pooled variance the samples are constant:
    equal means give the neutral ``t = 0``, ``p = 1``; different means are
    perfectly separated, so ``t`` is infinite and ``p = 0``.  Without any
    degrees of freedom the result is neutral.
    """
    mean_a, std_a = describe(values_a)
    mean_b, std_b = describe(values_b)
    n_a, n_b = len(values_a), len(values_b)
    dof = max(n_a + n_b - 2, 0)
    critical = t_value(confidence_level, dof)
    if n_a == 0 or n_b == 0 or dof == 0:
        return TTestResult(0.0, dof, 1.0, critical, 0.0)
    sp = pooled_std(std_a, n_a, std_b, n_b)
    if sp == 0:
        if mean_a == mean_b:
            return TTestResult(0.0, dof, 1.0, critical, sp)
        return TTestResult(math.copysign(math.inf, mean_a - mean_b), dof, 0.0, critical, sp)

    t_stat = (mean_a - mean_b) / (sp * math.sqrt(1 / n_a + 1 / n_b))
    p_value = float(2 * sp_stats.t.sf(abs(t_stat), dof))
    return TTestResult(t_stat, dof, p_value, critical, sp)


def cohens_d(values_a: list[float], values_b: list[float]) -> float:
    """``|mean_a - mean_b| / pooled_std``.

    With a zero pooled deviation the result is 0.0 for equal means and
    ``MAX_EFFECT_SIZE`` for perfectly separated samples.
    """
    mean_a, std_a = describe(values_a)
    mean_b, std_b = describe(values_b)
    sp = pooled_std(std_a, len(values_a), std_b, len(values_b))
    if sp == 0:
        return 0.0 if mean_a == mean_b else MAX_EFFECT_SIZE
    return abs(mean_a - mean_b) / sp
