"""Tests for the pure statistical primitives.

Tests cover:
- Conjugate Beta update and moments
- Normal-approximation Beta sampling stays in [0, 1]
- Credible intervals (clamping, degenerate posteriors)
- Information gain against the uniform distribution
- Coarse t-table lookup
- Pooled t-test and Cohen's d edge cases
"""

import math

import numpy as np
import pytest

from postlift.stats.frequentist import (
    MAX_EFFECT_SIZE,
    cohens_d,
    describe,
    pooled_std,
    pooled_t_test,
)
from postlift.stats.primitives import (
    beta_mean,
    beta_posterior,
    beta_variance,
    credible_interval,
    information_gain,
    normal_quantile,
    sample_beta,
    sample_normal,
    t_value,
)


# ======================================================================
# Beta posterior and moments
# ======================================================================


class TestBetaPosterior:
    def test_conjugate_update(self):
        assert beta_posterior(1, 1, 3, 7) == (4, 8)

    def test_negative_counts_raise(self):
        with pytest.raises(ValueError):
            beta_posterior(1, 1, -1, 0)
        with pytest.raises(ValueError):
            beta_posterior(1, 1, 0, -2)

    def test_posterior_never_below_prior(self):
        for s in range(5):
            for f in range(5):
                a, b = beta_posterior(2.0, 3.0, s, f)
                assert a >= 2.0 and b >= 3.0

    def test_moments(self):
        assert beta_mean(2, 8) == pytest.approx(0.2)
        # ab / ((a+b)^2 (a+b+1)) = 16 / (100 * 11)
        assert beta_variance(2, 8) == pytest.approx(16 / 1100)

    def test_degenerate_moments(self):
        assert beta_mean(0, 0) == 0.0
        assert beta_variance(0, 0) == 0.0


class TestSampling:
    def test_uniform_regime(self):
        rng = np.random.default_rng(0)
        draws = sample_beta(1, 1, rng, size=5000)
        assert draws.shape == (5000,)
        assert draws.mean() == pytest.approx(0.5, abs=0.02)

    def test_normal_regime_clamped(self):
        rng = np.random.default_rng(1)
        draws = sample_beta(2, 200, rng, size=10_000)
        assert draws.min() >= 0.0
        assert draws.max() <= 1.0
        assert draws.mean() == pytest.approx(beta_mean(2, 200), abs=0.005)

    def test_scalar_draw(self):
        rng = np.random.default_rng(2)
        value = sample_beta(30, 70, rng)
        assert isinstance(value, float)
        assert 0.0 <= value <= 1.0

    def test_sample_normal_zero_variance(self):
        rng = np.random.default_rng(3)
        assert sample_normal(0.7, 0.0, rng) == pytest.approx(0.7)
        assert sample_normal(0.7, -1.0, rng) == pytest.approx(0.7)

    def test_sample_normal_moments(self):
        rng = np.random.default_rng(4)
        draws = [sample_normal(2.0, 4.0, rng) for _ in range(20_000)]
        assert np.mean(draws) == pytest.approx(2.0, abs=0.05)
        assert np.std(draws) == pytest.approx(2.0, abs=0.05)


# ======================================================================
# Quantiles and intervals
# ======================================================================


class TestCredibleInterval:
    def test_normal_quantile(self):
        assert normal_quantile(0.975) == pytest.approx(1.959964, abs=1e-5)
        assert normal_quantile(0.5) == pytest.approx(0.0, abs=1e-12)
        assert normal_quantile(0.0) == -math.inf
        assert normal_quantile(1.0) == math.inf

    def test_contains_mean(self):
        lo, hi = credible_interval(41, 61, 0.95)
        assert lo < beta_mean(41, 61) < hi

    def test_clamped_to_unit_interval(self):
        lo, hi = credible_interval(1, 1, 0.99)
        assert lo == 0.0
        assert hi == 1.0

    def test_wider_at_higher_confidence(self):
        lo90, hi90 = credible_interval(20, 80, 0.90)
        lo99, hi99 = credible_interval(20, 80, 0.99)
        assert hi99 - lo99 > hi90 - lo90

    def test_degenerate(self):
        assert credible_interval(0, 0, 0.95) == (0.0, 0.0)


# ======================================================================
# Information gain and t lookup
# ======================================================================


class TestInformationGain:
    def test_uniform_is_zero(self):
        assert information_gain({"a": 0.25, "b": 0.25, "c": 0.25, "d": 0.25}) == pytest.approx(0.0)

    def test_certain_winner(self):
        gain = information_gain({"a": 1.0, "b": 0.0, "c": 0.0})
        assert gain == pytest.approx(math.log(3))

    def test_empty(self):
        assert information_gain({}) == 0.0

    def test_non_negative(self):
        assert information_gain({"a": 0.34, "b": 0.33, "c": 0.33}) >= 0.0


class TestTValue:
    def test_exact_rows(self):
        assert t_value(0.95, 10) == 2.228
        assert t_value(0.99, 1) == 63.657
        assert t_value(0.90, 100) == 1.660

    def test_snaps_to_nearest_df(self):
        assert t_value(0.95, 78) == 1.984
        assert t_value(0.95, 60) == 2.042

    def test_tie_goes_to_smaller_df(self):
        # 65 is equidistant from 30 and 100
        assert t_value(0.95, 65) == 2.042

    def test_unknown_level_falls_back(self):
        assert t_value(0.85, 10) == 1.96


# ======================================================================
# Two-sample comparison
# ======================================================================


class TestPooledTTest:
    def test_describe(self):
        assert describe([]) == (0.0, 0.0)
        assert describe([3.0]) == (3.0, 0.0)
        mean, std = describe([1.0, 2.0, 3.0, 4.0])
        assert mean == pytest.approx(2.5)
        assert std == pytest.approx(np.std([1, 2, 3, 4], ddof=1))

    def test_pooled_std_equal_groups(self):
        assert pooled_std(2.0, 10, 2.0, 10) == pytest.approx(2.0)
        assert pooled_std(1.0, 1, 1.0, 1) == 0.0

    def test_matches_scipy(self):
        from scipy import stats

        rng = np.random.default_rng(7)
        a = rng.normal(0.30, 0.1, 50).tolist()
        b = rng.normal(0.25, 0.1, 60).tolist()
        result = pooled_t_test(a, b, 0.95)
        expected = stats.ttest_ind(a, b, equal_var=True)
        assert result.t_statistic == pytest.approx(expected.statistic, rel=1e-9)
        assert result.p_value == pytest.approx(expected.pvalue, rel=1e-6)
        assert result.degrees_of_freedom == 108
        assert result.critical_value == 1.984

    def test_empty_sample(self):
        result = pooled_t_test([], [1.0, 2.0], 0.95)
        assert result.p_value == 1.0
        assert result.t_statistic == 0.0

    def test_single_observations_are_neutral(self):
        result = pooled_t_test([1.0], [0.0], 0.95)
        assert result.degrees_of_freedom == 0
        assert result.p_value == 1.0
        assert result.t_statistic == 0.0

    def test_constant_samples(self):
        same = pooled_t_test([1.0] * 5, [1.0] * 5, 0.95)
        assert same.p_value == 1.0
        different = pooled_t_test([1.0] * 5, [0.0] * 5, 0.95)
        assert different.p_value == 0.0
        assert different.t_statistic == math.inf
        flipped = pooled_t_test([0.0] * 5, [1.0] * 5, 0.95)
        assert flipped.t_statistic == -math.inf

    def test_cohens_d(self):
        assert cohens_d([1.0, 2.0, 3.0], [2.0, 3.0, 4.0]) == pytest.approx(1.0)
        assert cohens_d([1.0, 1.0], [1.0, 1.0]) == 0.0
        assert cohens_d([1.0, 1.0], [0.0, 0.0]) == MAX_EFFECT_SIZE
