"""Tests for the PostLift Bayesian stats engine.

Tests cover:
- BetaBinomial construction, immutable update and posterior summaries
- Posterior mean moves monotonically with evidence
- ThompsonSampler win probabilities and their Monte Carlo variance
- Two-variant and multi-variant decision rules
- Recommendation text for each decision status
"""

import numpy as np
import pytest

from postlift.schemas.experiment import AnalysisStatus
from postlift.stats.bayesian import BetaBinomial
from postlift.stats.decisions import (
    Decision,
    effect_size_label,
    generate_recommendations,
    t_test_decision,
    thompson_decision,
)
from postlift.stats.frequentist import TTestResult, pooled_t_test
from postlift.stats.thompson import ThompsonSampler


# ======================================================================
# BetaBinomial Tests
# ======================================================================


class TestBetaBinomialBasics:
    """Test basic construction, update, and posterior summaries."""

    def test_default_prior(self):
        """Default prior is the uniform Beta(1, 1)."""
        model = BetaBinomial()
        assert model.alpha == 1.0
        assert model.beta == 1.0
        assert model.posterior_mean() == pytest.approx(0.5)

    def test_invalid_prior_raises(self):
        with pytest.raises(ValueError):
            BetaBinomial(prior_alpha=0, prior_beta=1)
        with pytest.raises(ValueError):
            BetaBinomial(prior_alpha=1, prior_beta=-1)

    def test_update_returns_new_instance(self):
        """update() must return a NEW BetaBinomial, not mutate the original."""
        prior = BetaBinomial()
        posterior = prior.update(5, 100)
        assert prior.alpha == 1.0
        assert prior.beta == 1.0
        assert posterior.alpha == 6.0   # 1 + 5
        assert posterior.beta == 96.0   # 1 + 95
        assert posterior is not prior

    def test_update_zero_trials(self):
        prior = BetaBinomial(2.0, 3.0)
        posterior = prior.update(0, 0)
        assert posterior.alpha == prior.alpha
        assert posterior.beta == prior.beta

    def test_invalid_update_raises(self):
        model = BetaBinomial()
        with pytest.raises(ValueError):
            model.update(-1, 10)
        with pytest.raises(ValueError):
            model.update(11, 10)

    def test_credible_interval_width_validated(self):
        model = BetaBinomial().update(10, 50)
        with pytest.raises(ValueError):
            model.credible_interval(1.0)
        lo, hi = model.credible_interval(0.95)
        assert 0.0 <= lo < model.posterior_mean() < hi <= 1.0

    def test_repr(self):
        assert repr(BetaBinomial(2, 3)) == "BetaBinomial(alpha=2.000, beta=3.000)"


class TestPosteriorMonotonicity:
    """More successes never lower the mean; more failures never raise it."""

    def test_successes_raise_mean(self):
        means = [BetaBinomial().update(s, 20).posterior_mean() for s in range(21)]
        assert all(b > a for a, b in zip(means, means[1:]))

    def test_failures_lower_mean(self):
        means = [BetaBinomial().update(5, 5 + f).posterior_mean() for f in range(20)]
        assert all(b < a for a, b in zip(means, means[1:]))

    def test_variance_shrinks_with_data(self):
        small = BetaBinomial().update(5, 10)
        large = BetaBinomial().update(500, 1000)
        assert large.posterior_std() < small.posterior_std()


# ======================================================================
# ThompsonSampler Tests
# ======================================================================


class TestThompsonSampler:
    def test_requires_models(self):
        with pytest.raises(ValueError):
            ThompsonSampler([], np.random.default_rng(0))

    def test_probabilities_sum_to_one(self):
        models = [BetaBinomial().update(10, 100), BetaBinomial().update(12, 100), BetaBinomial()]
        probs = ThompsonSampler(models, np.random.default_rng(0)).probability_best(5000)
        assert len(probs) == 3
        assert sum(probs) == pytest.approx(1.0)

    def test_clear_winner(self):
        models = [BetaBinomial().update(90, 100), BetaBinomial().update(10, 100)]
        probs = ThompsonSampler(models, np.random.default_rng(1)).probability_best(5000)
        assert probs[0] > 0.99

    def test_invalid_draw_count(self):
        sampler = ThompsonSampler([BetaBinomial()], np.random.default_rng(3))
        with pytest.raises(ValueError):
            sampler.probability_best(0)

    def test_variance_shrinks_with_more_draws(self):
        """Repeated estimates agree more closely as the draw count grows."""
        models = [BetaBinomial().update(20, 100), BetaBinomial().update(22, 100), BetaBinomial().update(25, 100)]

        def spread(n_samples: int) -> float:
            estimates = [
                ThompsonSampler(models, np.random.default_rng(seed)).probability_best(n_samples)[2]
                for seed in range(30)
            ]
            return float(np.std(estimates))

        assert spread(10_000) < spread(100)


# ======================================================================
# Decision rules
# ======================================================================


class TestDecisions:
    def _test(self, p_value: float) -> TTestResult:
        return TTestResult(t_statistic=3.0, degrees_of_freedom=78, p_value=p_value,
                           critical_value=1.984, pooled_std=0.2)

    def test_t_test_significant_picks_higher_mean(self):
        decision = t_test_decision(("A", "B"), (0.2, 0.5), self._test(0.001), 0.8, 0.95)
        assert decision.status is AnalysisStatus.significant_difference
        assert decision.winning_variant == "B"
        assert decision.effect_size == 0.8

    def test_t_test_not_significant(self):
        decision = t_test_decision(("A", "B"), (0.2, 0.5), self._test(0.2), 0.8, 0.95)
        assert decision.status is AnalysisStatus.no_significant_difference
        assert decision.winning_variant is None
        assert decision.p_value == 0.2

    def test_t_table_can_veto_small_p_value(self):
        # df = 3 snaps to the df = 1 row (12.706) although the exact p is tiny
        test = pooled_t_test([10.0, 11.0, 12.0], [1.0, 2.0], 0.95)
        assert test.p_value < 0.01
        assert test.critical_value == 12.706
        assert abs(test.t_statistic) < test.critical_value

        decision = t_test_decision(("A", "B"), (11.0, 1.5), test, 10.4, 0.95)
        assert decision.status is AnalysisStatus.no_significant_difference
        assert decision.critical_value == 12.706

    def test_t_test_separated_constant_samples(self):
        test = pooled_t_test([0.0] * 40, [1.0] * 40, 0.95)
        decision = t_test_decision(("A", "B"), (0.0, 1.0), test, 10.0, 0.95)
        assert decision.status is AnalysisStatus.significant_difference
        assert decision.winning_variant == "B"

    def test_thompson_win_probability_threshold(self):
        decision = thompson_decision({"a": 0.97, "b": 0.02, "c": 0.01})
        assert decision.status is AnalysisStatus.significant_difference
        assert decision.winning_variant == "a"
        assert decision.information_gain == decision.effect_size

    def test_thompson_info_gain_threshold(self):
        # Leader below 0.95 but the distribution is far from uniform.
        decision = thompson_decision({"a": 0.7, "b": 0.2, "c": 0.1})
        assert decision.information_gain > 0.10
        assert decision.status is AnalysisStatus.significant_difference

    def test_thompson_near_uniform(self):
        decision = thompson_decision({"a": 0.36, "b": 0.33, "c": 0.31})
        assert decision.status is AnalysisStatus.no_significant_difference
        assert decision.winning_variant is None

    def test_thresholds_are_configurable(self):
        probs = {"a": 0.7, "b": 0.2, "c": 0.1}
        decision = thompson_decision(probs, win_probability_threshold=0.99, info_gain_threshold=1.0)
        assert decision.status is AnalysisStatus.no_significant_difference


class TestRecommendations:
    def test_insufficient_data(self):
        recs = generate_recommendations(Decision(status=AnalysisStatus.insufficient_data), 250)
        assert "Target sample size: 250 per variant" in recs

    def test_no_difference_mentions_leader(self):
        decision = Decision(
            status=AnalysisStatus.no_significant_difference,
            probabilities={"a": 0.8, "b": 0.2},
        )
        recs = generate_recommendations(decision, 100)
        assert recs[0] == "No statistically significant difference found between variants"
        assert "Leading variant has 80.0% probability of being best" in recs

    def test_significant_t_test(self):
        decision = Decision(
            status=AnalysisStatus.significant_difference,
            winning_variant="A",
            p_value=0.001,
            effect_size=0.9,
        )
        recs = generate_recommendations(decision, 100)
        assert recs[0] == "Implement the winning variant: A"
        assert "Effect size: 0.90 (large effect)" in recs
        assert recs[-1] == "Monitor performance after implementation"

    def test_significant_thompson(self):
        decision = Decision(
            status=AnalysisStatus.significant_difference,
            winning_variant="b",
            probabilities={"a": 0.01, "b": 0.98, "c": 0.01},
            information_gain=0.95,
        )
        recs = generate_recommendations(decision, 100)
        assert "Confidence: 98.0% probability of being best" in recs
        assert "Information gain: 0.950" in recs

    def test_effect_size_labels(self):
        assert effect_size_label(0.1) == "small effect"
        assert effect_size_label(0.3) == "medium effect"
        assert effect_size_label(0.5) == "large effect"
