"""PostLift statistics engine.

Public API:
- BetaBinomial: Conjugate Beta-Binomial model for conversion rate estimation
- ThompsonSampler: Monte-Carlo probability that each variant is best
- pooled_t_test / cohens_d: Two-variant frequentist comparison
- t_test_decision / thompson_decision: Stopping rules
- generate_recommendations: Plain-English guidance for an analysis
- information_gain / credible_interval / t_value: Shared primitives
"""

from postlift.stats.bayesian import BetaBinomial
from postlift.stats.decisions import (
    Decision,
    generate_recommendations,
    t_test_decision,
    thompson_decision,
)
from postlift.stats.frequentist import TTestResult, cohens_d, pooled_t_test
from postlift.stats.primitives import credible_interval, information_gain, t_value
from postlift.stats.thompson import ThompsonSampler

__all__ = [
    "BetaBinomial",
    "ThompsonSampler",
    "TTestResult",
    "pooled_t_test",
    "cohens_d",
    "Decision",
    "t_test_decision",
    "thompson_decision",
    "generate_recommendations",
    "credible_interval",
    "information_gain",
    "t_value",
]
