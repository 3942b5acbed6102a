"""Stopping rules and recommendation text for experiment analyses.

Two decision paths exist:

* exactly two variants: a pooled two-sample t-test on the raw metric,
  significant when the p-value estimate falls below ``1 - confidence`` and
  ``|t|`` exceeds the tabulated critical value;
* three or more variants: Thompson-sampling win probabilities, significant
  when the leader's probability or the information gain over the uniform
  distribution crosses a configurable threshold.

Both thresholds are policy, not derived quantities.
"""

from __future__ import annotations

from dataclasses import dataclass

from postlift.schemas.experiment import AnalysisStatus
from postlift.stats.frequentist import TTestResult
from postlift.stats.primitives import information_gain


@dataclass
class Decision:
    status: AnalysisStatus
    winning_variant: str | None = None
    p_value: float | None = None
    effect_size: float | None = None
    probabilities: dict[str, float] | None = None
    information_gain: float | None = None
    critical_value: float | None = None


# ======================================================================
# Decision rules
# ======================================================================

def t_test_decision(
    variant_ids: tuple[str, str],
    metric_means: tuple[float, float],
    test: TTestResult,
    effect_size: float,
    confidence_level: float,
) -> Decision:
    """Two-variant decision from a pooled t-test.

    Both the p-value estimate and the critical value from the t-table must
    agree before a winner is declared.
    """
    if test.p_value < 1 - confidence_level and abs(test.t_statistic) > test.critical_value:
        winner = variant_ids[0] if metric_means[0] > metric_means[1] else variant_ids[1]
        return Decision(
            status=AnalysisStatus.significant_difference,
            winning_variant=winner,
            p_value=test.p_value,
            effect_size=effect_size,
            critical_value=test.critical_value,
        )
    return Decision(
        status=AnalysisStatus.no_significant_difference,
        p_value=test.p_value,
        effect_size=effect_size,
        critical_value=test.critical_value,
    )


def thompson_decision(
    probabilities: dict[str, float],
    win_probability_threshold: float = 0.95,
    info_gain_threshold: float = 0.10,
) -> Decision:
    """Multi-variant sequential stopping decision.

    Parameters
    ----------
    probabilities : dict[str, float]
        Estimated probability that each variant is the best.
    win_probability_threshold : float
        Stop when the leader's probability exceeds this.
    info_gain_threshold : float
        Stop when the KL divergence from uniform exceeds this.
    """
    gain = information_gain(probabilities)
    leader = max(probabilities, key=probabilities.__getitem__) if probabilities else None
    best = probabilities[leader] if leader is not None else 0.0

    if leader is not None and (best > win_probability_threshold or gain > info_gain_threshold):
        return Decision(
            status=AnalysisStatus.significant_difference,
            winning_variant=leader,
            effect_size=gain,
            probabilities=probabilities,
            information_gain=gain,
        )
    return Decision(
        status=AnalysisStatus.no_significant_difference,
        effect_size=gain,
        probabilities=probabilities,
        information_gain=gain,
    )


# ======================================================================
# Recommendations
# ======================================================================

def effect_size_label(effect_size: float) -> str:
    if effect_size < 0.2:
        return "small effect"
    if effect_size < 0.5:
        return "medium effect"
    return "large effect"


def generate_recommendations(decision: Decision, minimum_sample_size: int) -> list[str]:
    """Plain-English guidance keyed off the decision status."""
    recommendations: list[str] = []

    if decision.status is AnalysisStatus.insufficient_data:
        recommendations.extend([
            "Continue running the experiment to collect more data",
            f"Target sample size: {minimum_sample_size} per variant",
            "Consider extending the experiment duration",
        ])

    elif decision.status is AnalysisStatus.no_significant_difference:
        recommendations.extend([
            "No statistically significant difference found between variants",
            "Consider testing more dramatic variations",
            "You may choose either variant or stick with the original",
        ])
        if decision.probabilities:
            max_prob = max(decision.probabilities.values())
            if max_prob > 0.7:
                recommendations.append(
                    f"Leading variant has {max_prob * 100:.1f}% probability of being best"
                )

    elif decision.status is AnalysisStatus.significant_difference and decision.winning_variant:
        recommendations.append(f"Implement the winning variant: {decision.winning_variant}")
        if decision.probabilities is not None:
            win_prob = decision.probabilities.get(decision.winning_variant, 0.0)
            recommendations.append(f"Confidence: {win_prob * 100:.1f}% probability of being best")
            recommendations.append(f"Information gain: {decision.information_gain or 0.0:.3f}")
        elif decision.effect_size is not None:
            recommendations.append(
                f"Effect size: {decision.effect_size:.2f} ({effect_size_label(decision.effect_size)})"
            )
        recommendations.append("Monitor performance after implementation")

    return recommendations
