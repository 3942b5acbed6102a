"""Engagement-to-reward normalization for the optimization agent."""

from __future__ import annotations

import math

from postlift.schemas.bandit import EngagementMetrics
from postlift.schemas.experiment import Platform

LIKE_WEIGHT = 0.3
COMMENT_WEIGHT = 0.4
SHARE_WEIGHT = 0.2
CTR_WEIGHT = 0.1

# Engagement level that counts as a full-credit post on each platform.
PLATFORM_NORMS: dict[Platform, dict[str, float]] = {
    Platform.tiktok: {"likes": 100, "comments": 20, "shares": 10, "ctr": 0.05},
    Platform.instagram: {"likes": 50, "comments": 10, "shares": 5, "ctr": 0.03},
    Platform.youtube: {"likes": 20, "comments": 5, "shares": 2, "ctr": 0.08},
}
DEFAULT_NORMS = PLATFORM_NORMS[Platform.instagram]


def _normalized(value: float, norm: float) -> float:
    if not math.isfinite(value):
        return 0.0
    return min(max(value / norm, 0.0), 1.0)


def calculate_normalized_reward(engagement: EngagementMetrics, platform: Platform) -> float:
    """Weighted engagement score in [0, 1].

    ``0.3*likes + 0.4*comments + 0.2*shares + 0.1*ctr`` where each term is
    first divided by the platform norm and clipped to [0, 1].  Platforms
    without their own norms use Instagram's.
    """
    norms = PLATFORM_NORMS.get(platform, DEFAULT_NORMS)
    return (
        LIKE_WEIGHT * _normalized(engagement.likes, norms["likes"])
        + COMMENT_WEIGHT * _normalized(engagement.comments, norms["comments"])
        + SHARE_WEIGHT * _normalized(engagement.shares, norms["shares"])
        + CTR_WEIGHT * _normalized(engagement.click_through_rate, norms["ctr"])
    )
