"""Context feature extraction for the contextual bandit.

Layout of the vector (before padding):

====  ==========================================
0-5   platform one-hot (tiktok .. linkedin)
6-8   content type one-hot (video, image, text)
9     time_of_day / 24
10    day_of_week / 7
11    min(historical_engagement / 1000, 1)
12    min(content_length / 500, 1)
13    has_hashtags
14    has_thumbnail
15    audience segment bucket, (fnv1a % 3) / 3
====  ==========================================
"""

from __future__ import annotations

import numpy as np

from postlift.schemas.bandit import BanditContext, ContentType
from postlift.schemas.experiment import Platform
from postlift.services.assignment import fnv1a

PLATFORM_ORDER = (
    Platform.tiktok,
    Platform.instagram,
    Platform.facebook,
    Platform.youtube,
    Platform.twitter,
    Platform.linkedin,
)
CONTENT_TYPE_ORDER = (ContentType.video, ContentType.image, ContentType.text)

BASE_FEATURE_COUNT = len(PLATFORM_ORDER) + len(CONTENT_TYPE_ORDER) + 7


def extract_features(context: BanditContext, dimension: int = 20) -> np.ndarray:
    """Encode ``context`` as a float vector of exactly ``dimension`` entries."""
    features: list[float] = [1.0 if context.platform is p else 0.0 for p in PLATFORM_ORDER]
    features.extend(1.0 if context.content_type is c else 0.0 for c in CONTENT_TYPE_ORDER)
    features.extend([
        context.time_of_day / 24.0,
        context.day_of_week / 7.0,
        min(context.historical_engagement / 1000.0, 1.0),
        min(context.content_length / 500.0, 1.0),
        1.0 if context.has_hashtags else 0.0,
        1.0 if context.has_thumbnail else 0.0,
        (fnv1a(context.audience_segment) % 3) / 3.0,
    ])

    vector = np.zeros(dimension, dtype=float)
    n = min(dimension, len(features))
    vector[:n] = features[:n]
    return vector
