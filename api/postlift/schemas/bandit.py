"""Domain schemas for the contextual bandit."""

from __future__ import annotations

import enum
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from postlift.schemas.experiment import Platform


class ContentType(str, enum.Enum):
    video = "video"
    image = "image"
    text = "text"


class BanditArm(BaseModel):
    id: str
    name: str
    parameters: dict[str, Any] = Field(default_factory=dict)
    features: list[float] = Field(default_factory=list)  # descriptive only
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    version: str = "v1"


class ArmWeights(BaseModel):
    weights: list[float]
    confidence: float = 0.1
    training_examples: int = 0
    last_updated: datetime = Field(default_factory=lambda: datetime.now(UTC))


class BanditContext(BaseModel):
    platform: Platform = Platform.instagram
    content_type: ContentType = ContentType.text
    audience_segment: str = "general"
    time_of_day: float = 0
    day_of_week: float = 0
    historical_engagement: float = 0
    content_length: float = 0
    has_hashtags: bool = False
    has_thumbnail: bool = False
    subject_id: str = "anonymous"


class BanditReward(BaseModel):
    arm_id: str
    context: BanditContext
    reward: float
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    metadata: dict[str, Any] = Field(default_factory=dict)


class EngagementMetrics(BaseModel):
    likes: float = 0
    comments: float = 0
    shares: float = 0
    click_through_rate: float = 0
    reach_rate: float = 0
