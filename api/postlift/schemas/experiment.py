"""Domain schemas for experiments, outcomes and analyses."""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class Platform(str, enum.Enum):
    tiktok = "tiktok"
    instagram = "instagram"
    facebook = "facebook"
    youtube = "youtube"
    twitter = "twitter"
    linkedin = "linkedin"


class ExperimentStatus(str, enum.Enum):
    draft = "draft"
    running = "running"
    paused = "paused"
    completed = "completed"
    cancelled = "cancelled"


class TargetMetric(str, enum.Enum):
    engagement_rate = "engagement_rate"
    likes = "likes"
    comments = "comments"
    shares = "shares"
    views = "views"


class AnalysisStatus(str, enum.Enum):
    insufficient_data = "insufficient_data"
    no_significant_difference = "no_significant_difference"
    significant_difference = "significant_difference"


class Variant(BaseModel):
    id: str
    name: str
    description: str = ""
    config: dict[str, Any] = Field(default_factory=dict)
    weight: float


class ExperimentCreate(BaseModel):
    name: str
    description: str = ""
    platform: Platform
    status: ExperimentStatus = ExperimentStatus.draft
    variants: list[Variant]
    start_date: datetime | None = None
    end_date: datetime | None = None
    target_metric: TargetMetric = TargetMetric.engagement_rate
    minimum_sample_size: int = 100
    confidence_level: float = 0.95
    prior_alpha: float | None = None
    prior_beta: float | None = None
    owner_id: str | None = None


class ExperimentUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    status: ExperimentStatus | None = None
    variants: list[Variant] | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    target_metric: TargetMetric | None = None
    minimum_sample_size: int | None = None
    confidence_level: float | None = None
    prior_alpha: float | None = None
    prior_beta: float | None = None


class Experiment(ExperimentCreate):
    id: str
    info_gain: float | None = None
    created_at: datetime
    updated_at: datetime

    def variant(self, variant_id: str) -> Variant | None:
        for variant in self.variants:
            if variant.id == variant_id:
                return variant
        return None


class PostMetrics(BaseModel):
    """Engagement numbers for one published post, as supplied by a platform client."""

    post_id: str | None = None
    platform: Platform | None = None
    published_at: datetime | None = None
    engagement_rate: float = 0.0
    likes: float = 0.0
    comments: float = 0.0
    shares: float = 0.0
    views: float = 0.0


class OutcomeRecord(BaseModel):
    experiment_id: str
    variant_id: str
    subject_id: str | None = None
    metric_value: float
    conversion: bool
    recorded_at: datetime
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}


class VariantResult(BaseModel):
    variant_id: str
    sample_size: int
    conversions: int = 0
    conversion_rate: float | None = None
    mean: float
    standard_deviation: float
    confidence_interval: tuple[float, float]
    metric_mean: float = 0.0
    metric_std: float = 0.0


class ExperimentAnalysis(BaseModel):
    experiment_id: str
    status: AnalysisStatus
    results: list[VariantResult]
    winning_variant: str | None = None
    confidence_level: float
    p_value: float | None = None
    effect_size: float | None = None
    probabilities: dict[str, float] | None = None
    information_gain: float | None = None
    critical_value: float | None = None
    recommendations: list[str]
    analysis_date: datetime
