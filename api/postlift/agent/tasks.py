"""Agent task definitions, a closed union discriminated on ``type``."""

from __future__ import annotations

import enum
import uuid
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field

from postlift.schemas.experiment import Platform


class Priority(str, enum.Enum):
    high = "high"
    medium = "medium"
    low = "low"


class Focus(str, enum.Enum):
    captions = "captions"
    hashtags = "hashtags"
    timing = "timing"
    visuals = "visuals"


class BaseContent(BaseModel):
    caption: str
    hashtags: list[str] = Field(default_factory=list)


class _TaskBase(BaseModel):
    task_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    niche: str | None = None
    priority: Priority = Priority.medium
    parameters: dict[str, Any] = Field(default_factory=dict)


class OptimizeContentTask(_TaskBase):
    type: Literal["optimize_content"] = "optimize_content"
    platform: Platform
    base_content: BaseContent
    content_id: str | None = None


class UpdateOptimizationModelsTask(_TaskBase):
    type: Literal["update_optimization_models"] = "update_optimization_models"


class GenerateVariationsTask(_TaskBase):
    type: Literal["generate_variations"] = "generate_variations"
    platform: Platform
    base_content: BaseContent
    focus: list[Focus] = Field(default_factory=lambda: [Focus.captions])


AgentTask = Annotated[
    OptimizeContentTask | UpdateOptimizationModelsTask | GenerateVariationsTask,
    Field(discriminator="type"),
]
