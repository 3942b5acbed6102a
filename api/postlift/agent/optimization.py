"""Optimization agent: connects bandit selection to delayed engagement rewards.

``optimize_content`` picks a strategy arm for a piece of content and keeps a
pending record keyed by content id.  When engagement numbers arrive,
``record_content_reward`` turns them into a reward in [0, 1] and feeds the
bandit.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol, assert_never

import pydantic

from postlift.agent.rewards import calculate_normalized_reward
from postlift.agent.tasks import (
    AgentTask,
    Focus,
    GenerateVariationsTask,
    OptimizeContentTask,
    UpdateOptimizationModelsTask,
)
from postlift.bandit.contextual import ContextualBandit
from postlift.core.cache import BoundedCache
from postlift.core.exceptions import AgentInactiveError, NotFoundError, ValidationError
from postlift.core.metrics import MetricsSink, NullMetrics, timed
from postlift.schemas.bandit import BanditArm, BanditContext, ContentType, EngagementMetrics
from postlift.schemas.experiment import Platform, Variant
from postlift.services.variations import ContentDraft, VariationType, generate_content_variations

logger = logging.getLogger(__name__)

INITIAL_PERFORMANCE = 0.8
MIN_PERFORMANCE = 0.1
ERROR_PERFORMANCE = 0.3
FAILURE_PENALTY = 0.1
SUCCESS_BONUS = {
    "optimize_content": 0.05,
    "update_optimization_models": 0.02,
    "generate_variations": 0.03,
}

_FOCUS_TO_VARIATION = {
    Focus.captions: VariationType.caption,
    Focus.hashtags: VariationType.hashtags,
}


class ContentService(Protocol):
    """Downstream content-generation collaborator."""

    async def optimize_content(
        self,
        caption: str,
        hashtags: list[str],
        platform: Platform,
        strategy: BanditArm,
        parameters: dict[str, Any],
    ) -> dict[str, Any]: ...

    async def update_optimization_patterns(self) -> None: ...

    async def generate_variations(
        self, draft: ContentDraft, variation_type: VariationType
    ) -> list[Variant]: ...


class NullContentService:
    """Offline content service: echoes the strategy and uses the rule-based variations."""

    async def optimize_content(
        self,
        caption: str,
        hashtags: list[str],
        platform: Platform,
        strategy: BanditArm,
        parameters: dict[str, Any],
    ) -> dict[str, Any]:
        return {"caption": caption, "hashtags": list(hashtags), "strategy": strategy.parameters}

    async def update_optimization_patterns(self) -> None:
        return None

    async def generate_variations(
        self, draft: ContentDraft, variation_type: VariationType
    ) -> list[Variant]:
        return generate_content_variations(draft, variation_type)


@dataclass(frozen=True)
class PendingOptimization:
    arm_id: str
    context: BanditContext
    task_id: str
    content_id: str | None
    created_at: datetime


@dataclass
class OptimizationOutcome:
    task_id: str
    task_type: str
    arm_id: str | None = None
    content_id: str | None = None
    result: dict[str, Any] = field(default_factory=dict)


def default_arms(version: str) -> list[BanditArm]:
    return [
        BanditArm(
            id="aggressive_cta",
            name="Aggressive Call-to-Action",
            parameters={"cta_strength": "high", "urgency": True},
            features=[1, 0, 0, 0.8, 0.7],
            version=version,
        ),
        BanditArm(
            id="subtle_engagement",
            name="Subtle Engagement",
            parameters={"cta_strength": "low", "emotional": True},
            features=[0, 1, 0, 0.3, 0.9],
            version=version,
        ),
        BanditArm(
            id="hashtag_heavy",
            name="Hashtag Heavy Strategy",
            parameters={"hashtag_count": "high", "trending": True},
            features=[0, 0, 1, 0.9, 0.4],
            version=version,
        ),
        BanditArm(
            id="minimal_clean",
            name="Minimal Clean Approach",
            parameters={"hashtag_count": "low", "clean": True},
            features=[0, 0, 0, 0.1, 0.8],
            version=version,
        ),
    ]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class OptimizationAgent:
    """Runs content-optimization tasks against a contextual bandit.

    Parameters
    ----------
    bandit : ContextualBandit
        Strategy selector and learner.
    content_service : ContentService | None
        Content-generation collaborator; ``NullContentService`` by default.
    pending : BoundedCache | None
        Pending optimizations awaiting a reward, keyed by content id (or task id).
    clock : Callable[[], datetime]
        Source of timestamps for contexts and version strings.
    metrics : MetricsSink | None
        Counter/timer sink.
    """

    def __init__(
        self,
        bandit: ContextualBandit,
        content_service: ContentService | None = None,
        pending: BoundedCache[str, PendingOptimization] | None = None,
        clock: Callable[[], datetime] = _utcnow,
        metrics: MetricsSink | None = None,
    ) -> None:
        self.bandit = bandit
        self.content_service = content_service or NullContentService()
        self.pending = pending if pending is not None else BoundedCache(maxsize=10_000)
        self.clock = clock
        self.metrics = metrics or NullMetrics()
        self.is_active = False
        self.current_task: AgentTask | None = None
        self.performance_score = INITIAL_PERFORMANCE
        self.model_version = f"v{int(clock().timestamp() * 1000)}"

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize_default_arms(self) -> None:
        for arm in default_arms(self.model_version):
            if arm.id not in self.bandit.arms:
                await self.bandit.add_arm(arm)

    async def start(self) -> None:
        """Restore bandit state, register any missing default arms and activate."""
        await self.bandit.load_from_persistence()
        await self.initialize_default_arms()
        self.is_active = True
        logger.info("Optimization agent started with %d arms", len(self.bandit.arms))

    async def stop(self) -> None:
        self.is_active = False
        self.current_task = None
        logger.info("Optimization agent stopped")

    # ------------------------------------------------------------------
    # Task dispatch
    # ------------------------------------------------------------------

    async def execute_task(self, task: AgentTask) -> OptimizationOutcome:
        """Run one task.

        Raises
        ------
        AgentInactiveError
            The agent has not been started.
        ValidationError
            The task parameters do not describe a valid bandit context.  The
            performance score is left untouched.
        """
        if not self.is_active:
            raise AgentInactiveError("Optimization agent is not active")

        self.current_task = task
        logger.info("Executing task %s (%s)", task.task_id, task.type)
        try:
            if isinstance(task, OptimizeContentTask):
                outcome = await self.optimize_content(task)
            elif isinstance(task, UpdateOptimizationModelsTask):
                outcome = await self.update_optimization_models(task)
            elif isinstance(task, GenerateVariationsTask):
                outcome = await self.generate_variations(task)
            else:
                assert_never(task)
        except ValidationError:
            logger.warning("Rejected task %s (%s): invalid parameters", task.task_id, task.type)
            raise
        except Exception:
            self.performance_score = max(MIN_PERFORMANCE, self.performance_score - FAILURE_PENALTY)
            logger.exception("Task %s (%s) failed", task.task_id, task.type)
            raise
        finally:
            self.current_task = None

        self.performance_score = min(1.0, self.performance_score + SUCCESS_BONUS[task.type])
        return outcome

    async def optimize_content(self, task: OptimizeContentTask) -> OptimizationOutcome:
        with timed(self.metrics, "optimize_content"):
            context = self.build_context(task)
            arm_id = await self.bandit.select_arm(context)
            result = await self.content_service.optimize_content(
                caption=task.base_content.caption,
                hashtags=task.base_content.hashtags,
                platform=task.platform,
                strategy=self.bandit.arms[arm_id],
                parameters=task.parameters,
            )

            key = task.content_id or task.task_id
            self.pending.set(
                key,
                PendingOptimization(
                    arm_id=arm_id,
                    context=context,
                    task_id=task.task_id,
                    content_id=task.content_id,
                    created_at=self.clock(),
                ),
            )
        logger.info("Selected strategy %s for %s", arm_id, key)
        return OptimizationOutcome(
            task_id=task.task_id,
            task_type=task.type,
            arm_id=arm_id,
            content_id=task.content_id,
            result=result,
        )

    async def update_optimization_models(
        self, task: UpdateOptimizationModelsTask
    ) -> OptimizationOutcome:
        await self.content_service.update_optimization_patterns()
        return OptimizationOutcome(task_id=task.task_id, task_type=task.type)

    async def generate_variations(self, task: GenerateVariationsTask) -> OptimizationOutcome:
        """Build variant sets for each supported focus and let the bandit pick among them."""
        draft = ContentDraft(
            caption=task.base_content.caption,
            hashtags=task.base_content.hashtags,
            platform=task.platform,
        )
        variations: dict[str, list[dict[str, Any]]] = {}
        candidates: list[Variant] = []
        for focus in task.focus:
            variation_type = _FOCUS_TO_VARIATION.get(focus)
            if variation_type is None:
                logger.debug("No variation generator for focus %s", focus.value)
                continue
            variants = await self.content_service.generate_variations(draft, variation_type)
            variations[variation_type.value] = [v.model_dump() for v in variants]
            candidates.extend(variants)

        selected = await self.select_content_variation(candidates, task) if candidates else None
        return OptimizationOutcome(
            task_id=task.task_id,
            task_type=task.type,
            result={"variations": variations, "selected": selected},
        )

    async def select_content_variation(
        self, variations: list[Variant], task: GenerateVariationsTask
    ) -> str:
        """Return the variant whose id matches the arm the bandit picks for this task.

        Rule-based variations carry their own ids rather than strategy arm ids,
        so they resolve to the first variant.  The arm pick is still recorded
        in the bandit's selection cache.
        """
        if len(variations) == 1:
            return variations[0].id
        arm_id = await self.bandit.select_arm(self.build_context(task))
        for variant in variations:
            if variant.id == arm_id:
                return variant.id
        return variations[0].id

    # ------------------------------------------------------------------
    # Rewards
    # ------------------------------------------------------------------

    async def record_content_reward(
        self,
        content_id: str,
        engagement: EngagementMetrics,
        context: BanditContext | None = None,
        arm_id: str | None = None,
    ) -> float:
        """Feed observed engagement for ``content_id`` back to the bandit.

        Missing ``context`` or ``arm_id`` are taken from the pending record
        left by ``optimize_content``.

        Returns
        -------
        float
            The normalized reward applied, within [0, 1].

        Raises
        ------
        NotFoundError
            Neither explicit arguments nor a pending record identify the arm
            and context.
        """
        pending = self.pending.get(content_id)
        if context is None or arm_id is None:
            if pending is None:
                raise NotFoundError(f"No pending optimization for content {content_id}")
            context = context or pending.context
            arm_id = arm_id or pending.arm_id

        reward = calculate_normalized_reward(engagement, context.platform)
        await self.bandit.update_reward(
            arm_id,
            context,
            reward,
            metadata={
                "content_id": content_id,
                "engagement": engagement.model_dump(),
                "model_version": self.model_version,
            },
        )
        if pending is not None:
            self.pending.pop(content_id)
        logger.info("Recorded reward %.3f for arm %s and content %s", reward, arm_id, content_id)
        return reward

    # ------------------------------------------------------------------
    # Context and reporting
    # ------------------------------------------------------------------

    def build_context(self, task: OptimizeContentTask | GenerateVariationsTask) -> BanditContext:
        """Bandit context for a task; free-form parameters are validated here.

        Raises
        ------
        ValidationError
            A parameter (``content_type``, ``historical_engagement`` ...) has
            the wrong type or an unknown value.
        """
        now = self.clock()
        params = task.parameters
        try:
            return BanditContext.model_validate({
                "platform": task.platform,
                "content_type": params.get("content_type", ContentType.text),
                "audience_segment": params.get("audience_segment", "general"),
                "time_of_day": now.hour,
                "day_of_week": now.isoweekday() % 7,
                "historical_engagement": params.get("historical_engagement", 0),
                "content_length": len(task.base_content.caption),
                "has_hashtags": bool(task.base_content.hashtags),
                "has_thumbnail": bool(params.get("thumbnail_url")),
                "subject_id": params.get("user_id", "anonymous"),
            })
        except pydantic.ValidationError as exc:
            raise ValidationError(f"Invalid task parameters: {exc}") from exc

    def get_status(self) -> str:
        if not self.is_active:
            return "idle"
        if self.performance_score < ERROR_PERFORMANCE:
            return "error"
        return "active" if self.current_task is not None else "idle"

    def get_performance(self) -> float:
        return self.performance_score

    def get_current_task(self) -> str | None:
        if self.current_task is None:
            return None
        return f"{self.current_task.type} for niche: {self.current_task.niche or 'N/A'}"

    def deploy_model_version(self, version: str) -> None:
        self.model_version = version
        logger.info("Deployed model version %s", version)

    def get_bandit_metrics(self) -> dict[str, Any]:
        return self.bandit.get_metrics()

    def get_arm_performance(self) -> list[dict[str, Any]]:
        return self.bandit.get_arm_performance()
