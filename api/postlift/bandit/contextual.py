"""Contextual bandit with one online linear reward model per arm.

Selection is Thompson-style: for each arm draw
``N(dot(w, x), exploration * confidence)`` and take the argmax.  After a
reward arrives the arm's weights take one normalized gradient step::

    error = reward - dot(w, x)
    w    += error * x / (n + regularization)
    n    += 1
    confidence = 1 / sqrt(n)

Recent selections for an identical context are served from a short-lived
cache, bypassed at random so cached contexts keep exploring.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import math
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import numpy as np

from postlift.bandit.features import extract_features
from postlift.bandit.persistence import BanditStore
from postlift.core.cache import BoundedCache
from postlift.core.exceptions import NotFoundError, ValidationError
from postlift.core.metrics import MetricsSink, NullMetrics, safe_increment, timed
from postlift.schemas.bandit import ArmWeights, BanditArm, BanditContext, BanditReward
from postlift.stats.primitives import sample_normal

logger = logging.getLogger(__name__)

INITIAL_CONFIDENCE = 0.1


def context_key(context: BanditContext) -> str:
    """Stable selection-cache key: sha256 of the context's canonical JSON."""
    payload = context.model_dump_json()
    return "selection:" + hashlib.sha256(payload.encode("utf-8")).hexdigest()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ContextualBandit:
    """Per-arm online linear regression with normal exploration.

    Parameters
    ----------
    dimension : int
        Length of the context feature vector and of every weight vector.
    exploration : float
        Scales the sampling variance at selection time.
    regularization : float
        Added to the example count in the update step size.
    store : BanditStore | None
        Persistence for arms, weights and the reward log.  Without one the
        bandit is memory-only.
    selection_cache : BoundedCache | None
        Cache of recent selections keyed by context.
    cache_bypass_probability : float
        Probability of ignoring a cached selection.
    rng : np.random.Generator | None
        Randomness for exploration and cache bypass.
    metrics : MetricsSink | None
        Counter/timer sink.
    """

    def __init__(
        self,
        dimension: int = 20,
        exploration: float = 1.0,
        regularization: float = 1.0,
        store: BanditStore | None = None,
        selection_cache: BoundedCache[str, str] | None = None,
        cache_bypass_probability: float = 0.1,
        rng: np.random.Generator | None = None,
        metrics: MetricsSink | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if dimension < 1:
            raise ValueError("dimension must be positive")
        if not 0 <= cache_bypass_probability <= 1:
            raise ValueError("cache_bypass_probability must be within [0, 1]")
        self.dimension = dimension
        self.exploration = exploration
        self.regularization = regularization
        self.store = store
        self.selection_cache = (
            selection_cache if selection_cache is not None else BoundedCache(maxsize=4096, ttl=60.0)
        )
        self.cache_bypass_probability = cache_bypass_probability
        self.rng = rng if rng is not None else np.random.default_rng()
        self.metrics = metrics or NullMetrics()
        self.clock = clock

        self.arms: dict[str, BanditArm] = {}
        self.weights: dict[str, ArmWeights] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    # ------------------------------------------------------------------
    # Arms
    # ------------------------------------------------------------------

    async def add_arm(self, arm: BanditArm) -> ArmWeights:
        """Register ``arm`` with zero weights; persistence is best-effort."""
        weights = ArmWeights(
            weights=[0.0] * self.dimension,
            confidence=INITIAL_CONFIDENCE,
            training_examples=0,
            last_updated=self.clock(),
        )
        self.arms[arm.id] = arm
        self.weights[arm.id] = weights
        if self.store is not None:
            await self.store.put_arm(arm)
            await self.store.put_weights(arm.id, weights)
        return weights

    def extract_features(self, context: BanditContext) -> np.ndarray:
        return extract_features(context, self.dimension)

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    async def select_arm(self, context: BanditContext) -> str:
        """Choose an arm for ``context``.

        Raises
        ------
        NotFoundError
            No arm is registered.
        """
        if not self.arms:
            raise NotFoundError("No bandit arms registered")

        with timed(self.metrics, "select_arm"):
            key = context_key(context)
            cached = self.selection_cache.get(key)
            if (
                cached is not None
                and cached in self.arms
                and self.rng.random() >= self.cache_bypass_probability
            ):
                safe_increment(self.metrics, "selection_cache_hits")
                return cached

            x = self.extract_features(context)
            best_arm: str | None = None
            best_score = -math.inf
            for arm_id in self.arms:
                model = self.weights.get(arm_id)
                if model is None:
                    continue
                mean = float(np.dot(model.weights, x))
                score = sample_normal(mean, self.exploration * model.confidence, self.rng)
                if score > best_score:
                    best_arm, best_score = arm_id, score

            if best_arm is None:
                arm_ids = list(self.arms)
                best_arm = arm_ids[int(self.rng.integers(len(arm_ids)))]

            self.selection_cache.set(key, best_arm)

        safe_increment(self.metrics, "arm_selections", {"arm_id": best_arm})
        return best_arm

    # ------------------------------------------------------------------
    # Learning
    # ------------------------------------------------------------------

    async def update_reward(
        self,
        arm_id: str,
        context: BanditContext,
        reward: float,
        metadata: dict[str, Any] | None = None,
    ) -> ArmWeights:
        """Apply one observed reward to ``arm_id``'s linear model.

        Raises
        ------
        NotFoundError
            ``arm_id`` is not registered.
        ValidationError
            ``reward`` is not a finite number within [0, 1].
        """
        if arm_id not in self.arms or arm_id not in self.weights:
            raise NotFoundError(f"Unknown bandit arm {arm_id}")
        if not math.isfinite(reward) or not 0 <= reward <= 1:
            raise ValidationError(f"Reward must be within [0, 1] (got {reward})")

        lock = self._locks.setdefault(arm_id, asyncio.Lock())
        async with lock:
            with timed(self.metrics, "update_reward"):
                current = self.weights[arm_id]
                x = self.extract_features(context)
                w = np.asarray(current.weights, dtype=float)
                error = reward - float(np.dot(w, x))
                w = w + error * x / (current.training_examples + self.regularization)
                n = current.training_examples + 1
                updated = ArmWeights(
                    weights=w.tolist(),
                    confidence=1.0 / math.sqrt(n),
                    training_examples=n,
                    last_updated=self.clock(),
                )
                self.weights[arm_id] = updated

            if self.store is not None:
                await self.store.put_weights(arm_id, updated)
                await self.store.append_reward_log(
                    BanditReward(
                        arm_id=arm_id,
                        context=context,
                        reward=reward,
                        timestamp=updated.last_updated,
                        metadata=metadata or {},
                    )
                )

        safe_increment(self.metrics, "reward_updates", {"arm_id": arm_id})
        return updated

    # ------------------------------------------------------------------
    # Persistence and reporting
    # ------------------------------------------------------------------

    async def load_from_persistence(self) -> tuple[int, int]:
        """Restore arms and weights from the store; returns ``(arms, weight_sets)`` loaded."""
        if self.store is None:
            return (0, 0)
        arms = await self.store.list_arms()
        weights = await self.store.list_weights()
        self.arms.update(arms)
        for arm_id, model in weights.items():
            if len(model.weights) != self.dimension:
                logger.warning(
                    "Ignoring stored weights for %s: dimension %d != %d",
                    arm_id,
                    len(model.weights),
                    self.dimension,
                )
                continue
            self.weights[arm_id] = model
        logger.info("Loaded %d arms and %d weight sets", len(arms), len(weights))
        return (len(arms), len(weights))

    def get_metrics(self) -> dict[str, Any]:
        models = list(self.weights.values())
        return {
            "arm_count": len(self.arms),
            "total_training_examples": sum(m.training_examples for m in models),
            "average_confidence": (
                sum(m.confidence for m in models) / len(models) if models else 0.0
            ),
        }

    def get_arm_performance(self) -> list[dict[str, Any]]:
        """Per-arm summary; ``expected_reward`` is the mean absolute weight."""
        return [
            {
                "arm_id": arm_id,
                "expected_reward": float(np.mean(np.abs(model.weights))) if model.weights else 0.0,
                "confidence": model.confidence,
                "examples": model.training_examples,
            }
            for arm_id, model in self.weights.items()
        ]

    async def shutdown(self) -> None:
        if self.store is not None:
            await self.store.close()
