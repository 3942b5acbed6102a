"""Bandit Persistence Adapter.

Arms and weights are keyed by arm id; rewards go to an append-only audit
log.  As with the experiment store, concrete adapters implement the
underscore-prefixed coroutines and the base class applies ``Durability``.
"""

from __future__ import annotations

import abc
import logging

import redis.asyncio as redis

from postlift.core.durability import Durability, guarded
from postlift.schemas.bandit import ArmWeights, BanditArm, BanditReward

logger = logging.getLogger(__name__)

ARMS_KEY = "bandit:arms"
WEIGHTS_KEY = "bandit:weights"
REWARDS_KEY = "bandit:rewards"


class BanditStore(abc.ABC):
    """Key-value persistence for bandit arms, weights and the reward log."""

    async def get_arm(
        self, arm_id: str, durability: Durability = Durability.best_effort
    ) -> BanditArm | None:
        return await guarded("get arm", lambda: self._get_arm(arm_id), durability, None, logger)

    async def put_arm(
        self, arm: BanditArm, durability: Durability = Durability.best_effort
    ) -> bool:
        async def call() -> bool:
            await self._put_arm(arm)
            return True

        return await guarded("put arm", call, durability, False, logger)

    async def get_weights(
        self, arm_id: str, durability: Durability = Durability.best_effort
    ) -> ArmWeights | None:
        return await guarded(
            "get weights", lambda: self._get_weights(arm_id), durability, None, logger
        )

    async def put_weights(
        self, arm_id: str, weights: ArmWeights, durability: Durability = Durability.best_effort
    ) -> bool:
        async def call() -> bool:
            await self._put_weights(arm_id, weights)
            return True

        return await guarded("put weights", call, durability, False, logger)

    async def list_arms(
        self, durability: Durability = Durability.best_effort
    ) -> dict[str, BanditArm]:
        return await guarded("list arms", self._list_arms, durability, {}, logger)

    async def list_weights(
        self, durability: Durability = Durability.best_effort
    ) -> dict[str, ArmWeights]:
        return await guarded("list weights", self._list_weights, durability, {}, logger)

    async def append_reward_log(
        self, reward: BanditReward, durability: Durability = Durability.best_effort
    ) -> bool:
        async def call() -> bool:
            await self._append_reward_log(reward)
            return True

        return await guarded("append reward", call, durability, False, logger)

    async def close(self) -> None:
        """Release backend connections.  No-op by default."""

    # ------------------------------------------------------------------
    # Backend hooks
    # ------------------------------------------------------------------

    @abc.abstractmethod
    async def _get_arm(self, arm_id: str) -> BanditArm | None: ...

    @abc.abstractmethod
    async def _put_arm(self, arm: BanditArm) -> None: ...

    @abc.abstractmethod
    async def _get_weights(self, arm_id: str) -> ArmWeights | None: ...

    @abc.abstractmethod
    async def _put_weights(self, arm_id: str, weights: ArmWeights) -> None: ...

    @abc.abstractmethod
    async def _list_arms(self) -> dict[str, BanditArm]: ...

    @abc.abstractmethod
    async def _list_weights(self) -> dict[str, ArmWeights]: ...

    @abc.abstractmethod
    async def _append_reward_log(self, reward: BanditReward) -> None: ...


class InMemoryBanditStore(BanditStore):
    """Process-local store; also the reference backend for tests."""

    def __init__(self) -> None:
        self.arms: dict[str, BanditArm] = {}
        self.weights: dict[str, ArmWeights] = {}
        self.rewards: list[BanditReward] = []

    async def _get_arm(self, arm_id: str) -> BanditArm | None:
        arm = self.arms.get(arm_id)
        return arm.model_copy(deep=True) if arm is not None else None

    async def _put_arm(self, arm: BanditArm) -> None:
        self.arms[arm.id] = arm.model_copy(deep=True)

    async def _get_weights(self, arm_id: str) -> ArmWeights | None:
        weights = self.weights.get(arm_id)
        return weights.model_copy(deep=True) if weights is not None else None

    async def _put_weights(self, arm_id: str, weights: ArmWeights) -> None:
        self.weights[arm_id] = weights.model_copy(deep=True)

    async def _list_arms(self) -> dict[str, BanditArm]:
        return {k: v.model_copy(deep=True) for k, v in self.arms.items()}

    async def _list_weights(self) -> dict[str, ArmWeights]:
        return {k: v.model_copy(deep=True) for k, v in self.weights.items()}

    async def _append_reward_log(self, reward: BanditReward) -> None:
        self.rewards.append(reward.model_copy(deep=True))


class RedisBanditStore(BanditStore):
    """Redis backend: two hashes keyed by arm id plus a reward list.

    Values are the pydantic models' JSON encodings.

    Parameters
    ----------
    client : redis.asyncio.Redis
        Connected client.  Use :meth:`from_url` to build one from settings.
    """

    def __init__(self, client: redis.Redis) -> None:
        self.redis = client

    @classmethod
    def from_url(cls, url: str) -> RedisBanditStore:
        return cls(redis.from_url(url, decode_responses=True))

    async def _get_arm(self, arm_id: str) -> BanditArm | None:
        raw = await self.redis.hget(ARMS_KEY, arm_id)
        return BanditArm.model_validate_json(raw) if raw is not None else None

    async def _put_arm(self, arm: BanditArm) -> None:
        await self.redis.hset(ARMS_KEY, arm.id, arm.model_dump_json())

    async def _get_weights(self, arm_id: str) -> ArmWeights | None:
        raw = await self.redis.hget(WEIGHTS_KEY, arm_id)
        return ArmWeights.model_validate_json(raw) if raw is not None else None

    async def _put_weights(self, arm_id: str, weights: ArmWeights) -> None:
        await self.redis.hset(WEIGHTS_KEY, arm_id, weights.model_dump_json())

    async def _list_arms(self) -> dict[str, BanditArm]:
        raw = await self.redis.hgetall(ARMS_KEY)
        return {arm_id: BanditArm.model_validate_json(data) for arm_id, data in raw.items()}

    async def _list_weights(self) -> dict[str, ArmWeights]:
        raw = await self.redis.hgetall(WEIGHTS_KEY)
        return {arm_id: ArmWeights.model_validate_json(data) for arm_id, data in raw.items()}

    async def _append_reward_log(self, reward: BanditReward) -> None:
        await self.redis.rpush(REWARDS_KEY, reward.model_dump_json())

    async def close(self) -> None:
        await self.redis.aclose()
