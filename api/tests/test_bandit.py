"""Contextual bandit: features, selection, learning and persistence."""

import asyncio
import math

import numpy as np
import pytest
from conftest import run

from postlift.bandit.contextual import ContextualBandit, context_key
from postlift.bandit.features import extract_features
from postlift.bandit.persistence import BanditStore, InMemoryBanditStore, RedisBanditStore
from postlift.core.cache import BoundedCache
from postlift.core.exceptions import NotFoundError, ValidationError
from postlift.core.metrics import LoggingMetrics
from postlift.schemas.bandit import ArmWeights, BanditArm, BanditContext, ContentType
from postlift.schemas.experiment import Platform
from postlift.services.assignment import fnv1a

CONTEXT = BanditContext(platform=Platform.instagram, content_type=ContentType.text)


def _bandit(**kwargs) -> ContextualBandit:
    kwargs.setdefault("rng", np.random.default_rng(11))
    kwargs.setdefault("cache_bypass_probability", 1.0)
    return ContextualBandit(**kwargs)


def _arm(arm_id: str) -> BanditArm:
    return BanditArm(id=arm_id, name=arm_id.title())


# ======================================================================
# Features
# ======================================================================


class TestFeatures:
    def test_layout(self):
        context = BanditContext(
            platform=Platform.youtube,
            content_type=ContentType.image,
            audience_segment="gen_z",
            time_of_day=12,
            day_of_week=3.5,
            historical_engagement=5000,
            content_length=250,
            has_hashtags=True,
            has_thumbnail=False,
        )
        x = extract_features(context, 20)
        assert x.shape == (20,)
        assert x[:6].tolist() == [0, 0, 0, 1, 0, 0]
        assert x[6:9].tolist() == [0, 1, 0]
        assert x[9] == pytest.approx(0.5)
        assert x[10] == pytest.approx(0.5)
        assert x[11] == 1.0
        assert x[12] == pytest.approx(0.5)
        assert x[13] == 1.0
        assert x[14] == 0.0
        assert x[15] == pytest.approx((fnv1a("gen_z") % 3) / 3)
        assert x[16:].tolist() == [0, 0, 0, 0]

    def test_truncation(self):
        x = extract_features(CONTEXT, 4)
        assert x.tolist() == [0, 1, 0, 0]

    def test_context_key_is_stable(self):
        assert context_key(CONTEXT) == context_key(BanditContext(**CONTEXT.model_dump()))
        assert context_key(CONTEXT) != context_key(CONTEXT.model_copy(update={"time_of_day": 9}))


# ======================================================================
# Selection
# ======================================================================


class TestSelection:
    def test_no_arms(self):
        with pytest.raises(NotFoundError):
            run(_bandit().select_arm(CONTEXT))

    def test_add_arm_initial_weights(self):
        bandit = _bandit(dimension=8)
        weights = run(bandit.add_arm(_arm("a")))
        assert weights.weights == [0.0] * 8
        assert weights.confidence == 0.1
        assert weights.training_examples == 0

    def test_selects_registered_arm(self):
        bandit = _bandit()
        for arm_id in ("a", "b", "c"):
            run(bandit.add_arm(_arm(arm_id)))
        assert run(bandit.select_arm(CONTEXT)) in {"a", "b", "c"}

    def test_cache_hit_without_bypass(self):
        metrics = LoggingMetrics()
        bandit = _bandit(cache_bypass_probability=0.0, metrics=metrics)
        for arm_id in ("a", "b", "c", "d"):
            run(bandit.add_arm(_arm(arm_id)))

        first = run(bandit.select_arm(CONTEXT))
        assert all(run(bandit.select_arm(CONTEXT)) == first for _ in range(20))
        assert metrics.counters["selection_cache_hits"] == 20
        assert metrics.counters["arm_selections"] == 1

    def test_cache_expires(self):
        now = [0.0]
        cache = BoundedCache(maxsize=10, ttl=60.0, clock=lambda: now[0])
        bandit = _bandit(selection_cache=cache, cache_bypass_probability=0.0)
        run(bandit.add_arm(_arm("a")))
        run(bandit.select_arm(CONTEXT))
        assert context_key(CONTEXT) in cache
        now[0] = 61.0
        assert context_key(CONTEXT) not in cache

    def test_selection_without_weights_is_uniform(self):
        bandit = _bandit()
        for arm_id in ("a", "b"):
            run(bandit.add_arm(_arm(arm_id)))
        bandit.weights.clear()
        picks = [run(bandit.select_arm(CONTEXT)) for _ in range(400)]
        assert 120 < picks.count("a") < 280


# ======================================================================
# Learning
# ======================================================================


class TestLearning:
    def test_unknown_arm(self):
        bandit = _bandit()
        with pytest.raises(NotFoundError):
            run(bandit.update_reward("ghost", CONTEXT, 0.5))

    @pytest.mark.parametrize("reward", [-0.1, 1.5, math.nan, math.inf])
    def test_reward_out_of_range(self, reward):
        bandit = _bandit()
        run(bandit.add_arm(_arm("a")))
        with pytest.raises(ValidationError):
            run(bandit.update_reward("a", CONTEXT, reward))

    def test_update_rule(self):
        bandit = _bandit(dimension=20, regularization=1.0)
        run(bandit.add_arm(_arm("a")))
        x = bandit.extract_features(CONTEXT)

        weights = run(bandit.update_reward("a", CONTEXT, 1.0))
        # error = 1 - 0; w = x / (0 + 1)
        assert weights.weights == pytest.approx(x.tolist())
        assert weights.training_examples == 1
        assert weights.confidence == pytest.approx(1.0)

        weights = run(bandit.update_reward("a", CONTEXT, 1.0))
        error = 1.0 - float(np.dot(x, x))
        assert weights.weights == pytest.approx((x + error * x / 2).tolist())
        assert weights.confidence == pytest.approx(1 / math.sqrt(2))

    def test_converges_to_better_arm(self):
        bandit = _bandit()
        run(bandit.add_arm(_arm("a")))
        run(bandit.add_arm(_arm("b")))
        for _ in range(250):
            run(bandit.update_reward("a", CONTEXT, 1.0))
            run(bandit.update_reward("b", CONTEXT, 0.0))

        x = bandit.extract_features(CONTEXT)
        assert float(np.dot(bandit.weights["a"].weights, x)) == pytest.approx(1.0, abs=0.01)
        assert float(np.dot(bandit.weights["b"].weights, x)) == pytest.approx(0.0, abs=0.01)

        picks = [run(bandit.select_arm(CONTEXT)) for _ in range(1000)]
        assert picks.count("a") / len(picks) >= 0.9

    def test_concurrent_updates_are_serialised(self):
        bandit = _bandit()
        run(bandit.add_arm(_arm("a")))

        async def burst():
            await asyncio.gather(*(bandit.update_reward("a", CONTEXT, 0.5) for _ in range(50)))

        run(burst())
        assert bandit.weights["a"].training_examples == 50
        assert bandit.weights["a"].confidence == pytest.approx(1 / math.sqrt(50))

    def test_metrics_summary(self):
        bandit = _bandit()
        run(bandit.add_arm(_arm("a")))
        run(bandit.add_arm(_arm("b")))
        run(bandit.update_reward("a", CONTEXT, 1.0))

        summary = bandit.get_metrics()
        assert summary["arm_count"] == 2
        assert summary["total_training_examples"] == 1
        assert summary["average_confidence"] == pytest.approx((1.0 + 0.1) / 2)

        performance = {p["arm_id"]: p for p in bandit.get_arm_performance()}
        assert performance["b"]["expected_reward"] == 0.0
        assert performance["a"]["expected_reward"] > 0.0
        assert performance["a"]["examples"] == 1


# ======================================================================
# Persistence
# ======================================================================


class FailingBanditStore(InMemoryBanditStore):
    async def _put_weights(self, arm_id, weights):
        raise ConnectionError("redis is down")

    async def _append_reward_log(self, reward):
        raise ConnectionError("redis is down")

    async def _list_arms(self):
        raise ConnectionError("redis is down")


class TestPersistence:
    def test_state_is_persisted(self):
        store = InMemoryBanditStore()
        bandit = _bandit(store=store)
        run(bandit.add_arm(_arm("a")))
        run(bandit.update_reward("a", CONTEXT, 0.8, metadata={"content_id": "post_1"}))

        assert "a" in store.arms
        assert store.weights["a"].training_examples == 1
        [reward] = store.rewards
        assert reward.reward == 0.8
        assert reward.metadata == {"content_id": "post_1"}

    def test_load_from_persistence(self):
        store = InMemoryBanditStore()
        bandit = _bandit(store=store)
        run(bandit.add_arm(_arm("a")))
        run(bandit.add_arm(_arm("b")))
        run(bandit.update_reward("a", CONTEXT, 1.0))

        restored = _bandit(store=store)
        assert run(restored.load_from_persistence()) == (2, 2)
        assert restored.weights["a"].training_examples == 1
        assert set(restored.arms) == {"a", "b"}

    def test_load_skips_wrong_dimension(self):
        store = InMemoryBanditStore()
        run(store.put_arm(_arm("a")))
        run(store.put_weights("a", ArmWeights(weights=[0.0] * 5)))
        bandit = _bandit(store=store, dimension=20)
        run(bandit.load_from_persistence())
        assert "a" in bandit.arms
        assert "a" not in bandit.weights

    def test_store_failures_do_not_block_learning(self):
        bandit = _bandit(store=FailingBanditStore())
        run(bandit.add_arm(_arm("a")))
        weights = run(bandit.update_reward("a", CONTEXT, 1.0))
        assert weights.training_examples == 1
        assert run(bandit.load_from_persistence()) == (0, 0)

    def test_memory_only_bandit(self):
        bandit = _bandit()
        assert run(bandit.load_from_persistence()) == (0, 0)
        run(bandit.shutdown())


class FakeRedis:
    """Just enough of ``redis.asyncio.Redis`` for the bandit store."""

    def __init__(self) -> None:
        self.hashes: dict[str, dict[str, str]] = {}
        self.lists: dict[str, list[str]] = {}
        self.closed = False

    async def hget(self, key, field):
        return self.hashes.get(key, {}).get(field)

    async def hset(self, key, field, value):
        self.hashes.setdefault(key, {})[field] = value

    async def hgetall(self, key):
        return dict(self.hashes.get(key, {}))

    async def rpush(self, key, value):
        self.lists.setdefault(key, []).append(value)

    async def aclose(self):
        self.closed = True


class TestRedisBanditStore:
    def test_round_trip_through_hashes(self):
        client = FakeRedis()
        store = RedisBanditStore(client)
        bandit = _bandit(store=store)
        run(bandit.add_arm(_arm("a")))
        run(bandit.update_reward("a", CONTEXT, 0.4))

        assert set(client.hashes) == {"bandit:arms", "bandit:weights"}
        assert len(client.lists["bandit:rewards"]) == 1
        assert run(store.get_arm("a")).name == "A"
        assert run(store.get_weights("a")).training_examples == 1
        assert run(store.get_weights("missing")) is None

        restored = _bandit(store=RedisBanditStore(client))
        assert run(restored.load_from_persistence()) == (1, 1)
        run(restored.shutdown())
        assert client.closed

    def test_is_a_bandit_store(self):
        assert issubclass(RedisBanditStore, BanditStore)
