import asyncio
from datetime import UTC, datetime, timedelta

import numpy as np
import pytest

from postlift.core.config import Settings
from postlift.core.metrics import LoggingMetrics
from postlift.schemas.experiment import ExperimentCreate, Platform, Variant
from postlift.services.experiments import ExperimentManager
from postlift.stores.memory import InMemoryExperimentStore


class StepClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start: datetime = datetime(2026, 3, 2, 14, 30, tzinfo=UTC)) -> None:
        self.now = start

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


def make_definition(
    weights: tuple[float, ...] = (50, 50),
    minimum_sample_size: int = 30,
    **overrides,
) -> ExperimentCreate:
    ids = [chr(ord("A") + i) for i in range(len(weights))]
    fields = {
        "name": "Caption test",
        "platform": Platform.instagram,
        "variants": [
            Variant(id=vid, name=f"Variant {vid}", weight=w) for vid, w in zip(ids, weights)
        ],
        "minimum_sample_size": minimum_sample_size,
        "owner_id": "owner_1",
    }
    fields.update(overrides)
    return ExperimentCreate(**fields)


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def store() -> InMemoryExperimentStore:
    return InMemoryExperimentStore()


@pytest.fixture
def metrics() -> LoggingMetrics:
    return LoggingMetrics()


@pytest.fixture
def manager(store: InMemoryExperimentStore, metrics: LoggingMetrics) -> ExperimentManager:
    return ExperimentManager(
        store,
        config=Settings(THOMPSON_DRAWS=10_000),
        rng=np.random.default_rng(42),
        metrics=metrics,
        clock=StepClock(),
    )
