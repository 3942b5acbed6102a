"""Experiment Store Adapter contract.

Concrete stores implement the underscore-prefixed coroutines and may raise
anything their backend raises.  The public methods apply the caller's
``Durability`` in one place: required calls surface failures as
``PersistenceError`` and best-effort calls log and return a neutral value.
"""

from __future__ import annotations

import abc
import logging
from typing import Any

from postlift.core.durability import Durability, guarded
from postlift.schemas.experiment import (
    Experiment,
    ExperimentAnalysis,
    ExperimentStatus,
    OutcomeRecord,
    Platform,
)

logger = logging.getLogger(__name__)


class ExperimentStore(abc.ABC):
    """CRUD-with-filter persistence for experiments, outcomes and analysis snapshots."""

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def insert(
        self, experiment: Experiment, durability: Durability = Durability.required
    ) -> bool:
        async def call() -> bool:
            await self._insert(experiment)
            return True

        return await guarded("insert experiment", call, durability, False, logger)

    async def update(
        self,
        experiment_id: str,
        fields: dict[str, Any],
        durability: Durability = Durability.best_effort,
    ) -> bool:
        async def call() -> bool:
            await self._update(experiment_id, fields)
            return True

        return await guarded("update experiment", call, durability, False, logger)

    async def get_by_id(
        self, experiment_id: str, durability: Durability = Durability.best_effort
    ) -> Experiment | None:
        return await guarded(
            "get experiment", lambda: self._get_by_id(experiment_id), durability, None, logger
        )

    async def list(
        self,
        platform: Platform | None = None,
        status: ExperimentStatus | None = None,
        owner_id: str | None = None,
        durability: Durability = Durability.best_effort,
    ) -> list[Experiment]:
        return await guarded(
            "list experiments",
            lambda: self._list(platform, status, owner_id),
            durability,
            [],
            logger,
        )

    async def insert_outcome(
        self, record: OutcomeRecord, durability: Durability = Durability.best_effort
    ) -> bool:
        async def call() -> bool:
            await self._insert_outcome(record)
            return True

        return await guarded("insert outcome", call, durability, False, logger)

    async def list_outcomes(
        self, experiment_id: str, durability: Durability = Durability.best_effort
    ) -> list[OutcomeRecord] | None:
        """Outcomes for an experiment; ``None`` when a best-effort read failed."""
        return await guarded(
            "list outcomes", lambda: self._list_outcomes(experiment_id), durability, None, logger
        )

    async def update_analysis_snapshot(
        self,
        experiment_id: str,
        analysis: ExperimentAnalysis,
        durability: Durability = Durability.best_effort,
    ) -> bool:
        async def call() -> bool:
            await self._update_analysis_snapshot(experiment_id, analysis)
            return True

        return await guarded("store analysis snapshot", call, durability, False, logger)

    # ------------------------------------------------------------------
    # Backend hooks
    # ------------------------------------------------------------------

    @abc.abstractmethod
    async def _insert(self, experiment: Experiment) -> None: ...

    @abc.abstractmethod
    async def _update(self, experiment_id: str, fields: dict[str, Any]) -> None: ...

    @abc.abstractmethod
    async def _get_by_id(self, experiment_id: str) -> Experiment | None: ...

    @abc.abstractmethod
    async def _list(
        self,
        platform: Platform | None,
        status: ExperimentStatus | None,
        owner_id: str | None,
    ) -> list[Experiment]: ...

    @abc.abstractmethod
    async def _insert_outcome(self, record: OutcomeRecord) -> None: ...

    @abc.abstractmethod
    async def _list_outcomes(self, experiment_id: str) -> list[OutcomeRecord]: ...

    @abc.abstractmethod
    async def _update_analysis_snapshot(
        self, experiment_id: str, analysis: ExperimentAnalysis
    ) -> None: ...
