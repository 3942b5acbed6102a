from __future__ import annotations

from typing import Any

from postlift.schemas.experiment import (
    Experiment,
    ExperimentAnalysis,
    ExperimentStatus,
    OutcomeRecord,
    Platform,
)
from postlift.stores.base import ExperimentStore


class InMemoryExperimentStore(ExperimentStore):
    """Dictionary-backed store for tests and single-process deployments."""

    def __init__(self) -> None:
        self.experiments: dict[str, Experiment] = {}
        self.outcomes: dict[str, list[OutcomeRecord]] = {}
        self.snapshots: dict[str, ExperimentAnalysis] = {}

    async def _insert(self, experiment: Experiment) -> None:
        if experiment.id in self.experiments:
            raise KeyError(f"Experiment {experiment.id} already exists")
        self.experiments[experiment.id] = experiment.model_copy(deep=True)

    async def _update(self, experiment_id: str, fields: dict[str, Any]) -> None:
        current = self.experiments[experiment_id]
        merged = {**current.model_dump(), **fields, "id": experiment_id}
        self.experiments[experiment_id] = Experiment.model_validate(merged)

    async def _get_by_id(self, experiment_id: str) -> Experiment | None:
        experiment = self.experiments.get(experiment_id)
        return experiment.model_copy(deep=True) if experiment else None

    async def _list(
        self,
        platform: Platform | None,
        status: ExperimentStatus | None,
        owner_id: str | None,
    ) -> list[Experiment]:
        results = [
            e.model_copy(deep=True)
            for e in self.experiments.values()
            if (platform is None or e.platform == platform)
            and (status is None or e.status == status)
            and (owner_id is None or e.owner_id == owner_id)
        ]
        return sorted(results, key=lambda e: e.created_at, reverse=True)

    async def _insert_outcome(self, record: OutcomeRecord) -> None:
        self.outcomes.setdefault(record.experiment_id, []).append(record)

    async def _list_outcomes(self, experiment_id: str) -> list[OutcomeRecord]:
        return list(self.outcomes.get(experiment_id, []))

    async def _update_analysis_snapshot(
        self, experiment_id: str, analysis: ExperimentAnalysis
    ) -> None:
        self.snapshots[experiment_id] = analysis
        if experiment_id in self.experiments:
            self.experiments[experiment_id] = self.experiments[experiment_id].model_copy(
                update={"info_gain": analysis.information_gain}
            )
