"""SQLAlchemy-backed Experiment Store (PostgreSQL in production, any async dialect works)."""

from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from postlift.models.experiment import ExperimentRow
from postlift.models.outcome import OutcomeRow
from postlift.schemas.experiment import (
    Experiment,
    ExperimentAnalysis,
    ExperimentStatus,
    OutcomeRecord,
    Platform,
    Variant,
)
from postlift.stores.base import ExperimentStore

_EXPERIMENT_COLUMNS = (
    "name",
    "description",
    "platform",
    "status",
    "target_metric",
    "minimum_sample_size",
    "confidence_level",
    "prior_alpha",
    "prior_beta",
    "info_gain",
    "start_date",
    "end_date",
    "owner_id",
    "created_at",
    "updated_at",
)


def _variants_to_json(variants: list[Variant] | list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [
        v.model_dump(mode="json") if isinstance(v, Variant) else Variant.model_validate(v).model_dump(mode="json")
        for v in variants
    ]


def _row_to_experiment(row: ExperimentRow) -> Experiment:
    return Experiment(
        id=row.id,
        name=row.name,
        description=row.description or "",
        platform=row.platform,
        status=row.status,
        variants=[Variant.model_validate(v) for v in row.variants or []],
        start_date=row.start_date,
        end_date=row.end_date,
        target_metric=row.target_metric,
        minimum_sample_size=row.minimum_sample_size,
        confidence_level=row.confidence_level,
        prior_alpha=row.prior_alpha,
        prior_beta=row.prior_beta,
        info_gain=row.info_gain,
        owner_id=row.owner_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_outcome(row: OutcomeRow) -> OutcomeRecord:
    return OutcomeRecord(
        experiment_id=row.experiment_id,
        variant_id=row.variant_id,
        subject_id=row.subject_id,
        metric_value=row.metric_value,
        conversion=row.conversion_event,
        recorded_at=row.recorded_at,
        metadata=row.extra or {},
    )


class SqlExperimentStore(ExperimentStore):
    """Experiment store over an ``async_sessionmaker``.

    Parameters
    ----------
    sessionmaker : async_sessionmaker
        Factory producing ``AsyncSession`` objects; each store call runs in
        its own transaction.
    """

    def __init__(self, sessionmaker: async_sessionmaker) -> None:
        self.sessionmaker = sessionmaker

    async def _insert(self, experiment: Experiment) -> None:
        row = ExperimentRow(
            id=experiment.id,
            variants=_variants_to_json(experiment.variants),
            **{col: getattr(experiment, col) for col in _EXPERIMENT_COLUMNS},
        )
        async with self.sessionmaker() as session, session.begin():
            session.add(row)

    async def _update(self, experiment_id: str, fields: dict[str, Any]) -> None:
        async with self.sessionmaker() as session, session.begin():
            row = await session.get(ExperimentRow, experiment_id)
            if row is None:
                raise LookupError(f"Experiment {experiment_id} not found")
            for field, value in fields.items():
                if field == "variants":
                    row.variants = _variants_to_json(value)
                elif field in _EXPERIMENT_COLUMNS and field != "created_at":
                    setattr(row, field, value)

    async def _get_by_id(self, experiment_id: str) -> Experiment | None:
        async with self.sessionmaker() as session:
            row = await session.get(ExperimentRow, experiment_id)
            return _row_to_experiment(row) if row is not None else None

    async def _list(
        self,
        platform: Platform | None,
        status: ExperimentStatus | None,
        owner_id: str | None,
    ) -> list[Experiment]:
        query = select(ExperimentRow)
        if platform is not None:
            query = query.where(ExperimentRow.platform == platform)
        if status is not None:
            query = query.where(ExperimentRow.status == status)
        if owner_id is not None:
            query = query.where(ExperimentRow.owner_id == owner_id)
        query = query.order_by(ExperimentRow.created_at.desc())
        async with self.sessionmaker() as session:
            result = await session.execute(query)
            return [_row_to_experiment(row) for row in result.scalars().all()]

    async def _insert_outcome(self, record: OutcomeRecord) -> None:
        row = OutcomeRow(
            experiment_id=record.experiment_id,
            variant_id=record.variant_id,
            subject_id=record.subject_id,
            metric_value=record.metric_value,
            conversion_event=record.conversion,
            extra=record.metadata,
            recorded_at=record.recorded_at,
        )
        async with self.sessionmaker() as session, session.begin():
            session.add(row)

    async def _list_outcomes(self, experiment_id: str) -> list[OutcomeRecord]:
        query = (
            select(OutcomeRow)
            .where(OutcomeRow.experiment_id == experiment_id)
            .order_by(OutcomeRow.recorded_at)
        )
        async with self.sessionmaker() as session:
            result = await session.execute(query)
            return [_row_to_outcome(row) for row in result.scalars().all()]

    async def _update_analysis_snapshot(
        self, experiment_id: str, analysis: ExperimentAnalysis
    ) -> None:
        winner = analysis.winning_variant
        significance = (analysis.probabilities or {}).get(winner, 0.0) if winner else 0.0
        async with self.sessionmaker() as session, session.begin():
            row = await session.get(ExperimentRow, experiment_id)
            if row is None:
                raise LookupError(f"Experiment {experiment_id} not found")
            row.results = analysis.model_dump(mode="json")
            row.winning_variant = winner
            row.statistical_significance = significance
            row.info_gain = analysis.information_gain
