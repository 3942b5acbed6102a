"""ExperimentManager: lifecycle, assignment, outcome ingestion and analysis.

The manager owns experiment definitions and talks to an ``ExperimentStore``
for persistence.  Experiments and recent outcomes are kept in bounded
in-memory caches; the store stays the source of truth.
"""

from __future__ import annotations

import logging
import math
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import numpy as np
import pydantic

from postlift.core.cache import BoundedCache
from postlift.core.config import Settings
from postlift.core.config import settings as default_settings
from postlift.core.durability import Durability
from postlift.core.exceptions import NotFoundError, ValidationError
from postlift.core.metrics import MetricsSink, NullMetrics, safe_increment, timed
from postlift.schemas.experiment import (
    AnalysisStatus,
    Experiment,
    ExperimentAnalysis,
    ExperimentCreate,
    ExperimentStatus,
    ExperimentUpdate,
    OutcomeRecord,
    Platform,
    PostMetrics,
    TargetMetric,
    Variant,
    VariantResult,
)
from postlift.services.assignment import assignment_bucket, pick_variant
from postlift.stats.bayesian import BetaBinomial
from postlift.stats.decisions import (
    Decision,
    generate_recommendations,
    t_test_decision,
    thompson_decision,
)
from postlift.stats.frequentist import cohens_d, describe, pooled_t_test
from postlift.stats.thompson import ThompsonSampler
from postlift.stores.base import ExperimentStore

logger = logging.getLogger(__name__)

WEIGHT_TOLERANCE = 0.01
MIN_CONFIDENCE_LEVEL = 0.80
MAX_CONFIDENCE_LEVEL = 0.99

ALLOWED_TRANSITIONS: dict[ExperimentStatus, frozenset[ExperimentStatus]] = {
    ExperimentStatus.draft: frozenset({ExperimentStatus.running, ExperimentStatus.cancelled}),
    ExperimentStatus.running: frozenset(
        {ExperimentStatus.paused, ExperimentStatus.completed, ExperimentStatus.cancelled}
    ),
    ExperimentStatus.paused: frozenset(
        {ExperimentStatus.running, ExperimentStatus.completed, ExperimentStatus.cancelled}
    ),
    ExperimentStatus.completed: frozenset(),
    ExperimentStatus.cancelled: frozenset(),
}

TERMINAL_STATUSES = frozenset({ExperimentStatus.completed, ExperimentStatus.cancelled})

_METRIC_FIELDS: dict[TargetMetric, str] = {
    TargetMetric.engagement_rate: "engagement_rate",
    TargetMetric.likes: "likes",
    TargetMetric.comments: "comments",
    TargetMetric.shares: "shares",
    TargetMetric.views: "views",
}


# ======================================================================
# Validation helpers
# ======================================================================

def validate_experiment(experiment: Experiment | ExperimentCreate) -> None:
    """Check the structural invariants of an experiment definition.

    Raises
    ------
    ValidationError
        On fewer than two variants, duplicate variant ids, weights outside
        0-100 or not summing to 100 (+-0.01), a confidence level outside
        [0.80, 0.99], a non-positive minimum sample size or prior.
    """
    if len(experiment.variants) < 2:
        raise ValidationError("Experiment must have at least 2 variants")

    ids = [v.id for v in experiment.variants]
    if len(set(ids)) != len(ids):
        raise ValidationError("Variant ids must be unique")

    if any(not 0 <= v.weight <= 100 for v in experiment.variants):
        raise ValidationError("Variant weights must be between 0 and 100")

    total_weight = sum(v.weight for v in experiment.variants)
    if abs(total_weight - 100) > WEIGHT_TOLERANCE:
        raise ValidationError(f"Variant weights must sum to 100 (got {total_weight:g})")

    if not MIN_CONFIDENCE_LEVEL <= experiment.confidence_level <= MAX_CONFIDENCE_LEVEL:
        raise ValidationError("Confidence level must be between 0.8 and 0.99")

    if experiment.minimum_sample_size < 1:
        raise ValidationError("Minimum sample size must be at least 1")

    for name in ("prior_alpha", "prior_beta"):
        value = getattr(experiment, name)
        if value is not None and value <= 0:
            raise ValidationError(f"{name} must be positive")


def metric_value(sample: PostMetrics, target_metric: TargetMetric) -> float:
    """Scalar value of ``sample`` for the experiment's target metric."""
    value = float(getattr(sample, _METRIC_FIELDS[target_metric]))
    if not math.isfinite(value):
        raise ValidationError(f"{target_metric.value} must be a finite number")
    return value


def new_experiment_id() -> str:
    return f"exp_{uuid.uuid4().hex[:16]}"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ExperimentManager:
    """Experiment lifecycle, deterministic assignment and Bayesian analysis.

    Parameters
    ----------
    store : ExperimentStore
        Persistence adapter for experiments, outcomes and analysis snapshots.
    config : Settings | None
        Analysis policy (Thompson draw count, stopping thresholds, cache sizes).
    rng : np.random.Generator | None
        Randomness for Thompson sampling.  Seed it for reproducible analyses.
    metrics : MetricsSink | None
        Counter/timer sink.
    experiment_cache, outcome_cache : BoundedCache | None
        Injected caches; bounded LRU caches sized from ``config`` by default.
    clock : Callable[[], datetime]
        Source of timestamps.
    """

    def __init__(
        self,
        store: ExperimentStore,
        config: Settings | None = None,
        rng: np.random.Generator | None = None,
        metrics: MetricsSink | None = None,
        experiment_cache: BoundedCache[str, Experiment] | None = None,
        outcome_cache: BoundedCache[str, dict[str, list[OutcomeRecord]]] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.config = config or default_settings
        self.rng = rng if rng is not None else np.random.default_rng()
        self.metrics = metrics or NullMetrics()
        self.experiments = (
            experiment_cache
            if experiment_cache is not None
            else BoundedCache(maxsize=self.config.EXPERIMENT_CACHE_SIZE)
        )
        self.outcomes = (
            outcome_cache
            if outcome_cache is not None
            else BoundedCache(maxsize=self.config.OUTCOME_CACHE_SIZE)
        )
        self.clock = clock

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def create_experiment(self, definition: ExperimentCreate | dict[str, Any]) -> Experiment:
        """Validate, assign an id, persist (required) and return the new experiment."""
        if not isinstance(definition, ExperimentCreate):
            definition = _parse(ExperimentCreate, definition)

        now = self.clock()
        experiment = Experiment(
            **definition.model_dump(),
            id=new_experiment_id(),
            created_at=now,
            updated_at=now,
        )
        if experiment.status is ExperimentStatus.running and experiment.start_date is None:
            experiment = experiment.model_copy(update={"start_date": now})
        validate_experiment(experiment)

        await self.store.insert(experiment, durability=Durability.required)
        self.experiments.set(experiment.id, experiment)
        safe_increment(self.metrics, "experiments_created", {"platform": experiment.platform.value})
        logger.info("Created experiment %s (%s)", experiment.id, experiment.name)
        return experiment

    async def get_experiment(self, experiment_id: str) -> Experiment | None:
        """Cached experiment, else a best-effort store read (``None`` on failure)."""
        return await self._load(experiment_id, Durability.best_effort)

    async def list_experiments(
        self,
        platform: Platform | None = None,
        status: ExperimentStatus | None = None,
        owner_id: str | None = None,
    ) -> list[Experiment]:
        return await self.store.list(platform=platform, status=status, owner_id=owner_id)

    async def update_experiment(
        self,
        experiment_id: str,
        changes: ExperimentUpdate | dict[str, Any],
    ) -> Experiment:
        """Merge ``changes`` into the stored experiment, re-validate and persist.

        Raises
        ------
        NotFoundError
            The experiment does not exist.
        ValidationError
            The merged experiment violates an invariant or the status change
            is not an allowed transition.
        PersistenceError
            The store could not be read.
        """
        current = await self._load(experiment_id, Durability.required)
        if current is None:
            raise NotFoundError(f"Experiment {experiment_id} not found")

        if isinstance(changes, ExperimentUpdate):
            data = changes.model_dump(exclude_unset=True)
        else:
            data = dict(changes)
        for immutable in ("id", "created_at", "updated_at", "info_gain"):
            data.pop(immutable, None)

        now = self.clock()
        updated = _parse(Experiment, {**current.model_dump(), **data, "updated_at": now})
        _check_transition(current.status, updated.status)

        stamps: dict[str, Any] = {}
        if updated.status is ExperimentStatus.running and updated.start_date is None:
            stamps["start_date"] = now
        if updated.status in TERMINAL_STATUSES and updated.end_date is None:
            stamps["end_date"] = now
        if stamps:
            updated = updated.model_copy(update=stamps)
        validate_experiment(updated)

        await self.store.update(experiment_id, updated.model_dump(exclude={"id", "created_at"}))
        self.experiments.set(experiment_id, updated)
        if updated.status != current.status:
            logger.info(
                "Experiment %s moved %s -> %s",
                experiment_id,
                current.status.value,
                updated.status.value,
            )
        return updated

    async def start_experiment(self, experiment_id: str) -> Experiment:
        return await self.update_experiment(experiment_id, {"status": ExperimentStatus.running})

    async def pause_experiment(self, experiment_id: str) -> Experiment:
        return await self.update_experiment(experiment_id, {"status": ExperimentStatus.paused})

    async def complete_experiment(self, experiment_id: str) -> Experiment:
        return await self.update_experiment(experiment_id, {"status": ExperimentStatus.completed})

    async def cancel_experiment(self, experiment_id: str) -> Experiment:
        return await self.update_experiment(experiment_id, {"status": ExperimentStatus.cancelled})

    # ------------------------------------------------------------------
    # Assignment
    # ------------------------------------------------------------------

    def assign_variant(self, experiment: Experiment, subject_id: str) -> Variant | None:
        """Deterministic variant for ``subject_id``; ``None`` unless the experiment is running."""
        if experiment.status is not ExperimentStatus.running:
            return None
        return pick_variant(experiment.variants, assignment_bucket(subject_id, experiment.id))

    async def assign(self, experiment_id: str, subject_id: str) -> Variant | None:
        experiment = await self.get_experiment(experiment_id)
        if experiment is None:
            return None
        return self.assign_variant(experiment, subject_id)

    # ------------------------------------------------------------------
    # Outcome ingestion
    # ------------------------------------------------------------------

    async def record_outcome(
        self,
        experiment_id: str,
        variant_id: str,
        sample: PostMetrics | dict[str, Any],
        subject_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        """Record one observation for a variant of a running experiment.

        Returns ``False`` (and records nothing) unless the experiment exists
        and is running.  The write itself is best-effort.

        Raises
        ------
        ValidationError
            ``variant_id`` is not a variant of the experiment, or the metric
            value is not finite.
        """
        experiment = await self.get_experiment(experiment_id)
        if experiment is None or experiment.status is not ExperimentStatus.running:
            return False
        if experiment.variant(variant_id) is None:
            raise ValidationError(f"Variant {variant_id} is not part of experiment {experiment_id}")
        if not isinstance(sample, PostMetrics):
            sample = _parse(PostMetrics, sample)

        value = metric_value(sample, experiment.target_metric)
        record = OutcomeRecord(
            experiment_id=experiment_id,
            variant_id=variant_id,
            subject_id=subject_id or experiment.owner_id,
            metric_value=value,
            conversion=value > 0,
            recorded_at=self.clock(),
            metadata={
                "post_id": sample.post_id,
                "platform": sample.platform.value if sample.platform else None,
                "published_at": sample.published_at.isoformat() if sample.published_at else None,
                **(metadata or {}),
            },
        )
        await self.store.insert_outcome(record)

        by_variant = self.outcomes.get(experiment_id)
        if by_variant is None:
            by_variant = {}
            self.outcomes.set(experiment_id, by_variant)
        by_variant.setdefault(variant_id, []).append(record)
        safe_increment(self.metrics, "outcomes_recorded", {"experiment_id": experiment_id})
        return True

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    async def analyze(self, experiment_id: str) -> ExperimentAnalysis | None:
        """Run the full statistical analysis for an experiment.

        Steps:
        1. Load outcomes (store first, outcome cache if the read fails)
        2. Group by variant in stored order
        3. Build a Beta posterior and summary per variant
        4. Decide: insufficient data, two-variant t-test, or Thompson sampling
        5. Attach recommendations
        6. Persist the snapshot (best-effort) and return

        Returns ``None`` for an unknown experiment.
        """
        experiment = await self.get_experiment(experiment_id)
        if experiment is None:
            return None

        with timed(self.metrics, "analyze"):
            # ----------------------------------------------------------
            # 1 & 2. Load and group outcomes
            # ----------------------------------------------------------
            outcomes = await self.store.list_outcomes(experiment_id)
            if outcomes is None:
                logger.warning("Falling back to cached outcomes for %s", experiment_id)
                outcomes = self._cached_outcomes(experiment_id)

            grouped: dict[str, list[OutcomeRecord]] = {v.id: [] for v in experiment.variants}
            for record in outcomes:
                if record.variant_id in grouped:
                    grouped[record.variant_id].append(record)

            # ----------------------------------------------------------
            # 3. Per-variant posteriors
            # ----------------------------------------------------------
            prior = BetaBinomial(
                prior_alpha=experiment.prior_alpha if experiment.prior_alpha is not None else 1.0,
                prior_beta=experiment.prior_beta if experiment.prior_beta is not None else 1.0,
            )
            results: list[VariantResult] = []
            models: list[BetaBinomial] = []
            for variant in experiment.variants:
                records = grouped[variant.id]
                if not records:
                    results.append(
                        VariantResult(
                            variant_id=variant.id,
                            sample_size=0,
                            mean=0.0,
                            standard_deviation=0.0,
                            confidence_interval=(0.0, 0.0),
                        )
                    )
                    models.append(prior)
                    continue

                conversions = sum(1 for r in records if r.conversion)
                model = prior.update(conversions, len(records))
                models.append(model)
                m_mean, m_std = describe([r.metric_value for r in records])
                results.append(
                    VariantResult(
                        variant_id=variant.id,
                        sample_size=len(records),
                        conversions=conversions,
                        conversion_rate=conversions / len(records),
                        mean=model.posterior_mean(),
                        standard_deviation=model.posterior_std(),
                        confidence_interval=model.credible_interval(experiment.confidence_level),
                        metric_mean=m_mean,
                        metric_std=m_std,
                    )
                )

            # ----------------------------------------------------------
            # 4 & 5. Decision and recommendations
            # ----------------------------------------------------------
            decision = self._decide(experiment, results, grouped, models)
            analysis = ExperimentAnalysis(
                experiment_id=experiment_id,
                status=decision.status,
                results=results,
                winning_variant=decision.winning_variant,
                confidence_level=experiment.confidence_level,
                p_value=decision.p_value,
                effect_size=decision.effect_size,
                probabilities=decision.probabilities,
                information_gain=decision.information_gain,
                critical_value=decision.critical_value,
                recommendations=generate_recommendations(decision, experiment.minimum_sample_size),
                analysis_date=self.clock(),
            )

            # ----------------------------------------------------------
            # 6. Persist snapshot
            # ----------------------------------------------------------
            await self.store.update_analysis_snapshot(experiment_id, analysis)
            if decision.information_gain is not None:
                self.experiments.set(
                    experiment_id,
                    experiment.model_copy(update={"info_gain": decision.information_gain}),
                )

        safe_increment(self.metrics, "analyses_run", {"status": analysis.status.value})
        return analysis

    def _decide(
        self,
        experiment: Experiment,
        results: list[VariantResult],
        grouped: dict[str, list[OutcomeRecord]],
        models: list[BetaBinomial],
    ) -> Decision:
        if any(r.sample_size < experiment.minimum_sample_size for r in results):
            return Decision(status=AnalysisStatus.insufficient_data)

        if len(results) == 2:
            first, second = results
            values_a = [r.metric_value for r in grouped[first.variant_id]]
            values_b = [r.metric_value for r in grouped[second.variant_id]]
            test = pooled_t_test(values_a, values_b, experiment.confidence_level)
            return t_test_decision(
                (first.variant_id, second.variant_id),
                (first.metric_mean, second.metric_mean),
                test,
                cohens_d(values_a, values_b),
                experiment.confidence_level,
            )

        sampler = ThompsonSampler(models, self.rng)
        win_rates = sampler.probability_best(n_samples=self.config.THOMPSON_DRAWS)
        probabilities = {r.variant_id: p for r, p in zip(results, win_rates)}
        return thompson_decision(
            probabilities,
            win_probability_threshold=self.config.WIN_PROBABILITY_THRESHOLD,
            info_gain_threshold=self.config.INFO_GAIN_THRESHOLD,
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _load(self, experiment_id: str, durability: Durability) -> Experiment | None:
        cached = self.experiments.get(experiment_id)
        if cached is not None:
            return cached
        experiment = await self.store.get_by_id(experiment_id, durability=durability)
        if experiment is not None:
            self.experiments.set(experiment_id, experiment)
        return experiment

    def _cached_outcomes(self, experiment_id: str) -> list[OutcomeRecord]:
        by_variant = self.outcomes.get(experiment_id) or {}
        return [record for records in by_variant.values() for record in records]


def _check_transition(old: ExperimentStatus, new: ExperimentStatus) -> None:
    if old == new:
        return
    if new not in ALLOWED_TRANSITIONS[old]:
        raise ValidationError(f"Cannot move experiment from {old.value} to {new.value}")


def _parse(model: type[pydantic.BaseModel], data: dict[str, Any]) -> Any:
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ValidationError(str(exc)) from exc
