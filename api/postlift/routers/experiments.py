import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from postlift.core.dependencies import get_manager
from postlift.schemas.experiment import (
    Experiment,
    ExperimentAnalysis,
    ExperimentCreate,
    ExperimentStatus,
    ExperimentUpdate,
    Platform,
    PostMetrics,
    Variant,
)
from postlift.services.experiments import ExperimentManager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["experiments"])


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class AssignmentRequest(BaseModel):
    subject_id: str


class AssignmentOut(BaseModel):
    experiment_id: str
    subject_id: str
    variant: Variant | None


class OutcomeIn(BaseModel):
    variant_id: str
    subject_id: str | None = None
    metrics: PostMetrics
    metadata: dict = Field(default_factory=dict)


class OutcomeOut(BaseModel):
    recorded: bool


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _get_experiment(experiment_id: str, manager: ExperimentManager) -> Experiment:
    experiment = await manager.get_experiment(experiment_id)
    if experiment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Experiment not found")
    return experiment


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("/experiments", response_model=list[Experiment])
async def list_experiments(
    platform: Platform | None = None,
    status_filter: ExperimentStatus | None = Query(None, alias="status"),
    owner_id: str | None = None,
    manager: ExperimentManager = Depends(get_manager),
) -> list[Experiment]:
    """List experiments, newest first."""
    return await manager.list_experiments(platform=platform, status=status_filter, owner_id=owner_id)


@router.post("/experiments", response_model=Experiment, status_code=status.HTTP_201_CREATED)
async def create_experiment(
    body: ExperimentCreate,
    manager: ExperimentManager = Depends(get_manager),
) -> Experiment:
    """Create a new experiment."""
    return await manager.create_experiment(body)


@router.get("/experiments/{experiment_id}", response_model=Experiment)
async def get_experiment(
    experiment_id: str,
    manager: ExperimentManager = Depends(get_manager),
) -> Experiment:
    """Get a single experiment by ID."""
    return await _get_experiment(experiment_id, manager)


@router.patch("/experiments/{experiment_id}", response_model=Experiment)
async def update_experiment(
    experiment_id: str,
    body: ExperimentUpdate,
    manager: ExperimentManager = Depends(get_manager),
) -> Experiment:
    """Update an experiment; status changes must follow the lifecycle."""
    updated = await manager.update_experiment(experiment_id, body)

    # Completing an experiment stores a final analysis snapshot
    if body.status == ExperimentStatus.completed:
        try:
            await manager.analyze(experiment_id)
        except Exception:
            logger.exception("Failed to save final analysis for %s", experiment_id)
    return updated


@router.post("/experiments/{experiment_id}/assignments", response_model=AssignmentOut)
async def assign_variant(
    experiment_id: str,
    body: AssignmentRequest,
    manager: ExperimentManager = Depends(get_manager),
) -> AssignmentOut:
    """Deterministic variant for a subject; ``variant`` is null unless the experiment is running."""
    experiment = await _get_experiment(experiment_id, manager)
    return AssignmentOut(
        experiment_id=experiment_id,
        subject_id=body.subject_id,
        variant=manager.assign_variant(experiment, body.subject_id),
    )


@router.post(
    "/experiments/{experiment_id}/outcomes",
    response_model=OutcomeOut,
    status_code=status.HTTP_202_ACCEPTED,
)
async def record_outcome(
    experiment_id: str,
    body: OutcomeIn,
    manager: ExperimentManager = Depends(get_manager),
) -> OutcomeOut:
    await _get_experiment(experiment_id, manager)
    recorded = await manager.record_outcome(
        experiment_id,
        body.variant_id,
        body.metrics,
        subject_id=body.subject_id,
        metadata=body.metadata,
    )
    return OutcomeOut(recorded=recorded)


@router.get("/experiments/{experiment_id}/results", response_model=ExperimentAnalysis)
async def get_results(
    experiment_id: str,
    manager: ExperimentManager = Depends(get_manager),
) -> ExperimentAnalysis:
    """Run the statistical analysis for an experiment."""
    analysis = await manager.analyze(experiment_id)
    if analysis is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Experiment not found")
    return analysis
