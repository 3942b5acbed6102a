from dataclasses import asdict

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, RootModel

from postlift.agent.optimization import OptimizationAgent
from postlift.agent.tasks import AgentTask
from postlift.core.dependencies import get_agent
from postlift.schemas.bandit import BanditContext, EngagementMetrics

router = APIRouter(prefix="/optimization", tags=["optimization"])


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class TaskRequest(RootModel[AgentTask]):
    pass


class RewardIn(BaseModel):
    content_id: str
    engagement: EngagementMetrics
    context: BanditContext | None = None
    arm_id: str | None = None


class RewardOut(BaseModel):
    content_id: str
    reward: float


class ArmOut(BaseModel):
    arm_id: str
    name: str
    expected_reward: float
    confidence: float
    examples: int


class ArmsOut(BaseModel):
    model_version: str
    status: str
    performance: float
    arms: list[ArmOut]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/tasks", status_code=status.HTTP_200_OK)
async def execute_task(
    body: TaskRequest,
    agent: OptimizationAgent = Depends(get_agent),
) -> dict:
    """Run one optimization task and return its outcome."""
    outcome = await agent.execute_task(body.root)
    return asdict(outcome)


@router.post("/rewards", response_model=RewardOut)
async def record_reward(
    body: RewardIn,
    agent: OptimizationAgent = Depends(get_agent),
) -> RewardOut:
    """Feed engagement for published content back to the bandit."""
    reward = await agent.record_content_reward(
        body.content_id,
        body.engagement,
        context=body.context,
        arm_id=body.arm_id,
    )
    return RewardOut(content_id=body.content_id, reward=reward)


@router.get("/arms", response_model=ArmsOut)
async def list_arms(agent: OptimizationAgent = Depends(get_agent)) -> ArmsOut:
    performance = {p["arm_id"]: p for p in agent.get_arm_performance()}
    arms = [
        ArmOut(
            arm_id=arm.id,
            name=arm.name,
            expected_reward=performance.get(arm.id, {}).get("expected_reward", 0.0),
            confidence=performance.get(arm.id, {}).get("confidence", 0.0),
            examples=performance.get(arm.id, {}).get("examples", 0),
        )
        for arm in agent.bandit.arms.values()
    ]
    return ArmsOut(
        model_version=agent.model_version,
        status=agent.get_status(),
        performance=agent.get_performance(),
        arms=arms,
    )
