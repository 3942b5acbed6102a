from postlift.agent.optimization import (
    ContentService,
    NullContentService,
    OptimizationAgent,
    OptimizationOutcome,
    PendingOptimization,
)
from postlift.agent.rewards import calculate_normalized_reward
from postlift.agent.tasks import (
    AgentTask,
    GenerateVariationsTask,
    OptimizeContentTask,
    UpdateOptimizationModelsTask,
)

__all__ = [
    "AgentTask",
    "ContentService",
    "GenerateVariationsTask",
    "NullContentService",
    "OptimizationAgent",
    "OptimizationOutcome",
    "OptimizeContentTask",
    "PendingOptimization",
    "UpdateOptimizationModelsTask",
    "calculate_normalized_reward",
]
