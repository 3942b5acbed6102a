from postlift.schemas.bandit import (
    ArmWeights,
    BanditArm,
    BanditContext,
    BanditReward,
    ContentType,
    EngagementMetrics,
)
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

__all__ = [
    "AnalysisStatus",
    "ArmWeights",
    "BanditArm",
    "BanditContext",
    "BanditReward",
    "ContentType",
    "EngagementMetrics",
    "Experiment",
    "ExperimentAnalysis",
    "ExperimentCreate",
    "ExperimentStatus",
    "ExperimentUpdate",
    "OutcomeRecord",
    "Platform",
    "PostMetrics",
    "TargetMetric",
    "Variant",
    "VariantResult",
]
