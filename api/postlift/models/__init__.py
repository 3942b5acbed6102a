from postlift.models.base import Base, TimestampMixin
from postlift.models.experiment import ExperimentRow
from postlift.models.outcome import OutcomeRow

__all__ = [
    "Base",
    "TimestampMixin",
    "ExperimentRow",
    "OutcomeRow",
]
