import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from postlift.models.base import Base, JSONType


class OutcomeRow(Base):
    """One immutable outcome observation for a variant."""

    __tablename__ = "experiment_results"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    experiment_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("ab_experiments.id"), nullable=False, index=True
    )
    variant_id: Mapped[str] = mapped_column(String(255), nullable=False)
    subject_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    metric_value: Mapped[float] = mapped_column(Float, nullable=False)
    conversion_event: Mapped[bool] = mapped_column(Boolean, nullable=False)
    # "metadata" is reserved on declarative classes
    extra: Mapped[dict | None] = mapped_column("metadata", JSONType, nullable=True)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
