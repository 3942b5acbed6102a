from datetime import datetime

from sqlalchemy import DateTime, Enum, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from postlift.models.base import Base, JSONType, TimestampMixin
from postlift.schemas.experiment import ExperimentStatus, Platform, TargetMetric


class ExperimentRow(TimestampMixin, Base):
    __tablename__ = "ab_experiments"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    platform: Mapped[Platform] = mapped_column(Enum(Platform), nullable=False, index=True)
    status: Mapped[ExperimentStatus] = mapped_column(
        Enum(ExperimentStatus), nullable=False, default=ExperimentStatus.draft, index=True
    )
    variants: Mapped[list] = mapped_column(JSONType, nullable=False)
    target_metric: Mapped[TargetMetric] = mapped_column(Enum(TargetMetric), nullable=False)
    minimum_sample_size: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    confidence_level: Mapped[float] = mapped_column(Float, nullable=False, default=0.95)
    prior_alpha: Mapped[float | None] = mapped_column(Float, nullable=True)
    prior_beta: Mapped[float | None] = mapped_column(Float, nullable=True)
    info_gain: Mapped[float | None] = mapped_column(Float, nullable=True)
    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    owner_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)

    # Latest analysis snapshot
    results: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    winning_variant: Mapped[str | None] = mapped_column(String(255), nullable=True)
    statistical_significance: Mapped[float | None] = mapped_column(Float, nullable=True)
