import enum

from sqlalchemy import Column, DateTime, Enum, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.types import JSON

from .base import Base, utcnow

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSON_TYPE = JSON().with_variant(JSONB(), "postgresql")


class ExperimentStatus(str, enum.Enum):
    DRAFT = "draft"
    RUNNING = "running"
    PAUSED = "paused"
    CONCLUDED = "concluded"


# --- Experiment Model ---
class ExperimentORM(Base):
    __tablename__ = "experiments"

    # e.g. 'landing-cta-v1'
    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text)

    status = Column(
        Enum(
            ExperimentStatus,
            name="experiment_status",
            values_callable=lambda members: [m.value for m in members],
        ),
        default=ExperimentStatus.DRAFT,
        nullable=False,
    )

    # Ordered variant names; order matters for bucketing.
    variants = Column(JSON_TYPE, default=lambda: ["control", "treatment"], nullable=False)
    # % of eligible users enrolled, 1..100
    traffic_pct = Column(Integer, default=100, nullable=False)

    started_at = Column(DateTime, nullable=True)
    ended_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    assignments = relationship(
        "AssignmentORM", back_populates="experiment", cascade="all, delete-orphan"
    )
    events = relationship(
        "ExperimentEventORM", back_populates="experiment", cascade="all, delete-orphan"
    )
