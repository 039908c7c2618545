import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import Base, utcnow


class AssignmentORM(Base):
    __tablename__ = "experiment_assignments"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    experiment_id = Column(
        String, ForeignKey("experiments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(String, nullable=False, index=True)
    variant = Column(String, nullable=False)

    assigned_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("experiment_id", "user_id", name="uq_experiment_assignment"),
    )

    experiment = relationship("ExperimentORM", back_populates="assignments")
