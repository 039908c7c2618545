import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from .base import Base, utcnow
from .experiment import JSON_TYPE


class ExperimentEventORM(Base):
    __tablename__ = "experiment_events"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    experiment_id = Column(
        String, ForeignKey("experiments.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Anonymous events carry no user.
    user_id = Column(String, nullable=True, index=True)

    variant = Column(String, nullable=False)

    # e.g. 'signup', 'onboarding_complete', 'upgrade_click', 'paid_convert'
    event_name = Column(String, nullable=False, index=True)

    properties = Column(JSON_TYPE, default=dict, nullable=False)

    occurred_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    experiment = relationship("ExperimentORM", back_populates="events")
