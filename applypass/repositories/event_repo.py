from datetime import datetime
from typing import Any, Dict, Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from applypass.models.orm.event import ExperimentEventORM


class EventRepository:
    def __init__(self, db: Session):
        """Initializes the repository with a database session."""
        self.db = db

    def get_events_for_experiment(
        self, experiment_id: str, since: Optional[datetime] = None
    ) -> list[ExperimentEventORM]:
        """Retrieves events for a specific experiment, optionally only those at or after since."""
        stmt = select(ExperimentEventORM).where(ExperimentEventORM.experiment_id == experiment_id)
        if since is not None:
            stmt = stmt.where(ExperimentEventORM.occurred_at >= since)
        return list(self.db.scalars(stmt).all())

    def create_event(
        self,
        experiment_id: str,
        user_id: Optional[str],
        variant: str,
        event_name: str,
        properties: Dict[str, Any],
    ) -> ExperimentEventORM:
        """Inserts one funnel event row. Database errors are rolled back and re-raised."""
        db_event = ExperimentEventORM(
            experiment_id=experiment_id,
            user_id=user_id,
            variant=variant,
            event_name=event_name,
            properties=dict(properties or {}),
        )

        try:
            self.db.add(db_event)
            self.db.commit()
            self.db.refresh(db_event)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Event insert failed for experiment {}: {}", experiment_id, e)
            raise

        return db_event
