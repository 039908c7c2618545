# services/event_service.py
from typing import Optional

from fastapi import HTTPException, status
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from applypass.models.schemas.event import EventCreateModel, EventResponseModel
from applypass.repositories.event_repo import EventRepository
from applypass.repositories.experiment_repo import ExperimentRepository
from applypass.services.analytics import AnalyticsSink


class EventService:
    def __init__(self, db: Session, analytics: Optional[AnalyticsSink] = None):
        """Initializes the service with repositories it needs."""
        self.event_repo = EventRepository(db)
        self.experiment_repo = ExperimentRepository(db)
        self.analytics = analytics or AnalyticsSink.from_settings()

    def record_event(
        self, experiment_id: str, user_id: Optional[str], event_data: EventCreateModel
    ) -> EventResponseModel:
        """
        Records a funnel event tagged with the caller's variant.
        1. Mirrors it to the analytics collector as exp:{experiment}:{event}.
        2. Stores it in experiment_events.
        """
        if not self.experiment_repo.get_experiment(experiment_id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Experiment {experiment_id} not found.",
            )

        self.analytics.track(
            f"exp:{experiment_id}:{event_data.event_name}",
            {"variant": event_data.variant, **event_data.properties},
        )

        try:
            recorded_event = self.event_repo.create_event(
                experiment_id=experiment_id,
                user_id=user_id,
                variant=event_data.variant,
                event_name=event_data.event_name,
                properties=event_data.properties,
            )
        except SQLAlchemyError as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"An error occurred while recording the event: {str(e).splitlines()[0]}",
            )

        return EventResponseModel.model_validate(recorded_event)
