# services/experiment_service.py
from datetime import timedelta
from typing import Optional

from fastapi import HTTPException, status
from loguru import logger
from sqlalchemy.orm import Session

from applypass.models.orm.base import utcnow
from applypass.models.orm.experiment import ExperimentORM, ExperimentStatus
from applypass.models.schemas.experiment import (
    AssignmentModel,
    ExperimentCreateModel,
    ExperimentResponseModel,
    ExperimentResultsModel,
    SignificanceModel,
    VariantStatsModel,
)
from applypass.repositories.assignment_repo import AssignmentRepository
from applypass.repositories.event_repo import EventRepository
from applypass.repositories.experiment_repo import ExperimentRepository
from applypass.services.bucketing import CONTROL_VARIANT, assign_variant
from applypass.services.stats import two_proportion_p_value, wilson_lower_bound

ACTIVATION_EVENT = "onboarding_complete"
CONVERSION_EVENT = "paid_convert"
SIGNIFICANCE_LEVEL = 0.05


class ExperimentService:
    def __init__(self, db: Session):
        self.assignment_repo = AssignmentRepository(db)
        self.experiment_repo = ExperimentRepository(db)
        self.event_repo = EventRepository(db)
        self.db = db

    def _require_experiment(self, experiment_id: str) -> ExperimentORM:
        experiment = self.experiment_repo.get_experiment(experiment_id)
        if not experiment:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Experiment {experiment_id} not found.",
            )
        return experiment

    def create_experiment(self, experiment_data: ExperimentCreateModel) -> ExperimentResponseModel:
        try:
            experiment_orm = self.experiment_repo.create_experiment(experiment_data)
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
        except RuntimeError as e:
            logger.error(str(e))
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to create experiment: {str(e)}",
            )

        logger.info("Created experiment {} ({})", experiment_orm.id, experiment_orm.status.value)
        return ExperimentResponseModel.model_validate(experiment_orm)

    def get_experiment(self, experiment_id: str) -> ExperimentResponseModel:
        return ExperimentResponseModel.model_validate(self._require_experiment(experiment_id))

    def list_running_experiments(self) -> list[ExperimentResponseModel]:
        return [ExperimentResponseModel.model_validate(e) for e in self.experiment_repo.list_running()]

    def get_user_assignment(self, experiment_id: str, user_id: str) -> AssignmentModel:
        """
        Gets a user's variant for an experiment.

        The variant is recomputed on every call; the stored row is only a
        record of it. Experiments that are not running leave the user in
        control and persist nothing.
        """
        experiment = self._require_experiment(experiment_id)

        if experiment.status != ExperimentStatus.RUNNING:
            return AssignmentModel(
                experiment_id=experiment_id,
                user_id=user_id,
                variant=CONTROL_VARIANT,
                enrolled=False,
            )

        variant = assign_variant(user_id, experiment)
        self.assignment_repo.upsert_assignment(
            experiment_id=experiment_id, user_id=user_id, variant=variant
        )
        logger.debug("User {} assigned to {} in {}", user_id, variant, experiment_id)

        return AssignmentModel(
            experiment_id=experiment_id, user_id=user_id, variant=variant, enrolled=True
        )

    def _generate_variant_stats(self, variants, assignments, events) -> list[VariantStatsModel]:
        variant_stats = []
        for variant in variants:
            enrolled = sum(1 for a in assignments if a.variant == variant)
            variant_events = [e for e in events if e.variant == variant]
            activated = len(
                {e.user_id for e in variant_events if e.event_name == ACTIVATION_EVENT}
            )
            converters = len(
                {e.user_id for e in variant_events if e.event_name == CONVERSION_EVENT}
            )
            variant_stats.append(
                VariantStatsModel(
                    variant=variant,
                    enrolled=enrolled,
                    activated=activated,
                    converters=converters,
                    activation_rate=activated / enrolled if enrolled else None,
                    conversion_rate=converters / enrolled if enrolled else None,
                )
            )
        return variant_stats

    def _compare_control_treatment(
        self, variant_stats: list[VariantStatsModel]
    ) -> Optional[SignificanceModel]:
        by_name = {s.variant: s for s in variant_stats}
        ctrl = by_name.get("control")
        treat = by_name.get("treatment")
        if not ctrl or not treat or ctrl.enrolled == 0 or treat.enrolled == 0:
            return None

        ctrl_rate = ctrl.converters / ctrl.enrolled
        treat_rate = treat.converters / treat.enrolled
        p_value = two_proportion_p_value(ctrl_rate, ctrl.enrolled, treat_rate, treat.enrolled)
        return SignificanceModel(
            p_value=p_value,
            significant=p_value < SIGNIFICANCE_LEVEL,
            relative_lift=(treat_rate - ctrl_rate) / ctrl_rate if ctrl.converters > 0 else None,
            wilson_low_control=wilson_lower_bound(ctrl.converters, ctrl.enrolled),
            wilson_low_treatment=wilson_lower_bound(treat.converters, treat.enrolled),
        )

    def get_experiment_results(self, experiment_id: str, days: int = 30) -> ExperimentResultsModel:
        """
        Funnel summary per variant over the trailing window:
        enrolled users, activated users (onboarding_complete), converters
        (paid_convert), and a control vs treatment significance check.
        """
        experiment = self._require_experiment(experiment_id)
        return self._build_results(experiment, days)

    def _build_results(self, experiment: ExperimentORM, days: int) -> ExperimentResultsModel:
        since = utcnow() - timedelta(days=days)
        assignments = self.assignment_repo.get_assignments_for_experiment(experiment.id, since=since)
        events = self.event_repo.get_events_for_experiment(experiment.id, since=since)

        variants = experiment.variants if isinstance(experiment.variants, list) else ["control", "treatment"]
        variant_stats = self._generate_variant_stats(variants, assignments, events)

        return ExperimentResultsModel(
            experiment_id=experiment.id,
            name=experiment.name,
            status=experiment.status,
            started_at=experiment.started_at,
            window_days=days,
            since=since,
            variant_stats=variant_stats,
            significance=self._compare_control_treatment(variant_stats),
            totals={"assignments": len(assignments), "events": len(events)},
        )

    def build_report(
        self, experiment_id: Optional[str] = None, days: int = 30
    ) -> list[ExperimentResultsModel]:
        """Results for one experiment, or for every experiment when no id is given."""
        return [
            self._build_results(experiment, days)
            for experiment in self.experiment_repo.list_experiments(experiment_id)
        ]
