from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from applypass.models.orm.experiment import ExperimentORM, ExperimentStatus
from applypass.models.schemas.experiment import ExperimentCreateModel


class ExperimentRepository:
    def __init__(self, db: Session):
        """Initializes the repository with a database session."""
        self.db = db

    def create_experiment(self, experiment_data: ExperimentCreateModel) -> ExperimentORM:
        """
        Creates a new experiment definition.

        Raises:
            ValueError: an experiment with the same id already exists.
            RuntimeError: any other database failure.
        """
        db_experiment = ExperimentORM(**experiment_data.model_dump(exclude_unset=False))
        try:
            self.db.add(db_experiment)
            self.db.commit()
            self.db.refresh(db_experiment)
            return db_experiment

        except IntegrityError as e:
            self.db.rollback()
            raise ValueError(
                f"Experiment {experiment_data.id} already exists: {str(e).splitlines()[0]}"
            )

        except SQLAlchemyError as e:
            self.db.rollback()
            raise RuntimeError(f"A database error occurred during experiment creation: {e}")

    def get_experiment(self, experiment_id: str) -> Optional[ExperimentORM]:
        return self.db.get(ExperimentORM, experiment_id)

    def list_experiments(self, experiment_id: Optional[str] = None) -> list[ExperimentORM]:
        stmt = select(ExperimentORM).order_by(ExperimentORM.id)
        if experiment_id:
            stmt = stmt.where(ExperimentORM.id == experiment_id)
        return list(self.db.scalars(stmt).all())

    def list_running(self) -> list[ExperimentORM]:
        """Bulk loader: only experiments currently running."""
        stmt = (
            select(ExperimentORM)
            .where(ExperimentORM.status == ExperimentStatus.RUNNING)
            .order_by(ExperimentORM.id)
        )
        return list(self.db.scalars(stmt).all())
