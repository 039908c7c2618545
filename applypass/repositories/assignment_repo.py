import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from loguru import logger

from applypass.models.orm.assignment import AssignmentORM
from applypass.models.orm.base import utcnow

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class AssignmentRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_assignment(self, experiment_id: str, user_id: str) -> Optional[AssignmentORM]:
        """Retrieves the stored assignment for a user in a specific experiment."""
        stmt = select(AssignmentORM).where(
            AssignmentORM.experiment_id == experiment_id,
            AssignmentORM.user_id == user_id,
        )
        return self.db.scalars(stmt).one_or_none()

    def get_assignments_for_experiment(
        self, experiment_id: str, since: Optional[datetime] = None
    ) -> list[AssignmentORM]:
        stmt = select(AssignmentORM).where(AssignmentORM.experiment_id == experiment_id)
        if since is not None:
            stmt = stmt.where(AssignmentORM.assigned_at >= since)
        return list(self.db.scalars(stmt).all())

    def upsert_assignment(self, experiment_id: str, user_id: str, variant: str) -> None:
        """
        Insert the assignment, ignoring a duplicate (experiment_id, user_id).

        Two concurrent first calls for the same pair converge on one row and
        neither fails.
        """
        dialect = self.db.get_bind().dialect.name
        insert = _UPSERT_DIALECTS.get(dialect)
        if insert is None:
            raise RuntimeError(f"Assignment upsert is not supported on dialect {dialect!r}")

        stmt = (
            insert(AssignmentORM)
            .values(
                id=str(uuid.uuid4()),
                experiment_id=experiment_id,
                user_id=user_id,
                variant=variant,
                assigned_at=utcnow(),
            )
            .on_conflict_do_nothing(index_elements=["experiment_id", "user_id"])
        )
        try:
            self.db.execute(stmt)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Assignment upsert failed for {}/{}: {}", experiment_id, user_id, e)
            raise
