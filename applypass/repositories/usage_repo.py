from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from applypass.models.orm.conversation import ConversationORM, MessageORM


class UsageRepository:
    """Read-only queries behind usage accounting."""

    def __init__(self, db: Session):
        self.db = db

    def get_conversation_ids(self, user_id: str, limit: int) -> list[str]:
        stmt = select(ConversationORM.id).where(ConversationORM.user_id == user_id).limit(limit)
        return list(self.db.scalars(stmt).all())

    def get_messages_since(
        self, conversation_ids: Sequence[str], since: datetime, limit: int
    ) -> list[tuple[Optional[str], datetime]]:
        """(content, created_at) for messages of the given conversations created at or after since."""
        stmt = (
            select(MessageORM.content, MessageORM.created_at)
            .where(
                MessageORM.conversation_id.in_(list(conversation_ids)),
                MessageORM.created_at >= since,
            )
            .limit(limit)
        )
        return [(row.content, row.created_at) for row in self.db.execute(stmt)]
