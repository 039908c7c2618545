import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from .base import Base, utcnow


class ConversationORM(Base):
    __tablename__ = "conversations"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    messages = relationship(
        "MessageORM", back_populates="conversation", cascade="all, delete-orphan"
    )


class MessageORM(Base):
    __tablename__ = "messages"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    conversation_id = Column(
        String, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # 'user' | 'assistant' | 'system'
    role = Column(String, nullable=False, default="user")
    content = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    conversation = relationship("ConversationORM", back_populates="messages")
