from __future__ import annotations

from datetime import datetime

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from applypass.core.db import init_db
from applypass.core.settings import Settings

TEST_TOKEN = "token-1"
TEST_USER = "user-1"


def make_sessionmaker():
    """In-memory SQLite shared across threads (TestClient runs handlers in a pool)."""
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    return engine, sessionmaker(bind=engine, autoflush=False, future=True)


def make_settings(**overrides) -> Settings:
    values = {
        "DATABASE_URL": "sqlite://",
        "TOKENS": {TEST_TOKEN: TEST_USER, "token-2": "user-2"},
        "MEM0_API_KEY": "mem-key",
        "MEM0_API_URL": "https://mem0.test",
        "ANALYTICS_COLLECTOR_URL": None,
    }
    values.update(overrides)
    return Settings(**values)


def add_conversation(db: Session, user_id: str, messages: list[tuple[str | None, datetime]]) -> str:
    from applypass.models.orm.conversation import ConversationORM, MessageORM

    conversation = ConversationORM(user_id=user_id, title="chat")
    db.add(conversation)
    db.flush()
    for content, created_at in messages:
        db.add(MessageORM(conversation_id=conversation.id, content=content, created_at=created_at))
    db.commit()
    return conversation.id


def add_experiment(db: Session, experiment_id: str = "landing-cta-v1", **fields):
    from applypass.models.orm.experiment import ExperimentORM, ExperimentStatus

    values = {
        "name": experiment_id,
        "status": ExperimentStatus.RUNNING,
        "variants": ["control", "treatment"],
        "traffic_pct": 100,
    }
    values.update(fields)
    experiment = ExperimentORM(id=experiment_id, **values)
    db.add(experiment)
    db.commit()
    return experiment
