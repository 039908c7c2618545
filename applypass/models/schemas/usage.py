from datetime import datetime
from enum import Enum
from typing import Union

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class UsageLevel(str, Enum):
    OK = "ok"
    WARN = "warn"
    CRITICAL = "critical"
    BLOCKED = "blocked"


class UsageSnapshotModel(BaseModel):
    """Usage view over the trailing window; serialised with camelCase keys."""

    level: UsageLevel
    monthly_used_tokens: int
    monthly_budget_tokens: Union[int, float]
    monthly_usage_pct: float
    daily_used_tokens: int
    daily_budget_tokens: Union[int, float]
    daily_usage_pct: float
    next_reset_at: datetime
    window_days: int

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
