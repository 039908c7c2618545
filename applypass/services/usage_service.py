"""
Usage guard: approximate token consumption of a user over a trailing 30-day
window and the current UTC day, compared against configured budgets.

The snapshot is a view recomputed from message rows on every call; nothing is
persisted.
"""
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from loguru import logger
from sqlalchemy.orm import Session

from applypass.core.settings import Settings, config_settings
from applypass.models.schemas.usage import UsageLevel, UsageSnapshotModel
from applypass.repositories.usage_repo import UsageRepository

WINDOW_DAYS = 30
MAX_CONVERSATIONS = 5000
# Bounded by how many ids the store accepts in one IN filter.
CONVERSATION_CHUNK_SIZE = 200
MAX_MESSAGES_PER_CHUNK = 10000

DEFAULT_MONTHLY_BUDGET_TOKENS = 1_500_000
DEFAULT_WARN_AT = 0.8
DEFAULT_CRITICAL_AT = 0.95


def parse_num(raw: Optional[str], fallback: float) -> float:
    """Finite number parsed from raw, otherwise fallback."""
    if raw is None or not str(raw).strip():
        return fallback
    try:
        parsed = float(raw)
    except (TypeError, ValueError):
        return fallback
    return parsed if math.isfinite(parsed) else fallback


def clamp_percent(value: float) -> float:
    if not math.isfinite(value):
        return 0.0
    return min(max(value, 0.0), 1.0)


def approx_tokens(content: Optional[str]) -> int:
    """Rough token estimate: one token per four UTF-16 code units, at least one."""
    if not content:
        return 0
    code_units = len(content.encode("utf-16-le")) // 2
    return max(1, math.ceil(code_units / 4))


def usage_level_from_percent(percent: float, warn_at: float, critical_at: float) -> UsageLevel:
    if percent >= 1:
        return UsageLevel.BLOCKED
    if percent >= critical_at:
        return UsageLevel.CRITICAL
    if percent >= warn_at:
        return UsageLevel.WARN
    return UsageLevel.OK


def utc_day_start(now: datetime) -> datetime:
    now = _as_utc(now)
    return datetime(now.year, now.month, now.day, tzinfo=timezone.utc)


def next_utc_midnight(now: datetime) -> datetime:
    return utc_day_start(now) + timedelta(days=1)


def _whole(value: float) -> Union[int, float]:
    return int(value) if float(value).is_integer() else value


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _naive_utc(value: datetime) -> datetime:
    return _as_utc(value).replace(tzinfo=None)


@dataclass(frozen=True)
class UsageBudget:
    monthly_tokens: Union[int, float]
    daily_tokens: Union[int, float]
    warn_at: float
    critical_at: float

    @classmethod
    def from_settings(cls, settings: Settings = config_settings) -> "UsageBudget":
        """Budgets from configuration; bad values fall back, percentages are clamped."""
        monthly = _whole(
            max(1, parse_num(settings.USAGE_GUARD_MONTHLY_TOKEN_BUDGET, DEFAULT_MONTHLY_BUDGET_TOKENS))
        )
        daily = _whole(
            max(1, parse_num(settings.USAGE_GUARD_DAILY_TOKEN_BUDGET, math.floor(monthly / 30)))
        )
        return cls(
            monthly_tokens=monthly,
            daily_tokens=daily,
            warn_at=clamp_percent(parse_num(settings.USAGE_GUARD_WARN_AT, DEFAULT_WARN_AT)),
            critical_at=clamp_percent(
                parse_num(settings.USAGE_GUARD_CRITICAL_AT, DEFAULT_CRITICAL_AT)
            ),
        )


class UsageService:
    def __init__(
        self,
        db: Session,
        budget: Optional[UsageBudget] = None,
        chunk_size: int = CONVERSATION_CHUNK_SIZE,
    ):
        self.usage_repo = UsageRepository(db)
        self.budget = budget or UsageBudget.from_settings()
        self.chunk_size = chunk_size

    def _snapshot(self, monthly_used: int, daily_used: int, now: datetime) -> UsageSnapshotModel:
        monthly_pct = clamp_percent(monthly_used / self.budget.monthly_tokens)
        daily_pct = clamp_percent(daily_used / self.budget.daily_tokens)
        # Exhausting either budget on its own escalates the level.
        level = usage_level_from_percent(
            max(monthly_pct, daily_pct), self.budget.warn_at, self.budget.critical_at
        )
        return UsageSnapshotModel(
            level=level,
            monthly_used_tokens=monthly_used,
            monthly_budget_tokens=self.budget.monthly_tokens,
            monthly_usage_pct=monthly_pct,
            daily_used_tokens=daily_used,
            daily_budget_tokens=self.budget.daily_tokens,
            daily_usage_pct=daily_pct,
            next_reset_at=next_utc_midnight(now),
            window_days=WINDOW_DAYS,
        )

    def get_usage_snapshot(self, user_id: str, now: Optional[datetime] = None) -> UsageSnapshotModel:
        """
        Compute the usage snapshot for one user.

        Chunks are fetched one after another. Any store error propagates and no
        partial snapshot is produced.

        Note the monthly figure is a rolling 30-day sum while next_reset_at is
        the next UTC midnight.
        """
        now = _as_utc(now or datetime.now(timezone.utc))
        month_start = _naive_utc(now - timedelta(days=WINDOW_DAYS))
        day_start = _naive_utc(utc_day_start(now))

        conversation_ids = self.usage_repo.get_conversation_ids(user_id, limit=MAX_CONVERSATIONS)
        if not conversation_ids:
            return self._snapshot(0, 0, now)

        monthly_used = 0
        daily_used = 0
        for i in range(0, len(conversation_ids), self.chunk_size):
            chunk = conversation_ids[i : i + self.chunk_size]
            rows = self.usage_repo.get_messages_since(
                chunk, since=month_start, limit=MAX_MESSAGES_PER_CHUNK
            )
            for content, created_at in rows:
                tokens = approx_tokens(content)
                monthly_used += tokens
                if _naive_utc(created_at) >= day_start:
                    daily_used += tokens

        snapshot = self._snapshot(monthly_used, daily_used, now)
        logger.debug(
            "usage for {}: {} conversations, monthly={} daily={} level={}",
            user_id,
            len(conversation_ids),
            monthly_used,
            daily_used,
            snapshot.level.value,
        )
        return snapshot
