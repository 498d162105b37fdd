"""
Soft-delete rules for attempt history.

Deleted attempts leave list views but stay in every statistic. There is no
hard-delete path.
"""
import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional, TypeVar

from pydantic import BaseModel, Field, field_validator

from cse_reviewer.engine.scoring import round_half_up

logger = logging.getLogger(__name__)

T = TypeVar("T")

SORTABLE_FIELDS = ("completed_at", "started_at", "score", "name", "created_at")
SORT_ALIASES = {
    "completedAt": "completed_at",
    "startedAt": "started_at",
    "createdAt": "created_at",
}


class ListFilters(BaseModel):
    """Query options for the history list."""

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)
    sort_by: str = "completed_at"
    sort_order: str = "desc"
    result: Optional[str] = None
    is_mock_exam: Optional[bool] = None

    @field_validator("sort_by", mode="before")
    @classmethod
    def normalize_sort_field(cls, v):
        v = SORT_ALIASES.get(v, v)
        if v not in SORTABLE_FIELDS:
            raise ValueError(f"Cannot sort by {v}")
        return v

    @field_validator("sort_order", mode="before")
    @classmethod
    def normalize_sort_order(cls, v):
        v = str(v).lower()
        if v not in ("asc", "desc"):
            raise ValueError("sort_order must be 'asc' or 'desc'")
        return v

    @field_validator("result", mode="before")
    @classmethod
    def drop_all_result(cls, v):
        # "All" is the unfiltered view
        if v in (None, "", "All"):
            return None
        return v

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class UserStats(BaseModel):
    total_attempts: int = 0
    total_passed: int = 0
    total_failed: int = 0
    average_score: float = 0
    highest_score: int = 0
    lowest_score: int = 0


def is_visible(attempt) -> bool:
    return not bool(getattr(attempt, "is_deleted", False))


def _deleted_sort_key(attempt) -> float:
    deleted_at = getattr(attempt, "deleted_at", None)
    return deleted_at.timestamp() if deleted_at is not None else 0.0


def deleted_attempts(attempts: Iterable[T]) -> List[T]:
    """Attempts in the recycle view, most recently deleted first."""
    deleted = [a for a in attempts if not is_visible(a)]
    deleted.sort(key=_deleted_sort_key, reverse=True)
    return deleted


def mark_deleted(attempt, user_id: Optional[int] = None, when: Optional[datetime] = None) -> bool:
    """
    Flag an attempt as deleted.

    Returns:
        False if it was already deleted
    """
    if attempt.is_deleted:
        return False
    attempt.is_deleted = True
    attempt.deleted_at = when or datetime.now(timezone.utc)
    attempt.deleted_by = user_id
    logger.info(f"Attempt {getattr(attempt, 'id', None)} removed from history")
    return True


def mark_restored(attempt) -> bool:
    """
    Clear the deleted flag.

    Returns:
        False if the attempt was not deleted
    """
    if not attempt.is_deleted:
        return False
    attempt.is_deleted = False
    attempt.deleted_at = None
    attempt.deleted_by = None
    logger.info(f"Attempt {getattr(attempt, 'id', None)} restored")
    return True


def compute_user_stats(attempts: Iterable) -> UserStats:
    """Overview totals over every attempt, deleted or not."""
    scores = []
    passed = 0
    for attempt in attempts:
        scores.append(attempt.score)
        if attempt.result == "Passed":
            passed += 1

    if not scores:
        return UserStats()

    return UserStats(
        total_attempts=len(scores),
        total_passed=passed,
        total_failed=len(scores) - passed,
        average_score=round(sum(scores) / len(scores), 2),
        highest_score=round_half_up(max(scores)),
        lowest_score=round_half_up(min(scores)),
    )
