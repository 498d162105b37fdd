"""
Attempt history service: persistence, soft delete and statistics.
"""
import logging
import math
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from cse_reviewer.engine import history
from cse_reviewer.engine.analytics import AggregateStats, AttemptRecord, aggregate, calculate_section_averages
from cse_reviewer.engine.categories import Section
from cse_reviewer.engine.history import ListFilters
from cse_reviewer.engine.scoring import percentage, round_half_up
from cse_reviewer.models.test_attempt import TestAttempt
from cse_reviewer.schemas.attempt import AttemptCreate, AttemptReview, ReviewQuestion, UserStats
from cse_reviewer.services import mastery_service

logger = logging.getLogger(__name__)


def to_record(attempt: TestAttempt) -> AttemptRecord:
    """Analytics view of a stored attempt."""
    return AttemptRecord.from_payload({
        "id": attempt.id,
        "name": attempt.name,
        "score": attempt.score,
        "result": attempt.result,
        "isMockExam": attempt.is_mock_exam,
        "isDeleted": attempt.is_deleted,
        "completedAt": attempt.completed_at or attempt.created_at,
        "details": attempt.details or {},
        "questionResponses": attempt.question_responses or [],
    })


class AttemptService:
    """Attempt store for one user."""

    def __init__(self, db: Session, user_id: int):
        self.db = db
        self.user_id = user_id

    def _base_query(self, is_mock_exam: Optional[bool] = None):
        query = self.db.query(TestAttempt).filter(TestAttempt.user_id == self.user_id)
        if is_mock_exam:
            query = query.filter(TestAttempt.is_mock_exam.is_(True))
        return query

    # ------------------------------------------------------------------
    # Create / read
    # ------------------------------------------------------------------

    def create(self, data: AttemptCreate) -> TestAttempt:
        details = data.details.model_dump(by_alias=True)
        if details.get("totalQuestions") is None:
            details["totalQuestions"] = details["correctQuestions"] + details["incorrectQuestions"]

        now = datetime.now(timezone.utc)
        attempt = TestAttempt(
            user_id=self.user_id,
            name=data.name,
            score=round_half_up(data.score),
            result=data.result,
            is_mock_exam=data.is_mock_exam,
            details=details,
            question_responses=[r.model_dump(by_alias=True) for r in data.question_responses],
            test_config=data.test_config.model_dump(by_alias=True) if data.test_config else {},
            started_at=data.started_at or now,
            completed_at=data.completed_at or now,
            is_deleted=False,
        )
        self.db.add(attempt)
        self.db.commit()
        self.db.refresh(attempt)
        logger.info(f"Saved attempt {attempt.id} for user {self.user_id}: {attempt.score}% {attempt.result}")
        return attempt

    def get(self, attempt_id: int) -> Optional[TestAttempt]:
        return self._base_query().filter(TestAttempt.id == attempt_id).first()

    def list(self, filters: ListFilters, include_deleted: bool = False) -> Tuple[List[TestAttempt], int]:
        """History list; soft-deleted attempts are excluded unless asked for."""
        query = self._base_query(filters.is_mock_exam)
        if not include_deleted:
            query = query.filter(TestAttempt.is_deleted.is_(False))
        if filters.result:
            query = query.filter(TestAttempt.result == filters.result)

        total = query.count()
        column = getattr(TestAttempt, filters.sort_by)
        order = column.asc() if filters.sort_order == "asc" else column.desc()
        rows = query.order_by(order, TestAttempt.id.desc()).offset(filters.offset).limit(filters.limit).all()
        return rows, total

    def all_attempts(self, is_mock_exam: Optional[bool] = None) -> List[TestAttempt]:
        """Every attempt, soft-deleted ones included, newest first."""
        return self._base_query(is_mock_exam).order_by(TestAttempt.completed_at.desc(), TestAttempt.id.desc()).all()

    # ------------------------------------------------------------------
    # Soft delete
    # ------------------------------------------------------------------

    def soft_delete(self, attempt_id: int) -> Optional[TestAttempt]:
        attempt = self.get(attempt_id)
        if attempt is None:
            return None
        if history.mark_deleted(attempt, self.user_id):
            self.db.commit()
        return attempt

    def soft_delete_all(self) -> int:
        attempts = self._base_query().filter(TestAttempt.is_deleted.is_(False)).all()
        now = datetime.now(timezone.utc)
        count = sum(1 for attempt in attempts if history.mark_deleted(attempt, self.user_id, now))
        self.db.commit()
        return count

    def deleted(self) -> List[TestAttempt]:
        return history.deleted_attempts(self._base_query().filter(TestAttempt.is_deleted.is_(True)).all())

    def restore(self, attempt_id: int) -> Optional[TestAttempt]:
        attempt = self.get(attempt_id)
        if attempt is None:
            return None
        if history.mark_restored(attempt):
            self.db.commit()
            self.db.refresh(attempt)
        return attempt

    # ------------------------------------------------------------------
    # Bookmarks
    # ------------------------------------------------------------------

    def toggle_bookmark(self, attempt: TestAttempt, index: int, note: str = "") -> Optional[bool]:
        """
        Flip the bookmark annotation of one question response.

        Returns:
            The new bookmark state, or None if the index is out of range
        """
        responses = [dict(r) for r in (attempt.question_responses or [])]
        if not 0 <= index < len(responses):
            return None

        bookmarked = not responses[index].get("bookmarked", False)
        responses[index]["bookmarked"] = bookmarked
        responses[index]["bookmarkNote"] = note if bookmarked else None
        attempt.question_responses = responses
        flag_modified(attempt, "question_responses")
        self.db.commit()
        return bookmarked

    # ------------------------------------------------------------------
    # Statistics (soft-deleted attempts included)
    # ------------------------------------------------------------------

    def stats(self, is_mock_exam: Optional[bool] = None) -> UserStats:
        attempts = self.all_attempts(is_mock_exam)
        totals = history.compute_user_stats(attempts)
        averages, _ = calculate_section_averages([to_record(a) for a in attempts])
        return UserStats(**totals.model_dump(), section_averages=averages)

    def trend(self, limit: int = 7, is_mock_exam: Optional[bool] = None) -> List[TestAttempt]:
        return self.all_attempts(is_mock_exam)[:limit]

    def section_averages(self, is_mock_exam: Optional[bool] = None) -> List[Dict[str, Any]]:
        averages, _ = calculate_section_averages([to_record(a) for a in self.all_attempts(is_mock_exam)])
        return [{"category": s.label, "average_score": averages[s.value]} for s in Section]

    def analytics(self, is_mock_exam: Optional[bool] = None, today: Optional[date] = None) -> AggregateStats:
        records = [to_record(a) for a in self.all_attempts(is_mock_exam)]
        dates = mastery_service.answered_dates(self.db, self.user_id)
        return aggregate(records, answered_dates=dates, today=today)


def paginate(total: int, filters: ListFilters) -> Dict[str, int]:
    return {
        "page": filters.page,
        "limit": filters.limit,
        "total": total,
        "pages": math.ceil(total / filters.limit) if filters.limit else 0,
    }


def build_review(attempt: TestAttempt) -> AttemptReview:
    """Question-by-question review of a stored attempt."""
    details = attempt.details or {}
    responses = attempt.question_responses or []
    total = details.get("totalQuestions") or len(responses)
    correct = details.get("correctQuestions") or 0

    minutes = 0
    if attempt.started_at and attempt.completed_at:
        minutes = round_half_up((attempt.completed_at - attempt.started_at).total_seconds() / 60)

    return AttemptReview(
        attempt_id=attempt.id,
        name=attempt.name,
        date_completed=attempt.completed_at,
        score=correct,
        total_questions=total,
        accuracy=percentage(correct, total),
        time_spent=max(0, minutes),
        questions=[
            ReviewQuestion(
                id=r.get("questionId"),
                question=r.get("questionText") or "",
                category=r.get("category"),
                question_type=r.get("questionType"),
                options=r.get("options") or [],
                user_answer_index=r.get("userAnswerIndex"),
                correct_answer_index=r.get("correctAnswerIndex"),
                is_correct=bool(r.get("isCorrect")),
                explanation=r.get("explanation"),
                bookmarked=bool(r.get("bookmarked")),
            )
            for r in responses
        ],
    )
