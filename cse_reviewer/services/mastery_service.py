"""
Per-question mastery tracking.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from cse_reviewer.core.config import settings
from cse_reviewer.models.question import Question
from cse_reviewer.models.question_progress import UserQuestionProgress
from cse_reviewer.schemas.question import MasteryStats, QuestionResult

logger = logging.getLogger(__name__)

NEEDS_REVIEW = "needs-review"
LEARNING = "learning"
MASTERED = "mastered"


def record_answer(
    progress: UserQuestionProgress,
    is_correct: bool,
    when: Optional[datetime] = None,
    mastery_streak: Optional[int] = None,
) -> UserQuestionProgress:
    """
    Apply one answer to a progress row.

    Correct answers grow the streak; reaching the mastery streak masters the
    question and the first correct answer moves needs-review to learning.
    A wrong answer resets the streak and demotes one level.
    """
    when = when or datetime.now(timezone.utc)
    mastery_streak = settings.MASTERY_STREAK if mastery_streak is None else mastery_streak

    progress.total_attempts = (progress.total_attempts or 0) + 1
    progress.last_answered_at = when
    status = progress.status or NEEDS_REVIEW

    if is_correct:
        progress.correct_attempts = (progress.correct_attempts or 0) + 1
        progress.correct_streak = (progress.correct_streak or 0) + 1

        if progress.correct_streak >= mastery_streak and status != MASTERED:
            progress.status = MASTERED
            progress.mastered_at = when
        elif status == NEEDS_REVIEW:
            progress.status = LEARNING
    else:
        progress.correct_streak = 0
        if status == MASTERED:
            progress.status = LEARNING
            progress.mastered_at = None
        elif status == LEARNING:
            progress.status = NEEDS_REVIEW

    return progress


def _resolve_question_id(raw) -> Optional[int]:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str) and raw.strip().isdigit():
        return int(raw.strip())
    return None


def update_progress(
    db: Session, user_id: int, results: List[QuestionResult]
) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    """
    Record a batch of answers for one user.

    Unknown or missing question ids are collected as errors; they never abort
    the rest of the batch.

    Returns:
        Tuple of (updates, errors)
    """
    updates: List[Dict[str, Any]] = []
    errors: List[Dict[str, Any]] = []
    now = datetime.now(timezone.utc)
    # Rows touched in this batch; the session does not autoflush new ones
    rows: Dict[int, UserQuestionProgress] = {}

    for result in results:
        if result.question_id is None or result.question_id == "":
            errors.append({"error": "Missing questionId"})
            continue

        question_id = _resolve_question_id(result.question_id)
        if question_id is None or db.get(Question, question_id) is None:
            logger.warning(f"Question {result.question_id} not found in database")
            errors.append({"error": "Question not found", "questionId": result.question_id})
            continue

        progress = rows.get(question_id) or (
            db.query(UserQuestionProgress)
            .filter(UserQuestionProgress.user_id == user_id, UserQuestionProgress.question_id == question_id)
            .first()
        )
        if progress is None:
            progress = UserQuestionProgress(
                user_id=user_id,
                question_id=question_id,
                correct_streak=0,
                status=NEEDS_REVIEW,
                total_attempts=0,
                correct_attempts=0,
            )
            db.add(progress)
        rows[question_id] = progress

        record_answer(progress, result.is_correct, now)
        updates.append({
            "question_id": question_id,
            "status": progress.status,
            "correct_streak": progress.correct_streak,
            "total_attempts": progress.total_attempts,
        })

    db.commit()
    logger.info(f"Progress update for user {user_id}: {len(updates)} ok, {len(errors)} failed")
    return updates, errors


def progress_stats(db: Session, user_id: int) -> MasteryStats:
    rows = (
        db.query(UserQuestionProgress.status, func.count(UserQuestionProgress.id))
        .filter(UserQuestionProgress.user_id == user_id)
        .group_by(UserQuestionProgress.status)
        .all()
    )
    counts = {MASTERED: 0, LEARNING: 0, NEEDS_REVIEW: 0}
    for status, count in rows:
        counts[status] = count

    return MasteryStats(
        mastered=counts[MASTERED],
        learning=counts[LEARNING],
        needs_review=counts[NEEDS_REVIEW],
        total=sum(counts.values()),
    )


def answered_dates(db: Session, user_id: int) -> List[datetime]:
    rows = (
        db.query(UserQuestionProgress.last_answered_at)
        .filter(UserQuestionProgress.user_id == user_id, UserQuestionProgress.last_answered_at.isnot(None))
        .all()
    )
    return [row[0] for row in rows]
