"""
Mastery tracking endpoints.
"""
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from cse_reviewer.core.dependencies import get_current_active_user
from cse_reviewer.db.base import get_db
from cse_reviewer.models.user import User
from cse_reviewer.schemas.question import MasteryStats, ProgressUpdateRequest, ProgressUpdateResponse
from cse_reviewer.services import mastery_service

router = APIRouter()


@router.post("/progress/update", response_model=ProgressUpdateResponse)
def update_progress(
    payload: ProgressUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> Any:
    """
    Record per-question results of a finished attempt.

    Args:
        payload: ``questionResults`` as ``[{questionId, isCorrect}]``
        db: Database session
        current_user: Current authenticated user

    Returns:
        Per-question updates, per-question errors and totals
    """
    if payload.question_results is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="questionResults array is required",
        )
    if not payload.question_results:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="questionResults array is empty",
        )

    updates, errors = mastery_service.update_progress(db, current_user.id, payload.question_results)

    return {
        "success": True,
        "message": f"Updated progress for {len(updates)} questions",
        "updates": updates,
        "errors": errors,
        "stats": {
            "processed": len(payload.question_results),
            "successful": len(updates),
            "failed": len(errors),
        },
    }


@router.get("/progress/stats", response_model=MasteryStats)
def get_progress_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> Any:
    """Mastered / learning / needs-review totals for the current user."""
    return mastery_service.progress_stats(db, current_user.id)
