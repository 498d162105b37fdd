"""
Question generation endpoint used by practice and continuous sessions.
"""
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from cse_reviewer.core.dependencies import get_current_active_user
from cse_reviewer.db.base import get_db
from cse_reviewer.models.user import User
from cse_reviewer.schemas.question import GenerateTestRequest, GenerateTestResponse
from cse_reviewer.services.question_bank_service import QuestionBankService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_question_bank(db: Session = Depends(get_db)) -> QuestionBankService:
    return QuestionBankService(db)


@router.post("/generate", response_model=GenerateTestResponse)
def generate_test(
    request: GenerateTestRequest,
    bank: QuestionBankService = Depends(get_question_bank),
    current_user: User = Depends(get_current_active_user),
) -> Any:
    """
    Generate questions for the requested categories.

    New AI questions come first and are saved to the bank; the bank fills any
    shortfall. Texts in ``avoidQuestions`` are never returned.

    Raises:
        HTTPException: 503 if neither the AI nor the bank produced a question
    """
    questions = bank.generate_test(request)

    if not questions:
        logger.error(f"No questions available for user {current_user.id}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="No questions could be generated. Please try again later.",
        )

    return {
        "success": True,
        "questions": questions,
        "message": f"Generated {len(questions)} questions",
    }
