"""
Pydantic schemas for test attempts and their statistics.
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import Field, model_validator

from cse_reviewer.engine.categories import empty_section_map
from cse_reviewer.engine.scoring import pass_result, percentage, round_half_up
from cse_reviewer.schemas.common import CamelModel


class AttemptDetails(CamelModel):
    """Scoring summary stored with an attempt."""

    section_scores: Dict[str, float] = Field(default_factory=empty_section_map)
    question_type_scores: Dict[str, float] = Field(
        default_factory=lambda: {"multipleChoice": 0, "essay": 0, "situational": 0}
    )
    time_spent: str = "0 minutes"
    time_spent_seconds: int = 0
    correct_questions: int = 0
    incorrect_questions: int = 0
    total_questions: Optional[int] = None
    unanswered_questions: int = 0


class QuestionResponse(CamelModel):
    """Snapshot of one question as it was answered."""

    question_id: Optional[Union[int, str]] = None
    question_text: str
    category: Optional[str] = None
    question_type: Optional[str] = None
    difficulty: Optional[str] = None
    options: List[str] = []
    user_answer: Optional[str] = None
    user_answer_index: Optional[int] = None
    correct_answer: Optional[str] = None
    correct_answer_index: Optional[int] = None
    is_correct: bool = False
    time_spent: int = 0
    explanation: Optional[str] = None
    bookmarked: bool = False
    bookmark_note: Optional[str] = None


class AttemptConfig(CamelModel):
    """Settings the attempt was taken with."""

    categories: List[str] = []
    difficulty: str = "Mixed"
    question_count: int = 0
    time_limit: Optional[float] = None


class AttemptCreate(CamelModel):
    """Payload for saving a finished attempt."""

    name: str = Field(..., min_length=1)
    score: float = Field(..., ge=0, le=100)
    result: Literal["Passed", "Failed"]
    is_mock_exam: bool = False
    details: AttemptDetails
    question_responses: List[QuestionResponse] = []
    test_config: Optional[AttemptConfig] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @model_validator(mode="after")
    def check_score_and_result(self):
        details = self.details
        total = details.total_questions
        if total is None:
            total = details.correct_questions + details.incorrect_questions
        if details.correct_questions > total:
            raise ValueError("correctQuestions cannot exceed totalQuestions")

        score = round_half_up(self.score)
        if total > 0 and score != percentage(details.correct_questions, total):
            raise ValueError(
                f"score {score} does not match {details.correct_questions}/{total} correct answers"
            )
        if self.result != pass_result(score):
            raise ValueError(f"result must be {pass_result(score)!r} for a score of {score}")
        return self


class Attempt(CamelModel):
    """Schema for attempt response."""

    id: int
    user_id: int
    name: str
    score: float
    result: str
    is_mock_exam: bool
    details: Dict[str, Any]
    question_responses: List[Dict[str, Any]] = []
    test_config: Optional[Dict[str, Any]] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None


class AttemptSaved(CamelModel):
    message: str
    attempt: Attempt


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    pages: int


class AttemptList(CamelModel):
    attempts: List[Attempt]
    pagination: Pagination


class AttemptDeleted(CamelModel):
    message: str
    deleted_id: int


class AttemptsBulkDeleted(CamelModel):
    message: str
    deleted_count: int


class AttemptRestored(CamelModel):
    message: str
    attempt: Attempt


class BookmarkRequest(CamelModel):
    note: str = ""


class BookmarkToggled(CamelModel):
    message: str
    bookmarked: bool
    note: str


class ReviewQuestion(CamelModel):
    id: Optional[Union[int, str]] = None
    question: str
    category: Optional[str] = None
    question_type: Optional[str] = None
    options: List[str] = []
    user_answer_index: Optional[int] = None
    correct_answer_index: Optional[int] = None
    is_correct: bool = False
    explanation: Optional[str] = None
    bookmarked: bool = False


class AttemptReview(CamelModel):
    """Question-by-question review of an attempt."""

    attempt_id: int
    name: str
    date_completed: Optional[datetime] = None
    score: int
    total_questions: int
    accuracy: int
    time_spent: int  # minutes
    questions: List[ReviewQuestion]


class UserStats(CamelModel):
    """Overview totals; soft-deleted attempts included."""

    total_attempts: int = 0
    total_passed: int = 0
    total_failed: int = 0
    average_score: float = 0
    highest_score: int = 0
    lowest_score: int = 0
    section_averages: Dict[str, int] = Field(default_factory=empty_section_map)


class TrendItem(CamelModel):
    id: int
    name: str
    score: float
    completed_at: Optional[datetime] = None
    details: Dict[str, Any]


class SectionAverage(CamelModel):
    category: str
    average_score: int
