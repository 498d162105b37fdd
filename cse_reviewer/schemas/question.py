"""
Pydantic schemas for question generation and mastery tracking.
"""
from typing import Any, Dict, List, Optional, Union

from pydantic import Field

from cse_reviewer.schemas.common import CamelModel


class CategoryRequest(CamelModel):
    """One topic to generate questions for."""

    topic: str = Field(..., min_length=1)
    difficulty: str = "Normal"
    count: int = Field(default=1, ge=1, le=50)
    sub_topic: Optional[str] = None


class GenerateTestRequest(CamelModel):
    categories: List[CategoryRequest] = Field(..., min_length=1)
    avoid_questions: List[str] = []
    session_id: Optional[str] = None
    question_number: Optional[int] = None


class GeneratedQuestion(CamelModel):
    """Question as served to the exam client."""

    id: Optional[int] = None
    question: str
    options: List[str]
    answer: int
    correct_answer: str
    explanation: Optional[str] = None
    category: str
    difficulty: Optional[str] = None
    source: Optional[str] = None


class GenerateTestResponse(CamelModel):
    success: bool
    questions: List[GeneratedQuestion]
    message: str


class QuestionResult(CamelModel):
    question_id: Optional[Union[int, str]] = None
    is_correct: bool = False


class ProgressUpdateRequest(CamelModel):
    question_results: Optional[List[QuestionResult]] = None


class ProgressEntry(CamelModel):
    question_id: int
    status: str
    correct_streak: int
    total_attempts: int


class ProgressUpdateStats(CamelModel):
    processed: int
    successful: int
    failed: int


class ProgressUpdateResponse(CamelModel):
    success: bool
    message: str
    updates: List[ProgressEntry]
    errors: List[Dict[str, Any]]
    stats: ProgressUpdateStats


class MasteryStats(CamelModel):
    mastered: int = 0
    learning: int = 0
    needs_review: int = 0
    total: int = 0
