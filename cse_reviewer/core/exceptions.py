"""
Error kinds raised by the exam engine and its collaborators.
"""
from typing import Optional


class ReviewerError(Exception):
    """Base class for reviewer errors."""


class GenerationFailure(ReviewerError):
    """Question generation failed or returned a malformed payload."""


class DuplicateQuestion(ReviewerError):
    """The generator returned a question that was already seen in this session."""

    def __init__(self, question_text: str):
        super().__init__(f"Duplicate question: {question_text[:60]}")
        self.question_text = question_text


class SubmissionFailure(ReviewerError):
    """Saving a test attempt failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MasteryUpdateFailure(ReviewerError):
    """Per-question mastery update failed."""


class AuthFailure(ReviewerError):
    """Credential is missing or expired."""
