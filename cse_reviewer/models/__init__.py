"""Models module - Import all models here so metadata sees every table."""
from cse_reviewer.db.base import Base
from cse_reviewer.models.user import User
from cse_reviewer.models.question import Question
from cse_reviewer.models.test_attempt import TestAttempt
from cse_reviewer.models.question_progress import UserQuestionProgress

__all__ = ["Base", "User", "Question", "TestAttempt", "UserQuestionProgress"]
