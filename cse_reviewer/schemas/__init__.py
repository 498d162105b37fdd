"""Schemas module - Import all schemas."""
from cse_reviewer.schemas.user import User, UserCreate, Token, TokenPayload
from cse_reviewer.schemas.attempt import (
    Attempt,
    AttemptCreate,
    AttemptList,
    AttemptReview,
    UserStats,
)
from cse_reviewer.schemas.question import (
    GenerateTestRequest,
    GenerateTestResponse,
    GeneratedQuestion,
    MasteryStats,
    ProgressUpdateRequest,
    ProgressUpdateResponse,
)
from cse_reviewer.schemas.common import CamelModel

__all__ = [
    "User",
    "UserCreate",
    "Token",
    "TokenPayload",
    "Attempt",
    "AttemptCreate",
    "AttemptList",
    "AttemptReview",
    "UserStats",
    "GenerateTestRequest",
    "GenerateTestResponse",
    "GeneratedQuestion",
    "MasteryStats",
    "ProgressUpdateRequest",
    "ProgressUpdateResponse",
    "CamelModel",
]
