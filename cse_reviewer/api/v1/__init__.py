"""API v1 router."""
from fastapi import APIRouter

from cse_reviewer.api.v1 import auth, questions, test_attempts, tests

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(tests.router, prefix="/tests", tags=["Question Generation"])
api_router.include_router(test_attempts.router, prefix="/test-attempts", tags=["Test Attempts"])
api_router.include_router(questions.router, prefix="/questions", tags=["Question Mastery"])
