"""
Configuration management using Pydantic settings.
"""
from typing import List, Union
import os
from pydantic import AnyHttpUrl, field_validator
from pydantic_settings import BaseSettings
from dotenv import load_dotenv
load_dotenv()



class Settings(BaseSettings):
    """Application settings."""

    # API Configuration
    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "CSE Reviewer"
    DEBUG: bool = True
    ENV: str = os.getenv("ENV", "development")

    # Database Configuration
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./cse_reviewer.db")

    # JWT Configuration
    SECRET_KEY: str = os.getenv("SECRET_KEY", "change-me")
    ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    # LLMs Configuration
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    LLM_MODEL: str = os.getenv("LLM_MODEL", "gpt-4o-mini")

    # LangSmith Tracing Configuration
    LANGSMITH_TRACING: bool = os.getenv("LANGSMITH_TRACING", "false").lower() == "true"
    LANGSMITH_ENDPOINT: str = os.getenv("LANGSMITH_ENDPOINT", "")
    LANGSMITH_API_KEY: str = os.getenv("LANGSMITH_API_KEY", "")
    LANGSMITH_PROJECT: str = os.getenv("LANGSMITH_PROJECT", "")

    # CORS Configuration
    BACKEND_CORS_ORIGINS: Union[List[AnyHttpUrl], str] = "*"

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v):
        if v == "*" or v == ["*"]:
            return "*"
        if isinstance(v, str):
            return [i.strip() for i in v.split(",")]
        return v

    # API client Configuration
    API_BASE_URL: str = os.getenv("API_BASE_URL", "http://localhost:8000/api/v1")
    API_TIMEOUT_SECONDS: float = float(os.getenv("API_TIMEOUT_SECONDS", 45))

    # Exam scoring thresholds
    PASS_THRESHOLD: int = 70
    STRENGTH_THRESHOLD: int = 75
    WEAKNESS_THRESHOLD: int = 60
    READINESS_WEAK_SECTION_THRESHOLD: int = 65

    # Session timing
    DEFAULT_TIME_LIMIT_MINUTES: int = 30
    TIME_WARNING_RATIO: float = 0.33
    ANSWER_FADE_DELAY_SECONDS: float = 1.0
    NEXT_QUESTION_DELAY_SECONDS: float = 1.5

    # Continuous generation
    MAX_DUPLICATE_RETRIES: int = 1
    MAX_SESSION_GENERATION_RETRIES: int = 25
    GENERATION_MAX_RETRIES: int = 3
    AVOID_LIST_PROMPT_LIMIT: int = 50

    # Analytics windows
    TREND_WINDOW: int = 7
    RECENT_ATTEMPTS_WINDOW: int = 10

    # Mastery tracking
    MASTERY_STREAK: int = 3

    class Config:
        """Pydantic config."""

        env_file = ".env"
        case_sensitive = True


settings = Settings()
