"""
Exam engine: session state machine, scoring, submission and analytics.
"""
from cse_reviewer.engine.analytics import AggregateStats, AnalyticsConfig, AttemptRecord, aggregate
from cse_reviewer.engine.categories import Section, normalize_category
from cse_reviewer.engine.questions import Question
from cse_reviewer.engine.scoring import ScoreCard, score_attempt
from cse_reviewer.engine.session import SessionConfig, SessionState, TestSession
from cse_reviewer.engine.submission import SubmissionPipeline

__all__ = [
    "AggregateStats",
    "AnalyticsConfig",
    "AttemptRecord",
    "Question",
    "ScoreCard",
    "Section",
    "SessionConfig",
    "SessionState",
    "SubmissionPipeline",
    "TestSession",
    "aggregate",
    "normalize_category",
    "score_attempt",
]
