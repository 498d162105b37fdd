"""
Exam question generation agent.
"""
from cse_reviewer.core.agents.generation.question_generator import QuestionGenerator

__all__ = ["QuestionGenerator"]
