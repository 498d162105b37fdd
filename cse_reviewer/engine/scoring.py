"""
Scoring engine: section, overall and question-type scores for a finished attempt.
"""
import math
from typing import Dict, List, Mapping, Optional

from pydantic import BaseModel

from cse_reviewer.core.config import settings
from cse_reviewer.engine.categories import Section, empty_section_map, normalize_category
from cse_reviewer.engine.questions import Question

CORRECT = "correct"
WRONG = "wrong"

MULTIPLE_CHOICE = "Multiple Choice"
ESSAY = "Essay"
SITUATIONAL = "Situational"

QUESTION_TYPE_KEYS = {
    MULTIPLE_CHOICE: "multipleChoice",
    ESSAY: "essay",
    SITUATIONAL: "situational",
}


class ScoreCard(BaseModel):
    """Scoring output for one attempt."""

    section_scores: Dict[str, int]
    question_type_scores: Dict[str, int]
    score: int
    result: str
    correct: int
    incorrect: int
    unanswered: int
    total: int

    @property
    def passed(self) -> bool:
        return self.result == "Passed"


def round_half_up(value: float) -> int:
    """Round halves up, matching the rounding used for stored scores."""
    return int(math.floor(value + 0.5))


def percentage(correct: int, total: int) -> int:
    """Rounded percentage, 0 when there is nothing to divide by."""
    if total <= 0:
        return 0
    return round_half_up(correct / total * 100)


def pass_result(score: int, threshold: Optional[int] = None) -> str:
    threshold = settings.PASS_THRESHOLD if threshold is None else threshold
    return "Passed" if score >= threshold else "Failed"


def determine_question_type(question: Question) -> str:
    """
    Classify a question for the question-type breakdown.

    An explicit type wins, anything else is multiple choice.
    """
    if question.type in QUESTION_TYPE_KEYS:
        return question.type
    # Only multiple choice is detected from shape; essay and situational need an explicit type
    return MULTIPLE_CHOICE


def calculate_section_scores(
    questions: List[Question], results: Mapping[int, str]
) -> Dict[str, int]:
    """Per-section percentages for every canonical section."""
    totals = empty_section_map()
    correct = empty_section_map()

    for index, question in enumerate(questions):
        section = normalize_category(question.category)
        totals[section.value] += 1
        if results.get(index) == CORRECT:
            correct[section.value] += 1

    return {
        section.value: percentage(correct[section.value], totals[section.value])
        for section in Section
    }


def calculate_question_type_scores(
    questions: List[Question], results: Mapping[int, str]
) -> Dict[str, int]:
    totals = {key: 0 for key in QUESTION_TYPE_KEYS.values()}
    correct = {key: 0 for key in QUESTION_TYPE_KEYS.values()}

    for index, question in enumerate(questions):
        key = QUESTION_TYPE_KEYS[determine_question_type(question)]
        totals[key] += 1
        if results.get(index) == CORRECT:
            correct[key] += 1

    return {key: percentage(correct[key], totals[key]) for key in totals}


def score_attempt(
    questions: List[Question],
    answers: Mapping[int, int],
    results: Mapping[int, str],
    pass_threshold: Optional[int] = None,
) -> ScoreCard:
    """
    Score a finished attempt.

    Args:
        questions: Questions in the order they were shown
        answers: Question index -> selected option index
        results: Question index -> "correct" | "wrong"
        pass_threshold: Minimum score that passes, defaults to settings

    Returns:
        ScoreCard with section, question-type and overall scores
    """
    total = len(questions)
    correct_count = sum(1 for r in results.values() if r == CORRECT)
    incorrect_count = sum(1 for r in results.values() if r == WRONG)
    unanswered = total - len(answers)
    score = percentage(correct_count, total)

    return ScoreCard(
        section_scores=calculate_section_scores(questions, results),
        question_type_scores=calculate_question_type_scores(questions, results),
        score=score,
        result=pass_result(score, pass_threshold),
        correct=correct_count,
        incorrect=incorrect_count,
        unanswered=unanswered,
        total=total,
    )
