"""
Submission pipeline: turn a finished session into a saved attempt, then push
per-question mastery updates on a best-effort basis.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

from cse_reviewer.core.exceptions import AuthFailure, MasteryUpdateFailure, SubmissionFailure
from cse_reviewer.engine.questions import Question
from cse_reviewer.engine.scoring import CORRECT, determine_question_type, score_attempt
from cse_reviewer.engine.session import SessionConfig, TestSession

logger = logging.getLogger(__name__)


class AttemptStore(Protocol):
    """Remote persistence used by the pipeline."""

    async def save_attempt(self, payload: Mapping[str, Any]) -> Mapping[str, Any]:
        ...

    async def update_mastery(self, question_results: List[Dict[str, Any]]) -> Mapping[str, Any]:
        ...


def format_time_spent(seconds: int) -> str:
    """Human readable duration, e.g. ``2 minutes 5 seconds``."""
    seconds = max(0, int(seconds))
    minutes, remaining = divmod(seconds, 60)

    if minutes == 0:
        return f"{remaining} seconds"
    minute_part = f"{minutes} minute{'s' if minutes > 1 else ''}"
    if remaining == 0:
        return minute_part
    return f"{minute_part} {remaining} second{'s' if remaining > 1 else ''}"


def generate_test_name(categories: Sequence[str], is_mock_exam: bool = False, when: Optional[datetime] = None) -> str:
    prefix = "Mock Exam" if is_mock_exam else "Practice Test"
    if not categories:
        return prefix

    when = when or datetime.now()
    date = f"{when:%b} {when.day}, {when.year}"

    if len(categories) == 1:
        return f"{prefix}: {categories[0]} - {date}"
    if len(categories) == 2:
        return f"{prefix}: {categories[0]} & {categories[1]} - {date}"
    return f"{prefix} - {date}"


def generate_explanation(question: Question, user_index: Optional[int]) -> str:
    """Short explanation for questions that carry none."""
    correct = question.options[question.answer]
    if user_index is None:
        return f"Correct answer: {correct}"
    if user_index == question.answer:
        return f"✓ Correct! The answer is {correct}."
    return f'✗ Incorrect. You chose "{question.options[user_index]}" but the correct answer is "{correct}".'


def prepare_attempt_payload(
    questions: List[Question],
    answers: Mapping[int, int],
    results: Mapping[int, str],
    config: SessionConfig,
    seconds_remaining: int,
    started_at: datetime,
    completed_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Build the TestAttempt payload sent to the attempt store.

    Args:
        questions: Questions in the order they were shown
        answers: Question index -> selected option index
        results: Question index -> "correct" | "wrong"
        config: Session settings (categories, time limit, mock flag)
        seconds_remaining: Countdown value at submission
        started_at: When the session started
        completed_at: When the session was submitted, defaults to now

    Returns:
        JSON-serializable attempt payload
    """
    completed_at = completed_at or datetime.now(timezone.utc)
    card = score_attempt(questions, answers, results)
    total = len(questions)
    time_spent_seconds = max(0, config.initial_seconds - max(0, seconds_remaining))
    per_question = time_spent_seconds // total if total > 0 else 0

    responses = []
    for index, question in enumerate(questions):
        user_index = answers.get(index)
        responses.append({
            "questionId": str(question.id) if question.has_stable_id else f"q_{index}",
            "questionText": question.text,
            "category": question.category or "General",
            "questionType": determine_question_type(question),
            "difficulty": question.difficulty or "Normal",
            "options": list(question.options),
            "userAnswer": question.options[user_index] if user_index is not None else None,
            "userAnswerIndex": user_index,
            "correctAnswer": question.options[question.answer],
            "correctAnswerIndex": question.answer,
            "isCorrect": user_index == question.answer,
            "timeSpent": per_question,
            "explanation": question.explanation or generate_explanation(question, user_index),
        })

    return {
        "name": generate_test_name(config.categories, config.is_mock_exam, completed_at),
        "score": card.score,
        "result": card.result,
        "isMockExam": config.is_mock_exam,
        "details": {
            "sectionScores": card.section_scores,
            "questionTypeScores": card.question_type_scores,
            "timeSpent": format_time_spent(time_spent_seconds),
            "timeSpentSeconds": time_spent_seconds,
            "correctQuestions": card.correct,
            "incorrectQuestions": card.incorrect,
            "totalQuestions": total,
            "unansweredQuestions": card.unanswered,
        },
        "questionResponses": responses,
        "testConfig": {
            "categories": list(config.categories),
            "difficulty": config.difficulty,
            "questionCount": total,
            "timeLimit": config.time_limit_minutes,
        },
        "startedAt": started_at.isoformat(),
        "completedAt": completed_at.isoformat(),
    }


def build_mastery_results(questions: List[Question], results: Mapping[int, str]):
    """
    Mastery updates for questions that exist in the question bank.

    Returns:
        Tuple of (``[{questionId, isCorrect}]``, number of questions skipped for lack of an id)
    """
    updates = []
    skipped = 0
    for index, question in enumerate(questions):
        if not question.has_stable_id:
            skipped += 1
            continue
        updates.append({"questionId": str(question.id), "isCorrect": results.get(index) == CORRECT})
    return updates, skipped


class SubmissionPipeline:
    """
    Saves one attempt and then its mastery updates.

    The payload is computed once; ``retry`` re-sends the same payload after a
    failed save. A mastery failure never clears ``saved``.
    """

    def __init__(self, store: AttemptStore):
        self.store = store
        self.payload: Optional[Dict[str, Any]] = None
        self.mastery_results: List[Dict[str, Any]] = []
        self.skipped_without_id = 0

        self.saving = False
        self.saved = False
        self.save_error: Optional[str] = None
        self.saved_attempt: Optional[Mapping[str, Any]] = None
        self.mastery_updated = False
        self.mastery_error: Optional[str] = None

    def prepare(self, session: TestSession) -> Dict[str, Any]:
        """Score the session and freeze the payload. Later calls return the frozen payload."""
        if self.payload is None:
            draft = session.draft
            self.payload = prepare_attempt_payload(
                questions=draft.questions,
                answers=draft.answers,
                results=draft.results,
                config=session.config,
                seconds_remaining=draft.seconds_remaining,
                started_at=draft.started_at,
                completed_at=session.submitted_at,
            )
            self.mastery_results, self.skipped_without_id = build_mastery_results(draft.questions, draft.results)
        return self.payload

    async def handle(self, session: TestSession) -> bool:
        """Submit callback for TestSession."""
        self.prepare(session)
        return await self.run()

    async def retry(self) -> bool:
        """Re-run the pipeline from the retained payload."""
        if self.payload is None:
            raise ValueError("Nothing to retry: no payload prepared")
        if self.saved:
            return True
        return await self.run()

    async def run(self) -> bool:
        """
        Save the attempt, then update mastery.

        Returns:
            True once the attempt is saved

        Raises:
            AuthFailure: If the store rejected the credential
        """
        if self.payload is None:
            raise ValueError("No payload prepared")

        self.saving = True
        self.save_error = None
        try:
            self.saved_attempt = await self.store.save_attempt(self.payload)
        except AuthFailure:
            self.save_error = "Session expired"
            raise
        except SubmissionFailure as e:
            logger.error(f"Error saving test result: {e}")
            self.save_error = str(e) or "Failed to save test result"
            return False
        finally:
            self.saving = False

        self.saved = True
        logger.info(f"Test result saved: {self.payload['name']} ({self.payload['score']}%)")

        await self._update_mastery()
        return True

    async def _update_mastery(self) -> None:
        if self.mastery_updated:
            return
        if not self.mastery_results:
            logger.warning(
                f"No question ids available, mastery tracking skipped ({self.skipped_without_id} questions)"
            )
            return

        if self.skipped_without_id:
            logger.info(f"{self.skipped_without_id} questions without ids skipped for mastery tracking")

        try:
            response = await self.store.update_mastery(self.mastery_results)
            self.mastery_updated = True
            logger.info(f"Updated progress for {len(self.mastery_results)} questions: {response}")
        except (MasteryUpdateFailure, AuthFailure) as e:
            self.mastery_error = str(e)
            logger.error(f"Failed to update question progress: {e}")
        except Exception as e:
            self.mastery_error = str(e) or type(e).__name__
            logger.exception(f"Unexpected error updating question progress: {e}")
