"""
Session controller: the state machine for one timed exam attempt.

A session either runs over a static question list or pulls questions one at a
time from a generator (continuous mode). The AttemptDraft is owned by the
session and every mutation happens in a single synchronous step, so the timer
task and the generation task never observe a half-applied update.
"""
import asyncio
import inspect
import logging
import random
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Protocol, Set

from cse_reviewer.core.config import settings
from cse_reviewer.core.exceptions import AuthFailure, DuplicateQuestion, GenerationFailure
from cse_reviewer.engine.fallback import pick_fallback_question
from cse_reviewer.engine.questions import Question, parse_generation_response
from cse_reviewer.engine.scoring import CORRECT, WRONG

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    INITIALIZING = "initializing"
    LOADING = "loading"
    ACTIVE = "active"
    LOCKED = "locked"
    SUBMITTED = "submitted"


class QuestionSource(Protocol):
    """Anything that can generate one question on demand."""

    async def generate_question(
        self,
        categories: List[str],
        avoid_questions: List[str],
        session_id: str,
        question_number: int,
    ) -> Mapping[str, Any]:
        ...


@dataclass
class SessionConfig:
    """Per-session settings. Defaults come from application settings."""

    time_limit_minutes: float = field(default_factory=lambda: settings.DEFAULT_TIME_LIMIT_MINUTES)
    categories: List[str] = field(default_factory=list)
    continuous: bool = False
    is_mock_exam: bool = False
    difficulty: str = "Mixed"
    time_warning_ratio: float = field(default_factory=lambda: settings.TIME_WARNING_RATIO)
    fade_delay: float = field(default_factory=lambda: settings.ANSWER_FADE_DELAY_SECONDS)
    next_question_delay: float = field(default_factory=lambda: settings.NEXT_QUESTION_DELAY_SECONDS)
    max_duplicate_retries: int = field(default_factory=lambda: settings.MAX_DUPLICATE_RETRIES)
    max_session_retries: int = field(default_factory=lambda: settings.MAX_SESSION_GENERATION_RETRIES)

    @property
    def initial_seconds(self) -> int:
        """
        Countdown start: whole minutes of the time limit, in seconds.

        Fractions of a minute are dropped. Limits below one minute count as one
        minute.
        """
        return max(1, int(self.time_limit_minutes)) * 60


@dataclass
class AttemptDraft:
    """Client-held state of an attempt in progress."""

    session_id: str
    seconds_remaining: int
    questions: List[Question] = field(default_factory=list)
    answers: Dict[int, int] = field(default_factory=dict)
    results: Dict[int, str] = field(default_factory=dict)
    seen_texts: Set[str] = field(default_factory=set)
    question_number: int = 0
    duplicate_retries: int = 0
    faded: Set[int] = field(default_factory=set)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def avoid_list(self) -> List[str]:
        """Seen question texts in the order they were shown."""
        return [q.text for q in self.questions]

    @property
    def answered_count(self) -> int:
        return len(self.answers)

    @property
    def correct_count(self) -> int:
        return sum(1 for r in self.results.values() if r == CORRECT)


SubmitCallback = Callable[["TestSession"], Any]


class TestSession:
    """
    Drives one timed attempt from the first question to submission.

    Usage:
        session = TestSession(config, generator=client, on_submit=pipeline.handle)
        await session.start()
        session.select_answer(2)
        ...
        await session.submit()
    """

    __test__ = False

    def __init__(
        self,
        config: Optional[SessionConfig] = None,
        questions: Optional[List[Question]] = None,
        generator: Optional[QuestionSource] = None,
        on_submit: Optional[SubmitCallback] = None,
        rng: Optional[random.Random] = None,
        session_id: Optional[str] = None,
    ):
        self.config = config or SessionConfig()
        if self.config.continuous and generator is None:
            raise ValueError("Continuous mode requires a question generator")

        self.generator = generator
        self.on_submit = on_submit
        self.rng = rng or random.Random()
        self.state = SessionState.INITIALIZING
        self.current_index = 0
        self.submit_result: Any = None
        self.submitted_at: Optional[datetime] = None

        self._static_questions = list(questions or [])
        self._tasks: Set[asyncio.Task] = set()
        self._timer_task: Optional[asyncio.Task] = None
        self._submit_lock = asyncio.Lock()

        self.draft = AttemptDraft(
            session_id=session_id or f"session_{uuid.uuid4().hex[:12]}",
            seconds_remaining=self.config.initial_seconds,
        )

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def is_submitted(self) -> bool:
        return self.state == SessionState.SUBMITTED

    @property
    def total_questions(self) -> int:
        return len(self.draft.questions)

    @property
    def current_question(self) -> Optional[Question]:
        if 0 <= self.current_index < len(self.draft.questions):
            return self.draft.questions[self.current_index]
        return None

    @property
    def progress(self) -> float:
        """Answered fraction of the questions appended so far."""
        if not self.draft.questions:
            return 0.0
        return self.draft.answered_count / len(self.draft.questions)

    @property
    def time_warning(self) -> bool:
        """Advisory flag for the last third of the countdown."""
        return self.draft.seconds_remaining <= self.config.initial_seconds * self.config.time_warning_ratio

    @property
    def elapsed_seconds(self) -> int:
        return self.config.initial_seconds - max(0, self.draft.seconds_remaining)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, run_timer: bool = False) -> None:
        """
        Load the first question(s) and make the session answerable.

        Args:
            run_timer: Also start the one-second countdown task
        """
        if self.state != SessionState.INITIALIZING:
            return

        logger.info(
            f"Starting session {self.draft.session_id} "
            f"({'continuous' if self.config.continuous else 'static'}, {self.config.initial_seconds}s)"
        )

        if self.config.continuous:
            await self.load_next_question()
        else:
            for question in self._static_questions:
                self._append(question)
            self.state = SessionState.ACTIVE

        if run_timer and not self.is_submitted:
            self._timer_task = asyncio.create_task(self.run_timer())

    async def load_next_question(self) -> Optional[Question]:
        """
        Request one new question and append it.

        A generated question whose text was already seen is discarded and
        requested again up to ``max_duplicate_retries`` times. Generation
        failures, malformed payloads and exhausted retries fall back to the
        local pool. Results arriving after submission are dropped.

        Returns:
            The appended question, or None if nothing was appended
        """
        if self.is_submitted:
            return None
        if not self.config.continuous:
            return None

        self.state = SessionState.LOADING
        question = await self._generate_unique()

        if self.is_submitted:
            if question is not None:
                logger.info(f"Discarding question received after submission: {question.text[:60]}")
            return None

        if question is None:
            question = pick_fallback_question(self.draft.seen_texts, rng=self.rng)
            if question is None:
                logger.warning(f"Fallback pool exhausted for session {self.draft.session_id}")
                self.state = SessionState.ACTIVE
                return None
            logger.info(f"Using fallback question: {question.text[:60]}")

        self._append(question)
        self.current_index = len(self.draft.questions) - 1
        self.state = SessionState.ACTIVE
        return question

    async def _generate_unique(self) -> Optional[Question]:
        """Ask the generator for a question not in the avoid list; None means use the fallback."""
        attempts = self.config.max_duplicate_retries + 1

        for attempt in range(attempts):
            if attempt > 0:
                if self.draft.duplicate_retries >= self.config.max_session_retries:
                    logger.warning(
                        f"Session {self.draft.session_id} used all {self.config.max_session_retries} duplicate retries"
                    )
                    return None
                self.draft.duplicate_retries += 1

            self.draft.question_number += 1
            try:
                response = await self.generator.generate_question(
                    categories=list(self.config.categories),
                    avoid_questions=self.draft.avoid_list,
                    session_id=self.draft.session_id,
                    question_number=self.draft.question_number,
                )
                question = parse_generation_response(response, self._default_category())
                if question.text in self.draft.seen_texts:
                    raise DuplicateQuestion(question.text)
                return question
            except DuplicateQuestion as e:
                logger.info(f"{e} (attempt {attempt + 1}/{attempts})")
                continue
            except GenerationFailure as e:
                logger.warning(f"Question generation failed: {e}")
                return None
            except AuthFailure:
                raise
            except Exception as e:
                logger.warning(f"Question generator error, using fallback: {type(e).__name__}: {e}")
                return None

        return None

    def _default_category(self) -> str:
        if self.config.categories:
            return self.rng.choice(self.config.categories)
        return "General Knowledge"

    def _append(self, question: Question) -> None:
        self.draft.questions.append(question)
        self.draft.seen_texts.add(question.text)
        logger.debug(f"Question {len(self.draft.questions)} appended: {question.text[:60]}")

    # ------------------------------------------------------------------
    # Answering
    # ------------------------------------------------------------------

    def go_to(self, index: int) -> bool:
        """Move to another question of a static set."""
        if self.is_submitted or not 0 <= index < len(self.draft.questions):
            return False
        self.current_index = index
        if self.state == SessionState.LOCKED:
            self.state = SessionState.ACTIVE
        return True

    def select_answer(self, option_index: int, question_index: Optional[int] = None) -> bool:
        """
        Record the answer for a question. The first answer is final.

        Args:
            option_index: Selected option
            question_index: Question to answer, defaults to the current one

        Returns:
            True if the answer was recorded
        """
        if self.state not in (SessionState.ACTIVE, SessionState.LOCKED):
            return False

        index = self.current_index if question_index is None else question_index
        if not 0 <= index < len(self.draft.questions):
            return False
        if index in self.draft.answers:
            return False

        question = self.draft.questions[index]
        if not 0 <= option_index < len(question.options):
            return False

        self.draft.answers[index] = option_index
        self.draft.results[index] = CORRECT if option_index == question.answer else WRONG
        self.state = SessionState.LOCKED

        self._spawn(self._fade(index))
        if self.config.continuous:
            self._spawn(self._schedule_next())
        return True

    async def _fade(self, index: int) -> None:
        await asyncio.sleep(self.config.fade_delay)
        if self.is_submitted:
            return
        self.draft.faded.add(index)
        if not self.config.continuous and self.state == SessionState.LOCKED:
            self.state = SessionState.ACTIVE

    async def _schedule_next(self) -> None:
        await asyncio.sleep(self.config.next_question_delay)
        await self.load_next_question()

    def _spawn(self, coro: Awaitable) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_pending(self) -> None:
        """Wait for scheduled fade and next-question work to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Timer and submission
    # ------------------------------------------------------------------

    async def tick(self) -> None:
        """Advance the countdown by one second; submit when it reaches zero."""
        if self.is_submitted:
            return
        self.draft.seconds_remaining = max(0, self.draft.seconds_remaining - 1)
        if self.draft.seconds_remaining == 0:
            logger.info(f"Time expired for session {self.draft.session_id}")
            await self.submit()

    async def run_timer(self, interval: float = 1.0) -> None:
        while not self.is_submitted:
            await asyncio.sleep(interval)
            await self.tick()

    async def submit(self) -> Any:
        """
        Finish the attempt. Safe to call repeatedly, from the timer or the user.

        Returns:
            Whatever the submit callback returned on the first call
        """
        async with self._submit_lock:
            if self.is_submitted:
                return self.submit_result

            self.state = SessionState.SUBMITTED
            self.submitted_at = datetime.now(timezone.utc)
            self._cancel_pending()

            logger.info(
                f"Submitting session {self.draft.session_id}: "
                f"{self.draft.answered_count}/{self.total_questions} answered"
            )

            if self.on_submit is not None:
                result = self.on_submit(self)
                if inspect.isawaitable(result):
                    result = await result
                self.submit_result = result

            return self.submit_result

    def _cancel_pending(self) -> None:
        current = asyncio.current_task()
        for task in list(self._tasks):
            if task is not current:
                task.cancel()
        if self._timer_task is not None and self._timer_task is not current:
            self._timer_task.cancel()
