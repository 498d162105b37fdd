"""
Tests for the session controller state machine.
"""
import asyncio
import random
from unittest.mock import AsyncMock

import pytest

from cse_reviewer.core.exceptions import AuthFailure, GenerationFailure
from cse_reviewer.engine.fallback import FALLBACK_QUESTIONS
from cse_reviewer.engine.scoring import CORRECT, WRONG
from cse_reviewer.engine.session import SessionConfig, SessionState, TestSession

FALLBACK_TEXTS = {q.text for q in FALLBACK_QUESTIONS}


def generated(text, answer=0, category="Verbal Ability", question_id=None):
    return {
        "success": True,
        "questions": [
            {
                "id": question_id,
                "question": text,
                "options": ["w", "x", "y", "z"],
                "answer": answer,
                "category": category,
            }
        ],
    }


class FakeGenerator:
    """Returns queued responses in order; exceptions in the queue are raised."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    async def generate_question(self, categories, avoid_questions, session_id, question_number):
        self.calls.append(
            {
                "categories": categories,
                "avoid_questions": list(avoid_questions),
                "session_id": session_id,
                "question_number": question_number,
            }
        )
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class GatedGenerator(FakeGenerator):
    """Answers the first call at once and holds later calls until released."""

    def __init__(self, *responses):
        super().__init__(*responses)
        self.gate = asyncio.Event()

    async def generate_question(self, **kwargs):
        if self.calls:
            self.calls.append(kwargs)
            await self.gate.wait()
            return self.responses.pop(0)
        return await super().generate_question(**kwargs)


def continuous_config(**overrides):
    values = dict(
        time_limit_minutes=1,
        categories=["Verbal Ability"],
        continuous=True,
        fade_delay=0,
        next_question_delay=0,
    )
    values.update(overrides)
    return SessionConfig(**values)


def static_config(**overrides):
    values = dict(time_limit_minutes=1, fade_delay=0, next_question_delay=0)
    values.update(overrides)
    return SessionConfig(**values)


class TestStaticSession:
    """Tests for sessions over a fixed question list."""

    def test_start_makes_all_questions_available(self, make_question):
        questions = [make_question(text=f"Q{i}") for i in range(3)]

        async def scenario():
            session = TestSession(static_config(), questions=questions)
            await session.start()
            return session

        session = asyncio.run(scenario())

        assert session.state == SessionState.ACTIVE
        assert session.total_questions == 3
        assert session.current_question.text == "Q0"
        assert session.draft.seconds_remaining == 60

    def test_first_answer_is_final(self, make_question):
        """Test that a question cannot be re-answered."""
        questions = [make_question(text="Q0", answer=2)]

        async def scenario():
            session = TestSession(static_config(), questions=questions)
            await session.start()
            first = session.select_answer(2)
            second = session.select_answer(0)
            await session.wait_pending()
            return session, first, second

        session, first, second = asyncio.run(scenario())

        assert first is True
        assert second is False
        assert session.draft.answers == {0: 2}
        assert session.draft.results == {0: CORRECT}

    def test_answer_locks_then_fades(self, make_question):
        questions = [make_question(text="Q0"), make_question(text="Q1")]

        async def scenario():
            session = TestSession(static_config(), questions=questions)
            await session.start()
            session.select_answer(3)
            locked = session.state
            await session.wait_pending()
            return session, locked

        session, locked = asyncio.run(scenario())

        assert locked == SessionState.LOCKED
        assert session.state == SessionState.ACTIVE
        assert session.draft.faded == {0}
        assert session.draft.results == {0: WRONG}

    def test_navigation_and_progress(self, make_question):
        questions = [make_question(text=f"Q{i}") for i in range(4)]

        async def scenario():
            session = TestSession(static_config(), questions=questions)
            await session.start()
            session.select_answer(0)
            moved = session.go_to(2)
            session.select_answer(1)
            out_of_range = session.go_to(9)
            await session.wait_pending()
            return session, moved, out_of_range

        session, moved, out_of_range = asyncio.run(scenario())

        assert moved is True
        assert out_of_range is False
        assert session.current_index == 2
        assert session.progress == 0.5
        assert set(session.draft.answers) == {0, 2}

    def test_invalid_option_is_ignored(self, make_question):
        async def scenario():
            session = TestSession(static_config(), questions=[make_question()])
            await session.start()
            return session, session.select_answer(7)

        session, recorded = asyncio.run(scenario())

        assert recorded is False
        assert session.draft.answers == {}

    def test_time_warning(self, make_question):
        """Test the advisory flag in the last third of the countdown."""
        session = TestSession(static_config(), questions=[make_question()])

        session.draft.seconds_remaining = 30
        assert not session.time_warning
        session.draft.seconds_remaining = 19
        assert session.time_warning

    def test_time_limit_floor_is_one_minute(self):
        assert SessionConfig(time_limit_minutes=0).initial_seconds == 60
        assert SessionConfig(time_limit_minutes=45).initial_seconds == 2700
        assert SessionConfig(time_limit_minutes=2.9).initial_seconds == 120


class TestContinuousGeneration:
    """Tests for continuous mode question loading."""

    def test_requires_generator(self):
        with pytest.raises(ValueError):
            TestSession(continuous_config())

    def test_start_loads_first_question(self):
        generator = FakeGenerator(generated("First question?"))

        async def scenario():
            session = TestSession(continuous_config(), generator=generator, session_id="session_abc")
            await session.start()
            return session

        session = asyncio.run(scenario())

        assert session.state == SessionState.ACTIVE
        assert session.total_questions == 1
        assert generator.calls[0]["question_number"] == 1
        assert generator.calls[0]["avoid_questions"] == []
        assert generator.calls[0]["session_id"] == "session_abc"
        assert generator.calls[0]["categories"] == ["Verbal Ability"]

    def test_duplicate_is_retried_once(self):
        """Test that a repeated question is discarded and requested again."""
        generator = FakeGenerator(
            generated("Q1?"),
            generated("Q1?"),
            generated("Q2?"),
        )

        async def scenario():
            session = TestSession(continuous_config(), generator=generator)
            await session.start()
            await session.load_next_question()
            return session

        session = asyncio.run(scenario())

        assert [q.text for q in session.draft.questions] == ["Q1?", "Q2?"]
        assert len(generator.calls) == 3
        assert generator.calls[1]["avoid_questions"] == ["Q1?"]
        assert generator.calls[2]["avoid_questions"] == ["Q1?"]
        assert session.current_index == 1
        assert session.draft.duplicate_retries == 1

    def test_second_duplicate_falls_back(self):
        """Test that a duplicate on the retry uses the local pool."""
        generator = FakeGenerator(generated("Q1?"), generated("Q1?"), generated("Q1?"))

        async def scenario():
            session = TestSession(continuous_config(), generator=generator, rng=random.Random(1))
            await session.start()
            await session.load_next_question()
            return session

        session = asyncio.run(scenario())

        texts = [q.text for q in session.draft.questions]
        assert len(texts) == 2
        assert len(set(texts)) == 2
        assert texts[1] in FALLBACK_TEXTS
        assert len(generator.calls) == 3

    def test_generation_failure_falls_back_without_retry(self):
        generator = FakeGenerator(GenerationFailure("LLM down"))

        async def scenario():
            session = TestSession(continuous_config(), generator=generator)
            await session.start()
            return session

        session = asyncio.run(scenario())

        assert len(generator.calls) == 1
        assert session.total_questions == 1
        assert session.draft.questions[0].text in FALLBACK_TEXTS
        assert session.state == SessionState.ACTIVE

    def test_malformed_payload_falls_back(self):
        generator = FakeGenerator(
            {"success": True, "questions": [{"question": "Bad?", "options": "a|b|c|d", "answer": 0}]}
        )

        async def scenario():
            session = TestSession(continuous_config(), generator=generator)
            await session.start()
            return session

        session = asyncio.run(scenario())

        assert session.draft.questions[0].text in FALLBACK_TEXTS

    def test_provider_error_falls_back(self):
        """Test that errors outside the reviewer hierarchy still reach the pool."""
        generator = FakeGenerator(ConnectionError("provider down"))

        async def scenario():
            session = TestSession(continuous_config(), generator=generator)
            await session.start()
            return session

        session = asyncio.run(scenario())

        assert session.state == SessionState.ACTIVE
        assert session.total_questions == 1
        assert session.draft.questions[0].text in FALLBACK_TEXTS

    def test_provider_error_on_next_question_falls_back(self):
        generator = FakeGenerator(generated("Q1?"), ValueError("response body is not JSON"))

        async def scenario():
            session = TestSession(continuous_config(), generator=generator)
            await session.start()
            session.select_answer(0)
            await session.wait_pending()
            return session

        session = asyncio.run(scenario())

        assert session.state == SessionState.ACTIVE
        assert session.total_questions == 2
        assert session.draft.questions[1].text in FALLBACK_TEXTS

    def test_auth_failure_is_not_replaced_by_fallback(self):
        generator = FakeGenerator(AuthFailure("Session expired"))

        async def scenario():
            session = TestSession(continuous_config(), generator=generator)
            await session.start()

        with pytest.raises(AuthFailure):
            asyncio.run(scenario())

    def test_session_wide_retry_cap(self):
        """Test that an exhausted duplicate budget goes straight to the pool."""
        generator = FakeGenerator(generated("Q1?"), generated("Q1?"))

        async def scenario():
            session = TestSession(
                continuous_config(max_session_retries=0), generator=generator
            )
            await session.start()
            await session.load_next_question()
            return session

        session = asyncio.run(scenario())

        assert len(generator.calls) == 2
        assert session.draft.questions[1].text in FALLBACK_TEXTS

    def test_answer_schedules_next_question(self):
        generator = FakeGenerator(generated("Q1?", answer=1), generated("Q2?"))

        async def scenario():
            session = TestSession(continuous_config(), generator=generator)
            await session.start()
            session.select_answer(1)
            locked = session.state
            await session.wait_pending()
            return session, locked

        session, locked = asyncio.run(scenario())

        assert locked == SessionState.LOCKED
        assert session.state == SessionState.ACTIVE
        assert session.total_questions == 2
        assert session.current_index == 1
        assert session.draft.results == {0: CORRECT}
        assert generator.calls[1]["avoid_questions"] == ["Q1?"]
        assert generator.calls[1]["question_number"] == 2

    def test_no_answer_while_loading(self):
        generator = GatedGenerator(generated("Q1?"), generated("Q2?"))

        async def scenario():
            session = TestSession(continuous_config(), generator=generator)
            await session.start()
            session.select_answer(0)
            await asyncio.sleep(0.01)
            state = session.state
            rejected = session.select_answer(1, question_index=0)
            generator.gate.set()
            await session.wait_pending()
            return session, state, rejected

        session, state, rejected = asyncio.run(scenario())

        assert state == SessionState.LOADING
        assert rejected is False
        assert session.total_questions == 2

    def test_result_after_submit_is_discarded(self):
        """Test that a question arriving after submission is never appended."""
        generator = GatedGenerator(generated("Q1?"), generated("Late question?"))

        async def scenario():
            session = TestSession(continuous_config(), generator=generator)
            await session.start()
            pending = asyncio.ensure_future(session.load_next_question())
            await asyncio.sleep(0.01)
            await session.submit()
            generator.gate.set()
            appended = await pending
            return session, appended

        session, appended = asyncio.run(scenario())

        assert appended is None
        assert session.is_submitted
        assert [q.text for q in session.draft.questions] == ["Q1?"]


class TestTimerAndSubmit:
    """Tests for countdown expiry and submission idempotency."""

    def test_expiry_submits_once(self, make_question):
        on_submit = AsyncMock(return_value=True)

        async def scenario():
            session = TestSession(static_config(), questions=[make_question()], on_submit=on_submit)
            await session.start()
            session.draft.seconds_remaining = 2
            await session.tick()
            assert not session.is_submitted
            await session.tick()
            await session.tick()
            await session.submit()
            return session

        session = asyncio.run(scenario())

        assert session.is_submitted
        assert session.draft.seconds_remaining == 0
        assert session.submit_result is True
        on_submit.assert_awaited_once_with(session)

    def test_concurrent_submits_run_callback_once(self, make_question):
        """Test that timer expiry racing a manual submit submits once."""
        calls = []

        async def on_submit(session):
            calls.append(session.draft.session_id)
            await asyncio.sleep(0.01)
            return "saved"

        async def scenario():
            session = TestSession(static_config(), questions=[make_question()], on_submit=on_submit)
            await session.start()
            session.draft.seconds_remaining = 1
            return await asyncio.gather(session.tick(), session.submit(), session.submit())

        results = asyncio.run(scenario())

        assert len(calls) == 1
        assert results[1:] == ["saved", "saved"]

    def test_submit_cancels_pending_work(self):
        generator = GatedGenerator(generated("Q1?"), generated("Q2?"))

        async def scenario():
            session = TestSession(continuous_config(), generator=generator)
            await session.start()
            session.select_answer(0)
            await asyncio.sleep(0.01)
            await session.submit()
            await session.wait_pending()
            return session

        session = asyncio.run(scenario())

        assert session.is_submitted
        assert session.total_questions == 1

    def test_no_answers_after_submit(self, make_question):
        async def scenario():
            session = TestSession(static_config(), questions=[make_question()])
            await session.start()
            await session.submit()
            return session, session.select_answer(0)

        session, recorded = asyncio.run(scenario())

        assert recorded is False
        assert session.draft.answers == {}

    def test_run_timer_counts_down_to_submission(self, make_question):
        on_submit = AsyncMock()

        async def scenario():
            session = TestSession(static_config(), questions=[make_question()], on_submit=on_submit)
            await session.start()
            session.draft.seconds_remaining = 3
            await session.run_timer(interval=0)
            return session

        session = asyncio.run(scenario())

        assert session.is_submitted
        assert session.elapsed_seconds == 60
        on_submit.assert_awaited_once()
