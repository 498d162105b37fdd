"""
Tests for the scoring engine.
"""
import pytest

from cse_reviewer.engine.scoring import (
    CORRECT,
    WRONG,
    pass_result,
    percentage,
    round_half_up,
    score_attempt,
)


def _results(questions, answers):
    return {
        index: CORRECT if option == questions[index].answer else WRONG
        for index, option in answers.items()
    }


class TestRounding:
    """Tests for percentage rounding."""

    @pytest.mark.parametrize("value, expected", [(0.5, 1), (2.5, 3), (66.5, 67), (33.3, 33), (99.49, 99)])
    def test_round_half_up(self, value, expected):
        """Test that halves round up rather than to even."""
        assert round_half_up(value) == expected

    def test_percentage(self):
        assert percentage(1, 3) == 33
        assert percentage(2, 3) == 67
        assert percentage(5, 5) == 100

    def test_percentage_of_nothing_is_zero(self):
        """Test that an empty denominator never divides by zero."""
        assert percentage(0, 0) == 0


class TestPassResult:
    def test_threshold_is_inclusive(self):
        """Test that exactly the pass threshold passes."""
        assert pass_result(70) == "Passed"
        assert pass_result(69) == "Failed"

    def test_custom_threshold(self):
        assert pass_result(75, threshold=80) == "Failed"


class TestScoreAttempt:
    """Tests for score_attempt."""

    def test_mixed_sections(self, make_question):
        """Test two wrong verbal answers and three right numerical answers."""
        questions = [
            make_question(text="V1", category="Verbal Ability", answer=0),
            make_question(text="V2", category="Verbal Ability", answer=1),
            make_question(text="N1", category="Numerical Ability", answer=2),
            make_question(text="N2", category="Numerical Ability", answer=3),
            make_question(text="N3", category="Numerical Ability", answer=0),
        ]
        answers = {0: 3, 1: 2, 2: 2, 3: 3, 4: 0}

        card = score_attempt(questions, answers, _results(questions, answers))

        assert card.score == 60
        assert card.result == "Failed"
        assert not card.passed
        assert card.section_scores["verbal"] == 0
        assert card.section_scores["numerical"] == 100
        assert card.section_scores["analytical"] == 0
        assert card.correct == 3
        assert card.incorrect == 2
        assert card.unanswered == 0
        assert card.total == 5

    def test_every_section_key_present(self, make_question):
        """Test that sections without questions report 0."""
        questions = [make_question(category="Clerical Ability")]
        card = score_attempt(questions, {0: 0}, {0: CORRECT})

        assert set(card.section_scores) == {
            "verbal",
            "numerical",
            "analytical",
            "generalInfo",
            "clerical",
            "constitution",
        }
        assert card.section_scores["clerical"] == 100
        assert card.section_scores["verbal"] == 0

    def test_unanswered_counts_against_score(self, make_question):
        """Test that skipped questions stay in the denominator."""
        questions = [make_question(text=f"Q{i}", answer=0) for i in range(4)]
        answers = {0: 0, 1: 1}

        card = score_attempt(questions, answers, _results(questions, answers))

        assert card.score == 25
        assert card.correct == 1
        assert card.incorrect == 1
        assert card.unanswered == 2

    def test_pass_at_seventy(self, make_question):
        questions = [make_question(text=f"Q{i}", answer=0) for i in range(10)]
        answers = {i: 0 if i < 7 else 1 for i in range(10)}

        card = score_attempt(questions, answers, _results(questions, answers))

        assert card.score == 70
        assert card.result == "Passed"

    def test_empty_attempt(self):
        """Test that an attempt without questions scores 0 and fails."""
        card = score_attempt([], {}, {})

        assert card.score == 0
        assert card.result == "Failed"
        assert card.total == 0

    def test_question_type_scores(self, make_question):
        """Test that only an explicit type moves a question out of multiple choice."""
        questions = [
            make_question(text="MC", answer=0),
            make_question(text="Essay", answer=0, type="Essay"),
            make_question(text="Sit", answer=0, type="Situational"),
            make_question(text="Odd", answer=0, type="Matching"),
        ]
        answers = {0: 0, 1: 0, 2: 1, 3: 1}

        card = score_attempt(questions, answers, _results(questions, answers))

        assert card.question_type_scores == {"multipleChoice": 50, "essay": 100, "situational": 0}
