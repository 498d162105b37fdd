"""
Tests for per-question mastery tracking.
"""
from cse_reviewer.models.question_progress import UserQuestionProgress
from cse_reviewer.services.mastery_service import LEARNING, MASTERED, NEEDS_REVIEW, record_answer

PROGRESS_URL = "/api/v1/questions/progress/update"


class TestRecordAnswer:
    """Tests for the mastery state machine."""

    def test_first_correct_moves_to_learning(self):
        progress = record_answer(UserQuestionProgress(), True)

        assert progress.status == LEARNING
        assert progress.correct_streak == 1
        assert progress.total_attempts == 1
        assert progress.correct_attempts == 1
        assert progress.last_answered_at is not None

    def test_three_in_a_row_masters(self):
        progress = UserQuestionProgress()
        for _ in range(3):
            record_answer(progress, True)

        assert progress.status == MASTERED
        assert progress.mastered_at is not None

    def test_wrong_answer_demotes_one_level(self):
        progress = UserQuestionProgress(status=MASTERED, correct_streak=4)

        record_answer(progress, False)
        assert progress.status == LEARNING
        assert progress.correct_streak == 0
        assert progress.mastered_at is None

        record_answer(progress, False)
        assert progress.status == NEEDS_REVIEW

        record_answer(progress, False)
        assert progress.status == NEEDS_REVIEW
        assert progress.total_attempts == 3

    def test_custom_streak(self):
        progress = record_answer(UserQuestionProgress(), True, mastery_streak=1)
        assert progress.status == MASTERED


class TestProgressUpdateEndpoint:
    """Tests for POST /api/v1/questions/progress/update."""

    def test_updates_known_questions(self, client, auth_headers, bank_questions):
        first, second = bank_questions[0], bank_questions[1]
        response = client.post(
            PROGRESS_URL,
            json={
                "questionResults": [
                    {"questionId": str(first.id), "isCorrect": True},
                    {"questionId": second.id, "isCorrect": False},
                ]
            },
            headers=auth_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["stats"] == {"processed": 2, "successful": 2, "failed": 0}
        assert data["updates"][0] == {
            "questionId": first.id,
            "status": "learning",
            "correctStreak": 1,
            "totalAttempts": 1,
        }
        assert data["updates"][1]["status"] == "needs-review"

    def test_unknown_questions_are_reported_not_fatal(self, client, auth_headers, bank_questions):
        response = client.post(
            PROGRESS_URL,
            json={
                "questionResults": [
                    {"questionId": "q_3", "isCorrect": True},
                    {"questionId": 99999, "isCorrect": True},
                    {"isCorrect": True},
                    {"questionId": bank_questions[0].id, "isCorrect": True},
                ]
            },
            headers=auth_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["stats"] == {"processed": 4, "successful": 1, "failed": 3}
        assert {"error": "Missing questionId"} in data["errors"]

    def test_repeated_question_in_one_batch(self, client, auth_headers, bank_questions):
        """Test that a question answered twice in a batch keeps a single progress row."""
        question_id = bank_questions[0].id
        response = client.post(
            PROGRESS_URL,
            json={"questionResults": [{"questionId": question_id, "isCorrect": True}] * 3},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json()["updates"][-1]["status"] == "mastered"

        stats = client.get("/api/v1/questions/progress/stats", headers=auth_headers).json()
        assert stats == {"mastered": 1, "learning": 0, "needsReview": 0, "total": 1}

    def test_missing_results(self, client, auth_headers):
        response = client.post(PROGRESS_URL, json={}, headers=auth_headers)
        assert response.status_code == 400

    def test_empty_results(self, client, auth_headers):
        response = client.post(PROGRESS_URL, json={"questionResults": []}, headers=auth_headers)
        assert response.status_code == 400

    def test_requires_auth(self, client):
        response = client.post(PROGRESS_URL, json={"questionResults": []})
        assert response.status_code == 401
