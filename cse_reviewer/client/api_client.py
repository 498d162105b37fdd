"""
Async HTTP client for the reviewer backend.

Implements the generator and attempt-store collaborators the exam engine
expects, on top of ``httpx.AsyncClient``.
"""
import inspect
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Type

import httpx

from cse_reviewer.core.config import settings
from cse_reviewer.core.exceptions import (
    AuthFailure,
    GenerationFailure,
    MasteryUpdateFailure,
    ReviewerError,
    SubmissionFailure,
)

logger = logging.getLogger(__name__)


class TokenStore:
    """Holds the bearer token for the signed-in user."""

    def __init__(self, token: Optional[str] = None):
        self.token = token

    def set(self, token: str) -> None:
        self.token = token

    def clear(self) -> None:
        self.token = None

    def __bool__(self) -> bool:
        return bool(self.token)


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("message")
        if isinstance(detail, str):
            return detail
    return f"HTTP {response.status_code}"


class ReviewerClient:
    """
    Bearer-authenticated client for the reviewer API.

    Args:
        base_url: API root, defaults to ``settings.API_BASE_URL``
        token_store: Where the access token lives
        on_auth_failure: Called (sync or async) after a 401 clears the token
        timeout: Request timeout in seconds
        transport: Optional httpx transport, used by tests
        difficulty: Difficulty sent with continuous generation requests
        sub_topic: Optional sub-topic sent with continuous generation requests
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token_store: Optional[TokenStore] = None,
        on_auth_failure: Optional[Callable[[], Any]] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        difficulty: str = "Normal",
        sub_topic: Optional[str] = None,
    ):
        self.token_store = token_store or TokenStore()
        self.on_auth_failure = on_auth_failure
        self.difficulty = difficulty
        self.sub_topic = sub_topic
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.API_BASE_URL,
            timeout=timeout or settings.API_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def __aenter__(self) -> "ReviewerClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self) -> Dict[str, str]:
        if self.token_store.token:
            return {"Authorization": f"Bearer {self.token_store.token}"}
        return {}

    async def _handle_auth_failure(self) -> None:
        logger.warning("Authentication failed - clearing stored token")
        self.token_store.clear()
        if self.on_auth_failure is not None:
            result = self.on_auth_failure()
            if inspect.isawaitable(result):
                await result

    async def _request(
        self,
        method: str,
        path: str,
        error_cls: Type[ReviewerError] = ReviewerError,
        **kwargs,
    ) -> Any:
        """
        Send a request and decode the JSON body.

        Raises:
            AuthFailure: On a 401 response, after the token store is cleared
            error_cls: On any other transport or status error
        """
        try:
            response = await self._client.request(method, path, headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise error_cls(str(e)) from e

        if response.status_code == 401:
            await self._handle_auth_failure()
            raise AuthFailure("Session expired. Please log in again.")

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            detail = _error_detail(response)
            logger.error(f"{method} {path} returned {response.status_code}: {detail}")
            if issubclass(error_cls, SubmissionFailure):
                raise error_cls(detail, status_code=response.status_code) from e
            raise error_cls(detail) from e

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"{method} {path} returned a body that is not JSON")
            if issubclass(error_cls, SubmissionFailure):
                raise error_cls("Invalid response body", status_code=response.status_code) from e
            raise error_cls("Invalid response body") from e

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    async def login(self, username: str, password: str) -> Dict[str, Any]:
        """Exchange credentials for a token and keep it in the token store."""
        token = await self._request(
            "POST", "/auth/login", data={"username": username, "password": password}
        )
        self.token_store.set(token["access_token"])
        return token

    # ------------------------------------------------------------------
    # Question generation
    # ------------------------------------------------------------------

    async def generate_question(
        self,
        categories: List[str],
        avoid_questions: List[str],
        session_id: str,
        question_number: int,
    ) -> Mapping[str, Any]:
        """
        Ask the backend for one new question.

        Sessions with several categories rotate through them by question number.
        """
        if not categories:
            raise GenerationFailure("No category to generate for")
        topic = categories[(max(question_number, 1) - 1) % len(categories)]

        category: Dict[str, Any] = {"topic": topic, "difficulty": self.difficulty, "count": 1}
        if self.sub_topic:
            category["subTopic"] = self.sub_topic

        return await self._request(
            "POST",
            "/tests/generate",
            GenerationFailure,
            json={
                "categories": [category],
                "avoidQuestions": list(avoid_questions),
                "sessionId": session_id,
                "questionNumber": question_number,
            },
        )

    # ------------------------------------------------------------------
    # Attempts
    # ------------------------------------------------------------------

    async def save_attempt(self, payload: Mapping[str, Any]) -> Mapping[str, Any]:
        response = await self._request("POST", "/test-attempts/", SubmissionFailure, json=dict(payload))
        return response.get("attempt", response)

    async def update_mastery(self, question_results: List[Dict[str, Any]]) -> Mapping[str, Any]:
        return await self._request(
            "POST",
            "/questions/progress/update",
            MasteryUpdateFailure,
            json={"questionResults": question_results},
        )

    async def list_attempts(
        self,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "completedAt",
        sort_order: str = "desc",
        result: Optional[str] = None,
        is_mock_exam: Optional[bool] = None,
    ) -> Mapping[str, Any]:
        params: Dict[str, Any] = {"page": page, "limit": limit, "sortBy": sort_by, "sortOrder": sort_order}
        if result:
            params["result"] = result
        if is_mock_exam is not None:
            params["isMockExam"] = str(is_mock_exam).lower()
        return await self._request("GET", "/test-attempts/", params=params)

    async def get_user_stats(self, is_mock_exam: Optional[bool] = None) -> Mapping[str, Any]:
        params = {"isMockExam": str(is_mock_exam).lower()} if is_mock_exam is not None else None
        return await self._request("GET", "/test-attempts/stats/overview", params=params)

    async def get_analytics(self, is_mock_exam: Optional[bool] = None) -> Mapping[str, Any]:
        params = {"isMockExam": str(is_mock_exam).lower()} if is_mock_exam is not None else None
        return await self._request("GET", "/test-attempts/stats/analytics", params=params)

    async def delete_attempt(self, attempt_id: int) -> Mapping[str, Any]:
        return await self._request("DELETE", f"/test-attempts/{attempt_id}")

    async def restore_attempt(self, attempt_id: int) -> Mapping[str, Any]:
        return await self._request("POST", f"/test-attempts/{attempt_id}/restore")

    async def list_deleted_attempts(self) -> List[Mapping[str, Any]]:
        return await self._request("GET", "/test-attempts/deleted/list")
