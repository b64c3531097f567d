#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Re-scoring API Client - starts re-score jobs and queries their status.

Wraps the three assessment endpoints the console needs. Every response uses
the same envelope::

    {"success": bool, "message": str | None, "data": ...}

Usage:
    async with ReevaluationApiClient(base_url, token=token) as client:
        job = await client.submit_single(42, "q_003", "quiz_7")
        snapshot = await client.get_task_status(job.task_id)

The client holds no state between calls and performs exactly one request per
call; retry policy belongs to the caller.
"""

from typing import Any, Callable, Dict, Optional, Union

import httpx

from config.constants import (
    API_BASE_URL,
    API_TIMEOUT_SECONDS,
    ERROR_BODY_MAX_CHARS,
    SUBMIT_BATCH_PATH,
    SUBMIT_SINGLE_PATH,
    TASK_STATUS_PATH,
)
from config.logging_config import get_logger

from .errors import (
    ApiResponseError,
    AuthenticationError,
    DataShapeError,
    HttpStatusError,
    InvalidInputError,
    ResponseParseError,
    TransportError,
)
from .models import AiModel, BatchSubmission, JobDescriptor, JobSnapshot
from .normalizer import normalize_status
from .shapes import parse_batch_submission

logger = get_logger(__name__)

TokenSource = Union[str, Callable[[], Optional[str]], None]


def coerce_ai_model(ai_model: Union[AiModel, str]) -> AiModel:
    """Accept an AiModel or its string value."""
    if isinstance(ai_model, AiModel):
        return ai_model
    try:
        return AiModel(str(ai_model).lower())
    except ValueError:
        choices = ", ".join(m.value for m in AiModel)
        raise InvalidInputError(f"Unknown ai_model '{ai_model}' (expected one of: {choices})")


def _require(name: str, value: Any):
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidInputError(f"{name} is required")


class ReevaluationApiClient:
    """
    Async HTTP client for the re-scoring endpoints.

    Construct one per console (no module-level instance) and pass it to the
    pollers and the workflow. An injected ``httpx.AsyncClient`` is used as-is
    and left open; otherwise the client creates its own and closes it in
    ``aclose()``.

    Authentication:
        ``token`` is either the bearer string or a zero-argument callable
        returning it (read on every request, so a refreshed token is picked
        up). A missing token fails before any request is made.
    """

    SUBMIT_SINGLE_PATH = SUBMIT_SINGLE_PATH
    SUBMIT_BATCH_PATH = SUBMIT_BATCH_PATH
    TASK_STATUS_PATH = TASK_STATUS_PATH

    def __init__(
        self,
        base_url: str = API_BASE_URL,
        token: TokenSource = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = API_TIMEOUT_SECONDS,
    ):
        """
        Initialize client.

        Args:
            base_url: Server origin, e.g. ``https://console.example.com``
            token: Bearer token or callable returning it
            http_client: Optional shared httpx.AsyncClient
            timeout: Request timeout in seconds (own client only)
        """
        self.base_url = (base_url or "").rstrip("/")
        self.timeout = timeout
        self._token = token

        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout)
        )

        logger.debug(f"ReevaluationApiClient initialized: base_url={self.base_url or '(relative)'}")

    @classmethod
    def from_settings(cls, settings: Any, http_client: Optional[httpx.AsyncClient] = None):
        """Build a client from a config.settings.Settings instance."""
        return cls(
            base_url=settings.api_base_url,
            token=lambda: settings.access_token,
            http_client=http_client,
            timeout=settings.request_timeout,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def aclose(self):
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._http_client.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _auth_headers(self) -> Dict[str, str]:
        token = self._token() if callable(self._token) else self._token
        if not token:
            raise AuthenticationError("No access token found, please log in again")
        return {"Authorization": f"Bearer {token}"}

    async def _request(
        self,
        method: str,
        path: str,
        failure_message: str,
        **kwargs,
    ) -> Any:
        """
        Send one request and unwrap the response envelope.

        Returns:
            The envelope's ``data`` field

        Raises:
            AuthenticationError: Missing token or HTTP 401
            HttpStatusError: Any other non-2xx status
            ResponseParseError: Body is not a JSON object
            ApiResponseError: Envelope reports success=false
            TransportError: Network-level failure
        """
        headers = self._auth_headers()
        url = f"{self.base_url}{path}"

        try:
            response = await self._http_client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} transport error: {type(e).__name__}: {e}")
            raise TransportError(f"{method} {path} failed: {type(e).__name__}: {e}") from e

        if response.status_code == 401:
            logger.warning(f"{method} {path} rejected with HTTP 401")
            raise AuthenticationError("Authentication failed, please log in again")

        if not response.is_success:
            body = response.text[:ERROR_BODY_MAX_CHARS]
            logger.error(f"{method} {path} failed: HTTP {response.status_code}: {body}")
            raise HttpStatusError(response.status_code, body)

        try:
            payload = response.json()
        except ValueError as e:
            logger.error(f"{method} {path} returned invalid JSON: {response.text[:200]}")
            raise ResponseParseError(f"{method} {path} returned invalid JSON") from e

        if not isinstance(payload, dict):
            raise ResponseParseError(
                f"{method} {path} returned {type(payload).__name__}, expected an object"
            )

        if not payload.get("success"):
            message = payload.get("message") or failure_message
            logger.warning(f"{method} {path} unsuccessful: {message}")
            raise ApiResponseError(message)

        return payload.get("data")

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def submit_single(
        self,
        user_id: Any,
        question_id: str,
        quiz_id: str,
        ai_model: Union[AiModel, str] = AiModel.AUTO,
        force_reprocess: bool = False,
    ) -> JobDescriptor:
        """
        Start re-scoring one answer.

        Args:
            user_id: Candidate whose answer is re-scored
            question_id: Question within the session
            quiz_id: Session (quiz) identifier
            ai_model: Scoring model (``auto`` lets the server choose)
            force_reprocess: Re-run every step even if cached results exist

        Returns:
            JobDescriptor for the spawned job

        Raises:
            InvalidInputError: Missing identifiers or unknown model
            DataShapeError: Response lacks a task id
        """
        _require("user_id", user_id)
        _require("question_id", question_id)
        _require("quiz_id", quiz_id)
        model = coerce_ai_model(ai_model)

        form = {
            "user_id": str(user_id),
            "question_id": question_id,
            "quiz_id": quiz_id,
            "force_reprocess": "true" if force_reprocess else "false",
            "ai_model": model.value,
        }

        logger.info(
            f"Submitting re-score: user={user_id} quiz={quiz_id} "
            f"question={question_id} model={model.value} force={force_reprocess}"
        )
        data = await self._request(
            "POST", self.SUBMIT_SINGLE_PATH, "Re-score submission failed", data=form
        )

        if not isinstance(data, dict) or not data.get("task_id"):
            raise DataShapeError(f"Re-score response has no task_id: {data!r}", raw=data)

        descriptor = JobDescriptor(
            task_id=str(data["task_id"]),
            user_id=data.get("user_id", user_id),
            quiz_id=data.get("quiz_id", quiz_id),
            question_id=data.get("question_id", question_id),
            reevaluation_count=data.get("reevaluation_count") or 0,
            selected_ai_model=data.get("selected_ai_model", model.value),
            estimated_time=data.get("estimated_time"),
            raw=data,
        )
        logger.info(f"Re-score started: task={descriptor.task_id}")
        return descriptor

    async def submit_batch(
        self,
        user_id: Any,
        quiz_id: str,
        ai_model: Union[AiModel, str] = AiModel.AUTO,
    ) -> BatchSubmission:
        """
        Start re-scoring every answer of a session.

        Returns:
            BatchSubmission whose ``jobs`` is never empty

        Raises:
            InvalidInputError: Missing identifiers or unknown model
            DataShapeError: No recognizable job id list in the response
        """
        _require("user_id", user_id)
        _require("quiz_id", quiz_id)
        model = coerce_ai_model(ai_model)

        form = {
            "user_id": str(user_id),
            "quiz_id": quiz_id,
            "ai_model": model.value,
        }

        logger.info(f"Submitting session re-score: user={user_id} quiz={quiz_id} model={model.value}")
        data = await self._request(
            "POST", self.SUBMIT_BATCH_PATH, "Session re-score submission failed", data=form
        )

        submission = parse_batch_submission(data, user_id=user_id, quiz_id=quiz_id)
        logger.info(
            f"Session re-score started: {len(submission.jobs)} jobs "
            f"(shape={submission.matched_shape}, failed_questions={len(submission.failed_questions)})"
        )
        return submission

    async def get_task_status(self, task_id: str) -> JobSnapshot:
        """
        Query one job's status.

        Returns:
            Normalized JobSnapshot
        """
        _require("task_id", task_id)

        data = await self._request(
            "GET",
            self.TASK_STATUS_PATH.format(task_id=task_id),
            "Task status query failed",
        )

        snapshot = normalize_status(data)
        if not snapshot.task_id:
            snapshot.task_id = task_id
        return snapshot
