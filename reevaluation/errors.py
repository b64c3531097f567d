"""
Re-scoring error taxonomy.

Every exception raised by the client, the pollers and the workflow derives
from ReevaluationError so callers can catch the whole family at once.
"""

from typing import Any, Optional


class ReevaluationError(Exception):
    """Base exception for re-scoring errors"""
    pass


class InvalidInputError(ReevaluationError, ValueError):
    """Caller passed malformed arguments; raised before any request"""
    pass


class DataShapeError(ReevaluationError):
    """Server response lacks the fields needed to continue"""

    def __init__(self, message: str, raw: Any = None):
        super().__init__(message)
        self.raw = raw


class AuthenticationError(ReevaluationError):
    """Missing or rejected bearer credential (HTTP 401). Never retried."""
    pass


class JobFailedError(ReevaluationError):
    """Job reached a failed terminal state"""

    def __init__(self, message: str, task_id: str = "", snapshot: Optional[Any] = None):
        super().__init__(message)
        self.task_id = task_id
        self.snapshot = snapshot


class JobCancelledError(JobFailedError):
    """Job was cancelled on the server"""
    pass


class PollTimeoutError(ReevaluationError, TimeoutError):
    """Job did not reach a terminal state before the polling deadline"""

    def __init__(self, message: str, task_id: str = "", elapsed: float = 0.0):
        super().__init__(message)
        self.task_id = task_id
        self.elapsed = elapsed


class TransportError(ReevaluationError):
    """Network failure or unusable response"""
    pass


class HttpStatusError(TransportError):
    """Non-2xx response other than 401"""

    def __init__(self, status_code: int, body: str = ""):
        super().__init__(f"HTTP {status_code}: {body}")
        self.status_code = status_code
        self.body = body


class ResponseParseError(TransportError):
    """Response body is not the expected JSON object"""
    pass


class ApiResponseError(TransportError):
    """Server answered with success=false"""
    pass


class ReevaluationInProgressError(ReevaluationError):
    """The same question is already being re-scored"""
    pass
