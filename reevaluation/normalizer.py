"""
Status normalization.

The status endpoint has changed shape over time: ``current_step`` used to be
a plain string and is now sometimes an object. Everything downstream reads
one canonical JobSnapshot instead.
"""

from typing import Any, Dict, Mapping

from config.constants import PROCESSING_PLACEHOLDER

from .errors import ResponseParseError
from .models import JobSnapshot, JobStatus

CANONICAL_FIELDS = ("task_id", "status", "progress", "current_step")

# Optional fields exposed as typed JobSnapshot attributes instead of extras
LIFTED_FIELDS = ("error_message", "question_id")

# Sub-fields of a structured current_step, in preference order
STEP_LABEL_KEYS = ("step_name", "description")


def step_label(current_step: Any, placeholder: str = PROCESSING_PLACEHOLDER) -> str:
    """Reduce a current_step value to a human-readable string."""
    if isinstance(current_step, str):
        return current_step or placeholder

    if isinstance(current_step, Mapping):
        for key in STEP_LABEL_KEYS:
            value = current_step.get(key)
            if isinstance(value, str) and value:
                return value

    return placeholder


def _progress_value(value: Any) -> float:
    # bool is an int subclass but never a meaningful percentage
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if value != value:  # NaN
        return 0
    return min(max(value, 0), 100)


def normalize_status(raw: Mapping[str, Any]) -> JobSnapshot:
    """
    Convert a raw status document into a JobSnapshot.

    Args:
        raw: ``data`` object of a status response

    Returns:
        JobSnapshot with every canonical field populated and
        ``current_step`` guaranteed to be a string. Non-canonical fields are
        kept unchanged in ``extras``; ``error_message`` and
        ``question_id`` become attributes. Progress is clamped to 0-100.

    Raises:
        ResponseParseError: If the document is not a mapping
    """
    if not isinstance(raw, Mapping):
        raise ResponseParseError(
            f"Status document must be an object, got {type(raw).__name__}"
        )

    extras: Dict[str, Any] = {
        key: value for key, value in raw.items()
        if key not in CANONICAL_FIELDS and key not in LIFTED_FIELDS
    }

    task_id = raw.get("task_id") or ""
    status = raw.get("status") or JobStatus.PENDING.value
    error_message = raw.get("error_message")
    question_id = raw.get("question_id")

    return JobSnapshot(
        task_id=str(task_id),
        status=str(status),
        progress=_progress_value(raw.get("progress")),
        current_step=step_label(raw.get("current_step")),
        error_message=str(error_message) if error_message else None,
        question_id=str(question_id) if question_id else None,
        extras=extras,
    )
