"""
Batch submission response shapes.

The whole-session endpoint has returned its spawned job ids under several
field names over time. Each known shape is a matcher; matchers are tried in
order and the first one producing a non-empty job list wins. Supporting a
new server shape means appending one entry to BATCH_SHAPE_MATCHERS.
"""

import json
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from config.logging_config import get_logger

from .errors import DataShapeError
from .models import BatchJobRef, BatchSubmission

logger = get_logger(__name__)

ShapeMatcher = Callable[[Mapping[str, Any]], List[BatchJobRef]]


def _question_lookup(data: Mapping[str, Any]) -> Dict[str, str]:
    """task_id -> question_id from task_results, when the server sent it."""
    lookup = {}
    for item in data.get("task_results") or []:
        if isinstance(item, Mapping) and item.get("task_id") and item.get("question_id"):
            lookup[str(item["task_id"])] = str(item["question_id"])
    return lookup


def _id_list(field_name: str) -> ShapeMatcher:
    """Matcher for a flat list of job id strings under ``field_name``."""

    def match(data: Mapping[str, Any]) -> List[BatchJobRef]:
        values = data.get(field_name)
        if not isinstance(values, list):
            return []
        questions = _question_lookup(data)
        return [
            BatchJobRef(task_id=value, question_id=questions.get(value))
            for value in values
            if isinstance(value, str) and value
        ]

    return match


def _result_objects(field_name: str) -> ShapeMatcher:
    """Matcher for a list of per-question result objects embedding task_id."""

    def match(data: Mapping[str, Any]) -> List[BatchJobRef]:
        items = data.get(field_name)
        if not isinstance(items, list):
            return []
        jobs = []
        for item in items:
            if not isinstance(item, Mapping) or not item.get("task_id"):
                continue
            question_id = item.get("question_id")
            jobs.append(BatchJobRef(
                task_id=str(item["task_id"]),
                question_id=str(question_id) if question_id else None,
            ))
        return jobs

    return match


def _mixed_list(field_name: str) -> ShapeMatcher:
    """Matcher for a list holding either id strings or result objects."""
    strings = _id_list(field_name)
    objects = _result_objects(field_name)

    def match(data: Mapping[str, Any]) -> List[BatchJobRef]:
        return strings(data) or objects(data)

    return match


# Priority order matters: the first non-empty match wins
BATCH_SHAPE_MATCHERS: List[Tuple[str, ShapeMatcher]] = [
    ("task_ids", _id_list("task_ids")),
    ("taskIds", _id_list("taskIds")),
    ("task_results", _result_objects("task_results")),
    ("tasks", _mixed_list("tasks")),
]


def match_jobs(
    data: Mapping[str, Any],
    matchers: Optional[List[Tuple[str, ShapeMatcher]]] = None,
) -> Tuple[str, List[BatchJobRef]]:
    """
    Find the job list in a batch response.

    Returns:
        (shape name, jobs) of the first matcher yielding jobs, or ("", [])
    """
    for name, matcher in matchers or BATCH_SHAPE_MATCHERS:
        jobs = matcher(data)
        if jobs:
            logger.debug(f"Batch response matched shape '{name}' ({len(jobs)} jobs)")
            return name, jobs
    return "", []


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _dump(raw: Any) -> str:
    try:
        return json.dumps(raw, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return repr(raw)


def parse_batch_submission(
    data: Any,
    user_id: Any,
    quiz_id: str,
    matchers: Optional[List[Tuple[str, ShapeMatcher]]] = None,
) -> BatchSubmission:
    """
    Build a BatchSubmission from the ``data`` object of a batch response.

    Args:
        data: Raw ``data`` field of the response envelope
        user_id: User whose session was submitted
        quiz_id: Session (quiz) identifier
        matchers: Override of the matcher list (tests, new server versions)

    Returns:
        BatchSubmission with a non-empty ``jobs`` list

    Raises:
        DataShapeError: If ``data`` is empty or no shape yields job ids
    """
    if not data:
        raise DataShapeError("Batch response contains no data", raw=data)

    if not isinstance(data, Mapping):
        raise DataShapeError(
            f"Batch response data must be an object, got: {_dump(data)}",
            raw=data,
        )

    shape, jobs = match_jobs(data, matchers)
    if not jobs:
        known = ", ".join(name for name, _ in (matchers or BATCH_SHAPE_MATCHERS))
        raise DataShapeError(
            f"No job id list found in batch response (tried {known}). "
            f"Received: {_dump(data)}",
            raw=data,
        )

    failed_questions = data.get("failed_questions")
    if not isinstance(failed_questions, list):
        failed_questions = []

    return BatchSubmission(
        user_id=user_id,
        quiz_id=quiz_id,
        jobs=jobs,
        matched_shape=shape,
        batch_task_id=data.get("batch_task_id"),
        total_questions=_as_int(data.get("total_questions", len(jobs))),
        success_count=_as_int(data.get("success_count", len(jobs))),
        failed_count=_as_int(data.get("failed_count", len(failed_questions))),
        failed_questions=[str(q) for q in failed_questions],
        selected_ai_model=data.get("selected_ai_model"),
        estimated_total_time=data.get("estimated_total_time") or data.get("estimated_time"),
        raw=dict(data),
    )
