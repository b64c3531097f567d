"""
Data model for re-scoring jobs.

A job is one unit of re-scoring work tracked by the assessment server. The
console only ever sees snapshots of it: what the server reported on the
last status query.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional


class JobStatus(str, Enum):
    """Server-side job status. Values compare equal to the raw strings."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({
    JobStatus.COMPLETED.value,
    JobStatus.FAILED.value,
    JobStatus.CANCELLED.value,
})


class JobKind(str, Enum):
    """How a job was spawned."""
    SINGLE_QUESTION = "single-question"
    BATCH_SUBTASK = "batch-subtask"


class AiModel(str, Enum):
    """Scoring model the worker should use."""
    AUTO = "auto"
    QWEN = "qwen"
    VOLCENGINE = "volcengine"


@dataclass
class JobSnapshot:
    """Latest known state of one job, normalized from a status document."""
    task_id: str
    status: str = JobStatus.PENDING.value
    progress: float = 0
    current_step: str = ""
    error_message: Optional[str] = None
    question_id: Optional[str] = None
    kind: Optional[JobKind] = None
    extras: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # Enum members hash by name, so keep the plain string for set lookups
        if isinstance(self.status, Enum):
            self.status = self.status.value

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def get(self, key: str, default: Any = None) -> Any:
        """
        Read a typed attribute or any passthrough server field.

        Attributes win over an ``extras`` entry of the same name.
        """
        if key != "extras" and key in self.__dataclass_fields__:
            value = getattr(self, key)
            if value is not None:
                return value
        return self.extras.get(key, default)

    def merged_with(self, other: "JobSnapshot") -> "JobSnapshot":
        """
        Return a copy updated with every non-None field of ``other``.

        Passthrough extras are merged key by key so that fields the server
        sent on an earlier tick stay readable.
        """
        changes = {
            name: getattr(other, name)
            for name in ("status", "progress", "current_step",
                         "error_message", "question_id", "kind")
            if getattr(other, name) is not None
        }
        if other.task_id:
            changes["task_id"] = other.task_id
        changes["extras"] = {**self.extras, **other.extras}
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to the server's wire shape (extras included)."""
        data = dict(self.extras)
        data.update({
            "task_id": self.task_id,
            "status": self.status,
            "progress": self.progress,
            "current_step": self.current_step,
        })
        if self.error_message is not None:
            data["error_message"] = self.error_message
        if self.question_id is not None:
            data["question_id"] = self.question_id
        return data


@dataclass
class JobDescriptor:
    """Server acknowledgement of a single-question re-score."""
    task_id: str
    user_id: Any = None
    quiz_id: Optional[str] = None
    question_id: Optional[str] = None
    reevaluation_count: int = 0
    selected_ai_model: Optional[str] = None
    estimated_time: Optional[str] = None
    kind: JobKind = JobKind.SINGLE_QUESTION
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class BatchJobRef:
    """One job spawned by a whole-session re-score."""
    task_id: str
    question_id: Optional[str] = None
    kind: JobKind = JobKind.BATCH_SUBTASK


@dataclass
class BatchSubmission:
    """Server acknowledgement of a whole-session re-score."""
    user_id: Any
    quiz_id: str
    jobs: List[BatchJobRef]
    matched_shape: str = ""
    batch_task_id: Optional[str] = None
    total_questions: int = 0
    success_count: int = 0
    failed_count: int = 0
    failed_questions: List[str] = field(default_factory=list)
    selected_ai_model: Optional[str] = None
    estimated_total_time: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def task_ids(self) -> List[str]:
        return [job.task_id for job in self.jobs]

    def question_for(self, task_id: str) -> Optional[str]:
        for job in self.jobs:
            if job.task_id == task_id:
                return job.question_id
        return None
