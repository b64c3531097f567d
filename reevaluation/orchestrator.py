"""
Batch polling orchestrator.

Fans a list of job ids out to concurrent TaskPollers and waits for every one
of them to settle. One job failing, being cancelled or timing out never
aborts the others.
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence
import asyncio

from config.logging_config import get_logger

from .errors import InvalidInputError, JobCancelledError, PollTimeoutError
from .models import JobSnapshot
from .poller import PollConfig, TaskPoller

logger = get_logger(__name__)


# Type alias for per-job callbacks: (task_id, snapshot)
JobCallback = Callable[[str, JobSnapshot], None]


@dataclass
class SettledResult:
    """Outcome of polling one job: either a completed snapshot or an error."""
    task_id: str
    value: Optional[JobSnapshot] = None
    error: Optional[BaseException] = None

    @property
    def fulfilled(self) -> bool:
        return self.error is None

    @property
    def rejected(self) -> bool:
        return self.error is not None

    @property
    def status(self) -> str:
        return "fulfilled" if self.fulfilled else "rejected"


@dataclass
class BatchSummary:
    """Counts over a batch's settled results."""
    total: int = 0
    completed: int = 0
    failed: int = 0
    cancelled: int = 0
    timed_out: int = 0
    failed_task_ids: List[str] = field(default_factory=list)

    @property
    def success_rate(self) -> float:
        """Get success rate as a fraction."""
        if self.total == 0:
            return 0.0
        return self.completed / self.total

    @property
    def all_succeeded(self) -> bool:
        return self.total > 0 and self.completed == self.total


def _validate_task_ids(task_ids: Sequence[str]) -> List[str]:
    if not isinstance(task_ids, (list, tuple)) or not task_ids:
        raise InvalidInputError("Invalid task id list: expected a non-empty list of strings")
    for task_id in task_ids:
        if not isinstance(task_id, str) or not task_id:
            raise InvalidInputError(f"Invalid task id in list: {task_id!r}")
    return list(task_ids)


class BatchOrchestrator:
    """
    Polls many jobs concurrently with "settle all" semantics.

    Usage:
        orchestrator = BatchOrchestrator(TaskPoller(client))
        results = await orchestrator.poll_batch(
            submission.task_ids,
            on_progress=lambda task_id, s: aggregator.update_task_status(task_id, s),
        )
        summary = orchestrator.summarize(results)

    Cancelling the task awaiting poll_batch cancels every child poller.
    """

    def __init__(self, poller: TaskPoller):
        """
        Initialize orchestrator.

        Args:
            poller: Single-job poller shared by every job of the batch
        """
        self.poller = poller

    async def poll_batch(
        self,
        task_ids: Sequence[str],
        config: Optional[PollConfig] = None,
        on_progress: Optional[JobCallback] = None,
        on_task_complete: Optional[JobCallback] = None,
    ) -> List[SettledResult]:
        """
        Poll every job until each one settles.

        Args:
            task_ids: Non-empty list of job ids
            config: Polling policy applied to each job
            on_progress: Called with (task_id, snapshot) on every tick
            on_task_complete: Called once with (task_id, snapshot) when a job
                completes; never for failed or cancelled jobs

        Returns:
            One SettledResult per input id, in input order

        Raises:
            InvalidInputError: If task_ids is empty or malformed (before any request)
        """
        ids = _validate_task_ids(task_ids)

        logger.info(f"Polling batch of {len(ids)} tasks")

        async def poll_one(task_id: str) -> JobSnapshot:
            def forward(snapshot: JobSnapshot):
                if on_progress is not None:
                    on_progress(task_id, snapshot)

            snapshot = await self.poller.poll_until_terminal(
                task_id, config=config, on_progress=forward
            )
            if on_task_complete is not None:
                on_task_complete(task_id, snapshot)
            return snapshot

        # return_exceptions=True: one job's failure must not cancel the rest
        outcomes = await asyncio.gather(
            *(poll_one(task_id) for task_id in ids),
            return_exceptions=True,
        )

        results = []
        for task_id, outcome in zip(ids, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(f"Task {task_id} settled with error: {type(outcome).__name__}: {outcome}")
                results.append(SettledResult(task_id=task_id, error=outcome))
            else:
                results.append(SettledResult(task_id=task_id, value=outcome))

        summary = self.summarize(results)
        logger.info(
            f"Batch settled: {summary.completed}/{summary.total} completed, "
            f"{summary.failed} failed, {summary.cancelled} cancelled, "
            f"{summary.timed_out} timed out"
        )

        return results

    @staticmethod
    def summarize(results: Sequence[SettledResult]) -> BatchSummary:
        """Count outcomes by kind."""
        summary = BatchSummary(total=len(results))
        for result in results:
            if result.fulfilled:
                summary.completed += 1
                continue

            summary.failed_task_ids.append(result.task_id)
            if isinstance(result.error, JobCancelledError):
                summary.cancelled += 1
            elif isinstance(result.error, PollTimeoutError):
                summary.timed_out += 1
            else:
                summary.failed += 1

        return summary
