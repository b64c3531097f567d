"""
Single-job status polling.

Queries one job until it reaches a terminal state or the deadline passes.
Ticks are strictly sequential: the next query is only scheduled after the
previous one returned, so one job never has two requests in flight.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional
import asyncio
import time

from config.constants import (
    POLL_INTERVAL_SECONDS,
    POLL_TIMEOUT_SECONDS,
    UNKNOWN_ERROR_PLACEHOLDER,
)
from config.logging_config import get_logger

from .errors import JobCancelledError, JobFailedError, PollTimeoutError
from .models import JobSnapshot, JobStatus

logger = get_logger(__name__)


# Type aliases for callbacks and injectable primitives
SnapshotCallback = Callable[[JobSnapshot], None]
Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[Any]]


@dataclass
class PollConfig:
    """Polling policy for one job."""
    interval: float = POLL_INTERVAL_SECONDS
    timeout: float = POLL_TIMEOUT_SECONDS

    def __post_init__(self):
        if self.interval < 0:
            raise ValueError(f"interval must be >= 0, got {self.interval}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self.timeout}")


class TaskPoller:
    """
    Polls a job's status until it is terminal.

    The status source is anything with an async ``get_task_status(task_id)``
    returning a normalized JobSnapshot, normally a ReevaluationApiClient.

    Usage:
        poller = TaskPoller(client)
        snapshot = await poller.poll_until_terminal(
            task_id,
            on_progress=lambda s: print(s.progress, s.current_step),
        )

    Stopping early: cancel the asyncio task awaiting the poll; the pending
    sleep or request is cancelled with it.
    """

    def __init__(
        self,
        status_source: Any,
        config: Optional[PollConfig] = None,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Initialize poller.

        Args:
            status_source: Object providing async get_task_status(task_id)
            config: Default polling policy (per-call override possible)
            clock: Monotonic time source in seconds
            sleep: Coroutine function used between ticks
        """
        self.status_source = status_source
        self.config = config or PollConfig()
        self._clock = clock
        self._sleep = sleep

    async def poll_until_terminal(
        self,
        task_id: str,
        config: Optional[PollConfig] = None,
        on_progress: Optional[SnapshotCallback] = None,
    ) -> JobSnapshot:
        """
        Poll one job until completed, failed or cancelled.

        Args:
            task_id: Job to observe
            config: Polling policy for this call (defaults to the poller's)
            on_progress: Called with every snapshot, terminal ones included

        Returns:
            The completed JobSnapshot

        Raises:
            JobFailedError: Job ended in ``failed``
            JobCancelledError: Job ended in ``cancelled``
            PollTimeoutError: Deadline passed before a terminal state
            AuthenticationError: Credential rejected (never retried)
            TransportError: Network or response failure on any tick
        """
        policy = config or self.config
        started = self._clock()
        ticks = 0

        logger.debug(
            f"Polling {task_id}: interval={policy.interval}s timeout={policy.timeout}s"
        )

        while True:
            # Deadline is checked before the query, so a late tick still runs
            elapsed = self._clock() - started
            if elapsed > policy.timeout:
                logger.warning(f"Polling {task_id} timed out after {elapsed:.1f}s ({ticks} ticks)")
                raise PollTimeoutError(
                    f"Task {task_id} did not finish within {policy.timeout:g}s",
                    task_id=task_id,
                    elapsed=elapsed,
                )

            snapshot = await self.status_source.get_task_status(task_id)
            ticks += 1

            logger.debug(
                f"Task {task_id} tick {ticks}: {snapshot.status} "
                f"{snapshot.progress}% - {snapshot.current_step}"
            )

            if on_progress is not None:
                on_progress(snapshot)

            if snapshot.status == JobStatus.COMPLETED:
                logger.info(f"Task {task_id} completed after {ticks} ticks")
                return snapshot

            if snapshot.status == JobStatus.FAILED:
                reason = snapshot.error_message or UNKNOWN_ERROR_PLACEHOLDER
                logger.warning(f"Task {task_id} failed: {reason}")
                raise JobFailedError(
                    f"Task failed: {reason}", task_id=task_id, snapshot=snapshot
                )

            if snapshot.status == JobStatus.CANCELLED:
                logger.warning(f"Task {task_id} was cancelled")
                raise JobCancelledError(
                    "Task was cancelled", task_id=task_id, snapshot=snapshot
                )

            # pending, running or a status this console does not know yet
            await self._sleep(policy.interval)
