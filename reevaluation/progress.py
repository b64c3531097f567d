"""
Progress aggregation for re-scoring views.

Keeps the latest snapshot of every tracked job and derives one overall
percentage and one "done" flag from them. Views subscribe and re-render from
the immutable ProgressView they receive; they never hold a handle into the
aggregator's state.
"""

from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional, Tuple
import asyncio
import math
import time

from config.constants import (
    FIRST_PAINT_DELAY_SECONDS,
    HIDE_RESET_DELAY_SECONDS,
    PROGRESS_LOG_INTERVAL,
    RUNNING_PLACEHOLDER_PERCENT,
)
from config.logging_config import get_logger

from .errors import InvalidInputError
from .models import JobSnapshot, JobStatus

logger = get_logger(__name__)

# Statuses that let a progress view close; a cancelled job does not
FINISHED_STATUSES = frozenset({JobStatus.COMPLETED.value, JobStatus.FAILED.value})


@dataclass(frozen=True)
class ProgressView:
    """Immutable picture of the ledger handed to listeners."""
    entries: Tuple[JobSnapshot, ...] = ()
    overall_percent: int = 0
    is_complete: bool = False
    completed_count: int = 0
    is_visible: bool = False
    should_render: bool = False

    @property
    def total(self) -> int:
        return len(self.entries)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "tasks": [entry.to_dict() for entry in self.entries],
            "overall_percent": self.overall_percent,
            "is_complete": self.is_complete,
            "completed": self.completed_count,
            "total": self.total,
            "visible": self.is_visible,
        }


# Type alias for listeners
ProgressListener = Callable[[ProgressView], None]


class ProgressAggregator:
    """
    Ledger of tracked jobs backing one progress view.

    Features:
    - Idempotent upsert by job id (later snapshots merge into earlier ones)
    - Overall percentage with display heuristics for jobs that have not
      reported progress yet
    - Listener notification on every mutation
    - Anti-flicker visibility lifecycle (deferred reset, first-paint delay)

    Usage:
        aggregator = ProgressAggregator()
        aggregator.subscribe(render)
        aggregator.show()

        aggregator.add_task(task_id, snapshot, question_id="q_001")
        aggregator.update_task_status(task_id, newer_snapshot)

        aggregator.overall_percent()
        aggregator.hide()

    One instance per visible view; concurrent re-score operations each get
    their own.
    """

    def __init__(
        self,
        running_placeholder_percent: float = RUNNING_PLACEHOLDER_PERCENT,
        hide_reset_delay: float = HIDE_RESET_DELAY_SECONDS,
        first_paint_delay: float = FIRST_PAINT_DELAY_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize aggregator.

        Args:
            running_placeholder_percent: Progress shown for running jobs at 0%
            hide_reset_delay: Seconds a completed ledger stays after hide()
            first_paint_delay: Seconds after construction before rendering
            clock: Monotonic time source in seconds
        """
        self.running_placeholder_percent = running_placeholder_percent
        self.hide_reset_delay = hide_reset_delay
        self.first_paint_delay = first_paint_delay
        self._clock = clock

        self._snapshots: Dict[str, JobSnapshot] = {}
        self._listeners: List[ProgressListener] = []

        self._visible = False
        self._has_been_shown = False
        self._created_at = clock()
        self._initialized = False
        self._pending_reset: Optional[asyncio.TimerHandle] = None
        self._reset_deadline: Optional[float] = None

    @property
    def _ledger(self) -> Dict[str, JobSnapshot]:
        # Every read and mutation goes through here, so an overdue reset is
        # applied before anyone sees the entries
        self._apply_due_reset()
        return self._snapshots

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        """Add listener; returns a function that removes it again."""
        self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: ProgressListener):
        """Remove listener."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self):
        """Notify all listeners."""
        if not self._listeners:
            return

        view = self.view()
        for listener in list(self._listeners):
            try:
                listener(view)
            except Exception as e:
                logger.error(f"Progress listener error: {e}")

    # ------------------------------------------------------------------
    # Ledger mutations
    # ------------------------------------------------------------------

    def upsert(
        self,
        task_id: str,
        snapshot: JobSnapshot,
        question_id: Optional[str] = None,
    ):
        """
        Insert or merge the snapshot of one job.

        Args:
            task_id: Ledger key
            snapshot: Latest snapshot; its non-None fields override the entry
            question_id: Question to attribute the job to, if known
        """
        if not isinstance(task_id, str) or not task_id:
            raise InvalidInputError(f"Invalid task id: {task_id!r}")

        incoming = replace(snapshot, task_id=task_id)
        if question_id:
            incoming = replace(incoming, question_id=question_id)

        existing = self._ledger.get(task_id)
        self._ledger[task_id] = existing.merged_with(incoming) if existing else incoming

        if self._visible:
            self._has_been_shown = True

        self._notify()

    def add_task(
        self,
        task_id: str,
        snapshot: JobSnapshot,
        question_id: Optional[str] = None,
    ):
        """Track a job (or refresh it if already tracked)."""
        self.upsert(task_id, snapshot, question_id)

    def update_task_status(self, task_id: str, snapshot: JobSnapshot) -> bool:
        """
        Merge a snapshot into an already tracked job.

        Returns:
            False if the job is not tracked (nothing changes)
        """
        if task_id not in self._ledger:
            logger.debug(f"Ignoring status for untracked task {task_id}")
            return False

        self.upsert(task_id, snapshot)
        return True

    def remove(self, task_id: str) -> bool:
        """Stop tracking a job."""
        if self._ledger.pop(task_id, None) is None:
            return False
        self._notify()
        return True

    def reset(self):
        """Clear the ledger and the visibility history."""
        self._cancel_pending_reset()
        self._ledger.clear()
        self._has_been_shown = False
        self._initialized = True
        self._notify()

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    def effective_progress(self, snapshot: JobSnapshot) -> float:
        """Progress of one job as displayed."""
        progress = snapshot.progress or 0

        if snapshot.status == JobStatus.COMPLETED:
            return 100
        if snapshot.status == JobStatus.RUNNING and progress == 0:
            return self.running_placeholder_percent
        if snapshot.status == JobStatus.PENDING and progress == 0:
            return 0
        return progress

    def overall_percent(self) -> int:
        """Mean effective progress over all jobs, rounded half up; 0 when empty."""
        if not self._ledger:
            return 0

        total = sum(self.effective_progress(s) for s in self._ledger.values())
        return int(math.floor(total / len(self._ledger) + 0.5))

    def is_complete(self) -> bool:
        """True when at least one job is tracked and every job is completed or failed."""
        return bool(self._ledger) and all(
            s.status in FINISHED_STATUSES for s in self._ledger.values()
        )

    def completed_count(self) -> int:
        return sum(1 for s in self._ledger.values() if s.status == JobStatus.COMPLETED)

    def get(self, task_id: str) -> Optional[JobSnapshot]:
        return self._ledger.get(task_id)

    def entries(self) -> List[JobSnapshot]:
        """Snapshots in insertion order."""
        return list(self._ledger.values())

    def __len__(self) -> int:
        return len(self._ledger)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._ledger

    def view(self) -> ProgressView:
        """Immutable picture of the current state."""
        return ProgressView(
            entries=tuple(self._ledger.values()),
            overall_percent=self.overall_percent(),
            is_complete=self.is_complete(),
            completed_count=self.completed_count(),
            is_visible=self._visible,
            should_render=self.should_render,
        )

    def get_state(self) -> Dict[str, Any]:
        """Get current state as dictionary."""
        return {
            **self.view().to_dict(),
            "has_been_shown": self._has_been_shown,
            "initialized": self.is_initialized,
            "reset_pending": self.reset_pending,
        }

    # ------------------------------------------------------------------
    # Visibility lifecycle
    # ------------------------------------------------------------------

    @property
    def is_visible(self) -> bool:
        return self._visible

    @property
    def has_been_shown(self) -> bool:
        return self._has_been_shown

    @property
    def is_initialized(self) -> bool:
        """False during the first-paint delay after construction."""
        if self._initialized:
            return True
        if self._clock() - self._created_at >= self.first_paint_delay:
            self._initialized = True
        return self._initialized

    @property
    def should_render(self) -> bool:
        return self._visible and self.is_initialized

    @property
    def reset_pending(self) -> bool:
        self._apply_due_reset()
        return self._reset_deadline is not None

    def show(self):
        """Make the view visible; cancels a deferred reset still pending."""
        self._apply_due_reset()
        self._cancel_pending_reset()
        self._visible = True
        if self._ledger:
            self._has_been_shown = True
        self._notify()

    def hide(self):
        """
        Hide the view.

        Hiding is immediate. A completed ledger that has been on screen is
        cleared only after ``hide_reset_delay`` so the final state does not
        vanish in the same frame; an incomplete ledger is kept as is.

        The reset is due at a deadline on the aggregator's clock. Inside an
        event loop a timer applies it (and notifies listeners) when due;
        without one it is applied by the first read or mutation after the
        deadline.
        """
        self._apply_due_reset()
        self._visible = False

        if self._has_been_shown and self.is_complete():
            self._schedule_reset()

        self._notify()

    def _schedule_reset(self):
        self._cancel_pending_reset()
        self._reset_deadline = self._clock() + self.hide_reset_delay

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, progress ledger reset applied on next access")
            return

        self._pending_reset = loop.call_later(self.hide_reset_delay, self._deferred_reset)

    def _cancel_pending_reset(self):
        self._reset_deadline = None
        if self._pending_reset is not None:
            self._pending_reset.cancel()
            self._pending_reset = None

    def _apply_due_reset(self):
        if self._reset_deadline is not None and self._clock() >= self._reset_deadline:
            self._deferred_reset()

    def _deferred_reset(self):
        self._cancel_pending_reset()
        self._ledger.clear()
        self._has_been_shown = False
        logger.debug("Progress ledger reset after hide")
        self._notify()


def create_logging_listener(log_interval: int = PROGRESS_LOG_INTERVAL) -> ProgressListener:
    """
    Create a listener that logs every N updates.

    Args:
        log_interval: Log every N updates (completion is always logged)

    Returns:
        Progress listener function
    """
    counter = {"count": 0}

    def listener(view: ProgressView):
        counter["count"] += 1
        if view.total and (counter["count"] % log_interval == 0 or view.is_complete):
            logger.info(
                f"Progress: {view.completed_count}/{view.total} completed "
                f"({view.overall_percent}%)"
            )

    return listener
