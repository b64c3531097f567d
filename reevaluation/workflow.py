"""
Re-scoring workflows used by console views.

Glues the submission client, the pollers and a view's ProgressAggregator
together for the two operator actions: re-score one answer, re-score a
whole session.
"""

from dataclasses import dataclass, replace
from typing import Any, List, Optional, Set, Tuple, Union

from config.constants import PREPARING_PLACEHOLDER, QUESTION_ID_PLACEHOLDER_FORMAT
from config.logging_config import get_logger

from .errors import ReevaluationInProgressError
from .models import AiModel, BatchSubmission, JobKind, JobSnapshot, JobStatus
from .orchestrator import BatchOrchestrator, BatchSummary, JobCallback, SettledResult
from .poller import PollConfig, SnapshotCallback, TaskPoller
from .progress import FINISHED_STATUSES, ProgressAggregator

logger = get_logger(__name__)


@dataclass
class BatchOutcome:
    """Everything a view needs once a session re-score has settled."""
    submission: BatchSubmission
    results: List[SettledResult]
    summary: BatchSummary


def _mark_unfinished(aggregator: Optional[ProgressAggregator], task_id: str, error: BaseException):
    """
    Record a job that stopped without completing or failing (cancelled,
    timed out, transport error) as failed, so the view can close.
    """
    if aggregator is None:
        return
    entry = aggregator.get(task_id)
    if entry is None or entry.status in FINISHED_STATUSES:
        return
    aggregator.update_task_status(task_id, replace(
        entry,
        status=JobStatus.FAILED.value,
        error_message=str(error),
    ))


class ReevaluationWorkflow:
    """
    Operator-level re-scoring actions.

    Usage:
        async with ReevaluationApiClient(base_url, token=token) as client:
            workflow = ReevaluationWorkflow(client)
            aggregator = ProgressAggregator()
            aggregator.show()
            outcome = await workflow.reevaluate_quiz(42, "quiz_7", aggregator=aggregator)

    Errors are logged and re-raised; turning them into user-visible
    notifications is the view's job.
    """

    def __init__(
        self,
        client: Any,
        poll_config: Optional[PollConfig] = None,
        poller: Optional[TaskPoller] = None,
        orchestrator: Optional[BatchOrchestrator] = None,
    ):
        """
        Initialize workflow.

        Args:
            client: ReevaluationApiClient (or compatible fake)
            poll_config: Default polling policy
            poller: Custom single-job poller
            orchestrator: Custom batch orchestrator
        """
        self.client = client
        self.poller = poller or TaskPoller(client, config=poll_config)
        self.orchestrator = orchestrator or BatchOrchestrator(self.poller)
        self._in_flight: Set[Tuple[str, str]] = set()

    def in_flight(self) -> List[Tuple[str, str]]:
        """(quiz_id, question_id) pairs currently being re-scored."""
        return sorted(self._in_flight)

    async def reevaluate_question(
        self,
        user_id: Any,
        question_id: str,
        quiz_id: str,
        ai_model: Union[AiModel, str] = AiModel.AUTO,
        force_reprocess: bool = False,
        on_progress: Optional[SnapshotCallback] = None,
        aggregator: Optional[ProgressAggregator] = None,
        config: Optional[PollConfig] = None,
    ) -> JobSnapshot:
        """
        Re-score one answer and wait for the result.

        Args:
            user_id: Candidate
            question_id: Question to re-score
            quiz_id: Session the question belongs to
            ai_model: Scoring model
            force_reprocess: Ignore cached intermediate results
            on_progress: Called with every snapshot
            aggregator: View ledger to keep up to date
            config: Polling policy for this run

        Returns:
            The completed JobSnapshot

        Raises:
            ReevaluationInProgressError: Question already being re-scored
            ReevaluationError: Any submission or polling failure
        """
        key = (str(quiz_id), str(question_id))
        if key in self._in_flight:
            raise ReevaluationInProgressError(
                f"Question {question_id} of {quiz_id} is already being re-scored"
            )

        self._in_flight.add(key)
        task_id = None
        try:
            logger.info(f"Starting question re-score: quiz={quiz_id} question={question_id}")

            descriptor = await self.client.submit_single(
                user_id, question_id, quiz_id,
                ai_model=ai_model, force_reprocess=force_reprocess,
            )
            task_id = descriptor.task_id

            def forward(snapshot: JobSnapshot):
                snapshot = replace(snapshot, kind=JobKind.SINGLE_QUESTION)
                if aggregator is not None:
                    aggregator.add_task(task_id, snapshot, question_id=question_id)
                if on_progress is not None:
                    on_progress(snapshot)

            result = await self.poller.poll_until_terminal(
                task_id, config=config, on_progress=forward
            )

            logger.info(f"Question re-score finished: question={question_id} task={task_id}")
            return result

        except Exception as e:
            logger.error(f"Question re-score failed: question={question_id}: {e}")
            if task_id is not None:
                _mark_unfinished(aggregator, task_id, e)
            raise

        finally:
            self._in_flight.discard(key)

    async def reevaluate_quiz(
        self,
        user_id: Any,
        quiz_id: str,
        ai_model: Union[AiModel, str] = AiModel.AUTO,
        on_progress: Optional[JobCallback] = None,
        on_task_complete: Optional[JobCallback] = None,
        aggregator: Optional[ProgressAggregator] = None,
        config: Optional[PollConfig] = None,
    ) -> BatchOutcome:
        """
        Re-score every answer of a session and wait until all jobs settle.

        Individual job failures end up in the outcome; only submission
        errors (and cancellation) propagate.

        Args:
            user_id: Candidate
            quiz_id: Session to re-score
            ai_model: Scoring model
            on_progress: Called with (task_id, snapshot), including an initial
                ``pending`` snapshot per job right after submission
            on_task_complete: Called once per completed job
            aggregator: View ledger to keep up to date
            config: Polling policy for every job

        Returns:
            BatchOutcome with per-job results in submission order
        """
        logger.info(f"Starting session re-score: user={user_id} quiz={quiz_id}")

        try:
            submission = await self.client.submit_batch(user_id, quiz_id, ai_model=ai_model)
        except Exception as e:
            logger.error(f"Session re-score submission failed: quiz={quiz_id}: {e}")
            raise

        # Jobs without a known question get positional placeholders for display
        question_ids = {
            job.task_id: job.question_id or QUESTION_ID_PLACEHOLDER_FORMAT.format(index=index)
            for index, job in enumerate(submission.jobs, start=1)
        }

        for task_id, question_id in question_ids.items():
            seed = JobSnapshot(
                task_id=task_id,
                status=JobStatus.PENDING.value,
                progress=0,
                current_step=PREPARING_PLACEHOLDER,
                question_id=question_id,
                kind=JobKind.BATCH_SUBTASK,
            )
            if aggregator is not None:
                aggregator.add_task(task_id, seed, question_id=question_id)
            if on_progress is not None:
                on_progress(task_id, seed)

        logger.info(f"Monitoring {len(question_ids)} sub-tasks for quiz={quiz_id}")

        def forward(task_id: str, snapshot: JobSnapshot):
            snapshot = replace(
                snapshot,
                kind=JobKind.BATCH_SUBTASK,
                question_id=snapshot.question_id or question_ids.get(task_id),
            )
            if aggregator is not None:
                aggregator.update_task_status(task_id, snapshot)
            if on_progress is not None:
                on_progress(task_id, snapshot)

        results = await self.orchestrator.poll_batch(
            submission.task_ids,
            config=config,
            on_progress=forward,
            on_task_complete=on_task_complete,
        )

        for result in results:
            if result.rejected:
                _mark_unfinished(aggregator, result.task_id, result.error)

        summary = self.orchestrator.summarize(results)
        if summary.all_succeeded:
            logger.info(f"Session re-score finished: quiz={quiz_id} ({summary.total} questions)")
        else:
            logger.warning(
                f"Session re-score finished with failures: quiz={quiz_id} "
                f"{summary.completed}/{summary.total} completed, "
                f"failed tasks: {', '.join(summary.failed_task_ids)}"
            )

        return BatchOutcome(submission=submission, results=results, summary=summary)
