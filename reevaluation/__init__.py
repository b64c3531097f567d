"""
Re-scoring sub-modules for the assessment console.

Submission client, status normalization, single-job and batch polling, and
the progress ledger that backs a re-scoring view.
"""

from .models import (
    JobStatus,
    JobKind,
    AiModel,
    JobSnapshot,
    JobDescriptor,
    BatchJobRef,
    BatchSubmission,
    TERMINAL_STATUSES,
)
from .errors import (
    ReevaluationError,
    InvalidInputError,
    DataShapeError,
    AuthenticationError,
    JobFailedError,
    JobCancelledError,
    PollTimeoutError,
    TransportError,
    HttpStatusError,
    ResponseParseError,
    ApiResponseError,
    ReevaluationInProgressError,
)
from .normalizer import normalize_status, step_label
from .shapes import BATCH_SHAPE_MATCHERS, match_jobs, parse_batch_submission
from .client import ReevaluationApiClient
from .poller import PollConfig, TaskPoller
from .orchestrator import BatchOrchestrator, BatchSummary, SettledResult
from .progress import ProgressAggregator, ProgressView, create_logging_listener
from .workflow import BatchOutcome, ReevaluationWorkflow

__all__ = [
    # Data model
    'JobStatus',
    'JobKind',
    'AiModel',
    'JobSnapshot',
    'JobDescriptor',
    'BatchJobRef',
    'BatchSubmission',
    'TERMINAL_STATUSES',
    # Errors
    'ReevaluationError',
    'InvalidInputError',
    'DataShapeError',
    'AuthenticationError',
    'JobFailedError',
    'JobCancelledError',
    'PollTimeoutError',
    'TransportError',
    'HttpStatusError',
    'ResponseParseError',
    'ApiResponseError',
    'ReevaluationInProgressError',
    # Normalization
    'normalize_status',
    'step_label',
    'BATCH_SHAPE_MATCHERS',
    'match_jobs',
    'parse_batch_submission',
    # Client
    'ReevaluationApiClient',
    # Polling
    'PollConfig',
    'TaskPoller',
    'BatchOrchestrator',
    'BatchSummary',
    'SettledResult',
    # Progress
    'ProgressAggregator',
    'ProgressView',
    'create_logging_listener',
    # Workflow
    'BatchOutcome',
    'ReevaluationWorkflow',
]
