#!/usr/bin/env python3
"""
Re-scoring CLI

Command-line front end for triggering re-scores and watching their progress.

Usage:
    rescore question --user 42 --quiz quiz_7 --question q_003
    rescore quiz --user 42 --quiz quiz_7 --model qwen
    rescore status 5f1c...
"""

import argparse
import asyncio
import sys
from typing import Optional

from tqdm import tqdm

from config.logging_config import set_level
from config.settings import settings

from .client import ReevaluationApiClient
from .errors import ReevaluationError
from .models import AiModel, JobSnapshot
from .poller import PollConfig
from .progress import ProgressAggregator, ProgressView
from .workflow import ReevaluationWorkflow


def print_header():
    """Print header"""
    print("""
+======================================================================+
|                                                                      |
|             Assessment Console - Re-scoring                          |
|                                                                      |
+======================================================================+
""")


def print_snapshot(snapshot: JobSnapshot, verbose: bool = False):
    """Print job snapshot"""
    status_icons = {
        "pending": "[PENDING]",
        "running": "[RUNNING]",
        "completed": "[COMPLETED]",
        "failed": "[FAILED]",
        "cancelled": "[CANCELLED]",
    }
    icon = status_icons.get(snapshot.status, "[?]")

    label = f" (question {snapshot.question_id})" if snapshot.question_id else ""
    print(f"  {icon} [{snapshot.task_id}]{label}")
    print(f"     Status: {snapshot.status} | Progress: {snapshot.progress}%")
    print(f"     Step: {snapshot.current_step}")
    if snapshot.error_message:
        print(f"     Error: {snapshot.error_message}")

    if verbose:
        for key, value in sorted(snapshot.extras.items()):
            print(f"     {key}: {value}")
    print()


def create_tqdm_listener(bar: tqdm):
    """Create a listener that mirrors the aggregator onto a tqdm bar."""

    def listener(view: ProgressView):
        bar.n = view.overall_percent
        bar.set_postfix_str(f"{view.completed_count}/{view.total} done")
        bar.refresh()

    return listener


def build_client(args) -> ReevaluationApiClient:
    """Client from settings, with command-line overrides."""
    token = args.token or settings.access_token
    return ReevaluationApiClient(
        base_url=args.base_url or settings.api_base_url,
        token=token,
        timeout=settings.request_timeout,
    )


def build_poll_config(args) -> PollConfig:
    config = settings.get_poll_config()
    if args.interval is not None:
        config["interval"] = args.interval
    if args.timeout is not None:
        config["timeout"] = args.timeout
    return PollConfig(**config)


async def _watch(aggregator: ProgressAggregator, desc: str, coro):
    """Run ``coro`` while rendering the aggregator as a progress bar."""
    with tqdm(total=100, desc=desc, unit="%",
              bar_format="{l_bar}{bar}| {n_fmt}% {postfix}") as bar:
        unsubscribe = aggregator.subscribe(create_tqdm_listener(bar))
        aggregator.show()
        try:
            return await coro
        finally:
            aggregator.hide()
            unsubscribe()


async def cmd_question(args, client: ReevaluationApiClient) -> int:
    """Re-score one answer"""
    print(f"\n[>] Re-scoring question {args.question} of {args.quiz}...\n")

    workflow = ReevaluationWorkflow(client, poll_config=build_poll_config(args))
    aggregator = ProgressAggregator(**settings.get_display_config())

    try:
        snapshot = await _watch(aggregator, "Question", workflow.reevaluate_question(
            args.user, args.question, args.quiz,
            ai_model=args.model,
            force_reprocess=args.force,
            aggregator=aggregator,
        ))
    except ReevaluationError as e:
        print(f"\n  [X] Re-score failed: {e}")
        return 1

    print("\n  [OK] Re-score completed\n")
    print_snapshot(snapshot, verbose=args.verbose)
    return 0


async def cmd_quiz(args, client: ReevaluationApiClient) -> int:
    """Re-score a whole session"""
    print(f"\n[>] Re-scoring every answer of {args.quiz}...\n")

    workflow = ReevaluationWorkflow(client, poll_config=build_poll_config(args))
    aggregator = ProgressAggregator(**settings.get_display_config())

    try:
        outcome = await _watch(aggregator, "Session", workflow.reevaluate_quiz(
            args.user, args.quiz,
            ai_model=args.model,
            aggregator=aggregator,
        ))
    except ReevaluationError as e:
        print(f"\n  [X] Session re-score failed: {e}")
        return 1

    summary = outcome.summary
    print(f"\n[i] Summary:")
    print(f"   Completed: {summary.completed}/{summary.total}")
    print(f"   Failed: {summary.failed} | Cancelled: {summary.cancelled} | Timed out: {summary.timed_out}")
    if outcome.submission.failed_questions:
        print(f"   Not submitted: {', '.join(outcome.submission.failed_questions)}")

    for result in outcome.results:
        if result.rejected:
            question = outcome.submission.question_for(result.task_id) or "-"
            print(f"  [X] {result.task_id} (question {question}): {result.error}")

    return 0 if summary.all_succeeded else 1


async def cmd_status(args, client: ReevaluationApiClient) -> int:
    """Show one job's status"""
    try:
        snapshot = await client.get_task_status(args.task_id)
    except ReevaluationError as e:
        print(f"  [X] Status query failed: {e}")
        return 1

    print("\n[i] Task Status")
    print("=" * 50)
    print_snapshot(snapshot, verbose=args.verbose)
    return 0


COMMANDS = {
    "question": cmd_question,
    "quiz": cmd_quiz,
    "status": cmd_status,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Re-scoring CLI for the assessment console"
    )
    parser.add_argument("--base-url", default=None, help="Server origin (default: API_BASE_URL)")
    parser.add_argument("--token", default=None, help="Bearer token (default: ACCESS_TOKEN)")
    parser.add_argument("--interval", type=float, default=None, help="Seconds between status queries")
    parser.add_argument("--timeout", type=float, default=None, help="Seconds before a job is abandoned")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show extra fields and debug logs")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    model_choices = [m.value for m in AiModel]

    # Question command
    question_parser = subparsers.add_parser("question", help="Re-score one answer")
    question_parser.add_argument("--user", required=True, help="User id")
    question_parser.add_argument("--quiz", required=True, help="Quiz (session) id")
    question_parser.add_argument("--question", required=True, help="Question id")
    question_parser.add_argument("-m", "--model", default=settings.default_ai_model,
                                 choices=model_choices, help="Scoring model")
    question_parser.add_argument("--force", action="store_true",
                                 help="Reprocess even if cached results exist")

    # Quiz command
    quiz_parser = subparsers.add_parser("quiz", help="Re-score every answer of a session")
    quiz_parser.add_argument("--user", required=True, help="User id")
    quiz_parser.add_argument("--quiz", required=True, help="Quiz (session) id")
    quiz_parser.add_argument("-m", "--model", default=settings.default_ai_model,
                             choices=model_choices, help="Scoring model")

    # Status command
    status_parser = subparsers.add_parser("status", help="Show a job's status")
    status_parser.add_argument("task_id", help="Task id")

    return parser


async def run(args) -> int:
    async with build_client(args) as client:
        return await COMMANDS[args.command](args, client)


def main(argv: Optional[list] = None) -> int:
    print_header()

    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    set_level("DEBUG" if args.verbose else settings.log_level)

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        print("\n\n[!] Interrupted, polling stopped")
        return 130


if __name__ == "__main__":
    sys.exit(main())
