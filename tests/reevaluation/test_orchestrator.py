"""
Unit tests for reevaluation.orchestrator module.

Tests BatchOrchestrator settle-all semantics, SettledResult and BatchSummary.
"""

import asyncio

import pytest

from conftest import status_doc
from reevaluation.errors import (
    InvalidInputError,
    JobCancelledError,
    JobFailedError,
    PollTimeoutError,
    TransportError,
)
from reevaluation.models import JobSnapshot
from reevaluation.orchestrator import BatchOrchestrator, BatchSummary, SettledResult
from reevaluation.poller import PollConfig, TaskPoller


def make_orchestrator(source, clock):
    return BatchOrchestrator(TaskPoller(source, clock=clock, sleep=clock.sleep))


class TestSettledResult:
    """Tests for SettledResult."""

    def test_fulfilled(self):
        """Test a result with a value is fulfilled."""
        result = SettledResult(task_id="a", value=JobSnapshot(task_id="a", status="completed"))
        assert result.fulfilled
        assert not result.rejected
        assert result.status == "fulfilled"

    def test_rejected(self):
        """Test a result with an error is rejected."""
        result = SettledResult(task_id="a", error=JobFailedError("Task failed: x"))
        assert result.rejected
        assert result.status == "rejected"


class TestBatchSummary:
    """Tests for BatchSummary."""

    def test_success_rate_empty(self):
        """Test an empty summary has zero success rate."""
        assert BatchSummary().success_rate == 0.0
        assert not BatchSummary().all_succeeded

    def test_summarize_counts_by_kind(self):
        """Test outcomes are counted by error type."""
        results = [
            SettledResult(task_id="a", value=JobSnapshot(task_id="a", status="completed")),
            SettledResult(task_id="b", error=JobFailedError("Task failed: x")),
            SettledResult(task_id="c", error=JobCancelledError("Task was cancelled")),
            SettledResult(task_id="d", error=PollTimeoutError("late")),
            SettledResult(task_id="e", error=TransportError("down")),
        ]

        summary = BatchOrchestrator.summarize(results)

        assert summary.total == 5
        assert summary.completed == 1
        assert summary.failed == 2
        assert summary.cancelled == 1
        assert summary.timed_out == 1
        assert summary.failed_task_ids == ["b", "c", "d", "e"]
        assert summary.success_rate == pytest.approx(0.2)
        assert not summary.all_succeeded


class TestPollBatch:
    """Tests for BatchOrchestrator.poll_batch."""

    @pytest.mark.asyncio
    async def test_results_in_input_order(self, fake_clock, scripted_source):
        """Test results follow input order, not completion order."""
        source = scripted_source({
            "a": [status_doc("running")] * 3 + [status_doc("completed", 100)],
            "b": [status_doc("completed", 100)],
            "c": [status_doc("running"), status_doc("completed", 100)],
        })
        orchestrator = make_orchestrator(source, fake_clock)

        results = await orchestrator.poll_batch(["a", "b", "c"])

        assert [r.task_id for r in results] == ["a", "b", "c"]
        assert all(r.fulfilled for r in results)
        assert [r.value.task_id for r in results] == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_one_failure_does_not_abort_others(self, fake_clock, scripted_source):
        """Test a failing job settles alongside completing ones."""
        source = scripted_source({
            "a": [status_doc("running"), status_doc("completed", 100)],
            "b": [status_doc("failed", error_message="bad audio")],
            "c": [status_doc("running"), status_doc("running"), status_doc("completed", 100)],
        })
        orchestrator = make_orchestrator(source, fake_clock)

        results = await orchestrator.poll_batch(["a", "b", "c"])

        assert [r.status for r in results] == ["fulfilled", "rejected", "fulfilled"]
        assert isinstance(results[1].error, JobFailedError)
        assert str(results[1].error) == "Task failed: bad audio"
        assert source.calls_for("c") == 3

    @pytest.mark.asyncio
    async def test_timeout_and_transport_errors_settle(self, fake_clock, scripted_source):
        """Test timeouts and transport failures become rejected results."""
        source = scripted_source({
            "slow": [status_doc("running")],
            "broken": [TransportError("connection reset")],
            "ok": [status_doc("completed", 100)],
        })
        orchestrator = make_orchestrator(source, fake_clock)

        results = await orchestrator.poll_batch(
            ["slow", "broken", "ok"], config=PollConfig(interval=1, timeout=3)
        )

        assert isinstance(results[0].error, PollTimeoutError)
        assert isinstance(results[1].error, TransportError)
        assert results[2].fulfilled

    @pytest.mark.asyncio
    async def test_callbacks(self, fake_clock, scripted_source):
        """Test on_progress sees every tick and on_task_complete only completions."""
        source = scripted_source({
            "a": [status_doc("running", 40), status_doc("completed", 100)],
            "b": [status_doc("cancelled")],
        })
        orchestrator = make_orchestrator(source, fake_clock)
        progress = []
        completed = []

        await orchestrator.poll_batch(
            ["a", "b"],
            on_progress=lambda task_id, s: progress.append((task_id, s.status)),
            on_task_complete=lambda task_id, s: completed.append(task_id),
        )

        assert ("a", "running") in progress
        assert ("a", "completed") in progress
        assert ("b", "cancelled") in progress
        assert completed == ["a"]

    @pytest.mark.asyncio
    async def test_duplicate_ids_polled_independently(self, fake_clock, scripted_source):
        """Test a repeated id yields one result per position."""
        source = scripted_source({"a": [status_doc("completed", 100)]})
        orchestrator = make_orchestrator(source, fake_clock)

        results = await orchestrator.poll_batch(["a", "a"])

        assert len(results) == 2
        assert source.calls_for("a") == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("task_ids", [[], None, "abc", ["a", ""], ["a", 5]])
    async def test_invalid_input_before_any_request(self, fake_clock, scripted_source, task_ids):
        """Test malformed id lists are rejected without querying."""
        source = scripted_source({"a": [status_doc("completed")]})
        orchestrator = make_orchestrator(source, fake_clock)

        with pytest.raises(InvalidInputError):
            await orchestrator.poll_batch(task_ids)
        assert source.calls == []

    @pytest.mark.asyncio
    async def test_cancel_stops_all_children(self, fake_clock, scripted_source):
        """Test cancelling the batch stops every job's polling."""
        source = scripted_source({
            "a": [status_doc("running")],
            "b": [status_doc("running")],
        })
        orchestrator = make_orchestrator(source, fake_clock)

        task = asyncio.ensure_future(
            orchestrator.poll_batch(["a", "b"], config=PollConfig(interval=1, timeout=1e9))
        )
        for _ in range(10):
            await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        calls = len(source.calls)
        for _ in range(10):
            await asyncio.sleep(0)
        assert len(source.calls) == calls
