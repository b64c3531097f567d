"""
Unit tests for reevaluation.poller module.

Polling runs against a scripted status source and a manual clock, so the
tests never wait on real time.
"""

import asyncio

import pytest

from conftest import status_doc
from reevaluation.errors import (
    HttpStatusError,
    JobCancelledError,
    JobFailedError,
    PollTimeoutError,
)
from reevaluation.poller import PollConfig, TaskPoller


class TestPollConfig:
    """Tests for PollConfig."""

    def test_defaults(self):
        """Test default interval and timeout."""
        config = PollConfig()
        assert config.interval == 2.0
        assert config.timeout == 300.0

    def test_negative_interval(self):
        """Test a negative interval is rejected."""
        with pytest.raises(ValueError):
            PollConfig(interval=-1)

    @pytest.mark.parametrize("timeout", [0, -5])
    def test_non_positive_timeout(self, timeout):
        """Test a non-positive timeout is rejected."""
        with pytest.raises(ValueError):
            PollConfig(timeout=timeout)


class TestPollUntilTerminal:
    """Tests for TaskPoller.poll_until_terminal."""

    @pytest.mark.asyncio
    async def test_completes(self, fake_clock, scripted_source):
        """Test polling until completed reports every snapshot."""
        source = scripted_source({"t1": [
            status_doc("pending"),
            status_doc("running", 50, {"step_name": "ASR"}),
            status_doc("completed", 100, "done"),
        ]})
        poller = TaskPoller(source, clock=fake_clock, sleep=fake_clock.sleep)
        seen = []

        result = await poller.poll_until_terminal("t1", on_progress=seen.append)

        assert result.status == "completed"
        assert result.progress == 100
        assert [s.status for s in seen] == ["pending", "running", "completed"]
        assert seen[1].current_step == "ASR"
        assert fake_clock.sleeps == [2.0, 2.0]
        assert source.calls_for("t1") == 3

    @pytest.mark.asyncio
    async def test_immediately_completed(self, fake_clock, scripted_source):
        """Test a job already done needs one query and no sleep."""
        source = scripted_source({"t1": [status_doc("completed", 100)]})
        poller = TaskPoller(source, clock=fake_clock, sleep=fake_clock.sleep)

        await poller.poll_until_terminal("t1")

        assert source.calls_for("t1") == 1
        assert fake_clock.sleeps == []

    @pytest.mark.asyncio
    async def test_failed_with_message(self, fake_clock, scripted_source):
        """Test a failed job raises with the server's reason."""
        source = scripted_source({"t1": [
            status_doc("running", 30),
            status_doc("failed", 30, error_message="ASR timeout"),
        ]})
        poller = TaskPoller(source, clock=fake_clock, sleep=fake_clock.sleep)
        seen = []

        with pytest.raises(JobFailedError) as exc_info:
            await poller.poll_until_terminal("t1", on_progress=seen.append)

        assert str(exc_info.value) == "Task failed: ASR timeout"
        assert exc_info.value.task_id == "t1"
        assert exc_info.value.snapshot.status == "failed"
        # The failed snapshot is reported before the rejection
        assert seen[-1].status == "failed"

    @pytest.mark.asyncio
    async def test_failed_without_message(self, fake_clock, scripted_source):
        """Test a failed job without reason uses the placeholder."""
        source = scripted_source({"t1": [status_doc("failed")]})
        poller = TaskPoller(source, clock=fake_clock, sleep=fake_clock.sleep)

        with pytest.raises(JobFailedError, match="Task failed: unknown error"):
            await poller.poll_until_terminal("t1")

    @pytest.mark.asyncio
    async def test_cancelled(self, fake_clock, scripted_source):
        """Test a cancelled job raises JobCancelledError."""
        source = scripted_source({"t1": [status_doc("running"), status_doc("cancelled")]})
        poller = TaskPoller(source, clock=fake_clock, sleep=fake_clock.sleep)

        with pytest.raises(JobCancelledError, match="Task was cancelled"):
            await poller.poll_until_terminal("t1")

    @pytest.mark.asyncio
    async def test_timeout(self, fake_clock, scripted_source):
        """Test a job that never finishes times out within one interval of the deadline."""
        source = scripted_source({"t1": [status_doc("running", 10)]})
        poller = TaskPoller(source, clock=fake_clock, sleep=fake_clock.sleep)
        seen = []

        with pytest.raises(PollTimeoutError) as exc_info:
            await poller.poll_until_terminal(
                "t1", config=PollConfig(interval=2, timeout=5), on_progress=seen.append
            )

        assert 5 <= exc_info.value.elapsed <= 7
        assert exc_info.value.task_id == "t1"
        assert len(seen) >= 2
        assert isinstance(exc_info.value, TimeoutError)

    @pytest.mark.asyncio
    async def test_timeout_counts_request_time(self, fake_clock, scripted_source):
        """Test slow status queries count toward the deadline."""
        source = scripted_source({"t1": [status_doc("running")]}, clock=fake_clock, request_cost=3)
        poller = TaskPoller(source, clock=fake_clock, sleep=fake_clock.sleep)

        with pytest.raises(PollTimeoutError):
            await poller.poll_until_terminal("t1", config=PollConfig(interval=1, timeout=5))

        assert source.calls_for("t1") == 2

    @pytest.mark.asyncio
    async def test_unknown_status_keeps_polling(self, fake_clock, scripted_source):
        """Test statuses outside the known set are treated as in progress."""
        source = scripted_source({"t1": [status_doc("queued"), status_doc("completed", 100)]})
        poller = TaskPoller(source, clock=fake_clock, sleep=fake_clock.sleep)

        result = await poller.poll_until_terminal("t1")

        assert result.status == "completed"
        assert source.calls_for("t1") == 2

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self, fake_clock, scripted_source):
        """Test a failing status query rejects the poll without retry."""
        source = scripted_source({"t1": [status_doc("running"), HttpStatusError(503, "unavailable")]})
        poller = TaskPoller(source, clock=fake_clock, sleep=fake_clock.sleep)

        with pytest.raises(HttpStatusError):
            await poller.poll_until_terminal("t1")

        assert source.calls_for("t1") == 2

    @pytest.mark.asyncio
    async def test_callback_error_propagates(self, fake_clock, scripted_source):
        """Test an exception from on_progress rejects the poll."""
        source = scripted_source({"t1": [status_doc("running")]})
        poller = TaskPoller(source, clock=fake_clock, sleep=fake_clock.sleep)

        def boom(snapshot):
            raise RuntimeError("render failed")

        with pytest.raises(RuntimeError, match="render failed"):
            await poller.poll_until_terminal("t1", on_progress=boom)

    @pytest.mark.asyncio
    async def test_per_call_config_overrides_default(self, fake_clock, scripted_source):
        """Test the per-call config wins over the poller's."""
        source = scripted_source({"t1": [status_doc("running"), status_doc("completed", 100)]})
        poller = TaskPoller(
            source, config=PollConfig(interval=10), clock=fake_clock, sleep=fake_clock.sleep
        )

        await poller.poll_until_terminal("t1", config=PollConfig(interval=0.5))

        assert fake_clock.sleeps == [0.5]

    @pytest.mark.asyncio
    async def test_never_overlaps_queries(self, fake_clock, scripted_source):
        """Test a job never has two status queries in flight."""
        source = scripted_source(
            {"t1": [status_doc("running")] * 4 + [status_doc("completed", 100)]},
            clock=fake_clock,
            request_cost=5,
        )
        poller = TaskPoller(source, clock=fake_clock, sleep=fake_clock.sleep)

        await poller.poll_until_terminal("t1", config=PollConfig(interval=0.1, timeout=100))

        assert source.max_in_flight["t1"] == 1

    @pytest.mark.asyncio
    async def test_cancellation_stops_polling(self, fake_clock, scripted_source):
        """Test cancelling the awaiting task stops further queries."""
        source = scripted_source({"t1": [status_doc("running")]})
        poller = TaskPoller(source, clock=fake_clock, sleep=fake_clock.sleep)

        task = asyncio.ensure_future(
            poller.poll_until_terminal("t1", config=PollConfig(interval=1, timeout=1e9))
        )
        for _ in range(5):
            await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        calls = source.calls_for("t1")
        for _ in range(5):
            await asyncio.sleep(0)
        assert source.calls_for("t1") == calls
