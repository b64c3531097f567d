"""
Pytest configuration and shared fixtures for the re-scoring console tests.
"""
import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from reevaluation.normalizer import normalize_status


# ============================================================================
# Helpers: Time
# ============================================================================

class FakeClock:
    """
    Manual monotonic clock with a matching async sleep.

    ``sleep`` advances the clock instead of waiting, then yields once to the
    event loop so concurrently polled jobs still interleave.
    """

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds

    async def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


# ============================================================================
# Helpers: Status source
# ============================================================================

class ScriptedStatusSource:
    """
    Stand-in for ReevaluationApiClient.get_task_status.

    Each job replays a script of raw status documents (or exceptions to
    raise); the last entry repeats once the script is exhausted.
    """

    def __init__(self, scripts: Optional[Dict[str, List[Any]]] = None, clock: Optional[FakeClock] = None,
                 request_cost: float = 0.0):
        self.scripts = {task_id: list(steps) for task_id, steps in (scripts or {}).items()}
        self.calls: List[str] = []
        self.in_flight: Dict[str, int] = {}
        self.max_in_flight: Dict[str, int] = {}
        self._clock = clock
        self._request_cost = request_cost

    async def get_task_status(self, task_id: str):
        self.calls.append(task_id)
        self.in_flight[task_id] = self.in_flight.get(task_id, 0) + 1
        self.max_in_flight[task_id] = max(
            self.max_in_flight.get(task_id, 0), self.in_flight[task_id]
        )
        try:
            if self._clock is not None and self._request_cost:
                await self._clock.sleep(self._request_cost)
            else:
                await asyncio.sleep(0)

            script = self.scripts[task_id]
            step = script.pop(0) if len(script) > 1 else script[0]
            if isinstance(step, BaseException):
                raise step

            doc = dict(step)
            doc.setdefault("task_id", task_id)
            return normalize_status(doc)
        finally:
            self.in_flight[task_id] -= 1

    def calls_for(self, task_id: str) -> int:
        return self.calls.count(task_id)


def status_doc(status: str = "running", progress: Any = 0, current_step: Any = "", **extra) -> Dict[str, Any]:
    """Build a raw status document the way the server sends it."""
    doc = {"status": status, "progress": progress, "current_step": current_step}
    doc.update(extra)
    return doc


def envelope(data: Any = None, success: bool = True, message: Optional[str] = None) -> Dict[str, Any]:
    """Wrap data in the server's response envelope."""
    return {"success": success, "message": message, "data": data}


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def fake_clock():
    """Manual clock starting at t=0."""
    return FakeClock()


@pytest.fixture
def scripted_source():
    """Factory for scripted status sources."""
    def _make(scripts: Dict[str, List[Any]], clock: Optional[FakeClock] = None, request_cost: float = 0.0):
        return ScriptedStatusSource(scripts, clock=clock, request_cost=request_cost)
    return _make


@pytest.fixture
def sample_batch_data():
    """Batch submission data in the current server shape."""
    return {
        "batch_task_id": "batch_001",
        "total_questions": 3,
        "success_count": 3,
        "failed_count": 0,
        "task_ids": ["task_a", "task_b", "task_c"],
        "task_results": [
            {"question_id": "q_11", "task_id": "task_a"},
            {"question_id": "q_12", "task_id": "task_b"},
            {"question_id": "q_13", "task_id": "task_c"},
        ],
        "failed_questions": [],
        "selected_ai_model": "qwen",
        "estimated_total_time": "3-5 minutes",
    }
