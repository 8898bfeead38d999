############################################################
#
# errorwise - Tiered LLM Analysis Orchestrator
#
# helpers.py: Stub adapters, fake clocks and result builders for tests
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Test doubles shared across the unit tests."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from backend.app.core.backends import BackendAdapter
from backend.app.core.errors import BackendError
from backend.app.core.prompting import PromptPayload
from backend.app.core.schemas import AnalysisResult, BackendConfig, UsageInfo

GOOD_EXPLANATION = (
    "The variable is undefined because the object was never initialized "
    "before its property was read."
)
GOOD_SOLUTION = (
    "Initialize the object before use, or guard the access with optional "
    "chaining so a missing value does not throw."
)


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeWallClock:
    """Timezone-aware wall clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2025, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def make_result(**overrides) -> AnalysisResult:
    """A result that passes validation."""
    fields = dict(
        explanation=GOOD_EXPLANATION,
        solution=GOOD_SOLUTION,
        category="runtime",
        tags=["javascript"],
        confidence=0.85,
        language="javascript",
        provider="stub",
        model="stub-model",
        usage=UsageInfo(input_tokens=120, output_tokens=80),
    )
    fields.update(overrides)
    return AnalysisResult(**fields)


class StubAdapter(BackendAdapter):
    """
    Scripted adapter.

    `script` entries are consumed one per call: an exception instance is
    raised, an AnalysisResult is returned. When the script runs out the
    adapter returns a valid result.
    """

    def __init__(self, name: str = "stub", script: Optional[List] = None, delay: float = 0.0):
        self.name = name
        self.script = list(script or [])
        self.delay = delay
        self.calls = 0
        self.payloads: List[PromptPayload] = []
        self.configs: List[BackendConfig] = []
        self.closed = False

    async def generate(self, payload: PromptPayload, config: BackendConfig) -> AnalysisResult:
        self.calls += 1
        self.payloads.append(payload)
        self.configs.append(config)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.script:
            step = self.script.pop(0)
            if isinstance(step, BaseException):
                raise step
            return step
        return make_result()

    async def aclose(self) -> None:
        self.closed = True


def transient(message: str = "upstream 503") -> BackendError:
    return BackendError(message, transient=True, status_code=503)


def permanent(message: str = "upstream 400") -> BackendError:
    return BackendError(message, transient=False, status_code=400)


