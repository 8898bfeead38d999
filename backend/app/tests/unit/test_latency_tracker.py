############################################################
#
# errorwise - Tiered LLM Analysis Orchestrator
#
# test_latency_tracker.py: Unit tests for latency EMA tracker
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Unit tests for LatencyTracker."""

import pytest

from backend.app.core.telemetry.latency_tracker import LatencyTracker, backend_key

GEMINI = backend_key("gemini", "gemini-2.0-flash")
HAIKU = backend_key("anthropic", "claude-3-5-haiku-20241022")


@pytest.fixture
def tracker():
    """Create a LatencyTracker with default alpha=0.3."""
    return LatencyTracker(alpha=0.3)


def test_backend_key():
    assert GEMINI == "gemini:gemini-2.0-flash"


@pytest.mark.asyncio
async def test_first_observation_is_exact(tracker):
    """First observation should set the EMA exactly."""
    result = await tracker.record_latency(GEMINI, 500.0)
    assert result == 500.0


@pytest.mark.asyncio
async def test_second_observation_is_weighted(tracker):
    """Second observation blends with alpha weighting."""
    await tracker.record_latency(GEMINI, 500.0)
    result = await tracker.record_latency(GEMINI, 1000.0)
    # EMA = 0.3 * 1000 + 0.7 * 500 = 300 + 350 = 650
    assert abs(result - 650.0) < 0.01


@pytest.mark.asyncio
async def test_get_unknown_backend_returns_none(tracker):
    """Unknown backend returns None."""
    assert await tracker.get_latency_ema("nobody:none") is None


@pytest.mark.asyncio
async def test_custom_alpha():
    """Different alpha values weight observations differently."""
    t = LatencyTracker(alpha=0.5)
    await t.record_latency(GEMINI, 100.0)
    result = await t.record_latency(GEMINI, 200.0)
    # EMA = 0.5 * 200 + 0.5 * 100 = 150
    assert abs(result - 150.0) < 0.01


@pytest.mark.asyncio
async def test_multiple_backends_independent(tracker):
    """Each backend's EMA is tracked independently."""
    await tracker.record_latency(GEMINI, 100.0)
    await tracker.record_latency(HAIKU, 9000.0)

    assert await tracker.get_latency_ema(GEMINI) == 100.0
    assert await tracker.get_latency_ema(HAIKU) == 9000.0


@pytest.mark.asyncio
async def test_failures_counted(tracker):
    assert await tracker.record_failure(HAIKU) == 1
    assert await tracker.record_failure(HAIKU) == 2


@pytest.mark.asyncio
async def test_snapshot(tracker):
    await tracker.record_latency(GEMINI, 120.0)
    await tracker.record_latency(GEMINI, 120.0)
    await tracker.record_failure(HAIKU)

    snapshot = await tracker.snapshot()

    assert snapshot[GEMINI] == {"latency_ema_ms": 120.0, "successes": 2, "failures": 0}
    assert snapshot[HAIKU] == {"latency_ema_ms": 0.0, "successes": 0, "failures": 1}
