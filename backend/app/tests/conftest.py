############################################################
#
# errorwise - Tiered LLM Analysis Orchestrator
#
# conftest.py: Pytest configuration and shared test fixtures
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Pytest configuration and shared fixtures for ErrorWise tests."""

from typing import Callable, Optional

import pytest

from backend.app.core.backends import BackendAdapter, CannedAdapter
from backend.app.core.cache import ResponseCache
from backend.app.core.conversation import ConversationStore
from backend.app.core.normalizer import normalize_request
from backend.app.core.schemas import Provider
from backend.app.core.validators import ResponseValidator
from backend.app.security.rate_limits import RateLimiter
from backend.app.services.orchestrator import Orchestrator
from backend.app.settings import Settings
from backend.app.tests.helpers import FakeClock, FakeWallClock, StubAdapter


@pytest.fixture
def test_settings() -> Settings:
    """Settings tuned for fast tests: no retry backoff, short attempt timeout."""
    return Settings(
        _env_file=None,
        backend_retry_backoff=0.0,
        backend_retry_max_attempts=3,
        backend_request_timeout_per_attempt=0.5,
        batch_concurrency=3,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def wall_clock() -> FakeWallClock:
    return FakeWallClock()


@pytest.fixture
def make_context(test_settings) -> Callable:
    """Factory for normalized request contexts."""

    def _make(
        text: str = "TypeError: Cannot read property 'name' of undefined",
        caller_id: str = "user-1",
        tier: str = "free",
        **kwargs,
    ):
        return normalize_request(text, caller_id, tier, settings=test_settings, **kwargs)

    return _make


@pytest.fixture
def make_orchestrator(test_settings, clock, wall_clock) -> Callable:
    """
    Factory for an Orchestrator wired to stub adapters.

    Unspecified providers get a StubAdapter that always succeeds; the
    canned provider defaults to the real CannedAdapter.
    """

    def _make(
        gemini: Optional[BackendAdapter] = None,
        anthropic: Optional[BackendAdapter] = None,
        canned: Optional[BackendAdapter] = None,
        settings: Optional[Settings] = None,
    ) -> Orchestrator:
        settings = settings or test_settings
        adapters = {
            Provider.GEMINI: gemini or StubAdapter("gemini"),
            Provider.ANTHROPIC: anthropic or StubAdapter("anthropic"),
            Provider.CANNED: canned or CannedAdapter(),
        }
        return Orchestrator(
            adapters=adapters,
            cache=ResponseCache(ttl_seconds=1800, max_entries=1000, clock=clock),
            limiter=RateLimiter(window_seconds=60, idle_seconds=300, clock=clock),
            conversations=ConversationStore(retention_seconds=3600, clock=wall_clock),
            validator=ResponseValidator(min_field_length=settings.min_response_field_length),
            settings=settings,
        )

    return _make
