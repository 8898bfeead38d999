############################################################
#
# errorwise - Tiered LLM Analysis Orchestrator
#
# errors.py: Error taxonomy for request orchestration
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Error taxonomy.

Only InvalidInput, RateLimited and Forbidden are surfaced to callers.
Backend-side failures are absorbed by the orchestrator.
"""

from typing import Optional


class OrchestratorError(Exception):
    """Base class for all orchestration errors."""

    error_type = "orchestrator_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        """Convert to the API error body."""
        return {"error": {"message": self.message, "type": self.error_type}}


class InvalidInput(OrchestratorError):
    """Request text is missing, non-textual, or too short."""

    error_type = "invalid_input"


class RateLimited(OrchestratorError):
    """Caller exceeded its concurrency or per-minute ceiling."""

    error_type = "rate_limited"

    def __init__(self, message: str, retry_after: int):
        super().__init__(message)
        self.retry_after = max(0, int(retry_after))

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["error"]["retry_after"] = self.retry_after
        return body


class Forbidden(OrchestratorError):
    """Caller attempted to use a session or feature it does not own."""

    error_type = "forbidden"


class SessionNotFound(OrchestratorError, LookupError):
    """Conversation session does not exist (or was swept)."""

    error_type = "not_found"


class BackendError(OrchestratorError):
    """A backend call failed.

    Transient failures (network, timeout, 429/5xx) are retried within an
    attempt; permanent ones advance the chain immediately.
    """

    error_type = "backend_error"

    def __init__(
        self,
        message: str,
        transient: bool = False,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.transient = transient
        self.status_code = status_code

    @property
    def kind(self) -> str:
        return "transient" if self.transient else "permanent"


class MalformedResponse(BackendError):
    """Backend answered, but the answer cannot be trusted."""

    error_type = "malformed_response"

    def __init__(self, message: str):
        super().__init__(message, transient=False)


class ChainExhausted(OrchestratorError):
    """Every chain entry failed. Converted to a degraded result, never raised to callers."""

    error_type = "chain_exhausted"
