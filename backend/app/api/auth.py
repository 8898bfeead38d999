############################################################
#
# errorwise - Tiered LLM Analysis Orchestrator
#
# auth.py: Caller identity resolution from upstream auth headers
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Caller identity and tier resolution.

Authentication itself happens upstream; the gateway forwards the verified
caller id, subscription tier and role as headers.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, Request, status

from backend.app.core.schemas import Tier
from backend.app.core.tiers import resolve_tier
from backend.app.logging_config import bind_request_context, get_logger

logger = get_logger(__name__)

CALLER_HEADER = "X-Caller-Id"
TIER_HEADER = "X-Subscription-Tier"
ROLE_HEADER = "X-Caller-Role"


@dataclass(frozen=True)
class Caller:
    """Authenticated caller as asserted by the upstream gateway."""

    caller_id: str
    tier: Tier
    role: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


async def get_caller(request: Request) -> Caller:
    """
    Resolve the caller from upstream headers.

    An unknown or missing tier resolves to the most restrictive tier.

    Raises:
        HTTPException: 401 if no caller id was forwarded
    """
    caller_id = (request.headers.get(CALLER_HEADER) or "").strip()
    if not caller_id:
        logger.warning("missing_caller_id", path=request.url.path)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing caller identity. Provide via '{CALLER_HEADER}'",
        )

    tier = resolve_tier(request.headers.get(TIER_HEADER))
    role = (request.headers.get(ROLE_HEADER) or "").strip().lower() or None
    bind_request_context(caller_id=caller_id, tier=tier.value)
    return Caller(caller_id=caller_id, tier=tier, role=role)


async def require_admin(request: Request) -> Caller:
    """Require an admin caller."""
    caller = await get_caller(request)
    if not caller.is_admin:
        logger.warning("admin_required", caller_id=caller.caller_id, path=request.url.path)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return caller
