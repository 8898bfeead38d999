############################################################
#
# errorwise - Tiered LLM Analysis Orchestrator
#
# health.py: Health check, Prometheus metrics and cache admin endpoints
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Health check and metrics endpoints."""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Response, status
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from backend.app.api.auth import Caller, require_admin
from backend.app.logging_config import get_logger
from backend.app.services.orchestrator import Orchestrator, get_orchestrator
from backend.app.settings import get_settings

logger = get_logger(__name__)
router = APIRouter(tags=["health"])

# Prometheus metrics
REQUEST_COUNT = Counter(
    "errorwise_requests_total",
    "Total number of requests",
    ["endpoint", "status"],
)
REQUEST_LATENCY = Histogram(
    "errorwise_request_latency_seconds",
    "Request latency in seconds",
    ["endpoint"],
)
CACHE_SIZE = Gauge(
    "errorwise_cache_entries",
    "Current response cache size",
)
ACTIVE_CONVERSATIONS = Gauge(
    "errorwise_active_conversations",
    "Number of live conversation sessions",
)
TOKENS_PROCESSED = Counter(
    "errorwise_tokens_total",
    "Total tokens processed",
    ["type"],  # input, output
)


@router.get("/healthz")
async def liveness_probe() -> Dict[str, str]:
    """
    Liveness probe - checks if the application is running.

    Returns 200 if the application is alive.
    """
    return {"status": "alive", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/api/health/service")
async def service_health(
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    """
    Service health snapshot.

    Reports which providers are configured, cache and conversation
    sizes, retry/timeout configuration and per-backend latency.
    """
    settings = get_settings()
    snapshot = await orchestrator.health()
    snapshot["service"] = settings.app_name
    snapshot["version"] = settings.app_version
    return snapshot


@router.get("/metrics")
async def prometheus_metrics(
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> Response:
    """
    Prometheus metrics endpoint.

    Returns metrics in Prometheus text format.
    """
    if not get_settings().metrics_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Metrics are disabled")

    CACHE_SIZE.set(len(orchestrator.cache))
    ACTIVE_CONVERSATIONS.set(len(orchestrator.conversations))

    metrics = generate_latest()
    return Response(content=metrics, media_type=CONTENT_TYPE_LATEST)


@router.post("/api/admin/cache/clear")
async def clear_cache(
    caller: Caller = Depends(require_admin),
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    """Drop every cached response."""
    removed = await orchestrator.clear_cache()
    logger.info("cache_cleared_by_admin", caller_id=caller.caller_id, removed=removed)
    return {"cleared": removed, "timestamp": datetime.now(timezone.utc).isoformat()}
