############################################################
#
# errorwise - Tiered LLM Analysis Orchestrator
#
# analyze_api.py: Analysis, conversation, batch and statistics endpoints (/v1/*)
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Analysis API endpoints."""

import time
import uuid
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from backend.app.api.auth import Caller, get_caller
from backend.app.api.health import REQUEST_COUNT, REQUEST_LATENCY, TOKENS_PROCESSED
from backend.app.core.normalizer import normalize_request
from backend.app.core.schemas import AnalysisResult, FollowUp, RequestContext
from backend.app.logging_config import bind_request_context, get_logger
from backend.app.services.orchestrator import Orchestrator, get_orchestrator
from backend.app.services.statistics import summarize_results
from backend.app.settings import get_settings

logger = get_logger(__name__)
router = APIRouter(prefix="/v1", tags=["analysis"])


class ReferenceIn(BaseModel):
    """Reference content supplied alongside a request."""
    source: str = Field(..., min_length=1, max_length=200)
    content: str
    title: Optional[str] = None


class AnalyzeRequest(BaseModel):
    """Single analysis request."""
    text: str
    code_snippet: Optional[str] = None
    file_name: Optional[str] = None
    line_number: Optional[int] = None
    language: Optional[str] = None
    category: Optional[str] = None
    framework: Optional[str] = None
    dependencies: List[str] = Field(default_factory=list)
    references: List[ReferenceIn] = Field(default_factory=list)


class ConverseRequest(AnalyzeRequest):
    """Conversational request; omit conversation_id to start a new dialogue."""
    conversation_id: Optional[str] = Field(None, min_length=1, max_length=100)


class BatchRequest(BaseModel):
    """Batch of analysis requests."""
    items: List[AnalyzeRequest] = Field(..., min_length=1)


class StatisticsRequest(BaseModel):
    """Previously returned results to summarize."""
    results: List[AnalysisResult] = Field(default_factory=list)


def _to_context(
    body: AnalyzeRequest,
    caller: Caller,
    conversation_id: Optional[str] = None,
) -> RequestContext:
    return normalize_request(
        body.text,
        caller.caller_id,
        caller.tier,
        code_snippet=body.code_snippet,
        file_name=body.file_name,
        line_number=body.line_number,
        language=body.language,
        category=body.category,
        framework=body.framework,
        dependencies=body.dependencies,
        references=[ref.model_dump() for ref in body.references],
        conversation_id=conversation_id,
    )


def _record(endpoint: str, outcome: str, start_time: float, result: Any = None) -> None:
    REQUEST_COUNT.labels(endpoint=endpoint, status=outcome).inc()
    REQUEST_LATENCY.labels(endpoint=endpoint).observe(time.monotonic() - start_time)
    if isinstance(result, AnalysisResult):
        TOKENS_PROCESSED.labels(type="input").inc(result.usage.input_tokens)
        TOKENS_PROCESSED.labels(type="output").inc(result.usage.output_tokens)


@router.post("/analyze")
async def analyze(
    body: AnalyzeRequest,
    caller: Caller = Depends(get_caller),
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    """
    Analyze an error message or question.

    Always answers with a structured result; a degraded result is returned
    when every backend in the caller's tier chain has failed.
    """
    start_time = time.monotonic()
    context = _to_context(body, caller)
    result = await orchestrator.analyze(context)
    _record("analyze", "degraded" if result.degraded else "ok", start_time, result)
    return {"type": "analysis", "data": result.model_dump(mode="json")}


@router.post("/converse")
async def converse(
    body: ConverseRequest,
    caller: Caller = Depends(get_caller),
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    """
    Conversational analysis.

    Returns either an analysis or a follow-up asking for missing details.
    """
    start_time = time.monotonic()
    conversation_id = body.conversation_id or uuid.uuid4().hex
    bind_request_context(conversation_id=conversation_id)

    context = _to_context(body, caller, conversation_id)
    outcome = await orchestrator.converse(context, conversation_id)

    if isinstance(outcome, FollowUp):
        _record("converse", "follow_up", start_time)
        return outcome.model_dump(mode="json")

    _record("converse", "degraded" if outcome.degraded else "ok", start_time, outcome)
    return {
        "type": "analysis",
        "conversation_id": conversation_id,
        "data": outcome.model_dump(mode="json"),
    }


@router.post("/analyze/batch")
async def analyze_batch(
    body: BatchRequest,
    caller: Caller = Depends(get_caller),
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    """Analyze several requests at once (tiers with batch mode only)."""
    settings = get_settings()
    if len(body.items) > settings.batch_max_items:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Batch too large (maximum {settings.batch_max_items} items)",
        )

    start_time = time.monotonic()
    contexts = [_to_context(item, caller) for item in body.items]
    results = await orchestrator.analyze_batch(contexts)
    _record("batch", "ok", start_time)

    fulfilled = sum(1 for r in results if r.status == "fulfilled")
    return {
        "total": len(results),
        "fulfilled": fulfilled,
        "rejected": len(results) - fulfilled,
        "results": [r.to_dict() for r in results],
    }


@router.post("/analyze/statistics")
async def analyze_statistics(
    body: StatisticsRequest,
    caller: Caller = Depends(get_caller),
) -> Dict[str, Any]:
    """Aggregate statistics over previously returned results."""
    return summarize_results(body.results)


@router.get("/conversations/{conversation_id}")
async def get_conversation(
    conversation_id: str,
    caller: Caller = Depends(get_caller),
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    """Return a conversation's history for its owner."""
    session = await orchestrator.conversations.get(conversation_id, caller.caller_id)
    return session.to_dict()


@router.delete("/conversations/{conversation_id}")
async def delete_conversation(
    conversation_id: str,
    caller: Caller = Depends(get_caller),
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    """Delete a conversation owned by the caller."""
    deleted = await orchestrator.conversations.delete(conversation_id, caller.caller_id)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Conversation {conversation_id} not found",
        )
    logger.info("conversation_deleted", conversation_id=conversation_id)
    return {"deleted": True, "conversation_id": conversation_id}
