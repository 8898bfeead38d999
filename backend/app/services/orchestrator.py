############################################################
#
# errorwise - Tiered LLM Analysis Orchestrator
#
# orchestrator.py: Tiered request orchestration with retry, timeout, cache and fallback
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Orchestrator - drives a request through admission, cache and the tier's backend chain."""

import asyncio
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Union

from backend.app.core.backends import BackendAdapter, build_adapters
from backend.app.core.cache import ResponseCache, make_cache_key
from backend.app.core.clarify import (
    CLARIFICATION_MESSAGE,
    extract_context,
    follow_up_questions,
    should_ask_follow_up,
)
from backend.app.core.conversation import ConversationStore
from backend.app.core.errors import BackendError, ChainExhausted, Forbidden, RateLimited
from backend.app.core.prompting import PromptPayload, build_prompt
from backend.app.core.schemas import (
    AnalysisResult,
    BackendConfig,
    ConversationTurn,
    FollowUp,
    MessageRole,
    Provider,
    RequestContext,
    TierPolicy,
)
from backend.app.core.telemetry.latency_tracker import LatencyTracker, backend_key
from backend.app.core.tiers import get_tier_policy
from backend.app.core.validators import ResponseValidator
from backend.app.logging_config import get_logger
from backend.app.security.rate_limits import RateLimiter
from backend.app.settings import Settings, get_settings

logger = get_logger(__name__)

EXHAUSTED_CONFIDENCE = 0.3


@dataclass
class BatchItemResult:
    """Outcome of one item in a batch."""

    index: int
    status: str  # "fulfilled" or "rejected"
    result: Optional[AnalysisResult] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "status": self.status,
            "data": self.result.model_dump(mode="json") if self.result else None,
            "error": self.error,
        }


class Orchestrator:
    """
    Handles analysis request processing.

    Responsibilities:
    - Admit requests through the rate/concurrency limiter
    - Serve repeats from the response cache
    - Walk the tier's backend chain with per-attempt timeout and bounded retry
    - Validate answers and fall back to a degraded result when the chain is exhausted
    - Keep conversation memory for tiers that enable it
    """

    def __init__(
        self,
        adapters: Optional[Dict[Provider, BackendAdapter]] = None,
        cache: Optional[ResponseCache] = None,
        limiter: Optional[RateLimiter] = None,
        conversations: Optional[ConversationStore] = None,
        validator: Optional[ResponseValidator] = None,
        latency_tracker: Optional[LatencyTracker] = None,
        settings: Optional[Settings] = None,
    ):
        self._settings = settings or get_settings()
        self._adapters = adapters if adapters is not None else build_adapters(self._settings)
        self._cache = cache if cache is not None else ResponseCache()
        self._limiter = limiter if limiter is not None else RateLimiter()
        self._conversations = (
            conversations if conversations is not None else ConversationStore()
        )
        self._validator = validator if validator is not None else ResponseValidator()
        if latency_tracker is None:
            latency_tracker = LatencyTracker(alpha=self._settings.latency_ema_alpha)
        self._latency_tracker = latency_tracker
        self._maintenance_task: Optional[asyncio.Task] = None

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    @property
    def limiter(self) -> RateLimiter:
        return self._limiter

    @property
    def conversations(self) -> ConversationStore:
        return self._conversations

    @property
    def latency_tracker(self) -> LatencyTracker:
        return self._latency_tracker

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def analyze(self, context: RequestContext) -> AnalysisResult:
        """
        Analyze a single request.

        Args:
            context: Normalized request

        Returns:
            AnalysisResult, possibly degraded

        Raises:
            RateLimited: If the caller is over its tier's ceilings
        """
        policy = get_tier_policy(context.tier)
        async with self._limiter.admit(context.caller_id, policy):
            return await self._run(context, policy)

    async def converse(
        self,
        context: RequestContext,
        conversation_id: Optional[str] = None,
    ) -> Union[AnalysisResult, FollowUp]:
        """
        Conversational variant of analyze.

        Tiers without conversation memory are answered exactly like analyze.

        Raises:
            RateLimited: If the caller is over its tier's ceilings
            Forbidden: If the conversation belongs to another caller
        """
        policy = get_tier_policy(context.tier)
        conversation_id = conversation_id or context.conversation_id or uuid.uuid4().hex

        async with self._limiter.admit(context.caller_id, policy):
            if not policy.features.conversation_memory:
                return await self._run(context, policy)

            session = await self._conversations.get_or_create(
                conversation_id, context.caller_id
            )
            limit = self._settings.conversation_history_turns
            history = session.recent_turns(limit)

            accumulated = await self._conversations.merge_context(
                conversation_id, extract_context(context.text)
            )
            await self._conversations.append(
                conversation_id,
                ConversationTurn(role=MessageRole.USER, content=context.text),
            )

            has_code = bool(context.code_snippet or context.stack_frames)
            if (
                policy.features.follow_up_questions
                and not has_code
                and should_ask_follow_up(context.text, accumulated)
            ):
                follow_up = FollowUp(
                    conversation_id=conversation_id,
                    message=CLARIFICATION_MESSAGE,
                    questions=follow_up_questions(context.text, accumulated),
                    context=accumulated,
                )
                await self._conversations.append(
                    conversation_id,
                    ConversationTurn(role=MessageRole.ASSISTANT, content=follow_up.message),
                )
                logger.info(
                    "follow_up_requested",
                    caller_id=context.caller_id,
                    tier=policy.tier.value,
                    conversation_id=conversation_id,
                    questions=len(follow_up.questions),
                )
                return follow_up

            result = await self._run(context, policy, history=history)
            await self._conversations.append(
                conversation_id,
                ConversationTurn(
                    role=MessageRole.ASSISTANT,
                    content=f"{result.explanation}\n\n{result.solution}",
                ),
            )
            return result

    async def analyze_batch(
        self,
        contexts: Sequence[RequestContext],
        concurrency: Optional[int] = None,
    ) -> List[BatchItemResult]:
        """
        Analyze several requests for a batch-enabled tier.

        Items run in chunks of `concurrency`; each item is admitted
        individually, so one rejected item does not fail the batch.

        Raises:
            Forbidden: If the tier does not allow batch mode
        """
        if not contexts:
            return []
        policy = get_tier_policy(contexts[0].tier)
        if not policy.features.batch_mode:
            raise Forbidden(f"Batch analysis is not available for the {policy.tier.value} tier")

        concurrency = max(1, concurrency or self._settings.batch_concurrency)
        results: List[BatchItemResult] = []
        for start in range(0, len(contexts), concurrency):
            chunk = contexts[start:start + concurrency]
            outcomes = await asyncio.gather(
                *(self.analyze(ctx) for ctx in chunk), return_exceptions=True
            )
            for offset, outcome in enumerate(outcomes):
                index = start + offset
                if isinstance(outcome, AnalysisResult):
                    results.append(BatchItemResult(index=index, status="fulfilled", result=outcome))
                elif isinstance(outcome, RateLimited):
                    results.append(BatchItemResult(index=index, status="rejected", error=outcome.message))
                elif isinstance(outcome, BaseException):
                    logger.error(
                        "batch_item_failed",
                        index=index,
                        error_class=type(outcome).__name__,
                    )
                    results.append(BatchItemResult(index=index, status="rejected", error=str(outcome)))

        logger.info(
            "batch_complete",
            tier=policy.tier.value,
            total=len(contexts),
            fulfilled=sum(1 for r in results if r.status == "fulfilled"),
        )
        return results

    # ------------------------------------------------------------------
    # Chain execution
    # ------------------------------------------------------------------

    async def _run(
        self,
        context: RequestContext,
        policy: TierPolicy,
        history: Sequence[ConversationTurn] = (),
    ) -> AnalysisResult:
        """Cache check, then the chain; never raises for backend failures."""
        key = make_cache_key(context)
        use_cache = not history

        if use_cache:
            cached = await self._cache.get(key)
            if cached is not None:
                logger.info("cache_hit", caller_id=context.caller_id, tier=policy.tier.value)
                return cached

        payload = build_prompt(context, policy, history)
        try:
            result = await self._try_chain(context, policy, payload)
        except ChainExhausted:
            return self._exhausted_result(context, key)

        if use_cache and not result.degraded:
            await self._cache.put(key, result)
        return result

    async def _try_chain(
        self,
        context: RequestContext,
        policy: TierPolicy,
        payload: PromptPayload,
    ) -> AnalysisResult:
        """Try each chain entry in order until one returns a valid answer."""
        for config in policy.chain:
            log = logger.bind(
                caller_id=context.caller_id,
                tier=policy.tier.value,
                chain_position=config.position,
                provider=config.provider.value,
                model=config.model,
            )
            try:
                result = await self._attempt(config, payload)
                self._validator.validate(result)
            except BackendError as e:
                log.warning("backend_attempt_failed", error_class=type(e).__name__, kind=e.kind, error=e.message)
                await self._latency_tracker.record_failure(backend_key(config.provider.value, config.model))
                continue
            except Exception as e:
                # Adapter bug: treat as a permanent failure of this entry
                log.exception("backend_attempt_crashed", error_class=type(e).__name__)
                await self._latency_tracker.record_failure(backend_key(config.provider.value, config.model))
                continue

            if config.position > 0:
                log.info("backend_fallback_succeeded")
            return result

        logger.error(
            "chain_exhausted",
            caller_id=context.caller_id,
            tier=policy.tier.value,
            chain_length=len(policy.chain),
        )
        raise ChainExhausted(f"All {len(policy.chain)} backends failed")

    async def _attempt(self, config: BackendConfig, payload: PromptPayload) -> AnalysisResult:
        """One chain entry, retries included, bounded by the per-attempt timeout.

        A timed-out attempt is cancelled; its late result is never seen.
        """
        adapter = self._adapters.get(config.provider)
        if adapter is None:
            raise BackendError(f"No adapter for provider {config.provider.value}", transient=False)

        timeout = float(self._settings.backend_request_timeout_per_attempt)
        start_time = time.monotonic()
        try:
            result = await asyncio.wait_for(
                self._call_with_retry(adapter, config, payload), timeout=timeout
            )
        except asyncio.TimeoutError as e:
            raise BackendError(
                f"Attempt timed out after {timeout:.1f}s", transient=True
            ) from e

        elapsed_ms = (time.monotonic() - start_time) * 1000
        if config.provider != Provider.CANNED:
            await self._latency_tracker.record_latency(
                backend_key(config.provider.value, config.model), elapsed_ms
            )
        return result.model_copy(
            update={
                "provider": config.provider.value,
                "model": config.model,
                "latency_ms": round(elapsed_ms, 2),
            }
        )

    async def _call_with_retry(
        self,
        adapter: BackendAdapter,
        config: BackendConfig,
        payload: PromptPayload,
    ) -> AnalysisResult:
        """Retry transient failures with exponential backoff; permanent ones propagate."""
        max_attempts = max(1, self._settings.backend_retry_max_attempts)
        base_delay = self._settings.backend_retry_backoff

        for attempt in range(max_attempts):
            try:
                return await adapter.generate(payload, config)
            except BackendError as e:
                if not e.transient or attempt == max_attempts - 1:
                    raise
                delay = base_delay * (2 ** attempt)
                logger.info(
                    "backend_retry",
                    provider=config.provider.value,
                    model=config.model,
                    attempt=attempt + 1,
                    max_attempts=max_attempts,
                    delay_s=delay,
                    status=e.status_code,
                )
                await asyncio.sleep(delay)

        # Unreachable: the loop either returns or raises
        raise BackendError("Retry loop exited without a result", transient=True)

    def _exhausted_result(self, context: RequestContext, key: str) -> AnalysisResult:
        """Deterministic degraded answer when no chain entry produced one."""
        return AnalysisResult(
            explanation="AI analysis temporarily unavailable. Please try again in a moment.",
            solution="If the issue persists, contact support with this error ID.",
            category=context.category or "general",
            tags=[t for t in (context.language, context.category) if t],
            confidence=EXHAUSTED_CONFIDENCE,
            language=context.language,
            provider="none",
            model=None,
            degraded=True,
            note="Service temporarily unavailable.",
            error_id=key[:8],
        )

    # ------------------------------------------------------------------
    # Lifecycle & maintenance
    # ------------------------------------------------------------------

    async def _maintenance_loop(self) -> None:
        """Periodically purge expired cache entries and idle rate state."""
        while True:
            try:
                await asyncio.sleep(self._settings.maintenance_interval)
                await self._cache.purge_expired()
                await self._limiter.cleanup()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("maintenance_error", error=str(e))

    async def start(self) -> None:
        """Start background tasks."""
        await self._conversations.start()
        if self._maintenance_task is None or self._maintenance_task.done():
            self._maintenance_task = asyncio.create_task(self._maintenance_loop())
        logger.info("Orchestrator started")

    async def stop(self) -> None:
        """Stop background tasks and close backend clients."""
        if self._maintenance_task:
            self._maintenance_task.cancel()
            try:
                await self._maintenance_task
            except asyncio.CancelledError:
                pass
            self._maintenance_task = None
        await self._conversations.stop()
        for adapter in self._adapters.values():
            try:
                await adapter.aclose()
            except Exception as e:
                logger.warning("adapter_close_failed", adapter=adapter.name, error=str(e))
        logger.info("Orchestrator stopped")

    async def clear_cache(self) -> int:
        """Drop every cached response, return how many were removed."""
        return await self._cache.clear()

    async def health(self) -> Dict[str, Any]:
        """Service health snapshot."""
        providers = {
            provider.value: ("available" if adapter.configured else "unavailable")
            for provider, adapter in self._adapters.items()
        }
        external = [p for p in providers if p != Provider.CANNED.value]
        status = "healthy" if any(providers[p] == "available" for p in external) else "degraded"
        return {
            "status": status,
            "providers": providers,
            "cache": self._cache.stats(),
            "conversations": len(self._conversations),
            "backends": await self._latency_tracker.snapshot(),
            "config": {
                "max_retries": self._settings.backend_retry_max_attempts,
                "retry_backoff_s": self._settings.backend_retry_backoff,
                "attempt_timeout_s": self._settings.backend_request_timeout_per_attempt,
                "cache_ttl_s": self._cache.ttl,
            },
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }


# Global orchestrator instance
_orchestrator: Optional[Orchestrator] = None


def get_orchestrator() -> Orchestrator:
    """Get the global orchestrator instance."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = Orchestrator()
    return _orchestrator


async def init_orchestrator() -> Orchestrator:
    """Initialize and start the global orchestrator."""
    orchestrator = get_orchestrator()
    await orchestrator.start()
    return orchestrator


async def shutdown_orchestrator() -> None:
    """Shutdown the global orchestrator."""
    global _orchestrator
    if _orchestrator:
        await _orchestrator.stop()
        _orchestrator = None
