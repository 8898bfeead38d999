############################################################
#
# errorwise - Tiered LLM Analysis Orchestrator
#
# tiers.py: Tier policy table and resolver
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Tier policy resolution.

Tier-to-chain mappings are defined once here and never change for the life
of the process. Unknown tier values fail closed to the most restrictive tier.
"""

from types import MappingProxyType
from typing import Any, Mapping

from backend.app.core.schemas import (
    BackendConfig,
    Provider,
    Tier,
    TierFeatures,
    TierPolicy,
)
from backend.app.logging_config import get_logger

logger = get_logger(__name__)

MOST_RESTRICTIVE_TIER = Tier.FREE


def _chain(*entries: tuple) -> tuple:
    """Build a chain from (provider, model, max_tokens, temperature) tuples."""
    return tuple(
        BackendConfig(
            provider=provider,
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            position=position,
        )
        for position, (provider, model, max_tokens, temperature) in enumerate(entries)
    )


TIER_POLICIES: Mapping[Tier, TierPolicy] = MappingProxyType({
    Tier.FREE: TierPolicy(
        tier=Tier.FREE,
        chain=_chain(
            (Provider.GEMINI, "gemini-2.0-flash", 1000, 0.5),
            (Provider.ANTHROPIC, "claude-3-5-haiku-20241022", 1000, 0.5),
            (Provider.CANNED, "canned-v1", 1000, 0.0),
        ),
        features=TierFeatures(),
        max_concurrent=1,
        requests_per_minute=5,
    ),
    Tier.PRO: TierPolicy(
        tier=Tier.PRO,
        chain=_chain(
            (Provider.ANTHROPIC, "claude-3-5-haiku-20241022", 2000, 0.4),
            (Provider.ANTHROPIC, "claude-3-haiku-20240307", 2000, 0.4),
            (Provider.CANNED, "canned-v1", 2000, 0.0),
        ),
        features=TierFeatures(
            conversation_memory=True,
            external_lookup=True,
            follow_up_questions=True,
        ),
        max_concurrent=3,
        requests_per_minute=20,
    ),
    Tier.TEAM: TierPolicy(
        tier=Tier.TEAM,
        chain=_chain(
            (Provider.ANTHROPIC, "claude-sonnet-4-20250514", 4000, 0.3),
            (Provider.ANTHROPIC, "claude-3-5-haiku-20241022", 4000, 0.3),
            (Provider.CANNED, "canned-v1", 4000, 0.0),
        ),
        features=TierFeatures(
            conversation_memory=True,
            external_lookup=True,
            batch_mode=True,
            follow_up_questions=True,
        ),
        max_concurrent=10,
        requests_per_minute=100,
    ),
})

# Every tier must have exactly one policy.
if set(TIER_POLICIES) != set(Tier):
    raise RuntimeError(
        f"Tier policy table out of sync: missing {set(Tier) - set(TIER_POLICIES)}"
    )


def resolve_tier(value: Any) -> Tier:
    """Map a raw tier value onto a known Tier, failing closed."""
    if isinstance(value, Tier):
        return value
    if isinstance(value, str):
        try:
            return Tier(value.strip().lower())
        except ValueError:
            pass
    logger.warning(
        "unknown_tier",
        tier=repr(value)[:32],
        resolved=MOST_RESTRICTIVE_TIER.value,
    )
    return MOST_RESTRICTIVE_TIER


def get_tier_policy(tier: Any) -> TierPolicy:
    """Pure lookup: tier -> TierPolicy."""
    return TIER_POLICIES[resolve_tier(tier)]
