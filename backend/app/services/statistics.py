############################################################
#
# errorwise - Tiered LLM Analysis Orchestrator
#
# statistics.py: Aggregate statistics over analysis results
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Aggregate statistics over a collection of analysis results."""

from collections import Counter
from typing import Any, Dict, Iterable

from backend.app.core.schemas import AnalysisResult

HIGH_CONFIDENCE = 0.8
MEDIUM_CONFIDENCE = 0.5

# Provider values that mean no backend produced the answer
_FAILED_PROVIDERS = frozenset({"none", "error"})


def confidence_band(confidence: float) -> str:
    if confidence >= HIGH_CONFIDENCE:
        return "high"
    if confidence >= MEDIUM_CONFIDENCE:
        return "medium"
    return "low"


def summarize_results(results: Iterable[AnalysisResult]) -> Dict[str, Any]:
    """
    Summarize a history of analysis results.

    Args:
        results: Results as returned by analyze/converse/batch

    Returns:
        Dict with totals by language, category, provider, confidence band
        and hour of day (UTC), plus the success rate as a percentage.
        Degraded (canned or fallback) answers do not count as successes.
    """
    results = list(results)
    by_language: Counter = Counter()
    by_category: Counter = Counter()
    by_provider: Counter = Counter()
    by_confidence = {"high": 0, "medium": 0, "low": 0}
    by_hour: Counter = Counter()
    succeeded = 0

    for result in results:
        if result.language:
            by_language[result.language] += 1
        if result.category:
            by_category[result.category] += 1
        if result.provider:
            by_provider[result.provider] += 1
        by_confidence[confidence_band(result.confidence)] += 1
        by_hour[result.timestamp.hour] += 1
        if (
            not result.degraded
            and result.provider not in _FAILED_PROVIDERS
            and result.error_id is None
        ):
            succeeded += 1

    total = len(results)
    return {
        "total": total,
        "by_language": dict(by_language),
        "by_category": dict(by_category),
        "by_provider": dict(by_provider),
        "by_confidence": by_confidence,
        "by_hour": {str(hour): count for hour, count in sorted(by_hour.items())},
        "degraded": sum(1 for r in results if r.degraded),
        "success_rate": round(succeeded / total * 100, 2) if total else 0.0,
    }
