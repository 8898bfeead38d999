############################################################
#
# errorwise - Tiered LLM Analysis Orchestrator
#
# clarify.py: Context extraction and follow-up question heuristics
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Clarification heuristics for conversational requests.

These rules are intentionally simple: keyword and length checks decide
whether a vague problem report should get targeted questions before any
backend is called. Factual and news questions are always answered.
"""

import re
from typing import Any, Dict, List, Optional

_PROBLEM = re.compile(
    r"\b(error|exception|bug|issue|fail(ed|s|ing)?|crash(ed|es|ing)?|broken|"
    r"not working|won'?t|can'?t|cannot|doesn'?t|isn'?t|stopped)\b",
    re.IGNORECASE,
)
_HOWTO = re.compile(r"\b(how to|how do|tutorial|guide|steps|learn)\b", re.IGNORECASE)
_FACTUAL = re.compile(r"\b(what is|what are|who is|when|where|why|define|explain)\b", re.IGNORECASE)
_NEWS = re.compile(r"\b(latest|news|current|today|recent|trending)\b", re.IGNORECASE)

VENDORS = (
    "dell", "hp", "lenovo", "asus", "acer", "apple", "microsoft", "samsung",
    "xiaomi", "oneplus", "google", "tp-link", "netgear", "canon", "epson",
)
DEVICES = ("laptop", "phone", "printer", "router", "tablet", "desktop", "monitor", "pc")

_ISSUE_CATEGORIES = (
    (("driver",), "driver"),
    (("screen", "display", "monitor"), "display"),
    (("wifi", "wi-fi", "network", "internet", "connect", "bluetooth"), "network"),
    (("battery", "charging", "charge"), "battery"),
    (("slow", "performance", "lag", "freez"), "performance"),
    (("sound", "audio", "speaker", "microphone"), "audio"),
    (("boot", "startup", "turn on", "power on"), "boot"),
)

_REGIONAL = ("india", "indian", "hindi", "tamil", "telugu", "bangalore", "mumbai", "delhi",
             "chennai", "kolkata", "hyderabad")

CLARIFICATION_MESSAGE = "I'd like to help you better! Could you provide some more details?"


def _word_count(message: str) -> int:
    return len(message.split())


def _first_word_match(lowered: str, words) -> Optional[str]:
    for word in words:
        if re.search(rf"\b{re.escape(word)}\b", lowered):
            return word
    return None


def classify_query(message: str) -> str:
    """Return error, howto, factual, news or general."""
    if _PROBLEM.search(message):
        return "error"
    if _HOWTO.search(message):
        return "howto"
    if _FACTUAL.search(message):
        return "factual"
    if _NEWS.search(message):
        return "news"
    return "general"


def extract_context(message: str) -> Dict[str, Any]:
    """Pull context attributes out of one message.

    Only attributes actually found are returned, so merging keeps details
    from earlier turns.
    """
    lowered = message.lower()
    extracted: Dict[str, Any] = {"query_type": classify_query(message)}

    vendor = _first_word_match(lowered, VENDORS)
    if vendor:
        extracted["vendor"] = vendor
    device = _first_word_match(lowered, DEVICES)
    if device:
        extracted["device"] = device

    for needles, category in _ISSUE_CATEGORIES:
        if any(needle in lowered for needle in needles):
            extracted["issue_category"] = category
            break

    if any(word in lowered for word in _REGIONAL):
        extracted["regional_context"] = "india"
    return extracted


def should_ask_follow_up(message: str, context: Dict[str, Any]) -> bool:
    """Decide whether to ask for details instead of answering.

    `context` is the session's accumulated context, already merged with
    this message.
    """
    query_type = classify_query(message)
    if query_type in ("factual", "news"):
        return False

    if query_type == "howto":
        return _word_count(message) < 4

    if query_type == "error":
        if context.get("vendor") and context.get("issue_category"):
            return False
        lowered = message.lower()
        mentions_device = _first_word_match(lowered, DEVICES) is not None
        return (
            _word_count(message) < 5
            or (mentions_device and not context.get("vendor"))
            or ("error" in lowered and not context.get("issue_category"))
        )

    return False


def follow_up_questions(message: str, context: Dict[str, Any]) -> List[str]:
    """Targeted questions for the details that are missing."""
    questions = []
    device = context.get("device") or "device"
    if not context.get("vendor") and context.get("device"):
        questions.append(
            f"What brand is your {device}? (e.g., Dell, HP, Lenovo, Apple)"
        )
    if context.get("vendor") and not context.get("model"):
        questions.append(f"What is the model number of your {context['vendor'].title()} {device}?")
    if not context.get("issue_category"):
        questions.append("What specific error or symptom are you seeing?")
    if not questions:
        questions.append(
            "What exactly happens when it fails, and did anything change right before it started?"
        )
    return questions
