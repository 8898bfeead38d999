############################################################
#
# errorwise - Tiered LLM Analysis Orchestrator
#
# normalizer.py: Request normalization, sanitization and classification
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Request normalizer/validator.

Turns raw caller input into an immutable RequestContext: rejects unusable
text, bounds its length, strips executable markup and fills in the
language/category classifiers when the caller did not supply them.
"""

import re
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from backend.app.core.errors import InvalidInput
from backend.app.core.schemas import ReferenceSnippet, RequestContext, StackFrame
from backend.app.core.tiers import resolve_tier
from backend.app.logging_config import get_logger
from backend.app.settings import Settings, get_settings

logger = get_logger(__name__)

_SCRIPT_BLOCK = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script\s*>", re.IGNORECASE)
_SCRIPT_OPEN = re.compile(r"<script\b[^>]*>", re.IGNORECASE)
_EVENT_HANDLER = re.compile(
    r"(<[^>]*?)[\s/]+on[a-z]+\s*=\s*(?:\"[^\"]*\"|'[^']*'|[^\s>]+)", re.IGNORECASE
)
# Browsers drop control characters inside URL schemes ("java\tscript:")
_JS_URI = re.compile(r"[\x00-\x1f]*".join("javascript") + r"\s*:", re.IGNORECASE)
_STACK_FRAME = re.compile(r"at\s+(.+?)\s+\((.+?):(\d+):(\d+)\)")

MAX_REFERENCES = 3
MAX_REFERENCE_LENGTH = 3000


def sanitize_text(text: str) -> str:
    """Remove constructs that could be interpreted as executable markup."""
    cleaned = _SCRIPT_BLOCK.sub("", text)
    cleaned = _SCRIPT_OPEN.sub("", cleaned)
    # Repeat until stable: a tag may carry several handlers
    previous = None
    while previous != cleaned:
        previous = cleaned
        cleaned = _EVENT_HANDLER.sub(r"\1", cleaned)
    return _JS_URI.sub("", cleaned)


def parse_stack_trace(text: str) -> Tuple[StackFrame, ...]:
    """Extract `at fn (file:line:col)` frames."""
    frames = []
    for line in text.splitlines():
        match = _STACK_FRAME.search(line)
        if match:
            frames.append(
                StackFrame(
                    function=match.group(1),
                    file=match.group(2),
                    line=int(match.group(3)),
                    column=int(match.group(4)),
                )
            )
    return tuple(frames)


# (needle, category) pairs; first match wins
_CATEGORY_RULES: Sequence[Tuple[Tuple[str, ...], str]] = (
    (("syntax", "unexpected token", "unexpected identifier", "indentation"), "syntax"),
    (("cannot read propert", "undefined is not", "null is not", "typeerror", "type error"), "type"),
    (("is not defined", "referenceerror", "nameerror", "name error"), "scope"),
    (("index out of", "out of bounds", "indexerror", "index error"), "index"),
    (("time limit", "maximum call stack", "stack overflow", "recursion"), "algorithm"),
    (("division by zero", "divide by zero", "overflow", "underflow"), "mathematical"),
    (("assertion", "incorrect result", "wrong output"), "logic"),
    (("cannot find module", "modulenotfound", "importerror", "import error", "no module named"), "dependency"),
    (("network", "fetch", "cors", "connection", "refused", "timed out", "timeout"), "network"),
    (("api key", "credentials", "environment variable", ".env", "config"), "configuration"),
    (("deploy", "build failed", "pipeline", "docker", "container"), "deployment"),
    (("slow", "performance", "bottleneck", "memory leak", "n+1"), "performance"),
    (("permission", "access denied", "denied", "forbidden"), "permission"),
)


def detect_category(text: str) -> str:
    """Classify the problem described by `text`."""
    lowered = text.lower()
    for needles, category in _CATEGORY_RULES:
        if any(needle in lowered for needle in needles):
            return category
    return "runtime"


_SCRIPT_LANGUAGES: Sequence[Tuple[str, str]] = (
    (r"[ऀ-ॿ]", "hindi"),
    (r"[ঀ-৿]", "bengali"),
    (r"[਀-੿]", "punjabi"),
    (r"[଀-୿]", "odia"),
    (r"[஀-௿]", "tamil"),
    (r"[ఀ-౿]", "telugu"),
    (r"[ಀ-೿]", "kannada"),
    (r"[ഀ-ൿ]", "malayalam"),
)

# (message needles, code needles, language)
_LANGUAGE_RULES: Sequence[Tuple[Tuple[str, ...], Tuple[str, ...], str]] = (
    (("ts(",), ("interface ", ": string", ": number"), "typescript"),
    (("typeerror", "referenceerror", "syntaxerror", "undefined is not"), ("const ", "let ", "=>"), "javascript"),
    (("traceback", "indentationerror", "nameerror", "attributeerror", "modulenotfounderror", "importerror"),
     ("def ", "import ", "print("), "python"),
    (("nullpointerexception", "classnotfoundexception", "arrayindexoutofboundsexception"),
     ("public class", "public static void"), "java"),
    (("segmentation fault", "core dumped", "undefined reference"), ("#include", "std::"), "c++"),
    (("goroutine", "panic:"), ("func ", "package "), "go"),
    (("borrow checker", "lifetime"), ("fn ", "impl "), "rust"),
    (("parse error", "fatal error"), ("<?php",), "php"),
    (("nomethoderror", "undefined method"), (), "ruby"),
)


def detect_language(text: str, code_snippet: Optional[str] = None) -> str:
    """Best-effort guess of the natural or programming language involved."""
    combined = f"{text} {code_snippet or ''}"
    for pattern, language in _SCRIPT_LANGUAGES:
        if re.search(pattern, combined):
            return language

    message = text.lower()
    code = (code_snippet or "").lower()
    for message_needles, code_needles, language in _LANGUAGE_RULES:
        if any(needle in message for needle in message_needles):
            return language
        if code and any(needle in code for needle in code_needles):
            return language
    return "general"


def _bounded(text: str, limit: int, field: str) -> str:
    if len(text) > limit:
        logger.warning("input_truncated", field=field, original_length=len(text), limit=limit)
        return text[:limit]
    return text


def _normalize_references(references: Optional[Iterable[Any]]) -> Tuple[ReferenceSnippet, ...]:
    snippets: List[ReferenceSnippet] = []
    for ref in references or ():
        if isinstance(ref, ReferenceSnippet):
            snippet = ref
        elif isinstance(ref, dict):
            snippet = ReferenceSnippet(**ref)
        else:
            continue
        content = sanitize_text(snippet.content).strip()
        if not content:
            continue
        snippets.append(
            snippet.model_copy(update={"content": content[:MAX_REFERENCE_LENGTH]})
        )
        if len(snippets) >= MAX_REFERENCES:
            break
    return tuple(snippets)


def normalize_request(
    text: Any,
    caller_id: str,
    tier: Any,
    *,
    code_snippet: Optional[str] = None,
    file_name: Optional[str] = None,
    line_number: Optional[int] = None,
    language: Optional[str] = None,
    category: Optional[str] = None,
    framework: Optional[str] = None,
    dependencies: Optional[Iterable[str]] = None,
    references: Optional[Iterable[Any]] = None,
    conversation_id: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> RequestContext:
    """
    Validate and normalize raw request input.

    Args:
        text: Raw request text
        caller_id: Resolved caller identity
        tier: Raw subscription tier value (fails closed to free)
        settings: Override settings (tests)

    Returns:
        Immutable RequestContext

    Raises:
        InvalidInput: If text is empty, non-textual or too short
    """
    settings = settings or get_settings()

    if not isinstance(text, str):
        raise InvalidInput("Request text must be a non-empty string")
    if not caller_id or not str(caller_id).strip():
        raise InvalidInput("Caller identity is required")

    cleaned = sanitize_text(text.strip()).strip()
    if not cleaned:
        raise InvalidInput("Request text must be a non-empty string")
    if len(cleaned) < settings.input_min_length:
        raise InvalidInput(
            f"Request text too short (minimum {settings.input_min_length} characters)"
        )
    cleaned = _bounded(cleaned, settings.input_max_length, "text")

    snippet = None
    if isinstance(code_snippet, str) and code_snippet.strip():
        snippet = _bounded(
            sanitize_text(code_snippet.strip()), settings.input_max_length, "code_snippet"
        )

    return RequestContext(
        text=cleaned,
        caller_id=str(caller_id).strip(),
        tier=resolve_tier(tier),
        code_snippet=snippet,
        file_name=file_name or None,
        line_number=line_number if line_number and line_number > 0 else None,
        language=(language or detect_language(cleaned, snippet)).lower(),
        category=(category or detect_category(cleaned)).lower(),
        framework=framework or None,
        dependencies=tuple(d for d in (dependencies or ()) if d),
        stack_frames=parse_stack_trace(cleaned),
        references=_normalize_references(references),
        conversation_id=conversation_id or None,
    )
