############################################################
#
# errorwise - Tiered LLM Analysis Orchestrator
#
# canned.py: Deterministic terminal fallback adapter
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Canned answers for when no backend can be reached.

The last entry of every tier chain uses this adapter. It never performs I/O,
so it always produces a (degraded) answer.
"""

from typing import Dict, NamedTuple, Tuple

from backend.app.core.backends.base import BackendAdapter
from backend.app.core.prompting import PromptPayload
from backend.app.core.schemas import AnalysisResult, BackendConfig, Severity

DEGRADED_NOTE = (
    "AI analysis is temporarily unavailable, so this is a general answer for "
    "this kind of problem. Please try again in a few minutes for a detailed analysis."
)
DEGRADED_CONFIDENCE_CAP = 0.4


class CannedAnswer(NamedTuple):
    explanation: str
    solution: str
    code_example: str
    tags: Tuple[str, ...]
    severity: Severity


_DEFAULT = CannedAnswer(
    explanation=(
        "This looks like a software problem that needs systematic debugging. It may "
        "come from program logic, unexpected input, or the environment the code runs in."
    ),
    solution=(
        "Reproduce the problem with the smallest possible input, check variable values "
        "and types around the failing line, read the full error message and stack trace, "
        "and verify assumptions about inputs and configuration one at a time."
    ),
    code_example="",
    tags=("debugging", "general"),
    severity=Severity.MEDIUM,
)

CANNED_ANSWERS: Dict[str, CannedAnswer] = {
    "type": CannedAnswer(
        explanation=(
            "A type error means an operation was applied to a value of the wrong type, "
            "most often reading a property of undefined/null or calling something that "
            "is not a function."
        ),
        solution=(
            "Find which value is undefined or has the wrong type at the failing line. "
            "Guard access with optional chaining or explicit checks, and validate data "
            "returned from APIs before using it."
        ),
        code_example="const name = user?.profile?.name ?? 'Guest';",
        tags=("runtime", "type-checking", "null-safety"),
        severity=Severity.HIGH,
    ),
    "scope": CannedAnswer(
        explanation=(
            "A reference or name error means the code uses a variable or function that "
            "is not defined in the current scope, often because of a typo or a missing import."
        ),
        solution=(
            "Check the spelling of the name, make sure it is declared before use and in "
            "a scope visible at that line, and add the missing import if it lives in "
            "another module."
        ),
        code_example="",
        tags=("scope", "naming"),
        severity=Severity.MEDIUM,
    ),
    "syntax": CannedAnswer(
        explanation=(
            "A syntax error means the parser could not understand the code, usually "
            "because of a missing bracket, quote, comma or incorrect indentation."
        ),
        solution=(
            "Look at the reported line and the line just before it for unbalanced "
            "brackets or quotes. A linter and an auto-formatter will catch most of "
            "these before you run the code."
        ),
        code_example="",
        tags=("syntax", "parser"),
        severity=Severity.MEDIUM,
    ),
    "network": CannedAnswer(
        explanation=(
            "A network error means a request could not reach its destination or did not "
            "get a response in time. Causes include connectivity, DNS, CORS and timeouts."
        ),
        solution=(
            "Confirm the address is reachable, check the browser or client console for "
            "CORS or TLS messages, add timeouts and retries, and verify that proxies or "
            "firewalls are not blocking the connection."
        ),
        code_example="",
        tags=("network", "http", "connectivity"),
        severity=Severity.MEDIUM,
    ),
    "dependency": CannedAnswer(
        explanation=(
            "A module or import error means a package the code needs is missing, has a "
            "different name, or was installed into another environment."
        ),
        solution=(
            "Install the package into the environment that runs the code, check the "
            "exact import path and package name, and pin versions in your dependency "
            "file so every environment matches."
        ),
        code_example="",
        tags=("dependency", "imports", "packaging"),
        severity=Severity.MEDIUM,
    ),
    "configuration": CannedAnswer(
        explanation=(
            "A configuration error means the program started with missing or invalid "
            "settings, such as an unset environment variable or a wrong API key."
        ),
        solution=(
            "List the settings the program reads, verify each one is set in the "
            "environment it runs in, and fail fast at startup with a clear message when "
            "a required value is missing."
        ),
        code_example="",
        tags=("configuration", "environment"),
        severity=Severity.MEDIUM,
    ),
    "performance": CannedAnswer(
        explanation=(
            "A performance problem means the work is taking longer or using more memory "
            "than expected, often because of repeated queries, large loops or leaks."
        ),
        solution=(
            "Measure before changing anything: profile the slow path, look for repeated "
            "database or network calls inside loops, add caching or batching, and check "
            "memory growth over time."
        ),
        code_example="",
        tags=("performance", "profiling"),
        severity=Severity.LOW,
    ),
}


class CannedAdapter(BackendAdapter):
    """Answers from a fixed table. Never fails, always degraded."""

    name = "canned"

    @staticmethod
    def lookup(category: str) -> CannedAnswer:
        return CANNED_ANSWERS.get((category or "").lower(), _DEFAULT)

    async def generate(self, payload: PromptPayload, config: BackendConfig) -> AnalysisResult:
        answer = self.lookup(payload.category)
        return AnalysisResult(
            explanation=answer.explanation,
            solution=answer.solution,
            code_example=answer.code_example or None,
            category=payload.category,
            tags=[payload.language, *answer.tags],
            confidence=DEGRADED_CONFIDENCE_CAP,
            severity=answer.severity,
            language=payload.language,
            provider=config.provider.value,
            model=config.model,
            degraded=True,
            note=DEGRADED_NOTE,
        )
