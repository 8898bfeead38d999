############################################################
#
# errorwise - Tiered LLM Analysis Orchestrator
#
# base.py: Backend adapter contract and shared HTTP plumbing
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Backend adapter contract.

Every provider implements `generate(payload, config) -> AnalysisResult` and
reports failures as BackendError (transient or permanent) or
MalformedResponse. The orchestrator's retry/timeout/fallback logic only
depends on this contract.
"""

import json
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from backend.app.core.errors import BackendError, MalformedResponse
from backend.app.core.prompting import PromptPayload
from backend.app.core.schemas import AnalysisResult, BackendConfig, Severity, UsageInfo

_FENCE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


class BackendAdapter(ABC):
    """Uniform interface for one LLM provider."""

    name: str = "backend"

    @abstractmethod
    async def generate(self, payload: PromptPayload, config: BackendConfig) -> AnalysisResult:
        """Produce an AnalysisResult or raise BackendError."""

    @property
    def configured(self) -> bool:
        """Whether the adapter has what it needs to call out."""
        return True

    async def aclose(self) -> None:
        """Release held resources."""


class HTTPBackendAdapter(BackendAdapter):
    """Shared httpx client handling and error classification."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str],
        client: Optional[httpx.AsyncClient] = None,
        request_timeout: float = 30.0,
    ):
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._client = client
        self._request_timeout = request_timeout

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(
                    connect=10.0,
                    read=self._request_timeout,
                    write=10.0,
                    pool=10.0,
                ),
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    def _require_credentials(self) -> str:
        if not self._api_key:
            raise BackendError(f"{self.name} API key is not configured", transient=False)
        return self._api_key

    async def _post_json(
        self,
        url: str,
        body: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """POST a JSON body and return the decoded JSON response.

        Raises:
            BackendError: transient for timeouts, connection errors, 429 and
                5xx; permanent for other 4xx
            MalformedResponse: If the body is not JSON
        """
        client = await self._get_http_client()
        try:
            response = await client.post(url, json=body, headers=headers, params=params)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise BackendError(f"{self.name} request timed out", transient=True) from e
        except (httpx.NetworkError, httpx.RemoteProtocolError) as e:
            raise BackendError(f"{self.name} connection error: {e}", transient=True) from e
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            transient = status_code == 429 or status_code >= 500
            raise BackendError(
                f"{self.name} returned HTTP {status_code}",
                transient=transient,
                status_code=status_code,
            ) from e

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponse(f"{self.name} returned a non-JSON body") from e
        if not isinstance(data, dict):
            raise MalformedResponse(f"{self.name} returned an unexpected body")
        return data


def extract_json_object(text: str) -> Dict[str, Any]:
    """Parse a JSON object from model output, tolerating markdown fences."""
    if not text or not text.strip():
        raise MalformedResponse("Empty response text")
    cleaned = _FENCE.sub("", text).strip()
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        match = _JSON_OBJECT.search(cleaned)
        if not match:
            raise MalformedResponse("Response is not JSON")
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise MalformedResponse("Response contains invalid JSON") from e
    if not isinstance(parsed, dict):
        raise MalformedResponse("Response JSON is not an object")
    return parsed


def _string_list(value: Any) -> list:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if isinstance(item, (str, int, float)) and str(item).strip()]


def _confidence(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.7
    return min(1.0, max(0.0, number))


def _severity(value: Any) -> Severity:
    try:
        return Severity(str(value).strip().lower())
    except ValueError:
        return Severity.MEDIUM


def build_result(
    parsed: Dict[str, Any],
    payload: PromptPayload,
    config: BackendConfig,
    usage: Optional[UsageInfo] = None,
) -> AnalysisResult:
    """Map a parsed model answer onto an AnalysisResult.

    Missing explanation/solution stay empty so validation rejects them.
    """
    tags = _string_list(parsed.get("tags")) or [payload.language, payload.category]
    code_example = parsed.get("codeExample") or parsed.get("code_example")
    return AnalysisResult(
        explanation=str(parsed.get("explanation") or ""),
        solution=str(parsed.get("solution") or ""),
        code_example=str(code_example) if code_example else None,
        category=str(parsed.get("category") or payload.category),
        tags=tags,
        confidence=_confidence(parsed.get("confidence")),
        severity=_severity(parsed.get("severity")),
        language=payload.language,
        prevention_tips=_string_list(parsed.get("preventionTips") or parsed.get("prevention_tips")),
        provider=config.provider.value,
        model=config.model,
        usage=usage or UsageInfo(),
    )
