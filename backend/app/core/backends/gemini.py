############################################################
#
# errorwise - Tiered LLM Analysis Orchestrator
#
# gemini.py: Google Gemini backend adapter
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Google Gemini adapter (generateContent REST API)."""

from typing import Any, Dict, List, Optional

import httpx

from backend.app.core.backends.base import HTTPBackendAdapter, build_result, extract_json_object
from backend.app.core.errors import MalformedResponse
from backend.app.core.prompting import PromptPayload
from backend.app.core.schemas import AnalysisResult, BackendConfig, MessageRole, UsageInfo


class GeminiAdapter(HTTPBackendAdapter):
    """Calls `models/{model}:generateContent`."""

    name = "gemini"

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        client: Optional[httpx.AsyncClient] = None,
        request_timeout: float = 30.0,
    ):
        super().__init__(base_url, api_key, client=client, request_timeout=request_timeout)

    @staticmethod
    def translate_request(payload: PromptPayload, config: BackendConfig) -> Dict[str, Any]:
        """Build the generateContent body."""
        contents: List[Dict[str, Any]] = []
        for turn in payload.history:
            role = "model" if turn.role == MessageRole.ASSISTANT else "user"
            contents.append({"role": role, "parts": [{"text": turn.content}]})
        contents.append({"role": "user", "parts": [{"text": payload.prompt}]})

        return {
            "systemInstruction": {"parts": [{"text": payload.system}]},
            "contents": contents,
            "generationConfig": {
                "maxOutputTokens": config.max_tokens,
                "temperature": config.temperature,
                "responseMimeType": "application/json",
            },
        }

    async def generate(self, payload: PromptPayload, config: BackendConfig) -> AnalysisResult:
        api_key = self._require_credentials()
        data = await self._post_json(
            f"{self._base_url}/models/{config.model}:generateContent",
            self.translate_request(payload, config),
            headers={"x-goog-api-key": api_key},
        )

        candidates = data.get("candidates") or []
        if not candidates:
            raise MalformedResponse("Gemini returned no candidates")
        candidate = candidates[0]
        if candidate.get("finishReason") == "MAX_TOKENS":
            raise MalformedResponse("Gemini response truncated at max tokens")

        parts = (candidate.get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))

        meta = data.get("usageMetadata") or {}
        usage = UsageInfo(
            input_tokens=int(meta.get("promptTokenCount") or 0),
            output_tokens=int(meta.get("candidatesTokenCount") or 0),
        )
        return build_result(extract_json_object(text), payload, config, usage)
