############################################################
#
# errorwise - Tiered LLM Analysis Orchestrator
#
# anthropic.py: Anthropic Claude backend adapter
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Anthropic Claude adapter (Messages API)."""

from typing import Any, Dict, List, Optional

import httpx

from backend.app.core.backends.base import HTTPBackendAdapter, build_result, extract_json_object
from backend.app.core.errors import MalformedResponse
from backend.app.core.prompting import PromptPayload
from backend.app.core.schemas import AnalysisResult, BackendConfig, MessageRole, UsageInfo


class AnthropicAdapter(HTTPBackendAdapter):
    """Calls `POST /v1/messages`."""

    name = "anthropic"

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://api.anthropic.com",
        api_version: str = "2023-06-01",
        client: Optional[httpx.AsyncClient] = None,
        request_timeout: float = 30.0,
    ):
        super().__init__(base_url, api_key, client=client, request_timeout=request_timeout)
        self._api_version = api_version

    @staticmethod
    def translate_request(payload: PromptPayload, config: BackendConfig) -> Dict[str, Any]:
        """Build the Messages API body.

        The API requires alternating roles starting with a user turn, so
        leading assistant turns are dropped and consecutive same-role turns
        are merged.
        """
        messages: List[Dict[str, Any]] = []
        for turn in payload.history:
            role = "assistant" if turn.role == MessageRole.ASSISTANT else "user"
            if not messages and role == "assistant":
                continue
            if messages and messages[-1]["role"] == role:
                messages[-1]["content"] += "\n\n" + turn.content
            else:
                messages.append({"role": role, "content": turn.content})

        if messages and messages[-1]["role"] == "user":
            messages[-1]["content"] += "\n\n" + payload.prompt
        else:
            messages.append({"role": "user", "content": payload.prompt})

        return {
            "model": config.model,
            "max_tokens": config.max_tokens,
            "temperature": config.temperature,
            "system": payload.system,
            "messages": messages,
        }

    async def generate(self, payload: PromptPayload, config: BackendConfig) -> AnalysisResult:
        api_key = self._require_credentials()
        data = await self._post_json(
            f"{self._base_url}/v1/messages",
            self.translate_request(payload, config),
            headers={
                "x-api-key": api_key,
                "anthropic-version": self._api_version,
                "content-type": "application/json",
            },
        )

        if data.get("stop_reason") == "max_tokens":
            raise MalformedResponse("Anthropic response truncated at max tokens")

        text = "".join(
            block.get("text", "")
            for block in data.get("content") or []
            if isinstance(block, dict) and block.get("type") == "text"
        )

        meta = data.get("usage") or {}
        usage = UsageInfo(
            input_tokens=int(meta.get("input_tokens") or 0),
            output_tokens=int(meta.get("output_tokens") or 0),
        )
        return build_result(extract_json_object(text), payload, config, usage)
