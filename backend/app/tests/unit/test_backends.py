############################################################
#
# errorwise - Tiered LLM Analysis Orchestrator
#
# test_backends.py: Unit tests for provider adapters
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Unit tests for the Gemini, Anthropic and canned adapters.

HTTP adapters run against httpx.MockTransport; no network is used.
"""

import json

import httpx
import pytest

from backend.app.core.backends import AnthropicAdapter, CannedAdapter, GeminiAdapter
from backend.app.core.backends.base import extract_json_object
from backend.app.core.backends.canned import DEGRADED_CONFIDENCE_CAP
from backend.app.core.errors import BackendError, MalformedResponse
from backend.app.core.prompting import PromptPayload, build_prompt
from backend.app.core.schemas import (
    BackendConfig,
    ConversationTurn,
    MessageRole,
    Provider,
    Severity,
)
from backend.app.core.tiers import get_tier_policy
from backend.app.core.validators import ResponseValidator

MODEL_ANSWER = {
    "explanation": "The object is undefined when its property is read, because the fetch has not resolved yet.",
    "solution": "Wait for the data before rendering, or use optional chaining to guard the property access.",
    "codeExample": "const name = user?.name;",
    "category": "type",
    "tags": ["javascript", "undefined"],
    "confidence": 0.92,
    "severity": "high",
    "preventionTips": ["Initialize state with sensible defaults"],
}

GEMINI_CONFIG = BackendConfig(
    provider=Provider.GEMINI, model="gemini-2.0-flash", max_tokens=1000, temperature=0.5, position=0
)
ANTHROPIC_CONFIG = BackendConfig(
    provider=Provider.ANTHROPIC, model="claude-3-5-haiku-20241022", max_tokens=2000, temperature=0.4, position=0
)


@pytest.fixture
def payload(make_context):
    return build_prompt(make_context(tier="pro"), get_tier_policy("pro"))


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _gemini_body(text: str, finish_reason: str = "STOP") -> dict:
    return {
        "candidates": [{"content": {"parts": [{"text": text}]}, "finishReason": finish_reason}],
        "usageMetadata": {"promptTokenCount": 210, "candidatesTokenCount": 95},
    }


def _anthropic_body(text: str, stop_reason: str = "end_turn") -> dict:
    return {
        "content": [{"type": "text", "text": text}],
        "stop_reason": stop_reason,
        "usage": {"input_tokens": 300, "output_tokens": 120},
    }


class TestGemini:

    @pytest.mark.asyncio
    async def test_success(self, payload):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["key"] = request.headers.get("x-goog-api-key")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_gemini_body(json.dumps(MODEL_ANSWER)))

        adapter = GeminiAdapter(api_key="g-key", base_url="https://gemini.test/v1beta", client=_client(handler))
        result = await adapter.generate(payload, GEMINI_CONFIG)

        assert seen["url"] == "https://gemini.test/v1beta/models/gemini-2.0-flash:generateContent"
        assert seen["key"] == "g-key"
        assert seen["body"]["generationConfig"]["maxOutputTokens"] == 1000
        assert seen["body"]["systemInstruction"]["parts"][0]["text"] == payload.system
        assert result.provider == "gemini"
        assert result.confidence == 0.92
        assert result.severity == Severity.HIGH
        assert result.code_example == "const name = user?.name;"
        assert result.usage.input_tokens == 210
        assert not result.degraded
        ResponseValidator(min_field_length=50).validate(result)

    @pytest.mark.asyncio
    async def test_fenced_json_accepted(self, payload):
        fenced = "```json\n" + json.dumps(MODEL_ANSWER) + "\n```"
        adapter = GeminiAdapter(
            api_key="k", client=_client(lambda r: httpx.Response(200, json=_gemini_body(fenced)))
        )
        result = await adapter.generate(payload, GEMINI_CONFIG)
        assert result.explanation == MODEL_ANSWER["explanation"]

    @pytest.mark.asyncio
    async def test_truncated_is_malformed(self, payload):
        adapter = GeminiAdapter(
            api_key="k",
            client=_client(lambda r: httpx.Response(200, json=_gemini_body("{\"expl", "MAX_TOKENS"))),
        )
        with pytest.raises(MalformedResponse):
            await adapter.generate(payload, GEMINI_CONFIG)

    @pytest.mark.asyncio
    async def test_no_candidates_is_malformed(self, payload):
        adapter = GeminiAdapter(api_key="k", client=_client(lambda r: httpx.Response(200, json={})))
        with pytest.raises(MalformedResponse):
            await adapter.generate(payload, GEMINI_CONFIG)

    @pytest.mark.asyncio
    async def test_missing_key_is_permanent(self, payload):
        adapter = GeminiAdapter(api_key=None)
        assert not adapter.configured
        with pytest.raises(BackendError) as excinfo:
            await adapter.generate(payload, GEMINI_CONFIG)
        assert not excinfo.value.transient

    def test_history_roles(self):
        payload = PromptPayload(
            system="sys",
            prompt="now",
            history=[
                ConversationTurn(role=MessageRole.USER, content="first"),
                ConversationTurn(role=MessageRole.ASSISTANT, content="answer"),
            ],
        )
        body = GeminiAdapter.translate_request(payload, GEMINI_CONFIG)
        assert [c["role"] for c in body["contents"]] == ["user", "model", "user"]
        assert body["contents"][-1]["parts"][0]["text"] == "now"


class TestErrorClassification:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,transient", [
        (429, True),
        (500, True),
        (503, True),
        (400, False),
        (401, False),
        (404, False),
    ])
    async def test_http_status(self, payload, status, transient):
        adapter = AnthropicAdapter(
            api_key="k", client=_client(lambda r: httpx.Response(status, json={"error": "x"}))
        )
        with pytest.raises(BackendError) as excinfo:
            await adapter.generate(payload, ANTHROPIC_CONFIG)
        assert excinfo.value.transient is transient
        assert excinfo.value.status_code == status

    @pytest.mark.asyncio
    async def test_connection_error_is_transient(self, payload):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        adapter = AnthropicAdapter(api_key="k", client=_client(handler))
        with pytest.raises(BackendError) as excinfo:
            await adapter.generate(payload, ANTHROPIC_CONFIG)
        assert excinfo.value.transient

    @pytest.mark.asyncio
    async def test_timeout_is_transient(self, payload):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        adapter = AnthropicAdapter(api_key="k", client=_client(handler))
        with pytest.raises(BackendError) as excinfo:
            await adapter.generate(payload, ANTHROPIC_CONFIG)
        assert excinfo.value.transient

    @pytest.mark.asyncio
    async def test_non_json_body_is_malformed(self, payload):
        adapter = AnthropicAdapter(
            api_key="k", client=_client(lambda r: httpx.Response(200, text="<html>oops</html>"))
        )
        with pytest.raises(MalformedResponse):
            await adapter.generate(payload, ANTHROPIC_CONFIG)


class TestAnthropic:

    @pytest.mark.asyncio
    async def test_success(self, payload):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_anthropic_body(json.dumps(MODEL_ANSWER)))

        adapter = AnthropicAdapter(
            api_key="a-key", base_url="https://anthropic.test", api_version="2023-06-01",
            client=_client(handler),
        )
        result = await adapter.generate(payload, ANTHROPIC_CONFIG)

        assert seen["url"] == "https://anthropic.test/v1/messages"
        assert seen["headers"]["x-api-key"] == "a-key"
        assert seen["headers"]["anthropic-version"] == "2023-06-01"
        assert seen["body"]["model"] == "claude-3-5-haiku-20241022"
        assert seen["body"]["system"] == payload.system
        assert result.provider == "anthropic"
        assert result.prevention_tips == ["Initialize state with sensible defaults"]
        assert result.usage.output_tokens == 120

    @pytest.mark.asyncio
    async def test_max_tokens_is_malformed(self, payload):
        adapter = AnthropicAdapter(
            api_key="k",
            client=_client(lambda r: httpx.Response(200, json=_anthropic_body("{", "max_tokens"))),
        )
        with pytest.raises(MalformedResponse):
            await adapter.generate(payload, ANTHROPIC_CONFIG)

    @pytest.mark.asyncio
    async def test_missing_fields_fail_validation(self, payload):
        text = json.dumps({"category": "type"})
        adapter = AnthropicAdapter(
            api_key="k", client=_client(lambda r: httpx.Response(200, json=_anthropic_body(text)))
        )
        result = await adapter.generate(payload, ANTHROPIC_CONFIG)
        with pytest.raises(MalformedResponse):
            ResponseValidator(min_field_length=50).validate(result)

    def test_messages_alternate_and_start_with_user(self):
        payload = PromptPayload(
            system="sys",
            prompt="follow-up details",
            history=[
                ConversationTurn(role=MessageRole.ASSISTANT, content="stray"),
                ConversationTurn(role=MessageRole.USER, content="one"),
                ConversationTurn(role=MessageRole.USER, content="two"),
                ConversationTurn(role=MessageRole.ASSISTANT, content="reply"),
            ],
        )
        messages = AnthropicAdapter.translate_request(payload, ANTHROPIC_CONFIG)["messages"]
        assert [m["role"] for m in messages] == ["user", "assistant", "user"]
        assert messages[0]["content"] == "one\n\ntwo"
        assert messages[-1]["content"] == "follow-up details"

    def test_prompt_merged_into_trailing_user_turn(self):
        payload = PromptPayload(
            system="sys",
            prompt="prompt",
            history=[ConversationTurn(role=MessageRole.USER, content="earlier")],
        )
        messages = AnthropicAdapter.translate_request(payload, ANTHROPIC_CONFIG)["messages"]
        assert messages == [{"role": "user", "content": "earlier\n\nprompt"}]


class TestCanned:

    @pytest.mark.asyncio
    async def test_always_degraded(self, payload):
        config = get_tier_policy("pro").chain[-1]
        result = await CannedAdapter().generate(payload, config)
        assert result.degraded
        assert result.confidence <= DEGRADED_CONFIDENCE_CAP
        assert result.provider == "canned"
        assert result.note
        ResponseValidator(min_field_length=50).validate(result)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("category", ["type", "network", "unheard-of"])
    async def test_every_category_answers(self, category):
        config = get_tier_policy("free").chain[-1]
        payload = PromptPayload(system="s", prompt="p", category=category)
        result = await CannedAdapter().generate(payload, config)
        ResponseValidator(min_field_length=50).validate(result)


class TestExtractJson:

    def test_embedded_object(self):
        assert extract_json_object('Sure! {"a": 1} hope that helps') == {"a": 1}

    @pytest.mark.parametrize("text", ["", "no json here", "[1, 2]", "{broken"])
    def test_rejects(self, text):
        with pytest.raises(MalformedResponse):
            extract_json_object(text)
