############################################################
#
# errorwise - Tiered LLM Analysis Orchestrator
#
# test_normalizer.py: Unit tests for request normalization
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Unit tests for the request normalizer."""

import pytest

from backend.app.core.errors import InvalidInput
from backend.app.core.normalizer import (
    MAX_REFERENCE_LENGTH,
    MAX_REFERENCES,
    detect_category,
    detect_language,
    normalize_request,
    parse_stack_trace,
    sanitize_text,
)
from backend.app.core.schemas import Tier
from backend.app.settings import Settings


@pytest.fixture
def settings():
    return Settings(_env_file=None)


class TestRejection:
    """Unusable input is rejected before anything else runs."""

    @pytest.mark.parametrize("text", ["", "   ", None, 42, ["an error"]])
    def test_empty_or_non_text_rejected(self, settings, text):
        with pytest.raises(InvalidInput):
            normalize_request(text, "user-1", "free", settings=settings)

    def test_too_short_rejected(self, settings):
        with pytest.raises(InvalidInput, match="too short"):
            normalize_request("oops", "user-1", "free", settings=settings)

    def test_exactly_min_length_accepted(self, settings):
        ctx = normalize_request("x" * settings.input_min_length, "user-1", "free", settings=settings)
        assert len(ctx.text) == settings.input_min_length

    def test_short_after_sanitizing_rejected(self, settings):
        text = "<script>alert('a long payload here')</script>hi"
        with pytest.raises(InvalidInput):
            normalize_request(text, "user-1", "free", settings=settings)

    def test_missing_caller_rejected(self, settings):
        with pytest.raises(InvalidInput):
            normalize_request("TypeError: x is not a function", "  ", "free", settings=settings)


class TestBounding:

    def test_long_text_truncated_not_rejected(self, settings):
        text = "a" * (settings.input_max_length + 500)
        ctx = normalize_request(text, "user-1", "free", settings=settings)
        assert len(ctx.text) == settings.input_max_length

    def test_code_snippet_truncated(self, settings):
        ctx = normalize_request(
            "SyntaxError: unexpected token",
            "user-1",
            "free",
            code_snippet="b" * (settings.input_max_length + 1),
            settings=settings,
        )
        assert len(ctx.code_snippet) == settings.input_max_length

    def test_references_capped(self, settings):
        refs = [
            {"source": f"docs-{i}", "content": "c" * (MAX_REFERENCE_LENGTH + 100)}
            for i in range(MAX_REFERENCES + 2)
        ]
        ctx = normalize_request(
            "TypeError: x is not a function", "user-1", "pro", references=refs, settings=settings
        )
        assert len(ctx.references) == MAX_REFERENCES
        assert all(len(r.content) == MAX_REFERENCE_LENGTH for r in ctx.references)


class TestSanitize:

    def test_script_block_removed(self):
        assert sanitize_text("before<script>alert(1)</script>after") == "beforeafter"

    def test_unterminated_script_tag_removed(self):
        assert "<script" not in sanitize_text("x <script src='evil.js'> y")

    def test_event_handlers_removed(self):
        cleaned = sanitize_text('<img src="a.png" onerror="steal()" onload=boom()>')
        assert "onerror" not in cleaned
        assert "onload" not in cleaned
        assert 'src="a.png"' in cleaned

    def test_javascript_uri_removed(self):
        assert "javascript:" not in sanitize_text('<a href="javascript:alert(1)">x</a>').lower()

    def test_slash_separated_handler_removed(self):
        cleaned = sanitize_text("see <img/src=x/onerror=alert(1)> in my page error")
        assert "onerror" not in cleaned
        assert cleaned == "see <img/src=x> in my page error"

    def test_javascript_uri_with_control_chars_removed(self):
        cleaned = sanitize_text('<a href="java\tscript:alert(1)">x</a>')
        assert "script:" not in cleaned

    def test_prose_mentioning_java_untouched(self):
        text = "My java script: fails to compile on startup"
        assert sanitize_text(text) == text

    def test_plain_text_untouched(self):
        text = "if (a < b && c > d) { return 'on=true'; }"
        assert sanitize_text(text) == text


class TestClassification:

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("SyntaxError: Unexpected token }", "syntax"),
            ("TypeError: Cannot read properties of undefined", "type"),
            ("ReferenceError: foo is not defined", "scope"),
            ("IndexError: list index out of range", "index"),
            ("ModuleNotFoundError: No module named 'requests'", "dependency"),
            ("fetch failed: connection refused", "network"),
            ("my page is really slow to render", "performance"),
            ("something odd happened during maintenance", "runtime"),
        ],
    )
    def test_detect_category(self, text, expected):
        assert detect_category(text) == expected

    def test_detect_language_from_message(self):
        assert detect_language("Traceback (most recent call last): NameError") == "python"

    def test_detect_language_from_code(self):
        assert detect_language("it breaks", "public class Main { public static void main() {} }") == "java"

    def test_detect_indic_script(self):
        assert detect_language("मेरा कोड काम नहीं कर रहा") == "hindi"

    def test_unknown_language_is_general(self):
        assert detect_language("my printer makes a noise") == "general"

    def test_caller_supplied_values_win(self, settings):
        ctx = normalize_request(
            "TypeError: Cannot read property 'x'",
            "user-1",
            "free",
            language="TypeScript",
            category="Custom",
            settings=settings,
        )
        assert ctx.language == "typescript"
        assert ctx.category == "custom"


class TestContext:

    def test_stack_frames_parsed(self):
        trace = (
            "TypeError: boom\n"
            "    at render (src/App.js:12:5)\n"
            "    at commit (node_modules/react-dom.js:100:20)"
        )
        frames = parse_stack_trace(trace)
        assert [f.function for f in frames] == ["render", "commit"]
        assert frames[0].file == "src/App.js"
        assert (frames[0].line, frames[0].column) == (12, 5)

    def test_unknown_tier_fails_closed(self, settings):
        ctx = normalize_request("TypeError: x is not a function", "user-1", "platinum", settings=settings)
        assert ctx.tier == Tier.FREE

    def test_context_is_immutable(self, settings):
        ctx = normalize_request("TypeError: x is not a function", "user-1", "team", settings=settings)
        with pytest.raises(Exception):
            ctx.text = "changed"

    def test_non_positive_line_number_dropped(self, settings):
        ctx = normalize_request(
            "TypeError: x is not a function", "user-1", "free", line_number=0, settings=settings
        )
        assert ctx.line_number is None
