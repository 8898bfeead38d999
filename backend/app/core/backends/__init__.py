############################################################
#
# errorwise - Tiered LLM Analysis Orchestrator
#
# __init__.py: Backend adapter registry
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Backend adapters, one per provider, selected by BackendConfig.provider."""

from typing import Dict, Optional

from backend.app.core.backends.anthropic import AnthropicAdapter
from backend.app.core.backends.base import BackendAdapter, HTTPBackendAdapter
from backend.app.core.backends.canned import CannedAdapter
from backend.app.core.backends.gemini import GeminiAdapter
from backend.app.core.schemas import Provider
from backend.app.settings import Settings, get_settings


def build_adapters(settings: Optional[Settings] = None) -> Dict[Provider, BackendAdapter]:
    """Create one adapter per provider from settings."""
    settings = settings or get_settings()
    timeout = float(settings.backend_request_timeout_per_attempt)
    return {
        Provider.GEMINI: GeminiAdapter(
            api_key=settings.gemini_api_key,
            base_url=settings.gemini_base_url,
            request_timeout=timeout,
        ),
        Provider.ANTHROPIC: AnthropicAdapter(
            api_key=settings.anthropic_api_key,
            base_url=settings.anthropic_base_url,
            api_version=settings.anthropic_version,
            request_timeout=timeout,
        ),
        Provider.CANNED: CannedAdapter(),
    }


__all__ = [
    "AnthropicAdapter",
    "BackendAdapter",
    "CannedAdapter",
    "GeminiAdapter",
    "HTTPBackendAdapter",
    "build_adapters",
]
