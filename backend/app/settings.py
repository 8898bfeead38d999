############################################################
#
# errorwise - Tiered LLM Analysis Orchestrator
#
# settings.py: Application configuration and environment settings
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Application settings using Pydantic Settings."""

from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _get_version() -> str:
    """Read version from pyproject.toml (single source of truth)."""
    try:
        from importlib.metadata import version
        return version("errorwise")
    except Exception:
        pass
    # Fallback: read pyproject.toml directly (works in dev without pip install)
    try:
        import tomllib
        toml_path = Path(__file__).resolve().parents[2] / "pyproject.toml"
        with open(toml_path, "rb") as f:
            data = tomllib.load(f)
        return data["project"]["version"]
    except Exception:
        return "0.0.0"


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.prod"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "ErrorWise"
    app_version: str = Field(default_factory=_get_version)
    debug: bool = False
    reload: bool = False

    # Backend credentials and endpoints
    anthropic_api_key: Optional[str] = None
    anthropic_base_url: str = "https://api.anthropic.com"
    anthropic_version: str = "2023-06-01"
    gemini_api_key: Optional[str] = None
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"

    # Input bounds
    input_min_length: int = 10
    input_max_length: int = 8000

    # Response cache
    cache_ttl_seconds: int = 1800  # 30 minutes
    cache_max_entries: int = 1000

    # Request Handling
    backend_request_timeout_per_attempt: float = 30.0
    backend_retry_max_attempts: int = 3
    backend_retry_backoff: float = 1.0
    min_response_field_length: int = 50

    # Rate limiting
    rate_limit_window_seconds: int = 60
    rate_limit_idle_seconds: int = 300

    # Conversation memory
    conversation_retention_seconds: int = 3600  # 1 hour
    conversation_sweep_interval: int = 300
    conversation_history_turns: int = 5

    # Background maintenance (cache purge + idle rate state cleanup)
    maintenance_interval: int = 600

    # Batch analysis
    batch_concurrency: int = 3
    batch_max_items: int = 20

    # Latency Tracking
    latency_ema_alpha: float = 0.3

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"
    log_file: Optional[str] = None

    # Observability
    metrics_enabled: bool = True

    # CORS
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:8000"]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins from string or list."""
        if isinstance(v, str):
            import json
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(",")]
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
