############################################################
#
# errorwise - Tiered LLM Analysis Orchestrator
#
# schemas.py: Request, policy and result schemas
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Internal request/response schemas.

Every caller request is normalized into a RequestContext; every backend
answer (or canned fallback) comes back as an AnalysisResult.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Tier(str, Enum):
    """Subscription tiers."""
    FREE = "free"
    PRO = "pro"
    TEAM = "team"


class Provider(str, Enum):
    """Backend providers an adapter exists for."""
    GEMINI = "gemini"
    ANTHROPIC = "anthropic"
    CANNED = "canned"


class Severity(str, Enum):
    """Severity reported for an analyzed problem."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class MessageRole(str, Enum):
    """Conversation turn roles."""
    USER = "user"
    ASSISTANT = "assistant"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Request side
class StackFrame(BaseModel):
    """A parsed stack trace frame."""
    model_config = ConfigDict(frozen=True)

    function: str
    file: str
    line: int
    column: int


class ReferenceSnippet(BaseModel):
    """Externally fetched reference content (docs, forum answers)."""
    model_config = ConfigDict(frozen=True)

    source: str
    content: str
    title: Optional[str] = None


class RequestContext(BaseModel):
    """Normalized, immutable analysis request."""
    model_config = ConfigDict(frozen=True)

    text: str
    caller_id: str
    tier: Tier

    code_snippet: Optional[str] = None
    file_name: Optional[str] = None
    line_number: Optional[int] = None
    language: Optional[str] = None
    category: Optional[str] = None
    framework: Optional[str] = None
    dependencies: Tuple[str, ...] = ()
    stack_frames: Tuple[StackFrame, ...] = ()
    references: Tuple[ReferenceSnippet, ...] = ()
    conversation_id: Optional[str] = None


# Policy side
class BackendConfig(BaseModel):
    """One entry in a tier's fallback chain."""
    model_config = ConfigDict(frozen=True)

    provider: Provider
    model: str
    max_tokens: int = Field(ge=1)
    temperature: float = Field(ge=0, le=2)
    position: int = Field(default=0, ge=0)


class TierFeatures(BaseModel):
    """Feature flags enabled for a tier."""
    model_config = ConfigDict(frozen=True)

    conversation_memory: bool = False
    external_lookup: bool = False
    batch_mode: bool = False
    follow_up_questions: bool = False


class TierPolicy(BaseModel):
    """Chain, features and ceilings for one tier."""
    model_config = ConfigDict(frozen=True)

    tier: Tier
    chain: Tuple[BackendConfig, ...]
    features: TierFeatures
    max_concurrent: int = Field(ge=1)
    requests_per_minute: int = Field(ge=1)

    @model_validator(mode="after")
    def _check_chain(self) -> "TierPolicy":
        if not self.chain:
            raise ValueError(f"Tier {self.tier.value} has an empty backend chain")
        if self.chain[-1].provider != Provider.CANNED:
            raise ValueError(
                f"Tier {self.tier.value} chain must end with the canned fallback"
            )
        for index, config in enumerate(self.chain):
            if config.position != index:
                raise ValueError(
                    f"Tier {self.tier.value} chain position {config.position} at index {index}"
                )
        return self


# Result side
class UsageInfo(BaseModel):
    """Token usage reported by a backend."""
    input_tokens: int = 0
    output_tokens: int = 0


class AnalysisResult(BaseModel):
    """Normalized structured answer."""
    explanation: str
    solution: str
    code_example: Optional[str] = None
    category: str = "general"
    tags: List[str] = Field(default_factory=list)
    confidence: float = Field(default=0.7, ge=0, le=1)
    severity: Severity = Severity.MEDIUM
    language: Optional[str] = None
    prevention_tips: List[str] = Field(default_factory=list)

    # Provenance
    provider: str
    model: Optional[str] = None
    usage: UsageInfo = Field(default_factory=UsageInfo)
    latency_ms: Optional[float] = None
    timestamp: datetime = Field(default_factory=_utcnow)

    degraded: bool = False
    note: Optional[str] = None
    error_id: Optional[str] = None


class FollowUp(BaseModel):
    """Clarification request returned instead of a backend answer."""
    type: Literal["follow_up"] = "follow_up"
    conversation_id: str
    message: str
    questions: List[str]
    context: Dict[str, Any] = Field(default_factory=dict)


class ConversationTurn(BaseModel):
    """One message in a conversation."""
    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=_utcnow)
