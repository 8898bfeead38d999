############################################################
#
# errorwise - Tiered LLM Analysis Orchestrator
#
# conversation.py: Ephemeral conversation session store with background sweep
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Conversation context store.

Sessions live in process memory only and are deleted by a single background
sweeper once idle longer than the retention window.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from backend.app.core.errors import Forbidden, SessionNotFound
from backend.app.core.schemas import ConversationTurn
from backend.app.logging_config import get_logger
from backend.app.settings import get_settings

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ConversationSession:
    """Multi-turn memory for one caller and one dialogue."""

    id: str
    caller_id: str
    turns: List[ConversationTurn] = field(default_factory=list)
    context: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=_utcnow)
    last_activity: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.last_activity is None:
            self.last_activity = self.created_at

    def recent_turns(self, limit: int) -> List[ConversationTurn]:
        return list(self.turns[-limit:]) if limit > 0 else []

    def to_dict(self) -> Dict[str, Any]:
        return {
            "conversation_id": self.id,
            "created_at": self.created_at.isoformat(),
            "last_activity": self.last_activity.isoformat(),
            "context": dict(self.context),
            "turns": [turn.model_dump(mode="json") for turn in self.turns],
        }


class ConversationStore:
    """Concurrency-safe session map keyed by session id."""

    def __init__(
        self,
        retention_seconds: Optional[int] = None,
        sweep_interval: Optional[int] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        settings = get_settings()
        self._retention = timedelta(
            seconds=retention_seconds or settings.conversation_retention_seconds
        )
        self._sweep_interval = sweep_interval or settings.conversation_sweep_interval
        self._clock = clock
        self._sessions: Dict[str, ConversationSession] = {}
        self._lock = asyncio.Lock()
        self._sweep_task: Optional[asyncio.Task] = None

    @staticmethod
    def _check_owner(session: ConversationSession, caller_id: str) -> None:
        if session.caller_id != caller_id:
            logger.warning(
                "conversation_forbidden",
                conversation_id=session.id,
                caller_id=caller_id,
            )
            raise Forbidden("Conversation belongs to another caller")

    async def get_or_create(self, session_id: str, caller_id: str) -> ConversationSession:
        """
        Fetch a session, creating it on first use.

        Raises:
            Forbidden: If the session belongs to another caller
        """
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                now = self._clock()
                session = ConversationSession(
                    id=session_id, caller_id=caller_id, created_at=now, last_activity=now
                )
                self._sessions[session_id] = session
                logger.debug("conversation_created", conversation_id=session_id)
                return session
            self._check_owner(session, caller_id)
            return session

    async def get(self, session_id: str, caller_id: str) -> ConversationSession:
        """Fetch an existing session for its owner."""
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFound(f"Conversation {session_id} not found")
            self._check_owner(session, caller_id)
            return session

    async def append(self, session_id: str, turn: ConversationTurn) -> None:
        """Append a turn to a session."""
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFound(f"Conversation {session_id} not found")
            session.turns.append(turn)
            session.last_activity = self._clock()

    async def merge_context(self, session_id: str, extracted: Dict[str, Any]) -> Dict[str, Any]:
        """Merge newly extracted attributes, return the accumulated context."""
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFound(f"Conversation {session_id} not found")
            session.context.update(
                {k: v for k, v in extracted.items() if v not in (None, "")}
            )
            return dict(session.context)

    async def delete(self, session_id: str, caller_id: Optional[str] = None) -> bool:
        """Delete a session. With caller_id, only its owner may delete it."""
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return False
            if caller_id is not None:
                self._check_owner(session, caller_id)
            del self._sessions[session_id]
            return True

    async def sweep(self) -> int:
        """Delete sessions idle longer than the retention window."""
        async with self._lock:
            cutoff = self._clock() - self._retention
            stale = [
                sid for sid, session in self._sessions.items()
                if session.last_activity < cutoff
            ]
            for sid in stale:
                del self._sessions[sid]
        if stale:
            logger.info("conversations_swept", removed=len(stale))
        return len(stale)

    async def _sweep_loop(self) -> None:
        """Periodically sweep idle sessions."""
        while True:
            try:
                await asyncio.sleep(self._sweep_interval)
                await self.sweep()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("conversation_sweep_error", error=str(e))

    async def start(self) -> None:
        """Start the background sweeper."""
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.create_task(self._sweep_loop())
            logger.info("conversation_sweeper_started", interval=self._sweep_interval)

    async def stop(self) -> None:
        """Stop the background sweeper."""
        if self._sweep_task:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None

    def __len__(self) -> int:
        return len(self._sessions)
