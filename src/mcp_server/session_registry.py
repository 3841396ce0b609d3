from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

from src.shared.observability import get_logger
from src.shared.observability.metrics import mcp_sessions_active

logger = get_logger(__name__)


@dataclass
class SessionHandle:
    """Everything the gateway keeps for one live session."""

    session_id: str
    transport: Any
    server: Any
    created_at: float = field(default_factory=time.time)


class SessionRegistry:
    """Concurrency-safe table of session id -> SessionHandle.

    The gateway is the only owner. Identifiers are random 128-bit hex
    strings minted here; callers never supply one. A removed identifier is
    unknown to every later lookup.
    """

    def __init__(self, id_factory: Callable[[], str] = lambda: uuid4().hex) -> None:
        self._id_factory = id_factory
        self._sessions: Dict[str, SessionHandle] = {}
        self._lock = threading.Lock()

    def create(self, build_handle: Callable[[str], SessionHandle]) -> str:
        """Mint a fresh id, build its handle and register it atomically."""
        with self._lock:
            session_id = self._id_factory()
            while session_id in self._sessions:
                session_id = self._id_factory()
            handle = build_handle(session_id)
            self._sessions[session_id] = handle
            mcp_sessions_active.set(len(self._sessions))
        logger.info("Session registered", session_id=session_id)
        return session_id

    def lookup(self, session_id: Optional[str]) -> Optional[SessionHandle]:
        if not session_id:
            return None
        with self._lock:
            return self._sessions.get(session_id)

    def remove(self, session_id: Optional[str]) -> Optional[SessionHandle]:
        """Drop a session. Removing an absent id is a no-op."""
        if not session_id:
            return None
        with self._lock:
            handle = self._sessions.pop(session_id, None)
            mcp_sessions_active.set(len(self._sessions))
        if handle is not None:
            logger.info("Session removed", session_id=session_id)
        return handle

    def clear(self) -> List[SessionHandle]:
        with self._lock:
            handles = list(self._sessions.values())
            self._sessions.clear()
            mcp_sessions_active.set(0)
        return handles

    def session_ids(self) -> List[str]:
        with self._lock:
            return list(self._sessions)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions
