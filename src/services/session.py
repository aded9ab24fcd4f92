from __future__ import annotations

import time
from typing import Dict, List

from models import HISTORY_LIMIT, SearchHistoryItem


class SearchHistoryStore:
    """Simple in-memory per-session query history, most recent first."""

    def __init__(self, max_history: int = HISTORY_LIMIT, ttl_sec: int = 3600) -> None:
        self._sessions: Dict[str, List[SearchHistoryItem]] = {}
        self._last_access: Dict[str, float] = {}
        self.max_history = max_history
        self.ttl_sec = ttl_sec

    def get_history(self, session_id: str) -> List[SearchHistoryItem]:
        self._cleanup()
        if not session_id:
            return []
        self._last_access[session_id] = time.time()
        return list(self._sessions.get(session_id, []))

    def save(self, session_id: str, history: List[SearchHistoryItem]) -> None:
        """Replace a session's history with the (already ordered) list."""
        if not session_id:
            return
        self._cleanup()
        self._sessions[session_id] = list(history[: self.max_history])
        self._last_access[session_id] = time.time()

    def reset(self, session_id: str) -> None:
        if not session_id:
            return
        self._sessions.pop(session_id, None)
        self._last_access.pop(session_id, None)

    def _cleanup(self) -> None:
        """Remove expired sessions."""
        now = time.time()
        expired = [sid for sid, last in self._last_access.items() if now - last > self.ttl_sec]
        for sid in expired:
            self._sessions.pop(sid, None)
            del self._last_access[sid]
