from __future__ import annotations

import hashlib
import logging
import threading
import time
from typing import Callable, Dict, Optional, Tuple

from ..core.constants import DEFAULT_SESSION_IDLE_SECONDS
from .service import ClassSession

logger = logging.getLogger(__name__)


def _operator_key(access_token: str) -> str:
    return hashlib.sha256(access_token.encode("utf-8")).hexdigest()


class SessionRegistry:
    """Open class sessions, one per (operator credential, class).

    Sessions untouched for ``idle_seconds`` are dropped on the next lookup, so
    the next request reopens them with a fresh roster.
    """

    def __init__(self, *, idle_seconds: float = DEFAULT_SESSION_IDLE_SECONDS, clock: Callable[[], float] = time.monotonic):
        self._idle_seconds = float(idle_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: Dict[Tuple[str, int], Tuple[ClassSession, float]] = {}

    def _prune(self, now: float) -> None:
        expired = [k for k, (_, used) in self._sessions.items() if now - used >= self._idle_seconds]
        for key in expired:
            del self._sessions[key]
        if expired:
            logger.info("Closed %d idle attendance session(s)", len(expired))

    def get(self, access_token: str, class_id: int) -> Optional[ClassSession]:
        key = (_operator_key(access_token), int(class_id))
        with self._lock:
            now = self._clock()
            self._prune(now)
            entry = self._sessions.get(key)
            if entry is None:
                return None
            self._sessions[key] = (entry[0], now)
            return entry[0]

    def get_or_open(self, access_token: str, class_id: int, opener: Callable[[], ClassSession]) -> ClassSession:
        existing = self.get(access_token, class_id)
        if existing is not None:
            return existing

        # Opening hits the network; do it outside the lock.
        opened = opener()
        key = (_operator_key(access_token), int(class_id))
        with self._lock:
            session, _ = self._sessions.setdefault(key, (opened, self._clock()))
            return session

    def close(self, access_token: str, class_id: int) -> bool:
        with self._lock:
            return self._sessions.pop((_operator_key(access_token), int(class_id)), None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
