"""
In-memory session tokens and login throttling.

Tokens live until logout or process restart; there is no expiry sweep.
Both classes are plain service objects constructed at startup so they can be
cleared on shutdown or swapped for a persistent store.
"""

import secrets
import threading
import time
from typing import Dict, List, Optional, Set

from shared.constants import (
    LOGIN_ATTEMPT_LIMIT,
    LOGIN_ATTEMPT_WINDOW_SEC,
    SESSION_TOKEN_BYTES,
)


class SessionManager:
    """Process-wide set of valid session tokens."""

    def __init__(self):
        self._tokens: Set[str] = set()
        self._lock = threading.Lock()

    def create(self) -> str:
        """Issue a new random token and mark it authenticated."""
        token = secrets.token_urlsafe(SESSION_TOKEN_BYTES)
        with self._lock:
            self._tokens.add(token)
        return token

    def is_valid(self, token: Optional[str]) -> bool:
        if not token:
            return False
        with self._lock:
            return token in self._tokens

    def revoke(self, token: Optional[str]) -> None:
        """Forget a token. Unknown or empty tokens are ignored."""
        if not token:
            return
        with self._lock:
            self._tokens.discard(token)

    def clear(self) -> None:
        with self._lock:
            self._tokens.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)


class LoginThrottle:
    """Sliding-window limit on login attempts per client address."""

    def __init__(self, limit: int = LOGIN_ATTEMPT_LIMIT, window: float = LOGIN_ATTEMPT_WINDOW_SEC):
        self.limit = limit
        self.window = window
        self._attempts: Dict[str, List[float]] = {}
        self._lock = threading.Lock()

    def allow(self, key: str) -> bool:
        """Record an attempt. Return True if it is allowed, False if rate limited."""
        now = time.time()
        with self._lock:
            timestamps = [t for t in self._attempts.get(key, []) if now - t < self.window]
            if len(timestamps) >= self.limit:
                self._attempts[key] = timestamps
                return False
            timestamps.append(now)
            self._attempts[key] = timestamps
        return True

    def reset(self, key: str) -> None:
        with self._lock:
            self._attempts.pop(key, None)
