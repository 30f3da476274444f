"""Failed-password throttling for private shares.

A sliding window of failure timestamps per ``(share_id, client_key)``.
Once ``max_failures`` land inside the window, further password checks are
refused with ``TooManyAttempts`` until the oldest failure ages out.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from threading import Lock

from .errors import TooManyAttempts

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AttemptLimitConfig:
    max_failures: int = 5
    window_seconds: float = 900.0


class PasswordAttemptLimiter:
    """Thread-safe sliding-window failure counter."""

    def __init__(self, config: AttemptLimitConfig | None = None):
        self.config = config or AttemptLimitConfig()
        self._failures: dict[tuple[str, str], list[float]] = {}
        self._lock = Lock()

    def tracked_keys(self) -> int:
        """Number of (share, client) keys with failures still tracked."""
        with self._lock:
            return len(self._failures)

    def _prune(self, key: tuple[str, str], now: float) -> list[float]:
        """Live failures for ``key``. Keys with none left are dropped."""
        cutoff = now - self.config.window_seconds
        timestamps = [t for t in self._failures.get(key, ()) if t > cutoff]
        if timestamps:
            self._failures[key] = timestamps
        else:
            self._failures.pop(key, None)
        return timestamps

    def check(self, share_id: str, client_key: str, now: float | None = None) -> None:
        """Raise TooManyAttempts if the key is currently locked out."""
        now = now if now is not None else time.time()
        key = (share_id, client_key)
        with self._lock:
            timestamps = self._prune(key, now)
            if len(timestamps) >= self.config.max_failures:
                retry_after = timestamps[0] + self.config.window_seconds - now
                raise TooManyAttempts(max(retry_after, 0.1))

    def record_failure(self, share_id: str, client_key: str, now: float | None = None) -> int:
        """Record a failed attempt; returns failures currently in the window."""
        now = now if now is not None else time.time()
        key = (share_id, client_key)
        with self._lock:
            timestamps = self._prune(key, now)
            timestamps.append(now)
            self._failures[key] = timestamps
            count = len(timestamps)
        if count >= self.config.max_failures:
            logger.warning('Share password lockout reached (%d failures)', count)
        return count

    def reset(self, share_id: str, client_key: str) -> None:
        with self._lock:
            self._failures.pop((share_id, client_key), None)

    def reset_all(self) -> None:
        with self._lock:
            self._failures.clear()
