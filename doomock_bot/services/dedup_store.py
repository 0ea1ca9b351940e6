"""
Short-lived de-bounce records for re-delivered or double-tapped callbacks.

The router depends on the DedupStore interface only, so a shared cache can
replace the in-memory store if the bot ever runs as several processes.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from threading import Lock
from typing import Callable, Dict

from utils.logger import get_logger

logger = get_logger(__name__)


class DedupStore(ABC):
    @abstractmethod
    def seen(self, key: str) -> bool:
        """Return True while a live record exists for `key`."""

    @abstractmethod
    def mark_seen(self, key: str, ttl_seconds: float) -> None:
        """Create (or refresh) the record for `key`, expiring after `ttl_seconds`."""


class InMemoryDedupStore(DedupStore):
    """
    Expiring key set for a single process.

    Expired entries are dropped lazily on access and swept whenever the
    table grows past PURGE_THRESHOLD.
    """

    PURGE_THRESHOLD = 1024

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._expires_at: Dict[str, float] = {}
        self._lock = Lock()

    def seen(self, key: str) -> bool:
        with self._lock:
            expires_at = self._expires_at.get(key)
            if expires_at is None:
                return False
            if expires_at <= self._clock():
                del self._expires_at[key]
                return False
            return True

    def mark_seen(self, key: str, ttl_seconds: float) -> None:
        with self._lock:
            if len(self._expires_at) >= self.PURGE_THRESHOLD:
                self._purge_locked()
            self._expires_at[key] = self._clock() + max(0.0, float(ttl_seconds))

    def purge_expired(self) -> int:
        with self._lock:
            return self._purge_locked()

    def _purge_locked(self) -> int:
        now = self._clock()
        expired = [k for k, exp in self._expires_at.items() if exp <= now]
        for k in expired:
            del self._expires_at[k]
        if expired:
            logger.debug(f"Purged {len(expired)} expired dedup record(s)")
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._expires_at)
