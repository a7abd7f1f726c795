"""
Per-address rate limiting for room creation and join attempts.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Dict

DEFAULT_WINDOW = 60.0  # seconds
DEFAULT_MAX_ATTEMPTS = 10


@dataclass
class RateLimitEntry:
    """Attempts seen from one address in the current window."""

    count: int
    reset_at: float


class RateLimiter:
    """
    Fixed-window limiter keyed by client address.

    The first attempt from an address opens a window; attempts inside the
    window are counted and denied once the count reaches max_attempts. The
    first attempt after the window closes opens a fresh one. Entries are
    never removed here; call evict_expired() periodically.
    """

    def __init__(
        self,
        window: float = DEFAULT_WINDOW,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        clock: Callable[[], float] = time.time,
    ):
        self._window = window
        self._max_attempts = max_attempts
        self._clock = clock
        self._entries: Dict[str, RateLimitEntry] = {}

    @property
    def window(self) -> float:
        return self._window

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, address: str) -> bool:
        return address in self._entries

    def allow(self, address: str) -> bool:
        """Record an attempt and report whether it is allowed."""
        now = self._clock()
        entry = self._entries.get(address)

        if entry is None or now > entry.reset_at:
            self._entries[address] = RateLimitEntry(count=1, reset_at=now + self._window)
            return True

        if entry.count >= self._max_attempts:
            return False

        entry.count += 1
        return True

    def get(self, address: str) -> RateLimitEntry | None:
        """Get the entry for an address, if any."""
        return self._entries.get(address)

    def evict_expired(self) -> int:
        """
        Remove entries whose window has elapsed.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        expired = [address for address, entry in self._entries.items() if now > entry.reset_at]
        for address in expired:
            del self._entries[address]
        return len(expired)


__all__ = [
    "DEFAULT_WINDOW",
    "DEFAULT_MAX_ATTEMPTS",
    "RateLimitEntry",
    "RateLimiter",
]
