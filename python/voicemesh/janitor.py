"""
Background cleanup for voicemesh.

Runs two periodic sweeps for the lifetime of the server: one expires rooms
older than the maximum room age, the other evicts rate-limit entries whose
window has elapsed.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from .ratelimit import RateLimiter
from .room import ExpiredRoom, RoomRegistry

logger = logging.getLogger(__name__)

ROOM_MAX_AGE = 24 * 60 * 60.0  # seconds
ROOM_SWEEP_INTERVAL = 60 * 60.0  # seconds
RATE_LIMIT_SWEEP_INTERVAL = 5 * 60.0  # seconds

# Type alias for the expiry notification callback
ExpiredCallback = Callable[[list[ExpiredRoom]], Awaitable[None]]
SleepFunction = Callable[[float], Awaitable[None]]


class JanitorScheduler:
    """
    Periodic room-expiry and rate-limit sweeps.

    Each sweep runs in its own task. An iteration that raises is logged and
    the loop carries on with the next tick.
    """

    def __init__(
        self,
        registry: RoomRegistry,
        rate_limiter: RateLimiter,
        on_expired: ExpiredCallback | None = None,
        room_max_age: float = ROOM_MAX_AGE,
        room_sweep_interval: float = ROOM_SWEEP_INTERVAL,
        rate_limit_sweep_interval: float = RATE_LIMIT_SWEEP_INTERVAL,
        sleep: SleepFunction = asyncio.sleep,
    ):
        """
        Initialize the janitor.

        Args:
            registry: Rooms to expire.
            rate_limiter: Entries to evict.
            on_expired: Awaited with the rooms removed by each sweep.
            room_max_age: Seconds a room may live.
            room_sweep_interval: Seconds between room sweeps.
            rate_limit_sweep_interval: Seconds between rate-limit sweeps.
            sleep: Awaitable sleep, replaceable in tests.
        """
        self._registry = registry
        self._rate_limiter = rate_limiter
        self._on_expired = on_expired
        self._room_max_age = room_max_age
        self._room_sweep_interval = room_sweep_interval
        self._rate_limit_sweep_interval = rate_limit_sweep_interval
        self._sleep = sleep
        self._tasks: list[asyncio.Task] = []

    def set_expired_callback(self, callback: ExpiredCallback) -> None:
        """Set the callback for notifying members of expired rooms."""
        self._on_expired = callback

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate_limiter

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    async def start(self) -> None:
        """Start both sweep tasks."""
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(
                self._run_periodic("room expiry", self._room_sweep_interval, self.sweep_rooms)
            ),
            asyncio.create_task(
                self._run_periodic(
                    "rate limit", self._rate_limit_sweep_interval, self.sweep_rate_limits
                )
            ),
        ]

    async def stop(self) -> None:
        """Cancel both sweep tasks and wait for them to finish."""
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _run_periodic(
        self, name: str, interval: float, sweep: Callable[[], Awaitable[int]]
    ) -> None:
        while True:
            await self._sleep(interval)
            try:
                await sweep()
            except Exception:
                logger.exception(f"{name} sweep failed")

    async def sweep_rooms(self) -> int:
        """
        Expire stale rooms and notify their members.

        Returns:
            Number of rooms removed.
        """
        expired = self._registry.sweep_expired(self._room_max_age)
        if not expired:
            return 0

        logger.info(f"Garbage collection: cleaned {len(expired)} stale rooms")
        if self._on_expired:
            await self._on_expired(expired)
        return len(expired)

    async def sweep_rate_limits(self) -> int:
        """Evict elapsed rate-limit entries."""
        evicted = self._rate_limiter.evict_expired()
        if evicted:
            logger.debug(f"Evicted {evicted} rate limit entries")
        return evicted


__all__ = [
    "ROOM_MAX_AGE",
    "ROOM_SWEEP_INTERVAL",
    "RATE_LIMIT_SWEEP_INTERVAL",
    "ExpiredCallback",
    "JanitorScheduler",
]
