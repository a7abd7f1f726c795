"""Shared fixtures for voicemesh tests."""

from typing import Any, Dict, List

import pytest

from voicemesh.gateway import SignalingGateway
from voicemesh.ratelimit import RateLimiter
from voicemesh.room import RoomRegistry


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeConnection:
    """Records every frame sent to it."""

    def __init__(self) -> None:
        self.frames: List[Dict[str, Any]] = []
        self.fail = False

    async def send_json(self, data: Any) -> None:
        if self.fail:
            raise ConnectionError("socket closed")
        self.frames.append(data)

    def events(self, name: str) -> List[Dict[str, Any]]:
        """Payloads of every frame with the given event name."""
        return [f["data"] for f in self.frames if f["event"] == name]

    def event_names(self) -> List[str]:
        return [f["event"] for f in self.frames]

    def clear(self) -> None:
        self.frames.clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry(clock: FakeClock) -> RoomRegistry:
    return RoomRegistry(clock=clock)


@pytest.fixture
def rate_limiter(clock: FakeClock) -> RateLimiter:
    return RateLimiter(clock=clock)


@pytest.fixture
def gateway(registry: RoomRegistry, rate_limiter: RateLimiter) -> SignalingGateway:
    return SignalingGateway(registry, rate_limiter)
