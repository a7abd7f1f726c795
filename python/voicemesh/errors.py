"""
Error types for voicemesh.

Every failure a client can cause is a RoomError carrying an ErrorCode and a
human-readable message that is sent back in the ack payload.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict


class ErrorCode(str, Enum):
    """Standard error codes for the protocol."""

    INVALID_INPUT = "invalid_input"
    RATE_LIMITED = "rate_limited"
    NOT_FOUND = "not_found"
    CAPACITY = "capacity"
    AUTHORIZATION = "authorization"
    EXHAUSTED = "exhausted"
    INVALID_MESSAGE = "invalid_message"
    INTERNAL_ERROR = "internal_error"


class RoomError(Exception):
    """Base class for errors reported back to the requesting client."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    message: str = "Internal error."

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def to_ack(self) -> Dict[str, Any]:
        """Payload for a failed acknowledgement."""
        return {"error": self.message, "code": self.code.value}


class InvalidNameError(RoomError):
    code = ErrorCode.INVALID_INPUT
    message = "Invalid operator name (max 16 characters)"


class InvalidCodeError(RoomError):
    code = ErrorCode.INVALID_INPUT
    message = "Invalid room code format (use 4 characters)"


class RateLimitedError(RoomError):
    code = ErrorCode.RATE_LIMITED
    message = "Rate limit exceeded. Please wait before trying again."


class RoomNotFoundError(RoomError):
    code = ErrorCode.NOT_FOUND
    message = "Room not found. Check the code and try again."


class RoomFullError(RoomError):
    code = ErrorCode.CAPACITY
    message = "Room is full (5/5 operators)"

    def __init__(self, capacity: int = 5):
        super().__init__(f"Room is full ({capacity}/{capacity} operators)")


class CodeExhaustedError(RoomError):
    code = ErrorCode.EXHAUSTED
    message = "Could not generate unique room ID. Please try again."


class NotInRoomError(RoomError):
    code = ErrorCode.NOT_FOUND
    message = "Not in a room"


class NotHostError(RoomError):
    code = ErrorCode.AUTHORIZATION
    message = "Only the host can kick users"


class SelfKickError(RoomError):
    code = ErrorCode.AUTHORIZATION
    message = "Cannot kick yourself"


class TargetNotFoundError(RoomError):
    code = ErrorCode.NOT_FOUND
    message = "User not found in room"


class AlreadyInRoomError(RoomError):
    code = ErrorCode.INVALID_INPUT
    message = "Already in a room"


__all__ = [
    "ErrorCode",
    "RoomError",
    "InvalidNameError",
    "InvalidCodeError",
    "RateLimitedError",
    "RoomNotFoundError",
    "RoomFullError",
    "CodeExhaustedError",
    "NotInRoomError",
    "NotHostError",
    "SelfKickError",
    "TargetNotFoundError",
    "AlreadyInRoomError",
]
