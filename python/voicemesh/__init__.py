"""
voicemesh - Signaling server for peer-to-peer voice rooms.
"""

from voicemesh.codes import RoomCodeGenerator
from voicemesh.config import ServerConfig, configure_logging
from voicemesh.errors import (
    ErrorCode,
    RoomError,
    InvalidNameError,
    InvalidCodeError,
    RateLimitedError,
    RoomNotFoundError,
    RoomFullError,
    CodeExhaustedError,
    NotInRoomError,
    NotHostError,
    SelfKickError,
    TargetNotFoundError,
    AlreadyInRoomError,
)
from voicemesh.ratelimit import RateLimiter

# Room management
from voicemesh.room import (
    Member,
    Room,
    RoomRegistry,
    RoomSnapshot,
    KickResult,
    LeaveResult,
    ExpiredRoom,
    elect_host,
)

# Signaling
from voicemesh.gateway import Connection, ConnectionState, SignalingGateway
from voicemesh.janitor import JanitorScheduler

# Server
from voicemesh.server import VoiceMeshServer

__version__ = "0.1.0"

__all__ = [
    "RoomCodeGenerator",
    "ServerConfig",
    "configure_logging",
    # Errors
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
    "RateLimiter",
    # Rooms
    "Member",
    "Room",
    "RoomRegistry",
    "RoomSnapshot",
    "KickResult",
    "LeaveResult",
    "ExpiredRoom",
    "elect_host",
    # Signaling
    "Connection",
    "ConnectionState",
    "SignalingGateway",
    "JanitorScheduler",
    # Server
    "VoiceMeshServer",
]
