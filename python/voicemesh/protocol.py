"""
WebSocket protocol message types for voicemesh.

Frames are JSON objects of the form ``{"event": name, "data": {...}}``.
Request events may carry an ``ack`` id; the server answers those with
``{"event": "ack", "ack": id, "data": {...}}``.

Payload keys are camelCase on the wire and snake_case in Python.
"""

from __future__ import annotations

from typing import Any, ClassVar, Dict, List, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Maximum lengths for string fields to prevent DoS
MAX_ID_LENGTH = 256
MAX_NAME_LENGTH = 64

ACK_EVENT = "ack"
ERROR_EVENT = "error"
CONNECTED_EVENT = "connected"


class WireModel(BaseModel):
    """Base model with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


# =============================================================================
# Frame Envelope
# =============================================================================


class Envelope(BaseModel):
    """A single inbound frame."""

    event: str = Field(..., min_length=1, max_length=MAX_NAME_LENGTH)
    data: Dict[str, Any] = Field(default_factory=dict)
    ack: Optional[Union[int, str]] = None


# =============================================================================
# Client Events
# =============================================================================


class ClientEvent(WireModel):
    """Base class for client -> server events."""

    event: ClassVar[str]
    expects_ack: ClassVar[bool] = False


class CreateRoomRequest(ClientEvent):
    """Client asks to create a room and become its host."""

    event: ClassVar[str] = "create-room"
    expects_ack: ClassVar[bool] = True

    name: str = ""


class JoinRoomRequest(ClientEvent):
    """Client asks to join an existing room by code."""

    event: ClassVar[str] = "join-room"
    expects_ack: ClassVar[bool] = True

    room_id: str = ""
    name: str = ""


class RegisterPeerRequest(ClientEvent):
    """Client announces its WebRTC peer id."""

    event: ClassVar[str] = "register-peer"

    peer_id: str = Field(..., min_length=1, max_length=MAX_ID_LENGTH)


class ToggleMuteRequest(ClientEvent):
    """Client reports its microphone mute state."""

    event: ClassVar[str] = "toggle-mute"

    is_muted: bool


class SpeakingStateRequest(ClientEvent):
    """Client reports whether it is currently speaking."""

    event: ClassVar[str] = "speaking-state"

    is_speaking: bool


class KickUserRequest(ClientEvent):
    """Host asks to remove another member."""

    event: ClassVar[str] = "kick-user"
    expects_ack: ClassVar[bool] = True

    target_socket_id: str = Field(..., min_length=1, max_length=MAX_ID_LENGTH)


class LeaveRoomRequest(ClientEvent):
    """Client leaves its current room."""

    event: ClassVar[str] = "leave-room"


CLIENT_EVENTS: Dict[str, Type[ClientEvent]] = {
    cls.event: cls
    for cls in (
        CreateRoomRequest,
        JoinRoomRequest,
        RegisterPeerRequest,
        ToggleMuteRequest,
        SpeakingStateRequest,
        KickUserRequest,
        LeaveRoomRequest,
    )
}


# =============================================================================
# Shared Models
# =============================================================================


class UserInfo(WireModel):
    """A room member as seen by clients."""

    socket_id: str
    name: str
    is_muted: bool = False
    is_host: bool = False
    peer_id: Optional[str] = None


# =============================================================================
# Acknowledgements
# =============================================================================


class RoomCreatedAck(WireModel):
    success: bool = True
    room_id: str
    is_host: bool = True
    users: List[UserInfo]


class RoomJoinedAck(WireModel):
    success: bool = True
    room_id: str
    is_host: bool = False
    host_id: str
    users: List[UserInfo]


class SuccessAck(WireModel):
    success: bool = True


# =============================================================================
# Server Events
# =============================================================================


class ServerEvent(WireModel):
    """Base class for server -> client events."""

    event: ClassVar[str]

    def to_frame(self) -> Dict[str, Any]:
        return {"event": self.event, "data": self.to_wire()}


class ConnectedEvent(ServerEvent):
    """Sent once on connect so the client learns its socket id."""

    event: ClassVar[str] = CONNECTED_EVENT

    socket_id: str


class UserJoinedEvent(ServerEvent):
    event: ClassVar[str] = "user-joined"

    socket_id: str
    name: str
    is_muted: bool = False
    is_host: bool = False


class PeerRegisteredEvent(ServerEvent):
    event: ClassVar[str] = "peer-registered"

    socket_id: str
    peer_id: str


class UserMuteChangedEvent(ServerEvent):
    event: ClassVar[str] = "user-mute-changed"

    socket_id: str
    is_muted: bool


class UserSpeakingChangedEvent(ServerEvent):
    event: ClassVar[str] = "user-speaking-changed"

    socket_id: str
    is_speaking: bool


class UserKickedEvent(ServerEvent):
    event: ClassVar[str] = "user-kicked"

    socket_id: str
    name: str


class YouWereKickedEvent(ServerEvent):
    event: ClassVar[str] = "you-were-kicked"

    room_id: str


class UserLeftEvent(ServerEvent):
    event: ClassVar[str] = "user-left"

    socket_id: str
    name: str
    was_host: bool
    new_host_id: Optional[str] = None


class RoomExpiredEvent(ServerEvent):
    event: ClassVar[str] = "room-expired"

    room_id: str


class ErrorEvent(ServerEvent):
    """Frame-level error not tied to an ack."""

    event: ClassVar[str] = ERROR_EVENT

    error: str
    code: str


# =============================================================================
# Message Parsing
# =============================================================================


def parse_client_event(event: str, data: Dict[str, Any]) -> ClientEvent:
    """
    Parse a named event payload into a typed client event.

    Raises:
        ValueError: If the event name is unknown.
        pydantic.ValidationError: If the payload is invalid.
    """
    event_type = CLIENT_EVENTS.get(event)
    if event_type is None:
        raise ValueError(f"Unknown event: {event}")
    return event_type.model_validate(data)


def ack_frame(ack_id: Union[int, str], payload: Dict[str, Any]) -> Dict[str, Any]:
    """Build an acknowledgement frame."""
    return {"event": ACK_EVENT, "ack": ack_id, "data": payload}


__all__ = [
    "ACK_EVENT",
    "ERROR_EVENT",
    "CONNECTED_EVENT",
    "WireModel",
    "Envelope",
    # Client events
    "ClientEvent",
    "CreateRoomRequest",
    "JoinRoomRequest",
    "RegisterPeerRequest",
    "ToggleMuteRequest",
    "SpeakingStateRequest",
    "KickUserRequest",
    "LeaveRoomRequest",
    "CLIENT_EVENTS",
    # Shared
    "UserInfo",
    # Acks
    "RoomCreatedAck",
    "RoomJoinedAck",
    "SuccessAck",
    # Server events
    "ServerEvent",
    "ConnectedEvent",
    "UserJoinedEvent",
    "PeerRegisteredEvent",
    "UserMuteChangedEvent",
    "UserSpeakingChangedEvent",
    "UserKickedEvent",
    "YouWereKickedEvent",
    "UserLeftEvent",
    "RoomExpiredEvent",
    "ErrorEvent",
    # Parsing
    "parse_client_event",
    "ack_frame",
]
