"""
Signaling gateway for voicemesh.

Binds RoomRegistry operations to named client events and fans out the
resulting broadcasts. The gateway does not know about the transport: a
connection is anything with an async ``send_json`` method, which a FastAPI
WebSocket already is.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Protocol

from pydantic import ValidationError

from .errors import ErrorCode, RateLimitedError, RoomError
from .protocol import (
    CLIENT_EVENTS,
    ClientEvent,
    ConnectedEvent,
    CreateRoomRequest,
    JoinRoomRequest,
    KickUserRequest,
    LeaveRoomRequest,
    PeerRegisteredEvent,
    RegisterPeerRequest,
    RoomCreatedAck,
    RoomExpiredEvent,
    RoomJoinedAck,
    ServerEvent,
    SpeakingStateRequest,
    SuccessAck,
    ToggleMuteRequest,
    UserJoinedEvent,
    UserKickedEvent,
    UserLeftEvent,
    UserMuteChangedEvent,
    UserSpeakingChangedEvent,
    YouWereKickedEvent,
    parse_client_event,
)
from .ratelimit import RateLimiter
from .room import ExpiredRoom, LeaveResult, RoomRegistry

logger = logging.getLogger(__name__)

INVALID_REQUEST = {"error": "Invalid request.", "code": ErrorCode.INVALID_MESSAGE.value}


class Connection(Protocol):
    """Transport endpoint for one client."""

    async def send_json(self, data: Any) -> None: ...


@dataclass
class ConnectionState:
    """Per-connection signaling state."""

    connection_id: str
    address: str
    connection: Connection
    room_id: Optional[str] = None


Handler = Callable[[ConnectionState, Any], Awaitable[Optional[Dict[str, Any]]]]


class SignalingGateway:
    """
    Routes client events to the room registry.

    Handles:
    - Connection registration and teardown
    - Room create/join behind the per-address rate limiter
    - Peer, mute and speaking relays
    - Host kicks
    - Leave, with disconnect treated exactly as leave
    - Expiry notices from the janitor
    """

    def __init__(
        self,
        registry: RoomRegistry,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        self._registry = registry
        self._rate_limiter = rate_limiter if rate_limiter is not None else RateLimiter()
        self._connections: Dict[str, ConnectionState] = {}

        self._handlers: Dict[str, Handler] = {
            CreateRoomRequest.event: self._handle_create_room,
            JoinRoomRequest.event: self._handle_join_room,
            RegisterPeerRequest.event: self._handle_register_peer,
            ToggleMuteRequest.event: self._handle_toggle_mute,
            SpeakingStateRequest.event: self._handle_speaking_state,
            KickUserRequest.event: self._handle_kick_user,
            LeaveRoomRequest.event: self._handle_leave_room,
        }

    @property
    def registry(self) -> RoomRegistry:
        return self._registry

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate_limiter

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def get_connection(self, connection_id: str) -> Optional[ConnectionState]:
        return self._connections.get(connection_id)

    async def connect(self, connection: Connection, address: str) -> str:
        """
        Register a new connection.

        Returns:
            The connection id assigned to it.
        """
        connection_id = uuid.uuid4().hex
        self._connections[connection_id] = ConnectionState(
            connection_id=connection_id,
            address=address,
            connection=connection,
        )
        logger.info(f"User connected: {connection_id}")
        await self._send(connection_id, ConnectedEvent(socket_id=connection_id))
        return connection_id

    async def disconnect(self, connection_id: str) -> None:
        """Tear down a connection. Runs the same flow as an explicit leave."""
        state = self._connections.pop(connection_id, None)
        if state is None:
            return
        await self._leave(state)
        logger.info(f"User disconnected: {connection_id}")

    async def dispatch(
        self, connection_id: str, event: str, data: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """
        Handle one client event.

        Returns:
            The ack payload for request events, None for fire-and-forget ones.
        """
        state = self._connections.get(connection_id)
        if state is None:
            return None

        try:
            message: ClientEvent = parse_client_event(event, data)
        except ValidationError:
            logger.debug(f"Invalid {event} payload from {connection_id}")
            return dict(INVALID_REQUEST) if CLIENT_EVENTS[event].expects_ack else None
        except ValueError:
            logger.debug(f"Unknown event from {connection_id}: {event}")
            return {"error": f"Unknown event: {event}", "code": ErrorCode.INVALID_MESSAGE.value}

        handler = self._handlers[event]
        try:
            return await handler(state, message)
        except RoomError as e:
            logger.debug(f"{event} from {connection_id} rejected: {e.message}")
            return e.to_ack()

    # =========================================================================
    # Request Handlers
    # =========================================================================

    async def _handle_create_room(
        self, state: ConnectionState, message: CreateRoomRequest
    ) -> Dict[str, Any]:
        """Handle create-room request."""
        if not self._rate_limiter.allow(state.address):
            raise RateLimitedError()

        self._registry.validate_name(message.name)
        if state.room_id is not None:
            await self._leave(state)

        snapshot = self._registry.create_room(state.connection_id, message.name)
        state.room_id = snapshot.room_id

        return RoomCreatedAck(room_id=snapshot.room_id, users=snapshot.users).to_wire()

    async def _handle_join_room(
        self, state: ConnectionState, message: JoinRoomRequest
    ) -> Dict[str, Any]:
        """Handle join-room request."""
        if not self._rate_limiter.allow(state.address):
            raise RateLimitedError()

        room_id = self._registry.codes.normalize(message.room_id)
        if room_id is not None and room_id == state.room_id:
            self._registry.validate_name(message.name)
            current = self._registry.snapshot(room_id)
            return RoomJoinedAck(
                room_id=current.room_id, host_id=current.host_id, users=current.users
            ).to_wire()

        self._registry.check_join(message.room_id, message.name)
        if state.room_id is not None:
            await self._leave(state)

        snapshot = self._registry.join_room(state.connection_id, message.room_id, message.name)
        state.room_id = snapshot.room_id

        joined = next(u for u in snapshot.users if u.socket_id == state.connection_id)
        await self._broadcast(
            [u.socket_id for u in snapshot.users],
            UserJoinedEvent(socket_id=state.connection_id, name=joined.name),
            exclude=state.connection_id,
        )

        return RoomJoinedAck(
            room_id=snapshot.room_id, host_id=snapshot.host_id, users=snapshot.users
        ).to_wire()

    async def _handle_kick_user(
        self, state: ConnectionState, message: KickUserRequest
    ) -> Dict[str, Any]:
        """Handle kick-user request (host only)."""
        result = self._registry.kick(state.connection_id, message.target_socket_id)

        target = self._connections.get(result.target_id)
        if target is not None and target.room_id == result.room_id:
            target.room_id = None

        audience = self._members(result.room_id) + [result.target_id]
        await self._broadcast(
            audience, UserKickedEvent(socket_id=result.target_id, name=result.display_name)
        )
        await self._send(result.target_id, YouWereKickedEvent(room_id=result.room_id))

        return SuccessAck().to_wire()

    # =========================================================================
    # Fire-and-forget Handlers
    # =========================================================================

    async def _handle_register_peer(
        self, state: ConnectionState, message: RegisterPeerRequest
    ) -> None:
        """Relay a peer id to the other members."""
        room_id = self._registry.register_peer(state.connection_id, message.peer_id)
        if room_id is None:
            return
        await self._broadcast(
            self._members(room_id),
            PeerRegisteredEvent(socket_id=state.connection_id, peer_id=message.peer_id),
            exclude=state.connection_id,
        )

    async def _handle_toggle_mute(self, state: ConnectionState, message: ToggleMuteRequest) -> None:
        """Broadcast a mute change to the whole room, sender included."""
        room_id = self._registry.set_muted(state.connection_id, message.is_muted)
        if room_id is None:
            return
        await self._broadcast(
            self._members(room_id),
            UserMuteChangedEvent(socket_id=state.connection_id, is_muted=message.is_muted),
        )

    async def _handle_speaking_state(
        self, state: ConnectionState, message: SpeakingStateRequest
    ) -> None:
        """Relay speaking state to everyone but the sender."""
        room_id = self._registry.set_speaking(state.connection_id, message.is_speaking)
        if room_id is None:
            return
        await self._broadcast(
            self._members(room_id),
            UserSpeakingChangedEvent(socket_id=state.connection_id, is_speaking=message.is_speaking),
            exclude=state.connection_id,
        )

    async def _handle_leave_room(self, state: ConnectionState, message: LeaveRoomRequest) -> None:
        await self._leave(state)

    # =========================================================================
    # Leave / Expiry
    # =========================================================================

    async def _leave(self, state: ConnectionState) -> Optional[LeaveResult]:
        """Leave the current room and tell the members who stay."""
        result = self._registry.leave(state.connection_id)
        state.room_id = None

        if result is None or result.room_deleted:
            return result

        await self._broadcast(
            result.remaining,
            UserLeftEvent(
                socket_id=result.connection_id,
                name=result.display_name,
                was_host=result.was_host,
                new_host_id=result.new_host_id,
            ),
        )
        return result

    async def expire_rooms(self, expired: List[ExpiredRoom]) -> None:
        """
        Notify members of rooms removed by the janitor.

        Connections are detached without host election; the room is gone.
        """
        for room in expired:
            recipients = []
            for connection_id in room.connection_ids:
                state = self._connections.get(connection_id)
                if state is not None and state.room_id == room.room_id:
                    state.room_id = None
                    recipients.append(connection_id)

            await self._broadcast(recipients, RoomExpiredEvent(room_id=room.room_id))

    # =========================================================================
    # Sending
    # =========================================================================

    def _members(self, room_id: str) -> List[str]:
        room = self._registry.get_room(room_id)
        return room.connection_ids if room else []

    async def _send(self, connection_id: str, event: ServerEvent) -> None:
        """Send an event to a single connection."""
        state = self._connections.get(connection_id)
        if state is None:
            return
        try:
            await state.connection.send_json(event.to_frame())
        except Exception:
            logger.debug(f"Failed to send {event.event} to {connection_id}")

    async def _broadcast(
        self,
        connection_ids: Iterable[str],
        event: ServerEvent,
        exclude: Optional[str] = None,
    ) -> None:
        """
        Send an event to several connections.

        Args:
            connection_ids: Recipients.
            event: The event to send.
            exclude: Optional connection id to skip.
        """
        frame = event.to_frame()

        recipients = []
        tasks = []
        for connection_id in connection_ids:
            if connection_id == exclude:
                continue
            state = self._connections.get(connection_id)
            if state is None:
                continue
            recipients.append(connection_id)
            tasks.append(state.connection.send_json(frame))

        if not tasks:
            return

        results = await asyncio.gather(*tasks, return_exceptions=True)
        for connection_id, result in zip(recipients, results):
            if isinstance(result, Exception):
                logger.warning(f"Failed to send {event.event} to {connection_id}: {result}")


__all__ = [
    "Connection",
    "ConnectionState",
    "SignalingGateway",
]
