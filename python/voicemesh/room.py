"""
Room management for voicemesh.

Provides Room and Member for a single voice room and RoomRegistry, the sole
owner of all room and membership state. Registry operations are synchronous;
each one runs to completion before the event loop moves on, so no locking is
needed.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable

from .codes import RoomCodeGenerator
from .errors import (
    AlreadyInRoomError,
    CodeExhaustedError,
    InvalidCodeError,
    InvalidNameError,
    NotHostError,
    NotInRoomError,
    RoomFullError,
    RoomNotFoundError,
    SelfKickError,
    TargetNotFoundError,
)
from .protocol import UserInfo

logger = logging.getLogger(__name__)

DEFAULT_MAX_MEMBERS = 5
DEFAULT_MAX_NAME_LENGTH = 16
MAX_CODE_ATTEMPTS = 100


@dataclass
class Member:
    """A connected participant in a room."""

    connection_id: str
    display_name: str
    peer_id: str | None = None
    is_muted: bool = False


@dataclass
class Room:
    """
    An ephemeral voice room.

    Attributes:
        room_id: The room code.
        host_id: Connection id of the current host, always a key of members.
        created_at: Unix timestamp of creation.
        members: Connection id -> Member, in join order.
    """

    room_id: str
    host_id: str
    created_at: float
    members: dict[str, Member] = field(default_factory=dict)

    @property
    def member_count(self) -> int:
        return len(self.members)

    @property
    def is_empty(self) -> bool:
        return not self.members

    @property
    def connection_ids(self) -> list[str]:
        """Member connection ids in join order."""
        return list(self.members)

    def is_host(self, connection_id: str) -> bool:
        return connection_id == self.host_id

    def users(self) -> list[UserInfo]:
        """Membership snapshot with host flags computed against host_id."""
        return [
            UserInfo(
                socket_id=member.connection_id,
                name=member.display_name,
                is_muted=member.is_muted,
                is_host=self.is_host(member.connection_id),
                peer_id=member.peer_id,
            )
            for member in self.members.values()
        ]


@dataclass
class RoomSnapshot:
    """Result of a successful create or join."""

    room_id: str
    host_id: str
    users: list[UserInfo]


@dataclass
class KickResult:
    room_id: str
    target_id: str
    display_name: str


@dataclass
class LeaveResult:
    """
    Outcome of a member leaving.

    Attributes:
        room_id: The room that was left.
        connection_id: The departed connection.
        display_name: The departed member's name.
        was_host: Whether the departed member held the host role.
        new_host_id: The elected successor, if the host left a non-empty room.
        room_deleted: True if the room became empty and was removed.
        remaining: Connection ids still in the room.
    """

    room_id: str
    connection_id: str
    display_name: str
    was_host: bool
    new_host_id: str | None
    room_deleted: bool
    remaining: list[str] = field(default_factory=list)


@dataclass
class ExpiredRoom:
    room_id: str
    connection_ids: list[str]


def elect_host(join_order: Iterable[str], departed_id: str) -> str | None:
    """
    Pick the next host: the longest-present member other than departed_id.

    Args:
        join_order: Member connection ids, oldest first.
        departed_id: The connection that is leaving.

    Returns:
        The new host id, or None if nobody remains.
    """
    for connection_id in join_order:
        if connection_id != departed_id:
            return connection_id
    return None


class RoomRegistry:
    """
    In-memory store of all active rooms.

    Provides:
    - Room creation with unique generated codes
    - Join with capacity checks
    - Member state updates (peer id, mute)
    - Kick and leave with host succession
    - Age-based expiry
    """

    def __init__(
        self,
        code_generator: RoomCodeGenerator | None = None,
        max_members: int = DEFAULT_MAX_MEMBERS,
        max_name_length: int = DEFAULT_MAX_NAME_LENGTH,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the registry.

        Args:
            code_generator: Source of room codes.
            max_members: Room capacity.
            max_name_length: Longest accepted display name.
            clock: Returns the current Unix time in seconds.
        """
        self._codes = code_generator if code_generator is not None else RoomCodeGenerator()
        self._max_members = max_members
        self._max_name_length = max_name_length
        self._clock = clock

        self._rooms: dict[str, Room] = {}
        # connection_id -> room_id
        self._memberships: dict[str, str] = {}

    @property
    def codes(self) -> RoomCodeGenerator:
        return self._codes

    @property
    def max_members(self) -> int:
        return self._max_members

    @property
    def room_count(self) -> int:
        """Get the number of active rooms."""
        return len(self._rooms)

    @property
    def member_count(self) -> int:
        """Get the number of members across all rooms."""
        return len(self._memberships)

    @property
    def room_ids(self) -> list[str]:
        return list(self._rooms)

    def has_room(self, room_id: str) -> bool:
        return room_id in self._rooms

    def get_room(self, room_id: str) -> Room | None:
        return self._rooms.get(room_id)

    def room_of(self, connection_id: str) -> str | None:
        """Get the id of the room a connection belongs to."""
        return self._memberships.get(connection_id)

    def snapshot(self, room_id: str) -> RoomSnapshot | None:
        room = self._rooms.get(room_id)
        if room is None:
            return None
        return RoomSnapshot(room_id=room.room_id, host_id=room.host_id, users=room.users())

    def validate_name(self, display_name: str) -> str:
        """
        Strip a display name and check its length.

        Raises:
            InvalidNameError: If the stripped name is empty or too long.
        """
        name = display_name.strip() if isinstance(display_name, str) else ""
        if not name or len(name) > self._max_name_length:
            raise InvalidNameError()
        return name

    def check_join(self, raw_room_id: str, display_name: str) -> str:
        """
        Validate a join request without changing any state.

        Returns:
            The canonical room code.

        Raises:
            InvalidNameError: If the name is empty or too long.
            InvalidCodeError: If the code does not match the code policy.
            RoomNotFoundError: If no room has that code.
            RoomFullError: If the room is at capacity.
        """
        self.validate_name(display_name)

        room_id = self._codes.normalize(raw_room_id)
        if room_id is None:
            raise InvalidCodeError()

        room = self._rooms.get(room_id)
        if room is None:
            raise RoomNotFoundError()

        if room.member_count >= self._max_members:
            raise RoomFullError(self._max_members)
        return room_id

    def _ensure_unattached(self, connection_id: str) -> None:
        if connection_id in self._memberships:
            raise AlreadyInRoomError()

    def _allocate_code(self) -> str:
        for _ in range(MAX_CODE_ATTEMPTS):
            code = self._codes.generate()
            if code not in self._rooms:
                return code
        logger.error(f"Room code space exhausted after {MAX_CODE_ATTEMPTS} attempts")
        raise CodeExhaustedError()

    def _member_room(self, connection_id: str) -> tuple[Room, Member] | None:
        room_id = self._memberships.get(connection_id)
        if room_id is None:
            return None
        room = self._rooms.get(room_id)
        if room is None:
            return None
        member = room.members.get(connection_id)
        if member is None:
            return None
        return room, member

    def create_room(self, connection_id: str, display_name: str) -> RoomSnapshot:
        """
        Create a room with the caller as sole member and host.

        Raises:
            InvalidNameError: If the name is empty or too long.
            CodeExhaustedError: If no unused code was found.
            AlreadyInRoomError: If the connection is already a member of a room.
        """
        self._ensure_unattached(connection_id)
        name = self.validate_name(display_name)
        room_id = self._allocate_code()

        room = Room(room_id=room_id, host_id=connection_id, created_at=self._clock())
        room.members[connection_id] = Member(connection_id=connection_id, display_name=name)
        self._rooms[room_id] = room
        self._memberships[connection_id] = room_id

        logger.info(f"Room created: {room_id} by {name}")
        return RoomSnapshot(room_id=room_id, host_id=connection_id, users=room.users())

    def join_room(self, connection_id: str, raw_room_id: str, display_name: str) -> RoomSnapshot:
        """
        Add the caller to an existing room.

        Raises:
            InvalidNameError: If the name is empty or too long.
            InvalidCodeError: If the code does not match the code policy.
            RoomNotFoundError: If no room has that code.
            RoomFullError: If the room is at capacity.
            AlreadyInRoomError: If the connection is already a member of a room.
        """
        self._ensure_unattached(connection_id)
        name = self.validate_name(display_name)
        room_id = self.check_join(raw_room_id, name)
        room = self._rooms[room_id]

        room.members[connection_id] = Member(connection_id=connection_id, display_name=name)
        self._memberships[connection_id] = room_id

        logger.info(f"User {name} joined room {room_id}")
        return RoomSnapshot(room_id=room_id, host_id=room.host_id, users=room.users())

    def register_peer(self, connection_id: str, peer_id: str) -> str | None:
        """
        Record a member's WebRTC peer id.

        Returns:
            The room id if the member was found, None otherwise.
        """
        found = self._member_room(connection_id)
        if found is None:
            return None
        room, member = found

        if member.peer_id is not None and member.peer_id != peer_id:
            logger.warning(
                f"Peer id for {member.display_name} in {room.room_id} replaced: "
                f"{member.peer_id} -> {peer_id}"
            )
        member.peer_id = peer_id
        logger.info(f"Peer registered: {peer_id} for {member.display_name}")
        return room.room_id

    def set_muted(self, connection_id: str, is_muted: bool) -> str | None:
        """
        Update a member's mute state.

        Returns:
            The room id if the member was found, None otherwise.
        """
        found = self._member_room(connection_id)
        if found is None:
            return None
        room, member = found
        member.is_muted = is_muted
        return room.room_id

    def set_speaking(self, connection_id: str, is_speaking: bool) -> str | None:
        """Resolve the room for a speaking-state relay. Nothing is stored."""
        found = self._member_room(connection_id)
        return found[0].room_id if found else None

    def kick(self, requester_id: str, target_id: str) -> KickResult:
        """
        Remove a member on behalf of the host.

        Raises:
            NotInRoomError: If the requester is not in a room.
            RoomNotFoundError: If the requester's room no longer exists.
            NotHostError: If the requester is not the host.
            SelfKickError: If the requester targets itself.
            TargetNotFoundError: If the target is not in the room.
        """
        room_id = self._memberships.get(requester_id)
        if room_id is None:
            raise NotInRoomError()

        room = self._rooms.get(room_id)
        if room is None:
            raise RoomNotFoundError("Room not found")

        if not room.is_host(requester_id):
            raise NotHostError()

        if target_id == requester_id:
            raise SelfKickError()

        target = room.members.get(target_id)
        if target is None:
            raise TargetNotFoundError()

        del room.members[target_id]
        self._memberships.pop(target_id, None)

        logger.info(f"User {target.display_name} kicked from {room_id}")
        return KickResult(room_id=room_id, target_id=target_id, display_name=target.display_name)

    def leave(self, connection_id: str) -> LeaveResult | None:
        """
        Remove a member, deleting the room or electing a new host as needed.

        Returns:
            What happened, or None if the connection was not in a room.
        """
        room_id = self._memberships.pop(connection_id, None)
        if room_id is None:
            return None

        room = self._rooms.get(room_id)
        if room is None:
            return None

        member = room.members.pop(connection_id, None)
        if member is None:
            return None

        was_host = room.is_host(connection_id)
        logger.info(f"User {member.display_name} left room {room_id}")

        if room.is_empty:
            del self._rooms[room_id]
            logger.info(f"Room {room_id} deleted (empty)")
            return LeaveResult(
                room_id=room_id,
                connection_id=connection_id,
                display_name=member.display_name,
                was_host=was_host,
                new_host_id=None,
                room_deleted=True,
            )

        new_host_id = None
        if was_host:
            new_host_id = elect_host(room.members, connection_id)
            room.host_id = new_host_id
            logger.info(f"Host transferred to {new_host_id} in room {room_id}")

        return LeaveResult(
            room_id=room_id,
            connection_id=connection_id,
            display_name=member.display_name,
            was_host=was_host,
            new_host_id=new_host_id,
            room_deleted=False,
            remaining=room.connection_ids,
        )

    def sweep_expired(self, max_age: float) -> list[ExpiredRoom]:
        """
        Remove every room older than max_age seconds.

        Returns:
            The removed rooms with the connections that were in them.
        """
        now = self._clock()
        expired: list[ExpiredRoom] = []

        for room_id, room in list(self._rooms.items()):
            if now - room.created_at > max_age:
                connection_ids = room.connection_ids
                for connection_id in connection_ids:
                    self._memberships.pop(connection_id, None)
                del self._rooms[room_id]
                expired.append(ExpiredRoom(room_id=room_id, connection_ids=connection_ids))

        return expired


__all__ = [
    "DEFAULT_MAX_MEMBERS",
    "DEFAULT_MAX_NAME_LENGTH",
    "MAX_CODE_ATTEMPTS",
    "Member",
    "Room",
    "RoomSnapshot",
    "KickResult",
    "LeaveResult",
    "ExpiredRoom",
    "elect_host",
    "RoomRegistry",
]
