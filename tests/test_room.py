"""Unit tests for RoomRegistry and host election."""

import pytest

from voicemesh.codes import RoomCodeGenerator
from voicemesh.errors import (
    AlreadyInRoomError,
    CodeExhaustedError,
    ErrorCode,
    InvalidCodeError,
    InvalidNameError,
    NotHostError,
    NotInRoomError,
    RoomFullError,
    RoomNotFoundError,
    SelfKickError,
    TargetNotFoundError,
)
from voicemesh.room import RoomRegistry, elect_host

from conftest import FakeClock


def make_room(registry: RoomRegistry, *names: str) -> str:
    """Create a room hosted by the first name; the rest join in order."""
    host, *others = names
    room_id = registry.create_room(host.lower(), host).room_id
    for name in others:
        registry.join_room(name.lower(), room_id, name)
    return room_id


class TestElectHost:
    def test_oldest_survivor(self) -> None:
        assert elect_host(["a", "b", "c"], "a") == "b"

    def test_departed_in_middle(self) -> None:
        assert elect_host(["a", "b", "c"], "b") == "a"

    def test_nobody_left(self) -> None:
        assert elect_host(["a"], "a") is None
        assert elect_host([], "a") is None


class TestCreateRoom:
    def test_creator_is_sole_member_and_host(self, registry: RoomRegistry) -> None:
        snapshot = registry.create_room("alice", "Alice")

        assert registry.codes.validate(snapshot.room_id)
        assert snapshot.host_id == "alice"
        assert len(snapshot.users) == 1
        user = snapshot.users[0]
        assert user.socket_id == "alice"
        assert user.name == "Alice"
        assert user.is_host
        assert not user.is_muted
        assert registry.room_of("alice") == snapshot.room_id

    def test_codes_are_unique(self, registry: RoomRegistry) -> None:
        room_ids = {registry.create_room(f"c{i}", f"User{i}").room_id for i in range(50)}
        assert len(room_ids) == 50
        assert registry.room_count == 50

    @pytest.mark.parametrize("name", ["", "   ", "x" * 17])
    def test_invalid_name(self, registry: RoomRegistry, name: str) -> None:
        with pytest.raises(InvalidNameError) as exc_info:
            registry.create_room("alice", name)
        assert exc_info.value.code is ErrorCode.INVALID_INPUT
        assert registry.room_count == 0

    @pytest.mark.parametrize("name", ["A", "x" * 16])
    def test_name_length_bounds(self, registry: RoomRegistry, name: str) -> None:
        assert registry.create_room("alice", name).users[0].name == name

    def test_code_exhaustion(self, clock: FakeClock) -> None:
        registry = RoomRegistry(code_generator=RoomCodeGenerator(alphabet="A", length=1), clock=clock)
        registry.create_room("alice", "Alice")

        with pytest.raises(CodeExhaustedError) as exc_info:
            registry.create_room("bob", "Bob")
        assert exc_info.value.code is ErrorCode.EXHAUSTED
        assert registry.room_of("bob") is None

    def test_name_is_stripped_before_length_check(self, registry: RoomRegistry) -> None:
        assert registry.create_room("alice", "  Alice  ").users[0].name == "Alice"

        padded = "   " + "x" * 16 + "   "
        assert len(padded) > 16
        assert registry.create_room("bob", padded).users[0].name == "x" * 16

    def test_member_cannot_create_second_room(self, registry: RoomRegistry) -> None:
        room_id = registry.create_room("alice", "Alice").room_id

        with pytest.raises(AlreadyInRoomError):
            registry.create_room("alice", "Alice")
        assert registry.room_count == 1
        assert registry.room_of("alice") == room_id


class TestJoinRoom:
    def test_join_returns_full_membership(self, registry: RoomRegistry) -> None:
        room_id = registry.create_room("alice", "Alice").room_id
        snapshot = registry.join_room("bob", room_id, "Bob")

        assert snapshot.room_id == room_id
        assert snapshot.host_id == "alice"
        assert [u.socket_id for u in snapshot.users] == ["alice", "bob"]
        assert [u.is_host for u in snapshot.users] == [True, False]

    def test_join_is_case_insensitive(self, registry: RoomRegistry) -> None:
        room_id = registry.create_room("alice", "Alice").room_id
        snapshot = registry.join_room("bob", f" {room_id.lower()} ", "Bob")
        assert snapshot.room_id == room_id

    @pytest.mark.parametrize("code", ["", "ABC", "ABCDE", "AB-D", "0000"])
    def test_malformed_code(self, registry: RoomRegistry, code: str) -> None:
        with pytest.raises(InvalidCodeError):
            registry.join_room("bob", code, "Bob")

    def test_unknown_room(self, registry: RoomRegistry) -> None:
        with pytest.raises(RoomNotFoundError):
            registry.join_room("bob", "ZZZZ", "Bob")

    def test_name_checked_before_code(self, registry: RoomRegistry) -> None:
        with pytest.raises(InvalidNameError):
            registry.join_room("bob", "bad", "")

    def test_room_full(self, registry: RoomRegistry) -> None:
        room_id = make_room(registry, "A", "B", "C", "D", "E")

        with pytest.raises(RoomFullError) as exc_info:
            registry.join_room("f", room_id, "F")
        assert exc_info.value.message == "Room is full (5/5 operators)"
        assert exc_info.value.code is ErrorCode.CAPACITY
        assert registry.get_room(room_id).member_count == 5
        assert registry.room_of("f") is None

    def test_member_cannot_join_another_room(self, registry: RoomRegistry) -> None:
        first = make_room(registry, "Alice", "Bob")
        second = make_room(registry, "Carol")

        with pytest.raises(AlreadyInRoomError):
            registry.join_room("bob", second, "Bob")
        assert registry.room_of("bob") == first
        assert registry.get_room(second).connection_ids == ["carol"]

    def test_check_join_has_no_side_effects(self, registry: RoomRegistry) -> None:
        room_id = make_room(registry, "Alice")

        assert registry.check_join(room_id.lower(), "Bob") == room_id
        assert registry.get_room(room_id).connection_ids == ["alice"]
        assert registry.room_of("bob") is None

        with pytest.raises(InvalidCodeError):
            registry.check_join("??", "Bob")
        with pytest.raises(RoomNotFoundError):
            registry.check_join("ZZZZ", "Bob")


class TestMemberState:
    def test_register_peer(self, registry: RoomRegistry) -> None:
        room_id = make_room(registry, "Alice")
        assert registry.register_peer("alice", "peer-1") == room_id
        assert registry.get_room(room_id).members["alice"].peer_id == "peer-1"

    def test_register_peer_replaces(self, registry: RoomRegistry) -> None:
        room_id = make_room(registry, "Alice")
        registry.register_peer("alice", "peer-1")
        registry.register_peer("alice", "peer-2")
        assert registry.get_room(room_id).members["alice"].peer_id == "peer-2"

    def test_register_peer_outside_room_is_noop(self, registry: RoomRegistry) -> None:
        assert registry.register_peer("ghost", "peer-1") is None

    def test_set_muted(self, registry: RoomRegistry) -> None:
        room_id = make_room(registry, "Alice", "Bob")
        assert registry.set_muted("bob", True) == room_id
        users = registry.snapshot(room_id).users
        assert [u.is_muted for u in users] == [False, True]

    def test_set_muted_outside_room(self, registry: RoomRegistry) -> None:
        assert registry.set_muted("ghost", True) is None

    def test_set_speaking_resolves_room(self, registry: RoomRegistry) -> None:
        room_id = make_room(registry, "Alice")
        assert registry.set_speaking("alice", True) == room_id
        assert registry.set_speaking("ghost", True) is None


class TestKick:
    def test_host_kicks_member(self, registry: RoomRegistry) -> None:
        room_id = make_room(registry, "Alice", "Bob", "Carol")

        result = registry.kick("alice", "bob")

        assert result.room_id == room_id
        assert result.target_id == "bob"
        assert result.display_name == "Bob"
        assert registry.get_room(room_id).connection_ids == ["alice", "carol"]
        assert registry.room_of("bob") is None

    def test_non_host_cannot_kick(self, registry: RoomRegistry) -> None:
        room_id = make_room(registry, "Alice", "Bob", "Carol")

        with pytest.raises(NotHostError) as exc_info:
            registry.kick("bob", "carol")
        assert exc_info.value.code is ErrorCode.AUTHORIZATION
        assert registry.get_room(room_id).connection_ids == ["alice", "bob", "carol"]

    def test_non_host_cannot_kick_host(self, registry: RoomRegistry) -> None:
        room_id = make_room(registry, "Alice", "Bob")
        with pytest.raises(NotHostError):
            registry.kick("bob", "alice")
        assert registry.get_room(room_id).host_id == "alice"

    def test_self_kick(self, registry: RoomRegistry) -> None:
        make_room(registry, "Alice", "Bob")
        with pytest.raises(SelfKickError):
            registry.kick("alice", "alice")

    def test_requester_not_in_room(self, registry: RoomRegistry) -> None:
        with pytest.raises(NotInRoomError):
            registry.kick("ghost", "bob")

    def test_target_not_found(self, registry: RoomRegistry) -> None:
        make_room(registry, "Alice")
        other = registry.create_room("zed", "Zed")
        with pytest.raises(TargetNotFoundError):
            registry.kick("alice", "zed")
        assert registry.room_of("zed") == other.room_id


class TestLeave:
    def test_host_succession_follows_join_order(self, registry: RoomRegistry) -> None:
        room_id = make_room(registry, "A", "B", "C")

        first = registry.leave("a")
        assert first.was_host
        assert first.new_host_id == "b"
        assert registry.get_room(room_id).host_id == "b"

        second = registry.leave("b")
        assert second.was_host
        assert second.new_host_id == "c"
        assert registry.get_room(room_id).host_id == "c"

    def test_host_succession_skips_kicked(self, registry: RoomRegistry) -> None:
        room_id = make_room(registry, "A", "B", "C", "D")
        registry.kick("a", "b")
        assert registry.leave("a").new_host_id == "c"
        assert registry.snapshot(room_id).host_id == "c"

    def test_non_host_leave_keeps_host(self, registry: RoomRegistry) -> None:
        room_id = make_room(registry, "A", "B", "C")
        result = registry.leave("b")

        assert not result.was_host
        assert result.new_host_id is None
        assert result.remaining == ["a", "c"]
        assert registry.get_room(room_id).host_id == "a"

    def test_last_member_deletes_room(self, registry: RoomRegistry) -> None:
        room_id = make_room(registry, "Alice")

        result = registry.leave("alice")

        assert result.room_deleted
        assert result.display_name == "Alice"
        assert not registry.has_room(room_id)
        with pytest.raises(RoomNotFoundError):
            registry.join_room("bob", room_id, "Bob")

    def test_leave_outside_room(self, registry: RoomRegistry) -> None:
        assert registry.leave("ghost") is None

    def test_host_always_member(self, registry: RoomRegistry) -> None:
        room_id = make_room(registry, "A", "B", "C", "D")
        for connection_id in ["c", "a", "d"]:
            registry.leave(connection_id)
            room = registry.get_room(room_id)
            assert room.host_id in room.members


class TestSweepExpired:
    def test_expires_only_old_rooms(self, registry: RoomRegistry, clock: FakeClock) -> None:
        old = make_room(registry, "Alice", "Bob")
        clock.advance(3600)
        new = make_room(registry, "Carol")

        clock.advance(24 * 3600 - 3600 + 1)
        expired = registry.sweep_expired(24 * 3600)

        assert [(e.room_id, e.connection_ids) for e in expired] == [(old, ["alice", "bob"])]
        assert not registry.has_room(old)
        assert registry.has_room(new)
        assert registry.room_of("alice") is None
        assert registry.room_of("carol") == new

    def test_boundary(self, registry: RoomRegistry, clock: FakeClock) -> None:
        room_id = make_room(registry, "Alice")

        clock.advance(23 * 3600 + 59 * 60)
        assert registry.sweep_expired(24 * 3600) == []
        assert registry.has_room(room_id)

        clock.advance(2 * 60)
        assert [e.room_id for e in registry.sweep_expired(24 * 3600)] == [room_id]
        assert not registry.has_room(room_id)
