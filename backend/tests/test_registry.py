"""Unit tests for the connection and room registries."""

from __future__ import annotations

import pytest

from rendezvous.realtime.registry import ConnectionRegistry, RoomRegistry


class Conn:
    """Stand-in for a transport handle; hashed by identity."""

    def __init__(self, name: str) -> None:
        self.name = name


@pytest.fixture()
def registries() -> tuple[ConnectionRegistry, RoomRegistry]:
    connections = ConnectionRegistry()
    return connections, RoomRegistry(connections)


def _join(registries, conn: Conn, client_id: str, room_id: str) -> list[str]:
    connections, rooms = registries
    connections.bind(conn, client_id, room_id)
    return rooms.join(room_id, conn)


def _leave(registries, conn: Conn) -> None:
    connections, rooms = registries
    identity = connections.identity_of(conn)
    if identity is None:
        return
    rooms.leave(identity.room_id, conn)
    connections.unbind(conn)


def _assert_consistent(registries, conns: list[Conn]) -> None:
    connections, rooms = registries
    for conn in conns:
        identity = connections.identity_of(conn)
        if identity is not None:
            assert conn in rooms.members_of(identity.room_id)
    for room_id in [entry["roomId"] for entry in rooms.overview()]:
        for member in rooms.members_of(room_id):
            identity = connections.identity_of(member)
            assert identity is not None and identity.room_id == room_id


def test_join_returns_members_present_before_arrival(registries) -> None:
    a, b, c = Conn("a"), Conn("b"), Conn("c")

    assert _join(registries, a, "A", "demo") == []
    assert _join(registries, b, "B", "demo") == ["A"]
    assert _join(registries, c, "C", "demo") == ["A", "B"]

    _, rooms = registries
    assert rooms.members_of("demo") == {a, b, c}
    assert rooms.client_ids("demo") == ["A", "B", "C"]


def test_membership_stays_consistent_across_joins_and_leaves(registries) -> None:
    conns = [Conn(str(index)) for index in range(6)]
    for index, conn in enumerate(conns):
        _join(registries, conn, f"client-{index}", f"room-{index % 2}")
        _assert_consistent(registries, conns)

    for conn in conns[::2]:
        _leave(registries, conn)
        _assert_consistent(registries, conns)

    _, rooms = registries
    assert rooms.client_ids("room-1") == ["client-1", "client-3", "client-5"]
    assert "room-0" not in rooms


def test_last_leave_deletes_room(registries) -> None:
    connections, rooms = registries
    a, b = Conn("a"), Conn("b")
    _join(registries, a, "A", "demo")
    _join(registries, b, "B", "demo")

    assert rooms.leave("demo", a) == [b]
    assert rooms.leave("demo", b) == []
    assert "demo" not in rooms
    assert rooms.snapshot("demo") is None
    assert rooms.members_of("demo") == frozenset()
    assert len(rooms) == 0


def test_leave_is_a_noop_for_unknown_room_or_member(registries) -> None:
    _, rooms = registries
    a, stranger = Conn("a"), Conn("stranger")
    _join(registries, a, "A", "demo")

    assert rooms.leave("missing", a) == []
    assert rooms.leave("demo", stranger) == []
    assert rooms.members_of("demo") == {a}


def test_members_with_client_id_matches_within_room(registries) -> None:
    _, rooms = registries
    a, b, b_again, other = Conn("a"), Conn("b"), Conn("b2"), Conn("other")
    _join(registries, a, "A", "demo")
    _join(registries, b, "B", "demo")
    _join(registries, b_again, "B", "demo")
    _join(registries, other, "B", "elsewhere")

    assert rooms.members_with_client_id("demo", "B") == [b, b_again]
    assert rooms.members_with_client_id("demo", "Z") == []
    assert rooms.members_with_client_id("missing", "A") == []


def test_bind_rejects_empty_room_and_unbind_is_idempotent() -> None:
    connections = ConnectionRegistry()
    conn = Conn("a")

    with pytest.raises(ValueError):
        connections.bind(conn, "A", "")

    identity = connections.bind(conn, "A", "demo")
    assert connections.identity_of(conn) == identity
    assert connections.unbind(conn) == identity
    assert connections.unbind(conn) is None
    assert conn not in connections


def test_snapshot_reports_participants(registries) -> None:
    _, rooms = registries
    _join(registries, Conn("a"), "A", "demo")
    _join(registries, Conn("b"), "B", "demo")

    snapshot = rooms.snapshot("demo")
    assert snapshot is not None
    assert snapshot["roomId"] == "demo"
    assert snapshot["participants"] == ["A", "B"]
    assert snapshot["participantCount"] == 2
    assert snapshot["createdAt"] <= snapshot["lastActivity"]
    assert rooms.snapshot("missing") is None
    assert [entry["roomId"] for entry in rooms.overview()] == ["demo"]
