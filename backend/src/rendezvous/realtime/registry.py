"""In-memory connection and room registries.

Both registries are plain synchronous structures. They are only mutated from
message handlers running on the event loop and no method awaits, so a join or
leave is observed by both registries together before any other handler runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Hashable, List

Connection = Hashable


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class ClientIdentity:
    client_id: str
    room_id: str


@dataclass(slots=True)
class Room:
    """A live room. Only exists while it has at least one member."""

    room_id: str
    # dict used as an insertion ordered set
    members: Dict[Connection, None] = field(default_factory=dict)
    created_at: datetime = field(default_factory=_utcnow)
    last_activity: datetime = field(default_factory=_utcnow)

    def touch(self) -> None:
        self.last_activity = _utcnow()


class ConnectionRegistry:
    """Maps each live connection to the identity it joined with."""

    def __init__(self) -> None:
        self._identities: Dict[Connection, ClientIdentity] = {}

    def bind(self, connection: Connection, client_id: str, room_id: str) -> ClientIdentity:
        if not room_id:
            raise ValueError("room_id must be a non-empty string")
        identity = ClientIdentity(client_id=client_id, room_id=room_id)
        self._identities[connection] = identity
        return identity

    def identity_of(self, connection: Connection) -> ClientIdentity | None:
        return self._identities.get(connection)

    def unbind(self, connection: Connection) -> ClientIdentity | None:
        return self._identities.pop(connection, None)

    def __contains__(self, connection: object) -> bool:
        return connection in self._identities

    def __len__(self) -> int:
        return len(self._identities)


class RoomRegistry:
    """Maps room identifiers to their current member connections."""

    def __init__(self, connections: ConnectionRegistry) -> None:
        self._connections = connections
        self._rooms: Dict[str, Room] = {}

    def join(self, room_id: str, connection: Connection) -> List[str]:
        """Add *connection* to the room and return the client ids present before it."""

        room = self._rooms.get(room_id)
        if room is None:
            room = self._rooms[room_id] = Room(room_id=room_id)
        previous = self._client_ids(room, exclude=connection)
        room.members[connection] = None
        room.touch()
        return previous

    def leave(self, room_id: str, connection: Connection) -> List[Connection]:
        """Remove *connection* and return the remaining members.

        The room is deleted once its last member is gone. Leaving a room that
        does not exist, or that does not contain the connection, is a no-op.
        """

        room = self._rooms.get(room_id)
        if room is None or connection not in room.members:
            return []
        del room.members[connection]
        if not room.members:
            del self._rooms[room_id]
            return []
        room.touch()
        return list(room.members)

    def members_of(self, room_id: str) -> frozenset[Connection]:
        room = self._rooms.get(room_id)
        return frozenset(room.members) if room is not None else frozenset()

    def members_with_client_id(self, room_id: str, client_id: str) -> List[Connection]:
        """Return every member of *room_id* whose recorded client id matches.

        Client ids are chosen by clients, so more than one connection may
        carry the same id.
        """

        room = self._rooms.get(room_id)
        if room is None:
            return []
        matches: List[Connection] = []
        for connection in room.members:
            identity = self._connections.identity_of(connection)
            if identity is not None and identity.client_id == client_id:
                matches.append(connection)
        return matches

    def client_ids(self, room_id: str) -> List[str]:
        room = self._rooms.get(room_id)
        return self._client_ids(room) if room is not None else []

    def snapshot(self, room_id: str) -> Dict[str, Any] | None:
        room = self._rooms.get(room_id)
        if room is None:
            return None
        participants = self._client_ids(room)
        return {
            "roomId": room.room_id,
            "participants": participants,
            "participantCount": len(participants),
            "createdAt": room.created_at.isoformat(),
            "lastActivity": room.last_activity.isoformat(),
        }

    def overview(self) -> List[Dict[str, Any]]:
        return [self.snapshot(room_id) for room_id in sorted(self._rooms)]  # type: ignore[misc]

    def _client_ids(self, room: Room, *, exclude: Connection | None = None) -> List[str]:
        ids: List[str] = []
        for connection in room.members:
            if connection is exclude:
                continue
            identity = self._connections.identity_of(connection)
            if identity is not None:
                ids.append(identity.client_id)
        return ids

    def __contains__(self, room_id: object) -> bool:
        return room_id in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)


__all__ = ["ClientIdentity", "Room", "ConnectionRegistry", "RoomRegistry"]
