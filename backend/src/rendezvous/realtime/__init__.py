"""Connection/room registries, message routing and persistence."""

from .managers import (  # noqa: F401
    get_connection_registry,
    get_persistence_sink,
    get_room_registry,
    get_router,
    shutdown_realtime,
    startup_realtime,
)
from .persistence import CouchDBSink, NullSink, PersistenceSink, RoomSnapshot  # noqa: F401
from .registry import ClientIdentity, ConnectionRegistry, Room, RoomRegistry  # noqa: F401
from .router import SignalingRouter, safe_send_json  # noqa: F401

__all__ = [
    "startup_realtime",
    "shutdown_realtime",
    "get_connection_registry",
    "get_room_registry",
    "get_router",
    "get_persistence_sink",
    "ClientIdentity",
    "Room",
    "ConnectionRegistry",
    "RoomRegistry",
    "SignalingRouter",
    "safe_send_json",
    "PersistenceSink",
    "NullSink",
    "CouchDBSink",
    "RoomSnapshot",
]
