"""Process-wide registries and their lifecycle."""

from __future__ import annotations

from app.config import get_settings

from .persistence import CouchDBSink, NullSink, PersistenceSink
from .registry import ConnectionRegistry, RoomRegistry
from .router import SignalingRouter


def _build_sink() -> PersistenceSink:
    if not settings.couchdb_url:
        return NullSink()
    return CouchDBSink(
        settings.couchdb_url,
        settings.couchdb_database,
        queue_size=settings.persistence_queue_size,
        timeout=float(settings.persistence_timeout_seconds),
    )


settings = get_settings()

connection_registry = ConnectionRegistry()
room_registry = RoomRegistry(connection_registry)
persistence_sink = _build_sink()
router = SignalingRouter(connection_registry, room_registry, persistence_sink)


async def startup_realtime() -> None:
    # A store that cannot be reached only disables persistence.
    await persistence_sink.start()


async def shutdown_realtime() -> None:
    await persistence_sink.stop()


# Convenience accessors exposed to the FastAPI layer ----------------------


def get_connection_registry() -> ConnectionRegistry:
    return connection_registry


def get_room_registry() -> RoomRegistry:
    return room_registry


def get_router() -> SignalingRouter:
    return router


def get_persistence_sink() -> PersistenceSink:
    return persistence_sink


__all__ = [
    "startup_realtime",
    "shutdown_realtime",
    "get_connection_registry",
    "get_room_registry",
    "get_router",
    "get_persistence_sink",
]
