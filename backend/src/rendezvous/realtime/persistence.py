"""Best-effort mirroring of room membership into CouchDB.

The live registries are the source of truth. Snapshots are queued by the
router and written by a single background worker; a failed write is logged
and dropped, the next membership change simply tries again.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol
from urllib.parse import quote

import httpx

from app.monitoring.metrics import room_persistence_writes_total


logger = logging.getLogger(__name__)


class PersistenceError(RuntimeError):
    """Raised when the document store rejects or fails a snapshot write."""


@dataclass(slots=True)
class RoomSnapshot:
    room_id: str
    participants: list[str]
    taken_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def apply_to(self, document: dict[str, Any] | None) -> dict[str, Any]:
        """Merge this snapshot into an existing document, or build a new one."""

        timestamp = self.taken_at.isoformat()
        if document is None:
            return {
                "_id": self.room_id,
                "roomId": self.room_id,
                "participants": list(self.participants),
                "participantCount": len(self.participants),
                "createdAt": timestamp,
                "lastActivity": timestamp,
            }
        updated = dict(document)
        updated["participants"] = list(self.participants)
        updated["participantCount"] = len(self.participants)
        updated["lastActivity"] = timestamp
        return updated


class PersistenceSink(Protocol):
    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    def persist(self, room_id: str, participants: list[str]) -> None:
        """Schedule a snapshot write without waiting for it."""


class NullSink:
    """Sink used when no document store is configured."""

    async def start(self) -> None:
        logger.info("No document store configured; room snapshots will not be persisted")

    async def stop(self) -> None:
        return None

    def persist(self, room_id: str, participants: list[str]) -> None:
        return None


class CouchDBSink:
    """Write room snapshots to a CouchDB database through its HTTP API."""

    def __init__(
        self,
        url: str,
        database: str,
        *,
        queue_size: int = 256,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url.rstrip("/")
        self._database = database
        self._queue_size = queue_size
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._queue: asyncio.Queue[RoomSnapshot] | None = None
        self._worker: asyncio.Task[None] | None = None
        self._available = False

    @property
    def available(self) -> bool:
        return self._available

    async def start(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self._url, timeout=self._timeout)
        self._queue = asyncio.Queue(maxsize=self._queue_size)
        try:
            await self._ensure_database()
        except (httpx.HTTPError, PersistenceError):
            logger.warning(
                "CouchDB initialisation failed; continuing without room persistence",
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            self._available = False
            return
        self._available = True
        self._worker = asyncio.create_task(self._run(), name="room-persistence-worker")
        logger.info("Connected to CouchDB database '%s'", self._database)

    async def stop(self) -> None:
        if self._worker is not None:
            if self._queue is not None:
                with contextlib.suppress(asyncio.TimeoutError):
                    await asyncio.wait_for(self._queue.join(), timeout=self._timeout)
            self._worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._worker
            self._worker = None
        self._available = False
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def persist(self, room_id: str, participants: list[str]) -> None:
        if not self._available or self._queue is None:
            return
        try:
            self._queue.put_nowait(RoomSnapshot(room_id=room_id, participants=list(participants)))
        except asyncio.QueueFull:
            room_persistence_writes_total.labels("dropped").inc()
            logger.warning("Room persistence queue is full; dropping snapshot for %s", room_id)

    async def flush(self) -> None:
        """Wait until every queued snapshot has been handled."""

        if self._queue is not None and self._worker is not None:
            await self._queue.join()

    async def _run(self) -> None:
        assert self._queue is not None
        while True:
            snapshot = await self._queue.get()
            try:
                await self.write(snapshot)
            except (httpx.HTTPError, PersistenceError):
                room_persistence_writes_total.labels("failed").inc()
                logger.warning(
                    "Error saving room %s to CouchDB",
                    snapshot.room_id,
                    exc_info=logger.isEnabledFor(logging.DEBUG),
                )
            except Exception:
                room_persistence_writes_total.labels("failed").inc()
                logger.exception("Unexpected error saving room %s", snapshot.room_id)
            else:
                room_persistence_writes_total.labels("ok").inc()
            finally:
                self._queue.task_done()

    async def write(self, snapshot: RoomSnapshot) -> None:
        """Upsert the document keyed by the snapshot's room id."""

        assert self._client is not None
        path = self._document_path(snapshot.room_id)
        response = await self._client.get(path)
        if response.status_code == 404:
            document = None
        elif response.is_success:
            document = response.json()
        else:
            raise PersistenceError(
                f"Fetching room document failed with status {response.status_code}"
            )

        response = await self._client.put(path, json=snapshot.apply_to(document))
        if response.status_code == 409:
            raise PersistenceError(f"Document update conflict for room {snapshot.room_id}")
        if not response.is_success:
            raise PersistenceError(
                f"Storing room document failed with status {response.status_code}"
            )
        logger.debug("Persisted room %s", snapshot.room_id)

    async def _ensure_database(self) -> None:
        assert self._client is not None
        path = f"/{quote(self._database, safe='')}"
        response = await self._client.get(path)
        if response.is_success:
            return
        if response.status_code != 404:
            raise PersistenceError(f"Database lookup failed with status {response.status_code}")
        response = await self._client.put(path)
        # 412: created concurrently by another process
        if not response.is_success and response.status_code != 412:
            raise PersistenceError(f"Database creation failed with status {response.status_code}")
        logger.info("Created CouchDB database: %s", self._database)

    def _document_path(self, room_id: str) -> str:
        return f"/{quote(self._database, safe='')}/{quote(room_id, safe='')}"


__all__ = ["PersistenceError", "RoomSnapshot", "PersistenceSink", "NullSink", "CouchDBSink"]
