"""CouchDB persistence sink tests against an in-memory fake server."""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx
import pytest

from app.monitoring.metrics import room_persistence_writes_total
from rendezvous.realtime.persistence import CouchDBSink, NullSink, RoomSnapshot


class FakeCouchDB:
    """Minimal subset of the CouchDB document API."""

    def __init__(self) -> None:
        self.databases: set[str] = set()
        self.documents: dict[str, dict[str, Any]] = {}
        self.fail_next_put: int | None = None
        self.requests: list[tuple[str, str]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append((request.method, request.url.path))
        parts = [part for part in request.url.path.split("/") if part]
        if len(parts) == 1:
            return self._database(request, parts[0])
        database, doc_id = parts[0], "/".join(parts[1:])
        if database not in self.databases:
            return httpx.Response(404, json={"error": "not_found", "reason": "Database does not exist."})
        if request.method == "GET":
            document = self.documents.get(doc_id)
            if document is None:
                return httpx.Response(404, json={"error": "not_found", "reason": "missing"})
            return httpx.Response(200, json=document)
        if request.method == "PUT":
            if self.fail_next_put is not None:
                status, self.fail_next_put = self.fail_next_put, None
                return httpx.Response(status, json={"error": "failed"})
            body = json.loads(request.content)
            current = self.documents.get(doc_id)
            if current is not None and body.get("_rev") != current["_rev"]:
                return httpx.Response(409, json={"error": "conflict"})
            revision = int(current["_rev"].split("-")[0]) + 1 if current else 1
            body["_rev"] = f"{revision}-abc"
            self.documents[doc_id] = body
            return httpx.Response(201, json={"ok": True, "id": doc_id, "rev": body["_rev"]})
        return httpx.Response(405)

    def _database(self, request: httpx.Request, name: str) -> httpx.Response:
        if request.method == "GET":
            if name in self.databases:
                return httpx.Response(200, json={"db_name": name})
            return httpx.Response(404, json={"error": "not_found"})
        if request.method == "PUT":
            if name in self.databases:
                return httpx.Response(412, json={"error": "file_exists"})
            self.databases.add(name)
            return httpx.Response(201, json={"ok": True})
        return httpx.Response(405)


def build_sink(handler, **kwargs: Any) -> CouchDBSink:
    client = httpx.AsyncClient(base_url="http://couch.test", transport=httpx.MockTransport(handler))
    return CouchDBSink("http://couch.test", "webrtc_rooms", client=client, **kwargs)


@pytest.fixture(autouse=True)
def reset_persistence_metrics() -> None:
    room_persistence_writes_total.clear()
    yield
    room_persistence_writes_total.clear()


@pytest.mark.anyio
async def test_start_creates_missing_database() -> None:
    couch = FakeCouchDB()
    sink = build_sink(couch)

    await sink.start()
    try:
        assert sink.available
        assert couch.databases == {"webrtc_rooms"}
        assert ("PUT", "/webrtc_rooms") in couch.requests
    finally:
        await sink.stop()


@pytest.mark.anyio
async def test_snapshots_create_then_update_room_document() -> None:
    couch = FakeCouchDB()
    sink = build_sink(couch)
    await sink.start()
    try:
        sink.persist("demo", ["A"])
        await sink.flush()
        created = dict(couch.documents["demo"])

        sink.persist("demo", ["A", "B"])
        await sink.flush()
        updated = couch.documents["demo"]
    finally:
        await sink.stop()

    assert created["_id"] == "demo"
    assert created["roomId"] == "demo"
    assert created["participants"] == ["A"]
    assert created["participantCount"] == 1
    assert created["createdAt"] == created["lastActivity"]

    assert updated["participants"] == ["A", "B"]
    assert updated["participantCount"] == 2
    assert updated["createdAt"] == created["createdAt"]
    assert updated["lastActivity"] >= created["lastActivity"]
    assert updated["_rev"].startswith("2-")
    assert room_persistence_writes_total.value("ok") == 2.0


@pytest.mark.anyio
async def test_room_ids_are_escaped_in_document_paths() -> None:
    couch = FakeCouchDB()
    sink = build_sink(couch)
    await sink.start()
    try:
        sink.persist("team/standup", ["A"])
        await sink.flush()
    finally:
        await sink.stop()

    assert couch.documents["team/standup"]["roomId"] == "team/standup"


@pytest.mark.anyio
async def test_failed_write_is_logged_and_next_snapshot_still_written(caplog) -> None:
    couch = FakeCouchDB()
    couch.fail_next_put = 500
    sink = build_sink(couch)
    await sink.start()
    try:
        with caplog.at_level(logging.WARNING, logger="rendezvous.realtime.persistence"):
            sink.persist("demo", ["A"])
            await sink.flush()
        assert "demo" not in couch.documents

        sink.persist("demo", ["A", "B"])
        await sink.flush()
    finally:
        await sink.stop()

    assert couch.documents["demo"]["participants"] == ["A", "B"]
    assert any("Error saving room demo" in record.getMessage() for record in caplog.records)
    assert room_persistence_writes_total.value("failed") == 1.0
    assert room_persistence_writes_total.value("ok") == 1.0


@pytest.mark.anyio
async def test_conflict_is_not_retried() -> None:
    couch = FakeCouchDB()
    couch.fail_next_put = 409
    sink = build_sink(couch)
    await sink.start()
    try:
        sink.persist("demo", ["A"])
        await sink.flush()
    finally:
        await sink.stop()

    assert couch.documents == {}
    assert [request for request in couch.requests if request[0] == "PUT"][-1] == ("PUT", "/webrtc_rooms/demo")
    assert room_persistence_writes_total.value("failed") == 1.0


@pytest.mark.anyio
async def test_unreachable_store_disables_persistence(caplog) -> None:
    def offline(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    sink = build_sink(offline)
    with caplog.at_level(logging.WARNING, logger="rendezvous.realtime.persistence"):
        await sink.start()

    assert not sink.available
    sink.persist("demo", ["A"])
    await sink.flush()
    await sink.stop()
    assert any("continuing without room persistence" in record.getMessage() for record in caplog.records)


@pytest.mark.anyio
async def test_full_queue_drops_snapshot() -> None:
    couch = FakeCouchDB()
    sink = build_sink(couch, queue_size=1)
    await sink.start()
    try:
        sink.persist("demo", ["A"])
        sink.persist("demo", ["A", "B"])
        await sink.flush()
    finally:
        await sink.stop()

    assert couch.documents["demo"]["participants"] == ["A"]
    assert room_persistence_writes_total.value("dropped") == 1.0


def test_snapshot_document_for_new_room() -> None:
    snapshot = RoomSnapshot(room_id="demo", participants=["A", "B"])
    document = snapshot.apply_to(None)

    assert document["_id"] == "demo"
    assert document["participantCount"] == 2
    assert document["createdAt"] == snapshot.taken_at.isoformat()


@pytest.mark.anyio
async def test_null_sink_is_a_noop() -> None:
    sink = NullSink()
    await sink.start()
    sink.persist("demo", ["A"])
    await sink.stop()
