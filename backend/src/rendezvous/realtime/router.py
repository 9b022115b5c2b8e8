"""Protocol state machine for signaling connections."""

from __future__ import annotations

import logging
from typing import Any, Iterable

from fastapi.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from app.monitoring.metrics import (
    signaling_messages_total,
    signaling_rooms,
)

from ..signaling import protocol
from ..signaling.protocol import JoinRequest, ProtocolError
from .persistence import NullSink, PersistenceSink
from .registry import ClientIdentity, ConnectionRegistry, RoomRegistry


logger = logging.getLogger(__name__)


async def safe_send_json(websocket: WebSocket, data: dict[str, Any]) -> bool:
    """Send JSON to *websocket* unless it is closing or closed.

    Every relay and broadcast write goes through here. A target that closed
    mid-broadcast is skipped without a retry, and delivery to the remaining
    members carries on.

    Returns True if the message was handed to the transport.
    """
    if websocket.application_state != WebSocketState.CONNECTED:
        return False
    try:
        await websocket.send_json(data)
        return True
    except (WebSocketDisconnect, RuntimeError) as e:
        logger.debug("Failed to send websocket message: %s", e)
        return False


class SignalingRouter:
    """Route signaling frames between connections sharing a room.

    Registry updates for a join or leave happen before the first ``await`` of
    the handler, so other handlers never observe one registry updated without
    the other.
    """

    def __init__(
        self,
        connections: ConnectionRegistry,
        rooms: RoomRegistry,
        sink: PersistenceSink | None = None,
    ) -> None:
        self._connections = connections
        self._rooms = rooms
        self._sink: PersistenceSink = sink if sink is not None else NullSink()

    @property
    def connections(self) -> ConnectionRegistry:
        return self._connections

    @property
    def rooms(self) -> RoomRegistry:
        return self._rooms

    async def handle_message(self, websocket: WebSocket, raw: str | bytes) -> None:
        """Interpret one inbound frame. Malformed frames are logged and dropped."""

        try:
            payload = protocol.decode_message(raw)
            message_type = payload["type"]
            if message_type == protocol.JOIN:
                await self.join(websocket, protocol.parse_join(payload))
            elif message_type == protocol.LEAVE:
                await self.leave(websocket)
            else:
                await self.relay(websocket, payload)
        except ProtocolError as exc:
            signaling_messages_total.labels("invalid", "dropped").inc()
            logger.info("Dropped malformed signaling frame: %s", exc)

    async def join(self, websocket: WebSocket, request: JoinRequest) -> list[str]:
        if self._connections.identity_of(websocket) is not None:
            # A connection lives in one room at a time.
            await self.leave(websocket)

        self._connections.bind(websocket, request.client_id, request.room_id)
        existing = self._rooms.join(request.room_id, websocket)
        prior_members = [
            member for member in self._rooms.members_of(request.room_id) if member is not websocket
        ]
        participants = self._rooms.client_ids(request.room_id)
        signaling_rooms.labels().set(len(self._rooms))

        await safe_send_json(websocket, protocol.existing_clients(existing))
        await self._broadcast(prior_members, protocol.new_client(request.client_id))
        self._sink.persist(request.room_id, participants)

        signaling_messages_total.labels(protocol.JOIN, "ok").inc()
        logger.info(
            "Client %s joined room %s. Total in room: %d",
            request.client_id,
            request.room_id,
            len(participants),
        )
        return existing

    async def relay(self, websocket: WebSocket, payload: dict[str, Any]) -> bool:
        """Forward an offer/answer/candidate to every member with the target id.

        Returns True if at least one target received the frame.
        """

        identity = self._connections.identity_of(websocket)
        if identity is None:
            signaling_messages_total.labels(str(payload.get("type")), "unjoined").inc()
            logger.debug("Ignoring %s from a connection that has not joined", payload.get("type"))
            return False

        request = protocol.parse_relay(payload)
        targets = self._rooms.members_with_client_id(identity.room_id, request.target_id)
        if not targets:
            signaling_messages_total.labels(request.type, "no_target").inc()
            logger.debug(
                "No client %s in room %s for %s from %s",
                request.target_id,
                identity.room_id,
                request.type,
                identity.client_id,
            )
            return False

        envelope = protocol.forward_envelope(request.message, identity.client_id)
        delivered = False
        for target in targets:
            sent = await safe_send_json(target, envelope)
            signaling_messages_total.labels(request.type, "ok" if sent else "closed").inc()
            delivered = delivered or sent
        return delivered

    async def leave(self, websocket: WebSocket) -> ClientIdentity | None:
        """Remove the connection from its room. No-op for unjoined connections."""

        identity = self._connections.identity_of(websocket)
        if identity is None:
            return None

        remaining = self._rooms.leave(identity.room_id, websocket)
        self._connections.unbind(websocket)
        participants = self._rooms.client_ids(identity.room_id)
        signaling_rooms.labels().set(len(self._rooms))

        await self._broadcast(remaining, protocol.client_left(identity.client_id))
        self._sink.persist(identity.room_id, participants)

        signaling_messages_total.labels(protocol.LEAVE, "ok").inc()
        logger.info("Client %s left room %s", identity.client_id, identity.room_id)
        return identity

    async def disconnect(self, websocket: WebSocket) -> ClientIdentity | None:
        """Transport closed; treated exactly like an explicit leave."""

        return await self.leave(websocket)

    async def _broadcast(self, connections: Iterable[WebSocket], payload: dict[str, Any]) -> int:
        sent = 0
        for connection in connections:
            if await safe_send_json(connection, payload):
                sent += 1
        return sent


__all__ = ["SignalingRouter", "safe_send_json"]
