"""Wire format of the signaling channel.

Every frame is a UTF-8 JSON object with a mandatory ``type`` field. The relay
only looks at the envelope (``type``, ``roomId``, ``clientId``, ``targetId``);
negotiation payloads (``offer``, ``answer``, ``candidate``) are forwarded as
received and never inspected.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping

JOIN = "join"
LEAVE = "leave"
OFFER = "offer"
ANSWER = "answer"
ICE_CANDIDATE = "ice-candidate"

EXISTING_CLIENTS = "existing-clients"
NEW_CLIENT = "new-client"
CLIENT_LEFT = "client-left"

# Relayed message type -> name of the field carrying its opaque payload.
RELAYED_TYPES: Dict[str, str] = {
    OFFER: "offer",
    ANSWER: "answer",
    ICE_CANDIDATE: "candidate",
}

INBOUND_TYPES = frozenset({JOIN, LEAVE, *RELAYED_TYPES})


class ProtocolError(ValueError):
    """Raised when an inbound frame cannot be interpreted."""


@dataclass(frozen=True, slots=True)
class JoinRequest:
    room_id: str
    client_id: str


@dataclass(frozen=True, slots=True)
class RelayRequest:
    """A negotiation message addressed to one peer of the sender's room."""

    type: str
    target_id: str
    message: Dict[str, Any]


def decode_message(raw: str | bytes) -> Dict[str, Any]:
    """Decode one frame into a dict with a known ``type``."""

    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ProtocolError("Frame is not valid UTF-8") from exc
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ProtocolError("Frame is not valid JSON") from exc

    if not isinstance(payload, dict):
        raise ProtocolError("Frame must be a JSON object")

    message_type = payload.get("type")
    if not isinstance(message_type, str) or not message_type:
        raise ProtocolError("Frame type must be provided")
    if message_type not in INBOUND_TYPES:
        raise ProtocolError(f"Unsupported frame type '{message_type}'")
    return payload


def _require_string(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise ProtocolError(f"'{key}' must be a non-empty string")
    return value


def parse_join(payload: Mapping[str, Any]) -> JoinRequest:
    return JoinRequest(
        room_id=_require_string(payload, "roomId"),
        client_id=_require_string(payload, "clientId"),
    )


def parse_relay(payload: Mapping[str, Any]) -> RelayRequest:
    message_type = payload.get("type")
    field_name = RELAYED_TYPES.get(message_type)  # type: ignore[arg-type]
    if field_name is None:
        raise ProtocolError(f"'{message_type}' is not a relayed type")
    target_id = _require_string(payload, "targetId")
    if field_name not in payload:
        raise ProtocolError(f"'{message_type}' frame is missing '{field_name}'")
    return RelayRequest(type=message_type, target_id=target_id, message=dict(payload))


# ---------------------------------------------------------------------------
# Outbound envelopes
# ---------------------------------------------------------------------------


def existing_clients(client_ids: Iterable[str]) -> Dict[str, Any]:
    return {"type": EXISTING_CLIENTS, "clients": list(client_ids)}


def new_client(client_id: str) -> Dict[str, Any]:
    return {"type": NEW_CLIENT, "clientId": client_id}


def client_left(client_id: str) -> Dict[str, Any]:
    return {"type": CLIENT_LEFT, "clientId": client_id}


def forward_envelope(message: Mapping[str, Any], from_id: str) -> Dict[str, Any]:
    """Return *message* unchanged apart from the sender's ``fromId``."""

    forwarded = dict(message)
    forwarded["fromId"] = from_id
    return forwarded


__all__ = [
    "JOIN",
    "LEAVE",
    "OFFER",
    "ANSWER",
    "ICE_CANDIDATE",
    "EXISTING_CLIENTS",
    "NEW_CLIENT",
    "CLIENT_LEFT",
    "RELAYED_TYPES",
    "ProtocolError",
    "JoinRequest",
    "RelayRequest",
    "decode_message",
    "parse_join",
    "parse_relay",
    "existing_clients",
    "new_client",
    "client_left",
    "forward_envelope",
]
