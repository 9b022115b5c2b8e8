"""Metric definitions for the signaling relay."""

from __future__ import annotations

from .registry import registry


signaling_connections = registry.gauge(
    "signaling_connections",
    "Number of open signaling websocket connections.",
)

signaling_rooms = registry.gauge(
    "signaling_rooms",
    "Number of live rooms held in memory.",
)

signaling_messages_total = registry.counter(
    "signaling_messages_total",
    "Signaling frames processed, by frame type and outcome.",
    label_names=("type", "outcome"),
)

room_persistence_writes_total = registry.counter(
    "room_persistence_writes_total",
    "Room snapshot writes attempted against the document store.",
    label_names=("outcome",),
)
