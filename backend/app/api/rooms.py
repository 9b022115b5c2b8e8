"""Read-only view of the live room registry."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from app.schemas import RoomRead
from rendezvous.realtime.managers import get_room_registry

router = APIRouter(prefix="/rooms", tags=["rooms"])


@router.get("", response_model=list[RoomRead])
def list_rooms() -> list[RoomRead]:
    """Return every room that currently has members."""

    return [RoomRead.model_validate(entry) for entry in get_room_registry().overview()]


@router.get("/{room_id}", response_model=RoomRead)
def read_room(room_id: str) -> RoomRead:
    snapshot = get_room_registry().snapshot(room_id)
    if snapshot is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")
    return RoomRead.model_validate(snapshot)
