"""Schemas describing live rooms."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class RoomRead(BaseModel):
    """A live room as held by the in-memory registry."""

    model_config = ConfigDict(populate_by_name=True)

    room_id: str = Field(..., alias="roomId")
    participants: list[str] = Field(default_factory=list, description="Client ids in join order")
    participant_count: int = Field(..., alias="participantCount")
    created_at: datetime = Field(..., alias="createdAt")
    last_activity: datetime = Field(..., alias="lastActivity")
