"""Schemas for the image analysis proxy."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class ImageAnalysisRequest(BaseModel):
    image: str = Field(..., description="Image encoded as a data URL")
    prompt: str | None = Field(default=None, max_length=2000)

    @field_validator("image")
    @classmethod
    def ensure_data_url(cls, value: str) -> str:
        header, separator, data = value.partition(",")
        if not separator or not data or not header.startswith("data:image/"):
            raise ValueError("image must be a data:image/... URL")
        return value


class ImageAnalysisResponse(BaseModel):
    answer: str
