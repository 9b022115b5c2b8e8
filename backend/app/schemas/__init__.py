"""Pydantic schemas exposed by the HTTP API."""

from .rooms import RoomRead
from .vision import ImageAnalysisRequest, ImageAnalysisResponse

__all__ = ["RoomRead", "ImageAnalysisRequest", "ImageAnalysisResponse"]
