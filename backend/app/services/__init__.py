"""Service helpers used by the HTTP API."""

from .vision import VisionServiceError, VisionUnavailableError, analyze_image

__all__ = ["VisionServiceError", "VisionUnavailableError", "analyze_image"]
