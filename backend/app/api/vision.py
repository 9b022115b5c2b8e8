"""Image analysis proxy. Stateless; never touches rooms or connections."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from app.config import get_settings
from app.schemas import ImageAnalysisRequest, ImageAnalysisResponse
from app.services.vision import VisionServiceError, VisionUnavailableError, analyze_image

router = APIRouter(tags=["vision"])

logger = logging.getLogger(__name__)


@router.post("/analyze-image", response_model=ImageAnalysisResponse)
async def analyze_image_endpoint(payload: ImageAnalysisRequest) -> ImageAnalysisResponse:
    settings = get_settings()
    try:
        answer = await analyze_image(settings, payload.image, payload.prompt)
    except VisionUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except VisionServiceError as exc:
        logger.warning("Image analysis failed: %s", exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return ImageAnalysisResponse(answer=answer)
