"""Client for an OpenAI compatible vision model."""

from __future__ import annotations

from typing import Any

import httpx

from app.config import Settings


class VisionServiceError(RuntimeError):
    """Raised when the upstream model call fails or returns no answer."""


class VisionUnavailableError(VisionServiceError):
    """Raised when no vision endpoint is configured."""


def build_client(settings: Settings) -> httpx.AsyncClient:
    headers = {}
    if settings.vision_api_key:
        headers["Authorization"] = f"Bearer {settings.vision_api_key}"
    return httpx.AsyncClient(timeout=settings.vision_timeout_seconds, headers=headers)


def _extract_answer(body: Any) -> str:
    try:
        content = body["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise VisionServiceError("Vision service returned an unexpected response") from exc
    if isinstance(content, list):
        # Some providers return content parts instead of a plain string.
        content = "".join(
            part.get("text", "") for part in content if isinstance(part, dict)
        )
    if not isinstance(content, str) or not content.strip():
        raise VisionServiceError("Vision service returned an empty answer")
    return content.strip()


async def analyze_image(settings: Settings, image: str, prompt: str | None = None) -> str:
    """Ask the configured model about *image* (a data URL) and return its answer."""

    if settings.vision_api_url is None:
        raise VisionUnavailableError("Image analysis is not configured")

    request_body = {
        "model": settings.vision_model,
        "messages": [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt or settings.vision_prompt},
                    {"type": "image_url", "image_url": {"url": image}},
                ],
            }
        ],
    }
    try:
        async with build_client(settings) as client:
            response = await client.post(str(settings.vision_api_url), json=request_body)
            response.raise_for_status()
            body = response.json()
    except httpx.HTTPStatusError as exc:
        raise VisionServiceError(
            f"Vision service responded with status {exc.response.status_code}"
        ) from exc
    except httpx.HTTPError as exc:
        raise VisionServiceError("Vision service is unreachable") from exc
    except ValueError as exc:
        raise VisionServiceError("Vision service returned invalid JSON") from exc
    return _extract_answer(body)
