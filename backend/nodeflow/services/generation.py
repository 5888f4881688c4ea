"""HTTP client for the image generation backend."""
from typing import Any

import httpx

from ..config import settings
from ..utils.logger import get_logger

logger = get_logger(__name__)


class GenerationError(RuntimeError):
    pass


class GenerationClient:
    """Posts generation requests and returns the first produced image URL.

    The backend answers ``{"success": true, "images": [{"url": ...}]}`` or
    ``{"success": false, "error": "..."}``.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url or settings.generation_backend_url
        self.timeout = timeout if timeout is not None else settings.generation_timeout
        self._client = client

    async def generate(
        self,
        prompt: str,
        negative: str = "",
        options: dict[str, Any] | None = None,
        references: list[str] | None = None,
        backend: str | None = None,
    ) -> str:
        options = options or {}
        payload = {
            "apiId": backend,
            "prompt": prompt,
            "negativePrompt": negative,
            "aspectRatio": options.get("aspectRatio") or "1:1",
            "imageSize": options.get("imageSize") or "2K",
            "outputCount": 1,
            "referenceImagePaths": references or [],
            "mode": options.get("generationSpeed") or "fast",
        }

        logger.debug(f"Generation request to {self.base_url} (backend={backend})")
        resp = await self._post(payload)

        try:
            data = resp.json()
        except ValueError:
            data = None

        if resp.is_error:
            error = data.get("error") if isinstance(data, dict) else None
            raise GenerationError(error or f"HTTP {resp.status_code}")
        if not isinstance(data, dict):
            raise GenerationError("Generation backend returned invalid JSON")

        images = data.get("images") or []
        if not data.get("success") or not images:
            raise GenerationError(data.get("error") or "No image generated")
        first = images[0]
        url = first.get("url") if isinstance(first, dict) else first
        if not url:
            raise GenerationError("No image generated")
        return str(url)

    async def _post(self, payload: dict[str, Any]) -> httpx.Response:
        try:
            if self._client is not None:
                return await self._client.post(self.base_url, json=payload)
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await client.post(self.base_url, json=payload)
        except httpx.TimeoutException as e:
            raise GenerationError(f"Generation timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise GenerationError(f"Generation request failed: {e}") from e
