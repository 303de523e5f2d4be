"""Render worker provider that calls the caption rendering service."""

import logging
import posixpath

import httpx

from captioned_video_mcp.errors import RenderFailure
from captioned_video_mcp.models import Caption, RenderOutcome, RenderStyle
from .base import RenderWorker

logger = logging.getLogger(__name__)


class RenderWorkerProvider(RenderWorker):
    def __init__(self, base_url: str, api_key: str = "", timeout: float = 600.0):
        self._base_url = base_url.rstrip("/")
        self._headers = {}
        if api_key:
            self._headers["x-api-key"] = api_key
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers,
            timeout=timeout,
        )

    async def render(
        self,
        video_url: str,
        captions: list[Caption],
        style: RenderStyle,
        out_path: str,
    ) -> RenderOutcome:
        payload = {
            "videoUrl": video_url,
            "captions": [c.model_dump() for c in captions],
            "style": RenderStyle(style).value,
            "outPath": out_path,
        }
        try:
            resp = await self._client.post("/render", json=payload)
        except httpx.TimeoutException as e:
            raise RenderFailure("render request timed out") from e
        except httpx.HTTPError as e:
            raise RenderFailure(f"render worker unavailable: {e}") from e

        # The worker reports failures as JSON bodies on non-2xx responses too.
        try:
            data = resp.json()
        except ValueError as e:
            raise RenderFailure(
                f"invalid response from render worker (HTTP {resp.status_code})"
            ) from e

        if data.get("success") is True:
            location = data.get("outPath")
            if not location:
                raise RenderFailure("render worker reported success without an output path")
            return RenderOutcome(success=True, output_location=location)

        error = data.get("error") or f"render failed (HTTP {resp.status_code})"
        logger.warning(f"Render worker reported failure: {error}")
        return RenderOutcome(success=False, error=error)

    async def download(self, output_location: str) -> bytes:
        filename = posixpath.basename(output_location.replace("\\", "/"))
        try:
            resp = await self._client.get(f"/download/{filename}")
        except httpx.HTTPError as e:
            raise RenderFailure(f"failed to download rendered video: {e}") from e
        if resp.status_code != 200:
            raise RenderFailure("rendered video not found")
        return resp.content

    async def close(self) -> None:
        await self._client.aclose()
