"""AssemblyAI-compatible transcription provider."""

import logging

import httpx

from captioned_video_mcp.errors import TranscriptionError
from captioned_video_mcp.models import TranscriptionResult, TranscriptionStatus, Word
from .base import TranscriptionProvider

logger = logging.getLogger(__name__)


class AssemblyAIProvider(TranscriptionProvider):
    def __init__(self, base_url: str, api_key: str = "", timeout: float = 30.0):
        self._base_url = base_url.rstrip("/")
        self._headers = {}
        if api_key:
            self._headers["authorization"] = api_key
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers,
            timeout=timeout,
        )

    async def submit(self, media_url: str) -> str:
        try:
            resp = await self._client.post(
                "/v2/transcript",
                json={"audio_url": media_url},
            )
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise TranscriptionError("submission failed", str(e)) from e

        transcript_id = data.get("id")
        if not transcript_id:
            raise TranscriptionError("submission failed", "no transcript id in response")
        logger.info(f"Submitted transcript {transcript_id}")
        return transcript_id

    async def poll(self, transcript_id: str) -> TranscriptionResult:
        try:
            resp = await self._client.get(f"/v2/transcript/{transcript_id}")
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise TranscriptionError("poll request failed", str(e)) from e

        try:
            status = TranscriptionStatus(data.get("status"))
        except ValueError as e:
            raise TranscriptionError(
                "poll request failed", f"unknown status {data.get('status')!r}"
            ) from e

        try:
            words = [
                Word(text=w["text"], start_ms=w["start"], end_ms=w["end"])
                for w in data.get("words") or []
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise TranscriptionError(
                "poll request failed", f"malformed word timing: {e}"
            ) from e

        return TranscriptionResult(
            id=data.get("id", transcript_id),
            status=status,
            words=words,
            error=data.get("error"),
        )

    async def close(self) -> None:
        await self._client.aclose()
