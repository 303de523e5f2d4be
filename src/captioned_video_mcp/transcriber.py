"""Transcription polling and the media -> captions -> subtitle pipeline."""

import logging
from collections.abc import Callable

from captioned_video_mcp.backoff import PollSchedule
from captioned_video_mcp.cache import TranscriptCache
from captioned_video_mcp.captions import DEFAULT_MAX_WORDS_PER_CAPTION, encode_srt, segment
from captioned_video_mcp.errors import StorageError, TranscriptionError, ValidationError
from captioned_video_mcp.models import TranscribeOutcome, TranscriptionResult, TranscriptionStatus
from captioned_video_mcp.providers.base import StorageProvider, TranscriptionProvider
from captioned_video_mcp.utils import storage_key_from_reference

logger = logging.getLogger(__name__)


class Transcriber:
    """Submits media for transcription and polls until it finishes.

    Polling follows a fresh ``PollSchedule`` per call. Cancelling the task
    running ``transcribe`` interrupts a pending backoff wait right away.
    """

    def __init__(
        self,
        provider: TranscriptionProvider,
        schedule_factory: Callable[[], PollSchedule] = PollSchedule,
    ):
        self._provider = provider
        self._schedule_factory = schedule_factory

    async def transcribe(self, media_url: str) -> TranscriptionResult:
        transcript_id = await self._provider.submit(media_url)

        schedule = self._schedule_factory()
        async for attempt in schedule:
            result = await self._provider.poll(transcript_id)
            logger.debug(f"Transcript {transcript_id} poll {attempt}: {result.status.value}")
            if result.status == TranscriptionStatus.COMPLETED:
                logger.info(
                    f"Transcript {transcript_id} completed with {len(result.words)} words"
                )
                return result
            if result.status == TranscriptionStatus.ERROR:
                raise TranscriptionError("transcription failed", result.error)

        logger.warning(
            f"Transcript {transcript_id} timed out after {schedule.attempts} polls "
            f"({schedule.elapsed():.0f}s)"
        )
        raise TranscriptionError(
            "timeout", f"no result after {schedule.attempts} polls"
        )


class CaptionPipeline:
    """Turns a stored video into captions plus an uploaded .srt file."""

    def __init__(
        self,
        transcriber: Transcriber,
        storage: StorageProvider,
        cache: TranscriptCache | None = None,
        url_ttl: int = 3600,
    ):
        self._transcriber = transcriber
        self._storage = storage
        self._cache = cache
        self._url_ttl = url_ttl

    async def run(
        self,
        media_reference: str,
        max_words_per_caption: int = DEFAULT_MAX_WORDS_PER_CAPTION,
    ) -> TranscribeOutcome:
        key = storage_key_from_reference(media_reference, self._storage.bucket)
        if key:
            if self._cache is not None:
                cached = self._cache.get(key, max_words_per_caption)
                if cached is not None:
                    return cached
            media_url = await self._storage.presign(key, self._url_ttl)
        elif media_reference.startswith(("http://", "https://")):
            media_url = media_reference
        else:
            raise ValidationError(f"Unsupported media reference: {media_reference!r}")

        result = await self._transcriber.transcribe(media_url)
        captions = segment(result.words, max_words_per_caption)
        srt = encode_srt(captions)

        subtitle_url = None
        try:
            subtitle_url = await self._storage.put(
                srt.encode("utf-8"), f"captions/{result.id}.srt", "text/plain"
            )
        except StorageError as e:
            # Captions are still returned; only the artifact is missing.
            logger.warning(f"Failed to upload subtitles for transcript {result.id}: {e}")

        outcome = TranscribeOutcome(
            transcript_id=result.id,
            captions=captions,
            subtitle_url=subtitle_url,
        )
        if key and self._cache is not None:
            self._cache.set(key, max_words_per_caption, outcome)
        return outcome
