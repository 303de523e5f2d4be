"""In-memory TTL cache for finished transcriptions."""

from cachetools import TTLCache

from captioned_video_mcp.models import TranscribeOutcome


class TranscriptCache:
    """Caches transcription outcomes per media key and caption size.

    Only complete outcomes (with an uploaded subtitle file) are stored, so a
    transient upload failure is retried on the next request.
    """

    def __init__(self, max_size: int = 100, ttl: int = 3600):
        self._cache: TTLCache = TTLCache(maxsize=max_size, ttl=ttl)
        self._hits = 0
        self._misses = 0

    @staticmethod
    def _key(media_key: str, max_words: int) -> tuple[str, int]:
        return (media_key, max_words)

    def get(self, media_key: str, max_words: int) -> TranscribeOutcome | None:
        data = self._cache.get(self._key(media_key, max_words))
        if data is None:
            self._misses += 1
            return None
        self._hits += 1
        return TranscribeOutcome.model_validate(data)

    def set(self, media_key: str, max_words: int, outcome: TranscribeOutcome) -> bool:
        if outcome.subtitle_url is None:
            return False
        self._cache[self._key(media_key, max_words)] = outcome.model_dump()
        return True

    def stats(self) -> dict:
        return {
            "size": len(self._cache),
            "max_size": self._cache.maxsize,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / max(self._hits + self._misses, 1) * 100, 1),
        }
