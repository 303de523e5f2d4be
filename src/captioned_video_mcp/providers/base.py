"""Abstract bases for the external services the pipeline drives."""

from abc import ABC, abstractmethod

from captioned_video_mcp.models import Caption, RenderOutcome, RenderStyle, TranscriptionResult


class TranscriptionProvider(ABC):
    @abstractmethod
    async def submit(self, media_url: str) -> str:
        """Start transcribing a media URL. Returns the transcript id."""
        ...

    @abstractmethod
    async def poll(self, transcript_id: str) -> TranscriptionResult:
        """Fetch the current state of a transcript."""
        ...

    async def close(self) -> None:
        pass


class StorageProvider(ABC):
    bucket: str | None = None

    @abstractmethod
    async def put(self, data: bytes, key: str, content_type: str) -> str:
        """Store an object and return its durable reference."""
        ...

    @abstractmethod
    async def presign(self, key: str, ttl: int) -> str:
        """Return a URL granting credential-free read access for ``ttl`` seconds."""
        ...

    async def close(self) -> None:
        pass


class RenderWorker(ABC):
    @abstractmethod
    async def render(
        self,
        video_url: str,
        captions: list[Caption],
        style: RenderStyle,
        out_path: str,
    ) -> RenderOutcome:
        """Render captions onto a video and report where the output landed."""
        ...

    @abstractmethod
    async def download(self, output_location: str) -> bytes:
        """Fetch a rendered artifact from the worker."""
        ...

    async def close(self) -> None:
        pass
