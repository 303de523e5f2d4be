"""External service providers."""

from .base import RenderWorker, StorageProvider, TranscriptionProvider
from .render import RenderWorkerProvider
from .storage import S3StorageProvider
from .transcription import AssemblyAIProvider

__all__ = [
    "TranscriptionProvider",
    "StorageProvider",
    "RenderWorker",
    "AssemblyAIProvider",
    "S3StorageProvider",
    "RenderWorkerProvider",
]
