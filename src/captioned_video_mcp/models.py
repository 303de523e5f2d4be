"""Data models for captions, transcripts and render jobs."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Word(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    start_ms: int
    end_ms: int


class Caption(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: float
    end: float
    text: str


class TranscriptionStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (TranscriptionStatus.COMPLETED, TranscriptionStatus.ERROR)


class TranscriptionResult(BaseModel):
    id: str
    status: TranscriptionStatus
    words: list[Word] = []
    error: str | None = None


class TranscribeOutcome(BaseModel):
    transcript_id: str
    captions: list[Caption] = []
    subtitle_url: str | None = None


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class RenderStyle(str, Enum):
    BOTTOM = "bottom"
    TOP_BAR = "top-bar"
    KARAOKE = "karaoke"


class RenderJob(BaseModel):
    id: str
    status: JobStatus = JobStatus.PENDING
    video_reference: str
    captions: list[Caption] = []
    style: RenderStyle = RenderStyle.BOTTOM
    output_reference: str | None = None
    error: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class RenderOutcome(BaseModel):
    success: bool
    output_location: str | None = None
    error: str | None = None
