"""Error types raised by the caption and render pipeline."""


class CaptionPipelineError(Exception):
    """Base class for all pipeline errors."""


class ValidationError(CaptionPipelineError, ValueError):
    """Malformed words, captions or subtitle text. Never retried."""


class TranscriptionError(CaptionPipelineError):
    def __init__(self, reason: str, detail: str | None = None):
        self.reason = reason
        self.detail = detail
        message = reason if not detail else f"{reason}: {detail}"
        super().__init__(message)


class RenderFailure(CaptionPipelineError):
    """Orchestration failure. Recorded on the job, never raised to callers."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class StorageError(CaptionPipelineError):
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class JobNotFoundError(CaptionPipelineError, KeyError):
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(job_id)

    def __str__(self) -> str:
        return f"Render job not found: {self.job_id}"


class InvalidTransitionError(CaptionPipelineError):
    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move job from {current} to {target}")
