"""Captioned Video MCP Server."""

import json
import logging
import sys
import time
from collections import deque
from contextlib import asynccontextmanager
from typing import Annotated, Literal

from pydantic import Field
from mcp.server.fastmcp import FastMCP

from captioned_video_mcp.backoff import PollSchedule
from captioned_video_mcp.cache import TranscriptCache
from captioned_video_mcp.captions import encode_srt, validate_captions
from captioned_video_mcp.config import Settings, Transport
from captioned_video_mcp.errors import CaptionPipelineError, JobNotFoundError
from captioned_video_mcp.jobs import RenderJobStore, RenderOrchestrator
from captioned_video_mcp.models import Caption, RenderJob
from captioned_video_mcp.providers.render import RenderWorkerProvider
from captioned_video_mcp.providers.storage import S3StorageProvider
from captioned_video_mcp.providers.transcription import AssemblyAIProvider
from captioned_video_mcp.transcriber import CaptionPipeline, Transcriber
from captioned_video_mcp.utils import format_timecode, storage_key_from_reference

# Logging to stderr (MCP convention)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger("captioned-video-mcp")

# Module-level state
_settings = None
_storage = None
_pipeline = None
_store = None
_orchestrator = None
_providers = []
_rate_window = deque()

# Tools that only read state
READ_ANNOTATIONS = {
    "readOnlyHint": True,
    "destructiveHint": False,
    "openWorldHint": True,
}

# Tools that start external work
WRITE_ANNOTATIONS = {
    "readOnlyHint": False,
    "destructiveHint": False,
    "openWorldHint": True,
}


@asynccontextmanager
async def app_lifespan(server: FastMCP):
    global _settings, _storage, _pipeline, _store, _orchestrator, _providers, _rate_window
    _settings = Settings()
    _rate_window = deque()

    _storage = S3StorageProvider(
        bucket=_settings.s3_bucket,
        region=_settings.s3_region,
        access_key=_settings.aws_access_key_id,
        secret_key=_settings.aws_secret_access_key,
        endpoint_url=_settings.s3_endpoint_url,
    )
    transcription = AssemblyAIProvider(
        base_url=_settings.transcription_url,
        api_key=_settings.transcription_api_key,
        timeout=_settings.poll_request_timeout,
    )
    worker = RenderWorkerProvider(
        base_url=_settings.render_url,
        api_key=_settings.render_api_key,
        timeout=_settings.render_timeout_seconds,
    )
    _providers = [_storage, transcription, worker]

    settings = _settings

    def schedule_factory() -> PollSchedule:
        return PollSchedule(
            max_attempts=settings.poll_max_attempts,
            max_seconds=settings.poll_max_seconds,
            initial_delay=settings.poll_initial_delay,
            max_delay=settings.poll_max_delay,
        )

    _pipeline = CaptionPipeline(
        Transcriber(transcription, schedule_factory=schedule_factory),
        _storage,
        cache=TranscriptCache(
            max_size=_settings.cache_max_size,
            ttl=_settings.cache_ttl_seconds,
        ),
        url_ttl=_settings.transcribe_url_ttl,
    )
    _store = RenderJobStore()
    _orchestrator = RenderOrchestrator(
        _store,
        _storage,
        worker,
        render_timeout=_settings.render_timeout_seconds,
        input_url_ttl=_settings.render_input_url_ttl,
        output_url_ttl=_settings.output_url_ttl,
    )

    if not _settings.s3_bucket:
        logger.warning("CAPTION_MCP_S3_BUCKET is not set; storage operations will fail")
    logger.info(
        f"Server started (transcription={_settings.transcription_url}, "
        f"render={_settings.render_url})"
    )
    yield

    await _orchestrator.shutdown()
    for provider in _providers:
        await provider.close()
    logger.info("Server stopped")


mcp = FastMCP(
    "Captioned Video",
    instructions="Transcribe stored videos into captions and render captioned videos",
    lifespan=app_lifespan,
)


def _check_rate_limit():
    """Sliding window rate limit."""
    now = time.time()
    limit = (_settings.rate_limit_per_minute if _settings else 30)
    while _rate_window and _rate_window[0] < now - 60:
        _rate_window.popleft()
    if len(_rate_window) >= limit:
        raise ValueError(
            f"Rate limit exceeded ({limit}/min). Try again in a few seconds."
        )
    _rate_window.append(now)


def _captions_to_markdown(captions: list[Caption]) -> str:
    lines = []
    for c in captions:
        lines.append(f"**[{format_timecode(c.start)} - {format_timecode(c.end)}]** {c.text}")
    return "\n".join(lines)


def _job_to_json(job: RenderJob) -> str:
    return job.model_dump_json(indent=2)


@mcp.tool(annotations=WRITE_ANNOTATIONS)
async def transcribe_video(
    media: Annotated[str, Field(description="Storage key (e.g. uploads/abc.mp4), S3 URL, or public http(s) URL of the video to transcribe")],
    max_words_per_caption: Annotated[int | None, Field(default=None, ge=1, le=50, description="Maximum number of words grouped into one caption (server default: 8)")] = None,
    format: Annotated[Literal["captions", "srt", "both"], Field(default="captions", description="Output format: captions for timestamped caption lines, srt for SubRip text, both for combined output")] = "captions",
) -> str:
    """Transcribe a video into timed captions and upload a SubRip (.srt) subtitle file."""
    _check_rate_limit()

    if not media.strip():
        return "Error: Media reference cannot be empty."

    try:
        if max_words_per_caption is None:
            max_words_per_caption = _settings.max_words_per_caption
        outcome = await _pipeline.run(media, max_words_per_caption)
    except CaptionPipelineError as e:
        return f"Error transcribing {media}: {e}"

    subtitle = outcome.subtitle_url or "upload failed"
    header = (
        f"## Captions: {media}\n"
        f"**Transcript:** {outcome.transcript_id} | **Captions:** {len(outcome.captions)} | "
        f"**Subtitle file:** {subtitle}\n"
    )

    if format == "srt":
        body = f"```srt\n{encode_srt(outcome.captions)}```"
    elif format == "both":
        body = (
            f"### Captions\n{_captions_to_markdown(outcome.captions)}\n\n"
            f"### SubRip\n```srt\n{encode_srt(outcome.captions)}```"
        )
    else:
        body = _captions_to_markdown(outcome.captions)

    return f"{header}\n{body}"


@mcp.tool(annotations=WRITE_ANNOTATIONS)
async def create_render_job(
    video: Annotated[str, Field(description="Storage key, S3 URL, or public http(s) URL of the source video")],
    captions: Annotated[list[Caption], Field(description="Captions to burn in, each with start and end in seconds and text")],
    style: Annotated[Literal["bottom", "top-bar", "karaoke"], Field(default="bottom", description="Caption style used by the renderer")] = "bottom",
) -> str:
    """Start rendering a captioned video in the background and return the job id to poll."""
    _check_rate_limit()

    if not video.strip():
        return "Error: Video reference cannot be empty."

    try:
        validate_captions(captions)
    except CaptionPipelineError as e:
        return f"Error: Invalid captions: {e}"

    job = _store.create(video, captions, style)
    _orchestrator.start(job.id)
    logger.info(f"Render job {job.id} created for {video} ({len(captions)} captions)")
    return json.dumps({"job_id": job.id, "status": job.status.value})


@mcp.tool(annotations=READ_ANNOTATIONS)
async def get_render_job(
    job_id: Annotated[str, Field(description="Job id returned by create_render_job")],
) -> str:
    """Get the current state of a render job, including its output URL once completed."""
    try:
        job = _store.get(job_id)
    except JobNotFoundError as e:
        return f"Error: {e}"
    return _job_to_json(job)


@mcp.tool(annotations=READ_ANNOTATIONS)
async def list_render_jobs() -> str:
    """List all render jobs known to this server, newest first."""
    jobs = _store.list()
    if not jobs:
        return "No render jobs yet."

    lines = [f"## Render Jobs ({len(jobs)})\n"]
    for job in jobs:
        detail = job.output_reference or job.error or ""
        lines.append(
            f"- `{job.id}` **{job.status.value}** ({job.style.value}, "
            f"{len(job.captions)} captions) {detail}".rstrip()
        )
    return "\n".join(lines)


@mcp.tool(annotations=READ_ANNOTATIONS)
async def get_preview_url(
    media: Annotated[str, Field(description="Storage key or S3 URL of an uploaded video")],
) -> str:
    """Get a temporary URL for previewing a stored video."""
    key = storage_key_from_reference(media, _storage.bucket)
    if not key:
        return f"Error: Not a storage key or S3 URL: {media}"

    try:
        url = await _storage.presign(key, _settings.preview_url_ttl)
    except CaptionPipelineError as e:
        return f"Error creating preview URL for {key}: {e}"
    return url


# -- MCP Prompts --


@mcp.prompt()
def caption_and_render(
    video: Annotated[str, Field(description="Storage key or URL of the video to caption")],
    style: Annotated[str, Field(description="Caption style: bottom, top-bar or karaoke")] = "bottom",
) -> str:
    """Transcribe a video and render it with burned-in captions."""
    return f"""Please use the transcribe_video tool to create captions for this video: {video}

Then:
1. Review the captions and fix obvious transcription mistakes
2. Call create_render_job with the video, the corrected captions and style "{style}"
3. Poll get_render_job with the returned job id until the status is completed or failed
4. Report the output URL, or the error if the job failed"""


# -- MCP Resources --


@mcp.resource("captions://help")
def help_resource() -> str:
    """Usage guide for the Captioned Video MCP server with examples for all tools."""
    return """# Captioned Video MCP Server - Help Guide

## Available Tools

### transcribe_video
Transcribe a stored video into timed captions.
- Accepts a storage key (uploads/abc.mp4), an S3 URL, or a public URL
- Groups words into captions (default: 8 words per caption)
- Uploads a SubRip (.srt) file next to the video
- Example: transcribe_video(media="uploads/abc.mp4", format="both")

### create_render_job
Render a video with burned-in captions in the background.
- Styles: bottom, top-bar, karaoke
- Returns a job id immediately
- Example: create_render_job(video="uploads/abc.mp4", captions=[{"start": 0, "end": 2.5, "text": "Hello"}])

### get_render_job
Check a render job. Status moves pending -> processing -> completed or failed.

### list_render_jobs
List all render jobs, newest first.

### get_preview_url
Get a temporary URL to preview a stored video.

## Tips
- Transcription can take several minutes for long videos
- Completed jobs carry a download URL that expires after 24 hours
"""


def main():
    settings = Settings()
    if settings.transport == Transport.STREAMABLE_HTTP:
        mcp.run(transport="streamable-http")
    else:
        mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
