"""Tests for MCP tool functions."""

import json

import pytest
from unittest.mock import AsyncMock, MagicMock

from captioned_video_mcp import server
from captioned_video_mcp.errors import TranscriptionError
from captioned_video_mcp.jobs import RenderJobStore, RenderOrchestrator
from captioned_video_mcp.models import Caption, RenderOutcome, TranscribeOutcome


@pytest.fixture
def outcome(sample_captions):
    return TranscribeOutcome(
        transcript_id="tr_123",
        captions=sample_captions,
        subtitle_url="https://test-bucket.s3.us-east-1.amazonaws.com/captions/tr_123.srt",
    )


@pytest.fixture(autouse=True)
def setup_server_state(outcome, fake_storage, fake_worker):
    """Set up server module state for testing."""
    server._pipeline = AsyncMock()
    server._pipeline.run = AsyncMock(return_value=outcome)
    server._storage = fake_storage
    server._store = RenderJobStore()
    server._orchestrator = RenderOrchestrator(server._store, fake_storage, fake_worker)
    server._settings = MagicMock()
    server._settings.rate_limit_per_minute = 100
    server._settings.preview_url_ttl = 3600
    server._settings.max_words_per_caption = 8
    server._rate_window.clear()
    yield
    server._rate_window.clear()


class TestTranscribeVideo:
    @pytest.mark.asyncio
    async def test_captions_format(self):
        result = await server.transcribe_video("uploads/a.mp4")
        assert "## Captions: uploads/a.mp4" in result
        assert "**Transcript:** tr_123" in result
        assert "**[00:00:00,000 - 00:00:02,500]** Hello world" in result
        assert "captions/tr_123.srt" in result
        server._pipeline.run.assert_awaited_once_with("uploads/a.mp4", 8)

    @pytest.mark.asyncio
    async def test_srt_format(self):
        result = await server.transcribe_video("uploads/a.mp4", 4, format="srt")
        assert "1\n00:00:00,000 --> 00:00:02,500\nHello world\n" in result
        assert "**[" not in result
        server._pipeline.run.assert_awaited_once_with("uploads/a.mp4", 4)

    @pytest.mark.asyncio
    async def test_both_format(self):
        result = await server.transcribe_video("uploads/a.mp4", format="both")
        assert "### Captions" in result
        assert "### SubRip" in result
        assert "2\n00:00:02,500 --> 00:00:05,000\nThis is a test" in result

    @pytest.mark.asyncio
    async def test_upload_failed(self, outcome):
        server._pipeline.run.return_value = outcome.model_copy(update={"subtitle_url": None})
        result = await server.transcribe_video("uploads/a.mp4")
        assert "**Subtitle file:** upload failed" in result

    @pytest.mark.asyncio
    async def test_transcription_error(self):
        server._pipeline.run.side_effect = TranscriptionError("timeout", "still processing")
        result = await server.transcribe_video("uploads/a.mp4")
        assert result == "Error transcribing uploads/a.mp4: timeout: still processing"

    @pytest.mark.asyncio
    async def test_empty_media(self):
        result = await server.transcribe_video("  ")
        assert "Error: Media reference cannot be empty" in result
        server._pipeline.run.assert_not_awaited()


class TestRenderJobs:
    @pytest.mark.asyncio
    async def test_create_and_complete(self, sample_captions, fake_worker):
        result = json.loads(await server.create_render_job("uploads/a.mp4", sample_captions, "top-bar"))
        assert result["status"] == "pending"

        await server._orchestrator.wait(result["job_id"])
        job = json.loads(await server.get_render_job(result["job_id"]))
        assert job["status"] == "completed"
        assert job["style"] == "top-bar"
        assert job["output_reference"].startswith("https://signed.example/output/video_")
        assert job["error"] is None
        assert fake_worker.calls[0][2].value == "top-bar"

    @pytest.mark.asyncio
    async def test_failed_job_reports_error(self, sample_captions, fake_worker):
        fake_worker.outcome = RenderOutcome(success=False, error="ffmpeg exited with code 1")
        result = json.loads(await server.create_render_job("uploads/a.mp4", sample_captions))

        await server._orchestrator.wait(result["job_id"])
        job = json.loads(await server.get_render_job(result["job_id"]))
        assert job["status"] == "failed"
        assert job["error"] == "ffmpeg exited with code 1"
        assert job["output_reference"] is None

    @pytest.mark.asyncio
    async def test_invalid_captions(self):
        bad = [Caption(start=2.0, end=1.0, text="backwards")]
        result = await server.create_render_job("uploads/a.mp4", bad)
        assert result.startswith("Error: Invalid captions")
        assert len(server._store) == 0

    @pytest.mark.asyncio
    async def test_empty_video(self, sample_captions):
        result = await server.create_render_job("", sample_captions)
        assert "Error: Video reference cannot be empty" in result
        assert len(server._store) == 0

    @pytest.mark.asyncio
    async def test_unknown_job(self):
        result = await server.get_render_job("nope")
        assert result == "Error: Render job not found: nope"

    @pytest.mark.asyncio
    async def test_list_empty(self):
        assert await server.list_render_jobs() == "No render jobs yet."

    @pytest.mark.asyncio
    async def test_list(self, sample_captions):
        first = json.loads(await server.create_render_job("uploads/a.mp4", sample_captions))
        second = json.loads(await server.create_render_job("uploads/b.mp4", [], "karaoke"))
        await server._orchestrator.wait(first["job_id"])
        await server._orchestrator.wait(second["job_id"])

        result = await server.list_render_jobs()
        assert "## Render Jobs (2)" in result
        assert f"`{first['job_id']}` **completed** (bottom, 2 captions)" in result
        assert f"`{second['job_id']}` **completed** (karaoke, 0 captions)" in result


class TestGetPreviewUrl:
    @pytest.mark.asyncio
    async def test_storage_key(self, fake_storage):
        result = await server.get_preview_url("uploads/a.mp4")
        assert result == "https://signed.example/uploads/a.mp4?ttl=3600"
        assert fake_storage.presigned == [("uploads/a.mp4", 3600)]

    @pytest.mark.asyncio
    async def test_s3_url(self):
        result = await server.get_preview_url("s3://test-bucket/uploads/a.mp4")
        assert result == "https://signed.example/uploads/a.mp4?ttl=3600"

    @pytest.mark.asyncio
    async def test_other_bucket_rejected(self, fake_storage):
        result = await server.get_preview_url("s3://other-bucket/uploads/a.mp4")
        assert result.startswith("Error: Not a storage key")
        assert fake_storage.presigned == []

    @pytest.mark.asyncio
    async def test_public_url_rejected(self):
        result = await server.get_preview_url("https://cdn.example.com/a.mp4")
        assert result.startswith("Error: Not a storage key")

    @pytest.mark.asyncio
    async def test_presign_failure(self, fake_storage):
        fake_storage.fail_presign_keys.add("uploads/a.mp4")
        result = await server.get_preview_url("uploads/a.mp4")
        assert result == "Error creating preview URL for uploads/a.mp4: cannot sign uploads/a.mp4"


class TestRateLimit:
    @pytest.mark.asyncio
    async def test_rate_limit_exceeded(self):
        server._settings.rate_limit_per_minute = 2
        await server.transcribe_video("uploads/a.mp4")
        await server.transcribe_video("uploads/a.mp4")
        with pytest.raises(ValueError, match="Rate limit exceeded"):
            server._check_rate_limit()


class TestPromptsAndResources:
    def test_prompt_mentions_style(self):
        text = server.caption_and_render("uploads/a.mp4", "karaoke")
        assert "uploads/a.mp4" in text
        assert 'style "karaoke"' in text

    def test_help_resource(self):
        assert "create_render_job" in server.help_resource()
