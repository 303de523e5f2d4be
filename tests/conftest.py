"""Shared test fixtures."""

import asyncio

import pytest

from captioned_video_mcp.errors import RenderFailure, StorageError
from captioned_video_mcp.models import Caption, RenderOutcome, TranscriptionResult, Word
from captioned_video_mcp.providers.base import RenderWorker, StorageProvider, TranscriptionProvider


class FakeClock:
    """Manual clock whose sleep advances time instead of waiting."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeStorage(StorageProvider):
    def __init__(self):
        self.bucket = "test-bucket"
        self.objects = {}
        self.presigned = []
        self.fail_put = False
        self.fail_presign_keys = set()

    async def put(self, data, key, content_type):
        if self.fail_put:
            raise StorageError("upload refused")
        self.objects[key] = (data, content_type)
        return f"https://test-bucket.s3.us-east-1.amazonaws.com/{key}"

    async def presign(self, key, ttl):
        if key in self.fail_presign_keys:
            raise StorageError(f"cannot sign {key}")
        self.presigned.append((key, ttl))
        return f"https://signed.example/{key}?ttl={ttl}"


class FakeWorker(RenderWorker):
    def __init__(self):
        self.outcome = RenderOutcome(success=True, output_location="out/video.mp4")
        self.render_error = None
        self.hang = False
        self.calls = []
        self.payload = b"rendered-bytes"

    async def render(self, video_url, captions, style, out_path):
        self.calls.append((video_url, list(captions), style, out_path))
        if self.hang:
            await asyncio.Event().wait()
        if self.render_error:
            raise self.render_error
        return self.outcome

    async def download(self, output_location):
        if output_location is None:
            raise RenderFailure("rendered video not found")
        return self.payload


class FakeTranscription(TranscriptionProvider):
    """Returns queued results until ``results`` runs out, then repeats the last."""

    def __init__(self, results=None, transcript_id="tr_123"):
        self.transcript_id = transcript_id
        self.results = list(results or [])
        self.submitted = []
        self.polls = 0

    async def submit(self, media_url):
        self.submitted.append(media_url)
        return self.transcript_id

    async def poll(self, transcript_id):
        self.polls += 1
        if len(self.results) > 1:
            return self.results.pop(0)
        if self.results:
            return self.results[0]
        return TranscriptionResult(id=transcript_id, status="processing")


@pytest.fixture
def sample_words():
    return [
        Word(text="Hello", start_ms=0, end_ms=500),
        Word(text="world", start_ms=500, end_ms=1000),
        Word(text="this", start_ms=1000, end_ms=1500),
        Word(text="is", start_ms=1500, end_ms=2000),
        Word(text="a", start_ms=2000, end_ms=2200),
        Word(text="test", start_ms=2200, end_ms=2700),
    ]


@pytest.fixture
def sample_captions():
    return [
        Caption(start=0.0, end=2.5, text="Hello world"),
        Caption(start=2.5, end=5.0, text="This is a test"),
    ]


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_storage():
    return FakeStorage()


@pytest.fixture
def fake_worker():
    return FakeWorker()


@pytest.fixture
def make_transcription():
    return FakeTranscription
