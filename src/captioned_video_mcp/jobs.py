"""Render job store and the background orchestration that drives jobs."""

import asyncio
import logging
import threading
import uuid
from collections.abc import Callable, Iterable
from datetime import datetime

from captioned_video_mcp.errors import (
    CaptionPipelineError,
    InvalidTransitionError,
    JobNotFoundError,
    RenderFailure,
    StorageError,
)
from captioned_video_mcp.models import Caption, JobStatus, RenderJob, RenderStyle, utcnow
from captioned_video_mcp.providers.base import RenderWorker, StorageProvider
from captioned_video_mcp.utils import storage_key_from_reference

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.PROCESSING}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


class RenderJobStore:
    """Process-lifetime registry of render jobs.

    The store owns the canonical record for every job. Callers only ever
    receive deep copies, and all changes go through ``update``, which runs
    the mutation against a private draft under the lock and swaps it in
    only if the mutation succeeds. Readers therefore never observe a
    partially applied update.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = lambda: uuid.uuid4().hex,
    ):
        self._jobs: dict[str, RenderJob] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self._id_factory = id_factory

    def create(
        self,
        video_reference: str,
        captions: Iterable[Caption],
        style: RenderStyle | str = RenderStyle.BOTTOM,
    ) -> RenderJob:
        now = self._clock()
        with self._lock:
            job_id = self._id_factory()
            while job_id in self._jobs:
                job_id = self._id_factory()
            job = RenderJob(
                id=job_id,
                status=JobStatus.PENDING,
                video_reference=video_reference,
                captions=list(captions),
                style=RenderStyle(style),
                created_at=now,
                updated_at=now,
            )
            self._jobs[job_id] = job
            return job.model_copy(deep=True)

    def get(self, job_id: str) -> RenderJob:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise JobNotFoundError(job_id)
            return job.model_copy(deep=True)

    def update(self, job_id: str, mutate: Callable[[RenderJob], None]) -> RenderJob:
        """Atomically apply ``mutate`` to a job and refresh ``updated_at``.

        ``mutate`` runs while the store is locked, so it must not block.
        If it raises, the stored record is left untouched.
        """
        with self._lock:
            current = self._jobs.get(job_id)
            if current is None:
                raise JobNotFoundError(job_id)
            draft = current.model_copy(deep=True)
            mutate(draft)
            draft.id = current.id
            draft.updated_at = self._clock()
            self._jobs[job_id] = draft
            return draft.model_copy(deep=True)

    def list(self) -> list[RenderJob]:
        with self._lock:
            jobs = [job.model_copy(deep=True) for job in self._jobs.values()]
        return sorted(jobs, key=lambda j: j.created_at, reverse=True)

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)


class RenderOrchestrator:
    """Runs render jobs as fire-and-forget asyncio tasks.

    Each job moves pending -> processing -> completed | failed exactly once.
    Nothing is raised out of a background task: every failure ends up on
    the job's ``error`` field.
    """

    def __init__(
        self,
        store: RenderJobStore,
        storage: StorageProvider,
        worker: RenderWorker,
        render_timeout: float = 600.0,
        input_url_ttl: int = 7200,
        output_url_ttl: int = 86400,
    ):
        self._store = store
        self._storage = storage
        self._worker = worker
        self._render_timeout = render_timeout
        self._input_url_ttl = input_url_ttl
        self._output_url_ttl = output_url_ttl
        self._tasks: dict[str, asyncio.Task] = {}

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def start(self, job_id: str) -> asyncio.Task:
        """Schedule a pending job and return without waiting for it."""
        job = self._store.get(job_id)
        if job_id in self._tasks or job.status != JobStatus.PENDING:
            raise InvalidTransitionError(job.status.value, JobStatus.PROCESSING.value)

        task = asyncio.create_task(self._run(job_id), name=f"render-{job_id}")
        self._tasks[job_id] = task
        task.add_done_callback(lambda _: self._tasks.pop(job_id, None))
        return task

    async def wait(self, job_id: str) -> RenderJob:
        """Wait for an in-flight job to finish and return its final snapshot."""
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.wait({task})
        return self._store.get(job_id)

    async def shutdown(self) -> None:
        """Cancel in-flight jobs and leave every one of them in a terminal state."""
        tasks = dict(self._tasks)
        for task in tasks.values():
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks.values(), return_exceptions=True)

        # A task cancelled before its first step never reaches _run's handlers.
        for job_id in tasks:
            job = self._store.get(job_id)
            if job.status == JobStatus.PENDING:
                try:
                    self._transition(job_id, JobStatus.PROCESSING)
                except CaptionPipelineError as e:
                    logger.error(f"Job {job_id} could not be cancelled: {e}")
                    continue
            if not self._store.get(job_id).status.is_terminal:
                self._fail(job_id, "render cancelled")

    async def _run(self, job_id: str) -> None:
        try:
            job = self._transition(job_id, JobStatus.PROCESSING)
        except CaptionPipelineError as e:
            logger.error(f"Job {job_id} could not start: {e}")
            return

        try:
            output_reference = await self._execute(job)
        except asyncio.CancelledError:
            self._fail(job_id, "render cancelled")
            raise
        except RenderFailure as e:
            self._fail(job_id, e.reason)
        except CaptionPipelineError as e:
            self._fail(job_id, str(e))
        except Exception as e:
            logger.exception(f"Job {job_id} crashed")
            self._fail(job_id, f"unexpected error: {e}")
        else:
            try:
                self._transition(
                    job_id, JobStatus.COMPLETED, output_reference=output_reference
                )
            except CaptionPipelineError as e:
                logger.error(f"Job {job_id} could not be completed: {e}")

    async def _execute(self, job: RenderJob) -> str:
        video_url = await self._resolve_source(job.video_reference)

        try:
            outcome = await asyncio.wait_for(
                self._worker.render(
                    video_url, job.captions, job.style, f"out/video_{job.id}.mp4"
                ),
                timeout=self._render_timeout,
            )
        except asyncio.TimeoutError as e:
            raise RenderFailure("render timed out") from e
        if not outcome.success:
            raise RenderFailure(outcome.error or "render failed")

        data = await self._worker.download(outcome.output_location)

        output_key = f"output/video_{job.id}.mp4"
        try:
            durable_reference = await self._storage.put(data, output_key, "video/mp4")
        except StorageError as e:
            raise RenderFailure(f"failed to upload rendered video: {e.reason}") from e

        try:
            return await self._storage.presign(output_key, self._output_url_ttl)
        except StorageError as e:
            logger.warning(f"Job {job.id}: presigning output failed, using durable URL: {e}")
            return durable_reference

    async def _resolve_source(self, video_reference: str) -> str:
        key = storage_key_from_reference(video_reference, self._storage.bucket)
        if key:
            try:
                return await self._storage.presign(key, self._input_url_ttl)
            except StorageError as e:
                raise RenderFailure(f"failed to resolve source video: {e.reason}") from e
        if video_reference.startswith(("http://", "https://")):
            return video_reference
        raise RenderFailure(f"unsupported video reference: {video_reference!r}")

    def _transition(
        self,
        job_id: str,
        target: JobStatus,
        output_reference: str | None = None,
        error: str | None = None,
    ) -> RenderJob:
        def mutate(job: RenderJob) -> None:
            if target not in ALLOWED_TRANSITIONS[job.status]:
                raise InvalidTransitionError(job.status.value, target.value)
            job.status = target
            if target == JobStatus.COMPLETED:
                job.output_reference = output_reference
                job.error = None
            elif target == JobStatus.FAILED:
                job.error = error
                job.output_reference = None

        job = self._store.update(job_id, mutate)
        logger.info(f"Job {job_id} -> {target.value}")
        return job

    def _fail(self, job_id: str, reason: str) -> None:
        logger.warning(f"Job {job_id} failed: {reason}")
        try:
            self._transition(job_id, JobStatus.FAILED, error=reason)
        except CaptionPipelineError as e:
            logger.error(f"Job {job_id} could not be marked failed: {e}")
