"""Bounded worker pool for background batch embedding jobs."""

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog

from ..cancellation import CancellationToken
from ..exceptions import JobQueueError, OperationCancelledError
from ..models import Chunk
from .metrics import MetricsCollector

logger = structlog.get_logger("job_queue")

JobHandler = Callable[[uuid.UUID, List[Chunk], CancellationToken], Awaitable[Any]]


@dataclass
class BatchJob:
    """A queued or running batch for one document."""
    job_id: str
    document_id: uuid.UUID
    chunks: List[Chunk]
    submitted_at: float
    token: CancellationToken = field(default_factory=CancellationToken)
    state: str = "queued"  # queued, running, completed, failed, cancelled
    error: Optional[str] = None
    result: Any = None
    done: asyncio.Event = field(default_factory=asyncio.Event)

    async def wait(self, timeout: Optional[float] = None) -> None:
        await asyncio.wait_for(self.done.wait(), timeout=timeout)


class EmbeddingJobQueue:
    """Runs batch jobs on a fixed number of workers fed by an ``asyncio.Queue``.

    ``submit`` never blocks: a full queue or a stopped pool raises
    ``JobQueueError`` so the caller can report the failure. Only queued and
    running jobs are tracked; a finished job is released and callers keep the
    ``BatchJob`` returned by ``submit`` if they need its outcome.
    """

    def __init__(
        self,
        handler: JobHandler,
        workers: int = 2,
        max_queue_size: int = 100,
        metrics: Optional[MetricsCollector] = None
    ):
        self.handler = handler
        self.workers = workers
        self.max_queue_size = max_queue_size
        self.metrics = metrics
        self.jobs: Dict[uuid.UUID, BatchJob] = {}
        self._queue: Optional[asyncio.Queue] = None
        self._worker_tasks: List[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._worker_tasks)

    async def start(self) -> None:
        if self.running:
            return
        self._queue = asyncio.Queue(maxsize=self.max_queue_size)
        self._worker_tasks = [
            asyncio.create_task(self._worker(index), name=f"embedding-worker-{index}")
            for index in range(self.workers)
        ]
        logger.info("Job queue started", workers=self.workers, max_queue_size=self.max_queue_size)

    async def stop(self) -> None:
        """Cancel outstanding jobs and stop the workers."""
        for job in self.jobs.values():
            if job.state in ("queued", "running"):
                job.token.cancel("Service shutting down")

        for task in self._worker_tasks:
            task.cancel()
        await asyncio.gather(*self._worker_tasks, return_exceptions=True)
        self._worker_tasks = []
        self._queue = None
        logger.info("Job queue stopped")

    def submit(self, document_id: uuid.UUID, chunks: List[Chunk]) -> BatchJob:
        if not self.running or self._queue is None:
            raise JobQueueError("Job queue is not running")

        previous = self.jobs.get(document_id)
        if previous is not None and previous.state in ("queued", "running"):
            previous.token.supersede()

        job = BatchJob(
            job_id=str(uuid.uuid4()),
            document_id=document_id,
            chunks=list(chunks),
            submitted_at=time.time(),
        )
        try:
            self._queue.put_nowait(job)
        except asyncio.QueueFull:
            raise JobQueueError(f"Job queue is full ({self.max_queue_size} jobs)")

        self.jobs[document_id] = job
        logger.info(
            "Batch job queued",
            job_id=job.job_id,
            document_id=str(document_id),
            chunk_count=len(job.chunks),
            queue_depth=self._queue.qsize()
        )
        return job

    def cancel(self, document_id: uuid.UUID) -> bool:
        """Request cancellation; ``False`` if no queued or running job exists."""
        job = self.jobs.get(document_id)
        if job is None or job.state not in ("queued", "running"):
            return False
        job.token.cancel("Cancelled by caller")
        logger.info("Batch job cancellation requested", job_id=job.job_id, document_id=str(document_id))
        return True

    def get_job(self, document_id: uuid.UUID) -> Optional[BatchJob]:
        """The queued or running job for ``document_id``, if any."""
        return self.jobs.get(document_id)

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        if self._queue is not None:
            await self._queue.join()

    async def _worker(self, index: int) -> None:
        logger.debug("Worker started", worker=index)
        while True:
            job = await self._queue.get()
            try:
                await self._run_job(job)
            finally:
                self._queue.task_done()

    async def _run_job(self, job: BatchJob) -> None:
        try:
            if job.token.cancelled:
                job.state = "cancelled"
                logger.info("Skipping cancelled batch job", job_id=job.job_id)
                return
            await self._execute(job)
        finally:
            self._finish(job)

    async def _execute(self, job: BatchJob) -> None:
        job.state = "running"
        if self.metrics:
            self.metrics.active_jobs.inc()
        start_time = time.time()
        try:
            job.result = await self.handler(job.document_id, job.chunks, job.token)
            job.state = "completed"
            logger.info(
                "Batch job completed",
                job_id=job.job_id,
                document_id=str(job.document_id),
                duration_seconds=round(time.time() - start_time, 3)
            )
        except OperationCancelledError as e:
            job.state = "cancelled"
            job.error = str(e)
            logger.info("Batch job cancelled", job_id=job.job_id, document_id=str(job.document_id))
        except Exception as e:
            job.state = "failed"
            job.error = str(e)
            logger.error(
                "Batch job failed",
                job_id=job.job_id,
                document_id=str(job.document_id),
                error=str(e)
            )
        finally:
            if self.metrics:
                self.metrics.active_jobs.dec()

    def _finish(self, job: BatchJob) -> None:
        """Release a finished job's chunks and forget it unless a newer job replaced it."""
        job.chunks = []
        if self.jobs.get(job.document_id) is job:
            del self.jobs[job.document_id]
        job.done.set()
