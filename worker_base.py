import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from utils import log_error

logger = logging.getLogger(__name__)


@dataclass
class Job:
    type: str
    payload: Dict[str, Any]
    retries: int = 0
    max_retries: int = 5
    next_run: Any = field(default_factory=lambda: time.time())
    id: Optional[int] = None  # row id in the jobs table


class BaseWorker:
    """
    asyncio worker pool fed by an in-memory queue.

    Failed jobs are retried with exponential backoff (retry_delay * 2**n)
    and marked failed once ``max_retries`` is exceeded. Status changes are
    persisted through the owning WorkerManager when one is attached.
    """

    def __init__(self, name: str, concurrency: int = 2, max_retries: int = 5, retry_delay: float = 1.0):
        self.name = name
        self.queue: asyncio.Queue = asyncio.Queue()
        self.concurrency = concurrency
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.active = True
        self.manager = None  # set by WorkerManager.register_worker
        self._tasks: List[asyncio.Task] = []
        self._delayed: Set[asyncio.TimerHandle] = set()  # retries waiting out their backoff

    def enqueue_nowait(self, job: Job):
        self.queue.put_nowait(job)
        logger.info(f"[{self.name}] Enqueued job {job.type} (id={job.id})")

    async def enqueue(self, job: Job):
        await self.queue.put(job)
        logger.info(f"[{self.name}] Enqueued job {job.type} (id={job.id})")

    def start(self) -> List[asyncio.Task]:
        logger.info(f"[{self.name}] Starting with {self.concurrency} workers")
        self.active = True
        self._tasks = [
            asyncio.create_task(self._worker_loop(i), name=f"{self.name}-{i}")
            for i in range(self.concurrency)
        ]
        return self._tasks

    async def _worker_loop(self, worker_id: int):
        while self.active:
            job = await self.queue.get()
            try:
                # Not due yet: park it off the worker slot
                delay = (job.next_run or 0) - time.time()
                if delay > 0:
                    self._put_later(job, delay)
                    continue

                self._mark(job, "in_progress")
                await self.process(job)
                logger.info(f"[{self.name}:{worker_id}] Job {job.type} (id={job.id}) processed successfully")
                self._mark(job, "done")
            except asyncio.CancelledError:
                # Leave the row unfinished so the next start recovers it
                self._mark(job, "queued")
                raise
            except Exception as e:
                await self._handle_failure(job, e)
            finally:
                self.queue.task_done()

    async def _handle_failure(self, job: Job, error: Exception):
        job.retries += 1
        if job.retries > job.max_retries:
            logger.error(f"[{self.name}] Job {job.type} (id={job.id}) failed permanently: {error}")
            log_error(f"{self.name} job {job.id}", error)
            self._mark(job, "failed", error=str(error))
        else:
            delay = self.retry_delay * (2 ** job.retries)
            job.next_run = time.time() + delay
            logger.warning(
                f"[{self.name}] Retry {job.retries}/{job.max_retries} for {job.type} (id={job.id}) in {delay}s: {error}"
            )
            self._mark(job, "scheduled", error=str(error))
            self._put_later(job, delay)

    def _put_later(self, job: Job, delay: float):
        handle = None

        def put():
            self._delayed.discard(handle)
            self.queue.put_nowait(job)

        handle = asyncio.get_running_loop().call_later(delay, put)
        self._delayed.add(handle)

    def _mark(self, job: Job, status: str, error: Optional[str] = None):
        if job.id and self.manager:
            self.manager.mark_job_status(job.id, status, retries=job.retries, error=error)

    async def process(self, job: Job):
        """Override in subclass"""
        raise NotImplementedError("process() must be implemented by subclasses")

    async def drain(self, timeout: float) -> bool:
        """Wait until every queued or backing-off job has been handled. Returns False on timeout."""
        try:
            await asyncio.wait_for(self._settle(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(
                f"[{self.name}] Drain timed out with {self.queue.qsize()} queued and {len(self._delayed)} backing off"
            )
            return False

    async def _settle(self):
        loop = asyncio.get_running_loop()
        while True:
            await self.queue.join()
            if not self._delayed:
                return
            await asyncio.sleep(min(h.when() for h in self._delayed) - loop.time())

    async def stop(self):
        self.active = False
        # Parked retries stay "scheduled" in the jobs table and are recovered later
        for handle in self._delayed:
            handle.cancel()
        self._delayed.clear()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info(f"[{self.name}] Worker stopped")
