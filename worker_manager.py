#!/usr/bin/env python3
"""
worker_manager.py — supervised background job registry
-------------------------------------------------------
Every job is persisted to the ``jobs`` table before it runs, so work
scheduled by a request survives a crash or shutdown:

  queued       persisted only; picked up by the polling loop
  scheduled    sitting in a local worker queue
  in_progress  being processed
  done/failed  finished

On start, anything left queued/scheduled/in_progress by a previous
run is recovered. Processes without a local worker for a job type
(e.g. an API process) only persist the job as ``queued`` and let the
background runner pick it up.

While running, the polling loop also reclaims scheduled/in_progress
rows owned by some other process once they have not been touched for
``stale_after`` seconds (that process stopped or never started its
workers). A reclaimed job may run twice if its owner comes back, so
job handlers must be idempotent.
"""

import asyncio
import json
import logging
import sqlite3
import threading
import time
from typing import Dict, List, Optional

from app_config import config
from db_init import init_database
from worker_base import BaseWorker, Job

logger = logging.getLogger(__name__)

UNFINISHED = ("queued", "scheduled", "in_progress")


class WorkerManager:
    def __init__(
        self,
        db_path: Optional[str] = None,
        poll_interval: Optional[float] = None,
        stale_after: Optional[float] = None,
    ):
        # ✅ Ensure DB exists and is migrated before connecting
        self.db_path = init_database(db_path)

        self.workers: Dict[str, BaseWorker] = {}
        self.poll_interval = config.JOB_POLL_INTERVAL if poll_interval is None else poll_interval
        self.stale_after = config.JOB_STALE_AFTER if stale_after is None else stale_after
        self.db = sqlite3.connect(self.db_path, check_same_thread=False)
        self.db.row_factory = sqlite3.Row
        self._db_lock = threading.Lock()
        self._local_ids = set()  # job ids currently held by a local worker queue
        self._stop_event: Optional[asyncio.Event] = None

    # ───────────────────────────────
    # Database persistence
    # ───────────────────────────────
    def save_job(self, job: Job, status: str = "queued") -> int:
        with self._db_lock:
            cur = self.db.execute(
                """
                INSERT INTO jobs (type, payload, retries, max_retries, next_run, status, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP)
                """,
                (
                    job.type,
                    json.dumps(job.payload),
                    job.retries,
                    job.max_retries,
                    job.next_run,
                    status,
                ),
            )
            self.db.commit()
            return cur.lastrowid

    def mark_job_status(self, job_id: int, status: str, retries: Optional[int] = None, error: Optional[str] = None):
        """Update a job's status in the database."""
        try:
            with self._db_lock:
                self.db.execute(
                    """
                    UPDATE jobs SET status = ?,
                        retries = COALESCE(?, retries),
                        last_error = COALESCE(?, last_error),
                        updated_at = CURRENT_TIMESTAMP
                    WHERE id = ?
                    """,
                    (status, retries, error, job_id),
                )
                self.db.commit()
            if status in ("done", "failed"):
                self._local_ids.discard(job_id)
            logger.debug(f"Updated job {job_id} → {status}")
        except sqlite3.Error as e:
            logger.error(f"Failed to update job {job_id} status: {e}")

    def load_jobs(self, statuses=("queued",), older_than: Optional[float] = None) -> List[Job]:
        """Load jobs by status; ``older_than`` keeps only rows untouched for that many seconds."""
        placeholders = ",".join("?" for _ in statuses)
        query = (
            f"SELECT id, type, payload, retries, max_retries, next_run FROM jobs "
            f"WHERE status IN ({placeholders})"
        )
        params = list(statuses)
        if older_than is not None:
            query += " AND (updated_at IS NULL OR updated_at <= datetime('now', ?))"
            params.append(f"-{older_than:g} seconds")
        with self._db_lock:
            rows = self.db.execute(query + " ORDER BY id", params).fetchall()
        jobs = []
        for row in rows:
            try:
                payload = json.loads(row["payload"])
            except ValueError:
                logger.error(f"Job {row['id']} has an unreadable payload; marking failed")
                self.mark_job_status(row["id"], "failed", error="unreadable payload")
                continue
            jobs.append(
                Job(
                    type=row["type"],
                    payload=payload,
                    retries=row["retries"],
                    max_retries=row["max_retries"],
                    next_run=row["next_run"] or time.time(),
                    id=row["id"],
                )
            )
        return jobs

    def count_by_status(self) -> Dict[str, int]:
        with self._db_lock:
            rows = self.db.execute("SELECT status, COUNT(*) AS n FROM jobs GROUP BY status").fetchall()
        return {r["status"]: r["n"] for r in rows}

    # ───────────────────────────────
    # Worker registration & scheduling
    # ───────────────────────────────
    def register_worker(self, worker_type: str, worker: BaseWorker):
        if worker_type in self.workers:
            raise ValueError(f"Worker type '{worker_type}' already registered")
        worker.manager = self
        self.workers[worker_type] = worker
        logger.info(f"Registered worker: {worker_type}")

    async def submit(self, job_type: str, payload: dict, max_retries: Optional[int] = None) -> Job:
        """Persist a job off the event loop, then hand it to the local worker without waiting for it to run."""
        job, worker = self._new_job(job_type, payload, max_retries)
        job.id = await asyncio.to_thread(self.save_job, job, "scheduled" if worker else "queued")
        self._hand_off(job, worker)
        return job

    def submit_nowait(self, job_type: str, payload: dict, max_retries: Optional[int] = None) -> Job:
        """Like submit(), but writes the job row on the calling thread."""
        job, worker = self._new_job(job_type, payload, max_retries)
        job.id = self.save_job(job, "scheduled" if worker else "queued")
        self._hand_off(job, worker)
        return job

    def _new_job(self, job_type: str, payload: dict, max_retries: Optional[int]):
        worker = self.workers.get(job_type)
        if max_retries is None:
            max_retries = worker.max_retries if worker else config.FANOUT_MAX_RETRIES
        return Job(type=job_type, payload=payload, max_retries=max_retries), worker

    def _hand_off(self, job: Job, worker: Optional[BaseWorker]):
        if worker is None:
            logger.info(f"Persisted job {job.type} (id={job.id}) for the background runner")
            return
        self._local_ids.add(job.id)
        worker.enqueue_nowait(job)

    def _dispatch(self, jobs: List[Job]) -> int:
        count = 0
        for job in jobs:
            worker = self.workers.get(job.type)
            if not worker or job.id in self._local_ids:
                continue
            self._local_ids.add(job.id)
            self.mark_job_status(job.id, "scheduled")
            worker.enqueue_nowait(job)
            count += 1
        return count

    def recover_jobs(self) -> int:
        """Re-schedule work left unfinished by a previous run."""
        recovered = self._dispatch(self.load_jobs(UNFINISHED))
        if recovered:
            logger.info(f"♻️ Recovered {recovered} unfinished jobs")
        return recovered

    def reclaim_stale_jobs(self) -> int:
        """Take over scheduled/in_progress jobs another process has stopped touching."""
        reclaimed = self._dispatch(self.load_jobs(("scheduled", "in_progress"), older_than=self.stale_after))
        if reclaimed:
            logger.warning(f"♻️ Reclaimed {reclaimed} stale jobs from other processes")
        return reclaimed

    # ───────────────────────────────
    # Lifecycle controls
    # ───────────────────────────────
    async def start_all(self):
        logger.info("Starting all workers...")
        self._stop_event = asyncio.Event()
        for worker in self.workers.values():
            worker.start()
        self.recover_jobs()

        # Continuous polling loop to pick up jobs persisted by other processes
        while not self._stop_event.is_set():
            self._dispatch(self.load_jobs(("queued",)))
            self.reclaim_stale_jobs()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass

    async def stop_all(self, drain_timeout: Optional[float] = None):
        """Stop polling, let queued jobs finish (bounded), then stop the workers."""
        logger.info("Shutting down workers...")
        if self._stop_event:
            self._stop_event.set()
        timeout = config.FANOUT_DRAIN_TIMEOUT if drain_timeout is None else drain_timeout
        for worker in self.workers.values():
            await worker.drain(timeout)
            await worker.stop()
        logger.info("✅ WorkerManager stopped cleanly.")

    def close(self):
        with self._db_lock:
            self.db.close()
