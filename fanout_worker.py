#!/usr/bin/env python3
"""
fanout_worker.py — feed fan-out worker
---------------------------------------
Handles "feed_fanout" jobs by delegating to FeedManager.post_fan_out.
The blocking store/HTTP work runs in a thread so the event loop keeps
serving requests while feeds are written.
"""

import asyncio
import logging

from feed_manager import FeedManager
from worker_base import BaseWorker, Job

logger = logging.getLogger(__name__)

FANOUT_JOB = "feed_fanout"


class FanoutWorker(BaseWorker):
    """Worker that executes feed_fanout jobs."""

    def __init__(self, feed_manager: FeedManager, name: str = FANOUT_JOB, **kwargs):
        super().__init__(name, **kwargs)
        self.feed_manager = feed_manager

    async def process(self, job: Job):
        post_id = (job.payload or {}).get("post_id")
        if post_id is None:
            raise ValueError(f"Missing post_id in job payload: {job.payload}")

        touched = await asyncio.to_thread(self.feed_manager.post_fan_out, int(post_id))
        logger.info(f"🔁 Job {job.id}: post {post_id} fanned out to {touched} feeds")
