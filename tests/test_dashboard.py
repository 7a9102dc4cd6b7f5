"""Tests for the operator dashboard API."""
import os
import tempfile
import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient

from app_config import config
from dashboard.main import app
from utils import write_status
from worker_base import Job
from worker_manager import WorkerManager


class TestDashboard(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.db_path = os.path.join(self.tmp.name, "siteboard.db")
        for patcher in (
            patch.object(config, "DB_PATH", self.db_path),
            patch.object(config, "DATA_DIR", self.tmp.name),
            patch.object(config, "LOG_DIR", os.path.join(self.tmp.name, "logs")),
        ):
            patcher.start()
            self.addCleanup(patcher.stop)
        self.client = TestClient(app)

    def tearDown(self):
        self.tmp.cleanup()

    def seed_jobs(self):
        manager = WorkerManager(self.db_path)
        try:
            manager.save_job(Job(type="feed_fanout", payload={"post_id": 1}), status="done")
            manager.save_job(Job(type="feed_fanout", payload={"post_id": 2}), status="failed")
            manager.save_job(Job(type="feed_fanout", payload={"post_id": 3}), status="queued")
        finally:
            manager.close()

    def test_metrics_without_database(self):
        body = self.client.get("/dashboard/metrics").json()
        self.assertEqual(body["worker_status"], "unknown")
        self.assertEqual(body["jobs"]["queued"], 0)

    def test_metrics_counts_jobs_and_merges_status_file(self):
        self.seed_jobs()
        write_status("running", jobs_queued=1, jobs_failed=1)

        body = self.client.get("/dashboard/metrics").json()
        self.assertEqual(body["worker_status"], "running")
        self.assertEqual(body["jobs"], {"queued": 1, "scheduled": 0, "in_progress": 0, "done": 1, "failed": 1})
        self.assertIn("uptime", body)

    def test_jobs_listing(self):
        self.assertEqual(self.client.get("/dashboard/jobs").json(), [])

        self.seed_jobs()
        listed = self.client.get("/dashboard/jobs").json()
        self.assertEqual([j["status"] for j in listed], ["queued", "failed", "done"])

        failed = self.client.get("/dashboard/jobs", params={"status": "failed"}).json()
        self.assertEqual(len(failed), 1)
        self.assertEqual(failed[0]["payload"], '{"post_id": 2}')

        self.assertEqual(len(self.client.get("/dashboard/jobs", params={"limit": 1}).json()), 1)

    def test_unknown_status_is_rejected(self):
        self.assertEqual(self.client.get("/dashboard/jobs", params={"status": "lost"}).status_code, 400)

    def test_health(self):
        body = self.client.get("/dashboard/health").json()
        self.assertFalse(body["database"])
        self.assertIsNone(body["last_heartbeat"])
        self.assertIn("cpu_percent", body)

        self.seed_jobs()
        write_status("running")
        body = self.client.get("/dashboard/health").json()
        self.assertTrue(body["database"])
        self.assertEqual(body["worker_status"], "running")


if __name__ == "__main__":
    unittest.main()
