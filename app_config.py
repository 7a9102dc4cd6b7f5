#!/usr/bin/env python3
"""
Siteboard Configuration Loader
───────────────────────────────
Centralized configuration for the content pipeline.

This keeps environment handling consistent across:
  • post_manager.py / services.py (authoring + read paths)
  • background_worker.py (feed fan-out runner)
  • dashboard/main.py and list_jobs.py (operator tools)
"""

import os

from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class AppConfig:
    def __init__(self):
        # ────── Paths ──────
        self.DATA_DIR = os.getenv("DATA_DIR", "./data")
        self.DB_PATH = os.getenv("DB_PATH", os.path.join(self.DATA_DIR, "siteboard.db"))
        self.LOG_DIR = os.getenv("LOG_DIR", "./logs")

        # ────── Feed fan-out worker ──────
        self.FANOUT_CONCURRENCY = int(os.getenv("FANOUT_CONCURRENCY", "2"))
        self.FANOUT_MAX_RETRIES = int(os.getenv("FANOUT_MAX_RETRIES", "3"))
        self.FANOUT_RETRY_DELAY = float(os.getenv("FANOUT_RETRY_DELAY", "1"))  # seconds, doubled per retry
        self.FANOUT_DRAIN_TIMEOUT = float(os.getenv("FANOUT_DRAIN_TIMEOUT", "30"))
        self.JOB_POLL_INTERVAL = float(os.getenv("JOB_POLL_INTERVAL", "5"))
        self.JOB_STALE_AFTER = float(os.getenv("JOB_STALE_AFTER", "300"))  # seconds before another process's job is reclaimed

        # ────── Optional external feed relay ──────
        self.FEED_WEBHOOK_URL = os.getenv("FEED_WEBHOOK_URL", "").rstrip("/") or None
        self.FEED_WEBHOOK_TIMEOUT = int(os.getenv("FEED_WEBHOOK_TIMEOUT", "10"))

        # ────── Behavior Flags ──────
        self.STATUS_INTERVAL = int(os.getenv("STATUS_INTERVAL", "30"))
        self.DEBUG = _flag("DEBUG")

    def summary(self):
        """Human-readable summary (for debug/logging)."""
        return {
            "Paths": {
                "data_dir": self.DATA_DIR,
                "db_path": self.DB_PATH,
                "log_dir": self.LOG_DIR,
            },
            "Fanout": {
                "concurrency": self.FANOUT_CONCURRENCY,
                "max_retries": self.FANOUT_MAX_RETRIES,
                "drain_timeout": self.FANOUT_DRAIN_TIMEOUT,
                "webhook": bool(self.FEED_WEBHOOK_URL),
            },
        }


# Global singleton pattern
config = AppConfig()
