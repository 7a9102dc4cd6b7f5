import json
import time
import traceback
from datetime import datetime
from pathlib import Path

import psutil

from app_config import config

LOG_FILE_NAME = "siteboard.log"
ERROR_FILE_NAME = "errors.log"
STATUS_FILE_NAME = "state.json"


def _log_dir() -> Path:
    path = Path(config.LOG_DIR)
    path.mkdir(parents=True, exist_ok=True)
    return path


def status_path() -> Path:
    return Path(config.DATA_DIR) / STATUS_FILE_NAME


# ───────────────────────────────
# Dashboard Helper
# ───────────────────────────────
def write_status(worker_status="running", jobs_queued=0, jobs_failed=0):
    """Write fan-out runtime stats to data/state.json for the dashboard."""
    try:
        path = status_path()
        path.parent.mkdir(parents=True, exist_ok=True)

        uptime = time.strftime("%H:%M:%S", time.gmtime(time.time() - psutil.boot_time()))

        data = {
            "worker_status": worker_status,
            "jobs_queued": jobs_queued,
            "jobs_failed": jobs_failed,
            "uptime": uptime,
            "timestamp": datetime.now().isoformat(),
        }

        path.write_text(json.dumps(data, indent=2))
    except Exception as e:
        log_error("write_status", e)


def read_status() -> dict:
    try:
        return json.loads(status_path().read_text())
    except (OSError, ValueError):
        return {}


# ───────────────────────────────
# Logging Utilities
# ───────────────────────────────
def log(msg: str):
    """Logs normal info messages to console and siteboard.log"""
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    line = f"{timestamp} | {msg}"
    print(line)
    with open(_log_dir() / LOG_FILE_NAME, "a", encoding="utf-8") as f:
        f.write(line + "\n")


def log_error(context: str, exc: Exception):
    """
    Logs detailed errors to errors.log with stack trace.
    Example: log_error("feed_fanout job 12", e)
    """
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    tb = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    line = (
        f"\n{'='*60}\n"
        f"{timestamp} | ERROR in {context}\n"
        f"{'-'*60}\n"
        f"{tb.strip()}\n"
    )
    print(f"❌ {context}: {exc}")
    with open(_log_dir() / ERROR_FILE_NAME, "a", encoding="utf-8") as f:
        f.write(line)
