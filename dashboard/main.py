import os
import sqlite3
from typing import Optional

import psutil
from fastapi import FastAPI, HTTPException

from app_config import config
from utils import read_status

# ─────────────────────────────────────────────
# DASHBOARD APP
# ─────────────────────────────────────────────
app = FastAPI(title="Siteboard Fan-out Dashboard")

JOB_STATUSES = ("queued", "scheduled", "in_progress", "done", "failed")


# ─────────────────────────────────────────────
# HELPERS
# ─────────────────────────────────────────────
def _connect():
    if not os.path.exists(config.DB_PATH):
        return None
    conn = sqlite3.connect(config.DB_PATH)
    conn.row_factory = sqlite3.Row
    return conn


def get_stats():
    stats = {"worker_status": "unknown", "jobs": {s: 0 for s in JOB_STATUSES}}
    conn = _connect()
    if conn:
        try:
            for row in conn.execute("SELECT status, COUNT(*) AS n FROM jobs GROUP BY status;"):
                stats["jobs"][row["status"]] = row["n"]
        finally:
            conn.close()

    stats.update({k: v for k, v in read_status().items() if k != "jobs"})
    return stats


# ─────────────────────────────────────────────
# ROUTES
# ─────────────────────────────────────────────
@app.get("/dashboard/metrics")
def metrics():
    return get_stats()


@app.get("/dashboard/jobs")
def jobs(status: Optional[str] = None, limit: int = 50):
    if status and status not in JOB_STATUSES:
        raise HTTPException(status_code=400, detail=f"unknown status {status}")

    conn = _connect()
    if not conn:
        return []
    try:
        query = "SELECT id, type, payload, status, retries, max_retries, last_error, created_at, updated_at FROM jobs"
        params = []
        if status:
            query += " WHERE status = ?"
            params.append(status)
        query += " ORDER BY id DESC LIMIT ?"
        params.append(limit)
        return [dict(r) for r in conn.execute(query, params).fetchall()]
    finally:
        conn.close()


@app.get("/dashboard/health")
def health():
    status = read_status()
    return {
        "worker_status": status.get("worker_status", "unknown"),
        "last_heartbeat": status.get("timestamp"),
        "cpu_percent": psutil.cpu_percent(interval=None),
        "mem_percent": psutil.virtual_memory().percent,
        "database": os.path.exists(config.DB_PATH),
    }
