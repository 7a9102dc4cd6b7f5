#!/usr/bin/env python3
import argparse
import sqlite3
import sys
from datetime import datetime
from pathlib import Path

from app_config import config


# ───────────────────────────────
# Color helpers (ANSI escape codes)
# ───────────────────────────────
def color(text, fg=None):
    colors = {
        "red": "\033[91m",
        "green": "\033[92m",
        "yellow": "\033[93m",
        "blue": "\033[94m",
        "cyan": "\033[96m",
        "reset": "\033[0m",
    }
    if fg and fg in colors:
        return f"{colors[fg]}{text}{colors['reset']}"
    return text


STATUS_COLORS = {"done": "green", "queued": "yellow", "scheduled": "yellow", "failed": "red", "in_progress": "blue"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inspect and manage feed fan-out jobs.")
    parser.add_argument("--db", default=config.DB_PATH, help="Path to the siteboard database")
    parser.add_argument("--status", help="Filter jobs by status (e.g., queued, done, failed, in_progress)")
    parser.add_argument("--type", help="Filter jobs by type (e.g., feed_fanout)")
    parser.add_argument("--delete", help="Delete all jobs with a specific status (e.g., failed, done)")
    parser.add_argument("--requeue", action="store_true", help="Move all failed jobs back to queued")
    parser.add_argument("--yes", action="store_true", help="Do not ask for confirmation")
    return parser


def confirm(question: str, assume_yes: bool) -> bool:
    if assume_yes:
        return True
    return input(f"⚠️  {question} (y/N): ").strip().lower() == "y"


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    if not Path(args.db).exists():
        print(f"❌ No database found at {args.db}")
        return 1

    conn = sqlite3.connect(args.db)
    try:
        # ───────────────────────────────
        # Deletion logic
        # ───────────────────────────────
        if args.delete:
            status = args.delete.lower()
            if not confirm(f"Delete all jobs with status '{status}'?", args.yes):
                print("❌ Cancelled.")
                return 0
            deleted = conn.execute("DELETE FROM jobs WHERE status=?", (status,)).rowcount
            conn.commit()
            print(color(f"🗑️  Deleted {deleted} '{status}' jobs.", "red"))
            return 0

        # ───────────────────────────────
        # Requeue logic
        # ───────────────────────────────
        if args.requeue:
            if not confirm("Requeue all FAILED jobs back to 'queued'?", args.yes):
                print("❌ Cancelled.")
                return 0
            updated = conn.execute(
                "UPDATE jobs SET status='queued', retries=0, next_run=NULL WHERE status='failed'"
            ).rowcount
            conn.commit()
            print(color(f"♻️  Requeued {updated} failed jobs.", "yellow"))
            return 0

        # ───────────────────────────────
        # Query logic
        # ───────────────────────────────
        query = "SELECT id, type, status, retries, next_run, last_error FROM jobs"
        clauses, params = [], []
        if args.status:
            clauses.append("status=?")
            params.append(args.status.lower())
        if args.type:
            clauses.append("type=?")
            params.append(args.type)
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        rows = conn.execute(query + " ORDER BY id ASC", params).fetchall()
    finally:
        conn.close()

    if not rows:
        print("ℹ️  No matching jobs found.")
        return 0

    # ───────────────────────────────
    # Display output
    # ───────────────────────────────
    print(color("\n📋 JOB QUEUE OVERVIEW\n", "cyan"))
    print(f"{'ID':<6} {'TYPE':<14} {'STATUS':<12} {'RETRIES':<8} {'NEXT RUN':<20} ERROR")
    print("-" * 80)

    for (job_id, job_type, status, retries, next_run, last_error) in rows:
        time_str = datetime.fromtimestamp(next_run).strftime("%Y-%m-%d %H:%M:%S") if next_run else "—"
        print(
            f"{job_id:<6} {job_type:<14} {color(status, STATUS_COLORS.get(status)):<12} "
            f"{retries:<8} {time_str:<20} {(last_error or '')[:40]}"
        )

    print("\n✅ Done.\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
