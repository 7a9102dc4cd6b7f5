#!/usr/bin/env python3
"""
db_init.py — Shared database initialization and schema migration
Ensures that all tables (sites, users, posts, comments, bookmarks,
notifications, feeds, jobs) exist and match expected schema.
Can be safely imported and run multiple times.
"""

import logging
import sqlite3
from pathlib import Path
from typing import Optional

from app_config import config

logger = logging.getLogger(__name__)

SCHEMA = [
    # ─────────────────────────────── DIRECTORY ───────────────────────────────
    """
    CREATE TABLE IF NOT EXISTS sites (
        site_id INTEGER PRIMARY KEY AUTOINCREMENT,
        site TEXT UNIQUE NOT NULL,
        name TEXT DEFAULT '',
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS users (
        user_id INTEGER PRIMARY KEY AUTOINCREMENT,
        username TEXT UNIQUE NOT NULL COLLATE NOCASE,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS subscriptions (
        site_id INTEGER NOT NULL REFERENCES sites(site_id) ON DELETE CASCADE,
        user_id INTEGER NOT NULL,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (site_id, user_id)
    );
    """,
    # ─────────────────────────────── CONTENT ───────────────────────────────
    """
    CREATE TABLE IF NOT EXISTS posts (
        post_id INTEGER PRIMARY KEY AUTOINCREMENT,
        site_id INTEGER NOT NULL REFERENCES sites(site_id),
        author_id INTEGER NOT NULL,
        title TEXT NOT NULL DEFAULT '',
        source TEXT NOT NULL DEFAULT '',
        html TEXT NOT NULL DEFAULT '',
        rating INTEGER DEFAULT 0,
        comments INTEGER DEFAULT 0,
        last_comment_id INTEGER,
        created_at TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS comments (
        comment_id INTEGER PRIMARY KEY AUTOINCREMENT,
        post_id INTEGER NOT NULL REFERENCES posts(post_id) ON DELETE CASCADE,
        author_id INTEGER NOT NULL,
        parent_comment_id INTEGER REFERENCES comments(comment_id),
        source TEXT NOT NULL DEFAULT '',
        html TEXT NOT NULL DEFAULT '',
        rating INTEGER DEFAULT 0,
        deleted INTEGER DEFAULT 0,
        created_at TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS post_votes (
        post_id INTEGER NOT NULL REFERENCES posts(post_id) ON DELETE CASCADE,
        user_id INTEGER NOT NULL,
        vote INTEGER NOT NULL,
        PRIMARY KEY (post_id, user_id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS comment_votes (
        comment_id INTEGER NOT NULL REFERENCES comments(comment_id) ON DELETE CASCADE,
        user_id INTEGER NOT NULL,
        vote INTEGER NOT NULL,
        PRIMARY KEY (comment_id, user_id)
    );
    """,
    # ─────────────────────────────── READ / WATCH STATE ───────────────────────────────
    """
    CREATE TABLE IF NOT EXISTS bookmarks (
        post_id INTEGER NOT NULL REFERENCES posts(post_id) ON DELETE CASCADE,
        user_id INTEGER NOT NULL,
        bookmark INTEGER DEFAULT 0,
        watch INTEGER DEFAULT 0,
        read_comments INTEGER DEFAULT 0,
        last_read_comment_id INTEGER,
        updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (post_id, user_id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS notifications (
        notification_id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        type TEXT NOT NULL,
        post_id INTEGER NOT NULL,
        comment_id INTEGER,
        from_user_id INTEGER NOT NULL,
        read INTEGER DEFAULT 0,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_notifications_user_post ON notifications (user_id, post_id);",
    # ─────────────────────────────── FEEDS ───────────────────────────────
    """
    CREATE TABLE IF NOT EXISTS feeds (
        user_id INTEGER NOT NULL,
        post_id INTEGER NOT NULL REFERENCES posts(post_id) ON DELETE CASCADE,
        updated_at TEXT NOT NULL,
        PRIMARY KEY (user_id, post_id)
    );
    """,
    # ─────────────────────────────── JOBS ───────────────────────────────
    """
    CREATE TABLE IF NOT EXISTS jobs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        type TEXT NOT NULL,
        payload TEXT NOT NULL,
        retries INTEGER DEFAULT 0,
        max_retries INTEGER DEFAULT 5,
        next_run REAL,
        status TEXT DEFAULT 'queued',
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    );
    """,
]


def ensure_column(cur, table: str, column: str, definition: str):
    """Add a column to a table if it doesn’t exist."""
    cur.execute(f"PRAGMA table_info({table})")
    cols = [r[1] for r in cur.fetchall()]
    if column not in cols:
        logger.info(f"🛠️  Adding missing column '{column}' to '{table}'...")
        cur.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition};")


def init_database(db_path: Optional[str] = None) -> str:
    """Ensure the database exists and schema is up to date. Returns the path used."""
    path = Path(db_path or config.DB_PATH)
    path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(path, check_same_thread=False)
    try:
        cur = conn.cursor()
        for statement in SCHEMA:
            cur.execute(statement)

        # Columns added after the first release of the jobs table
        ensure_column(cur, "jobs", "updated_at", "TEXT")
        ensure_column(cur, "jobs", "last_error", "TEXT")

        conn.commit()
    finally:
        conn.close()

    logger.debug(f"Database initialized and ready at {path}")
    return str(path)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    print(f"✅ Database ready at {init_database()}")
