from typing import Iterable, List

from stores.base import SQLiteStore, utcnow


class FeedStore(SQLiteStore):
    """Materialized per-user feeds: one row per (user, post), bumped on activity."""

    def add_post_to_feeds(self, post_id: int, user_ids: Iterable[int]) -> int:
        now = utcnow()
        rows = [(user_id, post_id, now) for user_id in user_ids]
        if not rows:
            return 0
        with self._session() as conn:
            conn.executemany(
                """
                INSERT INTO feeds (user_id, post_id, updated_at) VALUES (?, ?, ?)
                ON CONFLICT (user_id, post_id) DO UPDATE SET updated_at = excluded.updated_at;
                """,
                rows,
            )
            return len(rows)

    def get_feed(self, user_id: int, page: int = 0, perpage: int = 20) -> List[int]:
        """Post ids, most recently bumped first."""
        with self._session() as conn:
            rows = conn.execute(
                """
                SELECT post_id FROM feeds WHERE user_id = ?
                ORDER BY updated_at DESC, post_id DESC LIMIT ? OFFSET ?;
                """,
                (user_id, perpage, max(page, 0) * perpage),
            ).fetchall()
            return [r["post_id"] for r in rows]
