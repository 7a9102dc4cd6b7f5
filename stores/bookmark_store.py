from typing import List, Optional

from core.models import Bookmark, from_dict
from stores.base import SQLiteStore, utcnow


class BookmarkStore(SQLiteStore):
    """
    Per-(post, user) bookmark / watch flags plus the last-read position.
    Every setter returns True only when the stored state actually changed,
    so repeating a call with the same value is a no-op.
    """

    def get_bookmark(self, post_id: int, user_id: int) -> Optional[Bookmark]:
        with self._session() as conn:
            row = conn.execute(
                "SELECT * FROM bookmarks WHERE post_id = ? AND user_id = ?;", (post_id, user_id)
            ).fetchone()
            return from_dict(row, Bookmark) if row else None

    def set_bookmark(self, post_id: int, user_id: int, bookmarked: bool) -> bool:
        return self._set_flag("bookmark", post_id, user_id, bookmarked)

    def set_watch(self, post_id: int, user_id: int, watch: bool) -> bool:
        return self._set_flag("watch", post_id, user_id, watch)

    def set_read(self, post_id: int, user_id: int, read_comments: int, last_comment_id: Optional[int] = None) -> bool:
        with self._session() as conn:
            row = conn.execute(
                "SELECT read_comments, last_read_comment_id FROM bookmarks WHERE post_id = ? AND user_id = ?;",
                (post_id, user_id),
            ).fetchone()
            current = (row["read_comments"], row["last_read_comment_id"]) if row else (0, None)
            wanted = (read_comments, last_comment_id if last_comment_id is not None else current[1])
            if current == wanted:
                return False
            conn.execute(
                """
                INSERT INTO bookmarks (post_id, user_id, read_comments, last_read_comment_id, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (post_id, user_id) DO UPDATE SET
                    read_comments = excluded.read_comments,
                    last_read_comment_id = excluded.last_read_comment_id,
                    updated_at = excluded.updated_at;
                """,
                (post_id, user_id, wanted[0], wanted[1], utcnow()),
            )
            return True

    def get_watchers(self, post_id: int) -> List[int]:
        with self._session() as conn:
            rows = conn.execute(
                "SELECT user_id FROM bookmarks WHERE post_id = ? AND watch = 1 ORDER BY user_id;", (post_id,)
            ).fetchall()
            return [r["user_id"] for r in rows]

    # ───────────────────────────
    # Internal
    # ───────────────────────────
    def _set_flag(self, column: str, post_id: int, user_id: int, value: bool) -> bool:
        value = bool(value)
        with self._session() as conn:
            row = conn.execute(
                f"SELECT {column} FROM bookmarks WHERE post_id = ? AND user_id = ?;", (post_id, user_id)
            ).fetchone()
            if bool(row[column] if row else False) == value:
                return False
            conn.execute(
                f"""
                INSERT INTO bookmarks (post_id, user_id, {column}, updated_at) VALUES (?, ?, ?, ?)
                ON CONFLICT (post_id, user_id) DO UPDATE SET
                    {column} = excluded.{column},
                    updated_at = excluded.updated_at;
                """,
                (post_id, user_id, int(value), utcnow()),
            )
            return True
