from typing import List, Optional

from core.models import Notification, from_dict
from stores.base import SQLiteStore, utcnow


class NotificationStore(SQLiteStore):
    def create(
        self,
        user_id: int,
        kind: str,
        post_id: int,
        from_user_id: int,
        comment_id: Optional[int] = None,
    ) -> int:
        with self._session() as conn:
            cur = conn.execute(
                """
                INSERT INTO notifications (user_id, type, post_id, comment_id, from_user_id, created_at)
                VALUES (?, ?, ?, ?, ?, ?);
                """,
                (user_id, kind, post_id, comment_id, from_user_id, utcnow()),
            )
            return cur.lastrowid

    def set_read_for_post(self, user_id: int, post_id: int) -> bool:
        """Mark every unread notification of ``user_id`` about ``post_id`` as read."""
        with self._session() as conn:
            cur = conn.execute(
                "UPDATE notifications SET read = 1 WHERE user_id = ? AND post_id = ? AND read = 0;",
                (user_id, post_id),
            )
            return cur.rowcount > 0

    def get_for_user(self, user_id: int, unread_only: bool = False) -> List[Notification]:
        query = "SELECT * FROM notifications WHERE user_id = ?"
        if unread_only:
            query += " AND read = 0"
        with self._session() as conn:
            rows = conn.execute(query + " ORDER BY notification_id DESC;", (user_id,)).fetchall()
            return [from_dict(r, Notification) for r in rows]
