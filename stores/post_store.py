from typing import List, Optional

from core.models import PostRaw, PostRawWithUserData, from_dict
from stores.base import SQLiteStore, utcnow

POST_WITH_USER_DATA = """
    SELECT p.*,
           COALESCE(v.vote, 0) AS vote,
           COALESCE(b.bookmark, 0) AS bookmark,
           COALESCE(b.watch, 0) AS watch,
           COALESCE(b.read_comments, 0) AS read_comments
    FROM posts p
    LEFT JOIN post_votes v ON v.post_id = p.post_id AND v.user_id = :for_user_id
    LEFT JOIN bookmarks b ON b.post_id = p.post_id AND b.user_id = :for_user_id
"""


class PostStore(SQLiteStore):
    """Durable post repository. Identities come from SQLite AUTOINCREMENT."""

    def create_post(self, site_id: int, author_id: int, title: str, source: str, html: str) -> PostRaw:
        with self._session() as conn:
            cur = conn.execute(
                """
                INSERT INTO posts (site_id, author_id, title, source, html, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (site_id, author_id, title, source, html, utcnow()),
            )
            row = conn.execute("SELECT * FROM posts WHERE post_id = ?;", (cur.lastrowid,)).fetchone()
            return from_dict(row, PostRaw)

    def get_post(self, post_id: int) -> Optional[PostRaw]:
        with self._session() as conn:
            row = conn.execute("SELECT * FROM posts WHERE post_id = ?;", (post_id,)).fetchone()
            return from_dict(row, PostRaw) if row else None

    def get_post_with_user_data(self, post_id: int, for_user_id: int) -> Optional[PostRawWithUserData]:
        with self._session() as conn:
            row = conn.execute(
                POST_WITH_USER_DATA + " WHERE p.post_id = :post_id;",
                {"post_id": post_id, "for_user_id": for_user_id},
            ).fetchone()
            return from_dict(row, PostRawWithUserData) if row else None

    def get_posts_by_user(self, user_id: int, for_user_id: int, page: int, perpage: int) -> List[PostRawWithUserData]:
        """Newest first; ``page`` is zero-based."""
        with self._session() as conn:
            rows = conn.execute(
                POST_WITH_USER_DATA
                + " WHERE p.author_id = :user_id ORDER BY p.post_id DESC LIMIT :limit OFFSET :offset;",
                {
                    "user_id": user_id,
                    "for_user_id": for_user_id,
                    "limit": perpage,
                    "offset": max(page, 0) * perpage,
                },
            ).fetchall()
            return [from_dict(r, PostRawWithUserData) for r in rows]

    def get_posts_by_user_total(self, user_id: int) -> int:
        with self._session() as conn:
            return conn.execute("SELECT COUNT(*) FROM posts WHERE author_id = ?;", (user_id,)).fetchone()[0]

    def set_vote(self, post_id: int, user_id: int, vote: int) -> None:
        """Record a viewer's vote (-1, 0, 1) and keep the post rating in step."""
        with self._session() as conn:
            row = conn.execute(
                "SELECT vote FROM post_votes WHERE post_id = ? AND user_id = ?;", (post_id, user_id)
            ).fetchone()
            previous = row["vote"] if row else 0
            conn.execute(
                """
                INSERT INTO post_votes (post_id, user_id, vote) VALUES (?, ?, ?)
                ON CONFLICT (post_id, user_id) DO UPDATE SET vote = excluded.vote;
                """,
                (post_id, user_id, vote),
            )
            conn.execute("UPDATE posts SET rating = rating + ? WHERE post_id = ?;", (vote - previous, post_id))

    def delete_post(self, post_id: int) -> bool:
        with self._session() as conn:
            return conn.execute("DELETE FROM posts WHERE post_id = ?;", (post_id,)).rowcount > 0
