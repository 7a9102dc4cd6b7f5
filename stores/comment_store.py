from typing import List, Optional

from core.errors import NotFound
from core.models import CommentRaw, CommentRawWithUserData, from_dict
from stores.base import SQLiteStore, utcnow

COMMENT_WITH_USER_DATA = """
    SELECT c.*, p.site_id, COALESCE(v.vote, 0) AS vote
    FROM comments c
    JOIN posts p ON p.post_id = c.post_id
    LEFT JOIN comment_votes v ON v.comment_id = c.comment_id AND v.user_id = :for_user_id
"""


class CommentStore(SQLiteStore):
    """Durable comment repository; comments form a tree per post."""

    def create_comment(
        self,
        author_id: int,
        post_id: int,
        parent_comment_id: Optional[int],
        source: str,
        html: str,
    ) -> CommentRawWithUserData:
        """Insert a comment and bump the post's comment counters in one transaction.

        Raises NotFound if the post is missing or the parent comment is not
        part of the same post.
        """
        with self._session() as conn:
            post = conn.execute("SELECT 1 FROM posts WHERE post_id = ?;", (post_id,)).fetchone()
            if not post:
                raise NotFound("no-post", f"Post {post_id} not found")

            if parent_comment_id is not None:
                parent = conn.execute(
                    "SELECT 1 FROM comments WHERE comment_id = ? AND post_id = ?;",
                    (parent_comment_id, post_id),
                ).fetchone()
                if not parent:
                    raise NotFound("no-parent-comment", f"Comment {parent_comment_id} not found in post {post_id}")

            cur = conn.execute(
                """
                INSERT INTO comments (post_id, author_id, parent_comment_id, source, html, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (post_id, author_id, parent_comment_id, source, html, utcnow()),
            )
            comment_id = cur.lastrowid
            conn.execute(
                "UPDATE posts SET comments = comments + 1, last_comment_id = ? WHERE post_id = ?;",
                (comment_id, post_id),
            )
            row = conn.execute(
                COMMENT_WITH_USER_DATA + " WHERE c.comment_id = :comment_id;",
                {"comment_id": comment_id, "for_user_id": author_id},
            ).fetchone()
            return from_dict(row, CommentRawWithUserData)

    def get_comment(self, comment_id: int) -> Optional[CommentRaw]:
        with self._session() as conn:
            row = conn.execute(
                """
                SELECT c.*, p.site_id FROM comments c
                JOIN posts p ON p.post_id = c.post_id
                WHERE c.comment_id = ?;
                """,
                (comment_id,),
            ).fetchone()
            return from_dict(row, CommentRaw) if row else None

    def get_post_comments(self, post_id: int, for_user_id: int) -> List[CommentRawWithUserData]:
        """All comments of a post in creation order."""
        with self._session() as conn:
            rows = conn.execute(
                COMMENT_WITH_USER_DATA + " WHERE c.post_id = :post_id ORDER BY c.comment_id ASC;",
                {"post_id": post_id, "for_user_id": for_user_id},
            ).fetchall()
            return [from_dict(r, CommentRawWithUserData) for r in rows]

    def get_user_comments(self, user_id: int, for_user_id: int, page: int, perpage: int) -> List[CommentRawWithUserData]:
        """Newest first; ``page`` is zero-based."""
        with self._session() as conn:
            rows = conn.execute(
                COMMENT_WITH_USER_DATA
                + " WHERE c.author_id = :user_id ORDER BY c.comment_id DESC LIMIT :limit OFFSET :offset;",
                {
                    "user_id": user_id,
                    "for_user_id": for_user_id,
                    "limit": perpage,
                    "offset": max(page, 0) * perpage,
                },
            ).fetchall()
            return [from_dict(r, CommentRawWithUserData) for r in rows]

    def get_user_comments_total(self, user_id: int) -> int:
        with self._session() as conn:
            return conn.execute("SELECT COUNT(*) FROM comments WHERE author_id = ?;", (user_id,)).fetchone()[0]

    def set_vote(self, comment_id: int, user_id: int, vote: int) -> None:
        with self._session() as conn:
            row = conn.execute(
                "SELECT vote FROM comment_votes WHERE comment_id = ? AND user_id = ?;", (comment_id, user_id)
            ).fetchone()
            previous = row["vote"] if row else 0
            conn.execute(
                """
                INSERT INTO comment_votes (comment_id, user_id, vote) VALUES (?, ?, ?)
                ON CONFLICT (comment_id, user_id) DO UPDATE SET vote = excluded.vote;
                """,
                (comment_id, user_id, vote),
            )
            conn.execute(
                "UPDATE comments SET rating = rating + ? WHERE comment_id = ?;", (vote - previous, comment_id)
            )

    def delete_comment(self, comment_id: int) -> bool:
        """Hard-delete a comment that has no replies and roll back the post counters."""
        with self._session() as conn:
            row = conn.execute("SELECT post_id FROM comments WHERE comment_id = ?;", (comment_id,)).fetchone()
            if not row:
                return False
            post_id = row["post_id"]
            conn.execute("DELETE FROM comments WHERE comment_id = ?;", (comment_id,))
            conn.execute(
                """
                UPDATE posts SET comments = MAX(comments - 1, 0),
                       last_comment_id = (SELECT MAX(comment_id) FROM comments WHERE post_id = :post_id)
                WHERE post_id = :post_id;
                """,
                {"post_id": post_id},
            )
            return True
