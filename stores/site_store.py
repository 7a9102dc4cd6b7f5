from typing import List, Optional

from core.models import Site, User, from_dict
from stores.base import SQLiteStore


class SiteStore(SQLiteStore):
    """Sites and their subscriber lists."""

    def create_site(self, site: str, name: str = "") -> Site:
        with self._session() as conn:
            cur = conn.execute("INSERT INTO sites (site, name) VALUES (?, ?);", (site, name))
            row = conn.execute("SELECT * FROM sites WHERE site_id = ?;", (cur.lastrowid,)).fetchone()
            return from_dict(row, Site)

    def get_site_by_name(self, site: str) -> Optional[Site]:
        with self._session() as conn:
            row = conn.execute("SELECT * FROM sites WHERE site = ?;", (site,)).fetchone()
            return from_dict(row, Site) if row else None

    def get_site_by_id(self, site_id: int) -> Optional[Site]:
        with self._session() as conn:
            row = conn.execute("SELECT * FROM sites WHERE site_id = ?;", (site_id,)).fetchone()
            return from_dict(row, Site) if row else None

    def subscribe(self, site_id: int, user_id: int) -> bool:
        with self._session() as conn:
            cur = conn.execute(
                "INSERT OR IGNORE INTO subscriptions (site_id, user_id) VALUES (?, ?);", (site_id, user_id)
            )
            return cur.rowcount > 0

    def unsubscribe(self, site_id: int, user_id: int) -> bool:
        with self._session() as conn:
            cur = conn.execute("DELETE FROM subscriptions WHERE site_id = ? AND user_id = ?;", (site_id, user_id))
            return cur.rowcount > 0

    def get_subscribers(self, site_id: int) -> List[int]:
        with self._session() as conn:
            rows = conn.execute(
                "SELECT user_id FROM subscriptions WHERE site_id = ? ORDER BY user_id;", (site_id,)
            ).fetchall()
            return [r["user_id"] for r in rows]


class UserStore(SQLiteStore):
    """Username directory used to resolve @mentions."""

    def create_user(self, username: str) -> User:
        with self._session() as conn:
            cur = conn.execute("INSERT INTO users (username) VALUES (?);", (username,))
            row = conn.execute("SELECT * FROM users WHERE user_id = ?;", (cur.lastrowid,)).fetchone()
            return from_dict(row, User)

    def get_user(self, user_id: int) -> Optional[User]:
        with self._session() as conn:
            row = conn.execute("SELECT * FROM users WHERE user_id = ?;", (user_id,)).fetchone()
            return from_dict(row, User) if row else None

    def get_user_by_name(self, username: str) -> Optional[User]:
        """Case-insensitive lookup (the column is COLLATE NOCASE)."""
        with self._session() as conn:
            row = conn.execute("SELECT * FROM users WHERE username = ?;", (username,)).fetchone()
            return from_dict(row, User) if row else None
