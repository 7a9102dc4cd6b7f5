#!/usr/bin/env python3
"""
feed_manager.py — feed fan-out
-------------------------------
Propagates new activity on a post into the feeds of interested users:
subscribers of the post's site and users watching the post. The
post's own author is never fanned out to.

When FEED_WEBHOOK_URL is configured, every fan-out is also relayed to
that endpoint so an external feed service can pick it up.

Runs inside the background FanoutWorker, never on an author's request.
"""

import logging
import time
from typing import List, Optional

import requests

from core.errors import FanoutFault
from stores.bookmark_store import BookmarkStore
from stores.feed_store import FeedStore
from stores.post_store import PostStore
from stores.site_store import SiteStore

logger = logging.getLogger(__name__)

RELAY_ATTEMPTS = 3


class FeedManager:
    def __init__(
        self,
        post_store: PostStore,
        site_store: SiteStore,
        bookmark_store: BookmarkStore,
        feed_store: FeedStore,
        webhook_url: Optional[str] = None,
        webhook_timeout: int = 10,
    ):
        self.posts = post_store
        self.sites = site_store
        self.bookmarks = bookmark_store
        self.feeds = feed_store
        self.webhook_url = webhook_url
        self.webhook_timeout = webhook_timeout

    def post_fan_out(self, post_id: int) -> int:
        """Bump ``post_id`` in every interested feed. Returns the number of feeds touched."""
        post = self.posts.get_post(post_id)
        if not post:
            raise FanoutFault(f"post {post_id} not found")

        recipients = set(self.sites.get_subscribers(post.site_id))
        recipients.update(self.bookmarks.get_watchers(post_id))
        recipients.discard(post.author_id)
        users = sorted(recipients)

        touched = self.feeds.add_post_to_feeds(post_id, users)
        logger.info(f"📣 Fanned out post {post_id} to {touched} feeds")

        if self.webhook_url:
            site = self.sites.get_site_by_id(post.site_id)
            self._relay(post_id, site.site if site else "", users)
        return touched

    def get_feed(self, user_id: int, page: int = 0, perpage: int = 20) -> List[int]:
        return self.feeds.get_feed(user_id, page, perpage)

    # ───────────────────────────
    # External relay
    # ───────────────────────────
    def _relay(self, post_id: int, site: str, users: List[int]):
        payload = {"post_id": post_id, "site": site, "users": users}

        for attempt in range(1, RELAY_ATTEMPTS + 1):
            try:
                r = requests.post(self.webhook_url, json=payload, timeout=self.webhook_timeout)
            except requests.RequestException as e:
                raise FanoutFault(f"relay for post {post_id} failed: {e}") from e

            if r.status_code == 429 and attempt < RELAY_ATTEMPTS:
                wait = 2 * attempt
                logger.info(f"⏳ Feed relay rate limited — retrying in {wait}s")
                time.sleep(wait)
                continue
            if not r.ok:
                raise FanoutFault(f"relay for post {post_id} failed: {r.status_code} {r.text[:120]}")
            return

        raise FanoutFault(f"relay for post {post_id} still rate limited after {RELAY_ATTEMPTS} attempts")
