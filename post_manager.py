#!/usr/bin/env python3
"""
post_manager.py — content authoring and fan-out orchestration
-------------------------------------------------------------
Turns post/comment submissions into stored content and coordinates
the side effects around it:

  1. resolve the site (posts only): NotFound before any write
  2. parse markup (never fails)
  3. persist: the durability boundary
  4. author self-watch: must succeed, otherwise the new content is
     removed again and the error propagates
  5. mention / reply notifications: each attempt independent, failures
     logged and contained
  6. feed fan-out: persisted as a background job whose run is never awaited

Blocking store calls run through asyncio.to_thread so each collaborator
call is a suspension point for the request task.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional

from core.content_parser import ContentParser
from core.errors import NotFound
from core.models import (
    NOTIFY_ANSWER,
    NOTIFY_MENTION,
    Bookmark,
    CommentInfo,
    CommentRawWithUserData,
    ContentFormat,
    DispatchResult,
    PostInfo,
    PostRaw,
    PostRawWithUserData,
    Site,
)
from fanout_worker import FANOUT_JOB
from notification_manager import NotificationManager
from site_manager import SiteManager
from stores.bookmark_store import BookmarkStore
from stores.comment_store import CommentStore
from stores.post_store import PostStore
from utils import log_error
from worker_manager import WorkerManager

logger = logging.getLogger(__name__)


class PostManager:
    def __init__(
        self,
        bookmark_store: BookmarkStore,
        comment_store: CommentStore,
        post_store: PostStore,
        notification_manager: NotificationManager,
        site_manager: SiteManager,
        worker_manager: WorkerManager,
        parser: ContentParser,
    ):
        self.bookmarks = bookmark_store
        self.comments = comment_store
        self.posts = post_store
        self.notifications = notification_manager
        self.sites = site_manager
        self.workers = worker_manager
        self.parser = parser

    # ───────────────────────────
    # Posts
    # ───────────────────────────
    async def get_post(self, post_id: int, for_user_id: int) -> Optional[PostRawWithUserData]:
        return await asyncio.to_thread(self.posts.get_post_with_user_data, post_id, for_user_id)

    async def get_post_without_user_data(self, post_id: int) -> Optional[PostRaw]:
        return await asyncio.to_thread(self.posts.get_post, post_id)

    async def get_posts_by_user(self, user_id: int, for_user_id: int, page: int, perpage: int) -> List[PostRawWithUserData]:
        return await asyncio.to_thread(self.posts.get_posts_by_user, user_id, for_user_id, page, perpage)

    async def get_posts_by_user_total(self, user_id: int) -> int:
        return await asyncio.to_thread(self.posts.get_posts_by_user_total, user_id)

    async def create_post(
        self, site_name: str, user_id: int, title: str, content: str, fmt: ContentFormat = "html"
    ) -> PostInfo:
        site = await asyncio.to_thread(self.sites.get_site_by_name, site_name)
        if not site:
            raise NotFound("no-site", "Site not found")

        parsed = self.parser.parse(content)
        post = await asyncio.to_thread(self.posts.create_post, site.site_id, user_id, title, content, parsed.text)
        logger.info(f"📝 Created post {post.post_id} on {site.site} by user {user_id}")

        await self._watch_own_content(
            post.post_id, user_id, undo=lambda: asyncio.to_thread(self.posts.delete_post, post.post_id)
        )

        await self._send_mentions(parsed.mentions, user_id, post.post_id)

        await self._fan_out(post.post_id)

        return PostInfo(
            id=post.post_id,
            site=site.site,
            author=post.author_id,
            created=post.created_at,
            title=post.title,
            content=post.html if fmt == "html" else post.source,
            rating=0,
            comments=0,
            new_comments=0,
            vote=0,
            bookmark=False,
            watch=True,
        )

    # ───────────────────────────
    # Comments
    # ───────────────────────────
    async def get_post_comments(self, post_id: int, for_user_id: int, fmt: ContentFormat = "html") -> List[CommentInfo]:
        raw_comments = await asyncio.to_thread(self.comments.get_post_comments, post_id, for_user_id)
        return await self._convert_raw_comments(raw_comments, fmt)

    async def get_user_comments(
        self, user_id: int, for_user_id: int, page: int, perpage: int, fmt: ContentFormat = "html"
    ) -> List[CommentInfo]:
        raw_comments = await asyncio.to_thread(self.comments.get_user_comments, user_id, for_user_id, page, perpage)
        return await self._convert_raw_comments(raw_comments, fmt)

    async def get_user_comments_total(self, user_id: int) -> int:
        return await asyncio.to_thread(self.comments.get_user_comments_total, user_id)

    async def create_comment(
        self,
        user_id: int,
        post_id: int,
        parent_comment_id: Optional[int],
        content: str,
        fmt: ContentFormat = "html",
    ) -> CommentInfo:
        parsed = self.parser.parse(content)
        comment = await asyncio.to_thread(
            self.comments.create_comment, user_id, post_id, parent_comment_id, content, parsed.text
        )
        logger.info(f"💬 Created comment {comment.comment_id} on post {post_id} by user {user_id}")

        await self._watch_own_content(
            post_id, user_id, undo=lambda: asyncio.to_thread(self.comments.delete_comment, comment.comment_id)
        )

        await self._send_mentions(parsed.mentions, user_id, post_id, comment.comment_id)

        if parent_comment_id is not None:
            await self._dispatch(
                NOTIFY_ANSWER,
                parent_comment_id,
                self.notifications.send_answer_notify,
                parent_comment_id,
                user_id,
                post_id,
                comment.comment_id,
            )

        # Comments fan out under their post
        await self._fan_out(comment.post_id)

        converted = await self._convert_raw_comments([comment], fmt)
        return converted[0]

    async def _convert_raw_comments(
        self, raw_comments: List[CommentRawWithUserData], fmt: ContentFormat
    ) -> List[CommentInfo]:
        # Memo lives for this conversion pass only
        site_by_id: Dict[int, Optional[Site]] = {}
        comments: List[CommentInfo] = []

        for raw in raw_comments:
            if raw.site_id not in site_by_id:
                site_by_id[raw.site_id] = await asyncio.to_thread(self.sites.get_site_by_id, raw.site_id)
            site = site_by_id[raw.site_id]

            comments.append(
                CommentInfo(
                    id=raw.comment_id,
                    post=raw.post_id,
                    site=site.site if site else "",
                    content=raw.html if fmt == "html" else raw.source,
                    author=raw.author_id,
                    created=raw.created_at,
                    deleted=bool(raw.deleted),
                    rating=raw.rating,
                    parent_comment=raw.parent_comment_id,
                    vote=raw.vote,
                )
            )

        return comments

    # ───────────────────────────
    # Read / watch state
    # ───────────────────────────
    async def set_read(self, post_id: int, user_id: int, read_comments: int, last_comment_id: Optional[int] = None) -> bool:
        changed_notifications = await asyncio.to_thread(self.notifications.set_read_for_post, user_id, post_id)
        changed_bookmarks = await asyncio.to_thread(
            self.bookmarks.set_read, post_id, user_id, read_comments, last_comment_id
        )
        return changed_notifications or changed_bookmarks

    def preview(self, content: str) -> str:
        return self.parser.parse(content).text

    async def get_bookmark(self, post_id: int, user_id: int) -> Optional[Bookmark]:
        return await asyncio.to_thread(self.bookmarks.get_bookmark, post_id, user_id)

    async def set_bookmark(self, post_id: int, user_id: int, bookmarked: bool) -> bool:
        return await asyncio.to_thread(self.bookmarks.set_bookmark, post_id, user_id, bookmarked)

    async def set_watch(self, post_id: int, user_id: int, watch: bool) -> bool:
        return await asyncio.to_thread(self.bookmarks.set_watch, post_id, user_id, watch)

    # ───────────────────────────
    # Side effects
    # ───────────────────────────
    async def _watch_own_content(self, post_id: int, user_id: int, undo: Callable[[], Awaitable]):
        try:
            await asyncio.to_thread(self.bookmarks.set_watch, post_id, user_id, True)
        except Exception:
            logger.error(f"Could not set author watch on post {post_id} for user {user_id}; removing new content")
            try:
                await undo()
            except Exception as undo_error:
                log_error(f"undo content on post {post_id}", undo_error)
            raise

    async def _send_mentions(
        self, mentions: List[str], user_id: int, post_id: int, comment_id: Optional[int] = None
    ) -> List[DispatchResult]:
        results = []
        for mention in mentions:
            results.append(
                await self._dispatch(
                    NOTIFY_MENTION,
                    mention,
                    self.notifications.send_mention_notify,
                    mention,
                    user_id,
                    post_id,
                    comment_id,
                )
            )

        failed = [r for r in results if not r.ok]
        if failed:
            logger.warning(
                f"{len(failed)}/{len(results)} mention notifications failed for post {post_id}: "
                + ", ".join(str(r.target) for r in failed)
            )
        return results

    async def _dispatch(self, kind: str, target, send, *args) -> DispatchResult:
        """One notification attempt; a failure is recorded, never raised."""
        try:
            await asyncio.to_thread(send, *args)
            return DispatchResult(target=target, type=kind, ok=True)
        except Exception as e:
            logger.warning(f"{kind} notification for {target!r} failed: {e}")
            log_error(f"{kind} notification for {target!r}", e)
            return DispatchResult(target=target, type=kind, ok=False, error=str(e))

    async def _fan_out(self, post_id: int):
        """Schedule feed propagation; its outcome never reaches the caller."""
        try:
            await self.workers.submit(FANOUT_JOB, {"post_id": post_id})
        except Exception as e:
            logger.error(f"Could not schedule fan-out for post {post_id}: {e}")
            log_error(f"schedule fan-out for post {post_id}", e)
