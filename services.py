#!/usr/bin/env python3
"""
services.py — wiring for the content pipeline
----------------------------------------------
Builds stores, managers and the fan-out worker against one SQLite
database. Entry points (background_worker.py, tests, an API layer)
share this instead of wiring collaborators by hand.
"""

from dataclasses import dataclass
from typing import Optional

from app_config import config
from core.content_parser import ContentParser
from fanout_worker import FANOUT_JOB, FanoutWorker
from feed_manager import FeedManager
from notification_manager import NotificationManager
from post_manager import PostManager
from site_manager import SiteManager
from stores.bookmark_store import BookmarkStore
from stores.comment_store import CommentStore
from stores.feed_store import FeedStore
from stores.notification_store import NotificationStore
from stores.post_store import PostStore
from stores.site_store import SiteStore, UserStore
from worker_manager import WorkerManager


@dataclass
class Services:
    posts: PostManager
    sites: SiteManager
    users: UserStore
    notifications: NotificationManager
    feeds: FeedManager
    workers: WorkerManager
    post_store: PostStore
    comment_store: CommentStore
    bookmark_store: BookmarkStore


def build_services(db_path: Optional[str] = None, with_worker: bool = False, **worker_options) -> Services:
    """
    Wire every collaborator to ``db_path`` (defaults to config.DB_PATH).

    By default the process only persists fan-out jobs as queued (e.g. an
    API process) and leaves execution to background_worker.py.
    with_worker=True also registers a local FanoutWorker; its workers must
    then be run through WorkerManager.start_all().
    """
    db_path = db_path or config.DB_PATH

    post_store = PostStore(db_path)
    comment_store = CommentStore(db_path)
    bookmark_store = BookmarkStore(db_path)
    site_store = SiteStore(db_path)
    user_store = UserStore(db_path)

    sites = SiteManager(site_store)
    notifications = NotificationManager(NotificationStore(db_path), user_store, comment_store)
    feeds = FeedManager(
        post_store,
        site_store,
        bookmark_store,
        FeedStore(db_path),
        webhook_url=config.FEED_WEBHOOK_URL,
        webhook_timeout=config.FEED_WEBHOOK_TIMEOUT,
    )

    workers = WorkerManager(db_path)
    if with_worker:
        worker_options.setdefault("concurrency", config.FANOUT_CONCURRENCY)
        worker_options.setdefault("max_retries", config.FANOUT_MAX_RETRIES)
        worker_options.setdefault("retry_delay", config.FANOUT_RETRY_DELAY)
        workers.register_worker(FANOUT_JOB, FanoutWorker(feeds, **worker_options))

    posts = PostManager(
        bookmark_store,
        comment_store,
        post_store,
        notifications,
        sites,
        workers,
        ContentParser(),
    )

    return Services(
        posts=posts,
        sites=sites,
        users=user_store,
        notifications=notifications,
        feeds=feeds,
        workers=workers,
        post_store=post_store,
        comment_store=comment_store,
        bookmark_store=bookmark_store,
    )
