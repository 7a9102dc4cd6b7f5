#!/usr/bin/env python3
"""
notification_manager.py — mention / reply notification dispatcher
------------------------------------------------------------------
Records "mention" and "answer" notifications and reconciles their
read state per post.

Policy owned here (not by PostManager):
  • unknown @usernames are skipped (nothing to notify)
  • nobody is notified about their own action (self-mention, self-reply)

Storage failures surface as DispatchFault; the caller decides whether
that is fatal. PostManager treats each dispatch as independent.
"""

import logging
from typing import List, Optional

from core.errors import DispatchFault, StorageFault
from core.models import NOTIFY_ANSWER, NOTIFY_MENTION, Notification
from stores.comment_store import CommentStore
from stores.notification_store import NotificationStore
from stores.site_store import UserStore

logger = logging.getLogger(__name__)


class NotificationManager:
    def __init__(self, notification_store: NotificationStore, user_store: UserStore, comment_store: CommentStore):
        self.store = notification_store
        self.users = user_store
        self.comments = comment_store

    def send_mention_notify(
        self,
        username: str,
        from_user_id: int,
        post_id: int,
        comment_id: Optional[int] = None,
    ) -> bool:
        """Notify the user behind ``@username``. Returns True if a notification was recorded."""
        try:
            user = self.users.get_user_by_name(username)
            if not user:
                logger.info(f"Mention of unknown user @{username} in post {post_id} ignored")
                return False
            return self._notify(user.user_id, NOTIFY_MENTION, from_user_id, post_id, comment_id)
        except StorageFault as e:
            raise DispatchFault(f"mention @{username} in post {post_id}: {e.message}") from e

    def send_answer_notify(self, parent_comment_id: int, from_user_id: int, post_id: int, comment_id: int) -> bool:
        """Notify the author of ``parent_comment_id`` about a reply."""
        try:
            parent = self.comments.get_comment(parent_comment_id)
            if not parent:
                raise DispatchFault(f"parent comment {parent_comment_id} not found")
            return self._notify(parent.author_id, NOTIFY_ANSWER, from_user_id, post_id, comment_id)
        except StorageFault as e:
            raise DispatchFault(f"answer to comment {parent_comment_id}: {e.message}") from e

    def set_read_for_post(self, user_id: int, post_id: int) -> bool:
        return self.store.set_read_for_post(user_id, post_id)

    def get_notifications(self, user_id: int, unread_only: bool = False) -> List[Notification]:
        return self.store.get_for_user(user_id, unread_only=unread_only)

    def _notify(self, user_id: int, kind: str, from_user_id: int, post_id: int, comment_id: Optional[int]) -> bool:
        if user_id == from_user_id:
            logger.debug(f"Skipping self-{kind} notification for user {user_id}")
            return False
        notification_id = self.store.create(user_id, kind, post_id, from_user_id, comment_id)
        logger.info(f"🔔 {kind} notification {notification_id} → user {user_id} (post {post_id})")
        return True
