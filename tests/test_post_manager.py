"""Tests for PostManager orchestration against collaborator doubles."""
import unittest
from unittest.mock import AsyncMock, MagicMock, call, patch

from core.content_parser import ContentParser
from core.errors import DispatchFault, NotFound, StorageFault
from core.models import CommentInfo, CommentRawWithUserData, PostInfo, PostRaw, Site
from post_manager import PostManager

CREATED = "2026-10-17T12:00:00+00:00"


def make_post_raw(post_id=101, author_id=7, title="Hello", source="cc @alice please review"):
    return PostRaw(
        post_id=post_id,
        site_id=1,
        author_id=author_id,
        title=title,
        source=source,
        html=ContentParser().parse(source).text,
        created_at=CREATED,
    )


def make_comment_raw(comment_id=55, post_id=42, author_id=7, parent=None, site_id=1, source="thanks"):
    return CommentRawWithUserData(
        comment_id=comment_id,
        post_id=post_id,
        site_id=site_id,
        author_id=author_id,
        source=source,
        html=f"<p>{source}</p>",
        created_at=CREATED,
        parent_comment_id=parent,
    )


class PostManagerTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.bookmarks = MagicMock()
        self.comments = MagicMock()
        self.posts = MagicMock()
        self.notifications = MagicMock()
        self.sites = MagicMock()
        self.workers = MagicMock()
        self.workers.submit = AsyncMock()

        self.sites.get_site_by_name.return_value = Site(site_id=1, site="blog")
        self.sites.get_site_by_id.side_effect = lambda site_id: Site(site_id=site_id, site=f"site{site_id}")
        self.posts.create_post.return_value = make_post_raw()

        self.manager = PostManager(
            self.bookmarks,
            self.comments,
            self.posts,
            self.notifications,
            self.sites,
            self.workers,
            ContentParser(),
        )

        patcher = patch("post_manager.log_error")
        self.log_error = patcher.start()
        self.addCleanup(patcher.stop)


class TestCreatePost(PostManagerTestCase):
    async def test_scenario_hello_post(self):
        info = await self.manager.create_post("blog", 7, "Hello", "cc @alice please review")

        self.assertIsInstance(info, PostInfo)
        self.assertEqual(info.id, 101)
        self.assertEqual(info.site, "blog")
        self.assertEqual(info.author, 7)
        self.assertEqual(info.title, "Hello")
        self.assertEqual((info.rating, info.comments, info.new_comments, info.vote), (0, 0, 0, 0))
        self.assertTrue(info.watch)
        self.assertFalse(info.bookmark)
        self.notifications.send_mention_notify.assert_called_once_with("alice", 7, 101, None)

    async def test_persists_raw_and_rendered_content(self):
        await self.manager.create_post("blog", 7, "Hello", "cc @alice please review")
        site_id, author, title, source, html = self.posts.create_post.call_args.args
        self.assertEqual((site_id, author, title, source), (1, 7, "Hello", "cc @alice please review"))
        self.assertIn('class="mention"', html)

    async def test_format_selects_content(self):
        html_info = await self.manager.create_post("blog", 7, "Hello", "cc @alice please review", "html")
        source_info = await self.manager.create_post("blog", 7, "Hello", "cc @alice please review", "source")
        self.assertIn("<p>", html_info.content)
        self.assertEqual(source_info.content, "cc @alice please review")

    async def test_author_watch_is_set(self):
        await self.manager.create_post("blog", 7, "Hello", "text")
        self.bookmarks.set_watch.assert_called_once_with(101, 7, True)

    async def test_mentions_dispatched_in_source_order(self):
        self.posts.create_post.return_value = make_post_raw(source="@c @a @b @a")
        await self.manager.create_post("blog", 7, "t", "@c @a @b @a")
        self.assertEqual(
            self.notifications.send_mention_notify.call_args_list,
            [call("c", 7, 101, None), call("a", 7, 101, None), call("b", 7, 101, None), call("a", 7, 101, None)],
        )

    async def test_missing_site_fails_before_any_write(self):
        self.sites.get_site_by_name.return_value = None
        with self.assertRaises(NotFound) as ctx:
            await self.manager.create_post("nope", 7, "t", "@alice")
        self.assertEqual(ctx.exception.code, "no-site")
        self.posts.create_post.assert_not_called()
        self.bookmarks.set_watch.assert_not_called()
        self.notifications.send_mention_notify.assert_not_called()
        self.workers.submit.assert_not_called()

    async def test_storage_fault_propagates(self):
        self.posts.create_post.side_effect = StorageFault("database is locked")
        with self.assertRaises(StorageFault):
            await self.manager.create_post("blog", 7, "t", "@alice")
        self.notifications.send_mention_notify.assert_not_called()
        self.workers.submit.assert_not_called()

    async def test_self_watch_failure_removes_post(self):
        self.bookmarks.set_watch.side_effect = StorageFault("disk full")
        with self.assertRaises(StorageFault):
            await self.manager.create_post("blog", 7, "t", "@alice")
        self.posts.delete_post.assert_called_once_with(101)
        self.notifications.send_mention_notify.assert_not_called()
        self.workers.submit.assert_not_called()

    async def test_failed_mention_does_not_stop_the_rest(self):
        self.posts.create_post.return_value = make_post_raw(source="@a @b @c")
        self.notifications.send_mention_notify.side_effect = [True, DispatchFault("boom"), True]

        info = await self.manager.create_post("blog", 7, "t", "@a @b @c")

        self.assertEqual(self.notifications.send_mention_notify.call_count, 3)
        self.assertEqual(info.id, 101)
        self.workers.submit.assert_called_once_with("feed_fanout", {"post_id": 101})
        self.log_error.assert_called_once()

    async def test_dispatch_results_are_collected(self):
        self.notifications.send_mention_notify.side_effect = [True, RuntimeError("down")]
        results = await self.manager._send_mentions(["a", "b"], 7, 101)
        self.assertEqual([(r.target, r.ok) for r in results], [("a", True), ("b", False)])
        self.assertEqual(results[1].error, "down")

    async def test_fan_out_requested_once_after_notifications(self):
        order = []
        self.notifications.send_mention_notify.side_effect = lambda *a: order.append("notify")
        self.workers.submit.side_effect = lambda *a: order.append("fanout")

        await self.manager.create_post("blog", 7, "Hello", "cc @alice please review")
        self.assertEqual(order, ["notify", "fanout"])
        self.workers.submit.assert_awaited_once_with("feed_fanout", {"post_id": 101})

    async def test_fan_out_failure_is_invisible_to_caller(self):
        expected = await self.manager.create_post("blog", 7, "Hello", "text")
        self.workers.submit.side_effect = RuntimeError("queue unavailable")
        info = await self.manager.create_post("blog", 7, "Hello", "text")
        self.assertEqual(info, expected)
        self.log_error.assert_called_once()


class TestCreateComment(PostManagerTestCase):
    async def test_scenario_reply_without_mentions(self):
        self.comments.create_comment.return_value = make_comment_raw(parent=10)

        info = await self.manager.create_comment(7, 42, 10, "thanks")

        self.notifications.send_answer_notify.assert_called_once_with(10, 7, 42, 55)
        self.notifications.send_mention_notify.assert_not_called()
        self.assertIsInstance(info, CommentInfo)
        self.assertEqual(info.parent_comment, 10)
        self.assertFalse(hasattr(info, "title"))

    async def test_no_parent_no_answer(self):
        self.comments.create_comment.return_value = make_comment_raw(source="hi @bob")
        await self.manager.create_comment(7, 42, None, "hi @bob")
        self.notifications.send_answer_notify.assert_not_called()
        self.notifications.send_mention_notify.assert_called_once_with("bob", 7, 42, 55)

    async def test_reply_and_mentions_both_dispatched(self):
        self.comments.create_comment.return_value = make_comment_raw(parent=10, source="@x @y")
        await self.manager.create_comment(7, 42, 10, "@x @y")
        self.assertEqual(self.notifications.send_mention_notify.call_count, 2)
        self.notifications.send_answer_notify.assert_called_once()

    async def test_self_reply_still_dispatched(self):
        self.comments.create_comment.return_value = make_comment_raw(parent=10, author_id=3)
        await self.manager.create_comment(3, 42, 10, "me again")
        self.notifications.send_answer_notify.assert_called_once_with(10, 3, 42, 55)

    async def test_answer_failure_is_contained(self):
        self.comments.create_comment.return_value = make_comment_raw(parent=10)
        self.notifications.send_answer_notify.side_effect = DispatchFault("parent gone")
        info = await self.manager.create_comment(7, 42, 10, "thanks")
        self.assertEqual(info.id, 55)
        self.workers.submit.assert_called_once()

    async def test_watch_and_fan_out_use_post_identity(self):
        self.comments.create_comment.return_value = make_comment_raw()
        await self.manager.create_comment(7, 42, None, "thanks")
        self.bookmarks.set_watch.assert_called_once_with(42, 7, True)
        self.workers.submit.assert_awaited_once_with("feed_fanout", {"post_id": 42})

    async def test_view_model_shape(self):
        self.comments.create_comment.return_value = make_comment_raw()
        html = await self.manager.create_comment(7, 42, None, "thanks", "html")
        source = await self.manager.create_comment(7, 42, None, "thanks", "source")
        self.assertEqual(
            html,
            CommentInfo(
                id=55, post=42, site="site1", content="<p>thanks</p>", author=7, created=CREATED,
                deleted=False, rating=0, parent_comment=None, vote=0,
            ),
        )
        self.assertEqual(source.content, "thanks")

    async def test_missing_post_propagates(self):
        self.comments.create_comment.side_effect = NotFound("no-post", "Post 42 not found")
        with self.assertRaises(NotFound):
            await self.manager.create_comment(7, 42, None, "@alice")
        self.bookmarks.set_watch.assert_not_called()
        self.notifications.send_mention_notify.assert_not_called()
        self.workers.submit.assert_not_called()

    async def test_self_watch_failure_removes_comment(self):
        self.comments.create_comment.return_value = make_comment_raw()
        self.bookmarks.set_watch.side_effect = StorageFault("disk full")
        with self.assertRaises(StorageFault):
            await self.manager.create_comment(7, 42, None, "thanks")
        self.comments.delete_comment.assert_called_once_with(55)
        self.workers.submit.assert_not_called()


class TestReadAssembly(PostManagerTestCase):
    async def test_site_lookup_memoized_per_call(self):
        self.comments.get_post_comments.return_value = [
            make_comment_raw(comment_id=1, site_id=1),
            make_comment_raw(comment_id=2, site_id=2),
            make_comment_raw(comment_id=3, site_id=1),
        ]
        result = await self.manager.get_post_comments(42, 7)
        self.assertEqual([c.site for c in result], ["site1", "site2", "site1"])
        self.assertEqual(self.sites.get_site_by_id.call_count, 2)

        await self.manager.get_post_comments(42, 7)
        self.assertEqual(self.sites.get_site_by_id.call_count, 4)

    async def test_unknown_site_gives_empty_name(self):
        self.sites.get_site_by_id.side_effect = None
        self.sites.get_site_by_id.return_value = None
        self.comments.get_user_comments.return_value = [make_comment_raw()]
        result = await self.manager.get_user_comments(7, 7, 0, 20)
        self.assertEqual(result[0].site, "")
        self.comments.get_user_comments.assert_called_once_with(7, 7, 0, 20)

    async def test_passthrough_reads(self):
        self.comments.get_user_comments_total.return_value = 3
        self.posts.get_posts_by_user_total.return_value = 2
        self.assertEqual(await self.manager.get_user_comments_total(7), 3)
        self.assertEqual(await self.manager.get_posts_by_user_total(7), 2)
        await self.manager.get_post(101, 7)
        self.posts.get_post_with_user_data.assert_called_once_with(101, 7)
        await self.manager.get_post_without_user_data(101)
        self.posts.get_post.assert_called_once_with(101)
        await self.manager.get_posts_by_user(7, 3, 1, 10)
        self.posts.get_posts_by_user.assert_called_once_with(7, 3, 1, 10)


class TestReadState(PostManagerTestCase):
    async def test_set_read_is_or_of_both_stores(self):
        cases = [(False, False, False), (True, False, True), (False, True, True), (True, True, True)]
        for notif_changed, bookmark_changed, expected in cases:
            with self.subTest(notifications=notif_changed, bookmarks=bookmark_changed):
                self.notifications.set_read_for_post.return_value = notif_changed
                self.bookmarks.set_read.return_value = bookmark_changed
                self.assertEqual(await self.manager.set_read(42, 7, 5, 99), expected)

        self.notifications.set_read_for_post.assert_called_with(7, 42)
        self.bookmarks.set_read.assert_called_with(42, 7, 5, 99)

    async def test_set_read_runs_notifications_first(self):
        order = []
        self.notifications.set_read_for_post.side_effect = lambda *a: order.append("notifications") or False
        self.bookmarks.set_read.side_effect = lambda *a: order.append("bookmarks") or False
        await self.manager.set_read(42, 7, 1)
        self.assertEqual(order, ["notifications", "bookmarks"])

    async def test_bookmark_failure_propagates_after_notifications(self):
        self.notifications.set_read_for_post.return_value = True
        self.bookmarks.set_read.side_effect = StorageFault("locked")
        with self.assertRaises(StorageFault):
            await self.manager.set_read(42, 7, 1)
        self.notifications.set_read_for_post.assert_called_once()

    async def test_bookmark_passthroughs(self):
        self.bookmarks.set_watch.return_value = False
        self.assertFalse(await self.manager.set_watch(42, 7, True))
        self.bookmarks.set_watch.assert_called_once_with(42, 7, True)

        await self.manager.set_bookmark(42, 7, True)
        self.bookmarks.set_bookmark.assert_called_once_with(42, 7, True)

        await self.manager.get_bookmark(42, 7)
        self.bookmarks.get_bookmark.assert_called_once_with(42, 7)


class TestPreview(PostManagerTestCase):
    def test_preview_has_no_side_effects(self):
        text = self.manager.preview("hey @alice **look**")
        self.assertIn("<strong>look</strong>", text)
        for collaborator in (self.bookmarks, self.comments, self.posts, self.notifications, self.sites, self.workers):
            self.assertEqual(collaborator.method_calls, [])


if __name__ == "__main__":
    unittest.main()
