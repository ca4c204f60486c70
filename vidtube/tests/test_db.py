import unittest

from vidtube.db import DuplicateRecordError, InMemoryDbClient, SqlDbClient


class DbClientContract:
    """Behavior shared by every DbClient implementation."""

    def make_client(self):
        raise NotImplementedError

    def setUp(self):
        self.db = self.make_client()
        self.alice = self.db.create_user(
            username="Alice",
            email="alice@example.com",
            full_name="Alice",
            password_hash="hash",
            avatar="https://assets.example.test/media/avatars/a.png",
        )
        self.bob = self.db.create_user(
            username="bob",
            email="bob@example.com",
            full_name="Bob",
            password_hash="hash",
            avatar="https://assets.example.test/media/avatars/b.png",
        )

    def test_username_is_stored_lower_case(self):
        self.assertEqual(self.alice.username, "alice")
        self.assertEqual(self.db.get_user_by_username("ALICE").user_id, self.alice.user_id)

    def test_duplicate_user_rejected(self):
        with self.assertRaises(DuplicateRecordError):
            self.db.create_user(
                username="alice",
                email="new@example.com",
                full_name="Other",
                password_hash="hash",
                avatar="x",
            )

    def test_find_by_username_or_email(self):
        found = self.db.find_user_by_username_or_email(None, "bob@example.com")
        self.assertEqual(found.user_id, self.bob.user_id)
        found = self.db.find_user_by_username_or_email("ALICE", None)
        self.assertEqual(found.user_id, self.alice.user_id)
        self.assertIsNone(self.db.find_user_by_username_or_email("carol", None))

    def test_email_is_case_insensitive(self):
        carol = self.db.create_user(
            username="carol",
            email="Carol@Example.COM",
            full_name="Carol",
            password_hash="hash",
            avatar="x",
        )
        self.assertEqual(carol.email, "carol@example.com")
        found = self.db.find_user_by_username_or_email(None, "CAROL@example.com")
        self.assertEqual(found.user_id, carol.user_id)
        with self.assertRaises(DuplicateRecordError):
            self.db.create_user(
                username="carol2",
                email="carol@example.com",
                full_name="Other",
                password_hash="hash",
                avatar="x",
            )
        with self.assertRaises(DuplicateRecordError):
            self.db.update_user(self.alice.user_id, email="BOB@example.com")

    def test_update_user_email_conflict(self):
        with self.assertRaises(DuplicateRecordError):
            self.db.update_user(self.alice.user_id, email="bob@example.com")

    def test_refresh_token_set_and_cleared(self):
        self.db.set_refresh_token(self.alice.user_id, "token-1")
        self.assertEqual(self.db.get_user(self.alice.user_id).refresh_token, "token-1")
        self.db.set_refresh_token(self.alice.user_id, "token-2")
        self.assertEqual(self.db.get_user(self.alice.user_id).refresh_token, "token-2")
        self.db.set_refresh_token(self.alice.user_id, None)
        self.assertIsNone(self.db.get_user(self.alice.user_id).refresh_token)

    def test_channel_profile(self):
        _, created = self.db.subscribe(self.bob.user_id, self.alice.user_id)
        self.assertTrue(created)
        _, created = self.db.subscribe(self.bob.user_id, self.alice.user_id)
        self.assertFalse(created)

        profile = self.db.get_channel_profile("alice", viewer_id=self.bob.user_id)
        self.assertEqual(profile.subscribers_count, 1)
        self.assertEqual(profile.channels_subscribed_to_count, 0)
        self.assertTrue(profile.is_subscribed)

        profile = self.db.get_channel_profile("bob", viewer_id=self.alice.user_id)
        self.assertEqual(profile.subscribers_count, 0)
        self.assertEqual(profile.channels_subscribed_to_count, 1)
        self.assertFalse(profile.is_subscribed)

        self.assertIsNone(self.db.get_channel_profile("nobody"))

    def test_unsubscribe(self):
        self.db.subscribe(self.bob.user_id, self.alice.user_id)
        self.assertTrue(self.db.unsubscribe(self.bob.user_id, self.alice.user_id))
        self.assertFalse(self.db.unsubscribe(self.bob.user_id, self.alice.user_id))
        profile = self.db.get_channel_profile("alice", viewer_id=self.bob.user_id)
        self.assertEqual(profile.subscribers_count, 0)

    def test_watch_history_order(self):
        first = self.db.create_video(
            owner_id=self.alice.user_id,
            title="First",
            description="",
            video_file="v1",
            thumbnail="t1",
        )
        second = self.db.create_video(
            owner_id=self.alice.user_id,
            title="Second",
            description="",
            video_file="v2",
            thumbnail="t2",
        )
        for video in (first, second, first):
            self.db.add_to_watch_history(self.bob.user_id, video.video_id)

        history = self.db.get_watch_history(self.bob.user_id)
        self.assertEqual(
            [item.video.video_id for item in history], [second.video_id, first.video_id]
        )
        self.assertEqual(history[0].owner.username, "alice")
        self.assertEqual(
            self.db.get_user(self.bob.user_id).watch_history,
            [second.video_id, first.video_id],
        )

    def test_increment_views(self):
        video = self.db.create_video(
            owner_id=self.alice.user_id,
            title="Clip",
            description="",
            video_file="v",
            thumbnail="t",
        )
        self.db.increment_video_views(video.video_id)
        self.db.increment_video_views(video.video_id)
        self.assertEqual(self.db.get_video(video.video_id).views, 2)


class SqlDbClientTests(DbClientContract, unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the SQL client logic.
    """

    def make_client(self):
        return SqlDbClient("sqlite+pysqlite:///:memory:")


class InMemoryDbClientTests(DbClientContract, unittest.TestCase):
    def make_client(self):
        return InMemoryDbClient()


if __name__ == "__main__":
    unittest.main()
