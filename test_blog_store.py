import os
import tempfile
import unittest
from datetime import datetime, timedelta, timezone

from egghead.blog.store import MAX_LATEST, BlogPost, BlogStore


def make_post(i: int = 0) -> BlogPost:
    return BlogPost(
        timestamp=datetime(2024, 5, 1, 12, 30, 15, 123456, tzinfo=timezone.utc) + timedelta(minutes=i),
        content=f"Post body {i}",
        location="Kyoto, Japan",
        activity="Visiting temples.",
        image_url="https://picsum.photos/seed/kyoto-japan/1600/900",
    )


class TestBlogStore(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.store = BlogStore(os.path.join(self.tmp.name, "blog.db"))
        self.store.init()

    def tearDown(self):
        self.tmp.cleanup()

    def test_save_then_get_round_trips(self):
        post = make_post()
        post_id = self.store.save(post)

        loaded = self.store.get(post_id)

        self.assertEqual(loaded.id, post_id)
        self.assertEqual(loaded.timestamp, post.timestamp)
        self.assertEqual(loaded.content, post.content)
        self.assertEqual(loaded.location, post.location)
        self.assertEqual(loaded.activity, post.activity)
        self.assertEqual(loaded.image_url, post.image_url)

    def test_get_missing_returns_none(self):
        self.assertIsNone(self.store.get(42))

    def test_ids_are_assigned_incrementally(self):
        first = self.store.save(make_post(1))
        second = self.store.save(make_post(2))
        self.assertEqual(second, first + 1)

    def test_latest_is_descending_and_capped(self):
        for i in range(MAX_LATEST + 5):
            self.store.save(make_post(i))

        posts = self.store.latest(500)

        self.assertEqual(len(posts), MAX_LATEST)
        ids = [p.id for p in posts]
        self.assertEqual(ids, sorted(ids, reverse=True))
        self.assertEqual(ids[0], MAX_LATEST + 5)

    def test_latest_small_n(self):
        for i in range(3):
            self.store.save(make_post(i))
        self.assertEqual([p.id for p in self.store.latest(2)], [3, 2])
        self.assertEqual(self.store.latest(0), [])

    def test_random(self):
        self.assertIsNone(self.store.random())
        post_id = self.store.save(make_post())
        self.assertEqual(self.store.random().id, post_id)

    def test_init_is_idempotent(self):
        self.store.save(make_post())
        self.store.init()
        self.assertEqual(len(self.store.latest(10)), 1)


if __name__ == "__main__":
    unittest.main()
