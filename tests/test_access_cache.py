"""
Access Cache Test Suite

Bounded, positive-only record of banned origins.
"""

import threading
import unittest

from fraudgate import AccessCache


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestAccessCache(unittest.TestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.cache = AccessCache(max_entries=3, ttl_seconds=60, clock=self.clock)

    def test_unknown_origin_is_not_banned(self):
        self.assertFalse(self.cache.is_known_banned("203.0.113.5"))

    def test_marked_origin_is_banned(self):
        self.cache.mark_banned("203.0.113.5")
        self.assertTrue(self.cache.is_known_banned("203.0.113.5"))

    def test_none_never_matches(self):
        self.cache.mark_banned(None)
        self.assertFalse(self.cache.is_known_banned(None))
        self.assertEqual(len(self.cache), 0)

    def test_mark_is_idempotent(self):
        self.cache.mark_banned("203.0.113.5")
        self.cache.mark_banned("203.0.113.5")
        self.assertEqual(len(self.cache), 1)

    def test_entry_expires_after_ttl(self):
        self.cache.mark_banned("203.0.113.5")
        self.clock.now += 61
        self.assertFalse(self.cache.is_known_banned("203.0.113.5"))
        self.assertEqual(len(self.cache), 0)

    def test_entry_within_ttl_survives(self):
        self.cache.mark_banned("203.0.113.5")
        self.clock.now += 59
        self.assertTrue(self.cache.is_known_banned("203.0.113.5"))

    def test_capacity_evicts_least_recently_used(self):
        for ip in ("10.0.0.1", "10.0.0.2", "10.0.0.3"):
            self.cache.mark_banned(ip)

        # Touch the oldest so 10.0.0.2 becomes least recently used
        self.assertTrue(self.cache.is_known_banned("10.0.0.1"))
        self.cache.mark_banned("10.0.0.4")

        self.assertEqual(len(self.cache), 3)
        self.assertFalse(self.cache.is_known_banned("10.0.0.2"))
        self.assertTrue(self.cache.is_known_banned("10.0.0.1"))
        self.assertTrue(self.cache.is_known_banned("10.0.0.4"))

    def test_size_never_exceeds_capacity(self):
        for i in range(50):
            self.cache.mark_banned(f"10.0.1.{i}")
        self.assertEqual(len(self.cache), 3)
        self.assertEqual(self.cache.stats()["evictions"], 47)

    def test_stats_count_hits_and_misses(self):
        self.cache.mark_banned("203.0.113.5")
        self.cache.is_known_banned("203.0.113.5")
        self.cache.is_known_banned("198.51.100.7")

        stats = self.cache.stats()
        self.assertEqual(stats["hits"], 1)
        self.assertEqual(stats["misses"], 1)
        self.assertEqual(stats["size"], 1)
        self.assertEqual(stats["max_entries"], 3)

    def test_clear(self):
        self.cache.mark_banned("203.0.113.5")
        self.cache.clear()
        self.assertEqual(len(self.cache), 0)
        self.assertFalse(self.cache.is_known_banned("203.0.113.5"))

    def test_rejects_zero_capacity(self):
        with self.assertRaises(ValueError):
            AccessCache(max_entries=0)

    def test_concurrent_marks_stay_bounded(self):
        cache = AccessCache(max_entries=100, ttl_seconds=3600)

        def worker(n):
            for i in range(200):
                cache.mark_banned(f"10.{n}.{i // 256}.{i % 256}")
                cache.is_known_banned(f"10.{n}.0.{i % 256}")

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(len(cache), 100)


if __name__ == "__main__":
    unittest.main()
