import unittest

from messverse.rate_limiter import FixedWindowRateLimiter


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FixedWindowRateLimiterTests(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.limiter = FixedWindowRateLimiter(3, 60, clock=self.clock)

    def test_allows_up_to_limit(self):
        remaining = [self.limiter.check("mutate:1.2.3.4").remaining for _ in range(3)]
        self.assertEqual(remaining, [2, 1, 0])

        denied = self.limiter.check("mutate:1.2.3.4")
        self.assertFalse(denied.allowed)
        self.assertEqual(denied.retry_after, 60)

    def test_retry_after_counts_down_to_window_end(self):
        for _ in range(3):
            self.limiter.check("k")
        self.clock.now = 45.5
        denied = self.limiter.check("k")
        self.assertFalse(denied.allowed)
        self.assertEqual(denied.retry_after, 15)

    def test_window_resets(self):
        for _ in range(4):
            self.limiter.check("k")
        self.clock.now = 60
        self.assertTrue(self.limiter.check("k").allowed)

    def test_keys_are_independent(self):
        for _ in range(4):
            self.limiter.check("mutate:a")
        self.assertTrue(self.limiter.check("mutate:b").allowed)

    def test_expired_buckets_are_swept_past_threshold(self):
        limiter = FixedWindowRateLimiter(3, 60, max_buckets=2, clock=self.clock)
        limiter.check("a")
        limiter.check("b")
        self.clock.now = 61
        limiter.check("c")
        self.assertEqual(limiter.bucket_count, 1)

    def test_manual_sweep(self):
        self.limiter.check("a")
        self.clock.now = 30
        self.limiter.check("b")
        self.clock.now = 70
        self.assertEqual(self.limiter.sweep(), 1)
        self.assertEqual(self.limiter.bucket_count, 1)


if __name__ == "__main__":
    unittest.main()
