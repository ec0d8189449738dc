"""Tests for the rate limiter module."""

import threading

from telemetry.rate_limiter import RateLimiter, WindowCounter, resolve_identity


class TestWindowCounter:
    def test_first_request_counts(self):
        counter = WindowCounter(max_requests=3, window_seconds=60)
        assert counter.count == 1
        assert counter.admit() is True
        assert counter.admit() is True
        assert counter.admit() is False

    def test_denial_does_not_increment(self):
        counter = WindowCounter(max_requests=2, window_seconds=60)
        counter.admit()
        for _ in range(5):
            assert counter.admit() is False
        assert counter.count == 2

    def test_boundary_exactly_at_window_still_counts(self):
        fake_time = [0.0]
        counter = WindowCounter(1, 60, time_func=lambda: fake_time[0])
        assert counter.admit() is False

        fake_time[0] = 60.0
        assert counter.admit() is False

    def test_reset_after_window(self):
        fake_time = [0.0]
        counter = WindowCounter(1, 60, time_func=lambda: fake_time[0])
        assert counter.admit() is False

        fake_time[0] = 60.5
        assert counter.admit() is True
        assert counter.count == 1
        assert counter.window_start == 60.5


class TestRateLimiter:
    def test_disabled_always_admits(self):
        rl = RateLimiter(enabled=False, max_requests=1, window_seconds=60)
        for _ in range(100):
            assert rl.admit("10.0.0.1") is True
        assert rl.tracked_identities == 0

    def test_ceiling_admitted_then_denied(self):
        rl = RateLimiter(enabled=True, max_requests=10, window_seconds=60)
        results = [rl.admit("10.0.0.1") for _ in range(11)]
        assert results == [True] * 10 + [False]

    def test_per_identity_isolation(self):
        rl = RateLimiter(enabled=True, max_requests=2, window_seconds=60)
        assert rl.admit("10.0.0.1") is True
        assert rl.admit("10.0.0.1") is True
        assert rl.admit("10.0.0.1") is False

        assert rl.admit("10.0.0.2") is True
        assert rl.admit("10.0.0.2") is True
        assert rl.admit("10.0.0.2") is False

    def test_exhausted_identity_readmitted_after_window(self):
        fake_time = [100.0]
        rl = RateLimiter(True, 10, 60, time_func=lambda: fake_time[0])
        for _ in range(10):
            assert rl.admit("10.0.0.1") is True
        assert rl.admit("10.0.0.1") is False

        fake_time[0] = 160.0
        assert rl.admit("10.0.0.1") is False

        fake_time[0] = 160.1
        assert rl.admit("10.0.0.1") is True
        assert rl.counter_for("10.0.0.1").count == 1

    def test_blank_identity_uses_unknown(self):
        rl = RateLimiter(True, 1, 60)
        assert rl.admit(None) is True
        assert rl.admit("") is False
        assert rl.counter_for("unknown") is not None

    def test_concurrent_same_identity_never_exceeds_ceiling(self):
        rl = RateLimiter(True, 10, 60)
        admitted = []
        lock = threading.Lock()

        def worker():
            for _ in range(10):
                ok = rl.admit("10.0.0.9")
                with lock:
                    admitted.append(ok)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert admitted.count(True) == 10
        assert len(admitted) == 80


class TestResolveIdentity:
    def test_address_passthrough(self):
        assert resolve_identity("192.168.1.20") == "192.168.1.20"

    def test_missing_address(self):
        assert resolve_identity(None) == "unknown"
        assert resolve_identity("  ") == "unknown"
