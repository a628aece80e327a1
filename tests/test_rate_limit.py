from typearena.rate_limit import REDEEM, RateLimiter


class TestRateLimiter:
    def test_per_action_limit(self):
        limiter = RateLimiter(max_per_minute=100, max_per_second=100)
        limiter.set_action_limit(REDEEM, 3)
        results = [limiter.check_rate_limit("10.0.0.1", REDEEM)[0] for _ in range(4)]
        assert results == [True, True, True, False]
        # Other clients are tracked separately
        assert limiter.check_rate_limit("10.0.0.2", REDEEM)[0] is True

    def test_per_second_burst_blocks_client(self):
        limiter = RateLimiter(max_per_minute=100, max_per_second=2, block_duration=60)
        assert limiter.check_rate_limit("c", "X")[0]
        assert limiter.check_rate_limit("c", "X")[0]
        allowed, reason = limiter.check_rate_limit("c", "X")
        assert not allowed
        assert "per second" in reason
        assert limiter.is_blocked("c")

    def test_cleanup_drops_idle_clients(self):
        limiter = RateLimiter()
        limiter.check_rate_limit("c", "X")
        limiter.cleanup_old_data(max_age_seconds=-1)
        assert "c" not in limiter.request_history
        assert "c" not in limiter.action_history
