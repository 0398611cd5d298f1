"""Tests for moving-window rate limiting."""
import time
from unittest.mock import patch

import redis
from limits.errors import StorageError

from educonnect.infrastructure.redis import get_rate_limit_storage, redis_uri
from educonnect.services.rate_limiter import RateLimiter


class TestRateLimiter:
    """Test the limiter policy on in-memory storage."""

    def test_allows_up_to_limit(self, rate_limiter):
        results = [rate_limiter.allow("student-1") for _ in range(10)]

        assert all(results)

    def test_eleventh_request_in_window_is_denied(self, rate_limiter):
        for _ in range(10):
            assert rate_limiter.allow("student-1")

        assert rate_limiter.allow("student-1") is False

    def test_admits_again_after_window(self):
        limiter = RateLimiter(max_requests=2, window_seconds=1)
        limiter.allow("student-1")
        limiter.allow("student-1")
        assert limiter.allow("student-1") is False

        time.sleep(1.1)

        assert limiter.allow("student-1") is True

    def test_identities_are_independent(self, rate_limiter):
        for _ in range(10):
            rate_limiter.allow("student-1")

        assert rate_limiter.allow("student-1") is False
        assert rate_limiter.allow("student-2") is True

    def test_backend_name(self, rate_limiter):
        assert rate_limiter.backend == "memory"

    def test_reset_clears_windows(self):
        limiter = RateLimiter(max_requests=1, window_seconds=60)
        limiter.allow("student-1")
        assert limiter.allow("student-1") is False

        limiter.reset()

        assert limiter.allow("student-1") is True

    def test_fails_open_on_storage_error(self, rate_limiter):
        error = StorageError(redis.ConnectionError("down"))
        with patch.object(rate_limiter.storage, "acquire_entry", side_effect=error):
            assert rate_limiter.allow("student-1") is True


class TestRedisStorage:
    """Test construction of the Redis storage."""

    def test_uri_without_password(self, test_settings):
        settings = test_settings.model_copy(update={"redis_host": "cache", "redis_port": 6380, "redis_db": 2})

        assert redis_uri(settings) == "redis://cache:6380/2"

    def test_uri_quotes_password(self, test_settings):
        settings = test_settings.model_copy(
            update={"redis_host": "cache", "redis_port": 6379, "redis_db": 0, "redis_password": "p@ss/word"}
        )

        assert redis_uri(settings) == "redis://:p%40ss%2Fword@cache:6379/0"

    @patch("educonnect.infrastructure.redis.RedisStorage")
    def test_returns_storage_when_reachable(self, storage_cls, test_settings):
        storage_cls.return_value.check.return_value = True

        assert get_rate_limit_storage(test_settings) is storage_cls.return_value

    @patch("educonnect.infrastructure.redis.RedisStorage")
    def test_returns_none_when_unreachable(self, storage_cls, test_settings):
        storage_cls.return_value.check.return_value = False

        assert get_rate_limit_storage(test_settings) is None


class TestBuildRateLimiter:
    """Test backend selection at startup."""

    def test_memory_backend(self, test_settings):
        from main import build_rate_limiter

        limiter = build_rate_limiter(test_settings)

        assert limiter.backend == "memory"

    @patch("main.get_rate_limit_storage", return_value=None)
    def test_redis_unavailable_falls_back_to_memory(self, get_storage, test_settings):
        from main import build_rate_limiter

        settings = test_settings.model_copy(update={"rate_limit_backend": "redis"})
        limiter = build_rate_limiter(settings)

        get_storage.assert_called_once_with(settings)
        assert limiter.backend == "memory"
        assert limiter.allow("student-1") is True
