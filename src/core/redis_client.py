"""Shared Redis client factory for the token blocklist."""

import redis
from django.conf import settings

_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis:
    """Return a process-wide Redis client built from ``REDIS_URL``.

    Short socket timeouts keep a Redis outage from hanging requests; callers
    translate connection errors into ``BlocklistUnavailable``.
    """

    global _client
    if _client is None:
        timeout = getattr(settings, "REDIS_SOCKET_TIMEOUT", 2.0)
        _client = redis.Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
        )
    return _client


__all__ = ["get_redis_client"]
