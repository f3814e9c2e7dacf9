"""Integration test fixtures: a local Redis and the public model hub."""

from __future__ import annotations

import os

import pytest
import redis

REDIS_HOST = os.environ.get("HUBRESOLVE_REDIS_HOST", "localhost")
REDIS_PORT = int(os.environ.get("HUBRESOLVE_REDIS_PORT", "6379"))
KEY_PREFIX = "hubresolve:inttest:"


def _redis_available() -> bool:
    """Check if Redis is reachable."""
    try:
        return bool(redis.Redis(host=REDIS_HOST, port=REDIS_PORT, socket_connect_timeout=1).ping())
    except redis.RedisError:
        return False


skip_no_redis = pytest.mark.skipif(
    not _redis_available(),
    reason="Redis not available",
)

skip_no_live_hub = pytest.mark.skipif(
    os.environ.get("HUBRESOLVE_LIVE_HUB") != "1",
    reason="set HUBRESOLVE_LIVE_HUB=1 to run against the public hub",
)
