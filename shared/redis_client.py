"""Redis client utilities."""
import json
import os
import redis


REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))

NOTIFICATION_CHANNEL_PREFIX = "notification:"

_client: redis.Redis | None = None


def create_redis_client() -> redis.Redis:
    """Create a Redis client."""
    return redis.Redis(
        host=REDIS_HOST,
        port=REDIS_PORT,
        decode_responses=True
    )


def get_redis() -> redis.Redis:
    """FastAPI dependency returning a shared Redis client."""
    global _client
    if _client is None:
        _client = create_redis_client()
    return _client


def publish_realtime_update(client: redis.Redis, channel: str, message: dict):
    """Publish a real-time update to a Redis channel."""
    client.publish(channel, json.dumps(message, default=str))


def notification_channel(user_id: int) -> str:
    return f"{NOTIFICATION_CHANNEL_PREFIX}{user_id}"


def hit_rate_limit(client: redis.Redis, key: str, limit: int, window_seconds: int) -> bool:
    """
    Count one attempt against key and report whether the limit is exceeded.

    The window starts on the first attempt and is not extended by later ones.
    """
    redis_key = f"ratelimit:{key}"
    count = client.incr(redis_key)
    if count == 1:
        client.expire(redis_key, window_seconds)
    return count > limit
