from redis import Redis

from .config import settings

# Connection is opened lazily on the first command
redis_client = Redis.from_url(
    settings.redis_url,
    decode_responses=True,
    socket_timeout=2.0,
    socket_connect_timeout=2.0,
)


def get_redis() -> Redis | None:
    """FastAPI dependency: Redis client for the slots cache, or None when disabled."""
    if not settings.slots_cache_enabled:
        return None
    return redis_client
