"""
Redis Connection Factory

Creates pooled asyncio Redis clients and verifies connectivity at startup.
"""

from typing import Optional

import structlog
from redis.asyncio import Redis
from redis.exceptions import (
    ConnectionError as RedisConnectionError,
    RedisError,
    TimeoutError as RedisTimeoutError,
)
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ...core.config import get_settings
from ...domain.cache.exceptions import StoreUnavailable

logger = structlog.get_logger(__name__)


async def create_redis_client(
    url: Optional[str] = None,
    *,
    max_connections: Optional[int] = None,
    connect_attempts: Optional[int] = None,
) -> Redis:
    """
    Create a Redis client and ping it until it answers.

    Only the connect-time ping is retried; operations on the returned
    client are never retried by this package.

    Raises:
        StoreUnavailable: If the server cannot be reached
    """
    settings = get_settings()
    client = Redis.from_url(
        url or settings.REDIS_URL,
        max_connections=max_connections or settings.REDIS_MAX_CONNECTIONS,
        decode_responses=True,
    )

    retrying = AsyncRetrying(
        stop=stop_after_attempt(connect_attempts or settings.REDIS_CONNECT_ATTEMPTS),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
        retry=retry_if_exception_type((RedisConnectionError, RedisTimeoutError)),
        reraise=True,
    )

    try:
        async for attempt in retrying:
            with attempt:
                await client.ping()
    except RedisError as e:
        logger.error("Redis connection failed", error=str(e))
        await client.aclose()
        raise StoreUnavailable("connect", original_error=e) from e

    logger.info("Redis client connected", max_connections=client.connection_pool.max_connections)
    return client
