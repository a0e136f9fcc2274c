"""
Redis Infrastructure Module

Redis-backed transient store and client factory.
"""

from .connection_factory import create_redis_client
from .store import RedisTransientStore

__all__ = ["RedisTransientStore", "create_redis_client"]
