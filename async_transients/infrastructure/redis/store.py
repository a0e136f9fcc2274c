"""
Redis Transient Store

Stores each transient as a JSON envelope holding the value and its
expiration timestamp. Expiration is evaluated by this store, not by Redis,
so an expired envelope can still be read raw and served stale. Redis only
evicts envelopes once they are past the stale-retention window.

Values are stored in their JSON form: JSON-native values (dicts, lists,
strings, numbers, booleans) read back unchanged, while pydantic models and
dataclasses read back as dicts and datetimes, UUIDs and enums as their
JSON encoding. Anything else is rejected on write.
"""

import json
import time
from typing import Any, Callable, List, Optional

import structlog
from opentelemetry import trace
from pydantic_core import PydanticSerializationError, to_jsonable_python
from redis.asyncio import Redis
from redis.exceptions import RedisError

from ...constants import TRANSIENT_KEY_SEGMENT
from ...core.config import get_settings
from ...domain.cache.exceptions import StoreUnavailable
from ...domain.cache.repository_interfaces import PreReadInterceptor, TransientStore
from ...domain.cache.value_objects import StoreRead

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

_GLOB_SPECIAL = "\\*?[]"


def _escape_glob(text: str) -> str:
    """Escape Redis MATCH glob metacharacters."""
    return "".join("\\" + char if char in _GLOB_SPECIAL else char for char in text)


class RedisTransientStore(TransientStore):
    """Redis implementation of the transient store."""

    def __init__(
        self,
        client: Redis,
        interceptors: Optional[PreReadInterceptor] = None,
        *,
        key_prefix: Optional[str] = None,
        stale_retention_seconds: Optional[int] = None,
        scan_batch_size: int = 100,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(interceptors)
        settings = get_settings()
        self._client = client
        self._key_prefix = (
            settings.REDIS_KEY_PREFIX if key_prefix is None else key_prefix
        )
        self._stale_retention = (
            settings.STALE_RETENTION_SECONDS
            if stale_retention_seconds is None
            else stale_retention_seconds
        )
        self._scan_batch_size = scan_batch_size
        self._clock = clock

    def key_for(self, name: str) -> str:
        """Redis key holding a transient's envelope."""
        return f"{self._key_prefix}{TRANSIENT_KEY_SEGMENT}{name}"

    async def get_raw(self, name: str) -> StoreRead:
        key = self.key_for(name)

        with tracer.start_as_current_span("transient_store.get_raw") as span:
            span.set_attribute("transient.key", key)
            try:
                payload = await self._client.get(key)
            except RedisError as e:
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                raise StoreUnavailable("get", key=key, original_error=e) from e

            if payload is None:
                span.set_attribute("transient.status", "absent")
                return StoreRead.absent()

            envelope = self._decode(payload, key)
            value = envelope.get("value")
            expires_at = envelope.get("expires_at")

            if expires_at is not None and self._clock() >= expires_at:
                span.set_attribute("transient.status", "stale")
                return StoreRead.stale(value, expires_at)

            span.set_attribute("transient.status", "fresh")
            return StoreRead.fresh(value, expires_at)

    async def set(self, name: str, value: Any, ttl: int) -> None:
        key = self.key_for(name)
        expires_at = self._clock() + ttl if ttl > 0 else None
        payload = self._encode(value, expires_at, key)

        with tracer.start_as_current_span("transient_store.set") as span:
            span.set_attribute("transient.key", key)
            span.set_attribute("transient.ttl", ttl)
            try:
                if expires_at is None or self._stale_retention == 0:
                    await self._client.set(key, payload)
                else:
                    await self._client.set(key, payload, ex=ttl + self._stale_retention)
            except RedisError as e:
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                raise StoreUnavailable("set", key=key, original_error=e) from e

        logger.debug("Stored transient", key=key, ttl=ttl, size_bytes=len(payload))

    async def delete(self, name: str) -> bool:
        key = self.key_for(name)

        with tracer.start_as_current_span("transient_store.delete") as span:
            span.set_attribute("transient.key", key)
            try:
                deleted = await self._client.delete(key)
            except RedisError as e:
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                raise StoreUnavailable("delete", key=key, original_error=e) from e

            span.set_attribute("transient.deleted", deleted)

        return deleted > 0

    async def delete_matching(self, prefix: str) -> int:
        pattern = _escape_glob(self.key_for(prefix)) + "*"

        with tracer.start_as_current_span("transient_store.delete_matching") as span:
            span.set_attribute("transient.pattern", pattern)
            try:
                count = await self._unlink_matching(pattern)
            except RedisError as e:
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                raise StoreUnavailable("delete_matching", key=pattern, original_error=e) from e

            span.set_attribute("transient.deleted", count)

        logger.info("Deleted transients by prefix", pattern=pattern, count=count)
        return count

    async def delete_all(self) -> int:
        return await self.delete_matching("")

    async def _unlink_matching(self, pattern: str) -> int:
        """SCAN for keys and UNLINK them in batches."""
        count = 0
        batch: List[str] = []

        async for key in self._client.scan_iter(match=pattern, count=self._scan_batch_size):
            batch.append(key)
            if len(batch) >= self._scan_batch_size:
                count += await self._client.unlink(*batch)
                batch = []

        if batch:
            count += await self._client.unlink(*batch)

        return count

    @staticmethod
    def _encode(value: Any, expires_at: Optional[float], key: str) -> str:
        try:
            return json.dumps(
                {"value": to_jsonable_python(value), "expires_at": expires_at}
            )
        except (PydanticSerializationError, TypeError, ValueError) as e:
            logger.error(
                "Failed to serialize transient",
                key=key,
                value_type=type(value).__name__,
                error=str(e),
            )
            raise StoreUnavailable("encode", key=key, original_error=e) from e

    @staticmethod
    def _decode(payload: Any, key: str) -> dict:
        try:
            envelope = json.loads(payload)
        except (TypeError, ValueError) as e:
            logger.error("Failed to deserialize transient", key=key, error=str(e))
            raise StoreUnavailable("decode", key=key, original_error=e) from e

        if not isinstance(envelope, dict):
            raise StoreUnavailable("decode", key=key)
        return envelope
