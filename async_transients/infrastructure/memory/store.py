"""
In-Memory Transient Store

Dict-backed store for single-process deployments and tests. Expired
records stay on record until deleted so they can be served stale.
"""

import time
from typing import Any, Callable, Dict, Optional, Tuple

from ...domain.cache.repository_interfaces import PreReadInterceptor, TransientStore
from ...domain.cache.value_objects import StoreRead


class InMemoryTransientStore(TransientStore):
    """In-process implementation of the transient store."""

    def __init__(
        self,
        interceptors: Optional[PreReadInterceptor] = None,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(interceptors)
        self._clock = clock
        self._records: Dict[str, Tuple[Any, Optional[float]]] = {}

    async def get_raw(self, name: str) -> StoreRead:
        record = self._records.get(name)
        if record is None:
            return StoreRead.absent()

        value, expires_at = record
        if expires_at is not None and self._clock() >= expires_at:
            return StoreRead.stale(value, expires_at)
        return StoreRead.fresh(value, expires_at)

    async def set(self, name: str, value: Any, ttl: int) -> None:
        expires_at = self._clock() + ttl if ttl > 0 else None
        self._records[name] = (value, expires_at)

    async def delete(self, name: str) -> bool:
        return self._records.pop(name, None) is not None

    async def delete_matching(self, prefix: str) -> int:
        names = [name for name in self._records if name.startswith(prefix)]
        for name in names:
            del self._records[name]
        return len(names)

    async def delete_all(self) -> int:
        count = len(self._records)
        self._records.clear()
        return count

    def __contains__(self, name: str) -> bool:
        return name in self._records

    def __len__(self) -> int:
        return len(self._records)
