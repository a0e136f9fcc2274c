"""
Transient Cache Collaborator Interfaces

Abstract interfaces for the external collaborators a cache entry consumes:
the key/value store, the pre-read interception point, the deferred job
queue, the content mutation notifier and the content query facility.
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Union

from .entities import ContentDeletedEvent, ContentSavedEvent
from .value_objects import HookHandle, NO_OVERRIDE, StoreRead, _NoOverride

PreReadResult = Union[StoreRead, _NoOverride]
PreReadCallback = Callable[[], Awaitable[PreReadResult]]
JobHandler = Callable[[], Awaitable[Any]]
SavedHandler = Callable[[ContentSavedEvent], Awaitable[Any]]
DeletedHandler = Callable[[ContentDeletedEvent], Awaitable[Any]]


class PreReadInterceptor(ABC):
    """
    Per-name callbacks consulted before the store evaluates expiration.

    A callback returns a StoreRead to answer the read itself, or
    NO_OVERRIDE to let the store decide.
    """

    @abstractmethod
    def register(self, name: str, callback: PreReadCallback) -> HookHandle:
        """Register a pre-read callback for a transient name."""
        pass

    @abstractmethod
    async def intercept(self, name: str) -> PreReadResult:
        """Run the callbacks registered for a name."""
        pass


class TransientStore(ABC):
    """
    Abstract key/value store for transients.

    Implementations provide raw access; ``get`` layers pre-read
    interception and expiration on top of it.
    """

    def __init__(self, interceptors: Optional[PreReadInterceptor] = None):
        self.interceptors = interceptors

    async def get(self, name: str) -> StoreRead:
        """
        Read a transient honouring expiration.

        Registered pre-read callbacks may answer first. Otherwise an expired
        record is purged and reported as absent.
        """
        if self.interceptors is not None:
            override = await self.interceptors.intercept(name)
            if override is not NO_OVERRIDE:
                return override

        record = await self.get_raw(name)
        if record.is_stale:
            await self.delete(name)
            return StoreRead.absent()

        return record

    @abstractmethod
    async def get_raw(self, name: str) -> StoreRead:
        """Read the stored record without purging it when expired."""
        pass

    @abstractmethod
    async def set(self, name: str, value: Any, ttl: int) -> None:
        """Store a value; a ttl of 0 never expires."""
        pass

    @abstractmethod
    async def delete(self, name: str) -> bool:
        """Delete a record; returns whether one existed."""
        pass

    @abstractmethod
    async def delete_matching(self, prefix: str) -> int:
        """Delete every record whose name starts with prefix."""
        pass

    @abstractmethod
    async def delete_all(self) -> int:
        """Delete every transient record."""
        pass


class JobQueue(ABC):
    """Single-shot deferred jobs with at most one pending job per name."""

    @abstractmethod
    async def schedule_once(self, job_name: str, when_due: Optional[float] = None) -> bool:
        """Schedule a job; returns False if one with this name is pending."""
        pass

    @abstractmethod
    def on_job_fire(self, job_name: str, handler: JobHandler) -> HookHandle:
        """Register the handler run when the named job fires."""
        pass

    @abstractmethod
    def is_pending(self, job_name: str) -> bool:
        """Check whether a job with this name is scheduled or running."""
        pass


class ContentNotifier(ABC):
    """Content mutation notifications."""

    @abstractmethod
    def on_content_deleted(self, handler: DeletedHandler) -> HookHandle:
        pass

    @abstractmethod
    def on_content_saved(self, handler: SavedHandler) -> HookHandle:
        pass


class ContentQuery(ABC):
    """Executes a query specification against the content source."""

    @abstractmethod
    async def execute(self, spec: Mapping[str, Any]) -> List[Any]:
        """Run the query and return its result set."""
        pass
