"""
Cache Entry Service

Stale-while-revalidate lifecycle for one named transient: resolution,
deferred regeneration and invalidation on content mutation.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

import structlog
from opentelemetry import trace

from ...constants import REGENERATION_JOB_PREFIX
from ...core.config import get_settings
from ...domain.cache.entities import ContentDeletedEvent, ContentSavedEvent, EntryConfig
from ...domain.cache.exceptions import ComputeError, ConfigurationError, StoreUnavailable
from ...domain.cache.predicates import ContentTypeFilter, should_ignore_save
from ...domain.cache.repository_interfaces import (
    ContentNotifier,
    ContentQuery,
    JobQueue,
    PreReadInterceptor,
    PreReadResult,
    TransientStore,
)
from ...domain.cache.strategies import compute_strategy_for
from ...domain.cache.value_objects import EntryKind, HookHandle, NO_OVERRIDE, StoreRead, TTL
from ...infrastructure.memory.store import InMemoryTransientStore
from ...monitoring.metrics import (
    transient_invalidations_total,
    transient_reads_total,
    transient_regenerations_scheduled_total,
)
from ..hooks import ContentEvents, PreReadRegistry
from ..queues.scheduler import RegenerationScheduler

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass
class Collaborators:
    """
    Handles to the external systems a cache entry consumes.

    ``interceptors`` defaults to the registry the store consults before
    reads, so callbacks registered there take effect on ``store.get``.
    """

    store: TransientStore
    jobs: JobQueue
    interceptors: Optional[PreReadInterceptor] = None
    notifier: Optional[ContentNotifier] = None
    query: Optional[ContentQuery] = None
    clock: Callable[[], float] = field(default=time.time)

    def __post_init__(self) -> None:
        if self.interceptors is None:
            self.interceptors = self.store.interceptors

    @classmethod
    def in_memory(
        cls,
        query: Optional[ContentQuery] = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> "Collaborators":
        """Wire an in-process store, scheduler, pre-read registry and notifier."""
        registry = PreReadRegistry()
        return cls(
            store=InMemoryTransientStore(registry, clock=clock),
            jobs=RegenerationScheduler(clock=clock),
            interceptors=registry,
            notifier=ContentEvents(),
            query=query,
            clock=clock,
        )


class CacheEntry:
    """
    One named, expensive-to-compute cached value.

    Reads are answered from the store even when the record has expired,
    and each read of a stored record schedules a background regeneration
    (at most one pending at a time).
    Only a true miss (no record at all) computes in the caller's task.

    Construction is split in two: ``__init__`` normalises the configuration
    without touching the store, ``initialize()`` performs the initial read
    and registers hooks. ``create()`` does both.
    """

    def __init__(
        self,
        config: Union[EntryConfig, Mapping[str, Any], None] = None,
        collaborators: Optional[Collaborators] = None,
        **options: Any,
    ):
        if isinstance(config, EntryConfig):
            if options:
                config = EntryConfig.model_validate({**config.model_dump(), **options})
        else:
            config = EntryConfig.model_validate({**dict(config or {}), **options})

        if collaborators is None:
            raise ValueError("CacheEntry requires collaborators (store and job queue)")

        self._config = config
        self._collaborators = collaborators
        self._name = config.name
        self._kind = config.kind
        self._ttl = config.ttl
        self._always_serve_stale = config.always_serve_stale
        self._compute_spec: Dict[str, Any] = {}
        self._current_value: Any = config.value
        self._raw_stored_value: Any = None
        self._strategy = compute_strategy_for(self._kind, collaborators.query)
        self._handles: List[HookHandle] = []
        self._initialized = False

        if self._kind.is_query_based and config.compute_spec:
            self.set_query_params(config.compute_spec)

        if not self.is_persistent:
            error = ConfigurationError("Set transient name", field="name")
            logger.warning(
                "Transient has no name; entry will not persist or register hooks",
                error_code=error.error_code,
                kind=self._kind.value,
            )

    @classmethod
    async def create(
        cls,
        config: Union[EntryConfig, Mapping[str, Any], None] = None,
        collaborators: Optional[Collaborators] = None,
        **options: Any,
    ) -> "CacheEntry":
        """Construct and initialize an entry."""
        entry = cls(config, collaborators, **options)
        await entry.initialize()
        return entry

    async def initialize(self) -> "CacheEntry":
        """
        Push the explicit value, read the raw record, resolve if still
        empty and register hooks. Safe to call more than once.

        When the initial read returns a stored record, expired or not,
        ``current_value`` is seeded from it and the synchronous resolve is
        skipped; the scheduled regeneration refreshes it instead.

        Raises:
            ComputeError: If the initial resolve is a true miss and the
                compute strategy fails
        """
        if self._initialized:
            return self
        self._initialized = True

        if not self.is_persistent:
            return self

        with tracer.start_as_current_span("transient.initialize") as span:
            span.set_attribute("transient.name", self._name)
            span.set_attribute("transient.kind", self._kind.value)

            if self._config.value is not None:
                await self._write(self._config.value)

            if self._config.auto_compute_on_init:
                intercepted = await self.intercept_read()
                if intercepted is not NO_OVERRIDE and self._current_value is None:
                    self._current_value = intercepted.value

            if self._current_value is None:
                await self.resolve()

            self._register_hooks()

        return self

    # Properties

    @property
    def name(self) -> str:
        return self._name

    @property
    def kind(self) -> EntryKind:
        return self._kind

    @property
    def ttl(self) -> int:
        return self._ttl

    @property
    def compute_spec(self) -> Dict[str, Any]:
        return dict(self._compute_spec)

    @property
    def current_value(self) -> Any:
        return self._current_value

    @property
    def raw_stored_value(self) -> Any:
        """Value seen by the last raw read, expired or not."""
        return self._raw_stored_value

    @property
    def always_serve_stale(self) -> bool:
        return self._always_serve_stale

    @property
    def is_persistent(self) -> bool:
        """Entries without a name never touch the store."""
        return self._name != ""

    @property
    def job_name(self) -> str:
        return f"{REGENERATION_JOB_PREFIX}{self._name}"

    @property
    def content_type_filter(self) -> ContentTypeFilter:
        """Content type, or list of types, whose saves invalidate a query entry."""
        if self._kind is not EntryKind.COMPUTED_QUERY:
            return None
        return (
            self._config.content_type
            or self._compute_spec.get("type")
            or self._compute_spec.get("post_type")
        )

    # Setters

    def set_query_params(self, params: Mapping[str, Any]) -> None:
        """Merge query parameters into the compute specification."""
        self._compute_spec = {**self._compute_spec, **dict(params or {})}

    def set_ttl(self, ttl: Any) -> None:
        """Change the TTL used by subsequent writes."""
        self._ttl = TTL.coerce(ttl).seconds

    async def set_value(self, value: Any, reset_store: bool = True) -> None:
        """Replace the current value, writing it through unless told not to."""
        self._current_value = value
        if reset_store:
            await self._write(value)

    # Resolution

    async def resolve(self, force_fresh: bool = False) -> Any:
        """
        Return the transient's value.

        Args:
            force_fresh: Compute synchronously and write through. Used by
                the background regeneration job.

        Returns:
            The fresh, stale-served or newly computed value

        Raises:
            ComputeError: If a computation is required and fails
        """
        with tracer.start_as_current_span("transient.resolve") as span:
            span.set_attribute("transient.name", self._name)
            span.set_attribute("transient.force_fresh", force_fresh)

            if force_fresh:
                return await self._compute_and_store()

            if not self.is_persistent:
                return self._current_value

            try:
                record = await self._collaborators.store.get(self._name)
            except StoreUnavailable as e:
                logger.warning(
                    "Transient store read failed; treating as miss",
                    name=self._name,
                    error=str(e),
                )
                record = StoreRead.absent()

            if record.found:
                span.set_attribute("transient.status", record.status.value)
                transient_reads_total.labels(
                    result="stale" if record.is_stale else "hit"
                ).inc()
                self._current_value = record.value
                return record.value

            span.set_attribute("transient.status", "miss")
            transient_reads_total.labels(result="miss").inc()
            logger.debug("Transient miss; computing", name=self._name)
            return await self.resolve(force_fresh=True)

    async def _compute_and_store(self) -> Any:
        try:
            value = await self._strategy.compute(
                self._name, self._compute_spec, self._current_value
            )
        except ComputeError as e:
            logger.error(
                "Transient computation failed",
                name=self._name,
                kind=self._kind.value,
                error=e.message,
            )
            raise

        self._current_value = value
        await self._write(value)
        return value

    async def _write(self, value: Any) -> None:
        if not self.is_persistent:
            return

        if value is None:
            logger.debug("Skipping write of empty transient value", name=self._name)
            return

        try:
            await self._collaborators.store.set(self._name, value, self._ttl)
        except StoreUnavailable as e:
            logger.warning(
                "Transient store write failed", name=self._name, error=str(e)
            )

    # Pre-read interception and regeneration

    async def intercept_read(self) -> PreReadResult:
        """
        Answer a store read with the raw record, bypassing expiration.

        With ``always_serve_stale`` the raw record is returned, fresh or
        expired, and a background regeneration is scheduled. The job queue
        keeps at most one pending per name. Otherwise the store's own
        expiration applies.
        """
        if not self.is_persistent:
            return NO_OVERRIDE

        try:
            record = await self._collaborators.store.get_raw(self._name)
        except StoreUnavailable as e:
            logger.warning(
                "Raw transient read failed; deferring to store",
                name=self._name,
                error=str(e),
            )
            return NO_OVERRIDE

        self._raw_stored_value = record.value if record.found else None

        if not record.found or not self._always_serve_stale:
            return NO_OVERRIDE

        await self.schedule_regeneration()

        return record

    async def schedule_regeneration(self) -> bool:
        """Queue one background regeneration; no-op while one is pending."""
        if not self.is_persistent:
            return False

        delay = get_settings().REGENERATION_DELAY_SECONDS
        when_due = self._collaborators.clock() + delay if delay else None
        scheduled = await self._collaborators.jobs.schedule_once(self.job_name, when_due)

        transient_regenerations_scheduled_total.labels(
            outcome="scheduled" if scheduled else "already_pending"
        ).inc()
        if scheduled:
            logger.info("Scheduled transient regeneration", name=self._name)

        return scheduled

    async def regenerate(self) -> Any:
        """Background job handler: recompute and store with a renewed TTL."""
        with tracer.start_as_current_span("transient.regenerate") as span:
            span.set_attribute("transient.name", self._name)
            value = await self.resolve(force_fresh=True)
            logger.info("Regenerated transient", name=self._name, ttl=self._ttl)
            return value

    # Invalidation

    async def delete(self) -> bool:
        """Delete the stored record."""
        if not self.is_persistent:
            return False

        try:
            return await self._collaborators.store.delete(self._name)
        except StoreUnavailable as e:
            logger.warning("Transient delete failed", name=self._name, error=str(e))
            return False

    async def invalidate(self, reason: str = "manual") -> bool:
        """Evict the stored record; the next read is a true miss."""
        with tracer.start_as_current_span("transient.invalidate") as span:
            span.set_attribute("transient.name", self._name)
            span.set_attribute("transient.reason", reason)

            deleted = await self.delete()
            transient_invalidations_total.labels(reason=reason).inc()
            logger.info(
                "Invalidated transient", name=self._name, reason=reason, deleted=deleted
            )
            return deleted

    async def handle_content_saved(self, event: ContentSavedEvent) -> bool:
        """Invalidate on a relevant save; returns whether it invalidated."""
        if should_ignore_save(
            event,
            self._kind,
            content_type_filter=self.content_type_filter,
            taxonomy=self._config.taxonomy,
        ):
            logger.debug(
                "Ignoring content save",
                name=self._name,
                content_id=str(event.content_id),
            )
            return False

        await self.invalidate(reason="content_saved")
        return True

    async def handle_content_deleted(self, event: ContentDeletedEvent) -> bool:
        await self.invalidate(reason="content_deleted")
        return True

    # Hook lifecycle

    def _register_hooks(self) -> None:
        collaborators = self._collaborators

        if collaborators.interceptors is not None:
            self._handles.append(
                collaborators.interceptors.register(self._name, self.intercept_read)
            )
        else:
            logger.warning(
                "No pre-read interceptor configured; stale values will not be served",
                name=self._name,
            )

        self._handles.append(collaborators.jobs.on_job_fire(self.job_name, self.regenerate))

        if self._kind.tracks_content and collaborators.notifier is not None:
            self._handles.append(
                collaborators.notifier.on_content_deleted(self.handle_content_deleted)
            )
            self._handles.append(
                collaborators.notifier.on_content_saved(self.handle_content_saved)
            )

    async def close(self) -> None:
        """Unregister every hook this entry registered."""
        for handle in self._handles:
            handle.remove()
        self._handles.clear()

    @property
    def registered_hooks(self) -> List[HookHandle]:
        return list(self._handles)

    def __repr__(self) -> str:
        return f"CacheEntry(name={self._name!r}, kind={self._kind.value}, ttl={self._ttl})"
