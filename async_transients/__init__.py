"""
Async Transients

Stale-while-revalidate caching layer. Named values are served from the
backing store even after they expire while a single background job
regenerates them.
"""

from .core.logging import configure_logging
from .domain.cache.entities import (
    ContentItem,
    ContentDeletedEvent,
    ContentSavedEvent,
    EntryConfig,
    MutationContext,
)
from .domain.cache.exceptions import (
    ComputeError,
    ConfigurationError,
    StoreUnavailable,
    TransientException,
)
from .domain.cache.value_objects import (
    EntryKind,
    NO_OVERRIDE,
    ReadStatus,
    StoreRead,
)
from .services.cache.maintenance import delete_all, delete_all_with_prefix
from .services.cache.transient import CacheEntry, Collaborators

__all__ = [
    "CacheEntry",
    "Collaborators",
    "EntryConfig",
    "EntryKind",
    "ReadStatus",
    "StoreRead",
    "NO_OVERRIDE",
    "ContentItem",
    "ContentSavedEvent",
    "ContentDeletedEvent",
    "MutationContext",
    "TransientException",
    "ConfigurationError",
    "ComputeError",
    "StoreUnavailable",
    "delete_all",
    "delete_all_with_prefix",
    "configure_logging",
]
