"""
Bulk transient maintenance operating directly on the backing store.
"""

import structlog
from opentelemetry import trace

from ...domain.cache.repository_interfaces import TransientStore

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)


async def delete_all_with_prefix(store: TransientStore, prefix: str) -> int:
    """
    Delete every transient whose name starts with prefix.

    Args:
        store: Backing transient store
        prefix: Name prefix; must not be empty (use ``delete_all``)

    Returns:
        Number of records deleted

    Raises:
        ValueError: If prefix is empty
        StoreUnavailable: If the store cannot complete the deletion
    """
    if not prefix:
        raise ValueError("Prefix cannot be empty; use delete_all() to clear every transient")

    with tracer.start_as_current_span("transient.delete_all_with_prefix") as span:
        span.set_attribute("transient.prefix", prefix)
        count = await store.delete_matching(prefix)
        span.set_attribute("transient.deleted", count)

    logger.info("Deleted transients with prefix", prefix=prefix, count=count)
    return count


async def delete_all(store: TransientStore) -> int:
    """Delete every transient in the store."""
    with tracer.start_as_current_span("transient.delete_all") as span:
        count = await store.delete_all()
        span.set_attribute("transient.deleted", count)

    logger.info("Deleted all transients", count=count)
    return count
