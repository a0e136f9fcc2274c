"""
Value Computation Strategies

Polymorphic recomputation of a transient's value by entry kind.
"""

import time
from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

import structlog

from ...monitoring.metrics import transient_compute_duration_seconds
from .exceptions import ComputeError
from .repository_interfaces import ContentQuery
from .value_objects import EntryKind

logger = structlog.get_logger(__name__)


class ComputeStrategy(ABC):
    """Produces a fresh value for a transient."""

    kind: EntryKind

    @abstractmethod
    async def compute(
        self, name: str, compute_spec: Mapping[str, Any], current_value: Any
    ) -> Any:
        pass


class QueryComputeStrategy(ComputeStrategy):
    """Re-executes the stored query specification."""

    kind = EntryKind.COMPUTED_QUERY

    def __init__(self, query: Optional[ContentQuery]):
        self.query = query

    async def compute(
        self, name: str, compute_spec: Mapping[str, Any], current_value: Any
    ) -> Any:
        if self.query is None:
            raise ComputeError(
                name,
                self.kind.value,
                message=f"No content query facility configured for transient '{name}'",
            )

        start_time = time.perf_counter()
        try:
            result = await self.query.execute(dict(compute_spec))
        except ComputeError:
            raise
        except Exception as e:
            logger.error(
                "Transient query failed",
                name=name,
                kind=self.kind.value,
                error=str(e),
            )
            raise ComputeError(name, self.kind.value, original_error=e) from e
        finally:
            transient_compute_duration_seconds.labels(kind=self.kind.value).observe(
                time.perf_counter() - start_time
            )

        return result


class TaxonomyComputeStrategy(QueryComputeStrategy):
    """Same computation as a query; the taxonomy only gates invalidation."""

    kind = EntryKind.TAXONOMY_SCOPED


class GenericComputeStrategy(ComputeStrategy):
    """No independent source: the current value is the computed value."""

    kind = EntryKind.GENERIC

    async def compute(
        self, name: str, compute_spec: Mapping[str, Any], current_value: Any
    ) -> Any:
        return current_value


def compute_strategy_for(
    kind: EntryKind, query: Optional[ContentQuery] = None
) -> ComputeStrategy:
    """Select the compute strategy for an entry kind."""
    if kind is EntryKind.COMPUTED_QUERY:
        return QueryComputeStrategy(query)
    if kind is EntryKind.TAXONOMY_SCOPED:
        return TaxonomyComputeStrategy(query)
    return GenericComputeStrategy()
