"""
Test doubles for the transient cache.

Provides a manually advanced clock and a content query that generates
synthetic posts while recording every call it receives.
"""

from typing import Any, Dict, List, Mapping

from async_transients.domain.cache.repository_interfaces import ContentQuery


class FakeClock:
    """Manually advanced epoch clock."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingContentQuery(ContentQuery):
    """Content query returning synthetic posts and recording every call."""

    def __init__(self, fail: bool = False):
        self.calls: List[Dict[str, Any]] = []
        self.fail = fail

    async def execute(self, spec: Mapping[str, Any]) -> List[Any]:
        self.calls.append(dict(spec))
        if self.fail:
            raise RuntimeError("content backend unavailable")

        generation = len(self.calls)
        content_type = spec.get("type", "post")
        return [
            {"id": i, "type": content_type, "generation": generation}
            for i in range(1, spec.get("limit", 10) + 1)
        ]

    @property
    def call_count(self) -> int:
        return len(self.calls)
