"""
Hook Registries

In-process implementations of the pre-read interception point and the
content mutation notifier. Every registration returns a HookHandle so
the registering object can remove exactly what it added.
"""

from typing import Callable, Dict, List

import structlog

from ..domain.cache.entities import ContentDeletedEvent, ContentSavedEvent
from ..domain.cache.repository_interfaces import (
    ContentNotifier,
    DeletedHandler,
    PreReadCallback,
    PreReadInterceptor,
    PreReadResult,
    SavedHandler,
)
from ..domain.cache.value_objects import HookHandle, NO_OVERRIDE

logger = structlog.get_logger(__name__)


def _remover(handlers: list, handler) -> Callable[[], None]:
    def remove() -> None:
        try:
            handlers.remove(handler)
        except ValueError:
            pass

    return remove


class PreReadRegistry(PreReadInterceptor):
    """Pre-read callbacks keyed by transient name."""

    def __init__(self):
        self._callbacks: Dict[str, List[PreReadCallback]] = {}

    def register(self, name: str, callback: PreReadCallback) -> HookHandle:
        callbacks = self._callbacks.setdefault(name, [])
        callbacks.append(callback)

        def remove() -> None:
            _remover(callbacks, callback)()
            if not callbacks and self._callbacks.get(name) is callbacks:
                del self._callbacks[name]

        return HookHandle(remove, label=f"pre_read:{name}")

    async def intercept(self, name: str) -> PreReadResult:
        """Return the first override produced by a callback, in registration order."""
        for callback in list(self._callbacks.get(name, ())):
            result = await callback()
            if result is not NO_OVERRIDE:
                return result
        return NO_OVERRIDE

    def has_callbacks(self, name: str) -> bool:
        return bool(self._callbacks.get(name))


class ContentEvents(ContentNotifier):
    """
    Content mutation notifier.

    Handlers run sequentially. A failing handler is logged and does not
    prevent the remaining handlers from running.
    """

    def __init__(self):
        self._saved: List[SavedHandler] = []
        self._deleted: List[DeletedHandler] = []

    def on_content_saved(self, handler: SavedHandler) -> HookHandle:
        self._saved.append(handler)
        return HookHandle(_remover(self._saved, handler), label="content_saved")

    def on_content_deleted(self, handler: DeletedHandler) -> HookHandle:
        self._deleted.append(handler)
        return HookHandle(_remover(self._deleted, handler), label="content_deleted")

    async def emit_saved(self, event: ContentSavedEvent) -> int:
        """Notify saved-content handlers; returns how many ran without error."""
        return await self._dispatch("content_saved", list(self._saved), event)

    async def emit_deleted(self, event: ContentDeletedEvent) -> int:
        """Notify deleted-content handlers; returns how many ran without error."""
        return await self._dispatch("content_deleted", list(self._deleted), event)

    async def _dispatch(self, event_name: str, handlers: list, event) -> int:
        succeeded = 0
        for handler in handlers:
            try:
                await handler(event)
                succeeded += 1
            except Exception as e:
                logger.exception(
                    "Content event handler failed",
                    event_type=event_name,
                    content_id=str(event.content_id),
                    error=str(e),
                )
        return succeeded
