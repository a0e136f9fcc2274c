"""
Transient Cache Value Objects

Immutable value objects for the transient cache domain.
Provides type safety for names, TTLs and store read results.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from ...constants import NAME_MAX_LENGTH


class EntryKind(str, Enum):
    """How a transient is recomputed and which invalidation triggers apply."""

    COMPUTED_QUERY = "query"
    TAXONOMY_SCOPED = "taxonomy"
    GENERIC = "generic"

    @property
    def tracks_content(self) -> bool:
        """Whether content mutations invalidate entries of this kind."""
        return self in (EntryKind.COMPUTED_QUERY, EntryKind.TAXONOMY_SCOPED)

    @property
    def is_query_based(self) -> bool:
        """Whether values are recomputed by the content query facility."""
        return self.tracks_content


class ReadStatus(str, Enum):
    """Outcome of a store read."""

    FRESH = "fresh"
    STALE = "stale"
    ABSENT = "absent"


@dataclass(frozen=True)
class StoreRead:
    """
    Result of reading a transient from the backing store.

    Distinguishes a live value, an expired value that is still on record,
    and no record at all.
    """

    status: ReadStatus
    value: Any = None
    expires_at: Optional[float] = None

    @classmethod
    def fresh(cls, value: Any, expires_at: Optional[float] = None) -> "StoreRead":
        return cls(ReadStatus.FRESH, value, expires_at)

    @classmethod
    def stale(cls, value: Any, expires_at: Optional[float] = None) -> "StoreRead":
        return cls(ReadStatus.STALE, value, expires_at)

    @classmethod
    def absent(cls) -> "StoreRead":
        return cls(ReadStatus.ABSENT)

    @property
    def found(self) -> bool:
        """Whether the store holds any value, fresh or stale."""
        return self.status is not ReadStatus.ABSENT

    @property
    def is_stale(self) -> bool:
        return self.status is ReadStatus.STALE


class _NoOverride:
    """Sentinel type returned by pre-read callbacks that do not intercept."""

    _instance: Optional["_NoOverride"] = None

    def __new__(cls) -> "_NoOverride":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NO_OVERRIDE"


NO_OVERRIDE = _NoOverride()


@dataclass(frozen=True)
class TTL:
    """
    Time To Live value object for transient expiration.

    Zero means the record never expires.
    """

    seconds: int

    def __post_init__(self) -> None:
        """Validate TTL value."""
        if self.seconds < 0:
            raise ValueError("TTL cannot be negative")

    @classmethod
    def coerce(cls, raw: Any) -> "TTL":
        """
        Build a TTL from arbitrary input without raising.

        Numbers are floored and negative values clamp to zero. Numeric
        strings are parsed; anything else becomes zero.
        """
        if isinstance(raw, TTL):
            return raw

        if isinstance(raw, bool):
            return cls(int(raw))

        if isinstance(raw, str):
            try:
                raw = float(raw.strip())
            except ValueError:
                return cls(0)

        if not isinstance(raw, (int, float)):
            return cls(0)

        if isinstance(raw, float) and not math.isfinite(raw):
            return cls(0)

        return cls(max(0, math.floor(raw)))

    @property
    def expires(self) -> bool:
        return self.seconds > 0

    def __str__(self) -> str:
        return f"{self.seconds}s"


@dataclass(frozen=True)
class TransientName:
    """
    Transient name value object.

    Names longer than the bound are truncated rather than rejected.
    An empty name is allowed and marks the entry as inert.
    """

    value: str

    @classmethod
    def normalize(cls, raw: Any, max_length: int = NAME_MAX_LENGTH) -> "TransientName":
        text = "" if raw is None else str(raw)
        if len(text) > max_length:
            text = text[:max_length]
        return cls(text)

    @property
    def is_empty(self) -> bool:
        return self.value == ""

    def __str__(self) -> str:
        return self.value


class HookHandle:
    """
    Registration handle returned by hook registries.

    Calling ``remove()`` unregisters the callback; it is safe to call twice.
    """

    def __init__(self, unregister: Callable[[], None], label: str = ""):
        self._unregister = unregister
        self.label = label
        self.active = True

    def remove(self) -> None:
        if not self.active:
            return
        self.active = False
        self._unregister()

    def __repr__(self) -> str:
        state = "active" if self.active else "removed"
        return f"HookHandle({self.label!r}, {state})"
