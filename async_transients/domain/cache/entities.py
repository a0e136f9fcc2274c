"""
Transient Cache Domain Entities

Configuration bundle for a cache entry plus the content and mutation
events that drive invalidation.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from ...core.config import get_settings
from .value_objects import EntryKind, TransientName, TTL


def _default_ttl() -> int:
    return get_settings().DEFAULT_TTL_SECONDS


class EntryConfig(BaseModel):
    """
    Normalised construction options for a CacheEntry.

    Unknown options are ignored. The legacy option names (``timeout``,
    ``query_args``, ``return_pre``, ``pre_transient``, ``post_type``) are
    accepted as aliases.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str = Field(default="", description="Transient name")
    kind: EntryKind = Field(
        default=EntryKind.COMPUTED_QUERY, validation_alias=AliasChoices("kind", "type")
    )
    ttl: int = Field(
        default_factory=_default_ttl,
        validation_alias=AliasChoices("ttl", "timeout"),
        description="Seconds until the stored value expires (0 = never)",
    )
    value: Any = Field(default=None, description="Precomputed value to store")
    compute_spec: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("compute_spec", "query_args"),
    )
    auto_compute_on_init: bool = Field(
        default=True, validation_alias=AliasChoices("auto_compute_on_init", "pre_transient")
    )
    always_serve_stale: bool = Field(
        default=True, validation_alias=AliasChoices("always_serve_stale", "return_pre")
    )
    content_type: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("content_type", "post_type")
    )
    taxonomy: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def truncate_name(cls, v):
        """Truncate over-long names instead of rejecting them."""
        return TransientName.normalize(v, get_settings().NAME_MAX_LENGTH).value

    @field_validator("ttl", mode="before")
    @classmethod
    def clamp_ttl(cls, v):
        """Clamp the TTL to a non-negative integer."""
        return TTL.coerce(v).seconds

    @field_validator("compute_spec", mode="before")
    @classmethod
    def default_compute_spec(cls, v):
        return {} if v is None else v


class ContentItem(BaseModel):
    """A piece of content whose mutation may invalidate cached queries."""

    id: Union[int, str]
    content_type: str = Field(default="post")
    terms: Dict[str, List[str]] = Field(
        default_factory=dict, description="Taxonomy name to assigned term slugs"
    )
    is_revision: bool = False
    attributes: Dict[str, Any] = Field(default_factory=dict)

    def has_terms_in(self, taxonomy: str) -> bool:
        """Check whether the item carries at least one term of a taxonomy."""
        return bool(self.terms.get(taxonomy))


class MutationContext(BaseModel):
    """
    Circumstances of a content mutation.

    Replaces ambient request flags (autosave, ajax, cron, current user).
    """

    is_autosave: bool = False
    is_ajax: bool = False
    is_cron: bool = False
    user_id: Optional[str] = None
    can_edit: bool = True

    @property
    def has_user(self) -> bool:
        return self.user_id is not None


class ContentSavedEvent(BaseModel):
    """Content was created or updated."""

    content_id: Union[int, str]
    content: ContentItem
    is_update: bool = False
    context: MutationContext = Field(default_factory=MutationContext)


class ContentDeletedEvent(BaseModel):
    """Content was removed."""

    content_id: Union[int, str]
    content: Optional[ContentItem] = None
    context: MutationContext = Field(default_factory=MutationContext)
