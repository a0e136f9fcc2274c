"""
Invalidation Predicates

Single-concern checks deciding whether a content-saved event should be
ignored by a cache entry. ``should_ignore_save`` composes them.
"""

from typing import Collection, Optional, Union

from .entities import ContentItem, ContentSavedEvent, MutationContext
from .value_objects import EntryKind

ContentTypeFilter = Union[str, Collection[str], None]


def is_autosave(context: MutationContext) -> bool:
    """Draft autosave passes never invalidate."""
    return context.is_autosave


def is_revision(content: Optional[ContentItem]) -> bool:
    """Revisions are snapshots, not published changes."""
    return content is not None and content.is_revision


def is_background_mutation(context: MutationContext) -> bool:
    """Cron or ajax mutation without a user behind it."""
    return (context.is_cron or context.is_ajax) and not context.has_user


def lacks_edit_capability(context: MutationContext) -> bool:
    """A known user who may not edit the content."""
    return context.has_user and not context.can_edit


def content_type_mismatch(content_type_filter: ContentTypeFilter, content: ContentItem) -> bool:
    """The entry only tracks some content types and this is not one of them."""
    if not content_type_filter:
        return False
    if isinstance(content_type_filter, str):
        return content.content_type != content_type_filter
    return content.content_type not in content_type_filter


def lacks_taxonomy_term(taxonomy: Optional[str], content: ContentItem) -> bool:
    """The entry is scoped to a taxonomy the content has no term in."""
    if not taxonomy:
        return False
    return not content.has_terms_in(taxonomy)


def should_ignore_save(
    event: ContentSavedEvent,
    kind: EntryKind,
    content_type_filter: ContentTypeFilter = None,
    taxonomy: Optional[str] = None,
) -> bool:
    """
    Decide whether a content-saved event leaves the entry untouched.

    Args:
        event: The saved-content event
        kind: Kind of the cache entry receiving the event
        content_type_filter: Content type, or types, tracked by query entries
        taxonomy: Taxonomy tracked by taxonomy-scoped entries

    Returns:
        True when the event must not invalidate the entry
    """
    context = event.context
    content = event.content

    if is_autosave(context) or is_revision(content):
        return True

    if is_background_mutation(context) or lacks_edit_capability(context):
        return True

    if kind is EntryKind.COMPUTED_QUERY and content_type_mismatch(
        content_type_filter, content
    ):
        return True

    if kind is EntryKind.TAXONOMY_SCOPED and lacks_taxonomy_term(taxonomy, content):
        return True

    return False
