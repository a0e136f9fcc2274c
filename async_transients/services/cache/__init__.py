"""
Cache Services

The CacheEntry lifecycle and bulk maintenance helpers.
"""

from .maintenance import delete_all, delete_all_with_prefix
from .transient import CacheEntry, Collaborators

__all__ = ["CacheEntry", "Collaborators", "delete_all", "delete_all_with_prefix"]
