"""
In-process transient store.
"""

from .store import InMemoryTransientStore

__all__ = ["InMemoryTransientStore"]
