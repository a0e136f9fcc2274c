"""
Deferred Job Services

Single-shot regeneration jobs with at-most-one-pending semantics.
"""

from .scheduler import RegenerationScheduler, ScheduledJob

__all__ = ["RegenerationScheduler", "ScheduledJob"]
