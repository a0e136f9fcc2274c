"""
Async Transients Global Constants

Centralized location for system-wide constants used across the package.
"""

from datetime import datetime, timezone

# Transient defaults
DEFAULT_TTL_SECONDS = 86400  # 1 day
NAME_MAX_LENGTH = 40

# Key layout
TRANSIENT_KEY_SEGMENT = "transient:"
REGENERATION_JOB_PREFIX = "regenerate:"


def get_current_timestamp() -> datetime:
    """Get current timestamp with UTC timezone."""
    return datetime.now(timezone.utc)
