"""
Monitoring for async transients.
"""

from .metrics import registry, render_metrics

__all__ = ["registry", "render_metrics"]
