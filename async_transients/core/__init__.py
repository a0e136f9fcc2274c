"""
Core configuration and logging for async transients.
"""
