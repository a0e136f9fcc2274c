"""
Domain layer for async transients.
"""
