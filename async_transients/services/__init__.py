"""
Application services for async transients.
"""
