"""
Infrastructure implementations of the transient store.
"""
