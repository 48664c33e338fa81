"""
Concurrent detection and service polling.
"""
