"""
Utilities package for logging and metrics.
"""
