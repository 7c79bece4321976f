"""
High-level API for the shared table.
"""

from sharedtable.api.table import BlackjackTable

__all__ = ["BlackjackTable"]
