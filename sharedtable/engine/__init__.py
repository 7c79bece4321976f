"""
Turn engine for the shared table.
"""

from sharedtable.engine.blackjack import BlackjackTableEngine

__all__ = ["BlackjackTableEngine"]
