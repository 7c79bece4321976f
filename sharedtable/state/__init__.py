"""
State model for the shared table.
"""

from sharedtable.state.models import GameStage, TableState

__all__ = ["GameStage", "TableState"]
