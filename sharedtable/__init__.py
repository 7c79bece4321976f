"""
A shared multi-seat blackjack table.

Several participants play one game held in a shared store. Each client runs
the turn engine on its local state and merges the changes other participants
publish.
"""

from sharedtable.api.table import BlackjackTable
from sharedtable.config import TableConfig

__version__ = "0.1.0"

__all__ = ["BlackjackTable", "TableConfig", "__version__"]
