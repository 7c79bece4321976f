"""
Adapters connecting the table engine to concrete platforms.
"""

from sharedtable.adapters.base import PlatformAdapter
from sharedtable.adapters.dummy import DummyAdapter
from sharedtable.adapters.file import TableLogAdapter

__all__ = ["PlatformAdapter", "DummyAdapter", "TableLogAdapter"]
