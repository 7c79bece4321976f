"""
Synchronisation between the local table and the shared store.
"""

from sharedtable.sync.codec import dump_hands, dump_shoe, load_hands, load_shoe
from sharedtable.sync.synchronizer import Synchronizer

__all__ = ["dump_hands", "dump_shoe", "load_hands", "load_shoe", "Synchronizer"]
