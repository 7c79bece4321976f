"""
Stores holding the shared game and player rows.
"""

from sharedtable.storage.base import GameRow, GameStore, PlayerRow, utc_now
from sharedtable.storage.memory import InMemoryGameStore
from sharedtable.storage.sqlite import SQLiteGameStore

__all__ = [
    "GameRow",
    "GameStore",
    "PlayerRow",
    "utc_now",
    "InMemoryGameStore",
    "SQLiteGameStore",
]
