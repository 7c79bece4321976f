"""
Card primitives shared by the table: cards, ranks, suits and the shoe.
"""

from sharedtable.common.card import Card, Rank, Suit
from sharedtable.common.shoe import Shoe, build_shoe, shuffle

__all__ = ["Card", "Rank", "Suit", "Shoe", "build_shoe", "shuffle"]
