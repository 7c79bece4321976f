"""
Blackjack rules objects: actions, hands and players.
"""

from sharedtable.blackjack.action import Action
from sharedtable.blackjack.hand import (
    Authoritative,
    BlackjackHand,
    Computed,
    HandResult,
    evaluate,
)
from sharedtable.blackjack.player import DEALER_ID, Player

__all__ = [
    "Action",
    "Authoritative",
    "BlackjackHand",
    "Computed",
    "HandResult",
    "evaluate",
    "DEALER_ID",
    "Player",
]
