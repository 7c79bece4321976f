"""
Players seated at the table, including the dealer.

A ``Player`` object is long-lived: the turn engine holds direct references to
the active player and its hands, so inbound updates from the store are merged
into the existing object instead of replacing it.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sharedtable.blackjack.hand import BlackjackHand

DEALER_ID = "dealer"


@dataclass(eq=False)
class Player:
    """
    A participant at the table.

    Attributes:
        id: Store row id, or "dealer" for the dealer
        name: Display name
        seat_number: Seat held by the player (None for the dealer)
        is_dealer: Whether this is the dealer
        bank: Money available to bet; always 0 for the dealer
        hands: One hand, or two after a split
        is_active: False once the player has left
        last_active: ISO timestamp of the last heartbeat
    """

    id: Optional[str]
    name: str
    seat_number: Optional[int] = None
    is_dealer: bool = False
    bank: float = 0
    hands: List[BlackjackHand] = field(default_factory=lambda: [BlackjackHand()])
    is_active: bool = True
    last_active: Optional[str] = None

    @classmethod
    def dealer(cls) -> "Player":
        return cls(id=DEALER_ID, name="Dealer", is_dealer=True, bank=0)

    @property
    def total_bet(self) -> float:
        return sum(hand.bet for hand in self.hands)

    @property
    def is_in_round(self) -> bool:
        """True if the player was dealt into the current round."""
        return any(hand.cards for hand in self.hands)

    def reset_hands(self) -> None:
        """Give the player a single empty hand."""
        self.hands = [BlackjackHand()]

    def merge(
        self,
        bank: Optional[float] = None,
        hands: Optional[List[BlackjackHand]] = None,
    ) -> None:
        """
        Merge a remote snapshot into this player in place.

        Hands are matched by id; a known hand keeps its object identity and
        takes the snapshot's cards, bet, result and total.

        Args:
            bank: New bank, or None to keep the current one
            hands: New hands, or None to keep the current ones
        """
        if bank is not None and not self.is_dealer:
            self.bank = bank

        if hands is None:
            return

        existing: Dict[str, BlackjackHand] = {hand.id: hand for hand in self.hands}
        merged = []
        for incoming in hands:
            hand = existing.get(incoming.id)
            if hand is None:
                merged.append(incoming)
                continue
            hand.cards = list(incoming.cards)
            hand.bet = incoming.bet
            hand.result = incoming.result
            hand.total_source = incoming.total_source
            merged.append(hand)
        self.hands = merged or [BlackjackHand()]

    def __repr__(self) -> str:
        return f"Player(id={self.id!r}, name={self.name!r}, seat={self.seat_number!r}, bank={self.bank!r})"
