"""
Blackjack hands and hand evaluation.

A hand's total is normally computed from its cards. Once a hand has been
synchronized, the total published by the store is authoritative and is shown
instead of the local computation until the hand is reset. The two sources are
modelled as a small tagged value, ``Computed`` or ``Authoritative``, resolved
when the total is read.
"""

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Union

from sharedtable.common.card import Card, Rank


def evaluate(cards: Iterable[Card]) -> int:
    """
    Best total for a set of cards.

    Aces count 11 and are demoted to 1, one at a time, while the total is
    over 21.

    >>> from sharedtable.common.card import Suit
    >>> evaluate([Card(Rank.ACE, Suit.SPADES), Card(Rank.KING, Suit.HEARTS)])
    21
    """
    total = 0
    aces = 0
    for card in cards:
        if card.rank is Rank.ACE:
            aces += 1
        total += card.rank.rank_value

    while total > 21 and aces:
        total -= 10
        aces -= 1

    return total


class HandResult(Enum):
    """Outcome of a hand for the round."""

    WIN = "win"
    LOSE = "lose"
    PUSH = "push"
    BLACKJACK = "blackjack"
    BUST = "bust"


@dataclass(frozen=True)
class Computed:
    """The total is evaluated from the hand's cards."""

    def resolve(self, cards: List[Card]) -> int:
        return evaluate(cards)


@dataclass(frozen=True)
class Authoritative:
    """The total was supplied by the store and overrides local evaluation."""

    total: int

    def resolve(self, cards: List[Card]) -> int:
        return self.total


TotalSource = Union[Computed, Authoritative]

COMPUTED = Computed()


class BlackjackHand:
    """
    One bettable grouping of cards belonging to a player.

    A player holds one hand normally and two after a split. A freshly split
    hand holds a single card until the forced draw that completes it.
    """

    def __init__(
        self,
        bet: float = 0,
        cards: Optional[List[Card]] = None,
        id: Optional[str] = None,
    ):
        if bet < 0:
            raise ValueError("Bet must be non-negative")
        self.id = id or str(uuid.uuid4())
        self.cards: List[Card] = list(cards) if cards else []
        self._bet = bet
        self.result: Optional[HandResult] = None
        self.total_source: TotalSource = COMPUTED

    @property
    def bet(self) -> float:
        return self._bet

    @bet.setter
    def bet(self, amount: float) -> None:
        if amount < 0:
            raise ValueError("Bet must be non-negative")
        self._bet = amount

    @property
    def total(self) -> int:
        return self.total_source.resolve(self.cards)

    @property
    def is_bust(self) -> bool:
        return self.total > 21

    @property
    def is_blackjack(self) -> bool:
        return self.total == 21 and len(self.cards) == 2

    @property
    def is_resolved(self) -> bool:
        return self.result is not None

    def add_card(self, card: Card) -> None:
        """
        Add a card to the hand.

        An authoritative total described the previous card list, so it is
        dropped and the total is computed again.
        """
        self.cards.append(card)
        self.total_source = COMPUTED

    def override_total(self, total: int) -> None:
        """Use a total published by the store instead of local evaluation."""
        self.total_source = Authoritative(total)

    def resolve(self, result: HandResult) -> None:
        """
        Record the hand's result for the round.

        Raises:
            ValueError: If the hand already has a result
        """
        if self.result is not None:
            raise ValueError(
                f"Hand {self.id} already resolved as {self.result.value}"
            )
        self.result = result

    def reset(self) -> None:
        """Clear cards, bet, result and any authoritative total."""
        self.cards = []
        self._bet = 0
        self.result = None
        self.total_source = COMPUTED

    def __repr__(self) -> str:
        return f"BlackjackHand(id={self.id!r}, cards={self.cards!r}, bet={self.bet!r}, result={self.result!r})"

    def __str__(self) -> str:
        return ", ".join(str(card) for card in self.cards)
