"""
The multi-deck shoe.

``build_shoe`` and ``shuffle`` are plain functions so the synchroniser can
regenerate a shoe without touching a live ``Shoe``. The ``Shoe`` itself is the
pool of cards not currently held in any hand: dealt cards come off the front,
and at the end of every round the cards from every hand are returned to the
back. ``cards_played`` counts draws since the last reshuffle.
"""

import logging
import random
from typing import Iterable, List, Optional

from sharedtable.common.card import Card, Rank, Suit

logger = logging.getLogger("sharedtable.shoe")

CARDS_PER_DECK = 52

# Deck order before shuffling, one of each rank per suit
_DECK_ORDER = [(suit, rank) for suit in Suit for rank in Rank]


def build_shoe(number_of_decks: int) -> List[Card]:
    """
    Build an unshuffled shoe of ``52 * number_of_decks`` cards.

    Every card gets an index that is unique within the shoe.

    >>> len(build_shoe(2))
    104
    """
    cards = []
    for deck in range(number_of_decks):
        for position, (suit, rank) in enumerate(_DECK_ORDER):
            cards.append(Card(rank, suit, deck * CARDS_PER_DECK + position))
    return cards


def shuffle(cards: Iterable[Card]) -> List[Card]:
    """Return a uniformly shuffled copy of ``cards``. The input is not modified."""
    shuffled = list(cards)
    random.shuffle(shuffled)
    return shuffled


class Shoe:
    def __init__(
        self,
        num_decks: int = 6,
        threshold: float = 0.25,
        cards: Optional[List[Card]] = None,
        cards_played: int = 0,
    ):
        """
        Initialize a Shoe instance.

        :param num_decks: Number of decks the shoe was built from (default is 6)
        :param threshold: Fraction of the shoe left when a reshuffle is due (default is 25%)
        :param cards: Existing card order, e.g. from a synchronized snapshot.
                      If omitted a freshly built and shuffled shoe is used.
        :param cards_played: Cards drawn since the last reshuffle
        """
        if num_decks < 1:
            raise ValueError("Number of decks must be at least 1")
        if not 0 < threshold < 1:
            raise ValueError("Threshold must be between 0 and 1")

        self.num_decks = num_decks
        self.threshold = threshold
        self.total_cards = CARDS_PER_DECK * num_decks
        self.cards: List[Card] = (
            list(cards) if cards is not None else shuffle(build_shoe(num_decks))
        )
        self.cards_played = cards_played

    def needs_reshuffle(self) -> bool:
        """True once more than ``1 - threshold`` of the shoe has been played."""
        return self.cards_played / self.total_cards > 1 - self.threshold

    def reshuffle(self) -> None:
        """Shuffle every undealt card and reset the played counter."""
        self.cards = shuffle(self.cards)
        self.cards_played = 0
        logger.debug("Reshuffled shoe with %d cards", len(self.cards))

    def reshuffle_if_needed(self) -> bool:
        """
        Reshuffle if the threshold has been crossed.

        :return: True if a reshuffle happened
        """
        if not self.needs_reshuffle():
            return False
        self.reshuffle()
        return True

    def draw(self) -> Card:
        """
        Remove and return the card at the front of the shoe.

        Callers check ``reshuffle_if_needed`` first so they can publish the
        reshuffled order.
        """
        if not self.cards:
            logger.warning("Shoe exhausted, generating a fresh shoe")
            self.cards = shuffle(build_shoe(self.num_decks))
            self.cards_played = 0
        self.cards_played += 1
        return self.cards.pop(0)

    def return_cards(self, cards: Iterable[Card]) -> None:
        """Put cards from finished hands back at the end of the shoe."""
        self.cards.extend(cards)

    def replace(self, cards: List[Card], cards_played: Optional[int] = None) -> None:
        """Install a synchronized snapshot of the shoe."""
        self.cards = list(cards)
        if cards_played is not None:
            self.cards_played = cards_played

    @property
    def cards_remaining(self) -> int:
        """Return the number of cards remaining in the shoe."""
        return len(self.cards)

    def get_penetration_percentage(self) -> float:
        """Return how far through the shoe play has gone since the last reshuffle."""
        return self.cards_played / self.total_cards

    def __len__(self) -> int:
        return len(self.cards)

    def __str__(self) -> str:
        return f"Shoe with {self.cards_remaining} cards remaining"

    def __repr__(self) -> str:
        return f"Shoe(num_decks={self.num_decks}, threshold={self.threshold}, cards_played={self.cards_played})"
