"""
Tests for cards and the multi-deck shoe.
"""

import pytest

from sharedtable.common.card import Card, Rank, Suit
from sharedtable.common.shoe import Shoe, build_shoe, shuffle


def test_card_str_and_value():
    card = Card(Rank.ACE, Suit.HEARTS, 3)
    assert str(card) == "A♥"
    assert card.value == 11
    assert card.is_ace
    assert Card(Rank.KING, Suit.CLUBS).value == 10


def test_card_rejects_invalid_suit():
    with pytest.raises(TypeError):
        Card(Rank.TWO, "hearts")


def test_build_shoe_gives_unique_indices():
    cards = build_shoe(2)
    assert len(cards) == 104
    assert len({card.index for card in cards}) == 104
    assert sum(1 for card in cards if card.rank is Rank.ACE) == 8


def test_shuffle_returns_permutation_without_mutating_input():
    cards = build_shoe(1)
    original = list(cards)
    shuffled = shuffle(cards)
    assert cards == original
    assert sorted(c.index for c in shuffled) == sorted(c.index for c in original)


def test_shoe_rejects_bad_arguments():
    with pytest.raises(ValueError):
        Shoe(0)
    with pytest.raises(ValueError):
        Shoe(1, threshold=1.5)


def test_draw_takes_from_the_front_and_counts():
    cards = build_shoe(1)
    shoe = Shoe(1, cards=cards)
    assert shoe.draw() is cards[0]
    assert shoe.cards_played == 1
    assert shoe.cards_remaining == 51


def test_return_cards_appends_to_the_back():
    shoe = Shoe(1)
    card = shoe.draw()
    shoe.return_cards([card])
    assert shoe.cards[-1] is card
    assert shoe.cards_remaining == 52


def test_reshuffle_after_threshold():
    shoe = Shoe(1, threshold=0.25)
    for _ in range(39):
        shoe.draw()
    assert not shoe.reshuffle_if_needed()

    shoe.draw()
    assert shoe.needs_reshuffle()
    assert shoe.reshuffle_if_needed()
    assert shoe.cards_played == 0


def test_exhausted_shoe_regenerates():
    shoe = Shoe(1, cards=[])
    card = shoe.draw()
    assert isinstance(card, Card)
    assert shoe.cards_remaining == 51
    assert shoe.cards_played == 1


def test_replace_installs_snapshot():
    shoe = Shoe(1)
    snapshot = build_shoe(1)[:10]
    shoe.replace(snapshot, cards_played=7)
    assert shoe.cards == snapshot
    assert shoe.cards is not snapshot
    assert shoe.cards_played == 7
