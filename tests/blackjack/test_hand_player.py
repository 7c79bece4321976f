"""
Tests for blackjack hands and players.
"""

import pytest

from sharedtable.blackjack.hand import BlackjackHand, HandResult, evaluate
from sharedtable.blackjack.player import Player


def test_evaluate_soft_and_hard_totals(make_card):
    assert evaluate([make_card("A"), make_card("6")]) == 17
    assert evaluate([make_card("A"), make_card("6"), make_card("10")]) == 17
    assert evaluate([make_card("A"), make_card("A"), make_card("9")]) == 21
    assert evaluate([make_card("K"), make_card("Q"), make_card("2")]) == 22


def test_blackjack_needs_exactly_two_cards(make_card):
    assert BlackjackHand(cards=[make_card("A"), make_card("K")]).is_blackjack
    hand = BlackjackHand(cards=[make_card("7"), make_card("7"), make_card("7")])
    assert hand.total == 21
    assert not hand.is_blackjack


def test_negative_bet_rejected():
    with pytest.raises(ValueError):
        BlackjackHand(bet=-1)
    hand = BlackjackHand()
    with pytest.raises(ValueError):
        hand.bet = -5


def test_authoritative_total_until_next_card(make_card):
    hand = BlackjackHand(cards=[make_card("9"), make_card("5")])
    hand.override_total(20)
    assert hand.total == 20

    hand.add_card(make_card("2"))
    assert hand.total == 16


def test_resolve_only_once():
    hand = BlackjackHand()
    hand.resolve(HandResult.WIN)
    assert hand.is_resolved
    with pytest.raises(ValueError):
        hand.resolve(HandResult.LOSE)


def test_reset_clears_everything(make_card):
    hand = BlackjackHand(bet=5, cards=[make_card("9")])
    hand.override_total(9)
    hand.resolve(HandResult.PUSH)
    hand.reset()
    assert hand.cards == []
    assert hand.bet == 0
    assert hand.result is None
    assert hand.total == 0


def test_dealer_has_no_bank():
    dealer = Player.dealer()
    assert dealer.is_dealer
    dealer.merge(bank=100)
    assert dealer.bank == 0


def test_merge_keeps_hand_identity(make_card):
    player = Player(id="p1", name="Alice", seat_number=1, bank=20)
    hand = player.hands[0]

    incoming = BlackjackHand(bet=2, cards=[make_card("9"), make_card("8")], id=hand.id)
    incoming.override_total(17)
    player.merge(bank=18, hands=[incoming])

    assert player.hands[0] is hand
    assert hand.bet == 2
    assert hand.total == 17
    assert player.bank == 18


def test_merge_adds_unknown_hands(make_card):
    player = Player(id="p1", name="Alice", seat_number=1)
    first = player.hands[0]
    second = BlackjackHand(cards=[make_card("8")])

    player.merge(hands=[BlackjackHand(id=first.id), second])

    assert player.hands == [first, second]


def test_is_in_round_and_total_bet(make_card):
    player = Player(id="p1", name="Alice", seat_number=1)
    assert not player.is_in_round
    player.hands = [
        BlackjackHand(bet=1, cards=[make_card("8")]),
        BlackjackHand(bet=1, cards=[make_card("8")]),
    ]
    assert player.is_in_round
    assert player.total_bet == 2
    player.reset_hands()
    assert len(player.hands) == 1
    assert player.total_bet == 0
