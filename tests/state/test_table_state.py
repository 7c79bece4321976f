"""
Tests for the table state model.
"""

from sharedtable.blackjack.hand import BlackjackHand
from sharedtable.blackjack.player import Player
from sharedtable.state import GameStage, TableState


def make_player(player_id, seat):
    return Player(id=player_id, name=player_id.title(), seat_number=seat, bank=20)


def test_new_state_has_only_the_dealer():
    state = TableState()
    assert [player.is_dealer for player in state.players] == [True]
    assert state.stage is GameStage.AWAITING_ROUND
    assert state.seated_players == []


def test_insert_player_keeps_seat_order_and_dealer_last():
    state = TableState()
    state.insert_player(make_player("carol", 3))
    state.insert_player(make_player("alice", 1))
    state.insert_player(make_player("bob", 2))

    assert [player.id for player in state.players] == ["alice", "bob", "carol", "dealer"]


def test_dealer_is_restored_if_missing():
    state = TableState(players=[])
    assert state.dealer.is_dealer
    assert state.players[-1] is state.dealer


def test_remove_player_never_removes_the_dealer():
    state = TableState()
    alice = make_player("alice", 1)
    state.insert_player(alice)

    assert state.remove_player("dealer") is None
    assert state.remove_player("alice") is alice
    assert state.find_player("alice") is None


def test_next_player_skips_seats_out_of_the_round(make_card):
    state = TableState()
    alice, bob, carol = make_player("alice", 1), make_player("bob", 2), make_player("carol", 3)
    for player in (alice, bob, carol):
        state.insert_player(player)
    alice.hands[0].add_card(make_card("9"))
    carol.hands[0].add_card(make_card("9"))

    assert state.next_player(alice) is carol
    assert state.next_player(carol) is state.dealer
    assert state.next_player(state.dealer) is None


def test_adapter_format_hides_the_hole_card(make_card):
    state = TableState(id="game-1")
    alice = make_player("alice", 1)
    state.insert_player(alice)
    alice.hands = [BlackjackHand(bet=1, cards=[make_card("9"), make_card("8")])]
    state.dealer.hands = [BlackjackHand(cards=[make_card("K"), make_card("A")])]
    state.active_player = alice
    state.active_hand = alice.hands[0]

    view = state.to_adapter_format()
    assert view["game_id"] == "game-1"
    assert view["dealer"]["hand"] == ["K♠"]
    assert view["dealer"]["value"] == 10
    assert view["active_player_id"] == "alice"
    assert view["players"][0]["hands"][0]["value"] == 17
    assert view["players"][0]["hands"][0]["is_active"]

    state.show_dealer_hole_card = True
    view = state.to_adapter_format()
    assert view["dealer"]["hand"] == ["K♠", "A♠"]
    assert view["dealer"]["value"] == 21
    assert not view["dealer"]["hide_second_card"]
