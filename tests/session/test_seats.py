"""
Tests for joining, leaving and the heartbeat.
"""

import asyncio
from dataclasses import replace
from unittest.mock import patch

import pytest

from sharedtable.api import BlackjackTable
from sharedtable.errors import (
    NameTakenError,
    SeatTakenError,
    StoreError,
    UniqueViolationError,
    ValidationError,
)


@pytest.mark.asyncio
async def test_join_inserts_a_player_with_the_starting_bank(table, store):
    player = await table.seats.join("  Alice ", 1)

    assert player.name == "Alice"
    assert player.bank == 20
    assert table.state.local_player is player
    assert table.state.seated_players == [player]
    assert table.seats.heartbeat_running

    (row,) = await store.list_active_players(table.state.id)
    assert row.id == player.id
    assert row.bank == 20


@pytest.mark.parametrize(
    "name,seat,message",
    [
        ("", 1, "Please enter your name"),
        ("   ", 1, "Please enter your name"),
        ("Alice", None, "Please select a seat"),
        ("Alice", 9, "Seat 9 does not exist"),
    ],
)
@pytest.mark.asyncio
async def test_join_validation(table, name, seat, message):
    with pytest.raises(ValidationError, match=message):
        await table.seats.join(name, seat)

    assert not await table.join(name, seat)
    assert table.state.error == message
    assert table.state.show_join_dialog


@pytest.mark.asyncio
async def test_join_requires_a_loaded_game(store, fast_config, event_bus):
    table = BlackjackTable(store=store, config=fast_config, event_bus=event_bus)
    assert not await table.join("Alice", 1)
    assert table.state.error == "Game not initialized"


@pytest.mark.asyncio
async def test_taken_seat_and_name(table, store):
    await store.insert_player(table.state.id, "Bob", 1, bank=20)

    with pytest.raises(SeatTakenError):
        await table.seats.join("Alice", 1)
    with pytest.raises(NameTakenError):
        await table.seats.join("Bob", 2)

    assert not await table.join("Alice", 1)
    assert table.state.error == "Seat 1 is already taken. Please choose another seat."


@pytest.mark.asyncio
async def test_rejoin_reactivates_the_same_row_with_a_fresh_bank(table, store):
    alice = await table.seats.join("Alice", 1)
    alice_id = alice.id
    await store.update_player(alice_id, {"bank": 3, "hands": "[]"})

    await table.seats.leave()
    assert table.state.local_player is None
    assert not table.seats.heartbeat_running

    again = await table.seats.join("Alice", 2)
    assert again.id == alice_id
    assert again.seat_number == 2
    assert again.bank == 20

    rows = await store.list_players(table.state.id)
    assert len(rows) == 1
    assert rows[0].hands is None


@pytest.mark.asyncio
async def test_reactivation_prefers_name_and_seat_then_name_then_seat(table, store):
    game_id = table.state.id
    by_seat = await store.insert_player(game_id, "Carol", 1, is_active=False)
    by_name = await store.insert_player(game_id, "Alice", 3, is_active=False)
    exact = await store.insert_player(game_id, "Alice", 1, is_active=False)

    player = await table.seats.join("Alice", 1)
    assert player.id == exact.id

    await table.seats.leave()
    await store.update_player(exact.id, {"seat_number": 2})
    player = await table.seats.join("Alice", 1)
    assert player.id == exact.id

    await table.seats.leave()
    await store.update_player(exact.id, {"seat_number": 2})
    player = await table.seats.join("Dave", 1)
    assert player.id == by_seat.id
    assert player.name == "Dave"


@pytest.mark.asyncio
async def test_concurrent_seat_claim_reports_seat_taken(table, store):
    await store.insert_player(table.state.id, "Bob", 1, bank=20)
    list_players = store.list_players
    calls = []

    async def stale_then_fresh(game_id):
        calls.append(game_id)
        if len(calls) == 1:
            return []
        return await list_players(game_id)

    with patch.object(store, "list_players", side_effect=stale_then_fresh):
        with pytest.raises(SeatTakenError):
            await table.seats.join("Alice", 1)
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_concurrent_name_claim_reports_name_taken(table, store):
    game_id = table.state.id

    with patch.object(
        store, "list_players", side_effect=[[], []]
    ), patch.object(
        store, "insert_player", side_effect=UniqueViolationError("name")
    ):
        with pytest.raises(NameTakenError):
            await table.seats.join("Alice", 1)

    assert await store.list_players(game_id) == []


@pytest.mark.asyncio
async def test_leave_removes_the_local_player(table, store, events):
    alice = await table.seats.join("Alice", 1)

    assert await table.leave()
    assert table.state.seated_players == []
    assert table.state.local_player is None
    assert not alice.is_active

    (row,) = await store.list_players(table.state.id)
    assert not row.is_active
    assert "PLAYER_LEFT" in [event_type for event_type, _ in events]


@pytest.mark.asyncio
async def test_leave_without_a_player(table):
    assert not await table.leave()


@pytest.mark.asyncio
async def test_heartbeat_refreshes_last_active(store, fast_config, event_bus):
    config = replace(fast_config, heartbeat_interval=0.01)
    table = BlackjackTable(store=store, config=config, event_bus=event_bus)
    await table.initialize()
    try:
        alice = await table.seats.join("Alice", 1)
        joined_at = store.players[alice.id].last_active

        await asyncio.sleep(0.05)

        assert store.players[alice.id].last_active != joined_at
        assert table.seats.heartbeat_running
    finally:
        await table.shutdown()
    assert not table.seats.heartbeat_running


@pytest.mark.asyncio
async def test_touch_failures_are_only_logged(table, store):
    await table.seats.join("Alice", 1)

    with patch.object(store, "update_player", side_effect=StoreError("offline")):
        assert not await table.seats.touch()


@pytest.mark.asyncio
async def test_late_leave_notification_does_not_unseat_a_rejoin(table):
    await table.seats.join("Alice", 1)
    await table.seats.leave()
    again = await table.seats.join("Alice", 1)

    for _ in range(5):
        await asyncio.sleep(0)

    assert table.state.local_player is again
    assert table.state.seated_players == [again]
