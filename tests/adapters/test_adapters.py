"""
Tests for the dummy and log-file adapters.
"""

import json

import pytest

from sharedtable.adapters import DummyAdapter, TableLogAdapter
from sharedtable.api import BlackjackTable
from sharedtable.blackjack.action import Action
from sharedtable.events import TableEventType

VALID = [Action.HIT, Action.STAND, Action.DOUBLE]


@pytest.mark.asyncio
async def test_dummy_adapter_follows_the_script_then_stands():
    adapter = DummyAdapter(auto_actions={"p1": [Action.HIT, Action.DOUBLE]})

    assert await adapter.request_player_action("p1", "Alice", VALID) is Action.HIT
    assert await adapter.request_player_action("p1", "Alice", VALID) is Action.DOUBLE
    assert await adapter.request_player_action("p1", "Alice", VALID) is Action.STAND


@pytest.mark.asyncio
async def test_dummy_adapter_strategy_and_invalid_choices():
    adapter = DummyAdapter(
        auto_actions={"p1": [Action.SPLIT]},
        strategy_function=lambda player_id, actions: actions[0],
    )

    # SPLIT is not on offer, so the scripted choice falls back to STAND
    assert await adapter.request_player_action("p1", "Alice", VALID) is Action.STAND
    assert await adapter.request_player_action("p2", "Bob", VALID) is Action.HIT


@pytest.mark.asyncio
async def test_dummy_adapter_records_events_and_states():
    adapter = DummyAdapter(verbose=True)
    await adapter.notify_game_event(TableEventType.CARD_DEALT, {"card": "A♠"})
    await adapter.notify_game_event("CUSTOM", {})
    await adapter.render_game_state({"dealer": {"hand": []}, "players": []})

    assert adapter.get_events_by_type(TableEventType.CARD_DEALT) == [{"card": "A♠"}]
    assert adapter.get_events_by_type("CUSTOM") == [{}]
    assert len(adapter.rendered_states) == 1

    adapter.clear()
    assert adapter.events == [] and adapter.rendered_states == []


@pytest.mark.asyncio
async def test_log_adapter_writes_ndjson(tmp_path):
    path = tmp_path / "table.log"
    adapter = TableLogAdapter(str(path))

    await adapter.notify_game_event(TableEventType.PLAYER_BET, {"amount": 1})
    await adapter.render_game_state({"stage": "BETTING"})
    action = await adapter.request_player_action("p1", "Alice", VALID)

    assert action is Action.STAND
    records = [json.loads(line) for line in path.read_text().splitlines()]
    assert [record["type"] for record in records] == ["PLAYER_BET", "ACTION_REQUESTED"]
    assert records[0]["data"] == {"amount": 1}
    assert records[1]["data"]["valid_actions"] == ["HIT", "STAND", "DOUBLE"]


@pytest.mark.asyncio
async def test_log_adapter_can_record_states(tmp_path):
    path = tmp_path / "table.log"
    adapter = TableLogAdapter(str(path), log_states=True)

    await adapter.render_game_state({"stage": "BETTING"})

    (record,) = [json.loads(line) for line in path.read_text().splitlines()]
    assert record["kind"] == "state"
    assert record["data"] == {"stage": "BETTING"}


@pytest.mark.asyncio
async def test_table_plays_a_round_through_the_log_adapter(
    tmp_path, store, fast_config, event_bus, stacked_shoe
):
    path = tmp_path / "table.log"
    table = BlackjackTable(
        store=store,
        adapter=TableLogAdapter(str(path)),
        config=fast_config,
        event_bus=event_bus,
    )
    await table.initialize()
    try:
        await table.join("Alice", 1)
        table.state.shoe = stacked_shoe("10", "10", "8", "7")
        await table.auto_play_round()
    finally:
        await table.shutdown()

    types = [json.loads(line)["type"] for line in path.read_text().splitlines()]
    assert types[0] == "ROUND_STARTED"
    assert "ACTION_REQUESTED" in types
    assert types[-1] == "ROUND_ENDED"
