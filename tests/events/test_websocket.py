"""
Tests for the WebSocket relay and the remote feed.
"""

import asyncio
import json

import pytest
import pytest_asyncio
import websockets

from sharedtable.common.shoe import Shoe
from sharedtable.events.websocket import (
    ClientMessage,
    RemoteFeed,
    ServerMessage,
    WebSocketRelay,
)
from sharedtable.state import TableState
from sharedtable.sync import Synchronizer


async def wait_for(condition, timeout=2.0):
    """Poll ``condition`` until it holds or the timeout passes."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not condition():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


async def receive(websocket):
    return json.loads(await asyncio.wait_for(websocket.recv(), 2.0))


@pytest_asyncio.fixture
async def relay(store):
    game = await store.get_or_create_active_game()
    relay = WebSocketRelay(store, game.id, host="127.0.0.1", port=0)
    await relay.start()
    yield relay
    await relay.stop()


@pytest.mark.asyncio
async def test_relay_listens_on_a_free_port(relay):
    assert relay.port > 0
    assert relay.url == f"ws://127.0.0.1:{relay.port}"


@pytest.mark.asyncio
async def test_client_gets_snapshot_then_changes(relay, store):
    await store.insert_player(relay.game_id, "Alice", 1, bank=20)

    async with websockets.connect(relay.url) as websocket:
        connected = await receive(websocket)
        assert connected["type"] == ServerMessage.CONNECTED
        assert connected["data"]["game_id"] == relay.game_id

        snapshot = await receive(websocket)
        assert snapshot["type"] == ServerMessage.PLAYER_ROW
        assert snapshot["data"]["name"] == "Alice"

        await wait_for(lambda: len(relay.clients) == 1)
        await store.update_game(relay.game_id, {"cards_played": 8})
        change = await receive(websocket)
        assert change["type"] == ServerMessage.GAME_ROW
        assert change["data"]["cards_played"] == 8


@pytest.mark.asyncio
async def test_heartbeat_and_invalid_messages(relay):
    async with websockets.connect(relay.url) as websocket:
        await receive(websocket)

        await websocket.send(json.dumps({"type": ClientMessage.HEARTBEAT}))
        assert (await receive(websocket))["type"] == ServerMessage.HEARTBEAT

        await websocket.send("not json")
        reply = await receive(websocket)
        assert reply["type"] == ServerMessage.ERROR
        assert reply["data"]["message"] == "Invalid JSON"

        await websocket.send(json.dumps({"type": "dance"}))
        assert (await receive(websocket))["type"] == ServerMessage.ERROR


@pytest.mark.asyncio
async def test_disconnected_clients_are_dropped(relay):
    async with websockets.connect(relay.url) as websocket:
        await receive(websocket)
        await wait_for(lambda: len(relay.clients) == 1)

    await wait_for(lambda: not relay.clients)
    assert await relay.broadcast(ServerMessage.GAME_ROW, {}) == 0


@pytest.mark.asyncio
async def test_remote_feed_applies_rows(relay, store, event_bus, fast_config):
    state = TableState(id=relay.game_id, shoe=Shoe(1))
    synchronizer = Synchronizer(store, state, fast_config, event_bus)
    feed = RemoteFeed(relay.url, synchronizer)
    await feed.start()
    try:
        await wait_for(lambda: feed.client_id is not None)
        await wait_for(lambda: len(relay.clients) == 1)

        await store.insert_player(relay.game_id, "Bob", 2, bank=12)
        await wait_for(lambda: state.seated_players)
        assert state.seated_players[0].bank == 12

        await store.update_game(relay.game_id, {"cards_played": 30})
        await wait_for(lambda: state.shoe.cards_played == 30)
    finally:
        await feed.stop()


def test_remote_feed_drops_malformed_rows(event_bus, fast_config):
    state = TableState(id="game-1")
    synchronizer = Synchronizer(None, state, fast_config, event_bus)
    feed = RemoteFeed("ws://unused", synchronizer)

    feed.handle_message({"type": ServerMessage.PLAYER_ROW, "data": {"bogus": 1}})
    feed.handle_message({"type": "something_else", "data": {}})

    assert state.seated_players == []
