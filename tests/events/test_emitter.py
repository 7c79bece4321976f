"""
Tests for the event emitter and the global event bus.
"""

from sharedtable.events import EventBus, EventEmitter, EventPriority, TableEventType


def test_handlers_run_in_priority_order():
    emitter = EventEmitter()
    calls = []
    emitter.on("ping", lambda data: calls.append("low"), EventPriority.LOW)
    emitter.on("ping", lambda data: calls.append("critical"), EventPriority.CRITICAL)
    emitter.on("ping", lambda data: calls.append("normal"))

    emitter.emit("ping", {})

    assert calls == ["critical", "normal", "low"]


def test_enum_and_string_event_types_are_the_same():
    emitter = EventEmitter()
    received = []
    emitter.on("PLAYER_JOINED", received.append)

    emitter.emit(TableEventType.PLAYER_JOINED, {"name": "Alice"})

    assert received == [{"name": "Alice"}]


def test_unsubscribe():
    emitter = EventEmitter()
    received = []
    unsubscribe = emitter.on(TableEventType.SHUFFLE, received.append)
    unsubscribe()

    emitter.emit(TableEventType.SHUFFLE, {})

    assert received == []


def test_once_fires_a_single_time():
    emitter = EventEmitter()
    received = []
    emitter.once(TableEventType.ROUND_ENDED, received.append)

    emitter.emit(TableEventType.ROUND_ENDED, {"round_number": 1})
    emitter.emit(TableEventType.ROUND_ENDED, {"round_number": 2})

    assert received == [{"round_number": 1}]


def test_on_any_receives_type_and_data():
    emitter = EventEmitter()
    received = []
    emitter.on_any(received.append)

    emitter.emit(TableEventType.CARD_DEALT, {"card": "A♠"})

    assert received == [("CARD_DEALT", {"card": "A♠"})]


def test_failing_handler_does_not_stop_delivery():
    emitter = EventEmitter()
    received = []

    def broken(data):
        raise RuntimeError("boom")

    emitter.on("ping", broken, EventPriority.HIGH)
    emitter.on("ping", received.append)

    emitter.emit("ping", {"n": 1})

    assert received == [{"n": 1}]


def test_game_context_is_attached():
    emitter = EventEmitter()
    received = []
    emitter.on("ping", received.append)
    emitter.set_context("game-1")

    emitter.emit("ping", {})
    emitter.emit("ping", {"game_id": "explicit"})

    assert received == [{"game_id": "game-1"}, {"game_id": "explicit"}]


def test_remove_all_listeners():
    emitter = EventEmitter()
    received = []
    emitter.on("a", received.append)
    emitter.on("b", received.append)
    emitter.on_any(received.append)

    emitter.remove_all_listeners("a")
    emitter.emit("a", {})
    assert received == [("a", {})]

    emitter.remove_all_listeners()
    emitter.emit("b", {})
    assert received == [("a", {})]


def test_event_bus_is_a_singleton():
    assert EventBus.get_instance() is EventBus.get_instance()
