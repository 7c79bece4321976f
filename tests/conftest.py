"""
Pytest configuration shared by every test package.

Tables built here run with no pacing delays and without continuous play, so a
test drives each round explicitly.
"""

import itertools

import pytest
import pytest_asyncio

from sharedtable.adapters import DummyAdapter
from sharedtable.api import BlackjackTable
from sharedtable.common.card import Card, Rank, Suit
from sharedtable.common.shoe import Shoe, build_shoe
from sharedtable.config import TableConfig
from sharedtable.events import EventBus, EventEmitter
from sharedtable.storage import InMemoryGameStore

_card_indices = itertools.count(1000)


# Reset event bus before each test
@pytest.fixture(scope="function", autouse=True)
def reset_event_bus():
    """Reset the event bus singleton before each test."""
    EventBus._instance = None
    yield
    EventBus._instance = None


@pytest.fixture
def make_card():
    """Build a card from its printed rank, e.g. ``make_card("A")``."""

    def _make(rank: str, suit: Suit = Suit.SPADES) -> Card:
        return Card(Rank(rank), suit, next(_card_indices))

    return _make


@pytest.fixture
def stacked_shoe(make_card):
    """
    Build a one-deck shoe whose first cards are the given ranks.

    Cards are dealt one per seat in seat order, then to the dealer, twice.
    """

    def _stack(*ranks: str) -> Shoe:
        cards = [make_card(rank) for rank in ranks]
        return Shoe(1, 0.25, cards=cards + build_shoe(1))

    return _stack


@pytest.fixture
def fast_config():
    return TableConfig(
        pace_delay=0, deal_delay=0, continuous_play=False, number_of_decks=1
    )


@pytest.fixture
def store():
    return InMemoryGameStore()


@pytest.fixture
def event_bus():
    return EventEmitter()


@pytest.fixture
def events(event_bus):
    """Every event emitted on the test bus, as (event type, data) pairs."""
    received = []
    event_bus.on_any(received.append)
    return received


@pytest.fixture
def adapter():
    return DummyAdapter()


@pytest_asyncio.fixture
async def table(store, adapter, fast_config, event_bus):
    """An initialized table on the in-memory store."""
    table = BlackjackTable(
        store=store, adapter=adapter, config=fast_config, event_bus=event_bus
    )
    await table.initialize()
    yield table
    await table.shutdown()
