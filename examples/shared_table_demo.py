#!/usr/bin/env python3
"""
Shared table demo.

Seats a few bot players at one table and plays several rounds. With
``--relay`` the table's row changes are also broadcast over a WebSocket so
another process can follow along with ``RemoteFeed``.

Settings come from ``SHAREDTABLE_*`` environment variables, command line
flags override them.
"""

import argparse
import asyncio
import logging
import random
from dataclasses import replace

from sharedtable import BlackjackTable, TableConfig
from sharedtable.adapters import DummyAdapter, TableLogAdapter
from sharedtable.blackjack.action import Action
from sharedtable.events import EventBus, TableEventType
from sharedtable.events.websocket import WebSocketRelay

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("shared_table_demo")


def cautious_strategy(player_id, valid_actions):
    """Hit now and then, never split or double."""
    if Action.HIT in valid_actions and random.random() < 0.4:
        return Action.HIT
    return Action.STAND


def print_round_result(data):
    logger.info(f"Round {data['round_number']} finished")


def announce_game_over(data):
    logger.info(f"Game over: player {data['player_id']} is down to {data['bank']}")


async def run(args):
    config = replace(
        TableConfig.from_env(),
        pace_delay=args.pace,
        deal_delay=args.pace,
        continuous_play=False,
    )
    if args.database:
        config = replace(config, database_path=args.database)

    adapter = (
        TableLogAdapter(args.log_file, log_states=True)
        if args.log_file
        else DummyAdapter(strategy_function=cautious_strategy)
    )
    table = BlackjackTable(adapter=adapter, config=config)
    if not await table.initialize():
        logger.error(f"Could not load the table: {table.state.error}")
        return 1

    relay = None
    if args.relay:
        relay = WebSocketRelay(table.store, table.state.id, port=args.port)
        await relay.start()
        logger.info(f"Follow the table at {relay.url}")

    table.on(TableEventType.ROUND_ENDED, print_round_result)
    table.event_bus.once(TableEventType.GAME_OVER, announce_game_over)

    try:
        for seat, name in enumerate(args.players, start=1):
            if not await table.join(name, seat):
                logger.warning(f"{name} could not sit: {table.state.error}")

        for _ in range(args.rounds):
            if table.state.is_game_over:
                logger.info("Every bank is empty")
                break
            summary = await table.auto_play_round(timeout_seconds=5)
            logger.info(f"Banks after round {summary['round_number']}: {summary['banks']}")
    finally:
        if relay is not None:
            await relay.stop()
        await table.shutdown()
        EventBus.get_instance().remove_all_listeners()
    return 0


def main():
    parser = argparse.ArgumentParser(description="Play a few rounds at a shared table")
    parser.add_argument("--players", nargs="+", default=["Alice", "Bob", "Carol"])
    parser.add_argument("--rounds", type=int, default=5)
    parser.add_argument("--pace", type=float, default=0.0, help="Delay between steps")
    parser.add_argument("--database", help="SQLite file shared between processes")
    parser.add_argument("--log-file", help="Write events as NDJSON instead of playing bots")
    parser.add_argument("--relay", action="store_true", help="Broadcast over WebSocket")
    parser.add_argument("--port", type=int, default=8765)
    args = parser.parse_args()
    return asyncio.run(run(args))


if __name__ == "__main__":
    raise SystemExit(main())
