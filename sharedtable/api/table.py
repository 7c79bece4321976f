"""
High-level API for a shared blackjack table.

``BlackjackTable`` wires a store, the synchroniser, the seat manager and the
turn engine together and exposes the operations a front end needs. Failures
meant for the user are caught here: the method returns False and the message
is left in ``state.error``.

Example:
    ```python
    table = BlackjackTable(config={"pace_delay": 0.2})
    await table.initialize()
    await table.join("Alice", 1)
    await table.play_round()
    await table.stand(table.state.local_player.id)
    await table.shutdown()
    ```
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Set, Union

from sharedtable.adapters import DummyAdapter, PlatformAdapter
from sharedtable.blackjack.action import Action
from sharedtable.blackjack.player import Player
from sharedtable.common.shoe import Shoe
from sharedtable.config import TableConfig
from sharedtable.engine.blackjack import BlackjackTableEngine
from sharedtable.errors import StoreError, TableError
from sharedtable.events import EventBus, EventEmitter, EventPriority, TableEventType
from sharedtable.session.seats import SeatManager
from sharedtable.state.models import GameStage, TableState
from sharedtable.storage import GameStore, InMemoryGameStore, SQLiteGameStore
from sharedtable.sync.synchronizer import Synchronizer

logger = logging.getLogger("sharedtable.api")


class BlackjackTable:
    """
    One client's view of the shared table.

    Attributes:
        state: The local table state
        store: The shared store
        adapter: Platform adapter for rendering and decisions
        engine: The turn engine
        synchronizer: Publishes local changes and applies remote ones
        seats: Joins and leaves seats for the local player
        event_handlers: Handlers registered through ``on``
    """

    def __init__(
        self,
        store: Optional[GameStore] = None,
        adapter: Optional[PlatformAdapter] = None,
        config: Union[TableConfig, Dict[str, Any], None] = None,
        event_bus: Optional[EventEmitter] = None,
    ):
        """
        Create a table client.

        Args:
            store: Shared store. Defaults to SQLite when ``database_path`` is
                   configured, otherwise an in-memory store.
            adapter: Platform adapter. Defaults to a DummyAdapter.
            config: TableConfig or a dict of overrides
            event_bus: Emitter for table events, defaults to the global bus
        """
        if not isinstance(config, TableConfig):
            config = TableConfig.from_dict(config)
        self.config = config
        self._owns_store = store is None
        if store is None:
            store = (
                SQLiteGameStore(config.database_path)
                if config.database_path
                else InMemoryGameStore()
            )
        self.store = store
        self.adapter = adapter or DummyAdapter()
        self.event_bus = event_bus or EventBus.get_instance()
        self.event_handlers: Dict[str, List[Callable]] = {}

        self.state = TableState(
            shoe=Shoe(config.number_of_decks, config.shuffle_threshold)
        )
        self.synchronizer = Synchronizer(
            store,
            self.state,
            config,
            self.event_bus,
            on_player_removed=self._on_player_removed,
        )
        self.seats = SeatManager(store, self.state, self.synchronizer, config)
        self.engine = BlackjackTableEngine(
            self.state, self.synchronizer, self.adapter, config, self.event_bus
        )

        self._background: Set[asyncio.Future] = set()

    # Lifecycle

    async def initialize(self) -> bool:
        """
        Load the active game, creating one if none exists.

        A missing or malformed shoe is regenerated and published. Active
        players are seated and change notifications are subscribed.

        Returns:
            True if the game was loaded
        """
        self.state.is_loading = True
        self.state.error = None
        try:
            await self.adapter.initialize()
            await self._load_active_game()
            return True
        except StoreError as e:
            logger.error(f"Failed to initialize game: {e}")
            self.state.error = f"Failed to initialize game: {e}"
            return False
        finally:
            self.state.is_loading = False

    async def _load_active_game(self) -> None:
        row = await self.store.get_or_create_active_game()
        is_new = row.shoe is None
        if self.synchronizer.load_game(row):
            await self.synchronizer.publish_game_state()

        await self.refresh_players()
        self.synchronizer.subscribe()

        self.event_bus.emit(
            TableEventType.GAME_CREATED if is_new else TableEventType.GAME_LOADED,
            {"cards_remaining": self.state.shoe.cards_remaining},
        )

    async def refresh_players(self) -> bool:
        """
        Re-read the active players from the store.

        Returns:
            False if the store could not be read
        """
        if self.state.id is None:
            return False
        try:
            rows = await self.store.list_active_players(self.state.id)
        except StoreError as e:
            logger.warning(f"Error loading players: {e}")
            self.state.error = f"Error loading players: {e}"
            return False
        self.synchronizer.apply_roster(rows)
        return True

    async def shutdown(self) -> None:
        """Stop the heartbeat, drop every subscription and release the adapter."""
        await self.seats.stop_heartbeat()
        self.synchronizer.unsubscribe()

        for unsubscribe_funcs in self.event_handlers.values():
            for unsubscribe in unsubscribe_funcs:
                unsubscribe()
        self.event_handlers.clear()

        for future in list(self._background):
            future.cancel()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

        await self.adapter.shutdown()
        if self._owns_store:
            await self.store.close()

    async def restart(self) -> bool:
        """
        Start a new game once the current one is over.

        Players rejoin the new game; the local player is cleared.

        Returns:
            True if a new game was loaded
        """
        if self.state.stage not in (GameStage.AWAITING_ROUND, GameStage.GAME_OVER):
            self.state.error = "Cannot restart during a round"
            return False

        await self.seats.stop_heartbeat()
        self.synchronizer.unsubscribe()
        try:
            if not self.state.is_game_over:
                self.state.is_game_over = True
                await self.store.update_game(self.state.id, {"is_game_over": True})

            self.state.players = [Player.dealer()]
            self.state.local_player = None
            self.state.active_player = None
            self.state.active_hand = None
            self.state.stage = GameStage.AWAITING_ROUND
            self.state.round_number = 0
            self.state.error = None
            await self._load_active_game()
            return True
        except StoreError as e:
            logger.error(f"Failed to restart game: {e}")
            self.state.error = f"Failed to restart game: {e}"
            return False

    async def reset_banks(self) -> bool:
        """
        Give every seated player the starting bank and clear a game over.

        Returns:
            False if a round is in progress
        """
        if self.state.stage not in (GameStage.AWAITING_ROUND, GameStage.GAME_OVER):
            self.state.error = "Cannot reset banks during a round"
            return False
        for player in self.state.seated_players:
            player.bank = self.config.starting_bank
            await self.synchronizer.publish_player_bank(player)
        if self.state.is_game_over:
            self.state.is_game_over = False
            self.state.stage = GameStage.AWAITING_ROUND
            await self.synchronizer.publish_game_state()
        return True

    # Seats

    async def join(self, name: str, seat: Optional[int]) -> bool:
        """
        Take a seat as the local player.

        On failure the join dialog stays open and the reason is in ``state.error``.
        """
        self.state.is_loading = True
        self.state.error = None
        try:
            await self.seats.join(name, seat)
            return True
        except TableError as e:
            logger.warning(f"Failed to join game: {e}")
            self.state.error = str(e)
            self.state.show_join_dialog = True
            return False
        finally:
            self.state.is_loading = False

    async def leave(self, player_id: Optional[str] = None) -> bool:
        """Leave the table. Defaults to the local player."""
        self.state.is_loading = True
        self.state.error = None
        try:
            return await self.seats.leave(player_id) is not None
        except TableError as e:
            logger.warning(f"Failed to leave game: {e}")
            self.state.error = str(e)
            return False
        finally:
            self.state.is_loading = False

    @property
    def is_local_player_active(self) -> bool:
        local, active = self.state.local_player, self.state.active_player
        return local is not None and active is not None and local.id == active.id

    def _on_player_removed(self, player: Player) -> None:
        if self.state.id is None:
            return
        future = asyncio.ensure_future(self.engine.forfeit_turn(player))
        self._background.add(future)
        future.add_done_callback(self._background_done)

    def _background_done(self, future: asyncio.Future) -> None:
        self._background.discard(future)
        if not future.cancelled() and future.exception() is not None:
            logger.error(
                "Error handling departed player", exc_info=future.exception()
            )

    # Play

    async def _run(self, operation: Callable, *args) -> bool:
        self.state.error = None
        try:
            await operation(*args)
            return True
        except TableError as e:
            logger.info(f"Rejected: {e}")
            self.state.error = str(e)
            return False

    async def play_round(self) -> bool:
        """Start a round and play until the first decision or the end of the game."""
        return await self._run(self.engine.play_round)

    async def hit(self, player_id: Optional[str] = None) -> bool:
        return await self._run(self.engine.hit, player_id)

    async def stand(self, player_id: Optional[str] = None) -> bool:
        return await self._run(self.engine.stand, player_id)

    async def split(self, player_id: Optional[str] = None) -> bool:
        return await self._run(self.engine.split, player_id)

    async def double_down(self, player_id: Optional[str] = None) -> bool:
        return await self._run(self.engine.double_down, player_id)

    async def execute_action(
        self, player_id: Optional[str], action: Union[Action, str]
    ) -> bool:
        """
        Execute an action for a player.

        Args:
            player_id: The acting player, or None for whoever holds the turn
            action: An Action or its name, e.g. "hit"
        """
        if isinstance(action, str):
            try:
                action = Action[action.upper()]
            except KeyError:
                self.state.error = f"Unknown action: {action}"
                return False
        return await self._run(self.engine.execute_action, player_id, action)

    def valid_actions(self) -> List[Action]:
        return self.engine.valid_actions()

    async def auto_play_round(
        self, timeout_seconds: Optional[float] = None
    ) -> Dict[str, Any]:
        """
        Play one round, taking every decision from the adapter.

        Args:
            timeout_seconds: Time allowed for each decision; on timeout the
                             adapter's ``handle_timeout`` action is used

        Returns:
            Summary with the round number, final stage and each player's bank
        """
        if self.state.stage is GameStage.AWAITING_ROUND:
            await self.play_round()
        round_number = self.state.round_number

        while (
            self.state.stage is GameStage.PLAYER_TURN
            and self.state.round_number == round_number
            and self.state.active_player is not None
        ):
            player = self.state.active_player
            valid_actions = self.engine.valid_actions()
            try:
                action = await asyncio.wait_for(
                    self.adapter.request_player_action(
                        player.id, player.name, valid_actions, timeout_seconds
                    ),
                    timeout_seconds,
                )
            except asyncio.TimeoutError:
                action = await self.adapter.handle_timeout(player.id, player.name)

            if not await self.execute_action(player.id, action):
                await self.execute_action(player.id, Action.STAND)

        return {
            "round_number": round_number,
            "stage": self.state.stage.name,
            "banks": {player.id: player.bank for player in self.state.seated_players},
        }

    # Events

    def on(
        self,
        event_type: Union[str, TableEventType],
        handler: Callable,
        priority: EventPriority = EventPriority.NORMAL,
    ) -> Callable:
        """
        Register an event handler.

        Args:
            event_type: Type of event to listen for
            handler: Event handler function
            priority: Priority level for the handler

        Returns:
            Function to call to unsubscribe the handler
        """
        if isinstance(event_type, str):
            try:
                event_type = TableEventType[event_type.upper()]
            except KeyError:
                pass

        unsubscribe_func = self.event_bus.on(event_type, handler, priority)
        key = event_type.name if isinstance(event_type, TableEventType) else event_type
        self.event_handlers.setdefault(key, []).append(unsubscribe_func)
        return unsubscribe_func
