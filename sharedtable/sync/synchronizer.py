"""
Mirror local table state to the store and apply inbound row changes.

Local mutations are applied first and published afterwards; a failed publish
is logged and reported but never undoes the local change. Inbound rows are
merged into the existing ``Player`` and ``BlackjackHand`` objects so that the
turn engine's references to the active player and hand stay valid.

Every notification carries the whole row, including fields the writer did
not touch. For the fields this client publishes (the game row, each player's
bank and hands) the synchroniser keeps the last value it knows the store
holds, with the row version (``updated_at``) it came from. An inbound field
is applied only when it differs from that value, is not older than it, and
no write of ours to the same field is still in flight. Our own echoes and
old snapshots of our own state therefore never overwrite newer local state,
while a remote write is applied even when it repeats a value we published
earlier. Player rows older than the last one applied for the same player are
dropped.
"""

import logging
from collections import Counter
from typing import Any, Awaitable, Callable, Dict, Hashable, List, Optional, Tuple

from sharedtable.blackjack.hand import BlackjackHand
from sharedtable.blackjack.player import Player
from sharedtable.common.shoe import Shoe
from sharedtable.config import TableConfig
from sharedtable.errors import StoreError
from sharedtable.events import EventBus, EventEmitter, TableEventType
from sharedtable.state.models import TableState
from sharedtable.storage.base import GameRow, GameStore, PlayerRow
from sharedtable.sync.codec import dump_hands, dump_shoe, load_hands, load_shoe

logger = logging.getLogger("sharedtable.sync")

FieldKey = Tuple[str, str]


class Synchronizer:
    """
    Two-way bridge between a ``TableState`` and a ``GameStore``.

    Args:
        store: The shared store
        state: The local table state
        config: Table settings
        event_bus: Emitter for sync events, defaults to the global bus
        on_player_removed: Called with each player taken off the roster
    """

    def __init__(
        self,
        store: GameStore,
        state: TableState,
        config: Optional[TableConfig] = None,
        event_bus: Optional[EventEmitter] = None,
        on_player_removed: Optional[Callable[[Player], None]] = None,
    ):
        self.store = store
        self.state = state
        self.config = config or TableConfig()
        self.event_bus = event_bus or EventBus.get_instance()
        self.on_player_removed = on_player_removed
        self._known: Dict[FieldKey, Tuple[Optional[str], Hashable]] = {}
        self._in_flight: Counter = Counter()
        self._versions: Dict[str, str] = {}
        self._unsubscribers: List[Callable[[], None]] = []

    # Field bookkeeping

    def _record(
        self, row_id: str, field: str, version: Optional[str], value: Hashable
    ) -> None:
        known = self._known.get((row_id, field))
        if known is not None and None not in (known[0], version) and version < known[0]:
            return
        self._known[(row_id, field)] = (version, value)

    def _is_fresh(
        self, row_id: str, field: str, version: Optional[str], value: Hashable
    ) -> bool:
        """
        Whether an inbound field value is a change to apply.

        A fresh value becomes the known store value for the field.
        """
        key = (row_id, field)
        if self._in_flight[key]:
            return False
        known = self._known.get(key)
        if known is not None:
            known_version, known_value = known
            if version is not None and known_version is not None:
                if version < known_version:
                    return False
            if value == known_value:
                if version is not None:
                    self._known[key] = (version, value)
                return False
        self._known[key] = (version, value)
        return True

    async def _write(self, keys: List[FieldKey], write: Awaitable) -> Any:
        for key in keys:
            self._in_flight[key] += 1
        try:
            return await write
        finally:
            for key in keys:
                self._in_flight[key] -= 1
                if not self._in_flight[key]:
                    del self._in_flight[key]

    def _is_stale(self, row: PlayerRow) -> bool:
        seen = self._versions.get(row.id)
        return seen is not None and row.updated_at is not None and row.updated_at < seen

    def _observe(self, row: PlayerRow) -> None:
        if row.updated_at is not None:
            self._versions[row.id] = row.updated_at

    def forget(self, row_id: str) -> None:
        """Drop the known field values of a row."""
        for key in [key for key in self._known if key[0] == row_id]:
            del self._known[key]

    # Outbound

    async def publish_game_state(self) -> bool:
        """
        Publish the shoe, cards played and game-over flag.

        Returns:
            True if the store accepted the update
        """
        if self.state.id is None:
            return False
        game_id = self.state.id
        changes = {
            "shoe": dump_shoe(self.state.shoe.cards),
            "cards_played": self.state.shoe.cards_played,
            "is_game_over": self.state.is_game_over,
        }
        try:
            row = await self._write(
                [(game_id, "game")],
                self.store.update_game(game_id, changes),
            )
        except StoreError as e:
            self._report_failure("game state", e)
            return False
        self._record(
            game_id,
            "game",
            row.updated_at,
            (changes["shoe"], changes["cards_played"], changes["is_game_over"]),
        )
        return True

    async def publish_player_hands(self, player: Player) -> bool:
        """Publish a player's hands. Skipped for the dealer."""
        if not self._publishable(player):
            return False
        return await self._update_player(player, {"hands": dump_hands(player.hands)})

    async def publish_player_bank(self, player: Player) -> bool:
        """Publish a player's bank. Skipped for the dealer."""
        if not self._publishable(player):
            return False
        return await self._update_player(player, {"bank": player.bank})

    def _publishable(self, player: Player) -> bool:
        return self.state.id is not None and player.id is not None and not player.is_dealer

    async def _update_player(self, player: Player, changes: Dict[str, Any]) -> bool:
        player_id = player.id
        try:
            row = await self._write(
                [(player_id, field) for field in changes],
                self.store.update_player(player_id, changes),
            )
        except StoreError as e:
            self._report_failure(f"{', '.join(changes)} for {player.name}", e)
            return False
        for field, value in changes.items():
            self._record(player_id, field, row.updated_at, value)
        return True

    def _report_failure(self, what: str, error: Exception) -> None:
        message = f"Failed to sync {what}: {error}"
        logger.warning(message)
        self.state.error = message
        self.event_bus.emit(
            TableEventType.SYNC_ERROR, {"message": message, "error": str(error)}
        )

    # Inbound

    def subscribe(self) -> None:
        """Start receiving change notifications for the current game."""
        self.unsubscribe()
        self._unsubscribers = [
            self.store.subscribe_game(self.state.id, self.on_game_changed),
            self.store.subscribe_players(self.state.id, self.on_player_changed),
        ]

    def unsubscribe(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def load_game(self, row: GameRow) -> bool:
        """
        Install a freshly fetched game row.

        A missing or malformed shoe is replaced by a new one.

        Returns:
            True if the shoe was regenerated and should be published
        """
        self.state.id = row.id
        self.event_bus.set_context(row.id)
        cards = load_shoe(row.shoe)
        regenerated = cards is None
        if regenerated:
            logger.warning("No usable shoe for game %s, generating a new one", row.id)
            self.state.shoe = Shoe(
                self.config.number_of_decks, self.config.shuffle_threshold
            )
        else:
            self.state.shoe = Shoe(
                self.config.number_of_decks,
                self.config.shuffle_threshold,
                cards=cards,
                cards_played=row.cards_played or 0,
            )
        self.state.is_game_over = bool(row.is_game_over)
        self._record(
            row.id, "game", row.updated_at, (row.shoe, row.cards_played, row.is_game_over)
        )
        return regenerated

    def on_game_changed(self, row: GameRow) -> None:
        """Apply an inbound game row. A malformed shoe is dropped."""
        if row is None or (self.state.id is not None and row.id != self.state.id):
            return
        value = (row.shoe, row.cards_played, row.is_game_over)
        if not self._is_fresh(row.id, "game", row.updated_at, value):
            logger.debug("Ignoring unchanged or superseded game %s", row.id)
            return

        if row.shoe:
            cards = load_shoe(row.shoe)
            if cards is not None:
                self.state.shoe.replace(cards)
        if row.cards_played is not None:
            self.state.shoe.cards_played = row.cards_played
        self.state.is_game_over = bool(row.is_game_over)

        self.event_bus.emit(
            TableEventType.GAME_SYNCED,
            {
                "cards_remaining": self.state.shoe.cards_remaining,
                "cards_played": self.state.shoe.cards_played,
                "is_game_over": self.state.is_game_over,
            },
        )

    def on_player_changed(self, row: PlayerRow) -> Optional[Player]:
        """
        Apply an inbound player row.

        Unknown active players are seated, known players that went inactive
        are removed, and everyone else is merged in place.

        Returns:
            The roster player for the row, or None if it is not seated
        """
        if row is None or (self.state.id is not None and row.game_id != self.state.id):
            return None
        if self._is_stale(row):
            logger.debug("Ignoring stale row for player %s", row.id)
            return self.state.find_player(row.id)
        self._observe(row)

        player = self.state.find_player(row.id)

        if player is None:
            if not row.is_active:
                return None
            player = self.player_from_row(row)
            self._record(row.id, "bank", row.updated_at, row.bank)
            self._record(row.id, "hands", row.updated_at, row.hands)
            self.state.insert_player(player)
            logger.info(f"{player.name} joined seat {player.seat_number}")
            self.event_bus.emit(
                TableEventType.PLAYER_JOINED,
                {
                    "player_id": player.id,
                    "name": player.name,
                    "seat": player.seat_number,
                    "bank": player.bank,
                },
            )
            return player

        if not row.is_active:
            self._remove(player)
            return None

        self._merge(player, row)
        return player

    def apply_roster(self, rows: List[PlayerRow]) -> List[Player]:
        """
        Bring the roster in line with a full listing of active players.

        Known players keep their identity, unknown ones are seated and players
        missing from the listing are removed.
        """
        listed = {row.id for row in rows if row.is_active}
        for player in list(self.state.seated_players):
            if player.id not in listed:
                self._remove(player)
        for row in rows:
            self.on_player_changed(row)
        return self.state.seated_players

    def player_from_row(self, row: PlayerRow) -> Player:
        """Build a roster player from a row, defaulting missing bank and hands."""
        hands = load_hands(row.hands)
        return Player(
            id=row.id,
            name=row.name,
            seat_number=row.seat_number,
            bank=row.bank if row.bank is not None else self.config.starting_bank,
            hands=hands or [BlackjackHand()],
            is_active=row.is_active,
            last_active=row.last_active,
        )

    def _remove(self, player: Player) -> None:
        was_active = self.state.active_player is player
        self.state.remove_player(player.id)
        player.is_active = False
        self.forget(player.id)
        if self.state.local_player is player:
            self.state.local_player = None
        logger.info(f"{player.name} left seat {player.seat_number}")
        self.event_bus.emit(
            TableEventType.PLAYER_LEFT,
            {
                "player_id": player.id,
                "name": player.name,
                "seat": player.seat_number,
                "was_active": was_active,
            },
        )
        if self.on_player_removed is not None:
            self.on_player_removed(player)

    def _merge(self, player: Player, row: PlayerRow) -> None:
        player.name = row.name
        player.last_active = row.last_active
        if row.seat_number != player.seat_number:
            self.state.players.remove(player)
            player.seat_number = row.seat_number
            self.state.insert_player(player)

        bank = None
        if row.bank is not None and self._is_fresh(
            row.id, "bank", row.updated_at, row.bank
        ):
            bank = row.bank

        hands = None
        if row.hands and self._is_fresh(row.id, "hands", row.updated_at, row.hands):
            hands = load_hands(row.hands)

        if bank is None and hands is None:
            return

        player.merge(bank=bank, hands=hands)

        if self.state.active_player is player and hands is not None:
            self._rebind_active_hand(player)

        self.event_bus.emit(
            TableEventType.PLAYER_SYNCED,
            {
                "player_id": player.id,
                "bank": player.bank,
                "hands": len(player.hands),
            },
        )

    def _rebind_active_hand(self, player: Player) -> None:
        active = self.state.active_hand
        if active is None or any(hand is active for hand in player.hands):
            return
        for hand in player.hands:
            if hand.id == active.id:
                self.state.active_hand = hand
                return
        unresolved = [hand for hand in player.hands if not hand.is_resolved]
        self.state.active_hand = unresolved[0] if unresolved else None
