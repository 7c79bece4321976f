"""
Seat management: joining, leaving and the local player's heartbeat.

Player rows are never deleted. Leaving marks a row inactive, and a later join
under the same name or seat revives that row with a fresh bank instead of
inserting a new one.
"""

import asyncio
import logging
from typing import List, Optional

from sharedtable.blackjack.player import Player
from sharedtable.config import TableConfig
from sharedtable.errors import (
    NameTakenError,
    SeatTakenError,
    StoreError,
    UniqueViolationError,
    ValidationError,
)
from sharedtable.state.models import TableState
from sharedtable.storage.base import GameStore, PlayerRow, utc_now
from sharedtable.sync.synchronizer import Synchronizer

logger = logging.getLogger("sharedtable.session")


class SeatManager:
    """
    Join and leave seats for the local client.

    Args:
        store: The shared store
        state: The local table state
        synchronizer: Applies the rows returned by join and leave to the roster
        config: Table settings
    """

    def __init__(
        self,
        store: GameStore,
        state: TableState,
        synchronizer: Synchronizer,
        config: Optional[TableConfig] = None,
    ):
        self.store = store
        self.state = state
        self.synchronizer = synchronizer
        self.config = config or TableConfig()
        self._heartbeat_task: Optional[asyncio.Task] = None

    async def join(self, name: str, seat: Optional[int]) -> Player:
        """
        Take a seat at the table as the local player.

        Args:
            name: Display name
            seat: Seat number

        Returns:
            The seated player, also stored as ``state.local_player``

        Raises:
            ValidationError: If the game is not loaded or the name or seat is invalid
            SeatTakenError: If an active player holds the seat
            NameTakenError: If an active player holds the name
        """
        if self.state.id is None:
            raise ValidationError("Game not initialized")
        name = (name or "").strip()
        if not name:
            raise ValidationError("Please enter your name")
        if seat is None:
            raise ValidationError("Please select a seat")
        if seat not in self.config.seats:
            raise ValidationError(f"Seat {seat} does not exist")

        rows = await self.store.list_players(self.state.id)
        self._check_conflicts(rows, name, seat)
        candidate = self._find_inactive(rows, name, seat)

        try:
            if candidate is not None:
                row = await self._reactivate(candidate, name, seat)
            else:
                row = await self.store.insert_player(
                    self.state.id,
                    name,
                    seat,
                    is_active=True,
                    bank=self.config.starting_bank,
                )
        except UniqueViolationError as e:
            logger.warning(f"Join for {name!r} at seat {seat} collided: {e}")
            row = await self._resolve_collision(e, name, seat)

        player = self.synchronizer.on_player_changed(row)
        self.state.local_player = player
        self.state.show_join_dialog = False
        await self.start_heartbeat()
        logger.info(f"{name} is seated at seat {seat}")
        return player

    async def leave(self, player_id: Optional[str] = None) -> Optional[PlayerRow]:
        """
        Leave the table.

        Args:
            player_id: Player to remove, defaults to the local player

        Returns:
            The updated row, or None if there was nobody to remove
        """
        local = self.state.local_player
        if player_id is None and local is not None:
            player_id = local.id
        if self.state.id is None or player_id is None:
            return None

        is_local = local is not None and local.id == player_id
        if is_local:
            await self.stop_heartbeat()

        row = await self.store.update_player(player_id, {"is_active": False})
        if is_local:
            self.state.local_player = None
        self.synchronizer.on_player_changed(row)
        return row

    async def touch(self) -> bool:
        """
        Refresh the local player's liveness timestamp.

        Failures are logged only.

        Returns:
            True if the store accepted the update
        """
        player = self.state.local_player
        if self.state.id is None or player is None:
            return False
        try:
            await self.store.update_player(player.id, {"last_active": utc_now()})
        except StoreError as e:
            logger.warning(f"Failed to update player activity: {e}")
            return False
        return True

    async def start_heartbeat(self) -> None:
        """Touch the local player every ``heartbeat_interval`` seconds."""
        await self.stop_heartbeat()
        self._heartbeat_task = asyncio.ensure_future(self._heartbeat_loop())

    async def stop_heartbeat(self) -> None:
        task, self._heartbeat_task = self._heartbeat_task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    @property
    def heartbeat_running(self) -> bool:
        return self._heartbeat_task is not None and not self._heartbeat_task.done()

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.heartbeat_interval)
            if self.state.local_player is None:
                logger.debug("No local player, stopping heartbeat")
                return
            await self.touch()

    @staticmethod
    def _check_conflicts(rows: List[PlayerRow], name: str, seat: int) -> None:
        for row in rows:
            if not row.is_active:
                continue
            if row.seat_number == seat:
                raise SeatTakenError(seat)
            if row.name == name:
                raise NameTakenError(name)

    @staticmethod
    def _find_inactive(
        rows: List[PlayerRow], name: str, seat: int
    ) -> Optional[PlayerRow]:
        inactive = [row for row in rows if not row.is_active]
        for matches in (
            lambda row: row.name == name and row.seat_number == seat,
            lambda row: row.name == name,
            lambda row: row.seat_number == seat,
        ):
            for row in inactive:
                if matches(row):
                    return row
        return None

    async def _reactivate(self, row: PlayerRow, name: str, seat: int) -> PlayerRow:
        logger.info(f"Reactivating player {row.id} as {name!r} at seat {seat}")
        return await self.store.update_player(
            row.id,
            {
                "is_active": True,
                "bank": self.config.starting_bank,
                "hands": None,
                "seat_number": seat,
                "name": name,
                "last_active": utc_now(),
            },
        )

    async def _resolve_collision(
        self, error: UniqueViolationError, name: str, seat: int
    ) -> PlayerRow:
        rows = await self.store.list_players(self.state.id)
        self._check_conflicts(rows, name, seat)
        candidate = self._find_inactive(rows, name, seat)
        if candidate is not None:
            try:
                return await self._reactivate(candidate, name, seat)
            except UniqueViolationError as retry_error:
                error = retry_error
        if error.field == "name":
            raise NameTakenError(name) from error
        raise SeatTakenError(seat) from error
