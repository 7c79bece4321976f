"""
In-process store, used by tests and single-process tables.
"""

import dataclasses
import uuid
from typing import Any, Dict, List, Optional

from sharedtable.errors import RowNotFoundError, UniqueViolationError
from sharedtable.storage.base import (
    GAME_FIELDS,
    PLAYER_FIELDS,
    GameRow,
    GameStore,
    PlayerRow,
    check_changes,
    utc_now,
)


class InMemoryGameStore(GameStore):
    """
    Keep game and player rows in dictionaries.

    Reads and writes return copies, so callers never share a row object with
    the store.
    """

    def __init__(self):
        super().__init__()
        self.games: Dict[str, GameRow] = {}
        self.players: Dict[str, PlayerRow] = {}

    async def get_or_create_active_game(self) -> GameRow:
        for game in self.games.values():
            if not game.is_game_over:
                return dataclasses.replace(game)
        now = utc_now()
        game = GameRow(id=str(uuid.uuid4()), created_at=now, updated_at=now)
        self.games[game.id] = game
        return dataclasses.replace(game)

    async def update_game(self, game_id: str, changes: Dict[str, Any]) -> GameRow:
        check_changes(changes, GAME_FIELDS)
        game = self.games.get(game_id)
        if game is None:
            raise RowNotFoundError("games", game_id)
        for key, value in changes.items():
            setattr(game, key, value)
        game.updated_at = utc_now()
        self._notify_game(game)
        return dataclasses.replace(game)

    async def insert_player(
        self,
        game_id: str,
        name: str,
        seat_number: int,
        is_active: bool = True,
        bank: Optional[float] = None,
    ) -> PlayerRow:
        if game_id not in self.games:
            raise RowNotFoundError("games", game_id)
        now = utc_now()
        row = PlayerRow(
            id=str(uuid.uuid4()),
            game_id=game_id,
            name=name,
            seat_number=seat_number,
            bank=bank,
            is_active=is_active,
            last_active=now,
            created_at=now,
            updated_at=now,
        )
        self._check_unique(row)
        self.players[row.id] = row
        self._notify_player(row)
        return dataclasses.replace(row)

    async def update_player(
        self, player_id: str, changes: Dict[str, Any]
    ) -> PlayerRow:
        check_changes(changes, PLAYER_FIELDS)
        row = self.players.get(player_id)
        if row is None:
            raise RowNotFoundError("players", player_id)
        updated = dataclasses.replace(row, **changes)
        self._check_unique(updated)
        updated.updated_at = utc_now()
        self.players[player_id] = updated
        self._notify_player(updated)
        return dataclasses.replace(updated)

    async def list_players(self, game_id: str) -> List[PlayerRow]:
        rows = [
            dataclasses.replace(row)
            for row in self.players.values()
            if row.game_id == game_id
        ]
        return sorted(rows, key=lambda row: (row.seat_number is None, row.seat_number or 0))

    def _check_unique(self, row: PlayerRow) -> None:
        if not row.is_active:
            return
        for other in self.players.values():
            if other.id == row.id or other.game_id != row.game_id or not other.is_active:
                continue
            if other.seat_number == row.seat_number:
                raise UniqueViolationError("seat_number")
            if other.name == row.name:
                raise UniqueViolationError("name")
