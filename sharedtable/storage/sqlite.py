"""
SQLite-backed store.

Game and player rows live in two tables. ``shoe`` and ``hands`` are JSON text
columns. Partial unique indexes keep active seats and active names unique per
game while inactive rows stay around for reactivation.
"""

import logging
import sqlite3
import uuid
from typing import Any, Dict, List, Optional

from sharedtable.errors import RowNotFoundError, StoreError, UniqueViolationError
from sharedtable.storage.base import (
    GAME_FIELDS,
    PLAYER_FIELDS,
    GameRow,
    GameStore,
    PlayerRow,
    check_changes,
    utc_now,
)

logger = logging.getLogger("sharedtable.storage")

SCHEMA_SQL = """
-- One row per game; at most one has is_game_over = 0
CREATE TABLE IF NOT EXISTS games (
    id TEXT PRIMARY KEY,
    shoe TEXT,  -- JSON array of cards
    cards_played INTEGER DEFAULT 0,
    is_game_over BOOLEAN NOT NULL DEFAULT 0,
    created_at TEXT,
    updated_at TEXT
);

-- Seated players; leaving only clears is_active
CREATE TABLE IF NOT EXISTS players (
    id TEXT PRIMARY KEY,
    game_id TEXT NOT NULL,
    name TEXT NOT NULL,
    seat_number INTEGER,
    bank REAL,
    hands TEXT,  -- JSON array of hands
    is_active BOOLEAN NOT NULL DEFAULT 1,
    last_active TEXT,
    created_at TEXT,
    updated_at TEXT,
    FOREIGN KEY (game_id) REFERENCES games(id)
);

CREATE INDEX IF NOT EXISTS idx_players_game ON players(game_id);
CREATE UNIQUE INDEX IF NOT EXISTS idx_players_active_seat
    ON players(game_id, seat_number) WHERE is_active = 1;
CREATE UNIQUE INDEX IF NOT EXISTS idx_players_active_name
    ON players(game_id, name) WHERE is_active = 1;
"""


def _unique_field(error: sqlite3.IntegrityError) -> str:
    # "UNIQUE constraint failed: players.game_id, players.seat_number"
    message = str(error)
    if "seat_number" in message:
        return "seat_number"
    if "name" in message:
        return "name"
    return "id"


class SQLiteGameStore(GameStore):
    """
    Store game and player rows in SQLite.

    Args:
        db_path: Database file, or None for a private in-memory database
    """

    def __init__(self, db_path: Optional[str] = None):
        super().__init__()
        self.db_path = db_path
        self.conn = sqlite3.connect(
            db_path if db_path else ":memory:", check_same_thread=False
        )
        self.conn.row_factory = sqlite3.Row
        self.initialize_database()

    def initialize_database(self) -> None:
        """Create the tables and indexes if they don't already exist."""
        cursor = self.conn.cursor()
        cursor.executescript(SCHEMA_SQL)
        self.conn.commit()

    async def close(self) -> None:
        if self.conn:
            self.conn.close()
            self.conn = None

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        if self.conn is None:
            raise StoreError("Store is closed")
        try:
            cursor = self.conn.execute(sql, params)
            self.conn.commit()
            return cursor
        except sqlite3.IntegrityError as e:
            self.conn.rollback()
            raise UniqueViolationError(_unique_field(e), str(e)) from e
        except sqlite3.Error as e:
            logger.warning(f"SQLite error: {e}")
            raise StoreError(str(e)) from e

    def _fetch_game(self, game_id: str) -> GameRow:
        row = self._execute("SELECT * FROM games WHERE id = ?", (game_id,)).fetchone()
        if row is None:
            raise RowNotFoundError("games", game_id)
        return self._game_from_row(row)

    def _fetch_player(self, player_id: str) -> PlayerRow:
        row = self._execute(
            "SELECT * FROM players WHERE id = ?", (player_id,)
        ).fetchone()
        if row is None:
            raise RowNotFoundError("players", player_id)
        return self._player_from_row(row)

    @staticmethod
    def _game_from_row(row: sqlite3.Row) -> GameRow:
        return GameRow(
            id=row["id"],
            shoe=row["shoe"],
            cards_played=row["cards_played"],
            is_game_over=bool(row["is_game_over"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _player_from_row(row: sqlite3.Row) -> PlayerRow:
        return PlayerRow(
            id=row["id"],
            game_id=row["game_id"],
            name=row["name"],
            seat_number=row["seat_number"],
            bank=row["bank"],
            hands=row["hands"],
            is_active=bool(row["is_active"]),
            last_active=row["last_active"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    async def get_or_create_active_game(self) -> GameRow:
        row = self._execute(
            "SELECT * FROM games WHERE is_game_over = 0 ORDER BY created_at LIMIT 1"
        ).fetchone()
        if row is not None:
            return self._game_from_row(row)

        game_id = str(uuid.uuid4())
        now = utc_now()
        self._execute(
            "INSERT INTO games (id, cards_played, is_game_over, created_at, updated_at) "
            "VALUES (?, 0, 0, ?, ?)",
            (game_id, now, now),
        )
        logger.info(f"Created game {game_id}")
        return self._fetch_game(game_id)

    async def update_game(self, game_id: str, changes: Dict[str, Any]) -> GameRow:
        check_changes(changes, GAME_FIELDS)
        self._update("games", game_id, changes)
        game = self._fetch_game(game_id)
        self._notify_game(game)
        return game

    async def insert_player(
        self,
        game_id: str,
        name: str,
        seat_number: int,
        is_active: bool = True,
        bank: Optional[float] = None,
    ) -> PlayerRow:
        self._fetch_game(game_id)
        player_id = str(uuid.uuid4())
        now = utc_now()
        self._execute(
            """
            INSERT INTO players (
                id, game_id, name, seat_number, bank, is_active,
                last_active, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (player_id, game_id, name, seat_number, bank, is_active, now, now, now),
        )
        player = self._fetch_player(player_id)
        self._notify_player(player)
        return player

    async def update_player(
        self, player_id: str, changes: Dict[str, Any]
    ) -> PlayerRow:
        check_changes(changes, PLAYER_FIELDS)
        self._update("players", player_id, changes)
        player = self._fetch_player(player_id)
        self._notify_player(player)
        return player

    async def list_players(self, game_id: str) -> List[PlayerRow]:
        rows = self._execute(
            "SELECT * FROM players WHERE game_id = ? ORDER BY seat_number ASC",
            (game_id,),
        ).fetchall()
        return [self._player_from_row(row) for row in rows]

    async def list_active_players(self, game_id: str) -> List[PlayerRow]:
        rows = self._execute(
            "SELECT * FROM players WHERE game_id = ? AND is_active = 1 "
            "ORDER BY seat_number ASC",
            (game_id,),
        ).fetchall()
        return [self._player_from_row(row) for row in rows]

    def _update(self, table: str, row_id: str, changes: Dict[str, Any]) -> None:
        # Column names were checked against GAME_FIELDS / PLAYER_FIELDS
        columns = sorted(changes)
        assignments = ", ".join(f"{column} = ?" for column in columns)
        params = tuple(changes[column] for column in columns) + (utc_now(), row_id)
        cursor = self._execute(
            f"UPDATE {table} SET {assignments}, updated_at = ? WHERE id = ?", params
        )
        if cursor.rowcount == 0:
            raise RowNotFoundError(table, row_id)
