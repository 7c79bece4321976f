"""
Interface to the store that holds the shared game and player rows.

Rows are plain snapshots. ``shoe`` and ``hands`` are JSON text, exactly as
they are persisted; decoding them is the synchroniser's job. Change
notifications carry a copy of the row after the update and are delivered on the
event loop, never inside the call that caused them.
"""

import asyncio
import copy
import logging
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

logger = logging.getLogger("sharedtable.storage")

GAME_FIELDS = frozenset({"shoe", "cards_played", "is_game_over"})
PLAYER_FIELDS = frozenset(
    {"is_active", "hands", "bank", "seat_number", "name", "last_active"}
)


_clock_lock = threading.Lock()
_last_stamp: Optional[datetime] = None


def utc_now() -> str:
    """
    Current time as an ISO 8601 string in UTC.

    Stamps are strictly increasing within a process and always carry
    microseconds, so they order correctly as plain strings. Row versions
    (``updated_at``) are compared this way.
    """
    global _last_stamp
    with _clock_lock:
        now = datetime.now(timezone.utc)
        if _last_stamp is not None and now <= _last_stamp:
            now = _last_stamp + timedelta(microseconds=1)
        _last_stamp = now
    return now.isoformat(timespec="microseconds")


@dataclass
class GameRow:
    id: str
    shoe: Optional[str] = None
    cards_played: Optional[int] = 0
    is_game_over: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class PlayerRow:
    id: str
    game_id: str
    name: str
    seat_number: Optional[int] = None
    bank: Optional[float] = None
    hands: Optional[str] = None
    is_active: bool = True
    last_active: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


def check_changes(changes: Dict[str, Any], allowed: Iterable[str]) -> None:
    """
    Reject updates to columns callers are not allowed to write.

    Raises:
        ValueError: If ``changes`` is empty or names an unknown column
    """
    if not changes:
        raise ValueError("No changes given")
    unknown = set(changes) - set(allowed)
    if unknown:
        raise ValueError(f"Cannot update column(s): {', '.join(sorted(unknown))}")


class GameStore(ABC):
    """
    Storage and change-notification collaborator for one active game.

    Exactly one game with ``is_game_over`` false exists at a time. Active seat
    numbers and active names are unique within a game; a write that would
    break that raises ``UniqueViolationError``. Every failure is raised as a
    ``StoreError``.
    """

    def __init__(self):
        self._game_callbacks: Dict[str, List[Callable]] = defaultdict(list)
        self._player_callbacks: Dict[str, List[Callable]] = defaultdict(list)

    @abstractmethod
    async def get_or_create_active_game(self) -> GameRow:
        """Return the sole non-ended game, creating one if none exists."""

    @abstractmethod
    async def update_game(self, game_id: str, changes: Dict[str, Any]) -> GameRow:
        """
        Update ``shoe``, ``cards_played`` or ``is_game_over`` on a game.

        Raises:
            RowNotFoundError: If the game does not exist
        """

    @abstractmethod
    async def insert_player(
        self,
        game_id: str,
        name: str,
        seat_number: int,
        is_active: bool = True,
        bank: Optional[float] = None,
    ) -> PlayerRow:
        """
        Insert a new player row.

        Raises:
            UniqueViolationError: If an active player already holds the seat or name
        """

    @abstractmethod
    async def update_player(
        self, player_id: str, changes: Dict[str, Any]
    ) -> PlayerRow:
        """
        Update a player row.

        Raises:
            RowNotFoundError: If the player does not exist
            UniqueViolationError: If the update collides with an active seat or name
        """

    @abstractmethod
    async def list_players(self, game_id: str) -> List[PlayerRow]:
        """All player rows of a game, active or not, ordered by seat."""

    async def list_active_players(self, game_id: str) -> List[PlayerRow]:
        """Active player rows of a game, ordered by seat ascending."""
        rows = await self.list_players(game_id)
        return [row for row in rows if row.is_active]

    async def close(self) -> None:
        """Release any resources held by the store."""

    def subscribe_game(
        self, game_id: str, callback: Callable[[GameRow], Any]
    ) -> Callable[[], None]:
        """
        Call ``callback`` with a snapshot of the game row after every update.

        Returns:
            Unsubscribe function
        """
        return self._subscribe(self._game_callbacks[game_id], callback)

    def subscribe_players(
        self, game_id: str, callback: Callable[[PlayerRow], Any]
    ) -> Callable[[], None]:
        """
        Call ``callback`` with a snapshot of a player row after every insert or update.

        Returns:
            Unsubscribe function
        """
        return self._subscribe(self._player_callbacks[game_id], callback)

    @staticmethod
    def _subscribe(callbacks: List[Callable], callback: Callable) -> Callable[[], None]:
        callbacks.append(callback)

        def unsubscribe():
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def _notify_game(self, row: GameRow) -> None:
        self._notify(self._game_callbacks.get(row.id, []), row)

    def _notify_player(self, row: PlayerRow) -> None:
        self._notify(self._player_callbacks.get(row.game_id, []), row)

    def _notify(self, callbacks: List[Callable], row: Any) -> None:
        if not callbacks:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, dropping change notification")
            return
        for callback in list(callbacks):
            loop.call_soon(self._deliver, callback, copy.copy(row))

    @staticmethod
    def _deliver(callback: Callable, row: Any) -> None:
        try:
            callback(row)
        except Exception as e:
            logger.error(f"Error in change handler for row {row.id}: {e}", exc_info=True)
