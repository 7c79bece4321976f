"""
Exception hierarchy for the shared blackjack table.

Validation errors are raised before any state is touched. Conflict errors come
out of seat/name collisions at join time. Store errors cover every failed
read or write against the backing store and are never fatal to the game: the
synchroniser logs them and play continues on local state.
"""

from typing import Optional


class TableError(Exception):
    """Base class for all table errors."""


class ValidationError(TableError, ValueError):
    """A request was rejected before any state changed."""


class IllegalActionError(ValidationError):
    """The requested player action is not allowed right now."""


class InsufficientBankError(IllegalActionError):
    """The player's bank cannot cover the bet."""

    def __init__(self, needed: float, available: float):
        super().__init__(
            f"Insufficient bank: {available} available, {needed} needed"
        )
        self.needed = needed
        self.available = available


class ConflictError(TableError):
    """A join request collided with another occupant."""


class SeatTakenError(ConflictError):
    def __init__(self, seat: int):
        super().__init__(
            f"Seat {seat} is already taken. Please choose another seat."
        )
        self.seat = seat


class NameTakenError(ConflictError):
    def __init__(self, name: str):
        super().__init__(f"The name {name!r} is already in use at this table.")
        self.name = name


class StoreError(TableError):
    """A read or write against the backing store failed."""


class RowNotFoundError(StoreError):
    def __init__(self, table: str, row_id: str):
        super().__init__(f"No {table} row with id {row_id!r}")
        self.table = table
        self.row_id = row_id


class UniqueViolationError(StoreError):
    """An insert or update collided with an active seat or name."""

    def __init__(self, field: str, message: Optional[str] = None):
        super().__init__(message or f"duplicate key value violates unique {field}")
        self.field = field


class MalformedPayloadError(TableError, ValueError):
    """A serialized shoe or hands payload could not be parsed."""
