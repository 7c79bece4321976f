"""
Table configuration.

Defaults live in ``DEFAULT_CONFIG``; ``TableConfig.from_dict`` merges a partial
dictionary over them and ``TableConfig.from_env`` reads ``SHAREDTABLE_*``
environment variables.
"""

import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional, Tuple, get_type_hints

DEFAULT_CONFIG: Dict[str, Any] = {
    "minimum_bet": 1,
    "starting_bank": 20,
    "number_of_decks": 6,
    # Reshuffle once less than 25% of the shoe is left
    "shuffle_threshold": 0.25,
    "seats": (1, 2, 3),
    "pace_delay": 0.9,
    "deal_delay": 0.6,
    "heartbeat_interval": 30.0,
    "continuous_play": True,
    "database_path": None,
}


@dataclass
class TableConfig:
    """
    Settings for one blackjack table.

    Attributes:
        minimum_bet: Bet placed for the first seat at the start of each round
        starting_bank: Bank given to a fresh or reactivated player
        number_of_decks: Decks in the shoe
        shuffle_threshold: Fraction of the shoe left when a reshuffle is due
        seats: Seat numbers players may join
        pace_delay: Seconds to pause after a visible step
        deal_delay: Seconds to pause after each dealt card
        heartbeat_interval: Seconds between liveness updates for the local player
        continuous_play: Start the next round as soon as one settles
        database_path: SQLite file for the bundled store, or None for in-memory
    """

    minimum_bet: float = DEFAULT_CONFIG["minimum_bet"]
    starting_bank: float = DEFAULT_CONFIG["starting_bank"]
    number_of_decks: int = DEFAULT_CONFIG["number_of_decks"]
    shuffle_threshold: float = DEFAULT_CONFIG["shuffle_threshold"]
    seats: Tuple[int, ...] = field(default=DEFAULT_CONFIG["seats"])
    pace_delay: float = DEFAULT_CONFIG["pace_delay"]
    deal_delay: float = DEFAULT_CONFIG["deal_delay"]
    heartbeat_interval: float = DEFAULT_CONFIG["heartbeat_interval"]
    continuous_play: bool = DEFAULT_CONFIG["continuous_play"]
    database_path: Optional[str] = DEFAULT_CONFIG["database_path"]

    def __post_init__(self):
        if self.number_of_decks < 1:
            raise ValueError("Number of decks must be at least 1")
        if not 0 < self.shuffle_threshold < 1:
            raise ValueError("Shuffle threshold must be between 0 and 1")
        if self.minimum_bet <= 0:
            raise ValueError("Minimum bet must be positive")
        if self.pace_delay < 0 or self.deal_delay < 0:
            raise ValueError("Delays must be non-negative")
        if self.heartbeat_interval <= 0:
            raise ValueError("Heartbeat interval must be positive")
        self.seats = tuple(self.seats)

    @classmethod
    def from_dict(cls, config: Optional[Dict[str, Any]] = None) -> "TableConfig":
        """
        Build a config from a partial dictionary merged over the defaults.

        Args:
            config: Keys to override

        Returns:
            A new TableConfig

        Raises:
            ValueError: If an unknown key is given
        """
        merged = dict(DEFAULT_CONFIG)
        known = {f.name for f in fields(cls)}
        for key, value in (config or {}).items():
            if key not in known:
                raise ValueError(f"Unknown config key: {key}")
            merged[key] = value
        return cls(**merged)

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "TableConfig":
        """Load overrides from ``SHAREDTABLE_<KEY>`` environment variables."""
        environ = os.environ if environ is None else environ
        overrides: Dict[str, Any] = {}
        hints = get_type_hints(cls)
        for f in fields(cls):
            raw = environ.get(f"SHAREDTABLE_{f.name.upper()}")
            if raw is None:
                continue
            kind = hints[f.name]
            if kind is bool:
                overrides[f.name] = raw.strip().lower() in ("1", "true", "yes", "on")
            elif getattr(kind, "__origin__", None) is tuple:
                overrides[f.name] = tuple(
                    int(s) for s in raw.split(",") if s.strip()
                )
            elif kind is int:
                overrides[f.name] = int(raw)
            elif kind is float:
                overrides[f.name] = float(raw)
            else:
                overrides[f.name] = raw or None
        return cls.from_dict(overrides)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
