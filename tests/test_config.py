"""
Tests for table configuration.
"""

import pytest

from sharedtable.config import DEFAULT_CONFIG, TableConfig


def test_defaults():
    config = TableConfig()
    assert config.to_dict() == DEFAULT_CONFIG
    assert config.seats == (1, 2, 3)


def test_from_dict_merges_over_defaults():
    config = TableConfig.from_dict({"starting_bank": 50, "seats": [1, 2]})
    assert config.starting_bank == 50
    assert config.seats == (1, 2)
    assert config.minimum_bet == DEFAULT_CONFIG["minimum_bet"]


def test_from_dict_rejects_unknown_keys():
    with pytest.raises(ValueError, match="Unknown config key"):
        TableConfig.from_dict({"dealer_hits_soft_17": True})


@pytest.mark.parametrize(
    "overrides",
    [
        {"number_of_decks": 0},
        {"shuffle_threshold": 1},
        {"minimum_bet": 0},
        {"pace_delay": -1},
        {"heartbeat_interval": 0},
    ],
)
def test_invalid_values(overrides):
    with pytest.raises(ValueError):
        TableConfig.from_dict(overrides)


def test_from_env():
    config = TableConfig.from_env(
        {
            "SHAREDTABLE_STARTING_BANK": "100",
            "SHAREDTABLE_CONTINUOUS_PLAY": "no",
            "SHAREDTABLE_SEATS": "1,2,3,4",
            "SHAREDTABLE_PACE_DELAY": "0.1",
            "SHAREDTABLE_DATABASE_PATH": "/tmp/table.db",
            "UNRELATED": "x",
        }
    )
    assert config.starting_bank == 100
    assert config.continuous_play is False
    assert config.seats == (1, 2, 3, 4)
    assert config.pace_delay == 0.1
    assert config.database_path == "/tmp/table.db"


def test_from_env_parses_money_as_float():
    config = TableConfig.from_env(
        {
            "SHAREDTABLE_MINIMUM_BET": "0.5",
            "SHAREDTABLE_STARTING_BANK": "12.5",
            "SHAREDTABLE_NUMBER_OF_DECKS": "2",
        }
    )
    assert config.minimum_bet == 0.5
    assert config.starting_bank == 12.5
    assert config.number_of_decks == 2
