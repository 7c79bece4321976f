"""
Dummy adapter, used for testing and simulation.

A non-interactive adapter for automated tests and simulated tables where no
user interaction is needed.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from sharedtable.adapters.base import PlatformAdapter
from sharedtable.blackjack.action import Action

logger = logging.getLogger("sharedtable.adapters")


class DummyAdapter(PlatformAdapter):
    """
    Dummy adapter for testing and simulation.

    Decisions come from a per-player script, then from an optional strategy
    function, and finally default to standing.
    """

    def __init__(
        self,
        auto_actions: Optional[Dict[str, List[Action]]] = None,
        strategy_function: Optional[Callable[[str, List[Action]], Action]] = None,
        verbose: bool = False,
    ):
        """
        Initialize the dummy adapter.

        Args:
            auto_actions: Optional dictionary mapping player IDs to lists of actions
                         to take in sequence
            strategy_function: Optional function that takes (player_id, valid_actions)
                              and returns an action to take
            verbose: Whether to log every event at INFO level
        """
        self.auto_actions = auto_actions or {}
        self.strategy_function = strategy_function
        self.verbose = verbose

        self.action_index: Dict[str, int] = {}
        self.events: List[tuple] = []
        self.rendered_states: List[Dict[str, Any]] = []

    async def render_game_state(self, state: Dict[str, Any]) -> None:
        self.rendered_states.append(state)

        if self.verbose:
            logger.info("Dealer: %s", state.get("dealer", {}).get("hand", []))
            for player in state.get("players", []):
                for i, hand in enumerate(player.get("hands", [])):
                    logger.info(
                        "Player %s, Hand %d: %s - %s",
                        player.get("name"),
                        i + 1,
                        hand.get("cards", []),
                        hand.get("value", 0),
                    )

    async def request_player_action(
        self,
        player_id: str,
        player_name: str,
        valid_actions: List[Action],
        timeout_seconds: Optional[float] = None,
    ) -> Action:
        """
        Return a scripted action or one chosen by the strategy function.

        An action that is not currently valid falls back to STAND.
        """
        selected_action = None

        script = self.auto_actions.get(player_id)
        if script:
            index = self.action_index.get(player_id, 0)
            if index < len(script):
                selected_action = script[index]
                self.action_index[player_id] = index + 1

        if selected_action is None and self.strategy_function:
            selected_action = self.strategy_function(player_id, valid_actions)

        if selected_action is None or selected_action not in valid_actions:
            selected_action = Action.STAND

        if self.verbose:
            logger.info("Player %s selects %s", player_name, selected_action.name)

        return selected_action

    async def notify_game_event(
        self, event_type: Union[str, Enum], data: Dict[str, Any]
    ) -> None:
        event_type_str = event_type.name if isinstance(event_type, Enum) else event_type
        self.events.append((event_type_str, data))

        if self.verbose:
            logger.info("Event: %s %s", event_type_str, data)

    def get_events_by_type(self, event_type: Union[str, Enum]) -> List[Dict[str, Any]]:
        """
        Get all events of a specific type.

        Args:
            event_type: The type of events to retrieve

        Returns:
            A list of event data dictionaries
        """
        event_type_str = event_type.name if isinstance(event_type, Enum) else event_type
        return [data for typ, data in self.events if typ == event_type_str]

    def clear(self) -> None:
        """Clear all stored events and states."""
        self.events.clear()
        self.rendered_states.clear()
        self.action_index.clear()
