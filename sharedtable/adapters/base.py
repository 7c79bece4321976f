"""
Base adapter interface for the shared table.

The turn engine never renders anything itself. After every visible step it
hands a snapshot of the table to the adapter and tells it what happened, so a
console, web page or bot can draw the table and play sounds or animations.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from sharedtable.blackjack.action import Action


class PlatformAdapter(ABC):
    """
    Base interface for platform-specific adapters.

    Implementations bridge the platform-agnostic engine and a concrete front
    end. ``notify_game_event`` is also the cue channel: the engine signals the
    dealer's hole-card reveal and every dealt card through it.
    """

    @abstractmethod
    async def render_game_state(self, state: Dict[str, Any]) -> None:
        """
        Render the current table.

        Args:
            state: Output of ``TableState.to_adapter_format``
        """

    @abstractmethod
    async def request_player_action(
        self,
        player_id: str,
        player_name: str,
        valid_actions: List[Action],
        timeout_seconds: Optional[float] = None,
    ) -> Action:
        """
        Ask a player for a decision.

        Args:
            player_id: Unique identifier for the player
            player_name: Display name of the player
            valid_actions: Actions the player may take now
            timeout_seconds: Optional timeout for the decision

        Returns:
            The chosen action

        Raises:
            asyncio.TimeoutError: If the player doesn't respond in time
        """

    @abstractmethod
    async def notify_game_event(
        self, event_type: Union[str, Enum], data: Dict[str, Any]
    ) -> None:
        """
        Notify the platform of a table event.

        Args:
            event_type: The type of event that occurred
            data: Data associated with the event
        """

    async def handle_timeout(self, player_id: str, player_name: str) -> Action:
        """
        Action taken for a player who did not answer in time. Defaults to STAND.
        """
        return Action.STAND

    async def initialize(self) -> None:
        """Set up resources before the first round."""

    async def shutdown(self) -> None:
        """Release resources when the table shuts down."""
