"""
Adapter that appends every table event to a newline-delimited JSON log.
"""

import json
import time
from enum import Enum
from typing import Any, Dict, List, Optional, Union

import aiofiles

from sharedtable.adapters.base import PlatformAdapter
from sharedtable.blackjack.action import Action


class TableLogAdapter(PlatformAdapter):
    """
    Write table events and rendered states to a log file.

    Each line is a JSON object with ``timestamp``, ``kind`` ("event" or
    "state"), ``type`` and ``data``. Decisions are not interactive: every
    request is answered with STAND.
    """

    def __init__(self, log_file_path: str, log_states: bool = False):
        self.log_file_path = log_file_path
        self.log_states = log_states

    async def _write(self, record: Dict[str, Any]) -> None:
        async with aiofiles.open(
            self.log_file_path, mode="a", encoding="utf-8"
        ) as log_file:
            await log_file.write(json.dumps(record, default=str) + "\n")

    async def render_game_state(self, state: Dict[str, Any]) -> None:
        if not self.log_states:
            return
        await self._write(
            {"timestamp": time.time(), "kind": "state", "type": None, "data": state}
        )

    async def notify_game_event(
        self, event_type: Union[str, Enum], data: Dict[str, Any]
    ) -> None:
        event_type_str = event_type.name if isinstance(event_type, Enum) else event_type
        await self._write(
            {
                "timestamp": time.time(),
                "kind": "event",
                "type": event_type_str,
                "data": data,
            }
        )

    async def request_player_action(
        self,
        player_id: str,
        player_name: str,
        valid_actions: List[Action],
        timeout_seconds: Optional[float] = None,
    ) -> Action:
        await self._write(
            {
                "timestamp": time.time(),
                "kind": "event",
                "type": "ACTION_REQUESTED",
                "data": {
                    "player_id": player_id,
                    "player_name": player_name,
                    "valid_actions": [action.name for action in valid_actions],
                },
            }
        )
        return Action.STAND
