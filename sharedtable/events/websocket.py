"""
WebSocket transport for row-change notifications.

``WebSocketRelay`` runs next to a store and broadcasts every game and player
row change to connected clients. ``RemoteFeed`` connects to a relay and feeds
the rows it receives into a ``Synchronizer``, so a participant in another
process sees the same table.

Messages are JSON objects ``{"type": ..., "data": ..., "timestamp": ...}``.
"""

import asyncio
import json
import logging
import time
import uuid
from dataclasses import asdict
from typing import Any, Dict, Optional, Set

import websockets

from sharedtable.storage.base import GameRow, GameStore, PlayerRow
from sharedtable.sync.synchronizer import Synchronizer

logger = logging.getLogger("sharedtable.events.websocket")


class ClientMessage:
    """Message types that clients can send to the relay."""

    HEARTBEAT = "heartbeat"


class ServerMessage:
    """Message types that the relay can send to clients."""

    CONNECTED = "connected"
    GAME_ROW = "game_row"
    PLAYER_ROW = "player_row"
    HEARTBEAT = "heartbeat"
    ERROR = "error"


def _encode(message_type: str, data: Dict[str, Any]) -> str:
    return json.dumps({"type": message_type, "data": data, "timestamp": time.time()})


class WebSocketRelay:
    """
    Broadcast a game's row changes to WebSocket clients.

    Args:
        store: Store whose notifications are relayed
        game_id: The game to relay
        host: Interface to listen on
        port: Port to listen on, 0 picks a free port
    """

    def __init__(
        self, store: GameStore, game_id: str, host: str = "localhost", port: int = 0
    ):
        self.store = store
        self.game_id = game_id
        self.host = host
        self.port = port
        self.server = None
        self.clients: Set[Any] = set()
        self._unsubscribers = []
        self._pending: Set[asyncio.Future] = set()

    @property
    def url(self) -> str:
        return f"ws://{self.host}:{self.port}"

    async def start(self) -> None:
        """Start listening and subscribe to the store."""
        self.server = await websockets.serve(self.handle_client, self.host, self.port)
        self.port = self.server.sockets[0].getsockname()[1]
        self._unsubscribers = [
            self.store.subscribe_game(self.game_id, self._on_game_row),
            self.store.subscribe_players(self.game_id, self._on_player_row),
        ]
        logger.info(f"Relay for game {self.game_id} listening on {self.url}")

    async def stop(self) -> None:
        """Unsubscribe from the store and close every connection."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

        for future in list(self._pending):
            future.cancel()

        if self.server is not None:
            self.server.close()
            await self.server.wait_closed()
            self.server = None
        self.clients.clear()

    async def handle_client(self, websocket, path: Optional[str] = None) -> None:
        """
        Serve one client connection.

        New clients receive the current active players, then every change.
        """
        client_id = str(uuid.uuid4())
        self.clients.add(websocket)
        logger.info(f"Client {client_id} connected")
        try:
            await websocket.send(
                _encode(
                    ServerMessage.CONNECTED,
                    {"client_id": client_id, "game_id": self.game_id},
                )
            )
            for row in await self.store.list_active_players(self.game_id):
                await websocket.send(_encode(ServerMessage.PLAYER_ROW, asdict(row)))

            async for message in websocket:
                await websocket.send(self._reply(message))
        except websockets.ConnectionClosed:
            pass
        finally:
            self.clients.discard(websocket)
            logger.info(f"Client {client_id} disconnected")

    @staticmethod
    def _reply(message: str) -> str:
        try:
            data = json.loads(message)
        except (json.JSONDecodeError, TypeError):
            return _encode(ServerMessage.ERROR, {"message": "Invalid JSON"})
        if isinstance(data, dict) and data.get("type") == ClientMessage.HEARTBEAT:
            return _encode(ServerMessage.HEARTBEAT, {"timestamp": time.time()})
        return _encode(ServerMessage.ERROR, {"message": "Unknown message type"})

    async def broadcast(self, message_type: str, data: Dict[str, Any]) -> int:
        """
        Send a message to every connected client.

        Returns:
            Number of clients the message was sent to
        """
        message = _encode(message_type, data)
        count = 0
        for websocket in list(self.clients):
            try:
                await websocket.send(message)
                count += 1
            except websockets.ConnectionClosed:
                self.clients.discard(websocket)
        return count

    def _schedule(self, message_type: str, row: Any) -> None:
        future = asyncio.ensure_future(self.broadcast(message_type, asdict(row)))
        self._pending.add(future)
        future.add_done_callback(self._pending.discard)

    def _on_game_row(self, row: GameRow) -> None:
        self._schedule(ServerMessage.GAME_ROW, row)

    def _on_player_row(self, row: PlayerRow) -> None:
        self._schedule(ServerMessage.PLAYER_ROW, row)


class RemoteFeed:
    """
    Apply row changes received from a relay to a local table.

    Args:
        url: Relay address, e.g. ``ws://localhost:8765``
        synchronizer: Receives every game and player row
    """

    def __init__(self, url: str, synchronizer: Synchronizer):
        self.url = url
        self.synchronizer = synchronizer
        self.websocket = None
        self.client_id: Optional[str] = None
        self._listen_task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        self.websocket = await websockets.connect(self.url)
        self._listen_task = asyncio.ensure_future(self._listen())

    async def stop(self) -> None:
        if self.websocket is not None:
            await self.websocket.close()
            self.websocket = None
        if self._listen_task is not None:
            self._listen_task.cancel()
            try:
                await self._listen_task
            except asyncio.CancelledError:
                pass
            self._listen_task = None

    async def heartbeat(self) -> None:
        await self.websocket.send(json.dumps({"type": ClientMessage.HEARTBEAT}))

    async def _listen(self) -> None:
        try:
            async for message in self.websocket:
                try:
                    self.handle_message(json.loads(message))
                except json.JSONDecodeError as e:
                    logger.warning(f"Dropping malformed relay message: {e}")
        except websockets.ConnectionClosed:
            logger.info(f"Relay connection to {self.url} closed")

    def handle_message(self, message: Dict[str, Any]) -> None:
        """Dispatch one decoded relay message."""
        message_type = message.get("type")
        data = message.get("data") or {}
        try:
            if message_type == ServerMessage.CONNECTED:
                self.client_id = data.get("client_id")
            elif message_type == ServerMessage.GAME_ROW:
                self.synchronizer.on_game_changed(GameRow(**data))
            elif message_type == ServerMessage.PLAYER_ROW:
                self.synchronizer.on_player_changed(PlayerRow(**data))
        except TypeError as e:
            logger.warning(f"Dropping malformed {message_type} message: {e}")
