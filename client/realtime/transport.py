#!/usr/bin/env python
# Realtime transport: shared WebSocket connection and named pub/sub channels
import asyncio
import itertools
import json
import logging
from typing import Dict, Any, Callable, List, Optional
from urllib.parse import quote

import websockets

from client.utils.config import config
from client.session.state import session_state

logger = logging.getLogger(__name__)

MessageListener = Callable[[Dict[str, Any]], None]
StateListener = Callable[[str, Optional[str]], None]


class TransportError(Exception):
    """Raised when the realtime service rejects a request or the connection drops"""


class RealtimeChannel:
    """
    A named channel on the shared connection.

    Transport-level states: initialized, attaching, attached, detached,
    suspended (connection lost while attached) and failed.
    """

    def __init__(self, name: str, connection: "RealtimeConnection"):
        self.name = name
        self.connection = connection
        self.state = "initialized"
        self._listeners: List[MessageListener] = []
        self._state_listeners: List[StateListener] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._listeners)

    def _set_state(self, state: str, reason: Optional[str] = None) -> None:
        if state == self.state:
            return
        self.state = state
        for listener in list(self._state_listeners):
            listener(state, reason)

    def on_state_change(self, listener: StateListener) -> None:
        self._state_listeners.append(listener)

    def off_state_change(self, listener: StateListener) -> None:
        if listener in self._state_listeners:
            self._state_listeners.remove(listener)

    async def attach(self) -> None:
        self._set_state("attaching")
        try:
            await self.connection.request({"action": "attach", "channel": self.name})
        except TransportError as e:
            self._set_state("failed", str(e))
            raise
        self._set_state("attached")

    async def detach(self) -> None:
        if self.connection.connected and self.state in ("attached", "attaching"):
            await self.connection.request({"action": "detach", "channel": self.name})
        self._set_state("detached")

    def subscribe(self, listener: MessageListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: MessageListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def publish(self, name: str, data: Dict[str, Any]) -> str:
        """Publish a message; returns the id the service assigned to it"""
        reply = await self.connection.request({
            "action": "publish",
            "channel": self.name,
            "name": name,
            "data": data
        })
        return reply.get("messageId")

    async def history(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Most recent channel messages, newest first"""
        reply = await self.connection.request({
            "action": "history",
            "channel": self.name,
            "limit": limit
        })
        return reply.get("items", [])

    def _deliver(self, message: Dict[str, Any]) -> None:
        for listener in list(self._listeners):
            try:
                listener(message)
            except Exception as e:
                logger.error(f"Listener error on {self.name}: {str(e)}")

    def _connection_lost(self, reason: str) -> None:
        if self.state in ("attached", "attaching"):
            self._set_state("suspended", reason)


class RealtimeConnection:
    """One WebSocket connection to the realtime service, multiplexing channels"""

    def __init__(self, url: str, token_provider: Callable[[], Optional[str]]):
        self.url = url
        self.token_provider = token_provider
        self.websocket = None
        self.channels: Dict[str, RealtimeChannel] = {}
        self._pending: Dict[str, asyncio.Future] = {}
        self._ids = itertools.count(1)
        self._reader: Optional[asyncio.Task] = None

    @property
    def connected(self) -> bool:
        return self.websocket is not None

    async def connect(self) -> None:
        """Open the WebSocket if it is not already open"""
        if self.connected:
            return
        token = self.token_provider()
        if not token:
            raise TransportError("Not logged in")

        try:
            self.websocket = await websockets.connect(
                f"{self.url}?access_token={quote(token)}",
                ping_interval=30,
                ping_timeout=10
            )
        except (OSError, websockets.exceptions.WebSocketException) as e:
            raise TransportError(f"Connection error: {str(e)}")

        logger.info("Realtime connection established")
        self._reader = asyncio.create_task(self._listen())

    async def close(self) -> None:
        websocket, self.websocket = self.websocket, None
        if self._reader:
            self._reader.cancel()
            self._reader = None
        if websocket is not None:
            await websocket.close()
        self._fail_pending("Connection closed")
        for channel in self.channels.values():
            channel._set_state("detached")
        logger.info("Realtime connection closed")

    def get_channel(self, name: str) -> RealtimeChannel:
        """Get the channel object for a name, creating it on first use"""
        if name not in self.channels:
            self.channels[name] = RealtimeChannel(name, self)
        return self.channels[name]

    def release_channel(self, name: str) -> None:
        channel = self.channels.get(name)
        if channel and channel.subscriber_count == 0 and channel.state != "attached":
            del self.channels[name]

    def in_use(self) -> bool:
        return any(
            channel.subscriber_count > 0 or channel.state == "attached"
            for channel in self.channels.values()
        )

    async def request(self, frame: Dict[str, Any]) -> Dict[str, Any]:
        """Send a request frame and wait for the matching reply"""
        if not self.connected:
            raise TransportError("Not connected")

        request_id = str(next(self._ids))
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            await self.websocket.send(json.dumps({"id": request_id, **frame}))
            return await future
        except websockets.exceptions.ConnectionClosed as e:
            raise TransportError(f"Connection closed: {str(e)}")
        finally:
            self._pending.pop(request_id, None)

    async def _listen(self) -> None:
        reason = "Connection closed by server"
        try:
            async for raw in self.websocket:
                self._dispatch(raw)
        except websockets.exceptions.ConnectionClosed as e:
            reason = f"Connection lost: {str(e)}"
        except asyncio.CancelledError:
            return

        logger.warning(reason)
        self.websocket = None
        self._reader = None
        self._fail_pending(reason)
        for channel in list(self.channels.values()):
            channel._connection_lost(reason)

    def _dispatch(self, raw) -> None:
        try:
            frame = json.loads(raw)
        except json.JSONDecodeError:
            logger.error(f"Failed to decode frame: {raw}")
            return

        action = frame.get("action")
        if action == "message":
            channel = self.channels.get(frame.get("channel"))
            if channel:
                channel._deliver(frame.get("message", {}))
            return

        future = self._pending.get(frame.get("id"))
        if future is None or future.done():
            if action == "error":
                logger.error(f"Realtime error: {frame.get('error')}")
            return
        if action == "error":
            future.set_exception(TransportError(frame.get("error", "Unknown error")))
        else:
            future.set_result(frame)

    def _fail_pending(self, reason: str) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(TransportError(reason))
        self._pending.clear()


class ConnectionManager:
    """
    Owner of the process-wide realtime connection.

    acquire() returns the shared connection, creating and connecting it on
    first use; release_if_unused() closes it once no channel is attached or
    subscribed.
    """

    def __init__(self, factory: Optional[Callable[[], RealtimeConnection]] = None):
        self.factory = factory or self._default_factory
        self.connection: Optional[RealtimeConnection] = None
        self._lock = asyncio.Lock()

    @staticmethod
    def _default_factory() -> RealtimeConnection:
        return RealtimeConnection(config.ws_url, lambda: session_state.access_token)

    async def acquire(self) -> RealtimeConnection:
        async with self._lock:
            if self.connection is None:
                self.connection = self.factory()
            if not self.connection.connected:
                await self.connection.connect()
            return self.connection

    async def release_if_unused(self) -> bool:
        """Close the shared connection if nothing uses it; returns True if closed"""
        async with self._lock:
            if self.connection is None or self.connection.in_use():
                return False
            connection, self.connection = self.connection, None
            await connection.close()
            return True


# Global connection manager instance
connection_manager = ConnectionManager()
