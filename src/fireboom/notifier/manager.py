"""
Live notifier connections.

Frames are JSON objects ``{channel, event, data, error?, requestId?}``. Log
records arrive on arbitrary threads; ``push`` hands each frame to the event
loop of every connection and writes to one connection are serialized by its
own lock. A failed write closes the connection.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

EVENT_PUSH = "push"
EVENT_PULL = "pull"

PullHandler = Callable[[Any], Any]


@dataclass
class Frame:
    channel: str
    event: str
    data: Any = None
    error: Optional[str] = None
    request_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"channel": self.channel, "event": self.event, "data": self.data}
        if self.error is not None:
            result["error"] = self.error
        if self.request_id is not None:
            result["requestId"] = self.request_id
        return result


@dataclass
class Connection:
    """One subscribed client."""
    send: Callable[[Dict[str, Any]], Awaitable[None]]
    loop: asyncio.AbstractEventLoop
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    closed: bool = False


class NotifierManager:
    """
    Fans frames out to every live connection.

    Usage:
        manager = NotifierManager()
        manager.register_pull("engine", lambda data: engine_state())
        manager.push(Frame("log", EVENT_PUSH, {"msg": "started"}))
    """

    def __init__(self):
        self._connections: Dict[str, Connection] = {}
        self._pull_handlers: Dict[str, PullHandler] = {}
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending_sends(self) -> int:
        return len(self._tasks)

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def register_pull(self, channel: str, handler: PullHandler) -> None:
        self._pull_handlers[channel] = handler

    def connect(self, send: Callable[[Dict[str, Any]], Awaitable[None]]) -> Connection:
        """Register a connection bound to the running event loop."""
        connection = Connection(send=send, loop=asyncio.get_running_loop())
        self._connections[connection.id] = connection
        logger.debug(f"Notifier connection {connection.id} opened")
        return connection

    def disconnect(self, connection: Connection) -> None:
        connection.closed = True
        if self._connections.pop(connection.id, None) is not None:
            logger.debug(f"Notifier connection {connection.id} closed")

    def push(self, frame: Frame) -> None:
        """Deliver ``frame`` to every connection; safe to call from any thread."""
        payload = frame.to_dict()
        for connection in list(self._connections.values()):
            if connection.closed or connection.loop.is_closed():
                continue
            connection.loop.call_soon_threadsafe(self._schedule, connection, payload)

    def _schedule(self, connection: Connection, payload: Dict[str, Any]) -> None:
        task = asyncio.ensure_future(self.send(connection, payload))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def send(self, connection: Connection, payload: Dict[str, Any]) -> bool:
        async with connection.lock:
            if connection.closed:
                return False
            try:
                await connection.send(payload)
            except (RuntimeError, OSError, WebSocketDisconnect) as e:
                logger.debug(f"Notifier write to {connection.id} failed: {e}")
                self.disconnect(connection)
                return False
        return True

    def pull(self, message: Dict[str, Any]) -> Frame:
        """Answer a client ``pull`` request."""
        channel = str(message.get("channel") or "")
        request_id = message.get("requestId")
        handler = self._pull_handlers.get(channel)
        if handler is None:
            return Frame(channel, EVENT_PULL, error=f"channel [{channel}] not supported", request_id=request_id)
        return Frame(channel, EVENT_PULL, data=handler(message.get("data")), request_id=request_id)

    async def serve(self, websocket: WebSocket) -> None:
        """Run one websocket connection until the client leaves."""
        await websocket.accept()
        connection = self.connect(websocket.send_json)
        try:
            while True:
                message = await websocket.receive_json()
                if not isinstance(message, dict) or message.get("event") != EVENT_PULL:
                    continue
                if not await self.send(connection, self.pull(message).to_dict()):
                    break
        except WebSocketDisconnect:
            pass
        except ValueError as e:
            logger.debug(f"Notifier connection {connection.id} sent invalid JSON: {e}")
        finally:
            self.disconnect(connection)
