"""
Tokenator - Live Session

One persistent websocket connection to the relay, shared by every
mailbox a MessageChannel listens on.

Frames are JSON objects: {"event": <name>, "data": <payload>}
  joinRoom               -> data = room id
  sendMessage            -> data = {"roomId", "message": {"body", "messageId"}}
  sendMessage-<roomId>   <- data = {"body", "messageId", ...}
"""

import asyncio
import inspect
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Union

import websockets

log = logging.getLogger(__name__)

EventHandler = Callable[[Any], Union[None, Awaitable[None]]]


class LiveSession:
    """
    Lazily connected duplex session.

    Room membership is tracked in ``joined`` so joining is idempotent.
    Rooms stay requested until close(): when the relay drops the
    connection the session reconnects once and joins them again.
    Handler exceptions are logged; they never stop the reader.
    """

    def __init__(self, url: str, connect: Optional[Callable[[str], Awaitable[Any]]] = None):
        self.url = url
        self._connect = connect or websockets.connect
        self._ws = None
        self._reader: Optional[asyncio.Task] = None
        self._reconnecting: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()
        self._handlers: Dict[str, EventHandler] = {}
        self.joined: Set[str] = set()
        self._rooms: Set[str] = set()

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def open(self):
        """Connect once; concurrent callers share the same connection."""
        async with self._lock:
            if self._ws is not None:
                return
            log.info(f"Opening live session to {self.url}")
            ws = await self._connect(self.url)
            self._ws = ws
            self._reader = asyncio.create_task(self._read_loop(ws))
            for room_id in sorted(self._rooms):
                await ws.send(json.dumps({"event": "joinRoom", "data": room_id}))
                self.joined.add(room_id)
            if self._rooms:
                log.debug(f"Joined {len(self._rooms)} room(s) on connect")

    async def emit(self, event: str, data: Any):
        await self.open()
        await self._ws.send(json.dumps({"event": event, "data": data}))

    async def join(self, room_id: str) -> bool:
        """Join a room. Returns False when it was already joined."""
        if room_id in self.joined:
            return False
        self._rooms.add(room_id)
        await self.open()
        if room_id not in self.joined:
            await self._ws.send(json.dumps({"event": "joinRoom", "data": room_id}))
            self.joined.add(room_id)
        log.debug(f"Joined room {room_id}")
        return True

    def on(self, event: str, handler: EventHandler):
        self._handlers[event] = handler

    async def _read_loop(self, ws):
        try:
            async for raw in ws:
                try:
                    frame = json.loads(raw)
                except ValueError:
                    log.warning("Dropping malformed live frame")
                    continue
                if not isinstance(frame, dict):
                    continue
                handler = self._handlers.get(frame.get("event", ""))
                if handler is None:
                    continue
                try:
                    result = handler(frame.get("data"))
                    if inspect.isawaitable(result):
                        await result
                except Exception as e:
                    log.error(f"Live handler for {frame.get('event')} failed: {e}")
        except websockets.ConnectionClosed:
            log.info("Live session closed by relay")
        finally:
            if self._ws is ws:
                self._ws = None
                self.joined.clear()
                if self._rooms:
                    self._reconnecting = asyncio.create_task(self._reconnect())

    async def _reconnect(self):
        try:
            await self.open()
        except (OSError, asyncio.TimeoutError, websockets.WebSocketException) as e:
            log.warning(f"Live session could not reconnect to {self.url}: {e}")

    async def close(self):
        """Tear down the connection and forget joined rooms."""
        ws, reader, reconnecting = self._ws, self._reader, self._reconnecting
        self._ws = None
        self._reader = None
        self._reconnecting = None
        self.joined.clear()
        self._rooms.clear()
        for task in (reader, reconnecting):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        if ws is not None:
            await ws.close()
