"""
Connection Manager

Owns the single persistent socket to the device. Reconnects after a fixed
delay forever (no backoff, no retry ceiling). A new attempt is only made
after the previous channel has been closed, so channels never overlap.

The transport (``connect``) and the delay (``sleep``) are injectable so the
reconnect loop can be driven without real sockets or real time.
"""

import asyncio
import logging
from collections import defaultdict
from enum import Enum
from typing import Awaitable, Callable, Optional
from urllib.parse import urlsplit, urlunsplit

from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from .exceptions import MalformedMessageError
from .messages import PushMessage, message_type, parse_message

logger = logging.getLogger(__name__)

DEFAULT_RECONNECT_DELAY_S = 3.0

MessageHandler = Callable[[PushMessage], Awaitable[None]]


def ws_url_from_origin(origin: str, path: str = "/ws") -> str:
    """Socket URL for an http(s) origin: https -> wss, anything else -> ws."""
    parts = urlsplit(origin)
    scheme = "wss" if parts.scheme == "https" else "ws"
    return urlunsplit((scheme, parts.netloc, path, "", ""))


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ConnectionManager:
    """Single-owner socket actor: is_open(), send() and on_message() registration.

    The raw channel is never handed out.
    """

    def __init__(
        self,
        url: str,
        reconnect_delay_s: float = DEFAULT_RECONNECT_DELAY_S,
        connect: Optional[Callable[[str], Awaitable]] = None,
        sleep: Optional[Callable[[float], Awaitable]] = None,
    ):
        self.url = url
        self.reconnect_delay_s = reconnect_delay_s
        self._connect = connect or ws_connect
        self._sleep = sleep or asyncio.sleep

        self._handlers: dict[str, list[MessageHandler]] = defaultdict(list)
        self._channel = None
        self._state = ConnectionState.DISCONNECTED
        self._task: asyncio.Task | None = None
        self._running = False
        self.reconnects_scheduled = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    def is_open(self) -> bool:
        return self._state is ConnectionState.CONNECTED and self._channel is not None

    def on_message(self, msg_type: str, handler: MessageHandler) -> Callable[[], None]:
        """Register an async handler for one message tag.

        Returns:
            Callable that removes the handler again
        """
        self._handlers[msg_type].append(handler)

        def remove() -> None:
            if handler in self._handlers[msg_type]:
                self._handlers[msg_type].remove(handler)

        return remove

    async def start(self):
        """Start the connect/reconnect loop."""
        if self._running:
            logger.warning("Connection manager already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info(f"🔌 Connection manager started for {self.url}")

    async def stop(self):
        """Stop reconnecting and close the channel."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        await self._close_channel()
        logger.info("🔌 Connection manager stopped")

    async def send(self, command: str) -> bool:
        """Send a bare command string.

        No queueing: when the channel is not open the command is dropped.

        Returns:
            True if the frame was handed to the socket
        """
        if not self.is_open():
            logger.warning(f"[WS] Cannot send {command!r}, socket not open")
            return False

        try:
            logger.debug(f"[WS] Sending message: {command}")
            await self._channel.send(command)
        except (ConnectionClosed, OSError) as e:
            logger.warning(f"[WS] Send of {command!r} failed: {e}")
            return False
        return True

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    async def _run_loop(self):
        """Connect, consume until closed, wait the fixed delay, repeat."""
        while self._running:
            try:
                await self._run_once()
            except Exception as e:
                # CancelledError is not an Exception and still ends the loop
                logger.error(f"[WS] Unexpected error on {self.url}: {e}", exc_info=True)
                await self._close_channel()

            if not self._running:
                break

            self.reconnects_scheduled += 1
            logger.info(f"[WS] Disconnected, retrying in {self.reconnect_delay_s:g}s...")
            await self._sleep(self.reconnect_delay_s)

    async def _run_once(self):
        """One connection attempt, returning only once the channel is closed."""
        self._state = ConnectionState.CONNECTING
        try:
            channel = await self._connect(self.url)
        except (OSError, WebSocketException) as e:
            logger.error(f"[WS] Connect to {self.url} failed: {e}")
            self._state = ConnectionState.DISCONNECTED
            return

        self._channel = channel
        self._state = ConnectionState.CONNECTED
        logger.info("[WS] Connected")

        try:
            async for frame in channel:
                await self._dispatch(frame)
        except ConnectionClosed as e:
            logger.warning(f"[WS] Connection closed: {e}")
        except (OSError, WebSocketException) as e:
            logger.error(f"[WS] Error: {e}")
        finally:
            # Always close before a retry is scheduled
            await self._close_channel()

    async def _close_channel(self):
        channel, self._channel = self._channel, None
        self._state = ConnectionState.DISCONNECTED
        if channel is None:
            return
        try:
            await channel.close()
        except (OSError, WebSocketException) as e:
            logger.debug(f"[WS] Error while closing: {e}")

    async def _dispatch(self, frame):
        try:
            message = parse_message(frame)
        except MalformedMessageError as e:
            logger.warning(f"[WS] Invalid message dropped ({e}): {frame!r}")
            return

        tag = message_type(message)
        handlers = list(self._handlers.get(tag, ()))
        if not handlers:
            logger.debug(f"[WS] Ignoring message type {tag!r}")
            return

        for handler in handlers:
            try:
                await handler(message)
            except Exception as e:
                logger.error(f"[WS] Handler for {tag!r} failed: {e}", exc_info=True)
