"""
Physical WebSocket link with open/close/error/message events.
"""

from enum import Enum
from typing import Any, Awaitable, Callable, Optional
import asyncio
import logging

import websockets
from websockets.exceptions import ConnectionClosed

from .errors import ConnectionNotOpenError
from .events import EventEmitter
from .payloads import encode_payload

logger = logging.getLogger(__name__)

Connector = Callable[[str], Awaitable[Any]]


class ConnectionState(str, Enum):
    """Physical connection states."""
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class Connection(EventEmitter):
    """One physical WebSocket link.

    Failures never raise out of ``open()``: a failed handshake emits
    ``error`` followed by ``close``, and a dropped link emits ``close``.
    ``close`` is emitted exactly once per instance.
    """

    def __init__(
        self,
        endpoint: str,
        verbose: bool = False,
        connector: Optional[Connector] = None,
    ):
        super().__init__()
        self.endpoint = endpoint
        self.verbose = verbose
        self.state = ConnectionState.CONNECTING
        self.closed_manually = False
        self._connector = connector or websockets.connect
        self._socket: Any = None
        self._reader_task: Optional[asyncio.Task] = None

    @classmethod
    def attach(cls, socket: Any, verbose: bool = False) -> "Connection":
        """Wrap an already-accepted server-side socket."""
        endpoint = str(getattr(socket, "remote_address", None) or "peer")
        conn = cls(endpoint, verbose=verbose)
        conn._socket = socket
        conn.state = ConnectionState.OPEN
        return conn

    @property
    def is_open(self) -> bool:
        return self.state == ConnectionState.OPEN

    async def open(self) -> None:
        """Perform the handshake and start reading in the background."""
        try:
            socket = await self._connector(self.endpoint)
        except Exception as e:
            self._trace("ERROR", f"could not connect to {self.endpoint}: {e}")
            await self.emit("error", e)
            await self._mark_closed()
            return

        self._socket = socket
        if self.closed_manually:
            # close() arrived while the handshake was in flight
            await socket.close()
            await self._mark_closed()
            return

        self.state = ConnectionState.OPEN
        self._trace("OPEN", f"connected to {self.endpoint}")
        await self.emit("open")

        if self.is_open:
            self._reader_task = asyncio.create_task(self._read_loop())

    async def serve(self) -> None:
        """Read inbound frames inline until the peer goes away."""
        await self._read_loop()

    async def send(self, payload: Any) -> None:
        """Send a payload; structured values are JSON encoded first."""
        data = encode_payload(payload)
        if not self.is_open:
            raise ConnectionNotOpenError(self.endpoint, self.state.value)
        await self._socket.send(data)

    async def close(self) -> None:
        """Close the link on request of the caller. Idempotent."""
        self.closed_manually = True
        if self.state == ConnectionState.CLOSED or self._socket is None:
            return

        await self._socket.close()
        reader = self._reader_task
        if reader is not None and not reader.done() and reader is not asyncio.current_task():
            await reader
        else:
            await self._mark_closed()

    async def _read_loop(self) -> None:
        try:
            async for message in self._socket:
                await self.emit("message", message)
        except (ConnectionClosed, OSError) as e:
            self._trace("ERROR", f"link to {self.endpoint} failed: {e}")
            await self.emit("error", e)
        finally:
            await self._mark_closed()

    async def _mark_closed(self) -> None:
        if self.state == ConnectionState.CLOSED:
            return
        self.state = ConnectionState.CLOSED
        self._trace("CLOSE", f"{self.endpoint} closed (manual={self.closed_manually})")
        await self.emit("close")

    def _trace(self, label: str, detail: str) -> None:
        level = logging.INFO if self.verbose else logging.DEBUG
        logger.log(level, f"WS > {label} {detail}")
