"""
Self-healing logical connection on top of replaceable physical links.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional
import asyncio
import logging

from .config import RelaySettings, get_relay_settings
from .connection import Connection, ConnectionState, Connector
from .errors import NotConnectedError
from .events import ListenerRegistration, dispatch

logger = logging.getLogger(__name__)


class ManagerState(str, Enum):
    """Logical connection states."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass(frozen=True)
class RetryPolicy:
    """Constant-delay retry with an unbounded number of attempts."""
    delay: float = 2.0

    def next_delay(self, attempt: int) -> float:
        return self.delay


class ConnectionManager:
    """Logical connection that reconnects after every unexpected close.

    Listeners registered with ``on()`` survive reconnects: each new
    physical connection gets all of them re-attached, in registration
    order, before the ``open`` listeners fire.

    Example:
        manager = ConnectionManager("ws://localhost:8080", retry_delay=1.0)
        manager.on("message", handle_message)
        await manager.connect()
        await manager.send({"type": "hello"})
        ...
        await manager.close()
    """

    def __init__(
        self,
        endpoint: str,
        retry_delay: float = 2.0,
        verbose: bool = False,
        connector: Optional[Connector] = None,
    ):
        self.endpoint = endpoint
        self.verbose = verbose
        self.retry_policy = RetryPolicy(delay=retry_delay)
        self._connector = connector
        self._state = ManagerState.DISCONNECTED
        self._connection: Optional[Connection] = None
        self._closed_manually = False
        self._registrations: List[ListenerRegistration] = []
        self._retry_task: Optional[asyncio.Task] = None
        self._retry_attempts = 0

    @classmethod
    def from_settings(
        cls,
        endpoint: str,
        settings: Optional[RelaySettings] = None,
        connector: Optional[Connector] = None,
    ) -> "ConnectionManager":
        """Build a manager from RELAY_* settings."""
        settings = settings or get_relay_settings()
        return cls(
            endpoint,
            retry_delay=settings.retry_delay,
            verbose=settings.verbose,
            connector=connector,
        )

    @property
    def state(self) -> ManagerState:
        return self._state

    @property
    def connection(self) -> Optional[Connection]:
        """The current physical connection, if any."""
        return self._connection

    @property
    def retry_attempts(self) -> int:
        """Consecutive failed cycles since the last successful open."""
        return self._retry_attempts

    @property
    def registrations(self) -> List[ListenerRegistration]:
        return list(self._registrations)

    def is_connected(self) -> bool:
        """True only while the active physical connection is open."""
        return self._state == ManagerState.CONNECTED

    async def connect(self) -> None:
        """Open the logical connection, re-enabling automatic reconnects."""
        self._closed_manually = False
        self._cancel_retry()
        await self._open_connection()

    async def close(self) -> None:
        """Close the logical connection for good. Idempotent."""
        self._closed_manually = True
        self._cancel_retry()

        conn = self._connection
        self._connection = None
        self._state = ManagerState.DISCONNECTED

        if conn is not None:
            await conn.close()
            self._log(f"Closed connection to {self.endpoint}")

    def on(self, event: str, callback: Callable) -> Callable:
        """Register a listener that is replayed on every reconnect."""
        self._registrations.append(ListenerRegistration(event, callback))
        if self.is_connected() and self._connection is not None:
            self._connection.on(event, callback)
        return callback

    async def send(self, value: Any) -> None:
        """Send through the active connection.

        Raises:
            NotConnectedError: if the logical connection is not CONNECTED.
            PayloadEncodingError: if a structured value is not serializable.
        """
        if not self.is_connected() or self._connection is None:
            raise NotConnectedError(self.endpoint, self._state.value)
        await self._connection.send(value)

    async def _open_connection(self) -> None:
        if self._closed_manually:
            return

        previous = self._connection
        self._connection = None
        if previous is not None and previous.state != ConnectionState.CLOSED:
            await previous.close()

        self._state = ManagerState.CONNECTING
        conn = Connection(self.endpoint, verbose=self.verbose, connector=self._connector)
        self._connection = conn

        async def on_open():
            await self._handle_open(conn)

        def on_close():
            self._handle_close(conn)

        conn.on("open", on_open)
        conn.on("close", on_close)
        await conn.open()

    async def _handle_open(self, conn: Connection) -> None:
        if conn is not self._connection:
            return

        self._state = ManagerState.CONNECTED
        self._retry_attempts = 0
        for registration in self._registrations:
            conn.on(registration.event, registration.callback)

        self._log(f"Connected successfully to WebSocket server: {self.endpoint}")
        await dispatch(
            "open",
            [r.callback for r in self._registrations if r.event == "open"],
        )

    def _handle_close(self, conn: Connection) -> None:
        if conn is not self._connection:
            return

        self._connection = None
        if self._closed_manually:
            self._state = ManagerState.DISCONNECTED
            return

        self._state = ManagerState.CONNECTING
        self._retry_attempts += 1
        delay = self.retry_policy.next_delay(self._retry_attempts)
        self._log(
            f"Connection to {self.endpoint} lost, retrying in {delay}s "
            f"(attempt {self._retry_attempts})"
        )
        self._retry_task = asyncio.create_task(self._retry_after(delay))

    async def _retry_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        # close() may race the timer
        if self._closed_manually:
            return
        await self._open_connection()

    def _cancel_retry(self) -> None:
        task = self._retry_task
        self._retry_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _log(self, message: str) -> None:
        level = logging.INFO if self.verbose else logging.DEBUG
        logger.log(level, message)
