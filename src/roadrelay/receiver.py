"""Collect a known number of inbound messages, with a deadline."""

from typing import Any, List
import asyncio


class EventReceiver:
    """Accumulates messages handed to ``give()`` until ``expected`` arrive.

    Example:
        receiver = EventReceiver(2, max_seconds=1.0)
        manager.on("message", receiver.give)
        messages = await receiver.wait()
    """

    def __init__(self, expected: int, max_seconds: float = 2.0):
        self.expected = expected
        self.max_seconds = max_seconds
        self.messages: List[Any] = []
        self._done = asyncio.Event()

    def give(self, message: Any) -> None:
        self.messages.append(message)
        if len(self.messages) >= self.expected:
            self._done.set()

    async def wait(self) -> List[Any]:
        """Return the messages once enough arrived or the deadline passed."""
        if len(self.messages) < self.expected:
            try:
                await asyncio.wait_for(self._done.wait(), timeout=self.max_seconds)
            except asyncio.TimeoutError:
                pass
        return list(self.messages)
