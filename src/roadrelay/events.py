"""
Event dispatch for RoadRelay connections.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional
import asyncio
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ListenerRegistration:
    """An (event, callback) pair kept for replay on reconnect."""
    event: str
    callback: Callable


async def dispatch(event: str, handlers: Iterable[Callable], *args: Any) -> None:
    """Call handlers in order, awaiting coroutine results.

    A failing handler is logged and does not prevent the others from running.
    """
    for handler in handlers:
        try:
            result = handler(*args)
            if asyncio.iscoroutine(result):
                await result
        except Exception as e:
            logger.error(f"Event handler error on '{event}': {e}")


class EventEmitter:
    """Event emitter owning an ordered handler list per event kind."""

    def __init__(self):
        self._handlers: Dict[str, List[Callable]] = {}

    def on(self, event: str, handler: Callable) -> Callable:
        """Register event handler."""
        if event not in self._handlers:
            self._handlers[event] = []
        self._handlers[event].append(handler)
        return handler

    def off(self, event: str, handler: Optional[Callable] = None) -> None:
        """Remove event handler."""
        if event in self._handlers:
            if handler:
                self._handlers[event] = [h for h in self._handlers[event] if h != handler]
            else:
                del self._handlers[event]

    def listeners(self, event: str) -> List[Callable]:
        return list(self._handlers.get(event, []))

    async def emit(self, event: str, *args: Any) -> None:
        """Emit event to the handlers registered at the time of the call."""
        await dispatch(event, self.listeners(event), *args)
