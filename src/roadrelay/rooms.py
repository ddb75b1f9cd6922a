"""
In-process room broker: named broadcast groups of connected clients.

A client is anything exposing ``send(payload)`` (plain or coroutine) and
``on("close", callback)``, e.g. a :class:`~roadrelay.connection.Connection`
attached to an accepted server socket. Clients that also expose
``off(event, callback)`` get their close handler removed on leave.
"""

from typing import Any, Callable, Dict, List, Optional
import asyncio
import logging

from .payloads import to_json

logger = logging.getLogger(__name__)


class Membership:
    """Handle for one join of a client to a room.

    A membership ends exactly once, by ``leave()`` or by the client's
    ``close`` event, whichever comes first.
    """

    def __init__(self, broker: "RoomBroker", room_name: str, client: Any):
        self._broker = broker
        self.room_name = room_name
        self.client = client
        self.left = False
        self._on_close: Optional[Callable] = None

    def leave(self) -> None:
        if self.left:
            return
        self._broker._remove(self)

    async def emit(self, data: Any) -> int:
        """Broadcast to the room this membership belongs to."""
        return await self._broker.emit_on_room(self.room_name, data)

    def _attach(self) -> None:
        def on_close(*args: Any) -> None:
            self.leave()

        self._on_close = on_close
        self.client.on("close", on_close)

    def _detach(self) -> None:
        self.left = True
        off = getattr(self.client, "off", None)
        if self._on_close is not None and callable(off):
            off("close", self._on_close)
        self._on_close = None


class RoomBroker:
    """Registry mapping room names to their members, in join order.

    Every operation tolerates unknown rooms and clients: broadcasting to
    a missing room or leaving twice is a no-op. Joining the same client
    twice adds two entries, each removed by its own leave.
    """

    def __init__(self):
        self._rooms: Dict[str, List[Membership]] = {}

    @property
    def rooms(self) -> List[str]:
        return list(self._rooms)

    def has_room(self, room_name: str) -> bool:
        return room_name in self._rooms

    def members(self, room_name: str) -> List[Any]:
        """Get the members of a room in join order."""
        return [m.client for m in self._rooms.get(room_name, [])]

    def join_room(self, room_name: str, client: Any) -> Membership:
        """Add a client to a room, creating the room if needed.

        The client leaves automatically when it emits ``close``.
        """
        room = self._rooms.get(room_name)
        if room is None:
            room = self._rooms[room_name] = []

        membership = Membership(self, room_name, client)
        room.append(membership)
        membership._attach()
        logger.debug(f"Client joined room '{room_name}' ({len(room)} members)")
        return membership

    def leave_room(self, room_name: str, client: Any) -> bool:
        """Remove the first entry of a client from a room.

        Returns:
            True if an entry was removed, False if room or client was absent.
        """
        for membership in self._rooms.get(room_name, []):
            if membership.client is client:
                self._remove(membership)
                return True
        return False

    async def emit_on_room(self, room_name: str, data: Any) -> int:
        """Send JSON-encoded data to every member of a room.

        Delivery is best effort: a member whose send fails is logged and
        skipped.

        Returns:
            Number of members the payload was handed to.

        Raises:
            PayloadEncodingError: if data is not JSON serializable.
        """
        room = self._rooms.get(room_name)
        if not room:
            return 0

        payload = to_json(data)
        count = 0
        for client in self.members(room_name):
            try:
                result = client.send(payload)
                if asyncio.iscoroutine(result):
                    await result
                count += 1
            except Exception as e:
                logger.warning(f"Failed to send to member of room '{room_name}': {e}")
        return count

    def get_stats(self) -> Dict[str, Any]:
        return {
            "rooms": len(self._rooms),
            "room_sizes": {name: len(members) for name, members in self._rooms.items()},
        }

    def _remove(self, membership: Membership) -> None:
        room = self._rooms.get(membership.room_name)
        if room is not None and membership in room:
            room.remove(membership)
            if not room:
                del self._rooms[membership.room_name]
                logger.debug(f"Room '{membership.room_name}' is empty, removed")
        membership._detach()
