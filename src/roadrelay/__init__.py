"""
RoadRelay - Resilient WebSocket messaging for BlackRoad OS

Self-healing client connections with listener replay and an
in-process room broker for targeted broadcasts.
"""

from .config import RelaySettings, get_relay_settings
from .connection import Connection, ConnectionState
from .errors import (
    ConnectionNotOpenError,
    NotConnectedError,
    PayloadEncodingError,
    RelayError,
)
from .events import EventEmitter, ListenerRegistration
from .manager import ConnectionManager, ManagerState, RetryPolicy
from .payloads import encode_payload
from .receiver import EventReceiver
from .rooms import Membership, RoomBroker

__version__ = "0.1.0"
__author__ = "BlackRoad OS"
__all__ = [
    # Client
    "ConnectionManager",
    "Connection",
    "RetryPolicy",
    # Server
    "RoomBroker",
    "Membership",
    # Events
    "EventEmitter",
    "ListenerRegistration",
    "EventReceiver",
    # Enums
    "ConnectionState",
    "ManagerState",
    # Config
    "RelaySettings",
    "get_relay_settings",
    # Errors
    "RelayError",
    "NotConnectedError",
    "ConnectionNotOpenError",
    "PayloadEncodingError",
    # Wire
    "encode_payload",
]
