"""Exceptions raised by RoadRelay.

Connectivity loss is never raised: it is reported through the ``close``
and ``error`` events. Only caller mistakes surface as exceptions.
"""


class RelayError(Exception):
    """Base class for RoadRelay errors."""


class NotConnectedError(RelayError):
    """Raised when sending through a manager that has no open connection."""

    def __init__(self, endpoint: str, state: str):
        self.endpoint = endpoint
        self.state = state
        super().__init__(f"Not connected to {endpoint} (state: {state})")


class ConnectionNotOpenError(RelayError):
    """Raised when sending on a physical connection that is not open."""

    def __init__(self, endpoint: str, state: str):
        self.endpoint = endpoint
        self.state = state
        super().__init__(f"Connection to {endpoint} is {state}, cannot send")


class PayloadEncodingError(RelayError, TypeError):
    """Raised when a structured payload cannot be serialized to JSON."""
