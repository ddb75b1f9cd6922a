"""Wire encoding for outbound payloads."""

from typing import Any, Mapping
import json

from .errors import PayloadEncodingError


def is_structured(value: Any) -> bool:
    return isinstance(value, (Mapping, list, tuple))


def to_json(value: Any) -> str:
    """Serialize ``value`` to JSON text, raising PayloadEncodingError on failure."""
    try:
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise PayloadEncodingError(f"Payload is not JSON serializable: {e}") from e


def encode_payload(value: Any) -> Any:
    """Encode structured values as JSON; everything else passes through unchanged."""
    if is_structured(value):
        return to_json(value)
    return value
