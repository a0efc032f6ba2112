"""Canonical encoding for stored jobs and schedule definitions.

The encoded text doubles as the equality key for duplicate suppression,
so keys are always sorted and separators are fixed.
"""

import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel


def encode(value: Any) -> str:
    """Encode a job, a schedule definition or a plain JSON value.

    Models exposing ``to_payload()`` are converted through it first.

    Args:
        value: Value to encode

    Returns:
        Canonical JSON text
    """
    if isinstance(value, BaseModel):
        to_payload = getattr(value, "to_payload", None)
        value = to_payload() if callable(to_payload) else value.model_dump(mode="json", by_alias=True)
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


def decode(payload: str | bytes | None) -> Any:
    """Decode stored text; ``None`` stays ``None``."""
    if payload is None:
        return None
    return json.loads(payload)


def to_timestamp(value: int | float | datetime) -> int:
    """Truncate a Unix timestamp or datetime to whole seconds.

    Args:
        value: Seconds since the epoch, or a datetime (naive values are local time)

    Returns:
        Integer Unix timestamp
    """
    if isinstance(value, datetime):
        value = value.timestamp()
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"Cannot convert {value!r} to a timestamp")
    return int(value)
