"""Identifier and timestamp helpers shared by the domain models."""

import time
from uuid import uuid4


def generate_id() -> str:
    """Return a new opaque identifier."""
    return uuid4().hex


def now_ms() -> int:
    """Return the current time as epoch milliseconds, the format stored on every record."""
    return int(time.time() * 1000)
