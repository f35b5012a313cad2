"""Identifier generation for new documents."""

from __future__ import annotations

import secrets
import time


def generate_id() -> str:
    """Return an opaque, collision-resistant document identifier.

    The identifier is the current time in milliseconds (hex) followed by
    ten hex characters from the OS random source, so identifiers generated
    later usually sort later.
    """
    timestamp = format(time.time_ns() // 1_000_000, "x")
    return f"{timestamp}{secrets.token_hex(5)}"
