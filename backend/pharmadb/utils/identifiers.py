from __future__ import annotations

import os
import time
import uuid
from typing import Any

from pharmadb.errors import FieldValidationError

# Largest value an Integer column holds on every supported backend.
MAX_DB_INT = 2**31 - 1


def generate_uuid7() -> str:
    """
    Generate a UUIDv7 string (time-ordered).

    UUIDv7 layout per draft:
    - 48-bit Unix timestamp in milliseconds
    - 4-bit version (0b0111)
    - 74-bit randomness
    """
    ts_ms = int(time.time() * 1000)
    ts_bytes = ts_ms.to_bytes(6, "big", signed=False)
    rand_bytes = os.urandom(10)
    raw = bytearray(ts_bytes + rand_bytes)
    raw[6] = (raw[6] & 0x0F) | 0x70
    raw[8] = (raw[8] & 0x3F) | 0x80
    return str(uuid.UUID(bytes=bytes(raw)))


def parse_positive_id(value: Any, *, field: str = "id") -> int:
    """Return `value` as a positive int, or raise INVALID_ID."""
    if isinstance(value, str):
        value = value.strip()
        parsed = int(value) if value.isdigit() else None
    elif isinstance(value, int) and not isinstance(value, bool):
        parsed = value
    elif isinstance(value, float) and value.is_integer():
        parsed = int(value)
    else:
        parsed = None
    if parsed is None or parsed <= 0 or parsed > MAX_DB_INT:
        raise FieldValidationError("Valid positive integer ID is required", code="INVALID_ID", field=field)
    return parsed
