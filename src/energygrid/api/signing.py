"""Request signing for the telemetry API."""

from __future__ import annotations

import hashlib
import time


def generate_signature(path: str, secret: str, timestamp_ms: int) -> str:
    """Return the hex MD5 digest of path + secret + timestamp."""
    if not secret:
        raise ValueError("Signing secret is required")
    payload = f"{path}{secret}{timestamp_ms}"
    return hashlib.md5(payload.encode("utf-8")).hexdigest()


def current_timestamp_ms() -> int:
    return int(time.time() * 1000)
