"""Device id generation and batching helpers."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TypeVar

T = TypeVar("T")


def generate_device_ids(count: int, prefix: str = "SN-", width: int = 3) -> list[str]:
    """Serial numbers like SN-000 .. SN-499, in order."""
    if count < 0:
        raise ValueError(f"Device count must be >= 0, got {count}")
    return [f"{prefix}{index:0{width}d}" for index in range(count)]


def chunk(items: Sequence[T], size: int) -> list[list[T]]:
    """Split items into contiguous batches of at most ``size``."""
    if size < 1:
        raise ValueError(f"Batch size must be >= 1, got {size}")
    return [list(items[start : start + size]) for start in range(0, len(items), size)]
