"""Caller-owned cache entries with a pure freshness check."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Generic, Optional, TypeVar

from .utils import parse_duration

T = TypeVar("T")


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    data: T
    captured_at: datetime

    def age(self, now: datetime) -> timedelta:
        return now - self.captured_at


def is_fresh(entry: Optional[CacheEntry], now: datetime, ttl: timedelta | str) -> bool:
    """
    True when entry exists and is younger than ttl at time now.

    ttl may be a timedelta or a duration string such as "5m".
    """
    if entry is None:
        return False
    if isinstance(ttl, str):
        ttl = parse_duration(ttl)
    return entry.age(now) < ttl


def refresh(
    entry: Optional[CacheEntry[T]],
    now: datetime,
    ttl: timedelta | str,
    loader: Callable[[], T],
    force: bool = False
) -> tuple[CacheEntry[T], bool]:
    """
    Return a fresh entry, calling loader only when needed.

    Returns:
        Tuple of (entry, served_from_cache)
    """
    if not force and is_fresh(entry, now, ttl):
        return entry, True
    return CacheEntry(loader(), now), False
