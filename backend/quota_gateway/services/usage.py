"""In-memory usage windows keyed by provider key."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class UsageWindow:
    count: int
    reset_at: datetime

    def expired(self, now: datetime) -> bool:
        return now > self.reset_at


class UsageStore:
    """Plain mapping of key -> window.

    Not synchronised; the rate limiter serialises every access.
    """

    def __init__(self) -> None:
        self._windows: dict[str, UsageWindow] = {}

    def get(self, key: str) -> UsageWindow | None:
        return self._windows.get(key)

    def put(self, key: str, window: UsageWindow) -> None:
        self._windows[key] = window

    def __len__(self) -> int:
        return len(self._windows)
