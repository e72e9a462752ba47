"""In-memory daily quota limiter keyed by provider key.

Each key owns a fixed window that starts on first use and lasts
``RateConfig.window``. Expired windows are rotated lazily on the next check;
there is no background timer. Rejected attempts never count towards usage.
"""
from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from quota_gateway.core.config import WINDOW_DURATION
from quota_gateway.services.keys import KeyRegistry, mask_key
from quota_gateway.services.usage import UsageStore, UsageWindow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateConfig:
    daily_limit: int
    window: timedelta = WINDOW_DURATION

    def __post_init__(self) -> None:
        if self.daily_limit < 1:
            raise ValueError("daily_limit must be positive")


class VerdictStatus(str, enum.Enum):
    ALLOWED = "allowed"
    MISSING_KEY = "missing_key"
    INVALID_KEY = "invalid_key"
    QUOTA_EXCEEDED = "quota_exceeded"


@dataclass(frozen=True, slots=True)
class Verdict:
    status: VerdictStatus
    key: str = ""
    count: int | None = None
    limit: int | None = None
    reset_at: datetime | None = None

    @property
    def allowed(self) -> bool:
        return self.status is VerdictStatus.ALLOWED

    @property
    def remaining(self) -> int | None:
        if self.limit is None or self.count is None:
            return None
        return max(0, self.limit - self.count)

    def window(self) -> tuple[int, int, datetime]:
        """Count, limit and expiry; only ALLOWED and QUOTA_EXCEEDED carry them."""

        if self.count is None or self.limit is None or self.reset_at is None:
            raise ValueError(f"{self.status.value} verdict has no usage window")
        return self.count, self.limit, self.reset_at


@dataclass(frozen=True, slots=True)
class KeyUsage:
    key: str
    count: int
    limit: int
    reset_at: datetime | None


class RateLimiter:
    def __init__(
        self,
        registry: KeyRegistry,
        config: RateConfig,
        store: UsageStore | None = None,
    ) -> None:
        self._registry = registry
        self._config = config
        self._store = store if store is not None else UsageStore()
        self._lock = threading.Lock()

    @property
    def config(self) -> RateConfig:
        return self._config

    @property
    def registry(self) -> KeyRegistry:
        return self._registry

    def _fresh(self, now: datetime) -> UsageWindow:
        return UsageWindow(count=0, reset_at=now + self._config.window)

    def check_and_consume(self, key: str | None, now: datetime) -> Verdict:
        """Decide whether ``key`` may make one more request at ``now``."""

        if not key:
            return Verdict(VerdictStatus.MISSING_KEY)
        if not self._registry.is_valid(key):
            return Verdict(VerdictStatus.INVALID_KEY, key=key)

        limit = self._config.daily_limit
        with self._lock:
            window = self._store.get(key)
            if window is None or window.expired(now):
                window = self._fresh(now)
                self._store.put(key, window)
            if window.count >= limit:
                # deny; the rejected attempt is not counted
                return Verdict(
                    VerdictStatus.QUOTA_EXCEEDED,
                    key=key,
                    count=window.count,
                    limit=limit,
                    reset_at=window.reset_at,
                )
            window = replace(window, count=window.count + 1)
            self._store.put(key, window)
        return Verdict(
            VerdictStatus.ALLOWED,
            key=key,
            count=window.count,
            limit=limit,
            reset_at=window.reset_at,
        )

    def reset_all(self, now: datetime) -> int:
        """Start a fresh window for every registered key, expired or not."""

        with self._lock:
            for key in self._registry:
                self._store.put(key, self._fresh(now))
            total = len(self._registry)
        logger.info("Reset usage windows for %d keys", total)
        return total

    def _usage_for(self, key: str, now: datetime) -> KeyUsage:
        limit = self._config.daily_limit
        window = self._store.get(key)
        if window is None or window.expired(now):
            return KeyUsage(key=mask_key(key), count=0, limit=limit, reset_at=None)
        return KeyUsage(key=mask_key(key), count=window.count, limit=limit, reset_at=window.reset_at)

    def snapshot(self, key: str, now: datetime) -> KeyUsage | None:
        """Usage of one registered key without consuming quota.

        Returns None for keys outside the registry; expired windows report as fresh.
        """
        if not self._registry.is_valid(key):
            return None
        with self._lock:
            return self._usage_for(key, now)

    def usage_report(self, now: datetime) -> list[KeyUsage]:
        """Current usage per registered key; expired windows report as fresh."""

        with self._lock:
            return [self._usage_for(key, now) for key in self._registry]


__all__ = ["KeyUsage", "RateConfig", "RateLimiter", "Verdict", "VerdictStatus"]
