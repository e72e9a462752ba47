"""Unit tests for the daily quota limiter."""
from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest

from quota_gateway.core.config import WINDOW_DURATION
from quota_gateway.services.keys import KeyRegistry
from quota_gateway.services.rate_limit import RateConfig, RateLimiter, Verdict, VerdictStatus
from quota_gateway.services.usage import UsageStore, UsageWindow

NOW = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


def _limiter(keys: list[str], limit: int = 3) -> tuple[RateLimiter, UsageStore]:
    store = UsageStore()
    return RateLimiter(KeyRegistry(keys), RateConfig(daily_limit=limit), store=store), store


def test_three_allowed_then_denied_then_rotated() -> None:
    limiter, _ = _limiter(["k1"], limit=3)

    counts = [limiter.check_and_consume("k1", NOW + timedelta(minutes=i)).count for i in range(3)]
    assert counts == [1, 2, 3]

    denied = limiter.check_and_consume("k1", NOW + timedelta(hours=1))
    assert denied.status is VerdictStatus.QUOTA_EXCEEDED
    assert denied.limit == 3
    assert denied.reset_at == NOW + WINDOW_DURATION

    later = NOW + WINDOW_DURATION + timedelta(seconds=1)
    again = limiter.check_and_consume("k1", later)
    assert again.status is VerdictStatus.ALLOWED
    assert again.count == 1
    assert again.reset_at == later + WINDOW_DURATION


def test_window_not_rotated_exactly_at_reset_time() -> None:
    limiter, _ = _limiter(["k1"], limit=1)
    assert limiter.check_and_consume("k1", NOW).allowed

    at_boundary = limiter.check_and_consume("k1", NOW + WINDOW_DURATION)
    assert at_boundary.status is VerdictStatus.QUOTA_EXCEEDED


def test_scenario_single_key_limit_one() -> None:
    limiter, _ = _limiter(["abc"], limit=1)

    first = limiter.check_and_consume("abc", NOW)
    assert first.status is VerdictStatus.ALLOWED and first.count == 1

    second = limiter.check_and_consume("abc", NOW)
    assert second.status is VerdictStatus.QUOTA_EXCEEDED
    assert second.limit == 1

    assert limiter.check_and_consume("xyz", NOW).status is VerdictStatus.INVALID_KEY
    assert limiter.check_and_consume("", NOW).status is VerdictStatus.MISSING_KEY
    assert limiter.check_and_consume(None, NOW).status is VerdictStatus.MISSING_KEY


def test_rejections_never_touch_store() -> None:
    limiter, store = _limiter(["k1"], limit=2)

    for key in ["", "nope", "K1", "k1 "]:
        verdict = limiter.check_and_consume(key, NOW)
        assert not verdict.allowed
    assert len(store) == 0

    limiter.check_and_consume("k1", NOW)
    limiter.check_and_consume("k1", NOW)
    before = store.get("k1")
    for _ in range(5):
        assert limiter.check_and_consume("k1", NOW).status is VerdictStatus.QUOTA_EXCEEDED
    assert store.get("k1") == before
    assert before is not None and before.count == 2


def test_keys_have_independent_windows() -> None:
    limiter, _ = _limiter(["a", "b"], limit=1)

    assert limiter.check_and_consume("a", NOW).allowed
    b = limiter.check_and_consume("b", NOW + timedelta(hours=5))
    assert b.allowed
    assert b.reset_at == NOW + timedelta(hours=5) + WINDOW_DURATION
    assert not limiter.check_and_consume("a", NOW + timedelta(hours=6)).allowed


def test_reset_all_rotates_every_key() -> None:
    limiter, store = _limiter(["full", "idle", "partial"], limit=3)
    for _ in range(3):
        limiter.check_and_consume("full", NOW)
    limiter.check_and_consume("partial", NOW)

    reset_time = NOW + timedelta(hours=2)
    assert limiter.reset_all(reset_time) == 3

    for key in ["full", "idle", "partial"]:
        assert store.get(key) == UsageWindow(count=0, reset_at=reset_time + WINDOW_DURATION)

    verdict = limiter.check_and_consume("full", reset_time)
    assert verdict.allowed and verdict.count == 1


def test_snapshot_does_not_consume() -> None:
    limiter, _ = _limiter(["k1"], limit=3)
    assert limiter.snapshot("unknown", NOW) is None
    empty = limiter.snapshot("k1", NOW)
    assert empty is not None and empty.count == 0 and empty.reset_at is None
    limiter.check_and_consume("k1", NOW)
    limiter.snapshot("k1", NOW)
    usage = limiter.snapshot("k1", NOW)
    assert usage is not None and usage.count == 1
    assert usage.reset_at == NOW + WINDOW_DURATION
    assert limiter.check_and_consume("k1", NOW).count == 2


def test_snapshot_reports_expired_window_as_fresh() -> None:
    limiter, _ = _limiter(["k1"], limit=3)
    limiter.check_and_consume("k1", NOW)
    usage = limiter.snapshot("k1", NOW + WINDOW_DURATION + timedelta(seconds=1))
    assert usage is not None and usage.count == 0 and usage.reset_at is None


def test_usage_report_masks_keys_and_reports_expired_as_fresh() -> None:
    long_key = "f" * 64
    limiter, _ = _limiter([long_key, "short"], limit=3)
    limiter.check_and_consume(long_key, NOW)
    limiter.check_and_consume("short", NOW - WINDOW_DURATION - timedelta(minutes=1))

    report = {u.key: u for u in limiter.usage_report(NOW)}
    assert set(report) == {"ffffffff...", "short"}
    assert report["ffffffff..."].count == 1
    assert report["ffffffff..."].reset_at == NOW + WINDOW_DURATION
    assert report["short"].count == 0
    assert report["short"].reset_at is None


def test_remaining_tracks_count() -> None:
    limiter, _ = _limiter(["k1"], limit=2)
    assert limiter.check_and_consume("k1", NOW).remaining == 1
    assert limiter.check_and_consume("k1", NOW).remaining == 0


def test_rate_config_rejects_non_positive_limit() -> None:
    with pytest.raises(ValueError):
        RateConfig(daily_limit=0)


@pytest.mark.parametrize("requests,limit", [(50, 7), (5, 10)])
def test_concurrent_checks_never_overshoot(requests: int, limit: int) -> None:
    limiter, store = _limiter(["shared"], limit=limit)
    barrier = threading.Barrier(requests)

    def _call(_: int) -> VerdictStatus:
        barrier.wait()
        return limiter.check_and_consume("shared", NOW).status

    with ThreadPoolExecutor(max_workers=requests) as pool:
        results = list(pool.map(_call, range(requests)))

    allowed = results.count(VerdictStatus.ALLOWED)
    assert allowed == min(requests, limit)
    assert results.count(VerdictStatus.QUOTA_EXCEEDED) == requests - allowed
    window = store.get("shared")
    assert window is not None and window.count == allowed


def test_reset_all_serialised_with_checks() -> None:
    limiter, store = _limiter(["a", "b"], limit=1000)
    reset_now = NOW + timedelta(hours=1)
    post_reset_expiry = reset_now + WINDOW_DURATION
    barrier = threading.Barrier(5)

    def _hammer(_: int) -> list[Verdict]:
        barrier.wait()
        return [limiter.check_and_consume("a", NOW) for _ in range(200)]

    with ThreadPoolExecutor(max_workers=4) as pool:
        futures = [pool.submit(_hammer, i) for i in range(4)]
        barrier.wait()
        limiter.reset_all(reset_now)
        verdicts = [v for f in futures for v in f.result()]

    assert all(v.allowed for v in verdicts)
    window = store.get("a")
    assert window is not None
    assert window.reset_at == post_reset_expiry
    # every check after the reset landed in the new window and nowhere else
    assert window.count == sum(1 for v in verdicts if v.reset_at == post_reset_expiry)
    stale = [v for v in verdicts if v.reset_at != post_reset_expiry]
    assert all(v.reset_at == NOW + WINDOW_DURATION for v in stale)


@pytest.mark.parametrize("status", [VerdictStatus.MISSING_KEY, VerdictStatus.INVALID_KEY])
def test_rejected_verdict_has_no_window(status: VerdictStatus) -> None:
    with pytest.raises(ValueError):
        Verdict(status, key="x").window()


def test_verdict_window_for_counted_statuses() -> None:
    limiter, _ = _limiter(["k1"], limit=1)
    allowed = limiter.check_and_consume("k1", NOW)
    denied = limiter.check_and_consume("k1", NOW)
    assert allowed.window() == (1, 1, NOW + WINDOW_DURATION)
    assert denied.window() == (1, 1, NOW + WINDOW_DURATION)
