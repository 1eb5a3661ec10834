from __future__ import annotations

import pytest

from fridgesnap.config import Settings
from fridgesnap.services.quota import (
    WEEK_MS,
    CooldownBlocked,
    CooldownKind,
    LimitReached,
    QuotaTracker,
    normalize_week,
    week_start_ms,
)
from fridgesnap.models import UserEntitlement
from fridgesnap.services.store import MemoryStore
from tests.utils.fakes import START_MS, FakeClock, utc_ms


@pytest.fixture
def tracker(clock):
    return QuotaTracker(MemoryStore("users"), Settings(_env_file=None), clock=clock)


def test_week_start_is_previous_monday_midnight():
    assert week_start_ms(START_MS) == utc_ms(2025, 10, 6)


def test_week_start_on_boundary_is_same_day():
    monday = utc_ms(2025, 10, 13)
    assert week_start_ms(monday) == monday
    assert week_start_ms(monday - 1) == utc_ms(2025, 10, 6)


def test_week_start_custom_weekday_and_zone():
    # Sunday-based week in New York: local midnight is 04:00 UTC in October
    assert week_start_ms(START_MS, "America/New_York", 6) == utc_ms(2025, 10, 5, 4)


def test_normalize_week_resets_stale_record():
    user = UserEntitlement(
        device_id="d1",
        week_start_ms=utc_ms(2025, 9, 29),
        free_used_this_week=3,
        last_analyze_ms=5,
        last_regen_ms=7,
    )
    assert normalize_week(user, utc_ms(2025, 10, 6)) is True
    assert user.week_start_ms == utc_ms(2025, 10, 6)
    assert (user.free_used_this_week, user.last_analyze_ms, user.last_regen_ms) == (0, 0, 0)
    assert normalize_week(user, utc_ms(2025, 10, 6)) is False


def test_resolve_user_creates_default_record(tracker):
    user = tracker.resolve_user("device-a")
    assert user.is_premium is False
    assert user.free_used_this_week == 0
    assert user.week_start_ms == utc_ms(2025, 10, 6)


def test_resolve_user_twice_in_same_week_keeps_usage(tracker, clock):
    user = tracker.resolve_user("device-a")
    assert tracker.consume_free_use(user, 4) is None
    clock.advance(days=2)
    again = tracker.resolve_user("device-a")
    again = tracker.resolve_user("device-a")
    assert again.free_used_this_week == 1


def test_crossing_week_boundary_resets_usage_and_cooldowns(tracker, clock):
    user = tracker.resolve_user("device-a")
    tracker.consume_free_use(user, 4)
    tracker.check_cooldown(user, CooldownKind.ANALYZE, 30)
    tracker.check_cooldown(user, CooldownKind.REGEN, 20)
    clock.advance(days=5)
    rolled = tracker.resolve_user("device-a")
    assert rolled.free_used_this_week == 0
    assert rolled.last_analyze_ms == 0
    assert rolled.last_regen_ms == 0
    assert rolled.week_start_ms == utc_ms(2025, 10, 13)


def test_cooldown_passes_then_blocks(tracker, clock):
    user = tracker.resolve_user("device-a")
    assert tracker.check_cooldown(user, CooldownKind.ANALYZE, 30) is None
    assert user.last_analyze_ms == clock()
    blocked = tracker.check_cooldown(user, CooldownKind.ANALYZE, 30)
    assert isinstance(blocked, CooldownBlocked)
    assert blocked.retry_after_seconds == 30


def test_blocked_cooldown_does_not_move_timestamp(tracker, clock):
    user = tracker.resolve_user("device-a")
    tracker.check_cooldown(user, CooldownKind.ANALYZE, 30)
    stamped = user.last_analyze_ms
    clock.advance(seconds=29.5)
    blocked = tracker.check_cooldown(user, CooldownKind.ANALYZE, 30)
    assert blocked.retry_after_seconds == 1
    assert user.last_analyze_ms == stamped
    assert tracker.resolve_user("device-a").last_analyze_ms == stamped


def test_cooldown_expires_after_window(tracker, clock):
    user = tracker.resolve_user("device-a")
    tracker.check_cooldown(user, CooldownKind.REGEN, 20)
    clock.advance(seconds=20)
    assert tracker.check_cooldown(user, CooldownKind.REGEN, 20) is None
    assert user.last_regen_ms == clock()


def test_cooldown_kinds_are_independent(tracker):
    user = tracker.resolve_user("device-a")
    assert tracker.check_cooldown(user, CooldownKind.ANALYZE, 30) is None
    assert tracker.check_cooldown(user, CooldownKind.REGEN, 20) is None


def test_consume_free_use_limit(tracker):
    user = tracker.resolve_user("device-a")
    for _ in range(4):
        assert tracker.consume_free_use(user, 4) is None
    reached = tracker.consume_free_use(user, 4)
    assert isinstance(reached, LimitReached)
    assert reached.used_this_week == 4
    assert reached.unlock_at_ms == user.week_start_ms + WEEK_MS
    assert user.free_used_this_week == 4


def test_premium_is_never_capped(tracker):
    user = tracker.set_premium("device-p", True)
    for _ in range(10):
        assert tracker.consume_free_use(user, 4) is None
    assert user.free_used_this_week == 0


def test_refund_free_use_never_negative(tracker):
    user = tracker.resolve_user("device-a")
    tracker.consume_free_use(user, 4)
    tracker.refund_free_use(user)
    tracker.refund_free_use(user)
    assert tracker.resolve_user("device-a").free_used_this_week == 0


def test_set_premium_persists_flag(tracker):
    tracker.set_premium("device-p", True)
    assert tracker.resolve_user("device-p").is_premium is True
    tracker.set_premium("device-p", False)
    assert tracker.usage(tracker.resolve_user("device-p")).is_premium is False


def test_usage_reports_unlock_time(tracker):
    user = tracker.resolve_user("device-a")
    tracker.consume_free_use(user, 4)
    usage = tracker.usage(user)
    assert usage.used_this_week == 1
    assert usage.limit_per_week == 4
    assert usage.unlock_at_ms == utc_ms(2025, 10, 13)


def test_tracker_with_custom_clock_start():
    clock = FakeClock(utc_ms(2025, 10, 12, 23, 59))
    tracker = QuotaTracker(MemoryStore("users"), Settings(_env_file=None), clock=clock)
    assert tracker.resolve_user("x").week_start_ms == utc_ms(2025, 10, 6)
    clock.advance(seconds=60)
    assert tracker.resolve_user("x").week_start_ms == utc_ms(2025, 10, 13)
