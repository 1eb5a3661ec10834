"""Quota tracker for per-device entitlement state.

Rules:
- Free devices get ``free_weekly_limit`` analyzes per tracked week.
- Premium devices have no weekly cap but still observe cooldowns.
- The week rolls over lazily: the first lookup in a new week resets the
  counter and both cooldown stamps.
- A cooldown check that passes stamps the action time; a blocked check
  leaves the stamp alone.
"""
from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, NamedTuple
from zoneinfo import ZoneInfo

from fridgesnap.config import Settings
from fridgesnap.models import UserEntitlement
from fridgesnap.services.store import KeyValueStore

WEEK_MS = 7 * 24 * 60 * 60 * 1000


def now_ms() -> int:
    return int(time.time() * 1000)


class CooldownKind(str, Enum):
    ANALYZE = "analyze"
    REGEN = "regen"


class CooldownBlocked(NamedTuple):
    retry_after_seconds: int


class LimitReached(NamedTuple):
    used_this_week: int
    unlock_at_ms: int


class UsageInfo(NamedTuple):
    """Usage view for the current week."""
    is_premium: bool
    used_this_week: int
    limit_per_week: int
    week_start_ms: int
    unlock_at_ms: int


def week_start_ms(current_ms: int, tz: str = "UTC", weekday: int = 0) -> int:
    """Epoch ms of local midnight on the most recent ``weekday`` (0=Monday)."""
    zone = ZoneInfo(tz)
    local = datetime.fromtimestamp(current_ms / 1000, tz=timezone.utc).astimezone(zone)
    days_back = (local.weekday() - weekday) % 7
    start_date = (local - timedelta(days=days_back)).date()
    start = datetime(start_date.year, start_date.month, start_date.day, tzinfo=zone)
    return int(start.timestamp() * 1000)


def normalize_week(user: UserEntitlement, current_week_start_ms: int) -> bool:
    """Roll ``user`` over to the given week. Returns ``True`` if it changed."""
    if user.week_start_ms == current_week_start_ms:
        return False
    user.week_start_ms = current_week_start_ms
    user.free_used_this_week = 0
    user.last_analyze_ms = 0
    user.last_regen_ms = 0
    return True


class QuotaTracker:
    def __init__(
        self,
        store: KeyValueStore,
        settings: Settings,
        clock: Callable[[], int] = now_ms,
    ):
        self._store = store
        self._settings = settings
        self.clock = clock

    def current_week_start(self) -> int:
        return week_start_ms(
            self.clock(),
            self._settings.week_timezone,
            self._settings.week_start_weekday,
        )

    def save(self, user: UserEntitlement) -> None:
        self._store.set(user.device_id, user.to_dict())

    def resolve_user(self, device_id: str) -> UserEntitlement:
        """Return the device record, creating or rolling it over as needed."""
        raw = self._store.get(device_id)
        if raw is None:
            user = UserEntitlement(device_id=device_id)
            normalize_week(user, self.current_week_start())
            self.save(user)
            return user
        user = UserEntitlement.from_dict(device_id, raw)
        if normalize_week(user, self.current_week_start()):
            self.save(user)
        return user

    def check_cooldown(
        self,
        user: UserEntitlement,
        kind: CooldownKind,
        window_seconds: int,
    ) -> CooldownBlocked | None:
        """Return ``None`` and stamp the action, or the remaining wait."""
        current = self.clock()
        last = user.last_analyze_ms if kind == CooldownKind.ANALYZE else user.last_regen_ms
        elapsed = current - last
        if window_seconds > 0 and last and elapsed < window_seconds * 1000:
            retry = window_seconds - elapsed // 1000
            return CooldownBlocked(retry_after_seconds=max(1, int(retry)))
        if kind == CooldownKind.ANALYZE:
            user.last_analyze_ms = current
        else:
            user.last_regen_ms = current
        self.save(user)
        return None

    def consume_free_use(self, user: UserEntitlement, limit: int) -> LimitReached | None:
        """Count one free analyze, or report that the weekly cap is used up."""
        if user.is_premium:
            return None
        if user.free_used_this_week >= limit:
            return LimitReached(
                used_this_week=user.free_used_this_week,
                unlock_at_ms=user.week_start_ms + WEEK_MS,
            )
        user.free_used_this_week += 1
        self.save(user)
        return None

    def refund_free_use(self, user: UserEntitlement) -> None:
        if user.is_premium or user.free_used_this_week <= 0:
            return
        user.free_used_this_week -= 1
        self.save(user)

    def set_premium(self, device_id: str, is_premium: bool) -> UserEntitlement:
        user = self.resolve_user(device_id)
        user.is_premium = is_premium
        self.save(user)
        return user

    def usage(self, user: UserEntitlement) -> UsageInfo:
        return UsageInfo(
            is_premium=user.is_premium,
            used_this_week=user.free_used_this_week,
            limit_per_week=self._settings.free_weekly_limit,
            week_start_ms=user.week_start_ms,
            unlock_at_ms=user.week_start_ms + WEEK_MS,
        )


__all__ = [
    "CooldownBlocked",
    "CooldownKind",
    "LimitReached",
    "QuotaTracker",
    "UsageInfo",
    "WEEK_MS",
    "normalize_week",
    "now_ms",
    "week_start_ms",
]
