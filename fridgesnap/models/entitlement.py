from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class Tier(str, Enum):
    FREE = "free"
    PREMIUM = "premium"


@dataclass
class UserEntitlement:
    """Per-device entitlement state, persisted under the device identifier."""

    device_id: str
    is_premium: bool = False
    week_start_ms: int = 0
    free_used_this_week: int = 0
    last_analyze_ms: int = 0
    last_regen_ms: int = 0

    @property
    def tier(self) -> Tier:
        return Tier.PREMIUM if self.is_premium else Tier.FREE

    def to_dict(self) -> dict[str, Any]:
        return {
            "isPremium": self.is_premium,
            "weekStartMs": self.week_start_ms,
            "freeUsedThisWeek": self.free_used_this_week,
            "lastAnalyzeMs": self.last_analyze_ms,
            "lastRegenMs": self.last_regen_ms,
        }

    @classmethod
    def from_dict(cls, device_id: str, data: dict[str, Any]) -> "UserEntitlement":
        return cls(
            device_id=device_id,
            is_premium=bool(data.get("isPremium", False)),
            week_start_ms=int(data.get("weekStartMs") or 0),
            free_used_this_week=max(0, int(data.get("freeUsedThisWeek") or 0)),
            last_analyze_ms=max(0, int(data.get("lastAnalyzeMs") or 0)),
            last_regen_ms=max(0, int(data.get("lastRegenMs") or 0)),
        )


__all__ = ["Tier", "UserEntitlement"]
