from __future__ import annotations

import logging
from typing import Any, Callable
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictInt,
    StrictStr,
    ValidationError,
    field_validator,
)

from fridgesnap.models import Preferences, Scan
from fridgesnap.services.quota import now_ms
from fridgesnap.services.store import KeyValueStore

logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000


class PreferenceUpdate(BaseModel):
    """Preference fields of a request body.

    A field that is present but has the wrong type is treated as absent,
    so it never overwrites a stored value.
    """

    meal_type: StrictStr | None = Field(None, alias="mealType")
    extra_ingredients_text: StrictStr | None = Field(None, alias="extraIngredientsText")
    nutrition_goals: list[StrictStr] | None = Field(None, alias="nutritionGoals")
    time_limit: StrictStr | StrictInt | None = Field(None, alias="timeLimit")
    difficulty: StrictStr | None = Field(None, alias="difficulty")
    equipment: list[StrictStr] | None = Field(None, alias="equipment")

    model_config = ConfigDict(strict=True, extra="ignore", populate_by_name=True)

    @field_validator(
        "meal_type",
        "extra_ingredients_text",
        "nutrition_goals",
        "time_limit",
        "difficulty",
        "equipment",
        mode="wrap",
    )
    @classmethod
    def _drop_invalid(cls, value: Any, handler):
        try:
            return handler(value)
        except ValidationError:
            return None

    def preference_values(self) -> dict[str, Any]:
        """Valid preference fields keyed by ``Preferences`` attribute."""
        return self.model_dump(
            include=set(PreferenceUpdate.model_fields),
            exclude_unset=True,
            exclude_none=True,
        )


def extract_preferences(payload: dict[str, Any]) -> dict[str, Any]:
    """Keep only preference fields that are present and correctly typed."""
    return PreferenceUpdate.model_validate(payload).preference_values()


class ScanRegistry:
    """Owns scan records keyed by generated identifier."""

    def __init__(self, store: KeyValueStore, clock: Callable[[], int] = now_ms):
        self._store = store
        self.clock = clock

    def create(
        self,
        device_id: str,
        preferences: Preferences,
        image_base64: str,
    ) -> str:
        scan_id = uuid4().hex
        scan = Scan(
            scan_id=scan_id,
            device_id=device_id,
            created_ms=self.clock(),
            image_base64=image_base64,
            preferences=preferences,
            regen_count=0,
        )
        self.save(scan)
        return scan_id

    def get(self, scan_id: str) -> Scan | None:
        raw = self._store.get(scan_id)
        if raw is None:
            return None
        return Scan.from_dict(scan_id, raw)

    def save(self, scan: Scan) -> None:
        self._store.set(scan.scan_id, scan.to_dict())

    def discard(self, scan_id: str) -> None:
        self._store.delete(scan_id)

    @staticmethod
    def authorize(scan: Scan | None, device_id: str) -> bool:
        """Return ``True`` only when ``device_id`` owns ``scan``."""
        if scan is None or not device_id:
            return False
        return scan.device_id == device_id

    def apply_regen_update(
        self, scan: Scan, partial: PreferenceUpdate | dict[str, Any]
    ) -> None:
        """Overwrite the preference fields present and valid in ``partial``."""
        if not isinstance(partial, PreferenceUpdate):
            partial = PreferenceUpdate.model_validate(partial)
        for attr, value in partial.preference_values().items():
            setattr(scan.preferences, attr, value)
        scan.updated_ms = self.clock()
        self.save(scan)

    def bump_regen_count(self, scan: Scan, is_premium: bool) -> None:
        if is_premium:
            return
        scan.regen_count += 1
        scan.updated_ms = self.clock()
        self.save(scan)

    def sweep_expired(self, current_ms: int, retention_days: int) -> int:
        """Evict scans created before the retention horizon."""
        cutoff = current_ms - retention_days * DAY_MS
        expired = [
            scan_id
            for scan_id, raw in self._store.list()
            if not isinstance(raw.get("createdMs"), int) or raw["createdMs"] < cutoff
        ]
        for scan_id in expired:
            self._store.delete(scan_id)
        if expired:
            logger.info("Evicted %d expired scans", len(expired))
        return len(expired)


__all__ = ["DAY_MS", "PreferenceUpdate", "ScanRegistry", "extract_preferences"]
