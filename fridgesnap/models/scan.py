from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Preferences:
    """Recipe preferences captured on analyze and merged on regenerate."""

    meal_type: str = ""
    extra_ingredients_text: str = ""
    nutrition_goals: list[str] = field(default_factory=list)
    time_limit: str | int = ""
    difficulty: str = ""
    equipment: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "mealType": self.meal_type,
            "extraIngredientsText": self.extra_ingredients_text,
            "nutritionGoals": list(self.nutrition_goals),
            "timeLimit": self.time_limit,
            "difficulty": self.difficulty,
            "equipment": list(self.equipment),
        }


@dataclass
class Scan:
    """One analyzed photo with its preferences and regeneration count."""

    scan_id: str
    device_id: str
    created_ms: int | None
    image_base64: str
    preferences: Preferences = field(default_factory=Preferences)
    updated_ms: int | None = None
    regen_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        data = {
            "deviceId": self.device_id,
            "createdMs": self.created_ms,
            "updatedMs": self.updated_ms,
            "imageBase64": self.image_base64,
            "regenCount": self.regen_count,
        }
        data.update(self.preferences.to_dict())
        return data

    @classmethod
    def from_dict(cls, scan_id: str, data: dict[str, Any]) -> "Scan":
        created = data.get("createdMs")
        updated = data.get("updatedMs")
        time_limit = data.get("timeLimit")
        return cls(
            scan_id=scan_id,
            device_id=str(data.get("deviceId") or ""),
            created_ms=int(created) if created is not None else None,
            updated_ms=int(updated) if updated is not None else None,
            image_base64=str(data.get("imageBase64") or ""),
            regen_count=max(0, int(data.get("regenCount") or 0)),
            preferences=Preferences(
                meal_type=data.get("mealType") or "",
                extra_ingredients_text=data.get("extraIngredientsText") or "",
                nutrition_goals=list(data.get("nutritionGoals") or []),
                time_limit=time_limit if time_limit is not None else "",
                difficulty=data.get("difficulty") or "",
                equipment=list(data.get("equipment") or []),
            ),
        )


__all__ = ["Preferences", "Scan"]
