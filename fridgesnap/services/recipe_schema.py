"""Tier-specific output schemas and parsing of generation results."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from fridgesnap.models import ErrorCode, Tier

logger = logging.getLogger(__name__)

FREE_SCHEMA_NAME = "free_recipe"
PREMIUM_SCHEMA_NAME = "premium_recipe"

FREE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "title": {"type": "string"},
        "ingredients": {"type": "array", "items": {"type": "string"}},
        "recipe": {"type": "string"},
        "noFoodDetected": {"type": "boolean"},
    },
    "required": ["title", "ingredients", "recipe", "noFoodDetected"],
}

PREMIUM_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "title": {"type": "string"},
        "ingredients": {
            "type": "array",
            "items": {
                "type": "object",
                "additionalProperties": False,
                "properties": {
                    "item": {"type": "string"},
                    "amount": {"type": "string"},
                },
                "required": ["item", "amount"],
            },
        },
        "steps": {"type": "array", "items": {"type": "string"}},
        "servings": {"type": "number"},
        "timeMinutes": {"type": "number"},
        "macros": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "calories": {"type": "number"},
                "proteinGrams": {"type": "number"},
                "carbsGrams": {"type": "number"},
                "fatGrams": {"type": "number"},
            },
            "required": ["calories", "proteinGrams", "carbsGrams", "fatGrams"],
        },
        "noFoodDetected": {"type": "boolean"},
    },
    "required": [
        "title",
        "ingredients",
        "steps",
        "servings",
        "timeMinutes",
        "macros",
        "noFoodDetected",
    ],
}

SCHEMAS: dict[Tier, tuple[str, dict[str, Any]]] = {
    Tier.FREE: (FREE_SCHEMA_NAME, FREE_SCHEMA),
    Tier.PREMIUM: (PREMIUM_SCHEMA_NAME, PREMIUM_SCHEMA),
}


class _Closed(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True, populate_by_name=True)


class FreeRecipe(_Closed):
    title: str
    ingredients: list[str]
    recipe: str
    no_food_detected: bool = Field(False, alias="noFoodDetected")


class Ingredient(_Closed):
    item: str
    amount: str


class Macros(_Closed):
    calories: float
    protein_grams: float = Field(alias="proteinGrams")
    carbs_grams: float = Field(alias="carbsGrams")
    fat_grams: float = Field(alias="fatGrams")


class PremiumRecipe(_Closed):
    title: str
    ingredients: list[Ingredient]
    steps: list[str]
    servings: Union[int, float]
    time_minutes: Union[int, float] = Field(alias="timeMinutes")
    macros: Macros
    no_food_detected: bool = Field(False, alias="noFoodDetected")


@dataclass(frozen=True)
class RecipeError:
    kind: ErrorCode
    detail: str = ""


GenerationResult = Union[FreeRecipe, PremiumRecipe, RecipeError]

_FENCE_START = re.compile(r"^\s*```[\w-]*\s*")
_FENCE_END = re.compile(r"\s*```\s*$")


def strip_code_fence(raw: str) -> str:
    """Remove a markdown code fence wrapped around the payload."""
    text = _FENCE_START.sub("", raw, count=1)
    return _FENCE_END.sub("", text, count=1).strip()


def _signals_no_food(data: dict[str, Any]) -> bool:
    return data.get("noFoodDetected") is True or data.get("error") == ErrorCode.NO_FOOD_DETECTED.value


def parse_generation(raw: str, tier: Tier) -> GenerationResult:
    """Parse model text into the tier's recipe model.

    The no-food signal wins over structural validation, so a partially filled
    object that says no food was seen is reported as ``NO_FOOD_DETECTED``.
    """
    text = strip_code_fence(raw or "")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        logger.warning("Generation output is not JSON: %s", exc)
        return RecipeError(ErrorCode.AI_BAD_OUTPUT, "output is not valid JSON")
    if not isinstance(data, dict):
        return RecipeError(ErrorCode.AI_BAD_OUTPUT, "output is not a JSON object")
    if _signals_no_food(data):
        return RecipeError(ErrorCode.NO_FOOD_DETECTED)

    model = PremiumRecipe if tier == Tier.PREMIUM else FreeRecipe
    try:
        return model.model_validate_json(text)
    except ValidationError as exc:
        message = "; ".join(
            f"{'.'.join(str(p) for p in e.get('loc', ()))}: {e.get('msg', '')}"
            for e in exc.errors()
        )
        logger.warning("Generation output failed %s validation: %s", tier.value, message)
        return RecipeError(ErrorCode.AI_BAD_OUTPUT, message)


__all__ = [
    "FREE_SCHEMA",
    "FREE_SCHEMA_NAME",
    "FreeRecipe",
    "GenerationResult",
    "Ingredient",
    "Macros",
    "PREMIUM_SCHEMA",
    "PREMIUM_SCHEMA_NAME",
    "PremiumRecipe",
    "RecipeError",
    "SCHEMAS",
    "parse_generation",
    "strip_code_fence",
]
