"""Prompt text for the recipe generation call."""

from __future__ import annotations

from fridgesnap.models import Preferences, Tier

_PERSONA = (
    "You are a professional chef who cooks from whatever is on hand. "
    "Look at the photo and build a dish around the food you can see."
)

_STYLE_RULES = (
    "Flavor rules:\n"
    "- Layer flavor: build a savory base, add acidity to brighten, finish with "
    "fresh herbs, crunch or heat.\n"
    "- Season at every stage, not only at the end.\n"
    "- Prefer one confident dish over a list of loose ideas.\n"
    "- Basic pantry staples (oil, salt, pepper, water) may be assumed."
)

_NO_FOOD_RULE = (
    "Set noFoodDetected to true ONLY if you are VERY confident the photo "
    "contains no food or cooking ingredients at all (for example a blank wall, "
    "a person, a screenshot). Packaging, partially visible items, blurry or "
    "dark photos of food still count as food: in that case set noFoodDetected "
    "to false and cook with what you can identify."
)

_FREE_FORMAT = (
    "Return a short recipe as JSON with fields title, ingredients, recipe and "
    "noFoodDetected.\n"
    "- ingredients: plain ingredient names only, no amounts.\n"
    "- recipe: exactly ONE paragraph of prose describing how to cook the dish.\n"
    "- Do NOT use any digits, numbers, fractions, temperatures, times or units "
    "of measure anywhere in the text. Describe doneness by look, smell and "
    "texture instead."
)

_PREMIUM_FORMAT = (
    "Return a complete structured recipe as JSON with fields title, "
    "ingredients, steps, servings, timeMinutes, macros and noFoodDetected.\n"
    "- ingredients: objects with item and amount (use precise quantities).\n"
    "- steps: ordered, one action per step, include times and temperatures.\n"
    "- servings: number of portions.\n"
    "- timeMinutes: total active plus passive time in minutes.\n"
    "- macros: per-serving estimates of calories, proteinGrams, carbsGrams and "
    "fatGrams."
)

_MEAT_EMPHASIS = (
    "The user mentioned meat or seafood: make the protein the centerpiece, "
    "cook it to a safe doneness and build the sauce from its fond or juices."
)


def render_preferences(preferences: Preferences) -> str:
    """Render stored preferences as a bullet block for the prompt."""
    lines = []
    if preferences.meal_type:
        lines.append(f"- Meal type: {preferences.meal_type}")
    if preferences.extra_ingredients_text:
        lines.append(f"- Extra ingredients available: {preferences.extra_ingredients_text}")
    if preferences.nutrition_goals:
        lines.append(f"- Nutrition goals: {', '.join(preferences.nutrition_goals)}")
    if preferences.time_limit not in ("", None):
        lines.append(f"- Time limit: {preferences.time_limit}")
    if preferences.difficulty:
        lines.append(f"- Difficulty: {preferences.difficulty}")
    if preferences.equipment:
        lines.append(f"- Available equipment: {', '.join(preferences.equipment)}")
    if not lines:
        return "User preferences: none given."
    return "User preferences:\n" + "\n".join(lines)


def build_prompt(
    tier: Tier,
    preferences: Preferences,
    cuisine: str,
    meat_signal: bool = False,
) -> str:
    parts = [
        _PERSONA,
        f"Cuisine direction for this dish: {cuisine}.",
        _STYLE_RULES,
    ]
    if meat_signal:
        parts.append(_MEAT_EMPHASIS)
    parts.append(render_preferences(preferences))
    parts.append(_PREMIUM_FORMAT if tier == Tier.PREMIUM else _FREE_FORMAT)
    parts.append(_NO_FOOD_RULE)
    return "\n\n".join(parts)


__all__ = ["build_prompt", "render_preferences"]
