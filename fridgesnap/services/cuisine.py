from __future__ import annotations

import hashlib
import random
from typing import Any, Callable, Sequence

from fridgesnap.models import Preferences

CUISINE_STYLES = (
    "Italian trattoria",
    "Japanese home cooking",
    "Mexican street food",
    "Indian regional curry house",
    "Thai night market",
    "French bistro",
    "Greek taverna",
    "Korean comfort food",
    "Levantine mezze",
    "Spanish tapas bar",
    "Vietnamese kitchen",
    "Modern American diner",
)

MEAT_KEYWORDS = (
    "meat",
    "beef",
    "steak",
    "pork",
    "bacon",
    "ham",
    "sausage",
    "lamb",
    "veal",
    "chicken",
    "turkey",
    "duck",
    "fish",
    "salmon",
    "tuna",
    "cod",
    "seafood",
    "shrimp",
    "prawn",
    "crab",
    "lobster",
    "mussel",
    "clam",
    "scallop",
    "squid",
    "octopus",
    "anchov",
)

# Hex digits of the digest used for the selection.
_DIGEST_SLICE = 8


def pick_cuisine(
    identifier: str | None,
    options: Sequence[str] = CUISINE_STYLES,
    digest: Callable[[bytes], Any] = hashlib.sha256,
) -> str:
    """Pick one option deterministically from ``identifier``."""
    if not options:
        raise ValueError("options must not be empty")
    if not identifier:
        return random.choice(list(options))
    value = int(digest(identifier.encode("utf-8")).hexdigest()[:_DIGEST_SLICE], 16)
    return options[value % len(options)]


def has_meat_signal(preferences: Preferences) -> bool:
    """Whether the free-text preferences mention meat or seafood."""
    text = " ".join(
        [
            preferences.meal_type,
            preferences.extra_ingredients_text,
            " ".join(preferences.nutrition_goals),
        ]
    ).lower()
    return any(keyword in text for keyword in MEAT_KEYWORDS)


__all__ = ["CUISINE_STYLES", "MEAT_KEYWORDS", "has_meat_signal", "pick_cuisine"]
