"""Text pipeline that removes numbers and measurements from free-tier prose.

The free tier promises recipes without quantities. The prompt asks the model
for that, but the pipeline below is what guarantees it.
"""

from __future__ import annotations

import re
from typing import Callable

UNIT_WORDS = (
    "cups?",
    "tablespoons?",
    "tbsps?",
    "tbs",
    "teaspoons?",
    "tsps?",
    "ounces?",
    "oz",
    "fl",
    "pounds?",
    "lbs?",
    "grams?",
    "g",
    "kg",
    "kilograms?",
    "mg",
    "milligrams?",
    "ml",
    "milliliters?",
    "millilitres?",
    "l",
    "liters?",
    "litres?",
    "pints?",
    "quarts?",
    "qts?",
    "gallons?",
    "cm",
    "mm",
    "inch(?:es)?",
    "minutes?",
    "mins?",
    "hours?",
    "hrs?",
    "seconds?",
    "secs?",
    "degrees?",
    "fahrenheit",
    "celsius",
)

_LIST_NUMBERING = re.compile(
    r"^\s*(?:step\s*\d+\s*[:.)\-]?|\d+\s*[.):\-]|[a-z]\)|[-*•])\s*",
    re.IGNORECASE,
)
_TEMPERATURE = re.compile(
    r"\d*\s*°\s*(?:[CF](?![A-Za-z]))?|\d+(?:[.,]\d+)?\s*[CF]\b",
    re.IGNORECASE,
)
_NUMBERS = re.compile(r"\d+(?:[.,/]\d+)*|[¼-¾⅐-⅞]")
_UNITS = re.compile(r"\b(?:" + "|".join(UNIT_WORDS) + r")\b\.?", re.IGNORECASE)
_DANGLING = re.compile(r"(?<!\w)[-–/x](?!\w)")
_SPACES = re.compile(r"\s+")
_SPACE_BEFORE_PUNCT = re.compile(r"\s+([,.;:!?])")
_REPEATED_PUNCT = re.compile(r"([,;:])(?:\s*[,;:])+")


def strip_list_numbering(text: str) -> str:
    return "\n".join(_LIST_NUMBERING.sub("", line) for line in text.splitlines())


def strip_temperatures(text: str) -> str:
    return _TEMPERATURE.sub(" ", text)


def strip_numbers(text: str) -> str:
    return _NUMBERS.sub(" ", text)


def strip_units(text: str) -> str:
    return _UNITS.sub(" ", text)


def collapse_whitespace(text: str) -> str:
    text = _DANGLING.sub(" ", text)
    text = _SPACES.sub(" ", text)
    text = _SPACE_BEFORE_PUNCT.sub(r"\1", text)
    text = _REPEATED_PUNCT.sub(r"\1", text)
    return text.strip().lstrip(",.;:!? ").rstrip(",;: ")


SANITIZE_STEPS: tuple[Callable[[str], str], ...] = (
    strip_list_numbering,
    strip_temperatures,
    strip_numbers,
    strip_units,
    collapse_whitespace,
)


def sanitize_free_text(text: str, steps=SANITIZE_STEPS) -> str:
    for step in steps:
        text = step(text)
    return text


__all__ = [
    "SANITIZE_STEPS",
    "UNIT_WORDS",
    "collapse_whitespace",
    "sanitize_free_text",
    "strip_list_numbering",
    "strip_numbers",
    "strip_temperatures",
    "strip_units",
]
