"""Recipe generation for one scan.

Steps: pick the cuisine direction, build the tier prompt, write the stored
photo to a temp file, upload it, request a schema-constrained result, parse
and validate it, then sanitize free-tier prose. The temp file never outlives
the call.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
import tempfile

from fridgesnap.config import Settings
from fridgesnap.models import ErrorCode, Scan, Tier
from fridgesnap.services import gpt
from fridgesnap.services.cuisine import has_meat_signal, pick_cuisine
from fridgesnap.services.prompts import build_prompt
from fridgesnap.services.recipe_schema import (
    SCHEMAS,
    FreeRecipe,
    GenerationResult,
    PremiumRecipe,
    RecipeError,
    parse_generation,
)
from fridgesnap.services.sanitizer import sanitize_free_text

logger = logging.getLogger(__name__)


def decode_image(image_base64: str) -> bytes:
    """Decode a base64 photo, tolerating a ``data:`` URL prefix."""
    payload = image_base64.strip()
    if payload.startswith("data:") and "," in payload:
        payload = payload.split(",", 1)[1]
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("invalid base64 image") from exc


def _image_suffix(data: bytes) -> str:
    if data.startswith(b"\x89PNG"):
        return ".png"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return ".webp"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return ".gif"
    return ".jpg"


def _stage_image(image: bytes, tmp_dir: str) -> str:
    """Write the photo to a private temp file and return its path."""
    try:
        fd, path = tempfile.mkstemp(prefix="scan-", suffix=_image_suffix(image), dir=tmp_dir)
    except OSError as exc:
        raise gpt.GenerationServiceError(f"Could not stage image: {exc}") from exc
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(image)
    except OSError as exc:
        _remove(path)
        raise gpt.GenerationServiceError(f"Could not stage image: {exc}") from exc
    return path


def _remove(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


def finalize_free(recipe: FreeRecipe) -> FreeRecipe | RecipeError:
    title = recipe.title.strip()
    ingredients = [item.strip() for item in recipe.ingredients if item.strip()]
    text = sanitize_free_text(recipe.recipe)
    if not title or not ingredients or not any(ch.isalpha() for ch in text):
        return RecipeError(ErrorCode.AI_BAD_OUTPUT, "empty free recipe after sanitizing")
    return FreeRecipe(title=title, ingredients=ingredients, recipe=text)


def finalize_premium(recipe: PremiumRecipe) -> PremiumRecipe | RecipeError:
    if not recipe.title.strip() or not recipe.ingredients or not recipe.steps:
        return RecipeError(ErrorCode.AI_BAD_OUTPUT, "incomplete premium recipe")
    return recipe


def generate_recipe(scan: Scan, tier: Tier, settings: Settings) -> GenerationResult:
    """Produce a recipe for ``scan``.

    Raises ``GenerationServiceError`` when staging the photo or the external
    calls fail and ``ValueError`` when the stored photo cannot be decoded.
    """
    cuisine = pick_cuisine(scan.scan_id)
    prompt = build_prompt(
        tier,
        scan.preferences,
        cuisine,
        meat_signal=has_meat_signal(scan.preferences),
    )
    schema_name, schema = SCHEMAS[tier]
    temperature = (
        settings.premium_temperature if tier == Tier.PREMIUM else settings.free_temperature
    )
    image = decode_image(scan.image_base64)

    path = _stage_image(image, settings.tmp_dir)
    try:
        file_id = gpt.upload_image(path)
        raw = gpt.request_recipe(
            file_id,
            prompt,
            schema_name,
            schema,
            model=settings.openai_model,
            temperature=temperature,
        )
    finally:
        _remove(path)

    result = parse_generation(raw, tier)
    if isinstance(result, FreeRecipe):
        result = finalize_free(result)
    elif isinstance(result, PremiumRecipe):
        result = finalize_premium(result)
    if isinstance(result, RecipeError):
        logger.warning(
            "Generation rejected: %s %s",
            result.kind.value,
            result.detail,
            extra={"scan_id": scan.scan_id, "code": result.kind.value},
        )
    else:
        logger.info(
            "Recipe generated (%s, %s)",
            tier.value,
            cuisine,
            extra={"scan_id": scan.scan_id},
        )
    return result


__all__ = ["decode_image", "finalize_free", "finalize_premium", "generate_recipe"]
