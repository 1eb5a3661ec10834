from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, TypeVar

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import Field, ValidationError, ValidationInfo, field_validator

from fridgesnap.dependencies import ErrorResponse, Services, error_response, get_services
from fridgesnap.metrics import (
    generation_failures_total,
    generation_latency_seconds,
    quota_reject_total,
    recipe_requests_total,
    scans_evicted_total,
)
from fridgesnap.models import ErrorCode, Preferences, Scan, Tier, UserEntitlement
from fridgesnap.services.quota import CooldownKind
from fridgesnap.services.recipe_generator import decode_image, generate_recipe
from fridgesnap.services.recipe_schema import GenerationResult, PremiumRecipe, RecipeError
from fridgesnap.services.scans import PreferenceUpdate
from fridgesnap.services.store import SCANS, USERS, StorageError

logger = logging.getLogger(__name__)

router = APIRouter()

_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    413: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


class _DeviceRequest(PreferenceUpdate):
    device_id: str = Field(alias="deviceId")

    @field_validator("device_id", "image_base64", "scan_id", check_fields=False)
    @classmethod
    def _not_blank(cls, value: str, info: ValidationInfo) -> str:
        value = value.strip()
        if not value:
            raise ValueError(f"{cls.model_fields[info.field_name].alias} must not be blank")
        return value


class AnalyzeRequest(_DeviceRequest):
    image_base64: str = Field(alias="imageBase64")


class RegenerateRequest(_DeviceRequest):
    scan_id: str = Field(alias="scanId")


_Body = TypeVar("_Body", AnalyzeRequest, RegenerateRequest)


class _RequestError(Exception):
    def __init__(self, response: JSONResponse):
        self.response = response


def _fail(status_code: int, code: ErrorCode, message: str, **extra: Any) -> _RequestError:
    headers = None
    if "retryAfterSeconds" in extra:
        headers = {"Retry-After": str(extra["retryAfterSeconds"])}
    return _RequestError(error_response(status_code, code, message, headers=headers, **extra))


async def _read_body(request: Request, model: type[_Body]) -> _Body:
    try:
        payload = await request.json()
    except (json.JSONDecodeError, ValueError, RuntimeError) as exc:
        raise _fail(400, ErrorCode.BAD_REQUEST, "invalid JSON") from exc
    try:
        return model.model_validate(payload)
    except ValidationError as err:
        message = "; ".join(e.get("msg", "") for e in err.errors())
        raise _fail(400, ErrorCode.BAD_REQUEST, message) from err


def _check_image(image_base64: str, max_bytes: int) -> None:
    if len(image_base64) > ((max_bytes + 2) // 3) * 4 + 256:
        raise _fail(413, ErrorCode.IMAGE_TOO_LARGE, "image too large")
    try:
        contents = decode_image(image_base64)
    except ValueError as exc:
        raise _fail(400, ErrorCode.BAD_REQUEST, "invalid base64") from exc
    if not contents:
        raise _fail(400, ErrorCode.BAD_REQUEST, "imageBase64 is empty")
    if len(contents) > max_bytes:
        raise _fail(413, ErrorCode.IMAGE_TOO_LARGE, "image too large")


async def _persist(services: Services, *namespaces: str) -> None:
    await asyncio.to_thread(services.store.flush, *namespaces)


async def _sweep(services: Services) -> None:
    evicted = services.scans.sweep_expired(
        services.clock(), services.settings.scan_retention_days
    )
    if evicted:
        scans_evicted_total.inc(evicted)
        await _persist(services, SCANS)


async def _generate(services: Services, scan: Scan, tier: Tier) -> GenerationResult:
    start = time.perf_counter()
    try:
        result = await asyncio.to_thread(generate_recipe, scan, tier, services.settings)
    except (RuntimeError, ValueError, OSError) as exc:
        generation_failures_total.labels("service").inc()
        logger.exception("Recipe generation error", extra={"scan_id": scan.scan_id})
        raise _fail(500, ErrorCode.GENERATION_FAILED, str(exc) or "generation failed") from exc
    finally:
        generation_latency_seconds.observe(time.perf_counter() - start)

    if isinstance(result, RecipeError):
        generation_failures_total.labels(result.kind.value.lower()).inc()
        if result.kind == ErrorCode.NO_FOOD_DETECTED:
            raise _fail(422, ErrorCode.NO_FOOD_DETECTED, "No food detected in the photo")
        raise _fail(500, ErrorCode.AI_BAD_OUTPUT, result.detail or "Invalid model output")
    return result


def _recipe_payload(
    result: GenerationResult,
    scan: Scan,
    user: UserEntitlement,
    services: Services,
) -> dict[str, Any]:
    body = result.model_dump(by_alias=True, exclude={"no_food_detected"})
    if isinstance(result, PremiumRecipe):
        return {"tier": Tier.PREMIUM.value, "scanId": scan.scan_id, **body}
    settings = services.settings
    return {
        "tier": Tier.FREE.value,
        "scanId": scan.scan_id,
        **body,
        "regenCount": scan.regen_count,
        "regensRemaining": max(0, settings.free_regen_limit - scan.regen_count),
        "usedThisWeek": user.free_used_this_week,
        "limitPerWeek": settings.free_weekly_limit,
    }


async def _analyze(services: Services, body: AnalyzeRequest) -> dict[str, Any]:
    settings = services.settings
    device_id = body.device_id
    image_base64 = body.image_base64
    _check_image(image_base64, settings.max_image_bytes)

    await _sweep(services)
    quota = services.quota
    user = quota.resolve_user(device_id)

    window = (
        settings.premium_analyze_cooldown_s if user.is_premium else settings.analyze_cooldown_s
    )
    blocked = quota.check_cooldown(user, CooldownKind.ANALYZE, window)
    if blocked:
        await _persist(services, USERS)
        quota_reject_total.labels("cooldown").inc()
        logger.info("Analyze cooldown active", extra={"device_id": device_id})
        raise _fail(
            429,
            ErrorCode.TOO_MANY_REQUESTS,
            "Please wait before analyzing another photo",
            retryAfterSeconds=blocked.retry_after_seconds,
        )

    limit = quota.consume_free_use(user, settings.free_weekly_limit)
    if limit:
        await _persist(services, USERS)
        quota_reject_total.labels("weekly_limit").inc()
        logger.info("Weekly free limit reached", extra={"device_id": device_id})
        raise _fail(
            403,
            ErrorCode.FREE_LIMIT_REACHED,
            "Free weekly limit reached",
            usedThisWeek=limit.used_this_week,
            limitPerWeek=settings.free_weekly_limit,
            unlockAtMs=limit.unlock_at_ms,
        )

    preferences = Preferences(**body.preference_values())
    scan_id = services.scans.create(device_id, preferences, image_base64)
    await _persist(services)
    scan = services.scans.get(scan_id)
    try:
        result = await _generate(services, scan, user.tier)
    except _RequestError:
        services.scans.discard(scan_id)
        user = quota.resolve_user(device_id)
        quota.refund_free_use(user)
        await _persist(services)
        raise
    return _recipe_payload(result, scan, user, services)


async def _regenerate(services: Services, body: RegenerateRequest) -> dict[str, Any]:
    settings = services.settings
    device_id = body.device_id
    scan_id = body.scan_id

    await _sweep(services)
    scan = services.scans.get(scan_id)
    if scan is None:
        raise _fail(404, ErrorCode.SCAN_NOT_FOUND, "Scan not found")
    if not services.scans.authorize(scan, device_id):
        logger.warning("Regeneration by non-owner", extra={"device_id": device_id, "scan_id": scan_id})
        raise _fail(403, ErrorCode.SCAN_FORBIDDEN, "Scan belongs to another device")

    quota = services.quota
    user = quota.resolve_user(device_id)
    if not user.is_premium and scan.regen_count >= settings.free_regen_limit:
        await _persist(services, USERS)
        quota_reject_total.labels("regen_limit").inc()
        raise _fail(
            403,
            ErrorCode.REGEN_LIMIT_REACHED,
            "Free scans can be regenerated only once",
            regenCount=scan.regen_count,
            regenLimit=settings.free_regen_limit,
        )

    blocked = quota.check_cooldown(user, CooldownKind.REGEN, settings.regen_cooldown_s)
    if blocked:
        await _persist(services, USERS)
        quota_reject_total.labels("cooldown").inc()
        raise _fail(
            429,
            ErrorCode.TOO_MANY_REQUESTS,
            "Please wait before regenerating",
            retryAfterSeconds=blocked.retry_after_seconds,
        )

    services.scans.apply_regen_update(scan, body)
    await _persist(services)

    result = await _generate(services, scan, user.tier)
    if services.scans.get(scan.scan_id) is not None:
        services.scans.bump_regen_count(scan, user.is_premium)
        await _persist(services, SCANS)
    return _recipe_payload(result, scan, user, services)


async def _handle(
    request: Request,
    services: Services,
    endpoint: str,
    model: type[_Body],
    handler,
) -> Any:
    recipe_requests_total.labels(endpoint).inc()
    try:
        body = await _read_body(request, model)
        return await handler(services, body)
    except _RequestError as err:
        return err.response
    except StorageError as exc:
        logger.exception("State persistence failed")
        return error_response(500, ErrorCode.STORAGE_ERROR, str(exc))


@router.post("/analyze", responses=_ERROR_RESPONSES)
async def analyze(request: Request, services: Services = Depends(get_services)):
    return await _handle(request, services, "analyze", AnalyzeRequest, _analyze)


@router.post(
    "/regenerate",
    responses={**_ERROR_RESPONSES, 404: {"model": ErrorResponse}},
)
async def regenerate(request: Request, services: Services = Depends(get_services)):
    return await _handle(request, services, "regenerate", RegenerateRequest, _regenerate)


@router.get("/limits", responses={400: {"model": ErrorResponse}})
async def get_limits(
    device_id: str | None = Query(None, alias="deviceId"),
    services: Services = Depends(get_services),
):
    if not device_id or not device_id.strip():
        return error_response(400, ErrorCode.BAD_REQUEST, "deviceId is required")
    user = services.quota.resolve_user(device_id.strip())
    try:
        await _persist(services, USERS)
    except StorageError as exc:
        logger.exception("State persistence failed")
        return error_response(500, ErrorCode.STORAGE_ERROR, str(exc))
    usage = services.quota.usage(user)
    return {
        "isPremium": usage.is_premium,
        "usedThisWeek": usage.used_this_week,
        "limitPerWeek": usage.limit_per_week,
        "weekStartMs": usage.week_start_ms,
        "unlockAtMs": usage.unlock_at_ms,
    }
