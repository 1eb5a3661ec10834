from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends, Header, Request
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from fridgesnap.dependencies import (
    ErrorResponse,
    Services,
    check_debug_secret,
    error_response,
    get_services,
)
from fridgesnap.models import ErrorCode
from fridgesnap.services.store import USERS, StorageError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/debug")


class PremiumOverride(BaseModel):
    device_id: str = Field(alias="deviceId", min_length=1)
    is_premium: bool = Field(alias="isPremium")

    model_config = ConfigDict(populate_by_name=True)


@router.post(
    "/premium",
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
)
async def set_premium(
    request: Request,
    x_debug_secret: str | None = Header(None, alias="X-Debug-Secret"),
    services: Services = Depends(get_services),
):
    denied = check_debug_secret(services.settings, x_debug_secret)
    if denied is not None:
        return denied
    try:
        body = PremiumOverride(**(await request.json()))
    except ValidationError as err:
        message = "; ".join(e.get("msg", "") for e in err.errors())
        return error_response(400, ErrorCode.BAD_REQUEST, message)
    except (ValueError, TypeError, RuntimeError):
        return error_response(400, ErrorCode.BAD_REQUEST, "invalid JSON")

    user = services.quota.set_premium(body.device_id, body.is_premium)
    try:
        await asyncio.to_thread(services.store.flush, USERS)
    except StorageError as exc:
        logger.exception("State persistence failed")
        return error_response(500, ErrorCode.STORAGE_ERROR, str(exc))
    logger.info(
        "Premium flag forced to %s", body.is_premium, extra={"device_id": body.device_id}
    )
    return {"deviceId": user.device_id, "isPremium": user.is_premium}
