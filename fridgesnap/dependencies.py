from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass
from typing import Any, Callable

from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict

from fridgesnap.config import Settings
from fridgesnap.models import ErrorCode
from fridgesnap.services.quota import QuotaTracker
from fridgesnap.services.scans import ScanRegistry
from fridgesnap.services.store import StateStore

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    code: str
    message: str

    model_config = ConfigDict(extra="allow")


def error_response(
    status_code: int,
    code: ErrorCode,
    message: str,
    headers: dict[str, str] | None = None,
    **extra: Any,
) -> JSONResponse:
    err = ErrorResponse(code=code.value, message=message, **extra)
    return JSONResponse(status_code=status_code, content=err.model_dump(), headers=headers)


@dataclass
class Services:
    """Per-application state shared by the request handlers."""

    settings: Settings
    store: StateStore
    quota: QuotaTracker
    scans: ScanRegistry
    clock: Callable[[], int]


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise RuntimeError("Application services not initialized")
    return services


def check_debug_secret(settings: Settings, provided: str | None) -> JSONResponse | None:
    """Return an error response unless ``provided`` matches the debug secret."""
    secret = settings.debug_secret
    if not secret:
        return error_response(404, ErrorCode.NOT_FOUND, "Not found")
    if not provided or not hmac.compare_digest(provided.encode(), secret.encode()):
        logger.warning("Rejected debug request with invalid secret")
        return error_response(401, ErrorCode.UNAUTHORIZED, "Invalid debug secret")
    return None
