"""Vision-capable recipe generation using the OpenAI client."""

from __future__ import annotations

import atexit
import logging
import os
from typing import Any

import httpx
from openai import OpenAI, OpenAIError

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 60.0

_client: OpenAI | None = None
_http_client: httpx.Client | None = None


class GenerationServiceError(RuntimeError):
    """Raised when the upload or generation call fails."""


def _load_timeout() -> float:
    raw = os.environ.get("OPENAI_TIMEOUT_S")
    if not raw:
        return _DEFAULT_TIMEOUT
    try:
        value = float(raw)
    except ValueError:
        return _DEFAULT_TIMEOUT
    return value if value > 0 else _DEFAULT_TIMEOUT


def _get_client() -> OpenAI:
    """Lazily build and cache the OpenAI client."""

    global _client, _http_client
    if _client is None:
        mounts: dict[str, httpx.HTTPTransport] = {}
        http_proxy = os.environ.get("HTTP_PROXY")
        https_proxy = os.environ.get("HTTPS_PROXY")
        if http_proxy:
            mounts["http://"] = httpx.HTTPTransport(proxy=http_proxy)
        if https_proxy:
            mounts["https://"] = httpx.HTTPTransport(proxy=https_proxy)

        _http_client = httpx.Client(mounts=mounts) if mounts else None
        api_key = os.environ.get("OPENAI_API_KEY")
        if not api_key:
            raise RuntimeError("OPENAI_API_KEY environment variable is not set")
        _client = OpenAI(
            api_key=api_key,
            http_client=_http_client,
            timeout=_load_timeout(),
        )
    return _client


def _close_client() -> None:
    global _client, _http_client
    if _http_client is not None:
        _http_client.close()
    _http_client = None
    _client = None


atexit.register(_close_client)


def upload_image(path: str) -> str:
    """Upload a local image and return the file reference for generation."""
    client = _get_client()
    try:
        with open(path, "rb") as fh:
            uploaded = client.files.create(file=fh, purpose="vision")
    except OpenAIError as exc:
        logger.exception("Image upload failed")
        raise GenerationServiceError(f"Image upload failed: {exc}") from exc
    return uploaded.id


def request_recipe(
    file_id: str,
    prompt: str,
    schema_name: str,
    schema: dict[str, Any],
    *,
    model: str,
    temperature: float | None = None,
) -> str:
    """Ask the model for a recipe constrained by ``schema``; return raw text."""
    client = _get_client()
    params: dict[str, Any] = {
        "model": model,
        "input": [
            {
                "role": "user",
                "content": [
                    {"type": "input_text", "text": prompt},
                    {"type": "input_image", "file_id": file_id},
                ],
            }
        ],
        "text": {
            "format": {
                "type": "json_schema",
                "name": schema_name,
                "schema": schema,
                "strict": True,
            }
        },
    }
    if temperature is not None:
        params["temperature"] = temperature
    try:
        response = client.responses.create(**params)
    except OpenAIError as exc:
        logger.exception("Recipe generation failed")
        raise GenerationServiceError(f"Recipe generation failed: {exc}") from exc
    return response.output_text or ""


__all__ = ["GenerationServiceError", "request_recipe", "upload_image"]
