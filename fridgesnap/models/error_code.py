from enum import Enum


class ErrorCode(str, Enum):
    """Machine-readable error kinds returned in API error payloads."""

    BAD_REQUEST = "BAD_REQUEST"
    IMAGE_TOO_LARGE = "IMAGE_TOO_LARGE"
    FREE_LIMIT_REACHED = "FREE_LIMIT_REACHED"
    TOO_MANY_REQUESTS = "TOO_MANY_REQUESTS"
    NO_FOOD_DETECTED = "NO_FOOD_DETECTED"
    AI_BAD_OUTPUT = "AI_BAD_OUTPUT"
    SCAN_NOT_FOUND = "SCAN_NOT_FOUND"
    SCAN_FORBIDDEN = "SCAN_FORBIDDEN"
    REGEN_LIMIT_REACHED = "REGEN_LIMIT_REACHED"
    GENERATION_FAILED = "GENERATION_FAILED"
    STORAGE_ERROR = "STORAGE_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_FOUND = "NOT_FOUND"


__all__ = ["ErrorCode"]
