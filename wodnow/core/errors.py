"""
wodnow/core/errors.py — API error taxonomy and the JSON error envelope
Every failure the API reports is an ApiError; main.py renders it as
{"error": {"code", "message", "details"?}}.
"""
from __future__ import annotations

from typing import Any, Optional

from fastapi import status


class ApiError(Exception):
    """Base error carrying the HTTP status, machine code and client message."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"
    message: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[list[dict[str, str]]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        self.message = message or self.message
        self.details = details or []
        self.headers = dict(headers or {})
        super().__init__(self.message)

    def to_body(self) -> dict[str, Any]:
        error: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            error["details"] = self.details
        return {"error": error}


# ──────────────────────────────────────────────────────────────────────────────
# Client errors
# ──────────────────────────────────────────────────────────────────────────────

class ValidationError(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "BAD_REQUEST"
    message = "Bad request"


class Unauthorized(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHORIZED"
    message = "Missing or invalid admin API key"


class BotBlocked(ApiError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "BOT_BLOCKED"
    message = "Request blocked by abuse protections"


class NotFoundError(ApiError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"
    message = "Not found"


class PayloadTooLarge(ApiError):
    status_code = status.HTTP_413_CONTENT_TOO_LARGE
    code = "PAYLOAD_TOO_LARGE"
    message = "Request payload exceeds maximum allowed size"


class UriTooLong(ApiError):
    status_code = status.HTTP_414_URI_TOO_LONG
    code = "URI_TOO_LONG"
    message = "Request URL is too long"


class RateLimited(ApiError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "RATE_LIMITED"
    message = "Too many requests. Please retry later."


class AdminLocked(ApiError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "ADMIN_LOCKED"
    message = "Too many invalid admin authentication attempts. Please retry later."


# ──────────────────────────────────────────────────────────────────────────────
# Server-side errors — generic messages only, details go to the log
# ──────────────────────────────────────────────────────────────────────────────

class RequestTimeout(ApiError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "REQUEST_TIMEOUT"
    message = "Request timed out. Please retry."


class StorageError(ApiError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "INTERNAL_ERROR"
    message = "Internal server error"


class InvalidStoredPayload(ApiError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "INTERNAL_ERROR"
    message = "Stored workout payload is invalid"
