"""
wodnow/core/abuse_protection.py — Request gate run before every API handler
Checks, in order, short-circuiting on the first failure:
  1. URL length                      → 414 URI_TOO_LONG
  2. scanner UA / attack substrings  → 403 BOT_BLOCKED
  3. body size (admin only)          → 413 PAYLOAD_TOO_LARGE
  4. admin lockout (admin only)      → 429 ADMIN_LOCKED
  5. fixed-window rate limit         → 429 RATE_LIMITED
Passing requests get a GateDecision whose headers are attached to the
eventual response by the middleware in main.py.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Request

from wodnow.config import Settings
from wodnow.core import logging as app_logging
from wodnow.core.auth import AdminLockout
from wodnow.core.errors import (
    AdminLocked,
    ApiError,
    BotBlocked,
    PayloadTooLarge,
    RateLimited,
    UriTooLong,
    ValidationError,
)
from wodnow.core.rate_limiter import RateLimiter

UNKNOWN_CLIENT = "unknown"
MAX_CLIENT_ID_LENGTH = 128

# Checked in priority order; the first present header wins.
CLIENT_IP_HEADERS = (
    "x-vercel-forwarded-for",
    "x-forwarded-for",
    "cf-connecting-ip",
    "x-real-ip",
)

SUSPICIOUS_USER_AGENT_TOKENS = (
    "sqlmap",
    "nikto",
    "masscan",
    "nmap",
    "acunetix",
    "nessus",
    "zgrab",
    "gobuster",
    "dirbuster",
    "ffuf",
)

SUSPICIOUS_URL_TOKENS = (
    "../",
    "..%2f",
    "<script",
    "union%20select",
    "or%201=1",
    "%00",
    "/.env",
    "/wp-admin",
    "/phpmyadmin",
)


@dataclass(frozen=True)
class GateDecision:
    client_key: str
    rate_limit_headers: dict[str, str] = field(default_factory=dict)


# ──────────────────────────────────────────────────────────────────────────────
# Request inspection helpers
# ──────────────────────────────────────────────────────────────────────────────

def get_client_ip(request: Request) -> str:
    """
    First proxy-forwarded address, truncated. Requests with no forwarding
    headers all share the "unknown" bucket.
    """
    for header in CLIENT_IP_HEADERS:
        candidate = request.headers.get(header)
        if not candidate:
            continue
        ip = candidate.split(",")[0].strip()[:MAX_CLIENT_ID_LENGTH]
        return ip or UNKNOWN_CLIENT
    return UNKNOWN_CLIENT


def _raw_target(request: Request) -> str:
    """Path and query as sent on the wire (scope["path"] is percent-decoded)."""
    raw_path = request.scope.get("raw_path")
    path = raw_path.decode("latin-1") if raw_path else request.url.path
    query = request.url.query
    return f"{path}?{query}" if query else path


def is_suspicious_request(request: Request) -> bool:
    user_agent = request.headers.get("user-agent", "").lower()
    if any(token in user_agent for token in SUSPICIOUS_USER_AGENT_TOKENS):
        return True
    url = str(request.url).lower()
    raw = _raw_target(request).lower()
    return any(token in url or token in raw for token in SUSPICIOUS_URL_TOKENS)


def _content_length_error(request: Request, max_bytes: int) -> Optional[ApiError]:
    raw_size = request.headers.get("content-length")
    if not raw_size:
        return None
    try:
        size = float(raw_size)
    except ValueError:
        size = math.nan
    if not math.isfinite(size) or size < 0:
        return ValidationError("Invalid content-length header")
    if size > max_bytes:
        return PayloadTooLarge()
    return None


# ──────────────────────────────────────────────────────────────────────────────
# Gate
# ──────────────────────────────────────────────────────────────────────────────

class AbuseProtectionGate:
    """Holds the per-scope limiters and the admin lockout for one process."""

    def __init__(
        self,
        settings: Settings,
        public_limiter: Optional[RateLimiter] = None,
        admin_limiter: Optional[RateLimiter] = None,
        lockout: Optional[AdminLockout] = None,
    ) -> None:
        self.settings = settings
        self.public_limiter = public_limiter or RateLimiter(
            settings.api_public_rate_limit_per_minute
        )
        self.admin_limiter = admin_limiter or RateLimiter(
            settings.api_admin_rate_limit_per_minute
        )
        self.lockout = lockout or AdminLockout(
            failure_threshold=settings.api_admin_auth_failure_threshold,
            base_seconds=settings.api_admin_lockout_base_seconds,
            max_seconds=settings.api_admin_lockout_max_seconds,
        )

    def _reject(self, error: ApiError, client_key: str, request: Request) -> ApiError:
        retry_after = error.headers.get("Retry-After")
        app_logging.log_gate_rejection(
            code=error.code,
            status_code=error.status_code,
            client_key=client_key,
            path=request.url.path,
            retry_after=int(retry_after) if retry_after else None,
        )
        return error

    def _check_static(self, request: Request, client_key: str) -> None:
        if len(str(request.url)) > self.settings.api_max_url_length:
            raise self._reject(UriTooLong(), client_key, request)
        if is_suspicious_request(request):
            raise self._reject(BotBlocked(), client_key, request)

    def _apply_rate_limit(
        self,
        limiter: RateLimiter,
        request: Request,
        client_key: str,
    ) -> GateDecision:
        result = limiter.hit(client_key)
        if not result.allowed:
            headers = dict(result.headers)
            headers["Retry-After"] = str(result.reset_seconds)
            raise self._reject(RateLimited(headers=headers), client_key, request)
        return GateDecision(client_key=client_key, rate_limit_headers=result.headers)

    def check_public(self, request: Request) -> GateDecision:
        client_key = f"public:{request.url.path}:{get_client_ip(request)}"
        self._check_static(request, client_key)
        return self._apply_rate_limit(self.public_limiter, request, client_key)

    def check_admin(self, request: Request) -> GateDecision:
        client_key = f"admin:{get_client_ip(request)}"
        self._check_static(request, client_key)

        body_error = _content_length_error(
            request, self.settings.api_admin_request_max_bytes
        )
        if body_error is not None:
            raise self._reject(body_error, client_key, request)

        retry_after = self.lockout.retry_after(client_key)
        if retry_after is not None:
            locked = AdminLocked(headers={"Retry-After": str(retry_after)})
            raise self._reject(locked, client_key, request)

        return self._apply_rate_limit(self.admin_limiter, request, client_key)

    def reset(self) -> None:
        self.public_limiter.reset()
        self.admin_limiter.reset()
        self.lockout.reset()


# ──────────────────────────────────────────────────────────────────────────────
# FastAPI dependencies
# ──────────────────────────────────────────────────────────────────────────────

def public_gate(request: Request) -> GateDecision:
    decision = request.app.state.gate.check_public(request)
    request.state.rate_limit_headers = decision.rate_limit_headers
    return decision


def admin_gate(request: Request) -> GateDecision:
    decision = request.app.state.gate.check_admin(request)
    request.state.rate_limit_headers = decision.rate_limit_headers
    return decision
