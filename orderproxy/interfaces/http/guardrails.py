"""Security guardrail middleware for OrderProxy."""

from __future__ import annotations

import json
import time
from typing import Dict, List, Tuple

import anyio
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ...application.validation import strip_script_tags
from ...logging import LogEvent, LogRecord, info
from .errors import log_and_return_error_response

RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."

CONTENT_SECURITY_POLICY = "; ".join(
    [
        "default-src 'self'",
        "script-src 'self' 'unsafe-inline' https://sandbox-web.squarecdn.com https://web.squarecdn.com",
        "style-src 'self' 'unsafe-inline'",
        "img-src 'self' data: https:",
        "connect-src 'self' https://connect.squareupsandbox.com https://connect.squareup.com",
        "font-src 'self' https: data:",
        "object-src 'none'",
        "media-src 'self'",
        "frame-src 'none'",
    ]
)


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Rejects requests whose body exceeds *max_bytes*."""

    def __init__(self, app: ASGIApp, max_bytes: int) -> None:
        """Initializes body size limiting middleware.

        Args:
            app: Downstream ASGI application instance
            max_bytes: Maximum allowed size of request body in bytes
        """
        super().__init__(app)
        self._max_bytes = max_bytes

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self._max_bytes:
            return await log_and_return_error_response(
                request,
                413,
                f"Request body too large: {content_length} bytes (limit {self._max_bytes}).",
            )

        if not content_length and request.method in ("POST", "PUT", "PATCH"):
            body = await request.body()
            if len(body) > self._max_bytes:
                return await log_and_return_error_response(
                    request,
                    413,
                    f"Request body too large: {len(body)} bytes (limit {self._max_bytes}).",
                )

        return await call_next(request)


class InputSanitizationMiddleware:
    """Strips ``<script>`` blocks from JSON request bodies before routing.

    Pure ASGI so the rewritten body is what downstream handlers read. Bodies
    that are not valid JSON are passed through untouched for the route to
    reject.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope.get("method") not in ("POST", "PUT", "PATCH"):
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers") or [])
        content_type = headers.get(b"content-type", b"").decode("latin-1")
        if "application/json" not in content_type:
            await self.app(scope, receive, send)
            return

        chunks: List[bytes] = []
        more_body = True
        while more_body:
            message = await receive()
            if message["type"] != "http.request":
                break
            chunks.append(message.get("body", b""))
            more_body = message.get("more_body", False)
        body = b"".join(chunks)

        sanitized_body = body
        if body:
            try:
                payload = json.loads(body)
            except (json.JSONDecodeError, UnicodeDecodeError):
                payload = None
            if payload is not None:
                cleaned = strip_script_tags(payload)
                if cleaned != payload:
                    sanitized_body = json.dumps(cleaned).encode("utf-8")
                    info(
                        LogRecord(
                            event=LogEvent.INPUT_SANITIZED.value,
                            message="Removed script tags from request body",
                            data={"path": scope.get("path")},
                        )
                    )

        scope = dict(scope)
        scope["headers"] = [
            (k, v) for k, v in scope.get("headers") or [] if k != b"content-length"
        ] + [(b"content-length", str(len(sanitized_body)).encode("latin-1"))]

        sent = False

        async def replay() -> Message:
            nonlocal sent
            if not sent:
                sent = True
                return {"type": "http.request", "body": sanitized_body, "more_body": False}
            return await receive()

        await self.app(scope, replay, send)


class _MemoryRateLimiter:
    """Simple in-memory sliding-window rate limiter."""

    def __init__(self, max_requests: int, window_seconds: float):
        """Initialize rate limiter with sliding window configuration.

        Args:
            max_requests: Requests allowed per key within one window
            window_seconds: Window length in seconds
        """
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._store: Dict[str, List[float]] = {}
        self._lock = anyio.Lock()

    async def allow(self, key: str) -> Tuple[bool, int]:
        """Check whether *key* is within its window; returns (allowed, remaining)."""
        now = time.monotonic()
        window_start = now - self.window_seconds
        async with self._lock:
            timestamps = [ts for ts in self._store.get(key, []) if ts >= window_start]
            if len(timestamps) >= self.max_requests:
                self._store[key] = timestamps
                return False, 0
            timestamps.append(now)
            self._store[key] = timestamps
            return True, self.max_requests - len(timestamps)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Applies per-IP rate limiting to ``/api/`` routes using an in-memory store."""

    def __init__(
        self,
        app: ASGIApp,
        max_requests: int,
        window_seconds: float,
        path_prefix: str = "/api/",
        exempt_paths: Tuple[str, ...] = ("/health",),
    ) -> None:
        """Initializes rate limiting middleware with specified parameters.

        Args:
            app: Downstream ASGI application instance
            max_requests: Requests permitted per client per window
            window_seconds: Window length in seconds
            path_prefix: Only paths under this prefix are limited
            exempt_paths: Paths never limited
        """
        super().__init__(app)
        self._limiter = _MemoryRateLimiter(max_requests, window_seconds)
        self._prefix = path_prefix
        self._exempt = exempt_paths

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if not path.startswith(self._prefix) or path in self._exempt:
            return await call_next(request)

        key = request.client.host if request.client else "anonymous"
        allowed, remaining = await self._limiter.allow(key)
        if not allowed:
            response = await log_and_return_error_response(
                request,
                429,
                RATE_LIMIT_MESSAGE,
                extra={"retryAfter": int(self._limiter.window_seconds)},
            )
            response.headers["Retry-After"] = str(int(self._limiter.window_seconds))
            return response
        response = await call_next(request)
        response.headers["RateLimit-Limit"] = str(self._limiter.max_requests)
        response.headers["RateLimit-Remaining"] = str(remaining)
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds common security HTTP response headers."""

    def __init__(self, app: ASGIApp, enable_hsts: bool = False):
        """Initialize security headers middleware with configuration options.

        Args:
            app: Downstream ASGI application instance
            enable_hsts: Whether to add Strict-Transport-Security header on HTTPS responses
        """
        super().__init__(app)
        self.enable_hsts = enable_hsts

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Inject common security headers into HTTP responses."""
        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "same-origin")
        response.headers.setdefault("Content-Security-Policy", CONTENT_SECURITY_POLICY)
        if self.enable_hsts and request.url.scheme == "https":
            response.headers.setdefault(
                "Strict-Transport-Security",
                "max-age=31536000; includeSubDomains; preload",
            )
        return response
