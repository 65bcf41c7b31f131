"""Custom middleware for the application."""

import logging
import time

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from stayhub.config import settings

logger = logging.getLogger(__name__)

SLOW_REQUEST_SECONDS = 1.0

# Payme times out webhook calls well before this, so slow answers there matter
SLOW_WEBHOOK_SECONDS = 0.5

PAYMENT_PATH_PREFIXES = ("/webhooks/", "/payments/")


def _is_payment_path(path: str) -> bool:
    path = path.removeprefix(settings.api_prefix)
    return path.startswith(PAYMENT_PATH_PREFIXES)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id and record how long it took."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """Log payment traffic and flag slow requests.

        Args:
            request: Incoming request
            call_next: Next middleware/route handler

        Returns:
            Response: Route response with X-Request-ID and X-Response-Time
        """
        started = time.perf_counter()
        request_id = request.headers.get("X-Request-ID") or str(time.time_ns())
        request.state.request_id = request_id

        response = await call_next(request)

        duration = time.perf_counter() - started
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration:.3f}s"

        path = request.url.path
        is_webhook = path.removeprefix(settings.api_prefix).startswith("/webhooks/")
        threshold = SLOW_WEBHOOK_SECONDS if is_webhook else SLOW_REQUEST_SECONDS

        if duration > threshold:
            logger.warning(f"Slow request {request_id}: {request.method} {path} took {duration:.3f}s")
        elif _is_payment_path(path):
            logger.info(
                f"{request.method} {path} -> {response.status_code} "
                f"in {duration:.3f}s (request {request_id})"
            )

        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers; payment answers are never cacheable."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        if _is_payment_path(request.url.path):
            response.headers["Cache-Control"] = "no-store"

        if not settings.debug:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response
