from __future__ import annotations

import time
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from spicecart.core.config import settings
from spicecart.core.logging import get_logger
from spicecart.core.metrics import observe_request, request_channel, route_template


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Time every request, count it per cart channel and log the failed ones."""

    def __init__(self, app, *, log_client_errors: bool = True) -> None:
        super().__init__(app)
        self.logger = get_logger("spicecart.requests")
        self.log_client_errors = log_client_errors

    async def dispatch(self, request: Request, call_next) -> Response:
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            elapsed = time.perf_counter() - started
            observe_request(request, 500, elapsed)
            self.logger.error("Unhandled error", extra=self._context(request, 500, elapsed))
            raise

        elapsed = time.perf_counter() - started
        observe_request(request, response.status_code, elapsed)
        if response.status_code >= 500:
            self.logger.error("Request failed", extra=self._context(request, response.status_code, elapsed))
        elif response.status_code >= 400 and self.log_client_errors:
            self.logger.warning("Request rejected", extra=self._context(request, response.status_code, elapsed))
        return response

    @staticmethod
    def _caller(request: Request) -> str:
        if request.headers.get("authorization", "").lower().startswith("bearer "):
            return "user"
        channel = request_channel(request)
        if channel in ("b2c", "b2b") and settings.cart_cookie_name(channel) in request.cookies:
            return "guest"
        return "anonymous"

    def _context(self, request: Request, status_code: int, elapsed: float) -> dict[str, Any]:
        # Never log cookie values or bearer tokens.
        return {
            "method": request.method,
            "route": route_template(request),
            "channel": request_channel(request),
            "caller": self._caller(request),
            "status_code": status_code,
            "duration_ms": round(elapsed * 1000, 3),
            "request_id": request.headers.get("x-request-id"),
        }
