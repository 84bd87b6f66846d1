from __future__ import annotations

from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from spicecart.core.config import settings


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Hardening headers for every response; cart responses are private and never cached."""

    def __init__(self, app) -> None:
        super().__init__(app)
        self.headers = {
            "Strict-Transport-Security": settings.STRICT_TRANSPORT_SECURITY,
            "X-Frame-Options": settings.X_FRAME_OPTIONS,
            "X-Content-Type-Options": settings.X_CONTENT_TYPE_OPTIONS,
            "Referrer-Policy": settings.REFERRER_POLICY,
        }
        self.cart_prefix = f"{settings.API_V1_STR}/cart/"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        for name, value in self.headers.items():
            response.headers.setdefault(name, value)
        if request.url.path.startswith(self.cart_prefix):
            # The body depends on the caller's cookie or token.
            response.headers["Cache-Control"] = "no-store"
            response.headers["Vary"] = "Cookie, Authorization"
        return response
