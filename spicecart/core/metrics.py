from __future__ import annotations

from typing import Any

from prometheus_client import Counter, Histogram, generate_latest
from prometheus_client.exposition import CONTENT_TYPE_LATEST

from spicecart.core.config import settings

NO_CHANNEL = "none"


class _Disabled:
    """Stand-in used for every metric when METRICS_ENABLED is off."""

    def labels(self, *args: Any, **kwargs: Any) -> "_Disabled":
        return self

    def observe(self, *_: Any, **__: Any) -> None:
        return None

    def inc(self, *_: Any, **__: Any) -> None:
        return None


def _build(factory: Any) -> Any:
    return factory() if settings.METRICS_ENABLED else _Disabled()


def _name(suffix: str) -> str:
    return f"{settings.METRICS_NAMESPACE}_{suffix}"


HTTP_LATENCY = _build(
    lambda: Histogram(
        _name("http_request_duration_seconds"),
        "Request latency by route and cart channel.",
        ["method", "route", "channel", "status_code"],
        buckets=settings.METRICS_LATENCY_BUCKETS,
    )
)

HTTP_RESPONSES = _build(
    lambda: Counter(
        _name("http_responses_total"),
        "Responses by route, cart channel and status code.",
        ["method", "route", "channel", "status_code"],
    )
)

CART_OPERATIONS = _build(
    lambda: Counter(
        _name("cart_operations_total"),
        "Cart operations partitioned by channel and outcome.",
        ["operation", "channel", "outcome"],
    )
)

CHECKOUT_SUBTOTAL = _build(
    lambda: Histogram(
        _name("checkout_subtotal"),
        "Cart subtotal at checkout summary time.",
        ["channel", "free_shipping"],
        buckets=(50, 100, 200, 300, 500, 1000, 2500, 5000, 10000),
    )
)


def route_template(request) -> str:
    """Route pattern (``/api/v1/cart/{channel}/items``) so ids do not explode label cardinality."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def request_channel(request) -> str:
    channel = request.path_params.get("channel")
    return str(channel) if channel in ("b2c", "b2b") else NO_CHANNEL


def observe_request(request, status_code: int, elapsed: float) -> None:
    labels = {
        "method": request.method,
        "route": route_template(request),
        "channel": request_channel(request),
        "status_code": str(status_code),
    }
    HTTP_RESPONSES.labels(**labels).inc()
    HTTP_LATENCY.labels(**labels).observe(elapsed)


def record_cart_operation(operation: str, channel: str, outcome: str) -> None:
    CART_OPERATIONS.labels(operation=operation, channel=channel, outcome=outcome).inc()


def record_checkout(channel: str, subtotal: float, free_shipping: bool) -> None:
    CHECKOUT_SUBTOTAL.labels(channel=channel, free_shipping=str(free_shipping).lower()).observe(subtotal)


def export_metrics() -> tuple[bytes, str]:
    if not settings.METRICS_ENABLED:
        return b"", "text/plain; charset=utf-8"
    return generate_latest(), CONTENT_TYPE_LATEST
