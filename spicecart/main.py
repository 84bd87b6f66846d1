# spicecart/main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import Response

from spicecart.api.error_handlers import register_exception_handlers
from spicecart.api.routers import admin, cart, shipping
from spicecart.core.config import settings
from spicecart.core.logging import setup_logging
from spicecart.core.metrics import export_metrics
from spicecart.middleware import ObservabilityMiddleware, SecurityHeadersMiddleware

# --- Models registration (needed for Alembic autogenerate) ---
import spicecart.models.catalog   # noqa: F401
import spicecart.models.cart      # noqa: F401
import spicecart.models.shipping  # noqa: F401

TAGS_METADATA = [
    {"name": "cart", "description": "Consumer (b2c) and wholesale (b2b) carts for users and guests."},
    {"name": "shipping", "description": "Shipping zones used to price checkout."},
    {"name": "admin", "description": "Free shipping rules and abandoned carts."},
]

setup_logging()

app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    description=(
        "Cart and pricing engine of the spice storefront.\n\n"
        "- **Cart**: get, add, update quantity, remove and clear, per channel.\n"
        "- **Checkout summary**: subtotal, tax, shipping and total for the order flow.\n"
        "- **Admin**: free shipping rules and abandoned carts.\n\n"
        "Guests are identified by a per-channel cookie; signed-in users by the bearer "
        "token of the identity provider."
    ),
    openapi_tags=TAGS_METADATA,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

# --- Middlewares ---
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(ObservabilityMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# --- Routers ---
app.include_router(cart.router, prefix=settings.API_V1_STR)
app.include_router(shipping.router, prefix=settings.API_V1_STR)
app.include_router(admin.router, prefix=settings.API_V1_STR)


@app.get("/metrics", include_in_schema=False)
def metrics():
    body, content_type = export_metrics()
    return Response(content=body, media_type=content_type)


@app.get("/", include_in_schema=False)
def root():
    return {"status": "ok", "docs_url": "/docs", "redoc_url": "/redoc"}
