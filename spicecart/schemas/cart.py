# spicecart/schemas/cart.py
from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from spicecart.core.config import settings
from spicecart.domain.enums import Channel


class CartItemAdd(BaseModel):
    product_id: UUID
    # Validated again by the service so non-HTTP callers get the same rule.
    quantity: int = Field(default=1, le=settings.CART_MAX_LINE_QUANTITY)
    variant_id: Optional[UUID] = None


class CartItemQuantity(BaseModel):
    # <= 0 removes the line.
    quantity: int = Field(..., le=settings.CART_MAX_LINE_QUANTITY)


class CartProductView(BaseModel):
    id: UUID
    name: str
    name_ar: Optional[str] = None
    brand: Optional[str] = None
    image_url: Optional[str] = None
    price: Optional[float] = None
    has_tax: bool = False


class CartVariantView(BaseModel):
    id: UUID
    sku: Optional[str] = None
    size: Optional[str] = None
    price: Optional[float] = None


class CartItemView(BaseModel):
    id: UUID
    product_id: UUID
    variant_id: Optional[UUID] = None
    quantity: int
    unit_price: float
    line_total: float
    stock: int
    in_stock: bool
    product: CartProductView
    variant: Optional[CartVariantView] = None


class FreeShippingView(BaseModel):
    eligible: bool
    threshold: float
    expires_at: Optional[datetime] = None
    remaining: float


class CartView(BaseModel):
    id: Optional[UUID] = None
    channel: Channel
    items: List[CartItemView] = Field(default_factory=list)
    item_count: int = 0
    subtotal: float = 0.0
    tax_amount: float = 0.0
    free_shipping: Optional[FreeShippingView] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def empty(cls, channel: Channel) -> "CartView":
        return cls(channel=channel)


class CheckoutSummary(BaseModel):
    cart_id: UUID
    channel: Channel
    subtotal: float
    tax_amount: float
    shipping_fee: float
    free_shipping_applied: bool
    total: float
    shipping_zone_id: Optional[UUID] = None


class AbandonedCartRead(BaseModel):
    id: UUID
    channel: Channel
    user_id: Optional[str] = None
    is_guest: bool
    item_count: int
    subtotal: float
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ErrorResponse(BaseModel):
    status: Literal["error"] = "error"
    code: str
    detail: str
    # Only set for price_hidden.
    contact_label: Optional[str] = None
    contact_url: Optional[str] = None
