from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from spicecart.core.config import settings
from spicecart.core.logging import channel_alert, get_logger
from spicecart.core.metrics import record_cart_operation, record_checkout
from spicecart.domain.enums import Channel
from spicecart.models.cart import Cart, CartItem
from spicecart.schemas.cart import (
    CartItemView,
    CartProductView,
    CartVariantView,
    CartView,
    CheckoutSummary,
    FreeShippingView,
)
from spicecart.services import cart_store, free_shipping_service
from spicecart.services.catalog_reader import CatalogReader, ProductSnapshot, VariantSnapshot
from spicecart.services.exceptions import (
    ChannelMismatchError,
    DomainValidationError,
    PriceHiddenError,
    ResourceNotFoundError,
    ServiceError,
)
from spicecart.services.identity import Identity
from spicecart.services.pricing import (
    FreeShippingStatus,
    PricedLine,
    compute_subtotal,
    compute_tax,
    evaluate_free_shipping,
    snapshot_price,
    to_money,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class ClearResult:
    cart_id: uuid.UUID | None
    removed_items: int
    clear_anonymous_token: bool


def _as_uuid(value, field: str) -> uuid.UUID:
    if value is None or value == "":
        raise DomainValidationError(f"{field} is required")
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError) as exc:
        raise DomainValidationError(f"Invalid {field}") from exc


def _as_float(value: Decimal | None) -> float | None:
    return None if value is None else float(value)


async def _price_hidden_error(reader: CatalogReader) -> PriceHiddenError:
    contact = await reader.contact_path()
    return PriceHiddenError(
        "This product is available on request only, please contact sales",
        contact_label=contact.label if contact else None,
        contact_url=contact.url if contact else None,
    )


async def _check_channel(product: ProductSnapshot, channel: Channel, reader: CatalogReader) -> None:
    if product.is_b2b != (channel is Channel.b2b):
        raise ChannelMismatchError("This product is not available in this context")
    if channel is Channel.b2b and product.price_hidden:
        raise await _price_hidden_error(reader)


def _check_quantity(quantity: int) -> None:
    if quantity > settings.CART_MAX_LINE_QUANTITY:
        raise DomainValidationError(f"Quantity cannot exceed {settings.CART_MAX_LINE_QUANTITY}")


@dataclass(frozen=True)
class _HydratedLine:
    item: CartItem
    product: ProductSnapshot
    variant: VariantSnapshot | None

    @property
    def priced(self) -> PricedLine:
        return PricedLine(
            quantity=self.item.quantity,
            unit_price=None if self.item.unit_price is None else Decimal(str(self.item.unit_price)),
            variant_price=self.variant.price if self.variant else None,
            product_price=self.product.price,
            has_tax=self.product.has_tax,
        )

    @property
    def stock(self) -> int:
        return self.variant.stock if self.variant else self.product.stock

    def view(self) -> CartItemView:
        priced = self.priced
        return CartItemView(
            id=self.item.id,
            product_id=self.item.product_id,
            variant_id=self.item.variant_id,
            quantity=self.item.quantity,
            unit_price=float(priced.effective_unit_price),
            line_total=float(priced.line_total),
            stock=self.stock,
            in_stock=self.stock >= self.item.quantity,
            product=CartProductView(
                id=self.product.id,
                name=self.product.name,
                name_ar=self.product.name_ar,
                brand=self.product.brand,
                image_url=self.product.image_url,
                price=_as_float(self.product.price),
                has_tax=self.product.has_tax,
            ),
            variant=None
            if self.variant is None
            else CartVariantView(
                id=self.variant.id,
                sku=self.variant.sku,
                size=self.variant.size,
                price=_as_float(self.variant.price),
            ),
        )


async def _hydrate(cart: Cart, reader: CatalogReader, channel: Channel) -> list[_HydratedLine]:
    """Join live catalog data onto stored lines, dropping anything outside ``channel``."""
    products = await reader.get_products(item.product_id for item in cart.items)
    variants = await reader.get_variants(item.variant_id for item in cart.items)
    lines: list[_HydratedLine] = []
    for item in cart.items:
        product = products.get(item.product_id)
        if product is None:
            logger.info(
                "Cart line for an unavailable product skipped",
                extra={"cart_id": str(cart.id), "item_id": str(item.id), "channel": channel.value},
            )
            continue
        if product.is_b2b != (channel is Channel.b2b):
            channel_alert(
                "Cart line outside its channel dropped from view",
                cart_id=str(cart.id),
                item_id=str(item.id),
                channel=channel.value,
            )
            continue
        variant = variants.get(item.variant_id) if item.variant_id else None
        lines.append(_HydratedLine(item=item, product=product, variant=variant))
    return lines


def _free_shipping_view(status: FreeShippingStatus | None) -> FreeShippingView | None:
    if status is None:
        return None
    return FreeShippingView(
        eligible=status.eligible,
        threshold=float(status.threshold),
        expires_at=status.expires_at,
        remaining=float(status.remaining),
    )


async def _evaluate_cart(
    db: AsyncSession,
    cart: Cart,
    reader: CatalogReader,
    channel: Channel,
) -> tuple[list[_HydratedLine], Decimal, Decimal, FreeShippingStatus | None]:
    lines = await _hydrate(cart, reader, channel)
    priced = [line.priced for line in lines]
    subtotal = compute_subtotal(priced)
    tax = compute_tax(priced)
    free_shipping = None
    # Wholesale carts never get free shipping.
    if channel is Channel.b2c:
        rule = await free_shipping_service.get_active_free_shipping_rule(db, channel)
        free_shipping = evaluate_free_shipping(rule, subtotal)
    return lines, subtotal, tax, free_shipping


async def _build_view(db: AsyncSession, cart: Cart, reader: CatalogReader, channel: Channel) -> CartView:
    lines, subtotal, tax, free_shipping = await _evaluate_cart(db, cart, reader, channel)
    return CartView(
        id=cart.id,
        channel=channel,
        items=[line.view() for line in lines],
        item_count=sum(line.item.quantity for line in lines),
        subtotal=float(subtotal),
        tax_amount=float(tax),
        free_shipping=_free_shipping_view(free_shipping),
        updated_at=cart.updated_at,
    )


async def get_cart(
    db: AsyncSession,
    *,
    identity: Identity,
    channel: Channel,
    reader: CatalogReader,
) -> CartView | None:
    """Hydrated view of the caller's active cart, or None when there is none."""
    channel = Channel(channel)
    cart = await cart_store.load_active_cart(db, identity, channel)
    if cart is None:
        return None
    return await _build_view(db, cart, reader, channel)


async def add_to_cart(
    db: AsyncSession,
    *,
    identity: Identity,
    channel: Channel,
    reader: CatalogReader,
    product_id,
    quantity: int = 1,
    variant_id=None,
) -> CartView:
    channel = Channel(channel)
    try:
        if quantity is None or int(quantity) < 1:
            raise DomainValidationError("Quantity must be at least 1")
        _check_quantity(int(quantity))
        product_uuid = _as_uuid(product_id, "product_id")
        variant_uuid = _as_uuid(variant_id, "variant_id") if variant_id else None

        product = await reader.get_product(product_uuid)
        if product is None:
            raise ResourceNotFoundError("Product not found")
        await _check_channel(product, channel, reader)

        variant = None
        if variant_uuid is not None:
            variant = await reader.get_variant(variant_uuid, product_uuid)
            if variant is None:
                raise ResourceNotFoundError("Product option not found")

        unit_price = snapshot_price(product.price, variant.price if variant else None)
        if unit_price is None:
            if channel is Channel.b2b:
                raise await _price_hidden_error(reader)
            raise DomainValidationError("This product has no price yet")

        cart = await cart_store.get_or_create_active_cart(db, identity, channel)
        await cart_store.upsert_line_item(
            db,
            cart,
            product_id=product_uuid,
            variant_id=variant_uuid,
            quantity_delta=int(quantity),
            unit_price=unit_price,
            max_quantity=settings.CART_MAX_LINE_QUANTITY,
        )
    except ServiceError as exc:
        record_cart_operation("add", channel.value, exc.code)
        raise
    record_cart_operation("add", channel.value, "ok")
    logger.info(
        "Item added to cart",
        extra={"cart_id": str(cart.id), "channel": channel.value, "quantity": int(quantity)},
    )
    return await _build_view(db, cart, reader, channel)


async def update_item_quantity(
    db: AsyncSession,
    *,
    identity: Identity,
    channel: Channel,
    reader: CatalogReader,
    item_id,
    quantity: int,
) -> CartView:
    """Set a line's quantity. Stock is advisory and not re-checked here."""
    channel = Channel(channel)
    if quantity is None:
        raise DomainValidationError("Quantity is required")
    if int(quantity) <= 0:
        return await remove_item(db, identity=identity, channel=channel, reader=reader, item_id=item_id)

    _check_quantity(int(quantity))
    item_uuid = _as_uuid(item_id, "item_id")
    cart = await cart_store.load_active_cart(db, identity, channel)
    item = await cart_store.get_line_item(db, item_uuid, cart.id) if cart else None
    if item is None:
        record_cart_operation("update", channel.value, ResourceNotFoundError.code)
        raise ResourceNotFoundError("Cart item not found")

    await cart_store.set_line_item_quantity(db, cart, item, int(quantity))
    record_cart_operation("update", channel.value, "ok")
    return await _build_view(db, cart, reader, channel)


async def remove_item(
    db: AsyncSession,
    *,
    identity: Identity,
    channel: Channel,
    reader: CatalogReader,
    item_id,
) -> CartView:
    """Delete a line. Removing something that is not there is not an error."""
    channel = Channel(channel)
    item_uuid = _as_uuid(item_id, "item_id")
    cart = await cart_store.load_active_cart(db, identity, channel)
    if cart is None:
        return CartView.empty(channel)
    deleted = await cart_store.delete_line_item(db, cart, item_uuid)
    record_cart_operation("remove", channel.value, "ok" if deleted else "noop")
    return await _build_view(db, cart, reader, channel)


async def clear_cart(db: AsyncSession, *, identity: Identity, channel: Channel) -> ClearResult:
    """Empty the active cart but keep the row for reuse."""
    channel = Channel(channel)
    cart = await cart_store.load_active_cart(db, identity, channel)
    if cart is None:
        record_cart_operation("clear", channel.value, "noop")
        return ClearResult(cart_id=None, removed_items=0, clear_anonymous_token=False)
    removed = await cart_store.delete_all_line_items(db, cart)
    record_cart_operation("clear", channel.value, "ok")
    logger.info("Cart cleared", extra={"cart_id": str(cart.id), "channel": channel.value, "removed": removed})
    return ClearResult(cart_id=cart.id, removed_items=removed, clear_anonymous_token=identity.is_anonymous)


async def checkout_summary(
    db: AsyncSession,
    *,
    identity: Identity,
    channel: Channel,
    reader: CatalogReader,
    shipping_zone_id=None,
) -> CheckoutSummary:
    """Amounts handed to the order flow: subtotal, tax, shipping fee and total."""
    channel = Channel(channel)
    cart = await cart_store.load_active_cart(db, identity, channel)
    if cart is None:
        raise DomainValidationError("Your cart is empty")
    lines, subtotal, tax, free_shipping = await _evaluate_cart(db, cart, reader, channel)
    if not lines:
        raise DomainValidationError("Your cart is empty")

    zone_uuid = _as_uuid(shipping_zone_id, "shipping_zone_id") if shipping_zone_id else None
    if zone_uuid is not None:
        zone = await free_shipping_service.get_shipping_zone(db, zone_uuid)
        base_fee = to_money(zone.base_rate)
    else:
        base_fee = to_money(settings.DEFAULT_SHIPPING_FEE)

    free_applied = channel is Channel.b2c and free_shipping is not None and free_shipping.eligible
    shipping_fee = to_money(0) if free_applied else base_fee
    record_checkout(channel.value, float(subtotal), free_applied)
    return CheckoutSummary(
        cart_id=cart.id,
        channel=channel,
        subtotal=float(subtotal),
        tax_amount=float(tax),
        shipping_fee=float(shipping_fee),
        free_shipping_applied=free_applied,
        total=float(to_money(subtotal + shipping_fee + tax)),
        shipping_zone_id=zone_uuid,
    )


async def list_abandoned_carts(db: AsyncSession, *, older_than_minutes: int | None = None) -> list[dict]:
    minutes = settings.ABANDONED_CART_AFTER_MINUTES if older_than_minutes is None else older_than_minutes
    carts = await cart_store.list_abandoned_carts(db, older_than_minutes=minutes)
    return [
        {
            "id": cart.id,
            "channel": cart.channel,
            "user_id": cart.user_id,
            "is_guest": cart.user_id is None,
            "item_count": sum(item.quantity for item in cart.items),
            "subtotal": float(
                compute_subtotal(
                    PricedLine(
                        quantity=item.quantity,
                        unit_price=None if item.unit_price is None else Decimal(str(item.unit_price)),
                    )
                    for item in cart.items
                )
            ),
            "created_at": cart.created_at,
            "updated_at": cart.updated_at,
        }
        for cart in carts
    ]
