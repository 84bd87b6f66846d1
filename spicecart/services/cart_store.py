"""Persistence for carts and their line items.

Every function works on the caller's session and only flushes; the request
handler owns the commit, so one façade call is one transaction.

``upsert_line_item`` is a plain read-modify-write with no row version or
lock. Two concurrent adds of the same product to the same cart can both read
the old quantity and the later write wins, losing one increment. This is the
accepted behavior of the storefront today.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from spicecart.core.logging import get_logger
from spicecart.db.operations import flush_async, refresh_async
from spicecart.domain.enums import CartStatus, Channel
from spicecart.models.cart import Cart, CartItem
from spicecart.services.exceptions import DomainValidationError, StoreFailure
from spicecart.services.identity import Identity

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _store_failure(action: str, exc: SQLAlchemyError) -> StoreFailure:
    logger.error("Cart store failure", extra={"action": action}, exc_info=exc)
    return StoreFailure("Cart is temporarily unavailable, please try again")


def _identity_clause(identity: Identity):
    if identity.kind == "user":
        return Cart.user_id == identity.user_id
    return Cart.guest_token == identity.token


async def _refresh_cart(db: AsyncSession, cart: Cart) -> None:
    await refresh_async(db, cart)
    await refresh_async(db, cart, attribute_names=["items"])


def touch(cart: Cart) -> None:
    cart.updated_at = _utcnow()


async def load_active_cart(db: AsyncSession, identity: Identity, channel: Channel) -> Cart | None:
    if not identity.is_addressable:
        return None
    stmt = (
        select(Cart)
        .options(selectinload(Cart.items))
        .where(
            _identity_clause(identity),
            Cart.channel == Channel(channel),
            Cart.status == CartStatus.active,
        )
        .order_by(Cart.created_at.desc())
        .limit(1)
    )
    try:
        result = await db.execute(stmt)
    except SQLAlchemyError as exc:
        raise _store_failure("load_active_cart", exc) from exc
    return result.scalars().first()


async def create_cart(db: AsyncSession, identity: Identity, channel: Channel) -> Cart:
    if not identity.is_addressable:
        raise DomainValidationError("A cart owner is required")
    cart = Cart(
        user_id=identity.user_id if identity.kind == "user" else None,
        guest_token=identity.token if identity.is_anonymous else None,
        channel=Channel(channel),
        status=CartStatus.active,
    )
    db.add(cart)
    try:
        await flush_async(db, cart)
        await _refresh_cart(db, cart)
    except SQLAlchemyError as exc:
        raise _store_failure("create_cart", exc) from exc
    logger.info("Cart created", extra={"cart_id": str(cart.id), "channel": cart.channel.value, "kind": identity.kind})
    return cart


async def get_or_create_active_cart(db: AsyncSession, identity: Identity, channel: Channel) -> Cart:
    cart = await load_active_cart(db, identity, channel)
    if cart is None:
        cart = await create_cart(db, identity, channel)
    return cart


async def find_line_item(
    db: AsyncSession,
    cart_id: uuid.UUID,
    product_id: uuid.UUID,
    variant_id: uuid.UUID | None,
) -> CartItem | None:
    stmt = select(CartItem).where(CartItem.cart_id == cart_id, CartItem.product_id == product_id)
    if variant_id is None:
        stmt = stmt.where(CartItem.variant_id.is_(None))
    else:
        stmt = stmt.where(CartItem.variant_id == variant_id)
    try:
        result = await db.execute(stmt.limit(1))
    except SQLAlchemyError as exc:
        raise _store_failure("find_line_item", exc) from exc
    return result.scalars().first()


async def upsert_line_item(
    db: AsyncSession,
    cart: Cart,
    *,
    product_id: uuid.UUID,
    variant_id: uuid.UUID | None,
    quantity_delta: int,
    unit_price: Decimal | None,
    max_quantity: int | None = None,
) -> CartItem:
    """Add ``quantity_delta`` to the matching line (refreshing its price) or insert one."""
    item = await find_line_item(db, cart.id, product_id, variant_id)
    new_quantity = (item.quantity if item is not None else 0) + quantity_delta
    if max_quantity is not None and new_quantity > max_quantity:
        raise DomainValidationError(f"Quantity cannot exceed {max_quantity}")
    now = _utcnow()
    if item is not None:
        item.quantity = new_quantity
        item.unit_price = unit_price
        item.updated_at = now
    else:
        item = CartItem(
            cart_id=cart.id,
            product_id=product_id,
            variant_id=variant_id,
            quantity=quantity_delta,
            unit_price=unit_price,
        )
        db.add(item)
    touch(cart)
    try:
        await flush_async(db)
        await _refresh_cart(db, cart)
    except SQLAlchemyError as exc:
        raise _store_failure("upsert_line_item", exc) from exc
    return item


async def get_line_item(db: AsyncSession, item_id: uuid.UUID, cart_id: uuid.UUID) -> CartItem | None:
    try:
        result = await db.execute(
            select(CartItem).where(CartItem.id == item_id, CartItem.cart_id == cart_id)
        )
    except SQLAlchemyError as exc:
        raise _store_failure("get_line_item", exc) from exc
    return result.scalar_one_or_none()


async def set_line_item_quantity(db: AsyncSession, cart: Cart, item: CartItem, quantity: int) -> CartItem:
    item.quantity = quantity
    item.updated_at = _utcnow()
    touch(cart)
    try:
        await flush_async(db)
        await _refresh_cart(db, cart)
    except SQLAlchemyError as exc:
        raise _store_failure("set_line_item_quantity", exc) from exc
    return item


async def delete_line_item(db: AsyncSession, cart: Cart, item_id: uuid.UUID) -> bool:
    """Delete one line of ``cart``. Returns False when it was already gone."""
    try:
        result = await db.execute(
            delete(CartItem).where(CartItem.id == item_id, CartItem.cart_id == cart.id)
        )
        deleted = bool(result.rowcount)
        if deleted:
            touch(cart)
        await flush_async(db)
        await _refresh_cart(db, cart)
    except SQLAlchemyError as exc:
        raise _store_failure("delete_line_item", exc) from exc
    return deleted


async def delete_all_line_items(db: AsyncSession, cart: Cart) -> int:
    try:
        result = await db.execute(delete(CartItem).where(CartItem.cart_id == cart.id))
        touch(cart)
        await flush_async(db)
        await _refresh_cart(db, cart)
    except SQLAlchemyError as exc:
        raise _store_failure("delete_all_line_items", exc) from exc
    return int(result.rowcount or 0)


async def list_abandoned_carts(
    db: AsyncSession,
    *,
    older_than_minutes: int,
    limit: int = 100,
) -> list[Cart]:
    """Active carts with items that nobody touched for ``older_than_minutes``."""
    cutoff = _utcnow() - timedelta(minutes=older_than_minutes)
    has_items = select(func.count(CartItem.id)).where(CartItem.cart_id == Cart.id).scalar_subquery()
    stmt = (
        select(Cart)
        .options(selectinload(Cart.items))
        .where(Cart.status == CartStatus.active, Cart.updated_at < cutoff, has_items > 0)
        .order_by(Cart.updated_at.desc())
        .limit(limit)
    )
    try:
        result = await db.execute(stmt)
    except SQLAlchemyError as exc:
        raise _store_failure("list_abandoned_carts", exc) from exc
    return list(result.scalars().all())
