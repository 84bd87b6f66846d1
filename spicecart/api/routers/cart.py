from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from spicecart.api.deps import get_catalog_reader, get_identity
from spicecart.core.config import settings
from spicecart.core.logging import get_logger
from spicecart.db.operations import commit_async
from spicecart.db.session_async import get_async_db
from spicecart.domain.enums import Channel
from spicecart.schemas.cart import CartItemAdd, CartItemQuantity, CartView, CheckoutSummary, ErrorResponse
from spicecart.services import cart_service
from spicecart.services.catalog_reader import CatalogReader
from spicecart.services.exceptions import StoreFailure
from spicecart.services.identity import Identity, cookie_name, ensure_anonymous_token

logger = get_logger(__name__)

router = APIRouter(
    prefix="/cart/{channel}",
    tags=["cart"],
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)


async def _commit(db: AsyncSession) -> None:
    try:
        await commit_async(db)
    except SQLAlchemyError as exc:
        logger.error("Cart commit failed", exc_info=True)
        raise StoreFailure("Cart is temporarily unavailable, please try again") from exc


def _set_cart_cookie(response: Response, channel: Channel, token: str) -> None:
    response.set_cookie(
        cookie_name(channel),
        token,
        max_age=settings.CART_COOKIE_MAX_AGE_SECONDS,
        path="/",
        httponly=True,
        secure=settings.CART_COOKIE_SECURE,
        samesite="lax",
    )


@router.get("", response_model=CartView)
async def get_cart(
    channel: Channel,
    db: AsyncSession = Depends(get_async_db),
    identity: Identity = Depends(get_identity),
    reader: CatalogReader = Depends(get_catalog_reader),
):
    cart = await cart_service.get_cart(db, identity=identity, channel=channel, reader=reader)
    return cart or CartView.empty(channel)


@router.post("/items", response_model=CartView, status_code=status.HTTP_201_CREATED)
async def add_cart_item(
    channel: Channel,
    payload: CartItemAdd,
    response: Response,
    db: AsyncSession = Depends(get_async_db),
    identity: Identity = Depends(get_identity),
    reader: CatalogReader = Depends(get_catalog_reader),
):
    identity, minted = ensure_anonymous_token(identity)
    cart = await cart_service.add_to_cart(
        db,
        identity=identity,
        channel=channel,
        reader=reader,
        product_id=payload.product_id,
        quantity=payload.quantity,
        variant_id=payload.variant_id,
    )
    await _commit(db)
    if minted:
        _set_cart_cookie(response, channel, identity.token)
    return cart


@router.patch("/items/{item_id}", response_model=CartView)
async def update_cart_item(
    channel: Channel,
    item_id: UUID,
    payload: CartItemQuantity,
    db: AsyncSession = Depends(get_async_db),
    identity: Identity = Depends(get_identity),
    reader: CatalogReader = Depends(get_catalog_reader),
):
    cart = await cart_service.update_item_quantity(
        db,
        identity=identity,
        channel=channel,
        reader=reader,
        item_id=item_id,
        quantity=payload.quantity,
    )
    await _commit(db)
    return cart


@router.delete("/items/{item_id}", response_model=CartView)
async def remove_cart_item(
    channel: Channel,
    item_id: UUID,
    db: AsyncSession = Depends(get_async_db),
    identity: Identity = Depends(get_identity),
    reader: CatalogReader = Depends(get_catalog_reader),
):
    cart = await cart_service.remove_item(db, identity=identity, channel=channel, reader=reader, item_id=item_id)
    await _commit(db)
    return cart


@router.delete("", response_model=CartView)
async def clear_cart(
    channel: Channel,
    response: Response,
    db: AsyncSession = Depends(get_async_db),
    identity: Identity = Depends(get_identity),
):
    result = await cart_service.clear_cart(db, identity=identity, channel=channel)
    await _commit(db)
    if result.clear_anonymous_token:
        response.delete_cookie(cookie_name(channel), path="/")
    return CartView.empty(channel).model_copy(update={"id": result.cart_id})


@router.get("/checkout-summary", response_model=CheckoutSummary)
async def checkout_summary(
    channel: Channel,
    shipping_zone_id: Optional[UUID] = Query(default=None, description="Zone used to price shipping"),
    db: AsyncSession = Depends(get_async_db),
    identity: Identity = Depends(get_identity),
    reader: CatalogReader = Depends(get_catalog_reader),
):
    return await cart_service.checkout_summary(
        db,
        identity=identity,
        channel=channel,
        reader=reader,
        shipping_zone_id=shipping_zone_id,
    )
