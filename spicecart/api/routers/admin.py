from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from spicecart.api.deps import get_current_admin
from spicecart.db.operations import commit_async
from spicecart.db.session_async import get_async_db
from spicecart.schemas.cart import AbandonedCartRead
from spicecart.schemas.shipping import FreeShippingRuleRead, FreeShippingRuleUpsert
from spicecart.services import cart_service, free_shipping_service

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/free-shipping", response_model=list[FreeShippingRuleRead])
async def list_free_shipping_rules(
    db: AsyncSession = Depends(get_async_db),
    admin: dict[str, Any] = Depends(get_current_admin),
):
    rules = await free_shipping_service.list_rules(db)
    return [FreeShippingRuleRead.model_validate(rule, from_attributes=True) for rule in rules]


@router.put("/free-shipping", response_model=FreeShippingRuleRead)
async def upsert_free_shipping_rule(
    payload: FreeShippingRuleUpsert,
    db: AsyncSession = Depends(get_async_db),
    admin: dict[str, Any] = Depends(get_current_admin),
):
    rule = await free_shipping_service.upsert_rule(db, payload)
    await commit_async(db)
    return FreeShippingRuleRead.model_validate(rule, from_attributes=True)


@router.get("/carts/abandoned", response_model=list[AbandonedCartRead])
async def list_abandoned_carts(
    older_than_minutes: Optional[int] = Query(default=None, ge=0),
    db: AsyncSession = Depends(get_async_db),
    admin: dict[str, Any] = Depends(get_current_admin),
):
    carts = await cart_service.list_abandoned_carts(db, older_than_minutes=older_than_minutes)
    return [AbandonedCartRead.model_validate(cart) for cart in carts]
