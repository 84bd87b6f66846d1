from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from spicecart.core.logging import get_logger
from spicecart.db.operations import flush_async, refresh_async
from spicecart.domain.enums import Channel, RuleScope
from spicecart.models.shipping import FreeShippingRule, ShippingZone
from spicecart.schemas.shipping import FreeShippingRuleUpsert
from spicecart.services.exceptions import ResourceNotFoundError, StoreFailure
from spicecart.services.pricing import select_free_shipping_rule

logger = get_logger(__name__)


async def get_active_free_shipping_rule(
    db: AsyncSession,
    channel: Channel,
    now: Optional[datetime] = None,
) -> FreeShippingRule | None:
    scopes = [RuleScope(Channel(channel).value), RuleScope.all]
    try:
        result = await db.execute(
            select(FreeShippingRule).where(
                FreeShippingRule.applies_to.in_(scopes),
                FreeShippingRule.is_active.is_(True),
            )
        )
    except SQLAlchemyError as exc:
        logger.error("Free shipping rule lookup failed", extra={"channel": channel}, exc_info=True)
        raise StoreFailure("Promotions are temporarily unavailable") from exc
    return select_free_shipping_rule(result.scalars().all(), channel, now or datetime.now(timezone.utc))


async def list_rules(db: AsyncSession) -> list[FreeShippingRule]:
    result = await db.execute(select(FreeShippingRule).order_by(FreeShippingRule.applies_to))
    return list(result.scalars().all())


async def upsert_rule(db: AsyncSession, payload: FreeShippingRuleUpsert) -> FreeShippingRule:
    """One rule per scope: update the existing row or insert a new one."""
    result = await db.execute(
        select(FreeShippingRule).where(FreeShippingRule.applies_to == payload.applies_to)
    )
    rule = result.scalar_one_or_none()
    if rule is None:
        rule = FreeShippingRule(applies_to=payload.applies_to)
        db.add(rule)
    rule.threshold_amount = payload.threshold_amount
    rule.expires_at = payload.expires_at
    rule.is_active = payload.is_active
    rule.updated_at = datetime.now(timezone.utc)
    await flush_async(db, rule)
    await refresh_async(db, rule)
    logger.info(
        "Free shipping rule saved",
        extra={"applies_to": payload.applies_to.value, "is_active": payload.is_active},
    )
    return rule


async def list_shipping_zones(db: AsyncSession) -> list[ShippingZone]:
    result = await db.execute(
        select(ShippingZone).order_by(ShippingZone.sort_order.asc().nulls_first(), ShippingZone.governorate.asc())
    )
    return list(result.scalars().all())


async def get_shipping_zone(db: AsyncSession, zone_id: UUID) -> ShippingZone:
    zone = await db.get(ShippingZone, zone_id)
    if not zone:
        raise ResourceNotFoundError("Shipping zone not found")
    return zone
