from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from spicecart.domain.enums import RuleScope


class FreeShippingRuleUpsert(BaseModel):
    applies_to: RuleScope = RuleScope.b2c
    threshold_amount: float = Field(..., ge=0)
    expires_at: Optional[datetime] = None
    is_active: bool = False


class FreeShippingRuleRead(BaseModel):
    id: UUID
    applies_to: RuleScope
    threshold_amount: float
    expires_at: Optional[datetime]
    is_active: bool
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ShippingZoneRead(BaseModel):
    id: UUID
    governorate: str
    base_rate: float
    per_kg_rate: float = 0.0
    estimated_days: int
    sort_order: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)
