import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum as SqlEnum, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from spicecart.db.session import Base
from spicecart.db.types import GUID
from spicecart.domain.enums import RuleScope


class FreeShippingRule(Base):
    __tablename__ = "free_shipping_rules"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    applies_to: Mapped[RuleScope] = mapped_column(SqlEnum(RuleScope, name="rulescope"), nullable=False, unique=True)
    threshold_amount: Mapped[float] = mapped_column(Numeric(12, 2), nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class ShippingZone(Base):
    __tablename__ = "shipping_zones"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    governorate: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)
    base_rate: Mapped[float] = mapped_column(Numeric(10, 2), nullable=False)
    per_kg_rate: Mapped[float] = mapped_column(Numeric(10, 2), default=0, nullable=False)
    estimated_days: Mapped[int] = mapped_column(Integer, default=3, nullable=False)
    sort_order: Mapped[int | None] = mapped_column(Integer, nullable=True)
