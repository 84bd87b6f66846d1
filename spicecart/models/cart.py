# spicecart/models/cart.py
import uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import CheckConstraint, String, Enum, DateTime, func, Numeric, Integer, ForeignKey, Index, UniqueConstraint, text

from spicecart.db.session import Base
from spicecart.db.types import GUID
from spicecart.domain.enums import CartStatus, Channel

_ACTIVE = text("status = 'active'")


class Cart(Base):
    __tablename__ = "carts"
    __table_args__ = (
        # One active cart per identity and channel.
        Index(
            "uq_carts_user_channel_active",
            "user_id",
            "channel",
            unique=True,
            postgresql_where=_ACTIVE,
            sqlite_where=_ACTIVE,
        ),
        Index(
            "uq_carts_guest_channel_active",
            "guest_token",
            "channel",
            unique=True,
            postgresql_where=_ACTIVE,
            sqlite_where=_ACTIVE,
        ),
        Index("ix_carts_status_updated_at", "status", "updated_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4, nullable=False)
    # Subject claim issued by the identity provider.
    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    guest_token: Mapped[str | None] = mapped_column(String(120), nullable=True)

    channel: Mapped[Channel] = mapped_column(Enum(Channel, name="cartchannel"), nullable=False)
    status: Mapped[CartStatus] = mapped_column(Enum(CartStatus), default=CartStatus.active, nullable=False)

    created_at = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    items: Mapped[list["CartItem"]] = relationship(
        "CartItem",
        back_populates="cart",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="CartItem.created_at",
    )


class CartItem(Base):
    __tablename__ = "cart_items"
    # NULL variant_id is not covered by the constraint; the store enforces it.
    __table_args__ = (
        UniqueConstraint("cart_id", "product_id", "variant_id", name="uq_cart_items_cart_product_variant"),
        CheckConstraint("quantity > 0", name="ck_cart_items_quantity_positive"),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4, nullable=False)
    cart_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("carts.id", ondelete="CASCADE"), nullable=False)
    product_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    variant_id: Mapped[uuid.UUID | None] = mapped_column(
        GUID(), ForeignKey("product_variants.id", ondelete="SET NULL"), nullable=True
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    # Price captured at add time; totals use this instead of the live catalog.
    unit_price: Mapped[float | None] = mapped_column(Numeric(12, 2), nullable=True)

    created_at = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    cart = relationship("Cart", back_populates="items")
