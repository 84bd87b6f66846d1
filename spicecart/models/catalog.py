from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, Boolean, Numeric, ForeignKey, DateTime, func, Integer
import uuid

from spicecart.db.session import Base
from spicecart.db.types import GUID


# --- Producto (leído por el carrito, administrado fuera de este servicio) ---
class Product(Base):
    __tablename__ = "products"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    name_ar: Mapped[str | None] = mapped_column(String(200), nullable=True)
    brand: Mapped[str | None] = mapped_column(String(120), nullable=True)
    image_url: Mapped[str | None] = mapped_column(String(512), nullable=True)

    # NULL price means "price on request" for wholesale rows
    price: Mapped[float | None] = mapped_column(Numeric(10, 2), nullable=True)
    stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    is_b2b: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    b2b_price_hidden: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    has_tax: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = mapped_column(DateTime(timezone=True), onupdate=func.now())

    variants = relationship("ProductVariant", back_populates="product", cascade="all, delete-orphan")


# --- Variante (peso/tamaño/SKU/stock) ---
class ProductVariant(Base):
    __tablename__ = "product_variants"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    product_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )

    sku: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    size: Mapped[str | None] = mapped_column(String(40), nullable=True)
    price: Mapped[float | None] = mapped_column(Numeric(10, 2), nullable=True)
    stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    product = relationship(Product, back_populates="variants")


# --- Configuración mayorista global ---
class B2BSettings(Base):
    __tablename__ = "b2b_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    price_hidden: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    contact_label: Mapped[str | None] = mapped_column(String(120), nullable=True)
    contact_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
