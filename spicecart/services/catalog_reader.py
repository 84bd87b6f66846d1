"""Read-only catalog access for the cart.

Consumer and wholesale catalogs are read through two different paths. The
public reader filters wholesale rows out in SQL, so it cannot return them
whatever the caller asks for. The elevated reader runs on the privileged
connection, sees every live row and reports `is_b2b` faithfully so wholesale
callers can be told a retail product does not belong in their cart. The
channel decides which reader a request gets, so the cart code never branches
on it.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from spicecart.core.config import settings
from spicecart.core.logging import get_logger
from spicecart.domain.enums import Channel
from spicecart.models.catalog import B2BSettings, Product, ProductVariant
from spicecart.services.exceptions import StoreFailure

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProductSnapshot:
    id: uuid.UUID
    name: str
    name_ar: str | None
    brand: str | None
    image_url: str | None
    price: Decimal | None
    stock: int
    is_b2b: bool
    price_hidden: bool
    has_tax: bool


@dataclass(frozen=True)
class VariantSnapshot:
    id: uuid.UUID
    product_id: uuid.UUID
    sku: str | None
    size: str | None
    price: Decimal | None
    stock: int


@dataclass(frozen=True)
class B2BContact:
    label: str
    url: str


def _money(value) -> Decimal | None:
    if value is None:
        return None
    return Decimal(str(value))


def _variant_snapshot(variant: ProductVariant) -> VariantSnapshot:
    return VariantSnapshot(
        id=variant.id,
        product_id=variant.product_id,
        sku=variant.sku,
        size=variant.size,
        price=_money(variant.price),
        stock=int(variant.stock or 0),
    )


class CatalogReader:
    """Channel-bound catalog accessor."""

    channel: Channel

    def __init__(self, db: AsyncSession):
        self.db = db

    def _product_filters(self) -> list:
        raise NotImplementedError

    async def _price_hidden(self, product: Product) -> bool:
        raise NotImplementedError

    async def contact_path(self) -> B2BContact | None:
        """Where to send callers for on-request prices. None outside the wholesale channel."""
        return None

    async def _snapshot(self, product: Product) -> ProductSnapshot:
        return ProductSnapshot(
            id=product.id,
            name=product.name,
            name_ar=product.name_ar,
            brand=product.brand,
            image_url=product.image_url,
            price=_money(product.price),
            stock=int(product.stock or 0),
            is_b2b=bool(product.is_b2b),
            price_hidden=await self._price_hidden(product),
            has_tax=bool(product.has_tax),
        )

    async def _fetch_products(self, ids: list[uuid.UUID]) -> list[Product]:
        stmt = select(Product).where(Product.id.in_(ids), *self._product_filters())
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as exc:
            logger.error("Catalog read failed", extra={"channel": self.channel.value}, exc_info=True)
            raise StoreFailure("Catalog is temporarily unavailable") from exc
        return list(result.scalars().all())

    async def get_product(self, product_id: uuid.UUID) -> ProductSnapshot | None:
        products = await self._fetch_products([product_id])
        if not products:
            return None
        return await self._snapshot(products[0])

    async def get_products(self, product_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, ProductSnapshot]:
        ids = list(dict.fromkeys(product_ids))
        if not ids:
            return {}
        return {product.id: await self._snapshot(product) for product in await self._fetch_products(ids)}

    async def get_variant(self, variant_id: uuid.UUID, product_id: uuid.UUID) -> VariantSnapshot | None:
        variants = await self.get_variants([variant_id])
        variant = variants.get(variant_id)
        if variant is None or variant.product_id != product_id:
            return None
        return variant

    async def get_variants(self, variant_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, VariantSnapshot]:
        ids = list(dict.fromkeys(v for v in variant_ids if v is not None))
        if not ids:
            return {}
        # Joined to products so a variant is only visible when its product is.
        stmt = (
            select(ProductVariant)
            .join(Product, Product.id == ProductVariant.product_id)
            .where(ProductVariant.id.in_(ids), *self._product_filters())
        )
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as exc:
            logger.error("Variant read failed", extra={"channel": self.channel.value}, exc_info=True)
            raise StoreFailure("Catalog is temporarily unavailable") from exc
        return {variant.id: _variant_snapshot(variant) for variant in result.scalars().all()}


class PublicCatalogReader(CatalogReader):
    """Standard-privilege reader for the consumer storefront."""

    channel = Channel.b2c

    def _product_filters(self) -> list:
        return [Product.is_b2b.is_(False), Product.is_archived.is_(False)]

    async def _price_hidden(self, product: Product) -> bool:
        # The flag only exists for wholesale rows.
        return False


class ElevatedCatalogReader(CatalogReader):
    """Wholesale reader running on the elevated connection."""

    channel = Channel.b2b

    def __init__(self, db: AsyncSession):
        super().__init__(db)
        self._settings_loaded = False
        self._settings: B2BSettings | None = None

    def _product_filters(self) -> list:
        return [Product.is_archived.is_(False)]

    async def _load_settings(self) -> B2BSettings | None:
        if not self._settings_loaded:
            try:
                result = await self.db.execute(select(B2BSettings).order_by(B2BSettings.id).limit(1))
            except SQLAlchemyError as exc:
                logger.error("B2B settings read failed", exc_info=True)
                raise StoreFailure("Catalog is temporarily unavailable") from exc
            self._settings = result.scalars().first()
            self._settings_loaded = True
        return self._settings

    async def _price_hidden(self, product: Product) -> bool:
        # Null base price is allowed; variants may carry the price.
        if not product.is_b2b:
            return False
        if product.b2b_price_hidden:
            return True
        b2b_settings = await self._load_settings()
        return bool(b2b_settings and b2b_settings.price_hidden)

    async def contact_path(self) -> B2BContact:
        b2b_settings = await self._load_settings()
        return B2BContact(
            label=(b2b_settings and b2b_settings.contact_label) or settings.B2B_CONTACT_LABEL,
            url=(b2b_settings and b2b_settings.contact_url) or settings.B2B_CONTACT_URL,
        )


def catalog_reader_for(channel: Channel, db: AsyncSession, elevated_db: AsyncSession) -> CatalogReader:
    """Pick the reader for ``channel``. Wholesale rows are only reachable through ``elevated_db``."""
    if Channel(channel) is Channel.b2b:
        return ElevatedCatalogReader(elevated_db)
    return PublicCatalogReader(db)
