from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from spicecart.db.session_async import get_async_db
from spicecart.schemas.shipping import ShippingZoneRead
from spicecart.services import free_shipping_service

router = APIRouter(prefix="/shipping", tags=["shipping"])


@router.get("/zones", response_model=list[ShippingZoneRead])
async def list_zones(db: AsyncSession = Depends(get_async_db)):
    zones = await free_shipping_service.list_shipping_zones(db)
    return [ShippingZoneRead.model_validate(zone, from_attributes=True) for zone in zones]
