from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from busline.db.session import get_session
from busline.schemas.catalog import BusOut, RegionOut, RouteOut, SessionOut
from busline.services.catalog import CatalogService

router = APIRouter(tags=["catalog"])


@router.get("/regions", response_model=List[RegionOut])
async def list_regions(db: AsyncSession = Depends(get_session)):
    return await CatalogService(db).list_regions()


@router.get("/routes", response_model=List[RouteOut])
async def list_routes(region_id: Optional[int] = None, db: AsyncSession = Depends(get_session)):
    """Routes open for booking, optionally within one region."""
    return await CatalogService(db).list_active_routes(region_id=region_id)


@router.get("/buses", response_model=List[BusOut])
async def list_buses(db: AsyncSession = Depends(get_session)):
    return await CatalogService(db).list_active_buses()


@router.get("/sessions", response_model=List[SessionOut])
async def list_sessions(route_id: Optional[int] = None, db: AsyncSession = Depends(get_session)):
    return await CatalogService(db).list_sessions(route_id=route_id)
