from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from stock_reconciler.core.exceptions import NotFoundError
from stock_reconciler.crud.store import store as store_crud
from stock_reconciler.db.database import get_db
from stock_reconciler.schemas.store import Store, StoreCreate, StoreUpdate

router = APIRouter()


@router.post("/", response_model=Store, status_code=201)
async def create_store(
    store_in: StoreCreate,
    db: AsyncSession = Depends(get_db)
):
    """Create a new store"""
    return await store_crud.create(db, obj_in=store_in)


@router.get("/", response_model=List[Store])
async def get_stores(
    skip: int = 0,
    limit: int = 100,
    is_active: bool = None,
    db: AsyncSession = Depends(get_db)
):
    """Get stores with optional active filter"""
    return await store_crud.get_multi(db, skip=skip, limit=limit, filters={"is_active": is_active})


@router.get("/{store_id}", response_model=Store)
async def get_store(
    store_id: str,
    db: AsyncSession = Depends(get_db)
):
    store = await store_crud.get(db, store_id)
    if not store:
        raise NotFoundError("Store", store_id)
    return store


@router.patch("/{store_id}", response_model=Store)
async def update_store(
    store_id: str,
    store_in: StoreUpdate,
    db: AsyncSession = Depends(get_db)
):
    """Update store details or its column aliases"""
    store = await store_crud.get(db, store_id)
    if not store:
        raise NotFoundError("Store", store_id)
    return await store_crud.update(db, db_obj=store, obj_in=store_in)
