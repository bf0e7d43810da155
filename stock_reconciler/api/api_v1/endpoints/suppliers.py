from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from stock_reconciler.db.database import get_db
from stock_reconciler.schemas.supplier import Supplier, SupplierCreate, SupplierUpdate
from stock_reconciler.services.supplier_service import SupplierService

router = APIRouter()


@router.get("/", response_model=List[Supplier])
async def get_suppliers(
    include_inactive: bool = False,
    db: AsyncSession = Depends(get_db)
):
    """Get suppliers with their CSV column aliases"""
    service = SupplierService(db)
    return await service.get_suppliers(include_inactive=include_inactive)


@router.post("/", response_model=Supplier, status_code=201)
async def create_supplier(
    supplier_in: SupplierCreate,
    db: AsyncSession = Depends(get_db)
):
    """Create a supplier; the code defaults to the upper-cased name"""
    service = SupplierService(db)
    return await service.create_supplier(supplier_in)


@router.get("/{supplier_id}", response_model=Supplier)
async def get_supplier(
    supplier_id: str,
    db: AsyncSession = Depends(get_db)
):
    service = SupplierService(db)
    return await service.get_supplier(supplier_id)


@router.patch("/{supplier_id}", response_model=Supplier)
async def update_supplier(
    supplier_id: str,
    supplier_in: SupplierUpdate,
    db: AsyncSession = Depends(get_db)
):
    """Update a supplier; set is_active to false to retire it"""
    service = SupplierService(db)
    return await service.update_supplier(supplier_id, supplier_in)
