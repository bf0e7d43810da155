from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from stock_reconciler.core.exceptions import NotFoundError
from stock_reconciler.crud.product import product
from stock_reconciler.db.database import get_db
from stock_reconciler.schemas.product import Product, ProductCreate

router = APIRouter()


@router.get("/", response_model=List[Product])
async def get_products(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    category: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None),
    db: AsyncSession = Depends(get_db)
):
    """Get all products with filtering options"""
    filters = {"category": category, "is_active": is_active}
    return await product.get_multi(db, skip=skip, limit=limit, filters=filters)


@router.post("/", response_model=Product, status_code=201)
async def create_product(
    product_in: ProductCreate,
    db: AsyncSession = Depends(get_db)
):
    """Register a product so current stock uploads can update it"""
    return await product.create(db, obj_in=product_in)


@router.get("/barcode/{barcode}", response_model=Product)
async def get_product_by_barcode(
    barcode: str,
    db: AsyncSession = Depends(get_db)
):
    db_product = await product.get_by_barcode(db, barcode)
    if not db_product:
        raise NotFoundError("Product", barcode)
    return db_product


@router.get("/{product_id}", response_model=Product)
async def get_product(
    product_id: str,
    db: AsyncSession = Depends(get_db)
):
    """Get a specific product by ID"""
    db_product = await product.get(db, product_id)
    if not db_product:
        raise NotFoundError("Product", product_id)
    return db_product
