from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from stock_reconciler.db.database import get_db
from stock_reconciler.schemas.receipt import StockReceipt, StockReceiptCreate
from stock_reconciler.services.receipt_service import ReceiptService

router = APIRouter()


@router.post("/", response_model=StockReceipt, status_code=201)
async def create_stock_receipt(
    receipt_in: StockReceiptCreate,
    db: AsyncSession = Depends(get_db)
):
    """Create a pending stock receipt"""
    service = ReceiptService(db)
    return await service.create_stock_receipt(receipt_in)


@router.get("/", response_model=List[StockReceipt])
async def get_stock_receipts(
    store_id: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = 100,
    db: AsyncSession = Depends(get_db)
):
    service = ReceiptService(db)
    return await service.get_receipts(store_id=store_id, status=status, limit=limit)


@router.get("/{receipt_id}", response_model=StockReceipt)
async def get_stock_receipt(
    receipt_id: str,
    db: AsyncSession = Depends(get_db)
):
    service = ReceiptService(db)
    return await service.get_receipt(receipt_id)


@router.post("/{receipt_id}/process", response_model=StockReceipt)
async def process_stock_receipt(
    receipt_id: str,
    db: AsyncSession = Depends(get_db)
):
    """Apply a pending receipt to inventory"""
    service = ReceiptService(db)
    return await service.process_stock_receipt(receipt_id)


@router.post("/{receipt_id}/cancel", response_model=StockReceipt)
async def cancel_stock_receipt(
    receipt_id: str,
    db: AsyncSession = Depends(get_db)
):
    """Cancel a pending receipt"""
    service = ReceiptService(db)
    return await service.cancel_receipt(receipt_id)
