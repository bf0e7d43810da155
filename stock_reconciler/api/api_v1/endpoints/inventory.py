from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, Form, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional, Tuple, Dict

from stock_reconciler.core.config import settings
from stock_reconciler.db.database import get_db
from stock_reconciler.schemas.inventory import (
    InventoryItem,
    LowStockItem,
    InventoryAdjustment,
    InventoryAdjustmentResult,
    InventoryMovement,
    MovementSummary,
    UploadResult,
)
from stock_reconciler.services.csv_normalizer import decode_upload, read_csv_rows
from stock_reconciler.services.inventory_ledger import InventoryLedger
from stock_reconciler.services.reconciliation_service import ReconciliationService

router = APIRouter()


async def read_upload(file: UploadFile) -> Tuple[List[str], List[Dict[str, str]]]:
    """Read an uploaded CSV file into headers and rows"""

    content = await file.read()
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="CSV file is too large")
    if not content.strip():
        raise HTTPException(status_code=400, detail="CSV file is empty")

    try:
        return read_csv_rows(decode_upload(content))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Could not parse CSV file: {e}")


def upload_response(result: UploadResult):
    if not result.success and result.summary is None:
        return JSONResponse(status_code=400, content=result.model_dump())
    return result


@router.post("/{store_id}/upload/current-stock", response_model=UploadResult)
async def upload_current_stock(
    store_id: str,
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db)
):
    """Replace stock levels with a full stock count"""

    headers, rows = await read_upload(file)
    service = ReconciliationService(db)
    result = await service.upload_current_stock(store_id, rows, headers=headers)
    return upload_response(result)


@router.post("/{store_id}/upload/supplier-delivery", response_model=UploadResult)
async def upload_supplier_delivery(
    store_id: str,
    file: UploadFile = File(...),
    supplier_name: Optional[str] = Form(None),
    supplier_id: Optional[str] = Form(None),
    db: AsyncSession = Depends(get_db)
):
    """Add a supplier delivery to stock"""

    if not supplier_name and not supplier_id:
        raise HTTPException(status_code=400, detail="supplier_name or supplier_id is required")

    headers, rows = await read_upload(file)
    service = ReconciliationService(db)
    result = await service.upload_supplier_delivery(
        store_id,
        rows,
        supplier_name,
        supplier_id=supplier_id,
        headers=headers
    )
    return upload_response(result)


@router.get("/movements", response_model=List[InventoryMovement])
async def get_movements(
    store_id: Optional[str] = None,
    product_id: Optional[str] = None,
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db)
):
    """Get the movement log, newest first"""

    ledger = InventoryLedger(db)
    return await ledger.get_movements(store_id=store_id, product_id=product_id, limit=limit)


@router.get("/movements/summary", response_model=MovementSummary)
async def get_movement_summary(
    store_id: str,
    product_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db)
):
    """Aggregate the movement log per movement type"""

    ledger = InventoryLedger(db)
    by_type = await ledger.summarize_movements(store_id, product_id)
    return MovementSummary(store_id=store_id, product_id=product_id, by_movement_type=by_type)


@router.get("/low-stock", response_model=List[LowStockItem])
async def get_low_stock_items(
    store_id: Optional[str] = None,
    threshold: int = Query(settings.LOW_STOCK_THRESHOLD, ge=0),
    db: AsyncSession = Depends(get_db)
):
    """Get items with low stock"""

    ledger = InventoryLedger(db)
    return await ledger.get_low_stock(store_id=store_id, threshold=threshold)


@router.get("/{store_id}", response_model=List[InventoryItem])
async def get_store_inventory(
    store_id: str,
    db: AsyncSession = Depends(get_db)
):
    """Get current stock of a store"""

    ledger = InventoryLedger(db)
    return await ledger.get_store_inventory(store_id)


@router.patch("/{store_id}/{product_id}", response_model=InventoryAdjustmentResult)
async def manual_inventory_update(
    store_id: str,
    product_id: str,
    adjustment: InventoryAdjustment,
    db: AsyncSession = Depends(get_db)
):
    """Manually correct the stock of one product"""

    ledger = InventoryLedger(db)
    return await ledger.manual_adjustment(
        store_id,
        product_id,
        adjustment.quantity,
        notes=adjustment.notes
    )
