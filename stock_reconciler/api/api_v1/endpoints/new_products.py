from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from stock_reconciler.core.config import settings
from stock_reconciler.core.dates import utcnow
from stock_reconciler.db.database import get_db
from stock_reconciler.schemas.new_product import NewProductExport
from stock_reconciler.services.new_product_tracker import NewProductTracker, render_csv

router = APIRouter()


@router.get("/pending")
async def count_pending_new_products(
    supplier_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db)
):
    """Number of new products waiting to be exported"""
    tracker = NewProductTracker(db)
    return {"pending": await tracker.count_pending(supplier_id)}


@router.post("/export")
async def export_new_products(
    supplier_id: Optional[str] = None,
    receipt_id: Optional[str] = None,
    limit: int = Query(settings.EXPORT_LIMIT, ge=1),
    format: str = Query("json", pattern="^(json|csv)$"),
    db: AsyncSession = Depends(get_db)
):
    """Export new products and mark them as exported"""

    tracker = NewProductTracker(db)
    entries = await tracker.export_pending(supplier_id=supplier_id, receipt_id=receipt_id, limit=limit)

    if format == "csv":
        filename = f"new_products_{utcnow().strftime('%Y%m%d_%H%M%S')}.csv"
        return Response(
            content=render_csv(entries),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'}
        )

    return [NewProductExport(**entry) for entry in entries]
