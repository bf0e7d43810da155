import csv
import logging
from typing import List, Optional, Dict, Any

import pandas as pd
from sqlalchemy import select, update, desc, func
from sqlalchemy.ext.asyncio import AsyncSession

from stock_reconciler.core.dates import utcnow
from stock_reconciler.models.new_product_log import NewProductLog
from stock_reconciler.models.supplier import Supplier

logger = logging.getLogger(__name__)

log_table = NewProductLog.__table__

EXPORT_COLUMNS = ["barcode", "name", "supplier", "detected_at"]


class NewProductTracker:
    """Records products first seen in a delivery and hands them out for export"""

    def __init__(self, db: AsyncSession):
        self.db = db

    def record(
        self,
        product_id: str,
        barcode: str,
        name: Optional[str],
        supplier_id: Optional[str] = None,
        receipt_id: Optional[str] = None
    ) -> NewProductLog:
        entry = NewProductLog(
            product_id=product_id,
            supplier_id=supplier_id,
            receipt_id=receipt_id,
            barcode=barcode,
            name=name,
            is_exported=False
        )
        self.db.add(entry)
        logger.info(f"New product detected: {barcode} ({name})")
        return entry

    async def export_pending(
        self,
        supplier_id: Optional[str] = None,
        receipt_id: Optional[str] = None,
        limit: int = 1000
    ) -> List[Dict[str, Any]]:
        """Claim unexported entries and mark them exported.

        Selection and marking happen in one conditional UPDATE ... RETURNING,
        so two concurrent exports never return the same entry.
        """
        pending = (
            select(log_table.c.id)
            .where(log_table.c.is_exported == False)
            .order_by(desc(log_table.c.detected_at))
            .limit(limit)
        )
        if supplier_id:
            pending = pending.where(log_table.c.supplier_id == supplier_id)
        if receipt_id:
            pending = pending.where(log_table.c.receipt_id == receipt_id)

        stmt = (
            update(log_table)
            .where(log_table.c.id.in_(pending.scalar_subquery()))
            .where(log_table.c.is_exported == False)
            .values(is_exported=True, exported_at=utcnow())
            .returning(
                log_table.c.id,
                log_table.c.product_id,
                log_table.c.supplier_id,
                log_table.c.barcode,
                log_table.c.name,
                log_table.c.detected_at
            )
        )

        try:
            result = await self.db.execute(stmt)
            claimed = result.mappings().all()

            supplier_ids = {row["supplier_id"] for row in claimed if row["supplier_id"]}
            supplier_names = {}
            if supplier_ids:
                names_result = await self.db.execute(
                    select(Supplier.id, Supplier.name).where(Supplier.id.in_(supplier_ids))
                )
                supplier_names = dict(names_result.all())

            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        entries = [
            {
                "id": row["id"],
                "product_id": row["product_id"],
                "barcode": row["barcode"],
                "name": row["name"],
                "supplier_name": supplier_names.get(row["supplier_id"]),
                "detected_at": row["detected_at"]
            }
            for row in claimed
        ]
        entries.sort(key=lambda entry: entry["detected_at"], reverse=True)

        logger.info(f"Exported {len(entries)} new products")
        return entries

    async def count_pending(self, supplier_id: Optional[str] = None) -> int:
        stmt = select(func.count(NewProductLog.id)).where(NewProductLog.is_exported == False)
        if supplier_id:
            stmt = stmt.where(NewProductLog.supplier_id == supplier_id)
        result = await self.db.execute(stmt)
        return result.scalar_one()


def render_csv(entries: List[Dict[str, Any]]) -> str:
    """Render exported entries as the downstream barcode,name,supplier,detected_at CSV"""
    frame = pd.DataFrame(
        [
            {
                "barcode": entry.get("barcode") or "",
                "name": entry.get("name") or "",
                "supplier": entry.get("supplier_name") or "",
                "detected_at": entry["detected_at"].isoformat() if entry.get("detected_at") else ""
            }
            for entry in entries
        ],
        columns=EXPORT_COLUMNS
    )
    return frame.to_csv(index=False, quoting=csv.QUOTE_ALL, lineterminator="\n")
