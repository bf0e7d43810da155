import logging
from decimal import Decimal
from typing import List, Optional, Sequence, Dict, Any

from sqlalchemy import select, update, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from stock_reconciler.core.dates import utcnow
from stock_reconciler.core.exceptions import (
    InvalidReceiptState,
    NotFoundError,
    ReceiptNotFound,
    ReceiptProcessingFailed,
    ReconciliationError,
)
from stock_reconciler.models.inventory_movement import MOVEMENT_RECEIPT, REFERENCE_STOCK_RECEIPT
from stock_reconciler.models.product import Product
from stock_reconciler.models.stock_receipt import (
    StockReceipt,
    StockReceiptItem,
    RECEIPT_PENDING,
    RECEIPT_PROCESSING,
    RECEIPT_COMPLETED,
    RECEIPT_CANCELLED,
    RECEIPT_FAILED,
)
from stock_reconciler.models.store import Store
from stock_reconciler.models.supplier import Supplier
from stock_reconciler.schemas.receipt import StockReceiptCreate
from stock_reconciler.services.inventory_ledger import InventoryLedger, QuantityChange
from stock_reconciler.services.supplier_service import SupplierService

logger = logging.getLogger(__name__)

receipt_table = StockReceipt.__table__


class ReceiptService:
    """Lifecycle of supplier delivery receipts.

    pending -> processing -> completed | failed, and pending -> cancelled.
    Leaving ``pending`` is a compare-and-set on the status column so a receipt
    is applied to inventory at most once.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.ledger = InventoryLedger(db)

    async def open_receipt(
        self,
        store_id: str,
        supplier: Supplier,
        receipt_number: Optional[str] = None,
        receipt_date=None,
        notes: Optional[str] = None
    ) -> StockReceipt:
        """Add a pending receipt header to the current transaction"""

        receipt = StockReceipt(
            store_id=store_id,
            supplier_id=supplier.id,
            supplier_name=supplier.name,
            receipt_number=receipt_number,
            notes=notes,
            status=RECEIPT_PENDING,
            total_items=0,
            total_cost=Decimal("0")
        )
        if receipt_date:
            receipt.receipt_date = receipt_date

        self.db.add(receipt)
        await self.db.flush()
        return receipt

    def add_items(self, receipt: StockReceipt, items: Sequence[Dict[str, Any]]) -> List[StockReceiptItem]:
        """Attach items to a pending receipt and refresh its totals"""

        if receipt.status != RECEIPT_PENDING:
            raise InvalidReceiptState(receipt.id, receipt.status)

        created = []
        for item in items:
            receipt_item = StockReceiptItem(
                receipt_id=receipt.id,
                product_id=item["product_id"],
                quantity=item["quantity"],
                unit_cost=item.get("unit_cost"),
                batch_number=item.get("batch_number")
            )
            self.db.add(receipt_item)
            created.append(receipt_item)

        receipt.total_items = (receipt.total_items or 0) + sum(item.quantity for item in created)
        receipt.total_cost = (receipt.total_cost or Decimal("0")) + sum(
            (item.total_cost for item in created), Decimal("0")
        )
        return created

    async def create_stock_receipt(self, receipt_in: StockReceiptCreate) -> StockReceipt:
        """Create a pending receipt with its items"""

        if not await self.db.get(Store, receipt_in.store_id):
            raise NotFoundError("Store", receipt_in.store_id)

        supplier_service = SupplierService(self.db)
        if receipt_in.supplier_id:
            supplier = await supplier_service.get_supplier(receipt_in.supplier_id)
        else:
            supplier = await supplier_service.get_or_create_by_name(receipt_in.supplier_name)

        product_ids = {item.product_id for item in receipt_in.items}
        result = await self.db.execute(select(Product.id).where(Product.id.in_(product_ids)))
        missing = product_ids - set(result.scalars().all())
        if missing:
            raise NotFoundError("Product", ", ".join(sorted(missing)))

        try:
            receipt = await self.open_receipt(
                receipt_in.store_id,
                supplier,
                receipt_number=receipt_in.receipt_number,
                receipt_date=receipt_in.receipt_date,
                notes=receipt_in.notes
            )
            self.add_items(receipt, [item.model_dump() for item in receipt_in.items])
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Created stock receipt {receipt.id} for store {receipt.store_id} with {len(receipt_in.items)} items")
        return await self.get_receipt(receipt.id)

    async def get_receipt(self, receipt_id: str) -> StockReceipt:
        stmt = (
            select(StockReceipt)
            .options(selectinload(StockReceipt.items))
            .where(StockReceipt.id == receipt_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        receipt = result.scalar_one_or_none()
        if not receipt:
            raise ReceiptNotFound(receipt_id)
        return receipt

    async def _transition(self, receipt_id: str, from_status: str, to_status: str, **values) -> None:
        """Move a receipt between states only if it is still in ``from_status``"""

        stmt = (
            update(receipt_table)
            .where(and_(receipt_table.c.id == receipt_id, receipt_table.c.status == from_status))
            .values(status=to_status, **values)
        )
        result = await self.db.execute(stmt)
        if result.rowcount == 1:
            return

        current = await self.db.execute(
            select(receipt_table.c.status).where(receipt_table.c.id == receipt_id)
        )
        status = current.scalar_one_or_none()
        if status is None:
            raise ReceiptNotFound(receipt_id)
        raise InvalidReceiptState(receipt_id, status, expected=from_status)

    async def process_stock_receipt(self, receipt_id: str) -> StockReceipt:
        """Apply every item of a pending receipt to inventory.

        Items are applied all-or-nothing: if any item fails, no inventory or
        movement change of this receipt is kept, the receipt ends up ``failed``
        and ``ReceiptProcessingFailed`` is raised.
        """
        try:
            await self._transition(receipt_id, RECEIPT_PENDING, RECEIPT_PROCESSING)
        except ReconciliationError:
            await self.db.rollback()
            raise

        receipt_result = await self.db.execute(
            select(receipt_table.c.store_id, receipt_table.c.supplier_name)
            .where(receipt_table.c.id == receipt_id)
        )
        store_id, supplier_name = receipt_result.one()

        items_result = await self.db.execute(
            select(StockReceiptItem)
            .where(StockReceiptItem.receipt_id == receipt_id)
            .order_by(StockReceiptItem.created_at)
        )
        items = items_result.scalars().all()

        changes: List[QuantityChange] = []
        try:
            async with self.db.begin_nested():
                for item in items:
                    change = await self.ledger.apply_delta(
                        store_id,
                        item.product_id,
                        item.quantity,
                        movement_type=MOVEMENT_RECEIPT,
                        reference_id=receipt_id,
                        reference_type=REFERENCE_STOCK_RECEIPT,
                        unit_cost=item.unit_cost,
                        notes=f"Supplier delivery from {supplier_name}"
                    )
                    changes.append(change)
        except (SQLAlchemyError, ReconciliationError) as e:
            logger.error(f"Processing stock receipt {receipt_id} failed: {e}")
            await self._transition(
                receipt_id,
                RECEIPT_PROCESSING,
                RECEIPT_FAILED,
                error_message=str(e),
                processed_at=utcnow()
            )
            await self.db.commit()
            raise ReceiptProcessingFailed(receipt_id, str(e)) from e

        try:
            await self._transition(
                receipt_id,
                RECEIPT_PROCESSING,
                RECEIPT_COMPLETED,
                processed_at=utcnow()
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            f"Processed stock receipt {receipt_id}: {len(changes)} items, "
            f"{sum(change.quantity_change for change in changes)} units added"
        )
        return await self.get_receipt(receipt_id)

    async def cancel_receipt(self, receipt_id: str) -> StockReceipt:
        """Cancel a receipt that has not been processed; inventory is untouched"""

        try:
            await self._transition(receipt_id, RECEIPT_PENDING, RECEIPT_CANCELLED)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Cancelled stock receipt {receipt_id}")
        return await self.get_receipt(receipt_id)

    async def get_receipts(
        self,
        store_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 100
    ) -> List[StockReceipt]:
        stmt = select(StockReceipt).options(selectinload(StockReceipt.items))
        if store_id:
            stmt = stmt.where(StockReceipt.store_id == store_id)
        if status:
            stmt = stmt.where(StockReceipt.status == status)
        stmt = stmt.order_by(StockReceipt.created_at.desc()).limit(limit)

        result = await self.db.execute(stmt)
        return result.scalars().all()
