import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Dict, Any

from sqlalchemy import BigInteger, select, func, and_, desc, cast
from sqlalchemy.ext.asyncio import AsyncSession

from stock_reconciler.core.dates import utcnow
from stock_reconciler.core.exceptions import NotFoundError, QuantityOutOfRange
from stock_reconciler.db.database import upsert
from stock_reconciler.models.inventory import CurrentInventory, MAX_QUANTITY
from stock_reconciler.models.inventory_movement import (
    InventoryMovement,
    MOVEMENT_ADJUSTMENT,
    MOVEMENT_RECEIPT,
    REFERENCE_MANUAL_ADJUSTMENT,
)
from stock_reconciler.models.product import Product
from stock_reconciler.models.store import Store

logger = logging.getLogger(__name__)

inventory_table = CurrentInventory.__table__


@dataclass
class QuantityChange:
    store_id: str
    product_id: str
    previous_quantity: int
    new_quantity: int
    movement: Optional[InventoryMovement] = None

    @property
    def quantity_change(self) -> int:
        return self.new_quantity - self.previous_quantity


class InventoryLedger:
    """The only writer of ``CurrentInventory`` quantities.

    Every write goes through an upsert on the (store_id, product_id) unique
    constraint so concurrent writers for the same pair serialize in the
    database. Unless ``skip_audit`` is passed, each write appends exactly one
    ``InventoryMovement``; movements are never updated or deleted.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def apply_delta(
        self,
        store_id: str,
        product_id: str,
        delta: int,
        *,
        movement_type: str = MOVEMENT_RECEIPT,
        reference_id: Optional[str] = None,
        reference_type: Optional[str] = None,
        unit_cost: Optional[Decimal] = None,
        notes: Optional[str] = None,
        skip_audit: bool = False
    ) -> QuantityChange:
        """Add ``delta`` to the current quantity, creating the row at 0 if absent.

        Raises ``QuantityOutOfRange`` instead of writing a total above ``MAX_QUANTITY``.
        """
        if delta > MAX_QUANTITY:
            raise QuantityOutOfRange(store_id, product_id, delta)

        now = utcnow()
        stmt = upsert(self.db, inventory_table).values(
            store_id=store_id,
            product_id=product_id,
            quantity=delta,
            reserved_quantity=0,
            last_updated=now
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["store_id", "product_id"],
            set_={
                "quantity": inventory_table.c.quantity + stmt.excluded.quantity,
                "last_updated": now
            },
            where=cast(inventory_table.c.quantity, BigInteger) + stmt.excluded.quantity <= MAX_QUANTITY
        ).returning(inventory_table.c.quantity)

        result = await self.db.execute(stmt)
        new_quantity = result.scalar_one_or_none()
        if new_quantity is None:
            raise QuantityOutOfRange(store_id, product_id, delta)

        change = QuantityChange(
            store_id=store_id,
            product_id=product_id,
            previous_quantity=new_quantity - delta,
            new_quantity=new_quantity
        )

        if not skip_audit:
            change.movement = self._record_movement(
                change,
                movement_type,
                reference_id,
                reference_type,
                unit_cost,
                notes
            )

        return change

    async def set_quantity(
        self,
        store_id: str,
        product_id: str,
        quantity: int,
        *,
        movement_type: str = MOVEMENT_ADJUSTMENT,
        reference_id: Optional[str] = None,
        reference_type: Optional[str] = REFERENCE_MANUAL_ADJUSTMENT,
        notes: Optional[str] = None,
        skip_audit: bool = False
    ) -> QuantityChange:
        """Overwrite the current quantity with an absolute value"""

        # Lock the existing row so the recorded previous quantity is the one replaced
        previous_stmt = (
            select(inventory_table.c.quantity)
            .where(
                and_(
                    inventory_table.c.store_id == store_id,
                    inventory_table.c.product_id == product_id
                )
            )
            .with_for_update()
        )
        previous_result = await self.db.execute(previous_stmt)
        previous_quantity = previous_result.scalar_one_or_none() or 0

        now = utcnow()
        stmt = upsert(self.db, inventory_table).values(
            store_id=store_id,
            product_id=product_id,
            quantity=quantity,
            reserved_quantity=0,
            last_updated=now,
            last_counted_at=now
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["store_id", "product_id"],
            set_={
                "quantity": stmt.excluded.quantity,
                "last_updated": now,
                "last_counted_at": now
            }
        ).returning(inventory_table.c.quantity)

        result = await self.db.execute(stmt)
        new_quantity = result.scalar_one()

        change = QuantityChange(
            store_id=store_id,
            product_id=product_id,
            previous_quantity=previous_quantity,
            new_quantity=new_quantity
        )

        if not skip_audit and change.quantity_change != 0:
            change.movement = self._record_movement(
                change,
                movement_type,
                reference_id,
                reference_type,
                None,
                notes
            )

        return change

    def _record_movement(
        self,
        change: QuantityChange,
        movement_type: str,
        reference_id: Optional[str],
        reference_type: Optional[str],
        unit_cost: Optional[Decimal],
        notes: Optional[str]
    ) -> InventoryMovement:
        """Append one immutable movement row"""

        movement = InventoryMovement(
            store_id=change.store_id,
            product_id=change.product_id,
            movement_type=movement_type,
            quantity_change=change.quantity_change,
            previous_quantity=change.previous_quantity,
            new_quantity=change.new_quantity,
            reference_id=reference_id,
            reference_type=reference_type,
            unit_cost=unit_cost,
            notes=notes
        )
        self.db.add(movement)
        return movement

    async def get_quantity(self, store_id: str, product_id: str) -> Optional[int]:
        stmt = select(inventory_table.c.quantity).where(
            and_(
                inventory_table.c.store_id == store_id,
                inventory_table.c.product_id == product_id
            )
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def manual_adjustment(
        self,
        store_id: str,
        product_id: str,
        new_quantity: int,
        notes: Optional[str] = None
    ) -> Dict[str, Any]:
        """Manually correct the quantity of one product in one store"""

        if not await self.db.get(Store, store_id):
            raise NotFoundError("Store", store_id)

        product = await self.db.get(Product, product_id)
        if not product:
            raise NotFoundError("Product", product_id)

        try:
            change = await self.set_quantity(
                store_id,
                product_id,
                new_quantity,
                notes=notes or "Manual adjustment"
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            f"Manual adjustment for product {product_id} in store {store_id}: "
            f"{change.previous_quantity} -> {change.new_quantity}"
        )

        return {
            "store_id": store_id,
            "product_id": product_id,
            "previous_quantity": change.previous_quantity,
            "new_quantity": change.new_quantity,
            "quantity_change": change.quantity_change
        }

    async def get_movements(
        self,
        store_id: Optional[str] = None,
        product_id: Optional[str] = None,
        limit: int = 100
    ) -> List[InventoryMovement]:
        """Most recent movements first"""

        stmt = select(InventoryMovement)
        if store_id:
            stmt = stmt.where(InventoryMovement.store_id == store_id)
        if product_id:
            stmt = stmt.where(InventoryMovement.product_id == product_id)

        stmt = stmt.order_by(desc(InventoryMovement.created_at)).limit(limit)
        result = await self.db.execute(stmt)
        return result.scalars().all()

    async def summarize_movements(
        self,
        store_id: str,
        product_id: Optional[str] = None
    ) -> Dict[str, Dict[str, int]]:
        """Net quantity change and movement count per movement type, derived from the log"""

        stmt = (
            select(
                InventoryMovement.movement_type,
                func.coalesce(func.sum(InventoryMovement.quantity_change), 0),
                func.count(InventoryMovement.id)
            )
            .where(InventoryMovement.store_id == store_id)
            .group_by(InventoryMovement.movement_type)
        )
        if product_id:
            stmt = stmt.where(InventoryMovement.product_id == product_id)

        result = await self.db.execute(stmt)
        return {
            movement_type: {"quantity_change": int(total), "movements": int(count)}
            for movement_type, total, count in result.all()
        }

    async def get_store_inventory(self, store_id: str) -> List[Dict[str, Any]]:
        stmt = (
            select(CurrentInventory, Product)
            .join(Product, Product.id == CurrentInventory.product_id)
            .where(CurrentInventory.store_id == store_id)
            .order_by(Product.name)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)

        return [
            {
                "product_id": product.id,
                "barcode": product.barcode,
                "sku": product.sku,
                "name": product.name,
                "quantity": row.quantity,
                "reserved_quantity": row.reserved_quantity,
                "available_quantity": row.available_quantity,
                "last_updated": row.last_updated
            }
            for row, product in result.all()
        ]

    async def get_low_stock(
        self,
        store_id: Optional[str] = None,
        threshold: int = 10
    ) -> List[Dict[str, Any]]:
        """Get items whose available quantity is at or below the threshold"""

        available = CurrentInventory.quantity - CurrentInventory.reserved_quantity
        stmt = (
            select(CurrentInventory, Product)
            .join(Product, Product.id == CurrentInventory.product_id)
            .where(available <= threshold)
            .where(Product.is_active == True)
            .order_by(available, Product.name)
            .execution_options(populate_existing=True)
        )
        if store_id:
            stmt = stmt.where(CurrentInventory.store_id == store_id)

        result = await self.db.execute(stmt)

        return [
            {
                "store_id": row.store_id,
                "product_id": product.id,
                "barcode": product.barcode,
                "product_name": product.name,
                "current_quantity": row.quantity,
                "available_quantity": row.available_quantity
            }
            for row, product in result.all()
        ]
