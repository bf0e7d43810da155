from sqlalchemy import Column, String, Integer, DateTime, DECIMAL, ForeignKey, Text
from sqlalchemy.orm import relationship
import uuid

from stock_reconciler.core.dates import utcnow
from stock_reconciler.db.database import Base

MOVEMENT_RECEIPT = "receipt"
MOVEMENT_ADJUSTMENT = "adjustment"

REFERENCE_STOCK_RECEIPT = "stock_receipt"
REFERENCE_MANUAL_ADJUSTMENT = "manual_adjustment"


class InventoryMovement(Base):
    """Immutable record of one inventory quantity change"""

    __tablename__ = "inventory_movements"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    store_id = Column(String(36), ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    movement_type = Column(String(50), nullable=False)  # 'receipt', 'adjustment', 'sale_offline', 'sale_online', 'return', 'transfer_in', 'transfer_out', 'shrinkage'
    quantity_change = Column(Integer, nullable=False)
    previous_quantity = Column(Integer, nullable=False)
    new_quantity = Column(Integer, nullable=False)
    reference_id = Column(String(36))
    reference_type = Column(String(50))  # 'stock_receipt', 'manual_adjustment'
    unit_cost = Column(DECIMAL(10, 2))
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)

    # Relationships
    store = relationship("Store")
    product = relationship("Product")
