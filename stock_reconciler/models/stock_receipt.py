from decimal import Decimal

from sqlalchemy import BigInteger, Column, String, DateTime, Date, DECIMAL, Integer, ForeignKey, Text
from sqlalchemy.orm import relationship
import uuid

from stock_reconciler.core.dates import utcnow
from stock_reconciler.db.database import Base

RECEIPT_PENDING = "pending"
RECEIPT_PROCESSING = "processing"
RECEIPT_COMPLETED = "completed"
RECEIPT_CANCELLED = "cancelled"
RECEIPT_FAILED = "failed"


class StockReceipt(Base):
    __tablename__ = "stock_receipts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    store_id = Column(String(36), ForeignKey("stores.id", ondelete="CASCADE"), nullable=False)
    supplier_id = Column(String(36), ForeignKey("suppliers.id"))
    supplier_name = Column(String(255), nullable=False)
    receipt_number = Column(String(100))
    receipt_date = Column(Date, nullable=False, default=lambda: utcnow().date())
    total_items = Column(BigInteger, default=0)
    total_cost = Column(DECIMAL(20, 2), default=0)
    status = Column(String(50), nullable=False, default=RECEIPT_PENDING, index=True)  # 'pending', 'processing', 'completed', 'cancelled', 'failed'
    notes = Column(Text)
    error_message = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    processed_at = Column(DateTime(timezone=True))

    # Relationships
    supplier = relationship("Supplier", back_populates="receipts")
    items = relationship("StockReceiptItem", back_populates="receipt", cascade="all, delete-orphan")


class StockReceiptItem(Base):
    __tablename__ = "stock_receipt_items"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    receipt_id = Column(String(36), ForeignKey("stock_receipts.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_cost = Column(DECIMAL(10, 2))
    batch_number = Column(String(100))
    created_at = Column(DateTime(timezone=True), default=utcnow)

    # Relationships
    receipt = relationship("StockReceipt", back_populates="items")
    product = relationship("Product")

    @property
    def total_cost(self) -> Decimal:
        return Decimal(self.quantity or 0) * (self.unit_cost or Decimal("0"))
