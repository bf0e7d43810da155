from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
import uuid

from stock_reconciler.core.dates import utcnow
from stock_reconciler.db.database import Base


class NewProductLog(Base):
    __tablename__ = "new_products_log"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    product_id = Column(String(36), ForeignKey("products.id", ondelete="CASCADE"), index=True)
    supplier_id = Column(String(36), ForeignKey("suppliers.id"), index=True)
    receipt_id = Column(String(36), ForeignKey("stock_receipts.id"), index=True)
    barcode = Column(String(100))
    name = Column(String(255))
    detected_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    exported_at = Column(DateTime(timezone=True))
    is_exported = Column(Boolean, nullable=False, default=False, index=True)

    # Relationships
    product = relationship("Product")
    supplier = relationship("Supplier")
