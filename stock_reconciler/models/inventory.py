from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
import uuid

from stock_reconciler.core.dates import utcnow
from stock_reconciler.db.database import Base

# Upper bound of the Integer quantity columns
MAX_QUANTITY = 2_147_483_647


class CurrentInventory(Base):
    __tablename__ = "current_inventory"
    __table_args__ = (
        UniqueConstraint("store_id", "product_id", name="uq_current_inventory_store_product"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    store_id = Column(String(36), ForeignKey("stores.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    quantity = Column(Integer, nullable=False, default=0)
    reserved_quantity = Column(Integer, nullable=False, default=0)
    last_updated = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    last_counted_at = Column(DateTime(timezone=True))

    # Relationships
    store = relationship("Store", back_populates="inventory")
    product = relationship("Product", back_populates="inventory")

    @property
    def available_quantity(self) -> int:
        return (self.quantity or 0) - (self.reserved_quantity or 0)
