from sqlalchemy import Column, String, Boolean, DateTime, DECIMAL, Integer
from sqlalchemy.orm import relationship
import uuid

from stock_reconciler.core.dates import utcnow
from stock_reconciler.db.database import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    sku = Column(String(100), unique=True, nullable=False)
    barcode = Column(String(100), unique=True, index=True)
    name = Column(String(255), nullable=False)
    category = Column(String(100))
    unit_price = Column(DECIMAL(10, 2))
    cost_price = Column(DECIMAL(10, 2))
    min_stock_level = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    inventory = relationship("CurrentInventory", back_populates="product")
