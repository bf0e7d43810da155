from sqlalchemy import Column, String, Boolean, DateTime, Text, JSON
from sqlalchemy.orm import relationship
import uuid

from stock_reconciler.core.dates import utcnow
from stock_reconciler.db.database import Base


class Store(Base):
    __tablename__ = "stores"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    name = Column(String(255), nullable=False, unique=True)
    address = Column(Text)
    manager_name = Column(String(255))

    # Store specific column aliases, tried before the supplier/default mapping
    barcode_columns = Column(JSON)
    name_columns = Column(JSON)
    quantity_columns = Column(JSON)
    price_columns = Column(JSON)
    category_columns = Column(JSON)

    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    inventory = relationship("CurrentInventory", back_populates="store")
