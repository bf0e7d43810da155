from sqlalchemy import Column, String, Boolean, DateTime, Text, JSON
from sqlalchemy.orm import relationship
import uuid

from stock_reconciler.core.dates import utcnow
from stock_reconciler.db.database import Base


class Supplier(Base):
    __tablename__ = "suppliers"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    name = Column(String(255), nullable=False, unique=True)
    code = Column(String(50), unique=True)
    contact_email = Column(String(255))
    contact_phone = Column(String(50))
    address = Column(Text)
    notes = Column(Text)
    is_active = Column(Boolean, default=True, index=True)

    # Ordered column aliases for CSV imports, first match wins
    barcode_columns = Column(JSON, default=lambda: ["barcode", "EANNummer"])
    name_columns = Column(JSON, default=lambda: ["name", "Bezeichnung1"])
    quantity_columns = Column(JSON, default=lambda: ["quantity", "Menge"])
    price_columns = Column(JSON, default=lambda: ["price", "cost", "Einzelpreis"])
    category_columns = Column(JSON, default=lambda: ["category"])

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    receipts = relationship("StockReceipt", back_populates="supplier")
