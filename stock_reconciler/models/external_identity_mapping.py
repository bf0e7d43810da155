from sqlalchemy import Column, String, Integer, DateTime
import uuid

from stock_reconciler.core.dates import utcnow
from stock_reconciler.db.database import Base

DISCOVERY_DIRECT = "direct"
DISCOVERY_SEARCH_PRIMARY = "search_primary"
DISCOVERY_SEARCH_SECONDARY = "search_secondary"
DISCOVERY_MANUAL = "manual"

DISCOVERY_METHODS = (
    DISCOVERY_DIRECT,
    DISCOVERY_SEARCH_PRIMARY,
    DISCOVERY_SEARCH_SECONDARY,
    DISCOVERY_MANUAL,
)


class ExternalIdentityMapping(Base):
    __tablename__ = "external_identity_mappings"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    barcode = Column(String(100), nullable=False, unique=True, index=True)
    external_product_id = Column(String(50), nullable=False, index=True)
    external_variant_id = Column(String(50), unique=True)
    external_inventory_item_id = Column(String(50))
    product_name = Column(String(500))

    # Discovery metadata
    discovery_method = Column(String(50), nullable=False, index=True)
    confidence_score = Column(Integer, nullable=False, default=100)  # 0-100
    last_verified_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    verification_count = Column(Integer, nullable=False, default=1)
    search_time_ms = Column(Integer)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
