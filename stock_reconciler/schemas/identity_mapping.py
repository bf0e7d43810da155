from pydantic import BaseModel, Field, field_validator, ConfigDict
from typing import Optional, Dict
from datetime import datetime

from stock_reconciler.models.external_identity_mapping import DISCOVERY_METHODS, DISCOVERY_MANUAL


class IdentityMappingUpsert(BaseModel):
    barcode: str = Field(..., min_length=1, max_length=100)
    external_product_id: str = Field(..., min_length=1, max_length=50)
    external_variant_id: Optional[str] = Field(None, max_length=50)
    external_inventory_item_id: Optional[str] = Field(None, max_length=50)
    product_name: Optional[str] = Field(None, max_length=500)
    discovery_method: str = Field(DISCOVERY_MANUAL, description="How the mapping was found")
    confidence_score: int = Field(100, ge=0, le=100)
    search_time_ms: Optional[int] = Field(None, ge=0)

    @field_validator("discovery_method")
    @classmethod
    def validate_discovery_method(cls, v):
        if v not in DISCOVERY_METHODS:
            raise ValueError(f'Discovery method must be one of: {", ".join(DISCOVERY_METHODS)}')
        return v


class IdentityMapping(BaseModel):
    id: str
    barcode: str
    external_product_id: str
    external_variant_id: Optional[str] = None
    external_inventory_item_id: Optional[str] = None
    product_name: Optional[str] = None
    discovery_method: str
    confidence_score: int
    last_verified_at: Optional[datetime] = None
    verification_count: int
    search_time_ms: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class IdentityMappingStats(BaseModel):
    total_mappings: int
    by_discovery_method: Dict[str, int]
    average_search_time_ms: Optional[float] = None
