from pydantic import BaseModel, Field, field_validator, ConfigDict
from typing import Optional
from decimal import Decimal
from datetime import datetime


class ProductBase(BaseModel):
    sku: str = Field(..., min_length=1, max_length=100, description="Internal stock keeping unit")
    barcode: Optional[str] = Field(None, max_length=100, description="EAN/UPC barcode")
    name: str = Field(..., min_length=1, max_length=255, description="Product name")
    category: Optional[str] = Field(None, max_length=100, description="Product category")
    unit_price: Optional[Decimal] = Field(None, ge=0, description="Selling price")
    cost_price: Optional[Decimal] = Field(None, ge=0, description="Purchase cost")
    min_stock_level: int = Field(0, ge=0, description="Reorder threshold")
    is_active: bool = Field(True, description="Whether product is active")

    @field_validator("barcode")
    @classmethod
    def normalize_barcode(cls, v):
        if v is not None:
            v = v.strip().upper()
            return v or None
        return v


class ProductCreate(ProductBase):
    pass


class Product(ProductBase):
    id: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
