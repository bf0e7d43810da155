from pydantic import BaseModel, Field, model_validator, ConfigDict
from typing import Optional, List
from decimal import Decimal
from datetime import datetime, date

from stock_reconciler.models.inventory import MAX_QUANTITY


class StockReceiptItemBase(BaseModel):
    product_id: str = Field(..., description="Product receiving stock")
    quantity: int = Field(..., gt=0, le=MAX_QUANTITY, description="Units received")
    unit_cost: Optional[Decimal] = Field(None, ge=0, description="Cost per unit")
    batch_number: Optional[str] = Field(None, max_length=100)


class StockReceiptItemCreate(StockReceiptItemBase):
    pass


class StockReceiptItem(StockReceiptItemBase):
    id: str
    total_cost: Decimal

    model_config = ConfigDict(from_attributes=True)


class StockReceiptCreate(BaseModel):
    store_id: str = Field(..., description="Receiving store")
    supplier_id: Optional[str] = Field(None, description="Existing supplier")
    supplier_name: Optional[str] = Field(None, max_length=255, description="Supplier name, created if unknown")
    receipt_number: Optional[str] = Field(None, max_length=100)
    receipt_date: Optional[date] = None
    notes: Optional[str] = None
    items: List[StockReceiptItemCreate] = Field(..., min_length=1)

    @model_validator(mode="after")
    def require_supplier(self):
        if not self.supplier_id and not self.supplier_name:
            raise ValueError("Either supplier_id or supplier_name is required")
        return self


class StockReceipt(BaseModel):
    id: str
    store_id: str
    supplier_id: Optional[str] = None
    supplier_name: str
    receipt_number: Optional[str] = None
    receipt_date: date
    total_items: int
    total_cost: Decimal
    status: str
    notes: Optional[str] = None
    error_message: Optional[str] = None
    created_at: datetime
    processed_at: Optional[datetime] = None
    items: List[StockReceiptItem] = []

    model_config = ConfigDict(from_attributes=True)
