from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict
from decimal import Decimal
from datetime import datetime

from stock_reconciler.models.inventory import MAX_QUANTITY


class InventoryItem(BaseModel):
    product_id: str
    barcode: Optional[str] = None
    sku: str
    name: str
    quantity: int
    reserved_quantity: int
    available_quantity: int
    last_updated: Optional[datetime] = None


class LowStockItem(BaseModel):
    store_id: str
    product_id: str
    barcode: Optional[str] = None
    product_name: str
    current_quantity: int
    available_quantity: int


class InventoryAdjustment(BaseModel):
    quantity: int = Field(..., ge=0, le=MAX_QUANTITY, description="New absolute quantity")
    notes: Optional[str] = Field(None, description="Reason for the adjustment")


class InventoryAdjustmentResult(BaseModel):
    store_id: str
    product_id: str
    previous_quantity: int
    new_quantity: int
    quantity_change: int


class InventoryMovement(BaseModel):
    id: str
    store_id: str
    product_id: str
    movement_type: str
    quantity_change: int
    previous_quantity: int
    new_quantity: int
    reference_id: Optional[str] = None
    reference_type: Optional[str] = None
    unit_cost: Optional[Decimal] = None
    notes: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MovementSummary(BaseModel):
    store_id: str
    product_id: Optional[str] = None
    by_movement_type: Dict[str, Dict[str, int]]


class UploadRowError(BaseModel):
    row: Optional[int] = Field(None, description="1-based data row index, header excluded")
    barcode: Optional[str] = None
    error: str


class UploadSummary(BaseModel):
    totalProducts: int = Field(0, description="Number of data rows in the file")
    successfulUpdates: int = Field(0, description="Rows applied to inventory")
    newProducts: int = Field(0, description="Products created by this upload")
    errors: int = Field(0, description="Rows that failed")
    errorDetails: List[UploadRowError] = Field(default_factory=list)


class UploadResult(BaseModel):
    success: bool
    summary: Optional[UploadSummary] = None
    receipt_id: Optional[str] = None
    error: Optional[str] = None
