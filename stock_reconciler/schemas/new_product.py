from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class NewProductExport(BaseModel):
    id: str
    product_id: Optional[str] = None
    barcode: Optional[str] = None
    name: Optional[str] = None
    supplier_name: Optional[str] = None
    detected_at: Optional[datetime] = None
