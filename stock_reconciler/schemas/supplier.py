from pydantic import BaseModel, Field, EmailStr, field_validator, ConfigDict
from typing import Optional, List
from datetime import datetime


def _clean_aliases(v):
    if v is None:
        return v
    cleaned = []
    for alias in v:
        alias = str(alias).strip()
        if alias and alias not in cleaned:
            cleaned.append(alias)
    return cleaned


class ColumnAliases(BaseModel):
    """Ordered CSV column aliases per semantic field, first match wins"""

    barcode_columns: Optional[List[str]] = Field(None, description="Aliases for the barcode column")
    name_columns: Optional[List[str]] = Field(None, description="Aliases for the product name column")
    quantity_columns: Optional[List[str]] = Field(None, description="Aliases for the quantity column")
    price_columns: Optional[List[str]] = Field(None, description="Aliases for the price/cost column")
    category_columns: Optional[List[str]] = Field(None, description="Aliases for the category column")

    @field_validator(
        "barcode_columns", "name_columns", "quantity_columns", "price_columns", "category_columns"
    )
    @classmethod
    def validate_aliases(cls, v):
        return _clean_aliases(v)


class SupplierBase(ColumnAliases):
    name: str = Field(..., min_length=1, max_length=255, description="Supplier name")
    code: Optional[str] = Field(None, max_length=50, description="Short unique supplier code")
    contact_email: Optional[EmailStr] = Field(None, description="Contact email")
    contact_phone: Optional[str] = Field(None, max_length=50, description="Contact phone")
    address: Optional[str] = Field(None, description="Supplier address")
    notes: Optional[str] = Field(None, description="Free text notes")
    is_active: bool = Field(True, description="Whether supplier is active")

    @field_validator("contact_phone")
    @classmethod
    def validate_phone(cls, v):
        if v is not None:
            clean_phone = v.replace(' ', '').replace('-', '').replace('(', '').replace(')', '')
            if not clean_phone.replace('+', '').isdigit():
                raise ValueError('Phone number must contain only digits, spaces, hyphens, parentheses, and plus sign')
        return v


class SupplierCreate(SupplierBase):
    pass


class SupplierUpdate(ColumnAliases):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    code: Optional[str] = Field(None, max_length=50)
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None
    notes: Optional[str] = None
    is_active: Optional[bool] = None


class Supplier(SupplierBase):
    id: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
