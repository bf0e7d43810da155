from pydantic import Field, ConfigDict
from typing import Optional
from datetime import datetime

from .supplier import ColumnAliases


class StoreBase(ColumnAliases):
    name: str = Field(..., min_length=1, max_length=255, description="Store name")
    address: Optional[str] = Field(None, description="Store address")
    manager_name: Optional[str] = Field(None, max_length=255, description="Store manager")
    is_active: bool = Field(True, description="Whether store is active")


class StoreCreate(StoreBase):
    pass


class StoreUpdate(ColumnAliases):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    address: Optional[str] = None
    manager_name: Optional[str] = Field(None, max_length=255)
    is_active: Optional[bool] = None


class Store(StoreBase):
    id: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
