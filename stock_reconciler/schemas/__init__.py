from .store import Store, StoreCreate, StoreUpdate
from .supplier import Supplier, SupplierCreate, SupplierUpdate, ColumnAliases
from .product import Product, ProductCreate
from .inventory import (
    InventoryItem, LowStockItem, InventoryAdjustment, InventoryAdjustmentResult,
    InventoryMovement, MovementSummary, UploadResult, UploadSummary, UploadRowError
)
from .receipt import StockReceipt, StockReceiptCreate, StockReceiptItem, StockReceiptItemCreate
from .new_product import NewProductExport
from .identity_mapping import IdentityMapping, IdentityMappingUpsert, IdentityMappingStats

__all__ = [
    "Store", "StoreCreate", "StoreUpdate",
    "Supplier", "SupplierCreate", "SupplierUpdate", "ColumnAliases",
    "Product", "ProductCreate",
    "InventoryItem", "LowStockItem", "InventoryAdjustment", "InventoryAdjustmentResult",
    "InventoryMovement", "MovementSummary", "UploadResult", "UploadSummary", "UploadRowError",
    "StockReceipt", "StockReceiptCreate", "StockReceiptItem", "StockReceiptItemCreate",
    "NewProductExport",
    "IdentityMapping", "IdentityMappingUpsert", "IdentityMappingStats"
]
