from .store import Store
from .supplier import Supplier
from .product import Product
from .inventory import CurrentInventory
from .stock_receipt import StockReceipt, StockReceiptItem
from .inventory_movement import InventoryMovement
from .new_product_log import NewProductLog
from .external_identity_mapping import ExternalIdentityMapping

__all__ = [
    "Store",
    "Supplier",
    "Product",
    "CurrentInventory",
    "StockReceipt",
    "StockReceiptItem",
    "InventoryMovement",
    "NewProductLog",
    "ExternalIdentityMapping"
]
