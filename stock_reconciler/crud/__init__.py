from .store import StoreCRUD
from .supplier import SupplierCRUD
from .product import ProductCRUD

__all__ = ["StoreCRUD", "SupplierCRUD", "ProductCRUD"]
