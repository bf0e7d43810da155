from stock_reconciler.crud.base import CRUDBase
from stock_reconciler.models.supplier import Supplier
from stock_reconciler.schemas.supplier import SupplierCreate, SupplierUpdate

class SupplierCRUD(CRUDBase[Supplier, SupplierCreate, SupplierUpdate]):
    pass

supplier = SupplierCRUD(Supplier)
