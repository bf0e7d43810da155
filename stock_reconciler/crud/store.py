from stock_reconciler.crud.base import CRUDBase
from stock_reconciler.models.store import Store
from stock_reconciler.schemas.store import StoreCreate, StoreUpdate

class StoreCRUD(CRUDBase[Store, StoreCreate, StoreUpdate]):
    pass

store = StoreCRUD(Store)
