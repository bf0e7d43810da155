import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from stock_reconciler.core.exceptions import DuplicateConstraintViolation, NotFoundError
from stock_reconciler.crud.supplier import supplier as supplier_crud
from stock_reconciler.models.store import Store
from stock_reconciler.models.supplier import Supplier
from stock_reconciler.schemas.supplier import SupplierCreate, SupplierUpdate
from stock_reconciler.services.column_mapping import DEFAULT_MAPPING, SupplierMappingConfig

logger = logging.getLogger(__name__)


def supplier_code(name: str) -> str:
    """Derive the default supplier code, e.g. 'Müller Foods' -> 'MÜLLER_FOODS'"""
    return "_".join(name.strip().upper().split())[:50]


def mapping_for(store: Optional[Store], supplier: Optional[Supplier]) -> SupplierMappingConfig:
    """Store aliases first, then the supplier's, then the generic defaults"""
    return SupplierMappingConfig.layered(
        SupplierMappingConfig.from_columns(store),
        SupplierMappingConfig.from_columns(supplier),
        DEFAULT_MAPPING
    )


class SupplierService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_suppliers(self, include_inactive: bool = False) -> List[Supplier]:
        filters = None if include_inactive else {"is_active": True}
        return await supplier_crud.get_multi(self.db, limit=1000, filters=filters)

    async def get_supplier(self, supplier_id: str) -> Supplier:
        supplier = await supplier_crud.get(self.db, supplier_id)
        if not supplier:
            raise NotFoundError("Supplier", supplier_id)
        return supplier

    async def create_supplier(self, config: SupplierCreate) -> Supplier:
        data = config.model_dump(exclude_none=True)
        data["name"] = data["name"].strip()
        data.setdefault("code", supplier_code(data["name"]))

        supplier = await supplier_crud.create(self.db, obj_in=data)
        logger.info(f"Created supplier {supplier.name} ({supplier.code})")
        return supplier

    async def update_supplier(self, supplier_id: str, changes: SupplierUpdate) -> Supplier:
        supplier = await self.get_supplier(supplier_id)
        supplier = await supplier_crud.update(self.db, db_obj=supplier, obj_in=changes)
        logger.info(f"Updated supplier {supplier.name}")
        return supplier

    async def get_or_create_by_name(self, name: str) -> Supplier:
        """Find a supplier by name, creating it with default column aliases if unknown.

        Does not commit; the new supplier becomes part of the caller's transaction.
        """
        name = name.strip()
        if not name:
            raise ValueError("Supplier name is required")

        supplier = await supplier_crud.get_by(self.db, name=name)
        if supplier:
            return supplier

        try:
            supplier = await supplier_crud.create(
                self.db,
                obj_in={"name": name, "code": supplier_code(name)},
                commit=False
            )
        except DuplicateConstraintViolation:
            # Created concurrently, or the derived code is taken
            supplier = await supplier_crud.get_by(self.db, name=name)
            if not supplier:
                raise

        logger.info(f"Auto-created supplier {supplier.name} ({supplier.code})")
        return supplier
