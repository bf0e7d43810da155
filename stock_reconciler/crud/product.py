from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from stock_reconciler.crud.base import CRUDBase
from stock_reconciler.models.product import Product
from stock_reconciler.schemas.product import ProductCreate


class ProductCRUD(CRUDBase[Product, ProductCreate, ProductCreate]):
    async def get_by_barcode(self, db: AsyncSession, barcode: str) -> Optional[Product]:
        """Barcodes are stored upper-cased"""
        return await self.get_by(db, barcode=barcode.strip().upper())


product = ProductCRUD(Product)
