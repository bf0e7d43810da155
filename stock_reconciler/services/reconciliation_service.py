import logging
import uuid
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from stock_reconciler.core.exceptions import (
    DuplicateConstraintViolation,
    NotFoundError,
    PersistenceFailure,
    ReceiptProcessingFailed,
    ReconciliationError,
    RowValidationError,
    UnknownProductNotAllowed,
)
from stock_reconciler.models.inventory import MAX_QUANTITY
from stock_reconciler.models.product import Product
from stock_reconciler.models.stock_receipt import StockReceipt, RECEIPT_CANCELLED
from stock_reconciler.models.store import Store
from stock_reconciler.models.supplier import Supplier
from stock_reconciler.schemas.inventory import UploadResult, UploadSummary, UploadRowError
from stock_reconciler.services.column_mapping import ColumnResolver, SupplierMappingConfig
from stock_reconciler.services.csv_normalizer import CsvNormalizer, NormalizedBatch, NormalizedRecord, RowError
from stock_reconciler.services.inventory_ledger import InventoryLedger
from stock_reconciler.services.new_product_tracker import NewProductTracker
from stock_reconciler.services.receipt_service import ReceiptService
from stock_reconciler.services.supplier_service import SupplierService, mapping_for

logger = logging.getLogger(__name__)


def clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class UploadSummaryBuilder:
    """Accumulates per-row outcomes of one upload"""

    def __init__(self, total_rows: int):
        self.summary = UploadSummary(totalProducts=total_rows)

    def success(self) -> None:
        self.summary.successfulUpdates += 1

    def new_product(self) -> None:
        self.summary.newProducts += 1

    def error(self, row: Optional[int], message: str, barcode: Optional[str] = None) -> None:
        self.summary.errors += 1
        self.summary.errorDetails.append(UploadRowError(row=row, barcode=barcode, error=message))
        logger.warning(f"Row {row} ({barcode or 'no barcode'}) failed: {message}")

    def not_applied(self, records: Sequence[NormalizedRecord], reason: str) -> None:
        """Turn accepted rows into errors once their receipt failed to apply"""
        for record in records:
            self.summary.successfulUpdates -= 1
            self.summary.errors += 1
            self.summary.errorDetails.append(
                UploadRowError(row=record.row_index, barcode=record.barcode, error=f"Not applied: {reason}")
            )


class ReconciliationService:
    """Applies parsed CSV uploads to a store's inventory.

    Two modes are supported:

    * current stock: the file is a full count, quantities overwrite what is
      stored and no movements are written. Only known products are updated.
    * supplier delivery: quantities are added to stock through a stock receipt,
      every change is written to the movement log and unknown barcodes create
      new products.

    Rows are processed in file order and independently: a failing row is
    reported in the summary and the rest of the file is still applied.
    """

    BARCODE_LOOKUP_CHUNK = 5000

    def __init__(self, db: AsyncSession):
        self.db = db
        self.resolver = ColumnResolver()
        self.normalizer = CsvNormalizer()
        self.ledger = InventoryLedger(db)
        self.tracker = NewProductTracker(db)
        self.receipts = ReceiptService(db)
        self.suppliers = SupplierService(db)

    async def upload_current_stock(
        self,
        store_id: str,
        parsed_rows: Sequence[Mapping[str, Any]],
        headers: Optional[Sequence[str]] = None
    ) -> UploadResult:
        """Overwrite stock levels of existing products with a full stock count"""

        try:
            store = await self._get_store(store_id)
            batch = self._normalize(parsed_rows, headers, mapping_for(store, None))
            summary = UploadSummaryBuilder(len(batch))
            products = await self._products_by_barcode(batch)

            for outcome in batch.outcomes():
                if isinstance(outcome, RowError):
                    summary.error(outcome.row_index, outcome.message, outcome.barcode)
                    continue

                product = products.get(outcome.barcode)
                if product is None:
                    error = UnknownProductNotAllowed(outcome.barcode, outcome.row_index)
                    summary.error(outcome.row_index, str(error), outcome.barcode)
                    continue

                try:
                    async with self.db.begin_nested():
                        await self.ledger.set_quantity(
                            store_id,
                            product.id,
                            outcome.quantity,
                            skip_audit=True
                        )
                    summary.success()
                except SQLAlchemyError as e:
                    error = self._row_failure(e, outcome)
                    summary.error(outcome.row_index, str(error), outcome.barcode)

            await self.db.commit()

        except (ReconciliationError, ValueError) as e:
            await self.db.rollback()
            logger.warning(f"Current stock upload for store {store_id} rejected: {e}")
            return UploadResult(success=False, error=str(e))
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Current stock upload for store {store_id} failed: {e}")
            return UploadResult(success=False, error=str(e))

        logger.info(
            f"Current stock upload for store {store_id}: {summary.summary.successfulUpdates}/"
            f"{summary.summary.totalProducts} rows applied, {summary.summary.errors} errors"
        )
        return UploadResult(success=True, summary=summary.summary)

    async def upload_supplier_delivery(
        self,
        store_id: str,
        parsed_rows: Sequence[Mapping[str, Any]],
        supplier_name: Optional[str],
        supplier_id: Optional[str] = None,
        headers: Optional[Sequence[str]] = None
    ) -> UploadResult:
        """Add a supplier delivery to stock, creating products for unseen barcodes.

        All valid rows end up as items of a single stock receipt which is then
        processed, so the inventory change and its movement log entries are
        applied together. Rows repeating a barcode are merged into one item.
        """
        receipt: Optional[StockReceipt] = None

        try:
            store = await self._get_store(store_id)
            supplier = await self._get_supplier(supplier_name, supplier_id)
            batch = self._normalize(parsed_rows, headers, mapping_for(store, supplier))
            summary = UploadSummaryBuilder(len(batch))
            products = await self._products_by_barcode(batch)
            staged: Dict[str, Dict[str, Any]] = {}
            accepted: List[NormalizedRecord] = []

            for outcome in batch.outcomes():
                if isinstance(outcome, RowError):
                    summary.error(outcome.row_index, outcome.message, outcome.barcode)
                    continue

                if receipt is None:
                    receipt = await self.receipts.open_receipt(
                        store_id,
                        supplier,
                        notes=f"Supplier delivery upload ({len(batch)} rows)"
                    )

                product = products.get(outcome.barcode)
                try:
                    if product is None:
                        async with self.db.begin_nested():
                            product = await self._create_product(outcome, supplier, receipt)
                        products[outcome.barcode] = product
                        summary.new_product()
                except SQLAlchemyError as e:
                    error = self._row_failure(e, outcome)
                    summary.error(outcome.row_index, str(error), outcome.barcode)
                    continue

                try:
                    self._stage_item(staged, product, outcome)
                except RowValidationError as e:
                    summary.error(outcome.row_index, str(e), outcome.barcode)
                    continue
                accepted.append(outcome)
                summary.success()

            if receipt is not None:
                if staged:
                    self.receipts.add_items(receipt, list(staged.values()))
                else:
                    receipt.status = RECEIPT_CANCELLED
                    receipt.notes = "No stock to receive"
            await self.db.commit()

            if staged:
                await self.receipts.process_stock_receipt(receipt.id)

        except ReceiptProcessingFailed as e:
            logger.error(f"Supplier delivery for store {store_id} could not be applied: {e}")
            summary.not_applied(accepted, str(e))
            return UploadResult(success=False, summary=summary.summary, receipt_id=receipt.id, error=str(e))
        except (ReconciliationError, ValueError) as e:
            await self.db.rollback()
            logger.warning(f"Supplier delivery upload for store {store_id} rejected: {e}")
            return UploadResult(success=False, error=str(e))
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Supplier delivery upload for store {store_id} failed: {e}")
            return UploadResult(success=False, error=str(e))

        logger.info(
            f"Supplier delivery for store {store_id} from {supplier.name}: "
            f"{summary.summary.successfulUpdates}/{summary.summary.totalProducts} rows applied, "
            f"{summary.summary.newProducts} new products, {summary.summary.errors} errors"
        )
        return UploadResult(
            success=True,
            summary=summary.summary,
            receipt_id=receipt.id if staged else None
        )

    async def _get_store(self, store_id: str) -> Store:
        store = await self.db.get(Store, store_id)
        if not store:
            raise NotFoundError("Store", store_id)
        return store

    async def _get_supplier(self, supplier_name: Optional[str], supplier_id: Optional[str]) -> Supplier:
        if supplier_id:
            return await self.suppliers.get_supplier(supplier_id)
        if not supplier_name or not supplier_name.strip():
            raise ValueError("Supplier name is required for a delivery upload")
        return await self.suppliers.get_or_create_by_name(supplier_name)

    def _normalize(
        self,
        parsed_rows: Sequence[Mapping[str, Any]],
        headers: Optional[Sequence[str]],
        config: SupplierMappingConfig
    ) -> NormalizedBatch:
        if headers is None:
            headers = list(parsed_rows[0].keys()) if parsed_rows else []

        mapping = self.resolver.resolve_required(headers, config)
        logger.debug(f"Resolved columns: {mapping}")
        return self.normalizer.normalize(parsed_rows, mapping)

    async def _products_by_barcode(self, batch: NormalizedBatch) -> Dict[str, Product]:
        barcodes = sorted({record.barcode for record in batch})
        products: Dict[str, Product] = {}

        # asyncpg caps the number of bind parameters per statement
        for start in range(0, len(barcodes), self.BARCODE_LOOKUP_CHUNK):
            chunk = barcodes[start:start + self.BARCODE_LOOKUP_CHUNK]
            result = await self.db.execute(select(Product).where(Product.barcode.in_(chunk)))
            products.update({product.barcode: product for product in result.scalars().all()})

        return products

    async def _available_sku(self, barcode: str) -> str:
        """The barcode itself, or the barcode with a random suffix when another product holds that SKU"""
        result = await self.db.execute(select(Product.id).where(Product.sku == barcode).limit(1))
        if result.scalar_one_or_none() is None:
            return barcode
        return f"{barcode[:91]}-{uuid.uuid4().hex[:8]}"

    async def _create_product(
        self,
        record: NormalizedRecord,
        supplier: Supplier,
        receipt: StockReceipt
    ) -> Product:
        product = Product(
            sku=await self._available_sku(record.barcode),
            barcode=record.barcode,
            name=clean_text(record.name) or record.barcode,
            category=clean_text(record.category),
            cost_price=record.unit_cost,
            is_active=True
        )
        self.db.add(product)
        await self.db.flush()

        self.tracker.record(
            product.id,
            record.barcode,
            product.name,
            supplier_id=supplier.id,
            receipt_id=receipt.id
        )
        return product

    def _stage_item(self, staged: Dict[str, Dict[str, Any]], product: Product, record: NormalizedRecord) -> None:
        if record.quantity == 0:
            return

        item = staged.get(product.id)
        if item is None:
            staged[product.id] = {
                "product_id": product.id,
                "quantity": record.quantity,
                "unit_cost": record.unit_cost
            }
            return

        if item["quantity"] + record.quantity > MAX_QUANTITY:
            raise RowValidationError(
                f"Total quantity for barcode {record.barcode} exceeds the maximum of {MAX_QUANTITY}",
                row_index=record.row_index,
                barcode=record.barcode
            )
        item["quantity"] += record.quantity
        if record.unit_cost is not None:
            item["unit_cost"] = record.unit_cost

    def _row_failure(self, error: SQLAlchemyError, record: NormalizedRecord) -> ReconciliationError:
        if isinstance(error, IntegrityError):
            return DuplicateConstraintViolation(
                f"Constraint violation: {error.orig}",
                row_index=record.row_index,
                barcode=record.barcode
            )
        logger.error(f"Database error on row {record.row_index}: {error}")
        return PersistenceFailure(
            f"Database error: {error}",
            row_index=record.row_index,
            barcode=record.barcode
        )
