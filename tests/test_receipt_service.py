from decimal import Decimal

import pytest
from sqlalchemy import select, func

from stock_reconciler.core.exceptions import (
    InvalidReceiptState,
    NotFoundError,
    PersistenceFailure,
    ReceiptNotFound,
    ReceiptProcessingFailed,
)
from stock_reconciler.models.inventory_movement import InventoryMovement, REFERENCE_STOCK_RECEIPT
from stock_reconciler.models.stock_receipt import (
    RECEIPT_CANCELLED,
    RECEIPT_COMPLETED,
    RECEIPT_FAILED,
    RECEIPT_PENDING,
)
from stock_reconciler.models.supplier import Supplier
from stock_reconciler.schemas.receipt import StockReceiptCreate
from stock_reconciler.services.inventory_ledger import InventoryLedger
from stock_reconciler.services.receipt_service import ReceiptService


async def create_receipt(db_session, store, products, supplier_name="Acme"):
    service = ReceiptService(db_session)
    return await service.create_stock_receipt(
        StockReceiptCreate(
            store_id=store.id,
            supplier_name=supplier_name,
            receipt_number="DN-1001",
            items=[
                {"product_id": products["4001"].id, "quantity": 6, "unit_cost": Decimal("1.50")},
                {"product_id": products["4002"].id, "quantity": 4},
            ]
        )
    )


async def movement_count(db_session):
    result = await db_session.execute(select(func.count()).select_from(InventoryMovement))
    return result.scalar_one()


@pytest.mark.asyncio
async def test_create_stock_receipt(db_session, store, products):
    receipt = await create_receipt(db_session, store, products)

    assert receipt.status == RECEIPT_PENDING
    assert receipt.total_items == 10
    assert receipt.total_cost == Decimal("9.00")
    assert len(receipt.items) == 2
    assert receipt.supplier_name == "Acme"

    supplier = (await db_session.execute(select(Supplier))).scalar_one()
    assert receipt.supplier_id == supplier.id
    assert await movement_count(db_session) == 0


@pytest.mark.asyncio
async def test_create_stock_receipt_unknown_product(db_session, store, products):
    service = ReceiptService(db_session)

    with pytest.raises(NotFoundError):
        await service.create_stock_receipt(
            StockReceiptCreate(
                store_id=store.id,
                supplier_name="Acme",
                items=[{"product_id": "missing", "quantity": 1}]
            )
        )


@pytest.mark.asyncio
async def test_process_stock_receipt(db_session, store, products):
    """Processing applies each item once and completes the receipt"""

    receipt = await create_receipt(db_session, store, products)
    service = ReceiptService(db_session)

    processed = await service.process_stock_receipt(receipt.id)

    assert processed.status == RECEIPT_COMPLETED
    assert processed.processed_at is not None

    ledger = InventoryLedger(db_session)
    assert await ledger.get_quantity(store.id, products["4001"].id) == 6
    assert await ledger.get_quantity(store.id, products["4002"].id) == 4

    movements = (await db_session.execute(select(InventoryMovement))).scalars().all()
    assert len(movements) == 2
    assert {movement.reference_id for movement in movements} == {receipt.id}
    assert {movement.reference_type for movement in movements} == {REFERENCE_STOCK_RECEIPT}


@pytest.mark.asyncio
async def test_completed_receipt_cannot_be_processed_again(db_session, store, products):
    receipt = await create_receipt(db_session, store, products)
    service = ReceiptService(db_session)
    await service.process_stock_receipt(receipt.id)

    with pytest.raises(InvalidReceiptState) as exc_info:
        await service.process_stock_receipt(receipt.id)

    assert exc_info.value.status == RECEIPT_COMPLETED

    ledger = InventoryLedger(db_session)
    assert await ledger.get_quantity(store.id, products["4001"].id) == 6
    assert await movement_count(db_session) == 2


@pytest.mark.asyncio
async def test_process_unknown_receipt(db_session):
    service = ReceiptService(db_session)

    with pytest.raises(ReceiptNotFound):
        await service.process_stock_receipt("no-such-receipt")


@pytest.mark.asyncio
async def test_cancel_pending_receipt(db_session, store, products):
    receipt = await create_receipt(db_session, store, products)
    service = ReceiptService(db_session)

    cancelled = await service.cancel_receipt(receipt.id)

    assert cancelled.status == RECEIPT_CANCELLED
    with pytest.raises(InvalidReceiptState):
        await service.process_stock_receipt(receipt.id)
    assert await movement_count(db_session) == 0


@pytest.mark.asyncio
async def test_completed_receipt_cannot_be_cancelled(db_session, store, products):
    receipt = await create_receipt(db_session, store, products)
    service = ReceiptService(db_session)
    await service.process_stock_receipt(receipt.id)

    with pytest.raises(InvalidReceiptState):
        await service.cancel_receipt(receipt.id)

    assert (await service.get_receipt(receipt.id)).status == RECEIPT_COMPLETED


@pytest.mark.asyncio
async def test_failed_item_rolls_back_the_whole_receipt(db_session, store, products):
    receipt = await create_receipt(db_session, store, products)
    service = ReceiptService(db_session)

    real_apply_delta = service.ledger.apply_delta
    calls = []

    async def failing_apply_delta(*args, **kwargs):
        calls.append(args)
        if len(calls) == 2:
            raise PersistenceFailure("disk full")
        return await real_apply_delta(*args, **kwargs)

    service.ledger.apply_delta = failing_apply_delta

    with pytest.raises(ReceiptProcessingFailed):
        await service.process_stock_receipt(receipt.id)

    failed = await service.get_receipt(receipt.id)
    assert failed.status == RECEIPT_FAILED
    assert "disk full" in failed.error_message

    ledger = InventoryLedger(db_session)
    assert await ledger.get_quantity(store.id, products["4001"].id) is None
    assert await movement_count(db_session) == 0

    with pytest.raises(InvalidReceiptState):
        await service.process_stock_receipt(receipt.id)
