import pytest
from sqlalchemy import select, func

from stock_reconciler.core.exceptions import NotFoundError, QuantityOutOfRange
from stock_reconciler.models.inventory import CurrentInventory, MAX_QUANTITY
from stock_reconciler.models.inventory_movement import (
    InventoryMovement,
    MOVEMENT_ADJUSTMENT,
    MOVEMENT_RECEIPT,
    REFERENCE_MANUAL_ADJUSTMENT,
    REFERENCE_STOCK_RECEIPT,
)
from stock_reconciler.services.inventory_ledger import InventoryLedger


async def count_movements(db_session):
    result = await db_session.execute(select(func.count()).select_from(InventoryMovement))
    return result.scalar_one()


@pytest.mark.asyncio
async def test_apply_delta_creates_row_and_records_movement(db_session, store, products):
    """Test adding stock to a product without an inventory row"""

    ledger = InventoryLedger(db_session)
    product = products["4001"]

    change = await ledger.apply_delta(
        store.id,
        product.id,
        12,
        reference_id="receipt-1",
        reference_type=REFERENCE_STOCK_RECEIPT
    )
    await db_session.commit()

    assert change.previous_quantity == 0
    assert change.new_quantity == 12
    assert await ledger.get_quantity(store.id, product.id) == 12

    movements = await ledger.get_movements(store_id=store.id)
    assert len(movements) == 1
    assert movements[0].movement_type == MOVEMENT_RECEIPT
    assert movements[0].quantity_change == 12
    assert movements[0].previous_quantity == 0
    assert movements[0].new_quantity == 12
    assert movements[0].reference_id == "receipt-1"


@pytest.mark.asyncio
async def test_apply_delta_adds_to_existing_quantity(db_session, store, products):
    ledger = InventoryLedger(db_session)
    product = products["4002"]

    await ledger.apply_delta(store.id, product.id, 10)
    change = await ledger.apply_delta(store.id, product.id, 5)
    await db_session.commit()

    assert change.previous_quantity == 10
    assert change.new_quantity == 15
    assert change.quantity_change == 5

    result = await db_session.execute(
        select(func.count()).select_from(CurrentInventory).where(CurrentInventory.product_id == product.id)
    )
    assert result.scalar_one() == 1


@pytest.mark.asyncio
async def test_apply_delta_refuses_to_exceed_the_maximum(db_session, store, products):
    ledger = InventoryLedger(db_session)
    product = products["4002"]
    await ledger.apply_delta(store.id, product.id, MAX_QUANTITY - 10)

    with pytest.raises(QuantityOutOfRange):
        await ledger.apply_delta(store.id, product.id, 11)
    with pytest.raises(QuantityOutOfRange):
        await ledger.apply_delta(store.id, products["4003"].id, MAX_QUANTITY + 1)

    change = await ledger.apply_delta(store.id, product.id, 10)
    await db_session.commit()

    assert change.new_quantity == MAX_QUANTITY
    assert await count_movements(db_session) == 2


@pytest.mark.asyncio
async def test_skip_audit_writes_no_movement(db_session, store, products):
    ledger = InventoryLedger(db_session)
    product = products["4001"]

    await ledger.apply_delta(store.id, product.id, 3, skip_audit=True)
    await ledger.set_quantity(store.id, product.id, 8, skip_audit=True)
    await db_session.commit()

    assert await ledger.get_quantity(store.id, product.id) == 8
    assert await count_movements(db_session) == 0


@pytest.mark.asyncio
async def test_set_quantity_records_replaced_value(db_session, store, products):
    ledger = InventoryLedger(db_session)
    product = products["4003"]

    await ledger.apply_delta(store.id, product.id, 20, skip_audit=True)
    change = await ledger.set_quantity(store.id, product.id, 14, notes="Shelf count")
    await db_session.commit()

    assert change.previous_quantity == 20
    assert change.new_quantity == 14
    assert change.movement.quantity_change == -6
    assert change.movement.movement_type == MOVEMENT_ADJUSTMENT
    assert change.movement.reference_type == REFERENCE_MANUAL_ADJUSTMENT


@pytest.mark.asyncio
async def test_manual_adjustment(db_session, store, products):
    """Test manual inventory correction"""

    ledger = InventoryLedger(db_session)
    product = products["4001"]
    await ledger.apply_delta(store.id, product.id, 50)
    await db_session.commit()

    result = await ledger.manual_adjustment(store.id, product.id, 75, "Restocked from warehouse")

    assert result["previous_quantity"] == 50
    assert result["new_quantity"] == 75
    assert result["quantity_change"] == 25
    assert await ledger.get_quantity(store.id, product.id) == 75

    movements = await ledger.get_movements(product_id=product.id)
    assert sorted(movement.movement_type for movement in movements) == [MOVEMENT_ADJUSTMENT, MOVEMENT_RECEIPT]


@pytest.mark.asyncio
async def test_manual_adjustment_unknown_product(db_session, store):
    ledger = InventoryLedger(db_session)

    with pytest.raises(NotFoundError):
        await ledger.manual_adjustment(store.id, "missing-product", 5)


@pytest.mark.asyncio
async def test_summarize_movements_aggregates_the_log(db_session, store, products):
    ledger = InventoryLedger(db_session)

    await ledger.apply_delta(store.id, products["4001"].id, 10)
    await ledger.apply_delta(store.id, products["4002"].id, 4)
    await ledger.set_quantity(store.id, products["4001"].id, 7)
    await db_session.commit()

    summary = await ledger.summarize_movements(store.id)

    assert summary == {
        MOVEMENT_RECEIPT: {"quantity_change": 14, "movements": 2},
        MOVEMENT_ADJUSTMENT: {"quantity_change": -3, "movements": 1}
    }

    product_summary = await ledger.summarize_movements(store.id, products["4002"].id)
    assert product_summary == {MOVEMENT_RECEIPT: {"quantity_change": 4, "movements": 1}}


@pytest.mark.asyncio
async def test_get_low_stock(db_session, store, products):
    """Test getting low stock items"""

    ledger = InventoryLedger(db_session)
    await ledger.apply_delta(store.id, products["4001"].id, 5)
    await ledger.apply_delta(store.id, products["4002"].id, 50)
    await db_session.commit()

    low_stock_items = await ledger.get_low_stock(store_id=store.id, threshold=10)

    assert len(low_stock_items) == 1
    assert low_stock_items[0]["barcode"] == "4001"
    assert low_stock_items[0]["current_quantity"] == 5


@pytest.mark.asyncio
async def test_get_store_inventory(db_session, store, products):
    ledger = InventoryLedger(db_session)
    await ledger.apply_delta(store.id, products["4003"].id, 2)
    await db_session.commit()

    inventory = await ledger.get_store_inventory(store.id)

    assert [(item["name"], item["quantity"], item["available_quantity"]) for item in inventory] == [
        ("Honey", 2, 2)
    ]
