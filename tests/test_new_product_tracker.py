from datetime import datetime, timezone

import pytest
from sqlalchemy import select

from stock_reconciler.models.new_product_log import NewProductLog
from stock_reconciler.services.new_product_tracker import NewProductTracker, render_csv


async def seed_entries(db_session, products, supplier):
    tracker = NewProductTracker(db_session)
    first = tracker.record(products["4001"].id, "4001", "Oat Milk", supplier_id=supplier.id)
    second = tracker.record(products["4002"].id, "4002", "Rye Bread", supplier_id=supplier.id)
    third = tracker.record(products["4003"].id, "4003", "Honey")
    first.detected_at = datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)
    second.detected_at = datetime(2025, 1, 2, 9, 0, tzinfo=timezone.utc)
    third.detected_at = datetime(2025, 1, 3, 9, 0, tzinfo=timezone.utc)
    await db_session.commit()
    return tracker


@pytest.mark.asyncio
async def test_export_returns_newest_first_with_supplier_name(db_session, products, supplier):
    tracker = await seed_entries(db_session, products, supplier)

    entries = await tracker.export_pending()

    assert [entry["barcode"] for entry in entries] == ["4003", "4002", "4001"]
    assert [entry["supplier_name"] for entry in entries] == [None, supplier.name, supplier.name]
    assert entries[0]["name"] == "Honey"


@pytest.mark.asyncio
async def test_exported_entries_are_not_returned_again(db_session, products, supplier):
    tracker = await seed_entries(db_session, products, supplier)

    first = await tracker.export_pending()
    second = await tracker.export_pending()

    assert len(first) == 3
    assert second == []

    logs = (
        await db_session.execute(select(NewProductLog).execution_options(populate_existing=True))
    ).scalars().all()
    assert all(log.is_exported for log in logs)
    assert all(log.exported_at is not None for log in logs)
    assert await tracker.count_pending() == 0


@pytest.mark.asyncio
async def test_export_filters_by_supplier(db_session, products, supplier):
    tracker = await seed_entries(db_session, products, supplier)

    entries = await tracker.export_pending(supplier_id=supplier.id)

    assert {entry["barcode"] for entry in entries} == {"4001", "4002"}
    assert await tracker.count_pending() == 1


@pytest.mark.asyncio
async def test_export_limit_claims_newest(db_session, products, supplier):
    tracker = await seed_entries(db_session, products, supplier)

    entries = await tracker.export_pending(limit=2)

    assert [entry["barcode"] for entry in entries] == ["4003", "4002"]
    remaining = await tracker.export_pending()
    assert [entry["barcode"] for entry in remaining] == ["4001"]


def test_render_csv_quotes_every_field():
    entries = [
        {
            "barcode": "123",
            "name": 'Jam "Fig", 200g',
            "supplier_name": "Acme",
            "detected_at": datetime(2025, 1, 2, 3, 4, 5)
        },
        {"barcode": "456", "name": None, "supplier_name": None, "detected_at": None},
    ]

    assert render_csv(entries) == (
        '"barcode","name","supplier","detected_at"\n'
        '"123","Jam ""Fig"", 200g","Acme","2025-01-02T03:04:05"\n'
        '"456","","",""\n'
    )


def test_render_csv_without_entries_has_header_only():
    assert render_csv([]) == '"barcode","name","supplier","detected_at"\n'
