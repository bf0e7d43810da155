import pytest

API = "/api/v1"


async def create_store(client, name="Main Street", **extra):
    response = await client.post(f"{API}/stores/", json={"name": name, **extra})
    assert response.status_code == 201
    return response.json()


async def upload(client, store_id, kind, csv_text, **form):
    return await client.post(
        f"{API}/inventory/{store_id}/upload/{kind}",
        files={"file": ("upload.csv", csv_text.encode("utf-8"), "text/csv")},
        data=form
    )


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_stores(client):
    store = await create_store(client, quantity_columns=["Bestand", " ", "Bestand"])

    assert store["quantity_columns"] == ["Bestand"]

    response = await client.get(f"{API}/stores/")
    assert [item["name"] for item in response.json()] == ["Main Street"]

    response = await client.patch(f"{API}/stores/{store['id']}", json={"manager_name": "Ines"})
    assert response.json()["manager_name"] == "Ines"

    response = await client.get(f"{API}/stores/missing")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_suppliers(client):
    response = await client.post(
        f"{API}/suppliers/",
        json={"name": "Acme Trading", "barcode_columns": ["Artikelnummer"], "contact_email": "orders@acme.example.com"}
    )
    assert response.status_code == 201
    supplier = response.json()
    assert supplier["code"] == "ACME_TRADING"
    assert supplier["barcode_columns"] == ["Artikelnummer"]
    assert supplier["quantity_columns"] == ["quantity", "Menge"]

    duplicate = await client.post(f"{API}/suppliers/", json={"name": "Acme Trading"})
    assert duplicate.status_code == 409

    response = await client.patch(f"{API}/suppliers/{supplier['id']}", json={"is_active": False})
    assert response.json()["is_active"] is False

    active = await client.get(f"{API}/suppliers/")
    assert active.json() == []
    everyone = await client.get(f"{API}/suppliers/", params={"include_inactive": True})
    assert len(everyone.json()) == 1


@pytest.mark.asyncio
async def test_delivery_upload_then_inventory_and_export(client):
    store = await create_store(client)

    response = await upload(
        client,
        store["id"],
        "supplier-delivery",
        "barcode,name,quantity,unit_cost\n123,Fig Jam,10,2.50\n",
        supplier_name="Acme"
    )
    assert response.status_code == 200
    result = response.json()
    assert result["success"] is True
    assert result["summary"]["totalProducts"] == 1
    assert result["summary"]["newProducts"] == 1
    assert result["receipt_id"]

    inventory = (await client.get(f"{API}/inventory/{store['id']}")).json()
    assert [(item["barcode"], item["quantity"]) for item in inventory] == [("123", 10)]

    movements = (await client.get(f"{API}/inventory/movements", params={"store_id": store["id"]})).json()
    assert len(movements) == 1
    assert movements[0]["reference_id"] == result["receipt_id"]

    receipt = (await client.get(f"{API}/receipts/{result['receipt_id']}")).json()
    assert receipt["status"] == "completed"

    pending = (await client.get(f"{API}/new-products/pending")).json()
    assert pending == {"pending": 1}

    export = await client.post(f"{API}/new-products/export", params={"format": "csv"})
    assert export.status_code == 200
    assert export.headers["content-type"].startswith("text/csv")
    lines = export.text.strip().split("\n")
    assert lines[0] == '"barcode","name","supplier","detected_at"'
    assert lines[1].startswith('"123","Fig Jam","Acme","')

    again = await client.post(f"{API}/new-products/export")
    assert again.json() == []


@pytest.mark.asyncio
async def test_current_stock_upload_rejects_missing_columns(client):
    store = await create_store(client)

    response = await upload(client, store["id"], "current-stock", "barcode,description\n1,Oat\n")

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert "quantity" in response.json()["error"]


@pytest.mark.asyncio
async def test_current_stock_upload_reports_unknown_products(client):
    store = await create_store(client)

    response = await upload(client, store["id"], "current-stock", "Barcode,Quantity\n999,7\n")

    assert response.status_code == 200
    assert response.json()["summary"]["errors"] == 1
    assert response.json()["summary"]["errorDetails"][0]["barcode"] == "999"


@pytest.mark.asyncio
async def test_delivery_upload_requires_supplier(client):
    store = await create_store(client)

    response = await upload(client, store["id"], "supplier-delivery", "barcode,quantity\n1,1\n")

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_empty_upload_is_rejected(client):
    store = await create_store(client)

    response = await upload(client, store["id"], "current-stock", "")

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_receipt_lifecycle(client):
    store = await create_store(client)
    delivery = await upload(
        client, store["id"], "supplier-delivery", "barcode,quantity\n555,1\n", supplier_name="Acme"
    )
    product_id = (await client.get(f"{API}/inventory/{store['id']}")).json()[0]["product_id"]

    response = await client.post(
        f"{API}/receipts/",
        json={
            "store_id": store["id"],
            "supplier_name": "Acme",
            "items": [{"product_id": product_id, "quantity": 4, "unit_cost": "1.25"}]
        }
    )
    assert response.status_code == 201
    receipt = response.json()
    assert receipt["status"] == "pending"
    assert receipt["total_items"] == 4

    processed = await client.post(f"{API}/receipts/{receipt['id']}/process")
    assert processed.status_code == 200
    assert processed.json()["status"] == "completed"

    again = await client.post(f"{API}/receipts/{receipt['id']}/process")
    assert again.status_code == 400

    cancel = await client.post(f"{API}/receipts/{receipt['id']}/cancel")
    assert cancel.status_code == 400

    missing = await client.post(f"{API}/receipts/unknown/process")
    assert missing.status_code == 404

    inventory = (await client.get(f"{API}/inventory/{store['id']}")).json()
    assert inventory[0]["quantity"] == 5
    assert delivery.json()["success"] is True


@pytest.mark.asyncio
async def test_receipt_requires_supplier(client):
    store = await create_store(client)

    response = await client.post(
        f"{API}/receipts/",
        json={"store_id": store["id"], "items": [{"product_id": "x", "quantity": 1}]}
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_manual_adjustment_and_low_stock(client):
    store = await create_store(client)
    await upload(client, store["id"], "supplier-delivery", "barcode,quantity\n777,40\n", supplier_name="Acme")
    product_id = (await client.get(f"{API}/inventory/{store['id']}")).json()[0]["product_id"]

    response = await client.patch(
        f"{API}/inventory/{store['id']}/{product_id}",
        json={"quantity": 3, "notes": "Breakage"}
    )
    assert response.status_code == 200
    assert response.json()["previous_quantity"] == 40
    assert response.json()["quantity_change"] == -37

    low_stock = (await client.get(f"{API}/inventory/low-stock", params={"store_id": store["id"]})).json()
    assert [item["barcode"] for item in low_stock] == ["777"]

    summary = (await client.get(f"{API}/inventory/movements/summary", params={"store_id": store["id"]})).json()
    assert summary["by_movement_type"] == {
        "receipt": {"quantity_change": 40, "movements": 1},
        "adjustment": {"quantity_change": -37, "movements": 1}
    }

    missing = await client.patch(f"{API}/inventory/{store['id']}/nope", json={"quantity": 1})
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_identity_mappings(client):
    payload = {
        "barcode": "4001",
        "external_product_id": "gid-1",
        "external_variant_id": "var-1",
        "discovery_method": "search_primary",
        "search_time_ms": 250
    }

    first = await client.put(f"{API}/identity-mappings/", json=payload)
    assert first.status_code == 200
    assert first.json()["verification_count"] == 1

    second = await client.put(
        f"{API}/identity-mappings/",
        json={"barcode": "4001", "external_product_id": "gid-1"}
    )
    assert second.json()["verification_count"] == 2
    assert second.json()["external_variant_id"] == "var-1"

    found = await client.get(f"{API}/identity-mappings/4001")
    assert found.json()["discovery_method"] == "manual"

    stats = (await client.get(f"{API}/identity-mappings/stats")).json()
    assert stats["total_mappings"] == 1

    conflict = await client.put(
        f"{API}/identity-mappings/",
        json={"barcode": "4002", "external_product_id": "gid-1", "external_variant_id": "var-1"}
    )
    assert conflict.status_code == 409

    assert (await client.get(f"{API}/identity-mappings/9999")).status_code == 404

    invalid = await client.put(
        f"{API}/identity-mappings/",
        json={"barcode": "4003", "external_product_id": "gid-3", "discovery_method": "guess"}
    )
    assert invalid.status_code == 422


@pytest.mark.asyncio
async def test_registered_product_takes_current_stock(client):
    store = await create_store(client)
    response = await client.post(
        f"{API}/products/",
        json={"sku": "OAT-1", "barcode": " 4001 ", "name": "Oat Milk", "unit_price": "2.49"}
    )
    assert response.status_code == 201
    assert response.json()["barcode"] == "4001"

    found = await client.get(f"{API}/products/barcode/4001")
    assert found.json()["id"] == response.json()["id"]
    assert (await client.get(f"{API}/products/barcode/9999")).status_code == 404

    first = await upload(client, store["id"], "current-stock", "EAN;Stock\n4001;12\n")
    second = await upload(client, store["id"], "current-stock", "EAN;Stock\n4001;12\n")
    assert first.json()["summary"]["successfulUpdates"] == 1
    assert second.json()["summary"]["successfulUpdates"] == 1

    inventory = (await client.get(f"{API}/inventory/{store['id']}")).json()
    assert [(item["sku"], item["quantity"]) for item in inventory] == [("OAT-1", 12)]

    movements = (await client.get(f"{API}/inventory/movements", params={"store_id": store["id"]})).json()
    assert movements == []


@pytest.mark.asyncio
async def test_quantities_above_the_column_maximum_are_rejected(client):
    store = await create_store(client)

    response = await client.patch(f"{API}/inventory/{store['id']}/any", json={"quantity": 2147483648})
    assert response.status_code == 422

    response = await client.post(
        f"{API}/receipts/",
        json={
            "store_id": store["id"],
            "supplier_name": "Acme",
            "items": [{"product_id": "any", "quantity": 2147483648}]
        }
    )
    assert response.status_code == 422
