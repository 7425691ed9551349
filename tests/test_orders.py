from datetime import date


def create_order(client, customer_id, **overrides):
    payload = {
        "customer_id": customer_id,
        "tax_rate": 5,
        "items": [
            {"product_name": "不鏽鋼螺絲", "quantity": 10, "unit_price": 12.5},
            {"product_name": "墊片", "quantity": 4, "unit_price": 100, "discount": 10},
        ],
    }
    payload.update(overrides)
    response = client.post("/api/orders", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def test_create_order_computes_totals(client, tenant):
    order = create_order(client, tenant.customer.id)

    assert order["status"] == "draft"
    assert order["order_number"] == f"ORD-{date.today():%Y%m%d}-0001"
    assert [item["amount"] for item in order["items"]] == [125.0, 360.0]
    assert order["subtotal"] == 485.0
    assert order["tax_amount"] == 24.25
    assert order["total_amount"] == 509.25
    assert all(item["quantity_remaining"] == item["quantity"] for item in order["items"])


def test_order_numbers_increment(client, tenant):
    first = create_order(client, tenant.customer.id)
    second = create_order(client, tenant.customer.id)
    assert first["order_number"].endswith("-0001")
    assert second["order_number"].endswith("-0002")


def test_unknown_customer_is_rejected(client):
    response = client.post("/api/orders", json={"customer_id": 9999, "items": []})
    assert response.status_code == 404


def test_status_transitions(client, tenant):
    order = create_order(client, tenant.customer.id)
    order_id = order["id"]

    premature = client.post(f"/api/orders/{order_id}/complete")
    assert premature.status_code == 400

    confirmed = client.post(f"/api/orders/{order_id}/confirm").json()["data"]
    assert confirmed["status"] == "confirmed"
    assert confirmed["confirmed_at"] is not None

    again = client.post(f"/api/orders/{order_id}/confirm")
    assert again.status_code == 400

    cancelled = client.post(f"/api/orders/{order_id}/cancel").json()["data"]
    assert cancelled["status"] == "cancelled"
    assert client.post(f"/api/orders/{order_id}/cancel").status_code == 400


def test_only_draft_orders_can_be_deleted(client, tenant):
    order = create_order(client, tenant.customer.id)
    client.post(f"/api/orders/{order['id']}/confirm")
    assert client.delete(f"/api/orders/{order['id']}").status_code == 400

    draft = create_order(client, tenant.customer.id)
    assert client.delete(f"/api/orders/{draft['id']}").status_code == 200
    assert client.get(f"/api/orders/{draft['id']}").status_code == 404


def test_item_changes_recalculate_totals(client, tenant):
    order = create_order(client, tenant.customer.id, items=[])
    assert order["total_amount"] == 0

    added = client.post(
        f"/api/orders/{order['id']}/items", json={"product_name": "電源供應器", "quantity": 2, "unit_price": 1000}
    ).json()["data"]
    assert added["subtotal"] == 2000.0
    assert added["total_amount"] == 2100.0

    item_id = added["items"][0]["id"]
    updated = client.put(f"/api/orders/{order['id']}/items/{item_id}", json={"quantity": 3}).json()["data"]
    assert updated["total_amount"] == 3150.0

    emptied = client.delete(f"/api/orders/{order['id']}/items/{item_id}").json()["data"]
    assert emptied["items"] == []
    assert emptied["total_amount"] == 0


def test_stats_counts_by_status(client, tenant):
    create_order(client, tenant.customer.id)
    confirmed = create_order(client, tenant.customer.id)
    client.post(f"/api/orders/{confirmed['id']}/confirm")

    stats = client.get("/api/orders/stats").json()["data"]
    assert stats["total"] == 2
    assert stats["draft"] == 1
    assert stats["confirmed"] == 1
    assert stats["shipped"] == 0


def test_orders_are_scoped_to_company(client, db, kv, tenant):
    from tests.conftest import make_company, make_user

    order = create_order(client, tenant.customer.id)

    outsider = make_user(db, "other@example.com", "company_owner", kv)
    make_company(db, outsider, "別家公司")
    client.current["user"] = outsider

    assert client.get(f"/api/orders/{order['id']}").status_code == 404
    assert client.get("/api/orders").json()["data"] == []
