import pytest


@pytest.fixture
def confirmed_order(client, tenant):
    response = client.post(
        "/api/orders",
        json={
            "customer_id": tenant.customer.id,
            "shipping_address": "新北市板橋區文化路 2 號",
            "items": [
                {"product_name": "工業風扇", "quantity": 5, "unit_price": 2000},
                {"product_name": "濾網", "quantity": 10, "unit_price": 150},
            ],
        },
    )
    order = response.json()["data"]
    client.post(f"/api/orders/{order['id']}/confirm")
    return order


def ship(client, payload):
    response = client.post("/api/shipments", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def test_draft_orders_cannot_ship(client, tenant):
    order = client.post(
        "/api/orders",
        json={"customer_id": tenant.customer.id, "items": [{"product_name": "x", "quantity": 1, "unit_price": 1}]},
    ).json()["data"]
    response = client.post("/api/shipments", json={"order_id": order["id"]})
    assert response.status_code == 400


def test_ship_all_marks_order_shipped(client, confirmed_order):
    shipment = ship(client, {"order_id": confirmed_order["id"], "shipping_fee": 300})

    assert shipment["status"] == "pending"
    assert shipment["subtotal"] == 11500.0
    assert shipment["total_amount"] == 11800.0
    assert shipment["recipient_address"] == "新北市板橋區文化路 2 號"

    order = client.get(f"/api/orders/{confirmed_order['id']}").json()["data"]
    assert order["status"] == "shipped"
    assert all(item["quantity_remaining"] == 0 for item in order["items"])

    nothing_left = client.post("/api/shipments", json={"order_id": confirmed_order["id"]})
    assert nothing_left.status_code == 400


def test_partial_shipment_and_cancel_returns_quantities(client, confirmed_order):
    fan = confirmed_order["items"][0]
    shipment = ship(
        client,
        {
            "order_id": confirmed_order["id"],
            "ship_all": False,
            "items": [{"order_item_id": fan["id"], "quantity": 2}],
        },
    )
    assert shipment["total_amount"] == 4000.0

    order = client.get(f"/api/orders/{confirmed_order['id']}").json()["data"]
    assert order["status"] == "confirmed"
    assert order["items"][0]["quantity_shipped"] == 2
    assert order["items"][0]["quantity_remaining"] == 3

    too_many = client.post(
        "/api/shipments",
        json={
            "order_id": confirmed_order["id"],
            "ship_all": False,
            "items": [{"order_item_id": fan["id"], "quantity": 4}],
        },
    )
    assert too_many.status_code == 400

    cancelled = client.post(f"/api/shipments/{shipment['id']}/cancel").json()["data"]
    assert cancelled["status"] == "cancelled"
    order = client.get(f"/api/orders/{confirmed_order['id']}").json()["data"]
    assert order["items"][0]["quantity_remaining"] == 5


def test_partial_shipment_requires_items(client, confirmed_order):
    response = client.post("/api/shipments", json={"order_id": confirmed_order["id"], "ship_all": False})
    assert response.status_code == 400


def test_shipment_lifecycle(client, confirmed_order):
    shipment = ship(client, {"order_id": confirmed_order["id"]})
    shipment_id = shipment["id"]

    in_transit = client.post(
        f"/api/shipments/{shipment_id}/ship", json={"carrier": "黑貓宅急便", "tracking_number": "TW123"}
    ).json()["data"]
    assert in_transit["status"] == "in_transit"
    assert in_transit["carrier"] == "黑貓宅急便"
    assert in_transit["shipping_date"] is not None

    assert client.post(f"/api/shipments/{shipment_id}/ship", json={}).status_code == 400
    assert client.delete(f"/api/shipments/{shipment_id}").status_code == 400

    delivered = client.post(f"/api/shipments/{shipment_id}/deliver", json={}).json()["data"]
    assert delivered["status"] == "delivered"
    assert delivered["actual_delivery"] is not None

    assert client.post(f"/api/shipments/{shipment_id}/cancel").status_code == 400
    assert client.post(f"/api/orders/{confirmed_order['id']}/complete").json()["data"]["status"] == "completed"


def test_deleting_pending_shipment_reopens_order(client, confirmed_order):
    shipment = ship(client, {"order_id": confirmed_order["id"]})
    assert client.delete(f"/api/shipments/{shipment['id']}").status_code == 200

    order = client.get(f"/api/orders/{confirmed_order['id']}").json()["data"]
    assert order["status"] == "confirmed"
    assert order["items"][1]["quantity_remaining"] == 10


def test_invoice_from_shipment(client, confirmed_order):
    shipment = ship(client, {"order_id": confirmed_order["id"], "shipping_fee": 500})

    response = client.post(f"/api/shipments/{shipment['id']}/invoice", json={})
    assert response.status_code == 201
    invoice = response.json()["data"]
    assert invoice["invoice_number"] == shipment["shipment_number"]
    assert invoice["invoice_type"] == "OUTPUT"
    assert invoice["status"] == "DRAFT"
    assert invoice["untaxed_amount"] == 12000.0
    assert invoice["tax_amount"] == 600.0
    assert invoice["total_amount"] == 12600.0

    duplicate = client.post(f"/api/shipments/{shipment['id']}/invoice", json={})
    assert duplicate.status_code == 409
