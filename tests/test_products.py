import pytest

from quoteflow.models import CompanyMember
from tests.conftest import make_user


@pytest.fixture
def salesperson(db, kv, tenant):
    user = make_user(db, "sales@example.com", "salesperson", kv)
    db.add(CompanyMember(company_id=tenant.company.id, user_id=user.id, role_name="salesperson"))
    db.commit()
    return user


def create_product(client, **overrides):
    payload = {"name_zh": "不鏽鋼水槽", "sku": "SINK-01", "unit_price": 4500, "cost_price": 3000, "cost_currency": "TWD"}
    payload.update(overrides)
    response = client.post("/api/products", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def test_owner_sees_cost(client):
    product = create_product(client)
    assert product["cost_price"] == 3000
    assert product["name"] == {"zh": "不鏽鋼水槽", "en": None}

    listed = client.get("/api/products").json()["data"]
    assert listed[0]["cost_price"] == 3000


def test_salesperson_never_sees_cost(client, salesperson):
    product = create_product(client)
    client.current["user"] = salesperson

    listed = client.get("/api/products").json()["data"]
    assert "cost_price" not in listed[0]
    assert "cost_currency" not in listed[0]

    single = client.get(f"/api/products/{product['id']}").json()["data"]
    assert "cost_price" not in single


def test_salesperson_cannot_set_cost(client, salesperson):
    product = create_product(client)
    client.current["user"] = salesperson

    # salespeople only read the catalogue
    response = client.put(f"/api/products/{product['id']}", json={"cost_price": 1})
    assert response.status_code == 403


def test_search_by_name(client):
    create_product(client)
    create_product(client, name_zh="瓦斯爐", sku="STOVE-01")
    found = client.get("/api/products", params={"q": "瓦斯"}).json()["data"]
    assert [p["sku"] for p in found] == ["STOVE-01"]
