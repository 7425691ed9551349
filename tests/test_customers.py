from quoteflow.utils.sanitization import sanitize_dict, sanitize_string


def create_customer(client, **overrides):
    payload = {"name_zh": "大同五金行", "email": "buyer@datong.example", "tax_id": "04595257"}
    payload.update(overrides)
    response = client.post("/api/customers", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def test_sanitize_string_strips_tags():
    assert sanitize_string("<b>急件</b><script>x</script>") == "急件x"
    assert sanitize_string(None) is None


def test_sanitize_dict_limits_to_fields():
    data = {"notes": "<i>hi</i>", "email": "<a@b.c>"}
    cleaned = sanitize_dict(data, ["notes"])
    assert cleaned["notes"] == "hi"
    assert cleaned["email"] == "<a@b.c>"


def test_create_customer_strips_markup(client):
    customer = create_customer(client, notes="<img src=x onerror=alert(1)>每月結帳")
    assert customer["notes"] == "每月結帳"
    assert customer["name"] == {"zh": "大同五金行", "en": None}
    assert customer["contract_status"] == "prospect"


def test_update_and_search_customer(client):
    customer = create_customer(client)
    response = client.put(f"/api/customers/{customer['id']}", json={"address": "<p>台北市</p>"})
    assert response.status_code == 200
    assert response.json()["data"]["address"] == "台北市"

    found = client.get("/api/customers", params={"q": "大同"}).json()["data"]
    assert [c["id"] for c in found] == [customer["id"]]


def test_invalid_tax_id_rejected(client):
    response = client.post("/api/customers", json={"name_zh": "錯誤統編", "tax_id": "12345678"})
    assert response.status_code == 400


def test_missing_customer_is_404(client):
    response = client.get("/api/customers/9999")
    assert response.status_code == 404
