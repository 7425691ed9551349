import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from quoteflow.csrf import (
    CSRF_COOKIE_NAME,
    CSRF_HEADER_NAME,
    CSRFMiddleware,
    generate_csrf_token,
    is_path_exempt,
    verify_csrf_token,
)


@pytest.fixture
def csrf_client():
    app = FastAPI()
    app.add_middleware(CSRFMiddleware)

    @app.get("/api/items")
    async def list_items():
        return {"items": []}

    @app.post("/api/items")
    async def create_item():
        return {"created": True}

    @app.post("/api/webhooks/affiliate-payment")
    async def webhook():
        return {"received": True}

    return TestClient(app)


def test_token_signature_round_trip():
    token = generate_csrf_token()
    assert verify_csrf_token(token)
    assert not verify_csrf_token(token[:-2] + "xx")
    assert not verify_csrf_token(None)


def test_exempt_paths():
    assert is_path_exempt("/api/cron/mark-overdue")
    assert is_path_exempt("/api/webhooks/affiliate-payment")
    assert not is_path_exempt("/api/orders")


def test_safe_request_issues_cookie(csrf_client):
    response = csrf_client.get("/api/items")
    assert response.status_code == 200
    assert verify_csrf_token(response.cookies.get(CSRF_COOKIE_NAME))


def test_post_without_token_is_rejected(csrf_client):
    response = csrf_client.post("/api/items")
    assert response.status_code == 403
    assert response.json()["code"] == "CSRF_TOKEN_MISSING"


def test_post_with_mismatched_token_is_rejected(csrf_client):
    token = generate_csrf_token()
    csrf_client.cookies.set(CSRF_COOKIE_NAME, token)
    response = csrf_client.post("/api/items", headers={CSRF_HEADER_NAME: generate_csrf_token()})
    assert response.status_code == 403
    assert response.json()["code"] == "CSRF_TOKEN_INVALID"


def test_post_with_matching_token_passes(csrf_client):
    token = generate_csrf_token()
    csrf_client.cookies.set(CSRF_COOKIE_NAME, token)
    response = csrf_client.post("/api/items", headers={CSRF_HEADER_NAME: token})
    assert response.status_code == 200


def test_bearer_clients_and_webhooks_skip_the_check(csrf_client):
    assert csrf_client.post("/api/items", headers={"Authorization": "Bearer abc"}).status_code == 200
    assert csrf_client.post("/api/webhooks/affiliate-payment").status_code == 200
