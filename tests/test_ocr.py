import asyncio
import base64
import json

import pytest

from quoteflow.domain.ocr import service as ocr_service
from quoteflow.domain.ocr.service import (
    OCRError,
    detect_image_mime_type,
    parse_card_json,
    scan_business_card,
)

PNG_BYTES = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR"
    b"\x00\x00\x00\x01\x00\x00\x00\x01\x08\x02\x00\x00\x00\x90wS\xde"
    + b"\x00" * 32
)
PNG_BASE64 = base64.b64encode(PNG_BYTES).decode()

CARD = {
    "name": {"zh": "王小明", "en": "Ming Wang"},
    "company": "大同商行",
    "title": "業務經理",
    "email": " Ming.Wang@Example.COM ",
    "phone": "+886-2-2345-6789",
    "fax": "",
    "address": {"zh": "台北市中山區民生東路一段 1 號", "en": None},
}


@pytest.fixture
def model_calls(monkeypatch):
    calls = []

    async def fake_call(model, image_base64, api_key=None):
        calls.append(model)
        if model == "qwen/qwen-vl-plus":
            raise OCRError("API 請求失敗 (503)")
        return ocr_service.normalize_card(CARD)

    monkeypatch.setattr(ocr_service, "call_model", fake_call)
    return calls


def test_detect_image_mime_type():
    assert detect_image_mime_type(PNG_BASE64) == "image/png"
    assert detect_image_mime_type("/9j/4AAQ") == "image/jpeg"
    assert detect_image_mime_type("UklGRiQAAABXRUJQ") == "image/webp"
    assert detect_image_mime_type("unknown") == "image/jpeg"


def test_parse_card_json_normalizes_fields():
    fenced = "```json\n" + json.dumps(CARD, ensure_ascii=False) + "\n```"
    card = parse_card_json(fenced)

    assert card.name.zh == "王小明"
    assert card.email == "ming.wang@example.com"
    assert card.fax is None
    assert card.address.en == ""


def test_parse_card_json_rejects_prose():
    with pytest.raises(OCRError):
        parse_card_json("抱歉，我無法辨識這張名片")
    with pytest.raises(OCRError):
        parse_card_json("[1, 2]")


def test_falls_back_to_second_model(model_calls):
    card = asyncio.run(scan_business_card(PNG_BASE64))
    assert card.company == "大同商行"
    assert model_calls == ["qwen/qwen-vl-plus", "z-ai/glm-4.6v"]


def test_all_models_failing(monkeypatch):
    async def failing_call(model, image_base64, api_key=None):
        raise OCRError("timeout")

    monkeypatch.setattr(ocr_service, "call_model", failing_call)
    with pytest.raises(OCRError) as exc:
        asyncio.run(scan_business_card(PNG_BASE64))
    assert "qwen/qwen-vl-plus: timeout" in str(exc.value)


def test_missing_api_key(monkeypatch):
    monkeypatch.setattr(ocr_service.config, "OPENROUTER_API_KEY", None)
    with pytest.raises(OCRError):
        asyncio.run(ocr_service.call_model("qwen/qwen-vl-plus", PNG_BASE64))


def test_route_accepts_base64_data_url(client, model_calls):
    response = client.post("/api/ocr/business-card", json={"image": f"data:image/png;base64,{PNG_BASE64}"})
    assert response.status_code == 200
    assert response.json()["data"]["name"] == {"zh": "王小明", "en": "Ming Wang"}


def test_route_accepts_multipart_upload(client, model_calls):
    response = client.post(
        "/api/ocr/business-card", files={"file": ("card.png", PNG_BYTES, "image/png")}
    )
    assert response.status_code == 200
    assert response.json()["data"]["title"] == "業務經理"


def test_route_rejects_non_images(client, model_calls):
    pdf = base64.b64encode(b"%PDF-1.7 fake").decode()
    response = client.post("/api/ocr/business-card", json={"image": pdf})
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_FILE"

    mislabeled = client.post(
        "/api/ocr/business-card", files={"file": ("card.png", b"%PDF-1.7 fake", "image/png")}
    )
    assert mislabeled.status_code == 400
    assert model_calls == []


def test_route_reports_ocr_failure(client, monkeypatch):
    async def failing_call(model, image_base64, api_key=None):
        raise OCRError("timeout")

    monkeypatch.setattr(ocr_service, "call_model", failing_call)
    response = client.post("/api/ocr/business-card", json={"image": PNG_BASE64})
    assert response.status_code == 502
    assert response.json()["code"] == "OCR_FAILED"


def test_route_accepts_raw_image_body(client, model_calls):
    response = client.post(
        "/api/ocr/business-card", content=PNG_BYTES, headers={"Content-Type": "image/png"}
    )
    assert response.status_code == 200
    assert response.json()["data"]["company"] == "大同商行"


def test_route_rejects_mislabeled_raw_body(client, model_calls):
    response = client.post(
        "/api/ocr/business-card", content=b"%PDF-1.7 fake", headers={"Content-Type": "image/jpeg"}
    )
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_FILE"
    assert model_calls == []
