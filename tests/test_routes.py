import pytest
from fastapi.testclient import TestClient

from api.routes import get_statement_service
from main import app
from services.extraction_client import ExtractionClient
from services.statement_service import StatementIngestionService


@pytest.fixture
def fake(fake_client_factory):
    return fake_client_factory(
        {"expenses": [{"amount": 5.25, "currency": "USD", "occurred_on": "2024-06-28", "line_index": 2, "merchant": "STARBUCKS"}]}
    )


@pytest.fixture
def client(test_settings, fake):
    service = StatementIngestionService(client=ExtractionClient(client=fake), settings=test_settings)
    app.dependency_overrides[get_statement_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_parse_statement_pdf(client, fake, statement_pdf):
    resp = client.post("/ai/parse-statement", files={"file": ("june.pdf", statement_pdf, "application/pdf")})
    assert resp.status_code == 200
    assert resp.json() == {
        "success": True,
        "expenses": [{"amount": 5.25, "currency": "USD", "occurred_on": "2024-06-28", "merchant": "STARBUCKS"}],
    }
    assert "jane.doe@example.com" not in fake.completions.user_prompts()[0]


def test_statement_alias_field_and_mask_off(client, fake, statement_pdf):
    resp = client.post(
        "/ai/parse-statement?mask=0",
        files={"statement": ("june.pdf", statement_pdf, "application/pdf")},
    )
    assert resp.status_code == 200
    assert "jane.doe@example.com" in fake.completions.user_prompts()[0]


def test_preview(client, fake):
    resp = client.post("/ai/parse-statement?preview=1", data={"text": "JUN 28 STARBUCKS $5.25\nme@example.com"})
    body = resp.json()
    assert body["success"] is True and body["expenses"] == []
    assert body["usage"]["preview"]["head"] == "1. JUN 28 STARBUCKS $5.25\n2. [EMAIL]"
    assert fake.completions.calls == []


def test_password_sources(client, encrypted_statement_pdf):
    files = {"file": ("locked.pdf", encrypted_statement_pdf, "application/pdf")}

    missing = client.post("/ai/parse-statement", files=files)
    assert missing.status_code == 400
    assert missing.json()["success"] is False
    assert "password-protected" in missing.json()["error"]

    wrong = client.post("/ai/parse-statement?password=nope", files=files)
    assert wrong.json()["error"] == "Incorrect password for this PDF."

    via_header = client.post("/ai/parse-statement", files=files, headers={"X-PDF-Password": "secret"})
    assert via_header.status_code == 200

    via_form = client.post("/ai/parse-statement", files=files, data={"password": "secret"})
    assert via_form.status_code == 200


def test_rejections(client):
    assert client.post("/ai/parse-statement", data={"text": "   "}).status_code == 400
    unsupported = client.post("/ai/parse-statement", files={"file": ("notes.txt", b"hello", "text/plain")})
    assert unsupported.status_code == 415
    assert unsupported.json()["success"] is False


def test_parse_spreadsheet_local(client, fake):
    csv = b"Date,Description,Amount\n2024-06-28,STARBUCKS,5.25\n"
    resp = client.post("/import/parse-spreadsheet?local=1", files={"excel": ("export.csv", csv, "text/csv")})
    assert resp.json() == {
        "success": True,
        "expenses": [{"amount": 5.25, "currency": "USD", "occurred_on": "2024-06-28", "merchant": "STARBUCKS"}],
    }
    assert fake.completions.calls == []
