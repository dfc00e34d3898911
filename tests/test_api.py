from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from transaction_analyzer.app import app
from transaction_analyzer.services.pipeline import ImportSession
from transaction_analyzer.storage.local_store import LocalStore

client = TestClient(app)

CSV_TEXT = (
    "Date,Description,Amount\n"
    "01/15/2025,AMAZON.COM,-45.99\n"
    "01/20/2025,HECTORS MEXICAN FOOD,-18.25\n"
    "01/24/2025,AMAZON.COM REFUND,45.99\n"
)

MAPPING = {"date": "Date", "description": "Description", "amount": "Amount"}


@pytest.fixture
def session(tmp_path) -> Generator[ImportSession, None, None]:
    had_session = hasattr(app.state, "session")
    original_session = getattr(app.state, "session", None)
    session = ImportSession(store=LocalStore(data_dir=str(tmp_path)))
    app.state.session = session
    yield session
    if had_session:
        app.state.session = original_session
    else:
        delattr(app.state, "session")


def _import_and_confirm() -> dict:
    response = client.post("/api/import", json={"csv_text": CSV_TEXT, "file_name": "jan.csv"})
    assert response.status_code == 200
    response = client.post("/api/import/confirm", json={"mapping": MAPPING, "account_type": "credit_card"})
    assert response.status_code == 200
    return response.json()


def test_categories(session: ImportSession) -> None:
    response = client.get("/api/categories")

    assert response.status_code == 200
    assert "Groceries" in response.json()
    assert response.json()[-1] == "Other"


def test_import_preview(session: ImportSession) -> None:
    response = client.post("/api/import", json={"csv_text": CSV_TEXT, "file_name": "jan.csv"})

    assert response.status_code == 200
    data = response.json()
    assert data["headers"] == ["Date", "Description", "Amount"]
    assert data["row_count"] == 3
    assert data["mapping"]["amount"] == "Amount"
    assert data["recalled_format"] is False
    assert data["account_detection"]["type"] == "unknown"


def test_import_rejects_headerless_text(session: ImportSession) -> None:
    response = client.post("/api/import", json={"csv_text": "", "file_name": "empty.csv"})

    assert response.status_code == 422


def test_import_and_confirm(session: ImportSession) -> None:
    data = _import_and_confirm()

    assert data["account_type"] == "credit_card"
    purchase, dinner, refund = data["transactions"]
    assert purchase["merchant_canonical"] == "Amazon"
    assert dinner["category"] == "Dining"
    assert refund["type"] == "refund"
    assert refund["linked_transaction_id"] == purchase["id"]

    response = client.get("/api/transactions")
    assert response.status_code == 200
    assert len(response.json()["transactions"]) == 3


def test_confirm_rejects_mapping_without_amount(session: ImportSession) -> None:
    client.post("/api/import", json={"csv_text": CSV_TEXT})

    response = client.post(
        "/api/import/confirm",
        json={"mapping": {"date": "Date", "description": "Description"}, "account_type": "bank"},
    )

    assert response.status_code == 422


def test_requests_without_import_conflict(session: ImportSession) -> None:
    assert client.post("/api/reprocess").status_code == 409
    assert client.get("/api/transactions").status_code == 409
    assert client.get("/api/summary/categories").status_code == 409
    assert client.post("/api/import/confirm", json={"mapping": MAPPING}).status_code == 409


def test_clear_import(session: ImportSession) -> None:
    _import_and_confirm()

    response = client.delete("/api/import")

    assert response.status_code == 200
    assert client.get("/api/transactions").status_code == 409


def test_rules_lifecycle(session: ImportSession) -> None:
    _import_and_confirm()
    rule = {
        "id": "tacos",
        "name": "Tacos are travel",
        "priority": 1,
        "match": {"keyword": "hectors"},
        "action": {"category": "Travel"},
    }

    response = client.post("/api/rules", json=rule)
    assert response.status_code == 200
    assert client.get("/api/transactions").json()["transactions"][1]["category"] == "Travel"
    assert [r["id"] for r in client.get("/api/rules").json()] == ["tacos"]

    assert client.delete("/api/rules/tacos").status_code == 200
    assert client.delete("/api/rules/tacos").status_code == 404
    assert client.get("/api/transactions").json()["transactions"][1]["category"] == "Dining"


def test_merchants_and_overrides(session: ImportSession) -> None:
    _import_and_confirm()
    entry = {
        "canonical_name": "Hector's",
        "aliases": ["HECTORS MEXICAN FOOD"],
        "pattern_strings": ["HECTOR"],
        "default_category": "Dining",
    }

    response = client.put("/api/merchants", json=entry)
    assert response.status_code == 200
    merchants = client.get("/api/merchants").json()
    assert merchants[0]["canonical_name"] == "Hector's"
    assert client.get("/api/transactions").json()["transactions"][1]["merchant_canonical"] == "Hector's"

    assert client.delete("/api/merchants/Hector's").status_code == 200
    assert client.delete("/api/merchants/Hector's").status_code == 404

    response = client.post("/api/overrides", json={"raw_description": "AMAZON.COM", "canonical_name": "Books"})
    assert response.status_code == 200
    assert client.get("/api/overrides").json() == {"AMAZON.COM": "Books"}
    assert client.get("/api/transactions").json()["transactions"][0]["merchant_canonical"] == "Books"


def test_invalid_merchant_pattern_is_rejected(session: ImportSession) -> None:
    entry = {"canonical_name": "Broken", "pattern_strings": ["(unclosed"], "default_category": "Other"}

    assert client.put("/api/merchants", json=entry).status_code == 422


def test_refund_settings(session: ImportSession) -> None:
    _import_and_confirm()

    response = client.put(
        "/api/settings/refunds",
        json={"days_window": 5, "amount_tolerance": 0.05, "match_threshold": 0.4},
    )

    assert response.status_code == 200
    assert client.get("/api/settings/refunds").json()["days_window"] == 5
    refund = client.get("/api/transactions").json()["transactions"][2]
    assert refund["linked_transaction_id"] is None


def test_refund_settings_validation(session: ImportSession) -> None:
    response = client.put("/api/settings/refunds", json={"days_window": 0})

    assert response.status_code == 422


def test_summaries(session: ImportSession) -> None:
    _import_and_confirm()

    categories = client.get("/api/summary/categories").json()
    assert {c["category"] for c in categories} == {"Shopping", "Dining"}

    with_refunds = client.get("/api/summary/categories", params={"include_refunds": True}).json()
    shopping = next(c for c in with_refunds if c["category"] == "Shopping")
    assert shopping["total"] == 0.0

    assert client.get("/api/summary/merchants").status_code == 200
    monthly = client.get("/api/summary/monthly").json()
    assert [m["month"] for m in monthly] == ["2025-01"]
    cash_flow = client.get("/api/summary/cash-flow").json()
    assert cash_flow[0]["income"] == 45.99


def test_export(session: ImportSession) -> None:
    _import_and_confirm()

    response = client.get("/api/export")

    assert response.status_code == 200
    assert "examples.json" in response.headers["content-disposition"]
    examples = response.json()
    assert len(examples) == 3
    assert set(examples[0]) == {"raw_description", "merchant_canonical", "category", "type"}


def test_missing_session_is_server_error() -> None:
    had_session = hasattr(app.state, "session")
    original_session = getattr(app.state, "session", None)
    if had_session:
        delattr(app.state, "session")
    try:
        assert client.get("/api/rules").status_code == 500
    finally:
        if had_session:
            app.state.session = original_session
