"""API tests for clinic-ledger."""

import re
import sys
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from clinic_ledger.core.database import init_db
from clinic_ledger.main import app

DAY = "/v1/settlements/C1/2024-02-10"


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def mock_enqueue():
    with patch(
        "clinic_ledger.routers.settlements.enqueue_settlement_report",
        new_callable=AsyncMock,
    ) as mock:
        yield mock


def _create_treatment(client, procedure_id="rct", teeth=(46,), clinic_id="C1"):  # type: ignore[no-untyped-def]
    response = client.post(
        "/v1/treatments/",
        json={"clinic_id": clinic_id, "procedure_id": procedure_id, "teeth": list(teeth)},
    )
    assert response.status_code == 201, response.text
    return response.json()


def _complete(client, treatment_id):  # type: ignore[no-untyped-def]
    response = client.post(
        f"/v1/treatments/{treatment_id}/status",
        json={"status": "completed", "completed_at": "2024-02-10T11:30:00Z"},
    )
    assert response.status_code == 200, response.text
    return response.json()


def _bill(client, **kwargs):  # type: ignore[no-untyped-def]
    treatment = _create_treatment(client, **kwargs)
    _complete(client, treatment["id"])
    response = client.post(f"/v1/billing/treatments/{treatment['id']}/bill")
    assert response.status_code == 201, response.text
    return response.json()


def _pay(client, channel, amount, reference=None):  # type: ignore[no-untyped-def]
    response = client.post(
        f"{DAY}/transactions",
        json={"channel": channel, "amount": amount, "reference": reference, "recorded_by": "desk"},
    )
    assert response.status_code == 201, response.text
    return response.json()


def _verify(client, transaction_id):  # type: ignore[no-untyped-def]
    response = client.post(
        f"/v1/settlements/transactions/{transaction_id}/verify", json={"actor": "manager"}
    )
    assert response.status_code == 200, response.text
    return response.json()


class TestHealth:
    def test_health(self, client: TestClient):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_root(self, client: TestClient):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "running"


class TestTreatmentEndpoints:
    def test_create_and_get(self, client: TestClient):
        treatment = _create_treatment(client, teeth=(36, 46))
        assert treatment["status"] == "planned"
        assert treatment["teeth_count"] == 2
        assert treatment["billed"] is False

        response = client.get(f"/v1/treatments/{treatment['id']}")
        assert response.status_code == 200
        assert response.json()["procedure_id"] == "rct"

    def test_create_invalid_tooth(self, client: TestClient):
        response = client.post(
            "/v1/treatments/",
            json={"clinic_id": "C1", "procedure_id": "rct", "teeth": [19]},
        )
        assert response.status_code == 422
        data = response.json()
        assert data["error"] == "ValidationError"
        assert data["identifier"] == "19"

    def test_create_unknown_procedure(self, client: TestClient):
        response = client.post(
            "/v1/treatments/",
            json={"clinic_id": "C1", "procedure_id": "teleportation", "teeth": []},
        )
        assert response.status_code == 422
        assert response.json()["identifier"] == "teleportation"

    def test_list_filters(self, client: TestClient):
        first = _create_treatment(client)
        _create_treatment(client, clinic_id="C2")
        _complete(client, first["id"])

        response = client.get("/v1/treatments/", params={"clinic_id": "C1"})
        assert response.status_code == 200
        assert [t["id"] for t in response.json()] == [first["id"]]

        response = client.get("/v1/treatments/", params={"status": "planned"})
        assert len(response.json()) == 1

    def test_get_not_found(self, client: TestClient):
        response = client.get(f"/v1/treatments/{uuid4()}")
        assert response.status_code == 404

    def test_status_not_found(self, client: TestClient):
        response = client.post(f"/v1/treatments/{uuid4()}/status", json={"status": "completed"})
        assert response.status_code == 404

    def test_illegal_transition(self, client: TestClient):
        treatment = _create_treatment(client)
        _complete(client, treatment["id"])

        response = client.post(
            f"/v1/treatments/{treatment['id']}/status", json={"status": "in_progress"}
        )
        assert response.status_code == 409
        data = response.json()
        assert data["error"] == "StateError"
        assert data["state"]["status"] == "completed"


class TestBillingEndpoints:
    def test_compute_preview(self, client: TestClient):
        treatment = _create_treatment(client, teeth=(36, 46))
        _complete(client, treatment["id"])

        response = client.post(
            "/v1/billing/lines/compute", json={"treatment_ids": [treatment["id"]]}
        )
        assert response.status_code == 200
        lines = response.json()
        assert len(lines) == 1
        assert lines[0]["procedure_id"] == "rct_molar"
        assert lines[0]["quantity"] == 2
        assert lines[0]["subtotal"] == 17000
        assert lines[0]["tax"] == 2040

        # Preview leaves the treatment unbilled
        response = client.get(f"/v1/treatments/{treatment['id']}")
        assert response.json()["billed"] is False

    def test_compute_requires_completed(self, client: TestClient):
        treatment = _create_treatment(client)
        response = client.post(
            "/v1/billing/lines/compute", json={"treatment_ids": [treatment["id"]]}
        )
        assert response.status_code == 409

    def test_bill_treatment(self, client: TestClient):
        line = _bill(client, teeth=(11,))
        assert line["id"].startswith("auto_")
        assert line["procedure_id"] == "rct_anterior"
        assert line["unit_cost"] == 5500

        response = client.get(f"/v1/billing/lines/{line['id']}")
        assert response.status_code == 200
        assert response.json()["treatment_id"] == line["treatment_id"]

    def test_bill_twice_conflicts(self, client: TestClient):
        line = _bill(client)
        response = client.post(f"/v1/billing/treatments/{line['treatment_id']}/bill")
        assert response.status_code == 409
        assert response.json()["identifier"] == line["treatment_id"]

    def test_bill_unknown_treatment(self, client: TestClient):
        response = client.post(f"/v1/billing/treatments/{uuid4()}/bill")
        assert response.status_code == 422

    def test_bill_pending(self, client: TestClient):
        done = _create_treatment(client, procedure_id="consultation", teeth=())
        _complete(client, done["id"])
        _create_treatment(client, procedure_id="consultation", teeth=())

        response = client.post("/v1/billing/clinics/C1/bill_pending")
        assert response.status_code == 200
        data = response.json()
        assert [line["treatment_id"] for line in data["billed"]] == [done["id"]]
        assert data["skipped"] == {}

        response = client.get("/v1/billing/lines", params={"clinic_id": "C1"})
        assert len(response.json()) == 1

    def test_compensate_line(self, client: TestClient):
        line = _bill(client)
        response = client.post(
            f"/v1/billing/lines/{line['id']}/compensate",
            json={"actor": "manager", "reason": "billed in error"},
        )
        assert response.status_code == 201
        reversal = response.json()
        assert reversal["compensates_line_id"] == line["id"]
        assert reversal["quantity"] == -line["quantity"]

        response = client.post(
            f"/v1/billing/lines/{line['id']}/compensate",
            json={"actor": "manager", "reason": "again"},
        )
        assert response.status_code == 409

    def test_compensate_not_found(self, client: TestClient):
        response = client.post(
            "/v1/billing/lines/auto_missing/compensate",
            json={"actor": "manager", "reason": "x"},
        )
        assert response.status_code == 404

    def test_get_line_not_found(self, client: TestClient):
        response = client.get("/v1/billing/lines/auto_missing")
        assert response.status_code == 404

    def test_estimate(self, client: TestClient):
        response = client.get(
            "/v1/billing/estimate", params={"procedure_id": "rct", "teeth": [14]}
        )
        assert response.status_code == 200
        assert response.json() == {
            "procedure_id": "rct_premolar",
            "teeth": [14],
            "subtotal": 6500,
            "tax": 780,
            "total": 7280,
        }

    def test_estimate_per_tooth_without_teeth(self, client: TestClient):
        response = client.get("/v1/billing/estimate", params={"procedure_id": "implant"})
        assert response.status_code == 422


class TestInvoiceEndpoints:
    def test_draft_and_number(self, client: TestClient):
        first = _bill(client)
        second = _bill(client, procedure_id="consultation", teeth=())

        response = client.post(
            "/v1/invoices/", json={"clinic_id": "C1", "line_ids": [first["id"], second["id"]]}
        )
        assert response.status_code == 201
        draft = response.json()
        assert draft["subtotal"] == 9000
        assert draft["tax"] == 1020
        assert draft["total"] == 10020
        assert draft["invoice_number"] is None

        response = client.post(f"/v1/invoices/{draft['id']}/number")
        assert response.status_code == 200
        number = response.json()["invoice_number"]
        assert re.fullmatch(r"INV-\d{4}-001001", number)

        # Idempotent
        response = client.post(f"/v1/invoices/{draft['id']}/number")
        assert response.json()["invoice_number"] == number

        response = client.get("/v1/invoices/", params={"clinic_id": "C1"})
        assert [d["id"] for d in response.json()] == [draft["id"]]

    def test_draft_numbered_in_one_call(self, client: TestClient):
        line = _bill(client)
        response = client.post(
            "/v1/invoices/",
            json={"clinic_id": "C1", "line_ids": [line["id"]], "assign_number": True},
        )
        assert response.status_code == 201
        draft = response.json()
        assert draft["total"] == 9520
        assert re.fullmatch(r"INV-\d{4}-001001", draft["invoice_number"])
        assert draft["numbered_at"] is not None

    def test_second_clinic_numbering(self, client: TestClient):
        numbers = []
        for clinic_id in ("C1", "C2"):
            line = _bill(client, procedure_id="consultation", teeth=(), clinic_id=clinic_id)
            draft = client.post(
                "/v1/invoices/", json={"clinic_id": clinic_id, "line_ids": [line["id"]]}
            ).json()
            response = client.post(f"/v1/invoices/{draft['id']}/number")
            assert response.status_code == 200, response.text
            numbers.append(response.json()["invoice_number"])

        assert numbers[0] == numbers[1]
        assert numbers[0].endswith("-001001")

    def test_draft_unknown_line(self, client: TestClient):
        response = client.post("/v1/invoices/", json={"clinic_id": "C1", "line_ids": ["nope"]})
        assert response.status_code == 422
        assert "unknown invoice lines" in response.json()["detail"]

    def test_draft_not_found(self, client: TestClient):
        assert client.get(f"/v1/invoices/{uuid4()}").status_code == 404
        assert client.post(f"/v1/invoices/{uuid4()}/number").status_code == 404


class TestSettlementEndpoints:
    def test_day_lifecycle(self, client: TestClient, mock_enqueue):
        cash = _pay(client, "CASH", 30000, reference="R-1")
        upi = _pay(client, "UPI", 30000)
        _verify(client, cash["id"])

        response = client.get(DAY)
        assert response.status_code == 200
        status = response.json()
        assert status["status"] == "OPEN"
        assert status["transaction_count"] == 2
        assert status["unverified_count"] == 1
        assert status["totals"] is None
        assert status["live_totals"]["total"] == 60000

        # Unverified payment blocks the close
        response = client.post(f"{DAY}/close", json={"actor": "manager"})
        assert response.status_code == 409
        assert response.json()["state"]["status"] == "OPEN"
        mock_enqueue.assert_not_called()

        _verify(client, upi["id"])
        response = client.post(f"{DAY}/close", json={"actor": "manager"})
        assert response.status_code == 200
        closed = response.json()
        assert closed["status"] == "CLOSED"
        assert closed["closed_by"] == "manager"
        assert closed["totals"] == {"cash": 30000, "upi": 30000, "card": 0, "total": 60000}
        mock_enqueue.assert_called_once()

        # Closed day rejects new payments and a second close
        response = client.post(f"{DAY}/transactions", json={"channel": "CARD", "amount": 100})
        assert response.status_code == 409
        response = client.post(f"{DAY}/close", json={"actor": "manager"})
        assert response.status_code == 409

        response = client.get(f"{DAY}/transactions")
        assert len(response.json()) == 2

        response = client.get("/v1/settlements/C1")
        assert [s["status"] for s in response.json()] == ["CLOSED"]

        response = client.get(f"{DAY}/audit")
        events = [e["event"] for e in response.json()]
        assert events == ["close_rejected", "closed", "close_rejected"]

    def test_close_empty_day(self, client: TestClient, mock_enqueue):
        response = client.post(f"{DAY}/close", json={"actor": "manager"})
        assert response.status_code == 409
        mock_enqueue.assert_not_called()

    def test_close_survives_enqueue_failure(self, client: TestClient, mock_enqueue):
        mock_enqueue.side_effect = ConnectionError("redis down")
        payment = _pay(client, "CARD", 500)
        _verify(client, payment["id"])

        response = client.post(f"{DAY}/close", json={"actor": "manager"})
        assert response.status_code == 200
        assert client.get(DAY).json()["status"] == "CLOSED"

    def test_invalid_amount(self, client: TestClient):
        response = client.post(f"{DAY}/transactions", json={"channel": "CASH", "amount": 0})
        assert response.status_code == 422
        assert response.json()["error"] == "ValidationError"

    def test_unknown_channel(self, client: TestClient):
        response = client.post(f"{DAY}/transactions", json={"channel": "CHEQUE", "amount": 100})
        assert response.status_code == 422

    def test_verify_not_found(self, client: TestClient):
        response = client.post(
            f"/v1/settlements/transactions/{uuid4()}/verify", json={"actor": "manager"}
        )
        assert response.status_code == 404

    def test_correction(self, client: TestClient, mock_enqueue):
        response = client.post(
            f"{DAY}/corrections",
            json={"actor": "admin", "channel": "CASH", "amount": -500, "reason": "miscount"},
        )
        assert response.status_code == 409

        payment = _pay(client, "CASH", 1000)
        _verify(client, payment["id"])
        client.post(f"{DAY}/close", json={"actor": "manager"})

        response = client.post(
            f"{DAY}/corrections",
            json={"actor": "admin", "channel": "CASH", "amount": -500, "reason": "miscount"},
        )
        assert response.status_code == 201
        entry = response.json()
        assert entry["event"] == "correction"
        assert entry["details"] == {"channel": "CASH", "amount": -500}

        # Frozen totals are untouched
        assert client.get(DAY).json()["totals"]["cash"] == 1000

    def test_report_html(self, client: TestClient):
        _pay(client, "UPI", 1250, reference="R-9")
        response = client.get(f"{DAY}/report", params={"format": "html"})
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert "R-9" in response.text
        assert "12.50" in response.text

    def test_report_pdf(self, client: TestClient):
        mock_wp = MagicMock()
        mock_wp.HTML.return_value.write_pdf.return_value = b"%PDF-1.4 fake"
        with patch.dict(sys.modules, {"weasyprint": mock_wp}):
            response = client.get(f"{DAY}/report")

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert "settlement_C1_2024-02-10.pdf" in response.headers["content-disposition"]
        assert response.content == b"%PDF-1.4 fake"


class TestAuditEntryEndpoints:
    def test_list_and_filter(self, client: TestClient, mock_enqueue):
        client.post(f"{DAY}/close", json={"actor": "manager"})
        line = _bill(client)
        client.post(
            f"/v1/billing/lines/{line['id']}/compensate",
            json={"actor": "admin", "reason": "duplicate"},
        )

        response = client.get("/v1/audit_entries/", params={"clinic_id": "C1"})
        assert response.status_code == 200
        assert [e["event"] for e in response.json()] == ["line_compensated", "close_rejected"]

        response = client.get(
            "/v1/audit_entries/", params={"clinic_id": "C1", "actor": "admin"}
        )
        assert len(response.json()) == 1

        response = client.get(
            "/v1/audit_entries/",
            params={
                "clinic_id": "C1",
                "resource_type": "invoice_line",
                "resource_id": line["id"],
            },
        )
        entries = response.json()
        assert len(entries) == 1
        assert entries[0]["reason"] == "duplicate"


class TestDatabase:
    def test_init_db(self):
        """Test init_db function creates tables idempotently."""
        from sqlalchemy import inspect

        from clinic_ledger.core.database import engine

        # Tables already exist from the fixture
        init_db()

        tables = inspect(engine).get_table_names()
        assert "settlement_records" in tables
        assert "audit_entries" in tables

    def test_sqlite_engine_enforces_foreign_keys(self):
        from sqlalchemy import text

        from clinic_ledger.core.database import build_engine

        sqlite_engine = build_engine("sqlite://")
        with sqlite_engine.connect() as conn:
            assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1
        sqlite_engine.dispose()
