"""
API Tests for the Calculations Router

Exercises the HTTP layer end to end with FastAPI's TestClient: request
parsing, 422 responses for rejected input, and result serialization.

Run with: pytest tests/test_calculations_api.py -v
"""

import pytest
from fastapi.testclient import TestClient

from server import app


@pytest.fixture(scope="module")
def client():
    with TestClient(app) as test_client:
        yield test_client


def truck(**overrides) -> dict:
    data = {
        "id": "TRK-001",
        "purchase_cost": 120000,
        "salvage_value": 12000,
        "book_value": 120000,
        "accumulated_depreciation": 0,
        "useful_life_months": 60,
        "depreciation_method": "straight_line",
    }
    data.update(overrides)
    return data


class TestHealthAndStatus:
    """Test service endpoints."""

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_request_id_is_echoed(self, client):
        response = client.get("/api/", headers={"X-Request-ID": "req-test-1"})
        assert response.headers["X-Request-ID"] == "req-test-1"

    def test_status(self, client):
        data = client.get("/api/calculations/status").json()

        assert set(data["modules"]) == {"depreciation", "customs_fees", "reports", "engineering"}
        assert data["modules"]["engineering"]["axle_limits_tons"] == {"single": 8.0, "tandem": 14.0, "tridem": 21.0}
        assert data["modules"]["reports"]["slow_payer_threshold_days"] == 45


class TestDepreciationEndpoints:
    """Test depreciation endpoints."""

    def test_calculate(self, client):
        response = client.post("/api/calculations/depreciation/calculate", json=truck())

        assert response.status_code == 200
        data = response.json()
        assert data["depreciation_amount"] == 1800.0
        assert data["new_book_value"] == 118200.0
        assert data["is_fully_depreciated"] is False

    def test_calculate_rejects_invalid_asset(self, client):
        response = client.post(
            "/api/calculations/depreciation/calculate",
            json=truck(purchase_cost=100, salvage_value=200, book_value=150),
        )

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["error"] == "validation_error"
        assert detail["parameter"] == "salvage_value"
        assert detail["message"] == "Salvage value cannot exceed purchase cost"

    def test_run(self, client):
        response = client.post("/api/calculations/depreciation/run", json={
            "period_date": "2025-01-15",
            "assets": [truck(), truck(id="TRK-002", book_value=12000)],
        })

        assert response.status_code == 200
        data = response.json()
        assert data["period_date"] == "2025-01-01"
        assert data["processed_count"] == 1
        assert data["skipped"] == [{"asset_id": "TRK-002", "reason": "Fully depreciated"}]

    def test_run_rejects_bad_period(self, client):
        response = client.post("/api/calculations/depreciation/run", json={"period_date": "15/01/2025"})

        assert response.status_code == 422
        assert response.json()["detail"]["error"] == "invalid_parameter"


class TestCustomsEndpoints:
    """Test fee and container endpoints."""

    def test_validate_fee_defaults_currency(self, client):
        response = client.post("/api/calculations/fees/validate", json={
            "document_type": "pib",
            "pib_id": "pib-1",
            "fee_type_id": "ft-duty",
            "amount": 1500000,
        })

        assert response.status_code == 200
        assert response.json()["fee"]["currency"] == "IDR"

    def test_validate_fee_lists_every_error(self, client):
        response = client.post("/api/calculations/fees/validate", json={"document_type": "pib"})

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["message"] == "PIB document is required"
        messages = [e["message"] for e in detail["details"]["errors"]]
        assert "Fee type is required" in messages
        assert "Amount is required" in messages

    def test_paid_fee_requires_payment_date(self, client):
        response = client.post("/api/calculations/fees/validate", json={
            "document_type": "peb",
            "peb_id": "peb-1",
            "fee_type_id": "ft-service",
            "amount": 250000,
            "payment_status": "paid",
        })

        assert response.status_code == 422
        assert response.json()["detail"]["parameter"] == "payment_date"

    def test_fee_summary(self, client):
        response = client.post("/api/calculations/fees/summary", json={
            "fees": [
                {"id": "1", "fee_category": "duty", "amount": 100.5, "payment_status": "paid", "created_at": "2024-01-10"},
                {"id": "2", "fee_category": "storage", "amount": 50, "payment_status": "pending", "created_at": "2024-02-10"},
            ],
            "filters": {"date_from": "2024-01-01", "date_to": "2024-01-31"},
        })

        assert response.status_code == 200
        data = response.json()
        assert data["fee_count"] == 1
        assert data["by_category"]["duty"] == 100.5
        assert data["by_category"]["storage"] == 0
        assert data["statistics"]["paid_amount"] == 100.5

    def test_container_storage(self, client):
        response = client.post("/api/calculations/containers/storage", json={
            "container_number": "MSKU1234567",
            "arrival_date": "2024-01-01",
            "free_time_days": 7,
            "gate_out_date": "2024-01-12",
            "daily_rate": 150000,
            "as_of_date": "2024-01-07",
        })

        assert response.status_code == 200
        assert response.json() == {
            "free_time_end": "2024-01-08",
            "storage_days": 4,
            "total_storage_fee": 600000.0,
            "free_time_status": "warning",
        }

    def test_container_storage_requires_free_time(self, client):
        response = client.post("/api/calculations/containers/storage", json={"container_number": "MSKU1234567"})

        assert response.status_code == 422
        assert response.json()["detail"]["message"] == "Free time days is required"

    def test_container_summary(self, client):
        response = client.post("/api/calculations/containers/summary", json={
            "containers": [
                {"id": "1", "container_number": "A", "arrival_date": "2024-01-01", "free_time_days": 3, "status": "at_port"},
            ],
            "as_of_date": "2024-01-10",
        })

        assert response.status_code == 200
        assert response.json()["past_free_time"] == 1

    def test_summaries_tolerate_malformed_record_dates(self, client):
        fees = client.post("/api/calculations/fees/summary", json={
            "fees": [
                {"id": "1", "fee_category": "duty", "amount": 100, "created_at": "2024-01-10"},
                {"id": "2", "fee_category": "duty", "amount": 50, "created_at": "10/01/2024"},
            ],
            "filters": {"date_from": "2024-01-01"},
        })
        assert fees.status_code == 200
        assert fees.json()["fee_count"] == 1

        containers = client.post("/api/calculations/containers/summary", json={
            "containers": [
                {"id": "1", "container_number": "A", "arrival_date": "2024/01/01", "free_time_days": 3},
            ],
            "as_of_date": "2024-01-10",
        })
        assert containers.status_code == 200
        assert containers.json()["total_containers"] == 1
        assert containers.json()["past_free_time"] == 0


class TestReportEndpoints:
    """Test report endpoints."""

    def test_quotation_conversion(self, client):
        response = client.post("/api/calculations/reports/quotation-conversion", json={
            "records": [
                {"id": "1", "status": "approved", "converted_to_jo": True},
                {"id": "2", "status": "draft"},
            ],
        })

        data = response.json()
        assert data["totals"]["overall_conversion_rate"] == 50.0
        assert len(data["status_counts"]) == 5

    def test_customer_payments(self, client):
        response = client.post("/api/calculations/reports/customer-payments", json={
            "payments": [
                {"customer_id": "c1", "customer_name": "PT Maju", "invoice_amount": 1000, "paid_amount": 400, "days_to_pay": 46},
            ],
        })

        data = response.json()
        assert data["items"][0]["outstanding_balance"] == 600.0
        assert data["items"][0]["is_slow_payer"] is True
        assert data["totals"]["slow_payer_count"] == 1

    def test_ar_aging(self, client):
        response = client.post("/api/calculations/reports/ar-aging", json={
            "invoices": [{"id": "1", "invoice_number": "INV-1", "due_date": "2024-05-01", "total_amount": 300}],
            "as_of_date": "2024-06-30",
        })

        data = response.json()
        assert data["details"][0]["bucket"] == "31-60 Days"
        assert data["details"][0]["severity"] == "warning"

    def test_catalogue(self, client):
        response = client.post("/api/calculations/reports/catalogue", json={
            "reports": [
                {"id": "b", "report_name": "Profit Loss", "allowed_roles": ["finance"], "display_order": 2},
                {"id": "a", "report_name": "AR Aging", "allowed_roles": ["finance"], "display_order": 1},
                {"id": "c", "report_name": "JO Summary", "allowed_roles": ["ops"], "display_order": 0},
            ],
            "role": "finance",
        })

        assert [r["id"] for r in response.json()["reports"]] == ["a", "b"]


class TestEngineeringEndpoints:
    """Test engineering endpoints."""

    def test_lifting_plan(self, client):
        response = client.post("/api/calculations/engineering/lifting-plan", json={
            "assessment_id": "TA-001",
            "load_weight_tons": 40,
            "rigging_weight_tons": 2,
            "crane_capacity_at_radius_tons": 50,
        })

        data = response.json()
        assert data["utilization_pct"] == 84.0
        assert data["is_safe"] is False

    def test_lifting_plan_requires_assessment(self, client):
        response = client.post("/api/calculations/engineering/lifting-plan", json={"load_weight_tons": 10})

        assert response.status_code == 422
        assert response.json()["detail"]["parameter"] == "assessment_id"

    def test_axle_loads(self, client):
        response = client.post("/api/calculations/engineering/axle-loads", json={
            "assessment_id": "TA-001",
            "cargo_weight_tons": 60,
            "trailer_tare_weight_tons": 10,
            "prime_mover_weight_tons": 9,
            "trailer_axle_count": 2,
            "prime_mover_axle_count": 3,
        })

        data = response.json()
        assert data["permit_required"] is True
        assert data["within_legal_limits"] is False
        assert len(data["axle_loads"]) == 5

    def test_assessment_transition(self, client):
        ok = client.post("/api/calculations/engineering/assessment-transition",
                         json={"current_status": "pending_review", "target_status": "approved"})
        assert ok.status_code == 200

        rejected = client.post("/api/calculations/engineering/assessment-transition",
                               json={"current_status": "draft", "target_status": "approved"})
        assert rejected.status_code == 422
        assert rejected.json()["detail"]["message"] == "Cannot transition from draft to approved"

    def test_assessment_list(self, client):
        response = client.post("/api/calculations/engineering/assessments", json={
            "assessments": [
                {"id": "1", "assessment_number": "TA-1", "title": "Lift", "status": "approved", "created_at": "2024-01-10"},
                {"id": "2", "assessment_number": "TA-2", "title": "Route", "status": "draft", "created_at": "2024-02-10"},
                {"id": "3", "assessment_number": "TA-3", "title": "Old", "status": "draft", "created_at": "10/01/2024"},
            ],
            "filters": {"date_from": "2024-01-01"},
        })

        assert response.status_code == 200
        data = response.json()
        assert [a["id"] for a in data["assessments"]] == ["2", "1"]
        assert data["status_counts"]["draft"] == 1
        assert data["status_counts"]["total"] == 2

    def test_assessment_list_rejects_sort_field(self, client):
        response = client.post("/api/calculations/engineering/assessments", json={"sort_by": "customer_id"})

        assert response.status_code == 422
        assert response.json()["detail"]["parameter"] == "sort_by"
