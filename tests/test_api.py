"""
Tests for the TaxWise API endpoints.

Tests cover:
- /api/calculate - Tax calculation
- /api/calculate/export - Calculation export
- /api/deductions/suggest - Deduction suggestions
- /api/reference/* - Rule table reference data
"""

import pytest
from fastapi.testclient import TestClient
import sys
import os

# Add backend to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))

from main import app
from tax_constants import RULES_2024


@pytest.fixture
def client():
    """Create a test client for the FastAPI app (runs the lifespan handler)."""
    with TestClient(app) as test_client:
        yield test_client


class TestHealthEndpoints:

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_health_reports_rule_table(self, client):
        data = client.get("/api/health").json()
        assert data["rule_table"]["version"] == RULES_2024.version
        assert data["rule_table"]["tax_year"] == 2024


class TestCalculateEndpoint:
    """Tests for /api/calculate endpoint."""

    def test_calculate_success(self, client):
        response = client.post(
            "/api/calculate",
            json={
                "gross_income": 75000,
                "filing_status": "single",
                "jurisdiction_code": "CA",
            }
        )

        assert response.status_code == 200
        data = response.json()
        assert data["taxable_income"] == 61150
        assert data["federal_tax"] == pytest.approx(8760.5)
        assert data["jurisdiction_tax"] == pytest.approx(61150 * 0.093)
        assert data["marginal_rate"] == pytest.approx(22)
        assert len(data["breakdown"]) == 3

    def test_calculate_accepts_client_filing_status_names(self, client):
        response = client.post(
            "/api/calculate",
            json={"gross_income": 120000, "filing_status": "marriedJoint", "jurisdiction_code": "NY"}
        )

        assert response.status_code == 200
        assert response.json()["filing_status"] == "married_filing_jointly"
        assert response.json()["deduction_amount"] == 27700

    def test_calculate_sums_deductible_documents(self, client):
        response = client.post(
            "/api/calculate",
            json={
                "gross_income": 150000,
                "filing_status": "single",
                "jurisdiction_code": "TX",
                "itemized_deductions": 5000,
                "deductions": [
                    {"amount": 9000, "category": "Business", "tax_deductible": True},
                    {"amount": 4000, "category": "Charity"},
                    {"amount": 7000, "category": "Personal", "tax_deductible": False},
                ]
            }
        )

        assert response.status_code == 200
        data = response.json()
        assert data["deduction_type"] == "itemized"
        assert data["deduction_amount"] == 18000
        assert data["taxable_income"] == 132000

    def test_calculate_negative_income_rejected(self, client):
        response = client.post(
            "/api/calculate",
            json={"gross_income": -100, "filing_status": "single", "jurisdiction_code": "CA"}
        )

        assert response.status_code == 400
        assert "gross_income" in response.json()["detail"]

    def test_calculate_negative_itemized_with_documents_rejected(self, client):
        """Document totals are added only after the entered amount is checked."""
        response = client.post(
            "/api/calculate",
            json={
                "gross_income": 100000,
                "filing_status": "single",
                "jurisdiction_code": "CA",
                "itemized_deductions": -100,
                "deductions": [{"amount": 20000, "category": "Charity"}]
            }
        )

        assert response.status_code == 400
        assert "itemized_deductions" in response.json()["detail"]

    def test_calculate_unknown_filing_status_rejected(self, client):
        response = client.post(
            "/api/calculate",
            json={"gross_income": 50000, "filing_status": "complicated"}
        )
        assert response.status_code == 400

    def test_calculate_missing_income_is_unprocessable(self, client):
        response = client.post("/api/calculate", json={"filing_status": "single"})
        assert response.status_code == 422

    def test_calculate_unknown_jurisdiction(self, client):
        response = client.post(
            "/api/calculate",
            json={"gross_income": 60000, "filing_status": "single", "jurisdiction_code": "ZZ"}
        )
        assert response.status_code == 200
        assert response.json()["jurisdiction_tax"] == 0

    def test_export(self, client):
        response = client.post(
            "/api/calculate/export",
            json={
                "gross_income": 90000,
                "filing_status": "head_of_household",
                "jurisdiction_code": "il",
                "deductions": [{"amount": 1000, "category": "Business"}]
            }
        )

        assert response.status_code == 200
        data = response.json()
        assert data["jurisdiction_code"] == "IL"
        assert data["total_deductible"] == 1000
        assert data["calculation"]["gross_income"] == 90000
        assert "export_date" in data


class TestSuggestEndpoint:
    """Tests for /api/deductions/suggest endpoint."""

    def test_suggest_consultant(self, client):
        response = client.post(
            "/api/deductions/suggest",
            json={"income": 20000, "occupation": "consultant"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["occupation"] == "consultant"
        assert [s["name"] for s in data["suggestions"]] == [
            "Professional Development", "Computer & Equipment"
        ]
        assert data["total_estimated"] == pytest.approx(800)

    def test_suggest_negative_income_rejected(self, client):
        response = client.post(
            "/api/deductions/suggest",
            json={"income": -5, "occupation": "tech"}
        )
        assert response.status_code == 400


class TestReferenceEndpoints:

    def test_brackets_for_status(self, client):
        response = client.get("/api/reference/brackets", params={"filing_status": "single"})

        assert response.status_code == 200
        data = response.json()
        assert data["standard_deduction"] == 13850
        assert data["brackets"][0] == {"lower_bound": 0, "upper_bound": 11000, "rate": 0.10}
        assert data["brackets"][-1]["upper_bound"] is None

    def test_brackets_invalid_status(self, client):
        response = client.get("/api/reference/brackets", params={"filing_status": "nope"})
        assert response.status_code == 400

    def test_all_brackets(self, client):
        data = client.get("/api/reference/brackets").json()
        assert set(data) == {
            "single", "married_filing_jointly", "married_filing_separately", "head_of_household"
        }

    def test_jurisdictions(self, client):
        data = client.get("/api/reference/jurisdictions").json()
        assert data["CA"] == 0.093
        assert "ZZ" not in data

    def test_jurisdictions_response_is_a_copy(self, client):
        client.get("/api/reference/jurisdictions").json()["CA"] = 0.5
        assert client.get("/api/reference/jurisdictions").json()["CA"] == 0.093


class TestConfiguredRuleTable:

    def test_rules_file_from_environment(self, tmp_path, monkeypatch):
        """TAX_RULES_FILE swaps in a versioned rule table at startup."""
        custom = RULES_2024.model_copy(update={"version": "2024.2-test"})
        path = tmp_path / "rules.json"
        path.write_text(custom.model_dump_json(), encoding="utf-8")
        monkeypatch.setenv("TAX_RULES_FILE", str(path))

        with TestClient(app) as client:
            data = client.get("/api/health").json()

        assert data["rule_table"]["version"] == "2024.2-test"
