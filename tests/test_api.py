"""Tests for the CBAM engine REST API.

Author: GreenLang CBAM Team
Date: March 2026
Status: Production Ready
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from cbam_engine.setup import configure_cbam_engine

PREFIX = "/api/v1/cbam"


@pytest.fixture
def client():
    app = FastAPI()
    configure_cbam_engine(app)
    return TestClient(app)


class TestCalculationEndpoints:
    """Tests for benchmark and certificate endpoints."""

    def test_resolve_benchmark(self, client):
        """A known CN code resolves."""
        response = client.post(f"{PREFIX}/benchmarks/resolve", json={
            "cn_code": "72083900", "route": "bf_bof_route", "year": 2026,
        })

        assert response.status_code == 200
        body = response.json()
        assert body["value"] == 1.37
        assert body["error"] is None

    def test_unclassified_is_a_finding(self, client):
        """Domain failures are reported with status 200."""
        response = client.post(f"{PREFIX}/benchmarks/resolve", json={"cn_code": "99999999"})

        assert response.status_code == 200
        assert response.json()["error"] is not None

    def test_free_allocation(self, client):
        """Free allocation for 2030."""
        response = client.post(f"{PREFIX}/free-allocation", json={
            "benchmark_value": 1.37, "quantity": 100, "year": 2030,
        })

        assert response.status_code == 200
        assert response.json()["adjustment"] == 70.2125

    def test_chargeable(self, client):
        """Certificates round up."""
        response = client.post(f"{PREFIX}/chargeable-emissions", json={
            "total_embedded": 120, "free_allocation_adjustment": 70.2125,
        })

        assert response.status_code == 200
        assert response.json()["certificates_required"] == 50

    def test_projection(self, client):
        """The projection covers 2026 to 2034 by default."""
        response = client.post(f"{PREFIX}/phase-out/projection", json={
            "benchmark_value": 1.37, "quantity": 100, "total_embedded": 120,
        })

        assert response.status_code == 200
        assert len(response.json()["years"]) == 9

    def test_inverted_projection(self, client):
        """Engine input errors map to 400."""
        response = client.post(f"{PREFIX}/phase-out/projection", json={
            "benchmark_value": 1.37, "quantity": 100,
            "start_year": 2030, "end_year": 2028,
        })

        assert response.status_code == 400
        assert response.json()["detail"]["error_type"] == "InvalidInputError"

    def test_projection_end_year_bounded(self, client):
        """End years past the longest projection fail request validation."""
        response = client.post(f"{PREFIX}/phase-out/projection", json={
            "benchmark_value": 1.37, "quantity": 100, "end_year": 22026,
        })

        assert response.status_code == 422

    def test_projection_span_bounded(self, client):
        """An early start year cannot stretch the projection past its limit."""
        response = client.post(f"{PREFIX}/phase-out/projection", json={
            "benchmark_value": 1.37, "quantity": 100,
            "start_year": 1900, "end_year": 2034,
        })

        assert response.status_code == 400
        assert "end_year" in response.json()["detail"]["context"]["invalid_fields"]

    def test_request_schema(self, client):
        """Negative amounts fail request validation."""
        response = client.post(f"{PREFIX}/free-allocation", json={
            "benchmark_value": 1.37, "quantity": -1, "year": 2030,
        })

        assert response.status_code == 422


class TestValidationEndpoints:
    """Tests for entry, materiality, quality and EORI endpoints."""

    def test_validate_entry(self, client, valid_entry):
        """A single entry returns a ValidationResult."""
        response = client.post(f"{PREFIX}/entries/validate", json={
            "entry": valid_entry, "as_of": "2026-07-01",
        })

        assert response.status_code == 200
        body = response.json()
        assert body["valid"] is True
        assert body["entry_ref"] == "HRC-001"

    def test_validate_batch(self, client, valid_entry, make_entry):
        """A batch returns counts."""
        response = client.post(f"{PREFIX}/entries/validate", json={
            "entries": [valid_entry, make_entry(entry_id="HRC-002", cn_code="7208")],
        })

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 2
        assert body["valid_count"] == 1

    def test_unparseable_entry(self, client, valid_entry):
        """An entry that cannot be parsed is a 400."""
        response = client.post(f"{PREFIX}/entries/validate", json={
            "entry": dict(valid_entry, quantity="lots"),
        })

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["error_code"] == "GL_CBAM_INVALID_INPUT_ERROR"
        assert "quantity" in detail["context"]["invalid_fields"]

    def test_non_finite_entry(self, client, valid_entry):
        """A NaN quantity is an input error, not a valid entry."""
        response = client.post(f"{PREFIX}/entries/validate", json={
            "entry": dict(valid_entry, quantity="NaN"),
        })

        assert response.status_code == 400
        assert "quantity" in response.json()["detail"]["context"]["invalid_fields"]

    def test_materiality(self, client, make_entry):
        """Batch materiality flags high-risk codes."""
        response = client.post(f"{PREFIX}/materiality/assess", json={"entries": [
            make_entry(entry_id="A", direct_emissions_specific=1.0),
            make_entry(entry_id="B", direct_emissions_specific=1.5),
        ]})

        assert response.status_code == 200
        assert response.json()["high_risk_codes"] == ["72083900"]

    def test_data_quality(self, client, valid_entry):
        """A single entry returns a DataQualityScore."""
        response = client.post(f"{PREFIX}/data-quality/score", json={
            "entry": valid_entry, "as_of": "2026-07-01",
        })

        assert response.status_code == 200
        assert response.json()["rating"] == "excellent"

    def test_eori(self, client):
        """EORI validation returns the normalized identifier."""
        response = client.post(f"{PREFIX}/eori/validate", json={"identifier": "nl123456789"})

        assert response.status_code == 200
        body = response.json()
        assert body["valid"] is True
        assert body["normalized"] == "NL123456789"

    def test_eori_batch(self, client):
        """Batch EORI validation counts failures."""
        response = client.post(f"{PREFIX}/eori/validate-batch", json={
            "identifiers": ["NL123456789", "XX123"],
        })

        assert response.status_code == 200
        assert response.json()["invalid_count"] == 1


class TestSubmissionEndpoint:
    """Tests for the readiness endpoint."""

    def test_ready(self, client, valid_report, valid_entry):
        """A compliant report is ready."""
        response = client.post(f"{PREFIX}/submission/validate", json={
            "report": valid_report, "entries": [valid_entry], "as_of": "2026-07-01",
        })

        assert response.status_code == 200
        body = response.json()
        assert body["can_submit"] is True
        assert body["readiness_score"] == 100.0
        assert body["submission_deadline"] == "2026-07-31"

    def test_blocked(self, client, valid_report):
        """An empty report is blocked, not rejected."""
        response = client.post(f"{PREFIX}/submission/validate", json={
            "report": valid_report, "as_of": "2026-07-01",
        })

        assert response.status_code == 200
        assert response.json()["can_submit"] is False

    def test_bad_report(self, client, valid_report, valid_entry):
        """An unparseable report header is a 400."""
        response = client.post(f"{PREFIX}/submission/validate", json={
            "report": dict(valid_report, reporting_quarter="second"),
            "entries": [valid_entry],
        })

        assert response.status_code == 400

    def test_non_finite_entry(self, client, valid_report, valid_entry):
        """A non-finite intensity is rejected before readiness is judged."""
        response = client.post(f"{PREFIX}/submission/validate", json={
            "report": valid_report,
            "entries": [dict(valid_entry, direct_emissions_specific="Infinity")],
        })

        assert response.status_code == 400


class TestHealth:
    """Tests for GET /health."""

    def test_health(self, client):
        """The service reports healthy once configured."""
        response = client.get(f"{PREFIX}/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
