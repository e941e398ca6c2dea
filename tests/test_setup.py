"""Tests for the CBAMEngineService facade and FastAPI wiring.

Author: GreenLang CBAM Team
Date: March 2026
Status: Production Ready
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from cbam_engine.setup import (
    CBAMEngineService,
    configure_cbam_engine,
    get_cbam_engine,
    get_router,
    get_service,
    reset_service,
)


@pytest.fixture
def service(config, tracker, tables):
    svc = CBAMEngineService(config, tracker, tables)
    svc.startup()
    return svc


class TestService:
    """Tests for the facade."""

    def test_engines_share_provenance(self, service, tracker):
        """All engines record into the same chain."""
        assert service.resolver._provenance is tracker
        assert service.readiness._validator is service.validator
        assert service.readiness._calculator is service.calculator

    def test_calculate_entry(self, service, valid_entry):
        """Entry calculation goes through the shared calculator."""
        result = service.calculate_entry(valid_entry)

        assert result.chargeable.certificates_required == 67

    def test_default_year(self, service):
        """Benchmarks default to the configured reporting year."""
        result = service.resolve_benchmark("72083900", "bf_bof_route")

        assert result.year == 2026
        assert result.value == 1.370

    def test_submission(self, service, valid_report, valid_entry, as_of, tracker):
        """A submission check leaves an audit trail."""
        verdict = service.validate_for_submission(valid_report, [valid_entry], as_of=as_of)

        assert verdict.can_submit is True
        assert tracker.entry_count > 0
        assert tracker.verify_chain()[0] is True

    def test_stats(self, service, valid_entry, as_of):
        """Call counters track the work done."""
        service.validate_entry(valid_entry, today=as_of)
        service.validate_entries([valid_entry, valid_entry], today=as_of)
        service.validate_eori_batch(["NL123456789", "DE123"])
        service.project_phase_out(benchmark_value=1.37, quantity=100)

        stats = service.get_stats()

        assert stats["entries_validated"] == 3
        assert stats["eori_validations"] == 2
        assert stats["projections"] == 1
        assert stats["submission_checks"] == 0
        assert stats["provenance_entries"] > 0

    def test_health(self, service, tracker):
        """Health reports status and chain integrity."""
        health = service.health_check()

        assert health["status"] == "healthy"
        assert health["service"] == "cbam_engine"
        assert health["regulatory_version"] == "CBAM-2026-v1"
        assert health["provenance_chain_valid"] is True

    def test_health_before_startup(self, config, tracker, tables):
        """A service that has not started reports starting."""
        svc = CBAMEngineService(config, tracker, tables)

        assert svc.health_check()["status"] == "starting"
        svc.startup()
        svc.shutdown()
        assert svc.health_check()["status"] == "starting"


class TestSingleton:
    """Tests for the process-wide service."""

    def test_same_instance(self):
        """get_service returns one started instance."""
        first = get_service()

        assert get_service() is first
        assert first.health_check()["status"] == "healthy"

    def test_reset(self):
        """reset_service drops the instance."""
        first = get_service()
        reset_service()

        assert get_service() is not first


class TestFastAPIWiring:
    """Tests for configure_cbam_engine."""

    def test_configure(self, service):
        """The service is attached and the routes are mounted."""
        app = FastAPI()

        configured = configure_cbam_engine(app, service)

        assert configured is service
        assert get_cbam_engine(app) is service
        assert get_service() is service
        paths = app.openapi()["paths"]
        assert "/api/v1/cbam/health" in paths
        assert "/api/v1/cbam/submission/validate" in paths
        assert TestClient(app).get("/api/v1/cbam/health").status_code == 200

    def test_unconfigured_app(self):
        """An app without the engine returns None."""
        assert get_cbam_engine(FastAPI()) is None

    def test_router(self):
        """The router carries the API prefix."""
        assert get_router().prefix == "/api/v1/cbam"
