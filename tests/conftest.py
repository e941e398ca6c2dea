# -*- coding: utf-8 -*-
"""Pytest configuration and shared fixtures for the CBAM engine tests."""

import copy
from datetime import date
from typing import Any, Dict

import pytest

from cbam_engine.config import CBAMEngineConfig, reset_config, set_config
from cbam_engine.provenance import ProvenanceTracker, reset_provenance_tracker
from cbam_engine.reference_data import ReferenceTables, reset_reference_tables
from cbam_engine.setup import reset_service


AS_OF = date(2026, 7, 1)


@pytest.fixture(autouse=True)
def _isolated_engine():
    """Give every test a fresh config, provenance chain and table set."""
    reset_service()
    reset_provenance_tracker()
    reset_reference_tables()
    set_config(CBAMEngineConfig())
    yield
    reset_service()
    reset_provenance_tracker()
    reset_reference_tables()
    reset_config()


@pytest.fixture
def as_of() -> date:
    """Fixed evaluation date inside Q3 2026."""
    return AS_OF


@pytest.fixture
def config() -> CBAMEngineConfig:
    return CBAMEngineConfig()


@pytest.fixture
def tracker() -> ProvenanceTracker:
    return ProvenanceTracker()


@pytest.fixture(scope="session")
def tables() -> ReferenceTables:
    """Built-in reference tables."""
    return ReferenceTables.builtin()


_VALID_ENTRY: Dict[str, Any] = {
    "entry_id": "HRC-001",
    "cn_code": "72083900",
    "product_description": "Hot rolled coil, blast furnace route",
    "country_of_origin": "CN",
    "quantity": 100.0,
    "functional_unit": "tonnes",
    "direct_emissions_specific": 1.8,
    "indirect_emissions_specific": 0.2,
    "total_embedded_emissions": 180.0,
    "calculation_method": "EU_method",
    "installation_id": "CN-INST-0042",
    "monitoring_plan_id": "MP-2026-0042",
    "operator_report_id": "OR-2026-0042",
    "verification_status": "accredited_verifier_satisfactory",
    "reporting_period_year": 2026,
    "production_year": 2026,
    "production_route": "bf_bof_route",
    "declarant_eori": "NL123456789012",
    "customs_declaration_reference": "26NL000000012345",
    "document_language": "en",
    "carbon_price_paid": 12.5,
    "carbon_price_certificate": "CN-ETS-2026-7781",
    "import_date": "2026-05-15",
}


@pytest.fixture
def valid_entry() -> Dict[str, Any]:
    """An entry with no findings at all as of 2026-07-01."""
    return copy.deepcopy(_VALID_ENTRY)


@pytest.fixture
def make_entry():
    """Factory returning a copy of the valid entry with overrides applied.

    An override value of ``None`` removes the field.
    """
    def _make(**overrides: Any) -> Dict[str, Any]:
        entry = copy.deepcopy(_VALID_ENTRY)
        for key, value in overrides.items():
            if value is None:
                entry.pop(key, None)
            else:
                entry[key] = value
        return entry

    return _make


@pytest.fixture
def valid_report() -> Dict[str, Any]:
    """Q2 2026 report header; 67 certificates cover the valid entry."""
    return {
        "report_id": "RPT-2026-Q2",
        "reporting_year": 2026,
        "reporting_quarter": 2,
        "declarant_eori": "NL123456789012",
        "declarant_name": "Rotterdam Steel Imports B.V.",
        "member_state": "NL",
        "certificates_surrendered": 67,
    }
