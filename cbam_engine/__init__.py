# -*- coding: utf-8 -*-
"""
GL-CBAM-ENGINE: GreenLang CBAM Regulatory Calculation & Validation Engine
=========================================================================

Deterministic calculation and validation of Carbon Border Adjustment
Mechanism (CBAM) import declarations under Regulation (EU) 2023/956 and
its 2026 implementing acts. It supports:

- Benchmark resolution by CN code and production route with a
  versioned reference table set (20 goods categories, route fall-back,
  advisory route detection)
- Free-allocation phase-out, chargeable emissions and certificate
  counts in Decimal arithmetic, including multi-year projections
- Per-entry regulatory validation with article citations
- Peer-cohort materiality assessment (5% / 10% thresholds)
- Five-dimension data quality scoring
- EORI identifier validation with country patterns and the NL checksum
- Submission readiness for quarterly reports, composing all of the above
- SHA-256 provenance chain tracking for complete audit trails
- Prometheus metrics for observability
- FastAPI router and the ``gl-cbam`` command line

Key Components:
    - config: CBAMEngineConfig with GL_CBAM_ env prefix
    - reference_data: Immutable, versioned regulatory reference tables
    - benchmark_resolver: CN code and route to benchmark
    - free_allocation: Free allocation and certificate calculator
    - entry_validator: Entry-level regulatory validation
    - materiality_assessor: Peer deviation assessment
    - data_quality_scorer: Composite data quality scoring
    - eori_validator: EORI identifier validation
    - submission_readiness: Report-level readiness orchestration
    - provenance: SHA-256 chain-hashed audit trails
    - metrics: Prometheus metrics
    - setup: Service facade and FastAPI integration

Example:
    >>> from cbam_engine import CBAMEngineService
    >>> service = CBAMEngineService()
    >>> fa = service.calculate_free_allocation(1.37, 100, 2030)
    >>> cc = service.calculate_chargeable_emissions(120, fa.adjustment)
    >>> cc.certificates_required
    50

Author: GreenLang CBAM Team
Date: March 2026
Status: Production Ready
"""

# ---------------------------------------------------------------------------
# Engine metadata constants
# ---------------------------------------------------------------------------

ENGINE_ID = "GL-CBAM-ENGINE"
ENGINE_NAME = "CBAM Regulatory Calculation & Validation Engine"
ENGINE_VERSION = "1.0.0"

__version__ = ENGINE_VERSION
__engine_id__ = ENGINE_ID
__engine_name__ = ENGINE_NAME

# ---------------------------------------------------------------------------
# Configuration, errors, provenance, reference data
# ---------------------------------------------------------------------------
from cbam_engine.config import (
    CBAMEngineConfig,
    get_config,
    reset_config,
    set_config,
)
from cbam_engine.exceptions import (
    CBAMEngineError,
    ConfigurationError,
    InvalidInputError,
    ReferenceDataError,
)
from cbam_engine.metrics import PROMETHEUS_AVAILABLE
from cbam_engine.provenance import (
    ProvenanceTracker,
    compute_hash,
    get_provenance_tracker,
    reset_provenance_tracker,
)
from cbam_engine.reference_data import (
    Benchmark,
    ReferenceTables,
    get_reference_tables,
    reset_reference_tables,
    set_reference_tables,
)

# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------
from cbam_engine.models import (
    CalculationMethod,
    EmissionEntry,
    ErrorCategory,
    FunctionalUnit,
    GoodsCategory,
    GoodsFamily,
    MaterialityStatus,
    PrecursorEntry,
    QualityRating,
    Severity,
    SubmissionReadiness,
    SubmissionReport,
    ValidationIssue,
    VerificationStatus,
)

# ---------------------------------------------------------------------------
# Engines
# ---------------------------------------------------------------------------
from cbam_engine.benchmark_resolver import BenchmarkResolver
from cbam_engine.free_allocation import FreeAllocationCalculator
from cbam_engine.entry_validator import EntryValidator
from cbam_engine.materiality_assessor import MaterialityAssessor
from cbam_engine.data_quality_scorer import DataQualityScorer
from cbam_engine.eori_validator import EORIValidator
from cbam_engine.submission_readiness import SubmissionReadinessOrchestrator

# ---------------------------------------------------------------------------
# Service facade
# ---------------------------------------------------------------------------
from cbam_engine.setup import (
    CBAMEngineService,
    configure_cbam_engine,
    get_cbam_engine,
    get_router,
    get_service,
    reset_service,
)

__all__ = [
    # Metadata
    "ENGINE_ID",
    "ENGINE_NAME",
    "ENGINE_VERSION",
    "__version__",
    # Configuration
    "CBAMEngineConfig",
    "get_config",
    "set_config",
    "reset_config",
    # Errors
    "CBAMEngineError",
    "InvalidInputError",
    "ReferenceDataError",
    "ConfigurationError",
    # Provenance / metrics
    "ProvenanceTracker",
    "compute_hash",
    "get_provenance_tracker",
    "reset_provenance_tracker",
    "PROMETHEUS_AVAILABLE",
    # Reference data
    "Benchmark",
    "ReferenceTables",
    "get_reference_tables",
    "set_reference_tables",
    "reset_reference_tables",
    # Models
    "CalculationMethod",
    "EmissionEntry",
    "ErrorCategory",
    "FunctionalUnit",
    "GoodsCategory",
    "GoodsFamily",
    "MaterialityStatus",
    "PrecursorEntry",
    "QualityRating",
    "Severity",
    "SubmissionReadiness",
    "SubmissionReport",
    "ValidationIssue",
    "VerificationStatus",
    # Engines
    "BenchmarkResolver",
    "FreeAllocationCalculator",
    "EntryValidator",
    "MaterialityAssessor",
    "DataQualityScorer",
    "EORIValidator",
    "SubmissionReadinessOrchestrator",
    # Service
    "CBAMEngineService",
    "configure_cbam_engine",
    "get_cbam_engine",
    "get_router",
    "get_service",
    "reset_service",
]
