# -*- coding: utf-8 -*-
"""
CBAM Engine Service Setup - GL-CBAM-ENGINE

Provides ``configure_cbam_engine(app)`` which wires up the CBAM engines
(benchmark resolver, free-allocation calculator, entry validator,
materiality assessor, data quality scorer, EORI validator, submission
readiness orchestrator) around one shared configuration, provenance
tracker and reference table set, and mounts the REST API.

Also exposes ``get_cbam_engine(app)`` for programmatic access,
``get_router()`` for obtaining the FastAPI APIRouter, and the
``CBAMEngineService`` facade class.

Usage:
    >>> from fastapi import FastAPI
    >>> from cbam_engine.setup import configure_cbam_engine
    >>> app = FastAPI()
    >>> configure_cbam_engine(app)

Author: GreenLang CBAM Team
Date: March 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import threading
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, Optional, Sequence

from cbam_engine.benchmark_resolver import BenchmarkResolver
from cbam_engine.config import CBAMEngineConfig, get_config
from cbam_engine.data_quality_scorer import DataQualityScorer
from cbam_engine.entry_validator import EntryInput, EntryValidator, coerce_entry
from cbam_engine.eori_validator import EORIValidator
from cbam_engine.free_allocation import FreeAllocationCalculator
from cbam_engine.materiality_assessor import MaterialityAssessor
from cbam_engine.metrics import PROMETHEUS_AVAILABLE
from cbam_engine.models import (
    BatchValidationResult,
    BenchmarkResult,
    ChargeableEmissionsResult,
    DataQualityBatchResult,
    DataQualityScore,
    EntryCalculation,
    EORIBatchResult,
    EORIResult,
    FreeAllocationResult,
    MaterialityAssessment,
    MaterialityBatchResult,
    PhaseOutProjection,
    SubmissionReadiness,
    ValidationResult,
)
from cbam_engine.provenance import ProvenanceTracker, get_provenance_tracker
from cbam_engine.reference_data import ReferenceTables, get_reference_tables
from cbam_engine.submission_readiness import ReportInput, SubmissionReadinessOrchestrator

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(timezone.utc).replace(microsecond=0)


# ===================================================================
# CBAMEngineService facade
# ===================================================================


class CBAMEngineService:
    """Facade over the CBAM calculation and validation engines.

    All engines share one configuration, one provenance chain and one
    reference table set, so a single report evaluation produces a single
    audit trail.

    Attributes:
        config: CBAMEngineConfig in effect.
        provenance: Shared ProvenanceTracker.
        reference: Shared ReferenceTables.
        resolver: BenchmarkResolver.
        calculator: FreeAllocationCalculator.
        validator: EntryValidator.
        materiality: MaterialityAssessor.
        quality: DataQualityScorer.
        eori: EORIValidator.
        readiness: SubmissionReadinessOrchestrator.
    """

    def __init__(
        self,
        config: Optional[CBAMEngineConfig] = None,
        provenance: Optional[ProvenanceTracker] = None,
        reference: Optional[ReferenceTables] = None,
    ) -> None:
        """Initialize CBAMEngineService.

        Args:
            config: Optional configuration; defaults to ``get_config()``.
            provenance: Optional tracker; defaults to the process tracker.
            reference: Optional reference tables; defaults to the process set.
        """
        self.config = config or get_config()
        self.provenance = provenance or get_provenance_tracker()
        self.reference = reference or get_reference_tables()

        shared = (self.config, self.provenance)
        self.resolver = BenchmarkResolver(*shared, self.reference)
        self.calculator = FreeAllocationCalculator(
            *shared, self.reference, resolver=self.resolver,
        )
        self.validator = EntryValidator(*shared, self.reference)
        self.materiality = MaterialityAssessor(*shared)
        self.quality = DataQualityScorer(*shared)
        self.eori = EORIValidator(*shared, self.reference)
        self.readiness = SubmissionReadinessOrchestrator(
            *shared,
            self.reference,
            validator=self.validator,
            materiality=self.materiality,
            quality=self.quality,
            eori=self.eori,
            calculator=self.calculator,
        )

        self._stats: Dict[str, int] = {
            "benchmarks_resolved": 0,
            "allocations_calculated": 0,
            "projections": 0,
            "entries_validated": 0,
            "materiality_assessments": 0,
            "quality_scores": 0,
            "eori_validations": 0,
            "submission_checks": 0,
        }
        self._lock = threading.Lock()
        self._started = False
        logger.info(
            "CBAMEngineService created: regulatory_version=%s, reference=%s",
            self.config.regulatory_version, self.reference.version,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def startup(self) -> None:
        """Mark the service as ready."""
        self._started = True
        logger.info("CBAMEngineService started")

    def shutdown(self) -> None:
        """Mark the service as stopped."""
        self._started = False
        logger.info("CBAMEngineService shutdown")

    def _count(self, key: str, amount: int = 1) -> None:
        with self._lock:
            self._stats[key] += amount

    # ------------------------------------------------------------------
    # Calculation
    # ------------------------------------------------------------------

    def resolve_benchmark(
        self,
        cn_code: Optional[str],
        route: Optional[str] = None,
        year: Optional[int] = None,
        country_of_origin: Optional[str] = None,
    ) -> BenchmarkResult:
        """Resolve the benchmark for a CN code and route."""
        self._count("benchmarks_resolved")
        return self.resolver.resolve_benchmark(
            cn_code, route,
            year or self.config.default_reporting_year,
            country_of_origin,
        )

    def calculate_free_allocation(
        self, benchmark_value: float, quantity: float, year: int,
    ) -> FreeAllocationResult:
        """Free allocation for benchmark, quantity and year."""
        self._count("allocations_calculated")
        return self.calculator.calculate_free_allocation(benchmark_value, quantity, year)

    def calculate_chargeable_emissions(
        self,
        total_embedded: float,
        free_allocation_adjustment: float,
        foreign_carbon_price_deduction: float = 0.0,
    ) -> ChargeableEmissionsResult:
        """Chargeable emissions and certificates."""
        return self.calculator.calculate_chargeable_emissions(
            total_embedded, free_allocation_adjustment, foreign_carbon_price_deduction,
        )

    def calculate_entry(self, entry: EntryInput) -> EntryCalculation:
        """Full certificate calculation for one entry."""
        self._count("allocations_calculated")
        return self.calculator.calculate_entry(coerce_entry(entry))

    def project_phase_out(self, **kwargs: Any) -> PhaseOutProjection:
        """Per-year certificate projection; see FreeAllocationCalculator."""
        self._count("projections")
        return self.calculator.project_phase_out(**kwargs)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_entry(
        self, entry: EntryInput, today: Optional[date] = None,
    ) -> ValidationResult:
        """Validate one entry."""
        self._count("entries_validated")
        return self.validator.validate_entry(entry, today=today)

    def validate_entries(
        self, entries: Sequence[EntryInput], today: Optional[date] = None,
    ) -> BatchValidationResult:
        """Validate a batch of entries."""
        self._count("entries_validated", len(entries))
        return self.validator.validate_batch(entries, today=today)

    def assess_materiality(
        self, entry: EntryInput, peers: Sequence[EntryInput],
    ) -> MaterialityAssessment:
        """Assess one entry against its peers."""
        self._count("materiality_assessments")
        return self.materiality.assess_materiality(entry, peers)

    def assess_materiality_batch(
        self, entries: Sequence[EntryInput],
    ) -> MaterialityBatchResult:
        """Assess every entry of a batch against the rest."""
        self._count("materiality_assessments", len(entries))
        return self.materiality.assess_batch(entries)

    def score_data_quality(
        self, entry: EntryInput, as_of: Optional[date] = None,
    ) -> DataQualityScore:
        """Score one entry."""
        self._count("quality_scores")
        return self.quality.score_data_quality(entry, as_of=as_of)

    def score_data_quality_batch(
        self, entries: Sequence[EntryInput], as_of: Optional[date] = None,
    ) -> DataQualityBatchResult:
        """Score a batch of entries."""
        self._count("quality_scores", len(entries))
        return self.quality.score_batch(entries, as_of=as_of)

    def validate_eori(
        self,
        identifier: Optional[str],
        expected_member_state: Optional[str] = None,
    ) -> EORIResult:
        """Validate one EORI identifier."""
        self._count("eori_validations")
        return self.eori.validate_eori(identifier, expected_member_state)

    def validate_eori_batch(
        self,
        identifiers: Iterable[Optional[str]],
        expected_member_state: Optional[str] = None,
    ) -> EORIBatchResult:
        """Validate many EORI identifiers."""
        batch = self.eori.validate_batch(identifiers, expected_member_state)
        self._count("eori_validations", batch.total)
        return batch

    def validate_for_submission(
        self,
        report: ReportInput,
        entries: Sequence[EntryInput],
        as_of: Optional[date] = None,
    ) -> SubmissionReadiness:
        """Readiness verdict for a quarterly report."""
        self._count("submission_checks")
        return self.readiness.validate_for_submission(report, entries, as_of=as_of)

    # ------------------------------------------------------------------
    # Health & Statistics
    # ------------------------------------------------------------------

    def health_check(self) -> Dict[str, Any]:
        """Return service health status.

        Returns:
            Dictionary with service status, reference data version and
            provenance chain integrity.
        """
        return {
            "status": "healthy" if self._started else "starting",
            "service": "cbam_engine",
            "regulatory_version": self.config.regulatory_version,
            "reference_version": self.reference.version,
            "prometheus": PROMETHEUS_AVAILABLE,
            "provenance_entries": self.provenance.entry_count,
            "provenance_chain_valid": self.provenance.verify_chain()[0],
            "timestamp": _utcnow().isoformat(),
        }

    def get_stats(self) -> Dict[str, Any]:
        """Return aggregate call counters."""
        with self._lock:
            stats = dict(self._stats)
        stats["provenance_entries"] = self.provenance.entry_count
        stats["timestamp"] = _utcnow().isoformat()
        return stats


# ---------------------------------------------------------------------------
# Thread-safe singleton
# ---------------------------------------------------------------------------

_service_instance: Optional[CBAMEngineService] = None
_service_lock = threading.Lock()


def get_service() -> CBAMEngineService:
    """Return the singleton CBAMEngineService.

    Thread-safe lazy initialization. Returns the same instance on every
    call within the process.
    """
    global _service_instance
    if _service_instance is None:
        with _service_lock:
            if _service_instance is None:
                _service_instance = CBAMEngineService()
                _service_instance.startup()
    return _service_instance


def reset_service() -> None:
    """Drop the singleton so the next ``get_service()`` builds a new one."""
    global _service_instance
    with _service_lock:
        _service_instance = None


# ---------------------------------------------------------------------------
# FastAPI integration
# ---------------------------------------------------------------------------


def configure_cbam_engine(
    app: Any,
    service: Optional[CBAMEngineService] = None,
) -> CBAMEngineService:
    """Configure the CBAM engine service on a FastAPI app.

    Attaches the service to ``app.state.cbam_engine_service`` and includes
    the router.

    Args:
        app: FastAPI application instance.
        service: Optional pre-built service; defaults to the singleton.

    Returns:
        The configured CBAMEngineService.
    """
    global _service_instance
    if service is None:
        service = get_service()
    else:
        with _service_lock:
            _service_instance = service
        service.startup()
    app.state.cbam_engine_service = service

    router = get_router()
    if router is not None:
        app.include_router(router)
    else:
        logger.warning("CBAM router not available; skipping route registration")

    logger.info("CBAM engine service configured on app")
    return service


def get_cbam_engine(app: Any) -> Optional[CBAMEngineService]:
    """Retrieve the CBAM engine service from a FastAPI app.

    Returns:
        CBAMEngineService or None if not configured.
    """
    return getattr(app.state, "cbam_engine_service", None)


def get_router() -> Any:
    """Return the FastAPI APIRouter for the CBAM engine service.

    Returns:
        FastAPI APIRouter instance or None if FastAPI is not available.
    """
    try:
        from cbam_engine.api.router import router
        return router
    except ImportError:
        return None


__all__ = [
    "CBAMEngineService",
    "configure_cbam_engine",
    "get_cbam_engine",
    "get_router",
    "get_service",
    "reset_service",
]
