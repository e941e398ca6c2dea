# -*- coding: utf-8 -*-
"""
CBAM Engine REST API Router - GL-CBAM-ENGINE

FastAPI APIRouter with the CBAM calculation and validation endpoints at
prefix ``/api/v1/cbam``:

    POST /benchmarks/resolve        Resolve a benchmark for a CN code
    POST /free-allocation           Free allocation for one year
    POST /chargeable-emissions      Chargeable emissions and certificates
    POST /phase-out/projection      Per-year certificate projection
    POST /entries/validate          Validate one or many entries
    POST /materiality/assess        Batch materiality assessment
    POST /data-quality/score        Score one or many entries
    POST /eori/validate             Validate one EORI number
    POST /eori/validate-batch       Validate many EORI numbers
    POST /submission/validate       Submission readiness verdict
    GET  /health                    Service health

Domain findings are returned in the response body with status 200.
Malformed request shapes are rejected with 400.

Author: GreenLang CBAM Team
Date: March 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from cbam_engine.exceptions import CBAMEngineError
from cbam_engine.free_allocation import MAX_PROJECTION_YEARS
from cbam_engine.models import (
    CBAM_START_YEAR,
    BatchValidationResult,
    BenchmarkResult,
    ChargeableEmissionsResult,
    DataQualityBatchResult,
    DataQualityScore,
    EORIBatchResult,
    EORIResult,
    FreeAllocationResult,
    MaterialityBatchResult,
    PhaseOutProjection,
    SubmissionReadiness,
    ValidationResult,
)

logger = logging.getLogger(__name__)

_LAST_PROJECTION_YEAR = CBAM_START_YEAR + MAX_PROJECTION_YEARS - 1


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class BenchmarkRequest(BaseModel):
    """Body of POST /benchmarks/resolve."""

    cn_code: Optional[str] = Field(None)
    route: Optional[str] = Field(None)
    year: Optional[int] = Field(None)
    country_of_origin: Optional[str] = Field(None)


class FreeAllocationRequest(BaseModel):
    """Body of POST /free-allocation."""

    benchmark_value: float = Field(..., ge=0.0)
    quantity: float = Field(..., ge=0.0)
    year: int


class ChargeableRequest(BaseModel):
    """Body of POST /chargeable-emissions."""

    total_embedded: float = Field(..., ge=0.0)
    free_allocation_adjustment: float = Field(0.0, ge=0.0)
    foreign_carbon_price_deduction: float = Field(0.0, ge=0.0)


class ProjectionRequest(BaseModel):
    """Body of POST /phase-out/projection."""

    benchmark_value: float = Field(..., ge=0.0)
    quantity: float = Field(..., ge=0.0)
    start_year: int = Field(CBAM_START_YEAR)
    end_year: int = Field(2034, le=_LAST_PROJECTION_YEAR)
    total_embedded: Optional[float] = Field(None, ge=0.0)
    certificate_price: Optional[float] = Field(None, ge=0.0)


class EntriesRequest(BaseModel):
    """Body carrying one entry or a batch of entries."""

    entry: Optional[Dict[str, Any]] = Field(None)
    entries: List[Dict[str, Any]] = Field(default_factory=list)
    as_of: Optional[date] = Field(None)


class EORIRequest(BaseModel):
    """Body of POST /eori/validate."""

    identifier: Optional[str] = Field(None)
    expected_member_state: Optional[str] = Field(None)


class EORIBatchRequest(BaseModel):
    """Body of POST /eori/validate-batch."""

    identifiers: List[Optional[str]] = Field(default_factory=list)
    expected_member_state: Optional[str] = Field(None)


class SubmissionRequest(BaseModel):
    """Body of POST /submission/validate."""

    report: Dict[str, Any]
    entries: List[Dict[str, Any]] = Field(default_factory=list)
    as_of: Optional[date] = Field(None)


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------

router = APIRouter(prefix="/api/v1/cbam", tags=["cbam"])


def _svc() -> Any:
    """Get the singleton service for route handlers."""
    from cbam_engine.setup import get_service

    return get_service()


def _bad_request(exc: CBAMEngineError) -> HTTPException:
    logger.warning("Rejected CBAM request: %s", exc)
    return HTTPException(status_code=400, detail=exc.to_dict())


@router.post("/benchmarks/resolve", response_model=BenchmarkResult)
async def post_resolve_benchmark(request: BenchmarkRequest) -> BenchmarkResult:
    """Resolve the benchmark for a CN code, route and year."""
    return _svc().resolve_benchmark(
        request.cn_code, request.route, request.year, request.country_of_origin,
    )


@router.post("/free-allocation", response_model=FreeAllocationResult)
async def post_free_allocation(request: FreeAllocationRequest) -> FreeAllocationResult:
    """Calculate free allocation for one year."""
    try:
        return _svc().calculate_free_allocation(
            request.benchmark_value, request.quantity, request.year,
        )
    except CBAMEngineError as exc:
        raise _bad_request(exc)


@router.post("/chargeable-emissions", response_model=ChargeableEmissionsResult)
async def post_chargeable_emissions(
    request: ChargeableRequest,
) -> ChargeableEmissionsResult:
    """Derive chargeable emissions and certificates required."""
    try:
        return _svc().calculate_chargeable_emissions(
            request.total_embedded,
            request.free_allocation_adjustment,
            request.foreign_carbon_price_deduction,
        )
    except CBAMEngineError as exc:
        raise _bad_request(exc)


@router.post("/phase-out/projection", response_model=PhaseOutProjection)
async def post_phase_out_projection(request: ProjectionRequest) -> PhaseOutProjection:
    """Project certificates per year over the phase-out period."""
    try:
        return _svc().project_phase_out(**request.model_dump())
    except CBAMEngineError as exc:
        raise _bad_request(exc)


@router.post(
    "/entries/validate",
    response_model=Union[ValidationResult, BatchValidationResult],
)
async def post_validate_entries(
    request: EntriesRequest,
) -> Union[ValidationResult, BatchValidationResult]:
    """Validate ``entry`` or, when absent, the ``entries`` batch."""
    try:
        if request.entry is not None:
            return _svc().validate_entry(request.entry, today=request.as_of)
        return _svc().validate_entries(request.entries, today=request.as_of)
    except CBAMEngineError as exc:
        raise _bad_request(exc)


@router.post("/materiality/assess", response_model=MaterialityBatchResult)
async def post_assess_materiality(request: EntriesRequest) -> MaterialityBatchResult:
    """Assess every entry of the batch against the rest of the batch."""
    try:
        return _svc().assess_materiality_batch(request.entries)
    except CBAMEngineError as exc:
        raise _bad_request(exc)


@router.post(
    "/data-quality/score",
    response_model=Union[DataQualityScore, DataQualityBatchResult],
)
async def post_score_data_quality(
    request: EntriesRequest,
) -> Union[DataQualityScore, DataQualityBatchResult]:
    """Score ``entry`` or, when absent, the ``entries`` batch."""
    try:
        if request.entry is not None:
            return _svc().score_data_quality(request.entry, as_of=request.as_of)
        return _svc().score_data_quality_batch(request.entries, as_of=request.as_of)
    except CBAMEngineError as exc:
        raise _bad_request(exc)


@router.post("/eori/validate", response_model=EORIResult)
async def post_validate_eori(request: EORIRequest) -> EORIResult:
    """Validate one EORI number."""
    return _svc().validate_eori(request.identifier, request.expected_member_state)


@router.post("/eori/validate-batch", response_model=EORIBatchResult)
async def post_validate_eori_batch(request: EORIBatchRequest) -> EORIBatchResult:
    """Validate many EORI numbers."""
    return _svc().validate_eori_batch(request.identifiers, request.expected_member_state)


@router.post("/submission/validate", response_model=SubmissionReadiness)
async def post_validate_submission(request: SubmissionRequest) -> SubmissionReadiness:
    """Decide whether a quarterly report can be submitted."""
    try:
        return _svc().validate_for_submission(
            request.report, request.entries, as_of=request.as_of,
        )
    except CBAMEngineError as exc:
        raise _bad_request(exc)


@router.get("/health")
async def get_health_check() -> Dict[str, Any]:
    """Service health."""
    return _svc().health_check()


__all__ = [
    "router",
    "BenchmarkRequest",
    "FreeAllocationRequest",
    "ChargeableRequest",
    "ProjectionRequest",
    "EntriesRequest",
    "EORIRequest",
    "EORIBatchRequest",
    "SubmissionRequest",
]
