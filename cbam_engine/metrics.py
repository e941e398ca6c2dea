# -*- coding: utf-8 -*-
"""
Prometheus Metrics - GL-CBAM-ENGINE

10 Prometheus metrics for CBAM engine monitoring with graceful fallback
when prometheus_client is not installed.

Metrics:
    1.  gl_cbam_benchmarks_resolved_total (Counter, labels: category, outcome)
    2.  gl_cbam_free_allocation_calculations_total (Counter, labels: year)
    3.  gl_cbam_certificates_required_total (Counter)
    4.  gl_cbam_entry_validations_total (Counter, labels: result)
    5.  gl_cbam_validation_issues_total (Counter, labels: severity, category)
    6.  gl_cbam_materiality_assessments_total (Counter, labels: status)
    7.  gl_cbam_data_quality_score (Histogram, buckets: 10-100)
    8.  gl_cbam_eori_validations_total (Counter, labels: result, country)
    9.  gl_cbam_submission_checks_total (Counter, labels: outcome)
    10. gl_cbam_processing_duration_seconds (Histogram, labels: operation)

Author: GreenLang CBAM Team
Date: March 2026
Status: Production Ready
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Graceful prometheus_client import
# ---------------------------------------------------------------------------

try:
    from prometheus_client import Counter, Histogram
    PROMETHEUS_AVAILABLE = True
except ImportError:
    PROMETHEUS_AVAILABLE = False
    logger.info("prometheus_client not installed; CBAM engine metrics disabled")


# ---------------------------------------------------------------------------
# Metric definitions
# ---------------------------------------------------------------------------

if PROMETHEUS_AVAILABLE:
    # 1. Benchmark lookups by goods category and outcome
    cbam_benchmarks_resolved_total = Counter(
        "gl_cbam_benchmarks_resolved_total",
        "Total benchmark resolutions",
        labelnames=["category", "outcome"],
    )

    # 2. Free allocation calculations by reporting year
    cbam_free_allocation_calculations_total = Counter(
        "gl_cbam_free_allocation_calculations_total",
        "Total free allocation calculations",
        labelnames=["year"],
    )

    # 3. Certificates required across all chargeable calculations
    cbam_certificates_required_total = Counter(
        "gl_cbam_certificates_required_total",
        "Total CBAM certificates computed as required",
    )

    # 4. Entry validations by result
    cbam_entry_validations_total = Counter(
        "gl_cbam_entry_validations_total",
        "Total emission entry validations",
        labelnames=["result"],
    )

    # 5. Validation issues by severity and category
    cbam_validation_issues_total = Counter(
        "gl_cbam_validation_issues_total",
        "Total validation issues raised",
        labelnames=["severity", "category"],
    )

    # 6. Materiality assessments by status
    cbam_materiality_assessments_total = Counter(
        "gl_cbam_materiality_assessments_total",
        "Total materiality assessments",
        labelnames=["status"],
    )

    # 7. Composite data quality score distribution
    cbam_data_quality_score = Histogram(
        "gl_cbam_data_quality_score",
        "Composite data quality score distribution",
        buckets=(10, 20, 30, 40, 50, 60, 70, 80, 90, 100),
    )

    # 8. EORI validations by result and country
    cbam_eori_validations_total = Counter(
        "gl_cbam_eori_validations_total",
        "Total EORI validations",
        labelnames=["result", "country"],
    )

    # 9. Submission readiness checks by outcome
    cbam_submission_checks_total = Counter(
        "gl_cbam_submission_checks_total",
        "Total submission readiness checks",
        labelnames=["outcome"],
    )

    # 10. Processing duration histogram by operation type
    cbam_processing_duration_seconds = Histogram(
        "gl_cbam_processing_duration_seconds",
        "CBAM engine processing duration in seconds",
        labelnames=["operation"],
        buckets=(
            0.001, 0.005, 0.01, 0.05, 0.1,
            0.25, 0.5, 1.0, 2.5, 5.0, 10.0,
        ),
    )

else:
    # No-op placeholders
    cbam_benchmarks_resolved_total = None  # type: ignore[assignment]
    cbam_free_allocation_calculations_total = None  # type: ignore[assignment]
    cbam_certificates_required_total = None  # type: ignore[assignment]
    cbam_entry_validations_total = None  # type: ignore[assignment]
    cbam_validation_issues_total = None  # type: ignore[assignment]
    cbam_materiality_assessments_total = None  # type: ignore[assignment]
    cbam_data_quality_score = None  # type: ignore[assignment]
    cbam_eori_validations_total = None  # type: ignore[assignment]
    cbam_submission_checks_total = None  # type: ignore[assignment]
    cbam_processing_duration_seconds = None  # type: ignore[assignment]


def _enabled() -> bool:
    if not PROMETHEUS_AVAILABLE:
        return False
    from cbam_engine.config import get_config

    return get_config().enable_metrics


# ---------------------------------------------------------------------------
# Helper functions (safe to call even without prometheus_client)
# ---------------------------------------------------------------------------


def record_benchmark(category: str, outcome: str) -> None:
    """Record a benchmark resolution.

    Args:
        category: Resolved goods category, or ``unclassified``.
        outcome: ``resolved``, ``fallback`` or ``unclassified``.
    """
    if not _enabled():
        return
    cbam_benchmarks_resolved_total.labels(
        category=category, outcome=outcome,
    ).inc()


def record_free_allocation(year: int) -> None:
    """Record a free allocation calculation for a reporting year."""
    if not _enabled():
        return
    cbam_free_allocation_calculations_total.labels(year=str(year)).inc()


def record_certificates(count: int) -> None:
    """Add a computed certificate requirement to the running total."""
    if not _enabled() or count <= 0:
        return
    cbam_certificates_required_total.inc(count)


def record_entry_validation(valid: bool) -> None:
    """Record an entry validation outcome."""
    if not _enabled():
        return
    cbam_entry_validations_total.labels(
        result="valid" if valid else "invalid",
    ).inc()


def record_validation_issue(severity: str, category: str) -> None:
    """Record a single validation issue.

    Args:
        severity: ``error`` or ``warning``.
        category: Error taxonomy category (MissingRequiredField, ...).
    """
    if not _enabled():
        return
    cbam_validation_issues_total.labels(
        severity=severity, category=category,
    ).inc()


def record_materiality(status: str) -> None:
    """Record a materiality assessment by resulting status."""
    if not _enabled():
        return
    cbam_materiality_assessments_total.labels(status=status).inc()


def record_data_quality(score: float) -> None:
    """Record a composite data quality score (0 - 100)."""
    if not _enabled():
        return
    cbam_data_quality_score.observe(score)


def record_eori(valid: bool, country: str) -> None:
    """Record an EORI validation result."""
    if not _enabled():
        return
    cbam_eori_validations_total.labels(
        result="valid" if valid else "invalid",
        country=country or "unknown",
    ).inc()


def record_submission_check(outcome: str) -> None:
    """Record a submission readiness verdict.

    Args:
        outcome: ``ready``, ``submittable`` or ``blocked``.
    """
    if not _enabled():
        return
    cbam_submission_checks_total.labels(outcome=outcome).inc()


def record_processing_duration(operation: str, duration: float) -> None:
    """Record processing duration for an operation in seconds."""
    if not _enabled():
        return
    cbam_processing_duration_seconds.labels(
        operation=operation,
    ).observe(duration)


__all__ = [
    "PROMETHEUS_AVAILABLE",
    # Metric objects
    "cbam_benchmarks_resolved_total",
    "cbam_free_allocation_calculations_total",
    "cbam_certificates_required_total",
    "cbam_entry_validations_total",
    "cbam_validation_issues_total",
    "cbam_materiality_assessments_total",
    "cbam_data_quality_score",
    "cbam_eori_validations_total",
    "cbam_submission_checks_total",
    "cbam_processing_duration_seconds",
    # Helper functions
    "record_benchmark",
    "record_free_allocation",
    "record_certificates",
    "record_entry_validation",
    "record_validation_issue",
    "record_materiality",
    "record_data_quality",
    "record_eori",
    "record_submission_check",
    "record_processing_duration",
]
