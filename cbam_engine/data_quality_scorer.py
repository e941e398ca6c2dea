# -*- coding: utf-8 -*-
"""
Data Quality Scorer - GL-CBAM-ENGINE

Scores one CBAM emission entry on five independent dimensions and combines
them into a weighted composite with a rating band and recommendations.

Dimensions (weight):
    - Completeness (0.30): 70 points from 8 required fields, 30 points
      from 5 recommended fields, both as presence ratios
    - Accuracy (0.25): 100 minus additive penalties for specific defects
    - Consistency (0.20): 100 minus penalties for contradictory fields
    - Documentation (0.15): additive credits for supporting evidence
    - Timeliness (0.10): 100 minus penalties for stale data and slow
      verification

Rating bands: >=90 excellent, >=75 good, >=60 acceptable, >=40 poor,
else critical.

Zero-Hallucination Guarantees:
    - All scores are deterministic arithmetic over entry fields
    - Declared and computed embedded emissions are both reported
    - SHA-256 provenance hashes on all scores

Example:
    >>> from cbam_engine.data_quality_scorer import DataQualityScorer
    >>> scorer = DataQualityScorer()
    >>> score = scorer.score_data_quality(entry)
    >>> print(score.composite_score, score.rating.value)

Author: GreenLang CBAM Team
Date: March 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import time
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from cbam_engine.config import get_config
from cbam_engine.entry_validator import EntryInput, coerce_entry
from cbam_engine.metrics import record_data_quality, record_processing_duration
from cbam_engine.models import (
    CBAM_START_YEAR,
    CalculationMethod,
    DataQualityBatchResult,
    DataQualityScore,
    EmbeddedEmissionsCheck,
    EmissionEntry,
    FunctionalUnit,
    QualityRating,
    VerificationStatus,
)
from cbam_engine.provenance import compute_hash, get_provenance_tracker

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Scoring constants
# ---------------------------------------------------------------------------

DIMENSION_WEIGHTS: Dict[str, float] = {
    "completeness": 0.30,
    "accuracy": 0.25,
    "consistency": 0.20,
    "documentation": 0.15,
    "timeliness": 0.10,
}

REQUIRED_FIELDS: Tuple[str, ...] = (
    "cn_code",
    "country_of_origin",
    "quantity",
    "direct_emissions_specific",
    "functional_unit",
    "calculation_method",
    "reporting_period_year",
    "declarant_eori",
)

RECOMMENDED_FIELDS: Tuple[str, ...] = (
    "installation_id",
    "production_route",
    "indirect_emissions_specific",
    "customs_declaration_reference",
    "import_date",
)

REQUIRED_POINTS = 70.0
RECOMMENDED_POINTS = 30.0

# Accuracy penalties
PENALTY_ACTUAL_WITHOUT_INSTALLATION = 20
PENALTY_NEGATIVE_DIRECT = 30
PENALTY_EMBEDDED_MISMATCH = 15
PENALTY_NON_POSITIVE_QUANTITY = 40
PENALTY_PRE_REGIME_YEAR = 50
PENALTY_CN_LENGTH = 10

EMBEDDED_TOLERANCE_PERCENT = 5.0

# Consistency penalties
PENALTY_UNKNOWN_UNIT = 20
PENALTY_DEFAULT_FLAG_WITH_ACTUAL = 30
PENALTY_MARKUP_WITH_ACTUAL = 20

# Documentation credits
CREDIT_MONITORING_PLAN = 30
CREDIT_OPERATOR_REPORT = 25
CREDIT_VERIFICATION = 25
CREDIT_CARBON_PRICE_PROOF = 20

# Timeliness penalties
PENALTY_NO_IMPORT_DATE = 30
PENALTY_AGE_OVER_YEAR = 20
PENALTY_AGE_OVER_HALF_YEAR = 10
PENALTY_VERIFICATION_PENDING = 20
VERIFICATION_PENDING_DAYS = 30

# Recommendation thresholds
COMPLETENESS_TARGET = 80.0
ACCURACY_TARGET = 70.0
DOCUMENTATION_TARGET = 50.0

RATING_BANDS: Tuple[Tuple[float, QualityRating], ...] = (
    (90.0, QualityRating.EXCELLENT),
    (75.0, QualityRating.GOOD),
    (60.0, QualityRating.ACCEPTABLE),
    (40.0, QualityRating.POOR),
)


def rating_for(score: float) -> QualityRating:
    """Return the rating band of a composite score."""
    for floor, rating in RATING_BANDS:
        if score >= floor:
            return rating
    return QualityRating.CRITICAL


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def _as_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


class DataQualityScorer:
    """Five-dimension data quality scoring engine.

    Attributes:
        _weights: Dimension weights, summing to 1.0.
        _provenance: Provenance tracker instance.
    """

    def __init__(
        self,
        config: Any = None,
        provenance: Any = None,
    ) -> None:
        """Initialize DataQualityScorer.

        Args:
            config: Optional CBAMEngineConfig.
            provenance: Optional ProvenanceTracker instance.
        """
        self._config = config or get_config()
        self._provenance = provenance or get_provenance_tracker()
        self._weights = dict(DIMENSION_WEIGHTS)
        logger.info(
            "DataQualityScorer initialized: weights=[C=%.2f A=%.2f Co=%.2f D=%.2f T=%.2f]",
            self._weights["completeness"], self._weights["accuracy"],
            self._weights["consistency"], self._weights["documentation"],
            self._weights["timeliness"],
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def score_data_quality(
        self,
        entry: EntryInput,
        as_of: Optional[date] = None,
    ) -> DataQualityScore:
        """Score one entry.

        Args:
            entry: EmissionEntry or mapping of its fields.
            as_of: Reference date for data age; defaults to today.

        Returns:
            DataQualityScore with sub-scores, composite and rating.
        """
        start_time = time.monotonic()
        record = coerce_entry(entry)
        as_of = as_of or date.today()
        findings: List[str] = []

        completeness, missing_required = self.score_completeness(record)
        accuracy, embedded_check = self.score_accuracy(record, findings)
        consistency = self.score_consistency(record, findings)
        documentation = self.score_documentation(record)
        timeliness = self.score_timeliness(record, as_of, findings)

        composite = round(
            completeness * self._weights["completeness"]
            + accuracy * self._weights["accuracy"]
            + consistency * self._weights["consistency"]
            + documentation * self._weights["documentation"]
            + timeliness * self._weights["timeliness"],
            2,
        )
        composite = min(100.0, max(0.0, composite))

        result = DataQualityScore(
            entry_ref=record.reference,
            completeness=completeness,
            accuracy=accuracy,
            consistency=consistency,
            documentation=documentation,
            timeliness=timeliness,
            weights=dict(self._weights),
            composite_score=composite,
            rating=rating_for(composite),
            recommendations=self._recommendations(
                record, completeness, accuracy, documentation, missing_required,
            ),
            findings=findings,
            embedded_emissions_check=embedded_check,
        )
        result.provenance_hash = compute_hash(result)
        if self._config.enable_provenance:
            self._provenance.record(
                "data_quality", record.reference, "score", result.provenance_hash,
            )
        record_data_quality(composite)
        record_processing_duration("score_data_quality", time.monotonic() - start_time)
        return result

    def score_batch(
        self,
        entries: Sequence[EntryInput],
        as_of: Optional[date] = None,
    ) -> DataQualityBatchResult:
        """Score many entries; report the average and rating distribution."""
        scores = [self.score_data_quality(e, as_of=as_of) for e in entries]
        distribution = {rating.value: 0 for rating in QualityRating}
        for score in scores:
            distribution[score.rating.value] += 1
        average = sum(s.composite_score for s in scores) / len(scores) if scores else 0.0
        logger.info(
            "Scored %d entries: average composite %.2f", len(scores), average,
        )
        return DataQualityBatchResult(
            scores=scores,
            average_composite=round(average, 2),
            rating_distribution=distribution,
        )

    # ------------------------------------------------------------------
    # Dimensions
    # ------------------------------------------------------------------

    def score_completeness(self, entry: EmissionEntry) -> Tuple[float, List[str]]:
        """Return (score, missing required fields)."""
        missing = [f for f in REQUIRED_FIELDS if not _present(getattr(entry, f))]
        recommended = sum(1 for f in RECOMMENDED_FIELDS if _present(getattr(entry, f)))
        score = (
            REQUIRED_POINTS * (len(REQUIRED_FIELDS) - len(missing)) / len(REQUIRED_FIELDS)
            + RECOMMENDED_POINTS * recommended / len(RECOMMENDED_FIELDS)
        )
        return round(score, 2), missing

    def score_accuracy(
        self,
        entry: EmissionEntry,
        findings: Optional[List[str]] = None,
    ) -> Tuple[float, Optional[EmbeddedEmissionsCheck]]:
        """Return (score, embedded emissions check when both figures exist)."""
        findings = findings if findings is not None else []
        score = 100.0

        if entry.uses_actual_values and not _present(entry.installation_id):
            score -= PENALTY_ACTUAL_WITHOUT_INSTALLATION
            findings.append("actual values declared without installation id")
        if entry.direct_emissions_specific is not None and entry.direct_emissions_specific < 0:
            score -= PENALTY_NEGATIVE_DIRECT
            findings.append("negative direct emissions")

        check = self._embedded_check(entry)
        if check is not None and not check.within_tolerance:
            score -= PENALTY_EMBEDDED_MISMATCH
            findings.append(
                f"declared embedded emissions {check.declared_total} differ from "
                f"quantity x intensity {check.computed_total}"
            )

        if entry.quantity is not None and entry.quantity <= 0:
            score -= PENALTY_NON_POSITIVE_QUANTITY
            findings.append("non-positive quantity")
        if entry.reporting_period_year is not None and entry.reporting_period_year < CBAM_START_YEAR:
            score -= PENALTY_PRE_REGIME_YEAR
            findings.append(f"reporting year before {CBAM_START_YEAR}")
        if _present(entry.cn_code) and len(entry.cn_code) != 8:
            score -= PENALTY_CN_LENGTH
            findings.append("CN code is not 8 characters")

        return max(0.0, score), check

    def score_consistency(
        self,
        entry: EmissionEntry,
        findings: Optional[List[str]] = None,
    ) -> float:
        findings = findings if findings is not None else []
        score = 100.0
        if _present(entry.functional_unit) and FunctionalUnit.parse(entry.functional_unit) is None:
            score -= PENALTY_UNKNOWN_UNIT
            findings.append(f"unrecognised functional unit '{entry.functional_unit}'")
        if entry.uses_actual_values:
            if entry.default_value_used:
                score -= PENALTY_DEFAULT_FLAG_WITH_ACTUAL
                findings.append("default values flagged under an actual-values method")
            if entry.markup_percentage:
                score -= PENALTY_MARKUP_WITH_ACTUAL
                findings.append("markup applied under an actual-values method")
        return max(0.0, score)

    def score_documentation(self, entry: EmissionEntry) -> float:
        score = 0.0
        if _present(entry.monitoring_plan_id):
            score += CREDIT_MONITORING_PLAN
        if _present(entry.operator_report_id):
            score += CREDIT_OPERATOR_REPORT
        if entry.verification_status == VerificationStatus.SATISFACTORY.value:
            score += CREDIT_VERIFICATION
        if entry.carbon_price_paid and _present(entry.carbon_price_certificate):
            score += CREDIT_CARBON_PRICE_PROOF
        return min(100.0, score)

    def score_timeliness(
        self,
        entry: EmissionEntry,
        as_of: date,
        findings: Optional[List[str]] = None,
    ) -> float:
        findings = findings if findings is not None else []
        score = 100.0
        imported = _as_date(entry.import_date)
        if imported is None:
            score -= PENALTY_NO_IMPORT_DATE
            findings.append("import date missing")
        else:
            age = (as_of - imported).days
            if age > 365:
                score -= PENALTY_AGE_OVER_YEAR
                findings.append(f"data is {age} days old")
            elif age > 180:
                score -= PENALTY_AGE_OVER_HALF_YEAR
                findings.append(f"data is {age} days old")

        created = _as_date(entry.created_at)
        if (
            entry.verification_status == VerificationStatus.PENDING.value
            and created is not None
            and (as_of - created).days > VERIFICATION_PENDING_DAYS
        ):
            score -= PENALTY_VERIFICATION_PENDING
            findings.append("verification pending for more than 30 days")
        return max(0.0, score)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _embedded_check(entry: EmissionEntry) -> Optional[EmbeddedEmissionsCheck]:
        if (
            entry.total_embedded_emissions is None
            or entry.quantity is None
            or entry.direct_emissions_specific is None
        ):
            return None
        declared = entry.total_embedded_emissions
        computed = round(entry.quantity * entry.direct_emissions_specific, 8)
        if computed != 0:
            deviation = round(abs(declared - computed) / abs(computed) * 100, 4)
            within = deviation <= EMBEDDED_TOLERANCE_PERCENT
        else:
            deviation = None
            within = declared == 0
        return EmbeddedEmissionsCheck(
            declared_total=declared,
            computed_total=computed,
            deviation_percent=deviation,
            within_tolerance=within,
        )

    @staticmethod
    def _recommendations(
        entry: EmissionEntry,
        completeness: float,
        accuracy: float,
        documentation: float,
        missing_required: List[str],
    ) -> List[str]:
        recommendations: List[str] = []
        if completeness < COMPLETENESS_TARGET:
            if missing_required:
                recommendations.append(
                    "Complete the required fields: " + ", ".join(missing_required)
                )
            else:
                recommendations.append(
                    "Add recommended fields (installation, production route, "
                    "indirect emissions, customs reference, import date)"
                )
        if accuracy < ACCURACY_TARGET:
            recommendations.append(
                "Review quantity, emission intensities and totals for calculation errors"
            )
        if documentation < DOCUMENTATION_TARGET:
            recommendations.append(
                "Attach the monitoring plan, operator emissions report and "
                "verification statement"
            )
        if (
            entry.method == CalculationMethod.DEFAULT_VALUES
            and not _present(entry.monitoring_plan_id)
        ):
            recommendations.append(
                "Collect installation-specific actual emissions data to move off "
                "default values"
            )
        return recommendations


__all__ = [
    "DIMENSION_WEIGHTS",
    "REQUIRED_FIELDS",
    "RECOMMENDED_FIELDS",
    "rating_for",
    "DataQualityScorer",
]
