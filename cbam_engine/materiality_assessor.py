# -*- coding: utf-8 -*-
"""
Materiality Assessor - GL-CBAM-ENGINE

Compares an entry's direct emission intensity with the average of its peer
cohort (all other entries with the same CN code) and flags material
deviations for verifier scrutiny.

    deviation_percent = |value - peer_average| / peer_average * 100
    material          = deviation_percent > 5
    verifier action   = material and deviation_percent > 10

An empty cohort, a zero peer average or a missing direct intensity makes
the entry not assessable, which is reported as its own status and never
as "not material".

Zero-Hallucination Guarantees:
    - Pure arithmetic over the supplied batch, no external data
    - Fixed thresholds, not configurable
    - SHA-256 provenance hashes on all assessments

Example:
    >>> from cbam_engine.materiality_assessor import MaterialityAssessor
    >>> assessor = MaterialityAssessor()
    >>> a = assessor.assess_materiality(
    ...     {"cn_code": "72083000", "direct_emissions_specific": 1.8},
    ...     [{"cn_code": "72083000", "direct_emissions_specific": 1.5}],
    ... )
    >>> a.status.value, a.deviation_percent
    ('mandatory_verifier_action', 20.0)

Author: GreenLang CBAM Team
Date: March 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from typing import Any, Dict, List, Optional, Sequence, Tuple

from cbam_engine.config import get_config
from cbam_engine.entry_validator import EntryInput, coerce_entry
from cbam_engine.metrics import record_materiality, record_processing_duration
from cbam_engine.models import (
    MATERIALITY_THRESHOLD_PERCENT,
    VERIFIER_ACTION_THRESHOLD_PERCENT,
    CodeMaterialitySummary,
    EmissionEntry,
    ErrorCategory,
    MaterialityAssessment,
    MaterialityBatchResult,
    MaterialityStatus,
    Severity,
    ValidationIssue,
)
from cbam_engine.provenance import compute_hash, get_provenance_tracker

logger = logging.getLogger(__name__)

MATERIALITY_CITATION = "C(2025) 8150 Art. 5"


def _same_record(
    raw_a: Any, entry_a: EmissionEntry, raw_b: Any, entry_b: EmissionEntry,
) -> bool:
    if raw_a is raw_b or entry_a is entry_b:
        return True
    return bool(entry_a.entry_id) and entry_a.entry_id == entry_b.entry_id


class MaterialityAssessor:
    """Peer-cohort deviation engine.

    Attributes:
        _high_risk_ratio: Share of material entries that makes a CN code
            high risk in batch reporting.
        _provenance: Provenance tracker instance.
    """

    def __init__(
        self,
        config: Any = None,
        provenance: Any = None,
    ) -> None:
        """Initialize MaterialityAssessor.

        Args:
            config: Optional CBAMEngineConfig.
            provenance: Optional ProvenanceTracker instance.
        """
        self._config = config or get_config()
        self._provenance = provenance or get_provenance_tracker()
        self._high_risk_ratio = float(self._config.materiality_high_risk_ratio)
        logger.info(
            "MaterialityAssessor initialized: threshold=%.1f%%, "
            "verifier_action=%.1f%%, high_risk_ratio=%.2f",
            MATERIALITY_THRESHOLD_PERCENT,
            VERIFIER_ACTION_THRESHOLD_PERCENT,
            self._high_risk_ratio,
        )

    # ------------------------------------------------------------------
    # Single entry
    # ------------------------------------------------------------------

    def assess_materiality(
        self,
        entry: EntryInput,
        peers: Sequence[EntryInput],
    ) -> MaterialityAssessment:
        """Assess one entry against its peer cohort.

        Args:
            entry: Focal entry.
            peers: Candidate peers, typically the whole batch. The focal
                entry and entries with other CN codes are ignored.

        Returns:
            MaterialityAssessment; ``assessable`` is False for an empty
            cohort, a zero peer average or a missing direct intensity.
        """
        focal = coerce_entry(entry)
        pairs = [(raw, coerce_entry(raw)) for raw in peers]
        return self.assess_prepared(entry, focal, pairs)

    def assess_prepared(
        self,
        raw_focal: Any,
        focal: EmissionEntry,
        pairs: Sequence[Tuple[Any, EmissionEntry]],
    ) -> MaterialityAssessment:
        """Assess an already parsed entry against parsed (raw, entry) pairs.

        Used by batch callers that parse the cohort once. ``raw_focal`` is
        the object the focal entry was parsed from, so that the focal
        record can be recognised inside ``pairs``.
        """
        start_time = time.monotonic()
        value = focal.direct_emissions_specific
        cohort = [
            peer.direct_emissions_specific
            for raw, peer in pairs
            if peer.cn_code == focal.cn_code
            and peer.direct_emissions_specific is not None
            and not _same_record(raw_focal, focal, raw, peer)
        ]

        peer_average: Optional[float] = None
        deviation: Optional[float] = None
        if value is None:
            status = MaterialityStatus.MISSING_VALUE
        elif not cohort:
            status = MaterialityStatus.NO_COMPARISON_AVAILABLE
        else:
            peer_average = sum(cohort) / len(cohort)
            if peer_average == 0:
                status = MaterialityStatus.ZERO_BASELINE
            else:
                deviation = round(abs(value - peer_average) / peer_average * 100, 6)
                if deviation > VERIFIER_ACTION_THRESHOLD_PERCENT:
                    status = MaterialityStatus.MANDATORY_VERIFIER_ACTION
                elif deviation > MATERIALITY_THRESHOLD_PERCENT:
                    status = MaterialityStatus.MATERIAL
                else:
                    status = MaterialityStatus.NOT_MATERIAL

        assessable = status not in (
            MaterialityStatus.NO_COMPARISON_AVAILABLE,
            MaterialityStatus.ZERO_BASELINE,
            MaterialityStatus.MISSING_VALUE,
        )
        is_material = status in (
            MaterialityStatus.MATERIAL,
            MaterialityStatus.MANDATORY_VERIFIER_ACTION,
        )
        result = MaterialityAssessment(
            entry_ref=focal.reference,
            cn_code=focal.cn_code,
            status=status,
            assessable=assessable,
            is_material=is_material,
            requires_verifier_action=status == MaterialityStatus.MANDATORY_VERIFIER_ACTION,
            deviation_percent=deviation,
            entry_value=value,
            peer_average=round(peer_average, 8) if peer_average is not None else None,
            peer_count=len(cohort),
            citation=MATERIALITY_CITATION,
        )
        result.provenance_hash = compute_hash(result)
        if self._config.enable_provenance:
            self._provenance.record(
                "materiality", focal.reference, "assess", result.provenance_hash,
            )
        record_materiality(status.value)
        record_processing_duration("assess_materiality", time.monotonic() - start_time)
        return result

    def should_verifier_flag(self, assessment: MaterialityAssessment) -> bool:
        """True when the deviation requires mandatory verifier action."""
        return assessment.requires_verifier_action

    def validate_materiality_documentation(
        self,
        entry: EntryInput,
        assessment: MaterialityAssessment,
    ) -> List[ValidationIssue]:
        """Require a justification for material deviations.

        Returns:
            A warning when the entry is material and carries no
            ``deviation_justification``; otherwise an empty list.
        """
        record = coerce_entry(entry)
        if not assessment.is_material:
            return []
        if record.deviation_justification and record.deviation_justification.strip():
            return []
        return [ValidationIssue(
            field="deviation_justification",
            message=(
                f"Direct intensity deviates {assessment.deviation_percent:.2f}% from "
                f"{assessment.peer_count} peer(s); a justification is required"
            ),
            citation=MATERIALITY_CITATION,
            severity=Severity.WARNING,
            category=ErrorCategory.CROSS_FIELD_INCONSISTENCY,
        )]

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    def assess_batch(self, entries: Sequence[EntryInput]) -> MaterialityBatchResult:
        """Assess every entry of a batch against the rest of the batch.

        CN codes where more than the high-risk ratio of entries are
        material are listed in ``high_risk_codes``.
        """
        pairs = [(raw, coerce_entry(raw)) for raw in entries]
        assessments = [self.assess_prepared(raw, focal, pairs) for raw, focal in pairs]
        return self.summarize(assessments)

    def summarize(
        self, assessments: Sequence[MaterialityAssessment],
    ) -> MaterialityBatchResult:
        """Group assessments by CN code and flag high-risk codes."""
        grouped: "OrderedDict[str, List[MaterialityAssessment]]" = OrderedDict()
        for assessment in assessments:
            grouped.setdefault(assessment.cn_code or "<missing>", []).append(assessment)

        summaries: List[CodeMaterialitySummary] = []
        for code, items in grouped.items():
            material = sum(1 for a in items if a.is_material)
            ratio = material / len(items)
            summaries.append(CodeMaterialitySummary(
                cn_code=code,
                entry_count=len(items),
                material_count=material,
                not_assessable_count=sum(1 for a in items if not a.assessable),
                material_ratio=round(ratio, 4),
                high_risk=ratio > self._high_risk_ratio,
            ))

        result = MaterialityBatchResult(
            assessments=list(assessments),
            by_code=summaries,
            high_risk_codes=[s.cn_code for s in summaries if s.high_risk],
            material_count=sum(1 for a in assessments if a.is_material),
            verifier_action_count=sum(1 for a in assessments if a.requires_verifier_action),
            not_assessable_count=sum(1 for a in assessments if not a.assessable),
        )
        result.provenance_hash = compute_hash(result)
        logger.info(
            "Materiality batch: %d entries, %d material, %d not assessable, "
            "high risk codes=%s",
            len(assessments), result.material_count,
            result.not_assessable_count, result.high_risk_codes,
        )
        return result

    def generate_report(self, batch: MaterialityBatchResult) -> Dict[str, Any]:
        """Return a plain summary of a batch assessment."""
        return {
            "total_entries": len(batch.assessments),
            "material_entries": batch.material_count,
            "verifier_action_entries": batch.verifier_action_count,
            "not_assessable_entries": batch.not_assessable_count,
            "high_risk_codes": list(batch.high_risk_codes),
            "threshold_percent": MATERIALITY_THRESHOLD_PERCENT,
            "verifier_action_threshold_percent": VERIFIER_ACTION_THRESHOLD_PERCENT,
            "by_code": [s.model_dump() for s in batch.by_code],
            "flagged": [
                {
                    "entry_ref": a.entry_ref,
                    "cn_code": a.cn_code,
                    "deviation_percent": a.deviation_percent,
                    "status": a.status.value,
                }
                for a in batch.assessments
                if a.is_material
            ],
            "citation": MATERIALITY_CITATION,
        }


__all__ = [
    "MATERIALITY_CITATION",
    "MaterialityAssessor",
]
