# -*- coding: utf-8 -*-
"""
EORI Validator - GL-CBAM-ENGINE

Validates Economic Operator Registration and Identification numbers in
three stages:

    1. Grammar: 2 letters + 1-15 alphanumeric characters after removing
       whitespace and upper-casing
    2. Country: prefix must be one of the EU-27 member states, with
       country-specific identifier patterns for NL, DE, FR, BE, IT and ES
    3. Checksum: modulo-11 weighted-digit check for NL; every other
       country is reported as "not validated"

Zero-Hallucination Guarantees:
    - Only checksum rules with an authoritative definition are applied
    - All checks are deterministic pattern evaluations
    - SHA-256 provenance hashes on all results

Example:
    >>> from cbam_engine.eori_validator import EORIValidator
    >>> validator = EORIValidator()
    >>> result = validator.validate_eori("nl 123456789")
    >>> result.normalized, result.valid
    ('NL123456789', True)

Author: GreenLang CBAM Team
Date: March 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import re
import time
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Pattern

from cbam_engine.config import get_config
from cbam_engine.metrics import record_eori, record_processing_duration
from cbam_engine.models import (
    ChecksumStatus,
    EORIBatchResult,
    EORIFailureReason,
    EORIResult,
)
from cbam_engine.provenance import compute_hash, get_provenance_tracker
from cbam_engine.reference_data import get_reference_tables

logger = logging.getLogger(__name__)

EORI_CITATION = "Reg 2023/956 Art. 5; Reg (EU) 952/2013 Art. 9"

EORI_GRAMMAR = re.compile(r"^[A-Z]{2}[A-Z0-9]{1,15}$")

#: Identifier part (after the country prefix) per member state.
COUNTRY_PATTERNS: Dict[str, Pattern[str]] = {
    "NL": re.compile(r"^(\d{9}|\d{12})$"),
    "DE": re.compile(r"^\d{10}$"),
    "FR": re.compile(r"^[A-Z]{2}\d{9}$"),
    "BE": re.compile(r"^\d{10}$"),
    "IT": re.compile(r"^\d{11}$"),
    "ES": re.compile(r"^([A-Z]\d{7}[A-Z]|\d{8}[A-Z])$"),
}

COUNTRY_FORMATS: Dict[str, str] = {
    "NL": "9 or 12 digits",
    "DE": "10 digits",
    "FR": "2 letters followed by 9 digits",
    "BE": "10 digits",
    "IT": "11 digits",
    "ES": "1 letter, 7 digits and 1 letter, or 8 digits and 1 letter",
}


def normalize_eori(identifier: Optional[str]) -> str:
    """Remove all whitespace and upper-case an identifier."""
    if identifier is None:
        return ""
    return re.sub(r"\s+", "", str(identifier)).upper()


def nl_checksum(digits: str) -> bool:
    """Modulo-11 check over the first 9 digits with weights 9..1."""
    total = sum(int(d) * w for d, w in zip(digits[:9], range(9, 0, -1)))
    return total % 11 == 0


class EORIValidator:
    """EORI identifier validation engine.

    Attributes:
        CHECKSUMS: Country code -> checksum function over the identifier part.
        _strict_checksum: Reject identifiers whose checksum fails.
        _provenance: Provenance tracker instance.
    """

    CHECKSUMS = {
        "NL": nl_checksum,
    }

    def __init__(
        self,
        config: Any = None,
        provenance: Any = None,
        reference: Any = None,
    ) -> None:
        """Initialize EORIValidator.

        Args:
            config: Optional CBAMEngineConfig.
            provenance: Optional ProvenanceTracker instance.
            reference: Optional ReferenceTables (EU member-state list).
        """
        self._config = config or get_config()
        self._provenance = provenance or get_provenance_tracker()
        self._tables = reference or get_reference_tables()
        self._strict_checksum = bool(self._config.eori_strict_checksum)
        logger.info(
            "EORIValidator initialized: member_states=%d, country_patterns=%d, "
            "strict_checksum=%s",
            len(self._tables.eu_member_states), len(COUNTRY_PATTERNS),
            self._strict_checksum,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def validate_eori(
        self,
        identifier: Optional[str],
        expected_member_state: Optional[str] = None,
    ) -> EORIResult:
        """Validate one EORI identifier.

        Args:
            identifier: Raw identifier as entered.
            expected_member_state: When given, the identifier's country must
                match it.

        Returns:
            EORIResult with normalized form, country and failure reason.
        """
        start_time = time.monotonic()
        normalized = normalize_eori(identifier)
        expected = normalize_eori(expected_member_state) or None
        country = normalized[:2] if len(normalized) >= 2 and normalized[:2].isalpha() else None

        reason: Optional[EORIFailureReason] = None
        message = ""
        pattern_checked = False
        checksum = ChecksumStatus.NOT_VALIDATED

        if not normalized:
            reason = EORIFailureReason.MISSING_IDENTIFIER
            message = "EORI number is required"
        elif not EORI_GRAMMAR.match(normalized):
            reason = EORIFailureReason.INVALID_FORMAT
            message = "EORI must be 2 letters followed by 1-15 alphanumeric characters"
        elif not self._tables.is_eu_member(country):
            reason = EORIFailureReason.NOT_EU_COUNTRY
            message = f"Country code {country} is not an EU member state"
        else:
            body = normalized[2:]
            pattern = COUNTRY_PATTERNS.get(country)
            if pattern is not None:
                pattern_checked = True
                if not pattern.match(body):
                    reason = EORIFailureReason.INVALID_FORMAT
                    message = (
                        f"{country} EORI must be {country} followed by "
                        f"{COUNTRY_FORMATS[country]}"
                    )
            if reason is None:
                checksum = self._checksum(country, body)
                if checksum == ChecksumStatus.FAILED:
                    if self._strict_checksum:
                        reason = EORIFailureReason.CHECKSUM_FAILED
                        message = f"{country} EORI checksum failed"
                    else:
                        message = f"{country} EORI checksum failed (not enforced)"
            if reason is None and expected and country != expected:
                reason = EORIFailureReason.COUNTRY_MISMATCH
                message = (
                    f"EORI country {country} does not match member state {expected}"
                )

        valid = reason is None
        if valid and not message:
            message = "EORI number is valid"
        result = EORIResult(
            input=identifier,
            normalized=normalized,
            country_code=country,
            valid=valid,
            failure_reason=reason,
            message=message,
            country_pattern_checked=pattern_checked,
            checksum_status=checksum,
            expected_member_state=expected,
            citation=EORI_CITATION,
        )
        result.provenance_hash = compute_hash(result)
        if self._config.enable_provenance:
            self._provenance.record(
                "eori", normalized or "<empty>", "validate", result.provenance_hash,
            )
        record_eori(valid, country or "")
        record_processing_duration("validate_eori", time.monotonic() - start_time)
        return result

    def validate_format(self, identifier: Optional[str]) -> bool:
        """True when the identifier satisfies the generic grammar."""
        return bool(EORI_GRAMMAR.match(normalize_eori(identifier)))

    def validate_for_cbam(
        self,
        identifier: Optional[str],
        member_state: str,
    ) -> EORIResult:
        """Validate an identifier for a declarant registered in ``member_state``."""
        return self.validate_eori(identifier, expected_member_state=member_state)

    def validate_batch(
        self,
        identifiers: Iterable[Optional[str]],
        expected_member_state: Optional[str] = None,
    ) -> EORIBatchResult:
        """Validate many identifiers, grouping failures by message."""
        results = [self.validate_eori(i, expected_member_state) for i in identifiers]
        failures = Counter(r.message for r in results if not r.valid)
        valid_count = sum(1 for r in results if r.valid)
        batch = EORIBatchResult(
            results=results,
            total=len(results),
            valid_count=valid_count,
            invalid_count=len(results) - valid_count,
            failures_by_message=dict(failures.most_common()),
        )
        logger.info(
            "Validated %d EORI numbers: %d valid, %d invalid",
            batch.total, batch.valid_count, batch.invalid_count,
        )
        return batch

    def generate_validation_report(self, batch: EORIBatchResult) -> Dict[str, Any]:
        """Return a plain summary of a batch validation."""
        by_country: Dict[str, Dict[str, int]] = {}
        for result in batch.results:
            bucket = by_country.setdefault(result.country_code or "??", {"valid": 0, "invalid": 0})
            bucket["valid" if result.valid else "invalid"] += 1
        invalid: List[Dict[str, Any]] = [
            {
                "input": r.input,
                "normalized": r.normalized,
                "reason": r.failure_reason.value if r.failure_reason else None,
                "message": r.message,
            }
            for r in batch.results
            if not r.valid
        ]
        return {
            "total": batch.total,
            "valid": batch.valid_count,
            "invalid": batch.invalid_count,
            "pass_rate": round(batch.pass_rate * 100, 2),
            "failures_by_message": dict(batch.failures_by_message),
            "by_country": by_country,
            "invalid_identifiers": invalid,
            "citation": EORI_CITATION,
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _checksum(self, country: str, body: str) -> ChecksumStatus:
        check = self.CHECKSUMS.get(country)
        if check is None:
            return ChecksumStatus.NOT_VALIDATED
        return ChecksumStatus.PASSED if check(body) else ChecksumStatus.FAILED


__all__ = [
    "EORI_CITATION",
    "EORI_GRAMMAR",
    "COUNTRY_PATTERNS",
    "normalize_eori",
    "nl_checksum",
    "EORIValidator",
]
