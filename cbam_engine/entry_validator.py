# -*- coding: utf-8 -*-
"""
Entry Validator - GL-CBAM-ENGINE

Field-level regulatory checks for a single CBAM emission entry. Every rule
is evaluated independently and contributes to one ordered list of findings;
rule order never changes the outcome.

Compliance score:
    score = max(0, 100 - 20 * errors - 5 * warnings)
    valid = errors == 0
    ready_for_submission = valid and score >= 80

Zero-Hallucination Guarantees:
    - All checks are deterministic rule-based evaluations
    - Each finding cites the regulation article it enforces
    - Domain violations are returned as findings, never raised
    - SHA-256 provenance hashes on all validation results

Example:
    >>> from cbam_engine.entry_validator import EntryValidator
    >>> validator = EntryValidator()
    >>> result = validator.validate_entry({"cn_code": "7208300"})
    >>> result.valid
    False

Author: GreenLang CBAM Team
Date: March 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import re
import time
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from cbam_engine.config import get_config
from cbam_engine.exceptions import InvalidInputError
from cbam_engine.metrics import (
    record_entry_validation,
    record_processing_duration,
    record_validation_issue,
)
from cbam_engine.models import (
    CBAM_START_YEAR,
    BatchValidationResult,
    CalculationMethod,
    EmissionEntry,
    ErrorCategory,
    FunctionalUnit,
    Severity,
    ValidationIssue,
    ValidationResult,
)
from cbam_engine.provenance import compute_hash, get_provenance_tracker
from cbam_engine.reference_data import get_reference_tables

logger = logging.getLogger(__name__)

EntryInput = Union[EmissionEntry, Mapping[str, Any]]

#: Declarant EORI shape required on entries.
ENTRY_EORI_PATTERN = re.compile(r"^[A-Z]{2}[A-Z0-9]{12,15}$")

#: Allowed gap between declared and expected free allocation percent.
FREE_ALLOCATION_TOLERANCE = 0.1

ERROR_PENALTY = 20
WARNING_PENALTY = 5


def coerce_entry(entry: EntryInput) -> EmissionEntry:
    """Return ``entry`` as an EmissionEntry, parsing mappings.

    Raises:
        InvalidInputError: If the input is not a mapping or cannot be parsed.
    """
    if isinstance(entry, EmissionEntry):
        return entry
    if not isinstance(entry, Mapping):
        raise InvalidInputError(
            "Emission entry must be a mapping or EmissionEntry",
            context={"received_type": type(entry).__name__},
        )
    try:
        return EmissionEntry.model_validate(dict(entry))
    except ValidationError as exc:
        raise InvalidInputError.from_pydantic("emission entry", exc) from exc


def compliance_score(error_count: int, warning_count: int) -> float:
    """Return ``max(0, 100 - 20 * errors - 5 * warnings)``."""
    return float(max(0, 100 - ERROR_PENALTY * error_count - WARNING_PENALTY * warning_count))


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class EntryValidator:
    """Regulatory rule checks for one emission entry.

    Attributes:
        CITATIONS: Regulation reference per rule group.
        _tables: Reference tables for the schedule and Annex II list.
        _provenance: Provenance tracker instance.
    """

    CITATIONS: Dict[str, str] = {
        "mandatory": "Reg 2023/956 Art. 6(2)",
        "cn_code": "C(2025) 8151 Art. 16(1)",
        "start_year": "Reg 2023/956 Art. 36",
        "functional_unit": "C(2025) 8151 Annex I",
        "eori": "Reg 2023/956 Art. 5",
        "default_values": "C(2025) 8151 Art. 4(3)",
        "actual_values": "C(2025) 8151 Art. 4(1)",
        "carbon_price": "Reg 2023/956 Art. 9",
        "language": "C(2025) 8151 Art. 7",
        "customs": "Reg 2023/956 Art. 25",
        "free_allocation": "Reg 2023/956 Art. 31",
        "indirect": "Reg 2023/956 Annex II",
        "production_year": "C(2025) 8151 Art. 7",
        "precursors": "C(2025) 8151 Annex II Section 3",
        "reasonableness": "C(2025) 8151 Chapter 5",
    }

    ENGLISH_TAGS = frozenset({"en", "eng", "english", "en-gb", "en-us", "en_gb", "en_us"})

    def __init__(
        self,
        config: Any = None,
        provenance: Any = None,
        reference: Any = None,
    ) -> None:
        """Initialize EntryValidator.

        Args:
            config: Optional CBAMEngineConfig.
            provenance: Optional ProvenanceTracker instance.
            reference: Optional ReferenceTables.
        """
        self._config = config or get_config()
        self._provenance = provenance or get_provenance_tracker()
        self._tables = reference or get_reference_tables()
        self._ready_threshold = float(self._config.entry_ready_threshold)
        logger.info(
            "EntryValidator initialized: tables=%s, ready_threshold=%.1f",
            self._tables.version, self._ready_threshold,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def validate_entry(
        self,
        entry: EntryInput,
        today: Optional[date] = None,
    ) -> ValidationResult:
        """Validate one emission entry.

        Args:
            entry: EmissionEntry or mapping of its fields.
            today: Reference date for the future production-year check.

        Returns:
            ValidationResult with ordered issues, score and readiness.

        Raises:
            InvalidInputError: If the input cannot be parsed into an entry.
        """
        start_time = time.monotonic()
        record = coerce_entry(entry)
        today = today or date.today()

        issues: List[ValidationIssue] = []
        issues.extend(self._check_mandatory(record))
        issues.extend(self._check_cn_code(record))
        issues.extend(self._check_reporting_year(record, today))
        issues.extend(self._check_functional_unit(record))
        issues.extend(self._check_eori(record))
        issues.extend(self._check_quantities(record))
        issues.extend(self._check_method(record))
        issues.extend(self._check_carbon_price(record))
        issues.extend(self._check_language(record))
        issues.extend(self._check_customs(record))
        issues.extend(self._check_free_allocation(record))
        issues.extend(self._check_indirect(record))
        issues.extend(self._check_reasonableness(record))
        issues.extend(self.validate_precursors(record))

        errors = sum(1 for i in issues if i.severity == Severity.ERROR)
        warnings = len(issues) - errors
        score = compliance_score(errors, warnings)
        valid = errors == 0

        result = ValidationResult(
            entry_ref=record.reference,
            valid=valid,
            compliance_score=score,
            ready_for_submission=valid and score >= self._ready_threshold,
            issues=issues,
            error_count=errors,
            warning_count=warnings,
        )
        result.provenance_hash = compute_hash(result)
        if self._config.enable_provenance:
            self._provenance.record(
                "entry_validation", record.reference, "validate", result.provenance_hash,
            )

        record_entry_validation(valid)
        for issue in issues:
            record_validation_issue(issue.severity.value, issue.category.value)
        record_processing_duration("validate_entry", time.monotonic() - start_time)
        logger.debug(
            "Validated entry %s: valid=%s score=%.0f errors=%d warnings=%d",
            record.reference, valid, score, errors, warnings,
        )
        return result

    def validate_batch(
        self,
        entries: Iterable[EntryInput],
        today: Optional[date] = None,
    ) -> BatchValidationResult:
        """Validate many entries and summarise the outcome."""
        results = [self.validate_entry(e, today=today) for e in entries]
        total = len(results)
        average = sum(r.compliance_score for r in results) / total if total else 0.0
        batch = BatchValidationResult(
            results=results,
            total=total,
            valid_count=sum(1 for r in results if r.valid),
            ready_count=sum(1 for r in results if r.ready_for_submission),
            average_score=round(average, 2),
        )
        logger.info(
            "Validated %d entries: %d valid, %d ready, average score %.2f",
            total, batch.valid_count, batch.ready_count, batch.average_score,
        )
        return batch

    def validate_precursors(self, entry: EmissionEntry) -> List[ValidationIssue]:
        """Check the precursor emissions declared on an entry."""
        issues: List[ValidationIssue] = []
        cite = self.CITATIONS["precursors"]
        for index, precursor in enumerate(entry.precursors):
            field = f"precursors[{index}]"
            if (
                precursor.emissions_embedded is None
                and precursor.emissions_intensity_factor is None
            ):
                issues.append(self._error(
                    f"{field}.emissions_embedded",
                    "Precursor has neither embedded emissions nor an intensity factor",
                    cite, ErrorCategory.MISSING_REQUIRED_FIELD,
                ))
            if _blank(precursor.production_installation_id):
                issues.append(self._warning(
                    f"{field}.production_installation_id",
                    "Precursor production installation is not identified",
                    cite, ErrorCategory.MISSING_REQUIRED_FIELD,
                ))
            if precursor.production_year is None:
                issues.append(self._warning(
                    f"{field}.production_year",
                    "Precursor production year is not declared",
                    cite, ErrorCategory.MISSING_REQUIRED_FIELD,
                ))
            elif (
                entry.reporting_period_year is not None
                and precursor.production_year != entry.reporting_period_year
                and _blank(precursor.evidence_url)
            ):
                issues.append(self._warning(
                    f"{field}.production_year",
                    f"Precursor produced in {precursor.production_year}, not the "
                    f"reporting year {entry.reporting_period_year}, without evidence",
                    cite, ErrorCategory.CROSS_FIELD_INCONSISTENCY,
                ))
        return issues

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def _check_mandatory(self, entry: EmissionEntry) -> List[ValidationIssue]:
        if _blank(entry.country_of_origin):
            return [self._error(
                "country_of_origin", "Country of origin is required",
                self.CITATIONS["mandatory"], ErrorCategory.MISSING_REQUIRED_FIELD,
            )]
        return []

    def _check_cn_code(self, entry: EmissionEntry) -> List[ValidationIssue]:
        cite = self.CITATIONS["cn_code"]
        code = entry.cn_code
        if _blank(code):
            return [self._error(
                "cn_code", "CN code is required", cite,
                ErrorCategory.MISSING_REQUIRED_FIELD,
            )]
        if len(code) != 8:
            return [self._error(
                "cn_code", f"CN code must be exactly 8 characters, got {len(code)}",
                cite, ErrorCategory.INVALID_FORMAT,
            )]
        if not code.isdigit():
            return [self._error(
                "cn_code", "CN code must contain only digits", cite,
                ErrorCategory.INVALID_FORMAT,
            )]
        return []

    def _check_reporting_year(
        self, entry: EmissionEntry, today: date,
    ) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        year = entry.reporting_period_year
        if year is None:
            issues.append(self._error(
                "reporting_period_year", "Reporting year is required",
                self.CITATIONS["mandatory"], ErrorCategory.MISSING_REQUIRED_FIELD,
            ))
        elif year < CBAM_START_YEAR:
            issues.append(self._error(
                "reporting_period_year",
                f"Reporting year {year} precedes the definitive period "
                f"starting {CBAM_START_YEAR}",
                self.CITATIONS["start_year"], ErrorCategory.OUT_OF_RANGE,
            ))
        if entry.production_year is not None and entry.production_year > today.year:
            issues.append(self._error(
                "production_year",
                f"Production year {entry.production_year} is in the future",
                self.CITATIONS["production_year"], ErrorCategory.OUT_OF_RANGE,
            ))
        return issues

    def _check_functional_unit(self, entry: EmissionEntry) -> List[ValidationIssue]:
        cite = self.CITATIONS["functional_unit"]
        if _blank(entry.functional_unit):
            return [self._error(
                "functional_unit", "Functional unit is required", cite,
                ErrorCategory.MISSING_REQUIRED_FIELD,
            )]
        if FunctionalUnit.parse(entry.functional_unit) is None:
            allowed = ", ".join(u.value for u in FunctionalUnit)
            return [self._error(
                "functional_unit",
                f"Functional unit '{entry.functional_unit}' is not one of: {allowed}",
                cite, ErrorCategory.INVALID_FORMAT,
            )]
        return []

    def _check_eori(self, entry: EmissionEntry) -> List[ValidationIssue]:
        if _blank(entry.declarant_eori):
            return []
        normalized = re.sub(r"\s+", "", entry.declarant_eori).upper()
        if not ENTRY_EORI_PATTERN.match(normalized):
            return [self._error(
                "declarant_eori",
                "EORI must be 2 letters followed by 12-15 alphanumeric characters",
                self.CITATIONS["eori"], ErrorCategory.INVALID_FORMAT,
            )]
        return []

    def _check_quantities(self, entry: EmissionEntry) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        cite = self.CITATIONS["mandatory"]
        if entry.quantity is None:
            issues.append(self._error(
                "quantity", "Quantity is required", cite,
                ErrorCategory.MISSING_REQUIRED_FIELD,
            ))
        elif entry.quantity <= 0:
            issues.append(self._error(
                "quantity", "Quantity must be greater than zero", cite,
                ErrorCategory.OUT_OF_RANGE,
            ))
        if entry.direct_emissions_specific is None:
            issues.append(self._error(
                "direct_emissions_specific", "Direct emission intensity is required",
                cite, ErrorCategory.MISSING_REQUIRED_FIELD,
            ))
        elif entry.direct_emissions_specific <= 0:
            issues.append(self._error(
                "direct_emissions_specific",
                "Direct emission intensity must be greater than zero",
                cite, ErrorCategory.OUT_OF_RANGE,
            ))
        return issues

    def _check_method(self, entry: EmissionEntry) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        method = entry.method
        if _blank(entry.calculation_method):
            issues.append(self._warning(
                "calculation_method", "Calculation method is not declared",
                self.CITATIONS["mandatory"], ErrorCategory.MISSING_REQUIRED_FIELD,
            ))
        elif method is None:
            issues.append(self._warning(
                "calculation_method",
                f"Calculation method '{entry.calculation_method}' is not recognised",
                self.CITATIONS["mandatory"], ErrorCategory.INVALID_FORMAT,
            ))

        if method == CalculationMethod.DEFAULT_VALUES and _blank(entry.production_route):
            issues.append(self._error(
                "production_route",
                "Production route is required when default values are used",
                self.CITATIONS["default_values"],
                ErrorCategory.REGULATORY_RULE_VIOLATION,
            ))

        if method is not None and method.is_actual:
            cite = self.CITATIONS["actual_values"]
            if _blank(entry.installation_id):
                issues.append(self._error(
                    "installation_id",
                    "Installation identifier is required for actual values",
                    cite, ErrorCategory.REGULATORY_RULE_VIOLATION,
                ))
            if _blank(entry.monitoring_plan_id):
                issues.append(self._error(
                    "monitoring_plan_id",
                    "Approved monitoring plan is required for actual values",
                    cite, ErrorCategory.REGULATORY_RULE_VIOLATION,
                ))
        return issues

    def _check_carbon_price(self, entry: EmissionEntry) -> List[ValidationIssue]:
        if entry.carbon_price_paid and _blank(entry.carbon_price_certificate):
            return [self._error(
                "carbon_price_certificate",
                "Proof of carbon price paid is required when a carbon price is declared",
                self.CITATIONS["carbon_price"],
                ErrorCategory.REGULATORY_RULE_VIOLATION,
            )]
        return []

    def _check_language(self, entry: EmissionEntry) -> List[ValidationIssue]:
        if _blank(entry.document_language):
            return []
        if entry.document_language.strip().lower() not in self.ENGLISH_TAGS:
            return [self._error(
                "document_language",
                f"Supporting documents must be in English, got "
                f"'{entry.document_language}'",
                self.CITATIONS["language"],
                ErrorCategory.REGULATORY_RULE_VIOLATION,
            )]
        return []

    def _check_customs(self, entry: EmissionEntry) -> List[ValidationIssue]:
        if _blank(entry.customs_declaration_reference):
            return [self._warning(
                "customs_declaration_reference",
                "Customs declaration reference is recommended",
                self.CITATIONS["customs"], ErrorCategory.MISSING_REQUIRED_FIELD,
            )]
        return []

    def _check_free_allocation(self, entry: EmissionEntry) -> List[ValidationIssue]:
        if entry.free_allocation_percent is None or entry.reporting_period_year is None:
            return []
        factor = self._tables.cbam_factor(entry.reporting_period_year)
        if factor is None:
            factor = 0.025
        expected = (1 - factor) * 100
        if abs(entry.free_allocation_percent - expected) > FREE_ALLOCATION_TOLERANCE + 1e-9:
            return [self._warning(
                "free_allocation_percent",
                f"Free allocation {entry.free_allocation_percent:.4f}% differs from "
                f"the {entry.reporting_period_year} schedule value {expected:.4f}%",
                self.CITATIONS["free_allocation"],
                ErrorCategory.CROSS_FIELD_INCONSISTENCY,
            )]
        return []

    def _check_indirect(self, entry: EmissionEntry) -> List[ValidationIssue]:
        if entry.method != CalculationMethod.DEFAULT_VALUES:
            return []
        if not entry.indirect_emissions_specific or entry.indirect_emissions_specific <= 0:
            return []
        category = self._tables.category_for_code(entry.cn_code)
        if category is None or self._tables.is_annex_ii(category):
            return []
        return [self._warning(
            "indirect_emissions_specific",
            f"Indirect emissions are excluded from default values for "
            f"{category.value}",
            self.CITATIONS["indirect"],
            ErrorCategory.CROSS_FIELD_INCONSISTENCY,
        )]

    def _check_reasonableness(self, entry: EmissionEntry) -> List[ValidationIssue]:
        value = entry.direct_emissions_specific
        if value is None or value <= 0:
            return []
        category = self._tables.category_for_code(entry.cn_code)
        if category is None:
            return []
        bounds = self._tables.typical_range(category)
        if bounds is None:
            return []
        low, high = bounds
        if low <= value <= high:
            return []
        return [self._warning(
            "direct_emissions_specific",
            f"Direct intensity {value} is outside the typical range "
            f"{low}-{high} for {category.family.value}",
            self.CITATIONS["reasonableness"], ErrorCategory.OUT_OF_RANGE,
        )]

    # ------------------------------------------------------------------
    # Issue builders
    # ------------------------------------------------------------------

    @staticmethod
    def _error(
        field: str, message: str, citation: str, category: ErrorCategory,
    ) -> ValidationIssue:
        return ValidationIssue(
            field=field, message=message, citation=citation,
            severity=Severity.ERROR, category=category,
        )

    @staticmethod
    def _warning(
        field: str, message: str, citation: str, category: ErrorCategory,
    ) -> ValidationIssue:
        return ValidationIssue(
            field=field, message=message, citation=citation,
            severity=Severity.WARNING, category=category,
        )


__all__ = [
    "ENTRY_EORI_PATTERN",
    "FREE_ALLOCATION_TOLERANCE",
    "EntryInput",
    "coerce_entry",
    "compliance_score",
    "EntryValidator",
]
