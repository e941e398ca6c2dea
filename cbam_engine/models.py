# -*- coding: utf-8 -*-
"""
CBAM Engine Data Models - GL-CBAM-ENGINE

Pydantic v2 data models for the CBAM Regulatory Calculation & Validation
Engine. Input records (``EmissionEntry``, ``SubmissionReport``) are
deliberately permissive: a record with a seven-digit CN code or a 2025
reporting year must still parse so that the validators can report the
defect as a finding. Result models are value objects produced fresh by
each engine call and carry a SHA-256 ``provenance_hash``.

Enumerations (13):
    - GoodsFamily, GoodsCategory, FunctionalUnit, CalculationMethod,
      VerificationStatus, Severity, ErrorCategory, RouteSource, RiskTier,
      MaterialityStatus, QualityRating, ChecksumStatus, EORIFailureReason

Input models (3):
    - PrecursorEntry, EmissionEntry, SubmissionReport

Result models:
    - BenchmarkResult, RouteSuggestion, RouteValidation,
      FreeAllocationResult, ChargeableEmissionsResult, PhaseOutYear,
      PhaseOutProjection, EntryCalculation, ValidationIssue,
      ValidationResult, BatchValidationResult, MaterialityAssessment,
      CodeMaterialitySummary, MaterialityBatchResult,
      EmbeddedEmissionsCheck, DataQualityScore, DataQualityBatchResult,
      EORIResult, EORIBatchResult, SubmissionIssue, EntryReadiness,
      CertificateBalance, ReadinessComponents, SubmissionReadiness

Author: GreenLang CBAM Team
Date: March 2026
Status: Production Ready
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


# =============================================================================
# Module constants
# =============================================================================

#: First year of the definitive CBAM regime.
CBAM_START_YEAR = 2026

#: Fixed materiality threshold (percent deviation from peer average).
MATERIALITY_THRESHOLD_PERCENT = 5.0

#: Deviation above which a material entry needs mandatory verifier action.
VERIFIER_ACTION_THRESHOLD_PERCENT = 10.0


def _utcnow() -> datetime:
    """Return current UTC datetime with microseconds zeroed."""
    return datetime.now(timezone.utc).replace(microsecond=0)


# =============================================================================
# Enumerations
# =============================================================================


class GoodsFamily(str, Enum):
    """CBAM Annex I sector a goods category belongs to."""

    IRON_STEEL = "iron_steel"
    ALUMINIUM = "aluminium"
    CEMENT = "cement"
    FERTILIZER = "fertilizer"
    HYDROGEN = "hydrogen"
    ELECTRICITY = "electricity"


class GoodsCategory(str, Enum):
    """Goods category carrying its own benchmark table.

    A CN code maps to exactly one category through the prefix rules in
    the reference tables.
    """

    IRON_ORE_PELLETS = "iron_ore_pellets"
    SINTER = "sinter"
    PIG_IRON = "pig_iron"
    DIRECT_REDUCED_IRON = "direct_reduced_iron"
    CRUDE_STEEL = "crude_steel"
    HOT_ROLLED_COIL = "hot_rolled_coil"
    COLD_ROLLED_COIL = "cold_rolled_coil"
    PRIMARY_ALUMINIUM = "primary_aluminium"
    SECONDARY_ALUMINIUM = "secondary_aluminium"
    ALUMINIUM_EXTRUSIONS = "aluminium_extrusions"
    ALUMINIUM_SHEETS = "aluminium_sheets"
    CLINKER = "clinker"
    PORTLAND_CEMENT = "portland_cement"
    AMMONIA = "ammonia"
    NITRIC_ACID = "nitric_acid"
    UREA = "urea"
    AMMONIUM_NITRATE = "ammonium_nitrate"
    NPK_FERTILIZERS = "npk_fertilizers"
    HYDROGEN = "hydrogen"
    ELECTRICITY = "electricity"

    @property
    def family(self) -> GoodsFamily:
        """Return the sector this category belongs to."""
        return _CATEGORY_FAMILY[self]


_CATEGORY_FAMILY: Dict[GoodsCategory, GoodsFamily] = {
    GoodsCategory.IRON_ORE_PELLETS: GoodsFamily.IRON_STEEL,
    GoodsCategory.SINTER: GoodsFamily.IRON_STEEL,
    GoodsCategory.PIG_IRON: GoodsFamily.IRON_STEEL,
    GoodsCategory.DIRECT_REDUCED_IRON: GoodsFamily.IRON_STEEL,
    GoodsCategory.CRUDE_STEEL: GoodsFamily.IRON_STEEL,
    GoodsCategory.HOT_ROLLED_COIL: GoodsFamily.IRON_STEEL,
    GoodsCategory.COLD_ROLLED_COIL: GoodsFamily.IRON_STEEL,
    GoodsCategory.PRIMARY_ALUMINIUM: GoodsFamily.ALUMINIUM,
    GoodsCategory.SECONDARY_ALUMINIUM: GoodsFamily.ALUMINIUM,
    GoodsCategory.ALUMINIUM_EXTRUSIONS: GoodsFamily.ALUMINIUM,
    GoodsCategory.ALUMINIUM_SHEETS: GoodsFamily.ALUMINIUM,
    GoodsCategory.CLINKER: GoodsFamily.CEMENT,
    GoodsCategory.PORTLAND_CEMENT: GoodsFamily.CEMENT,
    GoodsCategory.AMMONIA: GoodsFamily.FERTILIZER,
    GoodsCategory.NITRIC_ACID: GoodsFamily.FERTILIZER,
    GoodsCategory.UREA: GoodsFamily.FERTILIZER,
    GoodsCategory.AMMONIUM_NITRATE: GoodsFamily.FERTILIZER,
    GoodsCategory.NPK_FERTILIZERS: GoodsFamily.FERTILIZER,
    GoodsCategory.HYDROGEN: GoodsFamily.HYDROGEN,
    GoodsCategory.ELECTRICITY: GoodsFamily.ELECTRICITY,
}


class FunctionalUnit(str, Enum):
    """Unit in which quantity and emission intensities are declared."""

    TONNES = "tonnes"
    MWH = "MWh"
    KG_NITROGEN = "kg_nitrogen"
    TONNES_CLINKER = "tonnes_clinker"

    @classmethod
    def parse(cls, value: Any) -> Optional[FunctionalUnit]:
        """Return the unit for ``value`` or None when it is not recognised.

        Hyphenated spellings (``kg-nitrogen``) and case differences are
        accepted.
        """
        if value is None:
            return None
        if isinstance(value, FunctionalUnit):
            return value
        key = str(value).strip().replace("-", "_").lower()
        return _UNIT_ALIASES.get(key)


_UNIT_ALIASES: Dict[str, FunctionalUnit] = {
    "tonnes": FunctionalUnit.TONNES,
    "mwh": FunctionalUnit.MWH,
    "kg_nitrogen": FunctionalUnit.KG_NITROGEN,
    "tonnes_clinker": FunctionalUnit.TONNES_CLINKER,
}


class CalculationMethod(str, Enum):
    """Method used to determine embedded emissions.

    ACTUAL_VALUES is the label used by older imported records for what is
    now EU_method; both count as actual-values methods.
    """

    DEFAULT_VALUES = "Default_values"
    EU_METHOD = "EU_method"
    EQUIVALENT_METHOD_A = "Equivalent_method_A"
    EQUIVALENT_METHOD_B = "Equivalent_method_B"
    ACTUAL_VALUES = "actual_values"

    @classmethod
    def parse(cls, value: Any) -> Optional[CalculationMethod]:
        """Return the method for ``value`` or None when not recognised."""
        if value is None:
            return None
        try:
            return cls(value)
        except ValueError:
            return None

    @property
    def is_actual(self) -> bool:
        """True for methods based on installation-specific actual values."""
        return self in (CalculationMethod.EU_METHOD, CalculationMethod.ACTUAL_VALUES)


class VerificationStatus(str, Enum):
    """Third-party verification state of an entry's emissions data."""

    NOT_VERIFIED = "not_verified"
    PENDING = "pending"
    SATISFACTORY = "accredited_verifier_satisfactory"
    UNSATISFACTORY = "accredited_verifier_unsatisfactory"


class Severity(str, Enum):
    """Severity of a validation finding. Only errors block submission."""

    ERROR = "error"
    WARNING = "warning"


class ErrorCategory(str, Enum):
    """Taxonomy of regulatory findings."""

    MISSING_REQUIRED_FIELD = "MissingRequiredField"
    INVALID_FORMAT = "InvalidFormat"
    OUT_OF_RANGE = "OutOfRange"
    REGULATORY_RULE_VIOLATION = "RegulatoryRuleViolation"
    CROSS_FIELD_INCONSISTENCY = "CrossFieldInconsistency"
    UNCLASSIFIED_GOOD = "UnclassifiedGood"
    NOT_ASSESSABLE = "NotAssessable"


class RouteSource(str, Enum):
    """Where the production route used for a benchmark came from."""

    DECLARED = "declared"
    DEFAULT = "default"


class RiskTier(str, Enum):
    """Country carbon-markup tier."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class MaterialityStatus(str, Enum):
    """Outcome of a materiality assessment.

    NO_COMPARISON_AVAILABLE, ZERO_BASELINE and MISSING_VALUE mean the entry
    could not be assessed; they are not the same as NOT_MATERIAL.
    """

    NO_COMPARISON_AVAILABLE = "no_comparison_available"
    ZERO_BASELINE = "zero_baseline"
    MISSING_VALUE = "missing_value"
    NOT_MATERIAL = "not_material"
    MATERIAL = "material"
    MANDATORY_VERIFIER_ACTION = "mandatory_verifier_action"


class QualityRating(str, Enum):
    """Rating band of a composite data quality score."""

    EXCELLENT = "excellent"
    GOOD = "good"
    ACCEPTABLE = "acceptable"
    POOR = "poor"
    CRITICAL = "critical"


class ChecksumStatus(str, Enum):
    """Result of the country-specific EORI checksum stage."""

    PASSED = "passed"
    FAILED = "failed"
    NOT_VALIDATED = "not_validated"


class EORIFailureReason(str, Enum):
    """Reason an EORI identifier was rejected."""

    MISSING_IDENTIFIER = "MissingIdentifier"
    INVALID_FORMAT = "InvalidFormat"
    NOT_EU_COUNTRY = "NotEUCountry"
    COUNTRY_MISMATCH = "CountryMismatch"
    CHECKSUM_FAILED = "ChecksumFailed"


# =============================================================================
# Input models
# =============================================================================


class PrecursorEntry(BaseModel):
    """Embedded emissions of a precursor consumed by the declared good.

    Attributes:
        cn_code: CN code of the precursor.
        quantity: Quantity of precursor consumed per declared quantity.
        emissions_embedded: Total embedded emissions (tCO2e).
        emissions_intensity_factor: Specific embedded emissions per unit.
        production_installation_id: Installation that produced it.
        production_year: Year the precursor was produced.
        evidence_url: Evidence for a production year differing from the
            reporting year.
    """

    cn_code: Optional[str] = Field(None, description="Precursor CN code")
    quantity: Optional[float] = Field(None, description="Precursor quantity")
    emissions_embedded: Optional[float] = Field(
        None, description="Embedded emissions in tCO2e",
    )
    emissions_intensity_factor: Optional[float] = Field(
        None, description="Specific embedded emissions per unit",
    )
    production_installation_id: Optional[str] = Field(None)
    production_year: Optional[int] = Field(None)
    evidence_url: Optional[str] = Field(None)

    model_config = {"extra": "ignore", "allow_inf_nan": False}

    @property
    def embedded_total(self) -> float:
        """Return embedded emissions, deriving them from intensity when needed."""
        if self.emissions_embedded is not None:
            return self.emissions_embedded
        if self.emissions_intensity_factor is not None and self.quantity is not None:
            return self.emissions_intensity_factor * self.quantity
        return 0.0


class EmissionEntry(BaseModel):
    """One declared import of CBAM goods.

    Every field is optional at parse time so that incomplete records reach
    the validators. Computed free-allocation fields may be present from an
    earlier run; they are cross-checked, never trusted.

    Attributes:
        entry_id: Caller identifier of the record.
        cn_code: 8-digit Combined Nomenclature code.
        product_description: Free-text goods description.
        country_of_origin: Country of production (ISO code or name).
        quantity: Imported quantity in functional units.
        functional_unit: Unit of quantity and intensities.
        direct_emissions_specific: Direct emissions per functional unit.
        indirect_emissions_specific: Indirect emissions per functional unit.
        total_embedded_emissions: Declared total embedded emissions (tCO2e).
        calculation_method: Method used to determine emissions.
        reporting_period_year: Reporting year.
        production_year: Year the goods were produced.
        production_route: Declared production route tag.
        installation_id: Producing installation identifier.
        monitoring_plan_id: Approved monitoring plan reference.
        operator_report_id: Installation operator emissions report reference.
        declarant_eori: EORI number of the authorised declarant.
        carbon_price_paid: Carbon price effectively paid in the origin country.
        carbon_price_certificate: Proof reference for the carbon price paid.
        carbon_price_deduction_tco2e: Foreign carbon price expressed as a
            tCO2e deduction.
        document_language: Language of supporting documents.
        customs_declaration_reference: Customs declaration (MRN) reference.
        verification_status: Third-party verification state.
        default_value_used: Whether default values were used for emissions.
        markup_percentage: Markup applied to default values.
        free_allocation_percent: Previously computed free allocation percent.
        free_allocation_adjustment: Previously computed free allocation.
        certificates_required: Previously computed certificate count.
        import_date: Customs release date.
        created_at: Record creation timestamp.
        deviation_justification: Explanation for a material deviation.
        precursors: Precursor emissions consumed by the good.
    """

    entry_id: Optional[str] = Field(None, description="Record identifier")
    cn_code: Optional[str] = Field(None, description="8-digit CN code")
    product_description: Optional[str] = Field(None)
    country_of_origin: Optional[str] = Field(None)
    quantity: Optional[float] = Field(None)
    functional_unit: Optional[str] = Field(None)
    direct_emissions_specific: Optional[float] = Field(None)
    indirect_emissions_specific: Optional[float] = Field(None)
    total_embedded_emissions: Optional[float] = Field(None)
    calculation_method: Optional[str] = Field(None)
    reporting_period_year: Optional[int] = Field(None)
    production_year: Optional[int] = Field(None)
    production_route: Optional[str] = Field(None)
    installation_id: Optional[str] = Field(None)
    monitoring_plan_id: Optional[str] = Field(None)
    operator_report_id: Optional[str] = Field(None)
    declarant_eori: Optional[str] = Field(None)
    carbon_price_paid: Optional[float] = Field(None)
    carbon_price_certificate: Optional[str] = Field(None)
    carbon_price_deduction_tco2e: Optional[float] = Field(None)
    document_language: Optional[str] = Field(None)
    customs_declaration_reference: Optional[str] = Field(None)
    verification_status: Optional[str] = Field(None)
    default_value_used: Optional[bool] = Field(None)
    markup_percentage: Optional[float] = Field(None)
    free_allocation_percent: Optional[float] = Field(None)
    free_allocation_adjustment: Optional[float] = Field(None)
    certificates_required: Optional[int] = Field(None)
    import_date: Optional[date] = Field(None)
    created_at: Optional[datetime] = Field(None)
    deviation_justification: Optional[str] = Field(None)
    precursors: List[PrecursorEntry] = Field(default_factory=list)

    model_config = {"extra": "ignore", "allow_inf_nan": False}

    @field_validator("cn_code", mode="before")
    @classmethod
    def coerce_cn_code(cls, v: Any) -> Any:
        """Accept integer CN codes and strip surrounding whitespace."""
        if v is None:
            return v
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        if isinstance(v, str):
            return v.strip()
        return v

    @property
    def method(self) -> Optional[CalculationMethod]:
        """Parsed calculation method, None when missing or unrecognised."""
        return CalculationMethod.parse(self.calculation_method)

    @property
    def uses_actual_values(self) -> bool:
        method = self.method
        return method is not None and method.is_actual

    @property
    def reference(self) -> str:
        """Identifier used in findings: entry_id, else the CN code."""
        return self.entry_id or self.cn_code or "<unidentified>"


class SubmissionReport(BaseModel):
    """Quarterly CBAM report header.

    Attributes:
        report_id: Caller identifier of the report.
        reporting_year: Reporting year.
        reporting_quarter: Quarter (1-4).
        declarant_eori: EORI of the authorised declarant.
        declarant_name: Legal name of the declarant.
        member_state: Member state of the competent authority.
        certificates_surrendered: CBAM certificates surrendered.
    """

    report_id: Optional[str] = Field(None)
    reporting_year: Optional[int] = Field(None)
    reporting_quarter: Optional[int] = Field(None)
    declarant_eori: Optional[str] = Field(None)
    declarant_name: Optional[str] = Field(None)
    member_state: Optional[str] = Field(None)
    certificates_surrendered: float = Field(0.0, ge=0.0)

    model_config = {"extra": "ignore", "allow_inf_nan": False}


# =============================================================================
# Benchmark / calculation results
# =============================================================================


class BenchmarkResult(BaseModel):
    """Resolved benchmark for a CN code and production route."""

    cn_code: Optional[str] = Field(None)
    year: int = Field(CBAM_START_YEAR)
    value: Optional[float] = Field(None, description="tCO2e per functional unit")
    unit: Optional[FunctionalUnit] = Field(None)
    category: Optional[GoodsCategory] = Field(None)
    goods_family: Optional[GoodsFamily] = Field(None)
    route: Optional[str] = Field(None)
    route_source: Optional[RouteSource] = Field(None)
    requested_route: Optional[str] = Field(None)
    route_fallback: bool = Field(False)
    is_annex_ii: bool = Field(False)
    country_risk_tier: Optional[RiskTier] = Field(None)
    citation: str = Field("")
    regulatory_version: str = Field("")
    error: Optional[ErrorCategory] = Field(None)
    message: str = Field("")
    provenance_hash: str = Field("")

    model_config = {"extra": "forbid"}

    @property
    def resolved(self) -> bool:
        return self.error is None


class RouteSuggestion(BaseModel):
    """Advisory production-route guess from descriptive text and origin."""

    category: GoodsCategory
    suggested_route: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    matched_token: Optional[str] = Field(None)
    basis: str = Field("", description="Why this route was suggested")
    advisory: bool = Field(True)

    model_config = {"extra": "forbid"}


class RouteValidation(BaseModel):
    """Declared intensity compared against the route benchmark."""

    cn_code: str
    route: Optional[str] = Field(None)
    declared_intensity: float
    benchmark_value: Optional[float] = Field(None)
    deviation_percent: Optional[float] = Field(None)
    consistent: bool = Field(False)
    message: str = Field("")

    model_config = {"extra": "forbid"}


class FreeAllocationResult(BaseModel):
    """Free allocation granted against benchmark emissions for one year."""

    benchmark_value: float
    quantity: float
    year: int
    cbam_factor: float
    free_allocation_percent: float
    total_benchmark_emissions: float
    adjustment: float
    year_in_schedule: bool = Field(True)
    provenance_hash: str = Field("")

    model_config = {"extra": "forbid"}


class ChargeableEmissionsResult(BaseModel):
    """Chargeable emissions and certificate count."""

    chargeable: float = Field(..., ge=0.0)
    certificates_required: int = Field(..., ge=0)
    breakdown: Dict[str, float] = Field(default_factory=dict)
    provenance_hash: str = Field("")

    model_config = {"extra": "forbid"}


class PhaseOutYear(BaseModel):
    """One year of a phase-out projection."""

    year: int
    cbam_factor: float
    free_allocation_percent: float
    free_allocation_adjustment: float
    chargeable: float
    certificates_required: int
    estimated_cost: Optional[float] = Field(None)

    model_config = {"extra": "forbid"}


class PhaseOutProjection(BaseModel):
    """Per-year certificate trajectory over the phase-out period."""

    benchmark_value: float
    quantity: float
    total_embedded: float
    start_year: int
    end_year: int
    certificate_price: Optional[float] = Field(None)
    years: List[PhaseOutYear] = Field(default_factory=list)
    total_certificates: int = Field(0)
    total_estimated_cost: Optional[float] = Field(None)
    provenance_hash: str = Field("")

    model_config = {"extra": "forbid"}


class EntryCalculation(BaseModel):
    """Full calculation for one entry, including fields a caller persists."""

    entry_ref: str
    cn_code: Optional[str] = Field(None)
    year: int
    benchmark: BenchmarkResult
    direct_embedded: float = Field(0.0)
    indirect_embedded: float = Field(0.0)
    precursor_embedded: float = Field(0.0)
    markup_percent_applied: float = Field(0.0)
    total_embedded_emissions: float = Field(0.0)
    free_allocation: Optional[FreeAllocationResult] = Field(None)
    chargeable: ChargeableEmissionsResult
    error: Optional[ErrorCategory] = Field(None)
    provenance_hash: str = Field("")

    model_config = {"extra": "forbid"}

    def adjustment_fields(self) -> Dict[str, Any]:
        """Return the computed fields a caller writes back onto the entry."""
        fa = self.free_allocation
        return {
            "free_allocation_adjustment": fa.adjustment if fa else 0.0,
            "free_allocation_percent": fa.free_allocation_percent if fa else 0.0,
            "cbam_factor": fa.cbam_factor if fa else None,
            "certificates_required": self.chargeable.certificates_required,
        }


# =============================================================================
# Validation results
# =============================================================================


class ValidationIssue(BaseModel):
    """A single regulatory finding on a field.

    Attributes:
        field: Entry field the finding refers to.
        message: Human-readable description.
        citation: Regulation article backing the rule.
        severity: ``error`` blocks submission, ``warning`` is advisory.
        category: Taxonomy category of the finding.
    """

    field: str
    message: str
    citation: str = Field("")
    severity: Severity
    category: ErrorCategory

    model_config = {"extra": "forbid"}


class ValidationResult(BaseModel):
    """Outcome of validating one emission entry."""

    entry_ref: str
    valid: bool
    compliance_score: float = Field(..., ge=0.0, le=100.0)
    ready_for_submission: bool
    issues: List[ValidationIssue] = Field(default_factory=list)
    error_count: int = Field(0)
    warning_count: int = Field(0)
    provenance_hash: str = Field("")

    model_config = {"extra": "forbid"}

    @property
    def errors(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.ERROR]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.WARNING]


class BatchValidationResult(BaseModel):
    """Entry validation across a batch."""

    results: List[ValidationResult] = Field(default_factory=list)
    total: int = Field(0)
    valid_count: int = Field(0)
    ready_count: int = Field(0)
    average_score: float = Field(0.0)

    model_config = {"extra": "forbid"}


# =============================================================================
# Materiality
# =============================================================================


class MaterialityAssessment(BaseModel):
    """Deviation of one entry's direct intensity from its peer cohort."""

    entry_ref: str
    cn_code: Optional[str] = Field(None)
    status: MaterialityStatus
    assessable: bool
    is_material: bool
    requires_verifier_action: bool = Field(False)
    deviation_percent: Optional[float] = Field(None)
    entry_value: Optional[float] = Field(None)
    peer_average: Optional[float] = Field(None)
    peer_count: int = Field(0)
    threshold: float = Field(MATERIALITY_THRESHOLD_PERCENT)
    verifier_action_threshold: float = Field(VERIFIER_ACTION_THRESHOLD_PERCENT)
    citation: str = Field("")
    provenance_hash: str = Field("")

    model_config = {"extra": "forbid"}

    @property
    def assessment(self) -> str:
        """Status tag as a plain string."""
        return self.status.value


class CodeMaterialitySummary(BaseModel):
    """Materiality roll-up for one CN code."""

    cn_code: str
    entry_count: int
    material_count: int
    not_assessable_count: int
    material_ratio: float
    high_risk: bool

    model_config = {"extra": "forbid"}


class MaterialityBatchResult(BaseModel):
    """Materiality over a batch, grouped by CN code."""

    assessments: List[MaterialityAssessment] = Field(default_factory=list)
    by_code: List[CodeMaterialitySummary] = Field(default_factory=list)
    high_risk_codes: List[str] = Field(default_factory=list)
    material_count: int = Field(0)
    verifier_action_count: int = Field(0)
    not_assessable_count: int = Field(0)
    provenance_hash: str = Field("")

    model_config = {"extra": "forbid"}


# =============================================================================
# Data quality
# =============================================================================


class EmbeddedEmissionsCheck(BaseModel):
    """Declared total embedded emissions against quantity x intensity.

    Both figures are kept; neither is treated as authoritative.
    """

    declared_total: float
    computed_total: float
    deviation_percent: Optional[float] = Field(None)
    within_tolerance: bool

    model_config = {"extra": "forbid"}


class DataQualityScore(BaseModel):
    """Five-dimension weighted data quality score for one entry."""

    entry_ref: str
    completeness: float = Field(..., ge=0.0, le=100.0)
    accuracy: float = Field(..., ge=0.0, le=100.0)
    consistency: float = Field(..., ge=0.0, le=100.0)
    documentation: float = Field(..., ge=0.0, le=100.0)
    timeliness: float = Field(..., ge=0.0, le=100.0)
    weights: Dict[str, float] = Field(default_factory=dict)
    composite_score: float = Field(..., ge=0.0, le=100.0)
    rating: QualityRating
    recommendations: List[str] = Field(default_factory=list)
    findings: List[str] = Field(default_factory=list)
    embedded_emissions_check: Optional[EmbeddedEmissionsCheck] = Field(None)
    provenance_hash: str = Field("")

    model_config = {"extra": "forbid"}


class DataQualityBatchResult(BaseModel):
    """Data quality across a batch."""

    scores: List[DataQualityScore] = Field(default_factory=list)
    average_composite: float = Field(0.0)
    rating_distribution: Dict[str, int] = Field(default_factory=dict)

    model_config = {"extra": "forbid"}


# =============================================================================
# EORI
# =============================================================================


class EORIResult(BaseModel):
    """Outcome of validating one EORI identifier."""

    input: Optional[str] = Field(None)
    normalized: str = Field("")
    country_code: Optional[str] = Field(None)
    valid: bool
    failure_reason: Optional[EORIFailureReason] = Field(None)
    message: str = Field("")
    country_pattern_checked: bool = Field(False)
    checksum_status: ChecksumStatus = Field(ChecksumStatus.NOT_VALIDATED)
    expected_member_state: Optional[str] = Field(None)
    citation: str = Field("")
    provenance_hash: str = Field("")

    model_config = {"extra": "forbid"}


class EORIBatchResult(BaseModel):
    """EORI validation across many identifiers."""

    results: List[EORIResult] = Field(default_factory=list)
    total: int = Field(0)
    valid_count: int = Field(0)
    invalid_count: int = Field(0)
    failures_by_message: Dict[str, int] = Field(default_factory=dict)

    model_config = {"extra": "forbid"}

    @property
    def pass_rate(self) -> float:
        return self.valid_count / self.total if self.total else 0.0


# =============================================================================
# Submission readiness
# =============================================================================


class SubmissionIssue(BaseModel):
    """A finding surfaced by the submission readiness check."""

    source: str = Field(..., description="metadata, entry_validation, eori, "
                                         "certificates, verification, materiality, "
                                         "data_quality or volume")
    entry_ref: Optional[str] = Field(None)
    field: str = Field("")
    message: str
    citation: str = Field("")
    severity: Severity
    category: Optional[ErrorCategory] = Field(None)

    model_config = {"extra": "forbid"}

    def describe(self) -> str:
        """One-line description used for blocking reasons."""
        where = f"[{self.entry_ref}] " if self.entry_ref else ""
        field = f"{self.field}: " if self.field else ""
        return f"{where}{field}{self.message}"


class EntryReadiness(BaseModel):
    """All per-entry sub-check results."""

    entry_ref: str
    validation: ValidationResult
    materiality: MaterialityAssessment
    data_quality: DataQualityScore
    eori: EORIResult
    certificates_required: int = Field(0)

    model_config = {"extra": "forbid"}


class CertificateBalance(BaseModel):
    """Certificates required across the batch against those surrendered."""

    total_required: int = Field(0)
    surrendered: float = Field(0.0)
    shortfall: float = Field(0.0)
    sufficient: bool = Field(True)

    model_config = {"extra": "forbid"}


class ReadinessComponents(BaseModel):
    """Weighted contributions to the readiness score (points)."""

    metadata: float = Field(0.0)
    compliance: float = Field(0.0)
    eori: float = Field(0.0)
    data_quality: float = Field(0.0)
    certificates: float = Field(0.0)
    verification: float = Field(0.0)

    model_config = {"extra": "forbid"}

    @property
    def total(self) -> float:
        return (
            self.metadata + self.compliance + self.eori
            + self.data_quality + self.certificates + self.verification
        )


class SubmissionReadiness(BaseModel):
    """Aggregate verdict for a quarterly report and its entries."""

    report_id: Optional[str] = Field(None)
    can_submit: bool
    ready_for_submission: bool
    readiness_score: float = Field(..., ge=0.0, le=100.0)
    components: ReadinessComponents
    errors: List[SubmissionIssue] = Field(default_factory=list)
    warnings: List[SubmissionIssue] = Field(default_factory=list)
    blocking_reasons: List[str] = Field(default_factory=list)
    submission_deadline: Optional[date] = Field(None)
    days_until_deadline: Optional[int] = Field(None)
    entry_count: int = Field(0)
    total_quantity: float = Field(0.0)
    compliance_rate: float = Field(0.0)
    eori_pass_rate: float = Field(0.0)
    average_data_quality: float = Field(0.0)
    verification_rate: float = Field(0.0)
    certificate_balance: CertificateBalance = Field(default_factory=CertificateBalance)
    high_risk_codes: List[str] = Field(default_factory=list)
    entries: List[EntryReadiness] = Field(default_factory=list)
    evaluated_at: datetime = Field(default_factory=_utcnow)
    provenance_hash: str = Field("")

    model_config = {"extra": "forbid"}


__all__ = [
    # Constants
    "CBAM_START_YEAR",
    "MATERIALITY_THRESHOLD_PERCENT",
    "VERIFIER_ACTION_THRESHOLD_PERCENT",
    # Enumerations
    "GoodsFamily",
    "GoodsCategory",
    "FunctionalUnit",
    "CalculationMethod",
    "VerificationStatus",
    "Severity",
    "ErrorCategory",
    "RouteSource",
    "RiskTier",
    "MaterialityStatus",
    "QualityRating",
    "ChecksumStatus",
    "EORIFailureReason",
    # Inputs
    "PrecursorEntry",
    "EmissionEntry",
    "SubmissionReport",
    # Results
    "BenchmarkResult",
    "RouteSuggestion",
    "RouteValidation",
    "FreeAllocationResult",
    "ChargeableEmissionsResult",
    "PhaseOutYear",
    "PhaseOutProjection",
    "EntryCalculation",
    "ValidationIssue",
    "ValidationResult",
    "BatchValidationResult",
    "MaterialityAssessment",
    "CodeMaterialitySummary",
    "MaterialityBatchResult",
    "EmbeddedEmissionsCheck",
    "DataQualityScore",
    "DataQualityBatchResult",
    "EORIResult",
    "EORIBatchResult",
    "SubmissionIssue",
    "EntryReadiness",
    "CertificateBalance",
    "ReadinessComponents",
    "SubmissionReadiness",
]
