"""Tests for EntryValidator.

Covers:
- Mandatory fields, CN code format and reporting period rules
- Method-specific requirements (default values, actual values)
- Carbon price, language and customs rules
- Free allocation and indirect emission cross-checks
- Precursor checks
- Scoring, readiness and batch summaries

Author: GreenLang CBAM Team
Date: March 2026
Status: Production Ready
"""

import pytest

from cbam_engine.entry_validator import EntryValidator, compliance_score
from cbam_engine.exceptions import InvalidInputError
from cbam_engine.models import ErrorCategory, Severity


@pytest.fixture
def validator(config, tracker, tables):
    return EntryValidator(config, tracker, tables)


def _fields(result, severity=None):
    return [
        issue.field for issue in result.issues
        if severity is None or issue.severity == severity
    ]


# ==============================================================================
# Baseline
# ==============================================================================

class TestValidEntry:
    """Tests for a fully compliant entry."""

    def test_no_issues(self, validator, valid_entry, as_of):
        """A complete entry has no findings."""
        result = validator.validate_entry(valid_entry, today=as_of)

        assert result.issues == []
        assert result.valid is True
        assert result.compliance_score == 100.0
        assert result.ready_for_submission is True
        assert result.entry_ref == "HRC-001"

    def test_provenance_recorded(self, validator, valid_entry, tracker, as_of):
        """Validation is recorded on the provenance chain."""
        result = validator.validate_entry(valid_entry, today=as_of)

        chain = tracker.get_chain("entry_validation", "HRC-001")
        assert chain[-1]["data_hash"] == result.provenance_hash

    def test_integer_cn_code_accepted(self, validator, make_entry, as_of):
        """Integer CN codes are coerced to strings."""
        result = validator.validate_entry(make_entry(cn_code=72083900), today=as_of)

        assert result.valid is True


class TestComplianceScore:
    """Tests for compliance_score."""

    @pytest.mark.parametrize("errors,warnings,expected", [
        (0, 0, 100.0),
        (1, 0, 80.0),
        (0, 3, 85.0),
        (2, 2, 50.0),
        (6, 0, 0.0),
    ])
    def test_score(self, errors, warnings, expected):
        """Errors cost 20 points and warnings 5, floored at zero."""
        assert compliance_score(errors, warnings) == expected


# ==============================================================================
# Rules
# ==============================================================================

class TestFormatRules:
    """Tests for field format rules."""

    def test_cn_code_length(self, validator, make_entry, as_of):
        """A 7-digit CN code yields one InvalidFormat error."""
        result = validator.validate_entry(make_entry(cn_code="7208390"), today=as_of)

        assert len(result.errors) == 1
        assert result.errors[0].field == "cn_code"
        assert result.errors[0].category == ErrorCategory.INVALID_FORMAT
        assert result.compliance_score == 80.0
        assert result.valid is False
        assert result.ready_for_submission is False

    def test_cn_code_digits(self, validator, make_entry, as_of):
        """CN codes must be numeric."""
        result = validator.validate_entry(make_entry(cn_code="7208AB00"), today=as_of)

        assert _fields(result, Severity.ERROR) == ["cn_code"]

    def test_missing_cn_code(self, validator, make_entry, as_of):
        """A missing CN code is a missing required field."""
        result = validator.validate_entry(make_entry(cn_code=None), today=as_of)

        assert result.errors[0].category == ErrorCategory.MISSING_REQUIRED_FIELD

    def test_unknown_functional_unit(self, validator, make_entry, as_of):
        """Units outside the closed set are rejected."""
        result = validator.validate_entry(make_entry(functional_unit="kg"), today=as_of)

        assert _fields(result, Severity.ERROR) == ["functional_unit"]

    def test_unit_spelling_variants(self, validator, make_entry, as_of):
        """Hyphenated unit spellings are accepted."""
        result = validator.validate_entry(
            make_entry(functional_unit="Tonnes-Clinker"), today=as_of,
        )

        assert "functional_unit" not in _fields(result)

    def test_eori_pattern(self, validator, make_entry, as_of):
        """Entry EORIs need 12-15 characters after the country."""
        result = validator.validate_entry(make_entry(declarant_eori="NL123"), today=as_of)

        assert _fields(result, Severity.ERROR) == ["declarant_eori"]

    def test_missing_eori_not_an_entry_error(self, validator, make_entry, as_of):
        """The declarant identifier is checked at report level when absent."""
        result = validator.validate_entry(make_entry(declarant_eori=None), today=as_of)

        assert "declarant_eori" not in _fields(result)


class TestMandatoryRules:
    """Tests for mandatory field and range rules."""

    def test_missing_country(self, validator, make_entry, as_of):
        """Country of origin is required."""
        result = validator.validate_entry(make_entry(country_of_origin=" "), today=as_of)

        assert _fields(result, Severity.ERROR) == ["country_of_origin"]

    def test_pre_regime_year(self, validator, make_entry, as_of):
        """Reporting years before 2026 are out of range."""
        result = validator.validate_entry(
            make_entry(reporting_period_year=2025), today=as_of,
        )

        errors = result.errors
        assert errors[0].field == "reporting_period_year"
        assert errors[0].category == ErrorCategory.OUT_OF_RANGE

    def test_future_production_year(self, validator, make_entry, as_of):
        """Production years after the evaluation date are rejected."""
        result = validator.validate_entry(make_entry(production_year=2027), today=as_of)

        assert _fields(result, Severity.ERROR) == ["production_year"]

    @pytest.mark.parametrize("field,value", [
        ("quantity", 0),
        ("quantity", -5),
        ("direct_emissions_specific", 0),
    ])
    def test_non_positive_values(self, validator, make_entry, as_of, field, value):
        """Quantity and direct intensity must be positive."""
        result = validator.validate_entry(make_entry(**{field: value}), today=as_of)

        assert field in _fields(result, Severity.ERROR)


class TestMethodRules:
    """Tests for calculation method rules."""

    def test_default_values_without_route(self, validator, make_entry, as_of):
        """Default values need a production route."""
        entry = make_entry(calculation_method="Default_values", production_route=None)

        result = validator.validate_entry(entry, today=as_of)

        violations = [
            i for i in result.issues
            if i.category == ErrorCategory.REGULATORY_RULE_VIOLATION
        ]
        assert len(violations) == 1
        assert violations[0].field == "production_route"
        assert violations[0].severity == Severity.ERROR

    def test_default_values_indirect_warning(self, validator, make_entry, as_of):
        """Indirect emissions on non-Annex II default values are flagged."""
        entry = make_entry(calculation_method="Default_values")

        result = validator.validate_entry(entry, today=as_of)

        assert _fields(result, Severity.WARNING) == ["indirect_emissions_specific"]
        assert result.valid is True

    @pytest.mark.parametrize("method", ["EU_method", "actual_values"])
    def test_actual_values_need_installation(self, validator, make_entry, as_of, method):
        """Actual-value methods need installation and monitoring plan."""
        entry = make_entry(
            calculation_method=method, installation_id=None, monitoring_plan_id=None,
        )

        result = validator.validate_entry(entry, today=as_of)

        assert _fields(result, Severity.ERROR) == ["installation_id", "monitoring_plan_id"]

    def test_missing_method_is_warning(self, validator, make_entry, as_of):
        """An undeclared method is a warning only."""
        result = validator.validate_entry(make_entry(calculation_method=None), today=as_of)

        assert _fields(result, Severity.WARNING) == ["calculation_method"]
        assert result.valid is True

    def test_unrecognised_method(self, validator, make_entry, as_of):
        """Unknown method labels are flagged."""
        result = validator.validate_entry(make_entry(calculation_method="guess"), today=as_of)

        warning = result.warnings[0]
        assert warning.field == "calculation_method"
        assert warning.category == ErrorCategory.INVALID_FORMAT


class TestDocumentRules:
    """Tests for carbon price, language and customs rules."""

    def test_carbon_price_without_proof(self, validator, make_entry, as_of):
        """A declared carbon price needs a certificate."""
        result = validator.validate_entry(
            make_entry(carbon_price_certificate=None), today=as_of,
        )

        assert _fields(result, Severity.ERROR) == ["carbon_price_certificate"]

    def test_non_english_documents(self, validator, make_entry, as_of):
        """Supporting documents must be in English."""
        result = validator.validate_entry(make_entry(document_language="de"), today=as_of)

        assert _fields(result, Severity.ERROR) == ["document_language"]

    def test_missing_customs_reference(self, validator, make_entry, as_of):
        """A missing customs reference is a warning."""
        result = validator.validate_entry(
            make_entry(customs_declaration_reference=None), today=as_of,
        )

        assert _fields(result, Severity.WARNING) == ["customs_declaration_reference"]
        assert result.compliance_score == 95.0
        assert result.ready_for_submission is True


class TestCrossFieldRules:
    """Tests for cross-field consistency rules."""

    def test_free_allocation_matches_schedule(self, validator, make_entry, as_of):
        """97.5% matches the 2026 schedule."""
        result = validator.validate_entry(
            make_entry(free_allocation_percent=97.5), today=as_of,
        )

        assert result.issues == []

    def test_free_allocation_mismatch(self, validator, make_entry, as_of):
        """A free allocation away from the schedule is flagged."""
        result = validator.validate_entry(
            make_entry(free_allocation_percent=90.0), today=as_of,
        )

        assert _fields(result, Severity.WARNING) == ["free_allocation_percent"]

    def test_intensity_outside_typical_range(self, validator, make_entry, as_of):
        """Intensities outside the sector range are flagged."""
        result = validator.validate_entry(
            make_entry(direct_emissions_specific=5.0), today=as_of,
        )

        assert _fields(result, Severity.WARNING) == ["direct_emissions_specific"]


class TestPrecursorRules:
    """Tests for precursor checks."""

    def test_complete_precursor(self, validator, make_entry, as_of):
        """A fully described precursor raises nothing."""
        entry = make_entry(precursors=[{
            "cn_code": "72011000", "emissions_embedded": 12.0,
            "production_installation_id": "CN-BF-01", "production_year": 2026,
        }])

        assert validator.validate_entry(entry, today=as_of).issues == []

    def test_incomplete_precursor(self, validator, make_entry, as_of):
        """Missing emissions, installation and year are reported."""
        entry = make_entry(precursors=[{"cn_code": "72011000"}])

        result = validator.validate_entry(entry, today=as_of)

        assert _fields(result, Severity.ERROR) == ["precursors[0].emissions_embedded"]
        assert _fields(result, Severity.WARNING) == [
            "precursors[0].production_installation_id",
            "precursors[0].production_year",
        ]

    def test_precursor_year_needs_evidence(self, validator, make_entry, as_of):
        """A precursor from another year needs evidence."""
        precursor = {
            "emissions_embedded": 3.0,
            "production_installation_id": "CN-BF-01",
            "production_year": 2025,
        }
        without = validator.validate_entry(make_entry(precursors=[precursor]), today=as_of)
        precursor["evidence_url"] = "https://evidence.example/bf-01-2025.pdf"
        with_evidence = validator.validate_entry(
            make_entry(precursors=[precursor]), today=as_of,
        )

        assert without.warnings[0].category == ErrorCategory.CROSS_FIELD_INCONSISTENCY
        assert with_evidence.issues == []


# ==============================================================================
# Contract violations and batches
# ==============================================================================

class TestInvalidInput:
    """Tests for inputs that cannot be parsed."""

    def test_non_mapping(self, validator):
        """Lists are not entries."""
        with pytest.raises(InvalidInputError):
            validator.validate_entry(["72083900"])

    def test_unparsable_quantity(self, validator, make_entry):
        """A non-numeric quantity cannot be parsed."""
        with pytest.raises(InvalidInputError) as info:
            validator.validate_entry(make_entry(quantity="lots"))

        assert "quantity" in info.value.context["invalid_fields"]

    @pytest.mark.parametrize("field,value", [
        ("quantity", float("nan")),
        ("direct_emissions_specific", float("nan")),
        ("indirect_emissions_specific", float("inf")),
        ("free_allocation_percent", float("-inf")),
        ("quantity", "NaN"),
    ])
    def test_non_finite_numbers(self, validator, make_entry, as_of, field, value):
        """NaN and infinity are rejected rather than validated."""
        with pytest.raises(InvalidInputError) as info:
            validator.validate_entry(make_entry(**{field: value}), today=as_of)

        assert field in info.value.context["invalid_fields"]

    def test_non_finite_precursor(self, validator, make_entry, as_of):
        """Precursor amounts must be finite too."""
        entry = make_entry(precursors=[{
            "cn_code": "72011000", "quantity": 1.0, "emissions_embedded": float("nan"),
        }])

        with pytest.raises(InvalidInputError):
            validator.validate_entry(entry, today=as_of)

    def test_unknown_fields_ignored(self, validator, make_entry, as_of):
        """Extra fields do not affect validation."""
        result = validator.validate_entry(make_entry(internal_note="x"), today=as_of)

        assert result.valid is True


class TestValidateBatch:
    """Tests for validate_batch."""

    def test_summary(self, validator, valid_entry, make_entry, as_of):
        """The batch reports counts and the average score."""
        batch = validator.validate_batch(
            [valid_entry, make_entry(entry_id="HRC-002", cn_code="7208")], today=as_of,
        )

        assert batch.total == 2
        assert batch.valid_count == 1
        assert batch.ready_count == 1
        assert batch.average_score == 90.0
