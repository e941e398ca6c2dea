"""Tests for SubmissionReadinessOrchestrator.

Covers:
- The ready path for a complete report
- Blocking errors (metadata, deadline, EORI, certificates, empty reports)
- Non-blocking warnings (materiality, verification, checksum, de minimis)
- Readiness score components
- Parallel per-entry checks and determinism

Author: GreenLang CBAM Team
Date: March 2026
Status: Production Ready
"""

from datetime import date

import pytest

from cbam_engine.config import CBAMEngineConfig
from cbam_engine.exceptions import InvalidInputError
from cbam_engine.models import Severity
from cbam_engine.submission_readiness import (
    READINESS_WEIGHTS,
    SubmissionReadinessOrchestrator,
    submission_deadline,
)


@pytest.fixture
def orchestrator(config, tracker, tables):
    return SubmissionReadinessOrchestrator(config, tracker, tables)


def _sources(issues):
    return [issue.source for issue in issues]


# ==============================================================================
# Ready path
# ==============================================================================

class TestReadyReport:
    """Tests for a complete, compliant report."""

    def test_ready(self, orchestrator, valid_report, valid_entry, as_of):
        """A compliant report is ready with a perfect score."""
        verdict = orchestrator.validate_for_submission(valid_report, [valid_entry], as_of=as_of)

        assert verdict.errors == []
        assert verdict.warnings == []
        assert verdict.can_submit is True
        assert verdict.ready_for_submission is True
        assert verdict.readiness_score == 100.0
        assert verdict.submission_deadline == date(2026, 7, 31)
        assert verdict.days_until_deadline == 30
        assert verdict.certificate_balance.total_required == 67
        assert verdict.certificate_balance.sufficient is True
        assert verdict.entry_count == 1
        assert verdict.total_quantity == 100.0

    def test_entry_details(self, orchestrator, valid_report, valid_entry, as_of):
        """Per-entry results are attached."""
        verdict = orchestrator.validate_for_submission(valid_report, [valid_entry], as_of=as_of)

        entry = verdict.entries[0]
        assert entry.entry_ref == "HRC-001"
        assert entry.validation.valid is True
        assert entry.eori.valid is True
        assert entry.data_quality.composite_score == 100.0
        assert entry.materiality.assessable is False

    def test_deterministic_hash(self, orchestrator, valid_report, valid_entry, as_of):
        """Identical inputs give identical provenance hashes."""
        first = orchestrator.validate_for_submission(valid_report, [valid_entry], as_of=as_of)
        second = orchestrator.validate_for_submission(valid_report, [valid_entry], as_of=as_of)

        assert first.provenance_hash == second.provenance_hash

    def test_declared_certificates_used(self, orchestrator, valid_report, make_entry, as_of):
        """An entry's own certificate figure takes precedence."""
        report = dict(valid_report, certificates_surrendered=5)

        verdict = orchestrator.validate_for_submission(
            report, [make_entry(certificates_required=5)], as_of=as_of,
        )

        assert verdict.certificate_balance.total_required == 5
        assert verdict.can_submit is True


# ==============================================================================
# Blocking errors
# ==============================================================================

class TestBlockingErrors:
    """Tests for findings that block submission."""

    def test_no_entries(self, orchestrator, valid_report, as_of):
        """An empty report cannot be submitted."""
        verdict = orchestrator.validate_for_submission(valid_report, [], as_of=as_of)

        assert verdict.can_submit is False
        assert _sources(verdict.errors) == ["entries"]
        assert verdict.readiness_score == 35.0

    def test_certificate_shortfall(self, orchestrator, valid_report, valid_entry, as_of):
        """Too few surrendered certificates block submission."""
        report = dict(valid_report, certificates_surrendered=10)

        verdict = orchestrator.validate_for_submission(report, [valid_entry], as_of=as_of)

        assert verdict.can_submit is False
        assert _sources(verdict.errors) == ["certificates"]
        assert verdict.certificate_balance.shortfall == 57.0
        assert verdict.components.certificates == pytest.approx(10 * 10 / 67, abs=1e-4)
        assert "shortfall of 57" in verdict.blocking_reasons[0]

    def test_deadline_passed(self, orchestrator, valid_report, valid_entry):
        """A missed deadline is an error."""
        verdict = orchestrator.validate_for_submission(
            valid_report, [valid_entry], as_of=date(2026, 8, 5),
        )

        assert verdict.can_submit is False
        assert verdict.days_until_deadline == -5
        assert verdict.errors[0].field == "reporting_quarter"

    def test_metadata_errors(self, orchestrator, valid_report, valid_entry, as_of):
        """Missing quarter and a non-EU member state are errors."""
        report = dict(valid_report, member_state="XX")
        report.pop("reporting_quarter")

        verdict = orchestrator.validate_for_submission(report, [valid_entry], as_of=as_of)

        fields = [i.field for i in verdict.errors if i.source == "metadata"]
        assert fields == ["reporting_quarter", "member_state"]
        assert verdict.submission_deadline is None
        assert verdict.components.metadata == 0.0

    def test_eori_country_mismatch(self, orchestrator, valid_report, make_entry, as_of):
        """The declarant EORI must belong to the report's member state."""
        report = dict(valid_report, declarant_eori="DE9876543210")
        entry = make_entry(declarant_eori=None)

        verdict = orchestrator.validate_for_submission(report, [entry], as_of=as_of)

        assert _sources(verdict.errors) == ["eori"]
        assert verdict.eori_pass_rate == 0.0
        assert verdict.components.eori == 0.0

    def test_invalid_entry(self, orchestrator, valid_report, make_entry, as_of):
        """Entry validation errors are carried with the entry reference."""
        verdict = orchestrator.validate_for_submission(
            valid_report, [make_entry(cn_code="7208390")], as_of=as_of,
        )

        error = verdict.errors[0]
        assert error.source == "entry_validation"
        assert error.entry_ref == "HRC-001"
        assert verdict.blocking_reasons[0].startswith("[HRC-001] cn_code:")
        assert verdict.compliance_rate == 0.0

    def test_invalid_report_shape(self, orchestrator):
        """A report that is not a mapping is a contract violation."""
        with pytest.raises(InvalidInputError):
            orchestrator.validate_for_submission(["RPT-1"], [])

    @pytest.mark.parametrize("field", ["quantity", "direct_emissions_specific"])
    def test_non_finite_entry(self, orchestrator, valid_report, make_entry, as_of, field):
        """A NaN amount is a contract violation, not a blocking finding."""
        entries = [make_entry(**{field: float("nan")})]

        with pytest.raises(InvalidInputError):
            orchestrator.validate_for_submission(valid_report, entries, as_of=as_of)

    def test_non_finite_surrender(self, orchestrator, valid_report, valid_entry, as_of):
        """Surrendered certificates must be finite."""
        report = dict(valid_report, certificates_surrendered=float("inf"))

        with pytest.raises(InvalidInputError):
            orchestrator.validate_for_submission(report, [valid_entry], as_of=as_of)


# ==============================================================================
# Warnings
# ==============================================================================

class TestWarnings:
    """Tests for findings that do not block submission."""

    def test_deadline_near(self, orchestrator, valid_report, valid_entry):
        """A deadline within seven days is a warning."""
        verdict = orchestrator.validate_for_submission(
            valid_report, [valid_entry], as_of=date(2026, 7, 26),
        )

        assert verdict.can_submit is True
        assert verdict.days_until_deadline == 5
        assert _sources(verdict.warnings) == ["metadata"]

    def test_material_deviation(self, orchestrator, valid_report, valid_entry, make_entry, as_of):
        """Material deviations are warnings and flag the CN code."""
        peer = make_entry(
            entry_id="HRC-002", direct_emissions_specific=1.0, total_embedded_emissions=100.0,
        )

        verdict = orchestrator.validate_for_submission(
            valid_report, [valid_entry, peer], as_of=as_of,
        )

        assert verdict.can_submit is True
        assert _sources(verdict.warnings) == ["materiality", "materiality"]
        assert "no justification provided" in verdict.warnings[0].message
        assert verdict.high_risk_codes == ["72083900"]

    def test_unverified_actual_values(self, orchestrator, valid_report, make_entry, as_of):
        """Actual values without satisfactory verification lower the score."""
        verdict = orchestrator.validate_for_submission(
            valid_report, [make_entry(verification_status="pending")], as_of=as_of,
        )

        assert verdict.can_submit is True
        assert verdict.ready_for_submission is False
        assert _sources(verdict.warnings) == ["verification"]
        assert verdict.verification_rate == 0.0
        assert verdict.readiness_score == 89.25

    def test_checksum_warning(self, orchestrator, valid_report, make_entry, as_of):
        """A failing NL checksum is a warning when not enforced."""
        report = dict(valid_report, declarant_eori="NL123456780")

        verdict = orchestrator.validate_for_submission(
            report, [make_entry(declarant_eori=None)], as_of=as_of,
        )

        assert verdict.can_submit is True
        assert "eori" in _sources(verdict.warnings)

    def test_strict_checksum_blocks(self, tracker, tables, valid_report, make_entry, as_of):
        """Strict checksum mode turns the warning into an error."""
        orchestrator = SubmissionReadinessOrchestrator(
            CBAMEngineConfig(eori_strict_checksum=True), tracker, tables,
        )
        report = dict(valid_report, declarant_eori="NL123456780")

        verdict = orchestrator.validate_for_submission(
            report, [make_entry(declarant_eori=None)], as_of=as_of,
        )

        assert verdict.can_submit is False
        assert _sources(verdict.errors) == ["eori"]

    def test_de_minimis(self, orchestrator, valid_report, make_entry, as_of):
        """Small tonnages may be exempt."""
        entry = make_entry(quantity=40.0, total_embedded_emissions=72.0)

        verdict = orchestrator.validate_for_submission(valid_report, [entry], as_of=as_of)

        assert _sources(verdict.warnings) == ["volume"]
        assert verdict.can_submit is True

    def test_poor_data_quality(self, orchestrator, valid_report, as_of):
        """Entries with poor data quality are flagged."""
        verdict = orchestrator.validate_for_submission(
            valid_report, [{"entry_id": "X-1", "cn_code": "72083900"}], as_of=as_of,
        )

        assert "data_quality" in _sources(verdict.warnings)
        assert verdict.can_submit is False


# ==============================================================================
# Components and helpers
# ==============================================================================

class TestHelpers:
    """Tests for deadline and scoring helpers."""

    @pytest.mark.parametrize("year,quarter,expected", [
        (2026, 1, date(2026, 4, 30)),
        (2026, 2, date(2026, 7, 31)),
        (2026, 3, date(2026, 10, 31)),
        (2026, 4, date(2027, 1, 31)),
    ])
    def test_submission_deadline(self, year, quarter, expected):
        """Reports are due at the end of the month after the quarter."""
        assert submission_deadline(year, quarter) == expected

    def test_invalid_quarter(self, orchestrator):
        """Quarters outside 1-4 are rejected."""
        with pytest.raises(InvalidInputError):
            orchestrator.get_submission_deadline(2026, 5)

    def test_weights_total_100(self):
        """Component weights add up to 100 points."""
        assert sum(READINESS_WEIGHTS.values()) == 100.0

    def test_certificate_balance(self, orchestrator):
        """Surplus certificates are not a shortfall."""
        balance = orchestrator.validate_certificate_balance([10, 5], 20)

        assert balance.total_required == 15
        assert balance.shortfall == 0.0
        assert balance.sufficient is True

    def test_metadata_only(self, orchestrator, valid_report, as_of):
        """Metadata checks can run on their own."""
        issues, deadline, days = orchestrator.validate_report_metadata(valid_report, as_of)

        assert issues == []
        assert deadline == date(2026, 7, 31)
        assert days == 30


class TestParallelChecks:
    """Tests for the per-entry thread pool."""

    def test_order_preserved(self, tracker, tables, valid_report, make_entry, as_of):
        """Parallel and sequential runs return entries in input order."""
        entries = [make_entry(entry_id=f"HRC-{i:03d}") for i in range(6)]
        report = dict(valid_report, certificates_surrendered=6 * 67)
        parallel = SubmissionReadinessOrchestrator(
            CBAMEngineConfig(enable_parallel=True, max_workers=3), tracker, tables,
        )
        sequential = SubmissionReadinessOrchestrator(
            CBAMEngineConfig(enable_parallel=False), tracker, tables,
        )

        first = parallel.validate_for_submission(report, entries, as_of=as_of)
        second = sequential.validate_for_submission(report, entries, as_of=as_of)

        refs = [e.entry_ref for e in first.entries]
        assert refs == [f"HRC-{i:03d}" for i in range(6)]
        assert refs == [e.entry_ref for e in second.entries]
        assert first.readiness_score == second.readiness_score
        assert all(issue.severity == Severity.WARNING for issue in first.warnings)
