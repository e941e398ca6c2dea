"""Tests for the gl-cbam command line.

Author: GreenLang CBAM Team
Date: March 2026
Status: Production Ready
"""

import json

import pytest
import yaml
from typer.testing import CliRunner

from cbam_engine.cli import app

runner = CliRunner()


class TestBenchmarkCommand:
    """Tests for gl-cbam benchmark."""

    def test_resolved(self):
        """A known CN code resolves and exits 0."""
        result = runner.invoke(app, ["benchmark", "72083900", "--route", "bf_bof_route"])

        assert result.exit_code == 0
        assert "iron_steel" in result.stdout or "Benchmark 72083900" in result.stdout

    def test_json(self):
        """--json prints the raw result."""
        result = runner.invoke(app, ["benchmark", "72083900", "--json"])

        assert result.exit_code == 0
        assert json.loads(result.stdout)["cn_code"] == "72083900"

    def test_unclassified(self):
        """An unclassified code exits 1."""
        result = runner.invoke(app, ["benchmark", "99999999"])

        assert result.exit_code == 1


class TestFreeAllocationCommand:
    """Tests for gl-cbam free-allocation."""

    def test_json(self):
        """--json prints the allocation result."""
        result = runner.invoke(
            app, ["free-allocation", "-b", "1.37", "-q", "100", "-y", "2030", "--json"],
        )

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["adjustment"] == pytest.approx(70.2125)
        assert payload["year"] == 2030

    def test_table_with_embedded(self):
        """The table shows chargeable emissions and certificates."""
        result = runner.invoke(
            app, ["free-allocation", "-b", "1.37", "-q", "100", "-y", "2030", "-e", "120"],
        )

        assert result.exit_code == 0
        assert "49.7875" in result.stdout

    def test_non_numeric_benchmark(self):
        """Non-numeric options are rejected by the parser."""
        result = runner.invoke(app, ["free-allocation", "-b", "high", "-q", "100"])

        assert result.exit_code == 2


class TestProjectCommand:
    """Tests for gl-cbam project."""

    def test_inverted_years(self):
        """An end year before the start year exits 1."""
        result = runner.invoke(
            app, ["project", "-b", "1.37", "-q", "100", "--start", "2030", "--end", "2028"],
        )

        assert result.exit_code == 1

    def test_overlong_span(self):
        """Projections longer than the maximum span exit 1."""
        result = runner.invoke(
            app, ["project", "-b", "1.37", "-q", "100", "--end", "22026"],
        )

        assert result.exit_code == 1

    def test_projection(self):
        """The projection covers the requested years."""
        result = runner.invoke(
            app, ["project", "-b", "1.37", "-q", "100", "-e", "120", "--json"],
        )

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert [row["year"] for row in payload["years"]] == list(range(2026, 2035))


class TestValidateCommand:
    """Tests for gl-cbam validate."""

    def test_valid_file(self, tmp_path, valid_entry):
        """A file of valid entries exits 0."""
        path = tmp_path / "entries.json"
        path.write_text(json.dumps({"entries": [valid_entry]}), encoding="utf-8")

        result = runner.invoke(app, ["validate", str(path), "--as-of", "2026-07-01"])

        assert result.exit_code == 0
        assert "HRC-001" in result.stdout

    def test_invalid_entry(self, tmp_path, valid_entry, make_entry):
        """Any invalid entry makes the command exit 1."""
        path = tmp_path / "entries.yaml"
        bad = make_entry(entry_id="HRC-002", cn_code="7208")
        path.write_text(yaml.safe_dump([valid_entry, bad]), encoding="utf-8")

        result = runner.invoke(app, ["validate", str(path), "--as-of", "2026-07-01"])

        assert result.exit_code == 1
        assert "exactly 8 characters" in result.stdout

    def test_missing_file(self, tmp_path):
        """A missing file exits 1."""
        result = runner.invoke(app, ["validate", str(tmp_path / "nope.json")])

        assert result.exit_code == 1

    def test_unsupported_format(self, tmp_path):
        """Only JSON and YAML are accepted."""
        path = tmp_path / "entries.csv"
        path.write_text("cn_code\n72083900\n", encoding="utf-8")

        result = runner.invoke(app, ["validate", str(path)])

        assert result.exit_code == 1


class TestEORICommand:
    """Tests for gl-cbam eori."""

    def test_valid(self):
        """Valid identifiers exit 0."""
        result = runner.invoke(app, ["eori", "NL123456789", "DE9876543210"])

        assert result.exit_code == 0

    def test_invalid(self):
        """Any invalid identifier exits 1."""
        result = runner.invoke(app, ["eori", "NL123456789", "XX123", "--json"])

        assert result.exit_code == 1
        assert json.loads(result.stdout)["invalid_count"] == 1


class TestReadinessCommand:
    """Tests for gl-cbam readiness."""

    def test_ready(self, tmp_path, valid_report, valid_entry):
        """A ready report exits 0."""
        path = tmp_path / "report.json"
        path.write_text(
            json.dumps({"report": valid_report, "entries": [valid_entry]}), encoding="utf-8",
        )

        result = runner.invoke(
            app, ["readiness", str(path), "--as-of", "2026-07-01", "--json"],
        )

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["ready_for_submission"] is True
        assert payload["readiness_score"] == 100.0

    def test_blocked(self, tmp_path, valid_report, valid_entry):
        """A certificate shortfall blocks and exits 1."""
        report = dict(valid_report, certificates_surrendered=0)
        header = tmp_path / "header.yaml"
        entries = tmp_path / "entries.json"
        header.write_text(yaml.safe_dump(report), encoding="utf-8")
        entries.write_text(json.dumps([valid_entry]), encoding="utf-8")

        result = runner.invoke(
            app,
            ["readiness", str(header), "--entries", str(entries), "--as-of", "2026-07-01"],
        )

        assert result.exit_code == 1
        assert "BLOCKED" in result.stdout
        assert "Certificate shortfall" in result.stdout

    def test_bad_date(self, tmp_path, valid_report):
        """Malformed --as-of dates exit 1."""
        path = tmp_path / "report.json"
        path.write_text(json.dumps({"report": valid_report}), encoding="utf-8")

        result = runner.invoke(app, ["readiness", str(path), "--as-of", "July"])

        assert result.exit_code == 1
