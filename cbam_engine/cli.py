# -*- coding: utf-8 -*-
"""
gl-cbam - CBAM calculation and validation from the command line

Commands:
    benchmark        Resolve the benchmark for a CN code
    free-allocation  Free allocation, chargeable emissions and certificates
    project          Certificate projection over the phase-out period
    validate         Validate the entries of a JSON/YAML file
    eori             Validate one or more EORI numbers
    readiness        Submission readiness verdict for a quarterly report

Every command exits with status 1 when the result is blocking or invalid.
"""

import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
import yaml
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from cbam_engine.config import get_config
from cbam_engine.exceptions import CBAMEngineError
from cbam_engine.models import Severity
from cbam_engine.setup import get_service

app = typer.Typer(
    name="gl-cbam",
    help="CBAM Regulatory Calculation & Validation Engine",
    no_args_is_help=True,
)
console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging"
    ),
):
    """CBAM Regulatory Calculation & Validation Engine."""
    level = logging.DEBUG if verbose else getattr(
        logging, str(get_config().log_level).upper(), logging.INFO,
    )
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_file(path: Path) -> Any:
    """Load a JSON or YAML document, exiting with status 1 on failure."""
    if not path.exists():
        console.print(f"[red]Input file not found: {path}[/red]")
        raise typer.Exit(1)
    with open(path, encoding="utf-8") as f:
        if path.suffix == ".json":
            return json.load(f)
        if path.suffix in (".yaml", ".yml"):
            return yaml.safe_load(f)
    console.print(f"[red]Unsupported input format: {path.suffix}[/red]")
    console.print("[yellow]Use .json or .yaml files[/yellow]")
    raise typer.Exit(1)


def _entries_from(data: Any) -> List[Dict[str, Any]]:
    if isinstance(data, dict):
        data = data.get("entries", [])
    if not isinstance(data, list):
        console.print("[red]Entries must be a list or an object with an 'entries' list[/red]")
        raise typer.Exit(1)
    return data


def _parse_date(value: Optional[str]) -> Optional[date]:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        console.print(f"[red]Invalid date: {value} (expected YYYY-MM-DD)[/red]")
        raise typer.Exit(1)


def _print_json(model: Any) -> None:
    console.print_json(model.model_dump_json())


def _fail(exc: CBAMEngineError) -> None:
    console.print(f"[red]{escape(str(exc))}[/red]")
    raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def benchmark(
    cn_code: str = typer.Argument(..., help="8-digit CN code"),
    route: Optional[str] = typer.Option(None, "--route", "-r", help="Production route"),
    year: int = typer.Option(2026, "--year", "-y", help="Reporting year"),
    country: Optional[str] = typer.Option(None, "--country", "-c", help="Country of origin"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw result"),
):
    """
    Resolve the benchmark for a CN code

    Examples:
        gl-cbam benchmark 72083900 --route scrap_eaf_route --year 2030
    """
    result = get_service().resolve_benchmark(cn_code, route, year, country)
    if as_json:
        _print_json(result)
    elif not result.resolved:
        console.print(f"[red]✗ {escape(result.message)}[/red]")
    else:
        table = Table(title=f"Benchmark {cn_code}", box=box.ROUNDED, show_header=False)
        table.add_column("Field", style="cyan")
        table.add_column("Value", style="white")
        table.add_row("Category", result.category.value)
        table.add_row("Route", f"{result.route} ({result.route_source.value})")
        table.add_row("Value", f"{result.value} tCO2e/{result.unit.value}")
        table.add_row("Annex II", "yes" if result.is_annex_ii else "no")
        if result.country_risk_tier is not None:
            table.add_row("Country tier", result.country_risk_tier.value)
        table.add_row("Citation", result.citation)
        console.print(table)
        if result.route_fallback:
            console.print(
                f"[yellow]⚠ Route '{result.requested_route}' not found; "
                f"fell back to {result.route}[/yellow]"
            )
    if not result.resolved:
        raise typer.Exit(1)


@app.command("free-allocation")
def free_allocation(
    benchmark_value: float = typer.Option(..., "--benchmark", "-b", help="Benchmark tCO2e/unit"),
    quantity: float = typer.Option(..., "--quantity", "-q", help="Quantity in functional units"),
    year: int = typer.Option(2026, "--year", "-y", help="Reporting year"),
    embedded: Optional[float] = typer.Option(
        None, "--embedded", "-e", help="Total embedded emissions (tCO2e)"
    ),
    foreign: float = typer.Option(
        0.0, "--foreign-deduction", help="Foreign carbon price deduction (tCO2e)"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the raw result"),
):
    """
    Free allocation for one year, plus chargeable emissions when --embedded is given

    Examples:
        gl-cbam free-allocation -b 1.37 -q 100 -y 2030 -e 120
    """
    service = get_service()
    try:
        allocation = service.calculate_free_allocation(benchmark_value, quantity, year)
        chargeable = None
        if embedded is not None:
            chargeable = service.calculate_chargeable_emissions(
                embedded, allocation.adjustment, foreign,
            )
    except CBAMEngineError as exc:
        _fail(exc)

    if as_json:
        _print_json(allocation)
        if chargeable is not None:
            _print_json(chargeable)
        return

    table = Table(title=f"Free allocation {year}", box=box.ROUNDED, show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white", justify="right")
    table.add_row("CBAM factor", f"{allocation.cbam_factor:.4f}")
    table.add_row("Free allocation", f"{allocation.free_allocation_percent:.2f}%")
    table.add_row("Benchmark emissions", f"{allocation.total_benchmark_emissions:,.4f} tCO2e")
    table.add_row("Adjustment", f"{allocation.adjustment:,.4f} tCO2e")
    if chargeable is not None:
        table.add_row("Chargeable", f"{chargeable.chargeable:,.4f} tCO2e")
        table.add_row("Certificates", str(chargeable.certificates_required))
    console.print(table)
    if not allocation.year_in_schedule:
        console.print(f"[yellow]⚠ {year} is outside the phase-out schedule[/yellow]")


@app.command()
def project(
    benchmark_value: float = typer.Option(..., "--benchmark", "-b", help="Benchmark tCO2e/unit"),
    quantity: float = typer.Option(..., "--quantity", "-q", help="Quantity in functional units"),
    start_year: int = typer.Option(2026, "--start", help="First year"),
    end_year: int = typer.Option(2034, "--end", help="Last year"),
    embedded: Optional[float] = typer.Option(
        None, "--embedded", "-e", help="Total embedded emissions (tCO2e)"
    ),
    price: Optional[float] = typer.Option(None, "--price", "-p", help="Certificate price"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw result"),
):
    """
    Certificate projection over the phase-out period

    Examples:
        gl-cbam project -b 1.37 -q 100 -e 120 --price 80
    """
    try:
        projection = get_service().project_phase_out(
            benchmark_value=benchmark_value,
            quantity=quantity,
            start_year=start_year,
            end_year=end_year,
            total_embedded=embedded,
            certificate_price=price,
        )
    except CBAMEngineError as exc:
        _fail(exc)

    if as_json:
        _print_json(projection)
        return

    table = Table(title="Phase-out projection", box=box.ROUNDED)
    table.add_column("Year", style="cyan")
    table.add_column("Factor", justify="right")
    table.add_column("Free %", justify="right")
    table.add_column("Chargeable tCO2e", justify="right")
    table.add_column("Certificates", justify="right")
    if price is not None:
        table.add_column("Cost", justify="right")
    for row in projection.years:
        cells = [
            str(row.year),
            f"{row.cbam_factor:.4f}",
            f"{row.free_allocation_percent:.2f}",
            f"{row.chargeable:,.4f}",
            str(row.certificates_required),
        ]
        if price is not None:
            cells.append(f"{row.estimated_cost:,.2f}")
        table.add_row(*cells)
    console.print(table)
    console.print(f"Total certificates: [bold]{projection.total_certificates}[/bold]")


@app.command()
def validate(
    input_file: Path = typer.Argument(..., help="Entries file (JSON/YAML)"),
    as_of: Optional[str] = typer.Option(None, "--as-of", help="Evaluation date YYYY-MM-DD"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw result"),
):
    """
    Validate the emission entries of a file

    Examples:
        gl-cbam validate entries.yaml
    """
    entries = _entries_from(_load_file(input_file))
    try:
        batch = get_service().validate_entries(entries, today=_parse_date(as_of))
    except CBAMEngineError as exc:
        _fail(exc)

    if as_json:
        _print_json(batch)
    else:
        table = Table(title=f"Entry validation ({batch.total})", box=box.ROUNDED)
        table.add_column("Entry", style="cyan")
        table.add_column("Valid")
        table.add_column("Score", justify="right")
        table.add_column("Errors", justify="right")
        table.add_column("Warnings", justify="right")
        for result in batch.results:
            table.add_row(
                result.entry_ref,
                "[green]✓[/green]" if result.valid else "[red]✗[/red]",
                f"{result.compliance_score:.1f}",
                str(result.error_count),
                str(result.warning_count),
            )
        console.print(table)
        for result in batch.results:
            for issue in result.issues:
                colour = "red" if issue.severity == Severity.ERROR else "yellow"
                console.print(
                    f"[{colour}]{escape(result.entry_ref)} {issue.field}: {escape(issue.message)}"
                    f"[/{colour}] [dim]({issue.citation})[/dim]"
                )
    if batch.valid_count < batch.total:
        raise typer.Exit(1)


@app.command()
def eori(
    identifiers: List[str] = typer.Argument(..., help="EORI numbers"),
    member_state: Optional[str] = typer.Option(
        None, "--member-state", "-m", help="Expected member state"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the raw result"),
):
    """
    Validate one or more EORI numbers

    Examples:
        gl-cbam eori NL123456789 DE1234567890 --member-state NL
    """
    batch = get_service().validate_eori_batch(identifiers, member_state)
    if as_json:
        _print_json(batch)
    else:
        table = Table(title="EORI validation", box=box.ROUNDED)
        table.add_column("Input", style="cyan")
        table.add_column("Normalized")
        table.add_column("Valid")
        table.add_column("Checksum")
        table.add_column("Message")
        for result in batch.results:
            table.add_row(
                result.input or "",
                result.normalized,
                "[green]✓[/green]" if result.valid else "[red]✗[/red]",
                result.checksum_status.value,
                result.message,
            )
        console.print(table)
    if batch.invalid_count:
        raise typer.Exit(1)


@app.command()
def readiness(
    input_file: Path = typer.Argument(
        ..., help="Report file (JSON/YAML) with 'report' and 'entries'"
    ),
    entries_file: Optional[Path] = typer.Option(
        None, "--entries", help="Separate entries file (JSON/YAML)"
    ),
    as_of: Optional[str] = typer.Option(None, "--as-of", help="Evaluation date YYYY-MM-DD"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw result"),
):
    """
    Submission readiness verdict for a quarterly report

    Examples:
        gl-cbam readiness q1-report.yaml
        gl-cbam readiness header.json --entries entries.json
    """
    data = _load_file(input_file)
    if not isinstance(data, dict):
        console.print("[red]Report file must contain an object[/red]")
        raise typer.Exit(1)
    report = data.get("report", data)
    if entries_file is not None:
        entries = _entries_from(_load_file(entries_file))
    else:
        entries = _entries_from(data.get("entries", []))

    try:
        verdict = get_service().validate_for_submission(
            report, entries, as_of=_parse_date(as_of),
        )
    except CBAMEngineError as exc:
        _fail(exc)

    if as_json:
        _print_json(verdict)
    else:
        colour = "green" if verdict.ready_for_submission else (
            "yellow" if verdict.can_submit else "red"
        )
        status = "READY" if verdict.ready_for_submission else (
            "SUBMITTABLE" if verdict.can_submit else "BLOCKED"
        )
        console.print(Panel(
            f"[bold]{status}[/bold]  score {verdict.readiness_score:.2f}/100  "
            f"entries {verdict.entry_count}",
            title=f"[bold {colour}]Submission readiness[/bold {colour}]",
            border_style=colour,
        ))

        table = Table(title="Score components", box=box.ROUNDED, show_header=False)
        table.add_column("Component", style="cyan")
        table.add_column("Points", justify="right")
        for name, points in verdict.components.model_dump().items():
            table.add_row(name.replace("_", " ").title(), f"{points:.2f}")
        if verdict.submission_deadline is not None:
            table.add_row(
                "Deadline",
                f"{verdict.submission_deadline.isoformat()} "
                f"({verdict.days_until_deadline} days)",
            )
        balance = verdict.certificate_balance
        table.add_row(
            "Certificates",
            f"{balance.surrendered:g} / {balance.total_required} required",
        )
        console.print(table)

        for issue in verdict.errors:
            console.print(f"[red]✗ {escape(issue.describe())}[/red]")
        for issue in verdict.warnings:
            console.print(f"[yellow]⚠ {escape(issue.describe())}[/yellow]")
    if not verdict.can_submit:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
