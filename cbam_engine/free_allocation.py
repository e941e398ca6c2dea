# -*- coding: utf-8 -*-
"""
Free-Allocation & Chargeable-Emissions Calculator - GL-CBAM-ENGINE

Applies the year's phase-out factor to benchmark emissions, derives the
chargeable emissions left after free allocation and foreign carbon price
deductions, and the number of CBAM certificates to surrender.

Regulatory arithmetic:
    cbam_factor              = schedule[year] (0.025 when year not scheduled)
    free_allocation_percent  = (1 - cbam_factor) * 100
    total_benchmark          = benchmark_value * quantity
    adjustment               = total_benchmark * (1 - cbam_factor)
    chargeable               = max(0, embedded - adjustment - foreign_deduction)
    certificates_required    = ceil(chargeable)

Free allocation is always taken off benchmark emissions, never off the
declared embedded emissions.

Zero-Hallucination Guarantees:
    - Decimal arithmetic with ROUND_HALF_UP at 8 decimal places
    - Certificates always rounded up, never down or to nearest
    - Chargeable emissions floored at zero
    - SHA-256 provenance hashes on all calculations

Example:
    >>> from cbam_engine.free_allocation import FreeAllocationCalculator
    >>> calc = FreeAllocationCalculator()
    >>> fa = calc.calculate_free_allocation(1.370, 100, 2030)
    >>> fa.adjustment
    70.2125
    >>> calc.calculate_chargeable_emissions(120, fa.adjustment).certificates_required
    50

Author: GreenLang CBAM Team
Date: March 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import time
from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from cbam_engine.benchmark_resolver import BenchmarkResolver
from cbam_engine.config import get_config
from cbam_engine.exceptions import InvalidInputError
from cbam_engine.metrics import (
    record_certificates,
    record_free_allocation,
    record_processing_duration,
)
from cbam_engine.models import (
    CBAM_START_YEAR,
    CalculationMethod,
    ChargeableEmissionsResult,
    EmissionEntry,
    EntryCalculation,
    FreeAllocationResult,
    PhaseOutProjection,
    PhaseOutYear,
)
from cbam_engine.provenance import compute_hash, get_provenance_tracker
from cbam_engine.reference_data import get_reference_tables

logger = logging.getLogger(__name__)

PRECISION = Decimal("0.00000001")

#: Factor used for years outside the schedule (2026-equivalent).
FALLBACK_CBAM_FACTOR = Decimal("0.025")

#: Longest projection accepted, in years.
MAX_PROJECTION_YEARS = 50

_ONE = Decimal("1")
_HUNDRED = Decimal("100")
_ZERO = Decimal("0")


def to_decimal(value: Any, name: str = "value") -> Decimal:
    """Convert a number to an 8-place Decimal through its string form.

    Raises:
        InvalidInputError: If the value is not a finite number.
    """
    if isinstance(value, bool):
        raise InvalidInputError(f"{name} must be numeric", invalid_fields={name: "bool"})
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidInputError(
            f"{name} must be numeric", invalid_fields={name: repr(value)},
        ) from exc
    if not number.is_finite():
        raise InvalidInputError(
            f"{name} must be a finite number", invalid_fields={name: repr(value)},
        )
    return number.quantize(PRECISION, rounding=ROUND_HALF_UP)


def _out(value: Decimal) -> float:
    return float(value.quantize(PRECISION, rounding=ROUND_HALF_UP))


class FreeAllocationCalculator:
    """Deterministic free-allocation and certificate calculator.

    Attributes:
        _tables: Reference tables providing the phase-out schedule.
        _resolver: BenchmarkResolver used by :meth:`calculate_entry`.
        _provenance: Provenance tracker instance.
    """

    def __init__(
        self,
        config: Any = None,
        provenance: Any = None,
        reference: Any = None,
        resolver: Optional[BenchmarkResolver] = None,
    ) -> None:
        """Initialize FreeAllocationCalculator.

        Args:
            config: Optional CBAMEngineConfig.
            provenance: Optional ProvenanceTracker instance.
            reference: Optional ReferenceTables.
            resolver: Optional BenchmarkResolver sharing the same tables.
        """
        self._config = config or get_config()
        self._provenance = provenance or get_provenance_tracker()
        self._tables = reference or get_reference_tables()
        self._resolver = resolver or BenchmarkResolver(
            self._config, self._provenance, self._tables,
        )
        logger.info(
            "FreeAllocationCalculator initialized: tables=%s, schedule=%d-%d, "
            "default_markup=%s",
            self._tables.version,
            min(self._tables.phase_out_schedule),
            max(self._tables.phase_out_schedule),
            self._config.apply_default_markup,
        )

    # ------------------------------------------------------------------
    # Schedule
    # ------------------------------------------------------------------

    def cbam_factor(self, year: int) -> Decimal:
        """Return the chargeable fraction for ``year`` (0.025 when unscheduled)."""
        factor = self._tables.cbam_factor(year)
        if factor is None:
            return FALLBACK_CBAM_FACTOR
        return to_decimal(factor, "cbam_factor")

    # ------------------------------------------------------------------
    # Core contracts
    # ------------------------------------------------------------------

    def calculate_free_allocation(
        self,
        benchmark_value: float,
        quantity: float,
        year: int,
    ) -> FreeAllocationResult:
        """Calculate free allocation against benchmark emissions.

        Args:
            benchmark_value: Benchmark intensity (tCO2e per functional unit).
            quantity: Imported quantity in functional units.
            year: Reporting year.

        Returns:
            FreeAllocationResult with adjustment, factor and percent.
        """
        start_time = time.monotonic()
        benchmark = to_decimal(benchmark_value, "benchmark_value")
        qty = to_decimal(quantity, "quantity")
        factor = self.cbam_factor(year)
        in_schedule = self._tables.cbam_factor(year) is not None
        if not in_schedule:
            logger.debug("Year %s outside phase-out schedule, using %s", year, factor)

        total_benchmark = benchmark * qty
        adjustment = total_benchmark * (_ONE - factor)

        result = FreeAllocationResult(
            benchmark_value=_out(benchmark),
            quantity=_out(qty),
            year=year,
            cbam_factor=_out(factor),
            free_allocation_percent=_out((_ONE - factor) * _HUNDRED),
            total_benchmark_emissions=_out(total_benchmark),
            adjustment=_out(adjustment),
            year_in_schedule=in_schedule,
        )
        result.provenance_hash = self._record("free_allocation", str(year), result)
        record_free_allocation(year)
        record_processing_duration("free_allocation", time.monotonic() - start_time)
        return result

    def calculate_chargeable_emissions(
        self,
        total_embedded: float,
        free_allocation_adjustment: float,
        foreign_carbon_price_deduction: float = 0.0,
    ) -> ChargeableEmissionsResult:
        """Derive chargeable emissions and certificates required.

        Deductions are applied in fixed order (free allocation, then foreign
        carbon price) and the result is floored at zero.

        Returns:
            ChargeableEmissionsResult with ``certificates_required`` equal
            to ``ceil(chargeable)``.
        """
        embedded = to_decimal(total_embedded, "total_embedded")
        allocation = to_decimal(free_allocation_adjustment, "free_allocation_adjustment")
        foreign = to_decimal(
            foreign_carbon_price_deduction or 0, "foreign_carbon_price_deduction",
        )

        after_allocation = embedded - allocation
        after_foreign = after_allocation - foreign
        chargeable = max(_ZERO, after_foreign)
        certificates = int(chargeable.to_integral_value(rounding=ROUND_CEILING))

        result = ChargeableEmissionsResult(
            chargeable=_out(chargeable),
            certificates_required=certificates,
            breakdown={
                "total_embedded": _out(embedded),
                "free_allocation_adjustment": _out(allocation),
                "after_free_allocation": _out(after_allocation),
                "foreign_carbon_price_deduction": _out(foreign),
                "after_foreign_deduction": _out(after_foreign),
                "chargeable": _out(chargeable),
            },
        )
        result.provenance_hash = self._record("chargeable_emissions", "calc", result)
        record_certificates(certificates)
        return result

    # ------------------------------------------------------------------
    # Projection
    # ------------------------------------------------------------------

    def project_phase_out(
        self,
        benchmark_value: float,
        quantity: float,
        start_year: int = CBAM_START_YEAR,
        end_year: int = 2034,
        total_embedded: Optional[float] = None,
        certificate_price: Optional[float] = None,
    ) -> PhaseOutProjection:
        """Project certificates per year over the phase-out period.

        Each year is computed independently from the same quantity and
        benchmark; nothing carries over between years.

        Args:
            benchmark_value: Benchmark intensity.
            quantity: Annual quantity.
            start_year: First projected year.
            end_year: Last projected year (inclusive).
            total_embedded: Annual embedded emissions; defaults to the
                benchmark emissions.
            certificate_price: Optional flat EUR price per certificate.

        Raises:
            InvalidInputError: If ``end_year`` precedes ``start_year`` or the
                range spans more than MAX_PROJECTION_YEARS years.
        """
        if end_year < start_year:
            raise InvalidInputError(
                "end_year must not precede start_year",
                invalid_fields={"end_year": str(end_year)},
            )
        if end_year - start_year + 1 > MAX_PROJECTION_YEARS:
            raise InvalidInputError(
                f"Projection may cover at most {MAX_PROJECTION_YEARS} years",
                invalid_fields={"end_year": str(end_year)},
            )
        embedded = (
            float(total_embedded)
            if total_embedded is not None
            else _out(to_decimal(benchmark_value) * to_decimal(quantity))
        )
        price = to_decimal(certificate_price, "certificate_price") if certificate_price is not None else None

        years: List[PhaseOutYear] = []
        total_certificates = 0
        total_cost = _ZERO
        for year in range(start_year, end_year + 1):
            fa = self.calculate_free_allocation(benchmark_value, quantity, year)
            charge = self.calculate_chargeable_emissions(embedded, fa.adjustment)
            cost = None
            if price is not None:
                cost_dec = price * Decimal(charge.certificates_required)
                total_cost += cost_dec
                cost = _out(cost_dec)
            total_certificates += charge.certificates_required
            years.append(PhaseOutYear(
                year=year,
                cbam_factor=fa.cbam_factor,
                free_allocation_percent=fa.free_allocation_percent,
                free_allocation_adjustment=fa.adjustment,
                chargeable=charge.chargeable,
                certificates_required=charge.certificates_required,
                estimated_cost=cost,
            ))

        projection = PhaseOutProjection(
            benchmark_value=float(benchmark_value),
            quantity=float(quantity),
            total_embedded=embedded,
            start_year=start_year,
            end_year=end_year,
            certificate_price=float(certificate_price) if certificate_price is not None else None,
            years=years,
            total_certificates=total_certificates,
            total_estimated_cost=_out(total_cost) if price is not None else None,
        )
        projection.provenance_hash = self._record(
            "phase_out_projection", f"{start_year}-{end_year}", projection,
        )
        logger.info(
            "Projected phase-out %d-%d: %d certificates",
            start_year, end_year, total_certificates,
        )
        return projection

    # ------------------------------------------------------------------
    # Entry-level calculation
    # ------------------------------------------------------------------

    def calculate_entry(self, entry: EmissionEntry) -> EntryCalculation:
        """Run the full calculation for one entry.

        Embedded emissions are ``quantity * (direct + indirect)`` plus
        precursor emissions, marked up by the year's default-value markup
        when the entry uses Default_values and ``apply_default_markup`` is
        enabled. Unclassified goods receive no free allocation.
        """
        start_time = time.monotonic()
        year = entry.reporting_period_year or self._config.default_reporting_year
        qty = to_decimal(entry.quantity or 0, "quantity")
        direct = qty * to_decimal(entry.direct_emissions_specific or 0)
        indirect = qty * to_decimal(entry.indirect_emissions_specific or 0)
        precursor = sum(
            (to_decimal(p.embedded_total) for p in entry.precursors), _ZERO,
        )

        embedded = direct + indirect + precursor
        markup = _ZERO
        if (
            self._config.apply_default_markup
            and entry.method == CalculationMethod.DEFAULT_VALUES
        ):
            markup = to_decimal(self._tables.markup_for_year(year))
            embedded = embedded * (_ONE + markup / _HUNDRED)

        benchmark = self._resolver.resolve_for_entry(entry)
        free_allocation: Optional[FreeAllocationResult] = None
        allocation_value = _ZERO
        if benchmark.resolved and qty > _ZERO:
            free_allocation = self.calculate_free_allocation(
                benchmark.value, _out(qty), year,
            )
            allocation_value = to_decimal(free_allocation.adjustment)

        chargeable = self.calculate_chargeable_emissions(
            _out(embedded),
            _out(allocation_value),
            entry.carbon_price_deduction_tco2e or 0.0,
        )

        result = EntryCalculation(
            entry_ref=entry.reference,
            cn_code=entry.cn_code,
            year=year,
            benchmark=benchmark,
            direct_embedded=_out(direct),
            indirect_embedded=_out(indirect),
            precursor_embedded=_out(precursor),
            markup_percent_applied=_out(markup),
            total_embedded_emissions=_out(embedded),
            free_allocation=free_allocation,
            chargeable=chargeable,
            error=benchmark.error,
        )
        result.provenance_hash = self._record("entry_calculation", entry.reference, result)
        record_processing_duration("calculate_entry", time.monotonic() - start_time)
        logger.debug(
            "Calculated entry %s: embedded=%s chargeable=%s certificates=%d",
            entry.reference, result.total_embedded_emissions,
            chargeable.chargeable, chargeable.certificates_required,
        )
        return result

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _record(self, entity_type: str, entity_id: str, result: Any) -> str:
        data_hash = compute_hash(result)
        if self._config.enable_provenance:
            self._provenance.record(entity_type, entity_id, "calculate", data_hash)
        return data_hash


__all__ = [
    "PRECISION",
    "FALLBACK_CBAM_FACTOR",
    "MAX_PROJECTION_YEARS",
    "to_decimal",
    "FreeAllocationCalculator",
]
