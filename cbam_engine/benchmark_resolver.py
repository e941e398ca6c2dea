# -*- coding: utf-8 -*-
"""
Benchmark Resolver - GL-CBAM-ENGINE

Resolves the CBAM benchmark intensity for a CN code and production route.
A CN code is classified into an explicit ``GoodsCategory`` by the
longest matching prefix rule of the reference tables; the category's
benchmark is then taken for the declared route, the category default route
when none is declared, or the first listed route (flagged as a fallback)
when the declared route has no benchmark.

Route detection from free-text descriptions is kept apart from resolution:
:meth:`BenchmarkResolver.detect_production_route` only suggests a route
and is never applied to a declared route.

Zero-Hallucination Guarantees:
    - Benchmarks are literal table lookups, no estimation
    - Unmapped CN codes return an explicit UnclassifiedGood result
    - Route fall-back is always flagged in the result
    - SHA-256 provenance hashes on all resolutions

Example:
    >>> from cbam_engine.benchmark_resolver import BenchmarkResolver
    >>> resolver = BenchmarkResolver()
    >>> result = resolver.resolve_benchmark("72083000", "bf_bof_route")
    >>> result.value, result.unit.value
    (1.37, 'tonnes')

Author: GreenLang CBAM Team
Date: March 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import re
import time
from typing import Any, Dict, List, Optional, Sequence, Tuple

from cbam_engine.config import get_config
from cbam_engine.metrics import record_benchmark, record_processing_duration
from cbam_engine.models import (
    CBAM_START_YEAR,
    BenchmarkResult,
    EmissionEntry,
    ErrorCategory,
    GoodsCategory,
    RiskTier,
    RouteSource,
    RouteSuggestion,
    RouteValidation,
)
from cbam_engine.provenance import compute_hash, get_provenance_tracker
from cbam_engine.reference_data import get_reference_tables

logger = logging.getLogger(__name__)

#: Confidence of a suggestion backed by a descriptive token.
KEYWORD_CONFIDENCE = 0.85

#: Confidence of a suggestion from origin country or category default.
FALLBACK_CONFIDENCE = 0.60

#: Declared intensity within this deviation of the benchmark is consistent.
ROUTE_TOLERANCE_PERCENT = 20.0


def normalize_route(route: Optional[str]) -> Optional[str]:
    """Normalise a route tag to the table key form (``bf_bof_route``)."""
    if route is None:
        return None
    value = re.sub(r"[\s\-]+", "_", str(route).strip().lower())
    return value or None


class BenchmarkResolver:
    """CN code to benchmark resolution engine.

    Attributes:
        ROUTE_KEYWORDS: Ordered (tokens, route) rules per category used by
            the advisory route detector.
        COUNTRY_ROUTES: Per-category (high-tier route, other route) used
            when no token matched.
        _tables: Reference tables in use.
        _provenance: Provenance tracker instance.
    """

    ROUTE_KEYWORDS: Dict[GoodsCategory, List[Tuple[Tuple[str, ...], str]]] = {
        GoodsCategory.IRON_ORE_PELLETS: [
            (("direct reduction", "dr grade", "dr-grade"), "direct_reduction"),
        ],
        GoodsCategory.DIRECT_REDUCED_IRON: [
            (("natural gas", "gas"), "gas_based"),
            (("coal",), "coal_based"),
        ],
        GoodsCategory.CRUDE_STEEL: [
            (("scrap", "eaf", "electric arc"), "electric_arc_furnace"),
            (("bof", "blast", "basic oxygen"), "basic_oxygen_furnace"),
        ],
        GoodsCategory.HOT_ROLLED_COIL: [
            (("scrap",), "scrap_eaf_route"),
            (("dri", "direct reduced"), "dri_eaf_route"),
            (("bof", "blast"), "bf_bof_route"),
        ],
        GoodsCategory.COLD_ROLLED_COIL: [
            (("scrap", "eaf"), "scrap_eaf_route"),
            (("bof", "blast"), "bf_bof_route"),
        ],
        GoodsCategory.ALUMINIUM_EXTRUSIONS: [
            (("scrap", "secondary", "recycled"), "secondary_route"),
        ],
        GoodsCategory.ALUMINIUM_SHEETS: [
            (("scrap", "secondary", "recycled"), "secondary_route"),
        ],
        GoodsCategory.CLINKER: [
            (("wet",), "wet_process"),
            (("dry",), "dry_process"),
        ],
        GoodsCategory.PORTLAND_CEMENT: [
            (("cem iii", "slag"), "cem_iii"),
            (("cem ii",), "cem_ii"),
            (("cem i",), "cem_i"),
        ],
        GoodsCategory.AMMONIA: [
            (("coal",), "coal_gasification"),
        ],
        GoodsCategory.NITRIC_ACID: [
            (("dual pressure", "dual-pressure"), "dual_pressure"),
        ],
        GoodsCategory.HYDROGEN: [
            (("green", "renewable", "electrolysis"), "green_electrolysis"),
            (("blue", "ccs"), "blue_smr_ccs"),
            (("coal",), "coal_gasification"),
            (("grey", "gray", "smr"), "grey_smr"),
        ],
        GoodsCategory.ELECTRICITY: [
            (("coal", "lignite"), "coal"),
            (("ccgt", "gas"), "gas_ccgt"),
            (("solar", "wind", "hydro", "renewable"), "renewable"),
            (("nuclear",), "nuclear"),
        ],
    }

    COUNTRY_ROUTES: Dict[GoodsCategory, Tuple[str, str]] = {
        GoodsCategory.CRUDE_STEEL: ("basic_oxygen_furnace", "electric_arc_furnace"),
        GoodsCategory.HOT_ROLLED_COIL: ("bf_bof_route", "scrap_eaf_route"),
        GoodsCategory.COLD_ROLLED_COIL: ("bf_bof_route", "scrap_eaf_route"),
    }

    def __init__(
        self,
        config: Any = None,
        provenance: Any = None,
        reference: Any = None,
    ) -> None:
        """Initialize BenchmarkResolver.

        Args:
            config: Optional CBAMEngineConfig.
            provenance: Optional ProvenanceTracker instance.
            reference: Optional ReferenceTables; defaults to the process set.
        """
        self._config = config or get_config()
        self._provenance = provenance or get_provenance_tracker()
        self._tables = reference or get_reference_tables()
        logger.info(
            "BenchmarkResolver initialized: tables=%s, categories=%d",
            self._tables.version, len(self._tables.benchmarks),
        )

    @property
    def tables(self):
        return self._tables

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def classify(self, cn_code: Optional[str]) -> Optional[GoodsCategory]:
        """Return the goods category of a CN code, or None when unmapped."""
        return self._tables.category_for_code(cn_code)

    def resolve_benchmark(
        self,
        cn_code: Optional[str],
        route: Optional[str] = None,
        year: int = CBAM_START_YEAR,
        country_of_origin: Optional[str] = None,
    ) -> BenchmarkResult:
        """Resolve the benchmark for a CN code and production route.

        Args:
            cn_code: 8-digit CN code.
            route: Declared production route; the category default when
                omitted.
            year: Reporting year the benchmark is used for.
            country_of_origin: Optional origin, reported as a risk tier.

        Returns:
            BenchmarkResult. ``error`` is UnclassifiedGood when the code has
            no category; ``route_fallback`` is set when the declared route
            has no benchmark and the first listed route was used.
        """
        start_time = time.monotonic()
        code = (cn_code or "").strip()
        tier: Optional[RiskTier] = (
            self._tables.country_tier(country_of_origin) if country_of_origin else None
        )

        category = self._tables.category_for_code(code)
        if category is None:
            result = BenchmarkResult(
                cn_code=code or None,
                year=year,
                country_risk_tier=tier,
                regulatory_version=self._tables.version,
                error=ErrorCategory.UNCLASSIFIED_GOOD,
                message=f"CN code {code or '<missing>'} has no CBAM benchmark mapping",
            )
            result.provenance_hash = self._record(code or "unknown", result)
            record_benchmark("unclassified", "unclassified")
            logger.debug("Benchmark unresolved for CN code %s", code)
            return result

        routes = self._tables.routes(category)
        requested = normalize_route(route)
        fallback = False
        message = ""
        if requested is None:
            resolved_route = self._tables.default_route(category)
            source = RouteSource.DEFAULT
        elif requested in routes:
            resolved_route = requested
            source = RouteSource.DECLARED
        else:
            resolved_route = routes[0]
            source = RouteSource.DEFAULT
            fallback = True
            message = (
                f"Route '{requested}' has no benchmark for {category.value}; "
                f"using first available route '{resolved_route}'"
            )
            logger.warning(
                "Benchmark route fallback for %s: %s -> %s",
                code, requested, resolved_route,
            )

        bench = self._tables.benchmark(category, resolved_route)
        result = BenchmarkResult(
            cn_code=code,
            year=year,
            value=bench.value,
            unit=bench.unit,
            category=category,
            goods_family=category.family,
            route=resolved_route,
            route_source=source,
            requested_route=requested,
            route_fallback=fallback,
            is_annex_ii=bench.is_annex_ii,
            country_risk_tier=tier,
            citation=bench.citation,
            regulatory_version=self._tables.version,
            message=message,
        )
        result.provenance_hash = self._record(code, result)
        record_benchmark(category.value, "fallback" if fallback else "resolved")
        record_processing_duration("resolve_benchmark", time.monotonic() - start_time)
        return result

    def resolve_for_entry(self, entry: EmissionEntry) -> BenchmarkResult:
        """Resolve the benchmark from an entry's code, route, year and origin."""
        return self.resolve_benchmark(
            entry.cn_code,
            entry.production_route,
            entry.reporting_period_year or self._config.default_reporting_year,
            entry.country_of_origin,
        )

    # ------------------------------------------------------------------
    # Advisory route detection
    # ------------------------------------------------------------------

    def detect_production_route(
        self,
        category: GoodsCategory,
        description: Optional[str] = None,
        country_of_origin: Optional[str] = None,
    ) -> RouteSuggestion:
        """Suggest a production route from descriptive text and origin.

        The result is advisory only. It does not change how a declared
        route is resolved.

        Args:
            category: Goods category.
            description: Free-text product or process description.
            country_of_origin: Country of production.

        Returns:
            RouteSuggestion with the route, confidence and basis.
        """
        available = self._tables.routes(category)
        text = (description or "").lower()

        if text:
            for tokens, route in self.ROUTE_KEYWORDS.get(category, []):
                if route not in available:
                    continue
                for token in tokens:
                    if re.search(rf"\b{re.escape(token)}\b", text):
                        return RouteSuggestion(
                            category=category,
                            suggested_route=route,
                            confidence=KEYWORD_CONFIDENCE,
                            matched_token=token,
                            basis=f"description mentions '{token}'",
                        )

        if category in self.COUNTRY_ROUTES:
            high_route, other_route = self.COUNTRY_ROUTES[category]
            tier = self._tables.country_tier(country_of_origin)
            route = high_route if tier == RiskTier.HIGH else other_route
            if route in available:
                return RouteSuggestion(
                    category=category,
                    suggested_route=route,
                    confidence=FALLBACK_CONFIDENCE,
                    basis=f"origin country carbon tier '{tier.value}'",
                )

        return RouteSuggestion(
            category=category,
            suggested_route=self._tables.default_route(category) or available[0],
            confidence=FALLBACK_CONFIDENCE,
            basis="category default route",
        )

    def suggest_route(
        self,
        cn_code: Optional[str],
        description: Optional[str] = None,
        country_of_origin: Optional[str] = None,
    ) -> Optional[RouteSuggestion]:
        """Classify a CN code and suggest a route; None when unclassified."""
        category = self._tables.category_for_code(cn_code)
        if category is None:
            return None
        return self.detect_production_route(category, description, country_of_origin)

    # ------------------------------------------------------------------
    # Route checks and listings
    # ------------------------------------------------------------------

    def validate_declared_intensity(
        self,
        cn_code: str,
        route: Optional[str],
        declared_intensity: float,
    ) -> RouteValidation:
        """Compare a declared direct intensity with the route benchmark.

        Deviation within 20% of the benchmark is consistent with the route.
        """
        bench = self.resolve_benchmark(cn_code, route)
        if not bench.resolved:
            return RouteValidation(
                cn_code=cn_code,
                route=normalize_route(route),
                declared_intensity=declared_intensity,
                message=bench.message,
            )

        benchmark_value = bench.value or 0.0
        if benchmark_value > 0:
            deviation = abs(declared_intensity - benchmark_value) / benchmark_value * 100
            consistent = deviation <= ROUTE_TOLERANCE_PERCENT
        else:
            deviation = None
            consistent = declared_intensity == 0
        message = (
            f"Declared intensity is consistent with {bench.route}"
            if consistent
            else f"Declared intensity deviates from {bench.route} benchmark"
        )
        return RouteValidation(
            cn_code=cn_code,
            route=bench.route,
            declared_intensity=declared_intensity,
            benchmark_value=benchmark_value,
            deviation_percent=round(deviation, 4) if deviation is not None else None,
            consistent=consistent,
            message=message,
        )

    def list_routes(self, category: GoodsCategory) -> List[str]:
        """Return the routes with a benchmark for ``category``, default first."""
        return list(self._tables.routes(category))

    def get_benchmarks(self, category: GoodsCategory) -> Dict[str, float]:
        """Return route -> benchmark value for ``category``."""
        return {
            route: bench.value
            for route, bench in self._tables.benchmarks.get(category, {}).items()
        }

    def categories(self) -> Sequence[GoodsCategory]:
        return list(self._tables.benchmarks)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _record(self, cn_code: str, result: BenchmarkResult) -> str:
        data_hash = compute_hash(result)
        if self._config.enable_provenance:
            self._provenance.record("benchmark", cn_code, "resolve", data_hash)
        return data_hash


__all__ = [
    "KEYWORD_CONFIDENCE",
    "FALLBACK_CONFIDENCE",
    "ROUTE_TOLERANCE_PERCENT",
    "normalize_route",
    "BenchmarkResolver",
]
