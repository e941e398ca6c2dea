# -*- coding: utf-8 -*-
"""
CBAM Engine Service Configuration - GL-CBAM-ENGINE

Centralized configuration for the CBAM Regulatory Calculation & Validation
Engine covering:
- Regulatory table version and optional external reference-data file
- EORI checksum strictness
- Free-allocation markup behaviour for default values
- Submission readiness thresholds and deadline warning window
- Batch parallelism (thread pool sizing)
- Provenance, metrics and logging

All settings can be overridden via environment variables with the
``GL_CBAM_`` prefix (e.g. ``GL_CBAM_MAX_WORKERS``).

Example:
    >>> from cbam_engine.config import get_config
    >>> cfg = get_config()
    >>> print(cfg.regulatory_version, cfg.max_workers)

Author: GreenLang CBAM Team
Date: March 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from typing import Any, Optional

from cbam_engine.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})

# ---------------------------------------------------------------------------
# Environment variable prefix
# ---------------------------------------------------------------------------

_ENV_PREFIX = "GL_CBAM_"


# ---------------------------------------------------------------------------
# CBAMEngineConfig
# ---------------------------------------------------------------------------


@dataclass
class CBAMEngineConfig:
    """Complete configuration for the GreenLang CBAM engine.

    Attributes are grouped by concern: regulatory data, EORI validation,
    calculation behaviour, readiness thresholds, processing, provenance
    and logging.

    All attributes can be overridden via environment variables using the
    ``GL_CBAM_`` prefix.

    Attributes:
        regulatory_version: Identifier of the built-in reference table set.
        reference_data_path: Optional YAML/JSON file replacing built-in tables.
        default_reporting_year: Year used when a caller omits one.
        eori_strict_checksum: Reject identifiers whose checksum fails.
        apply_default_markup: Mark up embedded emissions declared with
            Default_values by the year's default-value markup.
        deadline_warning_days: Days before the deadline that trigger a warning.
        entry_ready_threshold: Minimum compliance score for a ready entry.
        readiness_threshold: Minimum readiness score for a ready submission.
        materiality_high_risk_ratio: Share of material entries that flags a
            CN code as high risk.
        enable_parallel: Run per-entry checks on a thread pool.
        max_workers: Thread pool size for batch checks.
        enable_provenance: Record provenance entries for every operation.
        genesis_hash: Anchor string for the provenance chain.
        enable_metrics: Emit Prometheus metrics.
        log_level: Logging level for the CBAM engine.
    """

    # -- Regulatory data -----------------------------------------------------
    regulatory_version: str = "CBAM-2026-v1"
    reference_data_path: str = ""
    default_reporting_year: int = 2026

    # -- EORI validation -----------------------------------------------------
    eori_strict_checksum: bool = False

    # -- Calculation ---------------------------------------------------------
    apply_default_markup: bool = False

    # -- Readiness thresholds ------------------------------------------------
    deadline_warning_days: int = 7
    entry_ready_threshold: float = 80.0
    readiness_threshold: float = 95.0
    materiality_high_risk_ratio: float = 0.30

    # -- Processing ----------------------------------------------------------
    enable_parallel: bool = True
    max_workers: int = 4

    # -- Provenance / metrics ------------------------------------------------
    enable_provenance: bool = True
    genesis_hash: str = "greenlang-cbam-engine-genesis"
    enable_metrics: bool = True

    # -- Logging -------------------------------------------------------------
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Post-init validation
    # ------------------------------------------------------------------

    def __post_init__(self) -> None:
        """Validate configuration constraints after initialisation.

        Raises:
            ConfigurationError: If any value is outside its valid range.
        """
        errors: list = []

        normalised_log = str(self.log_level).upper()
        if normalised_log not in _VALID_LOG_LEVELS:
            errors.append(
                f"log_level must be one of {sorted(_VALID_LOG_LEVELS)}, "
                f"got '{self.log_level}'"
            )
        else:
            self.log_level = normalised_log

        if self.max_workers <= 0:
            errors.append(f"max_workers must be > 0, got {self.max_workers}")
        if self.deadline_warning_days < 0:
            errors.append(
                f"deadline_warning_days must be >= 0, got {self.deadline_warning_days}"
            )
        for name in ("entry_ready_threshold", "readiness_threshold"):
            value = getattr(self, name)
            if not 0.0 <= value <= 100.0:
                errors.append(f"{name} must be in [0, 100], got {value}")
        if not 0.0 <= self.materiality_high_risk_ratio <= 1.0:
            errors.append(
                f"materiality_high_risk_ratio must be in [0, 1], "
                f"got {self.materiality_high_risk_ratio}"
            )
        if not self.genesis_hash:
            errors.append("genesis_hash must not be empty")

        if errors:
            raise ConfigurationError(
                "Invalid CBAM engine configuration: " + "; ".join(errors),
                context={"errors": errors},
            )

    # ------------------------------------------------------------------
    # Factory helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> CBAMEngineConfig:
        """Build a CBAMEngineConfig from environment variables.

        Every field can be overridden via ``GL_CBAM_<FIELD_UPPER>``.
        Boolean values accept ``true/1/yes`` (case-insensitive).

        Returns:
            Populated CBAMEngineConfig instance.
        """
        prefix = _ENV_PREFIX

        def _env(name: str, default: Any = None) -> Optional[str]:
            return os.environ.get(f"{prefix}{name}", default)

        def _bool(name: str, default: bool) -> bool:
            val = _env(name)
            if val is None:
                return default
            return val.lower() in ("true", "1", "yes")

        def _int(name: str, default: int) -> int:
            val = _env(name)
            if val is None:
                return default
            try:
                return int(val)
            except ValueError:
                logger.warning(
                    "Invalid integer for %s%s=%s, using default %d",
                    prefix, name, val, default,
                )
                return default

        def _float(name: str, default: float) -> float:
            val = _env(name)
            if val is None:
                return default
            try:
                return float(val)
            except ValueError:
                logger.warning(
                    "Invalid float for %s%s=%s, using default %f",
                    prefix, name, val, default,
                )
                return default

        def _str(name: str, default: str) -> str:
            val = _env(name)
            if val is None:
                return default
            return val

        config = cls(
            # Regulatory data
            regulatory_version=_str(
                "REGULATORY_VERSION", cls.regulatory_version,
            ),
            reference_data_path=_str(
                "REFERENCE_DATA_PATH", cls.reference_data_path,
            ),
            default_reporting_year=_int(
                "DEFAULT_REPORTING_YEAR", cls.default_reporting_year,
            ),
            # EORI
            eori_strict_checksum=_bool(
                "EORI_STRICT_CHECKSUM", cls.eori_strict_checksum,
            ),
            # Calculation
            apply_default_markup=_bool(
                "APPLY_DEFAULT_MARKUP", cls.apply_default_markup,
            ),
            # Readiness thresholds
            deadline_warning_days=_int(
                "DEADLINE_WARNING_DAYS", cls.deadline_warning_days,
            ),
            entry_ready_threshold=_float(
                "ENTRY_READY_THRESHOLD", cls.entry_ready_threshold,
            ),
            readiness_threshold=_float(
                "READINESS_THRESHOLD", cls.readiness_threshold,
            ),
            materiality_high_risk_ratio=_float(
                "MATERIALITY_HIGH_RISK_RATIO",
                cls.materiality_high_risk_ratio,
            ),
            # Processing
            enable_parallel=_bool("ENABLE_PARALLEL", cls.enable_parallel),
            max_workers=_int("MAX_WORKERS", cls.max_workers),
            # Provenance / metrics
            enable_provenance=_bool(
                "ENABLE_PROVENANCE", cls.enable_provenance,
            ),
            genesis_hash=_str("GENESIS_HASH", cls.genesis_hash),
            enable_metrics=_bool("ENABLE_METRICS", cls.enable_metrics),
            # Logging
            log_level=_str("LOG_LEVEL", cls.log_level),
        )

        logger.info(
            "CBAMEngineConfig loaded: version=%s, reference_file=%s, "
            "strict_checksum=%s, default_markup=%s, deadline_warning=%dd, "
            "thresholds=[entry=%.1f readiness=%.1f high_risk=%.2f], "
            "parallel=%s, workers=%d, provenance=%s, metrics=%s",
            config.regulatory_version,
            config.reference_data_path or "<builtin>",
            config.eori_strict_checksum,
            config.apply_default_markup,
            config.deadline_warning_days,
            config.entry_ready_threshold,
            config.readiness_threshold,
            config.materiality_high_risk_ratio,
            config.enable_parallel,
            config.max_workers,
            config.enable_provenance,
            config.enable_metrics,
        )
        return config


# ---------------------------------------------------------------------------
# Thread-safe singleton accessor
# ---------------------------------------------------------------------------

_config_instance: Optional[CBAMEngineConfig] = None
_config_lock = threading.Lock()


def get_config() -> CBAMEngineConfig:
    """Return the singleton CBAMEngineConfig, creating from env if needed.

    Returns:
        CBAMEngineConfig singleton instance.
    """
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = CBAMEngineConfig.from_env()
    return _config_instance


def set_config(config: CBAMEngineConfig) -> None:
    """Replace the singleton CBAMEngineConfig (useful for testing).

    Args:
        config: New configuration to install.
    """
    global _config_instance
    with _config_lock:
        _config_instance = config
    logger.info("CBAMEngineConfig replaced programmatically")


def reset_config() -> None:
    """Reset the singleton (primarily for test teardown)."""
    global _config_instance
    with _config_lock:
        _config_instance = None


__all__ = [
    "CBAMEngineConfig",
    "get_config",
    "set_config",
    "reset_config",
]
