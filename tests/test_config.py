"""Tests for CBAMEngineConfig and its singleton accessors.

Author: GreenLang CBAM Team
Date: March 2026
Status: Production Ready
"""

import pytest

from cbam_engine.config import (
    CBAMEngineConfig,
    get_config,
    reset_config,
    set_config,
)
from cbam_engine.exceptions import ConfigurationError


class TestDefaults:
    """Tests for default configuration values."""

    def test_defaults(self):
        """Defaults match the documented engine behaviour."""
        cfg = CBAMEngineConfig()

        assert cfg.regulatory_version == "CBAM-2026-v1"
        assert cfg.default_reporting_year == 2026
        assert cfg.eori_strict_checksum is False
        assert cfg.apply_default_markup is False
        assert cfg.deadline_warning_days == 7
        assert cfg.entry_ready_threshold == 80.0
        assert cfg.max_workers == 4

    def test_log_level_normalised(self):
        """Log level is upper-cased."""
        assert CBAMEngineConfig(log_level="debug").log_level == "DEBUG"


class TestValidation:
    """Tests for post-init validation."""

    @pytest.mark.parametrize("overrides", [
        {"max_workers": 0},
        {"log_level": "VERBOSE"},
        {"readiness_threshold": 120.0},
        {"materiality_high_risk_ratio": 1.5},
        {"deadline_warning_days": -1},
        {"genesis_hash": ""},
    ])
    def test_invalid_values_rejected(self, overrides):
        """Out-of-range values raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            CBAMEngineConfig(**overrides)


class TestFromEnv:
    """Tests for environment overrides."""

    def test_env_overrides(self, monkeypatch):
        """GL_CBAM_ variables override defaults."""
        monkeypatch.setenv("GL_CBAM_MAX_WORKERS", "8")
        monkeypatch.setenv("GL_CBAM_EORI_STRICT_CHECKSUM", "yes")
        monkeypatch.setenv("GL_CBAM_READINESS_THRESHOLD", "90")
        monkeypatch.setenv("GL_CBAM_REGULATORY_VERSION", "CBAM-2027-v1")

        cfg = CBAMEngineConfig.from_env()

        assert cfg.max_workers == 8
        assert cfg.eori_strict_checksum is True
        assert cfg.readiness_threshold == 90.0
        assert cfg.regulatory_version == "CBAM-2027-v1"

    def test_invalid_integer_falls_back(self, monkeypatch):
        """An unparsable integer keeps the default."""
        monkeypatch.setenv("GL_CBAM_MAX_WORKERS", "many")

        assert CBAMEngineConfig.from_env().max_workers == 4


class TestSingleton:
    """Tests for get/set/reset."""

    def test_set_and_get(self):
        """set_config installs the instance returned by get_config."""
        cfg = CBAMEngineConfig(max_workers=2)
        set_config(cfg)

        assert get_config() is cfg

    def test_reset_reloads_from_env(self, monkeypatch):
        """After reset the next get_config reads the environment."""
        monkeypatch.setenv("GL_CBAM_DEADLINE_WARNING_DAYS", "14")
        reset_config()

        assert get_config().deadline_warning_days == 14
