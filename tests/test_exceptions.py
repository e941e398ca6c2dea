"""Tests for the CBAM engine exception hierarchy.

Covers:
- Base exception functionality and error code generation
- Contract violation errors (InvalidInputError, ReferenceDataError,
  ConfigurationError)
- Exception serialization

Author: GreenLang CBAM Team
Date: March 2026
Status: Production Ready
"""

import json

import pytest
from pydantic import BaseModel, ValidationError

from cbam_engine.exceptions import (
    CBAMEngineError,
    ConfigurationError,
    InvalidInputError,
    ReferenceDataError,
)


# ==============================================================================
# Base Exception Tests
# ==============================================================================

class TestCBAMEngineError:
    """Tests for base CBAMEngineError."""

    def test_create_basic_exception(self):
        """Can create basic exception with message."""
        exc = CBAMEngineError("Something went wrong")

        assert exc.message == "Something went wrong"
        assert exc.context == {}
        assert exc.error_code == "GL_CBAM_CBAM_ENGINE_ERROR"

    def test_str_includes_error_code(self):
        """String form leads with the error code."""
        exc = CBAMEngineError("boom", error_code="GL_CBAM_CUSTOM")

        assert str(exc) == "[GL_CBAM_CUSTOM] - boom"

    def test_to_dict(self):
        """Serialises to a plain dictionary."""
        exc = CBAMEngineError("boom", context={"cn_code": "72083900"})
        data = exc.to_dict()

        assert data["error_type"] == "CBAMEngineError"
        assert data["message"] == "boom"
        assert data["context"] == {"cn_code": "72083900"}
        assert "timestamp" in data

    def test_to_json(self):
        """Serialises to JSON."""
        exc = CBAMEngineError("boom")

        assert json.loads(exc.to_json())["message"] == "boom"


# ==============================================================================
# Contract Violation Tests
# ==============================================================================

class TestInvalidInputError:
    """Tests for InvalidInputError."""

    def test_error_code(self):
        """Error code derives from the class name."""
        exc = InvalidInputError("bad")

        assert exc.error_code == "GL_CBAM_INVALID_INPUT_ERROR"
        assert isinstance(exc, CBAMEngineError)

    def test_invalid_fields_in_context(self):
        """Invalid fields are stored in the context."""
        exc = InvalidInputError("bad", invalid_fields={"quantity": "not a number"})

        assert exc.context["invalid_fields"] == {"quantity": "not a number"}

    def test_from_pydantic(self):
        """Pydantic validation errors map to field locations."""

        class Sample(BaseModel):
            quantity: float

        with pytest.raises(ValidationError) as info:
            Sample.model_validate({"quantity": "many"})

        exc = InvalidInputError.from_pydantic("sample", info.value)

        assert exc.message == "Invalid sample"
        assert "quantity" in exc.context["invalid_fields"]


class TestReferenceDataError:
    """Tests for ReferenceDataError."""

    def test_problems_and_source(self):
        """Problems and source are stored in the context."""
        exc = ReferenceDataError(
            "inconsistent", problems=["2029 < 2028"], source="tables.yaml",
        )

        assert exc.context["problems"] == ["2029 < 2028"]
        assert exc.context["source"] == "tables.yaml"
        assert exc.error_code == "GL_CBAM_REFERENCE_DATA_ERROR"


class TestConfigurationError:
    """Tests for ConfigurationError."""

    def test_config_key(self):
        """The offending key is stored in the context."""
        exc = ConfigurationError("bad workers", config_key="max_workers")

        assert exc.context["config_key"] == "max_workers"
        assert exc.error_code == "GL_CBAM_CONFIGURATION_ERROR"
