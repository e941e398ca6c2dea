"""CBAM Engine Exception Hierarchy.

Regulatory findings (a missing field, an out-of-range year, a failed EORI
pattern) are never raised: they are returned as ``ValidationIssue`` records
on the engine results. The exceptions below are reserved for contract
violations that indicate a caller bug or broken deployment.

Exception Hierarchy:
    CBAMEngineError (base)
    ├── InvalidInputError
    ├── ReferenceDataError
    └── ConfigurationError

All exceptions include rich context:
- error_code: Unique error identifier
- context: Dictionary with error-specific details
- timestamp: When the error occurred

Example:
    >>> from cbam_engine.exceptions import InvalidInputError
    >>> raise InvalidInputError(
    ...     message="Emission entry must be a mapping",
    ...     context={"received_type": "list"},
    ... )

Author: GreenLang CBAM Team
Date: March 2026
Status: Production Ready
"""

import json
import re
from datetime import datetime
from typing import Any, Dict, List, Optional


# ==============================================================================
# Base Exception
# ==============================================================================

class CBAMEngineError(Exception):
    """Base exception for all CBAM engine errors.

    Attributes:
        message: Human-readable error message
        error_code: Unique error identifier (e.g., "GL_CBAM_INVALID_INPUT_ERROR")
        context: Dictionary with error-specific details
        timestamp: When the error occurred
    """

    ERROR_PREFIX = "GL_CBAM"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self._generate_error_code()
        self.context = context or {}
        self.timestamp = datetime.now()

    def _generate_error_code(self) -> str:
        """Generate an error code from the class name.

        Returns:
            Error code like "GL_CBAM_REFERENCE_DATA_ERROR"
        """
        error_type = re.sub(r'(?<!^)(?=[A-Z])', '_', self.__class__.__name__).upper()
        error_type = error_type.replace("C_B_A_M_", "CBAM_")
        return f"{self.ERROR_PREFIX}_{error_type}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def to_json(self) -> str:
        """Convert exception to JSON string."""
        return json.dumps(self.to_dict(), indent=2, default=str)

    def __str__(self) -> str:
        return f"[{self.error_code}] - {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message='{self.message}', "
            f"error_code='{self.error_code}')"
        )


# ==============================================================================
# Contract violations
# ==============================================================================

class InvalidInputError(CBAMEngineError):
    """Input shape does not match the engine contract.

    Raised when an entry or report cannot be parsed into its model at all,
    e.g. a list passed where a mapping is expected or a quantity that is not
    a number. Well-formed records with regulatory defects are not errors.

    Example:
        >>> raise InvalidInputError(
        ...     message="Invalid emission entry",
        ...     invalid_fields={"quantity": "Input should be a valid number"},
        ... )
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        invalid_fields: Optional[Dict[str, str]] = None,
    ):
        if invalid_fields:
            context = context or {}
            context["invalid_fields"] = invalid_fields
        super().__init__(message, context=context)

    @classmethod
    def from_pydantic(cls, model_name: str, exc: Any) -> "InvalidInputError":
        """Build from a pydantic ``ValidationError``."""
        invalid: Dict[str, str] = {}
        for err in exc.errors():
            loc = ".".join(str(part) for part in err.get("loc", ())) or "<root>"
            invalid[loc] = err.get("msg", "invalid")
        return cls(f"Invalid {model_name}", invalid_fields=invalid)


class ReferenceDataError(CBAMEngineError):
    """Reference tables are malformed or internally inconsistent.

    Example:
        >>> raise ReferenceDataError(
        ...     message="Phase-out schedule must be non-decreasing",
        ...     problems=["2029 (0.2) < 2028 (0.1)"],
        ... )
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        problems: Optional[List[str]] = None,
        source: Optional[str] = None,
    ):
        context = context or {}
        if problems:
            context["problems"] = problems
        if source:
            context["source"] = source
        super().__init__(message, context=context)


class ConfigurationError(CBAMEngineError):
    """Engine configuration is invalid.

    Example:
        >>> raise ConfigurationError(
        ...     message="max_workers must be positive",
        ...     config_key="max_workers",
        ... )
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        config_key: Optional[str] = None,
    ):
        if config_key:
            context = context or {}
            context["config_key"] = config_key
        super().__init__(message, context=context)


__all__ = [
    "CBAMEngineError",
    "InvalidInputError",
    "ReferenceDataError",
    "ConfigurationError",
]
