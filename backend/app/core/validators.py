############################################################
#
# errorwise - Tiered LLM Analysis Orchestrator
#
# validators.py: Backend response validation
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Backend response validation for ErrorWise."""

from typing import Any, Dict, List, Optional, Tuple

from backend.app.core.errors import MalformedResponse
from backend.app.core.schemas import AnalysisResult
from backend.app.settings import get_settings


class ValidationError:
    """Represents a validation error."""

    def __init__(self, path: str, message: str, expected: Any = None, actual: Any = None):
        self.path = path
        self.message = message
        self.expected = expected
        self.actual = actual

    def __repr__(self) -> str:
        return f"ValidationError(path={self.path!r}, message={self.message!r})"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "path": self.path,
            "message": self.message,
            "expected": self.expected,
            "actual": self.actual,
        }


class ResponseValidator:
    """
    Validates an AnalysisResult before it is trusted.

    A result whose explanation or solution is missing or shorter than the
    minimum length is treated the same as a backend failure.
    """

    REQUIRED_FIELDS = ("explanation", "solution")

    def __init__(self, min_field_length: Optional[int] = None):
        if min_field_length is None:
            min_field_length = get_settings().min_response_field_length
        self.min_field_length = min_field_length

    def check(self, result: Any) -> Tuple[bool, List[ValidationError]]:
        """
        Check a result without raising.

        Returns:
            Tuple of (is_valid, list of validation errors)
        """
        if not isinstance(result, AnalysisResult):
            return False, [
                ValidationError(
                    path="$",
                    message="Result is not an AnalysisResult",
                    expected="AnalysisResult",
                    actual=type(result).__name__,
                )
            ]

        errors = []
        for name in self.REQUIRED_FIELDS:
            value = getattr(result, name, None)
            if not isinstance(value, str) or not value.strip():
                errors.append(ValidationError(path=f"$.{name}", message="missing"))
            elif len(value.strip()) < self.min_field_length:
                errors.append(
                    ValidationError(
                        path=f"$.{name}",
                        message="too short",
                        expected=f">= {self.min_field_length} chars",
                        actual=len(value.strip()),
                    )
                )
        return len(errors) == 0, errors

    def validate(self, result: Any) -> AnalysisResult:
        """
        Validate a result.

        Raises:
            MalformedResponse: If any required field is missing or too short
        """
        is_valid, errors = self.check(result)
        if not is_valid:
            detail = "; ".join(f"{e.path} {e.message}" for e in errors)
            raise MalformedResponse(f"Response failed validation: {detail}")
        return result
