"""
Structured Validation Error Utilities

Standardized 422 responses for calculator validation failures, so the UI
can show field messages next to the right inputs.

Error Response Format:
{
    "error": "missing_parameter" | "invalid_parameter" | "validation_error",
    "parameter": "free_time_days",
    "message": "Free time days is required",
    "details": {"errors": [{"field": ..., "message": ...}]}
}
"""

from fastapi import HTTPException, status
from typing import Optional, Any

from calculations.common import ValidationResult, is_iso_date


class ValidationErrorResponse:
    """Structured validation error response builder."""

    @staticmethod
    def missing_parameter(parameter: str, message: Optional[str] = None) -> dict:
        return {
            "error": "missing_parameter",
            "parameter": parameter,
            "message": message or f"{parameter} is required"
        }

    @staticmethod
    def invalid_parameter(parameter: str, message: str, value: Optional[Any] = None) -> dict:
        """
        Create an invalid parameter error response.

        Args:
            parameter: Name of the invalid parameter
            message: Description of the validation error
            value: The invalid value (optional, truncated to 100 chars)
        """
        response = {
            "error": "invalid_parameter",
            "parameter": parameter,
            "message": message
        }
        if value is not None:
            response["received_value"] = str(value)[:100]
        return response

    @staticmethod
    def validation_error(message: str, parameter: Optional[str] = None, details: Optional[dict] = None) -> dict:
        response = {
            "error": "validation_error",
            "parameter": parameter,
            "message": message
        }
        if details:
            response["details"] = details
        return response

    @staticmethod
    def from_result(result: ValidationResult) -> dict:
        """
        Build a response from a failed ValidationResult.

        The first field error becomes the headline; all of them are listed
        under details.
        """
        first = result.errors[0] if result.errors else None
        return ValidationErrorResponse.validation_error(
            message=first.message if first else "Validation failed",
            parameter=first.field if first else None,
            details={"errors": [e.to_dict() for e in result.errors]},
        )


def raise_missing_parameter(parameter: str, message: Optional[str] = None):
    raise HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail=ValidationErrorResponse.missing_parameter(parameter, message)
    )


def raise_invalid_parameter(parameter: str, message: str, value: Optional[Any] = None):
    raise HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail=ValidationErrorResponse.invalid_parameter(parameter, message, value)
    )


def raise_for_validation(result: ValidationResult):
    """
    Raise HTTPException (422) when a calculator rejected its input.

    Does nothing for a valid result.
    """
    if result.valid:
        return
    raise HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail=ValidationErrorResponse.from_result(result)
    )


def validate_iso_date(value: Optional[str], parameter: str, required: bool = True) -> Optional[str]:
    """
    Validate a YYYY-MM-DD request parameter.

    Returns the value (or None when optional and absent).
    """
    if not value:
        if required:
            raise_missing_parameter(parameter)
        return None

    if not is_iso_date(value):
        raise_invalid_parameter(parameter, f"{parameter} must be a date in YYYY-MM-DD format", value)
    return value
