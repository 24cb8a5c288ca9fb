"""
Utils Package

Provides utility modules for:
- validation_errors: Structured 422 responses for the API layer
"""

from .validation_errors import (
    ValidationErrorResponse,
    raise_missing_parameter,
    raise_invalid_parameter,
    raise_for_validation,
    validate_iso_date,
)

__all__ = [
    'ValidationErrorResponse',
    'raise_missing_parameter',
    'raise_invalid_parameter',
    'raise_for_validation',
    'validate_iso_date',
]
