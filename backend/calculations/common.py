"""
Freight Calc Core - Shared Calculation Helpers

Rounding, date parsing and validation result types used by every
calculation module.
"""

import math
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

ISO_DATE_FORMAT = "%Y-%m-%d"

CENT = Decimal("0.01")
ZERO = Decimal("0")

Number = Union[int, float, Decimal]


# ==================== ROUNDING ====================

def to_decimal(value: Optional[Number]) -> Decimal:
    """Convert a float/int/Decimal to Decimal without binary float noise."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_currency(amount: Number) -> Decimal:
    """Round to 2 decimal places, half away from zero."""
    return to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def round_quantity(value: float, decimals: int = 2) -> float:
    """Round a percentage or physical quantity (tons, kPa) for display."""
    return round(value, decimals)


def is_number(value: Any) -> bool:
    """Finite int, float or Decimal. Booleans are not numbers here."""
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return False
    if isinstance(value, Decimal):
        return value.is_finite()
    return math.isfinite(value)


# ==================== DATES ====================

def parse_iso_date(value: Union[str, date, datetime]) -> date:
    """Parse a YYYY-MM-DD string (or pass through a date/datetime)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(value[:10], ISO_DATE_FORMAT).date()


def try_parse_iso_date(value: Optional[Union[str, date, datetime]]) -> Optional[date]:
    """parse_iso_date for stored record dates: None when missing or malformed."""
    if not value:
        return None
    try:
        return parse_iso_date(value)
    except (TypeError, ValueError):
        return None


def format_iso_date(value: date) -> str:
    return value.strftime(ISO_DATE_FORMAT)


def is_iso_date(value: Optional[str]) -> bool:
    if not value:
        return False
    try:
        datetime.strptime(value, ISO_DATE_FORMAT)
    except (TypeError, ValueError):
        return False
    return True


# ==================== VALIDATION RESULTS ====================

@dataclass
class FieldError:
    """A single failed field check."""
    field: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "message": self.message}


@dataclass
class ValidationResult:
    """
    Outcome of a validation pass.

    Invalid business data is reported here rather than raised, so callers
    can show every problem at once.
    """
    valid: bool = True
    errors: List[FieldError] = field(default_factory=list)

    @property
    def error(self) -> Optional[str]:
        """First error message, or None when valid."""
        return self.errors[0].message if self.errors else None

    @classmethod
    def from_errors(cls, errors: List[FieldError]) -> "ValidationResult":
        return cls(valid=len(errors) == 0, errors=errors)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "valid": self.valid,
            "errors": [e.to_dict() for e in self.errors],
        }
        if self.error:
            result["error"] = self.error
        return result
