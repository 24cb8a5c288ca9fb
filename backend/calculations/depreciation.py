"""
Freight Calc Core - Depreciation Engine

Monthly depreciation for fixed assets (trucks, trailers, cranes, equipment).

Methods:
1. Straight Line: (purchase cost - salvage value) ÷ useful life months
2. Declining Balance: book value × (2 ÷ useful life months)

Both are capped so that an asset is never depreciated below its salvage
value. Amounts are Decimal and rounded to cents (half away from zero).
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, Any, List, Optional, Union
from dataclasses import dataclass, field

from pydantic import BaseModel

from .common import (
    ZERO,
    FieldError,
    Number,
    ValidationResult,
    format_iso_date,
    parse_iso_date,
    round_currency,
    to_decimal,
)

logger = logging.getLogger(__name__)


FULLY_DEPRECIATED_REASON = "Fully depreciated"

# Declining balance uses double the straight-line rate
DECLINING_BALANCE_FACTOR = Decimal("2")


class DepreciationMethod(str, Enum):
    """Supported depreciation methods."""
    STRAIGHT_LINE = "straight_line"
    DECLINING_BALANCE = "declining_balance"


# ==================== MODELS ====================

class DepreciableAsset(BaseModel):
    """Current depreciation state of a fixed asset, as read from the asset register."""
    id: str = ""
    asset_code: Optional[str] = None
    asset_name: Optional[str] = None
    purchase_cost: float = 0
    salvage_value: float = 0
    book_value: float = 0
    accumulated_depreciation: float = 0
    useful_life_months: int = 0
    depreciation_method: str = DepreciationMethod.STRAIGHT_LINE.value


@dataclass
class DepreciationRecord:
    """One asset's depreciation for one period, ready to be persisted."""
    asset_id: str
    period_date: str
    depreciation_amount: Decimal
    book_value_before: Decimal
    book_value_after: Decimal
    accumulated_depreciation_after: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "asset_id": self.asset_id,
            "period_date": self.period_date,
            "depreciation_amount": float(self.depreciation_amount),
            "book_value_before": float(self.book_value_before),
            "book_value_after": float(self.book_value_after),
            "accumulated_depreciation_after": float(self.accumulated_depreciation_after),
        }


@dataclass
class SkippedAsset:
    asset_id: str
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {"asset_id": self.asset_id, "reason": self.reason}


@dataclass
class DepreciationBatchResult:
    """Result of a depreciation run over many assets."""
    period_date: str
    records: List[DepreciationRecord] = field(default_factory=list)
    skipped: List[SkippedAsset] = field(default_factory=list)

    @property
    def total_depreciation(self) -> Decimal:
        return calculate_total_depreciation(self.records)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period_date": self.period_date,
            "records": [r.to_dict() for r in self.records],
            "skipped": [s.to_dict() for s in self.skipped],
            "processed_count": len(self.records),
            "skipped_count": len(self.skipped),
            "total_depreciation": float(self.total_depreciation),
        }


# ==================== CALCULATIONS ====================

def _remaining_depreciable(asset: DepreciableAsset) -> Decimal:
    """Amount left before the asset reaches salvage value."""
    return round_currency(to_decimal(asset.book_value) - to_decimal(asset.salvage_value))


def _cap(amount: Decimal, asset: DepreciableAsset) -> Decimal:
    remaining = _remaining_depreciable(asset)
    if remaining <= ZERO:
        return round_currency(ZERO)
    return min(amount, remaining)


def calculate_straight_line_depreciation(asset: DepreciableAsset) -> Decimal:
    """(purchase_cost - salvage_value) / useful_life_months, capped at remaining value."""
    if asset.useful_life_months <= 0:
        return round_currency(ZERO)

    depreciable_base = to_decimal(asset.purchase_cost) - to_decimal(asset.salvage_value)
    monthly = round_currency(depreciable_base / Decimal(asset.useful_life_months))
    return _cap(max(monthly, ZERO), asset)


def calculate_declining_balance_depreciation(asset: DepreciableAsset) -> Decimal:
    """book_value * (2 / useful_life_months), capped at remaining value."""
    if asset.useful_life_months <= 0:
        return round_currency(ZERO)

    rate = DECLINING_BALANCE_FACTOR / Decimal(asset.useful_life_months)
    monthly = round_currency(to_decimal(asset.book_value) * rate)
    return _cap(max(monthly, ZERO), asset)


def is_fully_depreciated(asset: DepreciableAsset) -> bool:
    """An asset is fully depreciated once its book value reaches salvage value."""
    return to_decimal(asset.book_value) == to_decimal(asset.salvage_value)


def calculate_depreciation(asset: DepreciableAsset) -> Decimal:
    """
    Calculate this period's depreciation for an asset.

    Returns 0 for fully depreciated assets and for a useful life of zero
    months or less.
    """
    if asset.useful_life_months <= 0 or is_fully_depreciated(asset):
        return round_currency(ZERO)

    if asset.depreciation_method == DepreciationMethod.STRAIGHT_LINE.value:
        return calculate_straight_line_depreciation(asset)
    if asset.depreciation_method == DepreciationMethod.DECLINING_BALANCE.value:
        return calculate_declining_balance_depreciation(asset)

    logger.warning(f"Unknown depreciation method '{asset.depreciation_method}' for asset {asset.id}")
    return round_currency(ZERO)


def calculate_new_book_value(
    current_book_value: Number,
    depreciation_amount: Number,
    salvage_value: Number,
) -> Decimal:
    """max(current - depreciation, salvage), rounded to cents."""
    new_value = to_decimal(current_book_value) - to_decimal(depreciation_amount)
    return round_currency(max(new_value, to_decimal(salvage_value)))


def validate_depreciation_inputs(asset: DepreciableAsset) -> ValidationResult:
    """Check the asset values a depreciation run depends on."""
    errors: List[FieldError] = []

    if asset.purchase_cost < 0:
        errors.append(FieldError("purchase_cost", "Purchase cost cannot be negative"))

    if asset.salvage_value < 0:
        errors.append(FieldError("salvage_value", "Salvage value cannot be negative"))
    elif asset.salvage_value > asset.purchase_cost:
        errors.append(FieldError("salvage_value", "Salvage value cannot exceed purchase cost"))

    return ValidationResult.from_errors(errors)


# ==================== BATCH PROCESSING ====================

def get_monthly_period_date(value: Optional[Union[str, date, datetime]] = None) -> str:
    """First day of the month (YYYY-MM-01) for the given date, or for today."""
    day = parse_iso_date(value) if value is not None else date.today()
    return format_iso_date(day.replace(day=1))


def process_depreciation_batch(
    assets: List[DepreciableAsset],
    period_date: str,
) -> DepreciationBatchResult:
    """
    Run one period of depreciation over a list of assets.

    Fully depreciated assets and assets with invalid values are skipped
    with a reason. Assets whose depreciation works out to zero produce
    no record.
    """
    result = DepreciationBatchResult(period_date=period_date)

    for asset in assets:
        if is_fully_depreciated(asset):
            result.skipped.append(SkippedAsset(asset.id, FULLY_DEPRECIATED_REASON))
            continue

        validation = validate_depreciation_inputs(asset)
        if not validation.valid:
            result.skipped.append(SkippedAsset(asset.id, validation.error))
            continue

        amount = calculate_depreciation(asset)
        if amount <= ZERO:
            continue

        book_before = round_currency(asset.book_value)
        result.records.append(DepreciationRecord(
            asset_id=asset.id,
            period_date=period_date,
            depreciation_amount=amount,
            book_value_before=book_before,
            book_value_after=calculate_new_book_value(book_before, amount, asset.salvage_value),
            accumulated_depreciation_after=round_currency(
                to_decimal(asset.accumulated_depreciation) + amount
            ),
        ))

    logger.info(
        f"Depreciation run {period_date}: {len(result.records)} records, "
        f"{len(result.skipped)} skipped, total {result.total_depreciation}"
    )
    return result


def calculate_total_depreciation(records: List[DepreciationRecord]) -> Decimal:
    """Sum of depreciation amounts across records."""
    return round_currency(sum((r.depreciation_amount for r in records), ZERO))
