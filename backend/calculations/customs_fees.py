"""
Freight Calc Core - Customs Fee & Container Storage Calculations

Covers fees raised against customs declarations (PIB for imports, PEB for
exports) and container storage at the terminal:
- Fee, payment and container status validation
- Fee filtering and category roll-ups
- Free time expiry, storage days and storage fees
"""

import logging
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Dict, Any, List, Optional, Iterable
from dataclasses import dataclass

from pydantic import BaseModel

from .common import (
    ZERO,
    FieldError,
    ValidationResult,
    format_iso_date,
    is_iso_date,
    is_number,
    parse_iso_date,
    round_currency,
    to_decimal,
    try_parse_iso_date,
)

logger = logging.getLogger(__name__)


# ==================== ENUMERATIONS ====================

class FeeCategory(str, Enum):
    DUTY = "duty"
    TAX = "tax"
    SERVICE = "service"
    STORAGE = "storage"
    PENALTY = "penalty"
    OTHER = "other"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    WAIVED = "waived"
    CANCELLED = "cancelled"


class ContainerStatus(str, Enum):
    AT_PORT = "at_port"
    GATE_OUT = "gate_out"
    DELIVERED = "delivered"
    RETURNED_EMPTY = "returned_empty"


class DocumentType(str, Enum):
    """Customs declaration the fee belongs to."""
    PIB = "pib"  # Import declaration
    PEB = "peb"  # Export declaration


class FreeTimeStatus(str, Enum):
    OK = "ok"
    WARNING = "warning"
    CRITICAL = "critical"


FEE_CATEGORIES = tuple(c.value for c in FeeCategory)
PAYMENT_STATUSES = tuple(s.value for s in PaymentStatus)
CONTAINER_STATUSES = tuple(s.value for s in ContainerStatus)
DOCUMENT_TYPES = tuple(t.value for t in DocumentType)

# Days before free time ends at which a container is flagged
FREE_TIME_WARNING_DAYS = 2


# ==================== MODELS ====================

class FeeRecord(BaseModel):
    """A customs fee linked to exactly one PIB or PEB."""
    id: str = ""
    document_type: Optional[str] = None
    pib_id: Optional[str] = None
    peb_id: Optional[str] = None
    job_order_id: Optional[str] = None
    fee_type_id: Optional[str] = None
    fee_category: Optional[str] = None
    fee_name: Optional[str] = None
    description: Optional[str] = None
    currency: str = "IDR"
    amount: float = 0
    payment_status: str = PaymentStatus.PENDING.value
    payment_date: Optional[str] = None
    pib_ref: Optional[str] = None
    peb_ref: Optional[str] = None
    jo_number: Optional[str] = None
    created_at: Optional[str] = None


class FeeFilters(BaseModel):
    document_type: Optional[str] = None
    fee_category: Optional[str] = None
    payment_status: Optional[str] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    search: Optional[str] = None


class ContainerTracking(BaseModel):
    """A container held at a terminal against a customs declaration."""
    id: str = ""
    container_number: str = ""
    terminal: Optional[str] = None
    arrival_date: Optional[str] = None
    free_time_days: int = 0
    gate_out_date: Optional[str] = None
    daily_rate: Optional[float] = None
    status: str = ContainerStatus.AT_PORT.value
    pib_ref: Optional[str] = None
    peb_ref: Optional[str] = None
    jo_number: Optional[str] = None


class ContainerFilters(BaseModel):
    status: Optional[str] = None
    search: Optional[str] = None


@dataclass
class StorageDetails:
    free_time_end: Optional[str]
    storage_days: int
    total_storage_fee: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "free_time_end": self.free_time_end,
            "storage_days": self.storage_days,
            "total_storage_fee": float(self.total_storage_fee),
        }


@dataclass
class FeeStatistics:
    total_fees: int
    total_pending: int
    total_paid: int
    pending_amount: Decimal
    paid_amount: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_fees": self.total_fees,
            "total_pending": self.total_pending,
            "total_paid": self.total_paid,
            "pending_amount": float(self.pending_amount),
            "paid_amount": float(self.paid_amount),
        }


@dataclass
class ContainerStatistics:
    total_containers: int
    at_port: int
    past_free_time: int
    total_storage_fees: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_containers": self.total_containers,
            "at_port": self.at_port,
            "past_free_time": self.past_free_time,
            "total_storage_fees": float(self.total_storage_fees),
        }


# ==================== VALIDATION ====================

def is_valid_fee_category(category: Optional[str]) -> bool:
    return category in FEE_CATEGORIES


def is_valid_payment_status(status: Optional[str]) -> bool:
    return status in PAYMENT_STATUSES


def is_valid_container_status(status: Optional[str]) -> bool:
    return status in CONTAINER_STATUSES


def is_valid_document_type(document_type: Optional[str]) -> bool:
    return document_type in DOCUMENT_TYPES


def is_valid_document_link(
    document_type: Optional[str],
    pib_id: Optional[str],
    peb_id: Optional[str],
) -> bool:
    """A PIB fee needs a pib_id and a PEB fee needs a peb_id."""
    if document_type == DocumentType.PIB.value:
        return bool(pib_id)
    if document_type == DocumentType.PEB.value:
        return bool(peb_id)
    return False


def is_valid_fee_amount(amount: Any) -> bool:
    """Positive, finite number."""
    return is_number(amount) and amount > 0


def validate_fee_form(data: Dict[str, Any]) -> ValidationResult:
    """Field-level checks for the create/edit fee form."""
    errors: List[FieldError] = []
    document_type = data.get("document_type")

    if not document_type:
        errors.append(FieldError("document_type", "Document type is required"))
    elif not is_valid_document_type(document_type):
        errors.append(FieldError("document_type", "Invalid document type"))

    if document_type == DocumentType.PIB.value and not data.get("pib_id"):
        errors.append(FieldError("pib_id", "PIB document is required"))
    if document_type == DocumentType.PEB.value and not data.get("peb_id"):
        errors.append(FieldError("peb_id", "PEB document is required"))

    if not data.get("fee_type_id"):
        errors.append(FieldError("fee_type_id", "Fee type is required"))

    amount = data.get("amount")
    if amount is None or amount == 0:
        errors.append(FieldError("amount", "Amount is required"))
    elif not is_valid_fee_amount(amount):
        errors.append(FieldError("amount", "Amount must be a positive number"))

    currency = data.get("currency")
    if not currency or not str(currency).strip():
        errors.append(FieldError("currency", "Currency is required"))

    return ValidationResult.from_errors(errors)


def validate_fee_payment(payment_status: Optional[str], payment_date: Optional[str]) -> ValidationResult:
    """A payment date is required for paid fees and only for paid fees."""
    errors: List[FieldError] = []

    if not is_valid_payment_status(payment_status):
        errors.append(FieldError("payment_status", "Invalid payment status"))
    elif payment_status == PaymentStatus.PAID.value:
        if not payment_date:
            errors.append(FieldError("payment_date", "Payment date is required for paid fees"))
        elif not is_iso_date(payment_date):
            errors.append(FieldError("payment_date", "Payment date must be YYYY-MM-DD"))
    elif payment_date:
        errors.append(FieldError("payment_date", "Payment date is only allowed for paid fees"))

    return ValidationResult.from_errors(errors)


def validate_container_form(data: Dict[str, Any]) -> ValidationResult:
    """Field-level checks for the container tracking form."""
    errors: List[FieldError] = []

    container_number = data.get("container_number")
    if not container_number or not str(container_number).strip():
        errors.append(FieldError("container_number", "Container number is required"))

    free_time_days = data.get("free_time_days")
    if free_time_days is None:
        errors.append(FieldError("free_time_days", "Free time days is required"))
    elif not is_number(free_time_days):
        errors.append(FieldError("free_time_days", "Free time days must be a number"))
    elif free_time_days < 0:
        errors.append(FieldError("free_time_days", "Free time days must be non-negative"))

    daily_rate = data.get("daily_rate")
    if daily_rate is not None and not is_number(daily_rate):
        errors.append(FieldError("daily_rate", "Daily rate must be a number"))
    elif daily_rate is not None and daily_rate < 0:
        errors.append(FieldError("daily_rate", "Daily rate must be non-negative"))

    return ValidationResult.from_errors(errors)


# ==================== FEES ====================

def _contains(value: Optional[str], needle: str) -> bool:
    return bool(value) and needle in value.lower()


def filter_fees(fees: Iterable[FeeRecord], filters: FeeFilters) -> List[FeeRecord]:
    """Apply every provided filter (AND)."""
    date_from = parse_iso_date(filters.date_from) if filters.date_from else None
    date_to = parse_iso_date(filters.date_to) if filters.date_to else None
    search = filters.search.strip().lower() if filters.search and filters.search.strip() else None

    matched = []
    for fee in fees:
        if filters.document_type and fee.document_type != filters.document_type:
            continue
        if filters.fee_category and fee.fee_category != filters.fee_category:
            continue
        if filters.payment_status and fee.payment_status != filters.payment_status:
            continue

        if date_from or date_to:
            created = try_parse_iso_date(fee.created_at)
            if created is None:
                continue
            if date_from and created < date_from:
                continue
            if date_to and created > date_to:
                continue

        if search and not any(
            _contains(v, search)
            for v in (fee.description, fee.fee_name, fee.pib_ref, fee.peb_ref, fee.jo_number)
        ):
            continue

        matched.append(fee)
    return matched


def aggregate_fees_by_category(fees: Iterable[FeeRecord]) -> Dict[str, Decimal]:
    """
    Sum fee amounts per category.

    Missing or unrecognised categories are counted under 'other', so the
    buckets always add up to the total of the input amounts.
    """
    totals: Dict[str, Decimal] = {category: ZERO for category in FEE_CATEGORIES}

    for fee in fees:
        category = fee.fee_category if is_valid_fee_category(fee.fee_category) else FeeCategory.OTHER.value
        if fee.fee_category and category != fee.fee_category:
            logger.debug(f"Fee {fee.id} has unknown category '{fee.fee_category}', counted as other")
        totals[category] += to_decimal(fee.amount)

    return totals


def calculate_fee_statistics(fees: Iterable[FeeRecord]) -> FeeStatistics:
    total = pending = paid = 0
    pending_amount = paid_amount = ZERO

    for fee in fees:
        total += 1
        if fee.payment_status == PaymentStatus.PENDING.value:
            pending += 1
            pending_amount += to_decimal(fee.amount)
        elif fee.payment_status == PaymentStatus.PAID.value:
            paid += 1
            paid_amount += to_decimal(fee.amount)

    return FeeStatistics(
        total_fees=total,
        total_pending=pending,
        total_paid=paid,
        pending_amount=round_currency(pending_amount),
        paid_amount=round_currency(paid_amount),
    )


# ==================== CONTAINERS ====================

def calculate_free_time_end(arrival_date: str, free_time_days: int) -> str:
    """Arrival date plus free time, in calendar days."""
    return format_iso_date(parse_iso_date(arrival_date) + timedelta(days=free_time_days))


def calculate_storage_days(free_time_end: str, gate_out_date: str) -> int:
    """Chargeable days after free time; 0 if the container left in time."""
    days = (parse_iso_date(gate_out_date) - parse_iso_date(free_time_end)).days
    return max(0, days)


def calculate_storage_fee(storage_days: int, daily_rate: float) -> Decimal:
    if storage_days <= 0 or daily_rate is None or daily_rate <= 0:
        return round_currency(ZERO)
    return round_currency(Decimal(storage_days) * to_decimal(daily_rate))


def get_days_until_free_time_expires(free_time_end: str, today: Optional[date] = None) -> int:
    """Negative once free time has passed."""
    today = today or date.today()
    return (parse_iso_date(free_time_end) - today).days


def get_free_time_status(free_time_end: Optional[str], today: Optional[date] = None) -> str:
    if not free_time_end:
        return FreeTimeStatus.OK.value

    days_remaining = get_days_until_free_time_expires(free_time_end, today)
    if days_remaining < 0:
        return FreeTimeStatus.CRITICAL.value
    if days_remaining <= FREE_TIME_WARNING_DAYS:
        return FreeTimeStatus.WARNING.value
    return FreeTimeStatus.OK.value


def calculate_container_storage_details(
    arrival_date: Optional[str],
    free_time_days: int,
    gate_out_date: Optional[str],
    daily_rate: Optional[float],
) -> StorageDetails:
    """Free time end, storage days and fee for one container."""
    if not arrival_date:
        return StorageDetails(None, 0, round_currency(ZERO))

    free_time_end = calculate_free_time_end(arrival_date, free_time_days)
    if not gate_out_date:
        return StorageDetails(free_time_end, 0, round_currency(ZERO))

    storage_days = calculate_storage_days(free_time_end, gate_out_date)
    fee = calculate_storage_fee(storage_days, daily_rate) if daily_rate else round_currency(ZERO)
    return StorageDetails(free_time_end, storage_days, fee)


def filter_containers(
    containers: Iterable[ContainerTracking],
    filters: ContainerFilters,
) -> List[ContainerTracking]:
    search = filters.search.strip().lower() if filters.search and filters.search.strip() else None

    matched = []
    for container in containers:
        if filters.status and container.status != filters.status:
            continue
        if search and not any(
            _contains(v, search)
            for v in (
                container.container_number,
                container.terminal,
                container.pib_ref,
                container.peb_ref,
                container.jo_number,
            )
        ):
            continue
        matched.append(container)
    return matched


def calculate_container_statistics(
    containers: Iterable[ContainerTracking],
    today: Optional[date] = None,
) -> ContainerStatistics:
    """Dashboard counts: containers at port, past free time, storage fees."""
    total = at_port = past_free_time = 0
    fees = ZERO

    for container in containers:
        total += 1
        if container.status == ContainerStatus.AT_PORT.value:
            at_port += 1

        unparsable = [
            value for value in (container.arrival_date, container.gate_out_date)
            if value and try_parse_iso_date(value) is None
        ]
        if unparsable:
            logger.warning(
                f"Container {container.container_number} has unparsable dates {unparsable}, "
                f"excluded from storage totals"
            )
            continue

        details = calculate_container_storage_details(
            container.arrival_date,
            container.free_time_days,
            container.gate_out_date,
            container.daily_rate,
        )
        fees += details.total_storage_fee

        if container.status == ContainerStatus.AT_PORT.value:
            if get_free_time_status(details.free_time_end, today) == FreeTimeStatus.CRITICAL.value:
                past_free_time += 1

    return ContainerStatistics(
        total_containers=total,
        at_port=at_port,
        past_free_time=past_free_time,
        total_storage_fees=round_currency(fees),
    )
