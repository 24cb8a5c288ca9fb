"""
Freight Calc Core - Report Aggregators

Dashboard rollups over lists of business records:
- Quotation status counts and conversion rates
- Customer payment history and slow payers
- Accounts receivable aging
- Report catalogue search, ordering and role visibility
"""

import logging
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Dict, Any, List, Optional, Iterable, Sequence
from dataclasses import dataclass, field

from pydantic import BaseModel

from .common import (
    ZERO,
    parse_iso_date,
    round_currency,
    round_quantity,
    to_decimal,
)

logger = logging.getLogger(__name__)


# ==================== CONSTANTS ====================

class QuotationStatus(str, Enum):
    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"


# Pseudo-status for quotations already turned into job orders
CONVERTED_STATUS = "converted"

QUOTATION_STATUSES = tuple(s.value for s in QuotationStatus) + (CONVERTED_STATUS,)

SLOW_PAYER_THRESHOLD_DAYS = 45


class AgingSeverity(str, Enum):
    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"


# (label, min days overdue, max days overdue); None means unbounded
AGING_BUCKETS = (
    ("Current", None, 0),
    ("1-30 Days", 1, 30),
    ("31-60 Days", 31, 60),
    ("61-90 Days", 61, 90),
    ("90+ Days", 91, None),
)


# ==================== MODELS ====================

class QuotationRecord(BaseModel):
    id: str = ""
    status: Optional[str] = None
    converted_to_jo: bool = False
    created_at: Optional[str] = None
    approved_at: Optional[str] = None
    converted_to_jo_at: Optional[str] = None


class PaymentRecord(BaseModel):
    """One paid (or part-paid) invoice."""
    customer_id: str
    customer_name: str = ""
    invoice_amount: float = 0
    paid_amount: float = 0
    days_to_pay: Optional[float] = None


class InvoiceRecord(BaseModel):
    id: str = ""
    invoice_number: str = ""
    invoice_date: Optional[str] = None
    due_date: str
    total_amount: float = 0
    customer_name: Optional[str] = None


class ReportConfiguration(BaseModel):
    id: str = ""
    report_code: str = ""
    report_name: str = ""
    description: Optional[str] = None
    report_category: Optional[str] = None
    allowed_roles: List[str] = []
    is_active: bool = True
    display_order: int = 0
    href: Optional[str] = None
    icon: Optional[str] = None


@dataclass
class StatusCount:
    status: str
    count: int
    percentage: float

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status, "count": self.count, "percentage": self.percentage}


@dataclass
class ConversionRate:
    from_stage: str
    to_stage: str
    from_count: int
    to_count: int
    rate: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from_stage": self.from_stage,
            "to_stage": self.to_stage,
            "from_count": self.from_count,
            "to_count": self.to_count,
            "rate": self.rate,
        }


@dataclass
class QuotationConversionReport:
    period_start: Optional[str]
    period_end: Optional[str]
    status_counts: List[StatusCount]
    conversion_rates: List[ConversionRate]
    total_quotations: int
    total_converted: int
    overall_conversion_rate: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period": {"start": self.period_start, "end": self.period_end},
            "status_counts": [s.to_dict() for s in self.status_counts],
            "conversion_rates": [r.to_dict() for r in self.conversion_rates],
            "totals": {
                "total_quotations": self.total_quotations,
                "total_converted": self.total_converted,
                "overall_conversion_rate": self.overall_conversion_rate,
            },
        }


@dataclass
class CustomerPaymentSummary:
    customer_id: str
    customer_name: str
    invoice_count: int = 0
    total_invoiced: Decimal = ZERO
    total_paid: Decimal = ZERO
    average_days_to_pay: Optional[float] = None
    is_slow_payer: bool = False
    days_to_pay: List[float] = field(default_factory=list, repr=False)

    @property
    def outstanding_balance(self) -> Decimal:
        return self.total_invoiced - self.total_paid

    def to_dict(self) -> Dict[str, Any]:
        return {
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "invoice_count": self.invoice_count,
            "total_invoiced": float(self.total_invoiced),
            "total_paid": float(self.total_paid),
            "outstanding_balance": float(self.outstanding_balance),
            "average_days_to_pay": self.average_days_to_pay,
            "is_slow_payer": self.is_slow_payer,
        }


@dataclass
class CustomerPaymentReport:
    items: List[CustomerPaymentSummary]
    total_invoiced: Decimal
    total_paid: Decimal
    slow_payer_count: int

    @property
    def total_outstanding(self) -> Decimal:
        return self.total_invoiced - self.total_paid

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [i.to_dict() for i in self.items],
            "totals": {
                "total_invoiced": float(self.total_invoiced),
                "total_paid": float(self.total_paid),
                "total_outstanding": float(self.total_outstanding),
                "slow_payer_count": self.slow_payer_count,
            },
        }


@dataclass
class AgingItem:
    invoice_id: str
    invoice_number: str
    customer_name: str
    due_date: str
    amount: Decimal
    days_overdue: int
    bucket: str
    severity: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "invoice_id": self.invoice_id,
            "invoice_number": self.invoice_number,
            "customer_name": self.customer_name,
            "due_date": self.due_date,
            "amount": float(self.amount),
            "days_overdue": self.days_overdue,
            "bucket": self.bucket,
            "severity": self.severity,
        }


@dataclass
class AgingBucketSummary:
    label: str
    min_days: int
    max_days: Optional[int]
    count: int = 0
    total_amount: Decimal = ZERO

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "min_days": self.min_days,
            "max_days": self.max_days,
            "count": self.count,
            "total_amount": float(self.total_amount),
        }


@dataclass
class ARAgingReport:
    as_of_date: str
    summary: List[AgingBucketSummary]
    details: List[AgingItem]

    @property
    def total_amount(self) -> Decimal:
        return round_currency(sum((d.amount for d in self.details), ZERO))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "as_of_date": self.as_of_date,
            "summary": [s.to_dict() for s in self.summary],
            "details": [d.to_dict() for d in self.details],
            "totals": {
                "total_count": len(self.details),
                "total_amount": float(self.total_amount),
            },
        }


# ==================== QUOTATION CONVERSION ====================

def _effective_status(record: QuotationRecord) -> Optional[str]:
    return CONVERTED_STATUS if record.converted_to_jo else record.status


def count_by_status(records: Iterable[QuotationRecord]) -> List[StatusCount]:
    """
    Count quotations per status, with converted quotations counted only
    under 'converted'.

    Every known status is returned, including zero counts. Records with an
    unknown status are left out of the partition.
    """
    counts: Dict[str, int] = {status: 0 for status in QUOTATION_STATUSES}

    for record in records:
        status = _effective_status(record)
        if status in counts:
            counts[status] += 1
        else:
            logger.debug(f"Quotation {record.id} has unknown status '{record.status}', not counted")

    total = sum(counts.values())
    return [
        StatusCount(
            status=status,
            count=count,
            percentage=round_quantity(count / total * 100) if total > 0 else 0.0,
        )
        for status, count in counts.items()
    ]


def calculate_conversion_rate(from_count: int, to_count: int) -> float:
    """to/from as a percentage. Not clamped at 100."""
    if from_count == 0:
        return 0.0
    return to_count / from_count * 100


def build_quotation_conversion_report(
    records: Sequence[QuotationRecord],
    period_start: Optional[str] = None,
    period_end: Optional[str] = None,
) -> QuotationConversionReport:
    """Status breakdown plus created -> approved -> converted stage rates."""
    total = len(records)
    converted = sum(1 for r in records if r.converted_to_jo)
    approved = sum(
        1 for r in records
        if r.converted_to_jo or r.status == QuotationStatus.APPROVED.value
    )

    rates = [
        ConversionRate(
            "created", "approved", total, approved,
            round_quantity(calculate_conversion_rate(total, approved)),
        ),
        ConversionRate(
            "approved", "converted", approved, converted,
            round_quantity(calculate_conversion_rate(approved, converted)),
        ),
    ]

    return QuotationConversionReport(
        period_start=period_start,
        period_end=period_end,
        status_counts=count_by_status(records),
        conversion_rates=rates,
        total_quotations=total,
        total_converted=converted,
        overall_conversion_rate=round_quantity(calculate_conversion_rate(total, converted)),
    )


# ==================== CUSTOMER PAYMENTS ====================

def calculate_average_days_to_pay(days: Iterable[Optional[float]]) -> Optional[float]:
    """Arithmetic mean; None when there is nothing to average."""
    values = [d for d in days if d is not None]
    if not values:
        return None
    return sum(values) / len(values)


def identify_slow_payers(average_days: Optional[float]) -> bool:
    """Slow payers take more than 45 days on average."""
    if average_days is None:
        return False
    return average_days > SLOW_PAYER_THRESHOLD_DAYS


def aggregate_payments_by_customer(payments: Iterable[PaymentRecord]) -> List[CustomerPaymentSummary]:
    """Group payments per customer, in the order customers first appear."""
    customers: Dict[str, CustomerPaymentSummary] = {}

    for payment in payments:
        summary = customers.get(payment.customer_id)
        if summary is None:
            summary = CustomerPaymentSummary(payment.customer_id, payment.customer_name)
            customers[payment.customer_id] = summary

        summary.invoice_count += 1
        summary.total_invoiced += to_decimal(payment.invoice_amount)
        summary.total_paid += to_decimal(payment.paid_amount)
        if payment.days_to_pay is not None:
            summary.days_to_pay.append(payment.days_to_pay)

    for summary in customers.values():
        summary.average_days_to_pay = calculate_average_days_to_pay(summary.days_to_pay)
        summary.is_slow_payer = identify_slow_payers(summary.average_days_to_pay)

    return list(customers.values())


def build_customer_payment_report(payments: Iterable[PaymentRecord]) -> CustomerPaymentReport:
    """Per-customer payment history, largest outstanding balance first."""
    items = aggregate_payments_by_customer(payments)
    items.sort(key=lambda s: s.outstanding_balance, reverse=True)

    return CustomerPaymentReport(
        items=items,
        total_invoiced=sum((i.total_invoiced for i in items), ZERO),
        total_paid=sum((i.total_paid for i in items), ZERO),
        slow_payer_count=sum(1 for i in items if i.is_slow_payer),
    )


# ==================== AR AGING ====================

def calculate_days_overdue(due_date: str, as_of: Optional[date] = None) -> int:
    """Whole days past the due date; 0 when not yet due."""
    as_of = as_of or date.today()
    return max(0, (as_of - parse_iso_date(due_date)).days)


def assign_aging_bucket(days_overdue: int) -> str:
    for label, min_days, max_days in AGING_BUCKETS:
        if (min_days is None or days_overdue >= min_days) and (max_days is None or days_overdue <= max_days):
            return label
    return AGING_BUCKETS[0][0]


def determine_severity(days_overdue: int) -> str:
    if days_overdue >= 90:
        return AgingSeverity.CRITICAL.value
    if days_overdue >= 31:
        return AgingSeverity.WARNING.value
    return AgingSeverity.NORMAL.value


def aggregate_by_bucket(items: Iterable[AgingItem]) -> List[AgingBucketSummary]:
    """Count and total per aging bucket. All buckets are returned."""
    buckets = {
        label: AgingBucketSummary(label, min_days or 0, max_days)
        for label, min_days, max_days in AGING_BUCKETS
    }
    for item in items:
        bucket = buckets[item.bucket]
        bucket.count += 1
        bucket.total_amount += item.amount
    return list(buckets.values())


def build_ar_aging_report(invoices: Iterable[InvoiceRecord], as_of: Optional[date] = None) -> ARAgingReport:
    """Unpaid invoices by aging bucket, most overdue first."""
    as_of = as_of or date.today()

    details = []
    for invoice in invoices:
        days_overdue = calculate_days_overdue(invoice.due_date, as_of)
        details.append(AgingItem(
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            customer_name=invoice.customer_name or "Unknown",
            due_date=invoice.due_date,
            amount=to_decimal(invoice.total_amount),
            days_overdue=days_overdue,
            bucket=assign_aging_bucket(days_overdue),
            severity=determine_severity(days_overdue),
        ))

    details.sort(key=lambda d: d.days_overdue, reverse=True)

    return ARAgingReport(
        as_of_date=as_of.isoformat(),
        summary=aggregate_by_bucket(details),
        details=details,
    )


# ==================== REPORT CATALOGUE ====================

def filter_reports_by_search(
    reports: List[ReportConfiguration],
    query: Optional[str],
) -> List[ReportConfiguration]:
    """Case-insensitive match on report name or description."""
    if not query or not query.strip():
        return reports

    needle = query.strip().lower()
    return [
        r for r in reports
        if needle in r.report_name.lower()
        or (r.description is not None and needle in r.description.lower())
    ]


def sort_reports_by_display_order(reports: Iterable[ReportConfiguration]) -> List[ReportConfiguration]:
    """New list ordered by display_order; ties keep their input order."""
    return sorted(reports, key=lambda r: r.display_order)


def filter_reports_by_role(
    reports: Iterable[ReportConfiguration],
    role: str,
) -> List[ReportConfiguration]:
    """Active reports the given role is allowed to open."""
    return [r for r in reports if r.is_active and role in r.allowed_roles]
