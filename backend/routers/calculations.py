"""
Freight Calc Core - Calculations API Router

REST endpoints over the calculation core:
- Depreciation (single asset and monthly runs)
- Customs fees and container storage
- Dashboard reports (quotation conversion, customer payments, AR aging)
- Engineering (lifting plans, axle loads, assessment workflow)

Endpoints are stateless: callers send the records, the API returns the
derived figures. Invalid business data is answered with a structured 422.
"""

import logging
from datetime import date
from typing import Optional, Dict, Any, List

from fastapi import APIRouter
from pydantic import BaseModel, Field

from config import get_settings
from calculations.common import parse_iso_date
from calculations.depreciation import (
    DepreciableAsset,
    DepreciationMethod,
    calculate_depreciation,
    calculate_new_book_value,
    get_monthly_period_date,
    is_fully_depreciated,
    process_depreciation_batch,
    validate_depreciation_inputs,
)
from calculations.customs_fees import (
    FEE_CATEGORIES,
    PAYMENT_STATUSES,
    CONTAINER_STATUSES,
    DOCUMENT_TYPES,
    ContainerFilters,
    ContainerTracking,
    FeeFilters,
    FeeRecord,
    aggregate_fees_by_category,
    calculate_container_statistics,
    calculate_container_storage_details,
    calculate_fee_statistics,
    filter_containers,
    filter_fees,
    get_free_time_status,
    validate_container_form,
    validate_fee_form,
    validate_fee_payment,
)
from calculations.reports import (
    AGING_BUCKETS,
    QUOTATION_STATUSES,
    SLOW_PAYER_THRESHOLD_DAYS,
    InvoiceRecord,
    PaymentRecord,
    QuotationRecord,
    ReportConfiguration,
    build_ar_aging_report,
    build_customer_payment_report,
    build_quotation_conversion_report,
    filter_reports_by_role,
    filter_reports_by_search,
    sort_reports_by_display_order,
)
from calculations.engineering import (
    AXLE_LIMITS,
    ASSESSMENT_SORT_FIELDS,
    ASSESSMENT_STATUS_TRANSITIONS,
    AssessmentFilters,
    AssessmentRecord,
    AxleLoadConfig,
    calculate_status_counts,
    filter_assessments,
    sort_assessments,
    LiftingPlan,
    evaluate_lifting_plan,
    summarize_axle_loads,
    validate_axle_calculation,
    validate_lifting_plan,
    validate_status_transition,
)
from utils.validation_errors import raise_for_validation, raise_invalid_parameter, validate_iso_date

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calculations", tags=["Calculations"])


# ==================== REQUEST MODELS ====================

class DepreciationRunRequest(BaseModel):
    """Request model for a monthly depreciation run."""
    period_date: Optional[str] = Field(default=None, description="Any date in the period (YYYY-MM-DD); defaults to this month")
    assets: List[DepreciableAsset] = Field(default_factory=list, description="Assets with their current book values")

    class Config:
        json_schema_extra = {
            "example": {
                "period_date": "2025-01-15",
                "assets": [{
                    "id": "TRK-001",
                    "purchase_cost": 120000,
                    "salvage_value": 12000,
                    "book_value": 120000,
                    "accumulated_depreciation": 0,
                    "useful_life_months": 60,
                    "depreciation_method": "straight_line"
                }]
            }
        }


class FeeFormRequest(BaseModel):
    """Fee entry as submitted from the customs fee form."""
    document_type: Optional[str] = Field(default=None, description="pib (import) or peb (export)")
    pib_id: Optional[str] = None
    peb_id: Optional[str] = None
    fee_type_id: Optional[str] = None
    amount: Optional[float] = None
    currency: Optional[str] = Field(default=None, description="Defaults to DEFAULT_CURRENCY when omitted")
    payment_status: str = Field(default="pending", description="pending, paid, waived, cancelled")
    payment_date: Optional[str] = None


class FeeSummaryRequest(BaseModel):
    fees: List[FeeRecord] = Field(default_factory=list)
    filters: Optional[FeeFilters] = None


class ContainerStorageRequest(BaseModel):
    """Request model for one container's storage charges."""
    container_number: Optional[str] = None
    arrival_date: Optional[str] = Field(default=None, description="Arrival at terminal (YYYY-MM-DD)")
    free_time_days: Optional[int] = Field(default=None, description="Free storage days granted")
    gate_out_date: Optional[str] = Field(default=None, description="Gate-out date, if the container has left")
    daily_rate: Optional[float] = Field(default=None, description="Storage charge per day after free time")
    as_of_date: Optional[str] = Field(default=None, description="Reference date for free-time status")

    class Config:
        json_schema_extra = {
            "example": {
                "container_number": "MSKU1234567",
                "arrival_date": "2024-01-01",
                "free_time_days": 7,
                "gate_out_date": "2024-01-12",
                "daily_rate": 150000
            }
        }


class ContainerSummaryRequest(BaseModel):
    containers: List[ContainerTracking] = Field(default_factory=list)
    filters: Optional[ContainerFilters] = None
    as_of_date: Optional[str] = None


class QuotationConversionRequest(BaseModel):
    records: List[QuotationRecord] = Field(default_factory=list)
    period_start: Optional[str] = None
    period_end: Optional[str] = None


class CustomerPaymentRequest(BaseModel):
    payments: List[PaymentRecord] = Field(default_factory=list)


class ARAgingRequest(BaseModel):
    invoices: List[InvoiceRecord] = Field(default_factory=list)
    as_of_date: Optional[str] = Field(default=None, description="Aging reference date; defaults to today")


class ReportCatalogueRequest(BaseModel):
    reports: List[ReportConfiguration] = Field(default_factory=list)
    search: Optional[str] = None
    role: Optional[str] = Field(default=None, description="Only reports this role may open")


class StatusTransitionRequest(BaseModel):
    current_status: str
    target_status: str


class AssessmentListRequest(BaseModel):
    """Request model for the technical assessment list view."""
    assessments: List[AssessmentRecord] = Field(default_factory=list)
    filters: Optional[AssessmentFilters] = None
    sort_by: str = Field(default="created_at", description="assessment_number, created_at, status or title")
    sort_order: str = Field(default="desc", description="asc or desc")


# ==================== HELPERS ====================

def _as_of(value: Optional[str], parameter: str) -> Optional[date]:
    value = validate_iso_date(value, parameter, required=False)
    return parse_iso_date(value) if value else None


# ==================== STATUS ENDPOINT ====================

@router.get("/status")
async def get_status():
    """
    Get status of the calculation modules.

    Returns the constants each calculator works with.
    """
    settings = get_settings()
    return {
        "modules": {
            "depreciation": {
                "status": "active",
                "methods": [m.value for m in DepreciationMethod],
            },
            "customs_fees": {
                "status": "active",
                "fee_categories": list(FEE_CATEGORIES),
                "payment_statuses": list(PAYMENT_STATUSES),
                "container_statuses": list(CONTAINER_STATUSES),
                "document_types": list(DOCUMENT_TYPES),
                "default_currency": settings.DEFAULT_CURRENCY,
            },
            "reports": {
                "status": "active",
                "quotation_statuses": list(QUOTATION_STATUSES),
                "slow_payer_threshold_days": SLOW_PAYER_THRESHOLD_DAYS,
                "aging_buckets": [label for label, _, _ in AGING_BUCKETS],
            },
            "engineering": {
                "status": "active",
                "axle_limits_tons": AXLE_LIMITS,
                "lift_utilization_threshold_pct": settings.LIFT_UTILIZATION_THRESHOLD,
                "assessment_transitions": {k: list(v) for k, v in ASSESSMENT_STATUS_TRANSITIONS.items()},
            },
        },
        "version": settings.API_VERSION,
    }


# ==================== DEPRECIATION ENDPOINTS ====================

@router.post("/depreciation/calculate")
async def calculate_asset_depreciation(asset: DepreciableAsset):
    """
    Calculate one month of depreciation for a single asset.

    **Methods:**
    - `straight_line`: (cost - salvage) ÷ useful life months
    - `declining_balance`: book value × (2 ÷ useful life months)
    """
    raise_for_validation(validate_depreciation_inputs(asset))

    amount = calculate_depreciation(asset)
    return {
        "asset_id": asset.id,
        "depreciation_method": asset.depreciation_method,
        "depreciation_amount": float(amount),
        "new_book_value": float(calculate_new_book_value(asset.book_value, amount, asset.salvage_value)),
        "is_fully_depreciated": is_fully_depreciated(asset),
    }


@router.post("/depreciation/run")
async def run_depreciation(request: DepreciationRunRequest):
    """
    Run depreciation for a period over many assets.

    Fully depreciated and invalid assets are listed under `skipped`.
    """
    validate_iso_date(request.period_date, "period_date", required=False)
    period_date = get_monthly_period_date(request.period_date)

    result = process_depreciation_batch(request.assets, period_date)
    return result.to_dict()


# ==================== CUSTOMS FEE ENDPOINTS ====================

@router.post("/fees/validate")
async def validate_fee(request: FeeFormRequest):
    """Validate a customs fee entry, including its payment details."""
    data = request.model_dump()
    if data["currency"] is None:
        data["currency"] = get_settings().DEFAULT_CURRENCY

    raise_for_validation(validate_fee_form(data))
    raise_for_validation(validate_fee_payment(request.payment_status, request.payment_date))

    return {"valid": True, "fee": data}


@router.post("/fees/summary")
async def summarize_fees(request: FeeSummaryRequest):
    """Category totals and payment statistics for a (filtered) fee list."""
    if request.filters:
        validate_iso_date(request.filters.date_from, "date_from", required=False)
        validate_iso_date(request.filters.date_to, "date_to", required=False)

    fees = filter_fees(request.fees, request.filters) if request.filters else request.fees

    return {
        "fee_count": len(fees),
        "by_category": {k: float(v) for k, v in aggregate_fees_by_category(fees).items()},
        "statistics": calculate_fee_statistics(fees).to_dict(),
    }


@router.post("/containers/storage")
async def calculate_container_storage(request: ContainerStorageRequest):
    """
    Free time end, storage days and storage fee for one container.

    Storage days count from the day after free time ends until gate-out.
    """
    raise_for_validation(validate_container_form(request.model_dump()))
    validate_iso_date(request.arrival_date, "arrival_date", required=False)
    validate_iso_date(request.gate_out_date, "gate_out_date", required=False)
    as_of = _as_of(request.as_of_date, "as_of_date")

    details = calculate_container_storage_details(
        request.arrival_date,
        request.free_time_days,
        request.gate_out_date,
        request.daily_rate,
    )
    result = details.to_dict()
    result["free_time_status"] = get_free_time_status(details.free_time_end, as_of)
    return result


@router.post("/containers/summary")
async def summarize_containers(request: ContainerSummaryRequest):
    as_of = _as_of(request.as_of_date, "as_of_date")
    containers = filter_containers(request.containers, request.filters) if request.filters else request.containers

    return calculate_container_statistics(containers, as_of).to_dict()


# ==================== REPORT ENDPOINTS ====================

@router.post("/reports/quotation-conversion")
async def quotation_conversion_report(request: QuotationConversionRequest):
    """Quotation status breakdown and stage conversion rates."""
    report = build_quotation_conversion_report(request.records, request.period_start, request.period_end)
    return report.to_dict()


@router.post("/reports/customer-payments")
async def customer_payment_report(request: CustomerPaymentRequest):
    """
    Payment history per customer.

    Customers averaging more than 45 days to pay are flagged as slow payers.
    """
    return build_customer_payment_report(request.payments).to_dict()


@router.post("/reports/ar-aging")
async def ar_aging_report(request: ARAgingRequest):
    as_of = _as_of(request.as_of_date, "as_of_date")
    for invoice in request.invoices:
        validate_iso_date(invoice.due_date, "due_date")

    return build_ar_aging_report(request.invoices, as_of).to_dict()


@router.post("/reports/catalogue")
async def report_catalogue(request: ReportCatalogueRequest):
    """Reports visible to a role, matching a search, in display order."""
    reports = request.reports
    if request.role:
        reports = filter_reports_by_role(reports, request.role)
    reports = filter_reports_by_search(reports, request.search)

    return {"reports": [r.model_dump() for r in sort_reports_by_display_order(reports)]}


# ==================== ENGINEERING ENDPOINTS ====================

@router.post("/engineering/lifting-plan")
async def lifting_plan(plan: LiftingPlan):
    """
    Crane utilization and ground bearing for a lift.

    Lifts above the utilization threshold (default 80%) are not safe and
    need additional review.
    """
    raise_for_validation(validate_lifting_plan(plan.model_dump()))

    result = evaluate_lifting_plan(plan, get_settings().LIFT_UTILIZATION_THRESHOLD)
    return result.to_dict()


@router.post("/engineering/axle-loads")
async def axle_loads(config: AxleLoadConfig):
    """Per-axle loads against legal limits, and whether a permit is needed."""
    raise_for_validation(validate_axle_calculation(config.model_dump()))

    return summarize_axle_loads(config).to_dict()


@router.post("/engineering/assessment-transition")
async def assessment_transition(request: StatusTransitionRequest):
    """Check a technical assessment status change against the workflow."""
    raise_for_validation(validate_status_transition(request.current_status, request.target_status))

    return {
        "valid": True,
        "current_status": request.current_status,
        "target_status": request.target_status,
    }


@router.post("/engineering/assessments")
async def list_assessments(request: AssessmentListRequest):
    """Filtered and sorted assessment list with per-status counts."""
    if request.sort_by not in ASSESSMENT_SORT_FIELDS:
        raise_invalid_parameter("sort_by", f"sort_by must be one of {', '.join(ASSESSMENT_SORT_FIELDS)}", request.sort_by)
    if request.sort_order not in ("asc", "desc"):
        raise_invalid_parameter("sort_order", "sort_order must be asc or desc", request.sort_order)

    assessments = request.assessments
    if request.filters:
        validate_iso_date(request.filters.date_from, "date_from", required=False)
        validate_iso_date(request.filters.date_to, "date_to", required=False)
        assessments = filter_assessments(assessments, request.filters)

    return {
        "assessments": [a.model_dump() for a in sort_assessments(assessments, request.sort_by, request.sort_order)],
        "status_counts": calculate_status_counts(a.status for a in assessments),
    }
