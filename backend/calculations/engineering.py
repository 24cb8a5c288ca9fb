"""
Freight Calc Core - Engineering Load Calculator

Calculations behind heavy-cargo technical assessments:
1. Lifting plans: crane utilization and outrigger ground bearing
2. Axle loads: weight per axle against regulatory limits
3. Assessment workflow: status transitions and edit permissions

Axle loads use a uniform split over the axles of each unit. The cargo
centre of gravity is recorded with the configuration but does not move
load between axles.
"""

import logging
from enum import Enum
from typing import Dict, Any, List, Optional, Iterable
from dataclasses import dataclass

from pydantic import BaseModel

from .common import FieldError, ValidationResult, is_number, round_quantity, try_parse_iso_date

logger = logging.getLogger(__name__)


# ==================== CONSTANTS ====================

# Regulatory maximum load per axle type (tons)
AXLE_LIMITS = {
    "single": 8.0,
    "tandem": 14.0,
    "tridem": 21.0,
}

SAFE_UTILIZATION_THRESHOLD = 80.0

# kN per metric ton
GRAVITY_KN_PER_TON = 9.81


class AxleType(str, Enum):
    SINGLE = "single"
    TANDEM = "tandem"
    TRIDEM = "tridem"


class AssessmentStatus(str, Enum):
    DRAFT = "draft"
    IN_PROGRESS = "in_progress"
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    SUPERSEDED = "superseded"


class AssessmentConclusion(str, Enum):
    APPROVED = "approved"
    APPROVED_WITH_CONDITIONS = "approved_with_conditions"
    NOT_APPROVED = "not_approved"
    FURTHER_STUDY = "further_study"


ASSESSMENT_STATUSES = tuple(s.value for s in AssessmentStatus)
ASSESSMENT_CONCLUSIONS = tuple(c.value for c in AssessmentConclusion)

ASSESSMENT_STATUS_TRANSITIONS = {
    "draft": ("in_progress", "pending_review"),
    "in_progress": ("pending_review", "draft"),
    "pending_review": ("approved", "rejected", "in_progress"),
    "approved": ("superseded",),
    "rejected": ("draft", "in_progress"),
    "superseded": (),
}

EDITABLE_STATUSES = ("draft", "in_progress", "rejected")
SUBMITTABLE_STATUSES = ("draft", "in_progress")

ASSESSMENT_SORT_FIELDS = ("assessment_number", "created_at", "status", "title")


# ==================== MODELS ====================

class LiftingPlan(BaseModel):
    assessment_id: Optional[str] = None
    lift_number: Optional[int] = None
    load_weight_tons: float = 0
    rigging_weight_tons: float = 0
    crane_capacity_at_radius_tons: float = 0
    outrigger_area_m2: Optional[float] = None


class AxleLoadConfig(BaseModel):
    """Vehicle combination and cargo for an axle load check."""
    assessment_id: Optional[str] = None
    cargo_weight_tons: float = 0
    trailer_tare_weight_tons: float = 0
    prime_mover_weight_tons: float = 0
    trailer_axle_count: int = 0
    prime_mover_axle_count: int = 0
    cargo_cog_from_front_m: Optional[float] = None
    trailer_length_m: Optional[float] = None


class AssessmentRecord(BaseModel):
    """The listing fields of a technical assessment."""
    id: str = ""
    assessment_number: str = ""
    assessment_type_id: Optional[str] = None
    customer_id: Optional[str] = None
    project_id: Optional[str] = None
    quotation_id: Optional[str] = None
    title: str = ""
    description: Optional[str] = None
    status: str = AssessmentStatus.DRAFT.value
    created_at: Optional[str] = None


class AssessmentFilters(BaseModel):
    assessment_type_id: Optional[str] = None
    status: Optional[str] = None
    customer_id: Optional[str] = None
    project_id: Optional[str] = None
    quotation_id: Optional[str] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    search: Optional[str] = None


@dataclass
class AxleLoad:
    axle_number: int
    axle_type: str
    load_tons: float
    max_allowed_tons: float
    utilization_pct: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "axle_number": self.axle_number,
            "axle_type": self.axle_type,
            "load_tons": self.load_tons,
            "max_allowed_tons": self.max_allowed_tons,
            "utilization_pct": self.utilization_pct,
        }


@dataclass
class AxleLoadSummary:
    axle_loads: List[AxleLoad]
    total_weight_tons: float
    max_single_axle_load_tons: float
    max_tandem_axle_load_tons: float
    within_legal_limits: bool
    permit_required: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "axle_loads": [a.to_dict() for a in self.axle_loads],
            "total_weight_tons": self.total_weight_tons,
            "max_single_axle_load_tons": self.max_single_axle_load_tons,
            "max_tandem_axle_load_tons": self.max_tandem_axle_load_tons,
            "within_legal_limits": self.within_legal_limits,
            "permit_required": self.permit_required,
        }


@dataclass
class LiftingPlanResult:
    total_lifted_weight_tons: float
    utilization_pct: float
    is_safe: bool
    requires_additional_review: bool
    ground_bearing_kpa: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_lifted_weight_tons": self.total_lifted_weight_tons,
            "utilization_pct": self.utilization_pct,
            "is_safe": self.is_safe,
            "requires_additional_review": self.requires_additional_review,
            "ground_bearing_kpa": self.ground_bearing_kpa,
        }


# ==================== LIFTING PLANS ====================

def calculate_total_lifted_weight(load_weight_tons: float, rigging_weight_tons: float = 0) -> float:
    return load_weight_tons + rigging_weight_tons


def calculate_utilization_percentage(total_lifted_tons: float, crane_capacity_at_radius_tons: float) -> float:
    """Lifted weight as a percentage of crane capacity at the working radius."""
    if crane_capacity_at_radius_tons <= 0:
        return 0.0
    return total_lifted_tons / crane_capacity_at_radius_tons * 100


def is_utilization_safe(utilization_pct: float, threshold: float = SAFE_UTILIZATION_THRESHOLD) -> bool:
    return utilization_pct <= threshold


def requires_additional_review(utilization_pct: float) -> bool:
    """Lifts above 80% utilization need a second engineer's review."""
    return utilization_pct > SAFE_UTILIZATION_THRESHOLD


def calculate_ground_bearing(total_weight_tons: float, outrigger_area_m2: float) -> float:
    """Ground bearing pressure in kPa (kN per square metre)."""
    if outrigger_area_m2 <= 0:
        return 0.0
    return total_weight_tons * GRAVITY_KN_PER_TON / outrigger_area_m2


def evaluate_lifting_plan(
    plan: LiftingPlan,
    threshold: float = SAFE_UTILIZATION_THRESHOLD,
) -> LiftingPlanResult:
    total = calculate_total_lifted_weight(plan.load_weight_tons, plan.rigging_weight_tons)
    utilization = calculate_utilization_percentage(total, plan.crane_capacity_at_radius_tons)

    ground_bearing = None
    if plan.outrigger_area_m2 is not None:
        ground_bearing = round_quantity(calculate_ground_bearing(total, plan.outrigger_area_m2))

    if requires_additional_review(utilization):
        logger.info(f"Lift {plan.lift_number} at {utilization:.1f}% utilization requires additional review")

    return LiftingPlanResult(
        total_lifted_weight_tons=round_quantity(total),
        utilization_pct=round_quantity(utilization),
        is_safe=is_utilization_safe(utilization, threshold),
        requires_additional_review=requires_additional_review(utilization),
        ground_bearing_kpa=ground_bearing,
    )


def get_next_lift_number(existing_lift_numbers: Iterable[int]) -> int:
    return max(existing_lift_numbers, default=0) + 1


# ==================== AXLE LOADS ====================

def _axle_load(axle_number: int, axle_type: AxleType, load_tons: float) -> AxleLoad:
    max_allowed = AXLE_LIMITS[axle_type.value]
    return AxleLoad(
        axle_number=axle_number,
        axle_type=axle_type.value,
        load_tons=round_quantity(load_tons),
        max_allowed_tons=max_allowed,
        utilization_pct=round_quantity(load_tons / max_allowed * 100),
    )


def calculate_axle_loads(config: AxleLoadConfig) -> List[AxleLoad]:
    """
    Spread the combination's weight evenly over its axles.

    Prime mover axles come first: axle 1 is the steer axle (single), the
    rest are tandem. Cargo plus trailer tare is shared by the trailer axles,
    which are tridem when the trailer has three or more axles and tandem
    otherwise.
    """
    loads: List[AxleLoad] = []

    prime_mover_axles = max(config.prime_mover_axle_count, 0)
    trailer_axles = max(config.trailer_axle_count, 0)

    per_prime_mover_axle = config.prime_mover_weight_tons / prime_mover_axles if prime_mover_axles else 0.0
    for i in range(1, prime_mover_axles + 1):
        axle_type = AxleType.SINGLE if i == 1 else AxleType.TANDEM
        loads.append(_axle_load(i, axle_type, per_prime_mover_axle))

    trailer_weight = config.cargo_weight_tons + config.trailer_tare_weight_tons
    per_trailer_axle = trailer_weight / trailer_axles if trailer_axles else 0.0
    trailer_type = AxleType.TRIDEM if trailer_axles >= 3 else AxleType.TANDEM
    for i in range(1, trailer_axles + 1):
        loads.append(_axle_load(prime_mover_axles + i, trailer_type, per_trailer_axle))

    return loads


def calculate_total_weight(
    cargo_weight_tons: float,
    trailer_tare_weight_tons: float,
    prime_mover_weight_tons: float,
) -> float:
    return cargo_weight_tons + trailer_tare_weight_tons + prime_mover_weight_tons


def is_within_legal_limits(axle_loads: Iterable[AxleLoad]) -> bool:
    return all(a.load_tons <= a.max_allowed_tons for a in axle_loads)


def determine_permit_required(axle_loads: Iterable[AxleLoad]) -> bool:
    """An over-dimension permit is needed if any axle is over its limit."""
    return any(a.load_tons > a.max_allowed_tons for a in axle_loads)


def get_max_single_axle_load(axle_loads: Iterable[AxleLoad]) -> float:
    return max((a.load_tons for a in axle_loads if a.axle_type == AxleType.SINGLE.value), default=0.0)


def get_max_tandem_axle_load(axle_loads: Iterable[AxleLoad]) -> float:
    return max((a.load_tons for a in axle_loads if a.axle_type == AxleType.TANDEM.value), default=0.0)


def summarize_axle_loads(config: AxleLoadConfig) -> AxleLoadSummary:
    loads = calculate_axle_loads(config)
    permit_required = determine_permit_required(loads)

    if permit_required:
        logger.info(f"Axle loads for assessment {config.assessment_id} exceed legal limits, permit required")

    return AxleLoadSummary(
        axle_loads=loads,
        total_weight_tons=round_quantity(calculate_total_weight(
            config.cargo_weight_tons,
            config.trailer_tare_weight_tons,
            config.prime_mover_weight_tons,
        )),
        max_single_axle_load_tons=get_max_single_axle_load(loads),
        max_tandem_axle_load_tons=get_max_tandem_axle_load(loads),
        within_legal_limits=is_within_legal_limits(loads),
        permit_required=permit_required,
    )


# ==================== ASSESSMENT WORKFLOW ====================

def is_valid_status(status: Optional[str]) -> bool:
    return status in ASSESSMENT_STATUSES


def is_valid_conclusion(conclusion: Optional[str]) -> bool:
    return conclusion in ASSESSMENT_CONCLUSIONS


def can_transition_to(current_status: str, target_status: str) -> bool:
    return target_status in ASSESSMENT_STATUS_TRANSITIONS.get(current_status, ())


def validate_status_transition(current_status: str, target_status: str) -> ValidationResult:
    """Reject any move not declared in ASSESSMENT_STATUS_TRANSITIONS."""
    if not is_valid_status(current_status):
        return ValidationResult.from_errors([
            FieldError("current_status", f"Invalid status: {current_status}")
        ])
    if not is_valid_status(target_status):
        return ValidationResult.from_errors([
            FieldError("target_status", f"Invalid status: {target_status}")
        ])
    if not can_transition_to(current_status, target_status):
        logger.warning(f"Rejected assessment status change {current_status} -> {target_status}")
        return ValidationResult.from_errors([
            FieldError("target_status", f"Cannot transition from {current_status} to {target_status}")
        ])
    return ValidationResult()


def can_edit_assessment(status: str) -> bool:
    return status in EDITABLE_STATUSES


def can_submit_for_review(status: str) -> bool:
    return status in SUBMITTABLE_STATUSES


def can_approve_or_reject(status: str) -> bool:
    return status == AssessmentStatus.PENDING_REVIEW.value


def can_create_revision(status: str) -> bool:
    return status == AssessmentStatus.APPROVED.value


def calculate_status_counts(statuses: Iterable[str]) -> Dict[str, int]:
    """Count per assessment status, plus 'total' over every input."""
    counts = {status: 0 for status in ASSESSMENT_STATUSES}
    total = 0
    for status in statuses:
        total += 1
        if status in counts:
            counts[status] += 1
    counts["total"] = total
    return counts


def filter_assessments(
    assessments: Iterable[AssessmentRecord],
    filters: AssessmentFilters,
) -> List[AssessmentRecord]:
    """
    Apply every provided filter (AND).

    The date range compares the calendar date of created_at, inclusive at
    both ends. Assessments with a missing or malformed created_at fall
    outside any date range.
    """
    date_from = try_parse_iso_date(filters.date_from)
    date_to = try_parse_iso_date(filters.date_to)
    search = filters.search.strip().lower() if filters.search and filters.search.strip() else None

    exact_fields = ("assessment_type_id", "status", "customer_id", "project_id", "quotation_id")

    matched = []
    for assessment in assessments:
        if any(
            getattr(filters, name) and getattr(assessment, name) != getattr(filters, name)
            for name in exact_fields
        ):
            continue

        if date_from or date_to:
            created = try_parse_iso_date(assessment.created_at)
            if created is None:
                continue
            if date_from and created < date_from:
                continue
            if date_to and created > date_to:
                continue

        if search and not any(
            value and search in value.lower()
            for value in (assessment.assessment_number, assessment.title, assessment.description)
        ):
            continue

        matched.append(assessment)
    return matched


def sort_assessments(
    assessments: Iterable[AssessmentRecord],
    sort_by: str,
    sort_order: str = "desc",
) -> List[AssessmentRecord]:
    """Stable sort on one of ASSESSMENT_SORT_FIELDS; text fields ignore case."""
    if sort_by not in ASSESSMENT_SORT_FIELDS:
        raise ValueError(f"Cannot sort assessments by '{sort_by}'")

    def sort_key(assessment: AssessmentRecord) -> str:
        value = getattr(assessment, sort_by) or ""
        return value if sort_by == "created_at" else value.lower()

    return sorted(assessments, key=sort_key, reverse=sort_order != "asc")


# ==================== VALIDATION ====================

def validate_assessment_data(data: Dict[str, Any]) -> ValidationResult:
    errors: List[FieldError] = []

    if not data.get("assessment_type_id"):
        errors.append(FieldError("assessment_type_id", "Assessment type is required"))

    title = data.get("title")
    if not title or not str(title).strip():
        errors.append(FieldError("title", "Title is required"))

    cargo_weight = data.get("cargo_weight_tons")
    if cargo_weight is not None and not is_number(cargo_weight):
        errors.append(FieldError("cargo_weight_tons", "Cargo weight must be a number"))
    elif cargo_weight is not None and cargo_weight < 0:
        errors.append(FieldError("cargo_weight_tons", "Cargo weight must be non-negative"))

    return ValidationResult.from_errors(errors)


def validate_lifting_plan(data: Dict[str, Any]) -> ValidationResult:
    errors: List[FieldError] = []

    if not data.get("assessment_id"):
        errors.append(FieldError("assessment_id", "Assessment ID is required"))

    load_weight = data.get("load_weight_tons")
    if load_weight is not None and not is_number(load_weight):
        errors.append(FieldError("load_weight_tons", "Load weight must be a number"))
    elif load_weight is None or load_weight <= 0:
        errors.append(FieldError("load_weight_tons", "Load weight is required and must be positive"))

    rigging_weight = data.get("rigging_weight_tons")
    if rigging_weight is not None and not is_number(rigging_weight):
        errors.append(FieldError("rigging_weight_tons", "Rigging weight must be a number"))
    elif rigging_weight is not None and rigging_weight < 0:
        errors.append(FieldError("rigging_weight_tons", "Rigging weight must be non-negative"))

    capacity = data.get("crane_capacity_at_radius_tons")
    if capacity is not None and not is_number(capacity):
        errors.append(FieldError("crane_capacity_at_radius_tons", "Crane capacity must be a number"))
    elif capacity is not None and capacity <= 0:
        errors.append(FieldError("crane_capacity_at_radius_tons", "Crane capacity must be positive"))

    return ValidationResult.from_errors(errors)


def validate_axle_calculation(data: Dict[str, Any]) -> ValidationResult:
    errors: List[FieldError] = []

    if not data.get("assessment_id"):
        errors.append(FieldError("assessment_id", "Assessment ID is required"))

    cargo_weight = data.get("cargo_weight_tons")
    if cargo_weight is not None and not is_number(cargo_weight):
        errors.append(FieldError("cargo_weight_tons", "Cargo weight must be a number"))
    elif cargo_weight is None or cargo_weight <= 0:
        errors.append(FieldError("cargo_weight_tons", "Cargo weight is required and must be positive"))

    return ValidationResult.from_errors(errors)
