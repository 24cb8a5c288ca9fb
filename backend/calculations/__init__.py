"""
Calculations Module

Pure calculation and validation functions for the freight ERP:
- Monthly depreciation of fixed assets
- Customs fees and container storage
- Dashboard report rollups
- Crane lifts, axle loads and assessment workflow

Module Structure:
- common.py: Rounding, ISO dates, validation results
- depreciation.py: Depreciation engine
- customs_fees.py: Fee & storage aggregator
- reports.py: Report aggregators
- engineering.py: Engineering load calculator
"""

from .common import FieldError, ValidationResult, round_currency
from .depreciation import (
    DepreciableAsset,
    DepreciationMethod,
    DepreciationBatchResult,
    calculate_depreciation,
    process_depreciation_batch,
)
from .customs_fees import (
    FeeRecord,
    ContainerTracking,
    aggregate_fees_by_category,
    calculate_container_storage_details,
)
from .reports import (
    count_by_status,
    calculate_conversion_rate,
    build_customer_payment_report,
    build_ar_aging_report,
)
from .engineering import (
    AXLE_LIMITS,
    AxleLoadConfig,
    LiftingPlan,
    summarize_axle_loads,
    evaluate_lifting_plan,
    can_transition_to,
)

__all__ = [
    # Shared
    "FieldError",
    "ValidationResult",
    "round_currency",
    # Depreciation
    "DepreciableAsset",
    "DepreciationMethod",
    "DepreciationBatchResult",
    "calculate_depreciation",
    "process_depreciation_batch",
    # Fees & storage
    "FeeRecord",
    "ContainerTracking",
    "aggregate_fees_by_category",
    "calculate_container_storage_details",
    # Reports
    "count_by_status",
    "calculate_conversion_rate",
    "build_customer_payment_report",
    "build_ar_aging_report",
    # Engineering
    "AXLE_LIMITS",
    "AxleLoadConfig",
    "LiftingPlan",
    "summarize_axle_loads",
    "evaluate_lifting_plan",
    "can_transition_to",
]
