"""
Unit Tests for Customs Fees & Container Storage

Tests fee validation, filtering and category totals, plus container free
time, storage days and storage fees.

Run with: pytest tests/test_customs_fees.py -v
"""

import math
import random
from datetime import date
from decimal import Decimal

import pytest

from calculations.customs_fees import (
    FEE_CATEGORIES,
    ContainerFilters,
    ContainerTracking,
    FeeFilters,
    FeeRecord,
    aggregate_fees_by_category,
    calculate_container_statistics,
    calculate_container_storage_details,
    calculate_fee_statistics,
    calculate_free_time_end,
    calculate_storage_days,
    calculate_storage_fee,
    filter_containers,
    filter_fees,
    get_days_until_free_time_expires,
    get_free_time_status,
    is_valid_container_status,
    is_valid_document_link,
    is_valid_fee_amount,
    is_valid_fee_category,
    is_valid_payment_status,
    validate_container_form,
    validate_fee_form,
    validate_fee_payment,
)


def make_fee(**overrides) -> FeeRecord:
    data = {
        "id": "fee-1",
        "document_type": "pib",
        "pib_id": "pib-1",
        "fee_type_id": "ft-duty",
        "fee_category": "duty",
        "fee_name": "Import Duty",
        "currency": "IDR",
        "amount": 1500000,
        "payment_status": "pending",
        "pib_ref": "PIB-2024-0001",
        "jo_number": "JO-0001/CARGO/I/2024",
        "created_at": "2024-01-15T10:00:00Z",
    }
    data.update(overrides)
    return FeeRecord(**data)


def valid_fee_form(**overrides) -> dict:
    data = {
        "document_type": "pib",
        "pib_id": "pib-1",
        "fee_type_id": "ft-duty",
        "amount": 1500000,
        "currency": "IDR",
    }
    data.update(overrides)
    return data


class TestEnumerations:
    """Test closed enumeration checks."""

    def test_fee_categories(self):
        for category in ["duty", "tax", "service", "storage", "penalty", "other"]:
            assert is_valid_fee_category(category)
        assert not is_valid_fee_category("freight")
        assert not is_valid_fee_category(None)

    def test_payment_statuses(self):
        assert is_valid_payment_status("waived")
        assert not is_valid_payment_status("refunded")

    def test_container_statuses(self):
        assert is_valid_container_status("returned_empty")
        assert not is_valid_container_status("lost")

    def test_document_link(self):
        assert is_valid_document_link("pib", "pib-1", None)
        assert is_valid_document_link("peb", None, "peb-1")
        assert not is_valid_document_link("pib", None, "peb-1")
        assert not is_valid_document_link("peb", "pib-1", "")
        assert not is_valid_document_link("invoice", "pib-1", "peb-1")


class TestFeeAmount:
    """Test fee amount validation."""

    @pytest.mark.parametrize("amount", [1, 0.01, 1500000, Decimal("12.50")])
    def test_valid_amounts(self, amount):
        assert is_valid_fee_amount(amount)

    @pytest.mark.parametrize("amount", [0, -1, math.nan, math.inf, True, "100", None, Decimal("NaN")])
    def test_invalid_amounts(self, amount):
        assert not is_valid_fee_amount(amount)


class TestFeeForm:
    """Test the fee form validator."""

    def test_valid_form(self):
        result = validate_fee_form(valid_fee_form())
        assert result.valid
        assert result.errors == []

    def test_empty_form(self):
        result = validate_fee_form({})
        fields = [e.field for e in result.errors]

        assert not result.valid
        assert fields == ["document_type", "fee_type_id", "amount", "currency"]
        assert result.error == "Document type is required"

    def test_invalid_document_type(self):
        result = validate_fee_form(valid_fee_form(document_type="bl"))
        assert result.error == "Invalid document type"

    def test_pib_requires_pib_id(self):
        result = validate_fee_form(valid_fee_form(pib_id=None))
        assert result.error == "PIB document is required"

    def test_peb_requires_peb_id(self):
        result = validate_fee_form(valid_fee_form(document_type="peb", pib_id=None))
        assert result.error == "PEB document is required"

    def test_zero_amount_is_missing(self):
        result = validate_fee_form(valid_fee_form(amount=0))
        assert result.error == "Amount is required"

    def test_negative_amount(self):
        result = validate_fee_form(valid_fee_form(amount=-10))
        assert result.error == "Amount must be a positive number"

    def test_blank_currency(self):
        result = validate_fee_form(valid_fee_form(currency="  "))
        assert result.error == "Currency is required"


class TestFeePayment:
    """Test payment date rules."""

    def test_paid_with_date(self):
        assert validate_fee_payment("paid", "2024-01-20").valid

    def test_paid_without_date(self):
        result = validate_fee_payment("paid", None)
        assert not result.valid
        assert result.errors[0].field == "payment_date"

    def test_paid_with_bad_date(self):
        assert not validate_fee_payment("paid", "20/01/2024").valid

    def test_pending_with_date(self):
        assert not validate_fee_payment("pending", "2024-01-20").valid

    @pytest.mark.parametrize("status", ["pending", "waived", "cancelled"])
    def test_unpaid_without_date(self, status):
        assert validate_fee_payment(status, None).valid

    def test_unknown_status(self):
        assert validate_fee_payment("refunded", None).error == "Invalid payment status"


class TestContainerForm:
    """Test the container tracking form validator."""

    def test_valid_form(self):
        data = {"container_number": "MSKU1234567", "free_time_days": 7, "daily_rate": 150000}
        assert validate_container_form(data).valid

    def test_empty_form(self):
        result = validate_container_form({})
        assert [e.message for e in result.errors] == [
            "Container number is required",
            "Free time days is required",
        ]

    def test_zero_free_time_allowed(self):
        assert validate_container_form({"container_number": "X", "free_time_days": 0}).valid

    def test_negative_values(self):
        result = validate_container_form({"container_number": "X", "free_time_days": -1, "daily_rate": -5})
        assert [e.message for e in result.errors] == [
            "Free time days must be non-negative",
            "Daily rate must be non-negative",
        ]

    @pytest.mark.parametrize("value", ["x", "7", True, math.nan])
    def test_non_numeric_values(self, value):
        result = validate_container_form({"container_number": "X", "free_time_days": value, "daily_rate": value})
        assert [e.message for e in result.errors] == [
            "Free time days must be a number",
            "Daily rate must be a number",
        ]


class TestFreeTimeAndStorage:
    """Test free time and storage calculations."""

    def test_free_time_end_simple(self):
        assert calculate_free_time_end("2024-01-01", 7) == "2024-01-08"

    def test_free_time_end_leap_year(self):
        assert calculate_free_time_end("2024-02-28", 1) == "2024-02-29"

    def test_free_time_end_year_rollover(self):
        assert calculate_free_time_end("2024-12-25", 7) == "2025-01-01"

    def test_free_time_end_zero_days(self):
        assert calculate_free_time_end("2024-03-10", 0) == "2024-03-10"

    def test_storage_days(self):
        assert calculate_storage_days("2024-01-10", "2024-01-15") == 5

    def test_storage_days_before_free_time_end(self):
        assert calculate_storage_days("2024-01-10", "2024-01-05") == 0
        assert calculate_storage_days("2024-01-10", "2024-01-10") == 0

    def test_storage_fee(self):
        assert calculate_storage_fee(5, 150000) == Decimal("750000.00")

    def test_storage_fee_rounding(self):
        """3 × 10.555 = 31.665, rounded half up."""
        assert calculate_storage_fee(3, 10.555) == Decimal("31.67")

    def test_storage_fee_zero_days(self):
        assert calculate_storage_fee(0, 150000) == Decimal("0")

    def test_days_until_expiry(self):
        assert get_days_until_free_time_expires("2024-01-15", date(2024, 1, 10)) == 5
        assert get_days_until_free_time_expires("2024-01-05", date(2024, 1, 10)) == -5

    @pytest.mark.parametrize("free_time_end,expected", [
        (None, "ok"),
        ("2024-01-09", "critical"),
        ("2024-01-10", "warning"),
        ("2024-01-12", "warning"),
        ("2024-01-13", "ok"),
    ])
    def test_free_time_status(self, free_time_end, expected):
        assert get_free_time_status(free_time_end, date(2024, 1, 10)) == expected


class TestContainerStorageDetails:
    """Test storage details for a single container."""

    def test_gated_out_after_free_time(self):
        details = calculate_container_storage_details("2024-01-01", 7, "2024-01-12", 150000)

        assert details.free_time_end == "2024-01-08"
        assert details.storage_days == 4
        assert details.total_storage_fee == Decimal("600000.00")

    def test_no_arrival(self):
        details = calculate_container_storage_details(None, 7, "2024-01-12", 150000)
        assert details.free_time_end is None
        assert details.storage_days == 0
        assert details.total_storage_fee == Decimal("0")

    def test_still_at_port(self):
        details = calculate_container_storage_details("2024-01-01", 7, None, 150000)
        assert details.free_time_end == "2024-01-08"
        assert details.storage_days == 0

    def test_no_daily_rate(self):
        details = calculate_container_storage_details("2024-01-01", 7, "2024-01-12", None)
        assert details.storage_days == 4
        assert details.total_storage_fee == Decimal("0")

    def test_to_dict(self):
        data = calculate_container_storage_details("2024-01-01", 7, "2024-01-12", 150000).to_dict()
        assert data == {"free_time_end": "2024-01-08", "storage_days": 4, "total_storage_fee": 600000.0}


class TestFeeFiltering:
    """Test fee filters."""

    @pytest.fixture
    def fees(self):
        return [
            make_fee(id="1"),
            make_fee(id="2", document_type="peb", pib_id=None, peb_id="peb-1", pib_ref=None,
                     peb_ref="PEB-2024-0002", fee_category="service", payment_status="paid",
                     created_at="2024-02-01"),
            make_fee(id="3", fee_category="tax", description="VAT on import", created_at="2024-01-31"),
            make_fee(id="4", created_at=None),
        ]

    def test_no_filters(self, fees):
        assert len(filter_fees(fees, FeeFilters())) == 4

    def test_equality_filters_combine(self, fees):
        result = filter_fees(fees, FeeFilters(document_type="pib", fee_category="tax"))
        assert [f.id for f in result] == ["3"]

    def test_payment_status(self, fees):
        assert [f.id for f in filter_fees(fees, FeeFilters(payment_status="paid"))] == ["2"]

    def test_date_range_inclusive(self, fees):
        result = filter_fees(fees, FeeFilters(date_from="2024-01-15", date_to="2024-01-31"))
        assert [f.id for f in result] == ["1", "3"]

    def test_search_is_case_insensitive(self, fees):
        assert [f.id for f in filter_fees(fees, FeeFilters(search="vat"))] == ["3"]
        assert [f.id for f in filter_fees(fees, FeeFilters(search="peb-2024"))] == ["2"]

    def test_blank_search_ignored(self, fees):
        assert len(filter_fees(fees, FeeFilters(search="   "))) == 4

    def test_malformed_created_at_outside_date_range(self, fees):
        fees.append(make_fee(id="5", created_at="15/01/2024"))

        assert [f.id for f in filter_fees(fees, FeeFilters(date_from="2024-01-01"))] == ["1", "2", "3"]
        assert len(filter_fees(fees, FeeFilters(fee_category="duty"))) == 3

    def test_filter_containers(self):
        containers = [
            ContainerTracking(id="1", container_number="MSKU1234567", terminal="JICT", status="at_port"),
            ContainerTracking(id="2", container_number="TGHU7654321", terminal="KOJA", status="gate_out"),
        ]
        assert [c.id for c in filter_containers(containers, ContainerFilters(status="gate_out"))] == ["2"]
        assert [c.id for c in filter_containers(containers, ContainerFilters(search="jict"))] == ["1"]


class TestFeeAggregation:
    """Test category totals and statistics."""

    def test_by_category(self):
        fees = [
            make_fee(fee_category="duty", amount=100.10),
            make_fee(fee_category="duty", amount=200.20),
            make_fee(fee_category="storage", amount=50),
        ]
        totals = aggregate_fees_by_category(fees)

        assert set(totals) == set(FEE_CATEGORIES)
        assert totals["duty"] == Decimal("300.30")
        assert totals["storage"] == Decimal("50")
        assert totals["penalty"] == Decimal("0")

    def test_unknown_category_counted_as_other(self):
        fees = [make_fee(fee_category="freight", amount=10), make_fee(fee_category=None, amount=5)]
        assert aggregate_fees_by_category(fees)["other"] == Decimal("15")

    def test_buckets_sum_to_input_total(self):
        rng = random.Random(11)
        categories = list(FEE_CATEGORIES) + ["unknown", None]
        for _ in range(50):
            fees = [
                make_fee(fee_category=rng.choice(categories), amount=rng.randint(1, 10_000_000) / 100)
                for _ in range(rng.randint(0, 30))
            ]
            expected = sum((Decimal(str(f.amount)) for f in fees), Decimal("0"))
            assert sum(aggregate_fees_by_category(fees).values(), Decimal("0")) == expected

    def test_fee_statistics(self):
        fees = [
            make_fee(payment_status="pending", amount=100),
            make_fee(payment_status="pending", amount=50.5),
            make_fee(payment_status="paid", amount=200),
            make_fee(payment_status="waived", amount=999),
        ]
        stats = calculate_fee_statistics(fees)

        assert stats.total_fees == 4
        assert stats.total_pending == 2
        assert stats.total_paid == 1
        assert stats.pending_amount == Decimal("150.50")
        assert stats.paid_amount == Decimal("200.00")

    def test_container_statistics(self):
        containers = [
            ContainerTracking(id="1", container_number="A", arrival_date="2024-01-01", free_time_days=3, status="at_port"),
            ContainerTracking(id="2", container_number="B", arrival_date="2024-01-08", free_time_days=7, status="at_port"),
            ContainerTracking(id="3", container_number="C", arrival_date="2024-01-01", free_time_days=3,
                              gate_out_date="2024-01-06", daily_rate=100, status="gate_out"),
        ]
        stats = calculate_container_statistics(containers, today=date(2024, 1, 10))

        assert stats.total_containers == 3
        assert stats.at_port == 2
        assert stats.past_free_time == 1
        assert stats.total_storage_fees == Decimal("200.00")

    def test_container_statistics_skips_malformed_dates(self, caplog):
        containers = [
            ContainerTracking(id="1", container_number="A", arrival_date="2024/01/01", free_time_days=3, status="at_port"),
            ContainerTracking(id="2", container_number="B", arrival_date="2024-01-01", free_time_days=3,
                              gate_out_date="06-01-2024", daily_rate=100, status="gate_out"),
            ContainerTracking(id="3", container_number="C", arrival_date="2024-01-01", free_time_days=3,
                              gate_out_date="2024-01-06", daily_rate=100, status="gate_out"),
        ]
        stats = calculate_container_statistics(containers, today=date(2024, 1, 10))

        assert stats.total_containers == 3
        assert stats.at_port == 1
        assert stats.past_free_time == 0
        assert stats.total_storage_fees == Decimal("200.00")
        assert "Container A has unparsable dates" in caplog.text
