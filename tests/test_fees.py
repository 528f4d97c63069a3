"""Tests for placement fee calculation."""

from decimal import Decimal

import pytest

from api.models import ExperienceLevel
from api.services.fees import (
    calculate_fee_percentage,
    calculate_placement_fee,
    estimate_salary,
    fee_from_percentage,
    split_fee,
)


class TestFeePercentage:
    """Rate per experience tier."""

    @pytest.mark.parametrize(
        "level,expected",
        [
            (ExperienceLevel.ENTRY_LEVEL, 0.15),
            (ExperienceLevel.MID_LEVEL, 0.15),
            (ExperienceLevel.SENIOR_LEVEL, 0.18),
            (ExperienceLevel.EXECUTIVE, 0.20),
        ],
    )
    def test_tier_rates(self, level, expected):
        assert calculate_fee_percentage(level) == expected

    def test_accepts_stored_string(self):
        assert calculate_fee_percentage("EXECUTIVE") == 0.20

    def test_unknown_or_missing_tier_uses_senior_rate(self):
        assert calculate_fee_percentage(None) == 0.18
        assert calculate_fee_percentage("INTERN") == 0.18


class TestPlacementFee:
    """Fee and installment split."""

    def test_senior_hire(self):
        fee = calculate_placement_fee(10_000_000, ExperienceLevel.SENIOR_LEVEL)

        assert fee.fee_percentage == 18
        assert fee.placement_fee == 1_800_000
        assert fee.upfront_amount == 900_000
        assert fee.remaining_amount == 900_000

    def test_installments_always_add_up(self):
        for salary in (1, 3, 7_777_777, 12_345_679):
            fee = calculate_placement_fee(salary, ExperienceLevel.MID_LEVEL)
            assert fee.upfront_amount + fee.remaining_amount == fee.placement_fee

    def test_zero_salary_is_zero_fee(self):
        fee = calculate_placement_fee(0, ExperienceLevel.EXECUTIVE)

        assert fee.placement_fee == 0
        assert fee.upfront_amount == 0
        assert fee.remaining_amount == 0

    def test_fee_rounds_half_up(self):
        # 15% of 10 cents is 1.5 cents
        assert calculate_placement_fee(10, ExperienceLevel.ENTRY_LEVEL).placement_fee == 2

    def test_odd_fee_split_rounds_upfront_up(self):
        assert split_fee(3) == (2, 1)
        assert split_fee(1_800_001) == (900_001, 900_000)


class TestFlagHelpers:
    def test_fee_from_percentage_points(self):
        assert fee_from_percentage(10_000_000, Decimal("18.00")) == 1_800_000
        assert fee_from_percentage(10_000_000, 20) == 2_000_000

    def test_estimate_salary_midpoint(self):
        assert estimate_salary(9_000_000, 11_000_000) == 10_000_000

    def test_estimate_salary_single_bound(self):
        assert estimate_salary(None, 8_000_000) == 8_000_000
        assert estimate_salary(7_000_000, None) == 7_000_000
        assert estimate_salary(None, None) is None
