"""Placement fee calculation.

All money is integer cents. Rounding is half-up so a fee of x.5 cents
rounds away from zero the same way on every platform.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from api.models.enums import ExperienceLevel

DEFAULT_FEE_PERCENTAGE = 0.18
UPFRONT_SHARE = Decimal("0.5")


@dataclass(frozen=True)
class PlacementFee:
    """Computed fee breakdown. fee_percentage is in percent points (15, 18, 20)."""

    fee_percentage: float
    placement_fee: int
    upfront_amount: int
    remaining_amount: int


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_fee_percentage(experience_level: ExperienceLevel | str | None) -> float:
    """
    Fee rate for an experience tier, as a fraction.

    Unknown or missing tiers get the senior rate rather than an error.
    """
    match experience_level:
        case ExperienceLevel.ENTRY_LEVEL | ExperienceLevel.MID_LEVEL:
            return 0.15
        case ExperienceLevel.SENIOR_LEVEL:
            return 0.18
        case ExperienceLevel.EXECUTIVE:
            return 0.20
        case _:
            # Unrecognized tier: charge the standard rate
            return DEFAULT_FEE_PERCENTAGE


def split_fee(placement_fee: int) -> tuple[int, int]:
    """Split a fee into (upfront, remaining). Rounding lands in remaining."""
    upfront = _round_half_up(Decimal(placement_fee) * UPFRONT_SHARE)
    return upfront, placement_fee - upfront


def calculate_placement_fee(
    salary: int,
    experience_level: ExperienceLevel | str | None,
) -> PlacementFee:
    """
    Compute the placement fee and its two installments.

    Args:
        salary: Annual salary in cents
        experience_level: Tier used to pick the rate

    Returns:
        PlacementFee with upfront_amount + remaining_amount == placement_fee
    """
    percentage = calculate_fee_percentage(experience_level)
    placement_fee = _round_half_up(Decimal(salary) * Decimal(str(percentage)))
    upfront, remaining = split_fee(placement_fee)

    return PlacementFee(
        fee_percentage=round(percentage * 100, 2),
        placement_fee=placement_fee,
        upfront_amount=upfront,
        remaining_amount=remaining,
    )


def fee_from_percentage(salary: int, fee_percentage: Decimal | float) -> int:
    """Fee owed for a salary at a rate given in percent points (18.00 -> 18%)."""
    return _round_half_up(Decimal(salary) * Decimal(str(fee_percentage)) / Decimal(100))


def estimate_salary(salary_min: Optional[int], salary_max: Optional[int]) -> Optional[int]:
    """Single salary figure for a posting's range, or None when neither bound is known."""
    if salary_min and salary_max:
        return _round_half_up((Decimal(salary_min) + Decimal(salary_max)) / 2)
    return salary_max or salary_min or None
