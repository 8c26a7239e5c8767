"""
Spending statistics over a user's fuel-ups.

There is exactly one definition of the statistics: :func:`compute_statistics`
over a list of loaded records. No database-side aggregate is used, so
rounding happens in one place only.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from .cost import divide_half_up, exact_sum
from ..storage.models import FuelUp

AVERAGE_PRICE_PLACES = 2


@dataclass(frozen=True)
class FuelUpStatistics:
    """Summary of a user's fuel spending."""
    count: int
    total_gallons: Decimal
    total_spent: Decimal
    average_price_per_gallon: Decimal

    def __post_init__(self):
        """Validate totals are not negative."""
        if self.count < 0:
            raise ValueError("count cannot be negative")
        if self.total_gallons < 0 or self.total_spent < 0:
            raise ValueError("totals cannot be negative")

    @classmethod
    def empty(cls) -> "FuelUpStatistics":
        """Zero-valued statistics for a user with no fuel-ups."""
        return cls(
            count=0,
            total_gallons=Decimal("0"),
            total_spent=Decimal("0"),
            average_price_per_gallon=Decimal("0.00")
        )


def compute_statistics(fuel_ups: Sequence[FuelUp]) -> FuelUpStatistics:
    """Compute spending statistics from a user's fuel-ups.

    Sums are exact. The average price is the unweighted mean of the
    per-purchase unit prices, rounded half-up to two places at the very
    end. It is not total spent divided by total gallons.

    Args:
        fuel_ups: All of one user's fuel-ups, as stored

    Returns:
        FuelUpStatistics; zero-valued when ``fuel_ups`` is empty
    """
    if not fuel_ups:
        return FuelUpStatistics.empty()

    count = len(fuel_ups)
    total_gallons = exact_sum(f.gallons for f in fuel_ups)
    # total_cost is already derived by the repository on every write
    total_spent = exact_sum(f.total_cost for f in fuel_ups if f.total_cost is not None)
    price_sum = exact_sum(f.price_per_gallon for f in fuel_ups)

    return FuelUpStatistics(
        count=count,
        total_gallons=total_gallons,
        total_spent=total_spent,
        average_price_per_gallon=divide_half_up(price_sum, count, AVERAGE_PRICE_PLACES)
    )
