"""
Usage Calculator

Turns a reading pair into energy used and cost:

    kwh_used = new_reading - previous_reading
    cost     = kwh_used * rate

The rate is held here, not in a global. Changing it only affects
calculations made afterwards; sessions keep the cost they were
created with.
"""

from typing import Optional

from zapntap.billing.errors import InvalidRateError, InvalidReadingError
from zapntap.config.settings import DEFAULT_ELECTRICITY_RATE
from zapntap.models.session import UsageCalculation
from zapntap.validation import SessionValidator


class UsageCalculator:
    """Computes usage and cost at the current electricity rate."""

    def __init__(
        self,
        rate: float = DEFAULT_ELECTRICITY_RATE,
        validator: Optional[SessionValidator] = None,
    ):
        self._validator = validator or SessionValidator()
        self._check_rate(rate)
        self._rate = float(rate)

    @property
    def rate(self) -> float:
        return self._rate

    def _check_rate(self, rate: float) -> None:
        result = self._validator.validate_rate(rate)
        if not result.is_valid:
            raise InvalidRateError(result.first_error.message)

    def update_rate(self, rate: float) -> float:
        """
        Set a new electricity rate.

        Returns:
            The previous rate

        Raises:
            InvalidRateError: If rate is not a finite number > 0
        """
        self._check_rate(rate)
        previous, self._rate = self._rate, float(rate)
        return previous

    def reset_rate(self) -> float:
        """Restore the default rate. Returns the previous rate."""
        return self.update_rate(DEFAULT_ELECTRICITY_RATE)

    def calculate_usage(
        self,
        previous_reading: float,
        new_reading: float,
    ) -> UsageCalculation:
        """
        Calculate energy used and cost for a reading pair.

        Raises:
            InvalidReadingError: If new_reading <= previous_reading,
                or either reading is negative or not a number
        """
        result = self._validator.validate_readings(previous_reading, new_reading)
        if not result.is_valid:
            raise InvalidReadingError(result.first_error.message, result)

        kwh_used = new_reading - previous_reading
        cost = kwh_used * self._rate
        if not (kwh_used > 0 and cost > 0):
            # Float underflow on a vanishing difference
            raise InvalidReadingError("Reading difference is too small to bill", result)

        return UsageCalculation(
            previous_reading=previous_reading,
            new_reading=new_reading,
            kwh_used=kwh_used,
            cost=cost,
            rate=self._rate,
        )
