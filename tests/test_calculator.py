"""Tests for usage calculation and validation."""

import math

import pytest

from conftest import make_session
from zapntap.billing import InvalidRateError, InvalidReadingError, UsageCalculator
from zapntap.validation import SessionValidator


class TestUsageCalculator:
    """Tests for UsageCalculator."""

    def test_default_rate(self):
        """Test the default electricity rate."""
        assert UsageCalculator().rate == 0.6402

    def test_calculate_usage(self):
        """Test kWh and cost for a reading pair."""
        usage = UsageCalculator().calculate_usage(1000.0, 1012.5)
        assert usage.kwh_used == pytest.approx(12.5)
        assert usage.cost == pytest.approx(12.5 * 0.6402)
        assert usage.rate == 0.6402

    def test_equal_readings_rejected(self):
        """Test new == previous is rejected."""
        with pytest.raises(InvalidReadingError, match="New reading must be greater than previous reading"):
            UsageCalculator().calculate_usage(1000.0, 1000.0)

    def test_lower_reading_rejected(self):
        """Test new < previous is rejected."""
        with pytest.raises(InvalidReadingError) as exc_info:
            UsageCalculator().calculate_usage(1000.0, 999.0)
        assert exc_info.value.result.first_error.suggested_fix is not None

    def test_negative_and_nan_rejected(self):
        """Test non-numbers and negatives are rejected."""
        calculator = UsageCalculator()
        with pytest.raises(InvalidReadingError, match="cannot be negative"):
            calculator.calculate_usage(-5.0, 10.0)
        with pytest.raises(InvalidReadingError, match="valid number"):
            calculator.calculate_usage(0.0, math.nan)

    def test_update_rate(self):
        """Test rate changes return the previous rate."""
        calculator = UsageCalculator()
        assert calculator.update_rate(0.75) == 0.6402
        assert calculator.calculate_usage(0, 10).cost == pytest.approx(7.5)

    @pytest.mark.parametrize("rate", [0, -0.1, math.inf, math.nan])
    def test_invalid_rate(self, rate):
        """Test non-positive or non-finite rates are rejected."""
        calculator = UsageCalculator()
        with pytest.raises(InvalidRateError):
            calculator.update_rate(rate)
        assert calculator.rate == 0.6402

    def test_zero_rate_message(self):
        """Test the rate error message."""
        with pytest.raises(InvalidRateError, match="Rate must be greater than 0"):
            UsageCalculator(rate=0)

    def test_reset_rate(self):
        """Test reset restores the default."""
        calculator = UsageCalculator(rate=1.2)
        assert calculator.reset_rate() == 1.2
        assert calculator.rate == 0.6402


class TestSessionValidator:
    """Tests for SessionValidator."""

    def test_valid_session(self):
        """Test a well-formed session passes."""
        result = SessionValidator().validate_session(make_session())
        assert result.is_valid
        assert result.entity_id is not None

    def test_missing_identity(self):
        """Test id and timestamp are required."""
        result = SessionValidator().validate_session(make_session(id=None, timestamp=None))
        fields = {i.field for i in result.issues}
        assert {"id", "timestamp"} <= fields
        assert result.error_count == 2

    def test_inconsistent_readings(self):
        """Test stored sessions must have positive usage and cost."""
        session = make_session(previous=10.0, new=10.0, kwh_used=0.0, cost=0.0)
        result = SessionValidator().validate_session(session)
        fields = {i.field for i in result.issues}
        assert fields == {"new_reading", "kwh_used", "cost"}

    def test_validate_readings_ok(self):
        """Test a good reading pair."""
        assert SessionValidator().validate_readings(0, 0.1).is_valid

    def test_bool_is_not_a_number(self):
        """Test booleans are not accepted as readings."""
        assert not SessionValidator().validate_readings(False, True).is_valid

    def test_user_friendly_summary(self):
        """Test summary text lists errors and fixes."""
        validator = SessionValidator()
        result = validator.validate_readings(100, 50)
        summary = validator.get_user_friendly_summary(result)
        assert "New reading must be greater than previous reading" in summary
        assert "Enter a reading above 100" in summary

    def test_user_friendly_summary_valid(self):
        """Test summary for a clean result."""
        validator = SessionValidator()
        assert "passed" in validator.get_user_friendly_summary(validator.validate_rate(1.0))
