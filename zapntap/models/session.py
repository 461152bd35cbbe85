"""
Core Data Models for ZapNTap

These models define the schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging

DESIGN DECISION: ChargingSession keeps `id` and `timestamp` optional.
Sessions are only ever created by the ledger with both set, but a record
read back from a damaged store must still load so that integrity
validation can reject it, instead of the whole fetch failing.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from zapntap.config.settings import DEFAULT_ELECTRICITY_RATE


# =============================================================================
# ENUMS
# =============================================================================

class PaymentStatus(str, Enum):
    """Payment status for a session."""
    UNPAID = "unpaid"
    PAID = "paid"


class ExtractionErrorKind(str, Enum):
    """Typed failures of the meter reading pipeline."""
    INVALID_IMAGE = "invalid_image"
    NO_TEXT_FOUND = "no_text_found"
    PROCESSING_ERROR = "processing_error"
    NO_VALID_READING = "no_valid_reading"


class Timeframe(str, Enum):
    """Chart windows offered by the analytics view."""
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


# =============================================================================
# CORE SESSION MODEL
# =============================================================================

class ChargingSession(BaseModel):
    """
    One recorded charging event.

    CRITICAL: Sessions are created only by SessionLedger.create_session.
    kwh_used and cost are computed once, at creation, with the rate in
    force at that moment. They are never recomputed.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    # Identity
    id: Optional[UUID] = Field(
        default_factory=uuid4,
        description="Unique session ID"
    )
    timestamp: Optional[datetime] = Field(
        default_factory=datetime.now,
        description="When the session was recorded (local time)"
    )

    # Readings
    previous_reading: float = Field(
        ...,
        ge=0,
        description="Meter reading at the end of the previous session"
    )
    new_reading: float = Field(
        ...,
        ge=0,
        description="Meter reading at the end of this session"
    )

    # Derived at creation
    kwh_used: float = Field(
        ...,
        description="new_reading - previous_reading"
    )
    cost: float = Field(
        ...,
        description="kwh_used * rate at creation time"
    )

    # Mutable state
    is_paid: bool = Field(
        default=False,
        description="Has this session been paid for?"
    )
    photo_ref: Optional[str] = Field(
        default=None,
        description="Reference to the attached meter photo"
    )
    notes: Optional[str] = Field(
        default=None,
        max_length=1000,
        description="User notes about this session"
    )

    @property
    def payment_status(self) -> PaymentStatus:
        return PaymentStatus.PAID if self.is_paid else PaymentStatus.UNPAID

    @property
    def has_photo(self) -> bool:
        return bool(self.photo_ref)


class UsageCalculation(BaseModel):
    """Result of turning a reading pair into energy and cost."""

    previous_reading: float
    new_reading: float
    kwh_used: float = Field(gt=0)
    cost: float = Field(gt=0)
    rate: float = Field(gt=0)


# =============================================================================
# METER READING MODELS
# =============================================================================

class MeterReadingResult(BaseModel):
    """
    Outcome of reading a meter photo.

    Extraction failures are data, not exceptions, at this level.
    The caller decides whether to show the message.
    """

    reading: Optional[float] = Field(
        default=None,
        description="Best-guess meter reading"
    )
    candidates: list[float] = Field(
        default_factory=list,
        description="Every number found in the photo, in reading order"
    )
    error: Optional[ExtractionErrorKind] = None
    message: str = Field(
        default="",
        description="Message suitable for showing to the user"
    )

    @property
    def success(self) -> bool:
        return self.error is None and self.reading is not None

    @property
    def should_notify_user(self) -> bool:
        """
        Whether a failure deserves an error message.

        Not finding a reading while auto-filling is routine; the user
        simply types the number.
        """
        return self.error is not None and self.error != ExtractionErrorKind.NO_VALID_READING


# =============================================================================
# ANALYTICS MODELS
# =============================================================================

class PeriodUsage(BaseModel):
    """Energy and cost totals for one chart bucket (a day or a month)."""

    period_start: date
    kwh: float = 0.0
    cost: float = 0.0
    session_count: int = Field(default=0, ge=0)


class LedgerSummary(BaseModel):
    """Headline numbers shown on the analytics screen."""

    session_count: int = Field(ge=0)
    unpaid_count: int = Field(ge=0)
    total_unpaid_amount: float
    total_kwh_this_month: float
    total_cost_this_month: float


# =============================================================================
# PREFERENCES
# =============================================================================

class Preferences(BaseModel):
    """User preferences that survive restarts."""

    electricity_rate: float = Field(
        default=DEFAULT_ELECTRICITY_RATE,
        gt=0,
        description="Price per kWh"
    )
    default_previous_reading: float = Field(
        default=0.0,
        ge=0,
        description="Baseline reading for the first session"
    )


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'inconsistent')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """Result of validating readings, a rate, or a stored session."""

    entity_id: Optional[UUID] = Field(
        default=None,
        description="Session being validated, if any"
    )
    validated_at: datetime = Field(
        default_factory=datetime.now
    )
    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )

    @property
    def is_valid(self) -> bool:
        """Valid when no error-level issue was found."""
        return not self.has_errors

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "warning"]

    @property
    def first_error(self) -> Optional[ValidationIssue]:
        return next((i for i in self.issues if i.severity == "error"), None)
