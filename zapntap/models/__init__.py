"""
Data Models Package

This package contains all Pydantic models used in ZapNTap.
All data flowing through the system must conform to these schemas.
"""

from zapntap.models.session import (
    ChargingSession,
    ExtractionErrorKind,
    LedgerSummary,
    MeterReadingResult,
    PaymentStatus,
    PeriodUsage,
    Preferences,
    Timeframe,
    UsageCalculation,
    ValidationIssue,
    ValidationResult,
)
from zapntap.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Session models
    "ChargingSession",
    "ExtractionErrorKind",
    "LedgerSummary",
    "MeterReadingResult",
    "PaymentStatus",
    "PeriodUsage",
    "Preferences",
    "Timeframe",
    "UsageCalculation",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
