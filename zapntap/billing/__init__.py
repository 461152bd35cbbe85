"""
Billing Package

Usage calculation and the session ledger.
"""

from zapntap.billing.calculator import UsageCalculator
from zapntap.billing.errors import (
    InvalidRateError,
    InvalidReadingError,
    LedgerError,
    PersistenceFailedError,
    SessionNotFoundError,
    SessionValidationError,
)
from zapntap.billing.ledger import SessionLedger

__all__ = [
    "UsageCalculator",
    "SessionLedger",
    # Exceptions
    "InvalidRateError",
    "InvalidReadingError",
    "LedgerError",
    "PersistenceFailedError",
    "SessionNotFoundError",
    "SessionValidationError",
]
