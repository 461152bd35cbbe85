"""Ledger error taxonomy. Every error carries a message fit for the user."""

from typing import Optional

from zapntap.models.session import ValidationResult


class LedgerError(Exception):
    """Base exception for calculator and ledger operations."""
    pass


class InvalidReadingError(LedgerError):
    """The reading pair cannot form a session (new <= previous, negative, NaN)."""

    def __init__(self, message: str, result: Optional[ValidationResult] = None):
        self.result = result
        super().__init__(message)


class InvalidRateError(LedgerError):
    """Electricity rate is not a positive number."""
    pass


class SessionValidationError(LedgerError):
    """A session failed its integrity check; the operation was not applied."""

    def __init__(self, message: str, result: Optional[ValidationResult] = None):
        self.result = result
        super().__init__(message)


class SessionNotFoundError(LedgerError):
    """The session is not (or no longer) in the ledger."""
    pass


class PersistenceFailedError(LedgerError):
    """Storage rejected the change; the ledger is unchanged."""

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Failed to {operation}: {detail}")
