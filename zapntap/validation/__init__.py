"""Validation package."""

from zapntap.validation.validator import SessionValidator

__all__ = ["SessionValidator"]
