"""Audit logging package."""

from zapntap.audit.logger import AuditLogger

__all__ = ["AuditLogger"]
