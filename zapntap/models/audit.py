"""
Audit Models for ZapNTap

Every change to the ledger is logged for audit purposes.
This provides:
1. Traceability of payments and edits
2. Debugging information when things go wrong
3. Ability to reconstruct history

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Meter reading
    OCR_COMPLETED = "ocr_completed"
    OCR_FAILED = "ocr_failed"

    # Sessions
    SESSION_CREATED = "session_created"
    SESSION_DELETED = "session_deleted"
    PAYMENT_STATUS_UPDATED = "payment_status_updated"
    NOTES_UPDATED = "notes_updated"
    PHOTO_UPDATED = "photo_updated"
    PHOTO_REMOVED = "photo_removed"
    PHOTO_RELEASE_FAILED = "photo_release_failed"

    # Settings
    RATE_UPDATED = "rate_updated"

    # Failures
    VALIDATION_FAILED = "validation_failed"
    SAVE_FAILED = "save_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.now,
        description="When the event occurred"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'session', 'photo', 'settings')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.session_created(session_id, kwh, cost)
        event = AuditEventBuilder.payment_status_updated(session_id, True)
    """

    @staticmethod
    def ocr_completed(candidate_count: int, reading: Optional[float]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OCR_COMPLETED,
            entity_type="photo",
            description=f"Meter photo read: {candidate_count} candidates",
            details={
                "candidate_count": candidate_count,
                "reading": reading,
            },
        )

    @staticmethod
    def ocr_failed(error_kind: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OCR_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="photo",
            description=f"Meter photo could not be read: {error_kind}",
            details={"error_kind": error_kind},
            error_message=error_message,
        )

    @staticmethod
    def session_created(
        session_id: UUID,
        kwh_used: float,
        cost: float,
        rate: float,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_CREATED,
            entity_type="session",
            entity_id=session_id,
            description=f"Session recorded: {kwh_used:.1f} kWh, {cost:.2f}",
            details={
                "kwh_used": kwh_used,
                "cost": cost,
                "rate": rate,
            },
            is_user_action=True,
        )

    @staticmethod
    def session_deleted(session_id: UUID, had_photo: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_DELETED,
            entity_type="session",
            entity_id=session_id,
            description="Session deleted",
            details={"had_photo": had_photo},
            is_user_action=True,
        )

    @staticmethod
    def payment_status_updated(session_id: UUID, is_paid: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_STATUS_UPDATED,
            entity_type="session",
            entity_id=session_id,
            description=f"Session marked {'paid' if is_paid else 'unpaid'}",
            details={"is_paid": is_paid},
            is_user_action=True,
        )

    @staticmethod
    def notes_updated(session_id: UUID, has_notes: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NOTES_UPDATED,
            entity_type="session",
            entity_id=session_id,
            description="Session notes updated" if has_notes else "Session notes cleared",
            details={"has_notes": has_notes},
            is_user_action=True,
        )

    @staticmethod
    def photo_updated(session_id: UUID, replaced: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PHOTO_UPDATED,
            entity_type="session",
            entity_id=session_id,
            description="Session photo replaced" if replaced else "Session photo attached",
            details={"replaced": replaced},
            is_user_action=True,
        )

    @staticmethod
    def photo_removed(session_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PHOTO_REMOVED,
            entity_type="session",
            entity_id=session_id,
            description="Session photo removed",
            is_user_action=True,
        )

    @staticmethod
    def photo_release_failed(photo_ref: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PHOTO_RELEASE_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="photo",
            description="Could not delete a released photo file",
            details={"photo_ref": photo_ref},
            error_message=error_message,
        )

    @staticmethod
    def rate_updated(old_rate: float, new_rate: float) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RATE_UPDATED,
            entity_type="settings",
            description=f"Electricity rate changed from {old_rate:.4f} to {new_rate:.4f}",
            details={
                "old_rate": old_rate,
                "new_rate": new_rate,
            },
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        operation: str,
        issues: list[dict],
        session_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="session",
            entity_id=session_id,
            description=f"{operation} rejected with {len(issues)} issues",
            details={
                "operation": operation,
                "issues": issues,
            },
        )

    @staticmethod
    def save_failed(
        operation: str,
        error_message: str,
        session_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="session",
            entity_id=session_id,
            description=f"Storage rejected {operation}",
            details={"operation": operation},
            error_message=error_message,
        )
