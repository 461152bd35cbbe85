"""
Audit Logger

DESIGN DECISION: Every change to the ledger is logged.
This provides:
1. Complete traceability of payments and edits
2. Debugging capability
3. A short in-process history the UI can show

The audit logger:
- Never raises; a logging failure must not undo a committed change
- Keeps the most recent events in memory, newest last
"""

from collections import deque
from typing import Optional

import structlog

from zapntap.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events to the structured local log and keeps a bounded
    in-memory trail of recent events.
    """

    def __init__(self, history_size: int = 200):
        self._logger = structlog.get_logger("zapntap.audit")
        self._history: deque[AuditEvent] = deque(maxlen=history_size)

    async def log(self, event: AuditEvent) -> None:
        """Log an audit event."""
        self._history.append(event)
        log_dict = event.to_log_dict()

        try:
            if event.severity == AuditSeverity.ERROR:
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # A broken log handler must not break the ledger
            self._logger.error("audit_log_failed", error=str(e), event_id=str(event.event_id))

    def recent_events(self, limit: Optional[int] = None) -> list[AuditEvent]:
        """Most recent events, newest first."""
        events = list(reversed(self._history))
        return events if limit is None else events[:limit]

    async def log_photo_release_failed(self, photo_ref: str, error_message: str) -> None:
        await self.log(AuditEventBuilder.photo_release_failed(photo_ref, error_message))

    async def log_validation_failed(self, operation: str, issues: list[dict], session_id=None) -> None:
        await self.log(AuditEventBuilder.validation_failed(operation, issues, session_id))

    async def log_save_failed(self, operation: str, error_message: str, session_id=None) -> None:
        await self.log(AuditEventBuilder.save_failed(operation, error_message, session_id))
