"""
Session Ledger

The ledger owns the ordered collection of charging sessions and every
change made to it.

DESIGN DECISION: Storage first, memory second.
Each mutation runs in this order under one lock:
1. Look up the current version of the session
2. Validate (integrity, or readings for a new session; deletes skip this)
3. Persist through the storage interface
4. Swap in a new immutable snapshot and notify observers

A failure at steps 1-3 raises and leaves the snapshot untouched, so
aggregates never observe a half-applied change.

Photo files are released AFTER the session change is persisted, and a
failed release is logged, never raised.
"""

import asyncio
from datetime import datetime
from typing import Callable, Optional, Union
from uuid import UUID, uuid4

import structlog

from zapntap.audit import AuditLogger
from zapntap.billing.calculator import UsageCalculator
from zapntap.billing.errors import (
    InvalidReadingError,
    PersistenceFailedError,
    SessionNotFoundError,
    SessionValidationError,
)
from zapntap.models.audit import AuditEventBuilder
from zapntap.models.session import ChargingSession, LedgerSummary
from zapntap.queries import analytics
from zapntap.services.storage import (
    PhotoStorageInterface,
    SessionStorageInterface,
    StorageError,
)
from zapntap.validation import SessionValidator


logger = structlog.get_logger(__name__)

MAX_NOTES_LENGTH = 1000

Observer = Callable[[tuple[ChargingSession, ...]], None]
SessionRef = Union[ChargingSession, UUID]


def _sort_key(session: ChargingSession) -> float:
    # Sessions without a timestamp sort last
    return session.timestamp.timestamp() if session.timestamp else float("-inf")


class SessionLedger:
    """
    Ordered collection of charging sessions, newest first.

    Usage:
        ledger = SessionLedger(storage)
        await ledger.load()
        session = await ledger.create_session(1000.0, 1012.5)
        await ledger.toggle_paid_status(session)
    """

    def __init__(
        self,
        storage: SessionStorageInterface,
        calculator: Optional[UsageCalculator] = None,
        photo_storage: Optional[PhotoStorageInterface] = None,
        validator: Optional[SessionValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._storage = storage
        self._validator = validator or SessionValidator()
        self._calculator = calculator or UsageCalculator(validator=self._validator)
        self._photo_storage = photo_storage
        self._audit_logger = audit_logger
        self._clock = clock
        self._sessions: tuple[ChargingSession, ...] = ()
        self._observers: list[Observer] = []
        self._lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # Snapshot access
    # -------------------------------------------------------------------------

    @property
    def sessions(self) -> tuple[ChargingSession, ...]:
        """Current snapshot, timestamp descending."""
        return self._sessions

    @property
    def calculator(self) -> UsageCalculator:
        return self._calculator

    def __len__(self) -> int:
        return len(self._sessions)

    def get_session(self, session_id: UUID) -> Optional[ChargingSession]:
        return next((s for s in self._sessions if s.id == session_id), None)

    def next_previous_reading(self, default: float = 0.0) -> float:
        """The latest session's new_reading, or default when the ledger is empty."""
        if self._sessions:
            return self._sessions[0].new_reading
        return default

    # -------------------------------------------------------------------------
    # Observers
    # -------------------------------------------------------------------------

    def add_observer(self, callback: Observer) -> None:
        if callback not in self._observers:
            self._observers.append(callback)

    def remove_observer(self, callback: Observer) -> None:
        if callback in self._observers:
            self._observers.remove(callback)

    def _publish(self, sessions: tuple[ChargingSession, ...]) -> None:
        self._sessions = sessions
        for callback in list(self._observers):
            try:
                callback(sessions)
            except Exception as e:
                logger.warning("ledger_observer_failed", error=str(e))

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _current(self, ref: SessionRef) -> ChargingSession:
        session_id = ref.id if isinstance(ref, ChargingSession) else ref
        current = self.get_session(session_id) if session_id is not None else None
        if current is None:
            raise SessionNotFoundError("Session not found")
        return current

    async def _audit(self, event) -> None:
        if self._audit_logger:
            await self._audit_logger.log(event)

    async def _check_integrity(self, session: ChargingSession, operation: str) -> None:
        result = self._validator.validate_session(session)
        if result.is_valid:
            return

        if self._audit_logger:
            issues = [
                {"field": i.field, "type": i.issue_type, "message": i.message}
                for i in result.issues
            ]
            await self._audit_logger.log_validation_failed(operation, issues, session.id)

        raise SessionValidationError(
            self._validator.get_user_friendly_summary(result, title="Session failed validation:"),
            result,
        )

    async def _persist(self, operation: str, session_id: Optional[UUID], write) -> None:
        try:
            await write
        except StorageError as e:
            logger.error("ledger_persist_failed", operation=operation, error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_save_failed(operation, str(e), session_id)
            raise PersistenceFailedError(operation, str(e)) from e

    async def _release_photo(self, photo_ref: Optional[str]) -> None:
        """Delete a photo file that no session references any more."""
        if not photo_ref or self._photo_storage is None:
            return
        if any(s.photo_ref == photo_ref for s in self._sessions):
            return
        try:
            deleted = await self._photo_storage.delete_photo(photo_ref)
            if not deleted:
                logger.info("photo_already_gone", photo_ref=photo_ref)
        except StorageError as e:
            logger.warning("photo_release_failed", photo_ref=photo_ref, error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_photo_release_failed(photo_ref, str(e))

    def _replace(self, updated: ChargingSession) -> tuple[ChargingSession, ...]:
        return tuple(updated if s.id == updated.id else s for s in self._sessions)

    async def _apply_update(
        self,
        ref: SessionRef,
        operation: str,
        changes: dict,
    ) -> tuple[ChargingSession, ChargingSession]:
        """Validate, persist and publish a change. Returns (before, after)."""
        current = self._current(ref)
        await self._check_integrity(current, operation)
        updated = current.model_copy(update=changes)
        await self._persist(operation, current.id, self._storage.update_session(updated))
        self._publish(self._replace(updated))
        return current, updated

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def load(self) -> tuple[ChargingSession, ...]:
        """
        Replace the snapshot with everything in storage.

        Raises:
            PersistenceFailedError: If the fetch failed
        """
        async with self._lock:
            try:
                fetched = await self._storage.list_sessions()
            except StorageError as e:
                logger.error("ledger_load_failed", error=str(e))
                raise PersistenceFailedError("load sessions", str(e)) from e

            # Stable sort keeps storage order for equal timestamps
            ordered = tuple(sorted(fetched, key=_sort_key, reverse=True))
            self._publish(ordered)
            logger.debug("ledger_loaded", session_count=len(ordered))
            return ordered

    async def create_session(
        self,
        previous_reading: float,
        new_reading: float,
        photo_ref: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> ChargingSession:
        """
        Compute, persist and insert a new session at the head of the ledger.

        Raises:
            InvalidReadingError: If new_reading <= previous_reading
            SessionValidationError: If photo_ref is owned by another session
            PersistenceFailedError: If storage rejected the session
        """
        async with self._lock:
            return await self._create(previous_reading, new_reading, photo_ref, notes)

    async def create_next_session(
        self,
        new_reading: float,
        first_baseline: Optional[float] = None,
        default_baseline: float = 0.0,
        photo_ref: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> ChargingSession:
        """
        Create a session chained to the latest one.

        The previous reading is looked up under the same lock as the
        insert, so overlapping calls can never share a baseline.

        Args:
            new_reading: The confirmed meter reading
            first_baseline: Explicit previous reading, only allowed while
                the ledger is empty
            default_baseline: Previous reading for the first session when
                first_baseline is not given

        Raises:
            InvalidReadingError: Bad readings, or first_baseline given
                when sessions already exist
            SessionValidationError, PersistenceFailedError: As create_session
        """
        async with self._lock:
            if self._sessions:
                if first_baseline is not None:
                    raise InvalidReadingError(
                        "Previous reading is taken from the last session and cannot be changed"
                    )
                baseline = self._sessions[0].new_reading
            else:
                baseline = first_baseline if first_baseline is not None else default_baseline
            return await self._create(baseline, new_reading, photo_ref, notes)

    async def _create(
        self,
        previous_reading: float,
        new_reading: float,
        photo_ref: Optional[str],
        notes: Optional[str],
    ) -> ChargingSession:
        usage = self._calculator.calculate_usage(previous_reading, new_reading)

        photo_ref = (photo_ref or "").strip() or None
        if photo_ref and any(s.photo_ref == photo_ref for s in self._sessions):
            raise SessionValidationError("This photo is already attached to another session")
        notes = (notes or "").strip() or None
        if notes and len(notes) > MAX_NOTES_LENGTH:
            raise SessionValidationError(f"Notes cannot exceed {MAX_NOTES_LENGTH} characters")

        session = ChargingSession(
            id=uuid4(),
            timestamp=self._clock(),
            previous_reading=usage.previous_reading,
            new_reading=usage.new_reading,
            kwh_used=usage.kwh_used,
            cost=usage.cost,
            photo_ref=photo_ref,
            notes=notes,
        )
        await self._check_integrity(session, "create session")
        await self._persist("save session", session.id, self._storage.save_session(session))

        ordered = tuple(sorted((session,) + self._sessions, key=_sort_key, reverse=True))
        self._publish(ordered)

        await self._audit(AuditEventBuilder.session_created(
            session_id=session.id,
            kwh_used=session.kwh_used,
            cost=session.cost,
            rate=usage.rate,
        ))
        return session

    async def toggle_paid_status(self, session: SessionRef) -> ChargingSession:
        """Flip is_paid. Returns the updated session."""
        async with self._lock:
            current = self._current(session)
            _, updated = await self._apply_update(
                current, "update payment status", {"is_paid": not current.is_paid}
            )
            await self._audit(AuditEventBuilder.payment_status_updated(updated.id, updated.is_paid))
            return updated

    async def update_notes(self, session: SessionRef, text: Optional[str]) -> ChargingSession:
        """Set notes. Blank text clears them."""
        async with self._lock:
            notes = (text or "").strip() or None
            if notes and len(notes) > MAX_NOTES_LENGTH:
                raise SessionValidationError(f"Notes cannot exceed {MAX_NOTES_LENGTH} characters")
            _, updated = await self._apply_update(session, "update notes", {"notes": notes})
            await self._audit(AuditEventBuilder.notes_updated(updated.id, notes is not None))
            return updated

    async def update_photo(self, session: SessionRef, photo_ref: str) -> ChargingSession:
        """
        Attach or replace the photo of a session.

        The previous photo file, if any, is released once the change is saved.
        """
        async with self._lock:
            current = self._current(session)
            photo_ref = (photo_ref or "").strip()
            if not photo_ref:
                raise SessionValidationError("Photo reference is empty")
            if any(s.photo_ref == photo_ref and s.id != current.id for s in self._sessions):
                raise SessionValidationError("This photo is already attached to another session")

            before, updated = await self._apply_update(current, "update photo", {"photo_ref": photo_ref})
            if before.photo_ref != photo_ref:
                await self._release_photo(before.photo_ref)

            await self._audit(AuditEventBuilder.photo_updated(updated.id, replaced=before.has_photo))
            return updated

    async def remove_photo(self, session: SessionRef) -> ChargingSession:
        """Detach the photo and release its file."""
        async with self._lock:
            before, updated = await self._apply_update(session, "remove photo", {"photo_ref": None})
            await self._release_photo(before.photo_ref)
            await self._audit(AuditEventBuilder.photo_removed(updated.id))
            return updated

    async def delete_session(self, session: SessionRef) -> None:
        """Delete a session and release its photo file."""
        async with self._lock:
            current = self._current(session)
            await self._persist("delete session", current.id, self._storage.delete_session(current.id))

            self._publish(tuple(s for s in self._sessions if s.id != current.id))
            await self._release_photo(current.photo_ref)
            await self._audit(AuditEventBuilder.session_deleted(current.id, had_photo=current.has_photo))

    # -------------------------------------------------------------------------
    # Aggregates
    # -------------------------------------------------------------------------

    def total_unpaid_amount(self) -> float:
        return analytics.total_unpaid_amount(self._sessions)

    def total_kwh_this_month(self, now: Optional[datetime] = None) -> float:
        return analytics.total_kwh_this_month(self._sessions, now or self._clock())

    def total_cost_this_month(self, now: Optional[datetime] = None) -> float:
        return analytics.total_cost_this_month(self._sessions, now or self._clock())

    def summary(self, now: Optional[datetime] = None) -> LedgerSummary:
        return analytics.summarize(self._sessions, now or self._clock())
