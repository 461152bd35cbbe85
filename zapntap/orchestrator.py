"""
Main Orchestrator for ZapNTap

This module ties together all the components and defines the
end-to-end flows for:
1. Reading a meter (photo → OCR → candidates → suggested reading)
2. Recording a session (photo stored → usage calculated → session saved)
3. Editing sessions and the rate

DESIGN DECISION: The orchestrator enforces the boundaries:
- OCR only ever suggests a reading; nothing is saved from it directly
- The previous reading is editable only for the very first session
- A stored photo never outlives a failed session save
- Every step is audited
"""

import math
from datetime import datetime
from typing import Optional

import structlog

from zapntap.audit import AuditLogger
from zapntap.billing import (
    InvalidReadingError,
    LedgerError,
    PersistenceFailedError,
    SessionLedger,
    UsageCalculator,
)
from zapntap.billing.ledger import SessionRef
from zapntap.config import DEFAULT_ELECTRICITY_RATE, Settings, get_settings
from zapntap.models.audit import AuditEventBuilder
from zapntap.models.session import (
    ChargingSession,
    ExtractionErrorKind,
    LedgerSummary,
    MeterReadingResult,
    PeriodUsage,
    Preferences,
    Timeframe,
)
from zapntap.queries import usage_series
from zapntap.services.ocr import (
    InvalidImageError,
    NoTextFoundError,
    NoValidReadingError,
    OCRError,
    ProcessingError,
    ReadingExtractor,
    parse_numbers,
    select_meter_reading,
)
from zapntap.services.ocr.extractor import ImageInput
from zapntap.services.storage import (
    InMemoryPhotoStorage,
    InMemorySessionStorage,
    LocalPhotoStorage,
    PhotoStorageInterface,
    PreferencesStore,
    SessionStorageInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)

_ERROR_KINDS = {
    InvalidImageError: ExtractionErrorKind.INVALID_IMAGE,
    NoTextFoundError: ExtractionErrorKind.NO_TEXT_FOUND,
    ProcessingError: ExtractionErrorKind.PROCESSING_ERROR,
    NoValidReadingError: ExtractionErrorKind.NO_VALID_READING,
}


class ChargingFlow:
    """
    Orchestrates the charging session flows.

    Flow (new session):
    1. Photo → read_meter → suggested reading (optional)
    2. previous_reading() → baseline shown to the user
    3. User confirms the new reading
    4. record_session → photo stored, session computed and saved

    Photos and preferences are optional collaborators; without a photo
    store, photos cannot be attached.
    """

    def __init__(
        self,
        ledger: SessionLedger,
        extractor: Optional[ReadingExtractor] = None,
        photo_storage: Optional[PhotoStorageInterface] = None,
        preferences: Optional[PreferencesStore] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._ledger = ledger
        self._extractor = extractor or ReadingExtractor()
        self._photo_storage = photo_storage
        self._preferences = preferences or PreferencesStore()
        self._audit_logger = audit_logger

    @property
    def ledger(self) -> SessionLedger:
        return self._ledger

    @property
    def rate(self) -> float:
        return self._ledger.calculator.rate

    @property
    def preferences(self) -> Preferences:
        return self._preferences.load()

    async def _audit(self, event) -> None:
        if self._audit_logger:
            await self._audit_logger.log(event)

    async def load(self) -> tuple[ChargingSession, ...]:
        """Load the ledger from storage."""
        return await self._ledger.load()

    # -------------------------------------------------------------------------
    # Meter reading
    # -------------------------------------------------------------------------

    async def read_meter(self, image: ImageInput) -> MeterReadingResult:
        """
        Suggest a reading from a meter photo.

        Never raises for extraction failures; they come back as a
        MeterReadingResult with an error kind and a user message.
        """
        candidates = []
        try:
            try:
                fragments = await self._extractor.extract_text(image)
            except NoTextFoundError as e:
                # No numbers either way, same outcome as extract_meter_reading
                raise NoValidReadingError() from e
            candidates = parse_numbers(fragments)
            reading = select_meter_reading(candidates)
        except OCRError as e:
            kind = _ERROR_KINDS.get(type(e), ExtractionErrorKind.PROCESSING_ERROR)
            await self._audit(AuditEventBuilder.ocr_failed(kind.value, str(e)))
            return MeterReadingResult(candidates=candidates, error=kind, message=str(e))

        await self._audit(AuditEventBuilder.ocr_completed(len(candidates), reading))
        return MeterReadingResult(
            reading=reading,
            candidates=candidates,
            message=f"Suggested reading: {reading:g}",
        )

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    def previous_reading(self) -> float:
        """
        Baseline for the next session.

        The latest session's new reading, or the remembered default
        (0 unless the user set one) when there are no sessions yet.
        """
        return self._ledger.next_previous_reading(self.preferences.default_previous_reading)

    async def _store_photo(self, photo: bytes) -> str:
        if self._photo_storage is None:
            raise PersistenceFailedError("save photo", "photo storage is not configured")
        try:
            return await self._photo_storage.save_photo(photo)
        except StorageError as e:
            raise PersistenceFailedError("save photo", str(e)) from e

    async def _discard_photo(self, photo_ref: str) -> None:
        try:
            await self._photo_storage.delete_photo(photo_ref)
        except StorageError as e:
            logger.warning("orphan_photo_not_deleted", photo_ref=photo_ref, error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_photo_release_failed(photo_ref, str(e))

    async def record_session(
        self,
        new_reading: float,
        previous_reading: Optional[float] = None,
        photo: Optional[bytes] = None,
        notes: Optional[str] = None,
    ) -> ChargingSession:
        """
        Record a charging session.

        Args:
            new_reading: The confirmed meter reading
            previous_reading: Only for the first session; later sessions
                always start from the latest session's new reading
            photo: Optional meter photo bytes
            notes: Optional notes

        Raises:
            InvalidReadingError: Bad readings, or a previous reading
                supplied when sessions already exist
            PersistenceFailedError: If the photo or session could not be saved
        """
        if previous_reading is not None and len(self._ledger) > 0:
            raise InvalidReadingError(
                "Previous reading is taken from the last session and cannot be changed"
            )
        baseline = previous_reading if previous_reading is not None else self.previous_reading()

        # Reject bad readings before anything is uploaded; the ledger
        # checks again against the baseline it holds the lock for
        self._ledger.calculator.calculate_usage(baseline, new_reading)

        photo_ref = await self._store_photo(photo) if photo else None
        try:
            session = await self._ledger.create_next_session(
                new_reading,
                first_baseline=previous_reading,
                default_baseline=self.preferences.default_previous_reading,
                photo_ref=photo_ref,
                notes=notes,
            )
        except LedgerError:
            if photo_ref:
                await self._discard_photo(photo_ref)
            raise

        if previous_reading is not None:
            self._remember_default(previous_reading)
        return session

    def _remember_default(self, reading: float) -> None:
        try:
            self._preferences.update(default_previous_reading=reading)
        except StorageError as e:
            # The session is saved; only the remembered baseline is lost
            logger.warning("default_reading_not_saved", error=str(e))

    async def attach_photo(self, session: SessionRef, photo: bytes) -> ChargingSession:
        """Attach or replace a session photo."""
        photo_ref = await self._store_photo(photo)
        try:
            return await self._ledger.update_photo(session, photo_ref)
        except LedgerError:
            await self._discard_photo(photo_ref)
            raise

    async def remove_photo(self, session: SessionRef) -> ChargingSession:
        return await self._ledger.remove_photo(session)

    async def toggle_paid_status(self, session: SessionRef) -> ChargingSession:
        return await self._ledger.toggle_paid_status(session)

    async def update_notes(self, session: SessionRef, text: Optional[str]) -> ChargingSession:
        return await self._ledger.update_notes(session, text)

    async def delete_session(self, session: SessionRef) -> None:
        await self._ledger.delete_session(session)

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    async def update_rate(self, rate: float) -> float:
        """
        Change the electricity rate for future sessions.

        Returns:
            The previous rate

        Raises:
            InvalidRateError: If rate is not > 0
            PersistenceFailedError: If the preference could not be saved;
                the old rate stays in force
        """
        calculator = self._ledger.calculator
        old_rate = calculator.update_rate(rate)
        try:
            self._preferences.update(electricity_rate=calculator.rate)
        except StorageError as e:
            calculator.update_rate(old_rate)
            raise PersistenceFailedError("save rate", str(e)) from e

        await self._audit(AuditEventBuilder.rate_updated(old_rate, calculator.rate))
        return old_rate

    async def reset_rate(self) -> float:
        """Restore the default rate. Returns the previous rate."""
        return await self.update_rate(DEFAULT_ELECTRICITY_RATE)

    def set_default_previous_reading(self, reading: float) -> Preferences:
        """
        Set the baseline used for the first session.

        Raises:
            InvalidReadingError: If reading is negative or not a number
            PersistenceFailedError: If the preference could not be saved
        """
        if not isinstance(reading, (int, float)) or isinstance(reading, bool) or not math.isfinite(reading):
            raise InvalidReadingError("Please enter a valid number")
        if reading < 0:
            raise InvalidReadingError("Meter readings cannot be negative")
        try:
            return self._preferences.update(default_previous_reading=float(reading))
        except StorageError as e:
            raise PersistenceFailedError("save default reading", str(e)) from e

    # -------------------------------------------------------------------------
    # Analytics
    # -------------------------------------------------------------------------

    def summary(self, now: Optional[datetime] = None) -> LedgerSummary:
        return self._ledger.summary(now)

    def usage_series(
        self,
        timeframe: Timeframe,
        now: Optional[datetime] = None,
    ) -> list[PeriodUsage]:
        return usage_series(self._ledger.sessions, timeframe, now)


def _session_storage(settings: Settings) -> SessionStorageInterface:
    if settings.app.storage_backend == "google_sheets":
        from zapntap.services.storage.google_sheets import (
            GoogleSheetsClient,
            GoogleSheetsSessionStorage,
        )
        return GoogleSheetsSessionStorage(GoogleSheetsClient(settings.google_sheets))
    return InMemorySessionStorage()


def _photo_storage(settings: Settings) -> PhotoStorageInterface:
    if settings.app.photo_backend == "cloudinary":
        from zapntap.services.storage.cloudinary_photos import CloudinaryPhotoStorage
        return CloudinaryPhotoStorage(settings.cloudinary)
    return LocalPhotoStorage(settings.app.photos_dir)


def create_app_components(settings: Optional[Settings] = None) -> ChargingFlow:
    """
    Factory function to create all application components.

    Backends are chosen from AppSettings. If a remote backend is not
    configured, the app continues with in-memory sessions or in-memory
    photos and logs a warning.

    Returns:
        A ChargingFlow ready for load()
    """
    settings = settings or get_settings()
    charging = settings.charging

    try:
        session_storage = _session_storage(settings)
    except Exception as e:
        # Storage not configured - continue without it
        logger.warning("session_storage_not_configured", error=str(e))
        session_storage = InMemorySessionStorage()

    try:
        photo_storage = _photo_storage(settings)
    except Exception as e:
        logger.warning("photo_storage_not_configured", error=str(e))
        photo_storage = InMemoryPhotoStorage()

    preferences = PreferencesStore(
        settings.app.preferences_path,
        defaults=Preferences(
            electricity_rate=charging.electricity_rate,
            default_previous_reading=charging.default_previous_reading,
        ),
    )
    audit_logger = AuditLogger()
    calculator = UsageCalculator(rate=preferences.load().electricity_rate)

    ledger = SessionLedger(
        storage=session_storage,
        calculator=calculator,
        photo_storage=photo_storage,
        audit_logger=audit_logger,
    )

    return ChargingFlow(
        ledger=ledger,
        photo_storage=photo_storage,
        preferences=preferences,
        audit_logger=audit_logger,
    )
