"""Tests for the session ledger."""

import asyncio
from datetime import datetime

import pytest

from conftest import make_session
from zapntap.billing import (
    InvalidReadingError,
    PersistenceFailedError,
    SessionLedger,
    SessionNotFoundError,
    SessionValidationError,
    UsageCalculator,
)
from zapntap.models.audit import AuditEventType
from zapntap.services.storage import InMemoryPhotoStorage, InMemorySessionStorage, StorageError


class FailingSessionStorage(InMemorySessionStorage):
    """In-memory storage whose writes can be switched off."""

    def __init__(self, sessions=None):
        super().__init__(sessions)
        self.fail_writes = False

    def _check(self):
        if self.fail_writes:
            raise StorageError("disk full")

    async def save_session(self, session):
        self._check()
        return await super().save_session(session)

    async def update_session(self, session):
        self._check()
        return await super().update_session(session)

    async def delete_session(self, session_id):
        self._check()
        return await super().delete_session(session_id)


class BrokenPhotoStorage(InMemoryPhotoStorage):
    """Photo storage that cannot delete."""

    async def delete_photo(self, photo_ref):
        raise StorageError("backend unavailable")


class TestCreateSession:
    """Tests for SessionLedger.create_session."""

    def test_create_session(self, ledger, session_storage):
        """Test a session is computed, stored and placed first."""
        session = asyncio.run(ledger.create_session(1000.0, 1012.5, notes="  overnight "))

        assert session.kwh_used == pytest.approx(12.5)
        assert session.cost == pytest.approx(12.5 * 0.6402)
        assert session.is_paid is False
        assert session.notes == "overnight"
        assert ledger.sessions == (session,)
        assert len(asyncio.run(session_storage.list_sessions())) == 1

    def test_newest_first(self, ledger):
        """Test the ledger is ordered by timestamp descending."""
        first = asyncio.run(ledger.create_session(0, 10))
        second = asyncio.run(ledger.create_session(10, 20))
        assert [s.id for s in ledger.sessions] == [second.id, first.id]
        assert ledger.next_previous_reading() == 20

    def test_equal_timestamps_keep_insertion_order(self, session_storage):
        """Test the most recently inserted session wins a timestamp tie."""
        stamp = datetime(2024, 3, 15, 9, 0)
        ledger = SessionLedger(session_storage, clock=lambda: stamp)
        first = asyncio.run(ledger.create_session(0, 10))
        second = asyncio.run(ledger.create_session(10, 20))
        assert [s.id for s in ledger.sessions] == [second.id, first.id]

        reloaded = SessionLedger(session_storage)
        asyncio.run(reloaded.load())
        assert [s.id for s in reloaded.sessions] == [second.id, first.id]

    def test_invalid_reading_never_reaches_storage(self, ledger, session_storage):
        """Test rejected readings leave storage untouched."""
        with pytest.raises(InvalidReadingError):
            asyncio.run(ledger.create_session(1000.0, 1000.0))
        assert asyncio.run(session_storage.list_sessions()) == []
        assert ledger.sessions == ()

    def test_storage_failure_leaves_ledger_unchanged(self, clock):
        """Test a failed save changes nothing."""
        storage = FailingSessionStorage()
        ledger = SessionLedger(storage, clock=clock)
        asyncio.run(ledger.create_session(0, 10))
        before = ledger.sessions

        storage.fail_writes = True
        with pytest.raises(PersistenceFailedError) as exc_info:
            asyncio.run(ledger.create_session(10, 20))

        assert exc_info.value.detail == "disk full"
        assert ledger.sessions == before
        assert ledger.total_unpaid_amount() == pytest.approx(10 * 0.6402)

    def test_photo_owned_by_another_session(self, ledger):
        """Test a photo cannot be shared between sessions."""
        asyncio.run(ledger.create_session(0, 10, photo_ref="memory://a.jpg"))
        with pytest.raises(SessionValidationError):
            asyncio.run(ledger.create_session(10, 20, photo_ref="memory://a.jpg"))
        assert len(ledger) == 1

    def test_photo_ownership_ignores_surrounding_whitespace(self, ledger):
        """Test padded references are the same photo."""
        session = asyncio.run(ledger.create_session(0, 10, photo_ref=" memory://a.jpg "))
        assert session.photo_ref == "memory://a.jpg"
        with pytest.raises(SessionValidationError):
            asyncio.run(ledger.create_session(10, 20, photo_ref="memory://a.jpg"))

        other = asyncio.run(ledger.create_session(10, 20))
        with pytest.raises(SessionValidationError):
            asyncio.run(ledger.update_photo(other, "memory://a.jpg  "))
        with pytest.raises(SessionValidationError, match="empty"):
            asyncio.run(ledger.update_photo(other, "   "))
        assert len(ledger) == 2

    def test_next_session_chains_from_latest(self, ledger):
        """Test the baseline is read from the ledger itself."""
        first = asyncio.run(ledger.create_next_session(1012.5, first_baseline=1000.0))
        assert first.previous_reading == 1000.0

        second = asyncio.run(ledger.create_next_session(1020.0, default_baseline=500.0))
        assert second.previous_reading == 1012.5
        with pytest.raises(InvalidReadingError, match="cannot be changed"):
            asyncio.run(ledger.create_next_session(1030.0, first_baseline=1000.0))
        assert len(ledger) == 2

    def test_next_session_default_baseline(self, ledger):
        """Test an empty ledger starts from the default baseline."""
        session = asyncio.run(ledger.create_next_session(210.0, default_baseline=200.0))
        assert session.previous_reading == 200.0
        assert session.kwh_used == pytest.approx(10.0)

    def test_rate_change_only_affects_new_sessions(self, ledger):
        """Test existing costs are never recomputed."""
        old = asyncio.run(ledger.create_session(0, 10))
        ledger.calculator.update_rate(1.0)
        new = asyncio.run(ledger.create_session(10, 20))
        assert ledger.get_session(old.id).cost == pytest.approx(6.402)
        assert new.cost == pytest.approx(10.0)

    def test_audit_event(self, ledger, audit_logger):
        """Test creation is audited."""
        session = asyncio.run(ledger.create_session(0, 10))
        event = audit_logger.recent_events(limit=1)[0]
        assert event.event_type == AuditEventType.SESSION_CREATED
        assert event.entity_id == session.id


class TestSessionUpdates:
    """Tests for paid status, notes and photos."""

    def test_toggle_paid_status_twice(self, ledger):
        """Test toggling is an involution."""
        session = asyncio.run(ledger.create_session(0, 10))
        paid = asyncio.run(ledger.toggle_paid_status(session))
        assert paid.is_paid is True
        assert ledger.total_unpaid_amount() == 0

        unpaid = asyncio.run(ledger.toggle_paid_status(paid))
        assert unpaid.is_paid is False
        assert unpaid.cost == session.cost
        assert ledger.total_unpaid_amount() == pytest.approx(session.cost)

    def test_toggle_by_id_uses_current_version(self, ledger):
        """Test a stale session object toggles the stored state."""
        session = asyncio.run(ledger.create_session(0, 10))
        asyncio.run(ledger.toggle_paid_status(session))
        again = asyncio.run(ledger.toggle_paid_status(session.id))
        assert again.is_paid is False

    def test_update_notes(self, ledger, session_storage):
        """Test notes are persisted and blank text clears them."""
        session = asyncio.run(ledger.create_session(0, 10))
        updated = asyncio.run(ledger.update_notes(session, "Public charger"))
        assert updated.notes == "Public charger"
        stored = asyncio.run(session_storage.list_sessions())[0]
        assert stored.notes == "Public charger"

        cleared = asyncio.run(ledger.update_notes(session, "   "))
        assert cleared.notes is None

    def test_notes_too_long(self, ledger):
        """Test overlong notes are refused without a change."""
        session = asyncio.run(ledger.create_session(0, 10))
        with pytest.raises(SessionValidationError):
            asyncio.run(ledger.update_notes(session, "x" * 1001))
        assert ledger.sessions[0].notes is None

    def test_unknown_session(self, ledger):
        """Test updates on a session the ledger does not hold."""
        with pytest.raises(SessionNotFoundError):
            asyncio.run(ledger.toggle_paid_status(make_session()))

    def test_integrity_failure_blocks_update(self, clock):
        """Test a damaged stored session cannot be changed."""
        damaged = make_session(previous=10.0, new=10.0, kwh_used=0.0, cost=0.0)
        storage = InMemorySessionStorage([damaged])
        ledger = SessionLedger(storage, clock=clock)
        asyncio.run(ledger.load())

        with pytest.raises(SessionValidationError) as exc_info:
            asyncio.run(ledger.toggle_paid_status(damaged))
        assert exc_info.value.result.has_errors
        assert ledger.sessions[0].is_paid is False

    def test_update_failure_leaves_ledger_unchanged(self, clock):
        """Test a failed update changes nothing."""
        storage = FailingSessionStorage()
        ledger = SessionLedger(storage, clock=clock)
        session = asyncio.run(ledger.create_session(0, 10))

        storage.fail_writes = True
        with pytest.raises(PersistenceFailedError):
            asyncio.run(ledger.toggle_paid_status(session))
        assert ledger.sessions[0].is_paid is False

    def test_replace_photo_releases_old_file(self, ledger, photo_storage):
        """Test the previous photo file is deleted after replacement."""
        old_ref = asyncio.run(photo_storage.save_photo(b"old"))
        new_ref = asyncio.run(photo_storage.save_photo(b"new"))
        session = asyncio.run(ledger.create_session(0, 10, photo_ref=old_ref))

        updated = asyncio.run(ledger.update_photo(session, new_ref))

        assert updated.photo_ref == new_ref
        assert old_ref not in photo_storage
        assert new_ref in photo_storage

    def test_missing_old_file_does_not_block(self, ledger, photo_storage):
        """Test a photo that is already gone is tolerated."""
        new_ref = asyncio.run(photo_storage.save_photo(b"new"))
        session = asyncio.run(ledger.create_session(0, 10, photo_ref="memory://gone.jpg"))

        updated = asyncio.run(ledger.update_photo(session, new_ref))
        assert updated.photo_ref == new_ref

    def test_photo_release_failure_is_logged(self, clock, audit_logger):
        """Test a failing delete is audited, not raised."""
        ledger = SessionLedger(
            InMemorySessionStorage(),
            photo_storage=BrokenPhotoStorage(),
            audit_logger=audit_logger,
            clock=clock,
        )
        session = asyncio.run(ledger.create_session(0, 10, photo_ref="memory://a.jpg"))

        updated = asyncio.run(ledger.remove_photo(session))

        assert updated.photo_ref is None
        types = [e.event_type for e in audit_logger.recent_events()]
        assert AuditEventType.PHOTO_RELEASE_FAILED in types
        assert types[0] == AuditEventType.PHOTO_REMOVED

    def test_remove_photo(self, ledger, photo_storage):
        """Test removing a photo releases its file."""
        ref = asyncio.run(photo_storage.save_photo(b"img"))
        session = asyncio.run(ledger.create_session(0, 10, photo_ref=ref))
        updated = asyncio.run(ledger.remove_photo(session))
        assert updated.has_photo is False
        assert len(photo_storage) == 0


class TestDeleteSession:
    """Tests for SessionLedger.delete_session."""

    def test_delete_removes_session_and_photo(self, ledger, photo_storage, session_storage):
        """Test deletion releases the photo."""
        ref = asyncio.run(photo_storage.save_photo(b"img"))
        session = asyncio.run(ledger.create_session(0, 10, photo_ref=ref))

        asyncio.run(ledger.delete_session(session))

        assert ledger.sessions == ()
        assert len(photo_storage) == 0
        assert asyncio.run(session_storage.list_sessions()) == []
        assert ledger.next_previous_reading(5.0) == 5.0

    def test_delete_failure(self, clock):
        """Test a failed delete keeps the session."""
        storage = FailingSessionStorage()
        ledger = SessionLedger(storage, clock=clock)
        session = asyncio.run(ledger.create_session(0, 10))
        storage.fail_writes = True

        with pytest.raises(PersistenceFailedError):
            asyncio.run(ledger.delete_session(session))
        assert len(ledger) == 1

    def test_delete_corrupt_session(self, audit_logger):
        """Test a record that fails integrity checks can still be deleted."""
        corrupt = make_session(1000.0, 1000.0, kwh_used=0.0, cost=0.0,
                               timestamp=datetime(2024, 3, 1, 8, 0))
        storage = InMemorySessionStorage([corrupt])
        ledger = SessionLedger(storage, audit_logger=audit_logger)
        asyncio.run(ledger.load())

        with pytest.raises(SessionValidationError):
            asyncio.run(ledger.toggle_paid_status(corrupt))

        asyncio.run(ledger.delete_session(corrupt.id))
        assert len(ledger) == 0
        assert asyncio.run(storage.list_sessions()) == []
        assert audit_logger.recent_events(1)[0].event_type == AuditEventType.SESSION_DELETED


class TestLedgerAggregates:
    """Tests for totals and observers."""

    def test_monthly_totals_exclude_previous_month(self, session_storage):
        """Test "this month" is the calendar month, not 30 days."""
        sessions = [
            make_session(0, 10, timestamp=datetime(2024, 3, 2, 8, 0)),
            make_session(10, 25, timestamp=datetime(2024, 2, 28, 8, 0)),
        ]
        ledger = SessionLedger(InMemorySessionStorage(sessions))
        asyncio.run(ledger.load())

        now = datetime(2024, 3, 10, 12, 0)
        assert ledger.total_kwh_this_month(now) == pytest.approx(10)
        assert ledger.total_cost_this_month(now) == pytest.approx(6.402)
        assert ledger.total_unpaid_amount() == pytest.approx(25 * 0.6402)

        summary = ledger.summary(now)
        assert summary.session_count == 2
        assert summary.unpaid_count == 2

    def test_aggregates_are_idempotent(self, session_storage):
        """Test repeated reads return the same totals and leave the ledger alone."""
        sessions = [
            make_session(0, 10, timestamp=datetime(2024, 3, 2, 8, 0)),
            make_session(10, 25, timestamp=datetime(2024, 3, 5, 8, 0), is_paid=True),
            make_session(25, 30, timestamp=datetime(2024, 2, 20, 8, 0)),
        ]
        ledger = SessionLedger(InMemorySessionStorage(sessions))
        asyncio.run(ledger.load())
        before = ledger.sessions
        now = datetime(2024, 3, 10, 12, 0)

        unpaid = ledger.total_unpaid_amount()
        kwh = ledger.total_kwh_this_month(now)
        cost = ledger.total_cost_this_month(now)
        summary = ledger.summary(now)

        assert ledger.total_unpaid_amount() == unpaid
        assert ledger.total_kwh_this_month(now) == kwh
        assert ledger.total_cost_this_month(now) == cost
        assert ledger.summary(now) == summary
        assert ledger.sessions == before
        assert unpaid == pytest.approx(15 * 0.6402)
        assert kwh == pytest.approx(25)

    def test_observers_receive_snapshots(self, ledger):
        """Test observers are notified after each mutation."""
        snapshots = []
        ledger.add_observer(snapshots.append)

        session = asyncio.run(ledger.create_session(0, 10))
        asyncio.run(ledger.toggle_paid_status(session))
        ledger.remove_observer(snapshots.append)
        asyncio.run(ledger.delete_session(session))

        assert len(snapshots) == 2
        assert snapshots[-1][0].is_paid is True

    def test_failing_observer_does_not_break_ledger(self, ledger):
        """Test observer errors are contained."""
        def boom(_):
            raise RuntimeError("render failed")

        ledger.add_observer(boom)
        session = asyncio.run(ledger.create_session(0, 10))
        assert ledger.sessions == (session,)

    def test_load_failure(self):
        """Test a failed fetch surfaces as PersistenceFailedError."""
        class Unreachable(InMemorySessionStorage):
            async def list_sessions(self):
                raise StorageError("offline")

        ledger = SessionLedger(Unreachable(), calculator=UsageCalculator())
        with pytest.raises(PersistenceFailedError, match="offline"):
            asyncio.run(ledger.load())
