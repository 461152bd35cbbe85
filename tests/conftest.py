"""Shared fixtures: canned OCR, sample images and in-memory backends."""

from datetime import datetime, timedelta
from io import BytesIO

import pytest
from PIL import Image

from zapntap.audit import AuditLogger
from zapntap.billing import SessionLedger, UsageCalculator
from zapntap.models.session import ChargingSession
from zapntap.services.ocr import TextRecognizer
from zapntap.services.storage import InMemoryPhotoStorage, InMemorySessionStorage


class FakeRecognizer(TextRecognizer):
    """Returns canned fragments, or raises a canned error."""

    name = "fake"

    def __init__(self, fragments=None, error=None):
        self.fragments = fragments or []
        self.error = error
        self.calls = 0

    def recognize(self, image):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.fragments)


class SteppingClock:
    """Deterministic clock, one minute per call."""

    def __init__(self, start=datetime(2024, 3, 15, 9, 0)):
        self.current = start

    def __call__(self):
        value = self.current
        self.current += timedelta(minutes=1)
        return value


def make_session(previous=1000.0, new=1010.0, rate=0.6402, **overrides):
    kwh = new - previous
    values = dict(
        previous_reading=previous,
        new_reading=new,
        kwh_used=kwh,
        cost=kwh * rate,
    )
    values.update(overrides)
    return ChargingSession(**values)


def image_bytes(fmt="PNG", size=(64, 32)):
    buffer = BytesIO()
    Image.new("RGB", size, color=(200, 200, 200)).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def png_bytes():
    return image_bytes()


@pytest.fixture
def clock():
    return SteppingClock()


@pytest.fixture
def session_storage():
    return InMemorySessionStorage()


@pytest.fixture
def photo_storage():
    return InMemoryPhotoStorage()


@pytest.fixture
def audit_logger():
    return AuditLogger()


@pytest.fixture
def ledger(session_storage, photo_storage, audit_logger, clock):
    return SessionLedger(
        storage=session_storage,
        calculator=UsageCalculator(),
        photo_storage=photo_storage,
        audit_logger=audit_logger,
        clock=clock,
    )
