"""
In-Memory Storage

Process-local implementations of the storage interfaces.
Used by tests and when no durable backend is configured.
"""

from uuid import UUID, uuid4

from zapntap.models.session import ChargingSession
from zapntap.services.storage.interface import (
    DuplicateError,
    NotFoundError,
    PhotoStorageInterface,
    SessionStorageInterface,
)


class InMemorySessionStorage(SessionStorageInterface):
    """Sessions kept in a dict keyed by id."""

    def __init__(self, sessions: list[ChargingSession] = None):
        self._sessions: dict[UUID, ChargingSession] = {}
        for session in sessions or []:
            self._sessions[session.id] = session.model_copy()

    async def save_session(self, session: ChargingSession) -> bool:
        if session.id in self._sessions:
            raise DuplicateError(f"Session already exists: {session.id}")
        self._sessions[session.id] = session.model_copy()
        return True

    async def list_sessions(self) -> list[ChargingSession]:
        sessions = [s.model_copy() for s in self._sessions.values()]
        # Stable sort keeps insertion order among equal timestamps, reversed
        sessions.reverse()
        sessions.sort(key=lambda s: s.timestamp.timestamp() if s.timestamp else float("-inf"), reverse=True)
        return sessions

    async def update_session(self, session: ChargingSession) -> bool:
        if session.id not in self._sessions:
            raise NotFoundError(f"Session not found: {session.id}")
        self._sessions[session.id] = session.model_copy()
        return True

    async def delete_session(self, session_id: UUID) -> bool:
        return self._sessions.pop(session_id, None) is not None


class InMemoryPhotoStorage(PhotoStorageInterface):
    """Photo bytes kept in a dict keyed by a generated reference."""

    def __init__(self):
        self._photos: dict[str, bytes] = {}

    def __contains__(self, photo_ref: str) -> bool:
        return photo_ref in self._photos

    def __len__(self) -> int:
        return len(self._photos)

    def get(self, photo_ref: str) -> bytes:
        return self._photos[photo_ref]

    async def save_photo(self, image_bytes: bytes) -> str:
        photo_ref = f"memory://{uuid4()}.jpg"
        self._photos[photo_ref] = bytes(image_bytes)
        return photo_ref

    async def delete_photo(self, photo_ref: str) -> bool:
        return self._photos.pop(photo_ref, None) is not None
