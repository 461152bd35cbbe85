"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep ledger logic decoupled from storage implementation

Each call is one unit of work: it either fully commits or raises,
leaving nothing half-written behind.
"""

from abc import ABC, abstractmethod
from uuid import UUID

from zapntap.models.session import ChargingSession


class SessionStorageInterface(ABC):
    """
    Abstract interface for charging session storage.

    Any storage implementation (Google Sheets, SQLite, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def save_session(self, session: ChargingSession) -> bool:
        """
        Save a new session.

        Returns:
            True if saved successfully

        Raises:
            StorageError: If save fails
            DuplicateError: If a session with the same id exists
        """
        pass

    @abstractmethod
    async def list_sessions(self) -> list[ChargingSession]:
        """
        Fetch every session.

        Returns:
            All sessions, newest timestamp first

        Raises:
            StorageError: If the fetch fails
        """
        pass

    @abstractmethod
    async def update_session(self, session: ChargingSession) -> bool:
        """
        Replace a stored session with the given version.

        Raises:
            StorageError: If update fails
            NotFoundError: If session doesn't exist
        """
        pass

    @abstractmethod
    async def delete_session(self, session_id: UUID) -> bool:
        """
        Delete a session by ID.

        Returns:
            True if a session was deleted, False if it did not exist

        Raises:
            StorageError: If delete fails
        """
        pass


class PhotoStorageInterface(ABC):
    """Abstract interface for meter photo files."""

    @abstractmethod
    async def save_photo(self, image_bytes: bytes) -> str:
        """
        Store a photo.

        Returns:
            A reference that identifies the stored file

        Raises:
            StorageError: If the photo could not be stored
        """
        pass

    @abstractmethod
    async def delete_photo(self, photo_ref: str) -> bool:
        """
        Delete a stored photo.

        Returns:
            True if deleted, False if it was already gone

        Raises:
            StorageError: If the backend failed
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
