"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Sessions go to memory or Google Sheets; photos to local disk or Cloudinary.
"""

from zapntap.services.storage.interface import (
    ConnectionError,
    DuplicateError,
    NotFoundError,
    PhotoStorageInterface,
    SessionStorageInterface,
    StorageError,
)
from zapntap.services.storage.memory import (
    InMemoryPhotoStorage,
    InMemorySessionStorage,
)
from zapntap.services.storage.local_photos import LocalPhotoStorage
from zapntap.services.storage.preferences import PreferencesStore

__all__ = [
    # Interfaces
    "PhotoStorageInterface",
    "SessionStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Implementations
    "InMemoryPhotoStorage",
    "InMemorySessionStorage",
    "LocalPhotoStorage",
    "PreferencesStore",
]
