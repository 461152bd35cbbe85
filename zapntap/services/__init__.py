"""Services package."""

from zapntap.services.ocr import (
    InvalidImageError,
    NoTextFoundError,
    NoValidReadingError,
    OCRError,
    ProcessingError,
    ReadingExtractor,
    TesseractTextRecognizer,
    TextRecognizer,
)
from zapntap.services.storage import (
    ConnectionError,
    DuplicateError,
    InMemoryPhotoStorage,
    InMemorySessionStorage,
    LocalPhotoStorage,
    NotFoundError,
    PhotoStorageInterface,
    PreferencesStore,
    SessionStorageInterface,
    StorageError,
)

__all__ = [
    # OCR services
    "InvalidImageError",
    "NoTextFoundError",
    "NoValidReadingError",
    "OCRError",
    "ProcessingError",
    "ReadingExtractor",
    "TesseractTextRecognizer",
    "TextRecognizer",
    # Storage services
    "ConnectionError",
    "DuplicateError",
    "InMemoryPhotoStorage",
    "InMemorySessionStorage",
    "LocalPhotoStorage",
    "NotFoundError",
    "PhotoStorageInterface",
    "PreferencesStore",
    "SessionStorageInterface",
    "StorageError",
]
