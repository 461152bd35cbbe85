"""OCR services package."""

from zapntap.services.ocr.extractor import (
    InvalidImageError,
    NoTextFoundError,
    NoValidReadingError,
    OCRError,
    ProcessingError,
    ReadingExtractor,
    format_numbers,
    parse_numbers,
    select_meter_reading,
)
from zapntap.services.ocr.recognizer import TesseractTextRecognizer, TextRecognizer

__all__ = [
    "InvalidImageError",
    "NoTextFoundError",
    "NoValidReadingError",
    "OCRError",
    "ProcessingError",
    "ReadingExtractor",
    "TesseractTextRecognizer",
    "TextRecognizer",
    "format_numbers",
    "parse_numbers",
    "select_meter_reading",
]
