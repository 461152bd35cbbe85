"""
Meter Reading Extractor

Turns a meter photo into a best-guess reading:

    image → recognized text fragments → numeric candidates → reading

The ranking is a deliberately simple heuristic. A cumulative meter
counter is usually the longest number in the photo; dates, unit labels
and serial-number fragments tend to be shorter. So:
1. More digits (integer-rounded rendering) wins
2. Equal digit count → numerically larger wins

CRITICAL: Do not "improve" the ranking. Stored readings and the tests
depend on exactly this ordering.

Every operation is async. Decoding and recognition run in a worker
thread, calls share no state, and any number of them may be in flight.
"""

import asyncio
import math
import re
from io import BytesIO
from pathlib import Path
from typing import Optional, Union

import structlog
from PIL import Image, UnidentifiedImageError

from zapntap.services.ocr.recognizer import TesseractTextRecognizer, TextRecognizer


logger = structlog.get_logger(__name__)

ImageInput = Union[bytes, bytearray, str, Path, Image.Image]

NUMBER_PATTERN = re.compile(r"[-+]?\d*\.?\d+")


class OCRError(Exception):
    """Base exception for meter reading errors."""

    default_message = "Could not read the meter photo"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)


class InvalidImageError(OCRError):
    """Input could not be decoded into a bitmap."""

    default_message = "Invalid image format"


class NoTextFoundError(OCRError):
    """Recognizer produced no usable text (or no numbers in it)."""

    default_message = "No text found in image"


class ProcessingError(OCRError):
    """The recognition engine failed."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Processing error: {detail}")


class NoValidReadingError(OCRError):
    """No candidate could be chosen as a meter reading."""

    default_message = "No valid meter reading found"


def parse_numbers(fragments: list[str]) -> list[float]:
    """
    Scan text fragments for decimal numbers.

    Matches are parsed in the order fragments and matches were found.
    Matches that do not parse to a finite float are dropped.
    """
    numbers = []
    for fragment in fragments:
        for match in NUMBER_PATTERN.findall(fragment):
            try:
                value = float(match)
            except ValueError:
                continue
            if math.isfinite(value):
                numbers.append(value)
    return numbers


def digit_count(value: float) -> int:
    """Length of the value rendered without a fractional part."""
    return len(f"{value:.0f}")


def select_meter_reading(numbers: list[float]) -> float:
    """
    Pick the most plausible meter reading from candidates.

    Raises:
        NoValidReadingError: If there are no candidates
    """
    if not numbers:
        raise NoValidReadingError()
    return max(numbers, key=lambda n: (digit_count(n), n))


def format_numbers(numbers: list[float]) -> str:
    """Render candidates the way the session detail screen shows them."""
    return "Meter Reading: " + ", ".join(f"{n:.2f}" for n in numbers)


class ReadingExtractor:
    """
    Async meter reading pipeline.

    IMPORTANT BOUNDARIES:
    1. This service ONLY proposes a reading - it never creates sessions
    2. Failures are raised as OCRError subclasses with user-facing messages
    """

    def __init__(self, recognizer: Optional[TextRecognizer] = None):
        self._recognizer = recognizer
        self._logger = logger

    @property
    def recognizer(self) -> TextRecognizer:
        """Get or create the default recognizer."""
        if self._recognizer is None:
            self._recognizer = TesseractTextRecognizer()
        return self._recognizer

    def _decode(self, image: ImageInput) -> Image.Image:
        if isinstance(image, Image.Image):
            return image
        try:
            if isinstance(image, (bytes, bytearray)):
                if not image:
                    raise InvalidImageError()
                decoded = Image.open(BytesIO(image))
            else:
                decoded = Image.open(Path(image))
            decoded.load()
            return decoded
        except InvalidImageError:
            raise
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            self._logger.debug("image_decode_failed", error=str(e))
            raise InvalidImageError() from e

    def _recognize(self, image: ImageInput) -> list[str]:
        decoded = self._decode(image)
        self._logger.debug(
            "ocr_started",
            recognizer=self.recognizer.name,
            width=decoded.width,
            height=decoded.height,
        )
        try:
            fragments = self.recognizer.recognize(decoded)
        except OCRError:
            raise
        except Exception as e:
            self._logger.warning("ocr_engine_failed", error=str(e))
            raise ProcessingError(str(e)) from e

        fragments = [f for f in (fragments or []) if f and f.strip()]
        if not fragments:
            raise NoTextFoundError()
        return fragments

    async def extract_text(self, image: ImageInput) -> list[str]:
        """
        Recognize text fragments in an image.

        Raises:
            InvalidImageError: If the image cannot be decoded
            NoTextFoundError: If no non-empty fragment was recognized
            ProcessingError: If the recognition engine failed
        """
        fragments = await asyncio.to_thread(self._recognize, image)
        self._logger.debug("ocr_text_extracted", fragment_count=len(fragments))
        return fragments

    async def extract_numbers(self, image: ImageInput) -> list[float]:
        """
        Extract every decimal number from an image, in reading order.

        Raises:
            NoTextFoundError: If the text contained no numbers
            (plus any extract_text failure)
        """
        fragments = await self.extract_text(image)
        numbers = parse_numbers(fragments)
        if not numbers:
            raise NoTextFoundError()
        self._logger.debug("ocr_numbers_extracted", numbers=numbers)
        return numbers

    async def extract_numbers_as_string(self, image: ImageInput) -> str:
        """Extract numbers and render them for display."""
        return format_numbers(await self.extract_numbers(image))

    async def extract_meter_reading(self, image: ImageInput) -> float:
        """
        Extract the single most plausible meter reading.

        Raises:
            NoValidReadingError: If no numbers were found
            InvalidImageError, ProcessingError: From the text stage
        """
        try:
            numbers = await self.extract_numbers(image)
        except NoTextFoundError as e:
            raise NoValidReadingError() from e
        reading = select_meter_reading(numbers)
        self._logger.debug("meter_reading_selected", reading=reading, candidates=len(numbers))
        return reading
