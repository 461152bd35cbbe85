"""
Text Recognition Engines

DESIGN DECISION: The extractor depends on a tiny interface, not on an
OCR engine. Anything that turns an image into text fragments can drive
the meter reading pipeline, and tests use a canned recognizer.

The default engine is Tesseract, run in "accurate" mode:
1. LSTM engine (--oem 1)
2. Sparse-text segmentation (--psm 11), meters are not paragraphs
3. English language model for dictionary-aware correction
"""

from abc import ABC, abstractmethod
from typing import Optional

import pytesseract
from PIL import Image, ImageOps

from zapntap.config import TesseractSettings, get_settings


class TextRecognizer(ABC):
    """Turns a decoded image into recognized text fragments."""

    name: str = "recognizer"

    @abstractmethod
    def recognize(self, image: Image.Image) -> list[str]:
        """
        Recognize text in an image.

        Args:
            image: A decoded PIL image

        Returns:
            Text fragments in reading order (may contain empty strings)

        Raises:
            Any exception on engine failure; the extractor wraps it.
        """
        pass


class TesseractTextRecognizer(TextRecognizer):
    """Tesseract OCR through pytesseract."""

    name = "tesseract"

    def __init__(self, settings: Optional[TesseractSettings] = None):
        self._settings = settings or get_settings().tesseract
        if self._settings.cmd:
            pytesseract.pytesseract.tesseract_cmd = self._settings.cmd

    @property
    def config(self) -> str:
        return f"--oem {self._settings.oem} --psm {self._settings.psm}"

    def preprocess(self, image: Image.Image) -> Image.Image:
        """Grayscale, stretch contrast and upscale small photos."""
        img = ImageOps.exif_transpose(image)
        img = img.convert("L")
        w, h = img.size
        min_width = self._settings.upscale_min_width
        if min_width and 0 < w < min_width:
            scale = min_width / w
            img = img.resize((min_width, max(1, round(h * scale))), Image.Resampling.LANCZOS)
        return ImageOps.autocontrast(img)

    def recognize(self, image: Image.Image) -> list[str]:
        text = pytesseract.image_to_string(
            self.preprocess(image),
            lang=self._settings.language,
            config=self.config,
        )
        return [line.strip() for line in text.splitlines()]
