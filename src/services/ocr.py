from __future__ import annotations

import io
import logging
import time
from typing import Any, Mapping

import pytesseract
from PIL import Image, ImageFilter, ImageOps, UnidentifiedImageError
from starlette.concurrency import run_in_threadpool

from src.app.domain.models import OcrResult
from src.app.infra.scrapers.base import ImageTextEngine
from src.services.errors import ScraperError

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGES = ["eng"]
MAX_OCR_WIDTH = 2000


def _preprocess(image: Image.Image, options: Mapping[str, Any]) -> Image.Image:
    gray = ImageOps.grayscale(image)
    if options.get("resize") and gray.width > MAX_OCR_WIDTH:
        ratio = MAX_OCR_WIDTH / gray.width
        gray = gray.resize((MAX_OCR_WIDTH, int(gray.height * ratio)))
    if options.get("denoise"):
        gray = gray.filter(ImageFilter.MedianFilter(size=3))
    if options.get("enhance"):
        gray = ImageOps.autocontrast(gray)
    return gray


def _clean_text(text: str) -> str:
    lines = [line.strip() for line in text.splitlines()]
    return "\n".join(line for line in lines if line)


class TesseractEngine(ImageTextEngine):
    """pytesseract-backed OCR. Requires the tesseract binary on PATH."""

    def __init__(self, psm: int = 6):
        self.psm = psm

    def _recognize(self, image_bytes: bytes, options: Mapping[str, Any]) -> OcrResult:
        started = time.monotonic()
        language = options.get("language") or "eng"
        try:
            image = Image.open(io.BytesIO(image_bytes))
        except UnidentifiedImageError as error:
            raise ScraperError("Invalid image data: unidentified format") from error

        prepared = _preprocess(image, options) if options.get("preprocessing", True) else image
        config = f"--psm {self.psm}"
        data = pytesseract.image_to_data(prepared, lang=language, config=config, output_type=pytesseract.Output.DICT)

        words = [w for w in data.get("text", []) if w and w.strip()]
        confidences = [float(c) for c, w in zip(data.get("conf", []), data.get("text", [])) if w and w.strip() and float(c) >= 0]
        text = _clean_text(pytesseract.image_to_string(prepared, lang=language, config=config))

        elapsed_ms = int((time.monotonic() - started) * 1000)
        logger.info("OCR done: language=%s, words=%d, elapsed_ms=%d", language, len(words), elapsed_ms)
        return OcrResult(
            text=text,
            confidence=sum(confidences) / len(confidences) if confidences else 0.0,
            processing_time_ms=elapsed_ms,
            language=language,
        )

    async def extract_text(self, image_bytes: bytes, options: Mapping[str, Any]) -> OcrResult:
        return await run_in_threadpool(self._recognize, image_bytes, dict(options))

    def get_supported_languages(self) -> list[str]:
        try:
            return sorted(pytesseract.get_languages(config=""))
        except pytesseract.TesseractNotFoundError:
            logger.warning("tesseract binary not found, assuming default languages")
            return list(DEFAULT_LANGUAGES)
