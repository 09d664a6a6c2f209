# src/app/services/text_extraction.py
from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from src.app.domain.errors import (
    ExtractionError,
    InsufficientDataError,
    InvalidInputError,
    RateLimitedError,
    UnsupportedPlatformError,
)
from src.app.domain.models import CanonicalRecipe, ImageExtraction, Platform
from src.app.infra.scrapers.base import ImageTextEngine, TextScraper
from src.app.services.error_classifier import classify_failure
from src.app.services.rate_limiter import ComplianceRateLimiter
from src.app.services.recipe_normalizer import to_canonical_recipe
from src.services.recipe_text import parse_recipe_text

logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 10 * 1024 * 1024
DEFAULT_OCR_CONFIDENCE = 60.0


class TextExtractionService:
    """
    Extraction for content the user pastes or uploads: email bodies,
    WhatsApp messages and recipe photos.

    Text kinds share the limiter with URL extraction; OCR is local and
    only bounded by the confidence threshold.
    """

    def __init__(
        self,
        limiter: ComplianceRateLimiter,
        text_scrapers: Optional[Mapping[Platform, TextScraper]] = None,
        ocr_engine: Optional[ImageTextEngine] = None,
        ocr_confidence_threshold: float = DEFAULT_OCR_CONFIDENCE,
    ):
        self.limiter = limiter
        self.text_scrapers = dict(text_scrapers or {})
        self.ocr_engine = ocr_engine
        self.ocr_confidence_threshold = ocr_confidence_threshold

    async def _extract_text(
        self,
        platform: Platform,
        text: str,
        metadata: Optional[Mapping[str, Any]],
    ) -> CanonicalRecipe:
        if not text or not isinstance(text, str) or not text.strip():
            raise InvalidInputError(f"Empty {platform.value} content", platform=platform.value)

        scraper = self.text_scrapers.get(platform)
        if scraper is None:
            raise UnsupportedPlatformError(f"No parser configured for {platform.value}", platform=platform.value)

        delay_ms = self.limiter.get_time_until_next_request(platform)
        if delay_ms > 0:
            raise RateLimitedError(retry_after=math.ceil(delay_ms / 1000), platform=platform.value)
        await self.limiter.wait_for_permission(platform)

        try:
            raw = await scraper.scrape_recipe(text, metadata)
        except ExtractionError:
            raise
        except Exception as error:
            failure = classify_failure(error, platform.value)
            logger.warning("Text extraction failed: platform=%s, kind=%s", platform.value, failure.kind.value)
            raise failure from error

        message_id = (raw.get("metadata") or {}).get("messageId") if isinstance(raw, Mapping) else None
        source_url = f"{platform.value}:{message_id}" if message_id else platform.value
        return to_canonical_recipe(raw, source_url, platform)

    async def extract_email(self, text: str, metadata: Optional[Mapping[str, Any]] = None) -> CanonicalRecipe:
        return await self._extract_text(Platform.EMAIL, text, metadata)

    async def extract_whatsapp(self, text: str, metadata: Optional[Mapping[str, Any]] = None) -> CanonicalRecipe:
        return await self._extract_text(Platform.WHATSAPP, text, metadata)

    def get_supported_languages(self) -> list[str]:
        if self.ocr_engine is None:
            return []
        return self.ocr_engine.get_supported_languages()

    async def extract_image(
        self,
        image_bytes: bytes,
        options: Optional[Mapping[str, Any]] = None,
    ) -> ImageExtraction:
        """
        Recognize text in an image and parse a recipe from it.

        Raises:
            InvalidInputError: Empty/oversized image or unsupported language
            InsufficientDataError: Recognition confidence below the threshold
        """
        platform = Platform.IMAGE_OCR.value
        if self.ocr_engine is None:
            raise UnsupportedPlatformError("No OCR engine configured", platform=platform)
        if not image_bytes:
            raise InvalidInputError("No image data provided", platform=platform)
        if len(image_bytes) > MAX_IMAGE_BYTES:
            raise InvalidInputError("File size too large. Maximum size is 10MB", platform=platform)

        opts = dict(options or {})
        language = opts.get("language") or "eng"
        supported = self.ocr_engine.get_supported_languages()
        if supported and language not in supported:
            raise InvalidInputError(f"Unsupported OCR language: {language}", platform=platform)
        threshold = opts.get("confidence_threshold")
        threshold = self.ocr_confidence_threshold if threshold is None else float(threshold)
        opts["language"] = language

        try:
            result = await self.ocr_engine.extract_text(image_bytes, opts)
        except ExtractionError:
            raise
        except Exception as error:
            raise classify_failure(error, platform) from error

        if result.confidence < threshold:
            raise InsufficientDataError(
                f"OCR confidence {result.confidence:.0f} below threshold {threshold:.0f}",
                platform=platform,
            )

        parsed = parse_recipe_text(result.text)
        recipe = None
        if not parsed.is_empty:
            recipe = to_canonical_recipe(
                {
                    "title": parsed.title,
                    "ingredients": parsed.ingredients,
                    "instructions": parsed.instructions,
                    "cookingTime": parsed.cooking_time,
                    "servings": parsed.servings,
                    "tags": parsed.tags,
                    "ocrConfidence": result.confidence,
                    "language": result.language,
                },
                platform,
                Platform.IMAGE_OCR,
                extracted_at=datetime.now(timezone.utc),
            )
        return ImageExtraction(ocr=result, recipe=recipe)
