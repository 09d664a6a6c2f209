# src/app/deps.py (process-wide singletons exposed as dependencies)
from __future__ import annotations

from functools import partial
from typing import Optional

from src.app.config import settings
from src.app.domain.models import ComplianceConfig, Platform
from src.app.infra.scrapers.base import NoteStoreClient
from src.app.infra.scrapers.registry import ScraperRegistry
from src.app.services.extraction_dispatcher import ExtractionDispatcher
from src.app.services.import_tracker import ImportTracker
from src.app.services.metadata_normalizer import MetadataNormalizer, MetadataPreservationConfig
from src.app.services.rate_limiter import ComplianceRateLimiter
from src.app.services.text_extraction import TextExtractionService
from src.services.fetcher import VIDEO_PLATFORMS, VideoPostScraper
from src.services.foodblog import FoodBlogScraper
from src.services.messages import EmailScraper, WhatsAppScraper
from src.services.ocr import TesseractEngine
from src.services.robots import RobotsTxtChecker

_limiter: ComplianceRateLimiter | None = None
_registry: ScraperRegistry | None = None
_dispatcher: ExtractionDispatcher | None = None
_normalizer: MetadataNormalizer | None = None
_text_service: TextExtractionService | None = None
_tracker: ImportTracker | None = None


def build_registry() -> ScraperRegistry:
    registry = ScraperRegistry()
    for platform in VIDEO_PLATFORMS:
        registry.register(platform, partial(VideoPostScraper, platform, settings.YOUTUBE_TRANSCRIPT_FALLBACK))
    registry.register(Platform.FOODBLOG, FoodBlogScraper)
    return registry


def get_limiter() -> ComplianceRateLimiter:
    global _limiter
    if _limiter is None:
        _limiter = ComplianceRateLimiter(
            compliance_config=ComplianceConfig(
                user_agent=settings.COMPLIANCE_USER_AGENT,
                respect_robots_txt=settings.COMPLIANCE_RESPECT_ROBOTS_TXT,
                follow_redirects=settings.COMPLIANCE_FOLLOW_REDIRECTS,
                max_redirects=settings.COMPLIANCE_MAX_REDIRECTS,
                timeout_ms=settings.COMPLIANCE_TIMEOUT_MS,
                retry_attempts=settings.COMPLIANCE_RETRY_ATTEMPTS,
                retry_delay_ms=settings.COMPLIANCE_RETRY_DELAY_MS,
            ),
        )
    return _limiter


def get_registry() -> ScraperRegistry:
    global _registry
    if _registry is None:
        _registry = build_registry()
    return _registry


def get_metadata_normalizer() -> MetadataNormalizer:
    global _normalizer
    if _normalizer is None:
        _normalizer = MetadataNormalizer(
            MetadataPreservationConfig(max_metadata_age_days=settings.METADATA_MAX_AGE_DAYS)
        )
    return _normalizer


def get_dispatcher() -> ExtractionDispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = ExtractionDispatcher(
            get_limiter(),
            get_registry(),
            metadata_normalizer=get_metadata_normalizer(),
            robots_checker=RobotsTxtChecker() if settings.ROBOTS_TXT_ENFORCED else None,
        )
    return _dispatcher


def get_text_service() -> TextExtractionService:
    global _text_service
    if _text_service is None:
        _text_service = TextExtractionService(
            get_limiter(),
            text_scrapers={Platform.EMAIL: EmailScraper(), Platform.WHATSAPP: WhatsAppScraper()},
            ocr_engine=TesseractEngine(),
            ocr_confidence_threshold=settings.OCR_CONFIDENCE_THRESHOLD,
        )
    return _text_service


def get_import_tracker() -> ImportTracker:
    global _tracker
    if _tracker is None:
        _tracker = ImportTracker(
            retention_hours=settings.IMPORT_RETENTION_HOURS,
            max_errors=settings.MAX_IMPORT_ERRORS,
            max_active=settings.MAX_ACTIVE_IMPORTS,
            sweep_interval_seconds=settings.IMPORT_SWEEP_INTERVAL_SECONDS,
        )
    return _tracker


def get_note_client() -> Optional[NoteStoreClient]:
    """No note store ships with the service; override this dependency to enable note imports."""
    return None
