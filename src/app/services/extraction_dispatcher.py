# src/app/services/extraction_dispatcher.py
"""
Single entry point for URL extraction.

Runs the ordered gates (platform, quota, policy, permission), scrapes with
a fresh collaborator and normalizes the result. Every failure leaves as a
tagged ExtractionError.
"""
from __future__ import annotations

import logging
import math
from typing import Any, Mapping, Optional, Union

from src.app.domain.errors import (
    ExtractionError,
    ExtractionErrorKind,
    InvalidInputError,
    PolicyViolationError,
    RateLimitedError,
    UnsupportedPlatformError,
)
from src.app.domain.models import (
    CanonicalRecipe,
    ComplianceInfo,
    Platform,
    SocialMediaExtraction,
)
from src.app.infra.scrapers.registry import ScraperRegistry
from src.app.services.error_classifier import classify_failure
from src.app.services.metadata_normalizer import MetadataNormalizer
from src.app.services.rate_limiter import ComplianceRateLimiter
from src.app.services.recipe_normalizer import to_canonical_recipe
from src.services.ids import detect_platform, extract_content_id
from src.services.robots import RobotsTxtChecker

logger = logging.getLogger(__name__)


class ExtractionDispatcher:
    """
    Orchestrates one extraction per call.

    Gates run in order and short-circuit:
    1. platform resolution (no limiter or scraper touched on failure)
    2. quota check
    3. policy validation (and robots.txt when enforced)
    4. wait for permission (records the request)
    5. scrape with a fresh, always-closed collaborator
    6. normalize to CanonicalRecipe
    """

    def __init__(
        self,
        limiter: ComplianceRateLimiter,
        registry: ScraperRegistry,
        metadata_normalizer: Optional[MetadataNormalizer] = None,
        robots_checker: Optional[RobotsTxtChecker] = None,
    ):
        self.limiter = limiter
        self.registry = registry
        self.metadata_normalizer = metadata_normalizer or MetadataNormalizer()
        self.robots_checker = robots_checker

    def resolve_platform(self, url: str, platform: Union[Platform, str, None] = None) -> Platform:
        """
        Raises:
            UnsupportedPlatformError: No platform, no policy or no scraper
        """
        if platform is not None:
            try:
                resolved: Optional[Platform] = Platform(platform)
            except ValueError:
                raise UnsupportedPlatformError(f"Unsupported platform: {platform}", platform=str(platform))
        else:
            resolved = detect_platform(url)

        if resolved is None:
            raise UnsupportedPlatformError()
        if self.limiter.get_platform_rate_limit(resolved) is None or not self.registry.supports(resolved):
            raise UnsupportedPlatformError(f"Unsupported platform: {resolved.value}", platform=resolved.value)
        return resolved

    def _scrape_options(self, options: Optional[Mapping[str, Any]]) -> dict[str, Any]:
        config = self.limiter.get_compliance_config()
        merged = {
            "user_agent": config.user_agent,
            "timeout_ms": config.timeout_ms,
            "follow_redirects": config.follow_redirects,
            "max_redirects": config.max_redirects,
            "retry_attempts": config.retry_attempts,
            "retry_delay_ms": config.retry_delay_ms,
        }
        merged.update(options or {})
        return merged

    async def _check_robots(self, platform: Platform, url: str) -> None:
        if self.robots_checker is None or not self.limiter.should_respect_robots_txt(platform):
            return
        decision = await self.robots_checker.check(url, self.limiter.get_recommended_user_agent())
        if not decision.allowed:
            raise PolicyViolationError("robots.txt disallows this URL", platform=platform.value)

    def _with_retry_hint(self, error: ExtractionError, platform: Platform) -> ExtractionError:
        if error.kind == ExtractionErrorKind.RATE_LIMITED and isinstance(error, RateLimitedError):
            if not error.retry_after:
                error.retry_after = math.ceil(self.limiter.retry_delay_ms(platform) / 1000)
        return error

    async def extract(
        self,
        url: str,
        platform: Union[Platform, str, None] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> CanonicalRecipe:
        """
        Extract a recipe from url.

        Raises:
            ExtractionError: Tagged with one of the ExtractionErrorKind values
        """
        if not url or not isinstance(url, str) or not url.strip():
            raise InvalidInputError("URL is required")
        url = url.strip()

        resolved = self.resolve_platform(url, platform)

        delay_ms = self.limiter.get_time_until_next_request(resolved)
        if delay_ms > 0:
            logger.info("Extraction rate limited: platform=%s, delay_ms=%d", resolved.value, delay_ms)
            raise RateLimitedError(retry_after=math.ceil(delay_ms / 1000), platform=resolved.value)

        validation = self.limiter.validate_request(resolved, url)
        if not validation.is_valid:
            raise PolicyViolationError(validation.reason or "invalid request", platform=resolved.value)
        await self._check_robots(resolved, url)

        await self.limiter.wait_for_permission(resolved)

        logger.info("Extraction started: platform=%s, url=%s", resolved.value, url)
        try:
            async with self.registry.acquire(resolved) as scraper:
                raw = await scraper.scrape_recipe(url, self._scrape_options(options))
        except ExtractionError as error:
            raise self._with_retry_hint(error, resolved)
        except Exception as error:
            failure = self._with_retry_hint(classify_failure(error, resolved.value), resolved)
            logger.warning(
                "Extraction failed: platform=%s, kind=%s, error=%s",
                resolved.value, failure.kind.value, error,
            )
            raise failure from error

        recipe = to_canonical_recipe(raw, url, resolved)
        logger.info(
            "Extraction completed: platform=%s, ingredients=%d, instructions=%d",
            resolved.value, len(recipe.ingredients), len(recipe.instructions),
        )
        return recipe

    async def extract_social_media(
        self,
        url: str,
        platform: Union[Platform, str, None] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> SocialMediaExtraction:
        """Extract a recipe and wrap it with post metadata and compliance info."""
        recipe = await self.extract(url, platform, options)
        resolved = recipe.platform

        payload = {
            **recipe.platform_metadata,
            "title": recipe.title,
            "images": list(recipe.images),
        }
        metadata = self.metadata_normalizer.create_metadata(
            resolved.value,
            extract_content_id(url, resolved),
            url.strip(),
            payload,
        )
        compliance = ComplianceInfo(
            policy=self.limiter.get_platform_rate_limit(resolved),
            stats=self.limiter.get_request_stats(resolved),
            validation=self.limiter.validate_request(resolved, url),
        )
        return SocialMediaExtraction(
            platform=resolved,
            recipe=recipe,
            metadata=metadata,
            compliance=compliance,
            metadata_validation=self.metadata_normalizer.validate_metadata(metadata),
        )
