# src/app/infra/scrapers/registry.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Mapping, Optional

from src.app.domain.errors import UnsupportedPlatformError
from src.app.domain.models import Platform
from src.app.infra.scrapers.base import PlatformScraper

logger = logging.getLogger(__name__)

ScraperFactory = Callable[[], PlatformScraper]


class ScraperRegistry:
    """Maps platforms to scraper factories and hands out one fresh instance per call."""

    def __init__(self, factories: Optional[Mapping[Platform, ScraperFactory]] = None):
        self._factories: dict[Platform, ScraperFactory] = dict(factories or {})

    def register(self, platform: Platform, factory: ScraperFactory) -> None:
        self._factories[platform] = factory

    def supports(self, platform: Platform) -> bool:
        return platform in self._factories

    def platforms(self) -> list[Platform]:
        return list(self._factories)

    @asynccontextmanager
    async def acquire(self, platform: Platform) -> AsyncIterator[PlatformScraper]:
        """
        Yield a new scraper for platform and close it on every exit path.

        Raises:
            UnsupportedPlatformError: If no factory is registered
        """
        factory = self._factories.get(platform)
        if factory is None:
            raise UnsupportedPlatformError(f"No scraper registered for {platform.value}", platform=platform.value)

        scraper = factory()
        try:
            yield scraper
        finally:
            try:
                await scraper.close()
            except Exception:
                # close failures are logged, never raised
                logger.exception("Failed to close scraper: platform=%s", platform.value)
