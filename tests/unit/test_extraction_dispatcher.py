from __future__ import annotations

import asyncio
from typing import Any, Mapping, Optional

import pytest

from src.app.domain.errors import (
    ContentNotFoundError,
    ExtractionErrorKind,
    InsufficientDataError,
    InvalidInputError,
    PolicyViolationError,
    RateLimitedError,
    UnsupportedPlatformError,
)
from src.app.domain.models import Platform
from src.app.infra.scrapers.base import PlatformScraper
from src.app.infra.scrapers.registry import ScraperRegistry
from src.app.services.extraction_dispatcher import ExtractionDispatcher
from src.app.services.rate_limiter import ComplianceRateLimiter
from src.services.robots import RobotsDecision

INSTAGRAM_URL = "https://www.instagram.com/p/abc123/"
TIKTOK_URL = "https://www.tiktok.com/@chef/video/7234567890"


class FakeClock:
    def __init__(self) -> None:
        self.now_ms = 1_700_000_000_000.0

    def __call__(self) -> float:
        return self.now_ms

    async def sleep(self, seconds: float) -> None:
        self.now_ms += seconds * 1000


class StubScraper(PlatformScraper):
    def __init__(self, result: Any = None, error: Optional[Exception] = None, close_error: bool = False):
        self.result = result
        self.error = error
        self.close_error = close_error
        self.calls: list[tuple[str, Mapping[str, Any]]] = []
        self.closed = 0

    async def scrape_recipe(self, url: str, options: Optional[Mapping[str, Any]] = None) -> Any:
        self.calls.append((url, dict(options or {})))
        if self.error is not None:
            raise self.error
        return self.result

    async def close(self) -> None:
        self.closed += 1
        if self.close_error:
            raise RuntimeError("browser already gone")


class StubFactory:
    """Records every scraper it hands out."""

    def __init__(self, **scraper_kwargs: Any) -> None:
        self.scraper_kwargs = scraper_kwargs
        self.created: list[StubScraper] = []

    def __call__(self) -> StubScraper:
        scraper = StubScraper(**self.scraper_kwargs)
        self.created.append(scraper)
        return scraper


class StubRobotsChecker:
    def __init__(self, allowed: bool) -> None:
        self.allowed = allowed
        self.checked: list[tuple[str, str]] = []

    async def check(self, url: str, user_agent: str) -> RobotsDecision:
        self.checked.append((url, user_agent))
        return RobotsDecision(allowed=self.allowed, crawl_delay_seconds=None)


RECIPE = {
    "title": "Pasta night",
    "ingredients": ["200 g pasta", "1 jar sauce"],
    "instructions": ["Boil", "Mix"],
    "author": {"username": "chef"},
    "likes": 42,
    "tags": ["pasta"],
    "images": ["https://cdn.example.com/pasta.jpg"],
}


def make_dispatcher(
    factories: Mapping[Platform, StubFactory],
    robots_checker: Optional[StubRobotsChecker] = None,
) -> tuple[ExtractionDispatcher, ComplianceRateLimiter]:
    clock = FakeClock()
    limiter = ComplianceRateLimiter(clock=clock, sleep=clock.sleep)
    dispatcher = ExtractionDispatcher(limiter, ScraperRegistry(factories), robots_checker=robots_checker)
    return dispatcher, limiter


class TestExtract:
    def test_successful_extraction(self) -> None:
        factory = StubFactory(result=RECIPE)
        dispatcher, limiter = make_dispatcher({Platform.INSTAGRAM: factory})

        recipe = asyncio.run(dispatcher.extract(INSTAGRAM_URL))

        assert recipe.title == "Pasta night"
        assert recipe.platform == Platform.INSTAGRAM
        assert recipe.ingredients == ("200 g pasta", "1 jar sauce")
        assert len(factory.created) == 1
        assert factory.created[0].closed == 1
        assert limiter.get_request_stats(Platform.INSTAGRAM).total_requests == 1

    def test_scraper_receives_compliance_options(self) -> None:
        factory = StubFactory(result=RECIPE)
        dispatcher, limiter = make_dispatcher({Platform.INSTAGRAM: factory})

        asyncio.run(dispatcher.extract(INSTAGRAM_URL, options={"timeout_ms": 5_000}))

        _, options = factory.created[0].calls[0]
        assert options["user_agent"] == limiter.get_recommended_user_agent()
        assert options["timeout_ms"] == 5_000
        assert options["max_redirects"] == 3

    def test_fresh_scraper_per_call(self) -> None:
        factory = StubFactory(result=RECIPE)
        dispatcher, _ = make_dispatcher({Platform.INSTAGRAM: factory})

        async def run() -> None:
            await dispatcher.extract(INSTAGRAM_URL)
            await dispatcher.extract(INSTAGRAM_URL)

        asyncio.run(run())
        assert len(factory.created) == 2
        assert factory.created[0] is not factory.created[1]
        assert all(s.closed == 1 for s in factory.created)

    @pytest.mark.parametrize("url", ["", "   ", None])
    def test_missing_url(self, url) -> None:
        dispatcher, _ = make_dispatcher({Platform.INSTAGRAM: StubFactory(result=RECIPE)})
        with pytest.raises(InvalidInputError):
            asyncio.run(dispatcher.extract(url))

    def test_close_failure_does_not_mask_result(self) -> None:
        factory = StubFactory(result=RECIPE, close_error=True)
        dispatcher, _ = make_dispatcher({Platform.INSTAGRAM: factory})
        assert asyncio.run(dispatcher.extract(INSTAGRAM_URL)).title == "Pasta night"


class TestUnsupportedDispatch:
    def test_unknown_url_touches_nothing(self) -> None:
        factory = StubFactory(result=RECIPE)
        dispatcher, limiter = make_dispatcher({Platform.INSTAGRAM: factory})

        with pytest.raises(UnsupportedPlatformError) as info:
            asyncio.run(dispatcher.extract("https://netflix.com/title/1"))

        assert info.value.kind == ExtractionErrorKind.UNSUPPORTED_PLATFORM
        assert factory.created == []
        assert all(limiter.get_request_stats(p).total_requests == 0 for p in limiter.get_supported_platforms())

    def test_platform_without_scraper(self) -> None:
        factory = StubFactory(result=RECIPE)
        dispatcher, limiter = make_dispatcher({Platform.INSTAGRAM: factory})

        with pytest.raises(UnsupportedPlatformError):
            asyncio.run(dispatcher.extract(TIKTOK_URL))

        assert factory.created == []
        assert limiter.get_request_stats(Platform.TIKTOK).total_requests == 0

    def test_unknown_explicit_platform(self) -> None:
        dispatcher, _ = make_dispatcher({Platform.INSTAGRAM: StubFactory(result=RECIPE)})
        with pytest.raises(UnsupportedPlatformError):
            asyncio.run(dispatcher.extract(INSTAGRAM_URL, platform="myspace"))


class TestGates:
    def test_rate_gate_rejects_without_scraping(self) -> None:
        factory = StubFactory(result=RECIPE)
        dispatcher, _ = make_dispatcher({Platform.INSTAGRAM: factory})

        async def run() -> None:
            for _ in range(5):
                await dispatcher.extract(INSTAGRAM_URL)
            await dispatcher.extract(INSTAGRAM_URL)

        with pytest.raises(RateLimitedError) as info:
            asyncio.run(run())

        assert info.value.retry_after == 60
        assert len(factory.created) == 5

    def test_policy_gate_rejects_mismatched_url(self) -> None:
        factory = StubFactory(result=RECIPE)
        dispatcher, limiter = make_dispatcher({Platform.INSTAGRAM: factory})

        with pytest.raises(PolicyViolationError) as info:
            asyncio.run(dispatcher.extract(TIKTOK_URL, platform=Platform.INSTAGRAM))

        assert info.value.reason == "Invalid URL format for platform: instagram"
        assert factory.created == []
        assert limiter.get_request_stats(Platform.INSTAGRAM).total_requests == 0

    def test_robots_disallow(self) -> None:
        factory = StubFactory(result=RECIPE)
        robots = StubRobotsChecker(allowed=False)
        dispatcher, limiter = make_dispatcher({Platform.INSTAGRAM: factory}, robots_checker=robots)

        with pytest.raises(PolicyViolationError):
            asyncio.run(dispatcher.extract(INSTAGRAM_URL))

        assert robots.checked == [(INSTAGRAM_URL, limiter.get_recommended_user_agent())]
        assert factory.created == []

    def test_robots_skipped_when_config_disables_it(self) -> None:
        factory = StubFactory(result=RECIPE)
        robots = StubRobotsChecker(allowed=False)
        dispatcher, limiter = make_dispatcher({Platform.INSTAGRAM: factory}, robots_checker=robots)
        limiter.update_compliance_config(respect_robots_txt=False)

        asyncio.run(dispatcher.extract(INSTAGRAM_URL))
        assert robots.checked == []


class TestScraperFailures:
    def test_rate_limit_message_becomes_rate_limited(self) -> None:
        factory = StubFactory(error=Exception("rate limit exceeded"))
        dispatcher, _ = make_dispatcher({Platform.INSTAGRAM: factory})

        with pytest.raises(RateLimitedError) as info:
            asyncio.run(dispatcher.extract(INSTAGRAM_URL))

        assert info.value.kind == ExtractionErrorKind.RATE_LIMITED
        assert info.value.retry_after > 0
        assert factory.created[0].closed == 1

    def test_not_found(self) -> None:
        factory = StubFactory(error=RuntimeError("Post not found"))
        dispatcher, _ = make_dispatcher({Platform.INSTAGRAM: factory})

        with pytest.raises(ContentNotFoundError) as info:
            asyncio.run(dispatcher.extract(INSTAGRAM_URL))

        assert info.value.platform == "instagram"
        assert isinstance(info.value.__cause__, RuntimeError)
        assert factory.created[0].closed == 1

    def test_empty_result_is_insufficient_data(self) -> None:
        factory = StubFactory(result={})
        dispatcher, _ = make_dispatcher({Platform.INSTAGRAM: factory})

        with pytest.raises(InsufficientDataError):
            asyncio.run(dispatcher.extract(INSTAGRAM_URL))
        assert factory.created[0].closed == 1


class TestExtractSocialMedia:
    def test_metadata_and_compliance(self) -> None:
        dispatcher, _ = make_dispatcher({Platform.INSTAGRAM: StubFactory(result=RECIPE)})

        result = asyncio.run(dispatcher.extract_social_media(INSTAGRAM_URL))

        assert result.platform == Platform.INSTAGRAM
        assert result.recipe.title == "Pasta night"
        assert result.metadata.content_id == "abc123"
        assert result.metadata.author.username == "chef"
        assert result.metadata.engagement.likes == 42
        assert result.metadata.media.images == ["https://cdn.example.com/pasta.jpg"]
        assert result.compliance.policy.burst_limit == 5
        assert result.compliance.stats.total_requests == 1
        assert result.compliance.validation.is_valid
        assert result.metadata_validation.is_valid
