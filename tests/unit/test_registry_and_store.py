from __future__ import annotations

import asyncio
from typing import Any, Mapping, Optional

import pytest

from src.app.domain.errors import UnsupportedPlatformError
from src.app.domain.models import Platform
from src.app.infra.scrapers.base import PlatformScraper
from src.app.infra.scrapers.registry import ScraperRegistry
from src.app.infra.store.memory import InMemoryStore


class CountingScraper(PlatformScraper):
    instances: list["CountingScraper"] = []

    def __init__(self) -> None:
        self.closed = False
        CountingScraper.instances.append(self)

    async def scrape_recipe(self, url: str, options: Optional[Mapping[str, Any]] = None) -> Any:
        raise RuntimeError("boom")

    async def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def reset_instances() -> None:
    CountingScraper.instances = []


class TestScraperRegistry:
    def test_supports_registered_platforms(self) -> None:
        registry = ScraperRegistry({Platform.INSTAGRAM: CountingScraper})
        registry.register(Platform.TIKTOK, CountingScraper)
        assert registry.supports(Platform.TIKTOK)
        assert not registry.supports(Platform.YOUTUBE)
        assert registry.platforms() == [Platform.INSTAGRAM, Platform.TIKTOK]

    def test_closes_scraper_when_body_raises(self) -> None:
        registry = ScraperRegistry({Platform.INSTAGRAM: CountingScraper})

        async def run() -> None:
            async with registry.acquire(Platform.INSTAGRAM) as scraper:
                await scraper.scrape_recipe("https://instagram.com/p/x")

        with pytest.raises(RuntimeError):
            asyncio.run(run())
        assert [s.closed for s in CountingScraper.instances] == [True]

    def test_unregistered_platform(self) -> None:
        registry = ScraperRegistry()

        async def run() -> None:
            async with registry.acquire(Platform.YOUTUBE):
                pass

        with pytest.raises(UnsupportedPlatformError):
            asyncio.run(run())
        assert CountingScraper.instances == []


class TestInMemoryStore:
    def test_get_set_delete(self) -> None:
        store: InMemoryStore[int] = InMemoryStore()
        store.set("a", 1)
        assert store.get("a") == 1
        assert "a" in store
        assert store.delete("a")
        assert not store.delete("a")
        assert store.get("a") is None

    def test_sweep(self) -> None:
        store: InMemoryStore[int] = InMemoryStore()
        for i, key in enumerate("abcd"):
            store.set(key, i)
        assert store.sweep(lambda key, value: value % 2 == 0) == 2
        assert sorted(store.keys()) == ["b", "d"]
        assert len(store) == 2
