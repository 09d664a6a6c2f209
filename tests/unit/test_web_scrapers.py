from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from src.services.errors import (
    FetchFailedError,
    LoginRequiredError,
    NetworkTimeoutError,
    NoRecipeFoundError,
    PrivateOrUnavailableError,
)
from src.services.foodblog import FoodBlogScraper, find_schema_recipe
from src.services.robots import RobotsTxtChecker

BLOG_URL = "https://cooking.example.com/banana-bread-recipe"

SCHEMA_RECIPE = {
    "@context": "https://schema.org",
    "@type": "Recipe",
    "name": "Banana bread",
    "author": {"@type": "Person", "name": "Jo Baker", "url": "https://cooking.example.com/jo"},
    "datePublished": "2023-05-01",
    "keywords": "banana, quick bread",
    "recipeCategory": "Dessert",
    "recipeIngredient": ["3 bananas", "200 g flour"],
    "recipeInstructions": [{"@type": "HowToStep", "text": "Mash"}, {"@type": "HowToStep", "text": "Bake"}],
    "totalTime": "PT1H",
}


def page_with_json_ld(data: object) -> str:
    return (
        "<html><head><title>Blog</title>"
        f'<script type="application/ld+json">{json.dumps(data)}</script>'
        "</head><body><p>Story about bananas</p></body></html>"
    )


ARTICLE_PAGE = """<html><head>
<meta property="og:title" content="Weeknight chili">
<meta property="og:image" content="https://cdn.example.com/chili.jpg">
</head><body>
<nav>Home | Recipes</nav>
<article>
<h2>Ingredients</h2>
<ul><li>1 lb beef</li><li>2 cans beans</li></ul>
<h2>Instructions</h2>
<ol><li>Brown the beef</li><li>Simmer everything</li></ol>
</article>
<footer>Subscribe</footer>
</body></html>"""


def scraper_for(handler) -> FoodBlogScraper:
    return FoodBlogScraper(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


class TestFindSchemaRecipe:
    def test_plain_node(self) -> None:
        assert find_schema_recipe(page_with_json_ld(SCHEMA_RECIPE))["name"] == "Banana bread"

    def test_graph_and_type_list(self) -> None:
        graph = {
            "@context": "https://schema.org",
            "@graph": [
                {"@type": "WebPage", "name": "Page"},
                {**SCHEMA_RECIPE, "@type": ["Recipe", "NewsArticle"]},
            ],
        }
        assert find_schema_recipe(page_with_json_ld(graph))["name"] == "Banana bread"

    def test_broken_json_is_skipped(self) -> None:
        html = '<script type="application/ld+json">{not json</script>' + page_with_json_ld([SCHEMA_RECIPE])
        assert find_schema_recipe(html)["name"] == "Banana bread"

    def test_no_recipe(self) -> None:
        assert find_schema_recipe(page_with_json_ld({"@type": "Organization"})) is None


class TestFoodBlogScraper:
    def test_json_ld_payload(self) -> None:
        scraper = scraper_for(lambda request: httpx.Response(200, text=page_with_json_ld(SCHEMA_RECIPE)))
        payload = asyncio.run(scraper.scrape_recipe(BLOG_URL))

        assert payload["name"] == "Banana bread"
        assert payload["schemaType"] == "Recipe"
        assert "@context" not in payload
        assert payload["author"]["displayName"] == "Jo Baker"
        assert payload["publishedAt"] == "2023-05-01"
        assert payload["tags"] == ["banana", "quick bread"]
        assert payload["categories"] == ["Dessert"]

    def test_article_fallback(self) -> None:
        scraper = scraper_for(lambda request: httpx.Response(200, text=ARTICLE_PAGE))
        payload = asyncio.run(scraper.scrape_recipe(BLOG_URL))

        assert payload["title"] == "Weeknight chili"
        assert payload["ingredients"] == ["1 lb beef", "2 cans beans"]
        assert payload["instructions"] == ["Brown the beef", "Simmer everything"]
        assert payload["thumbnailUrl"] == "https://cdn.example.com/chili.jpg"

    def test_page_without_recipe(self) -> None:
        scraper = scraper_for(lambda request: httpx.Response(200, text="<html><body><p>About us</p></body></html>"))
        with pytest.raises(NoRecipeFoundError):
            asyncio.run(scraper.scrape_recipe(BLOG_URL))

    @pytest.mark.parametrize(
        ("status_code", "error"),
        [
            (404, PrivateOrUnavailableError),
            (410, PrivateOrUnavailableError),
            (403, LoginRequiredError),
            (429, FetchFailedError),
            (500, FetchFailedError),
        ],
    )
    def test_http_errors(self, status_code: int, error: type) -> None:
        scraper = scraper_for(lambda request: httpx.Response(status_code))
        with pytest.raises(error):
            asyncio.run(scraper.scrape_recipe(BLOG_URL))

    def test_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("read timed out", request=request)

        with pytest.raises(NetworkTimeoutError):
            asyncio.run(scraper_for(handler).scrape_recipe(BLOG_URL))

    def test_owned_client_follows_compliance_options(self) -> None:
        scraper = FoodBlogScraper()
        client = scraper._get_client({"user_agent": "RecipeVault/test", "timeout_ms": 2000, "max_redirects": 2})

        assert client.headers["User-Agent"] == "RecipeVault/test"
        assert client.timeout.read == 2.0
        assert client.max_redirects == 2

        asyncio.run(scraper.close())
        assert client.is_closed
        assert scraper._client is None

    def test_close_leaves_injected_client_open(self) -> None:
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
        asyncio.run(FoodBlogScraper(client=client).close())
        assert not client.is_closed


class TestRobotsTxtChecker:
    def checker(self, handler) -> RobotsTxtChecker:
        return RobotsTxtChecker(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    def test_disallowed_path(self) -> None:
        robots = "User-agent: *\nDisallow: /private/\nCrawl-delay: 2\n"
        checker = self.checker(lambda request: httpx.Response(200, text=robots))

        blocked = asyncio.run(checker.check("https://example.com/private/recipe", "RecipeVault/1.0"))
        allowed = asyncio.run(checker.check("https://example.com/recipes/pie", "RecipeVault/1.0"))

        assert not blocked.allowed
        assert allowed.allowed
        assert allowed.crawl_delay_seconds == 2.0

    def test_robots_fetched_once_per_origin(self) -> None:
        calls: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(str(request.url))
            return httpx.Response(200, text="User-agent: *\nAllow: /\n")

        checker = self.checker(handler)

        async def run() -> None:
            await checker.check("https://example.com/a", "RecipeVault/1.0")
            await checker.check("https://example.com/b", "RecipeVault/1.0")

        asyncio.run(run())
        assert calls == ["https://example.com/robots.txt"]

    def test_missing_robots_allows(self) -> None:
        checker = self.checker(lambda request: httpx.Response(404))
        assert asyncio.run(checker.check("https://example.com/x", "RecipeVault/1.0")).allowed

    def test_forbidden_robots_disallows(self) -> None:
        checker = self.checker(lambda request: httpx.Response(403))
        assert not asyncio.run(checker.check("https://example.com/x", "RecipeVault/1.0")).allowed

    def test_unreachable_robots_allows(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        checker = self.checker(handler)
        assert asyncio.run(checker.check("https://example.com/x", "RecipeVault/1.0")).allowed
