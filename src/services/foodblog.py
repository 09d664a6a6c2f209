from __future__ import annotations

import json
import logging
from typing import Any, Iterator, Mapping, Optional

import httpx
from bs4 import BeautifulSoup

from src.app.infra.scrapers.base import PlatformScraper
from src.services.errors import (
    FetchFailedError,
    LoginRequiredError,
    NetworkTimeoutError,
    NoRecipeFoundError,
    PrivateOrUnavailableError,
)
from src.services.recipe_text import clean_string, parse_recipe_text

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
MAX_PAGE_TEXT = 20_000


def _iter_json_ld(soup: BeautifulSoup) -> Iterator[dict]:
    for script in soup.find_all("script", type="application/ld+json"):
        try:
            data = json.loads(script.string or "")
        except (json.JSONDecodeError, TypeError):
            continue

        items = data if isinstance(data, list) else [data]
        for item in items:
            if not isinstance(item, dict):
                continue
            if isinstance(item.get("@graph"), list):
                yield from (node for node in item["@graph"] if isinstance(node, dict))
            else:
                yield item


def _is_recipe(node: Mapping[str, Any]) -> bool:
    schema_type = node.get("@type", "")
    if isinstance(schema_type, list):
        return "Recipe" in schema_type
    return schema_type == "Recipe"


def find_schema_recipe(html: str) -> Optional[dict]:
    """Return the first schema.org Recipe node embedded as JSON-LD."""
    soup = BeautifulSoup(html, "html.parser")
    for node in _iter_json_ld(soup):
        if _is_recipe(node):
            return node
    return None


def _schema_author(value: Any) -> Optional[dict[str, Any]]:
    if isinstance(value, list):
        value = value[0] if value else None
    if isinstance(value, Mapping):
        name = clean_string(value.get("name"))
        return {"username": name or "unknown", "displayName": name, "profileUrl": clean_string(value.get("url"))}
    name = clean_string(value)
    return {"username": name, "displayName": name} if name else None


def _keywords(value: Any) -> list[str]:
    if isinstance(value, str):
        return [k.strip() for k in value.split(",") if k.strip()]
    if isinstance(value, list):
        return [str(k).strip() for k in value if str(k).strip()]
    return []


def _meta_content(soup: BeautifulSoup, prop: str) -> Optional[str]:
    tag = soup.find("meta", attrs={"property": prop}) or soup.find("meta", attrs={"name": prop})
    return clean_string(tag.get("content")) if tag else None


def _payload_from_schema(node: Mapping[str, Any]) -> dict[str, Any]:
    payload = dict(node)
    payload.pop("@context", None)
    payload["schemaType"] = payload.pop("@type", "Recipe")
    author = _schema_author(node.get("author"))
    if author:
        payload["author"] = author
    if node.get("datePublished"):
        payload["publishedAt"] = node.get("datePublished")
    tags = _keywords(node.get("keywords"))
    if tags:
        payload["tags"] = tags
    category = node.get("recipeCategory")
    if category:
        payload["categories"] = category if isinstance(category, list) else [category]
    return payload


def _payload_from_page(soup: BeautifulSoup) -> dict[str, Any]:
    title = _meta_content(soup, "og:title") or clean_string(soup.title.string if soup.title else None)
    container = soup.find("article") or soup.find("main") or soup.body or soup
    for tag in container.find_all(["script", "style", "nav", "footer"]):
        tag.decompose()
    text = container.get_text("\n", strip=True)[:MAX_PAGE_TEXT]
    parsed = parse_recipe_text(text, fallback_title=title)
    return {
        "title": parsed.title,
        "description": _meta_content(soup, "og:description"),
        "ingredients": parsed.ingredients,
        "instructions": parsed.instructions,
        "cookingTime": parsed.cooking_time,
        "servings": parsed.servings,
        "thumbnailUrl": _meta_content(soup, "og:image"),
        "tags": parsed.tags,
    }


class FoodBlogScraper(PlatformScraper):
    """
    Generic recipe-site scraper.

    Prefers schema.org Recipe JSON-LD; falls back to header-driven parsing
    of the main article text.
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self._client = client
        self._owns_client = client is None

    def _get_client(self, options: Mapping[str, Any]) -> httpx.AsyncClient:
        if self._client is None:
            timeout_ms = options.get("timeout_ms")
            self._client = httpx.AsyncClient(
                timeout=timeout_ms / 1000 if timeout_ms else DEFAULT_TIMEOUT_SECONDS,
                follow_redirects=options.get("follow_redirects", True),
                max_redirects=options.get("max_redirects", 3),
                headers={"User-Agent": options.get("user_agent") or "RecipeVault/1.0"},
            )
        return self._client

    async def scrape_recipe(self, url: str, options: Optional[Mapping[str, Any]] = None) -> dict[str, Any]:
        opts = dict(options or {})
        client = self._get_client(opts)
        try:
            response = await client.get(url)
        except httpx.TimeoutException as error:
            timeout = client.timeout.read or DEFAULT_TIMEOUT_SECONDS
            raise NetworkTimeoutError(url, timeout) from error
        except httpx.TooManyRedirects as error:
            raise FetchFailedError(f"Too many redirects (compliance limit): {url}") from error
        except httpx.HTTPError as error:
            raise FetchFailedError(f"HTTP error fetching page: {error}") from error

        if response.status_code == 404 or response.status_code == 410:
            raise PrivateOrUnavailableError(f"Page not found: {url}")
        if response.status_code in (401, 403):
            raise LoginRequiredError(f"Access denied ({response.status_code}): {url}")
        if response.status_code == 429:
            raise FetchFailedError(f"Too many requests (429), retry-after={response.headers.get('Retry-After')}")
        if response.status_code >= 400:
            raise FetchFailedError(f"HTTP {response.status_code} fetching page: {url}")

        html = response.text
        node = find_schema_recipe(html)
        if node is not None:
            logger.debug("JSON-LD recipe found: url=%s", url)
            return _payload_from_schema(node)

        payload = _payload_from_page(BeautifulSoup(html, "html.parser"))
        if not payload["ingredients"] and not payload["instructions"]:
            raise NoRecipeFoundError(f"No recipe found on page: {url}")
        return payload

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
