from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse
from urllib.robotparser import RobotFileParser

import httpx

logger = logging.getLogger(__name__)

ROBOTS_TIMEOUT_SECONDS = 5.0
ROBOTS_CACHE_TTL_SECONDS = 3600


@dataclass(frozen=True)
class RobotsDecision:
    allowed: bool
    crawl_delay_seconds: float = 0.0


class RobotsTxtChecker:
    """
    Fetches and caches robots.txt per origin.

    A missing or unreachable robots.txt allows crawling; a 401/403 on
    robots.txt itself disallows everything.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        cache_ttl_seconds: float = ROBOTS_CACHE_TTL_SECONDS,
    ):
        self._client = client
        self._cache_ttl = cache_ttl_seconds
        self._cache: dict[str, tuple[float, RobotFileParser]] = {}
        self._lock = threading.Lock()

    async def _load(self, origin: str, user_agent: str) -> RobotFileParser:
        parser = RobotFileParser()
        parser.set_url(f"{origin}/robots.txt")
        try:
            if self._client is not None:
                response = await self._client.get(f"{origin}/robots.txt", headers={"User-Agent": user_agent})
            else:
                async with httpx.AsyncClient(timeout=ROBOTS_TIMEOUT_SECONDS, follow_redirects=True) as client:
                    response = await client.get(f"{origin}/robots.txt", headers={"User-Agent": user_agent})
        except httpx.HTTPError as error:
            logger.warning("robots.txt unreachable, allowing: origin=%s, error=%s", origin, error)
            parser.allow_all = True
            return parser

        if response.status_code in (401, 403):
            parser.disallow_all = True
        elif response.status_code >= 400:
            parser.allow_all = True
        else:
            parser.parse(response.text.splitlines())
        return parser

    async def check(self, url: str, user_agent: str) -> RobotsDecision:
        parsed = urlparse(url)
        origin = f"{parsed.scheme}://{parsed.netloc}"

        now = time.monotonic()
        with self._lock:
            cached = self._cache.get(origin)
        if cached is None or now - cached[0] > self._cache_ttl:
            parser = await self._load(origin, user_agent)
            with self._lock:
                self._cache[origin] = (now, parser)
        else:
            parser = cached[1]

        allowed = parser.can_fetch(user_agent, url)
        delay = parser.crawl_delay(user_agent) or 0
        if not allowed:
            logger.info("robots.txt disallows: url=%s, user_agent=%s", url, user_agent)
        return RobotsDecision(allowed=allowed, crawl_delay_seconds=float(delay))
