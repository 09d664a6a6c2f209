# src/app/services/policies.py
"""
Default per-platform request policies and URL host allow-lists.
"""
from __future__ import annotations

import re
from typing import Optional

from src.app.domain.models import Platform, RateLimitPolicy

DEFAULT_POLICIES: dict[Platform, RateLimitPolicy] = {
    p.platform: p
    for p in (
        RateLimitPolicy(Platform.INSTAGRAM, 30, 200, 1000, burst_limit=5, cooldown_period_ms=60_000),
        RateLimitPolicy(Platform.TIKTOK, 20, 150, 800, burst_limit=3, cooldown_period_ms=90_000),
        RateLimitPolicy(Platform.PINTEREST, 40, 300, 1500, burst_limit=8, cooldown_period_ms=45_000),
        RateLimitPolicy(Platform.FACEBOOK, 25, 180, 900, burst_limit=4, cooldown_period_ms=75_000),
        RateLimitPolicy(Platform.TWITTER, 15, 100, 500, burst_limit=2, cooldown_period_ms=120_000),
        RateLimitPolicy(Platform.YOUTUBE, 35, 250, 1200, burst_limit=6, cooldown_period_ms=55_000),
        RateLimitPolicy(Platform.FOODBLOG, 20, 300, 2000, burst_limit=10, cooldown_period_ms=30_000),
        RateLimitPolicy(
            Platform.WHATSAPP, 10, 50, 200, burst_limit=1, cooldown_period_ms=180_000,
            respect_robots_txt=False, retry_after_header=False,
        ),
        RateLimitPolicy(
            Platform.EMAIL, 50, 400, 2000, burst_limit=10, cooldown_period_ms=30_000,
            respect_robots_txt=False, retry_after_header=False, exponential_backoff=False,
        ),
    )
}

# None means any http(s) host is acceptable.
_ALLOWED_HOSTS: dict[Platform, Optional[tuple[str, ...]]] = {
    Platform.INSTAGRAM: ("instagram.com", "instagr.am"),
    Platform.TIKTOK: ("tiktok.com",),
    Platform.FACEBOOK: ("facebook.com", "fb.watch", "fb.com"),
    Platform.TWITTER: ("twitter.com", "x.com"),
    Platform.YOUTUBE: ("youtube.com", "youtu.be"),
    Platform.WHATSAPP: ("whatsapp.com", "wa.me"),
    Platform.EMAIL: None,
    Platform.FOODBLOG: None,
}

_PINTEREST_HOST_RE = re.compile(
    r"(?:^|\.)(?:pinterest\.(?:com|co\.uk|de|fr|it|es|ca|com\.au|com\.br|com\.mx|ru|jp|co\.kr|in)|pin\.it)$"
)


def host_allowed(platform: Platform, host: str) -> bool:
    if platform == Platform.PINTEREST:
        return _PINTEREST_HOST_RE.search(host) is not None
    if platform not in _ALLOWED_HOSTS:
        return False
    domains = _ALLOWED_HOSTS[platform]
    if domains is None:
        return True
    return any(host == d or host.endswith("." + d) for d in domains)
