# src/app/services/rate_limiter.py
"""
Per-platform compliance and rate limiting.
Tracks request history, enforces quotas and burst cooldowns, and performs
policy checks that never consume quota.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
import math
import threading
import time
from typing import Awaitable, Callable, Iterable, Mapping, Optional, Union
from urllib.parse import urlparse

from src.app.domain.errors import UnsupportedPlatformError
from src.app.domain.models import (
    ComplianceConfig,
    ComplianceValidation,
    Platform,
    RateLimitPolicy,
    RateLimitState,
    RequestStats,
)
from src.app.infra.store.base import KeyValueStore
from src.app.infra.store.memory import InMemoryStore
from src.app.services.policies import DEFAULT_POLICIES, host_allowed

logger = logging.getLogger(__name__)

MINUTE_MS = 60_000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS
MAX_BACKOFF_MULTIPLIER = 8

PlatformLike = Union[Platform, str]
Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]


def _now_ms() -> float:
    return time.time() * 1000


def _coerce_platform(platform: PlatformLike) -> Optional[Platform]:
    if isinstance(platform, Platform):
        return platform
    try:
        return Platform(platform)
    except ValueError:
        return None


class ComplianceRateLimiter:
    """
    Independent state machine per platform.

    Windows enforced for every policy:
    - burst: at most burst_limit requests within cooldown_period_ms
    - minute / hour / day quotas

    Same-platform callers of wait_for_permission are queued on an
    asyncio.Lock, and the check-then-record step runs under a thread lock,
    so at most burst_limit callers pass per cooldown window.
    """

    def __init__(
        self,
        policies: Optional[Mapping[Platform, RateLimitPolicy]] = None,
        compliance_config: Optional[ComplianceConfig] = None,
        store: Optional[KeyValueStore[RateLimitState]] = None,
        clock: Clock = _now_ms,
        sleep: Sleeper = asyncio.sleep,
    ):
        self._policies: dict[Platform, RateLimitPolicy] = dict(policies or DEFAULT_POLICIES)
        self._config = compliance_config or ComplianceConfig()
        self._store: KeyValueStore[RateLimitState] = store if store is not None else InMemoryStore()
        self._clock = clock
        self._sleep = sleep
        self._state_lock = threading.Lock()
        self._waiters: dict[Platform, asyncio.Lock] = {}
        self._waiters_guard = threading.Lock()

    # ------------------------------------------------------------------
    # Policies / config
    # ------------------------------------------------------------------

    def get_supported_platforms(self) -> list[Platform]:
        return list(self._policies)

    def get_platform_rate_limit(self, platform: PlatformLike) -> Optional[RateLimitPolicy]:
        p = _coerce_platform(platform)
        if p is None:
            return None
        return self._policies.get(p)

    def update_platform_policy(self, platform: PlatformLike, **changes) -> RateLimitPolicy:
        """
        Replace selected fields of a platform policy.

        Raises:
            UnsupportedPlatformError: If the platform has no policy
        """
        p = _coerce_platform(platform)
        current = self._policies.get(p) if p else None
        if current is None:
            raise UnsupportedPlatformError(f"Unsupported platform: {platform}", platform=str(platform))
        changes.pop("platform", None)
        updated = dataclasses.replace(current, **changes)
        self._policies[p] = updated
        logger.info("Rate limit policy updated: platform=%s, changes=%s", p.value, changes)
        return updated

    def get_compliance_config(self) -> ComplianceConfig:
        return self._config

    def update_compliance_config(self, **changes) -> ComplianceConfig:
        self._config = dataclasses.replace(self._config, **changes)
        logger.info("Compliance config updated: %s", sorted(changes))
        return self._config

    def should_respect_robots_txt(self, platform: PlatformLike) -> bool:
        policy = self.get_platform_rate_limit(platform)
        if policy is None:
            return self._config.respect_robots_txt
        return policy.respect_robots_txt and self._config.respect_robots_txt

    def get_recommended_user_agent(self) -> str:
        return self._config.user_agent

    # ------------------------------------------------------------------
    # Quota state
    # ------------------------------------------------------------------

    @staticmethod
    def _windows(policy: RateLimitPolicy) -> Iterable[tuple[int, int]]:
        return (
            (policy.cooldown_period_ms, policy.burst_limit),
            (MINUTE_MS, policy.requests_per_minute),
            (HOUR_MS, policy.requests_per_hour),
            (DAY_MS, policy.requests_per_day),
        )

    def _recent_timestamps(self, platform: Platform, now: float) -> list[float]:
        state = self._store.get(platform.value)
        if state is None:
            return []
        return [t for t in state.timestamps if t > now - DAY_MS]

    def _delay_ms(self, policy: RateLimitPolicy, timestamps: list[float], now: float) -> int:
        delay = 0.0
        for window_ms, limit in self._windows(policy):
            if window_ms <= 0 or limit <= 0:
                continue
            in_window = [t for t in timestamps if t > now - window_ms]
            if len(in_window) >= limit:
                # the request that has to age out before one more fits
                clears_at = in_window[len(in_window) - limit] + window_ms
                delay = max(delay, clears_at - now)
        return int(math.ceil(delay))

    def is_rate_limited(self, platform: PlatformLike) -> bool:
        return self.get_time_until_next_request(platform) > 0

    def get_time_until_next_request(self, platform: PlatformLike) -> int:
        policy = self.get_platform_rate_limit(platform)
        if policy is None:
            return 0
        with self._state_lock:
            now = self._clock()
            timestamps = self._recent_timestamps(policy.platform, now)
            return self._delay_ms(policy, timestamps, now)

    def _waiter_lock(self, platform: Platform) -> asyncio.Lock:
        with self._waiters_guard:
            lock = self._waiters.get(platform)
            if lock is None:
                lock = self._waiters[platform] = asyncio.Lock()
            return lock

    async def wait_for_permission(self, platform: PlatformLike) -> None:
        """
        Suspend until the platform is not rate limited, then record the request.

        There is no built-in timeout; wrap the call in asyncio.wait_for to
        impose a deadline.

        Raises:
            UnsupportedPlatformError: If the platform has no policy
        """
        p = _coerce_platform(platform)
        if p is None or p not in self._policies:
            raise UnsupportedPlatformError(f"Unsupported platform: {platform}", platform=str(platform))

        async with self._waiter_lock(p):
            while True:
                policy = self._policies[p]
                with self._state_lock:
                    now = self._clock()
                    state = self._store.get(p.value) or RateLimitState()
                    timestamps = [t for t in state.timestamps if t > now - DAY_MS]
                    delay = self._delay_ms(policy, timestamps, now)
                    if delay <= 0:
                        recorded = max(now, state.last_request_at or now)
                        timestamps.append(recorded)
                        self._store.set(p.value, RateLimitState(timestamps=timestamps, last_request_at=recorded))
                        return
                logger.debug("Rate limited, waiting: platform=%s, delay_ms=%d", p.value, delay)
                await self._sleep(delay / 1000)

    def reset_rate_limit(self, platform: PlatformLike) -> None:
        p = _coerce_platform(platform)
        if p is None:
            return
        with self._state_lock:
            self._store.delete(p.value)
        logger.info("Rate limit reset: platform=%s", p.value)

    def get_request_stats(self, platform: PlatformLike) -> RequestStats:
        p = _coerce_platform(platform)
        if p is None:
            return RequestStats(0, 0, 0, 0.0)
        with self._state_lock:
            now = self._clock()
            timestamps = self._recent_timestamps(p, now)

        intervals = [b - a for a, b in zip(timestamps, timestamps[1:])]
        return RequestStats(
            total_requests=len(timestamps),
            requests_last_hour=sum(1 for t in timestamps if t > now - HOUR_MS),
            requests_last_minute=sum(1 for t in timestamps if t > now - MINUTE_MS),
            average_interval_ms=sum(intervals) / len(intervals) if intervals else 0.0,
        )

    def retry_delay_ms(self, platform: PlatformLike, retry_after_header: Optional[str] = None) -> int:
        """
        Advise how long to back off after a collaborator reported a rate limit.

        Honours a Retry-After header (seconds) when the policy allows it,
        then exponential backoff, then the plain cooldown.
        """
        policy = self.get_platform_rate_limit(platform)
        if policy is None:
            return 0

        if policy.retry_after_header and retry_after_header:
            try:
                return int(retry_after_header) * 1000
            except ValueError:
                logger.debug("Ignoring non-numeric Retry-After: %r", retry_after_header)

        if policy.exponential_backoff:
            stats = self.get_request_stats(platform)
            multiplier = min(2 ** stats.requests_last_minute, MAX_BACKOFF_MULTIPLIER)
            return policy.cooldown_period_ms * multiplier

        return policy.cooldown_period_ms

    # ------------------------------------------------------------------
    # Policy checks
    # ------------------------------------------------------------------

    def validate_request(self, platform: PlatformLike, url: Optional[str]) -> ComplianceValidation:
        """
        Policy-level checks only; records nothing.

        A valid result carries the current wait as recommended_delay_ms when
        the platform is rate limited, since quota is its own gate.
        """
        p = _coerce_platform(platform)
        if p is None or p not in self._policies:
            return ComplianceValidation(is_valid=False, reason=f"Unsupported platform: {platform}")

        if not url or not isinstance(url, str) or not url.strip():
            return ComplianceValidation(is_valid=False, reason="Missing URL")

        try:
            parsed = urlparse(url.strip())
            host = parsed.hostname
        except ValueError:
            return ComplianceValidation(is_valid=False, reason=f"Malformed URL: {url}")

        if parsed.scheme not in ("http", "https") or not host:
            return ComplianceValidation(is_valid=False, reason=f"Malformed URL: {url}")

        if not host_allowed(p, host.lower()):
            return ComplianceValidation(
                is_valid=False,
                reason=f"Invalid URL format for platform: {p.value}",
            )

        delay_ms = self.get_time_until_next_request(p)
        return ComplianceValidation(is_valid=True, recommended_delay_ms=delay_ms or None)
