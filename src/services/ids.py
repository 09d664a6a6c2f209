# src/services/ids.py
import re
from typing import Callable, Optional, Sequence, Tuple
from urllib.parse import parse_qs, unquote, urlparse

from src.app.domain.models import Platform

Rule = Callable[[str], bool]

_URL_RE = re.compile(r"^\s*https?://", re.IGNORECASE)

# "[12/01/2024, 10:15:32] Ana: ..." or "12/01/2024, 10:15 - Ana: ..."
_WHATSAPP_LINE_RE = re.compile(
    r"^\[?\d{1,2}[/.]\d{1,2}[/.]\d{2,4},?\s+\d{1,2}:\d{2}(?::\d{2})?(?:\s?[AaPp][Mm])?\]?\s*(?:-\s*)?[^:\n]{1,60}:",
    re.MULTILINE,
)
_EMAIL_FROM_RE = re.compile(r"^\s*from:\s*\S+", re.IGNORECASE | re.MULTILINE)
_EMAIL_SUBJECT_RE = re.compile(r"^\s*subject:", re.IGNORECASE | re.MULTILINE)

_FOOD_KEYWORDS_RE = re.compile(r"recipe|cook|food|meal|dish", re.IGNORECASE)

_CONTENT_ID_PATTERNS = {
    Platform.INSTAGRAM: (re.compile(r"/(?:p|reel|reels|tv)/([A-Za-z0-9_-]+)"), 1),
    Platform.TIKTOK: (re.compile(r"/(?:@[^/]+/)?video/(\d+)"), 1),
    Platform.PINTEREST: (re.compile(r"/pin/(\d+)"), 1),
    Platform.FACEBOOK: (re.compile(r"(?:posts/|fbid=|videos/)(\d+)"), 1),
    Platform.TWITTER: (re.compile(r"/status(?:es)?/(\d+)"), 1),
    Platform.YOUTUBE: (
        re.compile(r"(?:v=|youtu\.be/|/embed/|/v/|/shorts/|/live/)([A-Za-z0-9_-]{11})"),
        1,
    ),
}


def _hostname(text: str) -> Optional[str]:
    if not _URL_RE.match(text):
        return None
    try:
        host = urlparse(text.strip()).hostname
    except ValueError:
        return None
    return host.lower() if host else None


def _host_matches(host: str, domain: str) -> bool:
    return host == domain or host.endswith("." + domain)


def host_rule(*domains: str) -> Rule:
    """Match URLs whose hostname is one of domains or a sub-domain of it."""
    def _rule(text: str) -> bool:
        host = _hostname(text)
        return bool(host) and any(_host_matches(host, d) for d in domains)
    return _rule


def _pinterest_rule(text: str) -> bool:
    host = _hostname(text)
    if not host:
        return False
    if _host_matches(host, "pin.it"):
        return True
    # pinterest.com, pinterest.co.uk, br.pinterest.com ...
    return re.search(r"(?:^|\.)pinterest\.[a-z.]{2,6}$", host) is not None


def _whatsapp_text_rule(text: str) -> bool:
    return not _URL_RE.match(text) and _WHATSAPP_LINE_RE.search(text) is not None


def _email_text_rule(text: str) -> bool:
    if _URL_RE.match(text):
        return False
    return _EMAIL_FROM_RE.search(text) is not None and _EMAIL_SUBJECT_RE.search(text) is not None


def _foodblog_rule(text: str) -> bool:
    if not _hostname(text):
        return False
    parsed = urlparse(text.strip())
    return _FOOD_KEYWORDS_RE.search(f"{parsed.path}?{parsed.query}") is not None


# First match wins. The generic food blog rule must stay last.
PLATFORM_RULES: Sequence[Tuple[Rule, Platform]] = (
    (host_rule("instagram.com", "instagr.am"), Platform.INSTAGRAM),
    (host_rule("tiktok.com"), Platform.TIKTOK),
    (_pinterest_rule, Platform.PINTEREST),
    (host_rule("facebook.com", "fb.watch", "fb.com"), Platform.FACEBOOK),
    (host_rule("twitter.com", "x.com"), Platform.TWITTER),
    (host_rule("youtube.com", "youtu.be"), Platform.YOUTUBE),
    (host_rule("whatsapp.com", "wa.me"), Platform.WHATSAPP),
    (_whatsapp_text_rule, Platform.WHATSAPP),
    (_email_text_rule, Platform.EMAIL),
    (_foodblog_rule, Platform.FOODBLOG),
)


def detect_platform(text: Optional[str]) -> Optional[Platform]:
    """Return the platform for a URL or pasted text, or None when nothing matches."""
    if not text or not isinstance(text, str):
        return None
    for rule, platform in PLATFORM_RULES:
        if rule(text):
            return platform
    return None


def is_supported(text: Optional[str]) -> bool:
    return detect_platform(text) is not None


def extract_content_id(url: str, platform: Platform) -> str:
    """Platform-native id of the post/video/pin, or the URL path when unknown."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return url

    if platform == Platform.WHATSAPP:
        text = parse_qs(parsed.query).get("text")
        if text:
            return unquote(text[0])
        return parsed.path or url

    entry = _CONTENT_ID_PATTERNS.get(platform)
    if entry:
        pattern, group = entry
        m = pattern.search(url)
        if m:
            return m.group(group)
    return parsed.path or url
