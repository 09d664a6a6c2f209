from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

import yt_dlp
from starlette.concurrency import run_in_threadpool
from youtube_transcript_api import (
    NoTranscriptFound,
    TranscriptsDisabled,
    YouTubeTranscriptApi,
)

from src.app.domain.models import Platform
from src.app.infra.scrapers.base import PlatformScraper
from src.services.errors import (
    FetchFailedError,
    InvalidURLError,
    LoginRequiredError,
    NetworkTimeoutError,
    PrivateOrUnavailableError,
)
from src.services.ids import detect_platform
from src.services.recipe_text import clean_string, parse_recipe_text

logger = logging.getLogger(__name__)

YOUTUBE_VIDEO_ID_PATTERN = re.compile(r"(?:v=|youtu\.be/|shorts/)([A-Za-z0-9_-]{11})")
PRIORITY_LANGUAGES = ("en", "pt-BR", "pt")

VIDEO_PLATFORMS = frozenset({
    Platform.INSTAGRAM,
    Platform.TIKTOK,
    Platform.PINTEREST,
    Platform.FACEBOOK,
    Platform.TWITTER,
    Platform.YOUTUBE,
})


def _safe_numeric(value: object, default: int | float = 0) -> int | float:
    return value if isinstance(value, (int, float)) else default


def _optional_int(value: object) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


def _extract_thumbnail(info: dict | None) -> str | None:
    if not isinstance(info, dict):
        return None

    direct_url = clean_string(info.get("thumbnail")) or clean_string(info.get("thumbnail_url"))
    if direct_url:
        return direct_url

    return _find_best_thumbnail_from_list(info.get("thumbnails"))


def _find_best_thumbnail_from_list(thumbnails: list | None) -> str | None:
    if not isinstance(thumbnails, list):
        return None

    scored_thumbnails = [
        (_score_thumbnail(entry), clean_string(entry.get("url")))
        for entry in thumbnails
        if isinstance(entry, dict) and clean_string(entry.get("url"))
    ]

    if not scored_thumbnails:
        return None

    scored_thumbnails.sort(reverse=True, key=lambda x: x[0])
    return scored_thumbnails[0][1]


def _score_thumbnail(entry: dict) -> tuple[int | float, int | float, int | float]:
    return (
        _safe_numeric(entry.get("preference")),
        _safe_numeric(entry.get("width")),
        _safe_numeric(entry.get("height")),
    )


def _create_ydl_options(options: Mapping[str, Any]) -> dict:
    ydl_opts: dict[str, Any] = {
        "quiet": True,
        "noprogress": True,
        "check_formats": False,
        "skip_download": True,
        "extractor_args": {"youtube": {"player_client": ["android"]}},
    }

    user_agent = options.get("user_agent")
    if user_agent:
        ydl_opts["http_headers"] = {"User-Agent": user_agent}
    timeout_ms = options.get("timeout_ms")
    if timeout_ms:
        ydl_opts["socket_timeout"] = timeout_ms / 1000
    return ydl_opts


def _check_video_availability(info: dict) -> None:
    is_private = info.get("is_private")
    availability = info.get("availability")
    if is_private or availability in {"private", "needs_auth"}:
        raise PrivateOrUnavailableError("Post is private or unavailable")


def _translate_download_error(error: Exception, platform: Platform) -> Exception:
    """yt-dlp reports everything as DownloadError; keep the text classifiable."""
    text = str(error)
    lowered = text.lower()
    if "private" in lowered or "unavailable" in lowered or "404" in lowered or "not found" in lowered:
        return PrivateOrUnavailableError(f"Post is private or unavailable: {text}")
    if "login" in lowered or "sign in" in lowered or "cookies" in lowered:
        return LoginRequiredError(f"Login required by {platform.value}: {text}")
    if "429" in lowered or "too many requests" in lowered:
        return FetchFailedError(f"Rate limit reported by {platform.value}: {text}")
    return FetchFailedError(f"Video download failed: {text}")


def _published_at(info: dict) -> str | None:
    timestamp = info.get("timestamp")
    if isinstance(timestamp, (int, float)):
        return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()
    upload_date = clean_string(info.get("upload_date"))
    if upload_date and len(upload_date) == 8 and upload_date.isdigit():
        return datetime.strptime(upload_date, "%Y%m%d").replace(tzinfo=timezone.utc).isoformat()
    return None


def _extract_video_id(url: str) -> str | None:
    match = YOUTUBE_VIDEO_ID_PATTERN.search(url)
    return match.group(1) if match else None


def _fetch_transcript_data(video_id: str) -> list[dict] | None:
    try:
        return YouTubeTranscriptApi.get_transcript(video_id, languages=list(PRIORITY_LANGUAGES))
    except AttributeError:
        return _fetch_transcript_via_instance(video_id)
    except (TranscriptsDisabled, NoTranscriptFound):
        return None
    except (ConnectionError, TimeoutError) as error:
        logger.warning("Network error fetching transcript: %s", error)
        return None


def _fetch_transcript_via_instance(video_id: str) -> list[dict] | None:
    try:
        transcript_list = YouTubeTranscriptApi().fetch(video_id, languages=list(PRIORITY_LANGUAGES))
        return transcript_list.to_raw_data() if hasattr(transcript_list, "to_raw_data") else None
    except (TranscriptsDisabled, NoTranscriptFound):
        return None
    except (ConnectionError, TimeoutError) as error:
        logger.warning("Network error fetching transcript: %s", error)
        return None


def get_youtube_transcript(url: str) -> str | None:
    video_id = _extract_video_id(url)
    if not video_id:
        return None

    data = _fetch_transcript_data(video_id)
    if not data:
        return None

    text_parts = [
        item.get("text", "").strip()
        for item in data
        if item.get("text")
    ]

    full_text = " ".join(text_parts).strip()
    return full_text or None


def _author_payload(info: dict) -> dict[str, Any]:
    username = (
        clean_string(info.get("uploader_id"))
        or clean_string(info.get("channel_id"))
        or clean_string(info.get("uploader"))
    )
    return {
        "username": (username or "unknown").lstrip("@"),
        "displayName": clean_string(info.get("uploader")) or clean_string(info.get("channel")),
        "profileUrl": clean_string(info.get("uploader_url")) or clean_string(info.get("channel_url")),
        "verified": bool(info.get("channel_is_verified")),
        "followersCount": _optional_int(info.get("channel_follower_count")),
    }


class VideoPostScraper(PlatformScraper):
    """
    Scraper for video/social posts backed by yt-dlp metadata.

    The recipe is read from the post caption; YouTube videos without a
    structured description fall back to the spoken transcript.
    """

    def __init__(self, platform: Platform, transcript_fallback: bool = True):
        if platform not in VIDEO_PLATFORMS:
            raise ValueError(f"VideoPostScraper does not handle {platform.value}")
        self.platform = platform
        self.transcript_fallback = transcript_fallback
        self._closed = False

    async def scrape_recipe(self, url: str, options: Optional[Mapping[str, Any]] = None) -> dict[str, Any]:
        if self._closed:
            raise FetchFailedError("Scraper already closed")
        return await run_in_threadpool(self._scrape, url, dict(options or {}))

    async def close(self) -> None:
        self._closed = True

    def _scrape(self, url: str, options: dict[str, Any]) -> dict[str, Any]:
        if detect_platform(url) != self.platform:
            raise InvalidURLError(f"Invalid URL for {self.platform.value}: {url}")

        try:
            with yt_dlp.YoutubeDL(_create_ydl_options(options)) as ydl:
                info = ydl.extract_info(url, download=False)
        except yt_dlp.utils.DownloadError as error:
            raise _translate_download_error(error, self.platform) from error
        except TimeoutError as error:
            raise NetworkTimeoutError(url, (options.get("timeout_ms") or 0) / 1000) from error
        except ConnectionError as error:
            raise FetchFailedError(f"Connection failed fetching post: {error}") from error

        if not info:
            raise PrivateOrUnavailableError("Post is private or unavailable")
        _check_video_availability(info)

        return self._build_payload(url, info)

    def _build_payload(self, url: str, info: dict) -> dict[str, Any]:
        title = clean_string(info.get("title"))
        description = clean_string(info.get("description"))
        parsed = parse_recipe_text(description, fallback_title=title)

        transcript = None
        if parsed.is_empty and self.transcript_fallback and self.platform == Platform.YOUTUBE:
            transcript = get_youtube_transcript(url)
            if transcript:
                logger.info("Using transcript fallback: url=%s, chars=%d", url, len(transcript))

        instructions = parsed.instructions or ([transcript] if transcript else [])
        thumbnail = _extract_thumbnail(info)
        tags = list(dict.fromkeys(list(info.get("tags") or []) + parsed.tags))

        return {
            "title": parsed.title or title,
            "description": description,
            "ingredients": parsed.ingredients,
            "instructions": instructions,
            "cookingTime": parsed.cooking_time,
            "servings": parsed.servings,
            "thumbnailUrl": thumbnail,
            "author": _author_payload(info),
            "likes": _optional_int(info.get("like_count")),
            "comments": _optional_int(info.get("comment_count")),
            "shares": _optional_int(info.get("repost_count")),
            "views": _optional_int(info.get("view_count")),
            "publishedAt": _published_at(info),
            "tags": tags,
            "categories": list(info.get("categories") or []),
            "language": clean_string(info.get("language")),
            "videoUrls": [clean_string(info.get("webpage_url")) or url],
            "videoDuration": _optional_int(info.get("duration")),
            "platform_extractor": clean_string(info.get("extractor_key")),
            "transcriptUsed": transcript is not None,
        }
