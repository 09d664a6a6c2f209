# src/app/services/metadata_normalizer.py
"""
Builds, merges and validates SocialMediaMetadata from loosely shaped
scraper payloads.

Every concern (author, engagement, media ...) is read by one function
returning only the fields actually present in the payload. Creation fills
the gaps with defaults; updates overlay the present fields on the
existing record, so absent fields are never reset.
"""
from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional
from urllib.parse import urlparse

from src.app.domain.models import (
    AuthorInfo,
    EngagementInfo,
    LocationInfo,
    MediaInfo,
    MetadataSummary,
    MetadataTimestamps,
    MetadataValidation,
    PrivacyInfo,
    SocialMediaMetadata,
)
from src.services.recipe_text import clean_string

logger = logging.getLogger(__name__)

DAY_SECONDS = 24 * 60 * 60
QUALITY_TIERS = ("high", "medium", "low")

_ENGAGEMENT_ALIASES = {
    "likes": ("likes", "likeCount", "like_count", "favoriteCount", "heartCount", "diggCount"),
    "comments": ("comments", "commentCount", "comment_count", "replyCount"),
    "shares": ("shares", "shareCount", "repost_count", "retweetCount", "repostCount"),
    "views": ("views", "viewCount", "view_count", "playCount"),
    "saves": ("saves", "saveCount", "bookmarkCount", "repinCount"),
}
_PUBLISHED_KEYS = ("publishedAt", "published", "createdAt", "created_at", "datePublished", "timestamp", "postedAt")
_PLATFORM_SPECIFIC_SUFFIXES = ("_id", "_url", "_type", "_format", "Id", "Url", "Type", "Format", "Duration")


@dataclass
class MetadataPreservationConfig:
    preserve_author: bool = True
    preserve_engagement: bool = True
    preserve_location: bool = True
    preserve_platform_specific: bool = True
    max_metadata_age_days: int = 30


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        # seconds or milliseconds since the epoch
        seconds = value / 1000 if value > 10**11 else value
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _count(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        text = value.strip().replace(",", "").upper()
        multiplier = 1
        if text.endswith(("K", "M")):
            multiplier = 1_000 if text[-1] == "K" else 1_000_000
            text = text[:-1]
        try:
            return int(float(text) * multiplier)
        except ValueError:
            return None
    return None


def _first(payload: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = payload.get(key)
        if value not in (None, "", [], {}):
            return value
    return None


def _str_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, (list, tuple)):
        out = []
        for item in value:
            text = clean_string(item.get("url")) if isinstance(item, Mapping) else clean_string(item)
            if text:
                out.append(text)
        return out
    return []


# ----------------------------------------------------------------------
# Partial readers: each returns only the fields present in payload
# ----------------------------------------------------------------------

def _author_fields(payload: Mapping[str, Any]) -> dict[str, Any]:
    author = payload.get("author") or payload.get("user") or payload.get("owner")
    fields: dict[str, Any] = {}
    if isinstance(author, str):
        author = {"username": author}
    if isinstance(author, Mapping):
        username = clean_string(author.get("username")) or clean_string(author.get("handle")) or clean_string(author.get("id"))
        if username:
            fields["username"] = username
        display = clean_string(author.get("displayName")) or clean_string(author.get("display_name")) or clean_string(author.get("name"))
        if display:
            fields["display_name"] = display
        profile = clean_string(author.get("profileUrl")) or clean_string(author.get("profile_url")) or clean_string(author.get("url"))
        if profile:
            fields["profile_url"] = profile
        if isinstance(author.get("verified"), bool):
            fields["verified"] = author["verified"]
        followers = _count(author.get("followersCount", author.get("followers_count")))
        if followers is not None:
            fields["followers_count"] = followers
    elif clean_string(payload.get("username")):
        fields["username"] = clean_string(payload.get("username"))
    return fields


def _engagement_fields(payload: Mapping[str, Any]) -> dict[str, Any]:
    source = payload.get("engagement") if isinstance(payload.get("engagement"), Mapping) else payload
    fields: dict[str, Any] = {}
    for name, aliases in _ENGAGEMENT_ALIASES.items():
        value = _count(_first(source, aliases))
        if value is not None:
            fields[name] = value
    return fields


def _media_fields(payload: Mapping[str, Any]) -> dict[str, Any]:
    nested = payload.get("media") if isinstance(payload.get("media"), Mapping) else {}
    fields: dict[str, Any] = {}
    images = _str_list(_first(nested, ("images",)) or _first(payload, ("images", "imageUrls", "image")))
    videos = _str_list(_first(nested, ("videos",)) or _first(payload, ("videos", "videoUrls", "videoUrl")))
    thumbnails = _str_list(
        _first(nested, ("thumbnails",)) or _first(payload, ("thumbnails", "thumbnailUrls", "thumbnailUrl", "thumbnail"))
    )
    if images:
        fields["images"] = images
    if videos:
        fields["videos"] = videos
    if thumbnails:
        fields["thumbnails"] = thumbnails
    return fields


def _location_fields(payload: Mapping[str, Any]) -> dict[str, Any]:
    location = payload.get("location")
    fields: dict[str, Any] = {}
    if isinstance(location, str):
        location = {"name": location}
    if isinstance(location, Mapping):
        if clean_string(location.get("name")):
            fields["name"] = clean_string(location.get("name"))
        coords = location.get("coordinates") if isinstance(location.get("coordinates"), Mapping) else location
        for key, aliases in (("latitude", ("latitude", "lat")), ("longitude", ("longitude", "lng", "lon"))):
            value = _first(coords, aliases)
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                fields[key] = float(value)
    elif clean_string(payload.get("locationName")):
        fields["name"] = clean_string(payload.get("locationName"))
    return fields


def _privacy_fields(payload: Mapping[str, Any]) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    for name, aliases in (
        ("is_public", ("isPublic", "is_public")),
        ("is_private", ("isPrivate", "is_private")),
        ("is_archived", ("isArchived", "is_archived")),
    ):
        for alias in aliases:
            if isinstance(payload.get(alias), bool):
                fields[name] = payload[alias]
                break
    if fields.get("is_private") and "is_public" not in fields:
        fields["is_public"] = False
    return fields


def _platform_specific_fields(payload: Mapping[str, Any]) -> dict[str, Any]:
    fields = {}
    for key, value in payload.items():
        if value is None:
            continue
        if key.startswith("platform_") or key.endswith(_PLATFORM_SPECIFIC_SUFFIXES):
            fields[key] = value
    nested = payload.get("platformSpecific") or payload.get("platform_specific")
    if isinstance(nested, Mapping):
        fields.update(nested)
    return fields


def _scalar_fields(payload: Mapping[str, Any]) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    title = clean_string(_first(payload, ("title", "name")))
    if title:
        fields["title"] = title
    description = clean_string(_first(payload, ("description", "caption", "content", "text")))
    if description:
        fields["description"] = description
    tags = _str_list(_first(payload, ("tags", "hashtags", "keywords")))
    if tags:
        fields["tags"] = [t.lstrip("#") for t in tags]
    categories = _str_list(_first(payload, ("categories", "category")))
    if categories:
        fields["categories"] = categories
    language = clean_string(_first(payload, ("language", "lang", "inLanguage")))
    if language:
        fields["language"] = language
    quality = clean_string(_first(payload, ("contentQuality", "content_quality", "quality")))
    if quality and quality.lower() in QUALITY_TIERS:
        fields["content_quality"] = quality.lower()
    return fields


def _published_field(payload: Mapping[str, Any]) -> Optional[str]:
    value = _first(payload, _PUBLISHED_KEYS)
    if value is None:
        return None
    parsed = _parse_timestamp(value)
    # unparseable values are kept verbatim so validation can report them
    return parsed.isoformat() if parsed else str(value)


class MetadataNormalizer:
    """Creates, updates, validates and summarizes SocialMediaMetadata."""

    def __init__(
        self,
        config: Optional[MetadataPreservationConfig] = None,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.config = config or MetadataPreservationConfig()
        self._now = now

    def create_metadata(
        self,
        platform: str,
        content_id: str,
        url: str,
        raw_payload: Optional[Mapping[str, Any]] = None,
    ) -> SocialMediaMetadata:
        payload = dict(raw_payload or {})
        scraped = self._now().isoformat()

        location_fields = _location_fields(payload) if self.config.preserve_location else {}
        metadata = SocialMediaMetadata(
            platform=platform,
            content_id=content_id,
            url=url,
            author=AuthorInfo(**(_author_fields(payload) if self.config.preserve_author else {})),
            engagement=EngagementInfo(**(_engagement_fields(payload) if self.config.preserve_engagement else {})),
            timestamps=MetadataTimestamps(published=_published_field(payload) or scraped, scraped=scraped),
            media=MediaInfo(**_media_fields(payload)),
            privacy=PrivacyInfo(**_privacy_fields(payload)),
            platform_specific=_platform_specific_fields(payload) if self.config.preserve_platform_specific else {},
            location=LocationInfo(**location_fields) if location_fields else None,
            **_scalar_fields(payload),
        )
        logger.debug("Metadata created: platform=%s, content_id=%s", platform, content_id)
        return metadata

    def update_metadata(
        self,
        existing: SocialMediaMetadata,
        raw_payload: Optional[Mapping[str, Any]] = None,
    ) -> SocialMediaMetadata:
        """
        Merge a fresh scrape into existing metadata.

        Fields present in raw_payload win; absent fields keep their existing
        values. Identity (platform, content_id, url) and scraped time never
        change; timestamps.last_updated is always set.
        """
        payload = dict(raw_payload or {})

        author = dataclasses.replace(existing.author, **_author_fields(payload))
        engagement = dataclasses.replace(existing.engagement, **_engagement_fields(payload))
        media = dataclasses.replace(existing.media, **_media_fields(payload))
        privacy = dataclasses.replace(existing.privacy, **_privacy_fields(payload))

        location_fields = _location_fields(payload)
        location = existing.location
        if location_fields:
            location = dataclasses.replace(location or LocationInfo(), **location_fields)

        timestamps = dataclasses.replace(
            existing.timestamps,
            published=_published_field(payload) or existing.timestamps.published,
            last_updated=self._now().isoformat(),
        )

        return dataclasses.replace(
            existing,
            author=author,
            engagement=engagement,
            media=media,
            privacy=privacy,
            location=location,
            timestamps=timestamps,
            platform_specific={**existing.platform_specific, **_platform_specific_fields(payload)},
            **_scalar_fields(payload),
        )

    def validate_metadata(self, metadata: SocialMediaMetadata) -> MetadataValidation:
        errors: list[str] = []
        warnings: list[str] = []

        if not metadata.platform:
            errors.append("Platform is required")
        if not metadata.content_id:
            errors.append("Content ID is required")
        if not metadata.url:
            errors.append("URL is required")
        else:
            parsed = urlparse(metadata.url)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                errors.append("Invalid URL format")

        for name in ("published", "scraped", "last_updated"):
            value = getattr(metadata.timestamps, name)
            if value is not None and _parse_timestamp(value) is None:
                errors.append(f"Invalid {name} timestamp")

        for name in ("likes", "comments", "shares", "views", "saves"):
            value = getattr(metadata.engagement, name)
            if value is not None and value < 0:
                errors.append(f"Negative engagement count: {name}")

        if metadata.location is not None:
            lat, lng = metadata.location.latitude, metadata.location.longitude
            if lat is not None and not -90 <= lat <= 90:
                errors.append("Latitude out of range")
            if lng is not None and not -180 <= lng <= 180:
                errors.append("Longitude out of range")

        if not metadata.author.username or metadata.author.username == "unknown":
            warnings.append("No author information")
        if not metadata.title and not metadata.description:
            warnings.append("No title or description")
        if not metadata.media.images and not metadata.media.videos:
            warnings.append("No media content found")
        if not metadata.tags:
            warnings.append("No tags provided")

        return MetadataValidation(is_valid=not errors, errors=errors, warnings=warnings)

    def _age_days(self, metadata: SocialMediaMetadata) -> float:
        scraped = _parse_timestamp(metadata.timestamps.scraped)
        if scraped is None:
            return 0.0
        return (self._now() - scraped).total_seconds() / DAY_SECONDS

    def is_metadata_expired(self, metadata: SocialMediaMetadata) -> bool:
        return self._age_days(metadata) > self.config.max_metadata_age_days

    def get_metadata_summary(self, metadata: SocialMediaMetadata) -> MetadataSummary:
        return MetadataSummary(
            platform=metadata.platform,
            content_id=metadata.content_id,
            author=metadata.author.username,
            total_engagement=metadata.engagement.total,
            content_quality=metadata.content_quality or "unknown",
            age_days=round(self._age_days(metadata)),
        )

    def update_config(self, **changes) -> MetadataPreservationConfig:
        self.config = dataclasses.replace(self.config, **changes)
        return self.config
