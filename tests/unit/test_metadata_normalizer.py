from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from src.app.services.metadata_normalizer import MetadataNormalizer, MetadataPreservationConfig

T0 = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
URL = "https://www.instagram.com/p/abc123/"


class Clock:
    def __init__(self) -> None:
        self.now = T0

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def normalizer(clock: Clock) -> MetadataNormalizer:
    return MetadataNormalizer(now=clock)


def rich_payload() -> dict:
    return {
        "author": {
            "username": "chef",
            "displayName": "The Chef",
            "verified": True,
            "followersCount": "12.5K",
        },
        "likes": "3K",
        "commentCount": 30,
        "title": "Pasta night",
        "tags": ["#pasta", "dinner"],
        "images": ["https://cdn.example.com/pasta.jpg"],
        "publishedAt": "2024-01-01T10:00:00Z",
        "media_type": "reel",
        "isPrivate": True,
        "contentQuality": "High",
    }


class TestCreateMetadata:
    def test_reads_every_concern(self, normalizer: MetadataNormalizer) -> None:
        metadata = normalizer.create_metadata("instagram", "abc123", URL, rich_payload())

        assert metadata.author.username == "chef"
        assert metadata.author.display_name == "The Chef"
        assert metadata.author.verified is True
        assert metadata.author.followers_count == 12_500
        assert metadata.engagement.likes == 3_000
        assert metadata.engagement.comments == 30
        assert metadata.engagement.total == 3_030
        assert metadata.title == "Pasta night"
        assert metadata.tags == ["pasta", "dinner"]
        assert metadata.media.images == ["https://cdn.example.com/pasta.jpg"]
        assert metadata.timestamps.published == "2024-01-01T10:00:00+00:00"
        assert metadata.timestamps.scraped == T0.isoformat()
        assert metadata.timestamps.last_updated is None
        assert metadata.platform_specific == {"media_type": "reel"}
        assert metadata.privacy.is_private is True
        assert metadata.privacy.is_public is False
        assert metadata.content_quality == "high"
        assert metadata.location is None

    def test_defaults_for_empty_payload(self, normalizer: MetadataNormalizer) -> None:
        metadata = normalizer.create_metadata("tiktok", "123", "https://www.tiktok.com/@a/video/123")
        assert metadata.author.username == "unknown"
        assert metadata.engagement.total == 0
        assert metadata.timestamps.published == T0.isoformat()
        assert metadata.privacy.is_public is True

    def test_epoch_milliseconds(self, normalizer: MetadataNormalizer) -> None:
        metadata = normalizer.create_metadata("twitter", "1", "https://x.com/a/status/1", {"timestamp": 1_700_000_000_000})
        assert metadata.timestamps.published == datetime.fromtimestamp(1_700_000_000, tz=timezone.utc).isoformat()

    def test_preservation_config_drops_author(self, clock: Clock) -> None:
        normalizer = MetadataNormalizer(MetadataPreservationConfig(preserve_author=False), now=clock)
        metadata = normalizer.create_metadata("instagram", "abc123", URL, rich_payload())
        assert metadata.author.username == "unknown"
        assert metadata.engagement.likes == 3_000


class TestValidateMetadata:
    def test_valid_with_identity_fields(self, normalizer: MetadataNormalizer) -> None:
        metadata = normalizer.create_metadata("instagram", "abc123", URL, rich_payload())
        validation = normalizer.validate_metadata(metadata)
        assert validation.is_valid
        assert validation.errors == []
        assert validation.warnings == []

    def test_missing_identity(self, normalizer: MetadataNormalizer) -> None:
        metadata = normalizer.create_metadata("instagram", "", "not-a-url")
        validation = normalizer.validate_metadata(metadata)
        assert not validation.is_valid
        assert "Content ID is required" in validation.errors
        assert "Invalid URL format" in validation.errors

    def test_missing_url(self, normalizer: MetadataNormalizer) -> None:
        validation = normalizer.validate_metadata(normalizer.create_metadata("instagram", "abc", ""))
        assert validation.errors == ["URL is required"]

    def test_warnings_for_sparse_metadata(self, normalizer: MetadataNormalizer) -> None:
        validation = normalizer.validate_metadata(normalizer.create_metadata("instagram", "abc123", URL))
        assert validation.is_valid
        assert validation.warnings == [
            "No author information",
            "No title or description",
            "No media content found",
            "No tags provided",
        ]

    def test_negative_engagement(self, normalizer: MetadataNormalizer) -> None:
        metadata = normalizer.create_metadata("instagram", "abc123", URL, {"likes": -1})
        assert "Negative engagement count: likes" in normalizer.validate_metadata(metadata).errors

    def test_coordinates_out_of_range(self, normalizer: MetadataNormalizer) -> None:
        metadata = normalizer.create_metadata(
            "instagram", "abc123", URL, {"location": {"name": "Rome", "lat": 95, "lng": 12.5}}
        )
        assert metadata.location.name == "Rome"
        assert normalizer.validate_metadata(metadata).errors == ["Latitude out of range"]

    def test_unparseable_published_is_reported(self, normalizer: MetadataNormalizer) -> None:
        metadata = normalizer.create_metadata("instagram", "abc123", URL, {"publishedAt": "yesterday"})
        assert metadata.timestamps.published == "yesterday"
        assert "Invalid published timestamp" in normalizer.validate_metadata(metadata).errors


class TestUpdateMetadata:
    def test_present_fields_win_and_absent_fields_survive(self, normalizer: MetadataNormalizer, clock: Clock) -> None:
        existing = normalizer.create_metadata("instagram", "abc123", URL, rich_payload())
        clock.now = T0 + timedelta(hours=2)

        updated = normalizer.update_metadata(
            existing, {"commentCount": 45, "platformSpecific": {"audio": "original"}}
        )

        assert updated.engagement.comments == 45
        assert updated.engagement.likes == 3_000
        assert updated.title == "Pasta night"
        assert updated.author.username == "chef"
        assert updated.platform_specific == {"media_type": "reel", "audio": "original"}
        assert updated.content_id == "abc123"
        assert updated.url == URL
        assert updated.timestamps.scraped == T0.isoformat()
        assert updated.timestamps.last_updated == clock.now.isoformat()
        assert existing.engagement.comments == 30

    def test_location_added_later(self, normalizer: MetadataNormalizer) -> None:
        existing = normalizer.create_metadata("instagram", "abc123", URL)
        updated = normalizer.update_metadata(existing, {"location": "Lisbon"})
        assert updated.location.name == "Lisbon"
        assert existing.location is None


class TestExpiryAndSummary:
    def test_expiry_follows_max_age(self, normalizer: MetadataNormalizer, clock: Clock) -> None:
        metadata = normalizer.create_metadata("instagram", "abc123", URL)
        clock.now = T0 + timedelta(days=29)
        assert not normalizer.is_metadata_expired(metadata)
        clock.now = T0 + timedelta(days=31)
        assert normalizer.is_metadata_expired(metadata)

        normalizer.update_config(max_metadata_age_days=60)
        assert not normalizer.is_metadata_expired(metadata)

    def test_summary(self, normalizer: MetadataNormalizer, clock: Clock) -> None:
        metadata = normalizer.create_metadata("instagram", "abc123", URL, rich_payload())
        clock.now = T0 + timedelta(days=3)
        summary = normalizer.get_metadata_summary(metadata)
        assert summary.author == "chef"
        assert summary.total_engagement == 3_030
        assert summary.content_quality == "high"
        assert summary.age_days == 3

    def test_summary_quality_defaults_to_unknown(self, normalizer: MetadataNormalizer) -> None:
        metadata = normalizer.create_metadata("instagram", "abc123", URL)
        assert normalizer.get_metadata_summary(metadata).content_quality == "unknown"
