from __future__ import annotations

import asyncio

import pytest
from PIL import Image

from src.app.domain.errors import ExtractionErrorKind
from src.app.domain.models import Platform
from src.app.services.error_classifier import classify_failure
from src.services import fetcher
from src.services.errors import (
    FetchFailedError,
    InvalidURLError,
    LoginRequiredError,
    NetworkTimeoutError,
    PrivateOrUnavailableError,
    ScraperError,
)
from src.services.fetcher import (
    VideoPostScraper,
    _extract_thumbnail,
    _extract_video_id,
    _published_at,
    _translate_download_error,
)
from src.services.ocr import MAX_OCR_WIDTH, TesseractEngine, _clean_text, _preprocess


class FailingYoutubeDL:
    def __init__(self, error: Exception) -> None:
        self.error = error

    def __call__(self, options: dict) -> "FailingYoutubeDL":
        return self

    def __enter__(self) -> "FailingYoutubeDL":
        return self

    def __exit__(self, *exc_info) -> None:
        return None

    def extract_info(self, url: str, download: bool = False) -> dict:
        raise self.error


TIKTOK_INFO = {
    "title": "Garlic noodles",
    "description": "Garlic noodles\nIngredients:\n200 g noodles\n4 cloves garlic\nSteps:\n1. Boil\n2. Toss #noodles",
    "uploader": "Noodle Chef",
    "uploader_id": "@noodlechef",
    "channel_follower_count": 1200,
    "like_count": 950,
    "comment_count": 12,
    "view_count": 30_000,
    "timestamp": 1_700_000_000,
    "tags": ["pasta"],
    "duration": 58,
    "webpage_url": "https://www.tiktok.com/@noodlechef/video/7234567890",
    "extractor_key": "TikTok",
    "thumbnails": [
        {"url": "https://cdn.example.com/small.jpg", "width": 100, "height": 100},
        {"url": "https://cdn.example.com/large.jpg", "width": 720, "height": 1280},
    ],
}


class TestVideoPostScraper:
    def test_payload_from_caption(self) -> None:
        scraper = VideoPostScraper(Platform.TIKTOK)
        payload = scraper._build_payload(TIKTOK_INFO["webpage_url"], TIKTOK_INFO)

        assert payload["title"] == "Garlic noodles"
        assert payload["ingredients"] == ["200 g noodles", "4 cloves garlic"]
        assert payload["instructions"] == ["Boil", "Toss #noodles"]
        assert payload["author"]["username"] == "noodlechef"
        assert payload["author"]["followersCount"] == 1200
        assert payload["likes"] == 950
        assert payload["views"] == 30_000
        assert payload["tags"] == ["pasta", "noodles"]
        assert payload["thumbnailUrl"] == "https://cdn.example.com/large.jpg"
        assert payload["videoDuration"] == 58
        assert payload["transcriptUsed"] is False

    def test_rejects_other_platforms_urls(self) -> None:
        scraper = VideoPostScraper(Platform.INSTAGRAM)
        with pytest.raises(InvalidURLError):
            asyncio.run(scraper.scrape_recipe("https://www.tiktok.com/@a/video/1"))

    def test_closed_scraper(self) -> None:
        scraper = VideoPostScraper(Platform.TIKTOK)
        asyncio.run(scraper.close())
        with pytest.raises(FetchFailedError):
            asyncio.run(scraper.scrape_recipe("https://www.tiktok.com/@a/video/1"))

    def test_only_video_platforms(self) -> None:
        with pytest.raises(ValueError):
            VideoPostScraper(Platform.EMAIL)

    @pytest.mark.parametrize(
        ("message", "error"),
        [
            ("ERROR: This video is private", PrivateOrUnavailableError),
            ("HTTP Error 404: Not Found", PrivateOrUnavailableError),
            ("Use --cookies for the authentication", LoginRequiredError),
            ("HTTP Error 429: Too Many Requests", FetchFailedError),
            ("Unsupported codec", FetchFailedError),
        ],
    )
    def test_download_errors(self, message: str, error: type) -> None:
        assert isinstance(_translate_download_error(Exception(message), Platform.TIKTOK), error)

    def test_rate_limit_text_survives_translation(self) -> None:
        translated = _translate_download_error(Exception("HTTP Error 429"), Platform.TIKTOK)
        assert str(translated).startswith("Rate limit reported by tiktok")

    def test_socket_timeout_is_a_network_timeout(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(fetcher.yt_dlp, "YoutubeDL", FailingYoutubeDL(TimeoutError("read timed out")))
        scraper = VideoPostScraper(Platform.TIKTOK)

        with pytest.raises(NetworkTimeoutError) as excinfo:
            asyncio.run(scraper.scrape_recipe("https://www.tiktok.com/@a/video/1", {"timeout_ms": 5000}))

        assert excinfo.value.timeout_seconds == 5.0
        assert classify_failure(excinfo.value).kind == ExtractionErrorKind.TIMEOUT

    def test_refused_connection_is_not_a_timeout(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(fetcher.yt_dlp, "YoutubeDL", FailingYoutubeDL(ConnectionRefusedError("Connection refused")))
        scraper = VideoPostScraper(Platform.TIKTOK)

        with pytest.raises(FetchFailedError) as excinfo:
            asyncio.run(scraper.scrape_recipe("https://www.tiktok.com/@a/video/1"))

        assert "timed out" not in str(excinfo.value)
        assert classify_failure(excinfo.value).kind == ExtractionErrorKind.UNKNOWN

    def test_published_at(self) -> None:
        assert _published_at({"upload_date": "20240131"}) == "2024-01-31T00:00:00+00:00"
        assert _published_at({"timestamp": 0}) == "1970-01-01T00:00:00+00:00"
        assert _published_at({}) is None

    def test_thumbnail_prefers_direct_url(self) -> None:
        assert _extract_thumbnail({"thumbnail": "https://cdn.example.com/t.jpg", "thumbnails": []}) == "https://cdn.example.com/t.jpg"
        assert _extract_thumbnail(None) is None

    def test_youtube_video_id(self) -> None:
        assert _extract_video_id("https://www.youtube.com/shorts/dQw4w9WgXcQ") == "dQw4w9WgXcQ"
        assert _extract_video_id("https://example.com") is None


class TestTesseractEngine:
    def test_unreadable_image(self) -> None:
        with pytest.raises(ScraperError, match="Invalid image data"):
            asyncio.run(TesseractEngine().extract_text(b"not an image", {"language": "eng"}))

    def test_preprocess_grayscale_and_resize(self) -> None:
        image = Image.new("RGB", (MAX_OCR_WIDTH * 2, 100), color="white")
        prepared = _preprocess(image, {"resize": True, "denoise": True, "enhance": True})
        assert prepared.mode == "L"
        assert prepared.size == (MAX_OCR_WIDTH, 50)

    def test_preprocess_keeps_size_without_resize(self) -> None:
        image = Image.new("RGB", (MAX_OCR_WIDTH * 2, 100))
        assert _preprocess(image, {}).size == (MAX_OCR_WIDTH * 2, 100)

    def test_clean_text(self) -> None:
        assert _clean_text("  Toast \n\n 2 slices \n") == "Toast\n2 slices"
