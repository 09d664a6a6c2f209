# src/app/infra/scrapers/base.py
"""
Abstract contracts for the external extraction collaborators.
The core only relies on these call shapes; scraping internals live elsewhere.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

from src.app.domain.models import NoteRecord, OcrResult


class PlatformScraper(ABC):
    """
    A stateful, closeable scraper for one platform.

    One instance is created per extraction and closed afterwards; instances
    are never pooled or shared.
    """

    @abstractmethod
    async def scrape_recipe(self, url: str, options: Optional[Mapping[str, Any]] = None) -> Any:
        """
        Scrape a recipe-like object from url.

        Returns:
            A platform-specific object or dict (title, ingredients, ...)

        Raises:
            Exception: With a human-readable message on failure
        """
        pass

    async def close(self) -> None:
        """Release browser/session resources. Safe to call more than once."""
        return None


class TextScraper(ABC):
    """Stateless parser for pasted text (email bodies, chat exports)."""

    @abstractmethod
    async def scrape_recipe(self, text: str, metadata: Optional[Mapping[str, Any]] = None) -> dict[str, Any]:
        pass


class ImageTextEngine(ABC):
    """Optical text recognition engine."""

    @abstractmethod
    async def extract_text(self, image_bytes: bytes, options: Mapping[str, Any]) -> OcrResult:
        """
        Recognize text in an image.

        Args:
            image_bytes: Raw image data
            options: language, confidence_threshold and preprocessing flags
        """
        pass

    @abstractmethod
    def get_supported_languages(self) -> list[str]:
        pass


class NoteStoreClient(ABC):
    """Evernote / Apple Notes style note store."""

    @abstractmethod
    async def exchange_token(self, code: str) -> str:
        """Exchange an authorization code for an access token."""
        pass

    @abstractmethod
    async def list_notes(self, notebook_id: Optional[str], max_notes: int) -> list[NoteRecord]:
        """List notes (content may be empty) from a notebook, or from all notebooks."""
        pass

    @abstractmethod
    async def get_note(self, note_id: str) -> NoteRecord:
        pass

    @abstractmethod
    async def get_resource(self, resource_id: str) -> bytes:
        pass
