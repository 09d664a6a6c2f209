# src/app/domain/models.py
"""
Domain models for recipe extraction, compliance and import tracking.
These are pure data structures with no infrastructure dependencies.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional


class Platform(str, Enum):
    """Recipe source platforms."""
    INSTAGRAM = "instagram"
    TIKTOK = "tiktok"
    PINTEREST = "pinterest"
    FACEBOOK = "facebook"
    TWITTER = "twitter"
    YOUTUBE = "youtube"
    WHATSAPP = "whatsapp"
    EMAIL = "email"
    FOODBLOG = "foodblog"
    APPLE_NOTES = "appleNotes"
    EVERNOTE = "evernote"
    IMAGE_OCR = "imageOcr"


class ImportStatus(str, Enum):
    """Status enum for batch import jobs."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


# =============================================================================
# Compliance / rate limiting
# =============================================================================

@dataclass(frozen=True)
class RateLimitPolicy:
    """Per-platform request quotas and policy flags."""
    platform: Platform
    requests_per_minute: int
    requests_per_hour: int
    requests_per_day: int
    burst_limit: int
    cooldown_period_ms: int
    respect_robots_txt: bool = True
    retry_after_header: bool = True
    exponential_backoff: bool = True


@dataclass
class RateLimitState:
    """Recent request history for one platform (timestamps in epoch ms)."""
    timestamps: list[float] = field(default_factory=list)
    last_request_at: Optional[float] = None


@dataclass(frozen=True)
class ComplianceValidation:
    is_valid: bool
    reason: Optional[str] = None
    recommended_delay_ms: Optional[int] = None


@dataclass(frozen=True)
class ComplianceConfig:
    """Global settings handed to scrapers on every extraction."""
    user_agent: str = "RecipeVault/1.0 (https://recipe-vault.com; contact@recipe-vault.com)"
    respect_robots_txt: bool = True
    follow_redirects: bool = True
    max_redirects: int = 3
    timeout_ms: int = 30000
    retry_attempts: int = 3
    retry_delay_ms: int = 1000


@dataclass(frozen=True)
class RequestStats:
    total_requests: int
    requests_last_hour: int
    requests_last_minute: int
    average_interval_ms: float


# =============================================================================
# Recipes
# =============================================================================

@dataclass(frozen=True)
class CanonicalRecipe:
    """
    Normalized recipe record returned regardless of source platform.
    Immutable once produced by the dispatcher.
    """
    title: str
    source_url: str
    platform: Platform
    extracted_at: datetime
    ingredients: tuple[str, ...] = ()
    instructions: tuple[str, ...] = ()
    cooking_time_minutes: Optional[int] = None
    servings: Optional[int] = None
    images: tuple[str, ...] = ()
    platform_metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "ingredients", tuple(self.ingredients or ()))
        object.__setattr__(self, "instructions", tuple(self.instructions or ()))
        object.__setattr__(self, "images", tuple(self.images or ()))
        object.__setattr__(self, "platform_metadata", MappingProxyType(dict(self.platform_metadata or {})))


@dataclass(frozen=True)
class OcrResult:
    """Result of an image text recognition call."""
    text: str
    confidence: float  # 0-100
    processing_time_ms: int
    language: str


@dataclass(frozen=True)
class ImageExtraction:
    """OCR output plus the recipe parsed from it, when one was found."""
    ocr: OcrResult
    recipe: Optional[CanonicalRecipe] = None


# =============================================================================
# Social media metadata
# =============================================================================

@dataclass
class AuthorInfo:
    username: str = "unknown"
    display_name: Optional[str] = None
    profile_url: Optional[str] = None
    verified: bool = False
    followers_count: Optional[int] = None


@dataclass
class EngagementInfo:
    likes: Optional[int] = None
    comments: Optional[int] = None
    shares: Optional[int] = None
    views: Optional[int] = None
    saves: Optional[int] = None

    @property
    def total(self) -> int:
        return sum(v for v in (self.likes, self.comments, self.shares, self.views, self.saves) if v)


@dataclass
class MetadataTimestamps:
    published: str
    scraped: str
    last_updated: Optional[str] = None


@dataclass
class MediaInfo:
    images: list[str] = field(default_factory=list)
    videos: list[str] = field(default_factory=list)
    thumbnails: list[str] = field(default_factory=list)


@dataclass
class LocationInfo:
    name: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


@dataclass
class PrivacyInfo:
    is_public: bool = True
    is_private: bool = False
    is_archived: bool = False


@dataclass
class SocialMediaMetadata:
    platform: str
    content_id: str
    url: str
    author: AuthorInfo
    engagement: EngagementInfo
    timestamps: MetadataTimestamps
    media: MediaInfo = field(default_factory=MediaInfo)
    tags: list[str] = field(default_factory=list)
    platform_specific: dict[str, Any] = field(default_factory=dict)
    privacy: PrivacyInfo = field(default_factory=PrivacyInfo)
    categories: list[str] = field(default_factory=list)
    title: Optional[str] = None
    description: Optional[str] = None
    location: Optional[LocationInfo] = None
    language: Optional[str] = None
    content_quality: Optional[str] = None  # high | medium | low


@dataclass(frozen=True)
class MetadataValidation:
    is_valid: bool
    errors: list[str]
    warnings: list[str]


@dataclass(frozen=True)
class ComplianceInfo:
    """Limiter view attached to a social media extraction."""
    policy: RateLimitPolicy
    stats: RequestStats
    validation: ComplianceValidation


@dataclass(frozen=True)
class SocialMediaExtraction:
    platform: Platform
    recipe: CanonicalRecipe
    metadata: SocialMediaMetadata
    compliance: ComplianceInfo
    metadata_validation: Optional[MetadataValidation] = None


@dataclass(frozen=True)
class MetadataSummary:
    platform: str
    content_id: str
    author: str
    total_engagement: int
    content_quality: Optional[str]
    age_days: int


# =============================================================================
# Import jobs
# =============================================================================

@dataclass
class ImportSummary:
    total_recipes: int
    success_rate: int
    total_errors: int


@dataclass
class ImportJob:
    """
    Represents a batch import tracked in memory.
    Mutated in place by the background driver, polled by callers.
    """
    id: str
    status: ImportStatus
    started_at: datetime
    total_items: int = 0
    processed_items: int = 0
    success_count: int = 0
    failure_count: int = 0
    current_item_label: Optional[str] = None
    errors: list[str] = field(default_factory=list)
    completed_at: Optional[datetime] = None
    estimated_ms_remaining: Optional[int] = None
    summary: Optional[ImportSummary] = None

    @property
    def is_complete(self) -> bool:
        """Check if job has finished processing (successfully or not)."""
        return self.status in (ImportStatus.COMPLETED, ImportStatus.FAILED, ImportStatus.CANCELLED)


@dataclass(frozen=True)
class ImportItem:
    """One unit of work inside an import (a URL, a note id...)."""
    label: str
    payload: Any = None


@dataclass(frozen=True)
class NoteRecord:
    """A note fetched from a note store (Evernote / Apple Notes style)."""
    id: str
    title: str
    content: str
    notebook_id: Optional[str] = None
    tags: tuple[str, ...] = ()
    resource_ids: tuple[str, ...] = ()
    source_url: Optional[str] = None
