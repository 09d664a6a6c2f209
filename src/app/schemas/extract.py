from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


# =============================================================================
# Requests
# =============================================================================

class ExtractUrlRequest(BaseModel):
    url: str
    platform: Optional[str] = None
    options: Optional[dict[str, Any]] = None


class EmailExtractRequest(BaseModel):
    emailContent: str
    metadata: Optional[dict[str, Any]] = None


class WhatsAppExtractRequest(BaseModel):
    messageContent: str
    metadata: Optional[dict[str, Any]] = None


class ImportRequest(BaseModel):
    source: Literal["urls", "notes", "apple_notes"] = "urls"
    urls: list[str] = Field(default_factory=list)
    notebookId: Optional[str] = None
    maxNotes: int = Field(default=100, ge=1, le=1000)
    exportContent: Optional[str] = Field(None, description="Apple Notes export, HTML or plain text")
    folder: Optional[str] = None


class ComplianceConfigUpdate(BaseModel):
    userAgent: Optional[str] = None
    respectRobotsTxt: Optional[bool] = None
    followRedirects: Optional[bool] = None
    maxRedirects: Optional[int] = Field(default=None, ge=0)
    timeoutMs: Optional[int] = Field(default=None, gt=0)
    retryAttempts: Optional[int] = Field(default=None, ge=0)
    retryDelayMs: Optional[int] = Field(default=None, ge=0)


class PolicyUpdate(BaseModel):
    requestsPerMinute: Optional[int] = Field(default=None, ge=1)
    requestsPerHour: Optional[int] = Field(default=None, ge=1)
    requestsPerDay: Optional[int] = Field(default=None, ge=1)
    burstLimit: Optional[int] = Field(default=None, ge=1)
    cooldownPeriodMs: Optional[int] = Field(default=None, ge=1)
    respectRobotsTxt: Optional[bool] = None
    retryAfterHeader: Optional[bool] = None
    exponentialBackoff: Optional[bool] = None


class ValidateRequest(BaseModel):
    url: str
    platform: Optional[str] = None


# =============================================================================
# Responses
# =============================================================================

class RecipeOut(BaseModel):
    title: str
    ingredients: list[str] = Field(default_factory=list)
    instructions: list[str] = Field(default_factory=list)
    cookingTime: Optional[int] = None
    servings: Optional[int] = None
    images: list[str] = Field(default_factory=list)
    sourceUrl: str
    platform: str
    extractedAt: datetime
    platformMetadata: dict[str, Any] = Field(default_factory=dict)


class ExtractUrlResponse(BaseModel):
    success: bool = True
    recipe: RecipeOut
    source: str
    extractedAt: datetime


class TextExtractResponse(BaseModel):
    success: bool = True
    recipe: RecipeOut


class OcrOut(BaseModel):
    text: str
    confidence: float
    processingTime: int
    language: str
    fileSize: int
    fileType: Optional[str] = None


class ImageExtractResponse(BaseModel):
    success: bool = True
    data: OcrOut
    recipe: Optional[RecipeOut] = None


class AuthorOut(BaseModel):
    username: str
    displayName: Optional[str] = None
    profileUrl: Optional[str] = None
    verified: bool = False
    followersCount: Optional[int] = None


class EngagementOut(BaseModel):
    likes: Optional[int] = None
    comments: Optional[int] = None
    shares: Optional[int] = None
    views: Optional[int] = None
    saves: Optional[int] = None


class TimestampsOut(BaseModel):
    published: str
    scraped: str
    lastUpdated: Optional[str] = None


class MediaOut(BaseModel):
    images: list[str] = Field(default_factory=list)
    videos: list[str] = Field(default_factory=list)
    thumbnails: list[str] = Field(default_factory=list)


class LocationOut(BaseModel):
    name: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class PrivacyOut(BaseModel):
    isPublic: bool = True
    isPrivate: bool = False
    isArchived: bool = False


class MetadataOut(BaseModel):
    platform: str
    contentId: str
    url: str
    title: Optional[str] = None
    description: Optional[str] = None
    author: AuthorOut
    engagement: EngagementOut
    timestamps: TimestampsOut
    media: MediaOut
    tags: list[str] = Field(default_factory=list)
    location: Optional[LocationOut] = None
    platformSpecific: dict[str, Any] = Field(default_factory=dict)
    privacy: PrivacyOut
    categories: list[str] = Field(default_factory=list)
    language: Optional[str] = None
    contentQuality: Optional[str] = None


class MetadataValidationOut(BaseModel):
    isValid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class PolicyOut(BaseModel):
    platform: str
    requestsPerMinute: int
    requestsPerHour: int
    requestsPerDay: int
    burstLimit: int
    cooldownPeriodMs: int
    respectRobotsTxt: bool
    retryAfterHeader: bool
    exponentialBackoff: bool


class RequestStatsOut(BaseModel):
    totalRequests: int
    requestsLastHour: int
    requestsLastMinute: int
    averageIntervalMs: float


class ValidationOut(BaseModel):
    isValid: bool
    reason: Optional[str] = None
    recommendedDelayMs: Optional[int] = None


class ComplianceOut(BaseModel):
    policy: PolicyOut
    requestStats: RequestStatsOut
    validation: ValidationOut


class SocialMediaResponse(BaseModel):
    success: bool = True
    platform: str
    recipe: RecipeOut
    metadata: MetadataOut
    metadataValidation: Optional[MetadataValidationOut] = None
    compliance: ComplianceOut
    extractedAt: datetime


class ComplianceConfigOut(BaseModel):
    userAgent: str
    respectRobotsTxt: bool
    followRedirects: bool
    maxRedirects: int
    timeoutMs: int
    retryAttempts: int
    retryDelayMs: int


class PlatformStatusOut(BaseModel):
    policy: PolicyOut
    requestStats: RequestStatsOut
    isRateLimited: bool
    timeUntilNextRequestMs: int


class PlatformListResponse(BaseModel):
    platforms: list[PolicyOut]


class ImportSummaryOut(BaseModel):
    totalRecipes: int
    successRate: int
    totalErrors: int


class ImportProgressOut(BaseModel):
    id: str
    status: str
    totalItems: int
    processedItems: int
    successCount: int
    failureCount: int
    currentItem: Optional[str] = None
    errors: list[str] = Field(default_factory=list)
    startedAt: datetime
    completedAt: Optional[datetime] = None
    estimatedTimeRemaining: Optional[int] = Field(None, description="Milliseconds")
    summary: Optional[ImportSummaryOut] = None


class ImportStartedResponse(BaseModel):
    jobId: str
    status: Literal["started"] = "started"


class AppleNotesImportResponse(ImportStartedResponse):
    format: Literal["html", "txt"]
    notes: int
    folders: list[str] = Field(default_factory=list)


class ImportStatusResponse(BaseModel):
    progress: ImportProgressOut


class ImportCancelResponse(BaseModel):
    jobId: str
    cancelled: bool


class ResetResponse(BaseModel):
    success: bool = True
    platform: str


# =============================================================================
# Metadata preservation
# =============================================================================

class MetadataCreateRequest(BaseModel):
    platform: str
    contentId: str
    url: str
    rawData: dict[str, Any] = Field(default_factory=dict)


class MetadataRequest(BaseModel):
    metadata: MetadataOut


class MetadataUpdateRequest(MetadataRequest):
    rawData: dict[str, Any] = Field(default_factory=dict)


class MetadataResponse(BaseModel):
    success: bool = True
    metadata: MetadataOut
    validation: MetadataValidationOut


class MetadataValidationResponse(BaseModel):
    success: bool = True
    validation: MetadataValidationOut


class MetadataSummaryOut(BaseModel):
    platform: str
    contentId: str
    author: str
    totalEngagement: int
    contentQuality: Optional[str] = None
    ageDays: int


class MetadataSummaryResponse(BaseModel):
    success: bool = True
    summary: MetadataSummaryOut
    isExpired: bool


class MetadataConfigOut(BaseModel):
    preserveAuthor: bool
    preserveEngagement: bool
    preserveLocation: bool
    preservePlatformSpecific: bool
    maxMetadataAgeDays: int


class MetadataConfigUpdate(BaseModel):
    preserveAuthor: Optional[bool] = None
    preserveEngagement: Optional[bool] = None
    preserveLocation: Optional[bool] = None
    preservePlatformSpecific: Optional[bool] = None
    maxMetadataAgeDays: Optional[int] = Field(default=None, ge=1)
