# src/app/routers/extract.py
"""
Extraction routes: URL and social media extraction, pasted text, images,
bulk imports (URLs, note stores, Apple Notes exports), metadata
preservation and compliance administration.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse

from src.app.deps import (
    get_dispatcher,
    get_import_tracker,
    get_limiter,
    get_metadata_normalizer,
    get_note_client,
    get_text_service,
)
from src.app.domain.errors import (
    ExtractionError,
    ExtractionErrorKind,
    ImportCapacityError,
    ImportJobNotFoundError,
    InvalidInputError,
    RateLimitedError,
    UnsupportedPlatformError,
)
from src.app.domain.models import (
    AuthorInfo,
    CanonicalRecipe,
    ComplianceConfig,
    ComplianceValidation,
    EngagementInfo,
    ImportJob,
    LocationInfo,
    MediaInfo,
    MetadataTimestamps,
    MetadataValidation,
    Platform,
    PrivacyInfo,
    RateLimitPolicy,
    RequestStats,
    SocialMediaMetadata,
)
from src.app.infra.scrapers.base import NoteStoreClient
from src.app.schemas.extract import (
    AppleNotesImportResponse,
    AuthorOut,
    ComplianceConfigOut,
    ComplianceConfigUpdate,
    ComplianceOut,
    EmailExtractRequest,
    EngagementOut,
    ExtractUrlRequest,
    ExtractUrlResponse,
    ImageExtractResponse,
    ImportCancelResponse,
    ImportProgressOut,
    ImportRequest,
    ImportStartedResponse,
    ImportStatusResponse,
    ImportSummaryOut,
    LocationOut,
    MediaOut,
    MetadataConfigOut,
    MetadataConfigUpdate,
    MetadataCreateRequest,
    MetadataOut,
    MetadataRequest,
    MetadataResponse,
    MetadataSummaryOut,
    MetadataSummaryResponse,
    MetadataUpdateRequest,
    MetadataValidationOut,
    MetadataValidationResponse,
    OcrOut,
    PlatformListResponse,
    PlatformStatusOut,
    PolicyOut,
    PolicyUpdate,
    PrivacyOut,
    RecipeOut,
    RequestStatsOut,
    ResetResponse,
    SocialMediaResponse,
    TextExtractResponse,
    TimestampsOut,
    ValidateRequest,
    ValidationOut,
    WhatsAppExtractRequest,
)
from src.app.services.error_classifier import classify_failure
from src.app.services.extraction_dispatcher import ExtractionDispatcher
from src.app.services.import_tracker import (
    AppleNotesImportSource,
    ImportSource,
    ImportTracker,
    NoteImportSource,
    UrlImportSource,
)
from src.app.services.metadata_normalizer import MetadataNormalizer, MetadataPreservationConfig
from src.app.services.rate_limiter import ComplianceRateLimiter
from src.app.services.text_extraction import TextExtractionService
from src.services.apple_notes import parse_notes_export
from src.services.errors import ScraperError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/extract", tags=["extract"])

_STATUS_BY_KIND = {
    ExtractionErrorKind.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    ExtractionErrorKind.UNSUPPORTED_PLATFORM: status.HTTP_400_BAD_REQUEST,
    ExtractionErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ExtractionErrorKind.POLICY_VIOLATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ExtractionErrorKind.INSUFFICIENT_DATA: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ExtractionErrorKind.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    ExtractionErrorKind.TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
    ExtractionErrorKind.UNKNOWN: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

_ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp", "image/gif"}
IMPORT_CAPACITY_RETRY_SECONDS = 30


# =============================================================================
# Error responses
# =============================================================================

def error_response(
    status_code: int,
    message: str,
    kind: ExtractionErrorKind,
    retry_after: Optional[int] = None,
    details: Optional[str] = None,
) -> JSONResponse:
    body = {"error": message, "kind": kind.value}
    headers = None
    if retry_after is not None:
        body["retryAfter"] = retry_after
        headers = {"Retry-After": str(retry_after)}
    if details:
        body["details"] = details
    return JSONResponse(status_code=status_code, content=body, headers=headers)


async def extraction_error_handler(request: Request, exc: ExtractionError) -> JSONResponse:
    status_code = _STATUS_BY_KIND.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= 500:
        logger.error("Extraction error: path=%s, kind=%s, error=%s", request.url.path, exc.kind.value, exc.message)
    retry_after = exc.retry_after if isinstance(exc, RateLimitedError) else None
    return error_response(status_code, exc.message, exc.kind, retry_after=retry_after)


def _platform(value: str) -> Platform:
    try:
        return Platform(value)
    except ValueError:
        raise UnsupportedPlatformError(f"Unsupported platform: {value}", platform=value)


# =============================================================================
# Converters
# =============================================================================

def _recipe_out(recipe: CanonicalRecipe) -> RecipeOut:
    return RecipeOut(
        title=recipe.title,
        ingredients=list(recipe.ingredients),
        instructions=list(recipe.instructions),
        cookingTime=recipe.cooking_time_minutes,
        servings=recipe.servings,
        images=list(recipe.images),
        sourceUrl=recipe.source_url,
        platform=recipe.platform.value,
        extractedAt=recipe.extracted_at,
        platformMetadata=dict(recipe.platform_metadata),
    )


def _metadata_out(metadata: SocialMediaMetadata) -> MetadataOut:
    location = None
    if metadata.location is not None:
        location = LocationOut(
            name=metadata.location.name,
            latitude=metadata.location.latitude,
            longitude=metadata.location.longitude,
        )
    return MetadataOut(
        platform=metadata.platform,
        contentId=metadata.content_id,
        url=metadata.url,
        title=metadata.title,
        description=metadata.description,
        author=AuthorOut(
            username=metadata.author.username,
            displayName=metadata.author.display_name,
            profileUrl=metadata.author.profile_url,
            verified=metadata.author.verified,
            followersCount=metadata.author.followers_count,
        ),
        engagement=EngagementOut(
            likes=metadata.engagement.likes,
            comments=metadata.engagement.comments,
            shares=metadata.engagement.shares,
            views=metadata.engagement.views,
            saves=metadata.engagement.saves,
        ),
        timestamps=TimestampsOut(
            published=metadata.timestamps.published,
            scraped=metadata.timestamps.scraped,
            lastUpdated=metadata.timestamps.last_updated,
        ),
        media=MediaOut(
            images=metadata.media.images,
            videos=metadata.media.videos,
            thumbnails=metadata.media.thumbnails,
        ),
        tags=metadata.tags,
        location=location,
        platformSpecific=metadata.platform_specific,
        privacy=PrivacyOut(
            isPublic=metadata.privacy.is_public,
            isPrivate=metadata.privacy.is_private,
            isArchived=metadata.privacy.is_archived,
        ),
        categories=metadata.categories,
        language=metadata.language,
        contentQuality=metadata.content_quality,
    )


def _metadata_from(body: MetadataOut) -> SocialMediaMetadata:
    location = None
    if body.location is not None:
        location = LocationInfo(
            name=body.location.name,
            latitude=body.location.latitude,
            longitude=body.location.longitude,
        )
    return SocialMediaMetadata(
        platform=body.platform,
        content_id=body.contentId,
        url=body.url,
        title=body.title,
        description=body.description,
        author=AuthorInfo(
            username=body.author.username,
            display_name=body.author.displayName,
            profile_url=body.author.profileUrl,
            verified=body.author.verified,
            followers_count=body.author.followersCount,
        ),
        engagement=EngagementInfo(
            likes=body.engagement.likes,
            comments=body.engagement.comments,
            shares=body.engagement.shares,
            views=body.engagement.views,
            saves=body.engagement.saves,
        ),
        timestamps=MetadataTimestamps(
            published=body.timestamps.published,
            scraped=body.timestamps.scraped,
            last_updated=body.timestamps.lastUpdated,
        ),
        media=MediaInfo(
            images=list(body.media.images),
            videos=list(body.media.videos),
            thumbnails=list(body.media.thumbnails),
        ),
        tags=list(body.tags),
        location=location,
        platform_specific=dict(body.platformSpecific),
        privacy=PrivacyInfo(
            is_public=body.privacy.isPublic,
            is_private=body.privacy.isPrivate,
            is_archived=body.privacy.isArchived,
        ),
        categories=list(body.categories),
        language=body.language,
        content_quality=body.contentQuality,
    )


def _metadata_validation_out(validation: MetadataValidation) -> MetadataValidationOut:
    return MetadataValidationOut(
        isValid=validation.is_valid,
        errors=validation.errors,
        warnings=validation.warnings,
    )


def _metadata_config_out(config: MetadataPreservationConfig) -> MetadataConfigOut:
    return MetadataConfigOut(
        preserveAuthor=config.preserve_author,
        preserveEngagement=config.preserve_engagement,
        preserveLocation=config.preserve_location,
        preservePlatformSpecific=config.preserve_platform_specific,
        maxMetadataAgeDays=config.max_metadata_age_days,
    )


def _policy_out(policy: RateLimitPolicy) -> PolicyOut:
    return PolicyOut(
        platform=policy.platform.value,
        requestsPerMinute=policy.requests_per_minute,
        requestsPerHour=policy.requests_per_hour,
        requestsPerDay=policy.requests_per_day,
        burstLimit=policy.burst_limit,
        cooldownPeriodMs=policy.cooldown_period_ms,
        respectRobotsTxt=policy.respect_robots_txt,
        retryAfterHeader=policy.retry_after_header,
        exponentialBackoff=policy.exponential_backoff,
    )


def _stats_out(stats: RequestStats) -> RequestStatsOut:
    return RequestStatsOut(
        totalRequests=stats.total_requests,
        requestsLastHour=stats.requests_last_hour,
        requestsLastMinute=stats.requests_last_minute,
        averageIntervalMs=stats.average_interval_ms,
    )


def _validation_out(validation: ComplianceValidation) -> ValidationOut:
    return ValidationOut(
        isValid=validation.is_valid,
        reason=validation.reason,
        recommendedDelayMs=validation.recommended_delay_ms,
    )


def _config_out(config: ComplianceConfig) -> ComplianceConfigOut:
    return ComplianceConfigOut(
        userAgent=config.user_agent,
        respectRobotsTxt=config.respect_robots_txt,
        followRedirects=config.follow_redirects,
        maxRedirects=config.max_redirects,
        timeoutMs=config.timeout_ms,
        retryAttempts=config.retry_attempts,
        retryDelayMs=config.retry_delay_ms,
    )


def _progress_out(job: ImportJob) -> ImportProgressOut:
    summary = None
    if job.summary is not None:
        summary = ImportSummaryOut(
            totalRecipes=job.summary.total_recipes,
            successRate=job.summary.success_rate,
            totalErrors=job.summary.total_errors,
        )
    return ImportProgressOut(
        id=job.id,
        status=job.status.value,
        totalItems=job.total_items,
        processedItems=job.processed_items,
        successCount=job.success_count,
        failureCount=job.failure_count,
        currentItem=job.current_item_label,
        errors=list(job.errors),
        startedAt=job.started_at,
        completedAt=job.completed_at,
        estimatedTimeRemaining=job.estimated_ms_remaining,
        summary=summary,
    )


# =============================================================================
# Extraction
# =============================================================================

@router.post("/url", response_model=ExtractUrlResponse)
async def extract_url(
    body: ExtractUrlRequest,
    dispatcher: ExtractionDispatcher = Depends(get_dispatcher),
):
    recipe = await dispatcher.extract(body.url, body.platform, body.options)
    return ExtractUrlResponse(
        recipe=_recipe_out(recipe),
        source=recipe.platform.value,
        extractedAt=recipe.extracted_at,
    )


@router.post("/social-media", response_model=SocialMediaResponse)
async def extract_social_media(
    body: ExtractUrlRequest,
    dispatcher: ExtractionDispatcher = Depends(get_dispatcher),
):
    result = await dispatcher.extract_social_media(body.url, body.platform, body.options)
    validation = result.metadata_validation
    return SocialMediaResponse(
        platform=result.platform.value,
        recipe=_recipe_out(result.recipe),
        metadata=_metadata_out(result.metadata),
        metadataValidation=_metadata_validation_out(validation) if validation else None,
        compliance=ComplianceOut(
            policy=_policy_out(result.compliance.policy),
            requestStats=_stats_out(result.compliance.stats),
            validation=_validation_out(result.compliance.validation),
        ),
        extractedAt=result.recipe.extracted_at,
    )


@router.post("/email", response_model=TextExtractResponse)
async def extract_email(
    body: EmailExtractRequest,
    service: TextExtractionService = Depends(get_text_service),
):
    recipe = await service.extract_email(body.emailContent, body.metadata)
    return TextExtractResponse(recipe=_recipe_out(recipe))


@router.post("/whatsapp", response_model=TextExtractResponse)
async def extract_whatsapp(
    body: WhatsAppExtractRequest,
    service: TextExtractionService = Depends(get_text_service),
):
    recipe = await service.extract_whatsapp(body.messageContent, body.metadata)
    return TextExtractResponse(recipe=_recipe_out(recipe))


@router.post("/image", response_model=ImageExtractResponse)
async def extract_image(
    request: Request,
    language: str = Query("eng"),
    confidenceThreshold: Optional[float] = Query(None, ge=0, le=100),
    enablePreprocessing: bool = Query(False),
    service: TextExtractionService = Depends(get_text_service),
):
    """
    OCR a recipe photo sent as the raw request body.

    The Content-Type header must be one of the supported image types.
    """
    content_type = (request.headers.get("content-type") or "").split(";")[0].strip().lower()
    if content_type not in _ALLOWED_IMAGE_TYPES:
        raise InvalidInputError(
            f"Unsupported file type. Allowed types: {', '.join(sorted(_ALLOWED_IMAGE_TYPES))}",
            platform=Platform.IMAGE_OCR.value,
        )

    image_bytes = await request.body()
    result = await service.extract_image(
        image_bytes,
        {
            "language": language,
            "confidence_threshold": confidenceThreshold,
            "preprocessing": enablePreprocessing,
            "resize": enablePreprocessing,
            "enhance": enablePreprocessing,
            "denoise": enablePreprocessing,
        },
    )
    return ImageExtractResponse(
        data=OcrOut(
            text=result.ocr.text,
            confidence=result.ocr.confidence,
            processingTime=result.ocr.processing_time_ms,
            language=result.ocr.language,
            fileSize=len(image_bytes),
            fileType=content_type,
        ),
        recipe=_recipe_out(result.recipe) if result.recipe else None,
    )


@router.get("/image/languages")
async def image_languages(service: TextExtractionService = Depends(get_text_service)):
    return {"languages": service.get_supported_languages()}


# =============================================================================
# Imports
# =============================================================================

def _create_import(tracker: ImportTracker, source: ImportSource) -> str:
    try:
        return tracker.create_import(source)
    except ImportCapacityError as exc:
        raise RateLimitedError(str(exc), retry_after=IMPORT_CAPACITY_RETRY_SECONDS) from exc


def _apple_notes_source(content: Optional[str], folder: Optional[str]) -> tuple[str, AppleNotesImportSource]:
    try:
        export_format, notes = parse_notes_export(content)
    except ScraperError as exc:
        raise classify_failure(exc, Platform.APPLE_NOTES.value) from exc
    if not notes:
        raise InvalidInputError("No notes found in Apple Notes export", platform=Platform.APPLE_NOTES.value)
    return export_format, AppleNotesImportSource(notes, folder)


@router.post("/imports", response_model=ImportStartedResponse, status_code=status.HTTP_202_ACCEPTED)
async def start_import(
    body: ImportRequest,
    tracker: ImportTracker = Depends(get_import_tracker),
    dispatcher: ExtractionDispatcher = Depends(get_dispatcher),
    note_client: Optional[NoteStoreClient] = Depends(get_note_client),
):
    if body.source == "notes":
        if note_client is None:
            raise InvalidInputError("No note store is configured")
        source = NoteImportSource(note_client, body.notebookId, body.maxNotes)
    elif body.source == "apple_notes":
        _, source = _apple_notes_source(body.exportContent, body.folder)
    else:
        urls = [url for url in body.urls if url and url.strip()]
        if not urls:
            raise InvalidInputError("At least one URL is required")
        source = UrlImportSource(dispatcher, urls)

    return ImportStartedResponse(jobId=_create_import(tracker, source))


@router.post("/apple-notes", response_model=AppleNotesImportResponse, status_code=status.HTTP_202_ACCEPTED)
async def import_apple_notes(
    request: Request,
    folder: Optional[str] = Query(None),
    tracker: ImportTracker = Depends(get_import_tracker),
):
    """Start an import from an Apple Notes export (.html or .txt) sent as the raw request body."""
    raw = await request.body()
    export_format, source = _apple_notes_source(raw.decode("utf-8", errors="replace"), folder)
    job_id = _create_import(tracker, source)
    return AppleNotesImportResponse(
        jobId=job_id,
        format=export_format,
        notes=len(source.notes),
        folders=sorted({note.folder for note in source.notes}),
    )


@router.get("/imports/{job_id}", response_model=ImportStatusResponse)
async def get_import(job_id: str, tracker: ImportTracker = Depends(get_import_tracker)):
    try:
        job = tracker.get_status(job_id)
    except ImportJobNotFoundError as exc:
        return error_response(status.HTTP_404_NOT_FOUND, str(exc), ExtractionErrorKind.NOT_FOUND)
    return ImportStatusResponse(progress=_progress_out(job))


@router.delete("/imports/{job_id}", response_model=ImportCancelResponse)
async def cancel_import(job_id: str, tracker: ImportTracker = Depends(get_import_tracker)):
    try:
        cancelled = tracker.cancel(job_id)
    except ImportJobNotFoundError as exc:
        return error_response(status.HTTP_404_NOT_FOUND, str(exc), ExtractionErrorKind.NOT_FOUND)
    return ImportCancelResponse(jobId=job_id, cancelled=cancelled)


# =============================================================================
# Metadata preservation
# =============================================================================

@router.post("/metadata", response_model=MetadataResponse)
async def create_metadata(
    body: MetadataCreateRequest,
    normalizer: MetadataNormalizer = Depends(get_metadata_normalizer),
):
    metadata = normalizer.create_metadata(body.platform, body.contentId, body.url, body.rawData)
    return MetadataResponse(
        metadata=_metadata_out(metadata),
        validation=_metadata_validation_out(normalizer.validate_metadata(metadata)),
    )


@router.post("/metadata/update", response_model=MetadataResponse)
async def update_metadata(
    body: MetadataUpdateRequest,
    normalizer: MetadataNormalizer = Depends(get_metadata_normalizer),
):
    """Merge a fresh scrape into previously returned metadata."""
    metadata = normalizer.update_metadata(_metadata_from(body.metadata), body.rawData)
    return MetadataResponse(
        metadata=_metadata_out(metadata),
        validation=_metadata_validation_out(normalizer.validate_metadata(metadata)),
    )


@router.post("/metadata/validate", response_model=MetadataValidationResponse)
async def validate_metadata(
    body: MetadataRequest,
    normalizer: MetadataNormalizer = Depends(get_metadata_normalizer),
):
    validation = normalizer.validate_metadata(_metadata_from(body.metadata))
    return MetadataValidationResponse(validation=_metadata_validation_out(validation))


@router.post("/metadata/summary", response_model=MetadataSummaryResponse)
async def summarize_metadata(
    body: MetadataRequest,
    normalizer: MetadataNormalizer = Depends(get_metadata_normalizer),
):
    metadata = _metadata_from(body.metadata)
    summary = normalizer.get_metadata_summary(metadata)
    return MetadataSummaryResponse(
        summary=MetadataSummaryOut(
            platform=summary.platform,
            contentId=summary.content_id,
            author=summary.author,
            totalEngagement=summary.total_engagement,
            contentQuality=summary.content_quality,
            ageDays=summary.age_days,
        ),
        isExpired=normalizer.is_metadata_expired(metadata),
    )


@router.get("/metadata/config", response_model=MetadataConfigOut)
async def get_metadata_config(normalizer: MetadataNormalizer = Depends(get_metadata_normalizer)):
    return _metadata_config_out(normalizer.config)


@router.put("/metadata/config", response_model=MetadataConfigOut)
async def update_metadata_config(
    body: MetadataConfigUpdate,
    normalizer: MetadataNormalizer = Depends(get_metadata_normalizer),
):
    field_names = {
        "preserveAuthor": "preserve_author",
        "preserveEngagement": "preserve_engagement",
        "preserveLocation": "preserve_location",
        "preservePlatformSpecific": "preserve_platform_specific",
        "maxMetadataAgeDays": "max_metadata_age_days",
    }
    changes = {field_names[k]: v for k, v in body.model_dump(exclude_none=True).items()}
    return _metadata_config_out(normalizer.update_config(**changes))


# =============================================================================
# Compliance administration
# =============================================================================

@router.get("/compliance/config", response_model=ComplianceConfigOut)
async def get_compliance_config(limiter: ComplianceRateLimiter = Depends(get_limiter)):
    return _config_out(limiter.get_compliance_config())


@router.put("/compliance/config", response_model=ComplianceConfigOut)
async def update_compliance_config(
    body: ComplianceConfigUpdate,
    limiter: ComplianceRateLimiter = Depends(get_limiter),
):
    field_names = {
        "userAgent": "user_agent",
        "respectRobotsTxt": "respect_robots_txt",
        "followRedirects": "follow_redirects",
        "maxRedirects": "max_redirects",
        "timeoutMs": "timeout_ms",
        "retryAttempts": "retry_attempts",
        "retryDelayMs": "retry_delay_ms",
    }
    changes = {field_names[k]: v for k, v in body.model_dump(exclude_none=True).items()}
    return _config_out(limiter.update_compliance_config(**changes))


@router.get("/compliance/platforms", response_model=PlatformListResponse)
async def list_platform_policies(limiter: ComplianceRateLimiter = Depends(get_limiter)):
    return PlatformListResponse(
        platforms=[_policy_out(limiter.get_platform_rate_limit(p)) for p in limiter.get_supported_platforms()],
    )


@router.get("/compliance/platforms/{platform}", response_model=PlatformStatusOut)
async def get_platform_status(platform: str, limiter: ComplianceRateLimiter = Depends(get_limiter)):
    resolved = _platform(platform)
    policy = limiter.get_platform_rate_limit(resolved)
    if policy is None:
        raise UnsupportedPlatformError(f"Unsupported platform: {platform}", platform=platform)
    return PlatformStatusOut(
        policy=_policy_out(policy),
        requestStats=_stats_out(limiter.get_request_stats(resolved)),
        isRateLimited=limiter.is_rate_limited(resolved),
        timeUntilNextRequestMs=limiter.get_time_until_next_request(resolved),
    )


@router.put("/compliance/platforms/{platform}", response_model=PolicyOut)
async def update_platform_policy(
    platform: str,
    body: PolicyUpdate,
    limiter: ComplianceRateLimiter = Depends(get_limiter),
):
    field_names = {
        "requestsPerMinute": "requests_per_minute",
        "requestsPerHour": "requests_per_hour",
        "requestsPerDay": "requests_per_day",
        "burstLimit": "burst_limit",
        "cooldownPeriodMs": "cooldown_period_ms",
        "respectRobotsTxt": "respect_robots_txt",
        "retryAfterHeader": "retry_after_header",
        "exponentialBackoff": "exponential_backoff",
    }
    changes = {field_names[k]: v for k, v in body.model_dump(exclude_none=True).items()}
    return _policy_out(limiter.update_platform_policy(_platform(platform), **changes))


@router.post("/compliance/platforms/{platform}/reset", response_model=ResetResponse)
async def reset_platform(platform: str, limiter: ComplianceRateLimiter = Depends(get_limiter)):
    resolved = _platform(platform)
    limiter.reset_rate_limit(resolved)
    return ResetResponse(platform=resolved.value)


@router.post("/compliance/validate", response_model=ValidationOut)
async def validate_request(
    body: ValidateRequest,
    limiter: ComplianceRateLimiter = Depends(get_limiter),
    dispatcher: ExtractionDispatcher = Depends(get_dispatcher),
):
    """Check a URL against platform policy without consuming quota."""
    platform = body.platform or dispatcher.resolve_platform(body.url).value
    return _validation_out(limiter.validate_request(platform, body.url))
