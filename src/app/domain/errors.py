from __future__ import annotations

from enum import Enum
from typing import Optional


class ExtractionErrorKind(str, Enum):
    """Stable, machine-readable failure kinds exposed to callers."""
    INVALID_INPUT = "INVALID_INPUT"
    UNSUPPORTED_PLATFORM = "UNSUPPORTED_PLATFORM"
    RATE_LIMITED = "RATE_LIMITED"
    POLICY_VIOLATION = "POLICY_VIOLATION"
    TIMEOUT = "TIMEOUT"
    NOT_FOUND = "NOT_FOUND"
    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"
    UNKNOWN = "UNKNOWN"


class ExtractionError(Exception):
    kind: ExtractionErrorKind = ExtractionErrorKind.UNKNOWN
    retryable: bool = False

    def __init__(self, message: str, platform: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.platform = platform


class InvalidInputError(ExtractionError):
    kind = ExtractionErrorKind.INVALID_INPUT


class UnsupportedPlatformError(ExtractionError):
    kind = ExtractionErrorKind.UNSUPPORTED_PLATFORM

    def __init__(self, message: str = "Unsupported URL/platform", platform: Optional[str] = None):
        super().__init__(message, platform=platform)


class RateLimitedError(ExtractionError):
    kind = ExtractionErrorKind.RATE_LIMITED
    retryable = True

    def __init__(
        self,
        message: str = "Rate limit exceeded for this platform",
        retry_after: int = 0,
        platform: Optional[str] = None,
    ):
        super().__init__(message, platform=platform)
        self.retry_after = retry_after


class PolicyViolationError(ExtractionError):
    kind = ExtractionErrorKind.POLICY_VIOLATION

    def __init__(self, reason: str, platform: Optional[str] = None):
        super().__init__(f"Request does not comply with platform policies: {reason}", platform=platform)
        self.reason = reason


class ExtractionTimeoutError(ExtractionError):
    kind = ExtractionErrorKind.TIMEOUT
    retryable = True


class ContentNotFoundError(ExtractionError):
    kind = ExtractionErrorKind.NOT_FOUND


class InsufficientDataError(ExtractionError):
    kind = ExtractionErrorKind.INSUFFICIENT_DATA


class UnknownExtractionError(ExtractionError):
    kind = ExtractionErrorKind.UNKNOWN

    def __init__(self, original_message: str, platform: Optional[str] = None):
        super().__init__(f"Failed to extract recipe: {original_message}", platform=platform)
        self.original_message = original_message


_ERRORS_BY_KIND: dict[ExtractionErrorKind, type[ExtractionError]] = {
    ExtractionErrorKind.INVALID_INPUT: InvalidInputError,
    ExtractionErrorKind.NOT_FOUND: ContentNotFoundError,
    ExtractionErrorKind.TIMEOUT: ExtractionTimeoutError,
    ExtractionErrorKind.INSUFFICIENT_DATA: InsufficientDataError,
}


def error_for_kind(
    kind: ExtractionErrorKind,
    message: str,
    platform: Optional[str] = None,
) -> ExtractionError:
    """Build the tagged error for a classified collaborator failure."""
    if kind == ExtractionErrorKind.RATE_LIMITED:
        return RateLimitedError(message, platform=platform)
    if kind == ExtractionErrorKind.POLICY_VIOLATION:
        return PolicyViolationError(message, platform=platform)
    if kind == ExtractionErrorKind.UNSUPPORTED_PLATFORM:
        return UnsupportedPlatformError(message, platform=platform)
    error_cls = _ERRORS_BY_KIND.get(kind)
    if error_cls is None:
        return UnknownExtractionError(message, platform=platform)
    return error_cls(message, platform=platform)


class ImportJobNotFoundError(Exception):
    def __init__(self, job_id: str):
        super().__init__(f"Import not found: {job_id}")
        self.job_id = job_id


class ImportCapacityError(Exception):
    def __init__(self, active_jobs: int, limit: int):
        super().__init__(f"Too many active imports ({active_jobs}/{limit})")
        self.active_jobs = active_jobs
        self.limit = limit
