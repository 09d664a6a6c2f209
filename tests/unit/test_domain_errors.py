from __future__ import annotations

import pytest

from src.app.domain.errors import (
    ContentNotFoundError,
    ExtractionError,
    ExtractionErrorKind,
    ExtractionTimeoutError,
    ImportCapacityError,
    ImportJobNotFoundError,
    InsufficientDataError,
    InvalidInputError,
    PolicyViolationError,
    RateLimitedError,
    UnknownExtractionError,
    UnsupportedPlatformError,
    error_for_kind,
)


class TestExtractionError:
    def test_base_exception(self) -> None:
        error = ExtractionError("Base error", platform="instagram")
        assert str(error) == "Base error"
        assert error.message == "Base error"
        assert error.platform == "instagram"
        assert error.kind == ExtractionErrorKind.UNKNOWN
        assert isinstance(error, Exception)

    def test_kind_is_string_enum(self) -> None:
        assert ExtractionErrorKind.RATE_LIMITED == "RATE_LIMITED"
        assert len(list(ExtractionErrorKind)) == 8


class TestTaggedErrors:
    @pytest.mark.parametrize(
        ("error", "kind"),
        [
            (InvalidInputError("bad"), ExtractionErrorKind.INVALID_INPUT),
            (UnsupportedPlatformError(), ExtractionErrorKind.UNSUPPORTED_PLATFORM),
            (RateLimitedError(), ExtractionErrorKind.RATE_LIMITED),
            (PolicyViolationError("robots"), ExtractionErrorKind.POLICY_VIOLATION),
            (ExtractionTimeoutError("slow"), ExtractionErrorKind.TIMEOUT),
            (ContentNotFoundError("gone"), ExtractionErrorKind.NOT_FOUND),
            (InsufficientDataError("empty"), ExtractionErrorKind.INSUFFICIENT_DATA),
            (UnknownExtractionError("boom"), ExtractionErrorKind.UNKNOWN),
        ],
    )
    def test_each_error_carries_its_kind(self, error: ExtractionError, kind: ExtractionErrorKind) -> None:
        assert error.kind == kind
        assert isinstance(error, ExtractionError)

    def test_unsupported_platform_default_message(self) -> None:
        assert str(UnsupportedPlatformError()) == "Unsupported URL/platform"

    def test_rate_limited_retry_after(self) -> None:
        error = RateLimitedError(retry_after=42, platform="tiktok")
        assert error.retry_after == 42
        assert error.retryable is True
        assert "Rate limit exceeded" in str(error)

    def test_policy_violation_keeps_reason(self) -> None:
        error = PolicyViolationError("Invalid URL format for platform: instagram")
        assert error.reason == "Invalid URL format for platform: instagram"
        assert str(error).startswith("Request does not comply with platform policies")

    def test_unknown_wraps_original_message(self) -> None:
        error = UnknownExtractionError("socket closed")
        assert error.original_message == "socket closed"
        assert str(error) == "Failed to extract recipe: socket closed"

    def test_only_transient_kinds_are_retryable(self) -> None:
        assert ExtractionTimeoutError("x").retryable is True
        assert ContentNotFoundError("x").retryable is False
        assert InvalidInputError("x").retryable is False


class TestErrorForKind:
    def test_builds_matching_subclass(self) -> None:
        for kind in ExtractionErrorKind:
            error = error_for_kind(kind, "message", platform="youtube")
            assert error.kind == kind
            assert error.platform == "youtube"


class TestImportErrors:
    def test_job_not_found(self) -> None:
        error = ImportJobNotFoundError("abc")
        assert error.job_id == "abc"
        assert "abc" in str(error)

    def test_capacity(self) -> None:
        error = ImportCapacityError(10, 10)
        assert error.active_jobs == 10
        assert error.limit == 10
        assert "10/10" in str(error)
