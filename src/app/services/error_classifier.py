# src/app/services/error_classifier.py
"""
Maps failures from scraper collaborators onto the extraction error taxonomy.

Typed scraper errors are mapped by class. Free-text rules only apply to
foreign exceptions and to the generic FetchFailedError, and they never look
inside URLs quoted in the message.
"""
from __future__ import annotations

import asyncio
import re
from typing import Optional, Sequence

from src.app.domain.errors import ExtractionError, ExtractionErrorKind, error_for_kind
from src.services.errors import (
    InvalidExportError,
    InvalidURLError,
    LoginRequiredError,
    NetworkTimeoutError,
    NoRecipeFoundError,
    PrivateOrUnavailableError,
    ScraperError,
)

_SCRAPER_ERROR_KINDS: Sequence[tuple[type[ScraperError], ExtractionErrorKind]] = (
    (NetworkTimeoutError, ExtractionErrorKind.TIMEOUT),
    (PrivateOrUnavailableError, ExtractionErrorKind.NOT_FOUND),
    (LoginRequiredError, ExtractionErrorKind.POLICY_VIOLATION),
    (NoRecipeFoundError, ExtractionErrorKind.INSUFFICIENT_DATA),
    (InvalidURLError, ExtractionErrorKind.INVALID_INPUT),
    (InvalidExportError, ExtractionErrorKind.INVALID_INPUT),
)

_URL_RE = re.compile(r"\b(?:https?://|www\.)\S+", re.IGNORECASE)

# Checked in order, first hit wins.
_MESSAGE_RULES: Sequence[tuple[ExtractionErrorKind, re.Pattern[str]]] = (
    (ExtractionErrorKind.TIMEOUT, re.compile(r"timeout|timed out|deadline exceeded")),
    (ExtractionErrorKind.RATE_LIMITED, re.compile(r"rate limit|too many requests|\b429\b")),
    (
        ExtractionErrorKind.POLICY_VIOLATION,
        re.compile(r"compliance|policy|robots\.txt|access denied|forbidden|\b403\b|login required"),
    ),
    (
        ExtractionErrorKind.NOT_FOUND,
        re.compile(r"not found|\b404\b|private|unavailable|does not exist|removed|deleted"),
    ),
    (
        ExtractionErrorKind.INSUFFICIENT_DATA,
        re.compile(r"insufficient|no recipe|nothing to extract|does not contain recipe"),
    ),
    (ExtractionErrorKind.INVALID_INPUT, re.compile(r"invalid|malformed|empty|missing|unsupported url")),
)


def classify_message(message: Optional[str]) -> ExtractionErrorKind:
    text = _URL_RE.sub(" ", (message or "").lower())
    for kind, pattern in _MESSAGE_RULES:
        if pattern.search(text):
            return kind
    return ExtractionErrorKind.UNKNOWN


def classify_failure(error: BaseException, platform: Optional[str] = None) -> ExtractionError:
    """Turn a collaborator exception into a tagged ExtractionError."""
    if isinstance(error, ExtractionError):
        return error
    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        return error_for_kind(ExtractionErrorKind.TIMEOUT, str(error) or "Scraper timed out", platform)

    message = str(error) or type(error).__name__
    for error_type, kind in _SCRAPER_ERROR_KINDS:
        if isinstance(error, error_type):
            return error_for_kind(kind, message, platform)
    return error_for_kind(classify_message(message), message, platform)
