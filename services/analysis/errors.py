"""Typed error taxonomy for the analysis pipeline.

Each error carries an `ErrorKind` assigned where it is raised, so deciding
whether to retry and which message to show the user is a lookup over a
closed set rather than a guess from the error text.
"""

from __future__ import annotations

import asyncio
import json
from enum import Enum
from typing import Optional

import openai


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    AUTH = "auth"
    RATE_LIMITED = "rate_limited"
    PARSING = "parsing"
    UNKNOWN = "unknown"


RETRYABLE_KINDS = frozenset(
    {ErrorKind.TRANSIENT, ErrorKind.TIMEOUT, ErrorKind.RATE_LIMITED, ErrorKind.PARSING, ErrorKind.UNKNOWN}
)

USER_MESSAGES = {
    ErrorKind.VALIDATION: "The analysis request is invalid. Please check your images and prompt.",
    ErrorKind.NOT_FOUND: "This analysis session could not be found. Please start a new analysis.",
    ErrorKind.TRANSIENT: "The analysis service is temporarily unavailable. Please try again.",
    ErrorKind.TIMEOUT: "The analysis took too long. Please try again with fewer or smaller images.",
    ErrorKind.CANCELLED: "You cancelled this analysis.",
    ErrorKind.AUTH: "The analysis service rejected our credentials. Please contact support.",
    ErrorKind.RATE_LIMITED: "Too many requests. Please wait a moment and try again.",
    ErrorKind.PARSING: "The analysis returned data we could not read. Please try again.",
    ErrorKind.UNKNOWN: "An unexpected error occurred. Please try again.",
}


class AnalysisError(Exception):
    """Base class for pipeline errors; subclasses fix the kind."""

    kind = ErrorKind.UNKNOWN

    def __init__(self, message: str, *, kind: Optional[ErrorKind] = None) -> None:
        super().__init__(message)
        if kind is not None:
            self.kind = kind


class ValidationError(AnalysisError):
    kind = ErrorKind.VALIDATION


class SessionNotFoundError(ValidationError):
    kind = ErrorKind.NOT_FOUND


class SessionStateError(ValidationError):
    """The session cannot be run in its current lifecycle state."""


class StageTimeoutError(AnalysisError):
    kind = ErrorKind.TIMEOUT


class TransientStageError(AnalysisError):
    kind = ErrorKind.TRANSIENT


class StageResponseError(AnalysisError):
    """A stage answered but reported failure or returned unusable output."""

    kind = ErrorKind.PARSING


class AnalysisCancelledError(AnalysisError):
    kind = ErrorKind.CANCELLED

    def __init__(self, message: str = "Analysis cancelled by user") -> None:
        super().__init__(message)


class AnnotationCorrelationError(AnalysisError):
    """Raised when annotations reference images the session does not have."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, offending: Optional[list] = None) -> None:
        super().__init__(message)
        self.offending = offending or []


class ExhaustedRetriesError(AnalysisError):
    """All attempts were spent; `last_error` is the final underlying failure."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"Gave up after {attempts} attempt(s): {last_error}")
        self.attempts = attempts
        self.last_error = last_error
        self.kind = classify_error(last_error)


def classify_error(exc: BaseException) -> ErrorKind:
    """Map any exception to an `ErrorKind`."""
    if isinstance(exc, AnalysisError):
        return exc.kind
    if isinstance(exc, asyncio.CancelledError):
        return ErrorKind.CANCELLED
    if isinstance(exc, (asyncio.TimeoutError, openai.APITimeoutError)):
        return ErrorKind.TIMEOUT
    if isinstance(exc, openai.RateLimitError):
        return ErrorKind.RATE_LIMITED
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return ErrorKind.AUTH
    if isinstance(exc, openai.NotFoundError):
        return ErrorKind.NOT_FOUND
    if isinstance(exc, (openai.BadRequestError, openai.UnprocessableEntityError)):
        return ErrorKind.VALIDATION
    if isinstance(exc, (openai.APIConnectionError, openai.InternalServerError, ConnectionError)):
        return ErrorKind.TRANSIENT
    if isinstance(exc, (json.JSONDecodeError, KeyError)):
        return ErrorKind.PARSING
    if isinstance(exc, ValueError):
        return ErrorKind.VALIDATION
    return ErrorKind.UNKNOWN


def is_retryable(exc: BaseException) -> bool:
    return classify_error(exc) in RETRYABLE_KINDS


def user_message(kind: ErrorKind) -> str:
    return USER_MESSAGES[kind]


def stage_error_from_text(message: Optional[str]) -> AnalysisError:
    """Translate the error text of a `success: false` stage reply into a typed error.

    Upstream services only report failures as strings, so this is the one
    place their wording is interpreted.
    """
    text = (message or "Analysis failed").strip()
    lowered = text.lower()
    if "session not found" in lowered or "no analysis session found" in lowered:
        return SessionNotFoundError(text)
    if "invalid" in lowered or "malformed" in lowered or "required" in lowered:
        return ValidationError(text)
    if "timed out" in lowered or "timeout" in lowered:
        return StageTimeoutError(text)
    if "rate limit" in lowered or "429" in lowered:
        return AnalysisError(text, kind=ErrorKind.RATE_LIMITED)
    if "unauthorized" in lowered or "authentication" in lowered or "forbidden" in lowered:
        return AnalysisError(text, kind=ErrorKind.AUTH)
    return StageResponseError(text)
