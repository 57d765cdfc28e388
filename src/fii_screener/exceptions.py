"""
Exception hierarchy for the FII Screener.

This module defines all custom exceptions used throughout the screener
tools and pipelines. Each failure class maps to one handling decision:

- FetchError: network/status failure after retries. Fatal to the calling
  operation; surfaced as "service unavailable".
- ParseError: expected structure missing from a source document. Fatal,
  never retried (upstream format drift).
- AllocationValidationError: caller-supplied weights/counts are invalid.
  Raised before any work is done; no partial result.

An unknown ticker is not an error: lookups return None.
"""

from typing import Optional


# ============================================================================
# BASE EXCEPTION CLASSES
# ============================================================================

class FiiScreenerException(Exception):
    """
    Base exception for all FII Screener errors.

    Inheriting from this allows catching all screener errors:
        try:
            ...
        except FiiScreenerException as e:
            ...
    """

    def __init__(self, message: str, error_code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__


class DataAcquisitionError(FiiScreenerException):
    """Base class for errors while retrieving remote documents."""
    pass


class DataProcessingError(FiiScreenerException):
    """Base class for errors during document parsing and record building."""
    pass


class ValidationError(FiiScreenerException):
    """Base class for caller-input validation failures."""
    pass


class ConfigurationError(FiiScreenerException):
    """Base class for configuration/setup issues."""
    pass


# ============================================================================
# ACQUISITION
# ============================================================================

class FetchError(DataAcquisitionError):
    """
    Raised when a document cannot be retrieved.

    Either a non-retryable HTTP status was returned, or every attempt failed
    with a transient error. ``cause`` holds the last underlying failure.

    Example:
        raise FetchError("https://...", attempts=4, cause=exc)
    """

    def __init__(
        self,
        url: str,
        attempts: int = 1,
        cause: Optional[BaseException] = None,
        status: Optional[int] = None,
    ):
        detail = f"HTTP {status}" if status is not None else repr(cause)
        super().__init__(
            f"Failed to fetch {url} after {attempts} attempt(s): {detail}"
        )
        self.url = url
        self.attempts = attempts
        self.cause = cause
        self.status = status


class TransientStatusError(DataAcquisitionError):
    """
    A retryable HTTP status (429 or 5xx). Never escapes the fetcher on its
    own; it becomes the ``cause`` of the final FetchError.
    """

    def __init__(self, url: str, status: int):
        super().__init__(f"HTTP {status} for {url}")
        self.url = url
        self.status = status


# ============================================================================
# PARSING
# ============================================================================

class ParseError(DataProcessingError):
    """
    Raised when the expected structure is not found in a source document.

    Example:
        raise ParseError("Listing table not found; the page layout may have changed")
    """
    pass


# ============================================================================
# VALIDATION
# ============================================================================

class AllocationValidationError(ValidationError):
    """
    Raised when allocation weights or counts violate their invariants.

    This also wraps pydantic ValidationError raised by the request models.

    Example:
        raise AllocationValidationError("Weights must sum to 100. Current: 95.0")
    """
    pass


# ============================================================================
# CONFIGURATION
# ============================================================================

class EnvConfigError(ConfigurationError):
    """
    Raised when an environment override cannot be parsed.

    Example:
        raise EnvConfigError("FII_MAX_CONCURRENCY must be a positive integer")
    """
    pass
