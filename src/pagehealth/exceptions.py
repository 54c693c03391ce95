"""Custom exceptions for the page health pipeline."""
from typing import Optional


class PageHealthError(Exception):
    """Base exception for the page health pipeline."""

    pass


class ConfigurationError(PageHealthError):
    """Raised for missing or malformed configuration."""

    pass


# --- Acquisition (fatal for a whole run) ---

class AcquisitionError(PageHealthError):
    """Raised when no page snapshot could be produced for a URL."""

    def __init__(self, url: str, message: str):
        self.url = url
        self.message = message
        super().__init__(f"{message} ({url})")


class InvalidUrlError(AcquisitionError):
    """The URL does not match the accepted http(s) pattern."""

    def __init__(self, url: str):
        super().__init__(url, "Invalid URL")


class FetchError(AcquisitionError):
    """Network failure or unusable response while fetching the page."""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(url, message)


class QuotaError(AcquisitionError):
    """The acquisition backend refused the request (quota or auth)."""

    pass


# --- External scoring / data services (trigger local fallback) ---

class ServiceError(PageHealthError):
    """Base class for failures of an optional external analysis service."""

    def __init__(self, service: str, message: str):
        self.service = service
        self.message = message
        super().__init__(f"{service}: {message}")


class ServiceUnavailableError(ServiceError):
    """Transient failure: unreachable, timed out, non-2xx or unparseable answer."""

    pass


class ServiceAuthError(ServiceError):
    """Missing credentials or rejected authentication."""

    pass


# --- Validator level ---

class ValidatorError(PageHealthError):
    """A validator could not produce a result; surfaced as an error result."""

    def __init__(self, validator_id: str, message: str):
        self.validator_id = validator_id
        self.message = message
        super().__init__(message)
