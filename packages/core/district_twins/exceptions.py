"""Custom exceptions for the district twins pipeline."""

from typing import Optional


class DistrictTwinsError(Exception):
    """Base exception for all pipeline errors."""
    pass


class ResolutionError(DistrictTwinsError):
    """Raised when a region identifier cannot be mapped to a queryable geography."""

    def __init__(self, message: str, region_id: Optional[str] = None):
        super().__init__(message)
        self.region_id = region_id


class UpstreamError(DistrictTwinsError):
    """Raised when an external API is unreachable, returns non-2xx, or is unparseable."""

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        status_code: Optional[int] = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.service = service
        self.status_code = status_code
        self.retryable = retryable


class EmptyDistributionError(UpstreamError):
    """Raised when a derived percentage mapping sums to zero."""


class LLMGenerationError(DistrictTwinsError):
    """Raised when LLM generation fails."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        retryable: bool = False,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.retryable = retryable
        self.status_code = status_code


class ExportError(DistrictTwinsError):
    """Raised when exporting personas fails."""

    def __init__(self, message: str, format: Optional[str] = None, output_path: Optional[str] = None):
        super().__init__(message)
        self.format = format
        self.output_path = output_path


class ConfigurationError(DistrictTwinsError):
    """Raised when configuration is invalid."""
    pass
