"""Custom exceptions for Narrative Radar."""

from __future__ import annotations


class RadarError(Exception):
    """Base exception for all Narrative Radar errors."""
    pass


class APIError(RadarError):
    """Base exception for external API failures."""
    pass


class SourceError(APIError):
    """Raised when a source adapter cannot produce records."""

    def __init__(self, message: str, source: str | None = None):
        self.source = source
        super().__init__(message)


class LLMServiceError(APIError):
    """Raised when the xAI/LLM service fails."""

    def __init__(self, message: str, model: str | None = None):
        self.model = model
        super().__init__(message)


class RateLimitError(APIError):
    """Raised when API rate limit is exceeded."""

    def __init__(self, service: str, retry_after: int | None = None):
        self.service = service
        self.retry_after = retry_after
        super().__init__(f"{service} rate limit exceeded")


class ConfigurationError(RadarError):
    """Raised when a required credential or endpoint is absent."""
    pass


class StorageError(RadarError):
    """Raised when a snapshot cannot be persisted."""

    def __init__(self, message: str, kind: str | None = None):
        self.kind = kind
        super().__init__(message)


class ValidationError(RadarError):
    """Raised when input validation fails."""
    pass
