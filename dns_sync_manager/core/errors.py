"""
Error taxonomy for DNS synchronization.

Every error raised by the engine derives from DNSSyncError so callers at the
target boundary can convert it into a history entry.
"""

from typing import Dict, List, Optional


class DNSSyncError(Exception):
    """Base class for all DNS sync errors."""


class ConfigurationError(DNSSyncError):
    """Raised when provider or sync configuration is invalid or incomplete."""


class MalformedRecordError(DNSSyncError):
    """Raised when a vendor record cannot be mapped to a canonical record."""

    def __init__(self, message: str, raw: Optional[Dict] = None):
        super().__init__(message)
        self.raw = raw


class ProviderError(DNSSyncError):
    """Base class for errors raised by provider adapters."""

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.provider = provider


class ProviderAuthError(ProviderError):
    """Credentials were rejected by the provider."""


class ProviderRateLimitError(ProviderError):
    """The provider throttled the request."""


class ProviderUnavailableError(ProviderError):
    """The provider could not be reached or returned a server error."""


class ProviderRequestError(ProviderError):
    """The provider cannot accept this request as given; retrying will not help."""


class UnsupportedProviderError(ProviderError):
    """No adapter is registered for the requested vendor type."""


class SafetyViolation(DNSSyncError):
    """Raised instead of risking a destructive sync from an empty desired set."""


class PartialApplyError(DNSSyncError):
    """Some record operations failed after retries."""

    def __init__(self, message: str, failed_operations: Optional[List] = None):
        super().__init__(message)
        self.failed_operations = failed_operations or []


class TargetTimeoutError(DNSSyncError):
    """A target did not finish within its deadline."""
