"""
Error kinds raised by the tailoring engine.
"""

from typing import Optional


class TailoringError(Exception):
    """Base class for all engine errors."""


class ValidationError(TailoringError):
    """Invalid input or configuration. Surfaced immediately, never retried."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}" if field else message)


class SelectionError(TailoringError):
    """No bullet fits the configured budget."""


class ProviderError(TailoringError):
    """Failure reported by the text-generation provider."""

    transient = False


class ProviderTransientError(ProviderError):
    """Timeout, rate limit or server-side failure. Eligible for retry."""

    transient = True


class ProviderPermanentError(ProviderError):
    """Bad credentials, exhausted quota or malformed request. Never retried."""
