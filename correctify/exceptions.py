"""Error taxonomy shared by the gateway, orchestrator, pipeline and endpoint."""
from __future__ import annotations

from typing import Optional


class CorrectifyError(Exception):
    """Base class for all correction errors."""

    retryable = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(CorrectifyError):
    """Caller-side input problem; never reaches a provider."""


class ConfigurationError(CorrectifyError):
    """A provider cannot be used until the user configures it."""

    def __init__(self, message: str, provider: Optional[str] = None) -> None:
        super().__init__(message)
        self.provider = provider


class MissingKeyError(ConfigurationError):
    """No API key is stored for the resolved provider."""


class ProviderError(CorrectifyError):
    """Normalized network, HTTP or SDK failure from a provider.

    Attributes:
        status_code: HTTP status returned by the provider, when there was one.
        provider: Provider identifier the failure came from.
    """

    retryable = True

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        provider: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.provider = provider


class EmptyResponseError(ProviderError):
    """The provider answered without usable text."""
