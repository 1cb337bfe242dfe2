"""
Base corrector interface shared by every provider.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import ClassVar, Optional

from ..exceptions import ConfigurationError, EmptyResponseError, ValidationError
from ..models import ProviderId
from ..schemas import CorrectionRequest, CorrectionResult

# Seconds before an outbound provider call is abandoned.
DEFAULT_TIMEOUT = 30.0


class Corrector(ABC):
    """Abstract base class for provider correctors.

    A corrector owns one API key and performs exactly one outbound call per
    :meth:`correct`. Retries are the caller's business.
    """

    provider: ClassVar[ProviderId]

    def __init__(self, api_key: str, timeout: float = DEFAULT_TIMEOUT) -> None:
        """
        Initialize the corrector.

        Args:
            api_key: API key for the provider
            timeout: Seconds before the outbound call times out

        Raises:
            ConfigurationError: If the key is missing or blank
        """
        if not api_key or not api_key.strip():
            raise ConfigurationError(
                f"API key is required for provider: {self.provider.value}",
                provider=self.provider.value,
            )
        self.api_key = api_key.strip()
        self.timeout = timeout

    async def correct(self, request: CorrectionRequest) -> CorrectionResult:
        """Correct ``request.text`` with ``request.model``.

        Raises:
            ValidationError: If the request targets another provider
            ProviderError: If the call fails or returns no usable text
        """
        if request.provider is not self.provider:
            raise ValidationError(
                f"{type(self).__name__} cannot serve {request.provider.value} requests"
            )
        text = await self._complete(request)
        return self._normalize(text)

    @abstractmethod
    async def _complete(self, request: CorrectionRequest) -> Optional[str]:
        """Issue the provider call and return the raw response text."""

    def _normalize(self, text: Optional[str]) -> CorrectionResult:
        trimmed = (text or "").strip()
        if not trimmed:
            raise EmptyResponseError(
                f"Empty response from {self.provider.label}",
                provider=self.provider.value,
            )
        return CorrectionResult(text=trimmed)
