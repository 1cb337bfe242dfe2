"""
Provider gateway: one corrector class per supported provider.
"""
from __future__ import annotations

from typing import Dict, Type

from ..models import ProviderId, parse_provider
from .anthropic_provider import AnthropicCorrector
from .base import DEFAULT_TIMEOUT, Corrector
from .mistral_provider import MistralCorrector
from .openai_provider import OpenAICorrector
from .openrouter_provider import OpenRouterCorrector

CORRECTOR_CLASSES: Dict[ProviderId, Type[Corrector]] = {
    ProviderId.OPENAI: OpenAICorrector,
    ProviderId.ANTHROPIC: AnthropicCorrector,
    ProviderId.MISTRAL: MistralCorrector,
    ProviderId.OPENROUTER: OpenRouterCorrector,
}


def create_corrector(provider: ProviderId, api_key: str, timeout: float = DEFAULT_TIMEOUT) -> Corrector:
    """Build the corrector for ``provider``.

    Raises:
        ValidationError: If the provider is unknown
        ConfigurationError: If the key is blank
    """
    corrector_class = CORRECTOR_CLASSES[parse_provider(provider)]
    return corrector_class(api_key=api_key, timeout=timeout)


__all__ = [
    "CORRECTOR_CLASSES",
    "DEFAULT_TIMEOUT",
    "AnthropicCorrector",
    "Corrector",
    "MistralCorrector",
    "OpenAICorrector",
    "OpenRouterCorrector",
    "create_corrector",
]
