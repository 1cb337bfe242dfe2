"""Static catalog of correction models and provider resolution."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .exceptions import ValidationError


class ProviderId(str, Enum):
    """Supported LLM vendors. Each value owns one API key slot."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    MISTRAL = "mistral"
    OPENROUTER = "openrouter"

    @property
    def label(self) -> str:
        return _PROVIDER_LABELS[self]

    @property
    def key_name(self) -> str:
        """Name of the secret slot holding this provider's API key."""
        return f"{self.value}-api-key"


_PROVIDER_LABELS = {
    ProviderId.OPENAI: "OpenAI",
    ProviderId.ANTHROPIC: "Anthropic",
    ProviderId.MISTRAL: "Mistral",
    ProviderId.OPENROUTER: "OpenRouter",
}


class ModelTier(str, Enum):
    PAID = "paid"
    FREE = "free"


@dataclass(frozen=True)
class TokenCost:
    """USD cost per 1K tokens."""

    input: float
    output: float

    @property
    def average(self) -> float:
        return (self.input + self.output) / 2


@dataclass(frozen=True)
class ModelDescriptor:
    id: str
    display_name: str
    provider: ProviderId
    tier: ModelTier
    context_window: int
    cost_per_1k_tokens: Optional[TokenCost] = None
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        cost = self.cost_per_1k_tokens
        return {
            "id": self.id,
            "name": self.display_name,
            "provider": self.provider.value,
            "tier": self.tier.value,
            "context_window": self.context_window,
            "cost_per_1k_tokens": {"input": cost.input, "output": cost.output} if cost else None,
            "description": self.description,
        }


# Paid models first, then free ones; order is the order shown to the user.
MODELS: Tuple[ModelDescriptor, ...] = (
    ModelDescriptor("gpt-4o-mini", "GPT-4o Mini", ProviderId.OPENAI, ModelTier.PAID, 128000,
                    TokenCost(0.00015, 0.0006), "Fast and affordable"),
    ModelDescriptor("gpt-5", "GPT-5", ProviderId.OPENAI, ModelTier.PAID, 128000,
                    TokenCost(0.005, 0.015), "Most advanced reasoning"),
    ModelDescriptor("gpt-5-mini", "GPT-5 Mini", ProviderId.OPENAI, ModelTier.PAID, 128000,
                    TokenCost(0.001, 0.003), "Balanced performance"),
    ModelDescriptor("gpt-4o", "GPT-4o", ProviderId.OPENAI, ModelTier.PAID, 128000,
                    TokenCost(0.0025, 0.01), "Most capable model"),
    ModelDescriptor("gpt-4-turbo", "GPT-4 Turbo", ProviderId.OPENAI, ModelTier.PAID, 128000,
                    TokenCost(0.01, 0.03), "Powerful and versatile"),
    ModelDescriptor("gpt-3.5-turbo", "GPT-3.5 Turbo", ProviderId.OPENAI, ModelTier.PAID, 16385,
                    TokenCost(0.0005, 0.0015), "Very affordable and fast"),
    ModelDescriptor("claude-3-5-sonnet-20241022", "Claude 3.5 Sonnet", ProviderId.ANTHROPIC,
                    ModelTier.PAID, 200000, TokenCost(0.003, 0.015), "Balanced performance"),
    ModelDescriptor("claude-3-5-haiku-20241022", "Claude 3.5 Haiku", ProviderId.ANTHROPIC,
                    ModelTier.PAID, 200000, TokenCost(0.0008, 0.004), "Fast and efficient"),
    ModelDescriptor("mistral-small-latest", "Mistral Small", ProviderId.MISTRAL, ModelTier.PAID, 32000,
                    TokenCost(0.0002, 0.0006), "Cost-effective"),
    ModelDescriptor("mistral-large-latest", "Mistral Large", ProviderId.MISTRAL, ModelTier.PAID, 128000,
                    TokenCost(0.002, 0.006), "Most capable Mistral"),
    ModelDescriptor("meta-llama/llama-3.2-3b-instruct:free", "Llama 3.2 3B (Free)", ProviderId.OPENROUTER,
                    ModelTier.FREE, 131072, None, "Fast, lightweight"),
    ModelDescriptor("google/gemma-2-9b-it:free", "Gemma 2 9B (Free)", ProviderId.OPENROUTER,
                    ModelTier.FREE, 8192, None, "Google's open model"),
    ModelDescriptor("microsoft/phi-3-mini-128k-instruct:free", "Phi-3 Mini (Free)", ProviderId.OPENROUTER,
                    ModelTier.FREE, 128000, None, "Microsoft research model"),
    ModelDescriptor("mistralai/mistral-7b-instruct:free", "Mistral 7B (Free)", ProviderId.OPENROUTER,
                    ModelTier.FREE, 32768, None, "Open source Mistral"),
)

DEFAULT_MODEL_ID = "gpt-4o-mini"

DEFAULT_PROVIDER_MODELS: Dict[ProviderId, str] = {
    ProviderId.OPENAI: "gpt-4o-mini",
    ProviderId.ANTHROPIC: "claude-3-5-haiku-20241022",
    ProviderId.MISTRAL: "mistral-small-latest",
    ProviderId.OPENROUTER: "meta-llama/llama-3.2-3b-instruct:free",
}

_MODELS_BY_ID = {model.id: model for model in MODELS}


def parse_provider(value: Any) -> ProviderId:
    """Coerce a provider name into a :class:`ProviderId`.

    Raises:
        ValidationError: If the value names no supported provider.
    """
    if isinstance(value, ProviderId):
        return value
    candidate = str(value).strip().lower() if value is not None else ""
    try:
        return ProviderId(candidate)
    except ValueError:
        valid = ", ".join(provider.value for provider in ProviderId)
        raise ValidationError(f"Invalid provider '{value}'. Must be one of: {valid}") from None


def _normalize_flags(has_key: Mapping[Any, bool]) -> Dict[ProviderId, bool]:
    # Str-valued enum members do not hash like their string values, so
    # callers passing plain "openai" keys need translating first.
    flags = {provider: False for provider in ProviderId}
    for raw, enabled in has_key.items():
        try:
            flags[parse_provider(raw)] = bool(enabled)
        except ValidationError:
            continue
    return flags


def available_models(has_key: Mapping[Any, bool]) -> List[ModelDescriptor]:
    """Return catalog models whose provider has a configured key, in catalog order."""
    flags = _normalize_flags(has_key)
    return [model for model in MODELS if flags[model.provider]]


def model_by_id(model_id: str) -> Optional[ModelDescriptor]:
    return _MODELS_BY_ID.get(model_id)


def default_model_for(provider: ProviderId) -> ModelDescriptor:
    return _MODELS_BY_ID[DEFAULT_PROVIDER_MODELS[provider]]


def provider_for_model(model_id: str) -> ProviderId:
    """Derive the provider from the shape of a model id.

    OpenRouter ids look like ``vendor/model:variant``; ``claude-`` ids belong
    to Anthropic and ``mistral-`` ids to Mistral. Anything else, including
    unknown ids, resolves to OpenAI.
    """
    if "/" in model_id and ":" in model_id:
        return ProviderId.OPENROUTER
    if model_id.startswith("claude-"):
        return ProviderId.ANTHROPIC
    if model_id.startswith("mistral-"):
        return ProviderId.MISTRAL
    return ProviderId.OPENAI
