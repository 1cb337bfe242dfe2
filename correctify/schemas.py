"""
Data schemas for correction requests and results.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .exceptions import ValidationError
from .models import ProviderId, parse_provider
from .prompts import WritingStyle, build_instructions, parse_style


@dataclass(frozen=True)
class CorrectionRequest:
    """One correction submission, built per call."""

    text: str
    provider: ProviderId
    model: str
    temperature: float = 0.0
    writing_style: WritingStyle = WritingStyle.GRAMMAR
    custom_rules: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.text, str) or not self.text.strip():
            raise ValidationError("Text is required")
        if not self.model or not str(self.model).strip():
            raise ValidationError("Model is required")
        if isinstance(self.temperature, bool) or not isinstance(self.temperature, (int, float)):
            raise ValidationError(f"Temperature must be a number (got {self.temperature!r})")
        if not 0.0 <= float(self.temperature) <= 2.0:
            raise ValidationError(f"Temperature must be between 0 and 2 (got {self.temperature})")
        object.__setattr__(self, "provider", parse_provider(self.provider))
        object.__setattr__(self, "writing_style", parse_style(self.writing_style))
        object.__setattr__(self, "temperature", float(self.temperature))

    @property
    def instructions(self) -> str:
        return build_instructions(self.writing_style, self.custom_rules)


@dataclass(frozen=True)
class CorrectionResult:
    """Corrected text returned by a provider."""

    text: str
