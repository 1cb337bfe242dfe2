"""
OpenRouter corrector (OpenAI-compatible API).
"""
from __future__ import annotations

from typing import Optional

from ..models import ProviderId
from ..schemas import CorrectionRequest
from .base import Corrector
from .openai_provider import chat_completion

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
APP_TITLE = "Correctify"


class OpenRouterCorrector(Corrector):
    """Community and free models routed through OpenRouter."""

    provider = ProviderId.OPENROUTER

    async def _complete(self, request: CorrectionRequest) -> Optional[str]:
        return await chat_completion(
            self.provider,
            {
                "api_key": self.api_key,
                "base_url": OPENROUTER_BASE_URL,
                "timeout": self.timeout,
                "default_headers": {"X-Title": APP_TITLE},
            },
            request,
        )
